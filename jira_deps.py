#!/usr/bin/env python

import argparse
import configparser
import getpass
import os
import sys

import requests
import yaml

from flowchart import Flowchart, GraphConfig, EDGE_SHAPE_LINE, create_graph_images
from helper_methods import log
from jira_search import JiraSearch, JiraIssue
from link_walker import Link, LinkSet, walk_links

DEFAULT_CONFIG_FILE = os.path.expanduser("~/.config/jira-deps.ini")
DEFAULT_ORG = "default"

EPIC_CHILDREN_JQL = 'parent = "%s"'
EPIC_LINK = {"type": {"name": "Epic", "inward": "is in epic", "outward": "has issue"}}


class IncompleteCredentialsError(Exception):
    pass


def read_config(config_file):
    config = configparser.ConfigParser()
    # keep the JIRA_* option names as written
    config.optionxform = str
    config.read(config_file)
    return config


def save_config(config, config_file):
    directory = os.path.dirname(config_file)
    if directory:
        os.makedirs(directory, exist_ok=True)
    # the file holds an API token, keep it private to the owner
    fd = os.open(config_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    os.chmod(config_file, 0o600)
    with os.fdopen(fd, "w") as file:
        config.write(file)
    log("Saved credentials to " + config_file)


def choose_org(config, org=None):
    if org is not None:
        return org
    sections = config.sections()
    return sections[0] if sections else DEFAULT_ORG


def get_auth_creds(options, interactive=True):
    """Fill host, user and token from the options, the config file and finally the terminal.

    Returns the chosen org section name and the credentials dict.
    Values typed in at the prompt are written back to the config file unless
    ``--no-save`` was given.
    """
    config = read_config(options.config)
    org = choose_org(config, options.org)
    section = config[org] if config.has_section(org) else {}

    creds = {
        "JIRA_HOST": options.jira_url or section.get("JIRA_HOST"),
        "JIRA_USER": options.user or section.get("JIRA_USER"),
        "JIRA_TOKEN": options.password or section.get("JIRA_TOKEN"),
    }
    needs_login = not (options.cookie or options.no_auth)

    prompted = False
    if interactive:
        try:
            if not creds["JIRA_HOST"]:
                creds["JIRA_HOST"] = input("Jira URL: ").strip()
                prompted = True
            if needs_login and not creds["JIRA_USER"]:
                creds["JIRA_USER"] = input("Username: ").strip()
                prompted = True
            if needs_login and not creds["JIRA_TOKEN"]:
                creds["JIRA_TOKEN"] = getpass.getpass("API token: ")
                prompted = True
        except EOFError:
            raise IncompleteCredentialsError(
                "no input while prompting for credentials of [{}]".format(org)
            )

    missing = [k for k, v in creds.items() if not v and (needs_login or k == "JIRA_HOST")]
    if missing:
        raise IncompleteCredentialsError(
            "must provide {} in section [{}] of {}".format(
                ", ".join(missing), org, options.config
            )
        )

    if prompted and not options.no_save:
        if not config.has_section(org):
            config.add_section(org)
        for k, v in creds.items():
            if v:
                config[org][k] = v
        save_config(config, options.config)

    return org, creds


def build_auth(options, creds):
    if options.cookie is not None:
        # Log in with browser and use --cookie=ABCDEF012345 commandline argument
        return options.cookie
    elif options.no_auth is True:
        # Don't use authentication when it's not needed
        return None
    return creds["JIRA_USER"], creds["JIRA_TOKEN"]


def redact_namespace(config, sensitive_keys=("user", "password")):
    for key in sensitive_keys:
        delattr(config, key)


def load_graph_config(options, org):
    path = options.graph_config or "./config/{}-config.yml".format(org.lower())
    try:
        with open(path, "r") as file:
            return GraphConfig(yaml.safe_load(file))
    except FileNotFoundError:
        return GraphConfig({})


def add_issue_node(chart, issue, jira):
    node = chart.get_or_create_node(issue.get_key())
    # a node without lines was just created; later sightings keep the first labels
    if not node.lines:
        status = issue.get_status_name()
        node.style = chart.node_style(status)
        node.link = jira.get_issue_uri(issue.get_key())
        node.link_text = "Jira: " + issue.get_key()
        node.add_lines("{} - {}".format(issue.get_key(), status), issue.get_summary())
    return node


def add_link(chart, link, jira):
    from_node = add_issue_node(chart, link.from_issue, jira)
    to_node = add_issue_node(chart, link.to_issue, jira)
    edge = chart.add_edge(from_node, to_node)
    edge.text = [link.get_text()]
    if chart.graph_config.is_line_link_type(link.get_type_name()):
        edge.shape = EDGE_SHAPE_LINE
    return edge


def resolve_seed_issues(issue, jira, ignore_epic=False):
    """Return the issues to start walking from: the issue itself, plus the children of an Epic."""
    if ignore_epic or issue.get_issuetype_name() != "Epic":
        return [issue]
    ids = jira.search_issue_ids(EPIC_CHILDREN_JQL % issue.get_key())
    if not ids:
        return [issue]
    children = [JiraIssue(data) for data in jira.bulk_fetch(ids)]
    return [issue] + children


def build_graph_data(start_issue, jira, chart, ignore_epic=False):
    """Given a starting issue and the Jira client, add every reachable link to the chart.

    All seed issues share one link set, which is returned.
    """

    def on_new_link(link):
        log("{} => {} => {}".format(link.from_issue.get_key(), link.get_text(), link.to_issue.get_key()))
        add_link(chart, link, jira)

    add_issue_node(chart, start_issue, jira)
    seeds = resolve_seed_issues(start_issue, jira, ignore_epic)

    links = LinkSet()
    for child in seeds[1:]:
        epic_link = Link(start_issue, EPIC_LINK, child)
        if not links.exists(epic_link.signature()):
            links.add(epic_link.signature())
            on_new_link(epic_link)

    for seed in seeds:
        walk_links(seed, jira.issue_cache_get, on_new_link, links)
    return links


def print_issue_header(issue):
    print("\n{}: {}".format(issue.get_key(), issue.get_summary()))
    print("Type: {}".format(issue.get_issuetype_name()))
    print("Priority: {}".format(issue.get_priority_name()))


def print_graph(chart, fmt):
    if fmt == "dot":
        print("\n\n{}\n".format(chart.render(fmt)))
    else:
        print("\n\n```mermaid\n{}```\n".format(chart.render(fmt)))
    print(chart.live_url(fmt))


def gen_dep_flowchart(jira, issue_key, chart, ignore_epic=False):
    """Fetch the root issue and fill ``chart`` with its link graph. Fetch errors of the root propagate."""
    issue = jira.issue_cache_get(issue_key.strip())

    print_issue_header(issue)
    links = build_graph_data(issue, jira, chart, ignore_epic)
    print("Links:")
    for signature in links.list():
        print("  " + str(signature))
    return links


def prompt_for_issue():
    try:
        return input("Issue Number: ").strip()
    except EOFError:
        log("Error getting issue number: no input")
        sys.exit(1)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Draw the issue link graph reachable from one or more Jira issues"
    )

    parser.add_argument(
        "--config",
        dest="config",
        default=DEFAULT_CONFIG_FILE,
        help="Credentials file (default: %(default)s)",
    )
    parser.add_argument("-o", "--org", dest="org", default=None, help="JIRA org")
    parser.add_argument(
        "-u", "--user", dest="user", default=None, help="Username to access JIRA"
    )
    parser.add_argument(
        "-p",
        "--password",
        dest="password",
        default=None,
        help="API token or password to access JIRA",
    )
    parser.add_argument(
        "-c",
        "--cookie",
        dest="cookie",
        default=None,
        help="JSESSIONID session cookie value",
    )
    parser.add_argument(
        "-N",
        "--no-auth",
        dest="no_auth",
        action="store_true",
        default=False,
        help="Use no authentication",
    )
    parser.add_argument(
        "-j",
        "--jira",
        dest="jira_url",
        default=None,
        help="JIRA Base URL (with protocol)",
    )
    parser.add_argument(
        "--no-save",
        dest="no_save",
        action="store_true",
        default=False,
        help="Don't write prompted credentials back to the config file",
    )
    parser.add_argument(
        "-e",
        "--ignore-epic",
        action="store_true",
        default=False,
        help="Don't follow an Epic into its children issues",
    )
    parser.add_argument(
        "--format",
        dest="format",
        choices=["mermaid", "dot"],
        default="mermaid",
        help="Diagram language to print",
    )
    parser.add_argument(
        "-f",
        "--file",
        dest="image_file",
        default=None,
        help="Also render the graph with graphviz to FILE.png and FILE.pdf",
    )
    parser.add_argument(
        "-g",
        "--graph-config",
        dest="graph_config",
        default=None,
        help="YAML styling file (default: ./config/<org>-config.yml)",
    )
    parser.add_argument(
        "--graph-rank-direction",
        dest="graph_rank_direction",
        default="TB",
        help="Graph rank direction",
    )
    parser.add_argument(
        "--no-verify-ssl",
        dest="no_verify_ssl",
        default=False,
        action="store_true",
        help="Don't verify SSL certs for requests",
    )
    parser.add_argument(
        "issues", nargs="*", help="The issue key (e.g. JRADEV-1107, JRADEV-1391)"
    )
    return parser.parse_args(argv)


def main(argv=None):
    options = parse_args(argv)

    try:
        org, creds = get_auth_creds(options)
    except IncompleteCredentialsError as e:
        log("Error getting credentials: {}".format(e))
        sys.exit(1)

    auth = build_auth(options, creds)
    # redact sensitive keys asap
    redact_namespace(options)

    jira = JiraSearch(creds["JIRA_HOST"], auth, options.no_verify_ssl)
    if auth is not None:
        try:
            jira.myself()
        except requests.RequestException as e:
            log("Error authenticating to {}: {}".format(creds["JIRA_HOST"], e))
            sys.exit(1)

    graph_config = load_graph_config(options, org)

    issues = options.issues or [prompt_for_issue()]

    return_code = 0
    for issue_key in issues:
        chart = Flowchart(graph_config, options.graph_rank_direction)
        try:
            gen_dep_flowchart(jira, issue_key, chart, options.ignore_epic)
        except requests.RequestException as e:
            log("error getting issue {}: {}".format(issue_key.strip(), e))
            return_code += 1

        if len(chart.list_nodes()) > 1:
            print_graph(chart, options.format)
            if options.image_file:
                image_file = options.image_file
                if len(issues) > 1:
                    image_file += "-" + issue_key.strip()
                create_graph_images(chart.render("dot"), image_file)
        else:
            print("None")

    sys.exit(return_code)


if __name__ == "__main__":
    main()
