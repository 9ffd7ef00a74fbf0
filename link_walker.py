"""Discovery of the link graph reachable from a single Jira issue.

The walk follows both directions of every issue link, stops at edges it has
already seen and hands each new edge to a callback in depth-first discovery
order.
"""

from collections import namedtuple

import requests

from helper_methods import log
from jira_search import JiraIssue


class LinkSignature(namedtuple("LinkSignature", ["from_key", "link_type", "to_key"])):
    """Identity of an edge; two links with the same signature are the same edge."""

    __slots__ = ()

    def __str__(self):
        return "{} -- {} --> {}".format(self.from_key, self.link_type, self.to_key)


class Link(namedtuple("Link", ["from_issue", "link", "to_issue"])):
    """A directed issue link; ``link`` is the raw JSON of the Jira issue link."""

    __slots__ = ()

    def get_type_name(self):
        return self.link["type"]["name"]

    def get_text(self):
        # inward links keep the outward phrasing of their type
        return self.link["type"]["outward"]

    def signature(self):
        return LinkSignature(
            self.from_issue.get_key(), self.get_type_name(), self.to_issue.get_key()
        )

    def __str__(self):
        return str(self.signature())


class LinkSet:
    """Signatures of the edges processed during one traversal. Only ever grows."""

    def __init__(self):
        self.__signatures = set()

    def exists(self, signature):
        return signature in self.__signatures

    def add(self, signature):
        self.__signatures.add(signature)

    def list(self):
        return sorted(self.__signatures)

    def __contains__(self, signature):
        return self.exists(signature)

    def __iter__(self):
        return iter(self.list())

    def __len__(self):
        return len(self.__signatures)


def expand_issue(issue, fetch_issue):
    """Return ``issue`` with its links loaded, fetching it by key if it has none.

    A failed fetch leaves the issue as it is, so it ends up as a leaf of the graph.
    """
    if issue.get_issuelinks():
        return issue
    try:
        return fetch_issue(issue.get_key())
    except requests.RequestException as e:
        log("WARNING: could not expand {}, treating it as a leaf: {}".format(issue.get_key(), e))
        return issue


def iter_links(issue, fetch_issue):
    """Yield ``(link, next_issue)`` for both directions of every link on ``issue``."""
    issue = expand_issue(issue, fetch_issue)
    for link in issue.get_issuelinks():
        if link.get("outwardIssue"):
            outward_issue = JiraIssue(link["outwardIssue"])
            yield Link(issue, link, outward_issue), outward_issue
        if link.get("inwardIssue"):
            inward_issue = JiraIssue(link["inwardIssue"])
            yield Link(inward_issue, link, issue), inward_issue


def walk_links(issue, fetch_issue, on_new_link, links=None):
    """Given a starting issue and the issue-fetching function, report every distinct link reachable from it.

    ``fetch_issue(key)`` returns a fully populated issue and may raise
    ``requests.RequestException``. ``on_new_link(link)`` is called once per new
    edge, before the walk descends into the issue at its other end. Pass
    ``links`` to share a tracker between several walks; the tracker is returned.
    """
    if links is None:
        links = LinkSet()

    # one lazy link iterator per issue on the current path; since the graph can
    # be cyclic, only new edges push a frame
    stack = [iter_links(issue, fetch_issue)]
    while stack:
        found = next(stack[-1], None)
        if found is None:
            stack.pop()
            continue

        link, next_issue = found
        signature = link.signature()
        if links.exists(signature):
            continue

        links.add(signature)
        on_new_link(link)
        stack.append(iter_links(next_issue, fetch_issue))

    return links
