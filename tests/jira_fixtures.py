"""Helpers building Jira REST JSON for tests, plus an in-memory Jira client."""

import requests

from jira_search import JiraIssue

LINK_TYPES = {
    "Blocks": ("blocks", "is blocked by"),
    "Relates": ("relates to", "relates to"),
    "Duplicate": ("duplicates", "is duplicated by"),
}


def make_issue(key, links=None, status="To Do", issuetype="Story", summary=None, priority="Medium"):
    fields = {
        "summary": summary if summary is not None else "Summary of " + key,
        "status": {"name": status},
        "issuetype": {"name": issuetype},
        "priority": {"name": priority},
    }
    if links is not None:
        fields["issuelinks"] = links
    return {"id": key, "key": key, "fields": fields}


def link_type(name):
    outward_text, inward_text = LINK_TYPES[name]
    return {"name": name, "outward": outward_text, "inward": inward_text}


def outward(type_name, key):
    return {"type": link_type(type_name), "outwardIssue": make_issue(key)}


def inward(type_name, key):
    return {"type": link_type(type_name), "inwardIssue": make_issue(key)}


class FakeJira:
    """Serves issues from a dict and records every fetch."""

    def __init__(self, issues, epic_children=None):
        self.issues = {issue["key"]: issue for issue in issues}
        self.epic_children = epic_children or {}
        self.fetched = []
        self.queries = []

    def issue_cache_get(self, key):
        self.fetched.append(key)
        if key not in self.issues:
            raise requests.HTTPError("404 Client Error: Issue Does Not Exist: " + key)
        return JiraIssue(self.issues[key])

    fetch = issue_cache_get

    def get_issue_uri(self, key):
        return "https://jira.example.com/browse/" + key

    def search_issue_ids(self, jql):
        self.queries.append(jql)
        epic_key = jql.split('"')[1]
        return list(self.epic_children.get(epic_key, []))

    def bulk_fetch(self, ids, fields=None):
        return [self.issues[key] for key in ids]

    def myself(self):
        return {"displayName": "Test User"}


def cycle_issues():
    """A blocks B blocks C blocks A."""
    return [
        make_issue("A", [outward("Blocks", "B"), inward("Blocks", "C")]),
        make_issue("B", [inward("Blocks", "A"), outward("Blocks", "C")]),
        make_issue("C", [inward("Blocks", "B"), outward("Blocks", "A")]),
    ]


def scenario_issues():
    """X-1 blocks X-2, X-2 relates to X-3."""
    return [
        make_issue("X-1", [outward("Blocks", "X-2")]),
        make_issue("X-2", [inward("Blocks", "X-1"), outward("Relates", "X-3")]),
        make_issue("X-3", [inward("Relates", "X-2")]),
    ]
