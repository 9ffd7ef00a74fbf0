import requests

from helper_methods import log

MAX_QUERY_RESULTS = 100
MAX_BULK_FETCH = 100

ISSUE_FIELDS = ["key", "summary", "status", "issuetype", "priority", "issuelinks"]


class JiraSearch(object):
    """Client for the Jira REST API. Holds the base URL, the credentials and the issues fetched so far,
    so callers only pass issue keys and queries around."""

    __base_url = None

    def __init__(self, url, auth, no_verify_ssl=False):
        self.__base_url = url.rstrip("/")
        self.url = self.__base_url + "/rest/api/3"
        self.auth = auth
        self.no_verify_ssl = no_verify_ssl
        self.fields = ",".join(ISSUE_FIELDS)
        self.issue_cache = {}

    def request_options(self):
        options = {"verify": not self.no_verify_ssl}
        if isinstance(self.auth, str):
            options["cookies"] = {"JSESSIONID": self.auth}
        elif self.auth is not None:
            options["auth"] = self.auth
        return options

    def get(self, uri, params=None):
        headers = {"Accept": "application/json"}
        return requests.get(
            self.url + uri, params=params or {}, headers=headers, **self.request_options()
        )

    def post(self, uri, payload):
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        return requests.post(
            self.url + uri, json=payload, headers=headers, **self.request_options()
        )

    def myself(self):
        response = self.get("/myself")
        response.raise_for_status()
        return response.json()

    def get_issue(self, key):
        """Given an issue key (i.e. JRA-9) return the JSON representation of it."""
        log("Fetching " + key)
        # links are what we care about here; the other fields label the node
        response = self.get("/issue/%s" % key, params={"fields": self.fields})
        response.raise_for_status()
        return response.json()

    def search_issue_ids(self, jql):
        """Return the ids of every issue matched by ``jql``, following the page tokens."""
        log("Querying " + jql)
        ids = []
        next_page_token = None
        while True:
            params = {"jql": jql, "fields": "id", "maxResults": MAX_QUERY_RESULTS}
            if next_page_token:
                params["nextPageToken"] = next_page_token
            response = self.get("/search/jql", params=params)
            response.raise_for_status()
            content = response.json()

            ids.extend(issue["id"] for issue in content.get("issues", []))

            next_page_token = content.get("nextPageToken")
            if not next_page_token or content.get("isLast"):
                break
        return ids

    def bulk_fetch(self, ids, fields=None):
        """Load the full JSON of the given issue ids or keys, MAX_BULK_FETCH at a time."""
        fields = fields or ISSUE_FIELDS
        issues = []
        for start in range(0, len(ids), MAX_BULK_FETCH):
            batch = ids[start:start + MAX_BULK_FETCH]
            log("Bulk fetching %d issues" % len(batch))
            response = self.post(
                "/issue/bulkfetch", {"issueIdsOrKeys": batch, "fields": fields}
            )
            response.raise_for_status()
            issues.extend(response.json().get("issues", []))

        for issue in issues:
            self.issue_cache_set(issue)
        return issues

    def get_issue_uri(self, issue_key):
        return self.__base_url + "/browse/" + issue_key

    def issue_cache_get(self, issue_key):
        issue = self.issue_cache.get(issue_key)
        if issue is None:
            issue = self.issue_cache_set(self.get_issue(issue_key))
        return issue

    def issue_cache_set(self, issue_data):
        issue = JiraIssue(issue_data)
        self.issue_cache[issue.get_key()] = issue
        return issue


class JiraIssue:
    __data = None

    def __init__(self, data):
        self.__data = data

    def get_key(self):
        return self.__data["key"]

    def get_fields(self):
        return self.__data.get("fields", {})

    def get_summary(self):
        return self.get_fields().get("summary", "")

    def get_status_name(self):
        return (self.get_fields().get("status") or {}).get("name", "")

    def get_issuetype_name(self):
        return (self.get_fields().get("issuetype") or {}).get("name", "")

    def get_priority_name(self):
        return (self.get_fields().get("priority") or {}).get("name", "")

    def get_issuelinks(self):
        return self.get_fields().get("issuelinks") or []

    def __repr__(self):
        return "JiraIssue(%r)" % self.get_key()
