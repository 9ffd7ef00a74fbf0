import base64
import html
import json
import sys

import requests

MERMAID_LIVE_URL = "https://mermaid.live/edit#base64:"
GRAPHVIZ_ONLINE_URL = "https://dreampuf.github.io/GraphvizOnline/#"


def log(*args):
    print(*args, file=sys.stderr)


def style_key(status_name):
    return "".join(status_name.split())


def dict_to_attrs(d, delimiter=","):
    return delimiter.join(
        ["{}:{}".format(k, v) for k, v in d.items() if v]
    )


def escape_label(text):
    # mermaid takes entity codes without the leading ampersand
    text = html.escape(text or "")
    return text.replace("&quot;", "#quot;").replace("&#x27;", "#39;")


def escape_quotes(text):
    return text.replace('"', "#quot;")


def mermaid_live_url(code, theme="default"):
    state = {
        "code": code,
        "mermaid": json.dumps({"theme": theme}),
        "autoSync": True,
        "updateDiagram": True,
    }
    encoded = base64.urlsafe_b64encode(json.dumps(state).encode("utf-8"))
    return MERMAID_LIVE_URL + encoded.decode("ascii")


def graphviz_online_url(source):
    return GRAPHVIZ_ONLINE_URL + requests.utils.quote(source)
