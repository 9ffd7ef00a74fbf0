import graphviz

from helper_methods import (
    log,
    style_key,
    dict_to_attrs,
    escape_label,
    escape_quotes,
    mermaid_live_url,
    graphviz_online_url,
)

EDGE_SHAPE_ARROW = "arrow"
EDGE_SHAPE_LINE = "line"

DEFAULT_STATUS_STYLES = {
    "To Do": {"fill": "#D3D3D3", "stroke": "#808080"},
    "In Progress": {"fill": "#0052CC", "color": "#fff"},
    "In Code Review": {"fill": "#998DD9"},
    "Ready for Local Testing": {"fill": "#00C7E6"},
    "In Local Test": {"fill": "#008DA6"},
    "Ready for Staging Test": {"fill": "#FFE380"},
    "In Staging Test": {"fill": "#FFAB00"},
    "Ready for Production": {"fill": "#108010", "color": "#fff"},
    "Done": {"fill": "#008000", "stroke": "green", "color": "#0f0"},
}

DEFAULT_LINE_LINK_TYPES = ["relates"]

STYLE_KEYS = ("fill", "stroke", "color")


class GraphConfig:
    __config_dict = None

    def __init__(self, config_dict=None):
        self.__config_dict = config_dict or {}

    def status_styles(self):
        styles = dict(DEFAULT_STATUS_STYLES)
        # an empty yaml section loads as None
        styles.update(self.__config_dict.get("status-styles") or {})
        return styles

    def get_status_style(self, status_name):
        style = {}
        for k, v in (self.status_styles().get(status_name) or {}).items():
            if k in STYLE_KEYS:
                if v is not None:
                    style[k] = str(v)
            else:
                log("Ignoring unknown style '{}' for status '{}'".format(k, status_name))
        return style

    def line_link_types(self):
        names = self.__config_dict.get("line-link-types")
        if names is None:
            names = DEFAULT_LINE_LINK_TYPES
        return [str(name).lower() for name in names]

    def is_line_link_type(self, link_type_name):
        return link_type_name.lower() in self.line_link_types()


class NodeStyle:
    def __init__(self, key, fill=None, stroke=None, color=None):
        self.key = key
        self.fill = fill
        self.stroke = stroke
        self.color = color

    def mermaid_attrs(self):
        return {"fill": self.fill, "stroke": self.stroke, "color": self.color}

    def dot_attrs(self):
        attrs = {}
        if self.fill:
            attrs["style"] = "filled"
            attrs["fillcolor"] = self.fill
        if self.stroke:
            attrs["color"] = self.stroke
        if self.color:
            attrs["fontcolor"] = self.color
        return attrs


class Node:
    def __init__(self, key, node_id):
        self.key = key
        self.id = node_id
        self.lines = []
        self.style = None
        self.link = None
        self.link_text = None

    def add_lines(self, *lines):
        self.lines.extend(lines)


class Edge:
    def __init__(self, from_node, to_node):
        self.from_node = from_node
        self.to_node = to_node
        self.text = []
        self.shape = EDGE_SHAPE_ARROW


class Flowchart:
    """Nodes keyed by issue key plus the edges between them, rendered as mermaid or graphviz."""

    def __init__(self, graph_config=None, rank_direction="TB"):
        self.graph_config = graph_config or GraphConfig()
        self.rank_direction = rank_direction
        self.__nodes = {}
        self.__edges = []
        self.__styles = {}

    def get_node(self, key):
        return self.__nodes.get(key)

    def add_node(self, key):
        node = Node(key, "n%d" % (len(self.__nodes) + 1))
        self.__nodes[key] = node
        return node

    def get_or_create_node(self, key):
        node = self.get_node(key)
        if node is None:
            node = self.add_node(key)
        return node

    def add_edge(self, from_node, to_node):
        edge = Edge(from_node, to_node)
        self.__edges.append(edge)
        return edge

    def node_style(self, status_name):
        key = style_key(status_name) or "NoStatus"
        style = self.__styles.get(key)
        if style is None:
            style = NodeStyle(key, **self.graph_config.get_status_style(status_name))
            self.__styles[key] = style
        return style

    def list_nodes(self):
        return list(self.__nodes.values())

    def list_edges(self):
        return list(self.__edges)

    def to_mermaid(self):
        lines = ["flowchart " + self.rank_direction]

        used_styles = []
        for node in self.__nodes.values():
            if node.style is not None and node.style not in used_styles:
                used_styles.append(node.style)
        for style in used_styles:
            attrs = dict_to_attrs(style.mermaid_attrs())
            if attrs:
                lines.append("classDef {} {}".format(style.key, attrs))

        for node in self.__nodes.values():
            label = "<br/>".join(escape_label(line) for line in node.lines or [node.key])
            lines.append('{}["{}"]'.format(node.id, label))
            if node.style is not None and dict_to_attrs(node.style.mermaid_attrs()):
                lines.append("class {} {}".format(node.id, node.style.key))
            if node.link:
                lines.append(
                    'click {} "{}" "{}"'.format(
                        node.id, node.link, escape_quotes(node.link_text or node.key)
                    )
                )

        for edge in self.__edges:
            arrow = "---" if edge.shape == EDGE_SHAPE_LINE else "-->"
            text = "<br/>".join(escape_label(t) for t in edge.text)
            if text:
                arrow += '|"{}"|'.format(text)
            lines.append("{} {} {}".format(edge.from_node.id, arrow, edge.to_node.id))

        return "\n".join(lines) + "\n"

    def to_dot(self):
        dot = graphviz.Digraph(
            graph_attr={"rankdir": self.rank_direction},
            node_attr={"shape": "box"},
        )
        for node in self.__nodes.values():
            attrs = {}
            if node.style is not None:
                attrs.update(node.style.dot_attrs())
            if node.link:
                attrs["href"] = node.link
                attrs["tooltip"] = node.link_text or node.key
            dot.node(node.key, label="\\n".join(node.lines or [node.key]), **attrs)

        for edge in self.__edges:
            attrs = {}
            if edge.shape == EDGE_SHAPE_LINE:
                attrs["dir"] = "none"
                attrs["constraint"] = "false"
            dot.edge(
                edge.from_node.key,
                edge.to_node.key,
                label="\\n".join(edge.text) or None,
                **attrs
            )
        return dot

    def render(self, fmt="mermaid"):
        if fmt == "dot":
            return self.to_dot().source
        return self.to_mermaid()

    def live_url(self, fmt="mermaid"):
        if fmt == "dot":
            return graphviz_online_url(self.to_dot().source)
        return mermaid_live_url(self.to_mermaid())


def create_graph_images(graph_string, image_file):
    """Given a formatted blob of graphviz chart data, generate and store the resulting images to disk."""

    src = graphviz.Source(graph_string)
    log("Writing " + image_file + ".png")
    src.render(image_file, format="png", cleanup=True)
    log("Writing " + image_file + ".pdf")
    # nodes are hyperlinks to jira, allowing navigation from the pdf
    src.render(image_file, format="pdf", cleanup=True)
