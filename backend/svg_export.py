"""Render a family tree to a standalone SVG document."""

import logging
import xml.etree.ElementTree as ET

from family_tree import (
    PARTNER_TYPES,
    AlignmentMode,
    Connection,
    ConnectionType,
    FamilyTree,
    Gender,
    LineStyle,
    Node,
    RoyalTitle,
)
from settings_manager import DASH_PATTERNS, ConnectionStyleSettings

logger = logging.getLogger("familycanvas.svg_export")

SVG_NS = "http://www.w3.org/2000/svg"
PADDING = 50
CURVE_STRENGTH = 50
BACKGROUND_COLOR = "#1E1E1E"
NODE_FILL = "#2D2D30"
INDICATOR_COLOR = "#888888"
TERMINATION_COLOR = "#CC4444"

GENDER_BORDER_COLORS = {
    Gender.MALE: "#4682B4",    # steel blue
    Gender.FEMALE: "#DB7093",  # pale violet red
}
DEFAULT_BORDER_COLOR = "#808080"

CROWN_COLORS = {
    RoyalTitle.KING: "#FFD700",
    RoyalTitle.QUEEN: "#FFD700",
    RoyalTitle.FORMER_KING: "#B8860B",
    RoyalTitle.FORMER_QUEEN: "#B8860B",
    RoyalTitle.PRINCE: "#C0C0C0",
    RoyalTitle.PRINCESS: "#C0C0C0",
    RoyalTitle.HEIR: "#FAFAD2",
}


class ExportError(Exception):
    """Raised when there is nothing to export."""


def _fmt(value: float) -> str:
    return f"{value:g}"


# ============================================================================
# Geometry
# ============================================================================

def content_bounds(tree: FamilyTree) -> tuple[float, float, float, float] | None:
    """Bounding box (x, y, width, height) of visible nodes and text boxes."""
    rects = [
        (n.x, n.y, n.display_width, n.display_height)
        for n in tree.nodes if tree.is_node_visible(n)
    ]
    rects += [(t.x, t.y, t.width, t.height) for t in tree.text_boxes]
    if not rects:
        return None

    min_x = min(r[0] for r in rects)
    min_y = min(r[1] for r in rects)
    max_x = max(r[0] + r[2] for r in rects)
    max_y = max(r[1] + r[3] for r in rects)
    return min_x, min_y, max_x - min_x, max_y - min_y


def connection_directions(from_node: Node, to_node: Node,
                          connection_type: ConnectionType) -> tuple[str, str]:
    """Pick the anchor sides for a connector based on relative node positions."""
    if connection_type in PARTNER_TYPES:
        return ("right", "left") if from_node.x < to_node.x else ("left", "right")

    dx = to_node.x - from_node.x
    dy = to_node.y - from_node.y

    if dy > abs(dx):
        return "bottom", "top"
    if dy < -abs(dx):
        return "top", "bottom"
    if dx > 0:
        return "right", "left"
    return "left", "right"


def anchor_point(node: Node, direction: str) -> tuple[float, float]:
    x, y, w, h = node.x, node.y, node.display_width, node.display_height
    return {
        "top": (x + w / 2, y),
        "bottom": (x + w / 2, y + h),
        "left": (x, y + h / 2),
        "right": (x + w, y + h / 2),
    }.get(direction, (x + w / 2, y + h / 2))


def _offset(point: tuple[float, float], direction: str, distance: float) -> tuple[float, float]:
    x, y = point
    return {
        "top": (x, y - distance),
        "bottom": (x, y + distance),
        "left": (x - distance, y),
        "right": (x + distance, y),
    }.get(direction, point)


def connection_path(start: tuple[float, float], end: tuple[float, float],
                    from_dir: str, to_dir: str, line_style: LineStyle) -> str:
    """SVG path data for one connector."""
    sx, sy = start
    ex, ey = end

    if line_style == LineStyle.SQUARE:
        if from_dir in ("top", "bottom"):
            mid_y = (sy + ey) / 2
            return f"M {_fmt(sx)} {_fmt(sy)} V {_fmt(mid_y)} H {_fmt(ex)} V {_fmt(ey)}"
        mid_x = (sx + ex) / 2
        return f"M {_fmt(sx)} {_fmt(sy)} H {_fmt(mid_x)} V {_fmt(ey)} H {_fmt(ex)}"

    c1 = _offset(start, from_dir, CURVE_STRENGTH)
    c2 = _offset(end, to_dir, CURVE_STRENGTH)
    return (
        f"M {_fmt(sx)} {_fmt(sy)} "
        f"C {_fmt(c1[0])} {_fmt(c1[1])} {_fmt(c2[0])} {_fmt(c2[1])} {_fmt(ex)} {_fmt(ey)}"
    )


# ============================================================================
# Drawing
# ============================================================================

def _draw_connection(parent: ET.Element, tree: FamilyTree, connection: Connection,
                     styles: ConnectionStyleSettings) -> None:
    from_node = tree.find_node(connection.from_node_id)
    to_node = tree.find_node(connection.to_node_id)
    if from_node is None or to_node is None:
        return
    if not (tree.is_node_visible(from_node) and tree.is_node_visible(to_node)):
        return

    from_dir, to_dir = connection_directions(from_node, to_node, connection.connection_type)
    start = anchor_point(from_node, from_dir)
    end = anchor_point(to_node, to_dir)

    style = styles.style_for(connection.connection_type)
    attrs = {
        "d": connection_path(start, end, from_dir, to_dir, tree.line_style),
        "stroke": style.color,
        "stroke-width": _fmt(style.width),
        "fill": "none",
        "data-type": connection.connection_type.value,
    }
    dashes = DASH_PATTERNS.get(style.dash_style)
    if dashes:
        attrs["stroke-dasharray"] = ",".join(_fmt(d * style.width) for d in dashes)

    ET.SubElement(parent, "path", attrs)


def _draw_indicators(parent: ET.Element, node: Node, top_down: bool) -> None:
    up_dir = "top" if top_down else "left"
    down_dir = "bottom" if top_down else "right"

    for enabled, direction in ((node.show_continuation_up, up_dir),
                               (node.show_continuation_down, down_dir)):
        if enabled:
            start = anchor_point(node, direction)
            end = _offset(start, direction, 40)
            ET.SubElement(parent, "line", {
                "x1": _fmt(start[0]), "y1": _fmt(start[1]),
                "x2": _fmt(end[0]), "y2": _fmt(end[1]),
                "stroke": INDICATOR_COLOR, "stroke-width": "2",
                "stroke-dasharray": "8,4", "class": "continuation",
            })

    if node.show_no_descendants:
        start = anchor_point(node, down_dir)
        ex, ey = _offset(start, down_dir, 20)
        ET.SubElement(parent, "line", {
            "x1": _fmt(start[0]), "y1": _fmt(start[1]), "x2": _fmt(ex), "y2": _fmt(ey),
            "stroke": INDICATOR_COLOR, "stroke-width": "2",
        })
        size = 6
        for x1, y1, x2, y2 in ((ex - size, ey - size, ex + size, ey + size),
                               (ex - size, ey + size, ex + size, ey - size)):
            ET.SubElement(parent, "line", {
                "x1": _fmt(x1), "y1": _fmt(y1), "x2": _fmt(x2), "y2": _fmt(y2),
                "stroke": TERMINATION_COLOR, "stroke-width": "2", "class": "no-descendants",
            })


def _draw_crown(parent: ET.Element, node: Node) -> None:
    color = CROWN_COLORS.get(node.royal_title)
    if color is None:
        return
    x = node.x + node.display_width / 2 - 10
    y = node.y - 14
    points = [(0, 12), (0, 2), (5, 7), (10, 0), (15, 7), (20, 2), (20, 12)]
    ET.SubElement(parent, "polygon", {
        "points": " ".join(f"{_fmt(x + px)},{_fmt(y + py)}" for px, py in points),
        "fill": color,
        "class": "crown",
        "data-title": node.royal_title.value,
    })
    if node.royal_title in (RoyalTitle.FORMER_KING, RoyalTitle.FORMER_QUEEN):
        ET.SubElement(parent, "line", {
            "x1": _fmt(x), "y1": _fmt(y + 12), "x2": _fmt(x + 20), "y2": _fmt(y),
            "stroke": "#CC4444", "stroke-width": "2",
        })


def _draw_node(parent: ET.Element, tree: FamilyTree, node: Node) -> None:
    w, h = node.display_width, node.display_height
    group = ET.SubElement(parent, "g", {"class": "node", "data-id": node.id})
    rect = ET.SubElement(group, "rect", {
        "x": _fmt(node.x), "y": _fmt(node.y),
        "width": _fmt(w), "height": _fmt(h),
        "rx": "8", "ry": "8",
        "fill": NODE_FILL,
        "stroke": GENDER_BORDER_COLORS.get(node.gender, DEFAULT_BORDER_COLOR),
        "stroke-width": "2",
    })
    if not node.is_alive:
        rect.set("stroke-dasharray", "6,3")
    text = ET.SubElement(group, "text", {
        "x": _fmt(node.x + w / 2),
        "y": _fmt(node.y + h / 2 + tree.font_size / 3),
        "text-anchor": "middle",
        "fill": "white",
        "font-family": tree.font_family,
        "font-size": _fmt(tree.font_size),
        "font-weight": "bold" if tree.font_bold else "600",
        "font-style": "italic" if tree.font_italic else "normal",
    })
    text.text = node.name or "Unknown"
    _draw_crown(group, node)


def render_svg(tree: FamilyTree, styles: ConnectionStyleSettings | None = None) -> str:
    """Render the visible part of the tree as an SVG string."""
    bounds = content_bounds(tree)
    if bounds is None or bounds[2] <= 0 or bounds[3] <= 0:
        raise ExportError("Nothing to export.")

    styles = styles or ConnectionStyleSettings()
    x, y, width, height = bounds
    x, y = x - PADDING, y - PADDING
    width, height = width + PADDING * 2, height + PADDING * 2

    svg = ET.Element("svg", {
        "xmlns": SVG_NS,
        "width": _fmt(width),
        "height": _fmt(height),
        "viewBox": f"{_fmt(x)} {_fmt(y)} {_fmt(width)} {_fmt(height)}",
    })
    ET.SubElement(svg, "rect", {
        "x": _fmt(x), "y": _fmt(y), "width": "100%", "height": "100%", "fill": BACKGROUND_COLOR,
    })

    connections = ET.SubElement(svg, "g", {"class": "connections"})
    for connection in tree.connections:
        if connection.connection_type == ConnectionType.HIDDEN:
            continue
        _draw_connection(connections, tree, connection, styles)

    top_down = tree.alignment_mode == AlignmentMode.TOP_DOWN
    indicators = ET.SubElement(svg, "g", {"class": "indicators"})
    nodes = ET.SubElement(svg, "g", {"class": "nodes"})
    for node in tree.nodes:
        if not tree.is_node_visible(node):
            continue
        _draw_indicators(indicators, node, top_down)
        _draw_node(nodes, tree, node)

    texts = ET.SubElement(svg, "g", {"class": "text-boxes"})
    for box in tree.text_boxes:
        element = ET.SubElement(texts, "text", {
            "x": _fmt(box.x), "y": _fmt(box.y + box.font_size),
            "fill": box.text_color,
            "font-family": box.font_family,
            "font-size": _fmt(box.font_size),
        })
        element.text = box.text

    logger.info(f"Rendered SVG {width:.0f}x{height:.0f} with {len(tree.nodes)} nodes")
    return ET.tostring(svg, encoding="unicode")
