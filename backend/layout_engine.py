"""Automatic layout: generation assignment and hierarchical placement of family units."""

import logging
from collections import deque

from family_tree import (
    DEFAULT_NODE_HEIGHT,
    DEFAULT_NODE_WIDTH,
    PARENTAL_TYPES,
    PARTNER_TYPES,
    AlignmentMode,
    ConnectionType,
    FamilyTree,
    Node,
)

logger = logging.getLogger("familycanvas.layout_engine")

# Layout grid
NODE_WIDTH = 140
NODE_HEIGHT = 70
HORIZONTAL_SPACING = 80
VERTICAL_SPACING = 120
GENERATION_SPACING = 180
PARTNER_SPACING = 20
ORIGIN = 100.0

# Placement of single new nodes on the canvas
DEFAULT_NEW_NODE_POSITION = (400.0, 300.0)
MIN_NODE_SPACING = 20
MAX_OVERLAP_ITERATIONS = 20
GEOMETRY_SNAP_THRESHOLD = 10


# ============================================================================
# Generations
# ============================================================================

def assign_generations(tree: FamilyTree) -> dict[str, int]:
    """
    Assign a generation level to every node with a breadth-first walk.

    Roots (nodes that are nobody's child) are generation 0, children are one
    level below their parent and partners share their partner's level. A node
    keeps the level of the first visit; unreachable nodes fall back to 0.
    The returned mapping preserves visiting order.
    """
    generations: dict[str, int] = {}
    visited: set[str] = set()

    child_ids = tree.child_node_ids()
    roots = [n for n in tree.nodes if n.id not in child_ids]
    if not roots and tree.nodes:
        roots = [tree.nodes[0]]

    queue: deque[tuple[str, int]] = deque()
    for root in roots:
        queue.append((root.id, 0))
        generations[root.id] = 0

    while queue:
        node_id, gen = queue.popleft()
        if node_id in visited:
            continue
        visited.add(node_id)
        generations[node_id] = gen

        for child_id in tree.children_of(node_id):
            if child_id not in visited and tree.find_node(child_id) is not None:
                queue.append((child_id, gen + 1))

        for partner_id in tree.partners_of(node_id, include_former=True):
            if partner_id not in visited and tree.find_node(partner_id) is not None:
                generations[partner_id] = gen
                queue.append((partner_id, gen))

    for node in tree.nodes:
        generations.setdefault(node.id, 0)
        node.generation = generations[node.id]

    return generations


# ============================================================================
# Full layout
# ============================================================================

def _place(node: Node, x: float, y: float) -> None:
    if not node.is_locked:
        node.move_to(x, y)


def _partner_map(tree: FamilyTree) -> dict[str, str]:
    partners = {}
    for conn in tree.connections:
        if conn.connection_type in PARTNER_TYPES:
            partners[conn.from_node_id] = conn.to_node_id
            partners[conn.to_node_id] = conn.from_node_id
    return partners


def _pair_partners(nodes: list[Node], partners: dict[str, str]) -> list[list[Node]]:
    """Split one generation into units: partner pairs together, singles alone."""
    units = []
    processed: set[str] = set()
    by_id = {n.id: n for n in nodes}

    for node in nodes:
        if node.id in processed:
            continue
        unit = [node]
        processed.add(node.id)

        partner = by_id.get(partners.get(node.id, ""))
        if partner is not None and partner.id not in processed:
            unit.append(partner)
            processed.add(partner.id)

        units.append(unit)

    return units


def _children_center(tree: FamilyTree, parents: list[Node]) -> tuple[float, float] | None:
    """Mean current position of all children of a unit, or None if childless."""
    child_ids: set[str] = set()
    for parent in parents:
        child_ids.update(tree.children_of(parent.id))

    children = [n for n in tree.nodes if n.id in child_ids]
    if not children:
        return None

    avg_x = sum(c.x for c in children) / len(children)
    avg_y = sum(c.y for c in children) / len(children)
    return avg_x, avg_y


def _layout_generations(tree: FamilyTree, generations: dict[str, int]) -> None:
    top_down = tree.alignment_mode == AlignmentMode.TOP_DOWN

    by_generation: dict[int, list[Node]] = {}
    for node_id, gen in generations.items():
        node = tree.find_node(node_id)
        if node is not None:
            by_generation.setdefault(gen, []).append(node)

    partners = _partner_map(tree)

    for gen in sorted(by_generation):
        gen_x = ORIGIN if top_down else ORIGIN + gen * GENERATION_SPACING
        gen_y = ORIGIN + gen * GENERATION_SPACING if top_down else ORIGIN

        current_x = gen_x
        current_y = gen_y

        for unit in _pair_partners(by_generation[gen], partners):
            center = _children_center(tree, unit)
            if center is not None:
                if top_down:
                    unit_width = len(unit) * NODE_WIDTH + (len(unit) - 1) * HORIZONTAL_SPACING
                    current_x = center[0] - unit_width / 2 + NODE_WIDTH / 2
                else:
                    unit_height = len(unit) * NODE_HEIGHT + (len(unit) - 1) * PARTNER_SPACING
                    current_y = center[1] - unit_height / 2 + NODE_HEIGHT / 2

            for node in unit:
                if top_down:
                    _place(node, current_x, gen_y)
                    current_x += NODE_WIDTH + HORIZONTAL_SPACING
                else:
                    # partners stack along y, close together
                    _place(node, gen_x, current_y)
                    current_y += NODE_HEIGHT + PARTNER_SPACING

            # gap between family units
            if top_down:
                current_x += HORIZONTAL_SPACING
            else:
                current_y += VERTICAL_SPACING - PARTNER_SPACING


def _family_units(tree: FamilyTree) -> dict[tuple[str, ...], list[Node]]:
    """Children keyed by their parent unit (a parent, or a parent with its first partner)."""
    families: dict[tuple[str, ...], list[Node]] = {}

    for conn in tree.connections:
        if conn.connection_type not in PARENTAL_TYPES:
            continue
        parent = tree.find_node(conn.from_node_id)
        child = tree.find_node(conn.to_node_id)
        if parent is None or child is None:
            continue

        partner_conn = next(
            (c for c in tree.connections
             if c.connection_type in PARTNER_TYPES and c.involves(parent.id)),
            None,
        )
        if partner_conn is None:
            key: tuple[str, ...] = (parent.id,)
        else:
            key = tuple(sorted((partner_conn.from_node_id, partner_conn.to_node_id)))

        children = families.setdefault(key, [])
        if all(c.id != child.id for c in children):
            children.append(child)

    return families


def _center_children_under_parents(tree: FamilyTree) -> None:
    top_down = tree.alignment_mode == AlignmentMode.TOP_DOWN

    for parent_ids, children in _family_units(tree).items():
        parents = [n for n in tree.nodes if n.id in parent_ids]
        if not parents or not children:
            continue

        if top_down:
            children = sorted(children, key=lambda c: c.x)
            parent_center = sum(p.x + NODE_WIDTH / 2 for p in parents) / len(parents)
            span = len(children) * NODE_WIDTH + (len(children) - 1) * HORIZONTAL_SPACING
            start = parent_center - span / 2
            for i, child in enumerate(children):
                _place(child, start + i * (NODE_WIDTH + HORIZONTAL_SPACING), child.y)
        else:
            children = sorted(children, key=lambda c: c.y)
            parent_center = sum(p.y + NODE_HEIGHT / 2 for p in parents) / len(parents)
            span = len(children) * NODE_HEIGHT + (len(children) - 1) * VERTICAL_SPACING
            start = parent_center - span / 2
            for i, child in enumerate(children):
                _place(child, child.x, start + i * (NODE_HEIGHT + VERTICAL_SPACING))


def _shift_to_origin(tree: FamilyTree) -> None:
    """Shift the tree so its top-left node sits at the layout origin."""
    if not tree.nodes:
        return

    offset_x = ORIGIN - min(n.x for n in tree.nodes)
    offset_y = ORIGIN - min(n.y for n in tree.nodes)

    for node in tree.nodes:
        _place(node, node.x + offset_x, node.y + offset_y)


def apply_layout(tree: FamilyTree) -> dict[str, int]:
    """
    Lay out the whole tree according to its alignment mode.

    Locked nodes keep their positions. Returns the generation mapping.
    """
    if not tree.nodes:
        return {}

    generations = assign_generations(tree)
    _layout_generations(tree, generations)
    _center_children_under_parents(tree)
    _shift_to_origin(tree)

    logger.info(
        f"Applied {tree.alignment_mode.value} layout to {len(tree.nodes)} nodes "
        f"across {len(set(generations.values()))} generations"
    )
    return generations


# ============================================================================
# Incremental placement
# ============================================================================

def position_new_node(
    tree: FamilyTree,
    new_node: Node,
    related_node: Node | None,
    connection_type: ConnectionType,
) -> None:
    """Quick placement of a single new node next to the node it relates to."""
    if related_node is None:
        new_node.move_to(*DEFAULT_NEW_NODE_POSITION)
        return

    top_down = tree.alignment_mode == AlignmentMode.TOP_DOWN
    offset_x = offset_y = 0.0

    if connection_type in PARENTAL_TYPES:
        if top_down:
            offset_y = GENERATION_SPACING
        else:
            offset_x = GENERATION_SPACING
    elif connection_type in PARTNER_TYPES:
        if top_down:
            offset_x = NODE_WIDTH + HORIZONTAL_SPACING
        else:
            offset_y = NODE_HEIGHT + VERTICAL_SPACING
    else:
        offset_x = NODE_WIDTH + HORIZONTAL_SPACING

    new_node.move_to(related_node.x + offset_x, related_node.y + offset_y)


def _rects_intersect(a: tuple[float, float, float, float], b: tuple[float, float, float, float]) -> bool:
    ax, ay, aw, ah = a
    bx, by, bw, bh = b
    return ax <= bx + bw and bx <= ax + aw and ay <= by + bh and by <= ay + ah


def find_non_overlapping_position(tree: FamilyTree, node: Node, x: float, y: float) -> tuple[float, float]:
    """Starting at (x, y), shift right until the node no longer overlaps a neighbour."""
    for _ in range(MAX_OVERLAP_ITERATIONS):
        candidate = (x, y, DEFAULT_NODE_WIDTH, DEFAULT_NODE_HEIGHT)
        overlap = None
        for other in tree.nodes:
            if other.id == node.id:
                continue
            other_rect = (
                other.x - MIN_NODE_SPACING,
                other.y - MIN_NODE_SPACING,
                DEFAULT_NODE_WIDTH + MIN_NODE_SPACING * 2,
                DEFAULT_NODE_HEIGHT + MIN_NODE_SPACING * 2,
            )
            if _rects_intersect(candidate, other_rect):
                overlap = other
                break

        if overlap is None:
            break
        x = overlap.x + DEFAULT_NODE_WIDTH + MIN_NODE_SPACING + 20

    return x, y


def apply_snapping(
    tree: FamilyTree,
    x: float,
    y: float,
    node: Node | None = None,
    snap_to_grid: bool = False,
    grid_size: float = 20,
    snap_to_geometry: bool = False,
) -> tuple[float, float]:
    """Snap a dragged position to the grid and/or to other nodes' x and y lines."""
    if snap_to_grid and grid_size > 0:
        x = round(x / grid_size) * grid_size
        y = round(y / grid_size) * grid_size

    if snap_to_geometry:
        for other in tree.nodes:
            if node is not None and other.id == node.id:
                continue
            if abs(x - other.x) < GEOMETRY_SNAP_THRESHOLD:
                x = other.x
            if abs(y - other.y) < GEOMETRY_SNAP_THRESHOLD:
                y = other.y

    return x, y
