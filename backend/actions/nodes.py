"""Person actions: add, add relatives, duplicate, edit, move, delete."""

import logging
from datetime import date

from pydantic import BaseModel, Field

from command_manager import (
    AddConnectionCommand,
    AddNodeCommand,
    DeleteConnectionCommand,
    DeleteNodeCommand,
    MoveNodesCommand,
    RenameNodeCommand,
    UpdateNodeCommand,
)
from family_tree import (
    DEFAULT_NODE_HEIGHT,
    DEFAULT_NODE_WIDTH,
    PARENTAL_TYPES,
    PARTNER_TYPES,
    Connection,
    ConnectionType,
    Gender,
    LayoutMode,
    Node,
    RoyalTitle,
    new_id,
)
from layout_engine import apply_snapping, find_non_overlapping_position
from relationship_validator import ValidationResult, validate_new_connection
from session import EditorError, EditorSession

from .editing import RelationshipRejected, undoable_edit

logger = logging.getLogger("familycanvas.actions.nodes")

RELATIVE_GAP = 60        # vertical gap between a person and a new parent or child
PARTNER_GAP = 40         # horizontal gap between a person and a new partner
DUPLICATE_OFFSET = 30


# ============================================================================
# Parameter Models
# ============================================================================

class AddNodeParams(BaseModel):
    """Parameters for adding a standalone person."""
    name: str = Field(default="New Person", description="Display name of the new person.")
    gender: Gender = Gender.UNSPECIFIED
    x: float | None = Field(default=None, description="Canvas x. Defaults to the view center.")
    y: float | None = Field(default=None, description="Canvas y. Defaults to the view center.")
    viewport_width: float = Field(default=800, gt=0, description="Visible canvas width in pixels.")
    viewport_height: float = Field(default=600, gt=0, description="Visible canvas height in pixels.")


class AddRelativeParams(BaseModel):
    """Parameters for adding a parent, child or partner next to an existing person."""
    name: str | None = Field(default=None, description="Name of the new relative.")
    gender: Gender = Gender.UNSPECIFIED
    connection_type: ConnectionType | None = Field(
        default=None,
        description="Relationship type. Defaults to Biological for parents and children, "
        "Partner for partners.",
    )


class UpdateNodeParams(BaseModel):
    """Editable person fields. Only the fields that are sent are changed."""
    name: str | None = None
    gender: Gender | None = None
    is_alive: bool | None = None
    is_royal: bool | None = None
    royal_title: RoyalTitle | None = None
    group_id: str | None = None
    is_locked: bool | None = None
    birth_date: date | None = None
    death_date: date | None = None
    show_continuation_up: bool | None = None
    show_continuation_down: bool | None = None
    show_no_descendants: bool | None = None
    is_adopted: bool | None = None
    width: float | None = Field(default=None, gt=0)
    height: float | None = Field(default=None, gt=0)


class MoveNodeParams(BaseModel):
    x: float
    y: float


# ============================================================================
# Adding people
# ============================================================================

def add_node_at_center(session: EditorSession, params: AddNodeParams) -> Node:
    """Add a person at the given point, or at the center of the visible canvas."""
    tree = session.tree
    if params.x is not None and params.y is not None:
        x, y = params.x, params.y
    else:
        x, y = session.viewport.screen_to_canvas(params.viewport_width / 2, params.viewport_height / 2)
        x -= DEFAULT_NODE_WIDTH / 2
        y -= DEFAULT_NODE_HEIGHT / 2

    node = Node(name=params.name, gender=params.gender)
    node.move_to(*find_non_overlapping_position(tree, node, x, y))

    with undoable_edit(session, f"Add node: {node.name}", relayout=True) as commands:
        commands.execute(AddNodeCommand(tree, node))

    logger.info(f"Added node {node.id} ({node.name})")
    return node


def _add_connected_node(
    session: EditorSession,
    related: Node,
    params: AddRelativeParams,
    default_name: str,
    position: tuple[float, float],
    connection_type: ConnectionType,
    new_is_parent: bool,
) -> tuple[Node, ValidationResult]:
    tree = session.tree
    node = Node(name=params.name or default_name, gender=params.gender)
    node.move_to(*find_non_overlapping_position(tree, node, *position))

    from_id, to_id = (node.id, related.id) if new_is_parent else (related.id, node.id)

    with undoable_edit(session, f"Add {default_name.lower()}: {node.name}", relayout=True) as commands:
        commands.execute(AddNodeCommand(tree, node))

        result = validate_new_connection(tree, from_id, to_id, connection_type)
        if not result.is_valid:
            raise RelationshipRejected(result)

        connection = Connection(from_node_id=from_id, to_node_id=to_id, connection_type=connection_type)
        commands.execute(AddConnectionCommand(tree, connection))

    logger.info(f"Added {default_name.lower()} {node.id} for {related.id} ({connection_type.value})")
    return node, result


def add_parent(session: EditorSession, node_id: str,
               params: AddRelativeParams | None = None) -> tuple[Node, ValidationResult]:
    """Add a new parent above an existing person."""
    params = params or AddRelativeParams()
    connection_type = params.connection_type or ConnectionType.BIOLOGICAL
    if connection_type not in PARENTAL_TYPES:
        raise EditorError(f"{connection_type.value} is not a parent relationship")

    child = session.tree.get_node(node_id)
    position = (child.x, child.y - DEFAULT_NODE_HEIGHT - RELATIVE_GAP)
    return _add_connected_node(session, child, params, "Parent", position, connection_type, new_is_parent=True)


def add_child(session: EditorSession, node_id: str,
              params: AddRelativeParams | None = None) -> tuple[Node, ValidationResult]:
    """Add a new child below an existing person."""
    params = params or AddRelativeParams()
    connection_type = params.connection_type or ConnectionType.BIOLOGICAL
    if connection_type not in PARENTAL_TYPES:
        raise EditorError(f"{connection_type.value} is not a parent relationship")

    parent = session.tree.get_node(node_id)
    position = (parent.x, parent.y + DEFAULT_NODE_HEIGHT + RELATIVE_GAP)
    return _add_connected_node(session, parent, params, "Child", position, connection_type, new_is_parent=False)


def add_partner(session: EditorSession, node_id: str,
                params: AddRelativeParams | None = None) -> tuple[Node, ValidationResult]:
    """Add a new partner beside an existing person."""
    params = params or AddRelativeParams()
    connection_type = params.connection_type or ConnectionType.PARTNER
    if connection_type not in PARTNER_TYPES:
        raise EditorError(f"{connection_type.value} is not a partner relationship")

    person = session.tree.get_node(node_id)
    position = (person.x + DEFAULT_NODE_WIDTH + PARTNER_GAP, person.y)
    return _add_connected_node(session, person, params, "Partner", position, connection_type, new_is_parent=False)


def duplicate_node(session: EditorSession, node_id: str) -> Node:
    """Copy a person's attributes into a new, unconnected node next to it."""
    tree = session.tree
    source = tree.get_node(node_id)

    copy = source.model_copy(update={
        "id": new_id(),
        "name": f"{source.name} (Copy)",
        "x": source.x + DUPLICATE_OFFSET,
        "y": source.y + DUPLICATE_OFFSET,
        "is_locked": False,
    })

    with undoable_edit(session, f"Duplicate: {source.name}", relayout=True) as commands:
        commands.execute(AddNodeCommand(tree, copy))

    return copy


# ============================================================================
# Editing people
# ============================================================================

def delete_node(session: EditorSession, node_id: str) -> Node:
    tree = session.tree
    node = tree.get_node(node_id)
    with undoable_edit(session, f"Delete node: {node.name}", relayout=True) as commands:
        commands.execute(DeleteNodeCommand(tree, node))
    logger.info(f"Deleted node {node.id} ({node.name})")
    return node


def update_node(session: EditorSession, node_id: str, params: UpdateNodeParams) -> Node:
    """Apply the fields that were sent as one undo step. A pure rename is recorded as a rename."""
    tree = session.tree
    node = tree.get_node(node_id)

    # Non-nullable fields ignore explicit nulls
    nullable = {"group_id", "birth_date", "death_date", "width", "height"}
    changes = {
        field: value for field, value in params.model_dump(exclude_unset=True).items()
        if value is not None or field in nullable
    }
    if changes.get("group_id") is not None:
        tree.get_group(changes["group_id"])
    if "royal_title" in changes and "is_royal" not in changes:
        changes["is_royal"] = changes["royal_title"] != RoyalTitle.NONE
    changes = {field: value for field, value in changes.items() if getattr(node, field) != value}
    if not changes:
        return node

    if set(changes) == {"name"}:
        command = RenameNodeCommand(node, node.name, changes["name"])
    else:
        command = UpdateNodeCommand(node, changes)

    session.commands.execute(command)
    logger.debug(f"Updated node {node.id}: {sorted(changes)}")
    return node


def move_node(session: EditorSession, node_id: str, params: MoveNodeParams) -> Node:
    """Drag a person to a new position. Only allowed in Free layout mode."""
    tree = session.tree
    node = tree.get_node(node_id)

    if tree.layout_mode == LayoutMode.FIXED:
        raise EditorError("Nodes cannot be moved in Fixed layout mode. Switch to Free mode to drag nodes.")
    if node.is_locked:
        raise EditorError(f"'{node.name}' is locked")

    settings = session.settings
    x, y = apply_snapping(
        tree, params.x, params.y, node,
        snap_to_grid=settings.snap_to_grid,
        grid_size=settings.grid_snap_size,
        snap_to_geometry=settings.snap_to_geometry,
    )
    if (x, y) == node.position:
        return node

    session.commands.execute(MoveNodesCommand(
        tree, {node.id: node.position}, {node.id: (x, y)}, f"Move: {node.name}",
    ))
    return node


def disconnect_all(session: EditorSession, node_id: str) -> int:
    """Remove every connection touching a person. Returns how many were removed."""
    tree = session.tree
    node = tree.get_node(node_id)
    connections = tree.connections_for_node(node.id)
    if not connections:
        return 0

    with undoable_edit(session, f"Disconnect: {node.name}", relayout=True) as commands:
        for connection in connections:
            commands.execute(DeleteConnectionCommand(tree, connection))

    return len(connections)
