"""Family tree object graph: people, relationship connectors, groups and text boxes."""

import logging
import uuid
from datetime import date
from enum import Enum
from typing import Iterable

from pydantic import BaseModel, Field

logger = logging.getLogger("familycanvas.family_tree")

DEFAULT_NODE_WIDTH = 120
DEFAULT_NODE_HEIGHT = 60


def new_id() -> str:
    """Generate a fresh element id."""
    return str(uuid.uuid4())


# ============================================================================
# Enumerations
# ============================================================================

class Gender(str, Enum):
    UNSPECIFIED = "Unspecified"
    FEMALE = "Female"
    MALE = "Male"
    OTHER = "Other"
    CUSTOM = "Custom"


class RoyalTitle(str, Enum):
    NONE = "None"
    KING = "King"
    QUEEN = "Queen"
    FORMER_KING = "FormerKing"
    FORMER_QUEEN = "FormerQueen"
    PRINCE = "Prince"
    PRINCESS = "Princess"
    HEIR = "Heir"


class ConnectionType(str, Enum):
    BIOLOGICAL = "Biological"
    ADOPTED = "Adopted"
    STEP = "Step"
    PARTNER = "Partner"
    FORMER_PARTNER = "FormerPartner"
    HIDDEN = "Hidden"


class AlignmentMode(str, Enum):
    TOP_DOWN = "TopDown"
    LEFT_RIGHT = "LeftRight"


class LineStyle(str, Enum):
    CURVES = "Curves"
    SQUARE = "Square"


class LayoutMode(str, Enum):
    FIXED = "Fixed"  # positions come from the layout engine
    FREE = "Free"    # positions come from the user


PARENTAL_TYPES = frozenset({
    ConnectionType.BIOLOGICAL,
    ConnectionType.ADOPTED,
    ConnectionType.STEP,
})

PARTNER_TYPES = frozenset({
    ConnectionType.PARTNER,
    ConnectionType.FORMER_PARTNER,
})


# ============================================================================
# Errors
# ============================================================================

class FamilyTreeError(Exception):
    """Base class for tree lookup and editing errors."""


class NodeNotFoundError(FamilyTreeError):
    def __init__(self, node_id: str):
        super().__init__(f"Person not found: '{node_id}'")
        self.node_id = node_id


class ConnectionNotFoundError(FamilyTreeError):
    def __init__(self, connection_id: str):
        super().__init__(f"Connection not found: '{connection_id}'")
        self.connection_id = connection_id


class GroupNotFoundError(FamilyTreeError):
    def __init__(self, group_id: str):
        super().__init__(f"Group not found: '{group_id}'")
        self.group_id = group_id


class TextBoxNotFoundError(FamilyTreeError):
    def __init__(self, text_box_id: str):
        super().__init__(f"Text box not found: '{text_box_id}'")
        self.text_box_id = text_box_id


# ============================================================================
# Elements
# ============================================================================

class Node(BaseModel):
    """A person on the canvas."""
    id: str = Field(default_factory=new_id)
    name: str = "New Person"
    gender: Gender = Gender.UNSPECIFIED
    is_alive: bool = True
    is_royal: bool = False
    royal_title: RoyalTitle = RoyalTitle.NONE
    group_id: str | None = None
    x: float = 0.0
    y: float = 0.0
    is_locked: bool = False
    birth_date: date | None = None
    death_date: date | None = None

    # Manually assigned line indicators
    show_continuation_up: bool = False
    show_continuation_down: bool = False
    show_no_descendants: bool = False
    is_adopted: bool = False

    generation: int = 0
    width: float | None = None   # None = auto size
    height: float | None = None

    @property
    def position(self) -> tuple[float, float]:
        return (self.x, self.y)

    def move_to(self, x: float, y: float) -> None:
        self.x = x
        self.y = y

    @property
    def display_width(self) -> float:
        return self.width if self.width else DEFAULT_NODE_WIDTH

    @property
    def display_height(self) -> float:
        return self.height if self.height else DEFAULT_NODE_HEIGHT


class Connection(BaseModel):
    """A typed edge between two people. For parental types `from` is the parent."""
    id: str = Field(default_factory=new_id)
    from_node_id: str
    to_node_id: str
    connection_type: ConnectionType = ConnectionType.BIOLOGICAL

    def involves(self, node_id: str) -> bool:
        return self.from_node_id == node_id or self.to_node_id == node_id

    def joins(self, node_a: str, node_b: str) -> bool:
        """True if this connection links the two nodes, in either direction."""
        return (
            (self.from_node_id == node_a and self.to_node_id == node_b)
            or (self.from_node_id == node_b and self.to_node_id == node_a)
        )

    def other_end(self, node_id: str) -> str:
        return self.to_node_id if self.from_node_id == node_id else self.from_node_id


class Group(BaseModel):
    """A named set of nodes used for bulk styling."""
    id: str = Field(default_factory=new_id)
    name: str = "New Group"
    color: str = "#808080"
    is_visible: bool = True


class CanvasText(BaseModel):
    """A free text box placed on the canvas."""
    id: str = Field(default_factory=new_id)
    text: str = "Text"
    x: float = 100.0
    y: float = 100.0
    width: float = 150.0
    height: float = 60.0
    font_family: str = "Segoe UI"
    font_size: float = 14.0
    text_color: str = "#FFFFFF"


# ============================================================================
# Tree
# ============================================================================

class FamilyTree(BaseModel):
    """The whole document: nodes, connections, groups, text boxes and tree options."""
    name: str = "Untitled Tree"
    alignment_mode: AlignmentMode = AlignmentMode.TOP_DOWN
    line_style: LineStyle = LineStyle.CURVES
    layout_mode: LayoutMode = LayoutMode.FIXED
    allow_incest: bool = False
    allow_threesome: bool = False
    show_gender_icons: bool = False
    font_family: str = "Segoe UI"
    font_size: float = 14.0
    font_bold: bool = False
    font_italic: bool = False

    nodes: list[Node] = Field(default_factory=list)
    connections: list[Connection] = Field(default_factory=list)
    groups: list[Group] = Field(default_factory=list)
    text_boxes: list[CanvasText] = Field(default_factory=list)

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def add_node(self, name: str = "New Person") -> Node:
        node = Node(name=name)
        self.nodes.append(node)
        logger.debug(f"Added node {node.id} ({name})")
        return node

    def remove_node(self, node: Node) -> list[Connection]:
        """Remove a node and every connection touching it.

        Returns the removed connections so callers can restore them.
        """
        removed = [c for c in self.connections if c.involves(node.id)]
        self.connections = [c for c in self.connections if not c.involves(node.id)]
        if node in self.nodes:
            self.nodes.remove(node)
        logger.debug(f"Removed node {node.id} with {len(removed)} connections")
        return removed

    def find_node(self, node_id: str) -> Node | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_node(self, node_id: str) -> Node:
        node = self.find_node(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def find_connection_between(self, node_a: str, node_b: str) -> Connection | None:
        for conn in self.connections:
            if conn.joins(node_a, node_b):
                return conn
        return None

    def add_connection(
        self,
        from_node_id: str,
        to_node_id: str,
        connection_type: ConnectionType = ConnectionType.BIOLOGICAL,
    ) -> Connection:
        """Connect two nodes. An existing connection between the pair is returned as-is."""
        existing = self.find_connection_between(from_node_id, to_node_id)
        if existing is not None:
            return existing

        connection = Connection(
            from_node_id=from_node_id,
            to_node_id=to_node_id,
            connection_type=connection_type,
        )
        self.connections.append(connection)
        return connection

    def remove_connection(self, connection: Connection) -> None:
        if connection in self.connections:
            self.connections.remove(connection)

    def get_connection(self, connection_id: str) -> Connection:
        for conn in self.connections:
            if conn.id == connection_id:
                return conn
        raise ConnectionNotFoundError(connection_id)

    def connections_for_node(self, node_id: str) -> list[Connection]:
        return [c for c in self.connections if c.involves(node_id)]

    # ------------------------------------------------------------------
    # Graph queries
    # ------------------------------------------------------------------

    def parents_of(
        self, node_id: str, types: Iterable[ConnectionType] = PARENTAL_TYPES
    ) -> list[str]:
        types = set(types)
        return [
            c.from_node_id for c in self.connections
            if c.to_node_id == node_id and c.connection_type in types
        ]

    def children_of(
        self, node_id: str, types: Iterable[ConnectionType] = PARENTAL_TYPES
    ) -> list[str]:
        types = set(types)
        return [
            c.to_node_id for c in self.connections
            if c.from_node_id == node_id and c.connection_type in types
        ]

    def partners_of(self, node_id: str, include_former: bool = False) -> list[str]:
        types = PARTNER_TYPES if include_former else {ConnectionType.PARTNER}
        return [
            c.other_end(node_id) for c in self.connections
            if c.connection_type in types and c.involves(node_id)
        ]

    def child_node_ids(self) -> set[str]:
        """Ids of every node that is the child end of a parental connection."""
        return {c.to_node_id for c in self.connections if c.connection_type in PARENTAL_TYPES}

    # ------------------------------------------------------------------
    # Groups and text boxes
    # ------------------------------------------------------------------

    def get_group(self, group_id: str) -> Group:
        for group in self.groups:
            if group.id == group_id:
                return group
        raise GroupNotFoundError(group_id)

    def members_of(self, group_id: str) -> list[Node]:
        return [n for n in self.nodes if n.group_id == group_id]

    def is_node_visible(self, node: Node) -> bool:
        """Nodes in a hidden group are not drawn."""
        if node.group_id is None:
            return True
        for group in self.groups:
            if group.id == node.group_id:
                return group.is_visible
        return True

    def get_text_box(self, text_box_id: str) -> CanvasText:
        for box in self.text_boxes:
            if box.id == text_box_id:
                return box
        raise TextBoxNotFoundError(text_box_id)
