"""Reading and writing `.tree` documents (versioned JSON)."""

import logging
import re
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_pascal

from family_tree import (
    AlignmentMode,
    CanvasText,
    Connection,
    ConnectionType,
    FamilyTree,
    Gender,
    Group,
    LayoutMode,
    LineStyle,
    Node,
    RoyalTitle,
    new_id,
)

logger = logging.getLogger("familycanvas.tree_file")

FORMAT_VERSION = 1
DEFAULT_GROUP_COLOR = "#808080"
_COLOR_RE = re.compile(r"^#(?:[0-9A-Fa-f]{6}|[0-9A-Fa-f]{8})$")

E = TypeVar("E", bound=Enum)


class TreeFileError(Exception):
    """Raised when a tree document cannot be read or written."""


# ============================================================================
# On-disk structure
# ============================================================================

class _FileModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True)


class TreeSettings(_FileModel):
    alignment: str | None = None
    allow_incest: bool = False
    allow_threesome: bool = False
    line_style: str | None = None
    layout_mode: str | None = None


class TreeNode(_FileModel):
    id: str | None = None
    name: str | None = None
    gender: str | None = None
    is_alive: bool = True
    is_royal: bool = False
    royal_title: str | None = None
    group_id: str | None = None
    x: float = 0.0
    y: float = 0.0
    birth_date: str | None = None
    death_date: str | None = None


class TreeConnection(_FileModel):
    id: str | None = None
    from_node_id: str | None = None
    to_node_id: str | None = None
    connection_type: str | None = None


class TreeGroup(_FileModel):
    id: str | None = None
    name: str | None = None
    color: str | None = None
    is_visible: bool = True


class TreeTextBox(_FileModel):
    id: str | None = None
    text: str | None = None
    x: float = 100.0
    y: float = 100.0
    width: float = 150.0
    height: float = 60.0
    font_family: str | None = None
    font_size: float = 14.0
    text_color: str | None = None


class TreeFile(_FileModel):
    version: int = FORMAT_VERSION
    name: str | None = None
    settings: TreeSettings | None = None
    nodes: list[TreeNode] | None = None
    connections: list[TreeConnection] | None = None
    groups: list[TreeGroup] | None = None
    text_boxes: list[TreeTextBox] | None = None


# ============================================================================
# Lenient value parsing
# ============================================================================

def parse_enum(enum_cls: type[E], value: str | None) -> E:
    """Match an enum by member value or name, case-insensitively. Unknown -> first member."""
    default = next(iter(enum_cls))
    if not value:
        return default

    wanted = value.strip().lower().replace("_", "")
    for member in enum_cls:
        if member.value.lower() == wanted or member.name.lower().replace("_", "") == wanted:
            return member

    logger.debug(f"Unknown {enum_cls.__name__} value '{value}', using {default.value}")
    return default


def parse_color(value: str | None, default: str = DEFAULT_GROUP_COLOR) -> str:
    if value and _COLOR_RE.match(value.strip()):
        return value.strip().upper()
    return default


def _parse_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        logger.warning(f"Ignoring unparseable date '{value}'")
        return None


def _format_date(value: date | None) -> str | None:
    if value is None:
        return None
    return datetime(value.year, value.month, value.day).isoformat()


# ============================================================================
# Conversion
# ============================================================================

def tree_to_file(tree: FamilyTree) -> TreeFile:
    return TreeFile(
        version=FORMAT_VERSION,
        name=tree.name,
        settings=TreeSettings(
            alignment=tree.alignment_mode.value.lower(),
            allow_incest=tree.allow_incest,
            allow_threesome=tree.allow_threesome,
            line_style=tree.line_style.value,
            layout_mode=tree.layout_mode.value,
        ),
        nodes=[
            TreeNode(
                id=n.id,
                name=n.name,
                gender=n.gender.value.lower(),
                is_alive=n.is_alive,
                is_royal=n.is_royal,
                royal_title=n.royal_title.value,
                group_id=n.group_id,
                x=n.x,
                y=n.y,
                birth_date=_format_date(n.birth_date),
                death_date=_format_date(n.death_date),
            )
            for n in tree.nodes
        ],
        connections=[
            TreeConnection(
                id=c.id,
                from_node_id=c.from_node_id,
                to_node_id=c.to_node_id,
                connection_type=c.connection_type.value,
            )
            for c in tree.connections
        ],
        groups=[
            TreeGroup(id=g.id, name=g.name, color=g.color, is_visible=g.is_visible)
            for g in tree.groups
        ],
        text_boxes=[
            TreeTextBox(**box.model_dump()) for box in tree.text_boxes
        ],
    )


def file_to_tree(tree_file: TreeFile) -> FamilyTree:
    tree = FamilyTree()
    if tree_file.name:
        tree.name = tree_file.name

    settings = tree_file.settings
    if settings is not None:
        tree.alignment_mode = (
            AlignmentMode.LEFT_RIGHT
            if (settings.alignment or "").lower() == "leftright"
            else AlignmentMode.TOP_DOWN
        )
        tree.allow_incest = settings.allow_incest
        tree.allow_threesome = settings.allow_threesome
        tree.line_style = parse_enum(LineStyle, settings.line_style)
        tree.layout_mode = parse_enum(LayoutMode, settings.layout_mode)

    # Groups first, nodes may reference them
    for g in tree_file.groups or []:
        tree.groups.append(Group(
            id=g.id or new_id(),
            name=g.name or "Unnamed",
            color=parse_color(g.color),
            is_visible=g.is_visible,
        ))

    for n in tree_file.nodes or []:
        tree.nodes.append(Node(
            id=n.id or new_id(),
            name=n.name or "Unknown",
            gender=parse_enum(Gender, n.gender),
            is_alive=n.is_alive,
            is_royal=n.is_royal,
            royal_title=parse_enum(RoyalTitle, n.royal_title),
            group_id=n.group_id,
            x=n.x,
            y=n.y,
            birth_date=_parse_date(n.birth_date),
            death_date=_parse_date(n.death_date),
        ))

    for c in tree_file.connections or []:
        tree.connections.append(Connection(
            id=c.id or new_id(),
            from_node_id=c.from_node_id or "",
            to_node_id=c.to_node_id or "",
            connection_type=parse_enum(ConnectionType, c.connection_type),
        ))

    for t in tree_file.text_boxes or []:
        tree.text_boxes.append(CanvasText(
            id=t.id or new_id(),
            text=t.text if t.text is not None else "Text",
            x=t.x,
            y=t.y,
            width=t.width,
            height=t.height,
            font_family=t.font_family or "Segoe UI",
            font_size=t.font_size,
            text_color=parse_color(t.text_color, "#FFFFFF"),
        ))

    return tree


# ============================================================================
# Strings and files
# ============================================================================

def dumps_tree(tree: FamilyTree) -> str:
    """Serialize a tree to indented JSON with PascalCase keys, omitting nulls."""
    return tree_to_file(tree).model_dump_json(by_alias=True, exclude_none=True, indent=2)


def loads_tree(content: str | bytes) -> FamilyTree:
    """Parse a tree document from JSON text."""
    try:
        tree_file = TreeFile.model_validate_json(content)
    except ValidationError as e:
        raise TreeFileError(f"Failed to parse tree file: {e.error_count()} invalid field(s)") from e

    if tree_file.version > FORMAT_VERSION:
        logger.warning(f"Tree file version {tree_file.version} is newer than supported {FORMAT_VERSION}")

    tree = file_to_tree(tree_file)
    logger.info(f"Loaded tree with {len(tree.nodes)} nodes and {len(tree.connections)} connections")
    return tree


def save_tree(tree: FamilyTree, file_path: str | Path) -> None:
    path = Path(file_path)
    try:
        path.write_text(dumps_tree(tree), encoding="utf-8")
    except OSError as e:
        raise TreeFileError(f"Error saving file: {e}") from e
    logger.info(f"Saved tree to {path}")


def load_tree(file_path: str | Path) -> FamilyTree:
    path = Path(file_path)
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise TreeFileError(f"Error loading file: {e}") from e
    return loads_tree(content)
