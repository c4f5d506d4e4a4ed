"""Canvas-wide actions: layout, tree options, text boxes and zoom."""

import logging

from pydantic import BaseModel, Field

from command_manager import ActionCommand, UpdateFieldsCommand
from family_tree import AlignmentMode, CanvasText, LayoutMode, LineStyle
from session import EditorError, EditorSession
from tree_file import parse_color

from .editing import execute_layout, undoable_edit

logger = logging.getLogger("familycanvas.actions.canvas")


# ============================================================================
# Parameter Models
# ============================================================================

class TreeOptionsParams(BaseModel):
    """Tree-level options. Only the fields that are sent are changed."""
    name: str | None = None
    allow_incest: bool | None = None
    allow_threesome: bool | None = None
    show_gender_icons: bool | None = None
    alignment_mode: AlignmentMode | None = None
    line_style: LineStyle | None = None
    layout_mode: LayoutMode | None = None
    font_family: str | None = None
    font_size: float | None = Field(default=None, gt=0)
    font_bold: bool | None = None
    font_italic: bool | None = None


class TextBoxParams(BaseModel):
    text: str | None = None
    x: float | None = None
    y: float | None = None
    width: float | None = Field(default=None, gt=0)
    height: float | None = Field(default=None, gt=0)
    font_family: str | None = None
    font_size: float | None = Field(default=None, gt=0)
    text_color: str | None = None


# ============================================================================
# Layout and options
# ============================================================================

def run_auto_layout(session: EditorSession) -> dict[str, int]:
    """Lay out the whole tree as one undo step. Returns node id -> generation."""
    execute_layout(session)
    return {n.id: n.generation for n in session.tree.nodes}


def update_tree_options(session: EditorSession, params: TreeOptionsParams) -> dict[str, object]:
    """
    Change tree options as one undo step.

    Changing alignment while in Fixed mode, or switching to Fixed mode,
    re-runs the layout inside the same step.
    """
    tree = session.tree
    changes = {
        field: value for field, value in params.model_dump(exclude_unset=True).items()
        if value is not None and getattr(tree, field) != value
    }
    if not changes:
        return changes

    relayout = "alignment_mode" in changes or changes.get("layout_mode") == LayoutMode.FIXED
    with undoable_edit(session, "Change tree options", relayout=relayout) as commands:
        commands.execute(UpdateFieldsCommand(tree, changes, "Change tree options"))

    logger.info(f"Updated tree options: {sorted(changes)}")
    return changes


def set_alignment(session: EditorSession, alignment: AlignmentMode) -> dict[str, object]:
    return update_tree_options(session, TreeOptionsParams(alignment_mode=alignment))


def set_line_style(session: EditorSession, line_style: LineStyle) -> dict[str, object]:
    return update_tree_options(session, TreeOptionsParams(line_style=line_style))


def set_layout_mode(session: EditorSession, layout_mode: LayoutMode) -> dict[str, object]:
    return update_tree_options(session, TreeOptionsParams(layout_mode=layout_mode))


# ============================================================================
# Text boxes
# ============================================================================

def _checked_color(value: str) -> str:
    color = parse_color(value, "")
    if not color:
        raise EditorError(f"Invalid color: '{value}'")
    return color


def add_text_box(session: EditorSession, params: TextBoxParams) -> CanvasText:
    tree = session.tree
    values = params.model_dump(exclude_none=True)
    if "text_color" in values:
        values["text_color"] = _checked_color(values["text_color"])
    box = CanvasText(**values)

    session.commands.execute(ActionCommand(
        lambda: tree.text_boxes.append(box),
        lambda: tree.text_boxes.remove(box),
        "Add text box",
    ))
    return box


def update_text_box(session: EditorSession, text_box_id: str, params: TextBoxParams) -> CanvasText:
    box = session.tree.get_text_box(text_box_id)
    changes = params.model_dump(exclude_none=True)
    if "text_color" in changes:
        changes["text_color"] = _checked_color(changes["text_color"])
    changes = {k: v for k, v in changes.items() if getattr(box, k) != v}
    if changes:
        session.commands.execute(UpdateFieldsCommand(box, changes, "Edit text box"))
    return box


def delete_text_box(session: EditorSession, text_box_id: str) -> CanvasText:
    tree = session.tree
    box = tree.get_text_box(text_box_id)
    index = tree.text_boxes.index(box)

    session.commands.execute(ActionCommand(
        lambda: tree.text_boxes.remove(box),
        lambda: tree.text_boxes.insert(index, box),
        "Delete text box",
    ))
    return box


# ============================================================================
# Zoom
# ============================================================================

def zoom_in(session: EditorSession) -> float:
    return session.viewport.zoom_in()


def zoom_out(session: EditorSession) -> float:
    return session.viewport.zoom_out()


def set_zoom(session: EditorSession, zoom: float) -> float:
    return session.viewport.set_zoom(zoom)


def reset_view(session: EditorSession) -> None:
    session.viewport.reset_view()
