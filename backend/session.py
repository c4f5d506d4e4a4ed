"""Editor session: the open document, its undo history and the canvas viewport."""

import logging
from pathlib import Path

from pydantic import BaseModel

from command_manager import CommandManager
from family_tree import AlignmentMode, FamilyTree, LayoutMode, LineStyle
from settings_manager import AppSettings
from tree_file import parse_enum

logger = logging.getLogger("familycanvas.session")

MIN_ZOOM = 0.1
MAX_ZOOM = 5.0
ZOOM_STEP = 0.1


class EditorError(Exception):
    """Raised when an edit is not allowed in the current editor state."""


class Viewport(BaseModel):
    """Zoom and pan of the canvas view."""
    zoom: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0

    def set_zoom(self, zoom: float) -> float:
        self.zoom = round(min(MAX_ZOOM, max(MIN_ZOOM, zoom)), 2)
        return self.zoom

    def zoom_in(self) -> float:
        return self.set_zoom(self.zoom + ZOOM_STEP)

    def zoom_out(self) -> float:
        return self.set_zoom(self.zoom - ZOOM_STEP)

    def pan(self, dx: float, dy: float) -> None:
        self.offset_x += dx
        self.offset_y += dy

    def reset_view(self) -> None:
        self.zoom = 1.0
        self.offset_x = 0.0
        self.offset_y = 0.0

    def screen_to_canvas(self, x: float, y: float) -> tuple[float, float]:
        return (x - self.offset_x) / self.zoom, (y - self.offset_y) / self.zoom

    def canvas_to_screen(self, x: float, y: float) -> tuple[float, float]:
        return x * self.zoom + self.offset_x, y * self.zoom + self.offset_y


def new_tree_from_settings(settings: AppSettings) -> FamilyTree:
    """An empty tree carrying the user's rule and layout defaults."""
    return FamilyTree(
        alignment_mode=parse_enum(AlignmentMode, settings.alignment),
        line_style=parse_enum(LineStyle, settings.line_style),
        layout_mode=parse_enum(LayoutMode, settings.layout_mode),
        allow_incest=settings.allow_incest,
        allow_threesome=settings.allow_threesome,
        show_gender_icons=settings.show_gender_icons,
        font_family=settings.font_family,
        font_size=settings.font_size,
        font_bold=settings.font_bold,
        font_italic=settings.font_italic,
    )


class EditorSession:
    """One open document. Any executed, undone or redone command marks it dirty."""

    def __init__(self, settings: AppSettings | None = None, tree: FamilyTree | None = None,
                 file_path: str | Path | None = None):
        self.settings = settings or AppSettings()
        self.tree = tree if tree is not None else new_tree_from_settings(self.settings)
        self.file_path = Path(file_path) if file_path else None
        self.is_dirty = False
        self.viewport = Viewport()
        self.commands = CommandManager()
        self.commands.add_listener(self._on_history_changed)

    def _on_history_changed(self, manager: CommandManager) -> None:
        self.is_dirty = True

    def mark_saved(self, file_path: str | Path | None = None) -> None:
        if file_path:
            self.file_path = Path(file_path)
        self.is_dirty = False

    def replace_tree(self, tree: FamilyTree, file_path: str | Path | None = None) -> None:
        """Swap in a new document. History is discarded and the view is reset."""
        self.tree = tree
        self.commands.clear()
        self.viewport.reset_view()
        self.file_path = Path(file_path) if file_path else None
        self.is_dirty = False
        logger.info(f"Opened tree '{tree.name}' ({len(tree.nodes)} nodes)")

    @property
    def title(self) -> str:
        name = self.file_path.name if self.file_path else self.tree.name
        return f"{name}*" if self.is_dirty else name
