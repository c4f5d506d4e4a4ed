"""Application settings persisted as JSON in the user's config directory."""

import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from family_tree import ConnectionType

logger = logging.getLogger("familycanvas.settings")

SETTINGS_PATH_ENV = "FAMILYCANVAS_SETTINGS_PATH"
DEFAULT_SETTINGS_PATH = Path.home() / ".config" / "familycanvas" / "settings.json"


class SettingsError(Exception):
    """Raised when settings cannot be written."""


class LineDashStyle:
    SOLID = "Solid"
    DASHED = "Dashed"
    DOTTED = "Dotted"


# Dash pattern in multiples of the stroke width
DASH_PATTERNS: dict[str, tuple[float, ...] | None] = {
    LineDashStyle.SOLID: None,
    LineDashStyle.DASHED: (5, 3),
    LineDashStyle.DOTTED: (2, 2),
}


class ConnectionStyle(BaseModel):
    color: str
    width: float = 2.0
    dash_style: str = LineDashStyle.SOLID


class ConnectionStyleSettings(BaseModel):
    """Line appearance per connection type."""
    biological: ConnectionStyle = ConnectionStyle(color="#00D4AA")
    adopted: ConnectionStyle = ConnectionStyle(color="#FFA500", dash_style=LineDashStyle.DASHED)
    step: ConnectionStyle = ConnectionStyle(color="#9370DB", dash_style=LineDashStyle.DOTTED)
    partner: ConnectionStyle = ConnectionStyle(color="#FF69B4")
    former_partner: ConnectionStyle = ConnectionStyle(color="#808080", dash_style=LineDashStyle.DASHED)
    hidden: ConnectionStyle = ConnectionStyle(color="#80808080", width=1.0, dash_style=LineDashStyle.DASHED)

    def style_for(self, connection_type: ConnectionType) -> ConnectionStyle:
        return {
            ConnectionType.BIOLOGICAL: self.biological,
            ConnectionType.ADOPTED: self.adopted,
            ConnectionType.STEP: self.step,
            ConnectionType.PARTNER: self.partner,
            ConnectionType.FORMER_PARTNER: self.former_partner,
            ConnectionType.HIDDEN: self.hidden,
        }.get(connection_type, self.biological)


class KeybindSettings(BaseModel):
    """Keyboard shortcuts (action -> key string) used by the canvas front end."""
    add_node: str = "Z"
    remove_connection: str = "X"
    delete_node: str = "Delete"
    undo: str = "Ctrl+Z"
    redo: str = "Ctrl+Y"
    save: str = "Ctrl+S"
    open: str = "Ctrl+O"
    new_file: str = "Ctrl+N"
    zoom_in: str = "Ctrl+Plus"
    zoom_out: str = "Ctrl+Minus"
    reset_view: str = "R"
    toggle_grid: str = "G"
    select_all: str = "Ctrl+A"
    duplicate: str = "Ctrl+D"


class AppSettings(BaseModel):
    first_run_complete: bool = False

    # General
    dark_mode: bool = True
    allow_incest: bool = False
    allow_threesome: bool = False
    show_gender_icons: bool = True
    show_grid: bool = False

    # Layout defaults for new trees
    alignment: str = "TopDown"      # "TopDown" or "LeftRight"
    line_style: str = "Curves"      # "Curves" or "Square"
    layout_mode: str = "Fixed"      # "Fixed" or "Free"

    crown_display: str = "QueenOnly"  # "QueenOnly", "KingOnly", "Both", "None"
    gender_icon_style: str = "Dots"   # "Dots", "Symbols", "ColoredCircles"

    # Free-mode snapping
    snap_to_angle: bool = False
    snap_to_grid: bool = True
    snap_to_geometry: bool = False
    grid_snap_size: float = Field(default=20, gt=0)
    angle_snap_degrees: float = 45

    confirm_unsaved_changes: bool = True

    # Colors
    node_fill_color: str = "#1E1E1E"
    node_border_color: str = "#3F3F46"
    node_text_color: str = "#FFFFFF"
    canvas_background_color: str = "#121212"
    grid_color: str = "#2A2A2A"

    # Font
    font_family: str = "Segoe UI"
    font_size: float = 14
    font_bold: bool = False
    font_italic: bool = False

    connection_styles: ConnectionStyleSettings = Field(default_factory=ConnectionStyleSettings)
    keybinds: KeybindSettings = Field(default_factory=KeybindSettings)


# ============================================================================
# Persistence
# ============================================================================

_current_settings: AppSettings | None = None


def settings_path() -> Path:
    """Location of the settings file, overridable through FAMILYCANVAS_SETTINGS_PATH."""
    override = os.getenv(SETTINGS_PATH_ENV)
    return Path(override).expanduser() if override else DEFAULT_SETTINGS_PATH


def load_settings() -> AppSettings:
    """Load settings from disk, falling back to defaults if missing or invalid."""
    global _current_settings

    path = settings_path()
    settings = None
    if path.exists():
        try:
            settings = AppSettings.model_validate_json(path.read_text(encoding="utf-8"))
            logger.info(f"Loaded settings from {path}")
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            logger.warning(f"Could not read settings from {path}, using defaults: {e}")
    else:
        logger.debug(f"No settings file at {path}, using defaults")

    _current_settings = settings or AppSettings()
    return _current_settings


def current_settings() -> AppSettings:
    if _current_settings is None:
        return load_settings()
    return _current_settings


def save_settings(settings: AppSettings | None = None) -> AppSettings:
    """Write settings (or the current settings) to disk and make them current."""
    global _current_settings

    settings = settings or current_settings()
    path = settings_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(settings.model_dump_json(indent=2), encoding="utf-8")
    except OSError as e:
        logger.error(f"Failed to save settings to {path}: {e}")
        raise SettingsError(f"Failed to save settings: {e}") from e

    _current_settings = settings
    logger.info(f"Saved settings to {path}")
    return settings


def reset_settings() -> AppSettings:
    return save_settings(AppSettings())
