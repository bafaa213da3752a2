"""Default locations of Cursor's local storage."""

import os
import platform
from pathlib import Path

from cursor_history.logging import get_logger

logger = get_logger("sources")

STORE_FILENAME = "state.vscdb"
DESCRIPTOR_FILENAME = "workspace.json"


def get_cursor_user_dir() -> Path | None:
    """Locate Cursor's per-user data directory.

    Locations vary by platform:
    - Linux: ~/.config/Cursor/User
    - macOS: ~/Library/Application Support/Cursor/User
    - Windows: %APPDATA%/Cursor/User
    """
    system = platform.system()

    if system == "Linux":
        return Path.home() / ".config" / "Cursor" / "User"
    if system == "Darwin":  # macOS
        return Path.home() / "Library" / "Application Support" / "Cursor" / "User"
    if system == "Windows":
        appdata = os.environ.get("APPDATA")
        base = Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
        return base / "Cursor" / "User"

    logger.debug("Unsupported platform for Cursor storage: system=%s", system)
    return None


def get_workspace_storage_path() -> Path | None:
    """Storage root holding one directory per workspace."""
    user_dir = get_cursor_user_dir()
    if user_dir is None:
        return None
    return user_dir / "workspaceStorage"


def get_global_store_path() -> Path | None:
    """The single global store shared by every workspace."""
    user_dir = get_cursor_user_dir()
    if user_dir is None:
        return None
    return user_dir / "globalStorage" / STORE_FILENAME


def workspace_store_path(storage_root: Path, storage_id: str) -> Path:
    """Store file of one workspace directory."""
    return storage_root / storage_id / STORE_FILENAME
