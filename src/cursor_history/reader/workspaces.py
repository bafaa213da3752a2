"""Workspace discovery from the workspaceStorage directory.

Each workspace directory holds a ``workspace.json`` descriptor of the form::

    {"folder": "file:///home/user/project"}

Folder URIs are percent-encoded, and Windows folders look like
``file:///c%3A/Users/me/project``.
"""

import json
import re
from pathlib import Path
from urllib.parse import unquote

from cursor_history.errors import MalformedDescriptor
from cursor_history.logging import get_logger
from cursor_history.models import WorkspaceDescriptor
from cursor_history.reader.sources import DESCRIPTOR_FILENAME

logger = get_logger("workspaces")

_DRIVE_PREFIX = re.compile(r"^/[A-Za-z]:/")


def decode_folder_uri(uri: str) -> str:
    """Turn a descriptor folder URI into a filesystem path.

    Strips the ``file://`` scheme, percent-decodes, and drops the slash in
    front of a Windows drive letter (``/C:/x`` becomes ``C:/x``).
    """
    path = uri[len("file://"):] if uri.startswith("file://") else uri
    path = unquote(path)
    if _DRIVE_PREFIX.match(path):
        path = path[1:]
    return path


def display_name_for(folder_path: str) -> str:
    """Final path segment, ignoring trailing separators."""
    trimmed = folder_path.rstrip("/\\")
    if not trimmed:
        return folder_path
    return re.split(r"[/\\]", trimmed)[-1]


def read_descriptor(workspace_dir: Path) -> WorkspaceDescriptor:
    """Read one workspace directory's descriptor.

    Raises:
        MalformedDescriptor: if workspace.json is missing, not JSON, or has no folder
    """
    descriptor_path = workspace_dir / DESCRIPTOR_FILENAME
    try:
        with open(descriptor_path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise MalformedDescriptor(workspace_dir.name, "no workspace.json") from e
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedDescriptor(workspace_dir.name, str(e)) from e

    folder = data.get("folder") if isinstance(data, dict) else None
    if not isinstance(folder, str) or not folder:
        # Multi-root workspaces carry "workspace" instead of "folder"
        raise MalformedDescriptor(workspace_dir.name, "no folder field")

    folder_path = decode_folder_uri(folder)
    return WorkspaceDescriptor(
        storage_id=workspace_dir.name,
        folder_path=folder_path,
        display_name=display_name_for(folder_path),
    )


def scan_workspaces(
    storage_root: Path | None,
) -> tuple[list[WorkspaceDescriptor], list[MalformedDescriptor]]:
    """Decode every workspace directory under the storage root.

    Returns:
        Tuple of (descriptors in directory-name order, skipped directories)
    """
    if storage_root is None or not storage_root.is_dir():
        logger.debug("Workspace storage not found: path=%s", storage_root)
        return [], []

    descriptors: list[WorkspaceDescriptor] = []
    skipped: list[MalformedDescriptor] = []

    try:
        entries = sorted(storage_root.iterdir())
    except OSError as e:
        logger.warning("Cannot list workspace storage: path=%s error=%s", storage_root, e)
        return [], []

    for entry in entries:
        if not entry.is_dir() or entry.name.startswith("."):
            continue
        try:
            descriptors.append(read_descriptor(entry))
        except MalformedDescriptor as e:
            logger.debug("Skipping workspace: %s", e)
            skipped.append(e)

    logger.debug(
        "Scanned workspaces: root=%s found=%d skipped=%d",
        storage_root,
        len(descriptors),
        len(skipped),
    )
    return descriptors, skipped


def resolve_workspaces(storage_root: Path | None) -> list[WorkspaceDescriptor]:
    """List all decodable workspaces. Stale duplicates are kept."""
    descriptors, _ = scan_workspaces(storage_root)
    return descriptors


def match_workspaces(
    descriptors: list[WorkspaceDescriptor],
    name: str,
) -> list[WorkspaceDescriptor]:
    """Workspaces matching a name, exact display-name matches first."""
    if not name:
        return []
    exact = [d for d in descriptors if d.matches_exactly(name)]
    partial = [d for d in descriptors if not d.matches_exactly(name) and d.matches(name)]
    return exact + partial
