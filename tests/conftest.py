"""Shared fixtures: real SQLite stores and workspace directories under tmp_path."""

import json
import sqlite3
from pathlib import Path
from typing import Any, Callable

import pytest

from cursor_history.config import Config, CursorConfig, ExtractConfig


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else json.dumps(value)


def _as_blob(value: Any) -> bytes | str:
    # Strings keep the TEXT storage class some builds write
    if isinstance(value, (bytes, str)):
        return value
    return json.dumps(value).encode("utf-8")


def write_store(
    db_path: Path,
    items: dict[str, Any] | None = None,
    blobs: dict[str, Any] | None = None,
) -> Path:
    """Create a state.vscdb with both key/value tables.

    Non-string values are stored as JSON.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        conn.execute("CREATE TABLE IF NOT EXISTS ItemTable (key TEXT UNIQUE ON CONFLICT REPLACE, value BLOB)")
        conn.execute("CREATE TABLE IF NOT EXISTS cursorDiskKV (key TEXT UNIQUE ON CONFLICT REPLACE, value BLOB)")
        for key, value in (items or {}).items():
            conn.execute("INSERT INTO ItemTable (key, value) VALUES (?, ?)", (key, _as_text(value)))
        for key, value in (blobs or {}).items():
            conn.execute("INSERT INTO cursorDiskKV (key, value) VALUES (?, ?)", (key, _as_blob(value)))
        conn.commit()
    finally:
        conn.close()
    return db_path


@pytest.fixture
def make_store() -> Callable[..., Path]:
    """The write_store helper, for tests that build stores of their own."""
    return write_store


@pytest.fixture
def user_dir(tmp_path: Path) -> Path:
    """An empty Cursor user directory."""
    path = tmp_path / "Cursor" / "User"
    (path / "workspaceStorage").mkdir(parents=True)
    (path / "globalStorage").mkdir(parents=True)
    return path


@pytest.fixture
def storage_root(user_dir: Path) -> Path:
    return user_dir / "workspaceStorage"


@pytest.fixture
def global_store(user_dir: Path) -> Path:
    """Path of the global store. The file is created by write_global."""
    return user_dir / "globalStorage" / "state.vscdb"


@pytest.fixture
def write_global(global_store: Path) -> Callable[..., Path]:
    def _write(blobs: dict[str, Any] | None = None, items: dict[str, Any] | None = None) -> Path:
        return write_store(global_store, items=items, blobs=blobs)

    return _write


@pytest.fixture
def add_workspace(storage_root: Path) -> Callable[..., Path]:
    """Create a workspace directory with a descriptor and, optionally, a store.

    `registry` of None writes a store without a composer registry; pass
    `store=False` to leave the store file out entirely.
    """

    def _add(
        storage_id: str,
        folder: str,
        registry: Any = None,
        store: bool = True,
    ) -> Path:
        workspace_dir = storage_root / storage_id
        workspace_dir.mkdir(parents=True)
        (workspace_dir / "workspace.json").write_text(json.dumps({"folder": folder}))
        if store:
            items = {"composer.composerData": registry} if registry is not None else {}
            write_store(workspace_dir / "state.vscdb", items=items)
        return workspace_dir

    return _add


@pytest.fixture
def config(user_dir: Path, tmp_path: Path) -> Config:
    """Config pointing at the temporary user directory."""
    return Config(
        cursor=CursorConfig(
            user_dir=user_dir,
            workspace_storage=user_dir / "workspaceStorage",
            global_store=user_dir / "globalStorage" / "state.vscdb",
        ),
        extract=ExtractConfig(output_dir=tmp_path / "out"),
        max_workers=1,
    )
