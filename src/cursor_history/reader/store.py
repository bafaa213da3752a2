"""Read-only access to Cursor ``state.vscdb`` stores.

Every store is a SQLite file with two key/value tables:

    ItemTable     - short string or JSON values (exact-key lookups)
    cursorDiskKV  - bulkier JSON blobs (exact-key and prefix lookups)

A store that is missing, locked or corrupt behaves as an empty store. The
failure is recorded on the handle and never escapes it.
"""

import sqlite3
from pathlib import Path
from typing import Self

from cursor_history.errors import ExtractionError, MissingStore, StoreOpenFailure
from cursor_history.logging import get_logger

logger = get_logger("store")

ITEM_TABLE = "ItemTable"
BLOB_TABLE = "cursorDiskKV"

# Known keys
COMPOSER_REGISTRY_KEY = "composer.composerData"
COMPOSER_DATA_PREFIX = "composerData:"
BUBBLE_PREFIX = "bubbleId:"


def composer_data_key(composer_id: str) -> str:
    return f"{COMPOSER_DATA_PREFIX}{composer_id}"


def bubble_key(composer_id: str, bubble_id: str) -> str:
    return f"{BUBBLE_PREFIX}{composer_id}:{bubble_id}"


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _as_text(value: str | bytes | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _as_bytes(value: str | bytes | None) -> bytes | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value
    return str(value).encode("utf-8")


class RecordStore:
    """One store file, opened read-only for the lifetime of a `with` block.

    Use as a context manager::

        with RecordStore(path) as store:
            registry = store.get_item(COMPOSER_REGISTRY_KEY)

    After a failed open, `error` holds the reason and every lookup returns
    an empty result.
    """

    def __init__(self, db_path: Path | None) -> None:
        """Initialize the store handle without touching the file.

        Args:
            db_path: Path to the state.vscdb file; None when the location
                is unknown on this platform
        """
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self.error: ExtractionError | None = None

    @property
    def path(self) -> Path | None:
        return self._db_path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> Self:
        """Open the file read-only, recording any failure on the handle."""
        if self._conn is not None:
            return self

        if self._db_path is None or not self._db_path.is_file():
            self.error = MissingStore(str(self._db_path))
            logger.debug("Store not found: path=%s", self._db_path)
            return self

        conn: sqlite3.Connection | None = None
        try:
            uri = f"{self._db_path.resolve().as_uri()}?mode=ro"
            conn = sqlite3.connect(uri, uri=True, check_same_thread=False)
            # Opening is lazy; touch the schema so corrupt files fail here
            conn.execute("SELECT name FROM sqlite_master LIMIT 1").fetchall()
        except sqlite3.Error as e:
            if conn is not None:
                conn.close()
            self.error = StoreOpenFailure(str(self._db_path), str(e))
            logger.warning("Failed to open store: path=%s error=%s", self._db_path, e)
            return self

        self._conn = conn
        return self

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> Self:
        """Enter context manager, opening the store."""
        return self.open()

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        """Exit context manager, closing database connection."""
        self.close()

    def _query(self, sql: str, params: tuple) -> list[tuple]:
        if self._conn is None:
            return []
        try:
            return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            # Usually a store from a build that predates the table
            logger.debug("Store query failed: path=%s error=%s", self._db_path, e)
            return []

    def get_item(self, key: str) -> str | None:
        """Exact-key lookup in the item table."""
        rows = self._query(f"SELECT value FROM {ITEM_TABLE} WHERE key = ?", (key,))
        if not rows:
            return None
        return _as_text(rows[0][0])

    def get_blob(self, key: str) -> bytes | None:
        """Exact-key lookup in the blob table."""
        rows = self._query(f"SELECT value FROM {BLOB_TABLE} WHERE key = ?", (key,))
        if not rows:
            return None
        return _as_bytes(rows[0][0])

    def get_blobs(self, keys: list[str]) -> dict[str, bytes]:
        """Exact-key lookup of several blob keys. Missing keys are absent."""
        found: dict[str, bytes] = {}
        for key in keys:
            value = self.get_blob(key)
            if value is not None:
                found[key] = value
        return found

    def scan_blobs(self, prefix: str) -> list[tuple[str, bytes]]:
        """All blob-table rows whose key starts with `prefix`.

        LIKE is case-insensitive in SQLite, so the substr comparison keeps the
        match exact. No ordering is guaranteed.
        """
        rows = self._query(
            f"SELECT key, value FROM {BLOB_TABLE} "
            "WHERE key LIKE ? ESCAPE '\\' AND substr(key, 1, ?) = ?",
            (f"{_escape_like(prefix)}%", len(prefix), prefix),
        )
        return [(str(key), _as_bytes(value)) for key, value in rows if value is not None]
