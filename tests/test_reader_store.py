"""Tests for the read-only record store."""

import sqlite3
from pathlib import Path

import pytest

from cursor_history.errors import MissingStore, StoreOpenFailure
from cursor_history.reader.store import (
    COMPOSER_REGISTRY_KEY,
    RecordStore,
    bubble_key,
    composer_data_key,
)


@pytest.fixture
def store_path(tmp_path: Path, make_store) -> Path:
    return make_store(
        tmp_path / "state.vscdb",
        items={COMPOSER_REGISTRY_KEY: {"allComposers": []}, "plain": "value"},
        blobs={
            "composerData:one": b'{"composerId": "one"}',
            "composerData:two": '{"composerId": "two"}',
            "ComposerData:upper": b"{}",
            "composerDataX": b"{}",
            "bubbleId:one:b1": b'{"type": 1}',
        },
    )


class TestKeyHelpers:
    def test_composer_data_key(self) -> None:
        assert composer_data_key("abc") == "composerData:abc"

    def test_bubble_key(self) -> None:
        assert bubble_key("abc", "b1") == "bubbleId:abc:b1"


class TestRecordStoreOpen:
    """Tests for opening stores."""

    def test_missing_file_behaves_as_empty(self, tmp_path: Path) -> None:
        with RecordStore(tmp_path / "missing.vscdb") as store:
            assert not store.is_open
            assert isinstance(store.error, MissingStore)
            assert store.get_item("anything") is None
            assert store.get_blob("anything") is None
            assert store.scan_blobs("composerData:") == []

    def test_unknown_location(self) -> None:
        with RecordStore(None) as store:
            assert isinstance(store.error, MissingStore)
            assert store.get_blobs(["a"]) == {}

    def test_corrupt_file_is_isolated(self, tmp_path: Path, store_path: Path) -> None:
        corrupt = tmp_path / "corrupt.vscdb"
        corrupt.write_bytes(b"this is not a sqlite database at all" * 100)

        with RecordStore(corrupt) as bad, RecordStore(store_path) as good:
            assert isinstance(bad.error, StoreOpenFailure)
            assert bad.get_item(COMPOSER_REGISTRY_KEY) is None
            assert good.error is None
            assert good.get_item(COMPOSER_REGISTRY_KEY) == '{"allComposers": []}'

    def test_closes_on_exit(self, store_path: Path) -> None:
        store = RecordStore(store_path)
        with store:
            assert store.is_open
        assert not store.is_open

    def test_opened_read_only(self, store_path: Path) -> None:
        with RecordStore(store_path) as store:
            with pytest.raises(sqlite3.OperationalError):
                store._conn.execute("INSERT INTO ItemTable (key, value) VALUES ('x', 'y')")

    def test_missing_tables_return_empty(self, tmp_path: Path) -> None:
        db_path = tmp_path / "bare.vscdb"
        conn = sqlite3.connect(db_path)
        conn.execute("CREATE TABLE other (id INTEGER)")
        conn.commit()
        conn.close()

        with RecordStore(db_path) as store:
            assert store.error is None
            assert store.get_item(COMPOSER_REGISTRY_KEY) is None
            assert store.scan_blobs("composerData:") == []


class TestRecordStoreLookups:
    """Tests for exact-key and prefix lookups."""

    def test_get_item(self, store_path: Path) -> None:
        with RecordStore(store_path) as store:
            assert store.get_item("plain") == "value"
            assert store.get_item("absent") is None

    def test_get_blob_returns_bytes_for_text_values(self, store_path: Path) -> None:
        with RecordStore(store_path) as store:
            assert store.get_blob("composerData:one") == b'{"composerId": "one"}'
            assert store.get_blob("composerData:two") == b'{"composerId": "two"}'

    def test_get_blobs_skips_missing_keys(self, store_path: Path) -> None:
        with RecordStore(store_path) as store:
            found = store.get_blobs(["composerData:one", "composerData:nope"])

        assert list(found) == ["composerData:one"]

    def test_scan_blobs_prefix_is_case_sensitive(self, store_path: Path) -> None:
        with RecordStore(store_path) as store:
            keys = sorted(key for key, _ in store.scan_blobs("composerData:"))

        assert keys == ["composerData:one", "composerData:two"]

    def test_scan_blobs_escapes_like_wildcards(self, tmp_path: Path, make_store) -> None:
        db_path = make_store(
            tmp_path / "state.vscdb",
            blobs={"a_b:1": b"{}", "axb:2": b"{}", "a%b:3": b"{}"},
        )

        with RecordStore(db_path) as store:
            assert [key for key, _ in store.scan_blobs("a_b:")] == ["a_b:1"]
            assert [key for key, _ in store.scan_blobs("a%b")] == ["a%b:3"]
