"""Tests for configuration loading and default storage locations."""

import os
from pathlib import Path
from unittest.mock import patch

from cursor_history.config import Config, expand_env_var, load_config
from cursor_history.reader.sources import (
    get_cursor_user_dir,
    get_global_store_path,
    get_workspace_storage_path,
    workspace_store_path,
)


class TestDefaultLocations:
    """Tests for platform default paths."""

    def test_linux(self, tmp_path: Path) -> None:
        with patch("cursor_history.reader.sources.platform.system", return_value="Linux"), \
                patch.object(Path, "home", return_value=tmp_path):
            assert get_cursor_user_dir() == tmp_path / ".config" / "Cursor" / "User"
            assert get_workspace_storage_path() == tmp_path / ".config" / "Cursor" / "User" / "workspaceStorage"
            assert get_global_store_path() == tmp_path / ".config" / "Cursor" / "User" / "globalStorage" / "state.vscdb"

    def test_macos(self, tmp_path: Path) -> None:
        with patch("cursor_history.reader.sources.platform.system", return_value="Darwin"), \
                patch.object(Path, "home", return_value=tmp_path):
            assert get_cursor_user_dir() == tmp_path / "Library" / "Application Support" / "Cursor" / "User"

    def test_windows_appdata(self, tmp_path: Path) -> None:
        with patch("cursor_history.reader.sources.platform.system", return_value="Windows"), \
                patch.dict(os.environ, {"APPDATA": str(tmp_path / "Roaming")}):
            assert get_cursor_user_dir() == tmp_path / "Roaming" / "Cursor" / "User"

    def test_unsupported_platform(self) -> None:
        with patch("cursor_history.reader.sources.platform.system", return_value="Plan9"):
            assert get_cursor_user_dir() is None
            assert get_global_store_path() is None

    def test_workspace_store_path(self, tmp_path: Path) -> None:
        assert workspace_store_path(tmp_path, "abc") == tmp_path / "abc" / "state.vscdb"


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults_when_no_file(self, tmp_path: Path) -> None:
        config = load_config(tmp_path / "missing.yaml")

        assert isinstance(config, Config)
        assert config.max_workers == 4
        assert config.typesense.port == 8108

    def test_user_dir_moves_derived_paths(self, tmp_path: Path) -> None:
        config_path = tmp_path / "config.yaml"
        config_path.write_text(f"cursor:\n  user_dir: {tmp_path / 'User'}\nmax_workers: 8\n")

        config = load_config(config_path)

        assert config.cursor.user_dir == tmp_path / "User"
        assert config.cursor.workspace_storage == tmp_path / "User" / "workspaceStorage"
        assert config.cursor.global_store == tmp_path / "User" / "globalStorage" / "state.vscdb"
        assert config.max_workers == 8

    def test_explicit_paths_and_expansion(self, tmp_path: Path) -> None:
        config_path = tmp_path / "config.yaml"
        config_path.write_text(
            "cursor:\n"
            "  workspace_storage: ~/ws\n"
            "  global_store: $CURSOR_TEST_DIR/global.vscdb\n"
            "extract:\n"
            "  output_dir: ~/exports\n"
            "typesense:\n"
            "  host: search.local\n"
            "  port: 9000\n"
            "  api_key: ${CURSOR_TEST_KEY}\n"
        )

        with patch.dict(os.environ, {"CURSOR_TEST_DIR": str(tmp_path), "CURSOR_TEST_KEY": "secret", "HOME": str(tmp_path)}):
            config = load_config(config_path)

        assert config.cursor.workspace_storage == tmp_path / "ws"
        assert config.cursor.global_store == tmp_path / "global.vscdb"
        assert config.extract.output_dir == tmp_path / "exports"
        assert config.typesense.host == "search.local"
        assert config.typesense.port == 9000
        assert config.typesense.api_key == "secret"

    def test_invalid_max_workers(self, tmp_path: Path) -> None:
        config_path = tmp_path / "config.yaml"
        config_path.write_text("max_workers: zero\n")

        assert load_config(config_path).max_workers == 1

    def test_empty_file(self, tmp_path: Path) -> None:
        config_path = tmp_path / "config.yaml"
        config_path.write_text("")

        assert load_config(config_path).max_workers == 4


class TestExpandEnvVar:
    def test_expands_known_variable(self) -> None:
        with patch.dict(os.environ, {"CURSOR_TEST_VAR": "value"}):
            assert expand_env_var("${CURSOR_TEST_VAR}") == "value"

    def test_keeps_unknown_variable(self) -> None:
        assert expand_env_var("${CURSOR_SURELY_UNSET_VAR}") == "${CURSOR_SURELY_UNSET_VAR}"

    def test_plain_string(self) -> None:
        assert expand_env_var("plain") == "plain"
