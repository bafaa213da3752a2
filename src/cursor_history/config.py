"""Configuration loading and management."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from cursor_history.reader.sources import (
    get_cursor_user_dir,
    get_global_store_path,
    get_workspace_storage_path,
)


@dataclass
class CursorConfig:
    user_dir: Path | None = field(default_factory=get_cursor_user_dir)
    workspace_storage: Path | None = field(default_factory=get_workspace_storage_path)
    global_store: Path | None = field(default_factory=get_global_store_path)


@dataclass
class ExtractConfig:
    output_dir: Path = field(default_factory=lambda: Path.home() / "cursor-history" / "conversations")


@dataclass
class TypesenseConfig:
    host: str = "localhost"
    port: int = 8108
    protocol: str = "http"
    api_key: str = "dev-api-key"


@dataclass
class Config:
    cursor: CursorConfig = field(default_factory=CursorConfig)
    extract: ExtractConfig = field(default_factory=ExtractConfig)
    typesense: TypesenseConfig = field(default_factory=TypesenseConfig)
    max_workers: int = 4


def expand_env_var(value: str) -> str:
    """Expand environment variables in string (e.g. ${VAR})."""
    if value.startswith("${") and value.endswith("}"):
        env_var = value[2:-1]
        return os.environ.get(env_var, value)
    return value


def expand_path(path_str: str) -> Path:
    """Expand ~ and environment variables in path."""
    return Path(os.path.expandvars(os.path.expanduser(path_str)))


def _optional_path(value: str | None, default: Path | None) -> Path | None:
    if not value:
        return default
    return expand_path(value)


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from YAML file."""
    if config_path is None:
        # Look for config in standard locations
        search_paths = [
            Path.cwd() / "config.yaml",
            Path.home() / ".config" / "cursor-history" / "config.yaml",
            Path("/etc/cursor-history/config.yaml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = path
                break

    if config_path is None or not config_path.exists():
        return Config()

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    # Parse cursor storage locations. An explicit user_dir moves the
    # defaults of the two derived paths along with it.
    cursor_data = data.get("cursor", {}) or {}
    user_dir = _optional_path(cursor_data.get("user_dir"), get_cursor_user_dir())
    cursor = CursorConfig(
        user_dir=user_dir,
        workspace_storage=_optional_path(
            cursor_data.get("workspace_storage"),
            user_dir / "workspaceStorage" if user_dir else None,
        ),
        global_store=_optional_path(
            cursor_data.get("global_store"),
            user_dir / "globalStorage" / "state.vscdb" if user_dir else None,
        ),
    )

    # Parse extract config
    extract_data = data.get("extract", {}) or {}
    extract = ExtractConfig(
        output_dir=expand_path(extract_data.get("output_dir", "~/cursor-history/conversations")),
    )

    # Parse typesense config
    ts_data = data.get("typesense", {}) or {}
    api_key = expand_env_var(ts_data.get("api_key", "dev-api-key"))

    typesense = TypesenseConfig(
        host=ts_data.get("host", "localhost"),
        port=ts_data.get("port", 8108),
        protocol=ts_data.get("protocol", "http"),
        api_key=api_key,
    )

    max_workers = data.get("max_workers", 4)
    if not isinstance(max_workers, int) or max_workers < 1:
        max_workers = 1

    return Config(
        cursor=cursor,
        extract=extract,
        typesense=typesense,
        max_workers=max_workers,
    )
