"""Configuration loading and management.

Configuration is a YAML file with three optional sections:

    archive:
      history_path: ~/Library/Application Support/Memex/history
      workspace_path: ~/Workspace
    index:
      db_path: ":memory:"          # or a file path to reuse builds
      batch_size: 50
      snapshot_message_limit: 10000
      build_on_start: false
      fuzzy:
        conversation_threshold: 0.3
        message_threshold: 0.4
        command_threshold: 0.2
    logging:
      level: INFO
      log_dir: ~/.memex-search/logs
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from memex_search.logging import parse_level

DEFAULT_HISTORY_PATH = "~/Library/Application Support/Memex/history"
DEFAULT_WORKSPACE_PATH = "~/Workspace"
MEMORY_DB = ":memory:"

CONFIG_SEARCH_PATHS = (
    Path("config.yaml"),
    Path("~/.config/memex-search/config.yaml"),
    Path("/etc/memex-search/config.yaml"),
)


@dataclass
class ArchiveConfig:
    history_path: Path = field(default_factory=lambda: expand_path(DEFAULT_HISTORY_PATH))
    workspace_path: Path = field(default_factory=lambda: expand_path(DEFAULT_WORKSPACE_PATH))


@dataclass
class FuzzyConfig:
    conversation_threshold: float = 0.3
    message_threshold: float = 0.4
    command_threshold: float = 0.2


@dataclass
class IndexConfig:
    db_path: str = MEMORY_DB  # ":memory:" or a filesystem path
    batch_size: int = 50
    snapshot_message_limit: int = 10_000
    build_on_start: bool = False
    fuzzy: FuzzyConfig = field(default_factory=FuzzyConfig)


@dataclass
class LoggingConfig:
    level: str = "INFO"
    log_dir: Path | None = None  # None means ~/.memex-search/logs


@dataclass
class Config:
    archive: ArchiveConfig = field(default_factory=ArchiveConfig)
    index: IndexConfig = field(default_factory=IndexConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def expand_env_var(value: str) -> str:
    """Expand a whole-value environment reference (e.g. ${VAR})."""
    if value.startswith("${") and value.endswith("}"):
        return os.environ.get(value[2:-1], value)
    return value


def expand_path(path_str: str) -> Path:
    """Expand ~ and environment variables in path."""
    return Path(os.path.expandvars(os.path.expanduser(path_str)))


def _path(value: Any) -> Path:
    return expand_path(expand_env_var(str(value)))


def _db_path(value: Any) -> str:
    value = expand_env_var(str(value))
    if value == MEMORY_DB:
        return value
    return str(expand_path(value))


def find_config_file() -> Path | None:
    """Return the first existing file among CONFIG_SEARCH_PATHS."""
    for candidate in CONFIG_SEARCH_PATHS:
        path = candidate.expanduser()
        if path.exists():
            return path
    return None


def _parse_archive(data: dict[str, Any]) -> ArchiveConfig:
    return ArchiveConfig(
        history_path=_path(data.get("history_path", DEFAULT_HISTORY_PATH)),
        workspace_path=_path(data.get("workspace_path", DEFAULT_WORKSPACE_PATH)),
    )


def _parse_index(data: dict[str, Any]) -> IndexConfig:
    defaults = IndexConfig()
    fuzzy_data = data.get("fuzzy") or {}
    fuzzy = FuzzyConfig(
        conversation_threshold=float(
            fuzzy_data.get("conversation_threshold", defaults.fuzzy.conversation_threshold)
        ),
        message_threshold=float(fuzzy_data.get("message_threshold", defaults.fuzzy.message_threshold)),
        command_threshold=float(fuzzy_data.get("command_threshold", defaults.fuzzy.command_threshold)),
    )

    index = IndexConfig(
        db_path=_db_path(data.get("db_path", MEMORY_DB)),
        batch_size=int(data.get("batch_size", defaults.batch_size)),
        snapshot_message_limit=int(
            data.get("snapshot_message_limit", defaults.snapshot_message_limit)
        ),
        build_on_start=bool(data.get("build_on_start", defaults.build_on_start)),
        fuzzy=fuzzy,
    )
    if index.batch_size < 1:
        raise ValueError(f"index.batch_size must be positive, got {index.batch_size}")
    if index.snapshot_message_limit < 0:
        raise ValueError(
            f"index.snapshot_message_limit must not be negative, got {index.snapshot_message_limit}"
        )
    return index


def _parse_logging(data: dict[str, Any]) -> LoggingConfig:
    level = str(data.get("level", "INFO"))
    parse_level(level)
    log_dir = data.get("log_dir")
    return LoggingConfig(level=level, log_dir=_path(log_dir) if log_dir else None)


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from YAML file.

    Without an explicit path the standard locations are searched; when no
    file exists the defaults are returned.

    Raises:
        ValueError: If a value is out of range or the log level is unknown
    """
    if config_path is None:
        config_path = find_config_file()

    if config_path is None or not config_path.exists():
        return Config()

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    return Config(
        archive=_parse_archive(data.get("archive") or {}),
        index=_parse_index(data.get("index") or {}),
        logging=_parse_logging(data.get("logging") or {}),
    )
