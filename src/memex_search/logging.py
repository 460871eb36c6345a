"""Logging setup for memex-search.

Every module logger hangs off the ``memex_search`` package logger, which owns
the handlers: one log file per entry point under ~/.memex-search/logs/ and,
optionally, stderr. Nothing is ever written to stdout because the MCP server
speaks its protocol there.
"""

import logging
import sys
from pathlib import Path

PACKAGE_LOGGER = "memex_search"

# Default log directory
DEFAULT_LOG_DIR = Path.home() / ".memex-search" / "logs"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def parse_level(level: int | str) -> int:
    """Turn a level name such as "debug" into its number; numbers pass through.

    Raises:
        ValueError: If the name is not a standard logging level
    """
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def _configure(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(
    name: str,
    log_dir: Path | None = None,
    level: int | str = logging.INFO,
    console: bool = True,
) -> logging.Logger:
    """Attach handlers to the package logger for one entry point.

    Only the first call installs handlers; later calls just adjust the level.

    Args:
        name: Entry point name, used for the log file (<name>.log)
        log_dir: Directory for log files (defaults to ~/.memex-search/logs/)
        level: Level number or name (defaults to INFO)
        console: Whether to also log to stderr

    Returns:
        The package logger
    """
    level = parse_level(level)
    log_dir = log_dir or DEFAULT_LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    if logger.handlers:
        return logger

    file_handler = logging.FileHandler(log_dir / f"{name}.log", encoding="utf-8")
    logger.addHandler(_configure(file_handler, level))
    if console:
        logger.addHandler(_configure(logging.StreamHandler(sys.stderr), level))

    return logger


def get_logger(name: str) -> logging.Logger:
    """Module logger under the package logger, e.g. ``memex_search.store``."""
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")
