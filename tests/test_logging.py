"""Tests for logging setup."""

import logging
import sys
from pathlib import Path

import pytest

from memex_search.logging import get_logger, parse_level, setup_logging


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Remove handlers added to the package logger by a test."""
    logger = logging.getLogger("memex_search")
    saved = list(logger.handlers)
    logger.handlers.clear()
    yield
    for handler in logger.handlers:
        handler.close()
    logger.handlers[:] = saved


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_writes_component_log_file(self, tmp_path: Path) -> None:
        setup_logging("server", log_dir=tmp_path / "logs", console=False)

        get_logger("engine").info("Search index built: conversations=%d", 3)
        for handler in logging.getLogger("memex_search").handlers:
            handler.flush()

        content = (tmp_path / "logs" / "server.log").read_text()
        assert "[INFO] memex_search.engine: Search index built: conversations=3" in content

    def test_console_handler_uses_stderr(self, tmp_path: Path) -> None:
        logger = setup_logging("server", log_dir=tmp_path, console=True)

        streams = [h.stream for h in logger.handlers if type(h) is logging.StreamHandler]
        assert streams == [sys.stderr]

    def test_idempotent(self, tmp_path: Path) -> None:
        logger = setup_logging("search", log_dir=tmp_path)
        count = len(logger.handlers)

        setup_logging("search", log_dir=tmp_path)

        assert len(logger.handlers) == count


class TestGetLogger:
    """Tests for get_logger."""

    def test_prefixes_package_name(self) -> None:
        assert get_logger("store").name == "memex_search.store"


class TestParseLevel:
    """Tests for parse_level."""

    def test_names_are_case_insensitive(self) -> None:
        assert parse_level("debug") == logging.DEBUG
        assert parse_level(" WARNING ") == logging.WARNING

    def test_numbers_pass_through(self) -> None:
        assert parse_level(15) == 15

    def test_unknown_name(self) -> None:
        with pytest.raises(ValueError):
            parse_level("chatty")

    def test_setup_accepts_names(self, tmp_path: Path) -> None:
        logger = setup_logging("search", log_dir=tmp_path, level="warning", console=False)

        assert logger.level == logging.WARNING
