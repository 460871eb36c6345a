"""Tests for the search command-line interface."""

import json
from collections.abc import Callable
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from memex_search.search.__main__ import cli


@pytest.fixture
def config_path(
    tmp_path: Path, archive_path: Path, workspace_path: Path, sample_archive: None
) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(
        f"archive:\n  history_path: {archive_path}\n  workspace_path: {workspace_path}\n"
    )
    return path


@pytest.fixture
def run(config_path: Path):
    """Invoke the CLI against the sample archive without touching ~/.memex-search."""
    runner = CliRunner()

    def invoke(*args: str):
        with patch("memex_search.search.__main__.setup_logging"):
            return runner.invoke(cli, ["--config", str(config_path), *args])

    return invoke


class TestSearchCli:
    """Tests for the search CLI commands."""

    def test_build(self, run) -> None:
        result = run("build")

        assert result.exit_code == 0
        assert "Indexed 3 conversations, 6 messages, 4 commands" in result.stdout

    def test_conversations(self, run) -> None:
        result = run("conversations", "docker", "--verbose")

        assert result.exit_code == 0
        assert "Found 1 conversations" in result.stdout
        assert "Docker networking" in result.stdout
        assert "Project: infra" in result.stdout

    def test_conversations_project_filter(self, run) -> None:
        result = run("conversations", "firebase", "--project", "infra")

        assert result.exit_code == 0
        assert "Found 0 conversations" in result.stdout

    def test_commands(self, run) -> None:
        result = run("commands", "firebase", "--type", "cli")

        assert result.exit_code == 0
        assert "firebase login" in result.stdout
        assert "npm install -g firebase-tools" in result.stdout

    def test_commands_rejects_unknown_type(self, run) -> None:
        result = run("commands", "firebase", "--type", "shell")

        assert result.exit_code == 2

    def test_invalid_limit(self, run) -> None:
        result = run("commands", "firebase", "--limit", "0")

        assert result.exit_code == 1

    def test_fuzzy(self, run) -> None:
        result = run("fuzzy", "firebse login")

        assert result.exit_code == 0
        assert "firebase login" in result.stdout

    def test_stats(self, run) -> None:
        result = run("stats")

        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"conversations": 3, "messages": 6, "commands": 4}

    def test_snippet(self, run) -> None:
        result = run("snippet", "c1", "--start", "1", "--count", "1")

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["message_range"] == "1-1"
        assert payload["total_messages"] == 2

    def test_snippet_missing_conversation(self, run) -> None:
        result = run("snippet", "nope")

        assert result.exit_code == 1
        assert "Error: Conversation nope not found" in result.stdout

    def test_missing_archive(self, tmp_path: Path) -> None:
        config_path = tmp_path / "broken.yaml"
        config_path.write_text(f"archive:\n  history_path: {tmp_path}/missing\n")

        with patch("memex_search.search.__main__.setup_logging"):
            result = CliRunner().invoke(cli, ["--config", str(config_path), "build"])

        assert result.exit_code == 1
        assert "Error building index" in result.output

    def test_stats_with_missing_archive(self, tmp_path: Path) -> None:
        config_path = tmp_path / "broken.yaml"
        config_path.write_text(f"archive:\n  history_path: {tmp_path}/missing\n")

        with patch("memex_search.search.__main__.setup_logging"):
            result = CliRunner().invoke(cli, ["--config", str(config_path), "stats"])

        assert result.exit_code == 1
        assert "Error reading index statistics" in result.output

    def test_highlight_keeps_literal_brackets(
        self, run, write_conversation: Callable[..., Path]
    ) -> None:
        write_conversation("c4", title="Release notes", summary="Publish the [draft] changelog")

        result = run("conversations", "changelog")

        assert result.exit_code == 0
        assert "Summary: Publish the [draft] \033[1mchangelog\033[0m" in result.stdout
