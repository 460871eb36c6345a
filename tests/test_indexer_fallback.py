"""Tests for archive-scanning fallback searches."""

from collections.abc import Callable
from pathlib import Path

from memex_search.indexer.fallback import FALLBACK_CONFIDENCE, scan_commands, scan_conversations


class TestScanConversations:
    """Tests for scan_conversations."""

    def test_matches_title_and_summary(self, archive_path: Path, sample_archive: None) -> None:
        results = scan_conversations(archive_path, "FIREBASE")

        assert [r["conversation_id"] for r in results] == ["c1"]
        assert results[0]["relevance"] == "fallback search"
        assert results[0]["file"] == "c1.json"
        assert results[0]["message_count"] == 2

    def test_summary_substring(self, archive_path: Path, sample_archive: None) -> None:
        results = scan_conversations(archive_path, "cannot reach")

        assert [r["conversation_id"] for r in results] == ["c2"]

    def test_filters(self, archive_path: Path, sample_archive: None) -> None:
        assert scan_conversations(archive_path, "firebase", project="infra") == []
        assert scan_conversations(archive_path, "docker", date_to="2024-06-01") == []
        assert len(scan_conversations(archive_path, "docker", date_from="2024-06-01")) == 1

    def test_scan_limit(self, archive_path: Path, write_conversation: Callable[..., Path]) -> None:
        """Only the first scan_limit files are read."""
        for i in range(5):
            write_conversation(f"c{i}", title="Deploy notes")

        assert len(scan_conversations(archive_path, "deploy", scan_limit=3)) == 3
        assert len(scan_conversations(archive_path, "deploy", limit=2)) == 2

    def test_skips_unreadable_files(self, archive_path: Path, sample_archive: None) -> None:
        (archive_path / "a-broken.json").write_text("{")

        assert len(scan_conversations(archive_path, "firebase")) == 1


class TestScanCommands:
    """Tests for scan_commands."""

    def test_finds_backtick_spans(self, archive_path: Path, sample_archive: None) -> None:
        results = scan_commands(archive_path, "firebase")

        assert [r["command"] for r in results] == ["npm install -g firebase-tools", "firebase login"]
        assert all(r["confidence"] == FALLBACK_CONFIDENCE == 0.8 for r in results)
        assert results[0]["conversation_title"] == "Deploy to Firebase"
        assert results[0]["message_index"] == 1
        assert results[0]["type"] == "cli"

    def test_type_filter(self, archive_path: Path, sample_archive: None) -> None:
        assert scan_commands(archive_path, "firebase", command_type="config") == []

    def test_limit(self, archive_path: Path, sample_archive: None) -> None:
        assert len(scan_commands(archive_path, "firebase", limit=1)) == 1

    def test_context_window(self, archive_path: Path, write_conversation: Callable[..., Path]) -> None:
        content = "one\ntwo\nthree\nrun `make deploy` here\nfive\nsix\nseven"
        write_conversation("c1", messages=[{"role": "assistant", "content": content}])

        results = scan_commands(archive_path, "make")

        assert results[0]["context"] == "two\nthree\nrun `make deploy` here\nfive\nsix"
