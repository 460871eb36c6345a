"""Tests for the tool handlers behind the MCP server."""

import json
from collections.abc import Callable
from pathlib import Path
from unittest.mock import patch

import pytest

from memex_search.config import ArchiveConfig
from memex_search.indexer.engine import SearchIndex
from memex_search.server.tools import MemexTools


@pytest.fixture
def tools(index: SearchIndex, archive_config: ArchiveConfig) -> MemexTools:
    """Provide tools over an unbuilt index."""
    return MemexTools(index, archive_config)


def call(tools: MemexTools, name: str, **arguments) -> dict:
    """Call a tool and decode its JSON response."""
    return json.loads(tools.call(name, arguments))


class TestDispatch:
    """Tests for MemexTools.call."""

    def test_lists_seven_tools(self, tools: MemexTools) -> None:
        names = [t["name"] for t in tools.list_tools()]

        assert names == [
            "search_conversations",
            "get_conversation_snippet",
            "search_projects",
            "get_project_overview",
            "find_command",
            "build_search_index",
            "get_search_stats",
        ]

    def test_unknown_tool(self, tools: MemexTools) -> None:
        assert tools.call("delete_everything") == "Error: Unknown tool: delete_everything"

    def test_missing_argument(self, tools: MemexTools) -> None:
        assert tools.call("search_conversations", {}) == "Error: Missing required argument: query"

    def test_unexpected_errors_become_text(self, tools: MemexTools) -> None:
        with patch.object(tools.index, "get_stats", side_effect=RuntimeError("boom")):
            assert tools.call("get_search_stats") == "Error: boom"


class TestBeforeBuild:
    """Tool behaviour while the index has not been built."""

    def test_search_conversations_falls_back(self, tools: MemexTools, sample_archive: None) -> None:
        result = call(tools, "search_conversations", query="firebase")

        assert result["search_method"] == "fallback"
        assert result["total_found"] == 1
        assert result["conversations"][0]["relevance"] == "fallback search"

    def test_find_command_falls_back(self, tools: MemexTools, sample_archive: None) -> None:
        result = call(tools, "find_command", query="firebase login")

        assert result["search_method"] == "fallback"
        assert result["commands"][0]["command"] == "firebase login"
        assert result["commands"][0]["confidence"] == 0.8

    def test_stats_require_index(self, tools: MemexTools) -> None:
        assert tools.call("get_search_stats") == "Error: Search index not initialized"

    def test_snippet_scans_archive(self, tools: MemexTools, sample_archive: None) -> None:
        result = call(tools, "get_conversation_snippet", conversation_id="c2")

        assert result["total_messages"] == 2
        assert result["message_range"] == "0-1"


class TestAfterBuild:
    """Tool behaviour once build_search_index has run."""

    @pytest.fixture
    def built_tools(self, tools: MemexTools, sample_archive: None) -> MemexTools:
        result = call(tools, "build_search_index")
        assert result["status"] == "success"
        return tools

    def test_build_reports_stats(
        self, tools: MemexTools, archive_path: Path, sample_archive: None
    ) -> None:
        (archive_path / "broken.json").write_text("[")

        result = call(tools, "build_search_index")

        assert result["stats"] == {"conversations": 3, "messages": 6, "commands": 4}
        assert result["files_indexed"] == 3
        assert result["files_failed"] == 1
        assert result["failures"][0]["file"] == "broken.json"

    def test_search_conversations_indexed(self, built_tools: MemexTools) -> None:
        result = call(built_tools, "search_conversations", query="docker")

        assert result["search_method"] == "indexed"
        conversation = result["conversations"][0]
        assert conversation["conversation_id"] == "c2"
        assert conversation["relevance"].startswith("indexed search (score: ")
        assert conversation["file"] == "c2.json"

    def test_search_conversations_project_filter(self, built_tools: MemexTools) -> None:
        result = call(built_tools, "search_conversations", query="firebase", project="infra")

        assert result["total_found"] == 0

    def test_find_command_indexed(self, built_tools: MemexTools) -> None:
        result = call(built_tools, "find_command", query="docker network")

        assert result["search_method"] == "indexed"
        command = result["commands"][0]
        assert command["command"] == "docker network create backend"
        assert command["conversation_title"] == "Docker networking"
        assert command["type"] == "cli"

    def test_find_command_uses_fuzzy_when_no_terms_match(self, built_tools: MemexTools) -> None:
        result = call(built_tools, "find_command", query="firebse login")

        assert result["search_method"] == "fuzzy"
        assert result["commands"][0]["command"] == "firebase login"
        assert result["commands"][0]["conversation_title"] == "Deploy to Firebase"

    def test_find_command_fuzzy_respects_type(self, built_tools: MemexTools) -> None:
        result = call(built_tools, "find_command", query="firebse login", command_type="config")

        assert result["total_found"] == 0

    def test_find_command_fuzzy_type_fills_limit(
        self, tools: MemexTools, archive_path: Path, write_conversation: Callable[..., Path]
    ) -> None:
        write_conversation(
            "c1",
            title="Build scripts",
            messages=[
                {"role": "user", "content": "Run `npm run build` then `npm run build:prod`"},
                {"role": "assistant", "content": "Or use `pnpm run build --prod` instead"},
            ],
        )
        tools.index.build(archive_path)

        result = call(
            tools, "find_command", query="npm run biuld", command_type="config", limit=1
        )

        assert result["search_method"] == "fuzzy"
        assert [c["command"] for c in result["commands"]] == ["pnpm run build --prod"]

    def test_highlights_are_marked_for_display(self, built_tools: MemexTools) -> None:
        result = call(built_tools, "search_conversations", query="docker")

        assert any("**Docker**" in h for h in result["conversations"][0]["highlights"])

    def test_find_command_invalid_type(self, built_tools: MemexTools) -> None:
        assert built_tools.call("find_command", {"query": "x", "command_type": "shell"}).startswith(
            "Error: Unknown command type"
        )

    def test_stats_paths(
        self, built_tools: MemexTools, archive_path: Path, workspace_path: Path
    ) -> None:
        result = call(built_tools, "get_search_stats")

        assert result["search_index_stats"]["conversations"] == 3
        assert result["paths"] == {
            "conversations": str(archive_path),
            "projects": str(workspace_path),
        }


class TestConversationSnippet:
    """Tests for get_conversation_snippet."""

    @pytest.fixture
    def long_conversation(self, write_conversation: Callable[..., Path]) -> None:
        messages = [
            {"role": "user" if i % 2 == 0 else "assistant", "content": f"message {i}"}
            for i in range(30)
        ]
        messages[2]["content"] = "x" * 600
        write_conversation("long", filename="long-conversation.json", messages=messages)

    def test_bounded_range(self, tools: MemexTools, long_conversation: None) -> None:
        result = call(
            tools, "get_conversation_snippet", conversation_id="long", message_start=1, message_count=3
        )

        assert [m["index"] for m in result["messages"]] == [1, 2, 3]
        assert result["message_range"] == "1-3"
        assert result["total_messages"] == 30

    def test_start_past_end(self, tools: MemexTools, long_conversation: None) -> None:
        result = call(tools, "get_conversation_snippet", conversation_id="long", message_start=40)

        assert result["messages"] == []
        assert result["message_range"] == "none"
        assert result["total_messages"] == 30

    def test_truncates_long_content(self, tools: MemexTools, long_conversation: None) -> None:
        result = call(
            tools, "get_conversation_snippet", conversation_id="long", message_start=2, message_count=1
        )

        assert result["messages"][0]["content"] == "x" * 500 + "..."

    def test_uses_index_to_locate_file(
        self, tools: MemexTools, archive_path: Path, long_conversation: None
    ) -> None:
        tools.index.build(archive_path)

        result = call(tools, "get_conversation_snippet", conversation_id="long", message_count=2)

        assert result["message_range"] == "0-1"
        assert result["messages"][1] == {"index": 1, "role": "assistant", "content": "message 1"}

    def test_range_past_end(self, tools: MemexTools, long_conversation: None) -> None:
        result = call(
            tools, "get_conversation_snippet", conversation_id="long", message_start=28, message_count=10
        )

        assert [m["index"] for m in result["messages"]] == [28, 29]

    def test_missing_conversation(self, tools: MemexTools, sample_archive: None) -> None:
        assert tools.call("get_conversation_snippet", {"conversation_id": "nope"}) == (
            "Error: Conversation nope not found"
        )

    def test_negative_start(self, tools: MemexTools, long_conversation: None) -> None:
        output = tools.call(
            "get_conversation_snippet", {"conversation_id": "long", "message_start": -1}
        )

        assert output.startswith("Error:")


class TestWorkspaceTools:
    """Tests for the workspace tools."""

    def test_search_projects(self, tools: MemexTools, workspace_path: Path) -> None:
        (workspace_path / "app").mkdir()
        (workspace_path / "app" / "notes.md").write_text("deploy with firebase\n")

        result = call(tools, "search_projects", query="firebase")

        assert result["total_found"] == 1
        assert result["results"][0] == {
            "project": "app",
            "file": "app/notes.md",
            "match": "deploy with firebase",
            "line": 1,
        }

    def test_project_overview(self, tools: MemexTools, workspace_path: Path) -> None:
        (workspace_path / "app").mkdir()
        (workspace_path / "app" / "main.py").write_text("")

        result = call(tools, "get_project_overview", project_name="app")

        assert result["technologies"] == ["Python"]

    def test_missing_project(self, tools: MemexTools) -> None:
        assert tools.call("get_project_overview", {"project_name": "nope"}) == (
            "Error: nope is not a directory"
        )
