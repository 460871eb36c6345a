"""Tool handlers exposed to the agent.

Each tool takes a dict of arguments and returns a JSON-serializable payload.
``MemexTools.call`` is the single entry point used by the MCP server: it
dispatches by tool name and turns every failure into an ``Error: ...`` text
response instead of raising.
"""

import json
from collections.abc import Callable
from typing import Any

from memex_search.config import ArchiveConfig
from memex_search.errors import (
    ConversationNotFoundError,
    IndexNotInitializedError,
    MemexSearchError,
    UnknownToolError,
)
from memex_search.indexer.archive import find_conversation_file, load_conversation_file
from memex_search.indexer.engine import SearchIndex
from memex_search.indexer.fallback import scan_commands, scan_conversations
from memex_search.indexer.store import render_highlight
from memex_search.logging import get_logger
from memex_search.models import SearchResult
from memex_search.workspace import get_project_overview, search_projects

logger = get_logger("tools")

SNIPPET_CONTENT_LIMIT = 500

TOOL_DESCRIPTIONS: dict[str, str] = {
    "search_conversations": (
        "Search through Memex conversation history by text content, title, or metadata"
    ),
    "get_conversation_snippet": "Get specific parts of a conversation by conversation ID",
    "search_projects": "Search through project files in the workspace",
    "get_project_overview": "Get an overview of a specific project directory",
    "find_command": (
        "Find specific commands, CLI usage, or code snippets from conversation history"
    ),
    "build_search_index": "Build or rebuild the search index for better performance",
    "get_search_stats": "Get statistics about the search index",
}


def _required(args: dict[str, Any], key: str) -> Any:
    value = args.get(key)
    if value is None or value == "":
        raise ValueError(f"Missing required argument: {key}")
    return value


def format_response(payload: dict[str, Any]) -> str:
    return json.dumps(payload, indent=2)


def format_error(error: BaseException) -> str:
    return f"Error: {error}"


def _message_range(start: int, count: int) -> str:
    """Render the inclusive index range of a snippet; "none" when it is empty."""
    if count == 0:
        return "none"
    return f"{start}-{start + count - 1}"


def _conversation_payload(result: SearchResult) -> dict[str, Any]:
    conv = result.item
    return {
        "conversation_id": conv.conversation_id,
        "title": conv.title,
        "summary": conv.summary,
        "created_at": conv.created_at,
        "project": conv.project,
        "message_count": conv.message_count,
        "relevance": f"indexed search (score: {result.score:.2f})",
        "file": conv.file_path,
        "highlights": [render_highlight(h, "**", "**") for h in result.highlights],
    }


def _command_payload(result: SearchResult, titles: dict[str, str]) -> dict[str, Any]:
    cmd = result.item
    return {
        "command": cmd.command,
        "context": cmd.context,
        "conversation_id": cmd.conversation_id,
        "conversation_title": titles.get(cmd.conversation_id, ""),
        "message_index": cmd.message_index,
        "confidence": cmd.confidence,
        "type": cmd.command_type,
        "search_score": result.score,
    }


class MemexTools:
    """Handlers for the seven tools, bound to one index and archive."""

    def __init__(self, index: SearchIndex, archive: ArchiveConfig) -> None:
        self._index = index
        self._archive = archive
        self._handlers: dict[str, Callable[[dict[str, Any]], dict[str, Any]]] = {
            "search_conversations": self.search_conversations,
            "get_conversation_snippet": self.get_conversation_snippet,
            "search_projects": self.search_projects,
            "get_project_overview": self.get_project_overview,
            "find_command": self.find_command,
            "build_search_index": self.build_search_index,
            "get_search_stats": self.get_search_stats,
        }

    @property
    def index(self) -> SearchIndex:
        return self._index

    def list_tools(self) -> list[dict[str, str]]:
        return [{"name": name, "description": TOOL_DESCRIPTIONS[name]} for name in self._handlers]

    def call(self, name: str, arguments: dict[str, Any] | None = None) -> str:
        """Run a tool and render its result as text.

        Returns:
            JSON text on success, "Error: <message>" on any failure
        """
        try:
            handler = self._handlers.get(name)
            if handler is None:
                raise UnknownToolError(name)
            return format_response(handler(arguments or {}))
        except (MemexSearchError, ValueError, OSError) as e:
            logger.warning("Tool failed: tool=%s error=%s", name, e)
            return format_error(e)
        except Exception as e:
            logger.exception("Unexpected tool failure: tool=%s", name)
            return format_error(e)

    # -- conversation history ---------------------------------------------

    def search_conversations(self, args: dict[str, Any]) -> dict[str, Any]:
        query = _required(args, "query")
        limit = int(args.get("limit", 10))
        project = args.get("project")
        date_from = args.get("date_from")
        date_to = args.get("date_to")

        try:
            results = self._index.search_conversations(
                query, project=project, date_from=date_from, date_to=date_to, limit=limit
            )
        except IndexNotInitializedError:
            logger.info("Index not built, scanning archive: tool=search_conversations")
            conversations = scan_conversations(
                self._archive.history_path,
                query,
                project=project,
                date_from=date_from,
                date_to=date_to,
                limit=limit,
            )
            return {
                "total_found": len(conversations),
                "search_method": "fallback",
                "conversations": conversations,
            }

        return {
            "total_found": len(results),
            "search_method": "indexed",
            "conversations": [_conversation_payload(r) for r in results],
        }

    def get_conversation_snippet(self, args: dict[str, Any]) -> dict[str, Any]:
        conversation_id = _required(args, "conversation_id")
        start = int(args.get("message_start", 0))
        count = int(args.get("message_count", 10))
        if start < 0 or count < 0:
            raise ValueError("message_start and message_count must not be negative")

        data = self._load_conversation(conversation_id)
        messages = data.get("messages") or []
        snippet = messages[start : start + count]

        rendered = []
        for offset, message in enumerate(snippet):
            message = message if isinstance(message, dict) else {}
            content = message.get("content") or ""
            if not isinstance(content, str):
                content = json.dumps(content)
            if len(content) > SNIPPET_CONTENT_LIMIT:
                content = content[:SNIPPET_CONTENT_LIMIT] + "..."
            rendered.append({"index": start + offset, "role": message.get("role"), "content": content})

        return {
            "conversation_id": conversation_id,
            "title": data.get("title") or "",
            "message_range": _message_range(start, len(snippet)),
            "total_messages": len(messages),
            "messages": rendered,
        }

    def _load_conversation(self, conversation_id: str) -> dict[str, Any]:
        """Read a conversation's archive file, using the index to locate it when built."""
        if self._index.is_initialized:
            try:
                conversation = self._index.get_conversation(conversation_id)
            except (ConversationNotFoundError, IndexNotInitializedError):
                conversation = None
            if conversation is not None:
                path = self._archive.history_path / conversation.file_path
                try:
                    return load_conversation_file(path)
                except (OSError, ValueError) as e:
                    logger.warning("Indexed file unreadable, rescanning archive: path=%s error=%s", path, e)

        _, data = find_conversation_file(self._archive.history_path, conversation_id)
        return data

    def find_command(self, args: dict[str, Any]) -> dict[str, Any]:
        query = _required(args, "query")
        command_type = args.get("command_type") or "any"
        limit = int(args.get("limit", 5))

        try:
            results = self._index.search_commands(query, command_type=command_type, limit=limit)
            method = "indexed"
            if not results:
                results = self._index.fuzzy_search_commands(
                    query, command_type=command_type, limit=limit
                )
                method = "fuzzy"
            titles = self._index.conversation_titles(r.item.conversation_id for r in results)
        except IndexNotInitializedError:
            logger.info("Index not built, scanning archive: tool=find_command")
            commands = scan_commands(
                self._archive.history_path, query, command_type=command_type, limit=limit
            )
            return {
                "query": query,
                "total_found": len(commands),
                "search_method": "fallback",
                "commands": commands,
            }

        return {
            "query": query,
            "total_found": len(results),
            "search_method": method,
            "commands": [_command_payload(r, titles) for r in results],
        }

    # -- index management -------------------------------------------------

    def build_search_index(self, args: dict[str, Any]) -> dict[str, Any]:
        report = self._index.build(self._archive.history_path)
        return {
            "status": "success",
            "message": "Search index built successfully",
            "stats": self._index.get_stats(),
            "files_indexed": report.files_indexed,
            "files_failed": report.files_failed,
            "failures": [{"file": f.path, "error": f.error} for f in report.failures],
        }

    def get_search_stats(self, args: dict[str, Any]) -> dict[str, Any]:
        return {
            "search_index_stats": self._index.get_stats(),
            "paths": {
                "conversations": str(self._archive.history_path),
                "projects": str(self._archive.workspace_path),
            },
        }

    # -- workspace --------------------------------------------------------

    def search_projects(self, args: dict[str, Any]) -> dict[str, Any]:
        results = search_projects(
            self._archive.workspace_path,
            _required(args, "query"),
            file_types=args.get("file_types") or [],
            limit=int(args.get("limit", 10)),
        )
        return {"total_found": len(results), "results": results}

    def get_project_overview(self, args: dict[str, Any]) -> dict[str, Any]:
        return get_project_overview(self._archive.workspace_path, _required(args, "project_name"))
