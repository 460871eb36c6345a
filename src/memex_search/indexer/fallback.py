"""Archive-scanning searches used before the index has been built.

These read a bounded number of archive files per request instead of querying
the store, so they are slower and cover only part of the archive.
"""

import re
from pathlib import Path
from typing import Any

from memex_search.indexer.archive import (
    conversation_id_for,
    list_archive_files,
    load_conversation_file,
    metadata_of,
)
from memex_search.indexer.extractor import classify_command, context_around
from memex_search.logging import get_logger

logger = get_logger("fallback")

CONVERSATION_SCAN_LIMIT = 50
COMMAND_SCAN_LIMIT = 10
FALLBACK_CONFIDENCE = 0.8
FALLBACK_CONTEXT_WINDOW = 2

_ANY_BACKTICK_SPAN = re.compile(r"`([^`]+)`")


def _readable_files(archive_path: Path, scan_limit: int):
    for path in list_archive_files(archive_path)[:scan_limit]:
        try:
            yield path, load_conversation_file(path)
        except (OSError, ValueError) as e:
            logger.debug("Skipping unreadable file: path=%s error=%s", path, e)


def scan_conversations(
    archive_path: Path,
    query: str,
    project: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    limit: int = 10,
    scan_limit: int = CONVERSATION_SCAN_LIMIT,
) -> list[dict[str, Any]]:
    """Case-insensitive substring search over titles and summaries.

    Filters behave like the indexed search: exact project, inclusive lexical
    date bounds on created_at.

    Returns:
        Conversation payload dicts, in archive file order
    """
    needle = query.lower()
    results: list[dict[str, Any]] = []

    for path, data in _readable_files(archive_path, scan_limit):
        metadata = metadata_of(data)
        created_at = metadata.get("created_at") or ""

        if project and metadata.get("project") != project:
            continue
        if date_from and created_at < date_from:
            continue
        if date_to and created_at > date_to:
            continue

        title = data.get("title") or ""
        summary = data.get("summary") or ""
        if needle not in title.lower() and needle not in summary.lower():
            continue

        results.append({
            "conversation_id": conversation_id_for(data, path),
            "title": title,
            "summary": summary,
            "created_at": created_at,
            "project": metadata.get("project"),
            "message_count": int(metadata.get("user_turn_count") or 0)
            + int(metadata.get("assistant_turn_count") or 0),
            "relevance": "fallback search",
            "file": path.name,
        })
        if len(results) >= limit:
            break

    return results


def scan_commands(
    archive_path: Path,
    query: str,
    command_type: str = "any",
    limit: int = 5,
    scan_limit: int = COMMAND_SCAN_LIMIT,
) -> list[dict[str, Any]]:
    """Find backtick spans containing the query in the first archive files.

    Returns:
        Command payload dicts with the fallback confidence
    """
    needle = query.lower()
    results: list[dict[str, Any]] = []

    for path, data in _readable_files(archive_path, scan_limit):
        for index, message in enumerate(data.get("messages") or []):
            content = message.get("content") if isinstance(message, dict) else None
            if not content or not isinstance(content, str):
                continue

            lines = content.split("\n")
            for match in _ANY_BACKTICK_SPAN.finditer(content):
                command = match.group(1)
                if needle not in command.lower():
                    continue
                kind = classify_command(command.strip())
                if command_type not in ("any", kind):
                    continue
                line_index = content.count("\n", 0, match.start())
                results.append({
                    "command": command,
                    "context": context_around(lines, line_index, FALLBACK_CONTEXT_WINDOW),
                    "conversation_id": conversation_id_for(data, path),
                    "conversation_title": data.get("title") or "",
                    "message_index": index,
                    "confidence": FALLBACK_CONFIDENCE,
                    "type": kind,
                })
                if len(results) >= limit:
                    return results

    return results
