"""Reader for the conversation archive.

The archive is a flat directory of JSON files, one per conversation:

    {
        "title": "...",
        "summary": "...",
        "metadata": {
            "conversation_id": "...",
            "created_at": "2024-05-01T10:00:00Z",
            "updated_at": "...",
            "model": "...",
            "project": "...",            # optional
            "user_turn_count": 3,
            "assistant_turn_count": 3
        },
        "messages": [{"role": "user", "content": "..."}, ...]
    }

Missing fields default to empty strings and zero counts.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from memex_search.errors import ConversationNotFoundError
from memex_search.indexer.classifier import classify_content
from memex_search.indexer.extractor import extract_commands
from memex_search.logging import get_logger
from memex_search.models import Command, Conversation, Message

logger = get_logger("archive")

ARCHIVE_SUFFIX = ".json"


@dataclass
class ParsedConversation:
    """Rows derived from one archive file."""

    conversation: Conversation
    messages: list[Message] = field(default_factory=list)
    commands: list[Command] = field(default_factory=list)


def list_archive_files(archive_path: Path) -> list[Path]:
    """List conversation files in the archive directory (non-recursive).

    Raises:
        OSError: If the directory cannot be listed
    """
    return sorted(
        entry
        for entry in archive_path.iterdir()
        if entry.name.endswith(ARCHIVE_SUFFIX) and entry.is_file()
    )


def load_conversation_file(path: Path) -> dict[str, Any]:
    """Read and decode one archive file.

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is not a JSON object
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def metadata_of(data: dict[str, Any]) -> dict[str, Any]:
    metadata = data.get("metadata")
    return metadata if isinstance(metadata, dict) else {}


def conversation_id_for(data: dict[str, Any], path: Path) -> str:
    """External id of a conversation, falling back to the archive file name."""
    return metadata_of(data).get("conversation_id") or path.name


def _text(value: Any, name: str) -> str:
    """Read a scalar field as text; missing values become the empty string.

    Raises:
        ValueError: If the value is a list, object or other non-scalar
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    raise ValueError(f"{name} must be a string, got {type(value).__name__}")


def _count(value: Any, name: str) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError(f"{name} must be an integer, got {type(value).__name__}")
    return int(value)


def parse_conversation(path: Path, data: dict[str, Any]) -> ParsedConversation:
    """Convert a decoded archive file into conversation, message and command rows.

    Raises:
        ValueError: If a conversation or message field has a non-scalar value
    """
    metadata = metadata_of(data)
    conversation_id = _text(conversation_id_for(data, path), "metadata.conversation_id")

    conversation = Conversation(
        conversation_id=conversation_id,
        title=_text(data.get("title"), "title"),
        summary=_text(data.get("summary"), "summary"),
        created_at=_text(metadata.get("created_at"), "metadata.created_at"),
        project=_text(metadata.get("project"), "metadata.project") or None,
        file_path=path.name,
        message_count=_count(metadata.get("user_turn_count"), "metadata.user_turn_count")
        + _count(metadata.get("assistant_turn_count"), "metadata.assistant_turn_count"),
    )
    parsed = ParsedConversation(conversation=conversation)

    for index, entry in enumerate(data.get("messages") or []):
        if not isinstance(entry, dict):
            continue
        content = entry.get("content")
        if not content:
            continue
        if not isinstance(content, str):
            logger.debug(
                "Skipping non-text message: conversation=%s index=%d", conversation_id, index
            )
            continue

        parsed.messages.append(
            Message(
                conversation_id=conversation_id,
                message_index=index,
                role=_text(entry.get("role"), f"messages[{index}].role"),
                content=content,
                content_type=classify_content(content),
            )
        )
        parsed.commands.extend(extract_commands(content, conversation_id, index))

    return parsed


def find_conversation_file(archive_path: Path, conversation_id: str) -> tuple[Path, dict[str, Any]]:
    """Scan the archive for the file holding ``conversation_id``.

    Unreadable files are skipped.

    Returns:
        Tuple of (file path, decoded file contents)

    Raises:
        ConversationNotFoundError: If no file carries the id
        OSError: If the archive directory cannot be listed
    """
    for path in list_archive_files(archive_path):
        try:
            data = load_conversation_file(path)
        except (OSError, ValueError):
            logger.debug("Skipping unreadable file during lookup: path=%s", path)
            continue
        if conversation_id_for(data, path) == conversation_id:
            return path, data
    raise ConversationNotFoundError(conversation_id)
