"""Canonical data models."""

import sqlite3
from dataclasses import dataclass, field
from typing import Any

CONTENT_TYPES = ("text", "code", "command")
COMMAND_TYPES = ("cli", "code", "config")
RESULT_KINDS = ("conversation", "message", "command")


@dataclass
class Conversation:
    """One archived transcript with its metadata."""

    conversation_id: str
    title: str = ""
    summary: str = ""
    created_at: str = ""  # ISO 8601, compared lexically
    project: str | None = None
    file_path: str = ""  # Archive file name the conversation was read from
    message_count: int = 0  # user_turn_count + assistant_turn_count

    @property
    def id(self) -> str:
        """Stable unique ID for this conversation."""
        return f"conv_{self.conversation_id}"

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Conversation":
        return cls(
            conversation_id=row["conversation_id"],
            title=row["title"] or "",
            summary=row["summary"] or "",
            created_at=row["created_at"] or "",
            project=row["project"],
            file_path=row["file_path"] or "",
            message_count=row["message_count"] or 0,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "title": self.title,
            "summary": self.summary,
            "created_at": self.created_at,
            "project": self.project,
            "file_path": self.file_path,
            "message_count": self.message_count,
        }


@dataclass
class Message:
    """A single turn within a conversation."""

    conversation_id: str
    message_index: int  # Position in the source messages array
    role: str  # user, assistant, or anything the archive recorded
    content: str
    content_type: str = "text"  # text, code, command

    @property
    def id(self) -> str:
        """Stable unique ID for this message."""
        return f"msg_{self.conversation_id}_{self.message_index}"

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Message":
        return cls(
            conversation_id=row["conversation_id"],
            message_index=row["message_index"],
            role=row["role"] or "",
            content=row["content"] or "",
            content_type=row["content_type"] or "text",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "message_index": self.message_index,
            "role": self.role,
            "content": self.content,
            "content_type": self.content_type,
        }


@dataclass
class Command:
    """A command-like snippet extracted from a message."""

    conversation_id: str
    message_index: int
    command: str
    command_type: str  # cli, code, config
    context: str
    confidence: float
    ordinal: int = 0  # Position within the originating message's extraction output

    @property
    def id(self) -> str:
        """Stable unique ID for this command."""
        return f"cmd_{self.conversation_id}_{self.message_index}_{self.ordinal}"

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Command":
        return cls(
            conversation_id=row["conversation_id"],
            message_index=row["message_index"],
            command=row["command"],
            command_type=row["command_type"],
            context=row["context"] or "",
            confidence=row["confidence"],
            ordinal=row["ordinal"] or 0,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "message_index": self.message_index,
            "command": self.command,
            "command_type": self.command_type,
            "context": self.context,
            "confidence": self.confidence,
        }


@dataclass
class SearchResult:
    """A ranked hit from the full-text or fuzzy index.

    Scores are lower-is-better in both cases: FTS5 bm25 rank for indexed
    searches, edit distance in [0, 1] for fuzzy searches.
    """

    kind: str  # conversation, message, command
    item: Conversation | Message | Command
    score: float
    highlights: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "item": self.item.to_dict(),
            "score": self.score,
            "highlights": list(self.highlights),
        }
