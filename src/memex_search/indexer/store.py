"""SQLite schema store with FTS5 full-text mirrors.

Every entity type has two physical tables: a relational table holding the
exact row, and an FTS5 mirror of its textual fields. A mirror row's rowid is
the ``seq`` of its relational row, so mirrors are updated and joined through
the rowid rather than scanned. Both are written together inside one
transaction by the ``upsert_*`` methods.
"""

import re
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Self

from memex_search.config import MEMORY_DB
from memex_search.logging import get_logger
from memex_search.models import Command, Conversation, Message, SearchResult

logger = get_logger("store")

# Stored in PRAGMA user_version; a file built with another version is rebuilt empty.
SCHEMA_VERSION = 2

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS conversations (
        seq INTEGER PRIMARY KEY,
        id TEXT NOT NULL UNIQUE,
        conversation_id TEXT UNIQUE,
        title TEXT,
        summary TEXT,
        created_at TEXT,
        project TEXT,
        file_path TEXT,
        message_count INTEGER
    )
    """,
    """
    CREATE VIRTUAL TABLE IF NOT EXISTS conversations_fts USING fts5(
        title, summary, project
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS messages (
        seq INTEGER PRIMARY KEY,
        id TEXT NOT NULL UNIQUE,
        conversation_id TEXT,
        message_index INTEGER,
        role TEXT,
        content TEXT,
        content_type TEXT,
        FOREIGN KEY(conversation_id) REFERENCES conversations(conversation_id)
    )
    """,
    """
    CREATE VIRTUAL TABLE IF NOT EXISTS messages_fts USING fts5(content)
    """,
    """
    CREATE TABLE IF NOT EXISTS commands (
        seq INTEGER PRIMARY KEY,
        id TEXT NOT NULL UNIQUE,
        conversation_id TEXT,
        message_index INTEGER,
        ordinal INTEGER,
        command TEXT,
        command_type TEXT,
        context TEXT,
        confidence REAL,
        FOREIGN KEY(conversation_id) REFERENCES conversations(conversation_id)
    )
    """,
    """
    CREATE VIRTUAL TABLE IF NOT EXISTS commands_fts USING fts5(command, context)
    """,
    """
    CREATE TABLE IF NOT EXISTS index_meta (
        key TEXT PRIMARY KEY,
        value TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_conversations_project ON conversations(project)",
    "CREATE INDEX IF NOT EXISTS idx_conversations_created_at ON conversations(created_at)",
    "CREATE INDEX IF NOT EXISTS idx_messages_conversation_id ON messages(conversation_id)",
    "CREATE INDEX IF NOT EXISTS idx_commands_conversation_id ON commands(conversation_id)",
)

ALL_TABLES = (
    "conversations",
    "conversations_fts",
    "messages",
    "messages_fts",
    "commands",
    "commands_fts",
    "index_meta",
)

# Messages at or below this length stay out of messages_fts.
MIN_FTS_CONTENT_LENGTH = 10
DEFAULT_SNAPSHOT_MESSAGE_LIMIT = 10_000
BUILD_COMPLETED_KEY = "build_completed_at"

# Snippet markers around matched terms. Control characters keep them apart
# from brackets or other punctuation in the indexed text.
HIGHLIGHT_START = "\x02"
HIGHLIGHT_END = "\x03"

_TERM = re.compile(r"\w+", re.UNICODE)


def to_match_query(text: str) -> str | None:
    """Convert free text into an FTS5 query of quoted terms.

    Terms are ANDed, as in FTS5's implicit operator. Punctuation such as the
    dashes in ``npm install -g`` is dropped rather than parsed as syntax.

    Returns:
        The MATCH expression, or None if the text has no searchable terms
    """
    terms = _TERM.findall(text or "")
    if not terms:
        return None
    return " ".join(f'"{term}"' for term in terms)


def render_highlight(text: str, start: str, end: str) -> str:
    """Replace the snippet markers in ``text`` with ``start`` and ``end``."""
    return text.replace(HIGHLIGHT_START, start).replace(HIGHLIGHT_END, end)


def _highlights(value: str | None) -> list[str]:
    return [value] if value else []


class SchemaStore:
    """Owns the relational tables and their FTS5 mirrors."""

    def __init__(self, db_path: str | Path = MEMORY_DB) -> None:
        """Open the store.

        Args:
            db_path: ":memory:" for a transient store, or a database file path.
                     Parent directories are created if they don't exist.
        """
        self._db_path = str(db_path)
        if self._db_path != MEMORY_DB:
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        # Transactions are managed explicitly by transaction().
        self._conn = sqlite3.connect(self._db_path, isolation_level=None, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._depth = 0
        self.ensure_schema()

    @property
    def db_path(self) -> str:
        return self._db_path

    def ensure_schema(self) -> None:
        """Create tables, FTS mirrors and indexes if they don't exist.

        Tables left by a different schema version are dropped first; their
        contents are rebuilt by the next index build.
        """
        with self.transaction() as conn:
            version = conn.execute("PRAGMA user_version").fetchone()[0]
            if version != SCHEMA_VERSION:
                if version:
                    logger.info(
                        "Dropping index tables from schema version %d: db=%s", version, self._db_path
                    )
                for table in ALL_TABLES:
                    conn.execute(f"DROP TABLE IF EXISTS {table}")
                conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
            for statement in SCHEMA:
                conn.execute(statement)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the enclosed statements in one transaction.

        Nested use joins the outermost transaction; only the outermost block
        commits or rolls back.
        """
        if self._depth == 0:
            self._conn.execute("BEGIN")
        self._depth += 1
        try:
            yield self._conn
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                self._conn.execute("ROLLBACK")
            raise
        self._depth -= 1
        if self._depth == 0:
            self._conn.execute("COMMIT")

    def clear(self) -> None:
        """Truncate every table in a single transaction."""
        with self.transaction():
            for table in ALL_TABLES:
                self._conn.execute(f"DELETE FROM {table}")
        logger.debug("Cleared index tables: db=%s", self._db_path)

    # -- writes -----------------------------------------------------------

    def _drop_mirror_rows(self, table: str, column: str, value: str) -> None:
        """Delete the FTS mirror rows of ``table`` rows whose ``column`` equals ``value``."""
        seqs = [
            (row[0],)
            for row in self._conn.execute(f"SELECT seq FROM {table} WHERE {column} = ?", (value,))
        ]
        if seqs:
            self._conn.executemany(f"DELETE FROM {table}_fts WHERE rowid = ?", seqs)

    def upsert_conversations(self, conversations: Iterable[Conversation]) -> int:
        """Insert or replace conversations.

        Replacing a conversation also drops the messages and commands stored
        for it, so a re-ingested transcript never keeps rows from its previous
        version.

        Returns:
            Number of conversations written
        """
        written = 0
        with self.transaction() as conn:
            for conv in conversations:
                for table in ("messages", "commands"):
                    self._drop_mirror_rows(table, "conversation_id", conv.conversation_id)
                    conn.execute(
                        f"DELETE FROM {table} WHERE conversation_id = ?", (conv.conversation_id,)
                    )
                self._drop_mirror_rows("conversations", "conversation_id", conv.conversation_id)
                cursor = conn.execute(
                    """
                    INSERT OR REPLACE INTO conversations
                    (id, conversation_id, title, summary, created_at, project, file_path, message_count)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        conv.id,
                        conv.conversation_id,
                        conv.title,
                        conv.summary,
                        conv.created_at,
                        conv.project,
                        conv.file_path,
                        conv.message_count,
                    ),
                )
                conn.execute(
                    "INSERT INTO conversations_fts (rowid, title, summary, project) VALUES (?, ?, ?, ?)",
                    (cursor.lastrowid, conv.title, conv.summary, conv.project or ""),
                )
                written += 1
        return written

    def upsert_messages(self, messages: Iterable[Message]) -> int:
        """Insert or replace messages.

        Only content longer than MIN_FTS_CONTENT_LENGTH is mirrored into
        messages_fts; every message is kept in the relational table.

        Returns:
            Number of messages written
        """
        written = 0
        with self.transaction() as conn:
            for msg in messages:
                self._drop_mirror_rows("messages", "id", msg.id)
                cursor = conn.execute(
                    """
                    INSERT OR REPLACE INTO messages
                    (id, conversation_id, message_index, role, content, content_type)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        msg.id,
                        msg.conversation_id,
                        msg.message_index,
                        msg.role,
                        msg.content,
                        msg.content_type,
                    ),
                )
                if msg.content and len(msg.content) > MIN_FTS_CONTENT_LENGTH:
                    conn.execute(
                        "INSERT INTO messages_fts (rowid, content) VALUES (?, ?)",
                        (cursor.lastrowid, msg.content),
                    )
                written += 1
        return written

    def upsert_commands(self, commands: Iterable[Command]) -> int:
        """Insert or replace extracted commands.

        Returns:
            Number of commands written
        """
        written = 0
        with self.transaction() as conn:
            for cmd in commands:
                self._drop_mirror_rows("commands", "id", cmd.id)
                cursor = conn.execute(
                    """
                    INSERT OR REPLACE INTO commands
                    (id, conversation_id, message_index, ordinal, command, command_type, context, confidence)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        cmd.id,
                        cmd.conversation_id,
                        cmd.message_index,
                        cmd.ordinal,
                        cmd.command,
                        cmd.command_type,
                        cmd.context,
                        cmd.confidence,
                    ),
                )
                conn.execute(
                    "INSERT INTO commands_fts (rowid, command, context) VALUES (?, ?, ?)",
                    (cursor.lastrowid, cmd.command, cmd.context),
                )
                written += 1
        return written

    def mark_build_complete(self) -> None:
        """Record that the current contents are the output of a finished build."""
        with self.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO index_meta (key, value) VALUES (?, ?)",
                (BUILD_COMPLETED_KEY, datetime.now(timezone.utc).isoformat()),
            )

    def is_build_complete(self) -> bool:
        """Check whether the store holds a finished build (file-backed reuse)."""
        row = self._conn.execute(
            "SELECT value FROM index_meta WHERE key = ?", (BUILD_COMPLETED_KEY,)
        ).fetchone()
        return row is not None

    # -- full-text queries ------------------------------------------------

    def query_conversations(
        self,
        match_query: str,
        limit: int = 10,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        """Rank conversations against an FTS5 MATCH expression.

        Args:
            match_query: FTS5 MATCH expression (see to_match_query)
            limit: Maximum number of results
            filters: Optional project, date_from, date_to. Dates are compared
                     lexically against created_at, both bounds inclusive.

        Returns:
            Conversation results ordered by ascending bm25 rank
        """
        sql = """
            SELECT c.*, bm25(conversations_fts) AS rank,
                   snippet(conversations_fts, -1, char(2), char(3), '...', 12) AS highlight
            FROM conversations_fts
            JOIN conversations AS c ON c.seq = conversations_fts.rowid
            WHERE conversations_fts MATCH ?
        """
        params: list[Any] = [match_query]

        if filters:
            if filters.get("project"):
                sql += " AND c.project = ?"
                params.append(filters["project"])
            if filters.get("date_from"):
                sql += " AND c.created_at >= ?"
                params.append(filters["date_from"])
            if filters.get("date_to"):
                sql += " AND c.created_at <= ?"
                params.append(filters["date_to"])

        sql += " ORDER BY rank LIMIT ?"
        params.append(limit)

        return [
            SearchResult(
                kind="conversation",
                item=Conversation.from_row(row),
                score=row["rank"] or 0.0,
                highlights=_highlights(row["highlight"]),
            )
            for row in self._conn.execute(sql, params)
        ]

    def query_messages(
        self,
        match_query: str,
        limit: int = 10,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        """Rank messages against an FTS5 MATCH expression.

        Args:
            match_query: FTS5 MATCH expression
            limit: Maximum number of results
            filters: Optional conversation_id and role (exact match)
        """
        sql = """
            SELECT m.*, bm25(messages_fts) AS rank,
                   snippet(messages_fts, 0, char(2), char(3), '...', 16) AS highlight
            FROM messages_fts
            JOIN messages AS m ON m.seq = messages_fts.rowid
            WHERE messages_fts MATCH ?
        """
        params: list[Any] = [match_query]

        if filters:
            if filters.get("conversation_id"):
                sql += " AND m.conversation_id = ?"
                params.append(filters["conversation_id"])
            if filters.get("role"):
                sql += " AND m.role = ?"
                params.append(filters["role"])

        sql += " ORDER BY rank LIMIT ?"
        params.append(limit)

        return [
            SearchResult(
                kind="message",
                item=Message.from_row(row),
                score=row["rank"] or 0.0,
                highlights=_highlights(row["highlight"]),
            )
            for row in self._conn.execute(sql, params)
        ]

    def query_commands(
        self,
        match_query: str,
        limit: int = 10,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        """Rank commands against an FTS5 MATCH expression.

        Args:
            match_query: FTS5 MATCH expression
            limit: Maximum number of results
            filters: Optional command_type; the value "any" disables the filter

        Returns:
            Command results ordered by rank, then by confidence descending
        """
        sql = """
            SELECT c.*, bm25(commands_fts) AS rank
            FROM commands_fts
            JOIN commands AS c ON c.seq = commands_fts.rowid
            WHERE commands_fts MATCH ?
        """
        params: list[Any] = [match_query]

        if filters:
            command_type = filters.get("command_type")
            if command_type and command_type != "any":
                sql += " AND c.command_type = ?"
                params.append(command_type)

        sql += " ORDER BY rank, c.confidence DESC LIMIT ?"
        params.append(limit)

        return [
            SearchResult(kind="command", item=Command.from_row(row), score=row["rank"] or 0.0)
            for row in self._conn.execute(sql, params)
        ]

    # -- snapshots and lookups --------------------------------------------

    def get_all_conversations(self) -> list[Conversation]:
        cursor = self._conn.execute("SELECT * FROM conversations ORDER BY conversation_id")
        return [Conversation.from_row(row) for row in cursor]

    def get_all_messages(self, limit: int = DEFAULT_SNAPSHOT_MESSAGE_LIMIT) -> list[Message]:
        """Snapshot messages, capped at ``limit`` rows to bound memory."""
        cursor = self._conn.execute(
            "SELECT * FROM messages ORDER BY conversation_id, message_index LIMIT ?", (limit,)
        )
        return [Message.from_row(row) for row in cursor]

    def get_all_commands(self) -> list[Command]:
        cursor = self._conn.execute(
            "SELECT * FROM commands ORDER BY conversation_id, message_index, ordinal"
        )
        return [Command.from_row(row) for row in cursor]

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Get a conversation by its external id.

        Returns:
            Conversation if found, None otherwise
        """
        row = self._conn.execute(
            "SELECT * FROM conversations WHERE conversation_id = ?", (conversation_id,)
        ).fetchone()
        if row is None:
            return None
        return Conversation.from_row(row)

    def get_conversation_titles(self, conversation_ids: Iterable[str]) -> dict[str, str]:
        """Map conversation ids to titles; unknown ids are left out."""
        ids = list(dict.fromkeys(conversation_ids))
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        cursor = self._conn.execute(
            f"SELECT conversation_id, title FROM conversations WHERE conversation_id IN ({placeholders})",
            ids,
        )
        return {row["conversation_id"]: row["title"] or "" for row in cursor}

    def _count(self, table: str) -> int:
        return self._conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    def count_conversations(self) -> int:
        return self._count("conversations")

    def count_messages(self) -> int:
        return self._count("messages")

    def count_commands(self) -> int:
        return self._count("commands")

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def __enter__(self) -> Self:
        """Enter context manager."""
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        """Exit context manager, closing database connection."""
        self.close()
