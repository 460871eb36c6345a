"""Query engine over the schema store and fuzzy snapshot."""

import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any, Self

from memex_search.config import IndexConfig
from memex_search.errors import ConversationNotFoundError, IndexNotInitializedError
from memex_search.indexer.fuzzy import FuzzyIndex, FuzzyIndexSet
from memex_search.indexer.pipeline import BuildReport, ProgressCallback, build_index
from memex_search.indexer.store import SchemaStore, to_match_query
from memex_search.logging import get_logger
from memex_search.models import COMMAND_TYPES, Command, Conversation, SearchResult

logger = get_logger("engine")


def _check_limit(limit: int) -> None:
    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")


class SearchIndex:
    """Searchable index of the conversation archive.

    Lifecycle: construct (opens the store), ``build()`` or ``attach()``,
    query, ``close()``. Queries issued before a successful build or attach
    raise IndexNotInitializedError.

    Builds and reads share one lock, so a reader never sees the store between
    the clear and the final batch of a rebuild.
    """

    def __init__(self, config: IndexConfig | None = None) -> None:
        self._config = config or IndexConfig()
        self._store = SchemaStore(self._config.db_path)
        self._lock = threading.RLock()
        self._fuzzy: FuzzyIndexSet | None = None
        self._initialized = False

    @property
    def store(self) -> SchemaStore:
        return self._store

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def build(self, archive_path: Path, on_progress: ProgressCallback | None = None) -> BuildReport:
        """Rebuild the index from the archive.

        The index stays uninitialized if the build fails; the caller must
        retry the full build.

        Raises:
            IndexBuildError: If the archive cannot be listed or a batch write fails
        """
        with self._lock:
            self._initialized = False
            self._fuzzy = None

            report = build_index(
                self._store,
                archive_path,
                batch_size=self._config.batch_size,
                on_progress=on_progress,
            )
            self._fuzzy = self._snapshot()
            self._store.mark_build_complete()
            self._initialized = True

        logger.info(
            "Search index built: conversations=%d messages=%d commands=%d skipped=%d",
            report.conversations,
            report.messages,
            report.commands,
            report.files_failed,
        )
        return report

    def attach(self) -> bool:
        """Adopt a completed build already present in a file-backed store.

        Returns:
            True if the index is now initialized
        """
        with self._lock:
            if self._initialized:
                return True
            if not self._store.is_build_complete():
                return False
            self._fuzzy = self._snapshot()
            self._initialized = True
        logger.info("Attached to existing search index: db=%s", self._store.db_path)
        return True

    def _snapshot(self) -> FuzzyIndexSet:
        return FuzzyIndexSet.from_store(
            self._store,
            self._config.fuzzy,
            message_limit=self._config.snapshot_message_limit,
        )

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise IndexNotInitializedError()

    # -- full-text search -------------------------------------------------

    def search_conversations(
        self,
        query: str,
        project: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
        limit: int = 10,
    ) -> list[SearchResult]:
        """Full-text search over conversation titles, summaries and projects.

        Args:
            query: Free text
            project: Only conversations whose project equals this value
            date_from: Inclusive lower bound on created_at (lexical)
            date_to: Inclusive upper bound on created_at (lexical)
            limit: Maximum number of results

        Returns:
            Results ordered by ascending rank (lower is better)
        """
        _check_limit(limit)
        with self._lock:
            self._require_initialized()
            match = to_match_query(query)
            if match is None:
                return []
            filters = {"project": project, "date_from": date_from, "date_to": date_to}
            return self._store.query_conversations(match, limit=limit, filters=filters)

    def search_commands(
        self,
        query: str,
        command_type: str | None = None,
        limit: int = 10,
    ) -> list[SearchResult]:
        """Full-text search over extracted commands and their context.

        Args:
            query: Free text
            command_type: cli, code or config; None or "any" searches all types
            limit: Maximum number of results

        Returns:
            Results ordered by ascending rank, then descending confidence
        """
        _check_limit(limit)
        if command_type not in (None, "any", *COMMAND_TYPES):
            raise ValueError(f"Unknown command type: {command_type}")
        with self._lock:
            self._require_initialized()
            match = to_match_query(query)
            if match is None:
                return []
            return self._store.query_commands(
                match, limit=limit, filters={"command_type": command_type}
            )

    def search_messages(
        self,
        query: str,
        conversation_id: str | None = None,
        role: str | None = None,
        limit: int = 10,
    ) -> list[SearchResult]:
        """Full-text search over message content longer than ten characters."""
        _check_limit(limit)
        with self._lock:
            self._require_initialized()
            match = to_match_query(query)
            if match is None:
                return []
            filters = {"conversation_id": conversation_id, "role": role}
            return self._store.query_messages(match, limit=limit, filters=filters)

    # -- fuzzy search -----------------------------------------------------

    def _fuzzy_search(
        self, kind: str, query: str, limit: int, where: Callable[[Any], bool] | None = None
    ) -> list[SearchResult]:
        _check_limit(limit)
        with self._lock:
            self._require_initialized()
            if self._fuzzy is None:
                raise IndexNotInitializedError()
            index: FuzzyIndex = getattr(self._fuzzy, f"{kind}s")
            matches = index.search(query, limit=limit, where=where)
        return [SearchResult(kind=kind, item=m.item, score=m.score) for m in matches]

    def fuzzy_search_commands(
        self, query: str, command_type: str | None = None, limit: int = 10
    ) -> list[SearchResult]:
        """Typo-tolerant command search; scores are distances, lower is better.

        ``command_type`` restricts matches before the limit is applied; None or
        "any" searches all types.
        """
        if command_type not in (None, "any", *COMMAND_TYPES):
            raise ValueError(f"Unknown command type: {command_type}")
        def of_type(cmd: Command) -> bool:
            return cmd.command_type == command_type

        where = None if command_type in (None, "any") else of_type
        return self._fuzzy_search("command", query, limit, where)

    def fuzzy_search_conversations(self, query: str, limit: int = 10) -> list[SearchResult]:
        return self._fuzzy_search("conversation", query, limit)

    def fuzzy_search_messages(self, query: str, limit: int = 10) -> list[SearchResult]:
        return self._fuzzy_search("message", query, limit)

    # -- lookups ----------------------------------------------------------

    def get_stats(self) -> dict[str, int]:
        """Count the rows currently persisted."""
        with self._lock:
            self._require_initialized()
            return {
                "conversations": self._store.count_conversations(),
                "messages": self._store.count_messages(),
                "commands": self._store.count_commands(),
            }

    def get_conversation(self, conversation_id: str) -> Conversation:
        """Look up an indexed conversation.

        Raises:
            IndexNotInitializedError: If no build has completed
            ConversationNotFoundError: If the id is not indexed
        """
        with self._lock:
            self._require_initialized()
            conversation = self._store.get_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    def conversation_titles(self, conversation_ids: Iterable[str]) -> dict[str, str]:
        with self._lock:
            self._require_initialized()
            return self._store.get_conversation_titles(conversation_ids)

    def close(self) -> None:
        """Close the underlying store and drop the fuzzy snapshot."""
        with self._lock:
            self._initialized = False
            self._fuzzy = None
            self._store.close()

    def __enter__(self) -> Self:
        """Enter context manager."""
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        """Exit context manager, closing the store."""
        self.close()
