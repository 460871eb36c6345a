"""Batched ingestion of the conversation archive into the schema store."""

import sqlite3
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from memex_search.errors import IndexBuildError
from memex_search.indexer.archive import (
    ParsedConversation,
    list_archive_files,
    load_conversation_file,
    parse_conversation,
)
from memex_search.indexer.store import SchemaStore
from memex_search.logging import get_logger

logger = get_logger("pipeline")

DEFAULT_BATCH_SIZE = 50

ProgressCallback = Callable[[int, int], None]


@dataclass
class FileFailure:
    """An archive file skipped during a build."""

    path: str
    error: str


@dataclass
class BuildReport:
    """Outcome of one index build."""

    files_total: int = 0
    files_indexed: int = 0
    conversations: int = 0
    messages: int = 0
    commands: int = 0
    failures: list[FileFailure] = field(default_factory=list)

    @property
    def files_failed(self) -> int:
        return len(self.failures)

    def to_dict(self) -> dict:
        return {
            "files_total": self.files_total,
            "files_indexed": self.files_indexed,
            "files_failed": self.files_failed,
            "conversations": self.conversations,
            "messages": self.messages,
            "commands": self.commands,
            "failures": [{"file": f.path, "error": f.error} for f in self.failures],
        }


def iter_batches(files: list[Path], batch_size: int) -> list[list[Path]]:
    """Split files into consecutive batches of at most ``batch_size``."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    return [files[i : i + batch_size] for i in range(0, len(files), batch_size)]


def process_file(path: Path) -> ParsedConversation:
    """Read one archive file and derive its rows.

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is not valid JSON or has an unexpected shape
    """
    data = load_conversation_file(path)
    return parse_conversation(path, data)


def process_batch(files: list[Path]) -> tuple[list[ParsedConversation], list[FileFailure]]:
    """Parse a batch of archive files, isolating per-file failures.

    A later file carrying the same conversation_id as an earlier one in the
    batch replaces it.

    Returns:
        Tuple of (parsed conversations, failures)
    """
    parsed: dict[str, ParsedConversation] = {}
    failures: list[FileFailure] = []

    for path in files:
        try:
            result = process_file(path)
        except (OSError, ValueError) as e:
            logger.warning("Skipping unreadable conversation file: path=%s error=%s", path, e)
            failures.append(FileFailure(path=path.name, error=str(e)))
            continue
        except Exception as e:
            logger.exception("Error processing conversation file: path=%s", path)
            failures.append(FileFailure(path=path.name, error=str(e)))
            continue

        conversation_id = result.conversation.conversation_id
        if conversation_id in parsed:
            logger.info(
                "Duplicate conversation id, keeping latest file: conversation=%s path=%s",
                conversation_id,
                path,
            )
        parsed[conversation_id] = result

    return list(parsed.values()), failures


def write_batch(store: SchemaStore, parsed: list[ParsedConversation]) -> tuple[int, int, int]:
    """Write a parsed batch through the store as a single transaction.

    Returns:
        Tuple of (conversations, messages, commands) written
    """
    with store.transaction():
        conversations = store.upsert_conversations(p.conversation for p in parsed)
        messages = store.upsert_messages(m for p in parsed for m in p.messages)
        commands = store.upsert_commands(c for p in parsed for c in p.commands)
    return conversations, messages, commands


def build_index(
    store: SchemaStore,
    archive_path: Path,
    batch_size: int = DEFAULT_BATCH_SIZE,
    on_progress: ProgressCallback | None = None,
) -> BuildReport:
    """Rebuild the store from the archive.

    The store is cleared, then archive files are parsed and written batch by
    batch. Unreadable files are skipped and reported; failing to list the
    archive or to write a batch aborts the build.

    Args:
        store: Store to rebuild
        archive_path: Directory of conversation JSON files
        batch_size: Files per batch
        on_progress: Called with (files processed, files total) after each batch

    Returns:
        BuildReport with counts and skipped files

    Raises:
        IndexBuildError: If the archive cannot be listed or a batch cannot be written
    """
    try:
        files = list_archive_files(archive_path)
    except OSError as e:
        raise IndexBuildError(f"Cannot read conversation archive {archive_path}: {e}") from e

    batches = iter_batches(files, batch_size)
    report = BuildReport(files_total=len(files))

    logger.info("Building search index: archive=%s files=%d", archive_path, len(files))
    store.clear()

    processed = 0
    for number, batch in enumerate(batches, start=1):
        parsed, failures = process_batch(batch)
        report.failures.extend(failures)

        try:
            conversations, messages, commands = write_batch(store, parsed)
        except sqlite3.Error as e:
            raise IndexBuildError(f"Failed to write batch {number}: {e}") from e

        report.files_indexed += len(batch) - len(failures)
        report.conversations += conversations
        report.messages += messages
        report.commands += commands

        processed += len(batch)
        logger.info("Indexed %d/%d conversations", processed, len(files))
        if on_progress is not None:
            on_progress(processed, len(files))

    if report.failures:
        logger.warning("Skipped %d unreadable conversation files", report.files_failed)

    return report
