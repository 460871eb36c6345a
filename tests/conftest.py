"""Shared fixtures for memex-search tests."""

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from memex_search.config import ArchiveConfig, IndexConfig
from memex_search.indexer.engine import SearchIndex


def conversation_document(
    conversation_id: str,
    title: str = "",
    summary: str = "",
    messages: list[dict[str, Any]] | None = None,
    created_at: str = "2024-05-01T10:00:00Z",
    project: str | None = None,
) -> dict[str, Any]:
    """Build an archive document in the on-disk format."""
    messages = messages or []
    roles = [m.get("role") for m in messages if isinstance(m, dict)]
    metadata: dict[str, Any] = {
        "conversation_id": conversation_id,
        "created_at": created_at,
        "updated_at": created_at,
        "model": "memex-1",
        "user_turn_count": roles.count("user"),
        "assistant_turn_count": roles.count("assistant"),
    }
    if project is not None:
        metadata["project"] = project
    return {"title": title, "summary": summary, "metadata": metadata, "messages": messages}


@pytest.fixture
def make_document() -> Callable[..., dict[str, Any]]:
    """Return the archive document builder."""
    return conversation_document


@pytest.fixture
def archive_path(tmp_path: Path) -> Path:
    """Provide an empty conversation archive directory."""
    path = tmp_path / "history"
    path.mkdir()
    return path


@pytest.fixture
def workspace_path(tmp_path: Path) -> Path:
    """Provide an empty project workspace directory."""
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def write_conversation(archive_path: Path) -> Callable[..., Path]:
    """Return a helper that writes one conversation file into the archive."""

    def write(conversation_id: str, filename: str | None = None, **kwargs: Any) -> Path:
        path = archive_path / (filename or f"{conversation_id}.json")
        path.write_text(json.dumps(conversation_document(conversation_id, **kwargs)))
        return path

    return write


@pytest.fixture
def sample_archive(write_conversation: Callable[..., Path]) -> None:
    """Write a small archive covering commands, projects and dates."""
    write_conversation(
        "c1",
        title="Deploy to Firebase",
        summary="Setting up firebase hosting for the web app",
        project="webapp",
        created_at="2024-03-10T09:00:00Z",
        messages=[
            {"role": "user", "content": "How do I deploy my site to firebase?"},
            {
                "role": "assistant",
                "content": "Run `npm install -g firebase-tools` then `firebase login`",
            },
        ],
    )
    write_conversation(
        "c2",
        title="Docker networking",
        summary="Containers cannot reach each other",
        project="infra",
        created_at="2024-06-15T12:00:00Z",
        messages=[
            {"role": "user", "content": "My containers cannot talk to each other"},
            {
                "role": "assistant",
                "content": (
                    "Create a network first:\n"
                    "$ docker network create backend\n"
                    "Then attach both containers."
                ),
            },
        ],
    )
    write_conversation(
        "c3",
        title="Python packaging",
        summary="Publishing a library with setuptools",
        created_at="2024-09-01T08:30:00Z",
        messages=[
            {"role": "user", "content": "How do I build a wheel for my package?"},
            {"role": "assistant", "content": "Use `python -m build` from the project root."},
        ],
    )


@pytest.fixture
def index() -> SearchIndex:
    """Provide an unbuilt in-memory search index."""
    search_index = SearchIndex(IndexConfig())
    yield search_index
    search_index.close()


@pytest.fixture
def built_index(index: SearchIndex, archive_path: Path, sample_archive: None) -> SearchIndex:
    """Provide an index built from the sample archive."""
    index.build(archive_path)
    return index


@pytest.fixture
def archive_config(archive_path: Path, workspace_path: Path) -> ArchiveConfig:
    return ArchiveConfig(history_path=archive_path, workspace_path=workspace_path)
