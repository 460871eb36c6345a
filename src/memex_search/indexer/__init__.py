"""Indexing and retrieval engine for the conversation archive."""

from .classifier import classify_content
from .engine import SearchIndex
from .extractor import classify_command, context_around, extract_commands, looks_like_command
from .fuzzy import FuzzyIndex, FuzzyIndexSet
from .pipeline import BuildReport, FileFailure, build_index
from .store import SchemaStore, to_match_query

__all__ = [
    "BuildReport",
    "FileFailure",
    "FuzzyIndex",
    "FuzzyIndexSet",
    "SchemaStore",
    "SearchIndex",
    "build_index",
    "classify_command",
    "classify_content",
    "context_around",
    "extract_commands",
    "looks_like_command",
    "to_match_query",
]
