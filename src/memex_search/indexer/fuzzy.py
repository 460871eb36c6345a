"""In-memory typo-tolerant indexes built from a store snapshot."""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

from thefuzz import fuzz

from memex_search.config import FuzzyConfig
from memex_search.indexer.store import DEFAULT_SNAPSHOT_MESSAGE_LIMIT, SchemaStore
from memex_search.logging import get_logger
from memex_search.models import Command, Conversation, Message

logger = get_logger("fuzzy")

T = TypeVar("T")

CONVERSATION_KEYS = {"title": 1.0, "summary": 0.9, "project": 0.9}
MESSAGE_KEYS = {"content": 1.0}
COMMAND_KEYS = {"command": 1.0, "context": 0.9}


def similarity(needle: str, value: str) -> int:
    """Score 0-100 of how well ``needle`` matches ``value``.

    A query no longer than the value may match any part of it
    (``fuzz.partial_ratio``). A longer query is compared whole
    (``fuzz.ratio``), so a short value like ``ls`` that merely occurs inside
    the query does not score as a perfect match.
    """
    if len(needle) <= len(value):
        return fuzz.partial_ratio(needle, value)
    return fuzz.ratio(needle, value)


@dataclass
class FuzzyMatch(Generic[T]):
    item: T
    score: float  # 0.0 is a perfect match
    key: str  # Field that produced the best score


class FuzzyIndex(Generic[T]):
    """Approximate matcher over a fixed list of items.

    Each item is scored on its configured keys with ``similarity``;
    the best key wins. A key's weight scales its similarity, so a weight
    below 1.0 makes matches on that field rank behind equal matches on
    fully weighted fields.
    """

    def __init__(
        self,
        items: Sequence[T],
        keys: Mapping[str, float],
        threshold: float,
        getter: Callable[[T, str], str | None] = getattr,
    ) -> None:
        """Initialize the index.

        Args:
            items: Snapshot of items to match against
            keys: Field name -> weight in (0, 1]
            threshold: Maximum distance (0..1) for an item to match; lower
                       values are stricter
            getter: Reads a field from an item
        """
        self._items = list(items)
        self._keys = dict(keys)
        self._threshold = threshold
        # Lowercase field values once; the snapshot never changes.
        self._fields = [
            {key: (getter(item, key) or "").lower() for key in self._keys} for item in self._items
        ]

    def __len__(self) -> int:
        return len(self._items)

    @property
    def threshold(self) -> float:
        return self._threshold

    def search(
        self, query: str, limit: int = 10, where: Callable[[T], bool] | None = None
    ) -> list[FuzzyMatch[T]]:
        """Find items approximately matching ``query``.

        Args:
            query: Free text
            limit: Maximum number of matches
            where: Only items for which this returns True are considered

        Returns:
            Up to ``limit`` matches ordered by ascending distance
        """
        needle = (query or "").strip().lower()
        if not needle:
            return []

        matches: list[FuzzyMatch[T]] = []
        for item, fields in zip(self._items, self._fields):
            if where is not None and not where(item):
                continue
            best_score = 1.0
            best_key = ""
            for key, weight in self._keys.items():
                value = fields[key]
                if not value:
                    continue
                score = 1.0 - weight * similarity(needle, value) / 100.0
                if score < best_score:
                    best_score = score
                    best_key = key
            if best_key and best_score <= self._threshold:
                matches.append(FuzzyMatch(item=item, score=round(best_score, 4), key=best_key))

        matches.sort(key=lambda m: m.score)
        return matches[:limit]


@dataclass
class FuzzyIndexSet:
    """The three per-entity fuzzy indexes of one index build."""

    conversations: FuzzyIndex[Conversation]
    messages: FuzzyIndex[Message]
    commands: FuzzyIndex[Command]

    @classmethod
    def from_store(
        cls,
        store: SchemaStore,
        config: FuzzyConfig | None = None,
        message_limit: int = DEFAULT_SNAPSHOT_MESSAGE_LIMIT,
    ) -> "FuzzyIndexSet":
        """Snapshot every table of ``store`` into fresh fuzzy indexes."""
        if config is None:
            config = FuzzyConfig()

        index_set = cls(
            conversations=FuzzyIndex(
                store.get_all_conversations(), CONVERSATION_KEYS, config.conversation_threshold
            ),
            messages=FuzzyIndex(
                store.get_all_messages(limit=message_limit), MESSAGE_KEYS, config.message_threshold
            ),
            commands=FuzzyIndex(
                store.get_all_commands(), COMMAND_KEYS, config.command_threshold
            ),
        )
        logger.info(
            "Built fuzzy indexes: conversations=%d messages=%d commands=%d",
            len(index_set.conversations),
            len(index_set.messages),
            len(index_set.commands),
        )
        return index_set
