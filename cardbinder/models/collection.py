from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from cardbinder.models.card import HeldEntry


@dataclass(frozen=True)
class Collection:
    """
    A snapshot of one scope's card collection.

    Entries keep the order in which cards were first added. Snapshots are
    values: operations that change a collection return a new one.

    Entries produced by a merge are unique by card id. The single-add path
    may append a second entry for an id already held; lookups by id always
    resolve to the first such entry.
    """

    entries: tuple[HeldEntry, ...] = field(default_factory=tuple)

    @classmethod
    def of(cls, entries: Iterable[HeldEntry]) -> "Collection":
        return cls(entries=tuple(entries))

    @classmethod
    def from_documents(cls, documents: Iterable[dict[str, Any]] | None) -> "Collection":
        """Build a collection from the stored `cards` document list."""
        return cls.of(HeldEntry.from_document(doc) for doc in documents or ())

    def to_documents(self) -> list[dict[str, Any]]:
        """Serialize to the stored `cards` document list."""
        return [entry.to_document() for entry in self.entries]

    def __iter__(self) -> Iterator[HeldEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def index(self) -> dict[str, int]:
        """Map each card id to the position of its first entry."""
        positions: dict[str, int] = {}
        for position, entry in enumerate(self.entries):
            positions.setdefault(entry.card_id, position)
        return positions

    def total_cards(self) -> int:
        """Total number of cards in collection."""
        return sum(entry.count for entry in self.entries)

    def unique_cards(self) -> int:
        """Number of unique cards in collection."""
        return len({entry.card_id for entry in self.entries})
