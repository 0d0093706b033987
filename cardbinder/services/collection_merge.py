"""
Collection merge engine.

Reconciles a batch of incoming card references against a collection
snapshot. For each incoming card, in input order, the engine either
increments the held entry for that id or appends a new entry with count 1,
and records the matching store operation.

INVARIANT: the increment-vs-insert decision is made against the WORKING
index, which already contains every card inserted earlier in the same batch.
A card id that appears twice in one batch therefore yields one insert
followed by one increment, never two inserts.

The engine performs no I/O and never mutates the snapshot it is given.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field

from cardbinder.models.card import CardRef, HeldEntry
from cardbinder.models.collection import Collection
from cardbinder.models.operations import CollectionOp, IncrementOp, InsertOp


@dataclass(frozen=True)
class MergeResult:
    """Outcome of merging a batch into a collection."""

    operations: list[CollectionOp] = field(default_factory=list)
    """Store operations to persist, in the order they were decided."""

    collection: Collection = field(default_factory=Collection)
    """The collection as it stands once every operation is applied."""

    @property
    def inserted(self) -> int:
        """Number of new entries appended by the merge."""
        return sum(1 for op in self.operations if isinstance(op, InsertOp))

    @property
    def incremented(self) -> int:
        """Number of increments applied by the merge."""
        return sum(1 for op in self.operations if isinstance(op, IncrementOp))


def merge_cards(existing: Collection, incoming: Sequence[CardRef]) -> MergeResult:
    """
    Merge a batch of card references into a collection snapshot.

    Runs in O(n + m) for n existing entries and m incoming cards. If the
    snapshot holds several entries for one id, increments go to the first.

    Args:
        existing: Current collection snapshot
        incoming: Cards to add, in the order they were received

    Returns:
        MergeResult with the operation list and the resulting collection
    """
    entries: list[HeldEntry] = list(existing.entries)
    index = existing.index()
    operations: list[CollectionOp] = []

    for card in incoming:
        position = index.get(card.id)

        if position is not None:
            entry = entries[position].incremented()
            entries[position] = entry
            operations.append(IncrementOp(card_id=card.id, new_count=entry.count))
        else:
            index[card.id] = len(entries)
            entries.append(HeldEntry(card=card, count=1))
            operations.append(InsertOp(card=card, count=1))

    return MergeResult(operations=operations, collection=Collection.of(entries))
