"""
Entry-level operations produced by a batch merge and applied by the store.
"""

from dataclasses import dataclass

from cardbinder.models.card import CardRef


@dataclass(frozen=True)
class IncrementOp:
    """Set the count of an already-held card to `new_count`."""

    card_id: str
    new_count: int


@dataclass(frozen=True)
class InsertOp:
    """Append a card not yet held, with `count` copies."""

    card: CardRef
    count: int = 1

    @property
    def card_id(self) -> str:
        return self.card.id


CollectionOp = IncrementOp | InsertOp
