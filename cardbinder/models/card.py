"""
Card identity model.

A CardRef names a card by id and carries arbitrary attributes along with it.
A HeldEntry pairs a CardRef with the number of copies owned.

Both serialize to the stored document form {"id": ..., "count": ..., **attributes}.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from cardbinder.models.failure import CardValidationError

# Keys owned by the entry document itself, never kept as attributes
RESERVED_KEYS = frozenset({"id", "count"})


@dataclass(frozen=True)
class CardRef:
    """
    A reference to a card.

    Identity is `id`. Attributes are passenger data and are never inspected
    when deciding whether two references name the same card.
    """

    id: str
    attributes: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise CardValidationError(f"Card id must be a non-empty string, got {self.id!r}")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CardRef":
        """Build a card reference from a request or document mapping."""
        if "id" not in data:
            raise CardValidationError("Card is missing required field 'id'")
        attributes = {k: v for k, v in data.items() if k not in RESERVED_KEYS}
        return cls(id=data["id"], attributes=attributes)


@dataclass(frozen=True)
class HeldEntry:
    """A card in the collection together with the number of copies owned."""

    card: CardRef
    count: int = 1

    def __post_init__(self) -> None:
        if isinstance(self.count, bool) or not isinstance(self.count, int) or self.count < 1:
            raise CardValidationError(
                f"Count for card '{self.card.id}' must be a positive integer, got {self.count!r}"
            )

    @property
    def card_id(self) -> str:
        return self.card.id

    def incremented(self, by: int = 1) -> "HeldEntry":
        """Return a copy of this entry with its count raised."""
        return replace(self, count=self.count + by)

    def to_document(self) -> dict[str, Any]:
        """Serialize to the stored form; id and count win over attributes."""
        return {**self.card.attributes, "id": self.card.id, "count": self.count}

    @classmethod
    def from_document(cls, data: Mapping[str, Any]) -> "HeldEntry":
        """
        Deserialize a stored entry.

        A missing or zero count is read as a single copy.
        """
        count = data.get("count") or 1
        return cls(card=CardRef.from_mapping(data), count=int(count))
