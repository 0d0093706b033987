"""Tests for the collection merge engine."""

import random
from collections import Counter

from cardbinder.models import CardRef, Collection, HeldEntry, IncrementOp, InsertOp
from cardbinder.services.collection_merge import merge_cards


def _counts(collection: Collection) -> list[tuple[str, int]]:
    return [(entry.card_id, entry.count) for entry in collection]


class TestMergeCards:
    def test_single_card_into_empty(self) -> None:
        """A new card is inserted with count 1."""
        result = merge_cards(Collection(), [CardRef("a")])

        assert _counts(result.collection) == [("a", 1)]
        assert result.operations == [InsertOp(card=CardRef("a"), count=1)]

    def test_duplicate_in_batch_increments(self) -> None:
        """A repeated id yields one insert then one increment, not two inserts."""
        result = merge_cards(Collection(), [CardRef("a"), CardRef("a")])

        assert _counts(result.collection) == [("a", 2)]
        assert result.operations == [
            InsertOp(card=CardRef("a"), count=1),
            IncrementOp(card_id="a", new_count=2),
        ]

    def test_existing_incremented_and_new_appended(self) -> None:
        """Held cards are incremented and unseen cards appended."""
        existing = Collection.of([HeldEntry(CardRef("a"), 1)])

        result = merge_cards(existing, [CardRef("a"), CardRef("b")])

        assert _counts(result.collection) == [("a", 2), ("b", 1)]
        assert result.operations == [
            IncrementOp(card_id="a", new_count=2),
            InsertOp(card=CardRef("b"), count=1),
        ]

    def test_order_of_existing_entries_preserved(self) -> None:
        """Held entries keep their positions; new ones go at the end."""
        existing = Collection.of(
            [HeldEntry(CardRef("c"), 1), HeldEntry(CardRef("a"), 3), HeldEntry(CardRef("b"), 1)]
        )

        result = merge_cards(existing, [CardRef("b"), CardRef("d"), CardRef("c")])

        assert _counts(result.collection) == [("c", 2), ("a", 3), ("b", 2), ("d", 1)]

    def test_increment_compounds_from_existing_count(self) -> None:
        """Each increment builds on the previous one."""
        existing = Collection.of([HeldEntry(CardRef("a"), 4)])

        result = merge_cards(existing, [CardRef("a")] * 3)

        assert _counts(result.collection) == [("a", 7)]
        assert [op.new_count for op in result.operations] == [5, 6, 7]

    def test_snapshot_not_mutated(self) -> None:
        """The input snapshot is left as it was."""
        existing = Collection.of([HeldEntry(CardRef("a"), 1)])

        merge_cards(existing, [CardRef("a"), CardRef("b")])

        assert _counts(existing) == [("a", 1)]

    def test_empty_batch(self) -> None:
        """An empty batch produces no operations."""
        existing = Collection.of([HeldEntry(CardRef("a"), 1)])

        result = merge_cards(existing, [])

        assert result.operations == []
        assert result.collection == existing

    def test_increment_keeps_held_attributes(self) -> None:
        """Attributes of the held entry win over those of the incoming card."""
        existing = Collection.of([HeldEntry(CardRef("a", {"name": "Old"}), 1)])

        result = merge_cards(existing, [CardRef("a", {"name": "New"})])

        assert result.collection.entries == (HeldEntry(CardRef("a", {"name": "Old"}), 2),)

    def test_new_card_keeps_its_attributes(self) -> None:
        """An inserted card carries the attributes it arrived with."""
        result = merge_cards(Collection(), [CardRef("a", {"set": "LOB"})])

        assert result.collection.to_documents() == [{"set": "LOB", "id": "a", "count": 1}]

    def test_duplicates_in_snapshot_increment_first_entry(self) -> None:
        """Only the first of several held entries for an id is incremented."""
        existing = Collection.of([HeldEntry(CardRef("a"), 1), HeldEntry(CardRef("a"), 1)])

        result = merge_cards(existing, [CardRef("a")])

        assert _counts(result.collection) == [("a", 2), ("a", 1)]

    def test_summary_counts(self) -> None:
        """Inserted and incremented tallies match the operations."""
        existing = Collection.of([HeldEntry(CardRef("a"), 1)])

        result = merge_cards(existing, [CardRef("a"), CardRef("b"), CardRef("b")])

        assert result.inserted == 1
        assert result.incremented == 2


class TestMergeInvariants:
    def test_random_batches_keep_counts_positive_and_ids_unique(self) -> None:
        """Random merges keep ids unique, counts positive and totals additive."""
        rng = random.Random(1234)
        ids = [f"card-{n}" for n in range(8)]

        for _ in range(200):
            seed_ids = rng.sample(ids, rng.randint(0, len(ids)))
            existing = Collection.of(HeldEntry(CardRef(i), rng.randint(1, 4)) for i in seed_ids)
            batch = [CardRef(rng.choice(ids)) for _ in range(rng.randint(0, 12))]

            result = merge_cards(existing, batch)

            card_ids = [entry.card_id for entry in result.collection]
            assert len(card_ids) == len(set(card_ids))
            assert all(entry.count >= 1 for entry in result.collection)
            assert card_ids[: len(seed_ids)] == seed_ids
            assert result.collection.total_cards() == existing.total_cards() + len(batch)

            expected = Counter(dict(_counts(existing)))
            expected.update(card.id for card in batch)
            assert dict(_counts(result.collection)) == dict(expected)
