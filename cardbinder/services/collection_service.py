"""
Collection service.

Orchestrates collection store calls around the merge engine. Each method
works on one explicit scope, runs under a deadline, and either commits its
work or rolls it back and raises. No partial collection is ever returned
from a failed call.
"""

import asyncio
import logging
from collections.abc import Awaitable, Sequence
from typing import TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cardbinder.config import settings
from cardbinder.db.operations import (
    append_entry,
    get_or_create_collection,
    lock_collection,
    remove_matching,
    replace_all,
    upsert_increment_batch,
)
from cardbinder.models.card import CardRef
from cardbinder.models.collection import Collection
from cardbinder.models.failure import StoreTimeoutError, StoreUnavailableError
from cardbinder.services.collection_merge import merge_cards

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CollectionService:
    """
    Collection operations for the HTTP layer.

    `fetch`, `remove_one` and `clear` are idempotent. `add_one` and
    `add_many` are additive: calling them again adds the cards again.

    Batch merges are linearized per scope: the snapshot is read with a row
    lock and written back with a version check, so a merge computed from a
    stale snapshot fails with StoreConflictError instead of losing increments.
    """

    def __init__(
        self,
        session: AsyncSession,
        timeout: float | None = None,
        refresh_after_merge: bool | None = None,
    ):
        self.session = session
        self.timeout = settings.store_timeout_seconds if timeout is None else timeout
        self.refresh_after_merge = (
            settings.refresh_after_merge if refresh_after_merge is None else refresh_after_merge
        )

    async def _run(self, operation: str, scope: str, work: Awaitable[T]) -> T:
        """Await store work under the deadline, then commit; roll back on any failure."""
        try:
            async with asyncio.timeout(self.timeout):
                result = await work
                await self.session.commit()
                return result
        except TimeoutError as e:
            await self.session.rollback()
            msg = f"No response from collection store within {self.timeout}s"
            raise StoreTimeoutError(operation, scope, msg) from e
        except SQLAlchemyError as e:
            # Commit failures; store functions translate their own errors
            await self.session.rollback()
            raise StoreUnavailableError(operation, scope, str(e)) from e
        except Exception:
            await self.session.rollback()
            raise

    async def fetch(self, scope: str) -> Collection:
        """Get the scope's collection, creating an empty one if needed."""
        return await self._run(
            "get_or_create", scope, get_or_create_collection(self.session, scope)
        )

    async def add_one(self, scope: str, card: CardRef) -> Collection:
        """Append a single card with count 1. Does not merge with held entries."""
        collection = await self._run(
            "append_entry", scope, append_entry(self.session, scope, card)
        )
        logger.info("Added card %s to scope %s", card.id, scope)
        return collection

    async def remove_one(self, scope: str, card_id: str) -> Collection:
        """Remove every entry for a card id; unknown ids are a no-op."""
        return await self._run(
            "remove_matching", scope, remove_matching(self.session, scope, card_id)
        )

    async def add_many(self, scope: str, cards: Sequence[CardRef]) -> Collection:
        """
        Merge a batch of cards into the scope's collection.

        Existing cards have their count incremented, new cards are appended
        in first-seen order. Duplicates inside the batch compound.
        """
        return await self._run("upsert_increment_batch", scope, self._merge(scope, cards))

    async def _merge(self, scope: str, cards: Sequence[CardRef]) -> Collection:
        snapshot, version = await lock_collection(
            self.session, scope, operation="upsert_increment_batch"
        )
        result = merge_cards(snapshot, cards)

        await upsert_increment_batch(
            self.session, scope, result.operations, expected_version=version
        )
        logger.info(
            "Merged %d cards into scope %s: %d inserted, %d incremented, %d held (%d unique)",
            len(cards),
            scope,
            result.inserted,
            result.incremented,
            result.collection.total_cards(),
            result.collection.unique_cards(),
        )

        if self.refresh_after_merge and result.operations:
            return await get_or_create_collection(self.session, scope)
        return result.collection

    async def clear(self, scope: str) -> Collection:
        """Remove every entry from the scope's collection."""
        collection = await self._run("replace_all", scope, replace_all(self.session, scope, []))
        logger.info("Cleared collection for scope %s", scope)
        return collection
