"""
Collection store.

Async functions that read and write the single collection document owned
by a scope. Every write reads the current document (row-locked where the
backend supports it), rewrites the `cards` list, and saves it with a
compare-and-swap on `version`. A lost race surfaces as StoreConflictError;
any other database failure surfaces as StoreUnavailableError, and a stored
document that cannot be decoded as StoreCorruptionError. Nothing is
retried here.
"""

import logging
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from sqlalchemy import Row, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cardbinder.models.card import CardRef, HeldEntry
from cardbinder.models.collection import Collection
from cardbinder.models.db import UserCollectionDB
from cardbinder.models.failure import (
    CardValidationError,
    StoreConflictError,
    StoreCorruptionError,
    StoreError,
    StoreUnavailableError,
)
from cardbinder.models.operations import CollectionOp, IncrementOp, InsertOp

logger = logging.getLogger(__name__)


@contextmanager
def _store_errors(operation: str, scope: str) -> Iterator[None]:
    """Translate database exceptions into StoreError subclasses."""
    try:
        yield
    except StoreError:
        raise
    except IntegrityError as e:
        raise StoreConflictError(operation, scope, str(e.orig)) from e
    except SQLAlchemyError as e:
        raise StoreUnavailableError(operation, scope, str(e)) from e


# --- Low-level document access ---


async def _read_row(session: AsyncSession, scope: str, *, for_update: bool = False) -> Row | None:
    stmt = select(UserCollectionDB.cards, UserCollectionDB.version).where(
        UserCollectionDB.scope == scope
    )
    if for_update:
        # Ignored by backends without row locks; the version check covers those.
        stmt = stmt.with_for_update()
    return (await session.execute(stmt)).one_or_none()


def _decode(documents: Any, scope: str, operation: str) -> Collection:
    """Decode a stored `cards` document, reporting bad data as a store fault."""
    try:
        return Collection.from_documents(documents)
    except CardValidationError as e:
        msg = f"Stored collection for scope '{scope}' is unreadable: {e.detail}"
        raise StoreCorruptionError(operation, scope, msg) from e
    except (AttributeError, TypeError, ValueError) as e:
        msg = f"Stored collection for scope '{scope}' is unreadable: {e}"
        raise StoreCorruptionError(operation, scope, msg) from e


async def _read(
    session: AsyncSession, scope: str, operation: str, *, for_update: bool = False
) -> tuple[Collection, int] | None:
    row = await _read_row(session, scope, for_update=for_update)
    if row is None:
        return None
    return _decode(row.cards, scope, operation), row.version


async def _insert_if_absent(session: AsyncSession, scope: str) -> bool:
    """
    Create an empty collection row for a scope unless one exists.

    Uses INSERT .. ON CONFLICT DO NOTHING where the dialect supports it, so
    concurrent first calls converge on one row. Returns True if created.
    """
    values = {"scope": scope, "cards": [], "version": 0}
    dialect = session.get_bind().dialect.name

    if dialect == "postgresql":
        stmt = postgresql.insert(UserCollectionDB).values(**values)
        result = await session.execute(stmt.on_conflict_do_nothing(index_elements=["scope"]))
    elif dialect == "sqlite":
        stmt = sqlite.insert(UserCollectionDB).values(**values)
        result = await session.execute(stmt.on_conflict_do_nothing(index_elements=["scope"]))
    else:
        if await _read_row(session, scope) is not None:
            return False
        # A concurrent creator makes this raise IntegrityError (write conflict)
        result = await session.execute(insert(UserCollectionDB).values(**values))

    # rowcount is available on INSERT results; type stubs incomplete for async
    created = bool(result.rowcount)  # type: ignore[attr-defined]
    if created:
        logger.debug("Created empty collection for scope %s", scope)
    return created


async def _compare_and_swap(
    session: AsyncSession,
    scope: str,
    operation: str,
    documents: list[dict[str, Any]],
    expected_version: int,
) -> None:
    result = await session.execute(
        update(UserCollectionDB)
        .where(
            UserCollectionDB.scope == scope,
            UserCollectionDB.version == expected_version,
        )
        .values(cards=documents, version=expected_version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:  # type: ignore[attr-defined]
        msg = f"Collection for scope '{scope}' changed since version {expected_version}"
        raise StoreConflictError(operation, scope, msg)


async def _rewrite(
    session: AsyncSession,
    scope: str,
    operation: str,
    mutate: Callable[[Collection], Collection],
    expected_version: int | None = None,
) -> Collection:
    """Read-modify-write the collection document for a scope."""
    await _insert_if_absent(session, scope)
    current, version = await _require(session, scope, operation, for_update=True)

    if expected_version is not None and version != expected_version:
        msg = f"Expected version {expected_version} for scope '{scope}', found {version}"
        raise StoreConflictError(operation, scope, msg)

    updated = mutate(current)
    if updated == current:
        return current

    await _compare_and_swap(session, scope, operation, updated.to_documents(), version)
    logger.debug(
        "%s on scope %s: %d -> %d entries (version %d)",
        operation,
        scope,
        len(current),
        len(updated),
        version + 1,
    )
    return updated


async def _require(
    session: AsyncSession, scope: str, operation: str, *, for_update: bool = False
) -> tuple[Collection, int]:
    loaded = await load_collection(session, scope, operation=operation, for_update=for_update)
    if loaded is None:
        msg = f"Collection for scope '{scope}' not found after creation"
        raise StoreConflictError(operation, scope, msg)
    return loaded


# --- Collection Operations ---


async def load_collection(
    session: AsyncSession, scope: str, *, operation: str = "load", for_update: bool = False
) -> tuple[Collection, int] | None:
    """
    Read a scope's collection and its version without creating it.

    Returns None if no collection exists for this scope. A stored document
    that cannot be decoded raises StoreCorruptionError.
    """
    with _store_errors(operation, scope):
        return await _read(session, scope, operation, for_update=for_update)


async def get_or_create_collection(session: AsyncSession, scope: str) -> Collection:
    """
    Get the current collection, durably creating an empty one if absent.
    """
    with _store_errors("get_or_create", scope):
        await _insert_if_absent(session, scope)
        collection, _ = await _require(session, scope, "get_or_create")
        return collection


async def lock_collection(
    session: AsyncSession, scope: str, operation: str = "get_or_create"
) -> tuple[Collection, int]:
    """
    Get (creating if absent) the collection and its version for a read-modify-write.

    The row stays locked until the session's transaction ends on backends
    that support SELECT .. FOR UPDATE. `operation` names the caller's
    write in any error raised.
    """
    with _store_errors(operation, scope):
        await _insert_if_absent(session, scope)
        return await _require(session, scope, operation, for_update=True)


async def append_entry(session: AsyncSession, scope: str, card: CardRef) -> Collection:
    """
    Append a new entry with count 1.

    Does not deduplicate: a card id already held gains a second entry.
    """

    def mutate(collection: Collection) -> Collection:
        return Collection.of([*collection.entries, HeldEntry(card=card, count=1)])

    with _store_errors("append_entry", scope):
        return await _rewrite(session, scope, "append_entry", mutate)


async def remove_matching(session: AsyncSession, scope: str, card_id: str) -> Collection:
    """
    Remove every entry for a card id.

    Removing an id that is not held leaves the collection unchanged.
    """

    def mutate(collection: Collection) -> Collection:
        return Collection.of(entry for entry in collection if entry.card_id != card_id)

    with _store_errors("remove_matching", scope):
        return await _rewrite(session, scope, "remove_matching", mutate)


async def replace_all(
    session: AsyncSession, scope: str, entries: Sequence[HeldEntry]
) -> Collection:
    """
    Overwrite the stored entries for a scope.

    The current document is never decoded, so a collection holding
    unreadable entries can still be replaced.
    """
    replacement = Collection.of(entries)
    documents = replacement.to_documents()

    with _store_errors("replace_all", scope):
        await _insert_if_absent(session, scope)
        row = await _read_row(session, scope, for_update=True)
        if row is None:
            msg = f"Collection for scope '{scope}' not found after creation"
            raise StoreConflictError("replace_all", scope, msg)
        if row.cards == documents:
            return replacement

        await _compare_and_swap(session, scope, "replace_all", documents, row.version)
        logger.debug(
            "replace_all on scope %s: %d entries (version %d)",
            scope,
            len(replacement),
            row.version + 1,
        )
        return replacement


def _apply_operations(
    collection: Collection, operations: Sequence[CollectionOp], scope: str
) -> Collection:
    entries = list(collection.entries)
    index = collection.index()

    for op in operations:
        if isinstance(op, IncrementOp):
            position = index.get(op.card_id)
            if position is None:
                msg = f"Cannot increment '{op.card_id}': not in collection"
                raise StoreConflictError("upsert_increment_batch", scope, msg)
            try:
                entries[position] = HeldEntry(card=entries[position].card, count=op.new_count)
            except CardValidationError as e:
                raise StoreConflictError("upsert_increment_batch", scope, e.detail) from e
        elif isinstance(op, InsertOp):
            if op.card_id in index:
                msg = f"Cannot insert '{op.card_id}': already in collection"
                raise StoreConflictError("upsert_increment_batch", scope, msg)
            index[op.card_id] = len(entries)
            entries.append(HeldEntry(card=op.card, count=op.count))
        else:
            msg = f"Unsupported collection operation: {op!r}"
            raise TypeError(msg)

    return Collection.of(entries)


async def upsert_increment_batch(
    session: AsyncSession,
    scope: str,
    operations: Sequence[CollectionOp],
    expected_version: int | None = None,
) -> None:
    """
    Apply a batch of increment and insert operations in one document write.

    Operations are applied in list order, so operations on the same card id
    keep their program order. An increment for an id that is not stored, or
    an insert for an id that already is, is a write conflict. When
    `expected_version` is given the write fails if the stored collection has
    moved past it.
    """
    if not operations:
        return

    with _store_errors("upsert_increment_batch", scope):
        await _rewrite(
            session,
            scope,
            "upsert_increment_batch",
            lambda collection: _apply_operations(collection, operations, scope),
            expected_version=expected_version,
        )
