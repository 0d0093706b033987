from cardbinder.models.card import CardRef, HeldEntry
from cardbinder.models.collection import Collection
from cardbinder.models.failure import (
    CardValidationError,
    ErrorResponse,
    FailureKind,
    KnownError,
    StoreConflictError,
    StoreCorruptionError,
    StoreError,
    StoreTimeoutError,
    StoreUnavailableError,
)
from cardbinder.models.operations import CollectionOp, IncrementOp, InsertOp

__all__ = [
    "CardRef",
    "CardValidationError",
    "Collection",
    "CollectionOp",
    "ErrorResponse",
    "FailureKind",
    "HeldEntry",
    "IncrementOp",
    "InsertOp",
    "KnownError",
    "StoreConflictError",
    "StoreCorruptionError",
    "StoreError",
    "StoreTimeoutError",
    "StoreUnavailableError",
]
