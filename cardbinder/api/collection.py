"""
Collection API endpoints.

Thin HTTP binding over CollectionService. Every endpoint works on one
scope, taken from the `scope` query parameter and defaulting to the
configured single collection.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from cardbinder.config import settings
from cardbinder.db.database import get_session
from cardbinder.models.card import CardRef
from cardbinder.models.collection import Collection
from cardbinder.models.failure import ErrorResponse
from cardbinder.services.collection_service import CollectionService

router = APIRouter(
    prefix="/collection",
    tags=["collection"],
    responses={
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)


class CardPayload(BaseModel):
    """A card reference as sent by clients: an id plus any other attributes."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1, description="Card identifier")

    def to_card(self) -> CardRef:
        return CardRef.from_mapping({"id": self.id, **(self.model_extra or {})})


class AddCardRequest(BaseModel):
    """Request model for adding a single card."""

    card: CardPayload = Field(
        ...,
        examples=[{"id": "LOB-001", "name": "Blue-Eyes White Dragon"}],
    )


class RemoveCardRequest(BaseModel):
    """Request model for removing a card."""

    model_config = ConfigDict(populate_by_name=True)

    card_id: str = Field(..., alias="cardId", min_length=1)


class AddManyRequest(BaseModel):
    """Request model for merging a batch of cards."""

    cards: list[CardPayload] = Field(
        ...,
        description="Cards to add; held cards are incremented, new cards appended",
    )


class CollectionResponse(BaseModel):
    """Response model for collection data."""

    collection: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Held entries in collection order: {id, count, ...attributes}",
    )

    @classmethod
    def from_collection(cls, collection: Collection) -> "CollectionResponse":
        return cls(collection=collection.to_documents())


def get_scope(
    scope: Annotated[str | None, Query(min_length=1, max_length=255)] = None,
) -> str:
    """Resolve the collection scope for a request."""
    return scope or settings.default_scope


def get_collection_service(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CollectionService:
    return CollectionService(session)


Scope = Annotated[str, Depends(get_scope)]
Service = Annotated[CollectionService, Depends(get_collection_service)]


@router.get("", response_model=CollectionResponse)
async def get_user_collection(scope: Scope, service: Service) -> CollectionResponse:
    """
    Get the card collection.

    Creates an empty collection if none exists yet.
    """
    collection = await service.fetch(scope)
    return CollectionResponse.from_collection(collection)


@router.post("/add", response_model=CollectionResponse)
async def add_card(
    request: AddCardRequest, scope: Scope, service: Service
) -> CollectionResponse:
    """
    Add one card with count 1.

    Does not merge: adding a card id already held appends a second entry.
    """
    collection = await service.add_one(scope, request.card.to_card())
    return CollectionResponse.from_collection(collection)


@router.post("/remove", response_model=CollectionResponse)
async def remove_card(
    request: RemoveCardRequest, scope: Scope, service: Service
) -> CollectionResponse:
    """Remove every entry for a card id. Unknown ids leave the collection unchanged."""
    collection = await service.remove_one(scope, request.card_id)
    return CollectionResponse.from_collection(collection)


@router.post("/addMany", response_model=CollectionResponse)
async def add_many_cards(
    request: AddManyRequest, scope: Scope, service: Service
) -> CollectionResponse:
    """
    Merge a batch of cards into the collection.

    Cards already held have their count incremented; new cards are appended
    in the order first seen. A card repeated within the batch is counted
    once per occurrence.
    """
    cards = [payload.to_card() for payload in request.cards]
    collection = await service.add_many(scope, cards)
    return CollectionResponse.from_collection(collection)


@router.post("/clear", response_model=CollectionResponse)
async def clear_collection(scope: Scope, service: Service) -> CollectionResponse:
    """Remove every card from the collection."""
    collection = await service.clear(scope)
    return CollectionResponse.from_collection(collection)
