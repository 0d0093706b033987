"""
SQLAlchemy ORM models for persistent storage.

Each scope owns exactly one collection row. The collection's entries live
in a single JSON document column rather than one row per card, so every
entry-level change is a rewrite of that document guarded by `version`.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class UserCollectionDB(Base):
    """
    A scope's card collection stored in the database.

    `cards` holds the ordered entry documents: {"id": ..., "count": ..., **attributes}.
    `version` increases by one on every write.
    """

    __tablename__ = "user_collections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    scope: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    cards: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    version: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<UserCollectionDB(id={self.id}, scope={self.scope}, version={self.version})>"
