"""
SQLAlchemy ORM models for persistent storage.

Models mirror the dataclass models but add database persistence.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class CatalogueCardDB(Base):
    """
    A catalogue entry.

    Written by the external catalogue importer; the engine only reads it.
    """

    __tablename__ = "catalogue_cards"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    kind: Mapped[str] = mapped_column(String(50), index=True)
    energy: Mapped[int | None] = mapped_column(Integer, nullable=True)
    might: Mapped[int | None] = mapped_column(Integer, nullable=True)
    domain: Mapped[str | None] = mapped_column(String(50), nullable=True)
    tags: Mapped[list[Any]] = mapped_column(JSON, default=list)
    ability: Mapped[str | None] = mapped_column(Text, nullable=True)
    rarity: Mapped[str | None] = mapped_column(String(50), nullable=True)
    set_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    card_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    artist: Mapped[str | None] = mapped_column(String(255), nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<CatalogueCardDB(id={self.id}, name={self.name})>"


class MatchDB(Base):
    """
    One live match between the red and blue seats.

    `version` is bumped on every successful mutation of the match or its
    cards and is carried by change events.
    """

    __tablename__ = "matches"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    status: Mapped[str] = mapped_column(String(20), default="active", index=True)
    red_deck_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    blue_deck_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    red_active_battleground: Mapped[str | None] = mapped_column(String(64), nullable=True)
    blue_active_battleground: Mapped[str | None] = mapped_column(String(64), nullable=True)
    red_score: Mapped[int] = mapped_column(Integer, default=0)
    blue_score: Mapped[int] = mapped_column(Integer, default=0)
    version: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow
    )

    def __repr__(self) -> str:
        return f"<MatchDB(id={self.id}, status={self.status}, version={self.version})>"


class CardInstanceDB(Base):
    """
    A card token on the board.

    (match_id, owner, zone, position) is unique: a position is only
    meaningful inside one owner's pile.
    """

    __tablename__ = "card_instances"
    __table_args__ = (
        UniqueConstraint("match_id", "owner", "zone", "position", name="uq_instance_pile_position"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    match_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("matches.id", ondelete="CASCADE"), index=True
    )
    catalogue_id: Mapped[str] = mapped_column(String(64), ForeignKey("catalogue_cards.id"))
    owner: Mapped[str] = mapped_column(String(10))
    zone: Mapped[str] = mapped_column(String(20))
    position: Mapped[int] = mapped_column(Integer)
    face_up: Mapped[bool] = mapped_column(Boolean, default=False)
    exhausted: Mapped[bool] = mapped_column(Boolean, default=False)
    battlefield_side: Mapped[str | None] = mapped_column(String(10), nullable=True)
    temp_might: Mapped[int | None] = mapped_column(Integer, nullable=True)

    card: Mapped["CatalogueCardDB"] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return (
            f"<CardInstanceDB(id={self.id}, owner={self.owner}, "
            f"zone={self.zone}, position={self.position})>"
        )
