"""
Database CRUD operations.

Row-level helpers for the catalogue, matches and card instances. These
functions never commit; the caller owns the transaction. Rule checks live
in the board engine, not here.
"""

import uuid
from collections.abc import Sequence
from datetime import UTC, datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from riftboard.models.board import (
    CardInstance,
    CardKind,
    CatalogueCard,
    Match,
    MatchStatus,
    PlayerSide,
    ZoneType,
)
from riftboard.models.db import CardInstanceDB, CatalogueCardDB, MatchDB

# --- Catalogue Operations ---


async def get_catalogue_card(session: AsyncSession, catalogue_id: str) -> CatalogueCardDB | None:
    """Get a catalogue entry by id. Returns None if unknown."""
    return await session.get(CatalogueCardDB, catalogue_id)


async def upsert_catalogue_card(session: AsyncSession, card: CatalogueCard) -> CatalogueCardDB:
    """
    Insert or update a catalogue entry.

    Entry point for the external catalogue importer and test fixtures.
    """
    row = await get_catalogue_card(session, card.id)
    if row is None:
        row = CatalogueCardDB(id=card.id)
        session.add(row)

    row.name = card.name
    row.kind = card.kind.value
    row.energy = card.energy
    row.might = card.might
    row.domain = card.domain
    row.tags = list(card.tags)
    row.ability = card.ability
    row.rarity = card.rarity
    row.set_name = card.set_name
    row.card_number = card.card_number
    row.artist = card.artist
    row.image_url = card.image_url
    await session.flush()
    return row


def catalogue_to_model(row: CatalogueCardDB) -> CatalogueCard:
    """Convert a database catalogue entry to a domain model."""
    return CatalogueCard(
        id=row.id,
        name=row.name,
        kind=CardKind(row.kind),
        energy=row.energy,
        might=row.might,
        domain=row.domain,
        tags=tuple(row.tags or ()),
        ability=row.ability,
        rarity=row.rarity,
        set_name=row.set_name,
        card_number=row.card_number,
        artist=row.artist,
        image_url=row.image_url,
    )


# --- Match Operations ---


async def get_match(
    session: AsyncSession, match_id: str, for_update: bool = False
) -> MatchDB | None:
    """
    Get a match by id.

    With for_update, the row is locked until the transaction ends on
    backends that support row locks (no-op on SQLite).
    """
    stmt = select(MatchDB).where(MatchDB.id == match_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def create_match(
    session: AsyncSession,
    match_id: str | None = None,
    red_deck_id: str | None = None,
    blue_deck_id: str | None = None,
) -> MatchDB:
    """
    Create a new match.

    Raises IntegrityError if a match with this id already exists.
    """
    match = MatchDB(
        id=match_id or str(uuid.uuid4()),
        status=MatchStatus.ACTIVE.value,
        red_deck_id=red_deck_id,
        blue_deck_id=blue_deck_id,
        red_score=0,
        blue_score=0,
        version=0,
    )
    session.add(match)
    await session.flush()
    return match


async def list_matches(
    session: AsyncSession, status: MatchStatus = MatchStatus.ACTIVE, limit: int = 100
) -> list[MatchDB]:
    """Matches with the given status, newest first."""
    result = await session.execute(
        select(MatchDB)
        .where(MatchDB.status == status.value)
        .order_by(MatchDB.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def delete_match(session: AsyncSession, match_id: str) -> bool:
    """
    Delete a match and every card instance in it.

    Returns True if deleted, False if not found.
    """
    match = await get_match(session, match_id)
    if not match:
        return False

    await delete_match_instances(session, match_id)
    await session.delete(match)
    await session.flush()
    return True


def touch_match(match: MatchDB) -> int:
    """Bump the change-tracking version. Returns the new version."""
    match.version = (match.version or 0) + 1
    match.updated_at = datetime.now(UTC)
    return match.version


def match_to_model(match: MatchDB) -> Match:
    """Convert a database match to a domain model."""
    return Match(
        match_id=match.id,
        status=MatchStatus(match.status),
        red_deck_id=match.red_deck_id,
        blue_deck_id=match.blue_deck_id,
        red_active_battleground=match.red_active_battleground,
        blue_active_battleground=match.blue_active_battleground,
        red_score=match.red_score,
        blue_score=match.blue_score,
        version=match.version,
        created_at=match.created_at,
        updated_at=match.updated_at,
    )


# --- Card Instance Operations ---


async def get_instance(
    session: AsyncSession, match_id: str, instance_id: str
) -> CardInstanceDB | None:
    """Get a card instance of a match. Returns None if unknown."""
    result = await session.execute(
        select(CardInstanceDB).where(
            CardInstanceDB.match_id == match_id,
            CardInstanceDB.id == instance_id,
        )
    )
    return result.scalar_one_or_none()


async def get_pile(
    session: AsyncSession,
    match_id: str,
    owner: PlayerSide,
    zone: ZoneType,
    top_first: bool = False,
    limit: int | None = None,
) -> list[CardInstanceDB]:
    """
    Instances of one (owner, zone) pile.

    Bottom first by default; `top_first` reverses the order.
    """
    order = CardInstanceDB.position.desc() if top_first else CardInstanceDB.position.asc()
    stmt = (
        select(CardInstanceDB)
        .where(
            CardInstanceDB.match_id == match_id,
            CardInstanceDB.owner == owner.value,
            CardInstanceDB.zone == zone.value,
        )
        .order_by(order)
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_match_instances(session: AsyncSession, match_id: str) -> list[CardInstanceDB]:
    """Every instance of a match, ordered by owner, zone and position."""
    result = await session.execute(
        select(CardInstanceDB)
        .where(CardInstanceDB.match_id == match_id)
        .order_by(CardInstanceDB.owner, CardInstanceDB.zone, CardInstanceDB.position)
    )
    return list(result.scalars().all())


async def insert_instance(
    session: AsyncSession,
    match_id: str,
    owner: PlayerSide,
    zone: ZoneType,
    card: CatalogueCardDB,
    position: int,
    face_up: bool = False,
    exhausted: bool = False,
    battlefield_side: PlayerSide | None = None,
) -> CardInstanceDB:
    """Insert a new card instance with a fresh instance id."""
    row = CardInstanceDB(
        id=str(uuid.uuid4()),
        match_id=match_id,
        catalogue_id=card.id,
        owner=owner.value,
        zone=zone.value,
        position=position,
        face_up=face_up,
        exhausted=exhausted,
        battlefield_side=battlefield_side.value if battlefield_side else None,
        temp_might=None,
    )
    row.card = card
    session.add(row)
    await session.flush()
    return row


async def relocate_instance(
    session: AsyncSession,
    row: CardInstanceDB,
    zone: ZoneType,
    position: int,
    battlefield_side: PlayerSide | None = None,
    face_up: bool | None = None,
    exhausted: bool | None = None,
) -> CardInstanceDB:
    """
    Put an instance at `position` of `zone`.

    Owner is never touched. `battlefield_side` is written as given, so
    passing None clears it. `face_up`/`exhausted` are left alone when None.
    """
    row.zone = zone.value
    row.position = position
    row.battlefield_side = battlefield_side.value if battlefield_side else None
    if face_up is not None:
        row.face_up = face_up
    if exhausted is not None:
        row.exhausted = exhausted
    await session.flush()
    return row


async def delete_instance(session: AsyncSession, row: CardInstanceDB) -> None:
    """Permanently delete one instance."""
    await session.delete(row)
    await session.flush()


async def delete_owner_instances(session: AsyncSession, match_id: str, owner: PlayerSide) -> int:
    """
    Delete every instance one side owns in a match.

    Returns the number of deleted records.
    """
    result = await session.execute(
        delete(CardInstanceDB).where(
            CardInstanceDB.match_id == match_id,
            CardInstanceDB.owner == owner.value,
        )
    )
    # rowcount is available on DELETE results; type stubs incomplete for async
    return int(result.rowcount)  # type: ignore[attr-defined]


async def delete_match_instances(session: AsyncSession, match_id: str) -> int:
    """
    Delete every instance in a match.

    Returns the number of deleted records.
    """
    result = await session.execute(
        delete(CardInstanceDB).where(CardInstanceDB.match_id == match_id)
    )
    return int(result.rowcount)  # type: ignore[attr-defined]


def instance_to_model(row: CardInstanceDB) -> CardInstance:
    """Convert a database card instance to a domain model."""
    return CardInstance(
        instance_id=row.id,
        match_id=row.match_id,
        catalogue_id=row.catalogue_id,
        owner=PlayerSide(row.owner),
        zone=ZoneType(row.zone),
        position=row.position,
        face_up=row.face_up,
        exhausted=row.exhausted,
        battlefield_side=PlayerSide(row.battlefield_side) if row.battlefield_side else None,
        temp_might=row.temp_might,
        card=catalogue_to_model(row.card) if row.card is not None else None,
    )


def instances_to_models(rows: Sequence[CardInstanceDB]) -> list[CardInstance]:
    return [instance_to_model(row) for row in rows]
