import random

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from riftboard.db.database import make_session_factory
from riftboard.db.operations import upsert_catalogue_card
from riftboard.models.board import CardKind, CatalogueCard
from riftboard.models.db import Base
from riftboard.services.board_engine import BoardEngine
from riftboard.services.board_store import BoardStore
from riftboard.services.match_aggregate import MatchAggregate

MATCH_ID = "match-1"

# Small catalogue covering every kind the engine treats specially
CATALOGUE = [
    CatalogueCard(id="OGN-001", name="Zed", kind=CardKind.UNIT, energy=3, might=3),
    CatalogueCard(id="OGN-002", name="Annie", kind=CardKind.UNIT, energy=2, might=2),
    CatalogueCard(id="OGN-003", name="blitzcrank", kind=CardKind.UNIT, energy=4, might=5),
    CatalogueCard(id="OGN-010", name="Fury Rune", kind=CardKind.BASIC_RUNE, domain="Fury"),
    CatalogueCard(id="OGN-011", name="Calm Rune", kind=CardKind.BASIC_RUNE, domain="Calm"),
    CatalogueCard(id="OGN-020", name="Recruit", kind=CardKind.TOKEN_UNIT, might=1),
    CatalogueCard(id="OGN-030", name="Hallowed Tomb", kind=CardKind.BATTLEFIELD),
    CatalogueCard(id="OGN-031", name="Altar of Blood", kind=CardKind.BATTLEFIELD),
    CatalogueCard(id="OGN-040", name="Jinx, Loose Cannon", kind=CardKind.CHAMPION_LEGEND),
    CatalogueCard(id="OGN-041", name="Jinx", kind=CardKind.CHAMPION_UNIT, energy=5, might=4),
    CatalogueCard(
        id="OGN-050",
        name="Get Excited!",
        kind=CardKind.SPELL,
        energy=2,
        tags=("Fury",),
        ability="Deal 2 damage to a unit.",
    ),
    CatalogueCard(id="OGN-060", name="Long Sword", kind=CardKind.GEAR, energy=1),
]


@pytest.fixture
async def async_engine():
    """Create an in-memory SQLite engine shared by every session of a test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(async_engine)


@pytest.fixture
async def session(session_factory) -> AsyncSession:
    """Provide a database session for tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def catalogue(session_factory) -> dict[str, CatalogueCard]:
    """Seed the catalogue. Returns cards by id."""
    async with session_factory() as session, session.begin():
        for card in CATALOGUE:
            await upsert_catalogue_card(session, card)
    return {card.id: card for card in CATALOGUE}


@pytest.fixture
def store(session_factory) -> BoardStore:
    return BoardStore(session_factory)


@pytest.fixture
def board_engine(store: BoardStore) -> BoardEngine:
    """Engine with a seeded RNG so shuffles are reproducible."""
    return BoardEngine(store, rng=random.Random(1234))


@pytest.fixture
def aggregate(store: BoardStore) -> MatchAggregate:
    return MatchAggregate(store)


@pytest.fixture
async def match_id(aggregate: MatchAggregate, catalogue) -> str:
    """An empty active match with the catalogue seeded."""
    match, _created = await aggregate.create_match(MATCH_ID)
    return match.match_id
