"""
Database engine, session factory and transaction scope.

Every board transition runs inside `atomic()`: one session, one
transaction, committed on success and rolled back on any error. Driver
errors surface as `StorageFailureError` so callers see a retryable
failure instead of a raw SQLAlchemy exception.
"""

import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from riftboard.config import settings
from riftboard.models.db import Base
from riftboard.models.failure import StorageFailureError

logger = logging.getLogger(__name__)

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory with the settings the board engine relies on."""
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def atomic(
    session_factory: async_sessionmaker[AsyncSession], operation: str
) -> AsyncIterator[AsyncSession]:
    """
    Run a block in a single transaction.

    Domain errors raised inside the block propagate unchanged after
    rollback. SQLAlchemy errors are logged and re-raised as
    StorageFailureError.
    """
    try:
        async with session_factory() as session, session.begin():
            yield session
    except SQLAlchemyError as e:
        logger.error("Storage failure during %s: %s", operation, e)
        raise StorageFailureError(operation, e) from e


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.

    Usage in FastAPI:
        @router.get("/ready")
        async def ready(session: AsyncSession = Depends(get_session)):
            ...
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            raise


async def init_db(bind: AsyncEngine | None = None) -> None:
    """
    Create all tables defined in the ORM models.

    Called once at application startup.
    """
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db(bind: AsyncEngine | None = None) -> None:
    """
    Drop all database tables.

    WARNING: Destroys all data. Use only for testing.
    """
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
