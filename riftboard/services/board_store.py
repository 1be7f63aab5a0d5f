"""
Transactional access to the card instance store.

`BoardStore` is the one object the engine and the match aggregate are
given. It owns the session factory and the per-match lock registry, so
"lock the match, open one transaction, load the match row" is written
once.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from riftboard.db.database import atomic
from riftboard.db.operations import get_match
from riftboard.models.db import MatchDB
from riftboard.models.failure import NotFoundError
from riftboard.services.match_locks import MatchLocks


class BoardStore:
    """Session factory plus per-match locks."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        locks: MatchLocks | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.locks = locks or MatchLocks()

    @asynccontextmanager
    async def mutate(
        self, match_id: str, operation: str
    ) -> AsyncIterator[tuple[AsyncSession, MatchDB]]:
        """
        Serialized transaction on an existing match.

        Holds the match lock until after commit, so position reads and the
        writes that depend on them are never interleaved with another
        transition on the same match.

        Raises:
            NotFoundError: If the match does not exist
            StorageFailureError: If the database fails
        """
        async with self.locks.hold(match_id), atomic(self._session_factory, operation) as session:
            match = await get_match(session, match_id, for_update=True)
            if match is None:
                raise NotFoundError("match", match_id)
            yield session, match

    @asynccontextmanager
    async def locked(self, match_id: str, operation: str) -> AsyncIterator[AsyncSession]:
        """Serialized transaction for a match id that may not exist yet."""
        async with self.locks.hold(match_id), atomic(self._session_factory, operation) as session:
            yield session

    @asynccontextmanager
    async def read(self, operation: str) -> AsyncIterator[AsyncSession]:
        """Unlocked transaction for reads; sees one consistent snapshot."""
        async with atomic(self._session_factory, operation) as session:
            yield session

    @asynccontextmanager
    async def read_match(
        self, match_id: str, operation: str
    ) -> AsyncIterator[tuple[AsyncSession, MatchDB]]:
        """Unlocked read of an existing match."""
        async with self.read(operation) as session:
            match = await get_match(session, match_id)
            if match is None:
                raise NotFoundError("match", match_id)
            yield session, match
