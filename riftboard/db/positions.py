"""
Position sequencing for ordered piles.

A position only means something inside one (match, owner, zone) pile.
Higher position = closer to the top. New cards enter a pile only through
`next_position` (top) or `bottom_position` (bottom), so ordinary inserts
never renumber the rest of the pile.

Whole-pile rewrites (shuffle, battlefield reorder) go through
`resequence`, which never lets two rows share a position mid-update.
"""

import random
from collections.abc import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from riftboard.models.board import PlayerSide, ZoneType
from riftboard.models.db import CardInstanceDB


def _pile_filter(match_id: str, owner: PlayerSide, zone: ZoneType) -> tuple:
    return (
        CardInstanceDB.match_id == match_id,
        CardInstanceDB.owner == owner.value,
        CardInstanceDB.zone == zone.value,
    )


async def next_position(
    session: AsyncSession, match_id: str, owner: PlayerSide, zone: ZoneType
) -> int:
    """Position above every card in the pile; 0 for an empty pile."""
    result = await session.execute(
        select(func.max(CardInstanceDB.position)).where(*_pile_filter(match_id, owner, zone))
    )
    max_pos = result.scalar_one_or_none()
    return (max_pos if max_pos is not None else -1) + 1


async def bottom_position(
    session: AsyncSession, match_id: str, owner: PlayerSide, zone: ZoneType
) -> int:
    """Position below every card in the pile; -1 for an empty pile."""
    result = await session.execute(
        select(func.min(CardInstanceDB.position)).where(*_pile_filter(match_id, owner, zone))
    )
    min_pos = result.scalar_one_or_none()
    return (min_pos if min_pos is not None else 0) - 1


def shuffled_positions(count: int, rng: random.Random) -> list[int]:
    """
    Uniform random permutation of range(count).

    random.Random.shuffle is Fisher-Yates.
    """
    positions = list(range(count))
    rng.shuffle(positions)
    return positions


async def resequence(
    session: AsyncSession, rows: Sequence[CardInstanceDB], positions: Sequence[int]
) -> None:
    """
    Assign `positions[i]` to `rows[i]` for a whole pile.

    Rows are first parked on temporary positions below both the old and
    the new ranges, flushed, then moved to their final positions. The
    unique (match, owner, zone, position) constraint holds after every
    statement.
    """
    if len(rows) != len(positions):
        raise ValueError(f"Got {len(positions)} positions for {len(rows)} rows")
    if len(set(positions)) != len(positions):
        raise ValueError("Positions must be distinct")
    if not rows:
        return

    floor = min([0, *positions, *(row.position for row in rows)])
    for offset, row in enumerate(rows, start=1):
        row.position = floor - offset
    await session.flush()

    for row, position in zip(rows, positions, strict=True):
        row.position = position
    await session.flush()
