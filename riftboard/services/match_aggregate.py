"""
Match aggregate operations.

Per-match metadata that lives next to the card instances: status, deck
references, per-side score and active battleground. Mutations share the
board engine's locking and change tracking, so a score change and a card
move on the same match are serialized and both produce change events.
"""

import logging
import uuid

from sqlalchemy.exc import IntegrityError

from riftboard.config import MAX_SCORE, MIN_SCORE
from riftboard.db.operations import (
    create_match,
    delete_match,
    delete_match_instances,
    get_instance,
    get_match,
    list_matches,
    match_to_model,
    touch_match,
)
from riftboard.models.board import Match, MatchStatus, PlayerSide
from riftboard.models.failure import InvalidTransitionError, NotFoundError
from riftboard.services.board_engine import Transition
from riftboard.services.board_store import BoardStore
from riftboard.services.notifier import GAME_DELETED, ChangeEvent

logger = logging.getLogger(__name__)


class MatchAggregate:
    """Create, inspect and update matches."""

    def __init__(self, store: BoardStore) -> None:
        self._store = store

    async def create_match(
        self,
        match_id: str | None = None,
        red_deck_id: str | None = None,
        blue_deck_id: str | None = None,
    ) -> tuple[Match, bool]:
        """
        Create a match, or join it if `match_id` already exists.

        Returns:
            Tuple of (match, created) where created is True if new.
        """
        match_id = match_id or str(uuid.uuid4())
        async with self._store.locked(match_id, "create_match") as session:
            existing = await get_match(session, match_id)
            if existing is not None:
                return match_to_model(existing), False
            try:
                row = await create_match(session, match_id, red_deck_id, blue_deck_id)
            except IntegrityError as e:
                # Another process created it between our read and insert
                raise InvalidTransitionError(
                    "match_exists", f"Match '{match_id}' was created concurrently."
                ) from e
            match = match_to_model(row)

        logger.info("Created match %s", match_id)
        return match, True

    async def get_match(self, match_id: str) -> Match:
        async with self._store.read_match(match_id, "get_match") as (_session, match):
            return match_to_model(match)

    async def list_active(self, limit: int = 100) -> list[Match]:
        """Active matches, newest first."""
        async with self._store.read("list_active") as session:
            rows = await list_matches(session, MatchStatus.ACTIVE, limit=limit)
            return [match_to_model(row) for row in rows]

    async def update_status(self, match_id: str, status: MatchStatus) -> Transition[Match]:
        async with self._store.mutate(match_id, "update_status") as (_session, match):
            match.status = status.value
            event = ChangeEvent(match_id=match_id, version=touch_match(match))
            result = match_to_model(match)

        logger.info("Match %s is now %s", match_id, status.value)
        return Transition(result, event)

    async def set_active_battleground(
        self, match_id: str, side: PlayerSide, instance_id: str | None
    ) -> Transition[Match]:
        """
        Select (or clear, with None) `side`'s active battleground.

        Raises:
            NotFoundError: Unknown match, or instance not in this match
        """
        async with self._store.mutate(match_id, "set_active_battleground") as (session, match):
            if instance_id is not None:
                if await get_instance(session, match_id, instance_id) is None:
                    raise NotFoundError("card instance", instance_id)
            if side is PlayerSide.RED:
                match.red_active_battleground = instance_id
            else:
                match.blue_active_battleground = instance_id
            event = ChangeEvent(match_id=match_id, version=touch_match(match))
            result = match_to_model(match)

        return Transition(result, event)

    async def get_active_battlegrounds(self, match_id: str) -> dict[PlayerSide, str | None]:
        match = await self.get_match(match_id)
        return {side: match.active_battleground(side) for side in PlayerSide}

    async def set_score(self, match_id: str, side: PlayerSide, value: int) -> Transition[Match]:
        """
        Set `side`'s score.

        Raises:
            InvalidTransitionError: If value is outside [MIN_SCORE, MAX_SCORE]
        """
        if not MIN_SCORE <= value <= MAX_SCORE:
            logger.warning("Rejected score %d for %s in %s", value, side.value, match_id)
            raise InvalidTransitionError(
                "score_range", f"Score must be between {MIN_SCORE} and {MAX_SCORE}."
            )

        async with self._store.mutate(match_id, "set_score") as (_session, match):
            if side is PlayerSide.RED:
                match.red_score = value
            else:
                match.blue_score = value
            event = ChangeEvent(match_id=match_id, version=touch_match(match))
            result = match_to_model(match)

        return Transition(result, event)

    async def get_scores(self, match_id: str) -> dict[PlayerSide, int]:
        match = await self.get_match(match_id)
        return {side: match.score(side) for side in PlayerSide}

    async def reset_match(self, match_id: str) -> Transition[int]:
        """
        Delete every card instance of the match. Value is the number deleted.

        Scores, battleground selections and deck references are left as
        they are; the caller re-initializes them and reloads decks.
        """
        async with self._store.mutate(match_id, "reset_match") as (session, match):
            removed = await delete_match_instances(session, match_id)
            event = ChangeEvent(match_id=match_id, version=touch_match(match))

        logger.info("Reset match %s (%d cards removed)", match_id, removed)
        return Transition(removed, event)

    async def delete_match(self, match_id: str) -> Transition[bool]:
        """
        Delete a match and all its cards.

        Value is True if deleted, False if not found. Viewers of a deleted
        match get a `game_deleted` event; an unknown id announces nothing.
        """
        async with self._store.locked(match_id, "delete_match") as session:
            match = await get_match(session, match_id, for_update=True)
            if match is None:
                return Transition(False, None)
            version = (match.version or 0) + 1
            await delete_match(session, match_id)

        logger.info("Deleted match %s", match_id)
        return Transition(True, ChangeEvent(match_id=match_id, version=version, kind=GAME_DELETED))
