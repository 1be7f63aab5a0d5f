"""Tests for match-level operations."""

import pytest

from riftboard.models.board import MatchStatus, PlayerSide, ZoneType
from riftboard.models.failure import InvalidTransitionError, NotFoundError
from riftboard.services.board_engine import BoardEngine
from riftboard.services.match_aggregate import MatchAggregate
from riftboard.services.notifier import GAME_DELETED

RED = PlayerSide.RED
BLUE = PlayerSide.BLUE


class TestCreateMatch:
    async def test_create(self, aggregate: MatchAggregate) -> None:
        """A new match starts active, at version 0, with zero scores."""
        match, created = await aggregate.create_match("m1", red_deck_id="deck-a")

        assert created is True
        assert match.match_id == "m1"
        assert match.status is MatchStatus.ACTIVE
        assert match.red_deck_id == "deck-a"
        assert match.version == 0
        assert match.red_score == 0
        assert match.blue_score == 0

    async def test_generates_id(self, aggregate: MatchAggregate) -> None:
        """An id is generated when none is given."""
        first, _ = await aggregate.create_match()
        second, _ = await aggregate.create_match()

        assert first.match_id
        assert first.match_id != second.match_id

    async def test_join_existing(self, aggregate: MatchAggregate) -> None:
        """Creating an existing id joins it without changes."""
        await aggregate.create_match("m1", red_deck_id="deck-a")

        match, created = await aggregate.create_match("m1", red_deck_id="other")

        assert created is False
        assert match.red_deck_id == "deck-a"

    async def test_get_unknown(self, aggregate: MatchAggregate) -> None:
        """Unknown match is NotFound."""
        with pytest.raises(NotFoundError):
            await aggregate.get_match("nope")

    async def test_list_active(self, aggregate: MatchAggregate) -> None:
        """Only active matches are listed."""
        await aggregate.create_match("m1")
        await aggregate.create_match("m2")
        await aggregate.update_status("m2", MatchStatus.COMPLETED)

        active = await aggregate.list_active()

        assert [m.match_id for m in active] == ["m1"]


class TestScore:
    async def test_set_score_bounds(self, aggregate: MatchAggregate, match_id: str) -> None:
        """9 is accepted; 10 is rejected and leaves the score at 9."""
        result = await aggregate.set_score(match_id, RED, 9)
        assert result.value.red_score == 9
        assert result.event is not None

        with pytest.raises(InvalidTransitionError) as exc_info:
            await aggregate.set_score(match_id, RED, 10)

        assert exc_info.value.constraint == "score_range"
        scores = await aggregate.get_scores(match_id)
        assert scores == {RED: 9, BLUE: 0}
        assert (await aggregate.get_match(match_id)).version == result.event.version

    async def test_negative_rejected(self, aggregate: MatchAggregate, match_id: str) -> None:
        """Scores cannot go below zero."""
        with pytest.raises(InvalidTransitionError):
            await aggregate.set_score(match_id, BLUE, -1)

    async def test_sides_independent(self, aggregate: MatchAggregate, match_id: str) -> None:
        """Setting blue does not touch red."""
        await aggregate.set_score(match_id, BLUE, 4)

        assert await aggregate.get_scores(match_id) == {RED: 0, BLUE: 4}

    async def test_unknown_match(self, aggregate: MatchAggregate) -> None:
        """Scoring an unknown match is NotFound."""
        with pytest.raises(NotFoundError):
            await aggregate.set_score("nope", RED, 1)


class TestActiveBattleground:
    async def test_select_and_clear(
        self, aggregate: MatchAggregate, board_engine: BoardEngine, match_id: str
    ) -> None:
        """A side can select a battleground and clear it again."""
        ground = (
            await board_engine.add_card(match_id, RED, ZoneType.BATTLEFIELD, "OGN-030")
        ).value

        await aggregate.set_active_battleground(match_id, RED, ground.instance_id)
        assert (await aggregate.get_active_battlegrounds(match_id)) == {
            RED: ground.instance_id,
            BLUE: None,
        }

        await aggregate.set_active_battleground(match_id, RED, None)
        assert (await aggregate.get_active_battlegrounds(match_id))[RED] is None

    async def test_unknown_instance(self, aggregate: MatchAggregate, match_id: str) -> None:
        """Selecting an instance that is not in the match is NotFound."""
        with pytest.raises(NotFoundError):
            await aggregate.set_active_battleground(match_id, BLUE, "nope")


class TestResetAndDelete:
    async def test_reset_removes_cards(
        self, aggregate: MatchAggregate, board_engine: BoardEngine, match_id: str
    ) -> None:
        """Reset deletes every card and bumps the version, nothing else."""
        await board_engine.add_card(match_id, RED, ZoneType.HAND, "OGN-001")
        await board_engine.add_card(match_id, BLUE, ZoneType.BASE, "OGN-002")
        await aggregate.set_score(match_id, RED, 3)

        result = await aggregate.reset_match(match_id)

        assert result.value == 2
        snapshot = await board_engine.get_board_state(match_id)
        assert snapshot.red.instances() == []
        assert snapshot.blue.instances() == []
        assert snapshot.scores[RED] == 3
        assert snapshot.match.version == result.event.version

    async def test_delete(self, aggregate: MatchAggregate, match_id: str) -> None:
        """Deleted matches are gone and viewers are told so."""
        result = await aggregate.delete_match(match_id)
        again = await aggregate.delete_match(match_id)

        assert result.value is True
        assert result.event.kind == GAME_DELETED
        assert result.event.version == 1
        assert again.value is False
        assert again.event is None
        with pytest.raises(NotFoundError):
            await aggregate.get_match(match_id)

    async def test_update_status(self, aggregate: MatchAggregate, match_id: str) -> None:
        """Status changes are versioned like any other mutation."""
        result = await aggregate.update_status(match_id, MatchStatus.ABANDONED)

        assert result.value.status is MatchStatus.ABANDONED
        assert result.event.version == 1
