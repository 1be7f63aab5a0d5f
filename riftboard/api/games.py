"""
Game board API endpoints.

One route per board transition. Every route answers with the
`ApiResponse` envelope; `KnownError`s raised by the engine are turned into
envelopes by the app-level handler in `riftboard.main`.

After a successful mutation the route schedules the transition's change
event on the notifier as a background task, so the event is only sent
once the transaction has committed and the response is on its way.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Query
from pydantic import BaseModel, Field

from riftboard.api.deps import Aggregate, Engine, Notifier
from riftboard.config import MAX_PEEK
from riftboard.models.board import (
    BoardSnapshot,
    CardInstance,
    CardKind,
    CatalogueCard,
    DeckList,
    DeckZone,
    Match,
    MatchStatus,
    PlayerSide,
    SideBoard,
    ZoneType,
)
from riftboard.models.failure import (
    ApiResponse,
    FailureKind,
    create_refusal,
    create_success,
)
from riftboard.services.notifier import ChangeEvent, ChangeNotifier

router = APIRouter(prefix="/games", tags=["games"])


# =============================================================================
# RESPONSE MODELS
# =============================================================================


class CatalogueCardView(BaseModel):
    """Catalogue metadata attached to a visible card."""

    id: str
    name: str
    kind: CardKind
    energy: int | None = None
    might: int | None = None
    domain: str | None = None
    tags: list[str] = Field(default_factory=list)
    ability: str | None = None
    rarity: str | None = None
    set_name: str | None = None
    card_number: str | None = None
    artist: str | None = None
    image_url: str | None = None


class CardView(BaseModel):
    """A card instance as seen by a client."""

    instance_id: str
    catalogue_id: str | None = Field(
        default=None,
        description="Null when the card is face down and owned by the other side",
    )
    owner: PlayerSide
    zone: ZoneType
    position: int
    face_up: bool
    exhausted: bool
    battlefield_side: PlayerSide | None = None
    temp_might: int | None = None
    card: CatalogueCardView | None = None


class MatchView(BaseModel):
    """Per-match fields."""

    match_id: str
    status: MatchStatus
    red_deck_id: str | None = None
    blue_deck_id: str | None = None
    red_active_battleground: str | None = None
    blue_active_battleground: str | None = None
    red_score: int = 0
    blue_score: int = 0
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class GameView(BaseModel):
    """Result of create-or-join."""

    match: MatchView
    created: bool


class GameListView(BaseModel):
    games: list[MatchView]
    count: int


class SideBoardView(BaseModel):
    """Every zone of one side, each bottom first."""

    owner: PlayerSide
    zones: dict[ZoneType, list[CardView]]


class BoardStateView(BaseModel):
    """Full board, used by clients to re-sync."""

    match: MatchView
    red: SideBoardView
    blue: SideBoardView
    scores: dict[PlayerSide, int]
    active_battlegrounds: dict[PlayerSide, str | None]


class MoveView(BaseModel):
    instance_id: str
    removed: bool = Field(
        default=False,
        description="True if a token was sent to the trash and deleted",
    )
    card: CardView | None = None


class DrawView(BaseModel):
    card: CardView


class PileView(BaseModel):
    """An ordered list of cards from one operation."""

    cards: list[CardView]
    count: int


class ShuffleView(BaseModel):
    player_side: PlayerSide
    zone: ZoneType
    count: int


class RemovedView(BaseModel):
    instance_id: str


class ResetView(BaseModel):
    match_id: str
    cards_removed: int


class DeleteView(BaseModel):
    match_id: str
    deleted: bool


# =============================================================================
# REQUEST MODELS
# =============================================================================


class CreateGameRequest(BaseModel):
    """Create a match, or join it if `match_id` already exists."""

    match_id: str | None = Field(
        default=None,
        description="Match to create or join; a new id is generated when omitted",
    )
    red_deck_id: str | None = None
    blue_deck_id: str | None = None


class AddCardRequest(BaseModel):
    player_side: PlayerSide
    zone: ZoneType
    catalogue_id: str
    face_up: bool = False
    exhausted: bool = False


class SpawnTokenRequest(BaseModel):
    player_side: PlayerSide
    catalogue_id: str


Quantity = Annotated[int, Field(ge=1)]


class LoadDeckRequest(BaseModel):
    """A deck list already resolved to catalogue ids."""

    player_side: PlayerSide
    deck_id: str | None = None
    legend: str | None = None
    champion: str | None = None
    main_deck: dict[str, Quantity] = Field(
        default_factory=dict,
        description="Map of catalogue ids to quantities",
        examples=[{"OGN-001": 3, "OGN-014": 2}],
    )
    rune_deck: dict[str, Quantity] = Field(default_factory=dict)
    battlegrounds: list[str] = Field(default_factory=list)


class MoveCardRequest(BaseModel):
    instance_id: str
    from_zone: ZoneType | None = Field(
        default=None,
        description="Zone the client believes the card is in; a mismatch is rejected",
    )
    to_zone: ZoneType
    battlefield_side: PlayerSide | None = None
    player_side: PlayerSide | None = Field(
        default=None,
        description="Acting side; when given it must own the card",
    )


class InstanceRequest(BaseModel):
    instance_id: str


class TempMightRequest(BaseModel):
    instance_id: str
    value: int | None = Field(default=None, description="Null clears the modifier")


class DeckRequest(BaseModel):
    player_side: PlayerSide
    deck_type: DeckZone = DeckZone.MAIN_DECK


class PeekRequest(DeckRequest):
    count: int = Field(default=1, ge=1, le=MAX_PEEK)


class RecycleRequest(BaseModel):
    player_side: PlayerSide
    instance_id: str
    deck_type: DeckZone | None = Field(
        default=None,
        description="Destination deck; defaults to the rune deck for runes",
    )


class RecycleTrashRequest(BaseModel):
    player_side: PlayerSide
    from_zone: ZoneType = ZoneType.TRASH
    deck_type: DeckZone = DeckZone.MAIN_DECK


class ShuffleRequest(BaseModel):
    player_side: PlayerSide
    zone: ZoneType = ZoneType.MAIN_DECK


class SideRequest(BaseModel):
    player_side: PlayerSide


class ActiveBattlegroundRequest(BaseModel):
    player_side: PlayerSide
    instance_id: str | None = Field(default=None, description="Null clears the selection")


class ScoreRequest(BaseModel):
    player_side: PlayerSide
    score: int


class StatusRequest(BaseModel):
    status: MatchStatus


# =============================================================================
# CONVERSION
# =============================================================================


def _catalogue_view(card: CatalogueCard) -> CatalogueCardView:
    return CatalogueCardView(
        id=card.id,
        name=card.name,
        kind=card.kind,
        energy=card.energy,
        might=card.might,
        domain=card.domain,
        tags=list(card.tags),
        ability=card.ability,
        rarity=card.rarity,
        set_name=card.set_name,
        card_number=card.card_number,
        artist=card.artist,
        image_url=card.image_url,
    )


def _card_view(instance: CardInstance) -> CardView:
    return CardView(
        instance_id=instance.instance_id,
        catalogue_id=instance.catalogue_id,
        owner=instance.owner,
        zone=instance.zone,
        position=instance.position,
        face_up=instance.face_up,
        exhausted=instance.exhausted,
        battlefield_side=instance.battlefield_side,
        temp_might=instance.temp_might,
        card=_catalogue_view(instance.card) if instance.card else None,
    )


def _pile_view(instances: list[CardInstance]) -> PileView:
    return PileView(cards=[_card_view(i) for i in instances], count=len(instances))


def _match_view(match: Match) -> MatchView:
    return MatchView(
        match_id=match.match_id,
        status=match.status,
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


def _side_view(board: SideBoard) -> SideBoardView:
    return SideBoardView(
        owner=board.owner,
        zones={zone: [_card_view(i) for i in pile] for zone, pile in board.zones.items()},
    )


def _board_view(snapshot: BoardSnapshot) -> BoardStateView:
    return BoardStateView(
        match=_match_view(snapshot.match),
        red=_side_view(snapshot.red),
        blue=_side_view(snapshot.blue),
        scores=snapshot.scores,
        active_battlegrounds=snapshot.active_battlegrounds,
    )


def _publish(
    background_tasks: BackgroundTasks, notifier: ChangeNotifier, event: ChangeEvent | None
) -> None:
    if event is not None:
        background_tasks.add_task(notifier.publish, event)


# =============================================================================
# MATCHES
# =============================================================================


@router.get("", response_model=ApiResponse[GameListView])
async def list_games(
    aggregate: Aggregate,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> ApiResponse[GameListView]:
    """Active matches, newest first."""
    matches = await aggregate.list_active(limit=limit)
    return create_success(
        GameListView(games=[_match_view(m) for m in matches], count=len(matches))
    )


@router.post("", response_model=ApiResponse[GameView])
async def create_game(request: CreateGameRequest, aggregate: Aggregate) -> ApiResponse[GameView]:
    """
    Create a match or join an existing one.

    Joining returns the match as it is; nothing is changed.
    """
    match, created = await aggregate.create_match(
        request.match_id, request.red_deck_id, request.blue_deck_id
    )
    return create_success(GameView(match=_match_view(match), created=created))


@router.get("/{game_id}/board-state", response_model=ApiResponse[BoardStateView])
async def get_board_state(
    game_id: str,
    engine: Engine,
    viewer: Annotated[
        PlayerSide | None,
        Query(description="Requesting side; the other side's face-down cards are hidden"),
    ] = None,
) -> ApiResponse[BoardStateView]:
    """Full board snapshot for (re)connecting clients."""
    snapshot = await engine.get_board_state(game_id, viewer)
    return create_success(_board_view(snapshot))


@router.post("/{game_id}/status", response_model=ApiResponse[MatchView])
async def update_status(
    game_id: str,
    request: StatusRequest,
    aggregate: Aggregate,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> ApiResponse[MatchView]:
    result = await aggregate.update_status(game_id, request.status)
    _publish(background_tasks, notifier, result.event)
    return create_success(_match_view(result.value))


@router.post("/{game_id}/set-score", response_model=ApiResponse[MatchView])
async def set_score(
    game_id: str,
    request: ScoreRequest,
    aggregate: Aggregate,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> ApiResponse[MatchView]:
    """Set one side's score. Values outside the allowed range are rejected (409)."""
    result = await aggregate.set_score(game_id, request.player_side, request.score)
    _publish(background_tasks, notifier, result.event)
    return create_success(_match_view(result.value))


@router.post("/{game_id}/set-active-battleground", response_model=ApiResponse[MatchView])
async def set_active_battleground(
    game_id: str,
    request: ActiveBattlegroundRequest,
    aggregate: Aggregate,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> ApiResponse[MatchView]:
    result = await aggregate.set_active_battleground(
        game_id, request.player_side, request.instance_id
    )
    _publish(background_tasks, notifier, result.event)
    return create_success(_match_view(result.value))


@router.post("/{game_id}/reset", response_model=ApiResponse[ResetView])
async def reset_game(
    game_id: str,
    aggregate: Aggregate,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> ApiResponse[ResetView]:
    """
    Delete every card in the match.

    Scores and battleground selections are not touched; clients reset
    them explicitly before loading new decks.
    """
    result = await aggregate.reset_match(game_id)
    _publish(background_tasks, notifier, result.event)
    return create_success(ResetView(match_id=game_id, cards_removed=result.value))


@router.delete("/{game_id}", response_model=ApiResponse[DeleteView])
async def delete_game(
    game_id: str,
    aggregate: Aggregate,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> ApiResponse[DeleteView]:
    result = await aggregate.delete_match(game_id)
    _publish(background_tasks, notifier, result.event)
    return create_success(DeleteView(match_id=game_id, deleted=result.value))


# =============================================================================
# CARD TRANSITIONS
# =============================================================================


@router.post("/{game_id}/add-card", response_model=ApiResponse[CardView])
async def add_card(
    game_id: str,
    request: AddCardRequest,
    engine: Engine,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> ApiResponse[CardView]:
    result = await engine.add_card(
        game_id,
        request.player_side,
        request.zone,
        request.catalogue_id,
        face_up=request.face_up,
        exhausted=request.exhausted,
    )
    _publish(background_tasks, notifier, result.event)
    return create_success(_card_view(result.value))


@router.post("/{game_id}/spawn-token", response_model=ApiResponse[CardView])
async def spawn_token(
    game_id: str,
    request: SpawnTokenRequest,
    engine: Engine,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> ApiResponse[CardView]:
    result = await engine.spawn_token(game_id, request.player_side, request.catalogue_id)
    _publish(background_tasks, notifier, result.event)
    return create_success(_card_view(result.value))


@router.post("/{game_id}/load-deck", response_model=ApiResponse[SideBoardView])
async def load_deck(
    game_id: str,
    request: LoadDeckRequest,
    engine: Engine,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> ApiResponse[SideBoardView]:
    """Replace one side's cards with a freshly shuffled deck."""
    deck = DeckList(
        deck_id=request.deck_id,
        legend=request.legend,
        champion=request.champion,
        main_deck=request.main_deck,
        rune_deck=request.rune_deck,
        battlegrounds=tuple(request.battlegrounds),
    )
    result = await engine.load_deck(game_id, request.player_side, deck)
    _publish(background_tasks, notifier, result.event)
    return create_success(_side_view(result.value))


@router.post("/{game_id}/move-card", response_model=ApiResponse[MoveView])
async def move_card(
    game_id: str,
    request: MoveCardRequest,
    engine: Engine,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> ApiResponse[MoveView]:
    result = await engine.move(
        game_id,
        request.instance_id,
        request.from_zone,
        request.to_zone,
        battlefield_side=request.battlefield_side,
        owner=request.player_side,
    )
    _publish(background_tasks, notifier, result.event)
    moved = result.value
    return create_success(
        MoveView(
            instance_id=moved.instance_id,
            removed=moved.removed,
            card=_card_view(moved.instance) if moved.instance else None,
        )
    )


@router.post("/{game_id}/flip-card", response_model=ApiResponse[CardView])
async def flip_card(
    game_id: str,
    request: InstanceRequest,
    engine: Engine,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> ApiResponse[CardView]:
    result = await engine.flip(game_id, request.instance_id)
    _publish(background_tasks, notifier, result.event)
    return create_success(_card_view(result.value))


@router.post("/{game_id}/exhaust-card", response_model=ApiResponse[CardView])
async def exhaust_card(
    game_id: str,
    request: InstanceRequest,
    engine: Engine,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> ApiResponse[CardView]:
    result = await engine.exhaust(game_id, request.instance_id)
    _publish(background_tasks, notifier, result.event)
    return create_success(_card_view(result.value))


@router.post("/{game_id}/update-temp-might", response_model=ApiResponse[CardView])
async def update_temp_might(
    game_id: str,
    request: TempMightRequest,
    engine: Engine,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> ApiResponse[CardView]:
    result = await engine.set_temp_might(game_id, request.instance_id, request.value)
    _publish(background_tasks, notifier, result.event)
    return create_success(_card_view(result.value))


@router.post("/{game_id}/remove-card", response_model=ApiResponse[RemovedView])
async def remove_card(
    game_id: str,
    request: InstanceRequest,
    engine: Engine,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> ApiResponse[RemovedView]:
    """Delete a card permanently."""
    result = await engine.remove_card(game_id, request.instance_id)
    _publish(background_tasks, notifier, result.event)
    return create_success(RemovedView(instance_id=result.value))


@router.post("/{game_id}/reorder-battlefield", response_model=ApiResponse[PileView])
async def reorder_battlefield(
    game_id: str,
    request: SideRequest,
    engine: Engine,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> ApiResponse[PileView]:
    result = await engine.reorder_battlefield_alphabetical(game_id, request.player_side)
    _publish(background_tasks, notifier, result.event)
    return create_success(_pile_view(result.value))


# =============================================================================
# DECKS
# =============================================================================


@router.post("/{game_id}/draw", response_model=ApiResponse[DrawView])
async def draw(
    game_id: str,
    request: DeckRequest,
    engine: Engine,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> ApiResponse[DrawView]:
    """
    Draw the top card of a deck.

    An empty deck is answered with a refusal, not an error: the request
    was fine, there was just nothing to draw.
    """
    result = await engine.draw(game_id, request.player_side, request.deck_type)
    if result.value is None:
        return create_refusal(FailureKind.EMPTY_PILE, "pile_empty")
    _publish(background_tasks, notifier, result.event)
    return create_success(DrawView(card=_card_view(result.value)))


@router.post("/{game_id}/peek", response_model=ApiResponse[PileView])
async def peek(
    game_id: str,
    request: PeekRequest,
    engine: Engine,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> ApiResponse[PileView]:
    """
    Look at the top cards of a deck, top first, without moving them.

    The other viewer is told that a peek happened, not what was seen.
    """
    result = await engine.peek_many(game_id, request.player_side, request.deck_type, request.count)
    _publish(background_tasks, notifier, result.event)
    return create_success(_pile_view(result.value))


@router.post("/{game_id}/recycle", response_model=ApiResponse[CardView])
async def recycle(
    game_id: str,
    request: RecycleRequest,
    engine: Engine,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> ApiResponse[CardView]:
    """Put one card on the bottom of its owner's deck."""
    result = await engine.recycle_one(
        game_id, request.player_side, request.instance_id, request.deck_type
    )
    _publish(background_tasks, notifier, result.event)
    return create_success(_card_view(result.value))


@router.post("/{game_id}/recycle-trash", response_model=ApiResponse[PileView])
async def recycle_trash(
    game_id: str,
    request: RecycleTrashRequest,
    engine: Engine,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> ApiResponse[PileView]:
    """Put every card of a zone (the trash by default) on the bottom of a deck."""
    result = await engine.recycle_all(
        game_id, request.player_side, request.from_zone, request.deck_type
    )
    _publish(background_tasks, notifier, result.event)
    return create_success(_pile_view(result.value))


@router.post("/{game_id}/shuffle", response_model=ApiResponse[ShuffleView])
async def shuffle(
    game_id: str,
    request: ShuffleRequest,
    engine: Engine,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> ApiResponse[ShuffleView]:
    result = await engine.shuffle(game_id, request.player_side, request.zone)
    _publish(background_tasks, notifier, result.event)
    return create_success(
        ShuffleView(player_side=request.player_side, zone=request.zone, count=result.value)
    )
