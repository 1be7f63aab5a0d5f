"""
Zone Transition Engine.

Every operation that moves, creates, destroys or reorders card instances.
Each mutating operation runs under the match lock in one transaction and
either applies completely or not at all. On success it bumps the match
version and returns a `Transition` carrying the result and exactly one
`ChangeEvent`.

INVARIANTS:
1. A card's owner never changes; only its zone, position and
   battlefield side do.
2. No two instances share (owner, zone, position) within a match.
3. battlefield_side is set if and only if the card is on the battlefield.
4. Top of a pile = highest position. Cards enter a pile only at the top
   (next_position) or at the bottom (bottom_position).
5. Zone acceptance by card kind is checked here, once, via ZONE_ACCEPTS.

The engine is a bookkeeping substrate, not a rules referee: it does not
check whether a play is legal, only whether a transition is structurally
possible.
"""

import logging
import random
from dataclasses import dataclass
from typing import Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from riftboard.config import MAX_PEEK
from riftboard.db.operations import (
    delete_instance,
    delete_owner_instances,
    get_catalogue_card,
    get_instance,
    get_match_instances,
    get_pile,
    insert_instance,
    instance_to_model,
    instances_to_models,
    match_to_model,
    relocate_instance,
    touch_match,
)
from riftboard.db.positions import (
    bottom_position,
    next_position,
    resequence,
    shuffled_positions,
)
from riftboard.models.board import (
    BoardSnapshot,
    CardInstance,
    CardKind,
    DeckList,
    DeckZone,
    PlayerSide,
    SideBoard,
    ZoneType,
)
from riftboard.models.db import CardInstanceDB, CatalogueCardDB, MatchDB
from riftboard.models.failure import InvalidTransitionError, NotFoundError
from riftboard.services.board_store import BoardStore
from riftboard.services.notifier import PLAYER_PEEKED, ChangeEvent

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Zones that only take certain card kinds. Zones not listed take anything.
ZONE_ACCEPTS: dict[ZoneType, frozenset[CardKind]] = {
    ZoneType.RUNES: frozenset({CardKind.BASIC_RUNE}),
    ZoneType.RUNE_DECK: frozenset({CardKind.BASIC_RUNE}),
}


def zone_accepts(zone: ZoneType, kind: CardKind) -> bool:
    """True if a card of `kind` may sit in `zone`."""
    accepted = ZONE_ACCEPTS.get(zone)
    return accepted is None or kind in accepted


def _kind(row: CardInstanceDB | CatalogueCardDB) -> CardKind:
    card = row.card if isinstance(row, CardInstanceDB) else row
    return CardKind(card.kind)


def _check_accepts(zone: ZoneType, card: CatalogueCardDB) -> None:
    kind = CardKind(card.kind)
    if not zone_accepts(zone, kind):
        logger.warning("Rejected %s (%s) entering %s", card.id, kind.value, zone.value)
        raise InvalidTransitionError(
            "zone_accepts_kind",
            f"A {kind.value} card cannot be placed in {zone.value}.",
        )


def _name_key(row: CardInstanceDB) -> str:
    return row.card.name.casefold()


@dataclass(frozen=True)
class Transition(Generic[T]):
    """
    Result of an engine call plus the event other viewers should get.

    `event` is None only when there is nothing to tell them (an empty
    draw).
    """

    value: T
    event: ChangeEvent | None


@dataclass(frozen=True, slots=True)
class MoveResult:
    """
    Outcome of a move.

    Tokens sent to the trash are deleted instead of moved; then `removed`
    is True and `instance` is None.
    """

    instance_id: str
    instance: CardInstance | None
    removed: bool = False


class BoardEngine:
    """
    Zone transitions for every match in one store.

    Args:
        store: Transactional store with per-match locks
        rng: Random source for shuffles; pass a seeded Random for
            reproducible tests
    """

    def __init__(self, store: BoardStore, rng: random.Random | None = None) -> None:
        self._store = store
        self._rng = rng or random.SystemRandom()

    # --- Internal helpers -------------------------------------------------

    @staticmethod
    def _changed(match: MatchDB) -> ChangeEvent:
        return ChangeEvent(match_id=match.id, version=touch_match(match))

    @staticmethod
    async def _catalogue(session: AsyncSession, catalogue_id: str) -> CatalogueCardDB:
        card = await get_catalogue_card(session, catalogue_id)
        if card is None:
            raise NotFoundError("card", catalogue_id)
        return card

    @staticmethod
    async def _instance(session: AsyncSession, match_id: str, instance_id: str) -> CardInstanceDB:
        row = await get_instance(session, match_id, instance_id)
        if row is None:
            raise NotFoundError("card instance", instance_id)
        return row

    @staticmethod
    def _check_owner(row: CardInstanceDB, owner: PlayerSide) -> None:
        if row.owner != owner.value:
            logger.warning("Rejected %s acting on %s owned by %s", owner.value, row.id, row.owner)
            raise InvalidTransitionError(
                "owner_mismatch",
                f"This card belongs to {row.owner}, not {owner.value}.",
            )

    async def _add(
        self,
        session: AsyncSession,
        match_id: str,
        owner: PlayerSide,
        zone: ZoneType,
        card: CatalogueCardDB,
        face_up: bool,
        exhausted: bool,
    ) -> CardInstanceDB:
        _check_accepts(zone, card)
        position = await next_position(session, match_id, owner, zone)
        side = owner if zone is ZoneType.BATTLEFIELD else None
        row = await insert_instance(
            session,
            match_id,
            owner,
            zone,
            card,
            position,
            face_up=face_up,
            exhausted=exhausted,
            battlefield_side=side,
        )
        if zone is ZoneType.BATTLEFIELD:
            await self._reorder_battlefield(session, match_id, owner)
        return row

    async def _reorder_battlefield(
        self, session: AsyncSession, match_id: str, owner: PlayerSide
    ) -> list[CardInstanceDB]:
        rows = await get_pile(session, match_id, owner, ZoneType.BATTLEFIELD)
        # sorted() is stable, so equal names keep their current order
        units = sorted((r for r in rows if _kind(r) is not CardKind.BATTLEFIELD), key=_name_key)
        battlegrounds = [r for r in rows if _kind(r) is CardKind.BATTLEFIELD]
        ordered = units + battlegrounds
        await resequence(session, ordered, range(len(ordered)))
        return ordered

    @staticmethod
    async def _clear_dangling_battlegrounds(session: AsyncSession, match: MatchDB) -> None:
        """Unset active battleground selections that point at deleted instances."""
        for attr in ("red_active_battleground", "blue_active_battleground"):
            instance_id = getattr(match, attr)
            if instance_id and await get_instance(session, match.id, instance_id) is None:
                setattr(match, attr, None)

    # --- Creation ---------------------------------------------------------

    async def add_card(
        self,
        match_id: str,
        owner: PlayerSide,
        zone: ZoneType,
        catalogue_id: str,
        face_up: bool = False,
        exhausted: bool = False,
    ) -> Transition[CardInstance]:
        """
        Create a new instance on top of `owner`'s `zone` pile.

        Raises:
            NotFoundError: Unknown match or catalogue id
            InvalidTransitionError: Zone does not accept the card's kind
        """
        async with self._store.mutate(match_id, "add_card") as (session, match):
            card = await self._catalogue(session, catalogue_id)
            row = await self._add(session, match_id, owner, zone, card, face_up, exhausted)
            instance = instance_to_model(row)
            event = self._changed(match)

        logger.debug("Added %s to %s/%s in %s", catalogue_id, owner.value, zone.value, match_id)
        return Transition(instance, event)

    async def spawn_token(
        self, match_id: str, owner: PlayerSide, catalogue_id: str
    ) -> Transition[CardInstance]:
        """Put a token into `owner`'s base, face up and ready."""
        async with self._store.mutate(match_id, "spawn_token") as (session, match):
            card = await self._catalogue(session, catalogue_id)
            if _kind(card) is not CardKind.TOKEN_UNIT:
                raise InvalidTransitionError(
                    "token_kind", f"'{card.name}' is not a token and cannot be spawned."
                )
            row = await self._add(
                session, match_id, owner, ZoneType.BASE, card, face_up=True, exhausted=False
            )
            instance = instance_to_model(row)
            event = self._changed(match)

        return Transition(instance, event)

    async def load_deck(
        self, match_id: str, owner: PlayerSide, deck: DeckList
    ) -> Transition[SideBoard]:
        """
        Replace everything `owner` has on the board with a fresh deck.

        Legend, champion and battlegrounds go face up to their zones; the
        main and rune decks go face down and are shuffled. All catalogue
        ids are resolved before anything is deleted.
        """
        async with self._store.mutate(match_id, "load_deck") as (session, match):
            catalogue: dict[str, CatalogueCardDB] = {}
            wanted = [
                *deck.main_deck,
                *deck.rune_deck,
                *deck.battlegrounds,
                *(cid for cid in (deck.legend, deck.champion) if cid),
            ]
            for catalogue_id in wanted:
                if catalogue_id not in catalogue:
                    catalogue[catalogue_id] = await self._catalogue(session, catalogue_id)
            for catalogue_id in deck.rune_deck:
                _check_accepts(ZoneType.RUNE_DECK, catalogue[catalogue_id])

            removed = await delete_owner_instances(session, match_id, owner)
            await self._clear_dangling_battlegrounds(session, match)

            placements: list[tuple[ZoneType, str, bool]] = []
            if deck.legend:
                placements.append((ZoneType.LEGEND, deck.legend, True))
            if deck.champion:
                placements.append((ZoneType.CHAMPION, deck.champion, True))
            placements.extend((ZoneType.BATTLEFIELD, cid, True) for cid in deck.battlegrounds)
            for catalogue_id, quantity in deck.main_deck.items():
                placements.extend([(ZoneType.MAIN_DECK, catalogue_id, False)] * quantity)
            for catalogue_id, quantity in deck.rune_deck.items():
                placements.extend([(ZoneType.RUNE_DECK, catalogue_id, False)] * quantity)

            # Piles are empty after the delete, so positions count up from 0
            positions: dict[ZoneType, int] = {}
            for zone, catalogue_id, face_up in placements:
                position = positions.get(zone, 0)
                positions[zone] = position + 1
                await insert_instance(
                    session,
                    match_id,
                    owner,
                    zone,
                    catalogue[catalogue_id],
                    position,
                    face_up=face_up,
                    battlefield_side=owner if zone is ZoneType.BATTLEFIELD else None,
                )

            for deck_zone in DeckZone:
                pile = await get_pile(session, match_id, owner, deck_zone.zone)
                await resequence(session, pile, shuffled_positions(len(pile), self._rng))
            await self._reorder_battlefield(session, match_id, owner)

            if owner is PlayerSide.RED:
                match.red_deck_id = deck.deck_id
            else:
                match.blue_deck_id = deck.deck_id

            board = SideBoard(owner=owner)
            for row in await get_match_instances(session, match_id):
                if row.owner == owner.value:
                    board.zones[ZoneType(row.zone)].append(instance_to_model(row))
            event = self._changed(match)

        logger.info(
            "Loaded %d cards for %s in match %s (replaced %d)",
            len(placements),
            owner.value,
            match_id,
            removed,
        )
        return Transition(board, event)

    # --- Moves ------------------------------------------------------------

    async def move(
        self,
        match_id: str,
        instance_id: str,
        from_zone: ZoneType | None,
        to_zone: ZoneType,
        battlefield_side: PlayerSide | None = None,
        owner: PlayerSide | None = None,
    ) -> Transition[MoveResult]:
        """
        Move an instance to the top of its owner's `to_zone` pile.

        `from_zone` is the zone the caller believes the card is in; a
        mismatch means the caller acted on a stale board and is rejected.
        `owner`, when given, must be the card's owner.

        On the battlefield the card is tagged with `battlefield_side`
        (default: its owner) and the owner's battlefield is re-sorted.
        A token sent to the trash is deleted instead.
        """
        async with self._store.mutate(match_id, "move") as (session, match):
            row = await self._instance(session, match_id, instance_id)
            if from_zone is not None and row.zone != from_zone.value:
                raise InvalidTransitionError(
                    "stale_source_zone",
                    f"Card is in {row.zone}, not {from_zone.value}.",
                )
            if owner is not None:
                self._check_owner(row, owner)

            if to_zone is ZoneType.TRASH and _kind(row) is CardKind.TOKEN_UNIT:
                await delete_instance(session, row)
                await self._clear_dangling_battlegrounds(session, match)
                event = self._changed(match)
                logger.debug("Token %s removed from match %s", instance_id, match_id)
                return Transition(MoveResult(instance_id, None, removed=True), event)

            _check_accepts(to_zone, row.card)
            card_owner = PlayerSide(row.owner)
            side = (battlefield_side or card_owner) if to_zone is ZoneType.BATTLEFIELD else None
            position = await next_position(session, match_id, card_owner, to_zone)
            await relocate_instance(session, row, to_zone, position, battlefield_side=side)
            if to_zone is ZoneType.BATTLEFIELD:
                await self._reorder_battlefield(session, match_id, card_owner)

            instance = instance_to_model(row)
            event = self._changed(match)

        logger.debug("Moved %s to %s in %s", instance_id, to_zone.value, match_id)
        return Transition(MoveResult(instance_id, instance), event)

    async def flip(self, match_id: str, instance_id: str) -> Transition[CardInstance]:
        """Toggle face up / face down."""
        async with self._store.mutate(match_id, "flip") as (session, match):
            row = await self._instance(session, match_id, instance_id)
            row.face_up = not row.face_up
            instance = instance_to_model(row)
            event = self._changed(match)
        return Transition(instance, event)

    async def exhaust(self, match_id: str, instance_id: str) -> Transition[CardInstance]:
        """Toggle exhausted / ready."""
        async with self._store.mutate(match_id, "exhaust") as (session, match):
            row = await self._instance(session, match_id, instance_id)
            row.exhausted = not row.exhausted
            instance = instance_to_model(row)
            event = self._changed(match)
        return Transition(instance, event)

    async def set_temp_might(
        self, match_id: str, instance_id: str, value: int | None
    ) -> Transition[CardInstance]:
        """Set the temporary might modifier; None clears it."""
        async with self._store.mutate(match_id, "set_temp_might") as (session, match):
            row = await self._instance(session, match_id, instance_id)
            row.temp_might = value
            instance = instance_to_model(row)
            event = self._changed(match)
        return Transition(instance, event)

    async def remove_card(self, match_id: str, instance_id: str) -> Transition[str]:
        """Delete an instance permanently. Nothing can bring it back."""
        async with self._store.mutate(match_id, "remove_card") as (session, match):
            row = await self._instance(session, match_id, instance_id)
            await delete_instance(session, row)
            await self._clear_dangling_battlegrounds(session, match)
            event = self._changed(match)

        logger.debug("Removed %s from match %s", instance_id, match_id)
        return Transition(instance_id, event)

    # --- Decks ------------------------------------------------------------

    async def draw(
        self, match_id: str, owner: PlayerSide, deck: DeckZone
    ) -> Transition[CardInstance | None]:
        """
        Move the top card of a deck to its destination, face up.

        main_deck -> hand, rune_deck -> runes. An empty deck is not an
        error: the value is None and no event is produced.
        """
        async with self._store.mutate(match_id, "draw") as (session, match):
            top = await get_pile(session, match_id, owner, deck.zone, top_first=True, limit=1)
            if not top:
                logger.debug("%s drew from empty %s in %s", owner.value, deck.value, match_id)
                return Transition(None, None)

            row = top[0]
            destination = deck.draw_destination
            position = await next_position(session, match_id, owner, destination)
            await relocate_instance(session, row, destination, position, face_up=True)
            instance = instance_to_model(row)
            event = self._changed(match)

        return Transition(instance, event)

    async def peek(self, match_id: str, owner: PlayerSide, deck: DeckZone) -> CardInstance | None:
        """Top card of a deck without moving or revealing it. None if empty."""
        peeked = await self.peek_many(match_id, owner, deck, 1)
        return peeked.value[0] if peeked.value else None

    async def peek_many(
        self, match_id: str, owner: PlayerSide, deck: DeckZone, count: int
    ) -> Transition[list[CardInstance]]:
        """
        Top `count` cards of a deck, top first. Read only.

        The event is a `player_peeked` notice for the other viewer; the
        match version is not bumped because nothing moved.
        """
        if not 1 <= count <= MAX_PEEK:
            raise InvalidTransitionError(
                "peek_count", f"Peek count must be between 1 and {MAX_PEEK}."
            )
        async with self._store.read_match(match_id, "peek") as (session, match):
            rows = await get_pile(session, match_id, owner, deck.zone, top_first=True, limit=count)
            cards = instances_to_models(rows)
            event = ChangeEvent(
                match_id=match_id,
                version=match.version,
                kind=PLAYER_PEEKED,
                payload={"player_side": owner.value, "deck_type": deck.value, "count": len(cards)},
            )

        return Transition(cards, event)

    async def recycle_one(
        self,
        match_id: str,
        owner: PlayerSide,
        instance_id: str,
        into_deck: DeckZone | None = None,
    ) -> Transition[CardInstance]:
        """
        Return one card to the bottom of its owner's deck.

        The card ends face down, ready, off the battlefield and without a
        might modifier. `into_deck` defaults to the rune deck for runes and
        the main deck for everything else.
        """
        async with self._store.mutate(match_id, "recycle_one") as (session, match):
            row = await self._instance(session, match_id, instance_id)
            self._check_owner(row, owner)
            if into_deck is None:
                into_deck = (
                    DeckZone.RUNE_DECK if _kind(row) is CardKind.BASIC_RUNE else DeckZone.MAIN_DECK
                )
            _check_accepts(into_deck.zone, row.card)

            position = await bottom_position(session, match_id, owner, into_deck.zone)
            await relocate_instance(
                session, row, into_deck.zone, position, face_up=False, exhausted=False
            )
            row.temp_might = None
            instance = instance_to_model(row)
            event = self._changed(match)

        logger.debug("Recycled %s to bottom of %s in %s", instance_id, into_deck.value, match_id)
        return Transition(instance, event)

    async def recycle_all(
        self,
        match_id: str,
        owner: PlayerSide,
        from_zone: ZoneType = ZoneType.TRASH,
        into_deck: DeckZone = DeckZone.MAIN_DECK,
    ) -> Transition[list[CardInstance]]:
        """
        Move every card of `owner`'s `from_zone` to the bottom of a deck.

        Cards are taken bottom first and each lands below the previous
        one. All of them move or none do.
        """
        if from_zone is into_deck.zone:
            raise InvalidTransitionError(
                "same_zone", f"Cannot recycle {from_zone.value} into itself."
            )

        async with self._store.mutate(match_id, "recycle_all") as (session, match):
            rows = await get_pile(session, match_id, owner, from_zone)
            for row in rows:
                _check_accepts(into_deck.zone, row.card)

            position = await bottom_position(session, match_id, owner, into_deck.zone)
            for row in rows:
                await relocate_instance(
                    session, row, into_deck.zone, position, face_up=False, exhausted=False
                )
                row.temp_might = None
                position -= 1

            instances = instances_to_models(rows)
            event = self._changed(match)

        logger.debug(
            "Recycled %d cards from %s to %s for %s in %s",
            len(instances),
            from_zone.value,
            into_deck.value,
            owner.value,
            match_id,
        )
        return Transition(instances, event)

    async def shuffle(self, match_id: str, owner: PlayerSide, zone: ZoneType) -> Transition[int]:
        """
        Randomly reorder a pile. Value is the pile size.

        Positions become a uniform permutation of 0..count-1; membership
        and every other field are untouched.
        """
        async with self._store.mutate(match_id, "shuffle") as (session, match):
            rows = await get_pile(session, match_id, owner, zone)
            await resequence(session, rows, shuffled_positions(len(rows), self._rng))
            event = self._changed(match)

        return Transition(len(rows), event)

    async def reorder_battlefield_alphabetical(
        self, match_id: str, owner: PlayerSide
    ) -> Transition[list[CardInstance]]:
        """
        Sort `owner`'s battlefield cards by name, battlegrounds last.

        Cosmetic only. Zone and battlefield side are never changed.
        """
        async with self._store.mutate(match_id, "reorder_battlefield") as (session, match):
            rows = await self._reorder_battlefield(session, match_id, owner)
            instances = instances_to_models(rows)
            event = self._changed(match)

        return Transition(instances, event)

    # --- Reads ------------------------------------------------------------

    async def get_zone(
        self, match_id: str, owner: PlayerSide, zone: ZoneType
    ) -> list[CardInstance]:
        """Instances of one pile, bottom first."""
        async with self._store.read_match(match_id, "get_zone") as (session, _match):
            return instances_to_models(await get_pile(session, match_id, owner, zone))

    async def get_instance(self, match_id: str, instance_id: str) -> CardInstance:
        async with self._store.read_match(match_id, "get_instance") as (session, _match):
            return instance_to_model(await self._instance(session, match_id, instance_id))

    async def get_board_state(
        self, match_id: str, viewer: PlayerSide | None = None
    ) -> BoardSnapshot:
        """
        Full board for re-sync after reconnect.

        With a `viewer`, face-down cards owned by the other side are
        returned without their catalogue identity.
        """
        async with self._store.read_match(match_id, "get_board_state") as (session, match):
            rows = await get_match_instances(session, match_id)
            snapshot = BoardSnapshot(
                match=match_to_model(match),
                red=SideBoard(owner=PlayerSide.RED),
                blue=SideBoard(owner=PlayerSide.BLUE),
            )

        for instance in instances_to_models(rows):
            if viewer is not None and instance.owner is not viewer and not instance.face_up:
                instance = instance.redacted()
            snapshot.side(instance.owner).zones[instance.zone].append(instance)
        for side in PlayerSide:
            for pile in snapshot.side(side).zones.values():
                pile.sort(key=lambda i: i.position)
        return snapshot
