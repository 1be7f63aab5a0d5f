"""
Board domain model.

Plain dataclasses describing card instances, zones and board snapshots.
These are the values the engine hands back to callers; the ORM rows in
`riftboard.models.db` never leave the engine.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum


class PlayerSide(str, Enum):
    """One of the two seats at the table."""

    RED = "red"
    BLUE = "blue"


class ZoneType(str, Enum):
    """Named compartments a card instance can sit in."""

    LEGEND = "legend"
    CHAMPION = "champion"
    BASE = "base"
    BATTLEFIELD = "battlefield"
    MAIN_DECK = "main_deck"
    RUNE_DECK = "rune_deck"
    RUNES = "runes"
    HAND = "hand"
    TRASH = "trash"


class DeckZone(str, Enum):
    """Ordered piles that can be drawn from, peeked at and recycled into."""

    MAIN_DECK = "main_deck"
    RUNE_DECK = "rune_deck"

    @property
    def zone(self) -> ZoneType:
        return ZoneType(self.value)

    @property
    def draw_destination(self) -> ZoneType:
        """Zone a drawn card lands in."""
        return ZoneType.RUNES if self is DeckZone.RUNE_DECK else ZoneType.HAND


class CardKind(str, Enum):
    """Catalogue card types."""

    UNIT = "Unit"
    CHAMPION_UNIT = "Champion Unit"
    SPELL = "Spell"
    GEAR = "Gear"
    BASIC_RUNE = "Basic Rune"
    LEGEND = "Legend"
    CHAMPION_LEGEND = "Champion Legend"
    SIGNATURE_SPELL = "Signature Spell"
    SIGNATURE_UNIT = "Signature Unit"
    TOKEN_UNIT = "Token Unit"
    BATTLEFIELD = "Battlefield"


class MatchStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


@dataclass(frozen=True, slots=True)
class CatalogueCard:
    """
    Immutable card metadata resolved from the catalogue.

    Attributes:
        id: Catalogue identifier (e.g., "OGN-007/298")
        name: Display name, used for alphabetical battlefield ordering
        kind: Card type; drives zone acceptance and token handling
    """

    id: str
    name: str
    kind: CardKind
    energy: int | None = None
    might: int | None = None
    domain: str | None = None
    tags: tuple[str, ...] = ()
    ability: str | None = None
    rarity: str | None = None
    set_name: str | None = None
    card_number: str | None = None
    artist: str | None = None
    image_url: str | None = None


@dataclass(frozen=True, slots=True)
class CardInstance:
    """
    A single physical card token in a live match.

    `owner` is fixed for the token's whole life. `battlefield_side` is only
    set while the card is in the battlefield zone and names which side's
    sub-area it occupies. `temp_might` of None means no modifier.
    """

    instance_id: str
    match_id: str
    catalogue_id: str | None
    owner: PlayerSide
    zone: ZoneType
    position: int
    face_up: bool = False
    exhausted: bool = False
    battlefield_side: PlayerSide | None = None
    temp_might: int | None = None
    card: CatalogueCard | None = None

    def redacted(self) -> "CardInstance":
        """Copy with catalogue identity hidden."""
        return replace(self, catalogue_id=None, card=None)


@dataclass(frozen=True, slots=True)
class Match:
    """Per-match aggregate fields."""

    match_id: str
    status: MatchStatus
    red_deck_id: str | None
    blue_deck_id: str | None
    red_active_battleground: str | None
    blue_active_battleground: str | None
    red_score: int
    blue_score: int
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def score(self, side: PlayerSide) -> int:
        return self.red_score if side is PlayerSide.RED else self.blue_score

    def active_battleground(self, side: PlayerSide) -> str | None:
        if side is PlayerSide.RED:
            return self.red_active_battleground
        return self.blue_active_battleground


def empty_zones() -> dict[ZoneType, list[CardInstance]]:
    return {zone: [] for zone in ZoneType}


@dataclass
class SideBoard:
    """Every zone of one owner, each sorted by ascending position."""

    owner: PlayerSide
    zones: dict[ZoneType, list[CardInstance]] = field(default_factory=empty_zones)

    def count(self, zone: ZoneType) -> int:
        return len(self.zones[zone])

    def instances(self) -> list[CardInstance]:
        return [instance for zone in ZoneType for instance in self.zones[zone]]


@dataclass
class BoardSnapshot:
    """Full per-side board state, used to re-sync clients after reconnect."""

    match: Match
    red: SideBoard
    blue: SideBoard

    def side(self, side: PlayerSide) -> SideBoard:
        return self.red if side is PlayerSide.RED else self.blue

    @property
    def scores(self) -> dict[PlayerSide, int]:
        return {side: self.match.score(side) for side in PlayerSide}

    @property
    def active_battlegrounds(self) -> dict[PlayerSide, str | None]:
        return {side: self.match.active_battleground(side) for side in PlayerSide}


@dataclass(frozen=True, slots=True)
class DeckList:
    """
    A deck already resolved to catalogue identifiers.

    Text parsing of deck lists happens upstream; this is what gets loaded
    onto the board.
    """

    deck_id: str | None = None
    legend: str | None = None
    champion: str | None = None
    main_deck: dict[str, int] = field(default_factory=dict)
    rune_deck: dict[str, int] = field(default_factory=dict)
    battlegrounds: tuple[str, ...] = ()

    def total_cards(self) -> int:
        return (
            sum(self.main_deck.values())
            + sum(self.rune_deck.values())
            + len(self.battlegrounds)
            + (1 if self.legend else 0)
            + (1 if self.champion else 0)
        )
