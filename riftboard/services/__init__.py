"""
Riftboard services.

The zone transition engine, match aggregate and their plumbing.
"""

from riftboard.services.board_engine import (
    ZONE_ACCEPTS,
    BoardEngine,
    MoveResult,
    Transition,
    zone_accepts,
)
from riftboard.services.board_store import BoardStore
from riftboard.services.match_aggregate import MatchAggregate
from riftboard.services.match_locks import MatchLocks
from riftboard.services.notifier import (
    GAME_DELETED,
    GAME_STATE_UPDATED,
    PLAYER_PEEKED,
    ChangeEvent,
    ChangeNotifier,
    LoggingNotifier,
    WebhookNotifier,
    build_notifier,
)

__all__ = [
    "GAME_DELETED",
    "GAME_STATE_UPDATED",
    "PLAYER_PEEKED",
    "ZONE_ACCEPTS",
    "BoardEngine",
    "BoardStore",
    "ChangeEvent",
    "ChangeNotifier",
    "LoggingNotifier",
    "MatchAggregate",
    "MatchLocks",
    "MoveResult",
    "Transition",
    "WebhookNotifier",
    "build_notifier",
    "zone_accepts",
]
