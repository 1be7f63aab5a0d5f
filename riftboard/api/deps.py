"""
Shared FastAPI dependencies.

One `BoardStore` (and therefore one lock registry) serves every request
in the process, so two requests on the same match always contend for the
same lock. Tests override `get_board_store` and `get_notifier`.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from riftboard.db.database import async_session_factory
from riftboard.services.board_engine import BoardEngine
from riftboard.services.board_store import BoardStore
from riftboard.services.match_aggregate import MatchAggregate
from riftboard.services.notifier import ChangeNotifier, build_notifier


@lru_cache(maxsize=1)
def get_board_store() -> BoardStore:
    return BoardStore(async_session_factory)


@lru_cache(maxsize=1)
def get_notifier() -> ChangeNotifier:
    return build_notifier()


def get_board_engine(store: Annotated[BoardStore, Depends(get_board_store)]) -> BoardEngine:
    return BoardEngine(store)


def get_match_aggregate(
    store: Annotated[BoardStore, Depends(get_board_store)],
) -> MatchAggregate:
    return MatchAggregate(store)


Engine = Annotated[BoardEngine, Depends(get_board_engine)]
Aggregate = Annotated[MatchAggregate, Depends(get_match_aggregate)]
Notifier = Annotated[ChangeNotifier, Depends(get_notifier)]
