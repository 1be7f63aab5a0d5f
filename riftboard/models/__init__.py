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
    STANDARD_MESSAGES,
    STANDARD_SUGGESTIONS,
    ApiResponse,
    FailureDetail,
    FailureKind,
    InvalidTransitionError,
    KnownError,
    NotFoundError,
    OutcomeType,
    StorageFailureError,
    create_refusal,
    create_success,
    create_unknown_failure,
    finalize_response,
    is_finalized,
)

__all__ = [
    "ApiResponse",
    "BoardSnapshot",
    "CardInstance",
    "CardKind",
    "CatalogueCard",
    "DeckList",
    "DeckZone",
    "FailureDetail",
    "FailureKind",
    "InvalidTransitionError",
    "KnownError",
    "Match",
    "MatchStatus",
    "NotFoundError",
    "OutcomeType",
    "PlayerSide",
    "STANDARD_MESSAGES",
    "STANDARD_SUGGESTIONS",
    "SideBoard",
    "StorageFailureError",
    "ZoneType",
    "create_refusal",
    "create_success",
    "create_unknown_failure",
    "finalize_response",
    "is_finalized",
]
