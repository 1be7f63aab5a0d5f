from riftboard.db.database import atomic, get_session, init_db, make_session_factory
from riftboard.db.operations import (
    catalogue_to_model,
    create_match,
    delete_match,
    get_catalogue_card,
    get_instance,
    get_match,
    get_pile,
    instance_to_model,
    list_matches,
    match_to_model,
    upsert_catalogue_card,
)
from riftboard.db.positions import bottom_position, next_position, resequence

__all__ = [
    "atomic",
    "bottom_position",
    "catalogue_to_model",
    "create_match",
    "delete_match",
    "get_catalogue_card",
    "get_instance",
    "get_match",
    "get_pile",
    "get_session",
    "init_db",
    "instance_to_model",
    "list_matches",
    "make_session_factory",
    "match_to_model",
    "next_position",
    "resequence",
    "upsert_catalogue_card",
]
