"""
Change notification.

The board engine never talks to the realtime transport. Each successful
mutation returns a `ChangeEvent`; the HTTP layer hands it to a
`ChangeNotifier` after the transaction has committed.

Delivery is fire-and-forget: a notifier logs and swallows its own
failures, so a lost notification can never undo a saved move.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

import httpx

from riftboard.config import settings

logger = logging.getLogger(__name__)

GAME_STATE_UPDATED = "game_state_updated"
PLAYER_PEEKED = "player_peeked"
GAME_DELETED = "game_deleted"


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """
    "Match changed" signal addressed to one match.

    Attributes:
        match_id: Match whose viewers should refresh
        version: Match version after the change
        kind: Event name on the realtime channel
        payload: Extra event data (e.g. what was peeked)
    """

    match_id: str
    version: int
    kind: str = GAME_STATE_UPDATED
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def channel(self) -> str:
        return f"game-{self.match_id}"

    def to_message(self) -> dict[str, Any]:
        return {
            "channel": self.channel,
            "event": self.kind,
            "match_id": self.match_id,
            "version": self.version,
            "payload": self.payload,
            "timestamp": datetime.now(UTC).isoformat(),
        }


class ChangeNotifier(Protocol):
    """Delivers change events to other viewers of a match."""

    async def publish(self, event: ChangeEvent) -> None: ...


class LoggingNotifier:
    """Notifier used when no relay is configured. Only logs."""

    async def publish(self, event: ChangeEvent) -> None:
        logger.debug(
            "Change event %s on %s (version %d)", event.kind, event.channel, event.version
        )


class WebhookNotifier:
    """
    POSTs change events to an HTTP relay.

    The relay is whatever fans messages out to browsers (a websocket hub,
    a hosted pub/sub service). Errors are logged, never raised.
    """

    def __init__(self, url: str, timeout: float = 5.0) -> None:
        self._url = url
        self._timeout = timeout

    async def publish(self, event: ChangeEvent) -> None:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._url, json=event.to_message())
                response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(
                "Failed to deliver %s for match %s: %s", event.kind, event.match_id, e
            )
            return

        logger.debug("Delivered %s for match %s", event.kind, event.match_id)


def build_notifier() -> ChangeNotifier:
    """Notifier for the configured environment."""
    if settings.notify_url:
        return WebhookNotifier(settings.notify_url, timeout=settings.notify_timeout)
    return LoggingNotifier()
