"""WebSocket event type definitions.

Auction events keep the lower-case names the auction room clients listen
for; protocol events are upper-case.
"""

from enum import Enum


class EventType(str, Enum):
    """All WebSocket event types."""

    # System events
    PING = "PING"
    PONG = "PONG"
    AUTH = "AUTH"
    AUTH_RESULT = "AUTH_RESULT"
    CONNECTION_STATE = "CONNECTION_STATE"
    ERROR = "ERROR"

    # Tournament channel
    JOIN_TOURNAMENT = "join_tournament"
    LEAVE_TOURNAMENT = "leave_tournament"

    # Admin commands
    ADMIN_UPDATE_BID = "admin_update_bid"

    # Auction broadcasts
    AUCTION_STATE_UPDATE = "auction_state_update"
    AUCTION_NOTIFICATION = "auction_notification"
    SQUAD_UPDATE = "squad_update"
    POOLS_UPDATE = "pools_update"


# Event direction mapping
CLIENT_TO_SERVER_EVENTS = frozenset([
    EventType.PING,
    EventType.AUTH,
    EventType.JOIN_TOURNAMENT,
    EventType.LEAVE_TOURNAMENT,
    EventType.ADMIN_UPDATE_BID,
])

SERVER_TO_CLIENT_EVENTS = frozenset([
    EventType.PONG,
    EventType.AUTH_RESULT,
    EventType.CONNECTION_STATE,
    EventType.ERROR,
    EventType.AUCTION_STATE_UPDATE,
    EventType.AUCTION_NOTIFICATION,
    EventType.SQUAD_UPDATE,
    EventType.POOLS_UPDATE,
])


def tournament_channel(tournament_id: str) -> str:
    """Subscriber group name for one tournament."""
    return f"tournament:{tournament_id}"
