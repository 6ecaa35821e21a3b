"""WebSocket gateway module for real-time auction updates."""

from cricket_auction.ws.events import EventType
from cricket_auction.ws.messages import MessageEnvelope
from cricket_auction.ws.connection import WebSocketConnection, ConnectionState
from cricket_auction.ws.manager import ConnectionManager

__all__ = [
    "EventType",
    "MessageEnvelope",
    "WebSocketConnection",
    "ConnectionState",
    "ConnectionManager",
]
