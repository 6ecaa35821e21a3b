"""WebSocket connection model."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from fastapi import WebSocket

from cricket_auction.utils.security import Principal

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass
class WebSocketConnection:
    """Represents a single WebSocket connection.

    Spectators stay anonymous; ``principal`` is set after a successful AUTH.
    """

    websocket: WebSocket
    connection_id: str
    connected_at: datetime
    principal: Principal | None = None
    state: ConnectionState = ConnectionState.CONNECTED

    # Channel subscriptions
    subscribed_channels: set[str] = field(default_factory=set)

    last_ping_at: datetime | None = None

    @property
    def user_id(self) -> str | None:
        return self.principal.user_id if self.principal else None

    @property
    def is_authenticated(self) -> bool:
        return self.principal is not None

    async def send(self, message: dict[str, Any]) -> bool:
        """Send message to client. Returns False if failed."""
        if self.state == ConnectionState.DISCONNECTED:
            return False
        try:
            await self.websocket.send_json(message)
            return True
        except Exception as e:
            logger.warning(f"Failed to send message to {self.connection_id}: {e}")
            return False

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Close the connection."""
        try:
            self.state = ConnectionState.DISCONNECTED
            await self.websocket.close(code, reason)
        except Exception as e:
            logger.debug(f"Error closing connection {self.connection_id}: {e}")

    def update_ping(self) -> None:
        self.last_ping_at = datetime.now(timezone.utc)

    def is_subscribed(self, channel: str) -> bool:
        """Check if connection is subscribed to a channel."""
        return channel in self.subscribed_channels
