"""System event handlers (PING/PONG, AUTH, CONNECTION_STATE)."""

import logging

from cricket_auction.config import Settings
from cricket_auction.utils.errors import AuthenticationError
from cricket_auction.utils.security import TokenError, principal_from_token
from cricket_auction.ws.connection import ConnectionState, WebSocketConnection
from cricket_auction.ws.events import EventType
from cricket_auction.ws.handlers.base import BaseHandler
from cricket_auction.ws.manager import ConnectionManager
from cricket_auction.ws.messages import MessageEnvelope

logger = logging.getLogger(__name__)


class SystemHandler(BaseHandler):
    """Handles PING and AUTH.

    Connections start anonymous (spectators). An admin sends AUTH with a
    bearer token to unlock admin commands on the same connection.
    """

    def __init__(self, manager: ConnectionManager, settings: Settings | None = None):
        super().__init__(manager)
        self.settings = settings

    @property
    def handled_events(self) -> tuple[EventType, ...]:
        return (EventType.PING, EventType.AUTH)

    async def handle(
        self,
        conn: WebSocketConnection,
        event: MessageEnvelope,
    ) -> MessageEnvelope | None:
        if event.type == EventType.PING:
            return await self._handle_ping(conn, event)
        elif event.type == EventType.AUTH:
            return await self._handle_auth(conn, event)

        return None

    async def _handle_ping(
        self,
        conn: WebSocketConnection,
        event: MessageEnvelope,
    ) -> MessageEnvelope:
        """Handle PING from client - update timestamp and respond with PONG."""
        conn.update_ping()

        return MessageEnvelope.create(
            event_type=EventType.PONG,
            payload={},
            request_id=event.request_id,
            trace_id=event.trace_id,
        )

    async def _handle_auth(
        self,
        conn: WebSocketConnection,
        event: MessageEnvelope,
    ) -> MessageEnvelope:
        """Attach the token's principal to the connection.

        Raises:
            AuthenticationError: missing, invalid or expired token
        """
        # A failed AUTH also drops any earlier identity
        conn.principal = None

        token = event.payload.get("token")
        if not token or not isinstance(token, str):
            raise AuthenticationError("Missing token in AUTH message")

        try:
            principal = principal_from_token(token, self.settings)
        except TokenError as e:
            logger.info(f"AUTH rejected for conn={conn.connection_id}: {e.code}")
            raise AuthenticationError(e.message)

        if principal is None:
            logger.info(f"AUTH rejected for conn={conn.connection_id}: invalid token")
            raise AuthenticationError("Invalid or expired token")

        conn.principal = principal
        logger.info(
            f"Connection {conn.connection_id} authenticated as "
            f"user={principal.user_id} role={principal.role}"
        )

        return MessageEnvelope.create(
            event_type=EventType.AUTH_RESULT,
            payload={
                "success": True,
                "userId": principal.user_id,
                "role": principal.role,
            },
            request_id=event.request_id,
            trace_id=event.trace_id,
        )


def create_connection_state_message(
    state: ConnectionState,
    connection_id: str,
    trace_id: str | None = None,
) -> MessageEnvelope:
    """Create a CONNECTION_STATE message."""
    return MessageEnvelope.create(
        event_type=EventType.CONNECTION_STATE,
        payload={
            "state": state.value,
            "connectionId": connection_id,
        },
        trace_id=trace_id,
    )
