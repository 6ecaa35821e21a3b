"""WebSocket gateway endpoint.

Connection flow:
1. Client connects; server accepts and sends CONNECTION_STATE(connected)
2. Spectators send join_tournament and receive the latest snapshot
3. Admins send AUTH {token} before admin_update_bid
4. Every message gets either a direct response, a broadcast, or an ERROR
   sent to the sender only
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect

from cricket_auction.services import AuctionServices
from cricket_auction.utils.errors import AuctionError
from cricket_auction.utils.json_utils import json_loads
from cricket_auction.ws.connection import ConnectionState, WebSocketConnection
from cricket_auction.ws.events import CLIENT_TO_SERVER_EVENTS, EventType
from cricket_auction.ws.handlers.auction import AuctionHandler
from cricket_auction.ws.handlers.base import BaseHandler
from cricket_auction.ws.handlers.system import SystemHandler, create_connection_state_message
from cricket_auction.ws.manager import ConnectionLimitExceeded
from cricket_auction.ws.messages import (
    MessageEnvelope,
    create_error_message,
    error_message_from,
)

logger = logging.getLogger(__name__)
router = APIRouter(tags=["WebSocket"])


class HandlerRegistry:
    """Registry for event handlers."""

    def __init__(self, services: AuctionServices):
        self._handlers: dict[EventType, BaseHandler] = {}
        self._register_handler(SystemHandler(services.manager, services.settings))
        self._register_handler(AuctionHandler(services.manager, services.gateway))

    def _register_handler(self, handler: BaseHandler) -> None:
        """Register a handler for its events."""
        for event_type in handler.handled_events:
            self._handlers[event_type] = handler

    def get_handler(self, event_type: EventType) -> BaseHandler | None:
        """Get handler for an event type."""
        return self._handlers.get(event_type)


async def dispatch_message(
    registry: HandlerRegistry,
    conn: WebSocketConnection,
    raw: str | bytes | dict[str, Any],
) -> None:
    """Parse one client message, run its handler, and answer the sender."""
    request_id = None
    trace_id = None

    try:
        data = json_loads(raw) if isinstance(raw, (str, bytes)) else raw
        if isinstance(data, dict):
            request_id = data.get("requestId")
            trace_id = data.get("traceId")

        event = MessageEnvelope.from_dict(data)

        # Validate event direction
        if event.type not in CLIENT_TO_SERVER_EVENTS:
            error_msg = create_error_message(
                error_code="INVALID_EVENT_DIRECTION",
                error_message=f"Event {event.type.value} cannot be sent by client",
                request_id=event.request_id,
                trace_id=event.trace_id,
            )
            await conn.send(error_msg.to_dict())
            return

        handler = registry.get_handler(event.type)
        if handler is None:
            error_msg = create_error_message(
                error_code="UNKNOWN_EVENT",
                error_message=f"Unknown event type: {event.type.value}",
                request_id=event.request_id,
                trace_id=event.trace_id,
            )
            await conn.send(error_msg.to_dict())
            return

        response = await handler.handle(conn, event)
        if response:
            await conn.send(response.to_dict())

    except AuctionError as e:
        await conn.send(error_message_from(e, request_id, trace_id).to_dict())

    except ValueError as e:
        # Invalid message format
        logger.warning(f"Invalid message format: {e}")
        error_msg = create_error_message(
            error_code="INVALID_MESSAGE",
            error_message=f"Invalid message format: {e}",
            request_id=request_id,
            trace_id=trace_id,
        )
        await conn.send(error_msg.to_dict())

    except Exception as e:
        logger.exception(f"Handler error: {e}")
        error_msg = create_error_message(
            error_code="INTERNAL_ERROR",
            error_message="Internal handler error",
            request_id=request_id,
            trace_id=trace_id,
        )
        await conn.send(error_msg.to_dict())


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Main WebSocket endpoint."""
    services: AuctionServices = websocket.app.state.services
    manager = services.manager

    await websocket.accept()

    conn = WebSocketConnection(
        websocket=websocket,
        connection_id=str(uuid4()),
        connected_at=datetime.now(timezone.utc),
    )

    try:
        await manager.connect(conn)
    except ConnectionLimitExceeded as e:
        await websocket.close(1013, str(e))
        return

    welcome_message = create_connection_state_message(
        state=ConnectionState.CONNECTED,
        connection_id=conn.connection_id,
    )
    await conn.send(welcome_message.to_dict())

    logger.info(f"WebSocket connected: conn={conn.connection_id}")

    registry = HandlerRegistry(services)

    try:
        while True:
            raw = await websocket.receive_text()
            await dispatch_message(registry, conn, raw)

    except WebSocketDisconnect as e:
        logger.info(
            f"WebSocket disconnected: user={conn.user_id}, "
            f"conn={conn.connection_id}, code={e.code}"
        )

    except Exception as e:
        logger.exception(f"WebSocket error: {e}")

    finally:
        await manager.disconnect(conn.connection_id)
        logger.info(f"WebSocket cleanup complete: conn={conn.connection_id}")


@router.get("/ws/stats")
async def websocket_stats(request: Request) -> dict[str, Any]:
    """Get WebSocket connection statistics (for monitoring)."""
    services: AuctionServices = request.app.state.services
    return {
        "connections": services.manager.connection_count,
        "status": "running",
    }
