"""Auction event handlers (join/leave tournament, admin bid updates)."""

import logging
from typing import Any

from cricket_auction.auction.commands import AuctionCommandGateway
from cricket_auction.utils.errors import ValidationError
from cricket_auction.ws.connection import WebSocketConnection
from cricket_auction.ws.events import EventType
from cricket_auction.ws.handlers.base import BaseHandler
from cricket_auction.ws.manager import ConnectionManager
from cricket_auction.ws.messages import MessageEnvelope

logger = logging.getLogger(__name__)


def _tournament_id(payload: dict[str, Any]) -> str:
    tournament_id = payload.get("tournamentId")
    if not isinstance(tournament_id, str) or not tournament_id:
        raise ValidationError("tournamentId is required", {"field": "tournamentId"})
    return tournament_id


def _amount(name: str, value: Any) -> int:
    """Accept ints and integral floats (JS numbers)."""
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number", {"field": name})
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise ValidationError(f"{name} must be a whole amount", {"field": name})


class AuctionHandler(BaseHandler):
    """Routes tournament channel and admin bid events to the command gateway.

    join_tournament replies with the snapshot directly (sent by the
    broadcaster); admin_update_bid is answered by the broadcast that follows.
    """

    def __init__(self, manager: ConnectionManager, gateway: AuctionCommandGateway):
        super().__init__(manager)
        self.gateway = gateway

    @property
    def handled_events(self) -> tuple[EventType, ...]:
        return (
            EventType.JOIN_TOURNAMENT,
            EventType.LEAVE_TOURNAMENT,
            EventType.ADMIN_UPDATE_BID,
        )

    async def handle(
        self,
        conn: WebSocketConnection,
        event: MessageEnvelope,
    ) -> MessageEnvelope | None:
        if event.type == EventType.JOIN_TOURNAMENT:
            await self.gateway.join(conn, _tournament_id(event.payload))
        elif event.type == EventType.LEAVE_TOURNAMENT:
            await self.gateway.leave(conn, _tournament_id(event.payload))
        elif event.type == EventType.ADMIN_UPDATE_BID:
            await self._handle_update_bid(conn, event)

        return None

    async def _handle_update_bid(
        self,
        conn: WebSocketConnection,
        event: MessageEnvelope,
    ) -> None:
        payload = event.payload
        tournament_id = _tournament_id(payload)

        new_bid = payload.get("newBid")
        increment = payload.get("increment")

        await self.gateway.update_bid(
            conn.principal,
            tournament_id,
            new_bid=_amount("newBid", new_bid) if new_bid is not None else None,
            increment=_amount("increment", increment) if increment is not None else None,
        )
