"""
Auction Broadcaster.

Pushes auction snapshots and point notifications to the ``tournament:{id}``
channel of each tournament.

Events:
- auction_state_update: full AuctionState, on join and after every transition
- auction_notification: {message, type} toast
- squad_update: all teams with rosters, after a sale
- pools_update: pools with completion flags
"""

import logging
from typing import Any, Dict, List, Tuple

from cricket_auction.auction.models import (
    AuctionState,
    NotificationType,
    Player,
    Pool,
    Team,
    pools_payload,
    teams_payload,
)
from cricket_auction.auction.state_table import AuctionStateTable
from cricket_auction.ws.connection import WebSocketConnection
from cricket_auction.ws.events import EventType, tournament_channel
from cricket_auction.ws.manager import ConnectionManager
from cricket_auction.ws.messages import MessageEnvelope

logger = logging.getLogger(__name__)


class AuctionBroadcaster:
    """Fan-out of auction events to tournament subscribers."""

    def __init__(self, manager: ConnectionManager, state_table: AuctionStateTable):
        self.manager = manager
        self.state_table = state_table

    @staticmethod
    def state_message(state: AuctionState) -> Dict[str, Any]:
        return MessageEnvelope.create(
            EventType.AUCTION_STATE_UPDATE, state.to_dict()
        ).to_dict()

    # =========================================================================
    # Membership
    # =========================================================================

    async def join(self, conn: WebSocketConnection, tournament_id: str) -> bool:
        """Subscribe ``conn`` and send it the latest snapshot.

        Only the latest (or default) snapshot is sent; there is no replay.
        """
        channel = tournament_channel(tournament_id)
        if not await self.manager.subscribe(conn.connection_id, channel):
            return False

        snapshot = await self.state_table.get(tournament_id)
        sent = await conn.send(self.state_message(snapshot))
        if not sent:
            await self.manager.unsubscribe(conn.connection_id, channel)
            return False

        logger.info(f"Connection {conn.connection_id} joined tournament {tournament_id}")
        return True

    async def leave(self, conn: WebSocketConnection, tournament_id: str) -> bool:
        channel = tournament_channel(tournament_id)
        left = await self.manager.unsubscribe(conn.connection_id, channel)
        if left:
            logger.info(f"Connection {conn.connection_id} left tournament {tournament_id}")
        return left

    # =========================================================================
    # Broadcasts
    # =========================================================================

    async def broadcast_state(self, tournament_id: str, state: AuctionState) -> int:
        """Send the snapshot to every subscriber. Returns local delivery count."""
        return await self.manager.broadcast_to_channel(
            tournament_channel(tournament_id),
            self.state_message(state),
        )

    async def notify(
        self,
        tournament_id: str,
        message: str,
        type: NotificationType = NotificationType.INFO,
    ) -> int:
        envelope = MessageEnvelope.create(
            EventType.AUCTION_NOTIFICATION,
            {"message": message, "type": NotificationType(type).value},
        )
        return await self.manager.broadcast_to_channel(
            tournament_channel(tournament_id), envelope.to_dict()
        )

    async def broadcast_squads(
        self,
        tournament_id: str,
        squads: List[Tuple[Team, List[Player]]],
    ) -> int:
        envelope = MessageEnvelope.create(EventType.SQUAD_UPDATE, teams_payload(squads))
        return await self.manager.broadcast_to_channel(
            tournament_channel(tournament_id), envelope.to_dict()
        )

    async def broadcast_pools(self, tournament_id: str, pools: List[Pool]) -> int:
        envelope = MessageEnvelope.create(EventType.POOLS_UPDATE, pools_payload(pools))
        return await self.manager.broadcast_to_channel(
            tournament_channel(tournament_id), envelope.to_dict()
        )
