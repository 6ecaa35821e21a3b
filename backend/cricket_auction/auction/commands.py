"""
Auction Command Gateway.

The only caller of the AuctionEngine. For every mutating command:

1. authorize (admin role, and the tournament's own admin when one is set)
2. acquire the tournament lock
3. read state -> transition -> replace state -> broadcast
4. release the lock

Failures raise AuctionError subclasses to the HTTP/WebSocket boundary. A
failed transition that still produced a state (empty pool on StartPool) is
stored and broadcast before the error is raised.
"""

from typing import Optional

from cricket_auction.logging_config import auction_context, get_logger
from cricket_auction.utils.errors import (
    AuthenticationError,
    ForbiddenError,
    TournamentNotFoundError,
    ValidationError,
)
from cricket_auction.utils.security import Principal
from cricket_auction.ws.broadcaster import AuctionBroadcaster
from cricket_auction.ws.connection import WebSocketConnection

from .engine import AuctionEngine
from .locks import TournamentLockManager
from .models import AuctionState, TransitionResult
from .state_table import AuctionStateTable
from .store import AuctionStore

logger = get_logger(__name__)


def _require_id(name: str, value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required", {"field": name})
    return value


class AuctionCommandGateway:
    """Authorization boundary and per-tournament serializer for auction commands."""

    def __init__(
        self,
        store: AuctionStore,
        engine: AuctionEngine,
        state_table: AuctionStateTable,
        broadcaster: AuctionBroadcaster,
        lock_manager: Optional[TournamentLockManager] = None,
    ):
        self.store = store
        self.engine = engine
        self.state_table = state_table
        self.broadcaster = broadcaster
        self.lock_manager = lock_manager or TournamentLockManager()

    # =========================================================================
    # Admin Commands
    # =========================================================================

    async def start_pool(
        self,
        principal: Optional[Principal],
        tournament_id: str,
        pool_id: str,
    ) -> TransitionResult:
        _require_id("tournamentId", tournament_id)
        _require_id("poolId", pool_id)
        with auction_context(tournament_id, "start_pool", pool_id=pool_id):
            await self._authorize(principal, tournament_id)

            async with self.lock_manager.lock(tournament_id):
                current = await self.state_table.get(tournament_id)
                result = await self.engine.start_pool(tournament_id, pool_id, current)
                await self._publish(tournament_id, result, pools_changed=True)

            return self._accepted(result)

    async def sell(
        self,
        principal: Optional[Principal],
        tournament_id: str,
        player_id: str,
        team_id: str,
        price: int,
    ) -> TransitionResult:
        _require_id("tournamentId", tournament_id)
        _require_id("playerId", player_id)
        _require_id("teamId", team_id)
        if isinstance(price, bool) or not isinstance(price, int) or price < 0:
            raise ValidationError("price must be a non-negative amount", {"price": price})
        with auction_context(tournament_id, "sell", player_id=player_id):
            await self._authorize(principal, tournament_id)

            async with self.lock_manager.lock(tournament_id):
                current = await self.state_table.get(tournament_id)
                result = await self.engine.sell(
                    tournament_id, player_id, team_id, price, current
                )
                await self._publish(
                    tournament_id, result, pools_changed=self._pool_finished(result)
                )

            return self._accepted(result, team_id=team_id, price=price)

    async def mark_unsold(
        self,
        principal: Optional[Principal],
        tournament_id: str,
        player_id: str,
    ) -> TransitionResult:
        _require_id("tournamentId", tournament_id)
        _require_id("playerId", player_id)
        with auction_context(tournament_id, "mark_unsold", player_id=player_id):
            await self._authorize(principal, tournament_id)

            async with self.lock_manager.lock(tournament_id):
                current = await self.state_table.get(tournament_id)
                result = await self.engine.mark_unsold(tournament_id, player_id, current)
                await self._publish(
                    tournament_id, result, pools_changed=self._pool_finished(result)
                )

            return self._accepted(result)

    async def update_bid(
        self,
        principal: Optional[Principal],
        tournament_id: str,
        new_bid: Optional[int] = None,
        increment: Optional[int] = None,
    ) -> TransitionResult:
        """Set (``new_bid``) or move (``increment``) the current bid.

        Every accepted update is broadcast individually.
        """
        _require_id("tournamentId", tournament_id)
        if (new_bid is None) == (increment is None):
            raise ValidationError("Exactly one of newBid or increment is required")
        value = new_bid if new_bid is not None else increment
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError("Bid amount must be an integer", {"value": value})
        with auction_context(tournament_id, "update_bid"):
            await self._authorize(principal, tournament_id)

            async with self.lock_manager.lock(tournament_id):
                current = await self.state_table.get(tournament_id)
                if new_bid is not None:
                    result = self.engine.set_bid(current, new_bid)
                else:
                    result = self.engine.adjust_bid(current, increment)
                await self._publish(tournament_id, result)

            return self._accepted(result, bid=value)

    # =========================================================================
    # Spectator Commands
    # =========================================================================

    async def join(self, conn: WebSocketConnection, tournament_id: str) -> bool:
        """Subscribe a connection and send it the latest snapshot.

        Runs under the tournament lock so the snapshot sent here and the
        broadcasts that follow never interleave.
        """
        _require_id("tournamentId", tournament_id)
        async with self.lock_manager.lock(tournament_id):
            return await self.broadcaster.join(conn, tournament_id)

    async def leave(self, conn: WebSocketConnection, tournament_id: str) -> bool:
        _require_id("tournamentId", tournament_id)
        return await self.broadcaster.leave(conn, tournament_id)

    async def get_state(self, tournament_id: str) -> AuctionState:
        return await self.state_table.get(tournament_id)

    # =========================================================================
    # Internals
    # =========================================================================

    async def _authorize(
        self, principal: Optional[Principal], tournament_id: str
    ) -> None:
        if principal is None:
            raise AuthenticationError()
        if not principal.is_admin:
            logger.warning(
                "command_forbidden",
                user_id=principal.user_id,
                role=principal.role,
            )
            raise ForbiddenError()

        tournament = await self.store.get_tournament(tournament_id)
        if tournament is None:
            raise TournamentNotFoundError(tournament_id)
        if tournament.admin_id and tournament.admin_id != principal.user_id:
            logger.warning(
                "command_forbidden",
                user_id=principal.user_id,
                reason="not tournament admin",
            )
            raise ForbiddenError("Only the tournament admin can run its auction")

    async def _publish(
        self,
        tournament_id: str,
        result: TransitionResult,
        pools_changed: bool = False,
    ) -> None:
        """Store and broadcast whatever the transition produced.

        Called with the tournament lock held.
        """
        if result.state is None:
            return

        await self.state_table.replace(tournament_id, result.state)
        await self.broadcaster.broadcast_state(tournament_id, result.state)

        for notification in result.notifications:
            await self.broadcaster.notify(
                tournament_id, notification.message, notification.type
            )
        if result.squads_changed:
            await self.broadcaster.broadcast_squads(
                tournament_id, await self.store.list_squads(tournament_id)
            )
        if pools_changed:
            await self.broadcaster.broadcast_pools(
                tournament_id, await self.store.list_pools(tournament_id)
            )

    @staticmethod
    def _pool_finished(result: TransitionResult) -> bool:
        return result.ok and result.state is not None and not result.state.has_active_player

    @staticmethod
    def _accepted(result: TransitionResult, **fields) -> TransitionResult:
        """Log the outcome; raise the error of a failed transition.

        Runs inside ``auction_context``, which supplies tournament_id and command.
        """
        if not result.ok:
            logger.info(
                "command_rejected",
                error_code=result.error.code,
                **fields,
            )
            raise result.error

        logger.info(
            "command_accepted",
            current_player=(
                result.state.current_player.player_id
                if result.state and result.state.current_player
                else None
            ),
            current_bid=result.state.current_bid if result.state else None,
            **fields,
        )
        return result
