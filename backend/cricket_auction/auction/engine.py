"""
Auction State Machine.

Computes the next AuctionState for a tournament from the current one,
consulting the AuctionStore for pools, players and teams.

States per tournament:
- Idle: no current player (default state, or after a pool is exhausted)
- PlayerActive: a current player is up for bid

Expected business failures (unknown ids, empty pool, insufficient purse,
squad rules) are returned as failed TransitionResults. Store faults
propagate to the caller.
"""

from typing import List, Optional, Tuple

from cricket_auction.logging_config import get_logger
from cricket_auction.utils.currency import format_amount
from cricket_auction.utils.errors import (
    AuctionError,
    InsufficientPurseError,
    NoActivePlayerError,
    OverseasLimitError,
    PlayerNotActiveError,
    PlayerNotFoundError,
    PoolExhaustedError,
    PoolNotFoundError,
    SquadFullError,
    TeamNotFoundError,
    TournamentNotFoundError,
    ValidationError,
)

from .models import (
    DEFAULT_POOL_NAME,
    AuctionState,
    Notification,
    NotificationType,
    Player,
    Pool,
    Team,
    Tournament,
    TransitionResult,
)
from .store import AuctionStore

logger = get_logger(__name__)


class AuctionEngine:
    """
    Transition logic for the live auction.

    Transitions:
    ─────────────────────────────────────────────────────────────────
    start_pool   Idle/PlayerActive -> PlayerActive (first available player)
                 or Idle with pool marked completed (empty pool, failure)
    adjust_bid   PlayerActive -> PlayerActive (floor-clamped bid)
    sell         PlayerActive -> PlayerActive (next player) | Idle (exhausted)
    mark_unsold  PlayerActive -> PlayerActive (next player) | Idle (exhausted)
    ─────────────────────────────────────────────────────────────────

    "Next player" is always the first Available player in the pool's stored
    order, re-read from the store on every advance.
    """

    def __init__(
        self,
        store: AuctionStore,
        upcoming_preview_size: int = 5,
        default_max_squad_size: int = 18,
        default_max_overseas_players: int = 6,
    ):
        self.store = store
        self.upcoming_preview_size = upcoming_preview_size
        self.default_max_squad_size = default_max_squad_size
        self.default_max_overseas_players = default_max_overseas_players

    # =========================================================================
    # Start Pool
    # =========================================================================

    async def start_pool(
        self,
        tournament_id: str,
        pool_id: str,
        current: AuctionState,
    ) -> TransitionResult:
        """Put the first available player of a pool up for bid.

        An empty pool is marked completed and reported as PoolExhaustedError;
        the returned failure still carries the new Idle state.
        """
        try:
            await self._require_tournament(tournament_id)
            pool = await self._require_pool(tournament_id, pool_id)
        except AuctionError as e:
            return TransitionResult.failure(e)

        available = await self.store.get_pool_available_players(
            tournament_id, pool.pool_id
        )

        if not available:
            await self.store.mark_pool_completed(tournament_id, pool.pool_id)
            new_state = AuctionState(
                tournament_id=tournament_id,
                current_pool_name=pool.name,
                current_player=None,
                current_bid=0,
                upcoming_players=(),
                log=current.with_log(f'Pool "{pool.name}" is already finished.'),
            )
            logger.info(
                "pool_exhausted_on_start",
                tournament_id=tournament_id,
                pool=pool.name,
            )
            return TransitionResult.failure(PoolExhaustedError(pool.name), new_state)

        first = available[0]
        new_state = AuctionState(
            tournament_id=tournament_id,
            current_pool_name=pool.name,
            current_player=first,
            current_bid=first.base_price,
            upcoming_players=self._preview(available[1:]),
            log=(f"Auction started for {pool.name}. First player: {first.name}",),
        )

        message = f"Auction started for pool: {pool.name}"
        return TransitionResult.success(
            new_state,
            message=message,
            notifications=(Notification(message, NotificationType.SUCCESS),),
        )

    # =========================================================================
    # Bidding
    # =========================================================================

    def adjust_bid(self, current: AuctionState, increment: int) -> TransitionResult:
        """Move the bid by ``increment``, never below the player's base price.

        A decrease is allowed as long as the result stays at or above the
        floor. Only ``current_bid`` changes; no log line is written.
        """
        if current.current_player is None:
            return TransitionResult.failure(NoActivePlayerError())

        floor = current.current_player.base_price
        new_bid = max(floor, current.current_bid + increment)

        return TransitionResult.success(
            AuctionState(
                tournament_id=current.tournament_id,
                current_pool_name=current.current_pool_name,
                current_player=current.current_player,
                current_bid=new_bid,
                upcoming_players=current.upcoming_players,
                log=current.log,
            )
        )

    def set_bid(self, current: AuctionState, new_bid: int) -> TransitionResult:
        """Set the bid to ``new_bid``, floor-clamped to the base price."""
        return self.adjust_bid(current, new_bid - current.current_bid)

    # =========================================================================
    # Sale / No-Sale
    # =========================================================================

    async def sell(
        self,
        tournament_id: str,
        player_id: str,
        team_id: str,
        price: int,
        current: AuctionState,
    ) -> TransitionResult:
        """Sell a player to a team and advance to the next player.

        All checks run before anything is written; the sale itself is a
        single ``record_sale`` call.
        """
        try:
            tournament, player, team = await self._validate_sale(
                tournament_id, player_id, team_id, price, current
            )
        except AuctionError as e:
            return TransitionResult.failure(e)

        try:
            await self.store.record_sale(
                tournament_id, player.player_id, team.team_id, price
            )
        except AuctionError as e:
            # Lost a race with a sale accepted elsewhere
            return TransitionResult.failure(e)

        line = f"{player.name} sold to {team.name} for {format_amount(price)}."
        new_state = await self._advance(current, line, finished_verb="is")

        logger.info(
            "player_sold",
            tournament_id=tournament_id,
            player_id=player.player_id,
            team_id=team.team_id,
            price=price,
        )
        return TransitionResult.success(new_state, squads_changed=True)

    async def mark_unsold(
        self,
        tournament_id: str,
        player_id: str,
        current: AuctionState,
    ) -> TransitionResult:
        """Mark a player unsold and advance to the next player."""
        try:
            await self._require_tournament(tournament_id)
            player = await self._require_player(tournament_id, player_id)
            self._require_biddable(player, current)
        except AuctionError as e:
            return TransitionResult.failure(e)

        await self.store.mark_player_unsold(tournament_id, player.player_id)

        line = f"{player.name} is unsold."
        new_state = await self._advance(current, line, finished_verb="has")

        logger.info(
            "player_unsold",
            tournament_id=tournament_id,
            player_id=player.player_id,
        )
        return TransitionResult.success(
            new_state,
            notifications=(Notification(line, NotificationType.ERROR),),
        )

    # =========================================================================
    # Advance
    # =========================================================================

    async def _advance(
        self,
        current: AuctionState,
        line: str,
        finished_verb: str,
    ) -> AuctionState:
        """Next Available player of the current pool becomes current.

        Reads the pool from the store, never from ``upcoming_players``. When
        none is left the pool is marked completed and the state goes Idle.
        """
        tournament_id = current.tournament_id
        pool: Optional[Pool] = None
        if current.current_pool_name != DEFAULT_POOL_NAME:
            pool = await self.store.get_pool_by_name(
                tournament_id, current.current_pool_name
            )

        available: List[Player] = []
        if pool is not None:
            available = await self.store.get_pool_available_players(
                tournament_id, pool.pool_id
            )

        if available:
            next_player = available[0]
            line += f" Next up: {next_player.name}"
        else:
            next_player = None
            if pool is not None:
                await self.store.mark_pool_completed(tournament_id, pool.pool_id)
                line += f' Pool "{pool.name}" {finished_verb} finished.'

        return AuctionState(
            tournament_id=tournament_id,
            current_pool_name=current.current_pool_name,
            current_player=next_player,
            current_bid=next_player.base_price if next_player else 0,
            upcoming_players=self._preview(available[1:]),
            log=current.with_log(line),
        )

    def _preview(self, players: List[Player]) -> Tuple[Player, ...]:
        return tuple(players[: self.upcoming_preview_size])

    # =========================================================================
    # Validation
    # =========================================================================

    async def _validate_sale(
        self,
        tournament_id: str,
        player_id: str,
        team_id: str,
        price: int,
        current: AuctionState,
    ) -> Tuple[Tournament, Player, Team]:
        if isinstance(price, bool) or not isinstance(price, int):
            raise ValidationError("Price must be an integer amount", {"price": price})
        if price < 0:
            raise ValidationError("Price must not be negative", {"price": price})

        tournament = await self._require_tournament(tournament_id)
        player = await self._require_player(tournament_id, player_id)
        team = await self.store.get_team(tournament_id, team_id)
        if team is None:
            raise TeamNotFoundError(team_id)

        self._require_biddable(player, current)

        if price > team.purse_remaining:
            raise InsufficientPurseError(team.name, price, team.purse_remaining)

        max_squad_size = tournament.max_squad_size
        if max_squad_size is None:
            max_squad_size = self.default_max_squad_size
        if team.squad_size >= max_squad_size:
            raise SquadFullError(team.name, max_squad_size)

        if player.is_overseas:
            max_overseas = tournament.max_overseas_players
            if max_overseas is None:
                max_overseas = self.default_max_overseas_players
            roster = await self.store.get_team_roster(tournament_id, team.team_id)
            overseas = sum(1 for p in roster if p.is_overseas)
            if overseas >= max_overseas:
                raise OverseasLimitError(team.name, max_overseas)

        return tournament, player, team

    def _require_biddable(self, player: Player, current: AuctionState) -> None:
        """Player must be Available and, if one is active, the active player."""
        if not player.is_available:
            raise PlayerNotActiveError(
                player.player_id,
                f"{player.name} is not available (status: {player.status.value})",
            )
        active = current.current_player
        if active is not None and active.player_id != player.player_id:
            raise PlayerNotActiveError(
                player.player_id,
                f"{player.name} is not the player currently up for bid",
            )

    async def _require_tournament(self, tournament_id: str) -> Tournament:
        tournament = await self.store.get_tournament(tournament_id)
        if tournament is None:
            raise TournamentNotFoundError(tournament_id)
        return tournament

    async def _require_pool(self, tournament_id: str, pool_id: str) -> Pool:
        pool = await self.store.get_pool(tournament_id, pool_id)
        if pool is None:
            raise PoolNotFoundError(pool_id)
        return pool

    async def _require_player(self, tournament_id: str, player_id: str) -> Player:
        player = await self.store.get_player(tournament_id, player_id)
        if player is None:
            raise PlayerNotFoundError(player_id)
        return player
