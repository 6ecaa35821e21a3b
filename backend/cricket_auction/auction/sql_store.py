"""SQLAlchemy-backed AuctionStore."""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cricket_auction.utils.db import session_scope
from cricket_auction.utils.errors import InsufficientPurseError, PlayerNotActiveError

from .db_models import PlayerRow, PoolRow, TeamRow, TournamentRow
from .models import Player, PlayerStatus, Pool, Team, Tournament
from .store import AuctionStore

logger = logging.getLogger(__name__)


class SqlAuctionStore(AuctionStore):
    """AuctionStore over the auction_* tables.

    Each call runs in its own session; ``record_sale`` applies the player
    update, purse debit and roster append in one transaction.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _pool_player_ids(
        self, session: AsyncSession, pool_id: str
    ) -> tuple[str, ...]:
        result = await session.execute(
            select(PlayerRow.id)
            .where(PlayerRow.pool_id == pool_id)
            .order_by(PlayerRow.pool_position, PlayerRow.id)
        )
        return tuple(result.scalars().all())

    async def _roster_rows(
        self, session: AsyncSession, team_id: str
    ) -> List[PlayerRow]:
        result = await session.execute(
            select(PlayerRow)
            .where(PlayerRow.sold_to == team_id)
            .where(PlayerRow.status == PlayerStatus.SOLD.value)
            .order_by(PlayerRow.roster_position)
        )
        return list(result.scalars().all())

    async def _team_row(
        self, session: AsyncSession, tournament_id: str, team_id: str
    ) -> Optional[TeamRow]:
        row = await session.get(TeamRow, team_id)
        if row is None or row.tournament_id != tournament_id:
            return None
        return row

    async def _pool_row(
        self, session: AsyncSession, tournament_id: str, pool_id: str
    ) -> Optional[PoolRow]:
        row = await session.get(PoolRow, pool_id)
        if row is None or row.tournament_id != tournament_id:
            return None
        return row

    # =========================================================================
    # AuctionStore
    # =========================================================================

    async def get_tournament(self, tournament_id: str) -> Optional[Tournament]:
        async with session_scope(self._session_factory) as session:
            row = await session.get(TournamentRow, tournament_id)
            return row.to_domain() if row else None

    async def get_pool(self, tournament_id: str, pool_id: str) -> Optional[Pool]:
        async with session_scope(self._session_factory) as session:
            row = await self._pool_row(session, tournament_id, pool_id)
            if row is None:
                return None
            return row.to_domain(await self._pool_player_ids(session, row.id))

    async def get_pool_by_name(
        self, tournament_id: str, name: str
    ) -> Optional[Pool]:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(PoolRow)
                .where(PoolRow.tournament_id == tournament_id)
                .where(PoolRow.name == name)
                .limit(1)
            )
            row = result.scalar_one_or_none()
            if row is None:
                return None
            return row.to_domain(await self._pool_player_ids(session, row.id))

    async def list_pools(self, tournament_id: str) -> List[Pool]:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(PoolRow)
                .where(PoolRow.tournament_id == tournament_id)
                .order_by(PoolRow.order)
            )
            pools = []
            for row in result.scalars().all():
                pools.append(
                    row.to_domain(await self._pool_player_ids(session, row.id))
                )
            return pools

    async def get_pool_available_players(
        self, tournament_id: str, pool_id: str
    ) -> List[Player]:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(PlayerRow)
                .where(PlayerRow.tournament_id == tournament_id)
                .where(PlayerRow.pool_id == pool_id)
                .where(PlayerRow.status == PlayerStatus.AVAILABLE.value)
                .order_by(PlayerRow.pool_position, PlayerRow.id)
            )
            return [row.to_domain() for row in result.scalars().all()]

    async def mark_pool_completed(self, tournament_id: str, pool_id: str) -> None:
        async with session_scope(self._session_factory) as session:
            await session.execute(
                update(PoolRow)
                .where(PoolRow.id == pool_id)
                .where(PoolRow.tournament_id == tournament_id)
                .values(is_completed=True)
            )

    async def get_player(
        self, tournament_id: str, player_id: str
    ) -> Optional[Player]:
        async with session_scope(self._session_factory) as session:
            row = await session.get(PlayerRow, player_id)
            if row is None or row.tournament_id != tournament_id:
                return None
            return row.to_domain()

    async def get_team(self, tournament_id: str, team_id: str) -> Optional[Team]:
        async with session_scope(self._session_factory) as session:
            row = await self._team_row(session, tournament_id, team_id)
            if row is None:
                return None
            roster = await self._roster_rows(session, row.id)
            return row.to_domain(tuple(p.id for p in roster))

    async def get_team_roster(
        self, tournament_id: str, team_id: str
    ) -> List[Player]:
        async with session_scope(self._session_factory) as session:
            row = await self._team_row(session, tournament_id, team_id)
            if row is None:
                return []
            return [p.to_domain() for p in await self._roster_rows(session, row.id)]

    async def list_squads(
        self, tournament_id: str
    ) -> List[Tuple[Team, List[Player]]]:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(TeamRow)
                .where(TeamRow.tournament_id == tournament_id)
                .order_by(TeamRow.created_at, TeamRow.id)
            )
            squads = []
            for team_row in result.scalars().all():
                roster = [
                    p.to_domain() for p in await self._roster_rows(session, team_row.id)
                ]
                squads.append(
                    (team_row.to_domain(tuple(p.player_id for p in roster)), roster)
                )
            return squads

    async def record_sale(
        self,
        tournament_id: str,
        player_id: str,
        team_id: str,
        price: int,
    ) -> None:
        async with session_scope(self._session_factory) as session:
            player = await session.get(PlayerRow, player_id)
            team = await session.get(TeamRow, team_id)
            if player is None or team is None:
                raise LookupError(
                    f"record_sale: player {player_id} or team {team_id} vanished"
                )

            result = await session.execute(
                select(func.count(PlayerRow.id))
                .where(PlayerRow.sold_to == team_id)
                .where(PlayerRow.status == PlayerStatus.SOLD.value)
            )
            roster_size = result.scalar_one()

            # Guarded writes: another instance may have sold the player or
            # spent the purse since validation
            sold = await session.execute(
                update(PlayerRow)
                .where(PlayerRow.id == player_id)
                .where(PlayerRow.status == PlayerStatus.AVAILABLE.value)
                .values(
                    status=PlayerStatus.SOLD.value,
                    sold_price=price,
                    sold_to=team_id,
                    roster_position=roster_size,
                )
                .execution_options(synchronize_session=False)
            )
            if sold.rowcount == 0:
                raise PlayerNotActiveError(player_id, f"{player.name} is no longer available")

            debited = await session.execute(
                update(TeamRow)
                .where(TeamRow.id == team_id)
                .where(TeamRow.purse_remaining >= price)
                .values(purse_remaining=TeamRow.purse_remaining - price)
                .execution_options(synchronize_session=False)
            )
            if debited.rowcount == 0:
                raise InsufficientPurseError(team.name, price, team.purse_remaining)

        logger.debug(
            f"Sale recorded: tournament={tournament_id} player={player_id} "
            f"team={team_id} price={price}"
        )

    async def mark_player_unsold(self, tournament_id: str, player_id: str) -> None:
        async with session_scope(self._session_factory) as session:
            await session.execute(
                update(PlayerRow)
                .where(PlayerRow.id == player_id)
                .where(PlayerRow.tournament_id == tournament_id)
                .values(status=PlayerStatus.UNSOLD.value)
            )
