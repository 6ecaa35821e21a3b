"""
Pool/Player Store.

Narrow persistence interface the auction core depends on. Tournament, team,
pool and player CRUD lives in other services; the auction only reads
records, records sales and no-sales, and flags exhausted pools.

Two implementations:
- InMemoryAuctionStore: process-local, used for development and tests
- SqlAuctionStore (sql_store.py): SQLAlchemy async
"""

from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from cricket_auction.utils.errors import InsufficientPurseError, PlayerNotActiveError

from .models import Player, PlayerStatus, Pool, Team, Tournament


class AuctionStore(ABC):
    """Persistence collaborator for the auction core.

    All calls are awaited and treated as fast, bounded operations.
    Infrastructure failures propagate unchanged.
    """

    @abstractmethod
    async def get_tournament(self, tournament_id: str) -> Optional[Tournament]:
        ...

    @abstractmethod
    async def get_pool(self, tournament_id: str, pool_id: str) -> Optional[Pool]:
        ...

    @abstractmethod
    async def get_pool_by_name(
        self, tournament_id: str, name: str
    ) -> Optional[Pool]:
        ...

    @abstractmethod
    async def list_pools(self, tournament_id: str) -> List[Pool]:
        ...

    @abstractmethod
    async def get_pool_available_players(
        self, tournament_id: str, pool_id: str
    ) -> List[Player]:
        """Available players of a pool, in the pool's stored order."""
        ...

    @abstractmethod
    async def mark_pool_completed(self, tournament_id: str, pool_id: str) -> None:
        ...

    @abstractmethod
    async def get_player(
        self, tournament_id: str, player_id: str
    ) -> Optional[Player]:
        ...

    @abstractmethod
    async def get_team(self, tournament_id: str, team_id: str) -> Optional[Team]:
        ...

    @abstractmethod
    async def get_team_roster(
        self, tournament_id: str, team_id: str
    ) -> List[Player]:
        ...

    @abstractmethod
    async def list_squads(
        self, tournament_id: str
    ) -> List[Tuple[Team, List[Player]]]:
        """Every team of the tournament with its roster."""
        ...

    @abstractmethod
    async def record_sale(
        self,
        tournament_id: str,
        player_id: str,
        team_id: str,
        price: int,
    ) -> None:
        """Mark the player sold, debit the team purse, append to the roster.

        Applied as one unit; callers validate purse and squad rules first.
        The write itself is guarded: raises PlayerNotActiveError if the
        player is no longer available and InsufficientPurseError if the
        purse cannot cover the price, without changing anything.
        """
        ...

    @abstractmethod
    async def mark_player_unsold(self, tournament_id: str, player_id: str) -> None:
        ...


class InMemoryAuctionStore(AuctionStore):
    """
    Process-local store.

    Records are frozen dataclasses replaced on every write.
    """

    def __init__(self):
        self._tournaments: Dict[str, Tournament] = {}
        # tournament_id -> {id -> record}
        self._teams: Dict[str, Dict[str, Team]] = {}
        self._pools: Dict[str, Dict[str, Pool]] = {}
        self._players: Dict[str, Dict[str, Player]] = {}

    # =========================================================================
    # Seeding
    # =========================================================================

    def add_tournament(self, tournament: Tournament) -> Tournament:
        self._tournaments[tournament.tournament_id] = tournament
        self._teams.setdefault(tournament.tournament_id, {})
        self._pools.setdefault(tournament.tournament_id, {})
        self._players.setdefault(tournament.tournament_id, {})
        return tournament

    def add_team(self, tournament_id: str, team: Team) -> Team:
        self._teams[tournament_id][team.team_id] = team
        return team

    def add_player(self, tournament_id: str, player: Player) -> Player:
        self._players[tournament_id][player.player_id] = player
        return player

    def add_pool(
        self,
        tournament_id: str,
        pool: Pool,
        players: Optional[List[Player]] = None,
    ) -> Pool:
        """Register a pool; ``players`` are added and appended in order."""
        if players:
            for player in players:
                self.add_player(tournament_id, player)
            pool = replace(
                pool,
                player_ids=pool.player_ids + tuple(p.player_id for p in players),
            )
        self._pools[tournament_id][pool.pool_id] = pool
        return pool

    # =========================================================================
    # AuctionStore
    # =========================================================================

    async def get_tournament(self, tournament_id: str) -> Optional[Tournament]:
        return self._tournaments.get(tournament_id)

    async def get_pool(self, tournament_id: str, pool_id: str) -> Optional[Pool]:
        return self._pools.get(tournament_id, {}).get(pool_id)

    async def get_pool_by_name(
        self, tournament_id: str, name: str
    ) -> Optional[Pool]:
        for pool in self._pools.get(tournament_id, {}).values():
            if pool.name == name:
                return pool
        return None

    async def list_pools(self, tournament_id: str) -> List[Pool]:
        return sorted(
            self._pools.get(tournament_id, {}).values(), key=lambda p: p.order
        )

    async def get_pool_available_players(
        self, tournament_id: str, pool_id: str
    ) -> List[Player]:
        pool = await self.get_pool(tournament_id, pool_id)
        if pool is None:
            return []
        players = self._players.get(tournament_id, {})
        return [
            players[pid]
            for pid in pool.player_ids
            if pid in players and players[pid].is_available
        ]

    async def mark_pool_completed(self, tournament_id: str, pool_id: str) -> None:
        pool = self._pools[tournament_id][pool_id]
        self._pools[tournament_id][pool_id] = replace(pool, is_completed=True)

    async def get_player(
        self, tournament_id: str, player_id: str
    ) -> Optional[Player]:
        return self._players.get(tournament_id, {}).get(player_id)

    async def get_team(self, tournament_id: str, team_id: str) -> Optional[Team]:
        return self._teams.get(tournament_id, {}).get(team_id)

    async def get_team_roster(
        self, tournament_id: str, team_id: str
    ) -> List[Player]:
        team = await self.get_team(tournament_id, team_id)
        if team is None:
            return []
        players = self._players.get(tournament_id, {})
        return [players[pid] for pid in team.player_ids if pid in players]

    async def list_squads(
        self, tournament_id: str
    ) -> List[Tuple[Team, List[Player]]]:
        squads = []
        for team in self._teams.get(tournament_id, {}).values():
            roster = await self.get_team_roster(tournament_id, team.team_id)
            squads.append((team, roster))
        return squads

    async def record_sale(
        self,
        tournament_id: str,
        player_id: str,
        team_id: str,
        price: int,
    ) -> None:
        player = self._players[tournament_id][player_id]
        team = self._teams[tournament_id][team_id]
        if not player.is_available:
            raise PlayerNotActiveError(player_id, f"{player.name} is no longer available")
        if team.purse_remaining < price:
            raise InsufficientPurseError(team.name, price, team.purse_remaining)

        self._players[tournament_id][player_id] = replace(
            player,
            status=PlayerStatus.SOLD,
            sold_price=price,
            sold_to=team_id,
        )
        self._teams[tournament_id][team_id] = replace(
            team,
            purse_remaining=team.purse_remaining - price,
            player_ids=team.player_ids + (player_id,),
        )

    async def mark_player_unsold(self, tournament_id: str, player_id: str) -> None:
        player = self._players[tournament_id][player_id]
        self._players[tournament_id][player_id] = replace(
            player, status=PlayerStatus.UNSOLD
        )
