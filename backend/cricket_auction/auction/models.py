"""
Auction Data Models.

Immutable state representations for auction entities.
All AuctionState changes go through the AuctionEngine.
"""

from enum import Enum
from dataclasses import dataclass
from typing import Optional, List, Dict, Any, Tuple

from cricket_auction.utils.errors import AuctionError

OVERSEAS = "Overseas"
DEFAULT_POOL_NAME = "None"


class PlayerStatus(str, Enum):
    """Player auction status."""

    AVAILABLE = "Available"
    SOLD = "Sold"
    UNSOLD = "Unsold"


class PlayerRole(str, Enum):
    BATTER = "Batter"
    BOWLER = "Bowler"
    ALLROUNDER = "Allrounder"
    WICKETKEEPER = "Wicketkeeper"


class NotificationType(str, Enum):
    """auction_notification toast styles."""

    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass(frozen=True)
class Player:
    """Player record as seen by the auction core."""

    player_id: str
    name: str
    role: str
    nationality: str
    base_price: int
    status: PlayerStatus = PlayerStatus.AVAILABLE
    sold_price: int = 0
    sold_to: Optional[str] = None

    @property
    def is_available(self) -> bool:
        return self.status == PlayerStatus.AVAILABLE

    @property
    def is_overseas(self) -> bool:
        return self.nationality == OVERSEAS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.player_id,
            "name": self.name,
            "role": self.role,
            "nationality": self.nationality,
            "basePrice": self.base_price,
            "status": self.status.value,
            "soldPrice": self.sold_price,
            "soldTo": self.sold_to,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Player":
        return cls(
            player_id=data["id"],
            name=data["name"],
            role=data["role"],
            nationality=data["nationality"],
            base_price=data["basePrice"],
            status=PlayerStatus(data.get("status", PlayerStatus.AVAILABLE.value)),
            sold_price=data.get("soldPrice", 0),
            sold_to=data.get("soldTo"),
        )


@dataclass(frozen=True)
class Team:
    """Team with its remaining purse and roster (player ids, purchase order)."""

    team_id: str
    name: str
    purse_remaining: int
    player_ids: Tuple[str, ...] = ()

    @property
    def squad_size(self) -> int:
        return len(self.player_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.team_id,
            "name": self.name,
            "purseRemaining": self.purse_remaining,
            "players": list(self.player_ids),
        }


@dataclass(frozen=True)
class Pool:
    """Named group of players auctioned together, in stored order."""

    pool_id: str
    name: str
    player_ids: Tuple[str, ...] = ()
    order: int = 0
    is_completed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.pool_id,
            "name": self.name,
            "players": list(self.player_ids),
            "order": self.order,
            "isCompleted": self.is_completed,
        }


@dataclass(frozen=True)
class Tournament:
    """Tournament record with squad rules."""

    tournament_id: str
    title: str
    admin_id: Optional[str] = None
    # None = service default
    max_squad_size: Optional[int] = None
    max_overseas_players: Optional[int] = None


@dataclass(frozen=True)
class AuctionState:
    """
    Live auction snapshot for one tournament - immutable.

    Replaced wholesale on every accepted command. ``current_bid`` is 0 when
    no player is active, otherwise at least the player's base price.
    """

    tournament_id: str
    current_pool_name: str = DEFAULT_POOL_NAME
    current_player: Optional[Player] = None
    current_bid: int = 0
    upcoming_players: Tuple[Player, ...] = ()
    log: Tuple[str, ...] = ()

    @classmethod
    def default(cls, tournament_id: str) -> "AuctionState":
        """State served before the first StartPool."""
        return cls(tournament_id=tournament_id)

    @property
    def has_active_player(self) -> bool:
        return self.current_player is not None

    def with_log(self, line: str) -> Tuple[str, ...]:
        return self.log + (line,)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tournamentId": self.tournament_id,
            "currentPool": self.current_pool_name,
            "currentPlayer": (
                self.current_player.to_dict() if self.current_player else None
            ),
            "currentBid": self.current_bid,
            "upcomingPlayers": [p.to_dict() for p in self.upcoming_players],
            "log": list(self.log),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuctionState":
        """Inverse of to_dict, used to read snapshots shared through Redis."""
        current = data.get("currentPlayer")
        return cls(
            tournament_id=data["tournamentId"],
            current_pool_name=data.get("currentPool", DEFAULT_POOL_NAME),
            current_player=Player.from_dict(current) if current else None,
            current_bid=data.get("currentBid", 0),
            upcoming_players=tuple(
                Player.from_dict(p) for p in data.get("upcomingPlayers", ())
            ),
            log=tuple(data.get("log", ())),
        )


@dataclass(frozen=True)
class Notification:
    """Point notification delivered alongside a snapshot."""

    message: str
    type: NotificationType = NotificationType.INFO

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "type": self.type.value}


@dataclass(frozen=True)
class TransitionResult:
    """
    Outcome of one state machine transition.

    A failed result may still carry a ``state`` (empty-pool StartPool); the
    gateway stores and broadcasts it before reporting the error.
    """

    ok: bool
    state: Optional[AuctionState] = None
    error: Optional[AuctionError] = None
    message: Optional[str] = None
    notifications: Tuple[Notification, ...] = ()
    squads_changed: bool = False

    @classmethod
    def success(
        cls,
        state: AuctionState,
        message: Optional[str] = None,
        notifications: Tuple[Notification, ...] = (),
        squads_changed: bool = False,
    ) -> "TransitionResult":
        return cls(
            ok=True,
            state=state,
            message=message,
            notifications=notifications,
            squads_changed=squads_changed,
        )

    @classmethod
    def failure(
        cls,
        error: AuctionError,
        state: Optional[AuctionState] = None,
    ) -> "TransitionResult":
        return cls(ok=False, state=state, error=error, message=error.message)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"ok": self.ok}
        if self.message:
            data["message"] = self.message
        if self.error:
            data["error"] = self.error.to_dict()
        return data


def teams_payload(squads: List[Tuple[Team, List[Player]]]) -> List[Dict[str, Any]]:
    """squad_update payload: each team with its roster expanded."""
    return [
        {**team.to_dict(), "players": [p.to_dict() for p in roster]}
        for team, roster in squads
    ]


def pools_payload(pools: List[Pool]) -> List[Dict[str, Any]]:
    return [p.to_dict() for p in sorted(pools, key=lambda p: p.order)]
