"""
Live auction core.

This module provides:
- Immutable auction snapshots per tournament (AuctionState)
- The auction state machine (start pool, bid, sell, unsold, advance)
- The store interface the core reads players, pools and teams through
- Per-tournament command serialization

The command gateway lives in ``cricket_auction.auction.commands``.
"""

from .engine import AuctionEngine
from .locks import TournamentLockManager
from .models import (
    AuctionState,
    Notification,
    NotificationType,
    Player,
    PlayerRole,
    PlayerStatus,
    Pool,
    Team,
    Tournament,
    TransitionResult,
)
from .state_table import AuctionStateTable
from .store import AuctionStore, InMemoryAuctionStore

__all__ = [
    "AuctionEngine",
    "TournamentLockManager",
    "AuctionState",
    "Notification",
    "NotificationType",
    "Player",
    "PlayerRole",
    "PlayerStatus",
    "Pool",
    "Team",
    "Tournament",
    "TransitionResult",
    "AuctionStateTable",
    "AuctionStore",
    "InMemoryAuctionStore",
]
