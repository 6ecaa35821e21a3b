"""Auction State Table.

Map of tournament id to its latest AuctionState. One instance is created at
application start and injected into the command gateway and the broadcaster.
States are frozen and replaced wholesale.

With a Redis client the table is shared by every server instance: each
``replace`` is written to ``auction:state:{tournament_id}`` and ``get`` reads
it back, so a spectator joining on any instance gets the live snapshot.
Without Redis the table is a plain in-process dict.
"""

import logging
from typing import Dict, Optional

from redis.asyncio import Redis

from cricket_auction.utils.json_utils import json_dumps, json_loads

from .models import AuctionState

logger = logging.getLogger(__name__)

STATE_KEY_PREFIX = "auction:state:"


def state_key(tournament_id: str) -> str:
    return f"{STATE_KEY_PREFIX}{tournament_id}"


class AuctionStateTable:
    """Latest snapshot per tournament.

    Only accessed from the event loop; writers hold the tournament lock.
    """

    def __init__(self, redis: Optional[Redis] = None):
        self.redis = redis
        self._states: Dict[str, AuctionState] = {}

    async def get(self, tournament_id: str) -> AuctionState:
        """Stored state, or the default state if none exists yet.

        Never inserts the default.
        """
        if self.redis is not None:
            raw = await self.redis.get(state_key(tournament_id))
            if raw is None:
                return AuctionState.default(tournament_id)
            state = AuctionState.from_dict(json_loads(raw))
            self._states[tournament_id] = state
            return state

        state = self._states.get(tournament_id)
        if state is None:
            return AuctionState.default(tournament_id)
        return state

    async def replace(self, tournament_id: str, state: AuctionState) -> None:
        """Unconditionally overwrite the tournament's state."""
        if self.redis is not None:
            await self.redis.set(state_key(tournament_id), json_dumps(state.to_dict()))
            logger.debug(f"Auction state mirrored to Redis: tournament={tournament_id}")
        self._states[tournament_id] = state
