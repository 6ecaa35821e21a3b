"""Service wiring.

All long-lived auction services are built once per application and hung off
``app.state.services``; routes and the WebSocket endpoint read them from
there instead of module globals.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncEngine

from cricket_auction.auction.commands import AuctionCommandGateway
from cricket_auction.auction.engine import AuctionEngine
from cricket_auction.auction.locks import TournamentLockManager
from cricket_auction.auction.state_table import AuctionStateTable
from cricket_auction.auction.store import AuctionStore, InMemoryAuctionStore
from cricket_auction.config import Settings
from cricket_auction.utils.db import close_db, create_engine, create_session_factory, init_db
from cricket_auction.utils.redis_client import close_redis, init_redis
from cricket_auction.ws.broadcaster import AuctionBroadcaster
from cricket_auction.ws.manager import ConnectionManager

logger = logging.getLogger(__name__)


@dataclass
class AuctionServices:
    settings: Settings
    store: AuctionStore
    state_table: AuctionStateTable
    engine: AuctionEngine
    manager: ConnectionManager
    broadcaster: AuctionBroadcaster
    gateway: AuctionCommandGateway
    redis: Optional[Redis] = None
    db_engine: Optional[AsyncEngine] = None

    async def start(self) -> None:
        await self.manager.start()

    async def stop(self) -> None:
        await self.manager.stop()
        if self.redis is not None:
            await close_redis(self.redis)
        if self.db_engine is not None:
            await close_db(self.db_engine)


def build_services(
    settings: Settings,
    store: AuctionStore,
    redis: Optional[Redis] = None,
    db_engine: Optional[AsyncEngine] = None,
) -> AuctionServices:
    """Wire the auction services around an existing store.

    With ``redis`` the state table, tournament locks and fan-out are shared
    across instances; without it everything stays in this process.
    """
    state_table = AuctionStateTable(redis)
    engine = AuctionEngine(
        store,
        upcoming_preview_size=settings.upcoming_preview_size,
        default_max_squad_size=settings.default_max_squad_size,
        default_max_overseas_players=settings.default_max_overseas_players,
    )
    manager = ConnectionManager(redis, max_connections=settings.ws_max_connections)
    broadcaster = AuctionBroadcaster(manager, state_table)
    gateway = AuctionCommandGateway(
        store=store,
        engine=engine,
        state_table=state_table,
        broadcaster=broadcaster,
        lock_manager=TournamentLockManager(
            redis,
            lock_timeout_ms=settings.lock_timeout_ms,
            acquire_timeout_ms=settings.lock_acquire_timeout_ms,
        ),
    )
    return AuctionServices(
        settings=settings,
        store=store,
        state_table=state_table,
        engine=engine,
        manager=manager,
        broadcaster=broadcaster,
        gateway=gateway,
        redis=redis,
        db_engine=db_engine,
    )


async def create_services(settings: Settings) -> AuctionServices:
    """Build services from settings: SQL or in-memory store, optional Redis relay."""
    db_engine = None
    if settings.database_url:
        from cricket_auction.auction.sql_store import SqlAuctionStore

        db_engine = create_engine(settings)
        await init_db(db_engine)
        store: AuctionStore = SqlAuctionStore(create_session_factory(db_engine))
        logger.info("Auction store: SQL")
    else:
        store = InMemoryAuctionStore()
        logger.warning("Auction store: in-memory (DATABASE_URL not set)")

    redis = None
    if settings.redis_url:
        redis = await init_redis(settings)
        logger.info("Broadcast relay: Redis pub/sub")

    return build_services(settings, store, redis=redis, db_engine=db_engine)
