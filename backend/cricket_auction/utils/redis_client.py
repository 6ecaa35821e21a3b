"""Redis client for the cross-instance broadcast relay."""

from redis.asyncio import ConnectionPool, Redis

from cricket_auction.config import Settings


async def init_redis(settings: Settings) -> Redis:
    """Create a Redis client for ``settings.redis_url`` and check connectivity."""
    if not settings.redis_url:
        raise ValueError("redis_url is not configured")

    pool = ConnectionPool.from_url(
        settings.redis_url,
        max_connections=settings.redis_max_connections,
        socket_connect_timeout=settings.redis_socket_connect_timeout,
        retry_on_timeout=True,
        encoding="utf-8",
        decode_responses=True,
    )
    client = Redis(connection_pool=pool)

    # Test connection
    await client.ping()
    return client


async def close_redis(client: Redis) -> None:
    """Close the client and its connection pool."""
    await client.aclose()
    await client.connection_pool.disconnect()
