"""WebSocket test fixtures and utilities."""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio

from cricket_auction.auction.state_table import AuctionStateTable
from cricket_auction.auction.store import InMemoryAuctionStore
from cricket_auction.config import Settings
from cricket_auction.services import AuctionServices, build_services
from cricket_auction.ws.connection import WebSocketConnection
from cricket_auction.ws.events import EventType
from cricket_auction.ws.manager import ConnectionManager
from cricket_auction.ws.messages import MessageEnvelope


# =============================================================================
# Mock Classes
# =============================================================================


class MockWebSocket:
    """Mock WebSocket for testing."""

    def __init__(self, fail_sends: bool = False):
        self.accepted = False
        self.closed = False
        self.close_code = None
        self.close_reason = None
        self.fail_sends = fail_sends
        self.sent_messages: list[dict[str, Any]] = []
        self.receive_queue: asyncio.Queue[str] = asyncio.Queue()

    async def accept(self) -> None:
        self.accepted = True

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed = True
        self.close_code = code
        self.close_reason = reason

    async def send_json(self, data: dict[str, Any]) -> None:
        if self.closed or self.fail_sends:
            raise RuntimeError("WebSocket closed")
        self.sent_messages.append(data)

    async def receive_text(self) -> str:
        if self.closed:
            raise RuntimeError("WebSocket closed")
        return await self.receive_queue.get()

    def messages_of(self, event_type: EventType) -> list[dict[str, Any]]:
        return [m for m in self.sent_messages if m["type"] == event_type.value]


class MockRedis:
    """Mock Redis client for testing.

    Covers pub/sub publish, plain keys (GET/SET NX PX/DEL) and the
    compare-and-delete release script. Two services built on one MockRedis
    behave like two instances sharing a Redis server.
    """

    def __init__(self):
        self.published: list[tuple[str, str]] = []
        self.fail_publish = False
        self.data: dict[str, str] = {}
        self.expires_at: dict[str, float] = {}

    async def ping(self) -> bool:
        return True

    async def publish(self, channel: str, message: str) -> int:
        if self.fail_publish:
            raise ConnectionError("redis down")
        self.published.append((channel, message))
        return 1

    def pubsub(self):
        return MockPubSub()

    def _expire(self, key: str) -> None:
        deadline = self.expires_at.get(key)
        if deadline is not None and time.monotonic() >= deadline:
            self.data.pop(key, None)
            self.expires_at.pop(key, None)

    async def get(self, key: str) -> str | None:
        self._expire(key)
        return self.data.get(key)

    async def set(
        self,
        key: str,
        value: str,
        nx: bool = False,
        px: int | None = None,
    ) -> bool | None:
        self._expire(key)
        if nx and key in self.data:
            return None
        self.data[key] = value
        if px is not None:
            self.expires_at[key] = time.monotonic() + px / 1000
        else:
            self.expires_at.pop(key, None)
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.expires_at.pop(key, None)
        return removed

    def register_script(self, script: str) -> "MockReleaseScript":
        return MockReleaseScript(self)


class MockReleaseScript:
    """Stands in for the owner-checked release Lua script."""

    def __init__(self, redis: MockRedis):
        self.redis = redis

    async def __call__(self, keys: list[str], args: list[str]) -> int:
        if await self.redis.get(keys[0]) == args[0]:
            return await self.redis.delete(keys[0])
        return 0


class MockPubSub:
    """Mock Redis pub/sub."""

    def __init__(self):
        self._subscribed: set[str] = set()

    async def psubscribe(self, pattern: str) -> None:
        self._subscribed.add(pattern)

    async def punsubscribe(self, pattern: str) -> None:
        self._subscribed.discard(pattern)

    async def close(self) -> None:
        pass

    async def get_message(
        self,
        ignore_subscribe_messages: bool = True,
        timeout: float = 1.0,
    ) -> dict[str, Any] | None:
        await asyncio.sleep(0.01)  # Simulate async
        return None


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def mock_redis() -> MockRedis:
    """Create a mock Redis client."""
    return MockRedis()


@pytest.fixture
def mock_websocket() -> MockWebSocket:
    """Create a mock WebSocket."""
    return MockWebSocket()


@pytest_asyncio.fixture
async def connection_manager() -> AsyncGenerator[ConnectionManager, None]:
    """Local-only connection manager."""
    manager = ConnectionManager()
    await manager.start()
    yield manager
    await manager.stop()


@pytest_asyncio.fixture
async def relay_manager(mock_redis: MockRedis) -> AsyncGenerator[ConnectionManager, None]:
    """Connection manager with the mock Redis relay."""
    manager = ConnectionManager(mock_redis)
    await manager.start()
    yield manager
    await manager.stop()


@pytest.fixture
def state_table() -> AuctionStateTable:
    return AuctionStateTable()


@pytest.fixture
def services(settings: Settings, store: InMemoryAuctionStore) -> AuctionServices:
    """Fully wired services over the seeded in-memory store."""
    return build_services(settings, store)


def make_connection(websocket: MockWebSocket | None = None) -> WebSocketConnection:
    return WebSocketConnection(
        websocket=websocket or MockWebSocket(),
        connection_id=str(uuid4()),
        connected_at=datetime.now(timezone.utc),
    )


@pytest_asyncio.fixture
async def test_connection(
    connection_manager: ConnectionManager,
    mock_websocket: MockWebSocket,
) -> WebSocketConnection:
    """Registered test WebSocket connection."""
    conn = make_connection(mock_websocket)
    await connection_manager.connect(conn)
    return conn


@pytest.fixture
def connection_factory():
    return make_connection


# =============================================================================
# Helper Functions
# =============================================================================


def create_message(
    event_type: EventType,
    payload: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    return MessageEnvelope.create(
        event_type=event_type,
        payload=payload or {},
        request_id=request_id,
    ).to_dict()


@pytest.fixture
def message_factory():
    return create_message
