"""Connection manager with optional Redis pub/sub relay for multi-instance fan-out."""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from uuid import uuid4

from redis.asyncio import Redis

from cricket_auction.utils.json_utils import json_dumps, json_loads
from cricket_auction.ws.connection import ConnectionState, WebSocketConnection

logger = logging.getLogger(__name__)

PUBSUB_PREFIX = "ws:pubsub:"


class ConnectionLimitExceeded(Exception):
    """Raised when connection limits are exceeded."""
    pass


class ConnectionManager:
    """Manages WebSocket connections and channel (subscriber group) membership.

    Channel map mutation and iteration only happen on the event loop;
    broadcasts iterate over a copy of the member set. When a Redis client is
    given, every broadcast is also published so other instances can deliver
    it to their own subscribers.
    """

    def __init__(self, redis: Redis | None = None, max_connections: int = 2000):
        self.redis = redis

        # Local connection registry (per instance)
        self._connections: dict[str, WebSocketConnection] = {}  # connection_id -> Connection

        # Channel subscriptions (local tracking)
        self._channel_members: dict[str, set[str]] = {}  # channel -> set[connection_id]

        self._max_connections = max_connections

        # Background tasks
        self._pubsub_task: asyncio.Task | None = None
        self._running = False
        self._instance_id = str(uuid4())[:8]

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Start background tasks."""
        if self._running:
            return
        self._running = True
        if self.redis is not None:
            await self._start_pubsub_listener()

        logger.info(
            f"ConnectionManager started (instance: {self._instance_id}, "
            f"relay: {'redis' if self.redis is not None else 'local'})"
        )

    async def stop(self) -> None:
        """Stop background tasks and close all connections."""
        self._running = False
        logger.info(f"Stopping ConnectionManager (instance: {self._instance_id})")

        if self._pubsub_task:
            self._pubsub_task.cancel()
            try:
                await self._pubsub_task
            except asyncio.CancelledError:
                pass
            self._pubsub_task = None

        connection_count = len(self._connections)
        for conn_id in list(self._connections.keys()):
            conn = self._connections.get(conn_id)
            if conn:
                await conn.close(1001, "Server shutting down")
            await self.disconnect(conn_id)

        logger.info(
            f"ConnectionManager stopped (instance: {self._instance_id}, "
            f"connections closed: {connection_count})"
        )

    # =========================================================================
    # Connection Lifecycle
    # =========================================================================

    async def connect(self, conn: WebSocketConnection) -> None:
        """Register a new connection with connection limit enforcement."""
        if len(self._connections) >= self._max_connections:
            logger.warning(
                f"Global connection limit reached ({self._max_connections}). "
                f"Rejecting connection {conn.connection_id}"
            )
            raise ConnectionLimitExceeded(
                f"Maximum connections ({self._max_connections}) reached"
            )

        self._connections[conn.connection_id] = conn
        logger.info(
            f"Connection {conn.connection_id} registered "
            f"(total: {len(self._connections)}/{self._max_connections})"
        )

    async def disconnect(self, connection_id: str) -> None:
        """Unregister a connection and remove it from every channel."""
        conn = self._connections.get(connection_id)
        if not conn:
            logger.debug(f"Connection {connection_id} not found, skipping disconnect")
            return

        conn.state = ConnectionState.DISCONNECTED
        channels = list(conn.subscribed_channels)
        for channel in channels:
            self._unsubscribe_local(connection_id, channel)

        self._connections.pop(connection_id, None)

        logger.info(
            f"Connection {connection_id} disconnected - "
            f"channels cleaned: {len(channels)}, "
            f"remaining connections: {len(self._connections)}"
        )

    @property
    def connection_count(self) -> int:
        """Get total number of connections."""
        return len(self._connections)

    # =========================================================================
    # Channel Management
    # =========================================================================

    async def subscribe(self, connection_id: str, channel: str) -> bool:
        """Subscribe connection to a channel."""
        conn = self._connections.get(connection_id)
        if not conn:
            return False

        if channel not in self._channel_members:
            self._channel_members[channel] = set()

        self._channel_members[channel].add(connection_id)
        conn.subscribed_channels.add(channel)

        logger.debug(f"Connection {connection_id} subscribed to {channel}")
        return True

    async def unsubscribe(self, connection_id: str, channel: str) -> bool:
        """Unsubscribe connection from a channel."""
        return self._unsubscribe_local(connection_id, channel)

    def _unsubscribe_local(self, connection_id: str, channel: str) -> bool:
        removed = False
        members = self._channel_members.get(channel)
        if members is not None and connection_id in members:
            members.discard(connection_id)
            removed = True
            if not members:
                del self._channel_members[channel]

        conn = self._connections.get(connection_id)
        if conn:
            conn.subscribed_channels.discard(channel)

        if removed:
            logger.debug(f"Connection {connection_id} unsubscribed from {channel}")
        return removed

    # =========================================================================
    # Broadcasting
    # =========================================================================

    async def broadcast_to_channel(
        self,
        channel: str,
        message: dict[str, Any],
    ) -> int:
        """Broadcast message to all subscribers of a channel.

        Returns count of messages delivered to local subscribers.
        """
        if self.redis is not None:
            try:
                await self.redis.publish(
                    f"{PUBSUB_PREFIX}{channel}",
                    json_dumps({
                        "source_instance": self._instance_id,
                        "message": message,
                    }),
                )
            except Exception as e:
                # 릴레이 실패는 로컬 전달을 막지 않음
                logger.error(f"Failed to publish to {channel}: {e}")

        return await self._send_to_local_channel(channel, message)

    async def _send_to_local_channel(
        self,
        channel: str,
        message: dict[str, Any],
    ) -> int:
        """Send to local channel subscribers only.

        A subscriber whose send fails is dropped from the channel; delivery
        to the others continues.
        """
        connection_ids = list(self._channel_members.get(channel, set()))
        count = 0
        failed: list[str] = []

        for conn_id in connection_ids:
            conn = self._connections.get(conn_id)
            if conn is None:
                failed.append(conn_id)
                continue
            if await conn.send(message):
                count += 1
            else:
                failed.append(conn_id)

        for conn_id in failed:
            self._unsubscribe_local(conn_id, channel)
        if failed:
            logger.debug(f"Dropped {len(failed)} dead subscriber(s) from {channel}")

        return count

    # =========================================================================
    # Redis Pub/Sub Listener
    # =========================================================================

    async def _start_pubsub_listener(self) -> None:
        """Start listening to Redis pub/sub for cross-instance messages."""
        pubsub = self.redis.pubsub()
        await pubsub.psubscribe(f"{PUBSUB_PREFIX}*")

        async def listener() -> None:
            try:
                while self._running:
                    try:
                        message = await pubsub.get_message(
                            ignore_subscribe_messages=True,
                            timeout=1.0,
                        )
                        if message and message["type"] == "pmessage":
                            await self._handle_pubsub_message(message)
                    except asyncio.CancelledError:
                        raise
                    except Exception as e:
                        logger.error(f"Pub/sub listener error: {e}")
                        await asyncio.sleep(1)
            finally:
                await pubsub.punsubscribe(f"{PUBSUB_PREFIX}*")
                await pubsub.close()

        self._pubsub_task = asyncio.create_task(listener())

    async def _handle_pubsub_message(self, message: dict[str, Any]) -> None:
        """Deliver a relayed broadcast to local subscribers."""
        try:
            channel_raw = message.get("channel", b"")
            if isinstance(channel_raw, bytes):
                channel_raw = channel_raw.decode()
            channel = str(channel_raw).removeprefix(PUBSUB_PREFIX)

            data = json_loads(message.get("data", b"{}"))

            # Skip messages from self
            if data.get("source_instance") == self._instance_id:
                return

            await self._send_to_local_channel(channel, data["message"])
        except Exception as e:
            logger.error(f"Error handling pub/sub message: {e}")
