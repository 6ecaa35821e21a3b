"""
Per-tournament command serialization.

Every mutating command for a tournament runs inside ``lock(tournament_id)``,
covering state read, transition, table replace and broadcast. Commands for
different tournaments never wait on each other.

Two layers:
- a lazily created ``asyncio.Lock`` per tournament orders commands within
  this instance
- with a Redis client, ``lock:auction:{tournament_id}`` (SET NX PX) orders
  commands across instances; release is owner-checked in a Lua script so an
  expired lock taken over by another instance is never deleted
"""

import asyncio
import hashlib
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Optional
from uuid import uuid4

from redis.asyncio import Redis

from cricket_auction.utils.errors import TournamentBusyError

logger = logging.getLogger(__name__)

LOCK_KEY_PREFIX = "lock:auction:"


def lock_key(tournament_id: str) -> str:
    return f"{LOCK_KEY_PREFIX}{tournament_id}"


class TournamentLockManager:
    """
    Lazily created ``asyncio.Lock`` per tournament, plus an optional Redis lock.

    asyncio.Lock wakes waiters in FIFO order, so commands for one tournament
    run in the order they reached this instance's gateway.
    """

    # 소유자 확인 후 삭제 - 다른 인스턴스의 락을 해제하지 않음
    RELEASE_LOCK_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    def __init__(
        self,
        redis: Optional[Redis] = None,
        lock_timeout_ms: int = 10000,
        acquire_timeout_ms: int = 5000,
        retry_interval_ms: int = 50,
    ):
        self.redis = redis
        self.lock_timeout_ms = lock_timeout_ms
        self.acquire_timeout_ms = acquire_timeout_ms
        self.retry_interval_ms = retry_interval_ms

        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}
        self._instance_id = str(uuid4())
        self._release_script = None

    def _get_lock(self, tournament_id: str) -> asyncio.Lock:
        lock = self._locks.get(tournament_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[tournament_id] = lock
        return lock

    @asynccontextmanager
    async def lock(self, tournament_id: str) -> AsyncGenerator[None, None]:
        """
        Hold the tournament's lock for the duration of the block.

        Usage:
            async with lock_manager.lock(tournament_id):
                # read state, transition, replace, broadcast
                ...

        Raises:
            TournamentBusyError: the Redis lock stayed held by another
                instance for longer than ``acquire_timeout_ms``
        """
        lock = self._get_lock(tournament_id)
        self._waiters[tournament_id] = self._waiters.get(tournament_id, 0) + 1
        try:
            async with lock:
                if self.redis is None:
                    yield
                else:
                    owner = await self._acquire_remote(tournament_id)
                    try:
                        yield
                    finally:
                        await self._release_remote(tournament_id, owner)
        finally:
            remaining = self._waiters[tournament_id] - 1
            if remaining:
                self._waiters[tournament_id] = remaining
            else:
                # 대기자 없음 - 락 객체 정리
                del self._waiters[tournament_id]
                if not lock.locked():
                    self._locks.pop(tournament_id, None)

    # =========================================================================
    # Redis
    # =========================================================================

    def _make_owner_token(self) -> str:
        raw = f"{self._instance_id}:{time.time_ns()}:{uuid4().hex[:8]}"
        return hashlib.sha256(raw.encode()).hexdigest()[:32]

    async def _acquire_remote(self, tournament_id: str) -> str:
        key = lock_key(tournament_id)
        owner = self._make_owner_token()
        start = time.monotonic()

        while True:
            acquired = await self.redis.set(
                key,
                owner,
                nx=True,
                px=self.lock_timeout_ms,
            )
            if acquired:
                return owner

            elapsed_ms = (time.monotonic() - start) * 1000
            if elapsed_ms >= self.acquire_timeout_ms:
                logger.warning(
                    f"Lock {key} still held after {self.acquire_timeout_ms}ms"
                )
                raise TournamentBusyError(tournament_id)

            await asyncio.sleep(self.retry_interval_ms / 1000)

    async def _release_remote(self, tournament_id: str, owner: str) -> None:
        if self._release_script is None:
            self._release_script = self.redis.register_script(self.RELEASE_LOCK_SCRIPT)

        released = await self._release_script(keys=[lock_key(tournament_id)], args=[owner])
        if released != 1:
            logger.warning(
                f"Lock {lock_key(tournament_id)} expired before release "
                f"(lock_timeout_ms={self.lock_timeout_ms})"
            )

    def is_locked(self, tournament_id: str) -> bool:
        """Whether this instance holds or waits on the tournament's lock."""
        lock = self._locks.get(tournament_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
