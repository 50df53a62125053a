"""
Per-player mutual exclusion.

Purpose
-------
Serialise every mutating command for one player so that check-and-mutate
sequences (claim flag, grant claim, balance check) never interleave.
Commands for different players run concurrently.

Backends
--------
**Local** (default): one ``asyncio.Lock`` per player, created on demand and
dropped once no task holds or waits for it. Correct for a single process.

**Redis** (``REDIS_URL`` set): ``SET key token NX EX lease`` with a unique
token, released through a compare-and-delete Lua script so a holder whose
lease expired can never delete a successor's lock. Required when several
processes share one database.

Configuration
-------------
- locking.wait_timeout_seconds   : float (default 5.0)
- locking.lease_seconds          : int   (default 10)
- locking.retry_interval_seconds : float (default 0.05)
- locking.key_prefix             : str   (default "progression:lock:player")
"""

from __future__ import annotations

import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator, Dict, Optional

from redis.asyncio import Redis as AsyncRedis
from redis.exceptions import RedisError

from src.core.config.config import Config
from src.core.config.manager import ConfigManager
from src.core.exceptions import LockBackendError, LockTimeoutError
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


@dataclass
class _LocalEntry:
    lock: asyncio.Lock
    users: int = 0


class PlayerLockService:
    """
    Acquire an exclusive per-player lock for the duration of a command.

    Usage
    -----
    >>> locks = PlayerLockService()
    >>> async with locks.acquire("p-1", operation="upgrade_card"):
    ...     await run_unit_of_work()
    """

    _LUA_UNLOCK_SCRIPT = """
    if redis.call("GET", KEYS[1]) == ARGV[1] then
        return redis.call("DEL", KEYS[1])
    else
        return 0
    end
    """

    def __init__(self, redis_client: Optional[AsyncRedis] = None) -> None:
        self._redis = redis_client
        self._local: Dict[str, _LocalEntry] = {}

        self._wait_timeout = float(ConfigManager.get("locking.wait_timeout_seconds", 5.0))
        self._lease_seconds = int(ConfigManager.get("locking.lease_seconds", 10))
        self._retry_interval = float(
            ConfigManager.get("locking.retry_interval_seconds", 0.05)
        )
        self._key_prefix = str(
            ConfigManager.get("locking.key_prefix", "progression:lock:player")
        )

    @classmethod
    def from_config(cls) -> PlayerLockService:
        """Build the lock service, using Redis when ``REDIS_URL`` is configured."""
        url = Config.REDIS_URL
        if not url:
            return cls()

        client = AsyncRedis.from_url(
            url,
            socket_timeout=Config.REDIS_SOCKET_TIMEOUT,
            decode_responses=True,
        )
        logger.info(
            "Player locks backed by Redis",
            extra={"url_scheme": url.split("://")[0] if "://" in url else "unknown"},
        )
        return cls(redis_client=client)

    @property
    def backend(self) -> str:
        return "redis" if self._redis is not None else "local"

    def lock_key(self, player_id: str) -> str:
        return f"{self._key_prefix}:{player_id}"

    def held_locks(self) -> int:
        """Number of players with a local lock entry (held or awaited)."""
        return len(self._local)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()

    # ------------------------------------------------------------------ #
    # Acquisition
    # ------------------------------------------------------------------ #

    @asynccontextmanager
    async def acquire(
        self,
        player_id: str,
        *,
        operation: Optional[str] = None,
        wait_timeout: Optional[float] = None,
    ) -> AsyncGenerator[None, None]:
        """
        Hold the lock for `player_id` while the block runs.

        Raises
        ------
        LockTimeoutError
            If the lock was not obtained within the wait timeout.
        LockBackendError
            If the Redis backend failed while acquiring. A failed release is
            logged only, since the lease expires on its own.
        """
        timeout = self._wait_timeout if wait_timeout is None else wait_timeout

        if self._redis is None:
            async with self._acquire_local(player_id, operation, timeout):
                yield
        else:
            async with self._acquire_redis(player_id, operation, timeout):
                yield

    @asynccontextmanager
    async def _acquire_local(
        self, player_id: str, operation: Optional[str], timeout: float
    ) -> AsyncGenerator[None, None]:
        entry = self._local.get(player_id)
        if entry is None:
            entry = _LocalEntry(lock=asyncio.Lock())
            self._local[player_id] = entry
        entry.users += 1

        start = time.monotonic()
        try:
            try:
                await asyncio.wait_for(entry.lock.acquire(), timeout=timeout)
            except asyncio.TimeoutError:
                waited = time.monotonic() - start
                logger.warning(
                    "Player lock wait timed out",
                    extra={
                        "player_id": player_id,
                        "lock_operation": operation,
                        "waited_seconds": round(waited, 3),
                    },
                )
                raise LockTimeoutError(self.lock_key(player_id), waited)

            try:
                yield
            finally:
                entry.lock.release()
        finally:
            entry.users -= 1
            if entry.users == 0 and self._local.get(player_id) is entry:
                del self._local[player_id]

    @asynccontextmanager
    async def _acquire_redis(
        self, player_id: str, operation: Optional[str], timeout: float
    ) -> AsyncGenerator[None, None]:
        assert self._redis is not None
        key = self.lock_key(player_id)
        token = str(uuid.uuid4())
        start = time.monotonic()
        deadline = start + max(0.0, timeout)

        while True:
            try:
                acquired = await self._redis.set(
                    name=key, value=token, nx=True, ex=self._lease_seconds
                )
            except RedisError as exc:
                logger.error(
                    "Redis lock acquisition error",
                    extra={"lock_key": key, "error_type": type(exc).__name__},
                )
                raise LockBackendError(key, exc) from exc

            if acquired:
                break

            if time.monotonic() >= deadline:
                waited = time.monotonic() - start
                logger.warning(
                    "Player lock wait timed out",
                    extra={
                        "player_id": player_id,
                        "lock_key": key,
                        "lock_operation": operation,
                        "waited_seconds": round(waited, 3),
                    },
                )
                raise LockTimeoutError(key, waited)

            await asyncio.sleep(self._retry_interval)

        logger.debug(
            "Redis player lock acquired",
            extra={
                "lock_key": key,
                "lock_operation": operation,
                "wait_ms": round((time.monotonic() - start) * 1000.0, 2),
            },
        )

        try:
            yield
        finally:
            try:
                released = await self._redis.eval(self._LUA_UNLOCK_SCRIPT, 1, key, token)
            except RedisError as exc:
                # The guarded work already finished; lease expiry frees the key
                logger.error(
                    "Redis lock release failed",
                    extra={
                        "lock_key": key,
                        "lease_seconds": self._lease_seconds,
                        "error_type": type(exc).__name__,
                    },
                    exc_info=exc,
                )
            else:
                if not released:
                    logger.warning(
                        "Redis player lock expired before release",
                        extra={"lock_key": key, "lease_seconds": self._lease_seconds},
                    )
