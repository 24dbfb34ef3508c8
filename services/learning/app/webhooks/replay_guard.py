"""Recent-window deduplication of webhook event ids.

Key schema (Redis backend)
--------------------------
webhook:seen:{event_id}     String   TTL=window   "1"

Each id expires on its own, so an id recorded just before a window
boundary is still remembered for the full window. The guard is a first
line of defence only: ledger and enrollment writes are themselves keyed
by unique ids.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Protocol

import redis.asyncio as redis
from redis.asyncio import Redis

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECS = 300


class ReplayGuard(Protocol):
    async def should_process(self, event_id: str) -> bool: ...

    async def forget(self, event_id: str) -> None: ...


def _seen_key(event_id: str) -> str:
    return f"webhook:seen:{event_id}"


class RedisReplayGuard:
    def __init__(self, client: Redis, ttl_secs: int = DEFAULT_TTL_SECS):
        self._redis = client
        self._ttl_secs = ttl_secs

    @classmethod
    def from_url(cls, redis_url: str, ttl_secs: int = DEFAULT_TTL_SECS) -> RedisReplayGuard:
        client = redis.from_url(redis_url, decode_responses=True, health_check_interval=30)
        return cls(client, ttl_secs)

    async def should_process(self, event_id: str) -> bool:
        # SET NX is atomic: concurrent deliveries of one id cannot both win
        created = await self._redis.set(_seen_key(event_id), "1", nx=True, ex=self._ttl_secs)
        if not created:
            logger.warning("SECURITY: duplicate webhook detected event_id=%s", event_id)
            return False
        return True

    async def forget(self, event_id: str) -> None:
        await self._redis.delete(_seen_key(event_id))

    async def aclose(self) -> None:
        await self._redis.aclose()


class MemoryReplayGuard:
    """Single-process guard for local development and tests."""

    def __init__(
        self,
        ttl_secs: int = DEFAULT_TTL_SECS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl_secs = ttl_secs
        self._clock = clock
        self._seen: dict[str, float] = {}

    def _prune(self, now: float) -> None:
        expired = [eid for eid, expires_at in self._seen.items() if expires_at <= now]
        for eid in expired:
            del self._seen[eid]

    async def should_process(self, event_id: str) -> bool:
        now = self._clock()
        self._prune(now)
        if event_id in self._seen:
            logger.warning("SECURITY: duplicate webhook detected event_id=%s", event_id)
            return False
        self._seen[event_id] = now + self._ttl_secs
        return True

    async def forget(self, event_id: str) -> None:
        self._seen.pop(event_id, None)

    def __len__(self) -> int:
        return len(self._seen)
