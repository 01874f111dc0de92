"""Nonce-keyed, single-use storage for checkouts waiting on user consent.

``take`` is atomic read-and-remove: of two callbacks racing on the same nonce,
exactly one receives the context. Entries expire after a fixed lifetime so
abandoned consents do not accumulate.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable

from redis.asyncio import Redis, from_url

from splitpay.platform.config import settings
from splitpay.platform.models import PendingCheckoutContext

logger = logging.getLogger(__name__)


class PendingStateStore(ABC):
    @abstractmethod
    async def put(self, nonce: str, context: PendingCheckoutContext) -> None: ...

    @abstractmethod
    async def take(self, nonce: str) -> PendingCheckoutContext | None: ...

    async def sweep(self) -> int:
        return 0


class InMemoryPendingStore(PendingStateStore):
    def __init__(self, ttl_seconds: float | None = None, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float | None, PendingCheckoutContext]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _expired(self, expires_at: float | None, now: float) -> bool:
        return expires_at is not None and now >= expires_at

    async def put(self, nonce: str, context: PendingCheckoutContext) -> None:
        expires_at = None
        if self._ttl_seconds:
            expires_at = self._clock() + self._ttl_seconds
        with self._lock:
            self._entries[nonce] = (expires_at, context)

    async def take(self, nonce: str) -> PendingCheckoutContext | None:
        with self._lock:
            entry = self._entries.pop(nonce, None)
        if entry is None:
            return None

        expires_at, context = entry
        if self._expired(expires_at, self._clock()):
            logger.info("Pending checkout %s expired before callback", nonce)
            return None
        return context

    async def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            stale = [nonce for nonce, (expires_at, _) in self._entries.items() if self._expired(expires_at, now)]
            for nonce in stale:
                del self._entries[nonce]
        return len(stale)


class RedisPendingStore(PendingStateStore):
    """Expiry is delegated to Redis, so ``sweep`` has nothing to do."""

    def __init__(self, redis: Redis, *, ttl_seconds: int, key_prefix: str = "splitpay:pending:") -> None:
        self._redis = redis
        self._ttl_seconds = ttl_seconds
        self._key_prefix = key_prefix

    @classmethod
    def from_settings(cls) -> "RedisPendingStore":
        return cls(from_url(settings.redis_url, decode_responses=True), ttl_seconds=settings.pending_ttl_seconds)

    def _key(self, nonce: str) -> str:
        return f"{self._key_prefix}{nonce}"

    async def put(self, nonce: str, context: PendingCheckoutContext) -> None:
        await self._redis.set(self._key(nonce), context.model_dump_json(by_alias=True), ex=self._ttl_seconds)

    async def take(self, nonce: str) -> PendingCheckoutContext | None:
        raw = await self._redis.getdel(self._key(nonce))
        if raw is None:
            return None
        return PendingCheckoutContext.model_validate_json(raw)


_store: PendingStateStore | None = None


def _build_store() -> PendingStateStore:
    backend = settings.pending_store_backend.strip().lower()
    if backend == "redis":
        return RedisPendingStore.from_settings()
    if backend != "memory":
        logger.warning("Unknown PENDING_STORE_BACKEND '%s'; using in-memory store", backend)
    return InMemoryPendingStore(ttl_seconds=settings.pending_ttl_seconds)


def get_pending_store() -> PendingStateStore:
    global _store
    if _store is None:
        _store = _build_store()
    return _store


async def sweep_forever(store: PendingStateStore, interval_seconds: float) -> None:
    while True:
        await asyncio.sleep(interval_seconds)
        removed = await store.sweep()
        if removed:
            logger.info("Swept %d abandoned pending checkouts", removed)
