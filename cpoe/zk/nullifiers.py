"""
Nullifier Stores
================

Append-only registry of spent nullifier hashes; the only shared mutable
state of the proof engine.

`check_and_insert` is the single linearization point: of any number of
concurrent calls for one nullifier exactly one returns True.

- InMemoryNullifierStore: per-process, guarded by an asyncio lock
- RedisNullifierStore: shared across processes, `SET NX`

Version: 0.1.0
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any

import redis.asyncio as aioredis
from redis.asyncio import Redis
from redis.exceptions import RedisError

from cpoe.config import NullifierBackend, settings
from cpoe.errors import ResourceUnavailableError
from cpoe.logging import get_logger


logger = get_logger(__name__)


class NullifierStore(ABC):
    """Set of accepted nullifier hashes (0x hex)."""

    @abstractmethod
    async def check_and_insert(self, nullifier: str) -> bool:
        """
        Atomically record `nullifier`.

        Returns:
            True if it was newly inserted, False if already present
        """
        ...

    @abstractmethod
    async def contains(self, nullifier: str) -> bool:
        """Non-authoritative membership check."""
        ...

    @abstractmethod
    async def count(self) -> int:
        ...

    async def health_check(self) -> dict[str, Any]:
        return {"status": "healthy", "backend": type(self).__name__}

    async def close(self) -> None:
        return None


class InMemoryNullifierStore(NullifierStore):
    """Process-local store. Data is lost on restart."""

    def __init__(self) -> None:
        self._spent: dict[str, datetime] = {}
        self._lock = asyncio.Lock()

    async def check_and_insert(self, nullifier: str) -> bool:
        key = nullifier.lower()
        async with self._lock:
            if key in self._spent:
                return False
            self._spent[key] = datetime.now(UTC)
            return True

    async def contains(self, nullifier: str) -> bool:
        return nullifier.lower() in self._spent

    async def count(self) -> int:
        return len(self._spent)

    async def health_check(self) -> dict[str, Any]:
        return {"status": "healthy", "backend": "memory", "nullifiers": len(self._spent)}


class RedisNullifierStore(NullifierStore):
    """Store shared by every verifier process pointing at the same Redis."""

    def __init__(
        self,
        client: Redis | None = None,  # type: ignore[type-arg]
        key_prefix: str | None = None,
    ) -> None:
        self._client = client or aioredis.from_url(
            settings.redis.url,
            encoding="utf-8",
            decode_responses=True,
        )
        self._prefix = key_prefix or settings.nullifier.key_prefix
        self._count_key = f"{self._prefix}__count__"

    def _key(self, nullifier: str) -> str:
        return f"{self._prefix}{nullifier.lower()}"

    async def check_and_insert(self, nullifier: str) -> bool:
        try:
            inserted = await self._client.set(
                self._key(nullifier),
                datetime.now(UTC).isoformat(),
                nx=True,
            )
            if inserted:
                await self._client.incr(self._count_key)
        except RedisError as e:
            logger.error("nullifier_store_unavailable", operation="check_and_insert", error=str(e))
            raise ResourceUnavailableError("nullifier store unavailable") from e
        return bool(inserted)

    async def contains(self, nullifier: str) -> bool:
        try:
            return bool(await self._client.exists(self._key(nullifier)))
        except RedisError as e:
            logger.error("nullifier_store_unavailable", operation="contains", error=str(e))
            raise ResourceUnavailableError("nullifier store unavailable") from e

    async def count(self) -> int:
        try:
            value = await self._client.get(self._count_key)
        except RedisError as e:
            raise ResourceUnavailableError("nullifier store unavailable") from e
        return int(value or 0)

    async def health_check(self) -> dict[str, Any]:
        try:
            pong = await self._client.ping()
        except RedisError as e:
            logger.error("redis_health_check_failed", error=str(e))
            return {"status": "unhealthy", "backend": "redis", "error": str(e)}
        return {"status": "healthy" if pong else "unhealthy", "backend": "redis"}

    async def close(self) -> None:
        await self._client.aclose()


# Global store instance
_store: NullifierStore | None = None


def get_nullifier_store() -> NullifierStore:
    """Get the configured nullifier store instance."""
    global _store

    if _store is None:
        backend = settings.nullifier.backend
        if backend == NullifierBackend.REDIS:
            _store = RedisNullifierStore()
        else:
            _store = InMemoryNullifierStore()
        logger.info("nullifier_store_initialized", backend=backend.value)

    return _store


def set_nullifier_store(store: NullifierStore) -> None:
    global _store
    _store = store


def reset_nullifier_store() -> None:
    global _store
    _store = None
