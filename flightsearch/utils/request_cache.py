"""
In-memory request cache with in-flight de-duplication

Keyed by the fully resolved upstream request URL. Entries live for a fixed
TTL from insertion and are evicted lazily on the next read. Concurrent
lookups for a key whose value is still being fetched await the same task,
so at most one upstream call per key is in flight.
"""
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional
import asyncio
import logging
import re
import time

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30.0

_SECRET_PATH_SEGMENT = re.compile(r"/[A-Za-z0-9_\-]{20,}(?=/|$)")


@dataclass
class CacheEntry:
    value: Any
    created_at: float


class RequestCache:
    """
    Process-local TTL cache for raw provider responses.

    Usage:
        cache = RequestCache(ttl_seconds=30)
        data = await cache.get_or_create(url, lambda: fetch(url))
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._pending: Dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def get(self, key: str) -> Optional[Any]:
        """Get a live value, evicting it if it has expired"""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.created_at >= self.ttl_seconds:
            del self._entries[key]
            logger.debug(f"Cache EXPIRED: {redact_url(key)}")
            return None
        return entry.value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = CacheEntry(value=value, created_at=self._clock())

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop all entries. In-flight fetches still complete and are stored."""
        self._entries.clear()

    async def get_or_create(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        """
        Get from cache, join an in-flight fetch, or start a new one.

        A failed fetch is not cached; every waiter sees its exception.
        Cancelling one waiter does not cancel the shared fetch.
        """
        value = self.get(key)
        if value is not None:
            logger.debug(f"Cache HIT: {redact_url(key)}")
            return value

        task = self._pending.get(key)
        if task is None:
            logger.debug(f"Cache MISS: {redact_url(key)}")
            task = asyncio.ensure_future(self._create(key, factory))
            task.add_done_callback(_consume_exception)
            self._pending[key] = task
        else:
            logger.debug(f"Joining in-flight request: {redact_url(key)}")

        return await asyncio.shield(task)

    async def _create(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        try:
            value = await factory()
            if value is not None:
                self.set(key, value)
            return value
        finally:
            self._pending.pop(key, None)


def _consume_exception(task: asyncio.Task) -> None:
    # Waiters may all be gone; mark the exception as retrieved
    if not task.cancelled():
        task.exception()


def redact_url(key: str) -> str:
    """Cache keys are URLs that may embed API keys in the path"""
    return _SECRET_PATH_SEGMENT.sub("/***", key)
