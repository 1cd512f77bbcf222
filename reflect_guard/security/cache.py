"""Security layer — Process-local TTL cache of permission bundles.

One entry per user, overwritten on every ``set()``.  Entries expire lazily
on ``get()`` / ``has()`` and are also removed by a periodic asyncio sweep
started with ``start()``.

All access happens on the event loop thread, so no locking is needed; the
sweep snapshots the keys before evicting.

Usage::

    cache = PermissionCache(default_ttl=300, sweep_interval=120)
    await cache.start()
    cache.set("u-1", CachedPermissions(...))
    data = cache.get("u-1")
    await cache.stop()
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from reflect_guard.logging import get_logger
from reflect_guard.security.models import CachedPermissions

log = get_logger(__name__)


@dataclass
class CacheEntry:
    data: CachedPermissions
    timestamp: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.timestamp >= self.ttl


class PermissionCache:
    """TTL-based key-value cache mapping user id to ``CachedPermissions``."""

    def __init__(
        self,
        default_ttl: float = 300.0,
        sweep_interval: float = 120.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_ttl = default_ttl
        self._sweep_interval = sweep_interval
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._sweep_task: asyncio.Task[None] | None = None

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    # ------------------------------------------------------------------
    # Read / write
    # ------------------------------------------------------------------

    def get(self, user_id: str, max_age: float | None = None) -> CachedPermissions | None:
        """Return the live entry, or ``None``.

        With *max_age*, an entry older than that is a miss even when its own
        TTL has not run out.  The entry itself is kept.
        """
        entry = self._entries.get(user_id)
        if entry is None:
            self._misses += 1
            return None
        now = self._clock()
        if entry.is_expired(now):
            del self._entries[user_id]
            self._misses += 1
            return None
        if max_age is not None and now - entry.timestamp >= max_age:
            self._misses += 1
            return None
        self._hits += 1
        return entry.data

    def set(self, user_id: str, data: CachedPermissions, ttl: float | None = None) -> None:
        self._entries[user_id] = CacheEntry(
            data=data,
            timestamp=self._clock(),
            ttl=self._default_ttl if ttl is None else ttl,
        )

    def has(self, user_id: str) -> bool:
        entry = self._entries.get(user_id)
        if entry is None:
            return False
        if entry.is_expired(self._clock()):
            del self._entries[user_id]
            return False
        return True

    def get_remaining_ttl(self, user_id: str) -> float:
        """Seconds left before the entry expires (0 when absent)."""
        entry = self._entries.get(user_id)
        if entry is None:
            return 0.0
        return max(0.0, entry.ttl - (self._clock() - entry.timestamp))

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def invalidate(self, user_id: str) -> None:
        self._entries.pop(user_id, None)

    def invalidate_multiple(self, user_ids: Iterable[str]) -> None:
        for user_id in user_ids:
            self._entries.pop(user_id, None)

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def cleanup(self) -> int:
        """Evict every expired entry. Returns the number removed."""
        now = self._clock()
        expired = [uid for uid, entry in list(self._entries.items()) if entry.is_expired(now)]
        for uid in expired:
            del self._entries[uid]
        if expired:
            log.debug("permission_cache_cleanup", evicted=len(expired))
        return len(expired)

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def get_stats(self) -> dict[str, Any]:
        now = self._clock()
        lookups = self._hits + self._misses
        return {
            "size": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / lookups if lookups else 0.0,
            "entries": [
                {"user_id": uid, "age": now - entry.timestamp, "ttl": entry.ttl}
                for uid, entry in self._entries.items()
            ],
        }

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Background sweep
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweep_task
            self._sweep_task = None

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            self.cleanup()
