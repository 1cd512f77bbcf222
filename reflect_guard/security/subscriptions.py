"""Security layer — Cache invalidation on subscription state changes.

Closes the staleness window of ``PermissionCache`` for known transitions:
upgrades, downgrades, renewals and expiries.  Expiry can also be scheduled
ahead of time with an event-loop timer; re-scheduling for the same user
replaces the earlier timer.

The ``on_subscription_*`` / ``on_payment_failed`` methods adapt payment
provider webhooks onto the transition hooks.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Iterable

from reflect_guard.logging import get_logger
from reflect_guard.security.permissions import PermissionService

log = get_logger(__name__)


class SubscriptionCacheHandler:
    def __init__(
        self,
        permissions: PermissionService,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._permissions = permissions
        self._clock = clock
        self._timers: dict[str, asyncio.TimerHandle] = {}

    # ------------------------------------------------------------------
    # Transition hooks
    # ------------------------------------------------------------------

    def on_upgraded(self, user_id: str) -> None:
        self._invalidate(user_id, "upgraded")

    def on_downgraded(self, user_id: str) -> None:
        self._invalidate(user_id, "downgraded")

    def on_expired(self, user_id: str) -> None:
        self._timers.pop(user_id, None)
        self._invalidate(user_id, "expired")

    def on_renewed(self, user_id: str) -> None:
        self._invalidate(user_id, "renewed")

    def on_bulk_change(self, user_ids: Iterable[str]) -> None:
        ids = list(user_ids)
        self._permissions.invalidate_multiple_users_cache(ids)
        log.info("subscription_cache_invalidated_bulk", count=len(ids))

    def _invalidate(self, user_id: str, transition: str) -> None:
        self._permissions.invalidate_user_cache(user_id)
        log.info("subscription_cache_invalidated", user_id=user_id, transition=transition)

    # ------------------------------------------------------------------
    # Scheduled expiry
    # ------------------------------------------------------------------

    def schedule_expiration_invalidation(self, user_id: str, expires_at: float) -> bool:
        """Invalidate *user_id* when *expires_at* (epoch seconds) passes.

        Must be called from a running event loop.  Returns False when the
        expiry is already in the past and nothing was scheduled.
        """
        delay = expires_at - self._clock()
        if delay <= 0:
            return False

        previous = self._timers.pop(user_id, None)
        if previous is not None:
            previous.cancel()

        loop = asyncio.get_running_loop()
        self._timers[user_id] = loop.call_later(delay, self.on_expired, user_id)
        log.info("subscription_expiry_scheduled", user_id=user_id, delay_seconds=round(delay, 3))
        return True

    def cancel_scheduled(self, user_id: str | None = None) -> int:
        """Cancel one user's timer, or all timers when *user_id* is None."""
        if user_id is not None:
            handle = self._timers.pop(user_id, None)
            if handle is None:
                return 0
            handle.cancel()
            return 1

        count = len(self._timers)
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        return count

    @property
    def scheduled_users(self) -> list[str]:
        return list(self._timers)

    # ------------------------------------------------------------------
    # Payment webhook adapters
    # ------------------------------------------------------------------

    def on_subscription_created(self, customer_id: str, user_id: str) -> None:
        self.on_upgraded(user_id)

    def on_subscription_canceled(self, customer_id: str, user_id: str) -> None:
        self.on_downgraded(user_id)

    def on_subscription_updated(
        self,
        customer_id: str,
        user_id: str,
        new_expires_at: float | None = None,
    ) -> None:
        self.on_renewed(user_id)
        if new_expires_at is not None:
            self.schedule_expiration_invalidation(user_id, new_expires_at)

    def on_payment_failed(self, customer_id: str, user_id: str) -> None:
        log.warning("subscription_payment_failed", user_id=user_id, customer_id=customer_id)
