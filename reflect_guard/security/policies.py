"""Security layer — Named fallback policies for infrastructure failures.

Two policies coexist and each call site picks one explicitly:

  - ``PERMISSIVE_DEFAULT`` — the request proceeds with a degraded but safe
    value (free-user bundle, inactive premium status, empty result list).
    Used for bulk permission loading.
  - ``RESTRICTIVE_DEFAULT`` — the operation answers with an explicit denial
    or mandatory moderation.  Used for point-in-time checks that guard
    irreversible actions.

Usage::

    try:
        ...
    except Exception as exc:
        return RESTRICTIVE_DEFAULT.recover(
            "check_post_access", exc, CheckResult.deny(...), user_id=user_id
        )
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypeVar

from reflect_guard.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class FallbackPolicy:
    name: str
    fail_open: bool

    def recover(self, operation: str, exc: BaseException, fallback: T, **context: Any) -> T:
        """Log the swallowed *exc* and return *fallback*."""
        log.warning(
            "permission_fallback_applied",
            operation=operation,
            policy=self.name,
            error=str(exc),
            error_type=type(exc).__name__,
            **context,
        )
        return fallback


PERMISSIVE_DEFAULT = FallbackPolicy(name="permissive_default", fail_open=True)
RESTRICTIVE_DEFAULT = FallbackPolicy(name="restrictive_default", fail_open=False)
