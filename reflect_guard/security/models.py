"""Security layer — User tiers, permission bundles and premium status.

Defines the permission system's core types:
  - ``UserTier``         — FREE / PREMIUM
  - ``PremiumStatus``    — frozen projection of a profile's subscription fields
  - ``UserPermissions``  — frozen capability bundle derived from the tier
  - ``CachedPermissions``— the pair stored per user in ``PermissionCache``
  - ``CheckResult``      — outcome of a point-in-time authorization check

The premium-activity rule and the reflection-eligibility rule are plain
functions so that every caller shares a single definition.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

_SECONDS_PER_DAY = 86_400


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class UserTier(str, Enum):
    """Subscription tier a permission bundle is derived from."""

    FREE = "free"
    PREMIUM = "premium"


# ---------------------------------------------------------------------------
# Pure rules
# ---------------------------------------------------------------------------


def is_premium_active(
    is_premium: bool,
    expires_at: float | None,
    now: float | None = None,
) -> bool:
    """Return True when the premium flag is set and has not expired.

    A ``None`` expiry means lifetime premium.
    """
    if not is_premium:
        return False
    if expires_at is None:
        return True
    return expires_at > (time.time() if now is None else now)


def can_create_reflection_on_post(
    tier: UserTier,
    post_is_premium: bool,
    author_is_premium: bool,
) -> bool:
    """Reflection eligibility on someone else's post.

    Premium users may reflect anywhere.  Free users only on non-premium
    posts written by non-premium authors.
    """
    if tier is UserTier.PREMIUM:
        return True
    return not post_is_premium and not author_is_premium


def days_until_expiration(expires_at: float | None, now: float | None = None) -> int | None:
    """Whole days left before *expires_at* (rounded up), 0 once past, None if unbounded."""
    if expires_at is None:
        return None
    remaining = expires_at - (time.time() if now is None else now)
    if remaining <= 0:
        return 0
    return math.ceil(remaining / _SECONDS_PER_DAY)


def is_premium_expiring_soon(
    expires_at: float | None,
    within_days: int = 7,
    now: float | None = None,
) -> bool:
    days = days_until_expiration(expires_at, now)
    if days is None:
        return False
    return 0 < days <= within_days


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PremiumStatus:
    """Premium fields of a profile, with ``is_premium`` already resolved."""

    is_premium: bool
    expires_at: float | None = None
    since: float | None = None

    @classmethod
    def from_profile(cls, profile: Mapping[str, Any], now: float | None = None) -> "PremiumStatus":
        expires_at = profile.get("premium_expires_at")
        return cls(
            is_premium=is_premium_active(bool(profile.get("is_premium")), expires_at, now),
            expires_at=expires_at,
            since=profile.get("premium_since"),
        )

    @classmethod
    def inactive(cls) -> "PremiumStatus":
        return cls(is_premium=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_premium": self.is_premium,
            "expires_at": self.expires_at,
            "since": self.since,
        }


@dataclass(frozen=True)
class UserPermissions:
    """Capability bundle for one tier.  Never mutated; replaced on recompute."""

    tier: UserTier
    can_view_premium_content: bool
    can_create_premium_content: bool
    can_request_connection: bool
    requires_mandatory_moderation: bool

    @classmethod
    def for_tier(cls, tier: UserTier) -> "UserPermissions":
        return PREMIUM_PERMISSIONS if tier is UserTier.PREMIUM else FREE_PERMISSIONS

    def can_create_reflection_on_post(self, post_is_premium: bool, author_is_premium: bool) -> bool:
        return can_create_reflection_on_post(self.tier, post_is_premium, author_is_premium)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tier": self.tier.value,
            "can_view_premium_content": self.can_view_premium_content,
            "can_create_premium_content": self.can_create_premium_content,
            "can_request_connection": self.can_request_connection,
            "requires_mandatory_moderation": self.requires_mandatory_moderation,
        }


FREE_PERMISSIONS = UserPermissions(
    tier=UserTier.FREE,
    can_view_premium_content=False,
    can_create_premium_content=False,
    can_request_connection=False,
    requires_mandatory_moderation=True,
)

PREMIUM_PERMISSIONS = UserPermissions(
    tier=UserTier.PREMIUM,
    can_view_premium_content=True,
    can_create_premium_content=True,
    can_request_connection=True,
    requires_mandatory_moderation=False,
)


@dataclass(frozen=True)
class CachedPermissions:
    """What ``PermissionCache`` stores for one user."""

    permissions: UserPermissions
    premium_status: PremiumStatus


@dataclass(frozen=True)
class CheckResult:
    """Outcome of a single authorization check."""

    allowed: bool
    reason: str | None = None
    upgrade_prompt: bool = False

    @classmethod
    def allow(cls) -> "CheckResult":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str, upgrade_prompt: bool = False) -> "CheckResult":
        return cls(allowed=False, reason=reason, upgrade_prompt=upgrade_prompt)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"allowed": self.allowed}
        if self.reason is not None:
            data["reason"] = self.reason
        if self.upgrade_prompt:
            data["upgrade_prompt"] = True
        return data
