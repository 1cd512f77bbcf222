"""Security layer — Permission bundles, TTL cache, post / reflection / connection checks."""

from reflect_guard.security.cache import PermissionCache
from reflect_guard.security.connections import (
    ConnectionAction,
    ConnectionActionType,
    ConnectionPermissionManager,
    ConnectionStatus,
)
from reflect_guard.security.models import (
    CachedPermissions,
    CheckResult,
    FREE_PERMISSIONS,
    PREMIUM_PERMISSIONS,
    PremiumStatus,
    UserPermissions,
    UserTier,
    can_create_reflection_on_post,
    days_until_expiration,
    is_premium_active,
    is_premium_expiring_soon,
)
from reflect_guard.security.permissions import PermissionService, can_view_post
from reflect_guard.security.policies import PERMISSIVE_DEFAULT, RESTRICTIVE_DEFAULT, FallbackPolicy
from reflect_guard.security.post_filter import PostFilterService
from reflect_guard.security.reflections import ReflectionPermissionChecker, ReflectionRestrictionInfo
from reflect_guard.security.subscriptions import SubscriptionCacheHandler

__all__ = [
    "CachedPermissions",
    "CheckResult",
    "ConnectionAction",
    "ConnectionActionType",
    "ConnectionPermissionManager",
    "ConnectionStatus",
    "FREE_PERMISSIONS",
    "FallbackPolicy",
    "PERMISSIVE_DEFAULT",
    "PREMIUM_PERMISSIONS",
    "PermissionCache",
    "PermissionService",
    "PostFilterService",
    "PremiumStatus",
    "RESTRICTIVE_DEFAULT",
    "ReflectionPermissionChecker",
    "ReflectionRestrictionInfo",
    "SubscriptionCacheHandler",
    "UserPermissions",
    "UserTier",
    "can_create_reflection_on_post",
    "can_view_post",
    "days_until_expiration",
    "is_premium_active",
    "is_premium_expiring_soon",
]
