"""Security layer — PermissionService.

Computes a user's permission bundle from their profile and answers the
point-in-time checks built on it:
  - ``get_user_permissions``       — cache-checked, fails open to the free bundle
  - ``check_post_access``          — fails closed
  - ``check_connection_permission``— ``respond`` for everyone, ``request`` for premium
  - ``get_user_premium_status``    — cache-checked premium projection

The service is the only reader and writer of its ``PermissionCache``.

Usage::

    service = PermissionService(profiles, posts, PermissionCache())
    perms = await service.get_user_permissions("u-1")
    result = await service.check_post_access("u-1", "p-9")
"""

from __future__ import annotations

import asyncio
from typing import Any, Iterable

from reflect_guard.exceptions import PostNotFoundError
from reflect_guard.logging import get_logger
from reflect_guard.security.cache import PermissionCache
from reflect_guard.security.models import (
    CachedPermissions,
    CheckResult,
    FREE_PERMISSIONS,
    PremiumStatus,
    UserPermissions,
    UserTier,
)
from reflect_guard.security.policies import PERMISSIVE_DEFAULT, RESTRICTIVE_DEFAULT
from reflect_guard.stores.protocols import PostStore, ProfileStore

log = get_logger(__name__)

POST_NOT_FOUND = "Post não encontrado"
PREMIUM_CONTENT_REQUIRES_SUBSCRIPTION = "Conteúdo premium requer subscrição"
POST_ACCESS_ERROR = "Erro ao verificar acesso"
CONNECTION_REQUEST_PREMIUM_ONLY = "Apenas utilizadores premium podem solicitar conexões"
ACTION_NOT_RECOGNIZED = "Ação não reconhecida"
PERMISSION_CHECK_ERROR = "Erro ao verificar permissões"


def can_view_post(viewer_id: str, viewer_is_premium: bool, post: dict[str, Any]) -> bool:
    """Shared post-visibility predicate.

    A post is visible when it is not premium, when the viewer wrote it, or
    when the viewer has an active premium subscription.
    """
    if not post.get("is_premium_content"):
        return True
    if post.get("author_id") == viewer_id:
        return True
    return viewer_is_premium


class PermissionService:
    """Permission bundle computation and point-in-time checks.

    Parameters
    ----------
    profiles:
        Source of truth for premium flags and expiry.
    posts:
        Post lookups for ``check_post_access``.
    cache:
        Per-user TTL cache; owned by this service.
    premium_status_ttl:
        TTL for entries populated by ``get_user_premium_status``.
    """

    def __init__(
        self,
        profiles: ProfileStore,
        posts: PostStore,
        cache: PermissionCache,
        *,
        premium_status_ttl: float = 600.0,
    ) -> None:
        self._profiles = profiles
        self._posts = posts
        self._cache = cache
        self._premium_status_ttl = premium_status_ttl

    # ------------------------------------------------------------------
    # Permission bundles
    # ------------------------------------------------------------------

    async def get_user_permissions(self, user_id: str) -> UserPermissions:
        """Return the user's bundle.  Never raises; failures yield the free bundle.

        Entries written with the longer premium-status TTL are only trusted
        for the cache's default TTL here.
        """
        cached = self._cache.get(user_id, max_age=self._cache.default_ttl)
        if cached is not None:
            return cached.permissions

        try:
            entry = await self._load(user_id)
        except Exception as exc:
            return PERMISSIVE_DEFAULT.recover(
                "get_user_permissions", exc, FREE_PERMISSIONS, user_id=user_id
            )

        self._cache.set(user_id, entry)
        log.debug("permission_cache_miss", user_id=user_id, tier=entry.permissions.tier.value)
        return entry.permissions

    async def get_user_premium_status(self, user_id: str) -> PremiumStatus:
        cached = self._cache.get(user_id)
        if cached is not None:
            return cached.premium_status

        try:
            entry = await self._load(user_id)
        except Exception as exc:
            return PERMISSIVE_DEFAULT.recover(
                "get_user_premium_status", exc, PremiumStatus.inactive(), user_id=user_id
            )

        self._cache.set(user_id, entry, ttl=self._premium_status_ttl)
        return entry.premium_status

    async def _load(self, user_id: str) -> CachedPermissions:
        profile = await self._profiles.get_profile(user_id)
        status = PremiumStatus.from_profile(profile)
        tier = UserTier.PREMIUM if status.is_premium else UserTier.FREE
        return CachedPermissions(
            permissions=UserPermissions.for_tier(tier),
            premium_status=status,
        )

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    async def check_post_access(self, user_id: str, post_id: str) -> CheckResult:
        try:
            permissions, post = await asyncio.gather(
                self.get_user_permissions(user_id),
                self._posts.get_post(post_id),
            )
        except PostNotFoundError:
            return CheckResult.deny(POST_NOT_FOUND)
        except Exception as exc:
            return RESTRICTIVE_DEFAULT.recover(
                "check_post_access",
                exc,
                CheckResult.deny(POST_ACCESS_ERROR),
                user_id=user_id,
                post_id=post_id,
            )

        if can_view_post(user_id, permissions.can_view_premium_content, post):
            return CheckResult.allow()
        return CheckResult.deny(PREMIUM_CONTENT_REQUIRES_SUBSCRIPTION, upgrade_prompt=True)

    async def check_connection_permission(self, user_id: str, action: str) -> CheckResult:
        if action == "respond":
            return CheckResult.allow()
        if action != "request":
            return CheckResult.deny(ACTION_NOT_RECOGNIZED)

        try:
            permissions = await self.get_user_permissions(user_id)
        except Exception as exc:
            return RESTRICTIVE_DEFAULT.recover(
                "check_connection_permission",
                exc,
                CheckResult.deny(PERMISSION_CHECK_ERROR),
                user_id=user_id,
                action=action,
            )

        if permissions.can_request_connection:
            return CheckResult.allow()
        return CheckResult.deny(CONNECTION_REQUEST_PREMIUM_ONLY, upgrade_prompt=True)

    # ------------------------------------------------------------------
    # Cache management
    # ------------------------------------------------------------------

    def invalidate_user_cache(self, user_id: str) -> None:
        self._cache.invalidate(user_id)
        log.debug("permission_cache_invalidated", user_id=user_id)

    def invalidate_multiple_users_cache(self, user_ids: Iterable[str]) -> None:
        self._cache.invalidate_multiple(user_ids)

    def clear_permission_cache(self) -> None:
        self._cache.clear()

    def get_cache_stats(self) -> dict[str, Any]:
        return self._cache.get_stats()
