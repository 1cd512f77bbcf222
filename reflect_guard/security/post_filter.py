"""Security layer — PostFilterService.

List-scale variants of the post-access check.  Every method applies the same
``can_view_post`` predicate used by ``PermissionService.check_post_access``,
with the viewer's premium flag resolved once per call rather than per post.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from reflect_guard.logging import get_logger
from reflect_guard.security.models import PremiumStatus
from reflect_guard.security.permissions import PermissionService, can_view_post
from reflect_guard.security.policies import RESTRICTIVE_DEFAULT
from reflect_guard.stores.protocols import PostStore, ProfileStore

log = get_logger(__name__)


class PostFilterService:
    def __init__(
        self, permissions: PermissionService, posts: PostStore, profiles: ProfileStore
    ) -> None:
        self._permissions = permissions
        self._posts = posts
        self._profiles = profiles

    async def filter_posts_for_user(
        self, posts: list[dict[str, Any]], user_id: str
    ) -> list[dict[str, Any]]:
        """Drop the posts *user_id* may not see.  On error only public posts survive."""
        try:
            permissions = await self._permissions.get_user_permissions(user_id)
            viewer_is_premium = permissions.can_view_premium_content
            return [p for p in posts if can_view_post(user_id, viewer_is_premium, p)]
        except Exception as exc:
            return RESTRICTIVE_DEFAULT.recover(
                "filter_posts_for_user",
                exc,
                [p for p in posts if not p.get("is_premium_content")],
                user_id=user_id,
            )

    async def batch_check_post_permissions(
        self, user_id: str, post_ids: Iterable[str]
    ) -> dict[str, bool]:
        """Map each post id to its visibility.  Unknown posts map to False."""
        ids = list(post_ids)
        try:
            permissions = await self._permissions.get_user_permissions(user_id)
            posts = await self._posts.get_posts(ids)
        except Exception as exc:
            return RESTRICTIVE_DEFAULT.recover(
                "batch_check_post_permissions",
                exc,
                {post_id: False for post_id in ids},
                user_id=user_id,
            )

        visible = {
            post["id"]: can_view_post(user_id, permissions.can_view_premium_content, post)
            for post in posts
        }
        return {post_id: visible.get(post_id, False) for post_id in ids}

    async def batch_check_users_post_permissions(
        self, checks: Mapping[str, Iterable[str]]
    ) -> dict[str, set[str]]:
        """Resolve visible posts for several viewers at once.

        *checks* maps viewer id to candidate post ids.  Profiles and posts are
        fetched in one batch each, bypassing the permission cache.  Viewers
        without a profile, and every viewer on error, get an empty set.
        """
        wanted = {user_id: list(post_ids) for user_id, post_ids in checks.items()}
        try:
            profiles = await self._profiles.get_profiles(list(wanted))
            posts = await self._posts.get_posts(pid for ids in wanted.values() for pid in ids)
        except Exception as exc:
            return RESTRICTIVE_DEFAULT.recover(
                "batch_check_users_post_permissions",
                exc,
                {user_id: set() for user_id in wanted},
                users=len(wanted),
            )

        by_id = {post["id"]: post for post in posts}
        results: dict[str, set[str]] = {}
        for user_id, post_ids in wanted.items():
            profile = profiles.get(user_id)
            if profile is None:
                results[user_id] = set()
                continue
            is_premium = PremiumStatus.from_profile(profile).is_premium
            results[user_id] = {
                pid
                for pid in post_ids
                if pid in by_id and can_view_post(user_id, is_premium, by_id[pid])
            }
        return results

    async def is_post_visible_to_user(self, post_id: str, user_id: str) -> bool:
        result = await self._permissions.check_post_access(user_id, post_id)
        return result.allowed

    async def get_post_stats(self, user_id: str, post_ids: Iterable[str]) -> dict[str, int]:
        """Count premium, public and visible posts among *post_ids*."""
        try:
            permissions = await self._permissions.get_user_permissions(user_id)
            posts = await self._posts.get_posts(post_ids)
        except Exception as exc:
            return RESTRICTIVE_DEFAULT.recover(
                "get_post_stats",
                exc,
                {"total_posts": 0, "premium_posts": 0, "public_posts": 0, "visible_to_user": 0},
                user_id=user_id,
            )

        premium = sum(1 for p in posts if p.get("is_premium_content"))
        visible = sum(
            1 for p in posts if can_view_post(user_id, permissions.can_view_premium_content, p)
        )
        return {
            "total_posts": len(posts),
            "premium_posts": premium,
            "public_posts": len(posts) - premium,
            "visible_to_user": visible,
        }
