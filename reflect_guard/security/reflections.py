"""Security layer — ReflectionPermissionChecker.

Decides whether a user may create a reflection on a post.  Unlike the plain
post-access check this also needs the post author's premium status, which
is fetched together with the post in one store call.

Rules, in order:
  1. The post author may always reflect on their own post.
  2. Otherwise ``can_create_reflection_on_post(tier, post_is_premium,
     author_is_premium)`` decides.
  3. A denial names premium content first, premium author second; both
     carry ``upgrade_prompt=True``.
  4. Missing post and any store failure deny (restrictive default).
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from reflect_guard.exceptions import PostNotFoundError
from reflect_guard.logging import get_logger
from reflect_guard.security.models import CheckResult, is_premium_active
from reflect_guard.security.permissions import POST_NOT_FOUND, PERMISSION_CHECK_ERROR, PermissionService
from reflect_guard.security.policies import RESTRICTIVE_DEFAULT
from reflect_guard.stores.protocols import PostStore

log = get_logger(__name__)

REFLECTION_DENIED = "Não é possível criar reflexão neste post"
REFLECTION_PREMIUM_CONTENT = "Apenas utilizadores Premium podem criar reflexões em conteúdo Premium"
REFLECTION_PREMIUM_AUTHOR = (
    "Apenas utilizadores Premium podem criar reflexões em posts de utilizadores Premium"
)
REFLECTION_CHECK_ERROR = "Erro ao verificar permissões de reflexão"


@dataclass(frozen=True)
class ReflectionRestrictionInfo:
    """Read-only explanation of reflection eligibility, for UI messaging."""

    can_reflect: bool
    post_is_premium: bool = False
    author_is_premium: bool = False
    user_is_premium: bool = False
    restriction_reason: str | None = None
    upgrade_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "can_reflect": self.can_reflect,
            "post_is_premium": self.post_is_premium,
            "author_is_premium": self.author_is_premium,
            "user_is_premium": self.user_is_premium,
            "restriction_reason": self.restriction_reason,
            "upgrade_message": self.upgrade_message,
        }


def _author_is_premium(post: dict[str, Any]) -> bool:
    return is_premium_active(
        bool(post.get("author_is_premium")),
        post.get("author_premium_expires_at"),
    )


class ReflectionPermissionChecker:
    def __init__(self, permissions: PermissionService, posts: PostStore) -> None:
        self._permissions = permissions
        self._posts = posts

    async def can_create_reflection(self, user_id: str, post_id: str) -> CheckResult:
        try:
            user_permissions, post = await asyncio.gather(
                self._permissions.get_user_permissions(user_id),
                self._posts.get_post_with_author(post_id),
            )
        except PostNotFoundError:
            return CheckResult.deny(POST_NOT_FOUND)
        except Exception as exc:
            return RESTRICTIVE_DEFAULT.recover(
                "can_create_reflection",
                exc,
                CheckResult.deny(REFLECTION_CHECK_ERROR),
                user_id=user_id,
                post_id=post_id,
            )

        if post["author_id"] == user_id:
            return CheckResult.allow()

        post_is_premium = bool(post.get("is_premium_content"))
        author_is_premium = _author_is_premium(post)

        if user_permissions.can_create_reflection_on_post(post_is_premium, author_is_premium):
            return CheckResult.allow()

        if post_is_premium:
            return CheckResult.deny(REFLECTION_PREMIUM_CONTENT, upgrade_prompt=True)
        if author_is_premium:
            return CheckResult.deny(REFLECTION_PREMIUM_AUTHOR, upgrade_prompt=True)
        return CheckResult.deny(REFLECTION_DENIED)

    async def get_reflection_restriction_info(
        self, user_id: str, post_id: str
    ) -> ReflectionRestrictionInfo:
        try:
            user_permissions, post = await asyncio.gather(
                self._permissions.get_user_permissions(user_id),
                self._posts.get_post_with_author(post_id),
            )
        except PostNotFoundError:
            return ReflectionRestrictionInfo(can_reflect=False, restriction_reason=POST_NOT_FOUND)
        except Exception as exc:
            return RESTRICTIVE_DEFAULT.recover(
                "get_reflection_restriction_info",
                exc,
                ReflectionRestrictionInfo(can_reflect=False, restriction_reason=PERMISSION_CHECK_ERROR),
                user_id=user_id,
                post_id=post_id,
            )

        post_is_premium = bool(post.get("is_premium_content"))
        author_is_premium = _author_is_premium(post)
        can_reflect = post["author_id"] == user_id or user_permissions.can_create_reflection_on_post(
            post_is_premium, author_is_premium
        )

        restriction_reason: str | None = None
        upgrade_message: str | None = None
        if not can_reflect:
            if post_is_premium:
                restriction_reason = "Conteúdo Premium"
                upgrade_message = "Faça upgrade para Premium para criar reflexões em conteúdo Premium"
            elif author_is_premium:
                restriction_reason = "Autor Premium"
                upgrade_message = (
                    "Faça upgrade para Premium para criar reflexões em posts de utilizadores Premium"
                )

        return ReflectionRestrictionInfo(
            can_reflect=can_reflect,
            post_is_premium=post_is_premium,
            author_is_premium=author_is_premium,
            user_is_premium=user_permissions.can_view_premium_content,
            restriction_reason=restriction_reason,
            upgrade_message=upgrade_message,
        )
