"""Unit tests — ReflectionPermissionChecker."""

from __future__ import annotations

import time
from unittest.mock import AsyncMock

import pytest

from reflect_guard.security.cache import PermissionCache
from reflect_guard.security.permissions import POST_NOT_FOUND, PERMISSION_CHECK_ERROR, PermissionService
from reflect_guard.security.reflections import (
    REFLECTION_CHECK_ERROR,
    REFLECTION_PREMIUM_AUTHOR,
    REFLECTION_PREMIUM_CONTENT,
    ReflectionPermissionChecker,
)
from reflect_guard.stores.sqlite import SQLiteAppStore


@pytest.fixture
def checker(permission_service: PermissionService, seeded_store: SQLiteAppStore) -> ReflectionPermissionChecker:
    return ReflectionPermissionChecker(permission_service, seeded_store)


@pytest.mark.unit
class TestCanCreateReflection:
    async def test_free_user_on_public_post(self, checker: ReflectionPermissionChecker) -> None:
        result = await checker.can_create_reflection("free-user", "public-post")
        assert result.allowed is True

    async def test_free_user_on_premium_content(self, checker: ReflectionPermissionChecker) -> None:
        result = await checker.can_create_reflection("free-user", "premium-post")
        assert result.allowed is False
        assert result.reason == REFLECTION_PREMIUM_CONTENT
        assert result.upgrade_prompt is True

    async def test_free_user_on_premium_author(self, checker: ReflectionPermissionChecker) -> None:
        result = await checker.can_create_reflection("free-user", "premium-author-post")
        assert result.allowed is False
        assert result.reason == REFLECTION_PREMIUM_AUTHOR
        assert result.upgrade_prompt is True

    async def test_premium_user_everywhere(self, checker: ReflectionPermissionChecker) -> None:
        for post_id in ("public-post", "premium-post", "premium-author-post", "own-premium-post"):
            assert (await checker.can_create_reflection("premium-user", post_id)).allowed

    async def test_author_on_own_premium_post(self, checker: ReflectionPermissionChecker) -> None:
        result = await checker.can_create_reflection("free-user", "own-premium-post")
        assert result.allowed is True

    async def test_expired_author_counts_as_free(
        self, checker: ReflectionPermissionChecker, seeded_store: SQLiteAppStore
    ) -> None:
        await seeded_store.create_post("expired-author-post", "expired-user")
        result = await checker.can_create_reflection("free-user", "expired-author-post")
        assert result.allowed is True

    async def test_unknown_post(self, checker: ReflectionPermissionChecker) -> None:
        result = await checker.can_create_reflection("premium-user", "missing")
        assert result.allowed is False
        assert result.reason == POST_NOT_FOUND

    async def test_store_error_fails_closed(self, permission_cache: PermissionCache) -> None:
        store = AsyncMock()
        store.get_profile.return_value = {"is_premium": True, "premium_expires_at": None}
        store.get_post_with_author.side_effect = RuntimeError("timeout")
        service = PermissionService(store, store, permission_cache)
        checker = ReflectionPermissionChecker(service, store)

        result = await checker.can_create_reflection("u-1", "p-1")
        assert result.allowed is False
        assert result.reason == REFLECTION_CHECK_ERROR

    async def test_author_expiry_is_evaluated(self, permission_cache: PermissionCache) -> None:
        store = AsyncMock()
        store.get_profile.return_value = {"is_premium": False}
        store.get_post_with_author.return_value = {
            "id": "p-1",
            "author_id": "author",
            "is_premium_content": False,
            "author_is_premium": True,
            "author_premium_expires_at": time.time() + 3600,
        }
        checker = ReflectionPermissionChecker(PermissionService(store, store, permission_cache), store)
        result = await checker.can_create_reflection("u-1", "p-1")
        assert result.reason == REFLECTION_PREMIUM_AUTHOR


@pytest.mark.unit
class TestRestrictionInfo:
    async def test_premium_content(self, checker: ReflectionPermissionChecker) -> None:
        info = await checker.get_reflection_restriction_info("free-user", "premium-post")
        assert info.can_reflect is False
        assert info.post_is_premium is True
        assert info.author_is_premium is True
        assert info.user_is_premium is False
        assert info.restriction_reason == "Conteúdo Premium"
        assert "conteúdo Premium" in info.upgrade_message

    async def test_premium_author(self, checker: ReflectionPermissionChecker) -> None:
        info = await checker.get_reflection_restriction_info("free-user", "premium-author-post")
        assert info.can_reflect is False
        assert info.restriction_reason == "Autor Premium"
        assert "utilizadores Premium" in info.upgrade_message

    async def test_allowed(self, checker: ReflectionPermissionChecker) -> None:
        info = await checker.get_reflection_restriction_info("premium-user", "premium-post")
        assert info.can_reflect is True
        assert info.user_is_premium is True
        assert info.restriction_reason is None
        assert info.upgrade_message is None

    async def test_author_self_exception(self, checker: ReflectionPermissionChecker) -> None:
        info = await checker.get_reflection_restriction_info("free-user", "own-premium-post")
        assert info.can_reflect is True

    async def test_unknown_post(self, checker: ReflectionPermissionChecker) -> None:
        info = await checker.get_reflection_restriction_info("free-user", "missing")
        assert info.to_dict()["can_reflect"] is False
        assert info.restriction_reason == POST_NOT_FOUND

    async def test_store_error(self, permission_cache: PermissionCache) -> None:
        store = AsyncMock()
        store.get_post_with_author.side_effect = RuntimeError("boom")
        store.get_profile.side_effect = RuntimeError("boom")
        checker = ReflectionPermissionChecker(PermissionService(store, store, permission_cache), store)
        info = await checker.get_reflection_restriction_info("u", "p")
        assert info.can_reflect is False
        assert info.restriction_reason == PERMISSION_CHECK_ERROR
