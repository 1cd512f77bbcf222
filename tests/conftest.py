"""Shared pytest fixtures for the reflect-guard test suite."""

from __future__ import annotations

import time
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio

from reflect_guard.audit.store import AuditStore
from reflect_guard.config import Settings, override_settings
from reflect_guard.security.cache import PermissionCache
from reflect_guard.security.permissions import PermissionService
from reflect_guard.stores.sqlite import SQLiteAppStore

ONE_YEAR = 365 * 86_400


class ManualClock:
    """Callable clock advanced explicitly by tests."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    settings = Settings(
        audit={"db_path": str(tmp_path / "audit.db"), "background_writes": False},
        stores={"db_path": str(tmp_path / "app.db")},
        logging={"level": "debug", "format": "console"},
    )
    override_settings(settings)
    return settings


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def app_store(tmp_path: Path) -> AsyncGenerator[SQLiteAppStore, None]:
    store = SQLiteAppStore(tmp_path / "app.db")
    await store.init()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def audit_store(tmp_path: Path) -> AsyncGenerator[AuditStore, None]:
    store = AuditStore(tmp_path / "audit.db")
    await store.init()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def seeded_store(app_store: SQLiteAppStore) -> SQLiteAppStore:
    """Profiles: free-user, premium-user, expired-user, premium-author.

    Posts: public-post (free author), premium-post (premium author, premium
    content), premium-author-post (premium author, public content),
    own-premium-post (free-user's premium post).
    """
    now = time.time()
    await app_store.upsert_profile("free-user", email="free@example.com")
    await app_store.upsert_profile(
        "premium-user",
        email="premium@example.com",
        is_premium=True,
        premium_expires_at=now + ONE_YEAR,
        premium_since=now - 86_400,
    )
    await app_store.upsert_profile(
        "expired-user", is_premium=True, premium_expires_at=now - 60
    )
    await app_store.upsert_profile("premium-author", is_premium=True, premium_expires_at=None)
    await app_store.upsert_profile("free-author")

    await app_store.create_post("public-post", "free-author")
    await app_store.create_post("premium-post", "premium-author", is_premium_content=True)
    await app_store.create_post("premium-author-post", "premium-author")
    await app_store.create_post("own-premium-post", "free-user", is_premium_content=True)
    return app_store


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def permission_cache(clock: ManualClock) -> PermissionCache:
    return PermissionCache(default_ttl=300, sweep_interval=120, clock=clock)


@pytest.fixture
def permission_service(
    seeded_store: SQLiteAppStore, permission_cache: PermissionCache
) -> PermissionService:
    return PermissionService(seeded_store, seeded_store, permission_cache, premium_status_ttl=600)
