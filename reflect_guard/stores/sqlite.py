"""Stores layer — SQLite reference backend for profiles, posts and sessions.

Implements ``ProfileStore``, ``PostStore`` and ``AuthProvider`` on a single
aiosqlite connection.  Timestamps are Unix epoch floats; a NULL
``premium_expires_at`` means lifetime premium.

Usage::

    store = SQLiteAppStore(Path("~/.reflect-guard/app.db"))
    await store.init()
    await store.upsert_profile("u-1", is_premium=True, premium_expires_at=None)
    profile = await store.get_profile("u-1")
    await store.close()
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Iterable

import aiosqlite

from reflect_guard.exceptions import PostNotFoundError, ProfileNotFoundError, StoreError
from reflect_guard.logging import get_logger
from reflect_guard.stores.protocols import AuthProvider, AuthUser, PostStore, ProfileStore

log = get_logger(__name__)

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS profiles (
    id                  TEXT PRIMARY KEY,
    email               TEXT,
    is_premium          INTEGER NOT NULL DEFAULT 0,
    premium_expires_at  REAL,
    premium_since       REAL
);

CREATE TABLE IF NOT EXISTS posts (
    id                  TEXT PRIMARY KEY,
    author_id           TEXT NOT NULL REFERENCES profiles (id),
    is_premium_content  INTEGER NOT NULL DEFAULT 0,
    created_at          REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS sessions (
    token       TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL REFERENCES profiles (id),
    expires_at  REAL
);

CREATE INDEX IF NOT EXISTS idx_posts_author ON posts (author_id);
"""


class SQLiteAppStore(ProfileStore, PostStore, AuthProvider):
    """Async SQLite store backing the three collaborator contracts."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = await aiosqlite.connect(str(self._db_path))
            self._conn.row_factory = aiosqlite.Row
            await self._conn.executescript(_SCHEMA_SQL)
            await self._conn.commit()
        except Exception as exc:
            raise StoreError(f"SQLiteAppStore init failed: {exc}") from exc
        log.debug("app_store_init", path=str(self._db_path))

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    # ------------------------------------------------------------------
    # Write operations (seeding, admin tooling, tests)
    # ------------------------------------------------------------------

    async def upsert_profile(
        self,
        user_id: str,
        *,
        email: str | None = None,
        is_premium: bool = False,
        premium_expires_at: float | None = None,
        premium_since: float | None = None,
    ) -> None:
        assert self._conn is not None
        await self._conn.execute(
            """INSERT OR REPLACE INTO profiles
               (id, email, is_premium, premium_expires_at, premium_since)
               VALUES (?, ?, ?, ?, ?)""",
            (user_id, email, int(is_premium), premium_expires_at, premium_since),
        )
        await self._conn.commit()

    async def create_post(
        self,
        post_id: str,
        author_id: str,
        *,
        is_premium_content: bool = False,
        created_at: float | None = None,
    ) -> None:
        assert self._conn is not None
        await self._conn.execute(
            """INSERT OR REPLACE INTO posts (id, author_id, is_premium_content, created_at)
               VALUES (?, ?, ?, ?)""",
            (post_id, author_id, int(is_premium_content), created_at or time.time()),
        )
        await self._conn.commit()

    async def create_session(
        self, token: str, user_id: str, expires_at: float | None = None
    ) -> None:
        assert self._conn is not None
        await self._conn.execute(
            "INSERT OR REPLACE INTO sessions (token, user_id, expires_at) VALUES (?, ?, ?)",
            (token, user_id, expires_at),
        )
        await self._conn.commit()

    # ------------------------------------------------------------------
    # ProfileStore
    # ------------------------------------------------------------------

    async def get_profile(self, user_id: str) -> dict[str, Any]:
        assert self._conn is not None
        async with self._conn.execute(
            "SELECT * FROM profiles WHERE id = ?", (user_id,)
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            raise ProfileNotFoundError(user_id)
        return self._row_to_profile(row)

    async def get_profiles(self, user_ids: Iterable[str]) -> dict[str, dict[str, Any]]:
        assert self._conn is not None
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return {}
        placeholders = ",".join("?" * len(ids))
        async with self._conn.execute(
            f"SELECT * FROM profiles WHERE id IN ({placeholders})", ids
        ) as cursor:
            rows = await cursor.fetchall()
        return {row["id"]: self._row_to_profile(row) for row in rows}

    # ------------------------------------------------------------------
    # PostStore
    # ------------------------------------------------------------------

    async def get_post(self, post_id: str) -> dict[str, Any]:
        assert self._conn is not None
        async with self._conn.execute(
            "SELECT * FROM posts WHERE id = ?", (post_id,)
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            raise PostNotFoundError(post_id)
        return self._row_to_post(row)

    async def get_post_with_author(self, post_id: str) -> dict[str, Any]:
        assert self._conn is not None
        async with self._conn.execute(
            """SELECT p.*, a.is_premium AS author_is_premium,
                      a.premium_expires_at AS author_premium_expires_at
               FROM posts p LEFT JOIN profiles a ON a.id = p.author_id
               WHERE p.id = ?""",
            (post_id,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            raise PostNotFoundError(post_id)
        post = self._row_to_post(row)
        post["author_is_premium"] = bool(row["author_is_premium"])
        post["author_premium_expires_at"] = row["author_premium_expires_at"]
        return post

    async def get_posts(self, post_ids: Iterable[str]) -> list[dict[str, Any]]:
        assert self._conn is not None
        ids = list(dict.fromkeys(post_ids))
        if not ids:
            return []
        placeholders = ",".join("?" * len(ids))
        async with self._conn.execute(
            f"SELECT * FROM posts WHERE id IN ({placeholders}) ORDER BY created_at DESC", ids
        ) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_post(row) for row in rows]

    # ------------------------------------------------------------------
    # AuthProvider
    # ------------------------------------------------------------------

    async def get_current_user(self, token: str | None) -> AuthUser | None:
        if not token:
            return None
        assert self._conn is not None
        async with self._conn.execute(
            """SELECT s.user_id, s.expires_at, p.email
               FROM sessions s LEFT JOIN profiles p ON p.id = s.user_id
               WHERE s.token = ?""",
            (token,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        if row["expires_at"] is not None and row["expires_at"] <= time.time():
            log.debug("session_expired", user_id=row["user_id"])
            return None
        return AuthUser(id=row["user_id"], email=row["email"])

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_profile(row: aiosqlite.Row) -> dict[str, Any]:
        return {
            "id": row["id"],
            "email": row["email"],
            "is_premium": bool(row["is_premium"]),
            "premium_expires_at": row["premium_expires_at"],
            "premium_since": row["premium_since"],
        }

    @staticmethod
    def _row_to_post(row: aiosqlite.Row) -> dict[str, Any]:
        return {
            "id": row["id"],
            "author_id": row["author_id"],
            "is_premium_content": bool(row["is_premium_content"]),
            "created_at": row["created_at"],
        }
