"""Stores layer — Contracts for the collaborators the permission engine reads.

The engine never talks to a database directly.  It depends on three small
interfaces so that the SQLite reference backend can be swapped for any
hosted profile/post/auth service:

  - ``ProfileStore`` — by-id profile lookup with premium fields
  - ``PostStore``    — by-id post lookup, optionally joined with the author
  - ``AuthProvider`` — resolves a session token to the current user

Row shapes are plain dicts using the column names below.

Profile::

    {"id", "email", "is_premium", "premium_expires_at", "premium_since"}

Post::

    {"id", "author_id", "is_premium_content", "created_at"}

Post with author (``get_post_with_author``) adds::

    {"author_is_premium", "author_premium_expires_at"}
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str | None = None


class ProfileStore(ABC):
    @abstractmethod
    async def get_profile(self, user_id: str) -> dict[str, Any]:
        """Return the profile row. Raises ``ProfileNotFoundError`` when absent."""

    @abstractmethod
    async def get_profiles(self, user_ids: Iterable[str]) -> dict[str, dict[str, Any]]:
        """Return the existing rows for *user_ids*, keyed by id."""


class PostStore(ABC):
    @abstractmethod
    async def get_post(self, post_id: str) -> dict[str, Any]:
        """Return the post row. Raises ``PostNotFoundError`` when absent."""

    @abstractmethod
    async def get_post_with_author(self, post_id: str) -> dict[str, Any]:
        """Return the post row joined with its author's premium fields."""

    @abstractmethod
    async def get_posts(self, post_ids: Iterable[str]) -> list[dict[str, Any]]:
        """Return the existing rows for *post_ids* in one query."""


class AuthProvider(ABC):
    @abstractmethod
    async def get_current_user(self, token: str | None) -> AuthUser | None:
        """Resolve a session token. Returns None for a missing or invalid session."""
