"""Reflect Guard — Exception hierarchy.

All exceptions raised by the service inherit from ReflectGuardError so that
callers can catch the full family with a single except clause when needed.

Hierarchy:
    ReflectGuardError
    ├── StoreError
    │   ├── ProfileNotFoundError
    │   └── PostNotFoundError
    ├── AuditError
    │   └── AuditWriteError
    └── ModerationError
        └── InvalidRuleError
"""

from __future__ import annotations

from typing import Any


class ReflectGuardError(Exception):
    """Base exception for all Reflect Guard errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context})"


# ---------------------------------------------------------------------------
# Store layer
# ---------------------------------------------------------------------------


class StoreError(ReflectGuardError):
    """A profile, post or session lookup failed."""


class ProfileNotFoundError(StoreError):
    """No profile row exists for the requested user."""

    def __init__(self, user_id: str) -> None:
        super().__init__(
            f"Profile '{user_id}' not found",
            context={"user_id": user_id},
        )
        self.user_id = user_id


class PostNotFoundError(StoreError):
    """No post row exists for the requested id."""

    def __init__(self, post_id: str) -> None:
        super().__init__(
            f"Post '{post_id}' not found",
            context={"post_id": post_id},
        )
        self.post_id = post_id


# ---------------------------------------------------------------------------
# Audit layer
# ---------------------------------------------------------------------------


class AuditError(ReflectGuardError):
    """Base for audit trail errors."""


class AuditWriteError(AuditError):
    """An audit row or security alert could not be persisted."""

    def __init__(self, table: str, reason: str) -> None:
        super().__init__(
            f"Failed to write to '{table}': {reason}",
            context={"table": table, "reason": reason},
        )
        self.table = table
        self.reason = reason


# ---------------------------------------------------------------------------
# Moderation layer
# ---------------------------------------------------------------------------


class ModerationError(ReflectGuardError):
    """Base for moderation errors."""


class InvalidRuleError(ModerationError):
    """A custom moderation rule has an invalid regular expression."""

    def __init__(self, rule_name: str, pattern: str, reason: str) -> None:
        super().__init__(
            f"Invalid pattern in rule '{rule_name}': {reason}",
            context={"rule": rule_name, "pattern": pattern, "reason": reason},
        )
        self.rule_name = rule_name
        self.pattern = pattern
