"""Audit layer — Bounded in-memory fallback for audit entries.

Holds entries whose durable write failed.  Fixed capacity; once full, each
append evicts the oldest entry.
"""

from __future__ import annotations

from collections import deque

from reflect_guard.audit.models import AuditLogEntry


class AuditFallbackBuffer:
    def __init__(self, capacity: int = 1000) -> None:
        self._entries: deque[AuditLogEntry] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    def append(self, entry: AuditLogEntry) -> None:
        self._entries.append(entry)

    def entries(
        self,
        *,
        user_id: str | None = None,
        action: str | None = None,
        resource: str | None = None,
        allowed: bool | None = None,
        since: float | None = None,
        limit: int | None = None,
    ) -> list[AuditLogEntry]:
        """Matching entries, newest first."""
        result = [
            e
            for e in reversed(self._entries)
            if (user_id is None or e.user_id == user_id)
            and (action is None or e.action == action)
            and (resource is None or e.resource == resource)
            and (allowed is None or e.allowed == allowed)
            and (since is None or e.timestamp >= since)
        ]
        return result[:limit] if limit is not None else result

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
