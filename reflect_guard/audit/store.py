"""Audit layer — SQLite-backed durable audit trail.

Three tables:
  - ``audit_logs``       — append-only, one row per decision
  - ``security_alerts``  — insert, then a single ``resolved`` update
  - ``usage_metrics``    — one row per (user, UTC day), counters as JSON

Write failures raise ``AuditWriteError``; callers decide whether to fall
back.  Reads return newest first.

Usage::

    store = AuditStore(Path("~/.reflect-guard/audit.db"))
    await store.init()
    await store.append_log(entry)
    denials = await store.count_denials("u-1", since=time.time() - 3600)
    await store.close()
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import aiosqlite

from reflect_guard.audit.models import (
    AlertSeverity,
    AlertType,
    AuditLogEntry,
    SecurityAlert,
    UsageMetrics,
)
from reflect_guard.exceptions import AuditError, AuditWriteError
from reflect_guard.logging import get_logger

log = get_logger(__name__)

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS audit_logs (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id      TEXT,
    action       TEXT NOT NULL,
    resource     TEXT NOT NULL,
    resource_id  TEXT,
    allowed      INTEGER NOT NULL,
    reason       TEXT,
    metadata     TEXT NOT NULL DEFAULT '{}',
    user_agent   TEXT,
    ip_address   TEXT,
    session_id   TEXT,
    created_at   REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_audit_user_time ON audit_logs (user_id, created_at);

CREATE TABLE IF NOT EXISTS security_alerts (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id      TEXT NOT NULL,
    alert_type   TEXT NOT NULL,
    severity     TEXT NOT NULL,
    description  TEXT NOT NULL,
    metadata     TEXT NOT NULL DEFAULT '{}',
    resolved     INTEGER NOT NULL DEFAULT 0,
    resolved_at  REAL,
    created_at   REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS usage_metrics (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id      TEXT NOT NULL,
    user_type    TEXT NOT NULL,
    date         TEXT NOT NULL,
    actions      TEXT NOT NULL,
    created_at   REAL NOT NULL,
    updated_at   REAL
);

CREATE INDEX IF NOT EXISTS idx_usage_user_date ON usage_metrics (user_id, date);
"""


class AuditStore:
    """Async SQLite store for audit rows, security alerts and usage metrics."""

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
            raise AuditError(f"AuditStore init failed: {exc}") from exc
        log.debug("audit_store_init", path=str(self._db_path))

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    # ------------------------------------------------------------------
    # Audit logs
    # ------------------------------------------------------------------

    async def append_log(self, entry: AuditLogEntry) -> int:
        try:
            assert self._conn is not None
            cursor = await self._conn.execute(
                """INSERT INTO audit_logs
                   (user_id, action, resource, resource_id, allowed, reason, metadata,
                    user_agent, ip_address, session_id, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    entry.user_id,
                    entry.action,
                    entry.resource,
                    entry.resource_id,
                    int(entry.allowed),
                    entry.reason,
                    json.dumps(entry.metadata, default=str),
                    entry.user_agent,
                    entry.ip,
                    entry.session_id,
                    entry.timestamp,
                ),
            )
            await self._conn.commit()
        except Exception as exc:
            raise AuditWriteError("audit_logs", str(exc)) from exc
        entry.id = cursor.lastrowid
        return entry.id or 0

    async def query_logs(
        self,
        *,
        user_id: str | None = None,
        action: str | None = None,
        resource: str | None = None,
        allowed: bool | None = None,
        since: float | None = None,
        until: float | None = None,
        limit: int | None = None,
    ) -> list[AuditLogEntry]:
        assert self._conn is not None
        clauses, params = self._filters(
            user_id=user_id, action=action, resource=resource, allowed=allowed
        )
        if since is not None:
            clauses.append("created_at >= ?")
            params.append(since)
        if until is not None:
            clauses.append("created_at <= ?")
            params.append(until)
        sql = "SELECT * FROM audit_logs" + self._where(clauses) + " ORDER BY created_at DESC, id DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        async with self._conn.execute(sql, params) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_entry(row) for row in rows]

    async def count_denials(
        self,
        user_id: str,
        *,
        since: float,
        resource: str | None = None,
        reason_contains: str | None = None,
    ) -> int:
        """Count denied rows for *user_id* since *since*.

        ``reason_contains`` matches case-insensitively (SQLite ``LIKE``).
        """
        assert self._conn is not None
        clauses = ["user_id = ?", "allowed = 0", "created_at >= ?"]
        params: list[Any] = [user_id, since]
        if resource is not None:
            clauses.append("resource = ?")
            params.append(resource)
        if reason_contains is not None:
            clauses.append("reason LIKE ?")
            params.append(f"%{reason_contains}%")
        async with self._conn.execute(
            "SELECT COUNT(*) FROM audit_logs" + self._where(clauses), params
        ) as cursor:
            row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def recent_denied_actions(self, user_id: str, *, since: float) -> list[str]:
        assert self._conn is not None
        async with self._conn.execute(
            """SELECT action FROM audit_logs
               WHERE user_id = ? AND allowed = 0 AND created_at >= ?
               ORDER BY created_at DESC""",
            (user_id, since),
        ) as cursor:
            rows = await cursor.fetchall()
        return [row["action"] for row in rows]

    # ------------------------------------------------------------------
    # Security alerts
    # ------------------------------------------------------------------

    async def append_alert(self, alert: SecurityAlert) -> int:
        try:
            assert self._conn is not None
            cursor = await self._conn.execute(
                """INSERT INTO security_alerts
                   (user_id, alert_type, severity, description, metadata, resolved, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    alert.user_id,
                    alert.alert_type.value,
                    alert.severity.value,
                    alert.description,
                    json.dumps(alert.metadata, default=str),
                    int(alert.resolved),
                    alert.timestamp,
                ),
            )
            await self._conn.commit()
        except Exception as exc:
            raise AuditWriteError("security_alerts", str(exc)) from exc
        alert.id = cursor.lastrowid
        return alert.id or 0

    async def resolve_alert(self, alert_id: int, resolved_at: float) -> bool:
        """Mark an unresolved alert as resolved. Returns False if nothing changed."""
        try:
            assert self._conn is not None
            cursor = await self._conn.execute(
                """UPDATE security_alerts SET resolved = 1, resolved_at = ?
                   WHERE id = ? AND resolved = 0""",
                (resolved_at, alert_id),
            )
            await self._conn.commit()
        except Exception as exc:
            raise AuditWriteError("security_alerts", str(exc)) from exc
        return cursor.rowcount > 0

    async def query_alerts(
        self,
        *,
        user_id: str | None = None,
        alert_type: str | None = None,
        severity: str | None = None,
        resolved: bool | None = None,
        since: float | None = None,
        limit: int | None = None,
    ) -> list[SecurityAlert]:
        assert self._conn is not None
        clauses, params = self._filters(
            user_id=user_id, alert_type=alert_type, severity=severity, resolved=resolved
        )
        if since is not None:
            clauses.append("created_at >= ?")
            params.append(since)
        sql = "SELECT * FROM security_alerts" + self._where(clauses) + " ORDER BY created_at DESC, id DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        async with self._conn.execute(sql, params) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_alert(row) for row in rows]

    # ------------------------------------------------------------------
    # Usage metrics
    # ------------------------------------------------------------------

    async def get_usage(self, user_id: str, date: str) -> UsageMetrics | None:
        assert self._conn is not None
        async with self._conn.execute(
            "SELECT * FROM usage_metrics WHERE user_id = ? AND date = ?", (user_id, date)
        ) as cursor:
            row = await cursor.fetchone()
        return self._row_to_usage(row) if row else None

    async def insert_usage(self, metrics: UsageMetrics, created_at: float) -> None:
        try:
            assert self._conn is not None
            await self._conn.execute(
                """INSERT INTO usage_metrics (user_id, user_type, date, actions, created_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (metrics.user_id, metrics.user_type, metrics.date, json.dumps(metrics.actions), created_at),
            )
            await self._conn.commit()
        except Exception as exc:
            raise AuditWriteError("usage_metrics", str(exc)) from exc

    async def update_usage(self, row_id: int, actions: dict[str, int], updated_at: float) -> None:
        try:
            assert self._conn is not None
            await self._conn.execute(
                "UPDATE usage_metrics SET actions = ?, updated_at = ? WHERE id = ?",
                (json.dumps(actions), updated_at, row_id),
            )
            await self._conn.commit()
        except Exception as exc:
            raise AuditWriteError("usage_metrics", str(exc)) from exc

    async def query_usage(
        self,
        *,
        user_id: str | None = None,
        user_type: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
    ) -> list[UsageMetrics]:
        assert self._conn is not None
        clauses, params = self._filters(user_id=user_id, user_type=user_type)
        if date_from is not None:
            clauses.append("date >= ?")
            params.append(date_from)
        if date_to is not None:
            clauses.append("date <= ?")
            params.append(date_to)
        sql = "SELECT * FROM usage_metrics" + self._where(clauses) + " ORDER BY date DESC"
        async with self._conn.execute(sql, params) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_usage(row) for row in rows]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _filters(**equals: Any) -> tuple[list[str], list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        for column, value in equals.items():
            if value is None:
                continue
            clauses.append(f"{column} = ?")
            params.append(int(value) if isinstance(value, bool) else value)
        return clauses, params

    @staticmethod
    def _where(clauses: list[str]) -> str:
        return " WHERE " + " AND ".join(clauses) if clauses else ""

    @staticmethod
    def _row_to_entry(row: aiosqlite.Row) -> AuditLogEntry:
        return AuditLogEntry(
            id=row["id"],
            user_id=row["user_id"],
            action=row["action"],
            resource=row["resource"],
            resource_id=row["resource_id"],
            allowed=bool(row["allowed"]),
            reason=row["reason"],
            metadata=json.loads(row["metadata"] or "{}"),
            timestamp=row["created_at"],
            user_agent=row["user_agent"],
            ip=row["ip_address"],
            session_id=row["session_id"],
        )

    @staticmethod
    def _row_to_alert(row: aiosqlite.Row) -> SecurityAlert:
        return SecurityAlert(
            id=row["id"],
            user_id=row["user_id"],
            alert_type=AlertType(row["alert_type"]),
            severity=AlertSeverity(row["severity"]),
            description=row["description"],
            metadata=json.loads(row["metadata"] or "{}"),
            timestamp=row["created_at"],
            resolved=bool(row["resolved"]),
            resolved_at=row["resolved_at"],
        )

    @staticmethod
    def _row_to_usage(row: aiosqlite.Row) -> UsageMetrics:
        return UsageMetrics(
            id=row["id"],
            user_id=row["user_id"],
            user_type=row["user_type"],
            date=row["date"],
            actions=json.loads(row["actions"]),
        )
