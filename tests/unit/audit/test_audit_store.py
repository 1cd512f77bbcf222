"""Unit tests — AuditStore (audit rows, alerts, usage metrics)."""

from __future__ import annotations

from pathlib import Path

import pytest

from reflect_guard.audit.models import (
    AlertSeverity,
    AlertType,
    AuditLogEntry,
    SecurityAlert,
    UsageMetrics,
    empty_usage_actions,
)
from reflect_guard.audit.store import AuditStore
from reflect_guard.exceptions import AuditWriteError


def _entry(ts: float, **kwargs) -> AuditLogEntry:
    defaults = dict(user_id="u-1", action="post_access", resource="post", allowed=False, timestamp=ts)
    defaults.update(kwargs)
    return AuditLogEntry(**defaults)


def _alert(ts: float, **kwargs) -> SecurityAlert:
    defaults = dict(
        user_id="u-1",
        alert_type=AlertType.SUSPICIOUS_ACTIVITY,
        severity=AlertSeverity.MEDIUM,
        description="d",
        timestamp=ts,
    )
    defaults.update(kwargs)
    return SecurityAlert(**defaults)


@pytest.mark.unit
class TestAuditLogs:
    async def test_append_assigns_id(self, audit_store: AuditStore) -> None:
        entry = _entry(1.0, metadata={"request_id": "r-1"})
        row_id = await audit_store.append_log(entry)
        assert row_id == entry.id
        assert row_id > 0

    async def test_round_trip(self, audit_store: AuditStore) -> None:
        await audit_store.append_log(
            _entry(
                5.0,
                resource_id="p-1",
                reason="Acesso negado",
                metadata={"k": "v"},
                user_agent="ua",
                ip="1.2.3.4",
                session_id="s-1",
            )
        )
        [stored] = await audit_store.query_logs()
        assert stored.resource_id == "p-1"
        assert stored.reason == "Acesso negado"
        assert stored.metadata == {"k": "v"}
        assert stored.ip == "1.2.3.4"
        assert stored.timestamp == 5.0

    async def test_anonymous_entry(self, audit_store: AuditStore) -> None:
        await audit_store.append_log(_entry(1.0, user_id=None))
        [stored] = await audit_store.query_logs()
        assert stored.user_id is None

    async def test_query_newest_first_and_filters(self, audit_store: AuditStore) -> None:
        await audit_store.append_log(_entry(1.0, allowed=True))
        await audit_store.append_log(_entry(2.0, user_id="u-2"))
        await audit_store.append_log(_entry(3.0, resource="connection"))

        assert [e.timestamp for e in await audit_store.query_logs()] == [3.0, 2.0, 1.0]
        assert [e.timestamp for e in await audit_store.query_logs(user_id="u-1")] == [3.0, 1.0]
        assert [e.timestamp for e in await audit_store.query_logs(allowed=True)] == [1.0]
        assert [e.timestamp for e in await audit_store.query_logs(resource="connection")] == [3.0]
        assert [e.timestamp for e in await audit_store.query_logs(since=2.0, until=2.5)] == [2.0]
        assert len(await audit_store.query_logs(limit=2)) == 2

    async def test_count_denials(self, audit_store: AuditStore) -> None:
        await audit_store.append_log(_entry(1.0, reason="Conteúdo premium requer subscrição"))
        await audit_store.append_log(_entry(10.0, reason="Conteúdo premium requer subscrição"))
        await audit_store.append_log(_entry(11.0, reason="Apenas utilizadores Premium podem"))
        await audit_store.append_log(_entry(12.0, allowed=True))
        await audit_store.append_log(_entry(13.0, resource="connection", reason="premium"))

        assert await audit_store.count_denials("u-1", since=0.0) == 4
        assert await audit_store.count_denials("u-1", since=5.0) == 3
        assert (
            await audit_store.count_denials("u-1", since=5.0, resource="post", reason_contains="premium")
            == 2
        )

    async def test_recent_denied_actions(self, audit_store: AuditStore) -> None:
        await audit_store.append_log(_entry(1.0, action="a"))
        await audit_store.append_log(_entry(2.0, action="b"))
        await audit_store.append_log(_entry(3.0, action="c", allowed=True))
        assert await audit_store.recent_denied_actions("u-1", since=0.0) == ["b", "a"]

    async def test_write_without_init_raises(self, tmp_path: Path) -> None:
        store = AuditStore(tmp_path / "never.db")
        with pytest.raises(AuditWriteError):
            await store.append_log(_entry(1.0))


@pytest.mark.unit
class TestAlerts:
    async def test_append_and_query(self, audit_store: AuditStore) -> None:
        alert = _alert(1.0, metadata={"failure_count": 10})
        await audit_store.append_alert(alert)
        [stored] = await audit_store.query_alerts()
        assert stored.id == alert.id
        assert stored.alert_type is AlertType.SUSPICIOUS_ACTIVITY
        assert stored.metadata == {"failure_count": 10}
        assert stored.resolved is False

    async def test_resolve_once(self, audit_store: AuditStore) -> None:
        alert = _alert(1.0)
        await audit_store.append_alert(alert)
        assert await audit_store.resolve_alert(alert.id, 50.0) is True
        assert await audit_store.resolve_alert(alert.id, 60.0) is False

        [stored] = await audit_store.query_alerts()
        assert stored.resolved is True
        assert stored.resolved_at == 50.0

    async def test_resolve_unknown(self, audit_store: AuditStore) -> None:
        assert await audit_store.resolve_alert(999, 1.0) is False

    async def test_filters(self, audit_store: AuditStore) -> None:
        await audit_store.append_alert(_alert(1.0))
        await audit_store.append_alert(
            _alert(2.0, alert_type=AlertType.PERMISSION_BYPASS_ATTEMPT, severity=AlertSeverity.HIGH)
        )
        await audit_store.append_alert(_alert(3.0, user_id="u-2"))

        assert [a.timestamp for a in await audit_store.query_alerts()] == [3.0, 2.0, 1.0]
        assert [a.timestamp for a in await audit_store.query_alerts(severity="high")] == [2.0]
        assert [
            a.timestamp for a in await audit_store.query_alerts(alert_type="suspicious_activity")
        ] == [3.0, 1.0]
        assert [a.timestamp for a in await audit_store.query_alerts(user_id="u-2")] == [3.0]
        assert await audit_store.query_alerts(resolved=True) == []


@pytest.mark.unit
class TestUsage:
    async def test_insert_get_update(self, audit_store: AuditStore) -> None:
        actions = empty_usage_actions()
        actions["posts_viewed"] = 1
        await audit_store.insert_usage(
            UsageMetrics(user_id="u-1", user_type="free", date="2024-01-01", actions=actions), 1.0
        )
        stored = await audit_store.get_usage("u-1", "2024-01-01")
        assert stored is not None
        assert stored.actions["posts_viewed"] == 1

        await audit_store.update_usage(stored.id, {**stored.actions, "posts_viewed": 5}, 2.0)
        assert (await audit_store.get_usage("u-1", "2024-01-01")).actions["posts_viewed"] == 5

    async def test_get_missing(self, audit_store: AuditStore) -> None:
        assert await audit_store.get_usage("u-1", "2024-01-01") is None

    async def test_query_date_range(self, audit_store: AuditStore) -> None:
        for date in ("2024-01-01", "2024-01-02", "2024-01-03"):
            await audit_store.insert_usage(
                UsageMetrics(user_id="u-1", user_type="free", date=date, actions=empty_usage_actions()), 1.0
            )
        rows = await audit_store.query_usage(user_id="u-1", date_from="2024-01-02")
        assert [r.date for r in rows] == ["2024-01-03", "2024-01-02"]
        rows = await audit_store.query_usage(date_to="2024-01-01")
        assert [r.date for r in rows] == ["2024-01-01"]
