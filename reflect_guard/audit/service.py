"""Audit layer — AuditService.

Persists every allow/deny decision and derives security alerts from the
decision history of the same user.  Three independent rules run after each
``log_access`` over a trailing window (default one hour):

  1. ``denial_threshold`` or more denials of any kind
     -> ``suspicious_activity`` / medium
  2. the current denial's reason contains the bypass keyword
     -> ``permission_bypass_attempt`` / high
  3. the current entry is a premium-content post denial and the window holds
     ``premium_probe_threshold`` or more of them
     -> ``unusual_pattern`` / low, suggesting an upgrade prompt

One entry may raise several alerts.  Detection failures are logged and never
reach the caller; a failed durable write of the entry itself raises
``AuditWriteError`` so that callers can fall back to an in-memory buffer.

Read paths return an empty list on any store error.
"""

from __future__ import annotations

import time
from typing import Any, Callable

from reflect_guard.audit.models import (
    AlertSeverity,
    AlertType,
    AuditLogEntry,
    SecurityAlert,
    UsageAction,
    UsageMetrics,
    empty_usage_actions,
    utc_day,
)
from reflect_guard.audit.store import AuditStore
from reflect_guard.exceptions import AuditWriteError
from reflect_guard.logging import get_logger

log = get_logger(__name__)

_PREMIUM_KEYWORD = "premium"


class AuditService:
    """Durable decision log with suspicious-activity detection.

    Parameters
    ----------
    store:
        Durable backend for logs, alerts and usage metrics.
    window_seconds:
        Trailing window inspected by the detection rules.
    denial_threshold / premium_probe_threshold:
        Counts that trigger the suspicious-activity and premium-probe alerts.
    bypass_keyword:
        Case-sensitive substring that marks a denial as a bypass attempt.
    """

    def __init__(
        self,
        store: AuditStore,
        *,
        window_seconds: float = 3600.0,
        denial_threshold: int = 10,
        premium_probe_threshold: int = 5,
        bypass_keyword: str = "bypass",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._window = window_seconds
        self._denial_threshold = denial_threshold
        self._premium_probe_threshold = premium_probe_threshold
        self._bypass_keyword = bypass_keyword
        self._clock = clock

    # ------------------------------------------------------------------
    # Decision log
    # ------------------------------------------------------------------

    async def log_access(self, entry: AuditLogEntry) -> None:
        """Persist *entry*, then run detection.

        Raises :class:`AuditWriteError` only when the entry itself could not
        be stored.
        """
        await self._store.append_log(entry)
        log.debug(
            "audit_entry_logged",
            user_id=entry.user_id,
            action=entry.action,
            resource=entry.resource,
            allowed=entry.allowed,
        )
        if entry.user_id is None:
            return
        try:
            await self._check_for_suspicious_activity(entry)
        except Exception as exc:
            log.error("suspicious_activity_check_failed", user_id=entry.user_id, error=str(exc))

    async def log_permission_denial(
        self,
        user_id: str | None,
        action: str,
        resource: str,
        reason: str,
        **context: Any,
    ) -> None:
        await self.log_access(self._entry(user_id, action, resource, False, reason, context))

    async def log_successful_access(
        self,
        user_id: str | None,
        action: str,
        resource: str,
        **context: Any,
    ) -> None:
        await self.log_access(self._entry(user_id, action, resource, True, None, context))

    def _entry(
        self,
        user_id: str | None,
        action: str,
        resource: str,
        allowed: bool,
        reason: str | None,
        context: dict[str, Any],
    ) -> AuditLogEntry:
        return AuditLogEntry(
            user_id=user_id,
            action=action,
            resource=resource,
            allowed=allowed,
            reason=reason,
            resource_id=context.get("resource_id"),
            metadata=context.get("metadata") or {},
            user_agent=context.get("user_agent"),
            ip=context.get("ip"),
            session_id=context.get("session_id"),
            timestamp=self._clock(),
        )

    # ------------------------------------------------------------------
    # Usage metrics
    # ------------------------------------------------------------------

    async def track_usage_metrics(
        self,
        user_id: str,
        user_type: str,
        action: UsageAction | str,
        count: int = 1,
    ) -> None:
        """Add *count* to today's counter for *action*.

        Read-then-write, not atomic: concurrent calls for the same user and
        day can lose increments.  Metrics are approximate.
        """
        key = UsageAction(action).value
        now = self._clock()
        today = utc_day(now)
        try:
            existing = await self._store.get_usage(user_id, today)
            if existing is not None and existing.id is not None:
                actions = dict(existing.actions)
                actions[key] = actions.get(key, 0) + count
                await self._store.update_usage(existing.id, actions, now)
            else:
                actions = empty_usage_actions()
                actions[key] = count
                await self._store.insert_usage(
                    UsageMetrics(user_id=user_id, user_type=user_type, date=today, actions=actions),
                    now,
                )
        except Exception as exc:
            log.error("usage_metrics_track_failed", user_id=user_id, action=key, error=str(exc))

    # ------------------------------------------------------------------
    # Security alerts
    # ------------------------------------------------------------------

    async def create_security_alert(
        self,
        user_id: str,
        alert_type: AlertType,
        severity: AlertSeverity,
        description: str,
        metadata: dict[str, Any] | None = None,
    ) -> SecurityAlert | None:
        alert = SecurityAlert(
            user_id=user_id,
            alert_type=alert_type,
            severity=severity,
            description=description,
            metadata=metadata or {},
            timestamp=self._clock(),
        )
        try:
            await self._store.append_alert(alert)
        except AuditWriteError as exc:
            log.error("security_alert_write_failed", user_id=user_id, alert_type=alert_type.value, error=str(exc))
            return None

        if severity is AlertSeverity.CRITICAL:
            log.critical("security_alert_critical", **alert.to_dict())
        else:
            log.warning(
                "security_alert_created",
                user_id=user_id,
                alert_type=alert_type.value,
                severity=severity.value,
            )
        return alert

    async def resolve_security_alert(self, alert_id: int) -> bool:
        try:
            resolved = await self._store.resolve_alert(alert_id, self._clock())
        except AuditWriteError as exc:
            log.error("security_alert_resolve_failed", alert_id=alert_id, error=str(exc))
            return False
        if resolved:
            log.info("security_alert_resolved", alert_id=alert_id)
        return resolved

    async def _check_for_suspicious_activity(self, entry: AuditLogEntry) -> None:
        assert entry.user_id is not None
        user_id = entry.user_id
        since = self._clock() - self._window

        denials = await self._store.count_denials(user_id, since=since)
        if denials >= self._denial_threshold:
            actions = await self._store.recent_denied_actions(user_id, since=since)
            await self.create_security_alert(
                user_id,
                AlertType.SUSPICIOUS_ACTIVITY,
                AlertSeverity.MEDIUM,
                f"Utilizador {user_id} teve {denials} tentativas de acesso negadas na última hora",
                {"failure_count": denials, "window_seconds": self._window, "actions": actions},
            )

        if entry.allowed or not entry.reason:
            return

        if self._bypass_keyword in entry.reason:
            await self.create_security_alert(
                user_id,
                AlertType.PERMISSION_BYPASS_ATTEMPT,
                AlertSeverity.HIGH,
                f"Possível tentativa de bypass de permissões detectada para utilizador {user_id}",
                {"action": entry.action, "resource": entry.resource, "reason": entry.reason},
            )

        if entry.resource == "post" and _PREMIUM_KEYWORD in entry.reason.lower():
            attempts = await self._store.count_denials(
                user_id, since=since, resource="post", reason_contains=_PREMIUM_KEYWORD
            )
            if attempts >= self._premium_probe_threshold:
                await self.create_security_alert(
                    user_id,
                    AlertType.UNUSUAL_PATTERN,
                    AlertSeverity.LOW,
                    f"Utilizador gratuito {user_id} tentou acessar conteúdo premium "
                    f"{attempts} vezes na última hora",
                    {
                        "attempt_count": attempts,
                        "window_seconds": self._window,
                        "suggested_action": "show_upgrade_prompt",
                    },
                )

    # ------------------------------------------------------------------
    # Read paths
    # ------------------------------------------------------------------

    async def get_audit_logs(self, **filters: Any) -> list[AuditLogEntry]:
        """Filters: user_id, action, resource, allowed, since, until, limit."""
        try:
            return await self._store.query_logs(**filters)
        except Exception as exc:
            log.error("audit_logs_query_failed", error=str(exc))
            return []

    async def get_security_alerts(self, **filters: Any) -> list[SecurityAlert]:
        """Filters: user_id, alert_type, severity, resolved, since, limit."""
        try:
            return await self._store.query_alerts(**filters)
        except Exception as exc:
            log.error("security_alerts_query_failed", error=str(exc))
            return []

    async def get_usage_metrics(self, **filters: Any) -> list[UsageMetrics]:
        """Filters: user_id, user_type, date_from, date_to."""
        try:
            return await self._store.query_usage(**filters)
        except Exception as exc:
            log.error("usage_metrics_query_failed", error=str(exc))
            return []
