"""Operator endpoints: audit trail, security alerts, usage metrics, cache.

    GET    /admin/audit-logs
    GET    /admin/security-alerts
    POST   /admin/security-alerts/{alert_id}/resolve
    GET    /admin/usage-metrics
    GET    /admin/cache
    DELETE /admin/cache/{user_id}
    GET    /admin/fallback-logs
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query, status

from reflect_guard.api.dependencies import AdminDep, AuditDep, GuardDep, PermissionsDep
from reflect_guard.api.schemas import ResolveAlertResponse
from reflect_guard.audit.models import AlertSeverity, AlertType

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/audit-logs", summary="Audit entries, newest first")
async def audit_logs(
    _auth: AdminDep,
    audit: AuditDep,
    user_id: str | None = Query(default=None),
    action: str | None = Query(default=None),
    resource: str | None = Query(default=None),
    allowed: bool | None = Query(default=None),
    since: float | None = Query(default=None),
    until: float | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
) -> list[dict[str, Any]]:
    entries = await audit.get_audit_logs(
        user_id=user_id,
        action=action,
        resource=resource,
        allowed=allowed,
        since=since,
        until=until,
        limit=limit,
    )
    return [e.to_dict() for e in entries]


@router.get("/security-alerts", summary="Security alerts, newest first")
async def security_alerts(
    _auth: AdminDep,
    audit: AuditDep,
    user_id: str | None = Query(default=None),
    alert_type: AlertType | None = Query(default=None),
    severity: AlertSeverity | None = Query(default=None),
    resolved: bool | None = Query(default=None),
    since: float | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
) -> list[dict[str, Any]]:
    alerts = await audit.get_security_alerts(
        user_id=user_id,
        alert_type=alert_type.value if alert_type else None,
        severity=severity.value if severity else None,
        resolved=resolved,
        since=since,
        limit=limit,
    )
    return [a.to_dict() for a in alerts]


@router.post(
    "/security-alerts/{alert_id}/resolve",
    response_model=ResolveAlertResponse,
    summary="Mark an alert resolved",
)
async def resolve_alert(alert_id: int, _auth: AdminDep, audit: AuditDep) -> ResolveAlertResponse:
    if not await audit.resolve_security_alert(alert_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Alert {alert_id} not found or already resolved.",
        )
    return ResolveAlertResponse(alert_id=alert_id, resolved=True)


@router.get("/usage-metrics", summary="Per-user daily usage counters")
async def usage_metrics(
    _auth: AdminDep,
    audit: AuditDep,
    user_id: str | None = Query(default=None),
    user_type: str | None = Query(default=None),
    date_from: str | None = Query(default=None, description="YYYY-MM-DD, inclusive"),
    date_to: str | None = Query(default=None, description="YYYY-MM-DD, inclusive"),
) -> list[dict[str, Any]]:
    rows = await audit.get_usage_metrics(
        user_id=user_id, user_type=user_type, date_from=date_from, date_to=date_to
    )
    return [r.to_dict() for r in rows]


@router.get("/cache", summary="Permission cache statistics")
async def cache_stats(_auth: AdminDep, permissions: PermissionsDep) -> dict[str, Any]:
    return permissions.get_cache_stats()


@router.delete(
    "/cache/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Evict one user's cached permissions",
)
async def invalidate_cache(user_id: str, _auth: AdminDep, permissions: PermissionsDep) -> None:
    permissions.invalidate_user_cache(user_id)


@router.get("/fallback-logs", summary="Audit entries held in memory after failed writes")
async def fallback_logs(
    _auth: AdminDep,
    guard: GuardDep,
    user_id: str | None = Query(default=None),
    allowed: bool | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1),
) -> list[dict[str, Any]]:
    return [e.to_dict() for e in guard.get_fallback_logs(user_id=user_id, allowed=allowed, limit=limit)]
