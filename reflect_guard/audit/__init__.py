"""Audit layer — Decision log, security alerts, usage metrics and the in-memory fallback."""

from reflect_guard.audit.buffer import AuditFallbackBuffer
from reflect_guard.audit.models import (
    AlertSeverity,
    AlertType,
    AuditLogEntry,
    SecurityAlert,
    UsageAction,
    UsageMetrics,
)
from reflect_guard.audit.service import AuditService
from reflect_guard.audit.store import AuditStore

__all__ = [
    "AlertSeverity",
    "AlertType",
    "AuditFallbackBuffer",
    "AuditLogEntry",
    "AuditService",
    "AuditStore",
    "SecurityAlert",
    "UsageAction",
    "UsageMetrics",
]
