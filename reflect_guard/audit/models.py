"""Audit layer — Decision log entries, security alerts and usage metrics.

  - ``AuditLogEntry``  — one allow/deny decision; append-only
  - ``SecurityAlert``  — raised by pattern detection; resolved exactly once
  - ``UsageMetrics``   — per-user per-UTC-day counter bundle
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class AlertType(str, Enum):
    SUSPICIOUS_ACTIVITY = "suspicious_activity"
    PERMISSION_BYPASS_ATTEMPT = "permission_bypass_attempt"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    UNUSUAL_PATTERN = "unusual_pattern"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class UsageAction(str, Enum):
    POSTS_VIEWED = "posts_viewed"
    POSTS_CREATED = "posts_created"
    REFLECTIONS_CREATED = "reflections_created"
    CONNECTIONS_REQUESTED = "connections_requested"
    CONNECTIONS_RESPONDED = "connections_responded"
    PREMIUM_CONTENT_ACCESSED = "premium_content_accessed"
    UPGRADE_PROMPTS_SHOWN = "upgrade_prompts_shown"
    UPGRADE_PROMPTS_CLICKED = "upgrade_prompts_clicked"


def empty_usage_actions() -> dict[str, int]:
    return {action.value: 0 for action in UsageAction}


def utc_day(timestamp: float) -> str:
    """``YYYY-MM-DD`` of *timestamp* in UTC."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).date().isoformat()


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass
class AuditLogEntry:
    user_id: str | None
    action: str
    resource: str
    allowed: bool
    resource_id: str | None = None
    reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    user_agent: str | None = None
    ip: str | None = None
    session_id: str | None = None
    id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "resource": self.resource,
            "resource_id": self.resource_id,
            "allowed": self.allowed,
            "reason": self.reason,
            "metadata": self.metadata,
            "timestamp": self.timestamp,
            "user_agent": self.user_agent,
            "ip": self.ip,
            "session_id": self.session_id,
        }


@dataclass
class SecurityAlert:
    user_id: str
    alert_type: AlertType
    severity: AlertSeverity
    description: str
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    resolved: bool = False
    resolved_at: float | None = None
    id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "alert_type": self.alert_type.value,
            "severity": self.severity.value,
            "description": self.description,
            "metadata": self.metadata,
            "timestamp": self.timestamp,
            "resolved": self.resolved,
            "resolved_at": self.resolved_at,
        }


@dataclass
class UsageMetrics:
    user_id: str
    user_type: str
    date: str
    actions: dict[str, int] = field(default_factory=empty_usage_actions)
    id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "user_type": self.user_type,
            "date": self.date,
            "actions": dict(self.actions),
        }
