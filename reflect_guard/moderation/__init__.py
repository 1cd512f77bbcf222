"""Moderation layer — Routing decisions and local content-risk checks."""

from reflect_guard.moderation.models import (
    ContentType,
    CustomRule,
    ModerationDecision,
    ModerationRequest,
    ModerationResult,
    ModerationType,
    Severity,
)
from reflect_guard.moderation.routing import ModerationRouter
from reflect_guard.moderation.rules import (
    RiskThresholds,
    apply_custom_rules,
    assess_risk,
    check_blocked_words,
    combine_results,
    generate_moderation_report,
    sanitize_text,
    validate_rules,
)

__all__ = [
    "ContentType",
    "CustomRule",
    "ModerationDecision",
    "ModerationRequest",
    "ModerationResult",
    "ModerationRouter",
    "ModerationType",
    "RiskThresholds",
    "Severity",
    "apply_custom_rules",
    "assess_risk",
    "check_blocked_words",
    "combine_results",
    "generate_moderation_report",
    "sanitize_text",
    "validate_rules",
]
