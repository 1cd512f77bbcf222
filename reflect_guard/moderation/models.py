"""Moderation layer — Request, result and decision types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ContentType(str, Enum):
    TEXT = "text"
    AUDIO = "audio"


class ModerationType(str, Enum):
    MANDATORY = "mandatory"
    INTELLIGENT = "intelligent"
    BYPASSED = "bypassed"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @classmethod
    def highest(cls, *values: "Severity") -> "Severity":
        return max(values, key=lambda s: s.rank, default=cls.LOW)


_SEVERITY_RANK = {Severity.LOW: 1, Severity.MEDIUM: 2, Severity.HIGH: 3}


@dataclass(frozen=True)
class CustomRule:
    """A regex rule evaluated case-insensitively against submitted text."""

    name: str
    pattern: str
    severity: Severity = Severity.MEDIUM
    action: str = "warn"
    description: str = ""


@dataclass(frozen=True)
class ModerationRequest:
    user_id: str
    content_type: ContentType
    content: str
    context: dict[str, Any] = field(default_factory=dict)


@dataclass
class ModerationResult:
    """Output of a classifier or of the local checks."""

    flagged: bool
    severity: Severity
    categories: list[str] = field(default_factory=list)
    reason: str = ""
    confidence: float = 0.0
    suggestions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "flagged": self.flagged,
            "severity": self.severity.value,
            "categories": list(self.categories),
            "reason": self.reason,
            "confidence": self.confidence,
            "suggestions": list(self.suggestions),
        }


@dataclass(frozen=True)
class RiskAssessment:
    high_risk: bool
    severity: Severity
    categories: list[str]
    confidence: float


@dataclass(frozen=True)
class ModerationDecision:
    should_moderate: bool
    moderation_type: ModerationType
    user_type: str
    severity: Severity
    categories: list[str]
    reason: str
    confidence: float
    bypass_reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "should_moderate": self.should_moderate,
            "moderation_type": self.moderation_type.value,
            "user_type": self.user_type,
            "severity": self.severity.value,
            "categories": list(self.categories),
            "reason": self.reason,
            "confidence": self.confidence,
            "bypass_reason": self.bypass_reason,
        }
