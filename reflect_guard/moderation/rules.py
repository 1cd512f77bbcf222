"""Moderation layer — Local content-risk utilities.

Cheap checks that run in-process before (or instead of) an external
classifier:

  - ``check_blocked_words``   — case-insensitive substring scan
  - ``apply_custom_rules``    — regex rules, max severity across matches
  - ``combine_results``       — merge a classifier verdict with local findings
  - ``assess_risk``           — heuristic pre-check used by moderation routing
  - ``sanitize_text``         — mask blocked words with asterisks
  - ``validate_rules``        — report invalid patterns and missing fields

Invalid rule patterns are logged and skipped, never raised.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Sequence

from reflect_guard.exceptions import InvalidRuleError
from reflect_guard.logging import get_logger
from reflect_guard.moderation.models import CustomRule, ModerationResult, RiskAssessment, Severity

log = get_logger(__name__)

_URL_RE = re.compile(r"https?://\S+")
_SPECIAL_CHARS = set("!@#$%^&*()_+=[]{}|;':\",./<>?~`")
_LOCAL_ISSUE_CONFIDENCE = 0.8


def check_blocked_words(text: str, blocked_words: Iterable[str]) -> list[str]:
    """Return the entries of *blocked_words* that occur in *text*."""
    lowered = text.lower()
    return [word for word in blocked_words if word.lower() in lowered]


def compile_rule(rule: CustomRule) -> re.Pattern[str]:
    try:
        return re.compile(rule.pattern, re.IGNORECASE)
    except re.error as exc:
        raise InvalidRuleError(rule.name, rule.pattern, str(exc)) from exc


def apply_custom_rules(
    text: str, rules: Sequence[CustomRule]
) -> tuple[list[CustomRule], Severity]:
    """Return the triggered rules and the highest severity among them."""
    triggered: list[CustomRule] = []
    for rule in rules:
        try:
            pattern = compile_rule(rule)
        except InvalidRuleError as exc:
            log.warning("moderation_rule_invalid", rule=rule.name, error=exc.message)
            continue
        if pattern.search(text):
            triggered.append(rule)
    return triggered, Severity.highest(*(r.severity for r in triggered))


def combine_results(
    classifier: ModerationResult,
    blocked_words: Sequence[str],
    triggered_rules: Sequence[CustomRule],
) -> ModerationResult:
    """Merge a classifier verdict with local findings.

    Flagged if either side flags; severity, confidence take the max;
    categories are the union.
    """
    has_local_issues = bool(blocked_words) or bool(triggered_rules)
    local_severity = Severity.highest(
        *(r.severity for r in triggered_rules),
        *((Severity.MEDIUM,) if blocked_words else ()),
    )

    categories = list(classifier.categories)
    local_categories = (["blocked-words"] if blocked_words else []) + [r.name for r in triggered_rules]
    for category in local_categories:
        if category not in categories:
            categories.append(category)

    reason = classifier.reason
    if has_local_issues:
        found = [*blocked_words, *(r.name for r in triggered_rules)]
        reason = f"Conteúdo contém elementos inadequados: {', '.join(found)}"

    suggestions = list(classifier.suggestions)
    if blocked_words:
        suggestions.append("Remova palavras ofensivas")
    suggestions.extend(f"Revise: {r.description}" for r in triggered_rules)

    return ModerationResult(
        flagged=classifier.flagged or has_local_issues,
        severity=Severity.highest(classifier.severity, local_severity) if has_local_issues else classifier.severity,
        categories=categories,
        reason=reason,
        confidence=max(classifier.confidence, _LOCAL_ISSUE_CONFIDENCE if has_local_issues else 0.0),
        suggestions=suggestions,
    )


@dataclass(frozen=True)
class RiskThresholds:
    caps_ratio: float = 0.7
    caps_min_length: int = 20
    special_char_ratio: float = 0.3
    max_urls: int = 2
    repeated_char_run: int = 10


def assess_risk(
    content: str,
    offensive_words: Sequence[str],
    rules: Sequence[CustomRule] = (),
    thresholds: RiskThresholds = RiskThresholds(),
) -> RiskAssessment:
    """Heuristic risk score.

    Offensive words are high severity; every other signal is medium.  Content
    is high risk when severity is high or at least three signals fire.
    """
    if not content:
        return RiskAssessment(high_risk=False, severity=Severity.LOW, categories=[], confidence=0.1)

    risks: list[str] = []
    severity = Severity.LOW

    if check_blocked_words(content, offensive_words):
        risks.append("offensive-language")
        severity = Severity.HIGH

    length = len(content)
    uppercase = sum(1 for ch in content if "A" <= ch <= "Z")
    if uppercase / length > thresholds.caps_ratio and length > thresholds.caps_min_length:
        risks.append("excessive-caps")
        severity = Severity.highest(severity, Severity.MEDIUM)

    special = sum(1 for ch in content if ch in _SPECIAL_CHARS)
    if special / length > thresholds.special_char_ratio:
        risks.append("suspicious-characters")
        severity = Severity.highest(severity, Severity.MEDIUM)

    if len(_URL_RE.findall(content)) > thresholds.max_urls:
        risks.append("multiple-urls")
        severity = Severity.highest(severity, Severity.MEDIUM)

    if re.search(rf"(.)\1{{{thresholds.repeated_char_run},}}", content, re.DOTALL):
        risks.append("character-spam")
        severity = Severity.highest(severity, Severity.MEDIUM)

    triggered, rule_severity = apply_custom_rules(content, rules)
    if triggered:
        risks.extend(r.name for r in triggered)
        severity = Severity.highest(severity, rule_severity)

    high_risk = bool(risks) and (severity is Severity.HIGH or len(risks) >= 3)
    confidence = min(0.8, 0.3 * len(risks)) if risks else 0.1
    return RiskAssessment(high_risk=high_risk, severity=severity, categories=risks, confidence=confidence)


def sanitize_text(text: str, blocked_words: Iterable[str]) -> str:
    sanitized = text
    for word in blocked_words:
        if not word:
            continue
        sanitized = re.sub(re.escape(word), "*" * len(word), sanitized, flags=re.IGNORECASE)
    return sanitized


def generate_moderation_report(result: ModerationResult) -> str:
    lines = [
        f"Status: {'FLAGGED' if result.flagged else 'APPROVED'}",
        f"Severidade: {result.severity.value.upper()}",
        f"Confiança: {result.confidence * 100:.1f}%",
    ]
    if result.categories:
        lines.append(f"Categorias: {', '.join(result.categories)}")
    if result.reason:
        lines.append(f"Motivo: {result.reason}")
    if result.suggestions:
        lines.append(f"Sugestões: {'; '.join(result.suggestions)}")
    return "\n".join(lines)


def validate_rules(rules: Sequence[CustomRule]) -> list[str]:
    """Return a list of problems; empty when every rule is usable."""
    errors: list[str] = []
    for rule in rules:
        if not rule.name or not rule.pattern:
            errors.append("Regras customizadas devem ter nome e padrão")
            continue
        try:
            compile_rule(rule)
        except InvalidRuleError:
            errors.append(f'Padrão regex inválido na regra "{rule.name}"')
    return errors
