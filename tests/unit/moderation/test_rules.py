"""Unit tests — Local content-risk utilities."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from reflect_guard.exceptions import InvalidRuleError
from reflect_guard.moderation.models import CustomRule, ModerationResult, Severity
from reflect_guard.moderation.rules import (
    RiskThresholds,
    apply_custom_rules,
    assess_risk,
    check_blocked_words,
    combine_results,
    compile_rule,
    generate_moderation_report,
    sanitize_text,
    validate_rules,
)

OFFENSIVE = ["idiota", "burro"]
SPAM_RULE = CustomRule(name="spam", pattern=r"compre\s+agora", severity=Severity.HIGH, description="spam comercial")
PHONE_RULE = CustomRule(name="phone", pattern=r"\d{9}", severity=Severity.LOW, description="telefone")
BROKEN_RULE = CustomRule(name="broken", pattern="(unclosed")


def _clean() -> ModerationResult:
    return ModerationResult(flagged=False, severity=Severity.LOW, confidence=0.2)


@pytest.mark.unit
class TestBlockedWords:
    def test_case_insensitive_substring(self) -> None:
        assert check_blocked_words("Que IDIOTA", OFFENSIVE) == ["idiota"]

    def test_none_found(self) -> None:
        assert check_blocked_words("tudo bem", OFFENSIVE) == []


@pytest.mark.unit
class TestCustomRules:
    def test_highest_severity_among_matches(self) -> None:
        triggered, severity = apply_custom_rules("COMPRE AGORA 912345678", [SPAM_RULE, PHONE_RULE])
        assert [r.name for r in triggered] == ["spam", "phone"]
        assert severity is Severity.HIGH

    def test_no_match_is_low(self) -> None:
        triggered, severity = apply_custom_rules("olá", [SPAM_RULE])
        assert triggered == []
        assert severity is Severity.LOW

    def test_invalid_pattern_skipped_and_logged(self) -> None:
        with patch("reflect_guard.moderation.rules.log") as mock_log:
            triggered, _ = apply_custom_rules("compre agora", [BROKEN_RULE, SPAM_RULE])
        assert [r.name for r in triggered] == ["spam"]
        mock_log.warning.assert_called_once()

    def test_compile_rule_raises(self) -> None:
        with pytest.raises(InvalidRuleError) as exc_info:
            compile_rule(BROKEN_RULE)
        assert exc_info.value.rule_name == "broken"


@pytest.mark.unit
class TestCombineResults:
    def test_clean_passthrough(self) -> None:
        result = combine_results(_clean(), [], [])
        assert result.flagged is False
        assert result.severity is Severity.LOW
        assert result.confidence == 0.2

    def test_blocked_words_raise_to_medium(self) -> None:
        result = combine_results(_clean(), ["idiota"], [])
        assert result.flagged is True
        assert result.severity is Severity.MEDIUM
        assert result.confidence == 0.8
        assert result.categories == ["blocked-words"]
        assert result.reason == "Conteúdo contém elementos inadequados: idiota"
        assert result.suggestions == ["Remova palavras ofensivas"]

    def test_rules_merge_with_classifier(self) -> None:
        classifier = ModerationResult(
            flagged=True, severity=Severity.LOW, categories=["spam"], reason="x", confidence=0.95
        )
        result = combine_results(classifier, [], [SPAM_RULE])
        assert result.severity is Severity.HIGH
        assert result.categories == ["spam"]
        assert result.confidence == 0.95
        assert result.suggestions == ["Revise: spam comercial"]


@pytest.mark.unit
class TestAssessRisk:
    def test_empty_content(self) -> None:
        risk = assess_risk("", OFFENSIVE)
        assert risk.high_risk is False
        assert risk.severity is Severity.LOW
        assert risk.confidence == 0.1

    def test_clean_content(self) -> None:
        risk = assess_risk("Uma reflexão tranquila sobre o dia.", OFFENSIVE)
        assert risk.high_risk is False
        assert risk.categories == []
        assert risk.confidence == 0.1

    def test_offensive_word_is_high_risk(self) -> None:
        risk = assess_risk("que burro", OFFENSIVE)
        assert risk.high_risk is True
        assert risk.severity is Severity.HIGH
        assert risk.categories == ["offensive-language"]
        assert risk.confidence == pytest.approx(0.3)

    def test_single_medium_signal_not_high_risk(self) -> None:
        risk = assess_risk("ESTE TEXTO ESTA TODO EM MAIUSCULAS", OFFENSIVE)
        assert "excessive-caps" in risk.categories
        assert risk.severity is Severity.MEDIUM
        assert risk.high_risk is False

    def test_three_signals_are_high_risk(self) -> None:
        content = "VEJA AGORA http://a.io http://b.io http://c.io !!!!!!!!!!!!"
        risk = assess_risk(content, OFFENSIVE)
        assert {"multiple-urls", "character-spam"} <= set(risk.categories)
        assert len(risk.categories) >= 3
        assert risk.high_risk is True
        assert risk.confidence == 0.8

    def test_custom_rule_severity_applies(self) -> None:
        risk = assess_risk("compre agora", OFFENSIVE, [SPAM_RULE])
        assert risk.categories == ["spam"]
        assert risk.high_risk is True

    def test_thresholds_are_configurable(self) -> None:
        risk = assess_risk("aaaa", OFFENSIVE, thresholds=RiskThresholds(repeated_char_run=3))
        assert risk.categories == ["character-spam"]


@pytest.mark.unit
class TestSanitize:
    def test_masks_case_insensitively(self) -> None:
        assert sanitize_text("Seu IDIOTA e burro", OFFENSIVE) == "Seu ****** e *****"

    def test_empty_word_ignored(self) -> None:
        assert sanitize_text("abc", [""]) == "abc"


@pytest.mark.unit
class TestReport:
    def test_flagged_report(self) -> None:
        result = ModerationResult(
            flagged=True,
            severity=Severity.MEDIUM,
            categories=["blocked-words"],
            reason="motivo",
            confidence=0.8,
            suggestions=["a", "b"],
        )
        assert generate_moderation_report(result).splitlines() == [
            "Status: FLAGGED",
            "Severidade: MEDIUM",
            "Confiança: 80.0%",
            "Categorias: blocked-words",
            "Motivo: motivo",
            "Sugestões: a; b",
        ]

    def test_approved_report_omits_empty_sections(self) -> None:
        report = generate_moderation_report(_clean())
        assert report.splitlines() == ["Status: APPROVED", "Severidade: LOW", "Confiança: 20.0%"]


@pytest.mark.unit
class TestValidateRules:
    def test_valid(self) -> None:
        assert validate_rules([SPAM_RULE, PHONE_RULE]) == []

    def test_problems_reported(self) -> None:
        errors = validate_rules([CustomRule(name="", pattern="x"), BROKEN_RULE])
        assert errors == [
            "Regras customizadas devem ter nome e padrão",
            'Padrão regex inválido na regra "broken"',
        ]
