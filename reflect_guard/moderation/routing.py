"""Moderation layer — ModerationRouter.

Decides, per content submission, which moderation path applies:

  - free user     -> ``mandatory``   (always moderated, content ignored)
  - premium user  -> ``intelligent`` when the local risk check flags the
                     content, otherwise ``bypassed``
  - lookup error  -> ``mandatory`` for a synthesized free user

Every decision is logged as ``moderation_decision``; that log line is the
record of moderation routing.
"""

from __future__ import annotations

import time
from collections import Counter
from typing import Any, Sequence

from reflect_guard.logging import get_logger
from reflect_guard.moderation.models import (
    CustomRule,
    ModerationDecision,
    ModerationRequest,
    ModerationType,
    Severity,
)
from reflect_guard.moderation.rules import RiskThresholds, assess_risk
from reflect_guard.security.models import UserTier
from reflect_guard.security.permissions import PermissionService
from reflect_guard.security.policies import RESTRICTIVE_DEFAULT

log = get_logger(__name__)

MANDATORY_REASON = "Moderação obrigatória para utilizador gratuito"
ERROR_REASON = "Erro na verificação de permissões - aplicando moderação por segurança"
HIGH_RISK_REASON = "Conteúdo de alto risco detectado - moderação necessária"
APPROVED_REASON = "Conteúdo aprovado por moderação inteligente"
BYPASS_REASON = "Utilizador premium com conteúdo de baixo risco"


class ModerationRouter:
    """Routes submissions to mandatory, intelligent or bypassed moderation.

    Parameters
    ----------
    permissions:
        Supplies ``requires_mandatory_moderation`` for the submitting user.
    offensive_words:
        Terms that make premium content high risk.
    rules:
        Custom regex rules folded into the risk check.
    thresholds:
        Heuristic limits for caps, special characters, URLs and repetition.
    """

    def __init__(
        self,
        permissions: PermissionService,
        offensive_words: Sequence[str],
        rules: Sequence[CustomRule] = (),
        thresholds: RiskThresholds = RiskThresholds(),
    ) -> None:
        self._permissions = permissions
        self._offensive_words = list(offensive_words)
        self._rules = list(rules)
        self._thresholds = thresholds
        self._by_user_type: Counter[str] = Counter()
        self._by_moderation_type: Counter[str] = Counter()
        self._confidence_total = 0.0

    async def should_moderate_content(self, request: ModerationRequest) -> ModerationDecision:
        try:
            permissions = await self._permissions.get_user_permissions(request.user_id)
            decision = self._decide(request, permissions.requires_mandatory_moderation)
        except Exception as exc:
            decision = RESTRICTIVE_DEFAULT.recover(
                "should_moderate_content",
                exc,
                ModerationDecision(
                    should_moderate=True,
                    moderation_type=ModerationType.MANDATORY,
                    user_type=UserTier.FREE.value,
                    severity=Severity.MEDIUM,
                    categories=["error"],
                    reason=ERROR_REASON,
                    confidence=0.5,
                ),
                user_id=request.user_id,
            )
        self._record(request, decision)
        return decision

    def _decide(self, request: ModerationRequest, mandatory: bool) -> ModerationDecision:
        if mandatory:
            return ModerationDecision(
                should_moderate=True,
                moderation_type=ModerationType.MANDATORY,
                user_type=UserTier.FREE.value,
                severity=Severity.LOW,
                categories=[],
                reason=MANDATORY_REASON,
                confidence=1.0,
            )

        risk = assess_risk(request.content, self._offensive_words, self._rules, self._thresholds)
        if risk.high_risk:
            return ModerationDecision(
                should_moderate=True,
                moderation_type=ModerationType.INTELLIGENT,
                user_type=UserTier.PREMIUM.value,
                severity=risk.severity,
                categories=list(risk.categories),
                reason=HIGH_RISK_REASON,
                confidence=risk.confidence,
            )
        return ModerationDecision(
            should_moderate=False,
            moderation_type=ModerationType.BYPASSED,
            user_type=UserTier.PREMIUM.value,
            severity=Severity.LOW,
            categories=[],
            reason=APPROVED_REASON,
            confidence=0.9,
            bypass_reason=BYPASS_REASON,
        )

    def _record(self, request: ModerationRequest, decision: ModerationDecision) -> None:
        self._by_user_type[decision.user_type] += 1
        self._by_moderation_type[decision.moderation_type.value] += 1
        self._confidence_total += decision.confidence
        log.info(
            "moderation_decision",
            user_id=request.user_id,
            user_type=decision.user_type,
            content_type=request.content_type.value,
            content_length=len(request.content),
            moderation_type=decision.moderation_type.value,
            should_moderate=decision.should_moderate,
            severity=decision.severity.value,
            categories=decision.categories,
            confidence=decision.confidence,
            bypass_reason=decision.bypass_reason,
            context=request.context,
            timestamp=time.time(),
        )

    def get_stats(self) -> dict[str, Any]:
        total = sum(self._by_moderation_type.values())
        return {
            "total_decisions": total,
            "by_user_type": dict(self._by_user_type),
            "by_moderation_type": dict(self._by_moderation_type),
            "average_confidence": self._confidence_total / total if total else 0.0,
        }
