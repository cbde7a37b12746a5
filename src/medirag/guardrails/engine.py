"""Sensitive-topic guardrail check and answer annotation."""

from __future__ import annotations

from medirag.guardrails.detector import detect_sensitive_topic
from medirag.guardrails.disclaimers import disclaimer_for, referral_for
from medirag.metrics.observability import get_logger
from medirag.models import GuardrailResult

DISCLAIMER_HEADING = "**Important Notice:**"
REFERRAL_HEADING = "**For Professional Help:**"


class GuardrailsEngine:
    """Flags sensitive queries and appends disclaimers to answers.

    ``check_query`` depends only on the query text, so it can run before
    retrieval and be re-applied to cached answers.
    """

    def __init__(self) -> None:
        self._logger = get_logger("guardrails")

    def check_query(self, query: str) -> GuardrailResult:
        detection = detect_sensitive_topic(query)
        if not detection.is_sensitive or detection.category is None:
            return GuardrailResult(
                is_sensitive=False,
                confidence=1.0,
                disclaimer_required=False,
                should_proceed=True,
            )
        self._logger.info(
            "guardrails.sensitive_topic",
            category=detection.category.value,
            confidence=detection.confidence,
        )
        return GuardrailResult(
            is_sensitive=True,
            category=detection.category,
            matched_keywords=detection.matched_keywords,
            confidence=detection.confidence,
            disclaimer_required=True,
            disclaimer=disclaimer_for(detection.category),
            referral=referral_for(detection.category),
            # Sensitive queries are still answered, with a disclaimer
            should_proceed=True,
        )

    @staticmethod
    def annotate(answer: str, result: GuardrailResult) -> str:
        """Append the disclaimer and optional referral sections."""

        if not result.disclaimer_required or not result.disclaimer:
            return answer
        annotated = f"{answer}\n\n---\n{DISCLAIMER_HEADING} {result.disclaimer}"
        if result.referral:
            annotated += f"\n\n{REFERRAL_HEADING} {result.referral}"
        return annotated
