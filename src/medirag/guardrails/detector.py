"""Keyword detection of sensitive Medicaid planning topics."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from medirag.models import SensitiveCategory


@dataclass(frozen=True)
class CategoryPattern:
    keywords: tuple[str, ...]
    weight: float


@dataclass(frozen=True)
class DetectionResult:
    is_sensitive: bool
    confidence: float
    category: SensitiveCategory | None = None
    matched_keywords: tuple[str, ...] = ()


SENSITIVE_PATTERNS: Mapping[SensitiveCategory, CategoryPattern] = {
    SensitiveCategory.ESTATE_PLANNING: CategoryPattern(
        keywords=(
            "estate plan",
            "will",
            "trust",
            "inheritance",
            "heir",
            "beneficiary",
            "probate",
            "estate tax",
            "living trust",
            "irrevocable trust",
            "take my estate",
            "when i die",
            "after death",
            "after i die",
            "my estate when",
        ),
        weight=1.0,
    ),
    SensitiveCategory.SPEND_DOWN: CategoryPattern(
        keywords=(
            "spend down",
            "spend-down",
            "reduce assets",
            "lower assets",
            "get rid of money",
            "hide assets",
            "protect assets",
            "qualify faster",
            "become eligible",
        ),
        weight=1.2,
    ),
    SensitiveCategory.ASSET_TRANSFER: CategoryPattern(
        keywords=(
            "transfer home",
            "transfer house",
            "transfer my house",
            "transfer my home",
            "give away",
            "gift money",
            "deed to child",
            "put in child's name",
            "transfer property",
            "sign over",
            "quitclaim",
            "avoid medicaid",
            "transfer to my children",
            "transfer to children",
            "give to my children",
        ),
        weight=1.3,
    ),
    SensitiveCategory.SPOUSAL_COMPLEX: CategoryPattern(
        keywords=(
            "divorce for medicaid",
            "spousal refusal",
            "separate for medicaid",
            "divorce to qualify",
            "legal separation",
            "refuse to pay",
        ),
        weight=1.1,
    ),
    SensitiveCategory.APPEALS: CategoryPattern(
        keywords=(
            "appeal",
            "denied",
            "fair hearing",
            "dispute",
            "fight decision",
            "overturn",
            "wrong decision",
            "disagree with",
        ),
        weight=0.8,
    ),
    SensitiveCategory.LOOK_BACK_PERIOD: CategoryPattern(
        keywords=(
            "look-back",
            "lookback",
            "look back period",
            "60 month",
            "60-month",
            "5-year",
            "five year",
            "penalty period",
            "transfer penalty",
            "divestment",
            "divest",
        ),
        weight=1.5,
    ),
}


def detect_sensitive_topic(query: str) -> DetectionResult:
    """Pick the highest-scoring category; score is match count times weight.

    Earlier categories win ties. Confidence is ``min(score / 2, 1)``.
    """

    lowered = query.lower()
    best: SensitiveCategory | None = None
    best_score = 0.0
    best_matches: tuple[str, ...] = ()
    for category, pattern in SENSITIVE_PATTERNS.items():
        matches = tuple(keyword for keyword in pattern.keywords if keyword in lowered)
        score = len(matches) * pattern.weight
        if matches and score > best_score:
            best, best_score, best_matches = category, score, matches
    if best is None:
        return DetectionResult(is_sensitive=False, confidence=0.0)
    return DetectionResult(
        is_sensitive=True,
        category=best,
        matched_keywords=best_matches,
        confidence=min(best_score / 2, 1.0),
    )


def is_category_detected(query: str, category: SensitiveCategory) -> bool:
    result = detect_sensitive_topic(query)
    return result.is_sensitive and result.category is category


def category_keywords(category: SensitiveCategory) -> tuple[str, ...]:
    return SENSITIVE_PATTERNS[category].keywords
