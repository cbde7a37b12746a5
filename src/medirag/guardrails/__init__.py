"""Sensitive-topic guardrails."""

from .detector import DetectionResult, category_keywords, detect_sensitive_topic, is_category_detected
from .disclaimers import disclaimer_for, format_county_resources, general_disclaimer, referral_for
from .engine import GuardrailsEngine

__all__ = [
    "DetectionResult",
    "GuardrailsEngine",
    "category_keywords",
    "detect_sensitive_topic",
    "disclaimer_for",
    "format_county_resources",
    "general_disclaimer",
    "is_category_detected",
    "referral_for",
]
