"""Data-freshness checks and answer annotation."""

from .checker import (
    DEFAULT_RULES,
    FreshnessCheck,
    FreshnessChecker,
    FreshnessRule,
    UpdateFrequency,
    data_type_for,
    format_data_type,
)
from .display import FreshnessAnnotator, format_long_date, income_limits_window, seasonal_warnings
from .snapshot import DocumentMetadataSnapshot, DocumentMetadataSource, DocumentSnapshot, StaticDocumentCatalog

__all__ = [
    "DEFAULT_RULES",
    "DocumentMetadataSnapshot",
    "DocumentMetadataSource",
    "DocumentSnapshot",
    "FreshnessAnnotator",
    "FreshnessCheck",
    "FreshnessChecker",
    "FreshnessRule",
    "StaticDocumentCatalog",
    "UpdateFrequency",
    "data_type_for",
    "format_data_type",
    "format_long_date",
    "income_limits_window",
    "seasonal_warnings",
]
