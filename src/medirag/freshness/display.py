"""Freshness summaries for cited documents and the appended answer section."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Callable, Mapping, Sequence

from medirag.freshness.checker import FreshnessChecker
from medirag.freshness.snapshot import DocumentSnapshot
from medirag.models import Citation, FreshnessInfo, FreshnessWarning, WarningLevel

INCOME_DOCUMENT_TYPES = frozenset({"income_limits", "msp_guide", "general_eligibility"})

WARNING_ICONS: Mapping[WarningLevel, str] = {
    WarningLevel.CRITICAL: "\U0001f6a8",
    WarningLevel.WARNING: "⚠️",
    WarningLevel.INFO: "ℹ️",
    WarningLevel.NONE: "ℹ️",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_long_date(value: date) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def income_limits_window(check_date: date) -> str:
    """MSP income limits run April through March."""

    year = check_date.year
    if check_date.month >= 4:
        return f"April {year} - March {year + 1}"
    return f"April {year - 1} - March {year}"


def seasonal_warnings(check_date: date) -> list[FreshnessWarning]:
    year = check_date.year
    warnings: list[FreshnessWarning] = []
    if check_date.month in (1, 2):
        warnings.append(
            FreshnessWarning(
                level=WarningLevel.INFO,
                message=(
                    f"Note: {year} Federal Poverty Level figures are typically published in January. "
                    f"If reading this in early {year}, some limits may still reflect {year - 1} values."
                ),
            )
        )
    if 3 <= check_date.month <= 5:
        warnings.append(
            FreshnessWarning(
                level=WarningLevel.INFO,
                message=(
                    "Note: Medicare Savings Program limits typically update in April. "
                    f"If reading this in March-May {year}, verify current limits apply."
                ),
            )
        )
    return warnings


class FreshnessAnnotator:
    """Builds ``FreshnessInfo`` for an answer's citations and renders it."""

    def __init__(self, checker: FreshnessChecker | None = None, clock: Callable[[], datetime] = _utcnow) -> None:
        self._checker = checker or FreshnessChecker()
        self._clock = clock

    def build_info(
        self,
        citations: Sequence[Citation],
        snapshot: DocumentSnapshot,
        check_date: date | None = None,
    ) -> FreshnessInfo:
        now = self._clock()
        check_date = check_date or now.date()
        records = [snapshot.get(citation.document_id) for citation in citations]
        records = [record for record in records if record is not None]

        warnings: list[FreshnessWarning] = []
        has_stale = False
        for record in records:
            check = self._checker.check_document(record, check_date)
            # Unknown document types and missing dates are skipped
            if check is None or not check.is_stale:
                continue
            has_stale = True
            if check.warning_message:
                level = WarningLevel.INFO if check.warning_level is WarningLevel.NONE else check.warning_level
                warnings.append(FreshnessWarning(level=level, message=check.warning_message, data_type=check.data_type))
        warnings.extend(seasonal_warnings(check_date))

        years = [record.effective_date.year for record in records if record.effective_date is not None]
        effective_period = f"Calendar Year {max(years)} (unless otherwise noted)" if years else None
        income_effective = None
        if any(record.document_type in INCOME_DOCUMENT_TYPES for record in records):
            income_effective = income_limits_window(check_date)

        return FreshnessInfo(
            last_retrieved=snapshot.last_ingested_at or now,
            has_stale_data=has_stale,
            warnings=tuple(_dedupe(warnings)),
            effective_period=effective_period,
            income_limits_effective=income_effective,
        )

    @staticmethod
    def format_section(info: FreshnessInfo) -> str:
        lines = [
            "---",
            "**Source Information**",
            f"- Sources last retrieved: {format_long_date(info.last_retrieved)}",
        ]
        if info.effective_period:
            lines.append(f"- Applies to: {info.effective_period}")
        if info.income_limits_effective:
            lines.append(f"- Income limits effective: {info.income_limits_effective}")
        if info.warnings:
            lines.append("")
            lines.extend(f"{WARNING_ICONS[warning.level]} {warning.message}" for warning in info.warnings)
        return "\n".join(lines)

    def annotate(self, answer: str, info: FreshnessInfo) -> str:
        return f"{answer}\n\n{self.format_section(info)}"


def _dedupe(warnings: Sequence[FreshnessWarning]) -> list[FreshnessWarning]:
    seen: set[str] = set()
    unique: list[FreshnessWarning] = []
    for warning in warnings:
        if warning.message in seen:
            continue
        seen.add(warning.message)
        unique.append(warning)
    return unique
