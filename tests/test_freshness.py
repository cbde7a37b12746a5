from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone

import pytest

from medirag.freshness import (
    DocumentMetadataSnapshot,
    DocumentSnapshot,
    FreshnessAnnotator,
    FreshnessChecker,
    StaticDocumentCatalog,
    data_type_for,
    format_data_type,
    income_limits_window,
    seasonal_warnings,
)
from medirag.freshness.checker import DEFAULT_RULES
from medirag.models import Citation, DataType, DocumentRecord, FreshnessInfo, FreshnessWarning, WarningLevel

from helpers import FIXED_NOW


def _citation(document_id: str) -> Citation:
    return Citation(chunk_id=f"{document_id}-0", document_id=document_id, filename="f.pdf", chunk_index=0, excerpt="...")


def _record(document_id: str, document_type: str | None, effective: date | None, ingested: datetime | None = None):
    return DocumentRecord(
        document_id=document_id,
        document_type=document_type,
        effective_date=effective,
        ingested_at=ingested,
    )


class TestChecker:
    checker = FreshnessChecker()

    def test_annual_data_in_update_month_is_info(self):
        check = self.checker.check_data_type(DataType.FEDERAL_POVERTY_LEVEL, date(2024, 1, 1), date(2025, 1, 15))

        assert check.is_stale
        assert check.warning_level is WarningLevel.INFO
        assert check.warning_message == (
            "This Federal Poverty Level (FPL) data is from 2024. "
            "2025 updates are typically available after January 2025."
        )
        assert check.stale_since == date(2025, 1, 1)
        assert check.next_expected_update == date(2026, 1, 1)

    def test_annual_data_after_update_month_is_warning(self):
        check = self.checker.check_data_type(DataType.FEDERAL_POVERTY_LEVEL, date(2024, 1, 1), date(2025, 3, 10))

        assert check.warning_level is WarningLevel.WARNING

    def test_annual_data_before_update_month_is_fresh(self):
        check = self.checker.check_data_type(DataType.MSP_INCOME_LIMITS, date(2024, 6, 1), date(2025, 3, 1))

        assert not check.is_stale
        assert check.warning_level is WarningLevel.NONE
        assert check.next_expected_update == date(2025, 4, 1)

    def test_stale_data_from_two_years_back_is_critical(self):
        check = self.checker.check_data_type(DataType.FEDERAL_POVERTY_LEVEL, date(2022, 1, 1), date(2025, 6, 1))

        assert check.warning_level is WarningLevel.CRITICAL
        assert check.warning_message == (
            "This Federal Poverty Level (FPL) data is from 2022 and is significantly outdated. "
            "Please verify current information with Federal Register."
        )

    def test_quarterly_rule(self):
        stale = self.checker.check_data_type(DataType.CHESTER_COUNTY_CONTACTS, date(2025, 1, 10), date(2025, 5, 1))
        fresh = self.checker.check_data_type(DataType.CHESTER_COUNTY_CONTACTS, date(2025, 1, 10), date(2025, 4, 20))

        assert stale.is_stale and stale.warning_level is WarningLevel.INFO
        assert "verified quarterly" in stale.warning_message
        assert not fresh.is_stale

    def test_monthly_rule_escalates_after_three_months(self):
        info = self.checker.check_data_type(DataType.OIM_MA_HANDBOOK, date(2025, 1, 1), date(2025, 3, 1))
        warning = self.checker.check_data_type(DataType.OIM_MA_HANDBOOK, date(2025, 1, 1), date(2025, 6, 1))
        fresh = self.checker.check_data_type(DataType.OIM_MA_HANDBOOK, date(2025, 1, 1), date(2025, 2, 20))

        assert info.warning_level is WarningLevel.INFO
        assert warning.warning_level is WarningLevel.WARNING
        assert not fresh.is_stale

    @pytest.mark.parametrize(
        "check_day,stale,level",
        [
            (date(2025, 6, 5), False, WarningLevel.NONE),
            (date(2025, 6, 9), True, WarningLevel.INFO),
            (date(2025, 6, 20), True, WarningLevel.WARNING),
        ],
    )
    def test_weekly_rule(self, check_day, stale, level):
        check = self.checker.check_data_type(DataType.PA_BULLETIN_DHS, date(2025, 6, 1), check_day)

        assert check.is_stale is stale
        assert check.warning_level is level

    def test_weekly_rule_across_years_escalates(self):
        check = self.checker.check_data_type(DataType.OIM_OPS_MEMO, date(2023, 12, 20), date(2025, 1, 5))

        assert check.warning_level is WarningLevel.CRITICAL

    def test_as_needed_data_is_never_stale(self):
        check = self.checker.check_data_type(DataType.PA_CODE_CHAPTER_258, date(2010, 1, 1), date(2025, 6, 1))

        assert not check.is_stale
        assert check.warning_level is WarningLevel.NONE

    def test_missing_rule_is_not_stale(self):
        checker = FreshnessChecker(rules=[])

        check = checker.check_data_type(DataType.FEDERAL_POVERTY_LEVEL, date(2000, 1, 1), date(2025, 6, 1))

        assert not check.is_stale

    def test_check_document_skips_unknown_types_and_dates(self):
        today = date(2025, 6, 1)

        assert self.checker.check_document(_record("d", "brochure", date(2020, 1, 1)), today) is None
        assert self.checker.check_document(_record("d", "msp_guide", None), today) is None
        assert self.checker.check_document(_record("d", None, date(2020, 1, 1)), today) is None
        check = self.checker.check_document(_record("d", "chc_handbook", date(2024, 1, 1)), today)
        assert check is not None and check.data_type is DataType.CHC_HANDBOOK_UPMC


def test_every_data_type_has_rule_and_label():
    ruled = {rule.data_type for rule in DEFAULT_RULES}

    assert ruled == set(DataType)
    for data_type in DataType:
        assert format_data_type(data_type)


def test_document_type_mapping():
    assert data_type_for("msp_guide") is DataType.MSP_INCOME_LIMITS
    assert data_type_for("pa_code") is DataType.PA_CODE_CHAPTER_258
    assert data_type_for("unknown") is None
    assert data_type_for(None) is None


def test_income_limits_window_runs_april_to_march():
    assert income_limits_window(date(2025, 4, 1)) == "April 2025 - March 2026"
    assert income_limits_window(date(2025, 3, 31)) == "April 2024 - March 2025"


def test_seasonal_warnings():
    assert seasonal_warnings(date(2025, 2, 1))[0].message.startswith("Note: 2025 Federal Poverty Level figures")
    assert "March-May 2025" in seasonal_warnings(date(2025, 4, 1))[0].message
    assert seasonal_warnings(date(2025, 8, 1)) == []


class TestAnnotator:
    snapshot = DocumentSnapshot.from_records(
        [
            _record("msp", "msp_guide", date(2024, 1, 1), datetime(2025, 5, 20, tzinfo=timezone.utc)),
            _record("code", "pa_code", date(2019, 7, 1), datetime(2025, 5, 1, tzinfo=timezone.utc)),
            _record("brochure", "brochure", date(2023, 1, 1)),
        ]
    )

    def test_build_info_for_stale_income_document(self):
        annotator = FreshnessAnnotator(clock=lambda: FIXED_NOW)

        info = annotator.build_info([_citation("msp"), _citation("msp")], self.snapshot)

        assert info.has_stale_data
        assert info.last_retrieved == datetime(2025, 5, 20, tzinfo=timezone.utc)
        assert info.effective_period == "Calendar Year 2024 (unless otherwise noted)"
        assert info.income_limits_effective == "April 2025 - March 2026"
        assert len(info.warnings) == 1
        assert info.warnings[0].level is WarningLevel.WARNING
        assert info.warnings[0].data_type is DataType.MSP_INCOME_LIMITS

    def test_unknown_documents_and_types_are_excluded(self):
        annotator = FreshnessAnnotator(clock=lambda: FIXED_NOW)

        info = annotator.build_info([_citation("brochure"), _citation("missing"), _citation("code")], self.snapshot)

        assert not info.has_stale_data
        assert info.warnings == ()
        assert info.income_limits_effective is None
        assert info.effective_period == "Calendar Year 2023 (unless otherwise noted)"

    def test_empty_snapshot_uses_clock(self):
        annotator = FreshnessAnnotator(clock=lambda: FIXED_NOW)

        info = annotator.build_info([], DocumentSnapshot())

        assert info.last_retrieved == FIXED_NOW
        assert info.effective_period is None

    def test_seasonal_warnings_are_included(self):
        annotator = FreshnessAnnotator(clock=lambda: FIXED_NOW)

        info = annotator.build_info([], DocumentSnapshot(), check_date=date(2025, 1, 10))

        assert len(info.warnings) == 1
        assert info.warnings[0].level is WarningLevel.INFO

    def test_format_section(self):
        info = FreshnessInfo(
            last_retrieved=datetime(2025, 5, 20, tzinfo=timezone.utc),
            has_stale_data=True,
            effective_period="Calendar Year 2024 (unless otherwise noted)",
            income_limits_effective="April 2025 - March 2026",
            warnings=(
                FreshnessWarning(level=WarningLevel.WARNING, message="Limits may be outdated."),
                FreshnessWarning(level=WarningLevel.CRITICAL, message="Very old."),
            ),
        )

        section = FreshnessAnnotator.format_section(info)

        assert section.splitlines() == [
            "---",
            "**Source Information**",
            "- Sources last retrieved: May 20, 2025",
            "- Applies to: Calendar Year 2024 (unless otherwise noted)",
            "- Income limits effective: April 2025 - March 2026",
            "",
            "⚠️ Limits may be outdated.",
            "\U0001f6a8 Very old.",
        ]

    def test_annotate_appends_section(self):
        annotator = FreshnessAnnotator(clock=lambda: FIXED_NOW)
        info = FreshnessInfo(last_retrieved=FIXED_NOW)

        annotated = annotator.annotate("Answer text.", info)

        assert annotated == "Answer text.\n\n---\n**Source Information**\n- Sources last retrieved: June 15, 2025"


class CountingCatalog:
    def __init__(self, records, error: Exception | None = None) -> None:
        self.records = records
        self.error = error
        self.calls = 0

    async def list_documents(self):
        self.calls += 1
        await asyncio.sleep(0.01)
        if self.error is not None:
            raise self.error
        return self.records


@pytest.mark.asyncio
async def test_snapshot_loads_once_under_concurrent_first_use():
    catalog = CountingCatalog([_record("msp", "msp_guide", date(2024, 1, 1))])
    snapshot = DocumentMetadataSnapshot(catalog)

    results = await asyncio.gather(*(snapshot.get() for _ in range(5)))

    assert catalog.calls == 1
    assert all(result is results[0] for result in results)
    assert results[0].get("msp") is not None
    assert snapshot.loaded


@pytest.mark.asyncio
async def test_snapshot_failure_is_not_cached():
    catalog = CountingCatalog([], error=ConnectionError("db down"))
    snapshot = DocumentMetadataSnapshot(catalog)

    first = await snapshot.get()
    assert first.documents == {}
    assert not snapshot.loaded

    catalog.error = None
    catalog.records = [_record("msp", "msp_guide", date(2024, 1, 1))]
    second = await snapshot.get()

    assert catalog.calls == 2
    assert second.get("msp") is not None


@pytest.mark.asyncio
async def test_static_catalog_returns_records():
    records = [_record("a", "pa_code", date(2020, 1, 1))]

    assert list(await StaticDocumentCatalog(records).list_documents()) == records


def test_snapshot_compares_naive_and_aware_ingestion_times():
    snapshot = DocumentSnapshot.from_records(
        [
            _record("a", "msp_guide", date(2025, 1, 1), datetime(2025, 5, 20, 10, tzinfo=timezone.utc)),
            _record("b", "pa_code", date(2019, 7, 1), datetime(2025, 6, 1, 9)),
        ]
    )

    assert snapshot.last_ingested_at == datetime(2025, 6, 1, 9, tzinfo=timezone.utc)


class BrokenRecordCatalog:
    async def list_documents(self):
        return [object()]


@pytest.mark.asyncio
async def test_snapshot_build_error_degrades_to_empty():
    snapshot = DocumentMetadataSnapshot(BrokenRecordCatalog())

    result = await snapshot.get()

    assert result.documents == {}
    assert not snapshot.loaded
