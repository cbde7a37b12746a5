"""Staleness rules keyed by the kind of data a document carries."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Iterable, Mapping

from medirag.metrics.observability import get_logger
from medirag.models import DataType, DocumentRecord, WarningLevel


class UpdateFrequency(str, Enum):
    ANNUALLY_JANUARY = "annually_january"
    ANNUALLY_APRIL = "annually_april"
    ANNUALLY_OCTOBER = "annually_october"
    QUARTERLY = "quarterly"
    MONTHLY = "monthly"
    WEEKLY = "weekly"
    AS_NEEDED = "as_needed"

    @property
    def is_annual(self) -> bool:
        return self in _ANNUAL_MONTHS

    @property
    def update_month(self) -> int | None:
        return _ANNUAL_MONTHS.get(self)


_ANNUAL_MONTHS = {
    UpdateFrequency.ANNUALLY_JANUARY: 1,
    UpdateFrequency.ANNUALLY_APRIL: 4,
    UpdateFrequency.ANNUALLY_OCTOBER: 10,
}


@dataclass(frozen=True)
class FreshnessRule:
    data_type: DataType
    update_frequency: UpdateFrequency
    source_name: str
    source_url: str | None = None


@dataclass(frozen=True)
class FreshnessCheck:
    data_type: DataType
    is_stale: bool
    warning_level: WarningLevel
    warning_message: str | None = None
    stale_since: date | None = None
    next_expected_update: date | None = None


DEFAULT_RULES: tuple[FreshnessRule, ...] = (
    FreshnessRule(
        DataType.FEDERAL_POVERTY_LEVEL,
        UpdateFrequency.ANNUALLY_JANUARY,
        "Federal Register",
        "https://aspe.hhs.gov/poverty-guidelines",
    ),
    FreshnessRule(DataType.MSP_INCOME_LIMITS, UpdateFrequency.ANNUALLY_APRIL, "CMS/PHLP"),
    FreshnessRule(DataType.NURSING_HOME_FBR, UpdateFrequency.ANNUALLY_JANUARY, "SSA", "https://www.ssa.gov"),
    FreshnessRule(DataType.SPOUSAL_PROTECTION, UpdateFrequency.ANNUALLY_JANUARY, "CMS"),
    FreshnessRule(DataType.PART_D_COSTS, UpdateFrequency.ANNUALLY_OCTOBER, "Medicare.gov", "https://www.medicare.gov"),
    FreshnessRule(
        DataType.PACE_PACENET_LIMITS,
        UpdateFrequency.ANNUALLY_JANUARY,
        "PA Aging",
        "https://www.aging.pa.gov",
    ),
    FreshnessRule(DataType.CHESTER_COUNTY_CONTACTS, UpdateFrequency.QUARTERLY, "County websites"),
    FreshnessRule(DataType.OIM_OPS_MEMO, UpdateFrequency.WEEKLY, "PA DHS Office of Income Maintenance"),
    FreshnessRule(DataType.OIM_POLICY_CLARIFICATION, UpdateFrequency.WEEKLY, "PA DHS Office of Income Maintenance"),
    FreshnessRule(
        DataType.PA_BULLETIN_DHS,
        UpdateFrequency.WEEKLY,
        "Pennsylvania Bulletin",
        "https://www.pacodeandbulletin.gov/Display/pabull",
    ),
    FreshnessRule(DataType.OIM_LTC_HANDBOOK, UpdateFrequency.MONTHLY, "PA DHS Office of Income Maintenance"),
    FreshnessRule(DataType.OIM_MA_HANDBOOK, UpdateFrequency.MONTHLY, "PA DHS Office of Income Maintenance"),
    FreshnessRule(DataType.PA_CODE_CHAPTER_258, UpdateFrequency.AS_NEEDED, "Pennsylvania Code"),
    FreshnessRule(DataType.CHC_PUBLICATIONS, UpdateFrequency.QUARTERLY, "PA DHS Community HealthChoices"),
    FreshnessRule(DataType.CHC_HANDBOOK_UPMC, UpdateFrequency.ANNUALLY_JANUARY, "UPMC Community HealthChoices"),
    FreshnessRule(
        DataType.CHC_HANDBOOK_AMERIHEALTH,
        UpdateFrequency.ANNUALLY_JANUARY,
        "AmeriHealth Caritas PA Community HealthChoices",
    ),
    FreshnessRule(DataType.CHC_HANDBOOK_PHW, UpdateFrequency.ANNUALLY_JANUARY, "PA Health & Wellness"),
)

DOCUMENT_DATA_TYPES: Mapping[str, DataType] = {
    "msp_guide": DataType.MSP_INCOME_LIMITS,
    "income_limits": DataType.FEDERAL_POVERTY_LEVEL,
    "ltc_info": DataType.NURSING_HOME_FBR,
    "estate_recovery": DataType.NURSING_HOME_FBR,
    "pace_pacenet": DataType.PACE_PACENET_LIMITS,
    "life_program": DataType.NURSING_HOME_FBR,
    "chc_waiver": DataType.NURSING_HOME_FBR,
    "general_eligibility": DataType.FEDERAL_POVERTY_LEVEL,
    "oim_ltc_handbook": DataType.OIM_LTC_HANDBOOK,
    "oim_ma_handbook": DataType.OIM_MA_HANDBOOK,
    "oim_ops_memo": DataType.OIM_OPS_MEMO,
    "oim_policy_clarification": DataType.OIM_POLICY_CLARIFICATION,
    "pa_code": DataType.PA_CODE_CHAPTER_258,
    "pa_bulletin": DataType.PA_BULLETIN_DHS,
    "chc_publications": DataType.CHC_PUBLICATIONS,
    # MCO-specific handbooks are not distinguished by document type
    "chc_handbook": DataType.CHC_HANDBOOK_UPMC,
}

DATA_TYPE_LABELS: Mapping[DataType, str] = {
    DataType.FEDERAL_POVERTY_LEVEL: "Federal Poverty Level (FPL)",
    DataType.MSP_INCOME_LIMITS: "Medicare Savings Program income limits",
    DataType.NURSING_HOME_FBR: "nursing home income limits",
    DataType.SPOUSAL_PROTECTION: "spousal protection amounts",
    DataType.PART_D_COSTS: "Part D prescription drug costs",
    DataType.PACE_PACENET_LIMITS: "PACE/PACENET income limits",
    DataType.CHESTER_COUNTY_CONTACTS: "Chester County contact information",
    DataType.OIM_OPS_MEMO: "OIM Operations Memoranda",
    DataType.OIM_POLICY_CLARIFICATION: "OIM Policy Clarifications",
    DataType.PA_BULLETIN_DHS: "PA Bulletin DHS notices",
    DataType.OIM_LTC_HANDBOOK: "OIM Long-Term Care Handbook",
    DataType.OIM_MA_HANDBOOK: "OIM Medical Assistance Handbook",
    DataType.PA_CODE_CHAPTER_258: "PA Code Chapter 258 (Estate Recovery)",
    DataType.CHC_PUBLICATIONS: "CHC Publications Hub",
    DataType.CHC_HANDBOOK_UPMC: "UPMC Community HealthChoices Handbook",
    DataType.CHC_HANDBOOK_AMERIHEALTH: "AmeriHealth Caritas CHC Handbook",
    DataType.CHC_HANDBOOK_PHW: "PA Health & Wellness CHC Handbook",
}


def format_data_type(data_type: DataType) -> str:
    return DATA_TYPE_LABELS[data_type]


def data_type_for(document_type: str | None) -> DataType | None:
    if not document_type:
        return None
    return DOCUMENT_DATA_TYPES.get(document_type)


def months_between(start: date, end: date) -> int:
    """Calendar-month difference, ignoring the day of month."""

    return (end.year - start.year) * 12 + (end.month - start.month)


class FreshnessChecker:
    """Evaluates how stale a piece of data is relative to its update cadence."""

    def __init__(self, rules: Iterable[FreshnessRule] | None = None) -> None:
        self._rules = {rule.data_type: rule for rule in (DEFAULT_RULES if rules is None else rules)}
        self._logger = get_logger("freshness")

    def rule_for(self, data_type: DataType) -> FreshnessRule | None:
        return self._rules.get(data_type)

    def check_data_type(self, data_type: DataType, effective_date: date, check_date: date) -> FreshnessCheck:
        rule = self._rules.get(data_type)
        if rule is None:
            return FreshnessCheck(data_type=data_type, is_stale=False, warning_level=WarningLevel.NONE)
        return self._evaluate(rule, effective_date, check_date)

    def check_document(self, document: DocumentRecord, check_date: date) -> FreshnessCheck | None:
        """Check a catalogued document; ``None`` when its type or date is unknown."""

        if document.effective_date is None:
            return None
        data_type = data_type_for(document.document_type)
        if data_type is None:
            return None
        return self.check_data_type(data_type, document.effective_date, check_date)

    def _evaluate(self, rule: FreshnessRule, effective_date: date, check_date: date) -> FreshnessCheck:
        label = format_data_type(rule.data_type)
        frequency = rule.update_frequency
        effective_year = effective_date.year
        is_stale = False
        level = WarningLevel.NONE
        message: str | None = None
        stale_since: date | None = None
        next_update: date | None = None

        if frequency.is_annual:
            update_month = frequency.update_month or 1
            if check_date.year > effective_year and check_date.month >= update_month:
                is_stale = True
                stale_since = date(check_date.year, update_month, 1)
                level = WarningLevel.WARNING if check_date.month > update_month else WarningLevel.INFO
                message = (
                    f"This {label} data is from {effective_year}. {check_date.year} updates are typically "
                    f"available after {calendar.month_name[update_month]} {check_date.year}."
                )
            if check_date.month < update_month:
                next_update = date(check_date.year, update_month, 1)
            else:
                next_update = date(check_date.year + 1, update_month, 1)
        elif frequency is UpdateFrequency.QUARTERLY:
            if months_between(effective_date, check_date) > 3:
                is_stale = True
                level = WarningLevel.INFO
                message = f"This {label} may be outdated. Contact information should be verified quarterly."
        elif frequency is UpdateFrequency.MONTHLY:
            months = months_between(effective_date, check_date)
            if months > 1:
                is_stale = True
                level = WarningLevel.WARNING if months > 3 else WarningLevel.INFO
                message = f"This {label} may be outdated. Policy handbooks should be checked monthly."
        elif frequency is UpdateFrequency.WEEKLY:
            days = (check_date - effective_date).days
            if days > 7:
                is_stale = True
                level = WarningLevel.WARNING if days > 14 else WarningLevel.INFO
                message = f"This {label} may be outdated. This source should be checked weekly for updates."
        elif frequency is not UpdateFrequency.AS_NEEDED:
            raise ValueError(f"Unhandled update frequency: {frequency}")

        if is_stale and check_date.year > effective_year + 1:
            level = WarningLevel.CRITICAL
            message = (
                f"This {label} data is from {effective_year} and is significantly outdated. "
                f"Please verify current information with {rule.source_name}."
            )

        self._logger.debug(
            "freshness.checked",
            data_type=rule.data_type.value,
            effective_year=effective_year,
            check_year=check_date.year,
            is_stale=is_stale,
            level=level.value,
        )
        return FreshnessCheck(
            data_type=rule.data_type,
            is_stale=is_stale,
            warning_level=level,
            warning_message=message,
            stale_since=stale_since,
            next_expected_update=next_update,
        )
