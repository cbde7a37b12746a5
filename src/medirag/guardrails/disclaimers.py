"""Disclaimer and referral text for sensitive topics."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from medirag.models import SensitiveCategory

DISCLAIMERS: Mapping[SensitiveCategory, str] = {
    SensitiveCategory.ESTATE_PLANNING: (
        "This is general information only and should not be considered legal advice. "
        "Estate planning decisions can significantly affect your Medicaid eligibility. "
        "Please consult with an elder law attorney before making any decisions."
    ),
    SensitiveCategory.SPEND_DOWN: (
        "Medicaid has strict rules about asset transfers and spend-down strategies. "
        "Improper transfers can result in penalty periods that delay your eligibility. "
        "Consult with a Medicaid planning professional before taking any action."
    ),
    SensitiveCategory.ASSET_TRANSFER: (
        'Asset transfers within 5 years of applying for Medicaid ("look-back period") '
        "can result in penalties that delay your coverage. This includes transfers to "
        "family members, trusts, or others. Please consult an elder law attorney."
    ),
    SensitiveCategory.SPOUSAL_COMPLEX: (
        "Spousal situations involving Medicaid can be legally and emotionally complex. "
        "Pennsylvania has specific rules about spousal protections and responsibilities. "
        "Free counseling is available through PHLP (Pennsylvania Health Law Project)."
    ),
    SensitiveCategory.APPEALS: (
        "You have the right to appeal Medicaid decisions. There are strict deadlines "
        "for filing appeals, typically 30 days from the decision notice. "
        "Free legal help is available for Medicaid appeals."
    ),
    SensitiveCategory.LOOK_BACK_PERIOD: (
        "Pennsylvania applies a 60-month (5-year) look-back period for asset transfers. "
        "Any transfers made during this period may result in a penalty period that delays "
        "Medicaid coverage. Penalties are calculated based on the value transferred divided by "
        "the average monthly cost of nursing home care. Consult an elder law attorney before "
        "making any transfers."
    ),
}

REFERRALS: Mapping[SensitiveCategory, str] = {
    SensitiveCategory.ESTATE_PLANNING: (
        "PA Elder Law Attorney Referral through the Pennsylvania Bar Association: 1-800-932-0311"
    ),
    SensitiveCategory.SPEND_DOWN: (
        "Pennsylvania Health Law Project (PHLP) - Free Medicaid guidance: 1-800-274-3258\n"
        "Website: www.phlp.org"
    ),
    SensitiveCategory.ASSET_TRANSFER: (
        "Elder Law Attorney - Find one through the National Academy of Elder Law Attorneys (NAELA)\n"
        "PA Referral: 1-800-932-0311"
    ),
    SensitiveCategory.SPOUSAL_COMPLEX: (
        "PHLP Helpline (free, confidential help for complex Medicaid situations): 1-800-274-3258\n"
        "Chester County CAO: 610-466-1000"
    ),
    SensitiveCategory.APPEALS: (
        "PHLP Appeals Assistance (free representation for Medicaid appeals): 1-800-274-3258\n"
        "Pennsylvania Legal Aid Network: 1-800-322-7572"
    ),
    SensitiveCategory.LOOK_BACK_PERIOD: (
        "Elder Law Attorney - Specializing in Medicaid planning and asset protection\n"
        "PA Bar Association Referral: 1-800-932-0311\n"
        "PHLP (free guidance on Medicaid rules): 1-800-274-3258"
    ),
}


@dataclass(frozen=True)
class Resource:
    name: str
    phone: str
    description: str | None = None


COUNTY_RESOURCES: tuple[Resource, ...] = (
    Resource(name="Chester County Assistance Office (CAO)", phone="610-466-1000"),
    Resource(
        name="APPRISE Medicare Counseling (Chester County)",
        phone="610-344-6350",
        description="Free Medicare counseling and assistance",
    ),
    Resource(name="PA MEDI Helpline", phone="1-800-783-7067", description="Medicare enrollment and assistance"),
    Resource(name="Pennsylvania Health Law Project", phone="1-800-274-3258", description="Free Medicaid legal help"),
)


def disclaimer_for(category: SensitiveCategory) -> str:
    return DISCLAIMERS[category]


def referral_for(category: SensitiveCategory) -> str | None:
    return REFERRALS.get(category)


def format_county_resources() -> str:
    blocks = []
    for resource in COUNTY_RESOURCES:
        block = f"**{resource.name}**\nPhone: {resource.phone}"
        if resource.description:
            block += f"\n{resource.description}"
        blocks.append(block)
    return "\n\n".join(blocks)


def general_disclaimer() -> str:
    return (
        "This information is provided for educational purposes only and may not reflect "
        "the most current regulations. Income and asset limits are updated annually. "
        "For the most accurate information, contact your local County Assistance Office "
        "or call PHLP at 1-800-274-3258."
    )
