"""
Tax Estimator - Tax Parameter Tables

Year-scoped constants for Australian individual income tax:
- Income tax brackets (Stage 3 rates from 1 July 2024)
- Low Income Tax Offset (LITO)
- Medicare levy thresholds and phase-in
- Medicare Levy Surcharge (MLS) tiers
- Private Health Insurance (PHI) rebate rates per sub-period
- Work from home fixed rate, low-value write-off threshold

Tables are immutable and selected by financial year label ("2024-2025").
Bracket and tier tables are checked on construction: ascending, contiguous
(max + 1 == next min) and only the last entry unbounded.

Source: ATO published rates and thresholds for 2024-25.
"""

import logging
import re
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from services.estimator.errors import TaxConfigurationError

logger = logging.getLogger(__name__)


PHI_TIERS = ("base", "tier1", "tier2", "tier3")


# ==================== TABLE ENTRIES ====================

class ParameterModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class IncomeBracket(ParameterModel):
    """Progressive bracket; base is the tax payable on income up to min - 1"""
    min: int
    max: Optional[int] = None  # None = unbounded
    rate: Decimal
    base: Decimal = Decimal("0")


class SurchargeTier(ParameterModel):
    """MLS / PHI income tier"""
    min: int
    max: Optional[int] = None
    rate: Decimal


def _check_partition(entries, label: str):
    if not entries:
        raise ValueError(f"{label}: at least one entry is required")
    if entries[0].min != 0:
        raise ValueError(f"{label}: first entry must start at 0")
    for current, following in zip(entries, entries[1:]):
        if current.max is None:
            raise ValueError(f"{label}: only the last entry may be unbounded")
        if following.min != current.max + 1:
            raise ValueError(
                f"{label}: gap or overlap between {current.min}-{current.max} and {following.min}"
            )
    if entries[-1].max is not None:
        raise ValueError(f"{label}: last entry must be unbounded")


class LITOParameters(ParameterModel):
    max_offset: Decimal
    threshold_1: Decimal
    threshold_2: Decimal
    threshold_3: Decimal
    reduction_rate_1: Decimal
    reduction_rate_2: Decimal


class MedicareParameters(ParameterModel):
    rate: Decimal
    phase_in_rate: Decimal
    single_threshold: Decimal
    single_phase_in_upper: Decimal
    family_threshold: Decimal
    family_phase_in_upper: Decimal
    # Family threshold / upper increase for each dependent child
    child_threshold_adjustment: Decimal
    child_phase_in_adjustment: Decimal


class MLSParameters(ParameterModel):
    single_tiers: Tuple[SurchargeTier, ...]
    family_tiers: Tuple[SurchargeTier, ...]
    # Family tiers increase by this for each dependent child after the first
    child_adjustment: int

    @model_validator(mode="after")
    def _tiers_partition(self):
        _check_partition(self.single_tiers, "MLS single tiers")
        _check_partition(self.family_tiers, "MLS family tiers")
        if len(self.single_tiers) != len(self.family_tiers):
            raise ValueError("MLS single and family tables must have the same number of tiers")
        if self.single_tiers[0].rate != 0 or self.family_tiers[0].rate != 0:
            raise ValueError("MLS base tier rate must be 0")
        return self


class PHIRebatePeriod(ParameterModel):
    """Rebate rates for one sub-period of the financial year"""
    key: str
    start: date
    end: date
    rates: Dict[str, Dict[str, Decimal]]  # age bracket -> tier -> rate

    @field_validator("rates")
    @classmethod
    def _all_tiers_present(cls, rates):
        for age_bracket, tiers in rates.items():
            missing = [tier for tier in PHI_TIERS if tier not in tiers]
            if missing:
                raise ValueError(f"PHI rates for {age_bracket} missing tiers: {', '.join(missing)}")
        return rates


class TaxParameters(ParameterModel):
    """Complete parameter set for one financial year"""
    financial_year: str
    income_brackets: Tuple[IncomeBracket, ...]
    lito: LITOParameters
    medicare: MedicareParameters
    mls: MLSParameters
    phi_rebate_periods: Tuple[PHIRebatePeriod, ...]
    wfh_fixed_rate_per_hour: Decimal
    low_value_write_off_threshold: Optional[Decimal] = None

    @model_validator(mode="after")
    def _brackets_partition(self):
        _check_partition(self.income_brackets, "Income brackets")
        return self

    @property
    def year_start(self) -> date:
        return financial_year_bounds(self.financial_year)[0]

    @property
    def year_end(self) -> date:
        return financial_year_bounds(self.financial_year)[1]

    def phi_period(self, key: str) -> PHIRebatePeriod:
        for period in self.phi_rebate_periods:
            if period.key == key:
                return period
        raise TaxConfigurationError(
            f"Unknown private health insurance rebate period '{key}' for {self.financial_year}",
            parameter="phi_premiums",
        )


# ==================== FINANCIAL YEAR ====================

_YEAR_LABEL = re.compile(r"^\s*(\d{4})\s*[-/]\s*(\d{2}|\d{4})\s*$")


def normalise_financial_year(label: str) -> str:
    """Accept '2024-2025' or '2024-25' and return '2024-2025'."""
    match = _YEAR_LABEL.match(label or "")
    if not match:
        raise TaxConfigurationError(f"Invalid financial year label: {label!r}", parameter="financial_year")
    start = int(match.group(1))
    end_text = match.group(2)
    if len(end_text) == 4:
        end = int(end_text)
    else:
        end = start + 1 if (start + 1) % 100 == int(end_text) else None
    if end != start + 1:
        raise TaxConfigurationError(f"Invalid financial year label: {label!r}", parameter="financial_year")
    return f"{start}-{end}"


def financial_year_bounds(label: str) -> Tuple[date, date]:
    """1 July to 30 June for the given label."""
    start_year = int(normalise_financial_year(label)[:4])
    return date(start_year, 7, 1), date(start_year + 1, 6, 30)


def financial_year_of(day: date) -> str:
    """Label of the financial year containing the given date."""
    start_year = day.year if day.month >= 7 else day.year - 1
    return f"{start_year}-{start_year + 1}"


# ==================== 2024-25 ====================

def _tiers(*rows) -> Tuple[SurchargeTier, ...]:
    return tuple(SurchargeTier(min=lo, max=hi, rate=Decimal(rate)) for lo, hi, rate in rows)


def _phi_rates(under65, age65to69, age70plus) -> Dict[str, Dict[str, Decimal]]:
    def row(values):
        return {tier: Decimal(value) for tier, value in zip(PHI_TIERS, values)}
    return {
        "under65": row(under65),
        "65to69": row(age65to69),
        "70plus": row(age70plus),
    }


TAX_PARAMETERS_2024_25 = TaxParameters(
    financial_year="2024-2025",
    income_brackets=(
        IncomeBracket(min=0, max=18200, rate=Decimal("0"), base=Decimal("0")),
        IncomeBracket(min=18201, max=45000, rate=Decimal("0.16"), base=Decimal("0")),
        IncomeBracket(min=45001, max=135000, rate=Decimal("0.30"), base=Decimal("4288")),
        IncomeBracket(min=135001, max=190000, rate=Decimal("0.37"), base=Decimal("31288")),
        IncomeBracket(min=190001, max=None, rate=Decimal("0.45"), base=Decimal("51638")),
    ),
    lito=LITOParameters(
        max_offset=Decimal("700"),
        threshold_1=Decimal("37500"),
        threshold_2=Decimal("45000"),
        threshold_3=Decimal("66667"),
        reduction_rate_1=Decimal("0.05"),    # 5 cents per dollar
        reduction_rate_2=Decimal("0.015"),   # 1.5 cents per dollar
    ),
    medicare=MedicareParameters(
        rate=Decimal("0.02"),
        phase_in_rate=Decimal("0.10"),
        single_threshold=Decimal("27222"),
        single_phase_in_upper=Decimal("34027"),
        family_threshold=Decimal("45907"),
        family_phase_in_upper=Decimal("57383"),
        child_threshold_adjustment=Decimal("4216"),
        child_phase_in_adjustment=Decimal("5270"),
    ),
    mls=MLSParameters(
        single_tiers=_tiers(
            (0, 97000, "0"),
            (97001, 113000, "0.01"),
            (113001, 151000, "0.0125"),
            (151001, None, "0.015"),
        ),
        family_tiers=_tiers(
            (0, 194000, "0"),
            (194001, 226000, "0.01"),
            (226001, 302000, "0.0125"),
            (302001, None, "0.015"),
        ),
        child_adjustment=1500,
    ),
    phi_rebate_periods=(
        PHIRebatePeriod(
            key="2024-07-01_2025-03-31",
            start=date(2024, 7, 1),
            end=date(2025, 3, 31),
            rates=_phi_rates(
                ("0.24608", "0.16405", "0.08202", "0"),
                ("0.28710", "0.20507", "0.12303", "0"),
                ("0.32812", "0.24608", "0.16405", "0"),
            ),
        ),
        PHIRebatePeriod(
            key="2025-04-01_2025-06-30",
            start=date(2025, 4, 1),
            end=date(2025, 6, 30),
            rates=_phi_rates(
                ("0.24288", "0.16192", "0.08095", "0"),
                ("0.28337", "0.20240", "0.12143", "0"),
                ("0.32385", "0.24288", "0.16192", "0"),
            ),
        ),
    ),
    wfh_fixed_rate_per_hour=Decimal("0.70"),  # 70 cents per hour from 1 July 2024
    low_value_write_off_threshold=Decimal("300"),
)


TAX_PARAMETERS: Dict[str, TaxParameters] = {
    TAX_PARAMETERS_2024_25.financial_year: TAX_PARAMETERS_2024_25,
}


def get_tax_parameters(financial_year: str) -> TaxParameters:
    """Parameter table for a financial year; unknown years are a configuration error."""
    label = normalise_financial_year(financial_year)
    params = TAX_PARAMETERS.get(label)
    if params is None:
        logger.warning(f"No tax parameters configured for {label}")
        raise TaxConfigurationError(
            f"No tax parameters configured for financial year {label}",
            parameter="financial_year",
        )
    return params


def supported_financial_years() -> List[str]:
    return sorted(TAX_PARAMETERS)
