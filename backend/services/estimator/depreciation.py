"""
Tax Estimator - Depreciation Engine

Deductible portion of a capital item's cost:
- Straight line: cost ÷ effective life each year
- Declining balance: opening value × (200% ÷ effective life), where the
  opening value is the cost written down once per complete financial year
  since purchase
- Pro-rata by days held in the year of purchase (days ÷ 365)
- Work-use percentage applied last
- Immediate write-off for items without an effective life, or costing no
  more than the low-value threshold

Also projects the full multi-year schedule for a single item.
Amounts are Decimal and unrounded; rounding happens in to_dict().
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Union

from services.estimator.models import DepreciationMethod, ExpenseRecord, enum_or
from services.estimator.parameters import (
    TaxParameters,
    financial_year_bounds,
    financial_year_of,
)

logger = logging.getLogger(__name__)


DAYS_IN_YEAR = Decimal("365")
HUNDRED = Decimal("100")
ZERO = Decimal("0")

# Supported date formats for user-entered dates
DATE_FORMATS = [
    "%Y-%m-%d",        # ISO format
    "%d/%m/%Y",        # Australian format
    "%d-%m-%Y",
    "%Y/%m/%d",
    "%d %b %Y",        # 15 Jan 2025
    "%d %B %Y",        # 15 January 2025
]

IMMEDIATE = "immediate"

# Missing or unknown methods depreciate on a straight line
_coerce_method = enum_or(DepreciationMethod, DepreciationMethod.STRAIGHT_LINE)


def _round_currency(amount: Decimal) -> Decimal:
    """Round to 2 decimal places for currency."""
    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _to_decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def parse_date(value: Any) -> Optional[date]:
    """Parse date from various formats; None when it can't be read."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    if not value:
        return None

    value_str = str(value).strip()
    if "T" in value_str:
        value_str = value_str.split("T", 1)[0]

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value_str, fmt).date()
        except ValueError:
            continue

    return None


def days_owned_in_year(purchase_date: date, year_end: date) -> int:
    """Days from purchase to 30 June inclusive."""
    return (year_end - purchase_date).days + 1


def _pro_rata_factor(purchase_date: date, year_start: date, year_end: date) -> Decimal:
    if purchase_date < year_start:
        return Decimal("1")
    days = max(0, days_owned_in_year(purchase_date, year_end))
    return min(Decimal("1"), Decimal(days) / DAYS_IN_YEAR)


def _declining_rate(effective_life: Decimal) -> Decimal:
    # 200% / effective life, never more than the whole remaining value
    if effective_life <= 1:
        return Decimal("1")
    return min(Decimal("1"), Decimal("2") / effective_life)


def _has_no_life(effective_life: Optional[Decimal]) -> bool:
    return effective_life is None or effective_life <= 0


def _is_low_value(cost: Decimal, low_value_threshold: Optional[Decimal]) -> bool:
    return low_value_threshold is not None and cost <= low_value_threshold


def depreciation_for_year(
    cost: Union[float, Decimal],
    work_percentage: Union[float, Decimal],
    effective_life_years: Optional[Union[float, Decimal]],
    purchase_date: Any,
    method: Union[str, DepreciationMethod],
    financial_year: str,
    low_value_threshold: Optional[Decimal] = None,
) -> Decimal:
    """
    Work-related depreciation of one item for the given financial year.

    Returns 0 for non-positive cost, and for items bought after the year ends
    or with an unreadable purchase date. Items without an effective life are
    written off immediately regardless of the date; low-value items only when
    held in the year. A missing or unknown method means straight line.
    """
    cost_d = _to_decimal(cost)
    if cost_d <= 0:
        return ZERO

    work_fraction = _to_decimal(work_percentage) / HUNDRED
    life = _to_decimal(effective_life_years) if effective_life_years is not None else None

    if _has_no_life(life):
        return cost_d * work_fraction

    purchased = parse_date(purchase_date)
    year_start, year_end = financial_year_bounds(financial_year)
    if purchased is None or purchased > year_end:
        logger.debug(f"Asset not held in {financial_year} (purchase date {purchase_date!r})")
        return ZERO

    if _is_low_value(cost_d, low_value_threshold):
        return cost_d * work_fraction

    method = _coerce_method(method)
    if method == DepreciationMethod.DECLINING_BALANCE:
        rate = _declining_rate(life)
        years_elapsed = max(0, year_start.year - financial_year_bounds(financial_year_of(purchased))[0].year)
        opening_value = cost_d
        for _ in range(years_elapsed):
            opening_value -= opening_value * rate
        annual = opening_value * rate
    else:
        annual = cost_d / life

    work_related = annual * work_fraction
    return work_related * _pro_rata_factor(purchased, year_start, year_end)


def item_depreciation_for_year(item: ExpenseRecord, params: TaxParameters) -> Decimal:
    """Depreciation engine applied to a document line item."""
    return depreciation_for_year(
        cost=item.cost,
        work_percentage=item.work_percentage,
        effective_life_years=item.depreciable_life,
        purchase_date=item.date,
        method=item.depreciation_method,
        financial_year=params.financial_year,
        low_value_threshold=params.low_value_write_off_threshold,
    )


# ==================== SCHEDULE ====================

@dataclass
class ScheduleYear:
    """One financial year of a depreciation schedule"""
    year_number: int
    financial_year: str
    opening_value: Decimal
    pro_rata_factor: Decimal
    depreciation: Decimal  # cost-equivalent decline in value
    deduction: Decimal     # work-related portion
    closing_value: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year_number": self.year_number,
            "financial_year": self.financial_year,
            "opening_value": float(_round_currency(self.opening_value)),
            "pro_rata_factor": float(self.pro_rata_factor.quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)),
            "depreciation": float(_round_currency(self.depreciation)),
            "deduction": float(_round_currency(self.deduction)),
            "closing_value": float(_round_currency(self.closing_value)),
        }


@dataclass
class DepreciationSchedule:
    """Per-year deductions from purchase to the end of effective life.

    method is "immediate" for items claimed in full in the year of purchase;
    such schedules have no years and carry immediate_deduction instead.
    """
    method: str
    cost: Decimal
    work_percentage: Decimal
    effective_life_years: Optional[Decimal]
    years: List[ScheduleYear] = field(default_factory=list)
    immediate_deduction: Decimal = ZERO
    notes: List[str] = field(default_factory=list)

    @property
    def is_immediate(self) -> bool:
        return self.method == IMMEDIATE

    @property
    def deductions(self) -> List[Decimal]:
        return [year.deduction for year in self.years]

    @property
    def total_deduction(self) -> Decimal:
        if self.is_immediate:
            return self.immediate_deduction
        return sum(self.deductions, ZERO)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "is_immediate": self.is_immediate,
            "cost": float(self.cost),
            "work_percentage": float(self.work_percentage),
            "effective_life_years": float(self.effective_life_years) if self.effective_life_years is not None else None,
            "immediate_deduction": float(_round_currency(self.immediate_deduction)),
            "years": [year.to_dict() for year in self.years],
            "total_deduction": float(_round_currency(self.total_deduction)),
            "notes": self.notes,
        }


def depreciation_schedule(
    cost: Union[float, Decimal],
    work_percentage: Union[float, Decimal],
    effective_life_years: Optional[Union[float, Decimal]],
    purchase_date: Any,
    method: Union[str, DepreciationMethod],
    low_value_threshold: Optional[Decimal] = None,
) -> DepreciationSchedule:
    """
    Project deductions for every year from purchase to the end of effective life.

    The opening value carries forward, reduced each year by that year's
    cost-equivalent depreciation so the work percentage does not compound.
    The first year is pro-rated by days held.
    Low-value items with an unreadable purchase date get no deduction.
    """
    cost_d = _to_decimal(cost)
    work_pct = _to_decimal(work_percentage)
    work_fraction = work_pct / HUNDRED
    life = _to_decimal(effective_life_years) if effective_life_years is not None else None

    purchased = parse_date(purchase_date)

    if _has_no_life(life) or _is_low_value(cost_d, low_value_threshold):
        immediate = DepreciationSchedule(
            method=IMMEDIATE,
            cost=cost_d,
            work_percentage=work_pct,
            effective_life_years=None,
            immediate_deduction=max(ZERO, cost_d) * work_fraction,
        )
        if not _has_no_life(life):
            if purchased is None:
                immediate.immediate_deduction = ZERO
                immediate.notes.append("No deduction: purchase date missing or invalid")
            else:
                immediate.notes.append(
                    f"Cost at or below ${low_value_threshold} low-value threshold: claimed immediately"
                )
        return immediate

    method = _coerce_method(method)
    schedule = DepreciationSchedule(
        method=method.value,
        cost=cost_d,
        work_percentage=work_pct,
        effective_life_years=life,
    )

    if cost_d <= 0 or purchased is None:
        schedule.notes.append("No schedule: cost must be positive and purchase date valid")
        return schedule

    first_year = financial_year_of(purchased)
    first_start_year = financial_year_bounds(first_year)[0].year
    rate = _declining_rate(life)
    opening_value = cost_d

    for year_number in range(1, math.ceil(life) + 1):
        start_year = first_start_year + year_number - 1
        label = f"{start_year}-{start_year + 1}"
        year_start, year_end = financial_year_bounds(label)

        factor = _pro_rata_factor(purchased, year_start, year_end)
        if method == DepreciationMethod.DECLINING_BALANCE:
            annual = opening_value * rate
        else:
            annual = cost_d / life

        decline = min(opening_value, annual * factor)
        closing_value = opening_value - decline

        schedule.years.append(ScheduleYear(
            year_number=year_number,
            financial_year=label,
            opening_value=opening_value,
            pro_rata_factor=factor,
            depreciation=decline,
            deduction=decline * work_fraction,
            closing_value=closing_value,
        ))
        opening_value = closing_value

    if schedule.years and schedule.years[0].pro_rata_factor < 1:
        schedule.notes.append(
            f"First year pro-rated: {days_owned_in_year(purchased, financial_year_bounds(first_year)[1])} days held"
        )

    return schedule


def item_depreciation_schedule(item: ExpenseRecord, params: Optional[TaxParameters] = None) -> DepreciationSchedule:
    """Schedule for a document line item (expense or WFH asset)."""
    return depreciation_schedule(
        cost=item.cost,
        work_percentage=item.work_percentage,
        effective_life_years=item.depreciable_life,
        purchase_date=item.date,
        method=item.depreciation_method,
        low_value_threshold=params.low_value_write_off_threshold if params else None,
    )
