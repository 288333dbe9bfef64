"""
Tax Estimator - Deduction Aggregator

Total deductions for the year:
- General expenses: immediate claim (cost × work %) or depreciation;
  anything dated after 30 June (or undated) contributes nothing
- Work from home:
    fixed_rate  - hours × ATO fixed rate (70c/hour for 2024-25)
    actual_cost - running costs by floor area / work use + asset depreciation
- Personal superannuation contributions (flat)
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable

from services.estimator.depreciation import item_depreciation_for_year, parse_date
from services.estimator.models import (
    Document,
    ExpenseRecord,
    TaxpayerDetails,
    WfhActualCostDetails,
    WfhData,
    WfhMethod,
)
from services.estimator.parameters import TaxParameters

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
MINUTES_PER_HOUR = Decimal("60")


def _d(value: float) -> Decimal:
    return Decimal(str(value))


def _round_currency(amount: Decimal) -> Decimal:
    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


@dataclass
class DeductionBreakdown:
    """Deductions by source"""
    general: Decimal
    wfh: Decimal
    superannuation: Decimal

    @property
    def total(self) -> Decimal:
        return self.general + self.wfh + self.superannuation

    def to_dict(self) -> Dict[str, Any]:
        return {
            "general": float(_round_currency(self.general)),
            "wfh": float(_round_currency(self.wfh)),
            "superannuation": float(_round_currency(self.superannuation)),
            "total": float(_round_currency(self.total)),
        }


# ==================== LINE ITEMS ====================

def line_item_deduction(item: ExpenseRecord, params: TaxParameters) -> Decimal:
    """Deduction for one expense or WFH asset in the parameter year."""
    purchased = parse_date(item.date)
    if purchased is None or purchased > params.year_end:
        return ZERO

    if item.is_depreciable:
        return item_depreciation_for_year(item, params)
    return _d(item.cost) * _d(item.work_percentage) / HUNDRED


def _sum_items(items: Iterable[ExpenseRecord], params: TaxParameters) -> Decimal:
    return sum((line_item_deduction(item, params) for item in items), ZERO)


def general_expense_deductions(expenses: Iterable[ExpenseRecord], params: TaxParameters) -> Decimal:
    return _sum_items(expenses, params)


# ==================== WORK FROM HOME ====================

def floor_area_ratio(details: WfhActualCostDetails) -> Decimal:
    """Office area ÷ total home area (0 when either is missing, at most 1)."""
    office = _d(details.office_area)
    total = _d(details.total_home_area)
    if office <= 0 or total <= 0:
        return ZERO
    return min(Decimal("1"), office / total)


def floor_area_percentage(details: WfhActualCostDetails) -> Decimal:
    """Floor area ratio as a percentage, two decimals (e.g. 12.50)."""
    return _round_currency(floor_area_ratio(details) * HUNDRED)


def wfh_running_costs(details: WfhActualCostDetails) -> Decimal:
    ratio = floor_area_ratio(details)
    return (
        (_d(details.electricity_cost) + _d(details.gas_cost)) * ratio
        + _d(details.internet_cost) * _d(details.internet_work_percent) / HUNDRED
        + _d(details.phone_cost)
        + _d(details.stationery_cost)
    )


def wfh_actual_cost_deduction(details: WfhActualCostDetails, params: TaxParameters) -> Decimal:
    return wfh_running_costs(details) + _sum_items(details.assets, params)


def wfh_fixed_rate_deduction(total_minutes: float, params: TaxParameters) -> Decimal:
    hours = _d(total_minutes) / MINUTES_PER_HOUR
    return hours * params.wfh_fixed_rate_per_hour


def wfh_deductions(wfh: WfhData, params: TaxParameters) -> Decimal:
    if wfh.method == WfhMethod.FIXED_RATE:
        return wfh_fixed_rate_deduction(wfh.total_minutes, params)
    if wfh.method == WfhMethod.ACTUAL_COST:
        return wfh_actual_cost_deduction(wfh.actual_cost_details, params)
    return ZERO


# ==================== TOTAL ====================

def superannuation_deduction(taxpayer: TaxpayerDetails) -> Decimal:
    return _d(taxpayer.personal_super_contribution)


def deduction_breakdown(document: Document, params: TaxParameters) -> DeductionBreakdown:
    breakdown = DeductionBreakdown(
        general=general_expense_deductions(document.general_expenses, params),
        wfh=wfh_deductions(document.wfh, params),
        superannuation=superannuation_deduction(document.taxpayer_details),
    )
    logger.debug(
        f"Deductions {params.financial_year}: general={breakdown.general} "
        f"wfh={breakdown.wfh} super={breakdown.superannuation}"
    )
    return breakdown


def total_deductions(document: Document, params: TaxParameters) -> Decimal:
    return deduction_breakdown(document, params).total
