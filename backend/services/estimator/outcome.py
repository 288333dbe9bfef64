"""
Tax Estimator - Tax Outcome Calculator

Implements the individual tax return estimate:
1. Taxable income = assessable income - deductions (never below 0)
2. Gross tax from progressive brackets (highest matching floor wins)
3. Low Income Tax Offset (LITO) - two-step phase-down
4. Medicare levy - shade-in band, family thresholds, exemption days
5. Medicare Levy Surcharge (MLS) - when no private hospital cover
6. Private Health Insurance (PHI) rebate offset - per rate sub-period
7-9. Offsets, net tax payable, refund / amount owing

All calculations are deterministic functions of (document, parameters).
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import Any, Dict, Optional

from services.estimator.deductions import DeductionBreakdown, deduction_breakdown
from services.estimator.errors import TaxConfigurationError
from services.estimator.income import total_assessable_income, total_tax_withheld
from services.estimator.models import Document, TaxpayerDetails
from services.estimator.parameters import PHI_TIERS, TaxParameters, get_tax_parameters

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
DAYS_IN_YEAR = Decimal("365")


def _d(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value or 0))


def _round_currency(amount: Decimal) -> Decimal:
    """Round to 2 decimal places for currency."""
    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _whole_dollars(amount: Decimal) -> Decimal:
    return amount.to_integral_value(rounding=ROUND_FLOOR)


# ==================== TAXABLE INCOME & GROSS TAX ====================

def taxable_income(assessable_income: Decimal, deductions: Decimal) -> Decimal:
    return max(ZERO, _d(assessable_income) - _d(deductions))


def gross_tax(income: Decimal, params: TaxParameters) -> Decimal:
    """
    Bracket tax: base + (income - (bracket.min - 1)) × rate.

    Brackets are searched from the top; the first whose floor is at or below
    the whole-dollar income applies.
    """
    income = _d(income)
    brackets = params.income_brackets
    tax_free_threshold = brackets[0].max
    if tax_free_threshold is not None and income <= tax_free_threshold:
        return ZERO

    dollars = _whole_dollars(income)
    for bracket in reversed(brackets):
        if bracket.min <= dollars:
            return bracket.base + (income - (bracket.min - 1)) * bracket.rate
    return ZERO


def marginal_rate(income: Decimal, params: TaxParameters) -> Decimal:
    dollars = _whole_dollars(_d(income))
    for bracket in reversed(params.income_brackets):
        if bracket.min <= dollars:
            return bracket.rate
    return ZERO


# ==================== LITO ====================

def low_income_offset(income: Decimal, params: TaxParameters) -> Decimal:
    """Full offset to threshold 1, then reduced at rate 1 to threshold 2 and rate 2 to threshold 3."""
    income = _d(income)
    lito = params.lito

    if income <= lito.threshold_1:
        return lito.max_offset
    if income > lito.threshold_3:
        return ZERO
    if income <= lito.threshold_2:
        reduction = (income - lito.threshold_1) * lito.reduction_rate_1
        return max(ZERO, lito.max_offset - reduction)

    base_reduction = (lito.threshold_2 - lito.threshold_1) * lito.reduction_rate_1
    further_reduction = (income - lito.threshold_2) * lito.reduction_rate_2
    return max(ZERO, lito.max_offset - base_reduction - further_reduction)


# ==================== MEDICARE LEVY ====================

def medicare_thresholds(taxpayer: TaxpayerDetails, params: TaxParameters):
    """(threshold, phase-in upper) for the taxpayer's filing status."""
    medicare = params.medicare
    if taxpayer.is_family:
        children = Decimal(taxpayer.dependent_children)
        return (
            medicare.family_threshold + children * medicare.child_threshold_adjustment,
            medicare.family_phase_in_upper + children * medicare.child_phase_in_adjustment,
        )
    return medicare.single_threshold, medicare.single_phase_in_upper


def medicare_levy(income: Decimal, taxpayer: TaxpayerDetails, params: TaxParameters) -> Decimal:
    income = _d(income)
    threshold, phase_in_upper = medicare_thresholds(taxpayer, params)

    if income <= threshold:
        levy = ZERO
    elif income <= phase_in_upper:
        levy = (income - threshold) * params.medicare.phase_in_rate
    else:
        levy = income * params.medicare.rate

    if taxpayer.medicare_exemption and taxpayer.medicare_exempt_days > 0:
        liable_days = DAYS_IN_YEAR - Decimal(taxpayer.medicare_exempt_days)
        levy = levy * max(ZERO, liable_days) / DAYS_IN_YEAR

    return levy


# ==================== MLS ====================

def income_for_surcharge(income: Decimal, taxpayer: TaxpayerDetails) -> Decimal:
    """Income for MLS / PHI rebate purposes."""
    total = (
        _d(income)
        + _d(taxpayer.reportable_fringe_benefits)
        + _d(taxpayer.personal_super_contribution)
    )
    if taxpayer.is_family:
        total += _d(taxpayer.spouse_income)
    return total


def surcharge_tier(surcharge_income: Decimal, taxpayer: TaxpayerDetails, params: TaxParameters) -> int:
    """
    Index of the applicable income tier (0 = base tier).

    Family floors above the base tier rise by the child adjustment for each
    dependent child after the first.
    """
    mls = params.mls
    if taxpayer.is_family:
        tiers = mls.family_tiers
        shift = mls.child_adjustment * max(0, taxpayer.dependent_children - 1)
    else:
        tiers = mls.single_tiers
        shift = 0

    dollars = _whole_dollars(_d(surcharge_income))
    for index in range(len(tiers) - 1, -1, -1):
        tier_floor = tiers[index].min + (shift if tiers[index].min > 0 else 0)
        if tier_floor <= dollars:
            return index
    return 0


def medicare_levy_surcharge(income: Decimal, taxpayer: TaxpayerDetails, params: TaxParameters) -> Decimal:
    if taxpayer.has_private_hospital_cover:
        return ZERO

    surcharge_income = income_for_surcharge(income, taxpayer)
    index = surcharge_tier(surcharge_income, taxpayer, params)
    tiers = params.mls.family_tiers if taxpayer.is_family else params.mls.single_tiers
    return surcharge_income * tiers[index].rate


# ==================== PHI REBATE ====================

def phi_rebate_entitlement(income: Decimal, taxpayer: TaxpayerDetails, params: TaxParameters) -> Decimal:
    """Σ premiums × rebate rate, one rate per sub-period."""
    index = surcharge_tier(income_for_surcharge(income, taxpayer), taxpayer, params)
    if index >= len(PHI_TIERS):
        raise TaxConfigurationError(
            f"No private health insurance rebate tier for income tier {index}",
            parameter="phi_rebate_periods",
        )
    tier = PHI_TIERS[index]
    age_bracket = taxpayer.phi_age_bracket.value

    entitlement = ZERO
    for period_key, premiums in taxpayer.phi_premiums.items():
        if premiums <= 0:
            continue
        period = params.phi_period(period_key)
        rates = period.rates.get(age_bracket)
        if rates is None:
            raise TaxConfigurationError(
                f"No rebate rates for age bracket '{age_bracket}' in period {period_key}",
                parameter="phi_age_bracket",
            )
        entitlement += _d(premiums) * rates[tier]
    return entitlement


def phi_rebate_offset(income: Decimal, taxpayer: TaxpayerDetails, params: TaxParameters) -> Decimal:
    if sum(taxpayer.phi_premiums.values(), 0) <= 0:
        return ZERO
    entitlement = phi_rebate_entitlement(income, taxpayer, params)
    return max(ZERO, entitlement - _d(taxpayer.phi_rebate_received))


# ==================== NET POSITION ====================

def total_offsets(lito: Decimal, franking_credits: Decimal, phi_offset: Decimal) -> Decimal:
    return _d(lito) + _d(franking_credits) + _d(phi_offset)


def net_tax_payable(gross: Decimal, levy: Decimal, surcharge: Decimal, offsets: Decimal) -> Decimal:
    return max(ZERO, _d(gross) + _d(levy) + _d(surcharge) - _d(offsets))


def final_outcome(tax_withheld: Decimal, net_payable: Decimal) -> Decimal:
    """Positive = refund, negative = amount payable."""
    return _d(tax_withheld) - _d(net_payable)


@dataclass
class TaxOutcome:
    """Full estimate for one document"""
    financial_year: str
    total_assessable_income: Decimal
    deductions: DeductionBreakdown
    taxable_income: Decimal
    gross_tax: Decimal
    medicare_levy: Decimal
    medicare_levy_surcharge: Decimal
    low_income_offset: Decimal
    franking_credit_offset: Decimal
    phi_rebate_offset: Decimal
    total_offsets: Decimal
    net_tax_payable: Decimal
    total_tax_withheld: Decimal
    final_outcome: Decimal

    @property
    def total_deductions(self) -> Decimal:
        return self.deductions.total

    @property
    def is_refund(self) -> bool:
        return self.final_outcome >= 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "financial_year": self.financial_year,
            "total_assessable_income": float(_round_currency(self.total_assessable_income)),
            "deductions": self.deductions.to_dict(),
            "total_deductions": float(_round_currency(self.total_deductions)),
            "taxable_income": float(_round_currency(self.taxable_income)),
            "gross_tax": float(_round_currency(self.gross_tax)),
            "medicare_levy": float(_round_currency(self.medicare_levy)),
            "medicare_levy_surcharge": float(_round_currency(self.medicare_levy_surcharge)),
            "low_income_offset": float(_round_currency(self.low_income_offset)),
            "franking_credit_offset": float(_round_currency(self.franking_credit_offset)),
            "phi_rebate_offset": float(_round_currency(self.phi_rebate_offset)),
            "total_offsets": float(_round_currency(self.total_offsets)),
            "net_tax_payable": float(_round_currency(self.net_tax_payable)),
            "total_tax_withheld": float(_round_currency(self.total_tax_withheld)),
            "final_outcome": float(_round_currency(self.final_outcome)),
            "is_refund": self.is_refund,
        }


def calculate_tax_outcome(document: Document, params: Optional[TaxParameters] = None) -> TaxOutcome:
    """
    Run the whole estimate for a document.

    Parameters default to the table for the document's financial year.
    """
    params = params or get_tax_parameters(document.financial_year)
    taxpayer = document.taxpayer_details

    assessable = total_assessable_income(document.income)
    deductions = deduction_breakdown(document, params)
    income = taxable_income(assessable, deductions.total)

    gross = gross_tax(income, params)
    levy = medicare_levy(income, taxpayer, params)
    surcharge = medicare_levy_surcharge(income, taxpayer, params)
    lito = low_income_offset(income, params)
    franking = _d(document.income.other.franking_credits)
    phi_offset = phi_rebate_offset(income, taxpayer, params)

    offsets = total_offsets(lito, franking, phi_offset)
    net_payable = net_tax_payable(gross, levy, surcharge, offsets)
    withheld = total_tax_withheld(document.income)

    outcome = TaxOutcome(
        financial_year=params.financial_year,
        total_assessable_income=assessable,
        deductions=deductions,
        taxable_income=income,
        gross_tax=gross,
        medicare_levy=levy,
        medicare_levy_surcharge=surcharge,
        low_income_offset=lito,
        franking_credit_offset=franking,
        phi_rebate_offset=phi_offset,
        total_offsets=offsets,
        net_tax_payable=net_payable,
        total_tax_withheld=withheld,
        final_outcome=final_outcome(withheld, net_payable),
    )
    logger.debug(
        f"Tax outcome {params.financial_year}: taxable={income} net_payable={net_payable} "
        f"outcome={outcome.final_outcome}"
    )
    return outcome
