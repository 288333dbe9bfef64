"""
Tax Estimator - Income Aggregator

Assessable income = PAYG gross salaries + bank interest + unfranked and
franked dividends + franking credits (gross-up) + net capital gains.
"""

from decimal import Decimal

from services.estimator.models import IncomeData


def _d(value: float) -> Decimal:
    return Decimal(str(value))


def total_payg_income(income: IncomeData) -> Decimal:
    return sum((_d(record.gross_salary) for record in income.payg), Decimal("0"))


def total_other_income(income: IncomeData) -> Decimal:
    other = income.other
    # Franked dividends are recorded net of the credit, so the credit is added back
    return (
        _d(other.bank_interest)
        + _d(other.dividends_unfranked)
        + _d(other.dividends_franked)
        + _d(other.franking_credits)
        + _d(other.net_capital_gains)
    )


def total_assessable_income(income: IncomeData) -> Decimal:
    return total_payg_income(income) + total_other_income(income)


def total_tax_withheld(income: IncomeData) -> Decimal:
    return sum((_d(record.tax_withheld) for record in income.payg), Decimal("0"))
