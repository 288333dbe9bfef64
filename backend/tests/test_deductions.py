"""
Unit Tests for Income and Deduction Aggregation

Tests assessable income, general expenses, work from home (fixed rate and
actual cost) and superannuation deductions.

Run with: pytest tests/test_deductions.py -v
"""

import pytest
from decimal import Decimal

from services.estimator.deductions import (
    deduction_breakdown,
    floor_area_percentage,
    floor_area_ratio,
    general_expense_deductions,
    line_item_deduction,
    total_deductions,
    wfh_actual_cost_deduction,
    wfh_deductions,
    wfh_fixed_rate_deduction,
    wfh_running_costs,
)
from services.estimator.income import (
    total_assessable_income,
    total_other_income,
    total_payg_income,
    total_tax_withheld,
)
from services.estimator.models import (
    Document,
    ExpenseRecord,
    IncomeData,
    WfhActualCostDetails,
    WfhData,
)
from services.estimator.parameters import TAX_PARAMETERS_2024_25

PARAMS = TAX_PARAMETERS_2024_25


class TestIncomeAggregation:
    """Test assessable income and tax withheld."""

    @pytest.fixture
    def income(self):
        return IncomeData.model_validate({
            "payg": [
                {"id": "payg_1", "sourceName": "Acme", "grossSalary": 60000, "taxWithheld": 9000},
                {"id": "payg_2", "sourceName": "Side job", "grossSalary": "5,000", "taxWithheld": 500},
            ],
            "other": {
                "bankInterest": 120.50,
                "dividendsUnfranked": 200,
                "dividendsFranked": 700,
                "frankingCredits": 300,
                "netCapitalGains": 1000,
            },
        })

    def test_payg_income(self, income):
        assert total_payg_income(income) == Decimal("65000")

    def test_other_income_includes_franking_gross_up(self, income):
        assert total_other_income(income) == Decimal("2320.5")

    def test_assessable_income(self, income):
        assert total_assessable_income(income) == Decimal("67320.5")

    def test_tax_withheld(self, income):
        assert total_tax_withheld(income) == Decimal("9500")

    def test_empty_income(self):
        income = IncomeData()
        assert total_assessable_income(income) == Decimal("0")
        assert total_tax_withheld(income) == Decimal("0")

    def test_bad_values_count_as_zero(self):
        income = IncomeData.model_validate({
            "payg": [{"sourceName": "Acme", "grossSalary": "abc", "taxWithheld": None}],
            "other": {"bankInterest": -50},
        })
        assert total_assessable_income(income) == Decimal("0")


class TestGeneralExpenses:
    """Test general work-related expense deductions."""

    def test_immediate_claim(self):
        """$250 non-depreciable item at 100% work use is fully deductible."""
        item = ExpenseRecord(description="Books", date="2024-09-01", cost=250, work_percentage=100)
        assert line_item_deduction(item, PARAMS) == Decimal("250")

    def test_work_percentage(self):
        item = ExpenseRecord(description="Phone", date="2024-09-01", cost=800, work_percentage=40)
        assert line_item_deduction(item, PARAMS) == Decimal("320")

    def test_default_work_percentage_is_zero(self):
        item = ExpenseRecord(description="Unknown", date="2024-09-01", cost=800)
        assert line_item_deduction(item, PARAMS) == Decimal("0")

    def test_future_dated_item_excluded(self):
        item = ExpenseRecord(description="Books", date="2025-07-01", cost=250, work_percentage=100)
        assert line_item_deduction(item, PARAMS) == Decimal("0")

    def test_undated_item_excluded(self):
        item = ExpenseRecord(description="Books", date="", cost=250, work_percentage=100)
        assert line_item_deduction(item, PARAMS) == Decimal("0")

    def test_depreciable_item(self):
        item = ExpenseRecord(
            description="Laptop",
            date="2024-07-01",
            cost=3000,
            work_percentage=80,
            is_depreciable=True,
            effective_life_years=5,
        )
        assert line_item_deduction(item, PARAMS) == Decimal("480")

    def test_sum_of_expenses(self):
        expenses = [
            ExpenseRecord(description="Books", date="2024-09-01", cost=250, work_percentage=100),
            ExpenseRecord(description="Phone", date="2024-09-01", cost=800, work_percentage=40),
            ExpenseRecord(description="Later", date="2025-08-01", cost=999, work_percentage=100),
        ]
        assert general_expense_deductions(expenses, PARAMS) == Decimal("570")


class TestWorkFromHome:
    """Test work from home deductions."""

    @pytest.fixture
    def details(self):
        return WfhActualCostDetails.model_validate({
            "officeArea": 10,
            "totalHomeArea": 100,
            "electricityCost": 1000,
            "gasCost": 500,
            "internetCost": 1200,
            "internetWorkPercent": 50,
            "phoneCost": 100,
            "stationeryCost": 50,
            "assets": [{
                "description": "Desk",
                "date": "2024-07-01",
                "cost": 2000,
                "effectiveLifeYears": 4,
            }],
        })

    def test_fixed_rate(self):
        """6000 minutes = 100 hours × 70c = $70."""
        assert wfh_fixed_rate_deduction(6000, PARAMS) == Decimal("70")

    def test_fixed_rate_partial_hours(self):
        assert wfh_fixed_rate_deduction(90, PARAMS) == Decimal("1.05")

    def test_floor_area_ratio(self, details):
        assert floor_area_ratio(details) == Decimal("0.1")
        assert floor_area_percentage(details) == Decimal("10.00")

    def test_floor_area_missing(self):
        assert floor_area_ratio(WfhActualCostDetails(office_area=10)) == Decimal("0")

    def test_floor_area_capped(self):
        details = WfhActualCostDetails(office_area=120, total_home_area=100)
        assert floor_area_ratio(details) == Decimal("1")

    def test_running_costs(self, details):
        # (1000 + 500) × 10% + 1200 × 50% + 100 + 50
        assert wfh_running_costs(details) == Decimal("900")

    def test_actual_cost_includes_assets(self, details):
        # Desk: $2000 over 4 years, asset work use defaults to 100%
        assert wfh_actual_cost_deduction(details, PARAMS) == Decimal("1400")

    def test_method_selects_calculation(self, details):
        wfh = WfhData(method="fixed_rate", total_minutes=6000, actual_cost_details=details)
        assert wfh_deductions(wfh, PARAMS) == Decimal("70")

        wfh = WfhData(method="actual_cost", total_minutes=6000, actual_cost_details=details)
        assert wfh_deductions(wfh, PARAMS) == Decimal("1400")


class TestDeductionTotal:
    """Test the combined deduction breakdown."""

    def test_breakdown(self):
        document = Document.model_validate({
            "taxpayerDetails": {"personalSuperContribution": 5000},
            "generalExpenses": [
                {"description": "Books", "date": "2024-09-01", "cost": 250, "workPercentage": 100},
            ],
            "wfh": {"method": "fixed_rate", "totalMinutes": 6000},
        })

        breakdown = deduction_breakdown(document, PARAMS)

        assert breakdown.general == Decimal("250")
        assert breakdown.wfh == Decimal("70")
        assert breakdown.superannuation == Decimal("5000")
        assert breakdown.total == Decimal("5320")
        assert total_deductions(document, PARAMS) == Decimal("5320")
        assert breakdown.to_dict() == {
            "general": 250.0,
            "wfh": 70.0,
            "superannuation": 5000.0,
            "total": 5320.0,
        }

    def test_empty_document(self):
        assert total_deductions(Document(), PARAMS) == Decimal("0")
