"""
Unit Tests for the Tax Outcome Calculator

Tests gross tax, LITO, Medicare levy, Medicare levy surcharge, the private
health insurance rebate offset and the full estimate.

Run with: pytest tests/test_tax_outcome.py -v
"""

import pytest
from decimal import Decimal

from services.estimator.errors import TaxConfigurationError
from services.estimator.models import Document, TaxpayerDetails
from services.estimator.outcome import (
    calculate_tax_outcome,
    final_outcome,
    gross_tax,
    income_for_surcharge,
    low_income_offset,
    marginal_rate,
    medicare_levy,
    medicare_levy_surcharge,
    net_tax_payable,
    phi_rebate_entitlement,
    phi_rebate_offset,
    surcharge_tier,
    taxable_income,
)
from services.estimator.parameters import TAX_PARAMETERS_2024_25

PARAMS = TAX_PARAMETERS_2024_25
SINGLE = TaxpayerDetails()
EARLY_PERIOD = "2024-07-01_2025-03-31"
LATE_PERIOD = "2025-04-01_2025-06-30"


def _document(salary=80000, withheld=18000, **sections):
    data = {
        "income": {"payg": [{"id": "payg_1", "sourceName": "Acme", "grossSalary": salary, "taxWithheld": withheld}]},
    }
    data.update(sections)
    return Document.model_validate(data)


class TestTaxableIncome:
    """Test taxable income."""

    def test_no_deductions(self):
        assert taxable_income(Decimal("80000"), Decimal("0")) == Decimal("80000")

    def test_never_negative(self):
        assert taxable_income(Decimal("1000"), Decimal("5000")) == Decimal("0")


class TestGrossTax:
    """Test progressive income tax brackets."""

    @pytest.mark.parametrize("income,expected", [
        (0, "0"),
        (18200, "0"),
        (18201, "0.16"),
        (45000, "4288"),
        (45001, "4288.30"),
        (80000, "14788"),
        (135000, "31288"),
        (190000, "51638"),
        (200000, "56138"),
    ])
    def test_bracket_amounts(self, income, expected):
        assert gross_tax(Decimal(income), PARAMS) == Decimal(expected)

    def test_monotone(self):
        previous = Decimal("0")
        for income in range(0, 250001, 2500):
            tax = gross_tax(Decimal(income), PARAMS)
            assert tax >= previous
            previous = tax

    @pytest.mark.parametrize("boundary", [18200, 45000, 135000, 190000])
    def test_continuous_at_boundaries(self, boundary):
        below = gross_tax(Decimal(boundary), PARAMS)
        above = gross_tax(Decimal(boundary + 1), PARAMS)
        assert Decimal("0") <= above - below <= Decimal("0.45")

    def test_marginal_rate(self):
        assert marginal_rate(Decimal("80000"), PARAMS) == Decimal("0.30")
        assert marginal_rate(Decimal("10000"), PARAMS) == Decimal("0")


class TestLowIncomeOffset:
    """Test the Low Income Tax Offset."""

    @pytest.mark.parametrize("income,expected", [
        (20000, "700"),
        (37500, "700"),
        (45000, "325"),
        (50000, "250"),
        (66667, "0"),
        (90000, "0"),
    ])
    def test_offset(self, income, expected):
        assert low_income_offset(Decimal(income), PARAMS) == Decimal(expected)

    def test_non_increasing(self):
        previous = low_income_offset(Decimal("0"), PARAMS)
        for income in range(0, 80001, 500):
            offset = low_income_offset(Decimal(income), PARAMS)
            assert offset <= previous
            previous = offset


class TestMedicareLevy:
    """Test the Medicare levy."""

    @pytest.mark.parametrize("income,expected", [
        (27222, "0"),
        (30000, "277.8"),
        (34027, "680.5"),
        (50000, "1000"),
    ])
    def test_single(self, income, expected):
        assert medicare_levy(Decimal(income), SINGLE, PARAMS) == Decimal(expected)

    def test_family_thresholds_rise_per_child(self):
        family = TaxpayerDetails(filing_status="family", dependent_children=2)
        # Threshold 45907 + 2 × 4216 = 54339
        assert medicare_levy(Decimal("54339"), family, PARAMS) == Decimal("0")
        assert medicare_levy(Decimal("55339"), family, PARAMS) == Decimal("100")

    def test_full_year_exemption(self):
        exempt = TaxpayerDetails(medicare_exemption=True, medicare_exempt_days=365)
        assert medicare_levy(Decimal("50000"), exempt, PARAMS) == Decimal("0")

    def test_partial_exemption(self):
        exempt = TaxpayerDetails(medicare_exemption=True, medicare_exempt_days=73)
        assert medicare_levy(Decimal("50000"), exempt, PARAMS) == Decimal("800")

    def test_exempt_days_without_flag_ignored(self):
        taxpayer = TaxpayerDetails(medicare_exemption=False, medicare_exempt_days=365)
        assert medicare_levy(Decimal("50000"), taxpayer, PARAMS) == Decimal("1000")


class TestMedicareLevySurcharge:
    """Test the Medicare Levy Surcharge."""

    def test_threshold(self):
        assert medicare_levy_surcharge(Decimal("97000"), SINGLE, PARAMS) == Decimal("0")
        assert medicare_levy_surcharge(Decimal("97001"), SINGLE, PARAMS) > Decimal("0")

    def test_first_tier_rate(self):
        assert medicare_levy_surcharge(Decimal("100000"), SINGLE, PARAMS) == Decimal("1000")

    def test_private_cover_exempts(self):
        covered = TaxpayerDetails(has_private_hospital_cover=True)
        assert medicare_levy_surcharge(Decimal("200000"), covered, PARAMS) == Decimal("0")

    def test_fringe_benefits_count(self):
        taxpayer = TaxpayerDetails(reportable_fringe_benefits=10000)
        assert income_for_surcharge(Decimal("90000"), taxpayer) == Decimal("100000")
        assert medicare_levy_surcharge(Decimal("90000"), taxpayer, PARAMS) == Decimal("1000")

    def test_spouse_income_only_for_family(self):
        single = TaxpayerDetails(spouse_income=50000)
        family = TaxpayerDetails(filing_status="family", spouse_income=50000)
        assert income_for_surcharge(Decimal("100000"), single) == Decimal("100000")
        assert income_for_surcharge(Decimal("100000"), family) == Decimal("150000")

    def test_family_child_adjustment(self):
        one_child = TaxpayerDetails(filing_status="family", dependent_children=1, spouse_income=95000)
        two_children = TaxpayerDetails(filing_status="family", dependent_children=2, spouse_income=95000)

        # Family income 195000: above 194000, below 194000 + 1500
        assert surcharge_tier(Decimal("195000"), one_child, PARAMS) == 1
        assert surcharge_tier(Decimal("195000"), two_children, PARAMS) == 0
        assert medicare_levy_surcharge(Decimal("100000"), one_child, PARAMS) == Decimal("1950")
        assert medicare_levy_surcharge(Decimal("100000"), two_children, PARAMS) == Decimal("0")

    def test_top_tier(self):
        assert surcharge_tier(Decimal("160000"), SINGLE, PARAMS) == 3
        assert medicare_levy_surcharge(Decimal("160000"), SINGLE, PARAMS) == Decimal("2400")


class TestPrivateHealthRebate:
    """Test the private health insurance rebate offset."""

    @pytest.fixture
    def insured(self):
        return TaxpayerDetails(
            has_private_hospital_cover=True,
            phi_premiums={EARLY_PERIOD: 1000, LATE_PERIOD: 400},
            phi_rebate_received=200,
        )

    def test_base_tier_entitlement(self, insured):
        # 1000 × 24.608% + 400 × 24.288%
        assert phi_rebate_entitlement(Decimal("80000"), insured, PARAMS) == Decimal("343.232")

    def test_offset_net_of_rebate_received(self, insured):
        assert phi_rebate_offset(Decimal("80000"), insured, PARAMS) == Decimal("143.232")

    def test_tier_one(self, insured):
        # 1000 × 16.405% + 400 × 16.192%
        assert phi_rebate_entitlement(Decimal("100000"), insured, PARAMS) == Decimal("228.818")

    def test_older_age_bracket(self):
        taxpayer = TaxpayerDetails(phi_age_bracket="70plus", phi_premiums={EARLY_PERIOD: 1000})
        assert phi_rebate_entitlement(Decimal("80000"), taxpayer, PARAMS) == Decimal("328.12")

    def test_top_tier_gets_nothing(self, insured):
        assert phi_rebate_offset(Decimal("160000"), insured, PARAMS) == Decimal("0")

    def test_rebate_received_exceeds_entitlement(self):
        taxpayer = TaxpayerDetails(phi_premiums={EARLY_PERIOD: 100}, phi_rebate_received=500)
        assert phi_rebate_offset(Decimal("80000"), taxpayer, PARAMS) == Decimal("0")

    def test_no_premiums(self):
        assert phi_rebate_offset(Decimal("80000"), SINGLE, PARAMS) == Decimal("0")

    def test_unknown_period(self):
        taxpayer = TaxpayerDetails(phi_premiums={"2023-07-01_2024-03-31": 1000})
        with pytest.raises(TaxConfigurationError) as exc_info:
            phi_rebate_offset(Decimal("80000"), taxpayer, PARAMS)
        assert exc_info.value.parameter == "phi_premiums"


class TestNetPosition:
    """Test net tax payable and the final outcome."""

    def test_net_payable_floored_at_zero(self):
        assert net_tax_payable(Decimal("100"), Decimal("0"), Decimal("0"), Decimal("700")) == Decimal("0")

    def test_outcome_sign(self):
        assert final_outcome(Decimal("18000"), Decimal("16388")) == Decimal("1612")
        assert final_outcome(Decimal("10000"), Decimal("16388")) == Decimal("-6388")


class TestCalculateTaxOutcome:
    """Test the full estimate for a document."""

    def test_salary_only_refund(self):
        outcome = calculate_tax_outcome(_document())

        assert outcome.financial_year == "2024-2025"
        assert outcome.total_assessable_income == Decimal("80000")
        assert outcome.total_deductions == Decimal("0")
        assert outcome.taxable_income == Decimal("80000")
        assert outcome.gross_tax == Decimal("14788")
        assert outcome.medicare_levy == Decimal("1600")
        assert outcome.medicare_levy_surcharge == Decimal("0")
        assert outcome.low_income_offset == Decimal("0")
        assert outcome.net_tax_payable == Decimal("16388")
        assert outcome.final_outcome == Decimal("1612")
        assert outcome.is_refund

    def test_amount_owing(self):
        outcome = calculate_tax_outcome(_document(withheld=10000))
        assert outcome.final_outcome == Decimal("-6388")
        assert not outcome.is_refund

    def test_wfh_deduction_reduces_tax(self):
        outcome = calculate_tax_outcome(_document(wfh={"method": "fixed_rate", "totalMinutes": 6000}))

        assert outcome.taxable_income == Decimal("79930")
        assert outcome.gross_tax == Decimal("14767")
        assert outcome.medicare_levy == Decimal("1598.6")
        assert outcome.final_outcome == Decimal("1634.4")

    def test_franking_credits_offset(self):
        outcome = calculate_tax_outcome(_document(
            income={
                "payg": [{"sourceName": "Acme", "grossSalary": 80000, "taxWithheld": 18000}],
                "other": {"dividendsFranked": 700, "frankingCredits": 300},
            },
        ))
        assert outcome.total_assessable_income == Decimal("81000")
        assert outcome.franking_credit_offset == Decimal("300")
        assert outcome.total_offsets == Decimal("300")

    def test_low_income_with_lito(self):
        outcome = calculate_tax_outcome(_document(salary=30000, withheld=2000))

        # 0.16 × (30000 - 18200) = 1888; LITO 700; levy (30000 - 27222) × 10%
        assert outcome.gross_tax == Decimal("1888")
        assert outcome.low_income_offset == Decimal("700")
        assert outcome.medicare_levy == Decimal("277.8")
        assert outcome.net_tax_payable == Decimal("1465.8")
        assert outcome.final_outcome == Decimal("534.2")

    def test_empty_document(self):
        outcome = calculate_tax_outcome(Document())

        assert outcome.taxable_income == Decimal("0")
        assert outcome.net_tax_payable == Decimal("0")
        assert outcome.final_outcome == Decimal("0")
        assert outcome.is_refund

    def test_to_dict(self):
        data = calculate_tax_outcome(_document(wfh={"method": "fixed_rate", "totalMinutes": 6000})).to_dict()

        assert data["taxable_income"] == 79930.0
        assert data["medicare_levy"] == 1598.6
        assert data["deductions"]["wfh"] == 70.0
        assert data["total_deductions"] == 70.0
        assert data["final_outcome"] == 1634.4
        assert data["is_refund"] is True

    def test_unknown_financial_year(self):
        document = Document.model_validate({"userSettings": {"financialYear": "2019-2020"}})
        with pytest.raises(TaxConfigurationError):
            calculate_tax_outcome(document)
