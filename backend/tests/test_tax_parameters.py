"""
Unit Tests for Tax Parameter Tables

Run with: pytest tests/test_tax_parameters.py -v
"""

import pytest
from datetime import date
from decimal import Decimal

from pydantic import ValidationError

from services.estimator.errors import TaxConfigurationError
from services.estimator.parameters import (
    PHI_TIERS,
    IncomeBracket,
    MLSParameters,
    SurchargeTier,
    TAX_PARAMETERS_2024_25,
    financial_year_bounds,
    financial_year_of,
    get_tax_parameters,
    normalise_financial_year,
    supported_financial_years,
)


class TestFinancialYear:
    """Test financial year labels."""

    @pytest.mark.parametrize("label", ["2024-2025", "2024-25", " 2024/25 "])
    def test_normalise(self, label):
        assert normalise_financial_year(label) == "2024-2025"

    def test_century_rollover(self):
        assert normalise_financial_year("2099-00") == "2099-2100"

    @pytest.mark.parametrize("label", ["", "2024", "2024-2026", "FY25", None])
    def test_invalid_labels(self, label):
        with pytest.raises(TaxConfigurationError):
            normalise_financial_year(label)

    def test_bounds(self):
        assert financial_year_bounds("2024-25") == (date(2024, 7, 1), date(2025, 6, 30))

    def test_year_of_date(self):
        assert financial_year_of(date(2024, 7, 1)) == "2024-2025"
        assert financial_year_of(date(2025, 6, 30)) == "2024-2025"
        assert financial_year_of(date(2025, 7, 1)) == "2025-2026"


class TestParameterLookup:
    """Test parameter table selection."""

    def test_lookup_by_short_label(self):
        assert get_tax_parameters("2024-25") is TAX_PARAMETERS_2024_25

    def test_unknown_year(self):
        with pytest.raises(TaxConfigurationError) as exc_info:
            get_tax_parameters("2019-2020")
        assert exc_info.value.parameter == "financial_year"

    def test_supported_years(self):
        assert supported_financial_years() == ["2024-2025"]

    def test_year_range(self):
        assert TAX_PARAMETERS_2024_25.year_start == date(2024, 7, 1)
        assert TAX_PARAMETERS_2024_25.year_end == date(2025, 6, 30)


class TestTable2024:
    """Test the 2024-25 constants."""

    def test_brackets(self):
        brackets = TAX_PARAMETERS_2024_25.income_brackets
        assert [b.min for b in brackets] == [0, 18201, 45001, 135001, 190001]
        assert [b.rate for b in brackets] == [
            Decimal("0"), Decimal("0.16"), Decimal("0.30"), Decimal("0.37"), Decimal("0.45"),
        ]
        assert brackets[-1].max is None

    def test_bases_match_bracket_tops(self):
        """Each base equals the tax on income up to the previous bracket's top."""
        brackets = TAX_PARAMETERS_2024_25.income_brackets
        for previous, current in zip(brackets, brackets[1:]):
            tax_at_top = previous.base + (previous.max - (previous.min - 1)) * previous.rate
            assert current.base == tax_at_top

    def test_wfh_rate_and_threshold(self):
        assert TAX_PARAMETERS_2024_25.wfh_fixed_rate_per_hour == Decimal("0.70")
        assert TAX_PARAMETERS_2024_25.low_value_write_off_threshold == Decimal("300")

    def test_phi_periods_cover_year(self):
        periods = TAX_PARAMETERS_2024_25.phi_rebate_periods
        assert periods[0].start == date(2024, 7, 1)
        assert periods[-1].end == date(2025, 6, 30)
        for period in periods:
            for tiers in period.rates.values():
                assert tuple(tiers) == PHI_TIERS
                assert tiers["tier3"] == Decimal("0")

    def test_unknown_phi_period(self):
        with pytest.raises(TaxConfigurationError):
            TAX_PARAMETERS_2024_25.phi_period("2030-07-01_2031-03-31")

    def test_tables_are_frozen(self):
        with pytest.raises(ValidationError):
            TAX_PARAMETERS_2024_25.wfh_fixed_rate_per_hour = Decimal("1")


class TestTableValidation:
    """Test that malformed tables are rejected on construction."""

    def test_gap_between_tiers(self):
        with pytest.raises(ValidationError):
            MLSParameters(
                single_tiers=(
                    SurchargeTier(min=0, max=97000, rate=Decimal("0")),
                    SurchargeTier(min=98000, max=None, rate=Decimal("0.01")),
                ),
                family_tiers=(
                    SurchargeTier(min=0, max=194000, rate=Decimal("0")),
                    SurchargeTier(min=194001, max=None, rate=Decimal("0.01")),
                ),
                child_adjustment=1500,
            )

    def test_bounded_last_tier(self):
        with pytest.raises(ValidationError):
            MLSParameters(
                single_tiers=(SurchargeTier(min=0, max=97000, rate=Decimal("0")),),
                family_tiers=(SurchargeTier(min=0, max=194000, rate=Decimal("0")),),
                child_adjustment=1500,
            )

    def test_base_tier_must_be_zero_rate(self):
        with pytest.raises(ValidationError):
            MLSParameters(
                single_tiers=(SurchargeTier(min=0, max=None, rate=Decimal("0.01")),),
                family_tiers=(SurchargeTier(min=0, max=None, rate=Decimal("0.01")),),
                child_adjustment=1500,
            )

    def test_income_bracket_fields(self):
        bracket = IncomeBracket(min=0, max=18200, rate=Decimal("0"))
        assert bracket.base == Decimal("0")
