"""Tests for the country compliance tables."""

from decimal import Decimal

import pytest

from settlement_engine.calculators import ComplianceRulesProvider, OvertimeKind
from settlement_engine.calculators.types import EmployeeCategory
from settlement_engine.errors import ComputationError, ValidationError


@pytest.fixture
def ci() -> ComplianceRulesProvider:
    return ComplianceRulesProvider.for_country("CI")


class TestCountryLookup:
    """Tests for provider selection."""

    def test_supported_countries(self):
        assert ComplianceRulesProvider.supported_countries() == ["CI", "SN"]

    def test_country_code_is_case_insensitive(self):
        rules = ComplianceRulesProvider.for_country("ci")
        assert rules.country_code == "CI"
        assert rules.currency == "XOF"

    def test_unsupported_country_is_computation_error(self):
        with pytest.raises(ComputationError, match="FR"):
            ComplianceRulesProvider.for_country("FR")


class TestSeveranceRate:
    """Tests for severance bracket lookup."""

    @pytest.mark.parametrize(
        "years,bracket,rate",
        [
            (Decimal("0"), "0-5", Decimal("30")),
            (Decimal("2"), "0-5", Decimal("30")),
            (Decimal("5"), "0-5", Decimal("30")),
            (Decimal("6"), "5-10", Decimal("35")),
            (Decimal("10"), "5-10", Decimal("35")),
            (Decimal("12"), "10+", Decimal("40")),
        ],
    )
    def test_ci_brackets(self, ci, years, bracket, rate):
        result = ci.severance_rate_for(years)
        assert result.bracket == bracket
        assert result.rate_percent == rate

    def test_senegal_uses_its_own_scale(self):
        sn = ComplianceRulesProvider.for_country("SN")
        assert sn.severance_rate_for(Decimal("3")).rate_percent == Decimal("25")
        assert sn.severance_rate_for(Decimal("7")).rate_percent == Decimal("30")

    def test_unknown_sector_falls_back_to_default_scale(self, ci):
        assert ci.severance_brackets("mining") == ci.severance_brackets()

    def test_negative_years_rejected(self, ci):
        with pytest.raises(ValidationError):
            ci.severance_rate_for(Decimal("-1"))


class TestNoticeDays:
    """Tests for minimum notice periods."""

    @pytest.mark.parametrize(
        "years,days",
        [
            (Decimal("0.25"), 15),
            (Decimal("1"), 30),
            (Decimal("3"), 60),
            (Decimal("6.245"), 90),
        ],
    )
    def test_ci_worker(self, ci, years, days):
        assert ci.legal_minimum_notice_days(years, EmployeeCategory.WORKER) == days

    @pytest.mark.parametrize(
        "years,days",
        [
            (Decimal("0.25"), 30),
            (Decimal("1"), 60),
            (Decimal("3"), 90),
        ],
    )
    def test_ci_executive(self, ci, years, days):
        assert ci.legal_minimum_notice_days(years, EmployeeCategory.EXECUTIVE) == days

    def test_step_boundary_belongs_to_next_step(self, ci):
        assert ci.legal_minimum_notice_days(Decimal("2"), EmployeeCategory.WORKER) == 60

    def test_negative_years_rejected(self, ci):
        with pytest.raises(ValidationError):
            ci.legal_minimum_notice_days(Decimal("-0.5"), EmployeeCategory.WORKER)


class TestLeaveAccrual:
    """Tests for minimum leave accrual."""

    def test_base_rate(self, ci):
        assert ci.leave_accrual_minimum() == Decimal("2.2")

    def test_young_worker_rate(self, ci):
        assert ci.leave_accrual_minimum(age_years=19) == Decimal("2.5")

    def test_adult_keeps_base_rate(self, ci):
        assert ci.leave_accrual_minimum(age_years=30) == Decimal("2.2")

    def test_seniority_bonus_is_spread_over_the_year(self, ci):
        # 2 extra days per year at 10+ years
        assert ci.leave_accrual_minimum(seniority_years=12) == Decimal("2.3667")

    def test_negative_age_rejected(self, ci):
        with pytest.raises(ValidationError):
            ci.leave_accrual_minimum(age_years=-1)


class TestOvertime:
    """Tests for overtime multipliers."""

    def test_ci_multipliers(self, ci):
        assert ci.overtime_multiplier(OvertimeKind.WEEKDAY_FIRST_TIER) == Decimal("1.15")
        assert ci.overtime_multiplier(OvertimeKind.WEEKDAY_SECOND_TIER) == Decimal("1.50")
        assert ci.overtime_multiplier(OvertimeKind.SUNDAY_HOLIDAY_NIGHT) == Decimal("2.00")

    def test_every_kind_has_a_multiplier(self):
        for country in ComplianceRulesProvider.supported_countries():
            rules = ComplianceRulesProvider.for_country(country)
            for kind in OvertimeKind:
                assert rules.overtime_multiplier(kind) > 1


class TestRounding:
    """Tests for currency rounding."""

    def test_rounds_half_up_to_whole_franc(self, ci):
        assert ci.round_amount(Decimal("85443.50")) == Decimal("85444")
        assert ci.round_amount(Decimal("85443.49")) == Decimal("85443")
