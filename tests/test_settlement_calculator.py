"""Tests for the settlement calculator."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from settlement_engine.calculators import SettlementCalculator
from settlement_engine.calculators.compliance import ComplianceRulesProvider
from settlement_engine.calculators.settlement import (
    apportion_net,
    statutory_severance,
    years_of_service,
)
from settlement_engine.calculators.types import (
    Beneficiary,
    BeneficiaryRelationship,
    ContractType,
    DeductionEstimate,
    DepartureType,
    DismissalFault,
    EmployeeCategory,
    NoticeDisposition,
)
from settlement_engine.errors import ComputationError, NotFoundError, ValidationError
from tests.conftest import ENGINE_VERSION, make_history, make_request


def beneficiary(name: str, share: str) -> Beneficiary:
    return Beneficiary(
        name=name,
        relationship=BeneficiaryRelationship.CHILD,
        identity_document_ref=f"CNI-{name}",
        bank_account_ref=f"CI93-{name}",
        share_percentage=Decimal(share),
    )


class ZeroDeductions:
    def estimate(self, items, rules):
        return DeductionEstimate(
            taxable_amount=Decimal("0"),
            social_contribution=Decimal("0"),
            income_tax=Decimal("0"),
        )


@pytest.fixture
def calculator() -> SettlementCalculator:
    return SettlementCalculator(engine_version=ENGINE_VERSION)


@pytest.fixture
def ci() -> ComplianceRulesProvider:
    return ComplianceRulesProvider.for_country("CI")


class TestSeniorityAndSeverance:
    """Tests for the building blocks of severance."""

    def test_years_of_service_uses_365_25_day_years(self):
        assert years_of_service(date(2020, 1, 1), date(2026, 3, 31)) == Decimal("6.2450")

    def test_years_of_service_must_be_positive(self):
        with pytest.raises(ValidationError):
            years_of_service(date(2026, 3, 31), date(2026, 3, 31))

    def test_six_years_is_tiered(self, ci):
        # 5 years at 30% plus 1 year at 35%
        severance = statutory_severance(Decimal("300000"), Decimal("6"), ci)
        assert ci.round_amount(severance) == Decimal("555000")

    def test_three_brackets(self, ci):
        # 5 x 30% + 5 x 35% + 2 x 40% of 100000
        severance = statutory_severance(Decimal("100000"), Decimal("12"), ci)
        assert severance == Decimal("405000")

    def test_under_one_year_earns_nothing(self, ci):
        assert statutory_severance(Decimal("300000"), Decimal("0.9"), ci) == Decimal("0")


class TestDismissal:
    """Tests for dismissal settlements."""

    def test_economic_dismissal_with_paid_notice(self, calculator):
        result = calculator.calculate(make_request(), make_history())

        assert result.years_of_service == Decimal("6.2450")
        assert result.average_salary_12m == Decimal("300000.00")
        assert result.severance_amount == Decimal("580725")
        assert result.statutory_severance_floor == Decimal("580725")
        assert result.vacation_payout_amount == Decimal("100000")
        assert result.gratification_amount == Decimal("56250")
        assert result.prorated_salary == Decimal("300000")
        assert result.notice_days == 90
        assert result.notice_payment_amount == Decimal("900000")
        assert result.gross_total == Decimal("1936975")
        assert result.deductions_total == Decimal("414767")
        assert result.net_total == Decimal("1522208")
        assert result.currency == "XOF"
        assert result.warnings == ()

    @pytest.mark.parametrize(
        "fault", [DismissalFault.SERIOUS_FAULT, DismissalFault.GROSS_FAULT]
    )
    def test_serious_and_gross_fault_forfeit_severance(self, calculator, fault):
        result = calculator.calculate(make_request(dismissal_fault=fault), make_history())

        assert result.severance_amount == Decimal("0")
        assert result.statutory_severance_floor == Decimal("580725")
        assert result.notice_payment_amount == Decimal("900000")

    @pytest.mark.parametrize(
        "fault", [DismissalFault.SIMPLE_FAULT, DismissalFault.UNFITNESS]
    )
    def test_other_grounds_keep_severance(self, calculator, fault):
        result = calculator.calculate(make_request(dismissal_fault=fault), make_history())
        assert result.severance_amount == Decimal("580725")

    def test_worked_notice_is_not_paid(self, calculator):
        result = calculator.calculate(
            make_request(notice_disposition=NoticeDisposition.WORKED), make_history()
        )

        assert result.notice_days == 90
        assert result.notice_payment_amount == Decimal("0")

    def test_under_one_year(self, calculator):
        history = make_history(
            hire_date=date(2025, 6, 1),
            monthly_salaries=(Decimal("300000"),) * 10,
        )
        result = calculator.calculate(make_request(), history)

        assert result.severance_amount == Decimal("0")
        assert result.notice_days == 30
        assert result.notice_payment_amount == Decimal("300000")

    def test_executive_notice(self, calculator):
        history = make_history(
            hire_date=date(2025, 1, 1),
            category=EmployeeCategory.EXECUTIVE,
        )
        result = calculator.calculate(make_request(), history)

        assert result.notice_days == 60
        assert result.notice_payment_amount == Decimal("600000")


class TestResignation:
    """Tests for resignations."""

    def test_worked_notice(self, calculator):
        request = make_request(
            departure_type=DepartureType.RESIGNATION_INDEFINITE,
            notice_disposition=NoticeDisposition.WORKED,
        )
        result = calculator.calculate(request, make_history())

        assert result.severance_amount == Decimal("0")
        assert result.notice_days == 90
        assert result.notice_payment_amount == Decimal("0")

    def test_waived_notice_is_owed_by_employee(self, calculator):
        request = make_request(
            departure_type=DepartureType.RESIGNATION_INDEFINITE,
            notice_disposition=NoticeDisposition.WAIVED,
        )
        result = calculator.calculate(request, make_history())

        assert result.notice_payment_amount == Decimal("-900000")
        assert result.gross_total == Decimal("-443750")
        assert result.deductions_total == Decimal("0")
        assert result.net_total == Decimal("-443750")

    def test_notice_paid_by_employer(self, calculator):
        request = make_request(
            departure_type=DepartureType.RESIGNATION_INDEFINITE,
            notice_disposition=NoticeDisposition.PAID_BY_EMPLOYER,
        )
        result = calculator.calculate(request, make_history())

        assert result.notice_payment_amount == Decimal("900000")

    def test_fixed_term_break_owes_remaining_term(self, calculator):
        history = make_history(
            contract_type=ContractType.FIXED_TERM,
            contract_end_date=date(2026, 5, 30),
        )
        request = make_request(
            departure_type=DepartureType.RESIGNATION_FIXED_TERM,
            notice_disposition=NoticeDisposition.PAID_BY_EMPLOYEE,
        )
        result = calculator.calculate(request, history)

        assert result.notice_days == 60
        assert result.notice_payment_amount == Decimal("-600000")

    def test_indefinite_resignation_requires_indefinite_contract(self, calculator):
        history = make_history(contract_type=ContractType.FIXED_TERM)
        request = make_request(
            departure_type=DepartureType.RESIGNATION_INDEFINITE,
            notice_disposition=NoticeDisposition.WORKED,
        )

        with pytest.raises(ValidationError):
            calculator.calculate(request, history)


class TestNegotiatedTermination:
    """Tests for negotiated terminations."""

    def test_amount_below_floor_is_raised_with_warning(self, calculator):
        request = make_request(
            departure_type=DepartureType.NEGOTIATED_TERMINATION,
            negotiated_amount=Decimal("100000"),
        )
        result = calculator.calculate(request, make_history())

        assert result.severance_amount == Decimal("580725")
        assert [w.code for w in result.warnings] == ["negotiated_below_statutory_floor"]

    def test_amount_above_floor_is_kept(self, calculator):
        request = make_request(
            departure_type=DepartureType.NEGOTIATED_TERMINATION,
            negotiated_amount=Decimal("800000"),
        )
        result = calculator.calculate(request, make_history())

        assert result.severance_amount == Decimal("800000")
        assert result.warnings == ()

    def test_negative_amount_rejected(self, calculator):
        request = make_request(
            departure_type=DepartureType.NEGOTIATED_TERMINATION,
            negotiated_amount=Decimal("-1"),
        )
        with pytest.raises(ValidationError):
            calculator.calculate(request, make_history())


class TestNoSeveranceDepartures:
    """Tests for departures that carry neither severance nor notice."""

    def test_end_of_fixed_term(self, calculator):
        history = make_history(contract_type=ContractType.FIXED_TERM)
        request = make_request(
            departure_type=DepartureType.END_OF_FIXED_TERM,
            notice_disposition=NoticeDisposition.WORKED,
        )
        result = calculator.calculate(request, history)

        assert result.severance_amount == Decimal("0")
        assert result.notice_payment_amount == Decimal("0")
        assert result.gross_total == Decimal("456250")

    def test_end_of_fixed_term_rejects_indefinite_contract(self, calculator):
        history = make_history(contract_type=ContractType.INDEFINITE)
        request = make_request(
            departure_type=DepartureType.END_OF_FIXED_TERM,
            notice_disposition=NoticeDisposition.WORKED,
        )
        with pytest.raises(ValidationError):
            calculator.calculate(request, history)

    def test_retirement(self, calculator):
        history = make_history(date_of_birth=date(1965, 1, 1))
        request = make_request(
            departure_type=DepartureType.RETIREMENT,
            notice_disposition=NoticeDisposition.WORKED,
        )
        result = calculator.calculate(request, history)

        assert result.severance_amount == Decimal("0")
        assert result.notice_days == 0

    def test_retirement_below_legal_age(self, calculator):
        history = make_history(date_of_birth=date(1985, 5, 20))
        request = make_request(
            departure_type=DepartureType.RETIREMENT,
            notice_disposition=NoticeDisposition.WORKED,
        )
        with pytest.raises(ValidationError, match="retirement age"):
            calculator.calculate(request, history)


class TestDeath:
    """Tests for settlements paid to heirs."""

    def test_net_is_apportioned_with_remainder_to_first(self, calculator):
        request = make_request(
            departure_type=DepartureType.DEATH,
            notice_disposition=NoticeDisposition.WORKED,
            beneficiaries=(
                beneficiary("spouse", "50"),
                beneficiary("child-a", "25"),
                beneficiary("child-b", "25"),
            ),
        )
        result = calculator.calculate(request, make_history())

        assert result.gross_total == Decimal("456250")
        assert result.deductions_total == Decimal("74369")
        assert result.net_total == Decimal("381881")
        assert [s.amount for s in result.beneficiary_shares] == [
            Decimal("190941"),
            Decimal("95470"),
            Decimal("95470"),
        ]
        assert sum(s.amount for s in result.beneficiary_shares) == result.net_total

    def test_uneven_shares_still_sum_to_net(self, ci):
        shares = apportion_net(
            Decimal("1000001"),
            [beneficiary("a", "33.33"), beneficiary("b", "33.33"), beneficiary("c", "33.34")],
            ci.rules.minor_unit,
        )
        assert sum(s.amount for s in shares) == Decimal("1000001")

    def test_shares_must_sum_to_100(self, calculator):
        request = make_request(
            departure_type=DepartureType.DEATH,
            notice_disposition=NoticeDisposition.WORKED,
            beneficiaries=(beneficiary("a", "60"), beneficiary("b", "39")),
        )
        with pytest.raises(ValidationError, match="sum to exactly 100"):
            calculator.calculate(request, make_history())

    def test_death_requires_beneficiaries(self, calculator):
        request = make_request(
            departure_type=DepartureType.DEATH,
            notice_disposition=NoticeDisposition.WORKED,
        )
        with pytest.raises(ValidationError):
            calculator.calculate(request, make_history())

    def test_zero_share_rejected(self, calculator):
        request = make_request(
            departure_type=DepartureType.DEATH,
            notice_disposition=NoticeDisposition.WORKED,
            beneficiaries=(beneficiary("a", "100"), beneficiary("b", "0")),
        )
        with pytest.raises(ValidationError):
            calculator.calculate(request, make_history())


class TestRequestValidation:
    """Tests for classification invariants."""

    def test_dismissal_requires_fault(self, calculator):
        with pytest.raises(ValidationError) as exc_info:
            calculator.calculate(make_request(dismissal_fault=None), make_history())
        assert exc_info.value.field == "dismissal_fault"

    def test_fault_only_on_dismissal(self, calculator):
        request = make_request(
            departure_type=DepartureType.RESIGNATION_INDEFINITE,
            dismissal_fault=DismissalFault.ECONOMIC,
        )
        with pytest.raises(ValidationError):
            calculator.calculate(request, make_history())

    def test_negotiated_amount_only_on_negotiated(self, calculator):
        with pytest.raises(ValidationError):
            calculator.calculate(
                make_request(negotiated_amount=Decimal("1000")), make_history()
            )

    def test_beneficiaries_only_on_death(self, calculator):
        request = make_request(beneficiaries=(beneficiary("a", "100"),))
        with pytest.raises(ValidationError):
            calculator.calculate(request, make_history())

    def test_termination_before_hire(self, calculator):
        request = make_request(termination_date=date(2019, 12, 31))
        with pytest.raises(ValidationError):
            calculator.calculate(request, make_history())

    def test_negative_leave_balance(self, calculator):
        with pytest.raises(ValidationError):
            calculator.calculate(make_request(), make_history(unused_leave_days=Decimal("-1")))

    def test_no_salary_data_is_not_found(self, calculator):
        history = make_history(monthly_salaries=(), current_monthly_salary=Decimal("0"))
        with pytest.raises(NotFoundError):
            calculator.calculate(make_request(), history)

    def test_zero_average_salary(self, calculator):
        history = make_history(
            monthly_salaries=(Decimal("0"), Decimal("0")),
            current_monthly_salary=Decimal("0"),
        )
        with pytest.raises(ValidationError):
            calculator.calculate(make_request(), history)

    def test_unsupported_country(self, calculator):
        with pytest.raises(ComputationError):
            calculator.calculate(make_request(), make_history(country_code="FR"))


class TestCommonItems:
    """Tests for prorated salary, vacation and gratification."""

    def test_mid_month_termination(self, calculator):
        result = calculator.calculate(
            make_request(termination_date=date(2026, 2, 14)), make_history()
        )

        assert result.prorated_salary == Decimal("150000")
        assert result.gratification_amount == Decimal("18750")

    def test_average_falls_back_to_current_salary(self, calculator):
        result = calculator.calculate(make_request(), make_history(monthly_salaries=()))
        assert result.average_salary_12m == Decimal("300000.00")

    def test_average_over_available_months(self, calculator):
        history = make_history(
            monthly_salaries=(Decimal("310000"),) * 3 + (Decimal("250000"),) * 9
        )
        result = calculator.calculate(make_request(), history)

        assert result.average_salary_12m == Decimal("265000.00")

    def test_categorical_salary_drives_gratification(self, calculator):
        history = make_history(categorical_salary=Decimal("200000"))
        result = calculator.calculate(make_request(), history)

        assert result.gratification_amount == Decimal("37500")


class TestResultInvariants:
    """Tests for totals and determinism."""

    @pytest.mark.parametrize(
        "request_kwargs,history_kwargs",
        [
            ({}, {}),
            ({"dismissal_fault": DismissalFault.GROSS_FAULT}, {}),
            (
                {
                    "departure_type": DepartureType.RESIGNATION_INDEFINITE,
                    "notice_disposition": NoticeDisposition.WAIVED,
                },
                {},
            ),
            (
                {
                    "departure_type": DepartureType.NEGOTIATED_TERMINATION,
                    "negotiated_amount": Decimal("1234567"),
                },
                {},
            ),
            (
                {
                    "departure_type": DepartureType.END_OF_FIXED_TERM,
                    "notice_disposition": NoticeDisposition.WORKED,
                },
                {"contract_type": ContractType.FIXED_TERM},
            ),
            (
                {
                    "departure_type": DepartureType.DEATH,
                    "notice_disposition": NoticeDisposition.WORKED,
                    "beneficiaries": (beneficiary("a", "100"),),
                },
                {},
            ),
        ],
    )
    def test_gross_is_sum_of_items_and_net_is_gross_minus_deductions(
        self, calculator, request_kwargs, history_kwargs
    ):
        result = calculator.calculate(
            make_request(**request_kwargs), make_history(**history_kwargs)
        )

        assert result.gross_total == sum(amount for _, amount in result.lines())
        assert result.net_total == result.gross_total - result.deductions_total
        assert result.deductions_total >= 0

    def test_same_inputs_give_equal_results(self, calculator):
        first = calculator.calculate(
            make_request(), make_history(), calculated_at=datetime(2026, 4, 1, 8, 0)
        )
        second = calculator.calculate(
            make_request(), make_history(), calculated_at=datetime(2026, 4, 2, 9, 30)
        )

        assert first == second
        assert first.calculation_id == second.calculation_id

    def test_engine_version_changes_calculation_id(self, calculator):
        other = SettlementCalculator(engine_version="test-2.0.0")

        first = calculator.calculate(make_request(), make_history())
        second = other.calculate(make_request(), make_history())

        assert first.calculation_id != second.calculation_id

    def test_custom_deduction_estimator(self):
        calculator = SettlementCalculator(
            deduction_estimator=ZeroDeductions(), engine_version=ENGINE_VERSION
        )
        result = calculator.calculate(make_request(), make_history())

        assert result.deductions_total == Decimal("0")
        assert result.net_total == result.gross_total
