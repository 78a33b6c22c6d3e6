"""Final settlement (STC) calculator.

Calculation pipeline (stable order):
1) Validate the request against its departure classification
2) Derive seniority and the trailing twelve-month average salary
3) Compute the common items (prorated salary, vacation, gratification)
4) Compute severance and notice for the departure classification
5) Round each item once, sum to gross, estimate deductions, derive net
6) Apportion net across beneficiaries (death only)

The calculator never touches storage: it is a pure function of the request,
the salary history and the compliance tables, so a preview always matches
the later confirmed calculation.
"""

from __future__ import annotations

import calendar
import hashlib
import json
import logging
from collections.abc import Sequence
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal, InvalidOperation
from uuid import UUID

from settlement_engine.calculators.compliance import ComplianceRulesProvider
from settlement_engine.calculators.deductions import (
    DeductionEstimator,
    StatutoryDeductionEstimator,
)
from settlement_engine.calculators.types import (
    AMOUNT_PRECISION,
    FIXED_TERM_CONTRACTS,
    FORFEITING_FAULTS,
    Beneficiary,
    BeneficiaryShare,
    ComplianceWarning,
    ContractType,
    DepartureType,
    NoticeDisposition,
    SalaryHistory,
    SettlementItems,
    SettlementRequest,
    SettlementResult,
    canonical_amount,
)
from settlement_engine.config import get_settings
from settlement_engine.errors import ComputationError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = Decimal("365.25")
YEARS_PRECISION = Decimal("0.0001")
AVERAGE_PRECISION = Decimal("0.01")
HUNDRED = Decimal("100")

RESIGNATION_TYPES = frozenset(
    {DepartureType.RESIGNATION_INDEFINITE, DepartureType.RESIGNATION_FIXED_TERM}
)
# Notice owed by the employee is deducted from the settlement
EMPLOYEE_OWES_NOTICE = frozenset({NoticeDisposition.WAIVED, NoticeDisposition.PAID_BY_EMPLOYEE})


def validate_request(request: SettlementRequest) -> None:
    """Check the classification-specific invariants of a request."""
    departure = request.departure_type

    if departure == DepartureType.DISMISSAL:
        if request.dismissal_fault is None:
            raise ValidationError("dismissal_fault is required for dismissal", field="dismissal_fault")
    elif request.dismissal_fault is not None:
        raise ValidationError(
            f"dismissal_fault is only allowed for dismissal (got {departure.value})",
            field="dismissal_fault",
        )

    if request.negotiated_amount is not None:
        if departure != DepartureType.NEGOTIATED_TERMINATION:
            raise ValidationError(
                f"negotiated_amount is only allowed for negotiated_termination "
                f"(got {departure.value})",
                field="negotiated_amount",
            )
        if request.negotiated_amount < 0:
            raise ValidationError("negotiated_amount must not be negative", field="negotiated_amount")
        if request.negotiated_amount != request.negotiated_amount.quantize(AMOUNT_PRECISION):
            raise ValidationError(
                "negotiated_amount must not have more than two decimal places",
                field="negotiated_amount",
            )

    if departure == DepartureType.DEATH:
        validate_beneficiaries(request.beneficiaries)
    elif request.beneficiaries:
        raise ValidationError(
            f"beneficiaries are only allowed for death (got {departure.value})",
            field="beneficiaries",
        )


def validate_beneficiaries(beneficiaries: Sequence[Beneficiary]) -> None:
    if not beneficiaries:
        raise ValidationError("At least one beneficiary is required for death", field="beneficiaries")
    for beneficiary in beneficiaries:
        if beneficiary.share_percentage <= 0:
            raise ValidationError(
                f"Share of beneficiary '{beneficiary.name}' must be positive",
                field="beneficiaries",
            )
    total = sum((b.share_percentage for b in beneficiaries), Decimal("0"))
    if total != HUNDRED:
        raise ValidationError(
            f"Beneficiary shares must sum to exactly 100 (got {total})",
            field="beneficiaries",
        )


def years_of_service(hire_date: date, termination_date: date) -> Decimal:
    """Fractional seniority, calendar days divided by 365.25."""
    days = (termination_date - hire_date).days
    if days <= 0:
        raise ValidationError(
            f"Years of service must be positive (hired {hire_date}, terminated {termination_date})",
            field="termination_date",
        )
    return (Decimal(days) / DAYS_PER_YEAR).quantize(YEARS_PRECISION, rounding=ROUND_HALF_UP)


def statutory_severance(
    average_salary: Decimal,
    seniority: Decimal,
    rules: ComplianceRulesProvider,
    sector: str | None = None,
) -> Decimal:
    """Tiered statutory dismissal severance (unrounded).

    Each year of service is paid at the rate of the bracket it falls in, so
    six years in CI are five years at 30% plus one year at 35%.
    """
    if seniority < rules.rules.minimum_severance_years:
        return Decimal("0")

    total = Decimal("0")
    for bracket in rules.severance_brackets(sector):
        if seniority <= bracket.from_years:
            break
        upper = seniority if bracket.to_years is None else min(seniority, bracket.to_years)
        total += average_salary * (upper - bracket.from_years) * bracket.rate_percent / HUNDRED
    return total


def apportion_net(
    net_total: Decimal,
    beneficiaries: Sequence[Beneficiary],
    minor_unit: Decimal,
) -> tuple[BeneficiaryShare, ...]:
    """Split the net settlement by share percentage.

    Each share is rounded down to the currency unit and the remainder goes
    to the first-listed beneficiary, so the shares always add up to the net.
    """
    amounts = [
        (net_total * b.share_percentage / HUNDRED).quantize(minor_unit, rounding=ROUND_FLOOR)
        for b in beneficiaries
    ]
    amounts[0] += net_total - sum(amounts, Decimal("0"))
    return tuple(
        BeneficiaryShare(name=b.name, share_percentage=b.share_percentage, amount=amount)
        for b, amount in zip(beneficiaries, amounts)
    )


def _months_worked_in_year(hire_date: date, termination_date: date) -> int:
    """Completed months between the later of 1 January and hire, and termination (inclusive)."""
    start = max(date(termination_date.year, 1, 1), hire_date)
    end = termination_date + timedelta(days=1)
    months = (end.year - start.year) * 12 + end.month - start.month
    if end.day < start.day:
        months -= 1
    return max(0, min(12, months))


def _age_on(date_of_birth: date, on: date) -> int:
    age = on.year - date_of_birth.year
    if (on.month, on.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


class SettlementCalculator:
    """Computes the itemized final settlement of one employee.

    Usage:
        calculator = SettlementCalculator()
        result = calculator.calculate(request, history)
    """

    def __init__(
        self,
        deduction_estimator: DeductionEstimator | None = None,
        engine_version: str | None = None,
    ):
        self.deduction_estimator = deduction_estimator or StatutoryDeductionEstimator()
        self.engine_version = engine_version or get_settings().engine_version

    def calculate(
        self,
        request: SettlementRequest,
        history: SalaryHistory,
        calculated_at: datetime | None = None,
    ) -> SettlementResult:
        """Calculate the settlement.

        Raises:
            ValidationError: Request or history violates a legal invariant
            NotFoundError: No salary data at all
            ComputationError: Unsupported country or arithmetic failure
        """
        validate_request(request)
        rules = ComplianceRulesProvider.for_country(history.country_code)

        try:
            return self._calculate(request, history, rules, calculated_at)
        except (ArithmeticError, InvalidOperation) as e:
            logger.exception("Settlement arithmetic failed for employee %s", request.employee_id)
            raise ComputationError(f"Settlement calculation failed: {e}") from e

    def _calculate(
        self,
        request: SettlementRequest,
        history: SalaryHistory,
        rules: ComplianceRulesProvider,
        calculated_at: datetime | None,
    ) -> SettlementResult:
        self._validate_history(request, history, rules)

        seniority = years_of_service(history.hire_date, request.termination_date)
        average = self._average_salary(request, history)
        monthly = history.current_monthly_salary
        daily = monthly / 30
        termination = request.termination_date
        warnings: list[ComplianceWarning] = []

        # Common items
        days_in_month = calendar.monthrange(termination.year, termination.month)[1]
        prorated = monthly * termination.day / days_in_month
        vacation = daily * history.unused_leave_days
        months = _months_worked_in_year(history.hire_date, termination)
        gratification = history.gratification_base * rules.rules.gratification_rate * months / 12

        # Severance and notice by classification
        floor = rules.round_amount(statutory_severance(average, seniority, rules))
        severance = Decimal("0")
        notice_days = 0
        notice_amount = Decimal("0")
        departure = request.departure_type
        disposition = request.notice_disposition

        # End of fixed term, retirement and death carry no severance or notice
        if departure in RESIGNATION_TYPES:
            notice_days = self._resignation_notice_days(request, history, seniority, rules)
            if disposition in EMPLOYEE_OWES_NOTICE:
                notice_amount = -daily * notice_days
            elif disposition == NoticeDisposition.PAID_BY_EMPLOYER:
                notice_amount = daily * notice_days

        elif departure == DepartureType.DISMISSAL:
            if request.dismissal_fault not in FORFEITING_FAULTS:
                severance = floor
            notice_days, notice_amount = self._employer_notice(history, seniority, disposition, rules)

        elif departure == DepartureType.NEGOTIATED_TERMINATION:
            severance = floor
            negotiated = request.negotiated_amount
            if negotiated is not None:
                if negotiated < floor:
                    warnings.append(
                        ComplianceWarning(
                            code="negotiated_below_statutory_floor",
                            message=(
                                f"Negotiated amount {canonical_amount(negotiated)} is below "
                                f"the statutory floor {floor}; the floor applies"
                            ),
                        )
                    )
                else:
                    severance = negotiated
            notice_days, notice_amount = self._employer_notice(history, seniority, disposition, rules)

        items = SettlementItems(
            severance=rules.round_amount(severance),
            vacation_payout=rules.round_amount(vacation),
            gratification=rules.round_amount(gratification),
            prorated_salary=rules.round_amount(prorated),
            notice_payment=rules.round_amount(notice_amount),
        )
        gross = items.total
        deductions = max(
            rules.round_amount(self.deduction_estimator.estimate(items, rules).total),
            Decimal("0"),
        )
        net = gross - deductions

        shares: tuple[BeneficiaryShare, ...] = ()
        if departure == DepartureType.DEATH:
            shares = apportion_net(net, request.beneficiaries, rules.rules.minor_unit)

        return SettlementResult(
            severance_amount=items.severance,
            vacation_payout_amount=items.vacation_payout,
            gratification_amount=items.gratification,
            prorated_salary=items.prorated_salary,
            notice_payment_amount=items.notice_payment,
            gross_total=gross,
            deductions_total=deductions,
            net_total=net,
            years_of_service=seniority,
            average_salary_12m=average,
            notice_days=notice_days,
            statutory_severance_floor=floor,
            currency=rules.currency,
            calculation_id=self._generate_calculation_id(request, history),
            beneficiary_shares=shares,
            warnings=tuple(warnings),
            calculated_at=calculated_at or datetime.now(timezone.utc).replace(tzinfo=None),
        )

    def _validate_history(
        self,
        request: SettlementRequest,
        history: SalaryHistory,
        rules: ComplianceRulesProvider,
    ) -> None:
        if history.unused_leave_days < 0:
            raise ValidationError("unused_leave_days must not be negative", field="unused_leave_days")

        departure = request.departure_type
        contract = history.contract_type
        if contract is not None:
            if departure in (DepartureType.END_OF_FIXED_TERM, DepartureType.RESIGNATION_FIXED_TERM):
                if contract not in FIXED_TERM_CONTRACTS:
                    raise ValidationError(
                        f"{departure.value} requires a fixed-term contract (got {contract.value})",
                        field="departure_type",
                    )
            elif departure == DepartureType.RESIGNATION_INDEFINITE and contract != ContractType.INDEFINITE:
                raise ValidationError(
                    f"resignation_indefinite requires an indefinite contract (got {contract.value})",
                    field="departure_type",
                )

        if departure == DepartureType.RETIREMENT and history.date_of_birth is not None:
            age = _age_on(history.date_of_birth, request.termination_date)
            if age < rules.rules.retirement_age:
                raise ValidationError(
                    f"Employee is {age}, below the retirement age of {rules.rules.retirement_age}",
                    field="departure_type",
                )

    def _average_salary(self, request: SettlementRequest, history: SalaryHistory) -> Decimal:
        salaries = history.monthly_salaries
        if not salaries and history.current_monthly_salary <= 0:
            raise NotFoundError("Salary history", request.employee_id)

        if salaries:
            average = sum(salaries, Decimal("0")) / len(salaries)
        else:
            average = history.current_monthly_salary
        average = average.quantize(AVERAGE_PRECISION, rounding=ROUND_HALF_UP)

        if average <= 0:
            raise ValidationError(
                f"Average salary must be positive (got {average})", field="monthly_salaries"
            )
        return average

    @staticmethod
    def _resignation_notice_days(
        request: SettlementRequest,
        history: SalaryHistory,
        seniority: Decimal,
        rules: ComplianceRulesProvider,
    ) -> int:
        if (
            request.departure_type == DepartureType.RESIGNATION_FIXED_TERM
            and history.contract_end_date is not None
        ):
            # Early break of a fixed-term contract: the remaining term is owed
            return max(0, (history.contract_end_date - request.termination_date).days)
        return rules.legal_minimum_notice_days(seniority, history.category)

    @staticmethod
    def _employer_notice(
        history: SalaryHistory,
        seniority: Decimal,
        disposition: NoticeDisposition,
        rules: ComplianceRulesProvider,
    ) -> tuple[int, Decimal]:
        notice_days = rules.legal_minimum_notice_days(seniority, history.category)
        if disposition != NoticeDisposition.PAID_BY_EMPLOYER:
            return notice_days, Decimal("0")
        return notice_days, history.current_monthly_salary / 30 * notice_days

    def _generate_calculation_id(
        self, request: SettlementRequest, history: SalaryHistory
    ) -> UUID:
        """Generate deterministic calculation ID."""
        data = {
            "request": request.to_canonical_dict(),
            "history": history.to_canonical_dict(),
            "engine_version": self.engine_version,
        }
        json_str = json.dumps(data, sort_keys=True)
        hash_bytes = hashlib.sha256(json_str.encode()).digest()
        return UUID(bytes=hash_bytes[:16])
