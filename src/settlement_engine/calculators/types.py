"""Type definitions for the settlement calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class DepartureType(str, Enum):
    """How the employment relationship ended."""

    END_OF_FIXED_TERM = "end_of_fixed_term"
    RESIGNATION_INDEFINITE = "resignation_indefinite"
    RESIGNATION_FIXED_TERM = "resignation_fixed_term"
    DISMISSAL = "dismissal"
    NEGOTIATED_TERMINATION = "negotiated_termination"
    RETIREMENT = "retirement"
    DEATH = "death"


class NoticeDisposition(str, Enum):
    """What happened to the legally required notice period."""

    WORKED = "worked"
    PAID_BY_EMPLOYER = "paid_by_employer"
    PAID_BY_EMPLOYEE = "paid_by_employee"
    WAIVED = "waived"


class DismissalFault(str, Enum):
    """Grounds for a dismissal."""

    ECONOMIC = "economic"
    SIMPLE_FAULT = "simple_fault"
    SERIOUS_FAULT = "serious_fault"
    GROSS_FAULT = "gross_fault"
    UNFITNESS = "unfitness"


# Scale of stored request amounts (Numeric(14, 2) columns)
AMOUNT_PRECISION = Decimal("0.01")


def canonical_amount(value: Decimal) -> str:
    """Amount as hashed: fixed two-place scale, so 800000 and 800000.00 agree."""
    return str(value.quantize(AMOUNT_PRECISION, rounding=ROUND_HALF_UP))


# Fault subtypes that forfeit severance entirely
FORFEITING_FAULTS = frozenset({DismissalFault.SERIOUS_FAULT, DismissalFault.GROSS_FAULT})


class EmployeeCategory(str, Enum):
    """Professional category, drives the notice-period table."""

    WORKER = "worker"
    EXECUTIVE = "executive"


class ContractType(str, Enum):
    """Employment contract types."""

    INDEFINITE = "CDI"
    FIXED_TERM = "CDD"
    FIXED_TERM_CASUAL = "CDDTI"
    TEMPORARY = "INTERIM"


FIXED_TERM_CONTRACTS = frozenset(
    {ContractType.FIXED_TERM, ContractType.FIXED_TERM_CASUAL, ContractType.TEMPORARY}
)


class BeneficiaryRelationship(str, Enum):
    """Relationship of a beneficiary to a deceased employee."""

    SPOUSE = "spouse"
    CHILD = "child"
    PARENT = "parent"
    OTHER = "other"


@dataclass(frozen=True)
class Beneficiary:
    """Declared heir of a deceased employee."""

    name: str
    relationship: BeneficiaryRelationship
    identity_document_ref: str
    bank_account_ref: str
    share_percentage: Decimal

    def to_canonical_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "relationship": self.relationship.value,
            "identity_document_ref": self.identity_document_ref,
            "bank_account_ref": self.bank_account_ref,
            "share_percentage": str(self.share_percentage),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Beneficiary:
        return cls(
            name=data["name"],
            relationship=BeneficiaryRelationship(data["relationship"]),
            identity_document_ref=data["identity_document_ref"],
            bank_account_ref=data["bank_account_ref"],
            share_percentage=Decimal(str(data["share_percentage"])),
        )


@dataclass(frozen=True)
class SettlementRequest:
    """Input to a settlement calculation."""

    employee_id: UUID
    tenant_id: UUID
    departure_type: DepartureType
    termination_date: date
    notice_disposition: NoticeDisposition
    dismissal_fault: DismissalFault | None = None
    negotiated_amount: Decimal | None = None
    beneficiaries: tuple[Beneficiary, ...] = ()

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return canonical dict for hashing (deterministic ordering)."""
        return {
            "employee_id": str(self.employee_id),
            "tenant_id": str(self.tenant_id),
            "departure_type": self.departure_type.value,
            "termination_date": self.termination_date.isoformat(),
            "notice_disposition": self.notice_disposition.value,
            "dismissal_fault": self.dismissal_fault.value if self.dismissal_fault else None,
            "negotiated_amount": (
                canonical_amount(self.negotiated_amount)
                if self.negotiated_amount is not None
                else None
            ),
            "beneficiaries": [b.to_canonical_dict() for b in self.beneficiaries],
        }


@dataclass(frozen=True)
class SalaryHistory:
    """Employee pay and tenure data the calculator needs.

    ``monthly_salaries`` holds the monthly gross base salary for each month of
    the trailing twelve-month window, most recent first. Months without an
    applicable salary record are simply absent.
    """

    hire_date: date
    current_monthly_salary: Decimal
    monthly_salaries: tuple[Decimal, ...]
    unused_leave_days: Decimal = Decimal("0")
    category: EmployeeCategory = EmployeeCategory.WORKER
    country_code: str = "CI"
    categorical_salary: Decimal | None = None
    date_of_birth: date | None = None
    contract_type: ContractType | None = None
    contract_end_date: date | None = None

    @property
    def gratification_base(self) -> Decimal:
        """Salary used for the gratification (categorical salary when known)."""
        if self.categorical_salary is not None:
            return self.categorical_salary
        return self.current_monthly_salary

    def to_canonical_dict(self) -> dict[str, Any]:
        return {
            "hire_date": self.hire_date.isoformat(),
            "current_monthly_salary": str(self.current_monthly_salary),
            "monthly_salaries": [str(s) for s in self.monthly_salaries],
            "unused_leave_days": str(self.unused_leave_days),
            "category": self.category.value,
            "country_code": self.country_code,
            "categorical_salary": (
                str(self.categorical_salary) if self.categorical_salary is not None else None
            ),
            "date_of_birth": self.date_of_birth.isoformat() if self.date_of_birth else None,
            "contract_type": self.contract_type.value if self.contract_type else None,
            "contract_end_date": (
                self.contract_end_date.isoformat() if self.contract_end_date else None
            ),
        }


@dataclass(frozen=True)
class ComplianceWarning:
    """Non-fatal compliance finding attached to a result."""

    code: str
    message: str


@dataclass(frozen=True)
class BeneficiaryShare:
    """Portion of a deceased employee's net settlement owed to one heir."""

    name: str
    share_percentage: Decimal
    amount: Decimal


@dataclass(frozen=True)
class DeductionEstimate:
    """Statutory deductions withheld from the gross settlement."""

    taxable_amount: Decimal
    social_contribution: Decimal
    income_tax: Decimal

    @property
    def total(self) -> Decimal:
        return self.social_contribution + self.income_tax


@dataclass(frozen=True)
class SettlementItems:
    """The five itemized amounts of a settlement (already rounded)."""

    severance: Decimal
    vacation_payout: Decimal
    gratification: Decimal
    prorated_salary: Decimal
    notice_payment: Decimal

    @property
    def total(self) -> Decimal:
        return (
            self.severance
            + self.vacation_payout
            + self.gratification
            + self.prorated_salary
            + self.notice_payment
        )


@dataclass(frozen=True)
class SettlementResult:
    """Itemized final settlement.

    ``gross_total`` always equals the sum of the five itemized amounts.
    ``calculated_at`` is informational and excluded from equality, so two
    calculations over identical inputs compare equal.
    """

    severance_amount: Decimal
    vacation_payout_amount: Decimal
    gratification_amount: Decimal
    prorated_salary: Decimal
    notice_payment_amount: Decimal
    gross_total: Decimal
    deductions_total: Decimal
    net_total: Decimal
    years_of_service: Decimal
    average_salary_12m: Decimal
    notice_days: int
    statutory_severance_floor: Decimal
    currency: str
    calculation_id: UUID
    beneficiary_shares: tuple[BeneficiaryShare, ...] = ()
    warnings: tuple[ComplianceWarning, ...] = ()
    calculated_at: datetime | None = field(default=None, compare=False)

    @property
    def items(self) -> SettlementItems:
        return SettlementItems(
            severance=self.severance_amount,
            vacation_payout=self.vacation_payout_amount,
            gratification=self.gratification_amount,
            prorated_salary=self.prorated_salary,
            notice_payment=self.notice_payment_amount,
        )

    def lines(self) -> list[tuple[str, Decimal]]:
        """Itemized lines in display order (code, amount)."""
        return [
            ("prorated_salary", self.prorated_salary),
            ("vacation_payout", self.vacation_payout_amount),
            ("gratification", self.gratification_amount),
            ("notice_payment", self.notice_payment_amount),
            ("severance", self.severance_amount),
        ]

    def extras_to_dict(self) -> dict[str, Any]:
        """Serialize the non-scalar parts for JSON persistence."""
        return {
            "currency": self.currency,
            "beneficiary_shares": [
                {
                    "name": s.name,
                    "share_percentage": str(s.share_percentage),
                    "amount": str(s.amount),
                }
                for s in self.beneficiary_shares
            ],
            "warnings": [{"code": w.code, "message": w.message} for w in self.warnings],
        }
