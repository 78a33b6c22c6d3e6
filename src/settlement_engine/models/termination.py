"""Termination case, generated document and audit models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, Date, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settlement_engine.calculators.types import (
    Beneficiary,
    BeneficiaryShare,
    ComplianceWarning,
    DepartureType,
    DismissalFault,
    NoticeDisposition,
    SettlementRequest,
    SettlementResult,
)
from settlement_engine.models.base import Base, TimestampMixin, utcnow

if TYPE_CHECKING:
    from settlement_engine.models.employee import Employee


class TerminationCase(Base, TimestampMixin):
    """One employee departure and its settlement workflow.

    The settlement numbers are frozen on the row once calculated; document
    regeneration reuses them unless a recompute is requested.
    """

    __tablename__ = "termination_case"

    termination_case_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )

    # Request
    departure_type: Mapped[str] = mapped_column(String, nullable=False)
    termination_date: Mapped[date] = mapped_column(Date, nullable=False)
    notice_disposition: Mapped[str] = mapped_column(String, nullable=False)
    dismissal_fault: Mapped[str | None] = mapped_column(String, nullable=True)
    negotiated_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    beneficiaries_json: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )

    # Workflow
    status: Mapped[str] = mapped_column(String, nullable=False, default="idle")
    progress: Mapped[int] = mapped_column(nullable=False, default=0)
    current_step: Mapped[str | None] = mapped_column(String, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    job_handle: Mapped[str | None] = mapped_column(String, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    claimed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_heartbeat_at: Mapped[datetime | None] = mapped_column(nullable=True)
    requested_at: Mapped[datetime | None] = mapped_column(nullable=True)
    issuer: Mapped[str | None] = mapped_column(String, nullable=True)
    pay_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    recompute_requested: Mapped[bool] = mapped_column(nullable=False, default=False)

    # Frozen settlement
    severance_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    vacation_payout_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    gratification_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    prorated_salary: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    notice_payment_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    gross_total: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    deductions_total: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    net_total: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    years_of_service: Mapped[Decimal | None] = mapped_column(Numeric(8, 4), nullable=True)
    average_salary_12m: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    notice_days: Mapped[int | None] = mapped_column(nullable=True)
    statutory_severance_floor: Mapped[Decimal | None] = mapped_column(
        Numeric(14, 2), nullable=True
    )
    calculation_id: Mapped[UUID | None] = mapped_column(nullable=True)
    calculated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    result_extras_json: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    # Documents
    work_certificate_ref: Mapped[str | None] = mapped_column(String, nullable=True)
    final_payslip_ref: Mapped[str | None] = mapped_column(String, nullable=True)
    fund_attestation_ref: Mapped[str | None] = mapped_column(String, nullable=True)
    documents_version: Mapped[int] = mapped_column(nullable=False, default=0)
    regeneration_count: Mapped[int] = mapped_column(nullable=False, default=0)

    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint(
            "status IN ('idle', 'pending', 'processing', 'completed', 'failed')",
            name="termination_case_status_check",
        ),
        CheckConstraint(
            "progress >= 0 AND progress <= 100",
            name="termination_case_progress_range",
        ),
        Index("ix_termination_case_tenant_status", "tenant_id", "status"),
    )

    # Relationships
    employee: Mapped[Employee] = relationship()
    documents: Mapped[list[TerminationDocument]] = relationship(
        back_populates="termination_case",
        order_by="TerminationDocument.version",
    )

    @property
    def has_result(self) -> bool:
        return self.calculation_id is not None

    def to_settlement_request(self) -> SettlementRequest:
        """Rebuild the calculator input stored on the case."""
        return SettlementRequest(
            employee_id=self.employee_id,
            tenant_id=self.tenant_id,
            departure_type=DepartureType(self.departure_type),
            termination_date=self.termination_date,
            notice_disposition=NoticeDisposition(self.notice_disposition),
            dismissal_fault=DismissalFault(self.dismissal_fault) if self.dismissal_fault else None,
            negotiated_amount=(
                Decimal(self.negotiated_amount) if self.negotiated_amount is not None else None
            ),
            beneficiaries=tuple(Beneficiary.from_dict(b) for b in self.beneficiaries_json or []),
        )

    def frozen_result(self) -> SettlementResult | None:
        """Rebuild the settlement frozen on the row, if any."""
        if not self.has_result:
            return None
        extras = self.result_extras_json or {}
        return SettlementResult(
            severance_amount=Decimal(self.severance_amount),
            vacation_payout_amount=Decimal(self.vacation_payout_amount),
            gratification_amount=Decimal(self.gratification_amount),
            prorated_salary=Decimal(self.prorated_salary),
            notice_payment_amount=Decimal(self.notice_payment_amount),
            gross_total=Decimal(self.gross_total),
            deductions_total=Decimal(self.deductions_total),
            net_total=Decimal(self.net_total),
            years_of_service=Decimal(self.years_of_service),
            average_salary_12m=Decimal(self.average_salary_12m),
            notice_days=self.notice_days or 0,
            statutory_severance_floor=Decimal(self.statutory_severance_floor),
            currency=extras.get("currency", "XOF"),
            calculation_id=self.calculation_id,
            beneficiary_shares=tuple(
                BeneficiaryShare(
                    name=s["name"],
                    share_percentage=Decimal(s["share_percentage"]),
                    amount=Decimal(s["amount"]),
                )
                for s in extras.get("beneficiary_shares", [])
            ),
            warnings=tuple(
                ComplianceWarning(code=w["code"], message=w["message"])
                for w in extras.get("warnings", [])
            ),
            calculated_at=self.calculated_at,
        )

    def document_refs(self) -> dict[str, str | None]:
        return {
            "work_certificate": self.work_certificate_ref,
            "final_payslip": self.final_payslip_ref,
            "fund_attestation": self.fund_attestation_ref,
        }


def result_columns(result: SettlementResult) -> dict[str, Any]:
    """Column values freezing a settlement on a termination case."""
    return {
        "severance_amount": result.severance_amount,
        "vacation_payout_amount": result.vacation_payout_amount,
        "gratification_amount": result.gratification_amount,
        "prorated_salary": result.prorated_salary,
        "notice_payment_amount": result.notice_payment_amount,
        "gross_total": result.gross_total,
        "deductions_total": result.deductions_total,
        "net_total": result.net_total,
        "years_of_service": result.years_of_service,
        "average_salary_12m": result.average_salary_12m,
        "notice_days": result.notice_days,
        "statutory_severance_floor": result.statutory_severance_floor,
        "calculation_id": result.calculation_id,
        "calculated_at": result.calculated_at,
        "result_extras_json": result.extras_to_dict(),
    }


class TerminationDocument(Base, TimestampMixin):
    """One generated settlement document (versioned history)."""

    __tablename__ = "termination_document"

    termination_document_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    termination_case_id: Mapped[UUID] = mapped_column(
        ForeignKey("termination_case.termination_case_id", ondelete="CASCADE"),
        nullable=False,
    )
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )
    document_type: Mapped[str] = mapped_column(String, nullable=False)
    version: Mapped[int] = mapped_column(nullable=False)
    reference_id: Mapped[str] = mapped_column(String, nullable=False)
    url: Mapped[str | None] = mapped_column(String, nullable=True)
    generated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "document_type IN ('work_certificate', 'final_payslip', 'fund_attestation')",
            name="termination_document_type_check",
        ),
        Index("ix_termination_document_case_version", "termination_case_id", "version"),
    )

    # Relationships
    termination_case: Mapped[TerminationCase] = relationship(back_populates="documents")


class AuditEvent(Base, TimestampMixin):
    """Audit trail entry."""

    __tablename__ = "audit_event"

    audit_event_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )
    actor_user_id: Mapped[UUID | None] = mapped_column(nullable=True)
    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[UUID] = mapped_column(nullable=False)
    action: Mapped[str] = mapped_column(String, nullable=False)
    details_json: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
