"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from settlement_engine.calculators.types import (
    Beneficiary,
    BeneficiaryRelationship,
    DepartureType,
    DismissalFault,
    NoticeDisposition,
    SettlementRequest,
    SettlementResult,
)
from settlement_engine.services.termination_service import (
    DocumentRefs,
    ProcessingAccepted,
    ProgressSnapshot,
)


class ErrorResponse(BaseModel):
    """Error body returned for every handled failure."""

    detail: str
    code: str


# ============================================================================
# Settlement schemas
# ============================================================================


class BeneficiaryIn(BaseModel):
    """Declared heir of a deceased employee."""

    name: str = Field(min_length=1)
    relationship: BeneficiaryRelationship
    identity_document_ref: str
    bank_account_ref: str
    share_percentage: Decimal


class SettlementRequestIn(BaseModel):
    """Settlement input; the tenant comes from the X-Tenant-ID header."""

    employee_id: UUID
    departure_type: DepartureType
    termination_date: date
    notice_disposition: NoticeDisposition
    dismissal_fault: DismissalFault | None = None
    negotiated_amount: Decimal | None = None
    beneficiaries: list[BeneficiaryIn] = Field(default_factory=list)

    def to_domain(self, tenant_id: UUID) -> SettlementRequest:
        return SettlementRequest(
            employee_id=self.employee_id,
            tenant_id=tenant_id,
            departure_type=self.departure_type,
            termination_date=self.termination_date,
            notice_disposition=self.notice_disposition,
            dismissal_fault=self.dismissal_fault,
            negotiated_amount=self.negotiated_amount,
            beneficiaries=tuple(
                Beneficiary(
                    name=b.name,
                    relationship=b.relationship,
                    identity_document_ref=b.identity_document_ref,
                    bank_account_ref=b.bank_account_ref,
                    share_percentage=b.share_percentage,
                )
                for b in self.beneficiaries
            ),
        )


class BeneficiaryShareResponse(BaseModel):
    name: str
    share_percentage: Decimal
    amount: Decimal


class ComplianceWarningResponse(BaseModel):
    code: str
    message: str


class SettlementResultResponse(BaseModel):
    """Itemized settlement."""

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
    calculated_at: datetime | None = None
    beneficiary_shares: list[BeneficiaryShareResponse] = Field(default_factory=list)
    warnings: list[ComplianceWarningResponse] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: SettlementResult) -> SettlementResultResponse:
        return cls(
            severance_amount=result.severance_amount,
            vacation_payout_amount=result.vacation_payout_amount,
            gratification_amount=result.gratification_amount,
            prorated_salary=result.prorated_salary,
            notice_payment_amount=result.notice_payment_amount,
            gross_total=result.gross_total,
            deductions_total=result.deductions_total,
            net_total=result.net_total,
            years_of_service=result.years_of_service,
            average_salary_12m=result.average_salary_12m,
            notice_days=result.notice_days,
            statutory_severance_floor=result.statutory_severance_floor,
            currency=result.currency,
            calculation_id=result.calculation_id,
            calculated_at=result.calculated_at,
            beneficiary_shares=[
                BeneficiaryShareResponse(
                    name=s.name, share_percentage=s.share_percentage, amount=s.amount
                )
                for s in result.beneficiary_shares
            ],
            warnings=[
                ComplianceWarningResponse(code=w.code, message=w.message)
                for w in result.warnings
            ],
        )


# ============================================================================
# Termination case schemas
# ============================================================================


class TerminationCaseResponse(BaseModel):
    """Schema for termination case response."""

    model_config = ConfigDict(from_attributes=True)

    termination_case_id: UUID
    tenant_id: UUID
    employee_id: UUID
    departure_type: str
    termination_date: date
    notice_disposition: str
    dismissal_fault: str | None = None
    negotiated_amount: Decimal | None = None
    status: str
    progress: int
    created_at: datetime


class ProcessRequest(BaseModel):
    """Body of a processing request; every field is optional."""

    issuer: str | None = None
    pay_date: date | None = None
    settlement: SettlementRequestIn | None = None


class ProcessingAcceptedResponse(BaseModel):
    accepted: bool
    job_handle: str
    termination_case_id: UUID
    status: str

    @classmethod
    def from_accepted(cls, accepted: ProcessingAccepted) -> ProcessingAcceptedResponse:
        return cls(
            accepted=accepted.accepted,
            job_handle=accepted.job_handle,
            termination_case_id=accepted.termination_case_id,
            status=accepted.status.value,
        )


class DocumentRefsResponse(BaseModel):
    work_certificate: str | None = None
    final_payslip: str | None = None
    fund_attestation: str | None = None
    version: int

    @classmethod
    def from_refs(cls, refs: DocumentRefs) -> DocumentRefsResponse:
        return cls(
            work_certificate=refs.work_certificate,
            final_payslip=refs.final_payslip,
            fund_attestation=refs.fund_attestation,
            version=refs.version,
        )


class ProgressResponse(BaseModel):
    """Polling view of a termination case."""

    termination_case_id: UUID
    status: str
    progress: int
    current_step: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: str | None = None
    result: SettlementResultResponse | None = None
    document_refs: DocumentRefsResponse | None = None
    regeneration_count: int = 0

    @classmethod
    def from_snapshot(cls, snapshot: ProgressSnapshot) -> ProgressResponse:
        return cls(
            termination_case_id=snapshot.termination_case_id,
            status=snapshot.status.value,
            progress=snapshot.progress,
            current_step=snapshot.current_step,
            started_at=snapshot.started_at,
            completed_at=snapshot.completed_at,
            error=snapshot.error,
            result=(
                SettlementResultResponse.from_result(snapshot.result)
                if snapshot.result is not None
                else None
            ),
            document_refs=(
                DocumentRefsResponse.from_refs(snapshot.document_refs)
                if snapshot.document_refs is not None
                else None
            ),
            regeneration_count=snapshot.regeneration_count,
        )


class RegenerateRequest(BaseModel):
    """Regeneration needs a reason for the audit trail."""

    reason: str = Field(min_length=1)
    issuer: str | None = None
    pay_date: date | None = None
    recompute: bool = False


class TerminationDocumentResponse(BaseModel):
    """Schema for one generated document."""

    model_config = ConfigDict(from_attributes=True)

    termination_document_id: UUID
    document_type: str
    version: int
    reference_id: str
    url: str | None = None
    generated_at: datetime
