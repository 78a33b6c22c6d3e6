"""Termination service - request-facing operations on termination cases."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from settlement_engine.calculators.settlement import SettlementCalculator, validate_request
from settlement_engine.calculators.types import SettlementRequest, SettlementResult
from settlement_engine.errors import (
    ComputationError,
    ConflictError,
    NotFoundError,
    SettlementEngineError,
    ValidationError,
)
from settlement_engine.models import (
    AuditEvent,
    Employee,
    TerminationCase,
    TerminationDocument,
    utcnow,
)
from settlement_engine.services.job_queue import JobQueue
from settlement_engine.services.salary_history import SalaryHistoryLoader
from settlement_engine.services.state_machine import (
    InvalidTransitionError,
    TerminationStateMachine,
    TerminationStatus,
)
from settlement_engine.services.termination_processor import TerminationProcessor

logger = logging.getLogger(__name__)

STEP_QUEUED = "queued"


@dataclass(frozen=True)
class ProcessingAccepted:
    """Acknowledgement of an enqueued processing run."""

    accepted: bool
    job_handle: str
    termination_case_id: UUID
    status: TerminationStatus


@dataclass(frozen=True)
class DocumentRefs:
    """References of the current document set of a case."""

    work_certificate: str | None
    final_payslip: str | None
    fund_attestation: str | None
    version: int

    @classmethod
    def from_case(cls, case: TerminationCase) -> DocumentRefs:
        return cls(
            work_certificate=case.work_certificate_ref,
            final_payslip=case.final_payslip_ref,
            fund_attestation=case.fund_attestation_ref,
            version=case.documents_version,
        )

    @property
    def complete(self) -> bool:
        return all((self.work_certificate, self.final_payslip, self.fund_attestation))


@dataclass(frozen=True)
class ProgressSnapshot:
    """What a polling client sees of a case."""

    termination_case_id: UUID
    status: TerminationStatus
    progress: int
    current_step: str | None
    started_at: datetime | None
    completed_at: datetime | None
    error: str | None
    result: SettlementResult | None
    document_refs: DocumentRefs | None
    regeneration_count: int = 0


def request_columns(request: SettlementRequest) -> dict[str, Any]:
    """Column values storing a settlement request on a termination case."""
    return {
        "departure_type": request.departure_type.value,
        "termination_date": request.termination_date,
        "notice_disposition": request.notice_disposition.value,
        "dismissal_fault": request.dismissal_fault.value if request.dismissal_fault else None,
        "negotiated_amount": request.negotiated_amount,
        "beneficiaries_json": [b.to_canonical_dict() for b in request.beneficiaries],
    }


class TerminationService:
    """Service for managing the termination workflow.

    Operations:
    - create_case: Record a termination (status idle)
    - preview_settlement: Calculate without persisting anything
    - start_processing: Move to pending and enqueue the background run
    - get_progress: Poll the persisted state of a case
    - regenerate_documents: Re-run document generation for a finished case
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        calculator: SettlementCalculator,
        queue: JobQueue,
        processor: TerminationProcessor,
    ):
        self.session_factory = session_factory
        self.calculator = calculator
        self.queue = queue
        self.processor = processor

    async def create_case(
        self,
        request: SettlementRequest,
        actor_user_id: UUID | None = None,
    ) -> TerminationCase:
        """Record a termination case in status idle."""
        validate_request(request)

        async with self.session_factory() as session:
            await self._get_employee(session, request.employee_id, request.tenant_id)

            case = TerminationCase(
                tenant_id=request.tenant_id,
                employee_id=request.employee_id,
                status=TerminationStatus.IDLE.value,
                progress=0,
                documents_version=0,
                regeneration_count=0,
                recompute_requested=False,
                **request_columns(request),
            )
            session.add(case)
            await session.flush()

            self._record_audit(
                session,
                case,
                action="case_created",
                actor_user_id=actor_user_id,
                details={"departure_type": request.departure_type.value},
            )
            await session.commit()

        logger.info(
            "Created termination case %s for employee %s (%s)",
            case.termination_case_id,
            request.employee_id,
            request.departure_type.value,
        )
        return case

    async def preview_settlement(self, request: SettlementRequest) -> SettlementResult:
        """Calculate a settlement without touching persisted state."""
        validate_request(request)
        async with self.session_factory() as session:
            history = await SalaryHistoryLoader(session).load(
                request.employee_id, request.tenant_id, request.termination_date
            )
        return self.calculator.calculate(request, history)

    async def start_processing(
        self,
        termination_case_id: UUID,
        tenant_id: UUID,
        request: SettlementRequest | None = None,
        issuer: str | None = None,
        pay_date: date | None = None,
        actor_user_id: UUID | None = None,
    ) -> ProcessingAccepted:
        """Move the case to pending and enqueue its background run.

        Passing a request replaces the stored one and forces the settlement
        to be recalculated.

        Raises:
            ValidationError: Request invalid or for another employee
            NotFoundError: No such case for the tenant
            ConflictError: A run is already pending or processing
        """
        if request is not None:
            validate_request(request)

        await self._request_run(
            termination_case_id,
            tenant_id,
            allowed=TerminationStateMachine.ENQUEUE_ALLOWED,
            action="processing_requested",
            request=request,
            issuer=issuer,
            pay_date=pay_date,
            recompute=request is not None,
            actor_user_id=actor_user_id,
        )

        handle = self.queue.enqueue(
            termination_case_id,
            lambda: self.processor.process(termination_case_id),
        )
        async with self.session_factory() as session:
            await session.execute(
                update(TerminationCase)
                .where(TerminationCase.termination_case_id == termination_case_id)
                .values(job_handle=str(handle))
            )
            await session.commit()

        return ProcessingAccepted(
            accepted=True,
            job_handle=str(handle),
            termination_case_id=termination_case_id,
            status=TerminationStatus.PENDING,
        )

    async def regenerate_documents(
        self,
        termination_case_id: UUID,
        tenant_id: UUID,
        reason: str,
        issuer: str | None = None,
        pay_date: date | None = None,
        recompute: bool = False,
        actor_user_id: UUID | None = None,
    ) -> DocumentRefs:
        """Produce a new document version for a completed or failed case.

        The run goes through pending → processing → completed like any other
        and is awaited here. The frozen settlement is reused unless
        ``recompute`` is set.

        Raises:
            ValidationError: Empty reason
            NotFoundError: No such case for the tenant
            ConflictError: Case is not completed or failed
            DocumentGenerationError: One or more documents failed
        """
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to regenerate documents", field="reason")

        await self._request_run(
            termination_case_id,
            tenant_id,
            allowed=TerminationStateMachine.REGENERATION_ALLOWED,
            action="regeneration_requested",
            issuer=issuer,
            pay_date=pay_date,
            recompute=recompute,
            regeneration=True,
            actor_user_id=actor_user_id,
            details={"reason": reason.strip(), "recompute": recompute},
        )

        outcome = await self.processor.process(termination_case_id)
        if outcome.succeeded:
            async with self.session_factory() as session:
                case = await self._get_case(session, termination_case_id, tenant_id)
            return DocumentRefs.from_case(case)

        if not outcome.claimed:
            raise ConflictError(
                f"Termination case {termination_case_id} was claimed by another worker"
            )
        if isinstance(outcome.exception, SettlementEngineError):
            raise outcome.exception
        raise ComputationError(outcome.error or "Regeneration failed")

    async def get_progress(self, termination_case_id: UUID, tenant_id: UUID) -> ProgressSnapshot:
        """Read the persisted workflow state of a case."""
        async with self.session_factory() as session:
            case = await self._get_case(session, termination_case_id, tenant_id)

        refs = DocumentRefs.from_case(case)
        return ProgressSnapshot(
            termination_case_id=case.termination_case_id,
            status=TerminationStateMachine.coerce(case.status),
            progress=case.progress,
            current_step=case.current_step,
            started_at=case.started_at,
            completed_at=case.completed_at,
            error=case.error_message,
            result=case.frozen_result(),
            document_refs=refs if refs.version > 0 else None,
            regeneration_count=case.regeneration_count,
        )

    async def list_documents(
        self, termination_case_id: UUID, tenant_id: UUID
    ) -> list[TerminationDocument]:
        """Every generated document of a case, oldest version first."""
        async with self.session_factory() as session:
            await self._get_case(session, termination_case_id, tenant_id)
            result = await session.execute(
                select(TerminationDocument)
                .where(TerminationDocument.termination_case_id == termination_case_id)
                .order_by(TerminationDocument.version, TerminationDocument.document_type)
            )
            return list(result.scalars().all())

    # === Internals ===

    async def _request_run(
        self,
        termination_case_id: UUID,
        tenant_id: UUID,
        allowed: frozenset[TerminationStatus],
        action: str,
        request: SettlementRequest | None = None,
        issuer: str | None = None,
        pay_date: date | None = None,
        recompute: bool = False,
        regeneration: bool = False,
        actor_user_id: UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Conditionally move a case to pending from one of ``allowed``."""
        values: dict[str, Any] = {
            "status": TerminationStatus.PENDING.value,
            "progress": 0,
            "current_step": STEP_QUEUED,
            "error_message": None,
            "requested_at": utcnow(),
            "started_at": None,
            "completed_at": None,
            "claimed_at": None,
            "last_heartbeat_at": None,
        }
        if issuer is not None:
            values["issuer"] = issuer
        if pay_date is not None:
            values["pay_date"] = pay_date
        if recompute:
            values["recompute_requested"] = True
        if regeneration:
            values["regeneration_count"] = TerminationCase.regeneration_count + 1

        async with self.session_factory() as session:
            case = await self._get_case(session, termination_case_id, tenant_id)
            previous_status = case.status
            if request is not None:
                if request.employee_id != case.employee_id or request.tenant_id != case.tenant_id:
                    raise ValidationError(
                        "Request does not belong to this termination case", field="employee_id"
                    )
                values.update(request_columns(request))

            result = await session.execute(
                update(TerminationCase)
                .where(
                    TerminationCase.termination_case_id == termination_case_id,
                    TerminationCase.tenant_id == tenant_id,
                    TerminationCase.status.in_([s.value for s in allowed]),
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await session.rollback()
                current = await session.scalar(
                    select(TerminationCase.status).where(
                        TerminationCase.termination_case_id == termination_case_id
                    )
                )
                raise self._transition_error(current or previous_status, allowed, regeneration)

            audit_details = dict(details or {})
            audit_details["from_status"] = previous_status
            self._record_audit(
                session, case, action=action, actor_user_id=actor_user_id, details=audit_details
            )
            await session.commit()

        logger.info(
            "Termination case %s moved to pending (%s)", termination_case_id, action
        )

    @staticmethod
    def _transition_error(
        current: str, allowed: frozenset[TerminationStatus], regeneration: bool
    ) -> InvalidTransitionError:
        if TerminationStateMachine.is_in_flight(current):
            reason = "processing is already in progress"
        elif regeneration:
            reason = "documents can only be regenerated once processing has finished"
        else:
            reason = f"allowed from {', '.join(sorted(s.value for s in allowed))}"
        return InvalidTransitionError(current, TerminationStatus.PENDING, reason)

    @staticmethod
    async def _get_case(
        session: AsyncSession, termination_case_id: UUID, tenant_id: UUID
    ) -> TerminationCase:
        result = await session.execute(
            select(TerminationCase).where(
                TerminationCase.termination_case_id == termination_case_id,
                TerminationCase.tenant_id == tenant_id,
            )
        )
        case = result.scalar_one_or_none()
        if case is None:
            raise NotFoundError("Termination case", termination_case_id)
        return case

    @staticmethod
    async def _get_employee(session: AsyncSession, employee_id: UUID, tenant_id: UUID) -> Employee:
        result = await session.execute(
            select(Employee).where(
                Employee.employee_id == employee_id,
                Employee.tenant_id == tenant_id,
            )
        )
        employee = result.scalar_one_or_none()
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        return employee

    @staticmethod
    def _record_audit(
        session: AsyncSession,
        case: TerminationCase,
        action: str,
        actor_user_id: UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Record an audit event for a termination case action."""
        session.add(
            AuditEvent(
                tenant_id=case.tenant_id,
                actor_user_id=actor_user_id,
                entity_type="termination_case",
                entity_id=case.termination_case_id,
                action=action,
                details_json=details,
            )
        )
