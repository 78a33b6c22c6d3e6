"""Background worker for termination cases.

Processing a case:
1. Claim it (pending → processing) with a conditional update
2. Calculate the settlement, or reuse the frozen one on regeneration
3. Generate the work certificate, final payslip and fund attestation
4. Complete (refs + status in one update) or fail with the error persisted

Every checkpoint is a single UPDATE guarded by ``status = 'processing'``,
committed on its own. A guard that matches no row means the claim was lost
(the case was reaped) and the run stops without touching the case again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from settlement_engine.calculators.settlement import SettlementCalculator
from settlement_engine.calculators.types import SettlementResult
from settlement_engine.config import Settings, get_settings
from settlement_engine.documents.base import (
    REQUIRED_DOCUMENTS,
    DocumentArtifact,
    DocumentGenerator,
    DocumentRequest,
    DocumentType,
)
from settlement_engine.errors import DocumentGenerationError, SettlementEngineError
from settlement_engine.events import (
    AsyncEventEmitter,
    DomainEvent,
    EventMetadata,
    TerminationProcessingCompleted,
    TerminationProcessingFailed,
)
from settlement_engine.models import (
    AuditEvent,
    TerminationCase,
    TerminationDocument,
    result_columns,
    utcnow,
)
from settlement_engine.services.job_queue import JobQueue
from settlement_engine.services.salary_history import SalaryHistoryLoader
from settlement_engine.services.state_machine import TerminationStatus

logger = logging.getLogger(__name__)

PROGRESS_CALCULATING = 5
PROGRESS_CALCULATED = 20
PROGRESS_COMPLETED = 100

# Document type -> (progress when started, progress when generated)
DOCUMENT_CHECKPOINTS: dict[DocumentType, tuple[int, int]] = {
    DocumentType.WORK_CERTIFICATE: (25, 40),
    DocumentType.FINAL_PAYSLIP: (45, 70),
    DocumentType.FUND_ATTESTATION: (75, 90),
}

STEP_CALCULATING = "calculating"
STEP_CALCULATED = "calculated"
STEP_COMPLETED = "completed"
TIMEOUT_MESSAGE = "Processing timed out"


class ClaimLostError(Exception):
    """The case left ``processing`` while this worker was running it."""

    def __init__(self, termination_case_id: UUID, step: str):
        self.termination_case_id = termination_case_id
        self.step = step
        super().__init__(f"Lost claim on termination case {termination_case_id} at {step}")


@dataclass(frozen=True)
class ProcessingOutcome:
    """Result of one processing run."""

    termination_case_id: UUID
    status: TerminationStatus | None
    claimed: bool
    error: str | None = None
    exception: Exception | None = None
    documents_version: int | None = None
    document_refs: dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == TerminationStatus.COMPLETED


class TerminationProcessor:
    """Runs termination cases through calculation and document generation."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        calculator: SettlementCalculator,
        documents: DocumentGenerator,
        emitter: AsyncEventEmitter | None = None,
        settings: Settings | None = None,
    ):
        self.session_factory = session_factory
        self.calculator = calculator
        self.documents = documents
        self.emitter = emitter
        self.settings = settings or get_settings()

    async def process(self, termination_case_id: UUID) -> ProcessingOutcome:
        """Process one case. Duplicate deliveries are no-ops.

        Never raises for calculator or document failures: they are persisted
        on the case, which moves to ``failed``.
        """
        case = await self._claim(termination_case_id)
        if case is None:
            logger.info(
                "Termination case %s not claimable, skipping duplicate delivery",
                termination_case_id,
            )
            return ProcessingOutcome(
                termination_case_id=termination_case_id,
                status=await self._current_status(termination_case_id),
                claimed=False,
            )

        logger.info("Processing termination case %s", termination_case_id)
        try:
            result = await self._calculation_stage(case)
            version, artifacts = await self._document_stage(case, result)
            return await self._complete(case, result, version, artifacts)
        except ClaimLostError as e:
            logger.warning("%s, abandoning run", e)
            return ProcessingOutcome(
                termination_case_id=termination_case_id,
                status=await self._current_status(termination_case_id),
                claimed=True,
                error=str(e),
                exception=e,
            )
        except SettlementEngineError as e:
            logger.exception("Termination case %s failed", termination_case_id)
            return await self._fail(case, str(e), e)
        except Exception as e:
            logger.exception("Unexpected error processing termination case %s", termination_case_id)
            return await self._fail(case, f"Unexpected error: {e}", e)

    # === Stages ===

    async def _claim(self, termination_case_id: UUID) -> TerminationCase | None:
        """Atomically move pending → processing and return the claimed row."""
        now = utcnow()
        async with self.session_factory() as session:
            result = await session.execute(
                update(TerminationCase)
                .where(
                    TerminationCase.termination_case_id == termination_case_id,
                    TerminationCase.status == TerminationStatus.PENDING.value,
                )
                .values(
                    status=TerminationStatus.PROCESSING.value,
                    started_at=now,
                    claimed_at=now,
                    last_heartbeat_at=now,
                    completed_at=None,
                    error_message=None,
                )
            )
            if result.rowcount == 0:
                await session.rollback()
                return None
            await session.commit()

            case = await session.get(TerminationCase, termination_case_id, populate_existing=True)
            return case

    async def _calculation_stage(self, case: TerminationCase) -> SettlementResult:
        await self._checkpoint(case.termination_case_id, PROGRESS_CALCULATING, STEP_CALCULATING)

        frozen = case.frozen_result()
        if frozen is not None and not case.recompute_requested:
            logger.info(
                "Reusing frozen settlement %s for termination case %s",
                frozen.calculation_id,
                case.termination_case_id,
            )
            await self._checkpoint(case.termination_case_id, PROGRESS_CALCULATED, STEP_CALCULATED)
            return frozen

        request = case.to_settlement_request()
        async with self.session_factory() as session:
            history = await SalaryHistoryLoader(session).load(
                case.employee_id, case.tenant_id, case.termination_date
            )
        result = self.calculator.calculate(request, history)

        # Result and checkpoint land in the same statement
        await self._checkpoint(
            case.termination_case_id,
            PROGRESS_CALCULATED,
            STEP_CALCULATED,
            **result_columns(result),
            recompute_requested=False,
        )
        return result

    async def _document_stage(
        self, case: TerminationCase, result: SettlementResult
    ) -> tuple[int, dict[DocumentType, DocumentArtifact]]:
        """Attempt every document; progress stops at the first failure."""
        version = case.documents_version + 1
        artifacts: dict[DocumentType, DocumentArtifact] = {}
        failures: dict[str, str] = {}

        for doc_type in REQUIRED_DOCUMENTS:
            started, generated = DOCUMENT_CHECKPOINTS[doc_type]
            if not failures:
                await self._checkpoint(
                    case.termination_case_id, started, f"generating_{doc_type.value}"
                )
            try:
                artifact = await self.documents.generate(
                    DocumentRequest(
                        document_type=doc_type,
                        termination_case_id=case.termination_case_id,
                        tenant_id=case.tenant_id,
                        employee_id=case.employee_id,
                        version=version,
                        termination_date=case.termination_date,
                        result=result,
                        issuer=case.issuer,
                        pay_date=case.pay_date,
                    )
                )
            except Exception as e:
                logger.exception(
                    "Generating %s failed for termination case %s",
                    doc_type.value,
                    case.termination_case_id,
                )
                failures[doc_type.value] = str(e)
                continue

            artifacts[doc_type] = artifact
            if not failures:
                await self._checkpoint(
                    case.termination_case_id, generated, f"{doc_type.value}_generated"
                )

        if failures:
            raise DocumentGenerationError(failures.keys(), failures)
        return version, artifacts

    async def _complete(
        self,
        case: TerminationCase,
        result: SettlementResult,
        version: int,
        artifacts: dict[DocumentType, DocumentArtifact],
    ) -> ProcessingOutcome:
        refs = {doc_type.value: artifact.reference_id for doc_type, artifact in artifacts.items()}
        now = utcnow()

        async with self.session_factory() as session:
            for doc_type, artifact in artifacts.items():
                session.add(
                    TerminationDocument(
                        termination_case_id=case.termination_case_id,
                        tenant_id=case.tenant_id,
                        document_type=doc_type.value,
                        version=version,
                        reference_id=artifact.reference_id,
                        url=artifact.url,
                        generated_at=now,
                    )
                )
            updated = await session.execute(
                update(TerminationCase)
                .where(
                    TerminationCase.termination_case_id == case.termination_case_id,
                    TerminationCase.status == TerminationStatus.PROCESSING.value,
                )
                .values(
                    status=TerminationStatus.COMPLETED.value,
                    progress=PROGRESS_COMPLETED,
                    current_step=STEP_COMPLETED,
                    completed_at=now,
                    last_heartbeat_at=now,
                    work_certificate_ref=refs[DocumentType.WORK_CERTIFICATE.value],
                    final_payslip_ref=refs[DocumentType.FINAL_PAYSLIP.value],
                    fund_attestation_ref=refs[DocumentType.FUND_ATTESTATION.value],
                    documents_version=version,
                    error_message=None,
                )
            )
            if updated.rowcount == 0:
                await session.rollback()
                raise ClaimLostError(case.termination_case_id, STEP_COMPLETED)

            self._record_audit(
                session,
                case,
                action="processing_completed",
                details={
                    "calculation_id": str(result.calculation_id),
                    "net_total": str(result.net_total),
                    "documents_version": version,
                    "document_refs": refs,
                },
            )
            await session.commit()

        logger.info(
            "Termination case %s completed (documents v%d, net %s)",
            case.termination_case_id,
            version,
            result.net_total,
        )
        await self._emit(
            TerminationProcessingCompleted(
                metadata=EventMetadata.create(tenant_id=case.tenant_id),
                termination_case_id=case.termination_case_id,
                employee_id=case.employee_id,
                net_total=result.net_total,
                calculation_id=result.calculation_id,
                documents_version=version,
                document_refs=refs,
            )
        )
        return ProcessingOutcome(
            termination_case_id=case.termination_case_id,
            status=TerminationStatus.COMPLETED,
            claimed=True,
            documents_version=version,
            document_refs=refs,
        )

    async def _fail(
        self, case: TerminationCase, message: str, exception: Exception
    ) -> ProcessingOutcome:
        """Move the case to failed, keeping progress at the last checkpoint."""
        async with self.session_factory() as session:
            updated = await session.execute(
                update(TerminationCase)
                .where(
                    TerminationCase.termination_case_id == case.termination_case_id,
                    TerminationCase.status == TerminationStatus.PROCESSING.value,
                )
                .values(
                    status=TerminationStatus.FAILED.value,
                    error_message=message,
                    last_heartbeat_at=utcnow(),
                )
            )
            if updated.rowcount == 0:
                await session.rollback()
                logger.warning(
                    "Termination case %s left processing before failure could be recorded",
                    case.termination_case_id,
                )
                return ProcessingOutcome(
                    termination_case_id=case.termination_case_id,
                    status=await self._current_status(case.termination_case_id),
                    claimed=True,
                    error=message,
                    exception=exception,
                )

            self._record_audit(session, case, action="processing_failed", details={"error": message})
            row = (
                await session.execute(
                    select(TerminationCase.progress, TerminationCase.current_step).where(
                        TerminationCase.termination_case_id == case.termination_case_id
                    )
                )
            ).one()
            await session.commit()

        await self._emit(
            TerminationProcessingFailed(
                metadata=EventMetadata.create(tenant_id=case.tenant_id),
                termination_case_id=case.termination_case_id,
                employee_id=case.employee_id,
                error_message=message,
                progress=row.progress,
                current_step=row.current_step,
            )
        )
        return ProcessingOutcome(
            termination_case_id=case.termination_case_id,
            status=TerminationStatus.FAILED,
            claimed=True,
            error=message,
            exception=exception,
        )

    # === Stale claims ===

    async def reap_stale_cases(
        self, queue: JobQueue, now: datetime | None = None
    ) -> list[UUID]:
        """Fail cases whose worker stopped heartbeating and redeliver lost jobs.

        A ``processing`` case whose last heartbeat is older than the stale
        claim timeout is failed with "Processing timed out". A ``pending``
        case requested longer ago than the timeout was never claimed (its
        job was lost), so a fresh job for it is handed to ``queue``.

        Returns the IDs of the cases that were failed.
        """
        now = now or utcnow()
        cutoff = now - timedelta(seconds=self.settings.stale_claim_timeout_seconds)
        heartbeat = func.coalesce(TerminationCase.last_heartbeat_at, TerminationCase.claimed_at)

        async with self.session_factory() as session:
            stale = list(
                (
                    await session.execute(
                        select(TerminationCase).where(
                            TerminationCase.status == TerminationStatus.PROCESSING.value,
                            heartbeat < cutoff,
                        )
                    )
                ).scalars()
            )
            lost = list(
                (
                    await session.execute(
                        select(TerminationCase.termination_case_id).where(
                            TerminationCase.status == TerminationStatus.PENDING.value,
                            TerminationCase.requested_at < cutoff,
                        )
                    )
                ).scalars()
            )

        reaped: list[UUID] = []
        for case in stale:
            if await self._expire(case, cutoff):
                reaped.append(case.termination_case_id)

        for case_id in lost:
            await self._redeliver(queue, case_id, cutoff, now)

        if reaped:
            logger.warning("Reaped %d stale termination case(s)", len(reaped))
        return reaped

    async def _redeliver(
        self, queue: JobQueue, case_id: UUID, cutoff: datetime, now: datetime
    ) -> bool:
        async with self.session_factory() as session:
            # Restamping requested_at keeps the next pass from redelivering again
            updated = await session.execute(
                update(TerminationCase)
                .where(
                    TerminationCase.termination_case_id == case_id,
                    TerminationCase.status == TerminationStatus.PENDING.value,
                    TerminationCase.requested_at < cutoff,
                )
                .values(requested_at=now)
                .execution_options(synchronize_session=False)
            )
            if updated.rowcount == 0:
                await session.rollback()
                return False
            await session.commit()

        logger.warning("Redelivering lost job for termination case %s", case_id)
        handle = queue.enqueue(case_id, lambda: self.process(case_id))
        async with self.session_factory() as session:
            await session.execute(
                update(TerminationCase)
                .where(TerminationCase.termination_case_id == case_id)
                .values(job_handle=str(handle))
            )
            await session.commit()
        return True

    async def _expire(self, case: TerminationCase, cutoff: datetime) -> bool:
        heartbeat = func.coalesce(TerminationCase.last_heartbeat_at, TerminationCase.claimed_at)
        async with self.session_factory() as session:
            updated = await session.execute(
                update(TerminationCase)
                .where(
                    TerminationCase.termination_case_id == case.termination_case_id,
                    TerminationCase.status == TerminationStatus.PROCESSING.value,
                    heartbeat < cutoff,
                )
                .values(status=TerminationStatus.FAILED.value, error_message=TIMEOUT_MESSAGE)
                .execution_options(synchronize_session=False)
            )
            if updated.rowcount == 0:
                # Heartbeat advanced or the run finished meanwhile
                await session.rollback()
                return False

            self._record_audit(
                session,
                case,
                action="processing_timed_out",
                details={
                    "last_heartbeat_at": (
                        case.last_heartbeat_at.isoformat() if case.last_heartbeat_at else None
                    ),
                    "progress": case.progress,
                    "current_step": case.current_step,
                },
            )
            await session.commit()

        await self._emit(
            TerminationProcessingFailed(
                metadata=EventMetadata.create(tenant_id=case.tenant_id, actor_type="reaper"),
                termination_case_id=case.termination_case_id,
                employee_id=case.employee_id,
                error_message=TIMEOUT_MESSAGE,
                progress=case.progress,
                current_step=case.current_step,
            )
        )
        return True

    # === Helpers ===

    async def _checkpoint(
        self,
        termination_case_id: UUID,
        progress: int,
        step: str,
        **values: Any,
    ) -> None:
        """Advance progress in one guarded UPDATE, committed on its own."""
        async with self.session_factory() as session:
            result = await session.execute(
                update(TerminationCase)
                .where(
                    TerminationCase.termination_case_id == termination_case_id,
                    TerminationCase.status == TerminationStatus.PROCESSING.value,
                )
                .values(
                    progress=progress,
                    current_step=step,
                    last_heartbeat_at=utcnow(),
                    **values,
                )
            )
            if result.rowcount == 0:
                await session.rollback()
                raise ClaimLostError(termination_case_id, step)
            await session.commit()
        logger.debug("Termination case %s at %d%% (%s)", termination_case_id, progress, step)

    async def _current_status(self, termination_case_id: UUID) -> TerminationStatus | None:
        async with self.session_factory() as session:
            status = await session.scalar(
                select(TerminationCase.status).where(
                    TerminationCase.termination_case_id == termination_case_id
                )
            )
        return TerminationStatus(status) if status is not None else None

    @staticmethod
    def _record_audit(
        session: AsyncSession,
        case: TerminationCase,
        action: str,
        details: dict[str, Any] | None = None,
        actor_user_id: UUID | None = None,
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

    async def _emit(self, event: DomainEvent) -> None:
        if self.emitter is not None:
            await self.emitter.emit(event)
