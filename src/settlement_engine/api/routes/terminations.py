"""Termination case API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Path, status

from settlement_engine.api.dependencies import ActorUserId, TenantId, Terminations
from settlement_engine.api.schemas import (
    DocumentRefsResponse,
    ErrorResponse,
    ProcessingAcceptedResponse,
    ProcessRequest,
    ProgressResponse,
    RegenerateRequest,
    SettlementRequestIn,
    SettlementResultResponse,
    TerminationCaseResponse,
    TerminationDocumentResponse,
)

router = APIRouter(prefix="/terminations", tags=["terminations"])


@router.post(
    "",
    response_model=TerminationCaseResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def create_termination(
    service: Terminations,
    tenant_id: TenantId,
    actor_user_id: ActorUserId,
    payload: SettlementRequestIn,
) -> TerminationCaseResponse:
    """Record a termination case in idle status."""
    case = await service.create_case(payload.to_domain(tenant_id), actor_user_id=actor_user_id)
    return TerminationCaseResponse.model_validate(case)


@router.post(
    "/preview",
    response_model=SettlementResultResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def preview_settlement(
    service: Terminations,
    tenant_id: TenantId,
    payload: SettlementRequestIn,
) -> SettlementResultResponse:
    """Calculate a settlement without persisting anything."""
    result = await service.preview_settlement(payload.to_domain(tenant_id))
    return SettlementResultResponse.from_result(result)


@router.post(
    "/{termination_case_id}/process",
    response_model=ProcessingAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def start_processing(
    service: Terminations,
    tenant_id: TenantId,
    actor_user_id: ActorUserId,
    termination_case_id: UUID = Path(...),
    payload: ProcessRequest | None = None,
) -> ProcessingAcceptedResponse:
    """Enqueue calculation and document generation; poll /progress for status."""
    payload = payload or ProcessRequest()
    accepted = await service.start_processing(
        termination_case_id,
        tenant_id,
        request=payload.settlement.to_domain(tenant_id) if payload.settlement else None,
        issuer=payload.issuer,
        pay_date=payload.pay_date,
        actor_user_id=actor_user_id,
    )
    return ProcessingAcceptedResponse.from_accepted(accepted)


@router.get(
    "/{termination_case_id}/progress",
    response_model=ProgressResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_progress(
    service: Terminations,
    tenant_id: TenantId,
    termination_case_id: UUID = Path(...),
) -> ProgressResponse:
    """Poll the workflow state of a termination case."""
    snapshot = await service.get_progress(termination_case_id, tenant_id)
    return ProgressResponse.from_snapshot(snapshot)


@router.post(
    "/{termination_case_id}/regenerate",
    response_model=DocumentRefsResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
async def regenerate_documents(
    service: Terminations,
    tenant_id: TenantId,
    actor_user_id: ActorUserId,
    payload: RegenerateRequest,
    termination_case_id: UUID = Path(...),
) -> DocumentRefsResponse:
    """Produce a new document version for a completed or failed case."""
    refs = await service.regenerate_documents(
        termination_case_id,
        tenant_id,
        reason=payload.reason,
        issuer=payload.issuer,
        pay_date=payload.pay_date,
        recompute=payload.recompute,
        actor_user_id=actor_user_id,
    )
    return DocumentRefsResponse.from_refs(refs)


@router.get(
    "/{termination_case_id}/documents",
    response_model=list[TerminationDocumentResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_documents(
    service: Terminations,
    tenant_id: TenantId,
    termination_case_id: UUID = Path(...),
) -> list[TerminationDocumentResponse]:
    """Every generated document version of a case."""
    documents = await service.list_documents(termination_case_id, tenant_id)
    return [TerminationDocumentResponse.model_validate(d) for d in documents]
