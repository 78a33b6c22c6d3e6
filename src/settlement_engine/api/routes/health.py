"""Health check endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from sqlalchemy import func, select, text

from settlement_engine.api.dependencies import DbSession, Terminations
from settlement_engine.models import TerminationCase, TerminationDocument

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    database: str


class ReadinessResponse(BaseModel):
    """Readiness of the termination workflow."""

    status: str
    schema_status: str
    pending_jobs: int


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
)
async def health_check(db: DbSession) -> HealthResponse:
    """Check API and database health."""
    db_status = "unhealthy"
    try:
        await db.execute(text("SELECT 1"))
        db_status = "healthy"
    except Exception:
        logger.warning("Database health check failed", exc_info=True)

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        database=db_status,
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(
    db: DbSession, service: Terminations, response: Response
) -> ReadinessResponse:
    """Ready once the termination tables answer and the job queue is up.

    Returns 503 while the schema is missing (``init-db`` not run yet).
    """
    schema_status = "missing"
    try:
        for model in (TerminationCase, TerminationDocument):
            await db.execute(select(func.count()).select_from(model))
        schema_status = "ok"
    except Exception:
        logger.warning("Termination tables unavailable", exc_info=True)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(
        status="ready" if schema_status == "ok" else "not_ready",
        schema_status=schema_status,
        pending_jobs=service.queue.pending_count,
    )


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    """Liveness check for container orchestration."""
    return {"status": "alive"}
