"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from settlement_engine.services.termination_service import TerminationService


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with request.app.state.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


def get_termination_service(request: Request) -> TerminationService:
    """Service built by the application lifespan."""
    return request.app.state.termination_service


async def get_tenant_id(
    x_tenant_id: Annotated[str | None, Header()] = None
) -> UUID:
    """Extract tenant ID from header."""
    if not x_tenant_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Tenant-ID header is required",
        )
    try:
        return UUID(x_tenant_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-Tenant-ID format",
        )


async def get_actor_user_id(
    x_user_id: Annotated[str | None, Header()] = None
) -> UUID | None:
    """Optional acting user, recorded on audit events."""
    if not x_user_id:
        return None
    try:
        return UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-User-ID format",
        )


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
TenantId = Annotated[UUID, Depends(get_tenant_id)]
ActorUserId = Annotated[UUID | None, Depends(get_actor_user_id)]
Terminations = Annotated[TerminationService, Depends(get_termination_service)]
