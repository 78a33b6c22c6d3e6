"""API test fixtures: the real app wired to the per-test database."""

from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from settlement_engine.api.app import create_app
from settlement_engine.api.dependencies import get_db_session, get_termination_service


@pytest_asyncio.fixture
async def client(settings, session_factory, service, seeded) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing.

    The transport does not run the lifespan, so the service and sessions the
    lifespan would build are injected through dependency overrides.
    """
    app = create_app(settings)

    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_session
    app.dependency_overrides[get_termination_service] = lambda: service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
