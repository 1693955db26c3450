"""Integration fixtures for the HTTP API."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from firm_payroll.api.app import create_app
from firm_payroll.api.dependencies import get_db_session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """API client backed by the test database."""
    app = create_app()

    async def override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def firm_headers(tenant, actor_id) -> dict[str, str]:
    return {"X-Firm-ID": str(tenant.firm_id), "X-User-ID": str(actor_id)}
