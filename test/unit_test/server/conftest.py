from typing import AsyncGenerator
from unittest.mock import patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from trustgate_ai.trust_core.service import TrustService


@pytest.fixture
def api_trust_service(service_factory) -> TrustService:
    """In-memory trust service used in place of the file-backed singleton."""
    return service_factory()


@pytest_asyncio.fixture(name="client")
async def client_fixture(api_trust_service: TrustService) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client with mocked lifespan and overridden dependencies."""
    from trustgate_ai.server.main import app
    from trustgate_ai.server.services.trust import get_trust_service

    app.dependency_overrides[get_trust_service] = lambda: api_trust_service

    # Mock the lifespan to prevent touching the configured policy and audit paths
    async def mock_lifespan(app):
        yield

    with patch("trustgate_ai.server.main.lifespan", mock_lifespan):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost") as client:
            yield client

    app.dependency_overrides.clear()
