"""Shared test fixtures."""

import os

# Set test environment before the settings object is built
os.environ["DIAGRAM_ENV"] = "development"
os.environ["DIAGRAM_RATE_LIMIT"] = "1000/minute"
os.environ["DIAGRAM_LOG_LEVEL"] = "ERROR"  # Reduce log noise
os.environ.pop("AWS_LAMBDA_FUNCTION_NAME", None)

from collections.abc import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fakes import FakeRenderer, InMemoryBlobStore, InMemoryMetadataStore  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from diagram_api import app  # noqa: E402
from diagram_api.auth import create_token  # noqa: E402
from diagram_api.service import DiagramService  # noqa: E402


@pytest.fixture
def blobs() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def catalog() -> InMemoryMetadataStore:
    return InMemoryMetadataStore()


@pytest.fixture
def renderer(blobs: InMemoryBlobStore) -> FakeRenderer:
    return FakeRenderer(blobs)


@pytest.fixture
def service(
    renderer: FakeRenderer, catalog: InMemoryMetadataStore, blobs: InMemoryBlobStore
) -> DiagramService:
    """DiagramService wired to in-memory collaborators."""
    return DiagramService(renderer=renderer, catalog=catalog, blobs=blobs)


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Bearer headers for owner-a."""
    return {"Authorization": f"Bearer {create_token('owner-a')}"}


@pytest.fixture
def other_auth_headers() -> dict[str, str]:
    """Bearer headers for owner-b."""
    return {"Authorization": f"Bearer {create_token('owner-b')}"}


@pytest_asyncio.fixture
async def client(service: DiagramService) -> AsyncGenerator[AsyncClient, None]:
    """Test client fixture - service injected via app.state."""
    app.state.diagram_service = service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.state.diagram_service = None


@pytest.fixture
def sample_diagram() -> dict[str, str]:
    """Sample create request body."""
    return {"sourceText": "x -> y", "diagramType": "flow"}
