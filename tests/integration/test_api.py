"""End-to-end HTTP scenarios against in-memory collaborators."""

import base64

import pytest
from fakes import DEFAULT_SVG, FakeRenderer, InMemoryBlobStore, InMemoryMetadataStore
from httpx import AsyncClient

from diagram_api import app
from diagram_api.exceptions import RenderSyntaxError, RenderTimeoutError
from diagram_api.models import MAX_SOURCE_LENGTH
from diagram_api.service import DiagramService

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"


@pytest.mark.asyncio
async def test_root(client: AsyncClient) -> None:
    response = await client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Diagram API"
    assert data["status"] == "running"


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["services"] == {"catalog": True, "blobs": True, "renderer": True}


@pytest.mark.asyncio
async def test_health_unhealthy_component(client: AsyncClient, renderer: FakeRenderer) -> None:
    async def down() -> bool:
        return False

    renderer.health_check = down  # type: ignore[method-assign]

    response = await client.get("/health")
    assert response.status_code == 503
    assert response.json()["services"]["renderer"] is False


@pytest.mark.asyncio
async def test_create_diagram(
    client: AsyncClient,
    auth_headers: dict[str, str],
    sample_diagram: dict[str, str],
    catalog: InMemoryMetadataStore,
    renderer: FakeRenderer,
) -> None:
    response = await client.post("/diagrams", json=sample_diagram, headers=auth_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["diagramType"] == "flow"
    assert data["format"] == "svg"
    assert data["content"] == DEFAULT_SVG.decode()
    assert data["accessUrl"].startswith("https://blobs.test/")
    assert data["createdAt"].endswith("Z")
    assert isinstance(data["renderDurationMs"], int)
    assert response.headers["X-Request-ID"]

    assert renderer.calls[0]["owner_id"] == "owner-a"
    assert renderer.calls[0]["diagram_id"] == data["diagramId"]
    assert len(catalog.rows) == 1


@pytest.mark.asyncio
async def test_create_png_returns_base64(
    client: AsyncClient, auth_headers: dict[str, str], renderer: FakeRenderer
) -> None:
    renderer.content = PNG_BYTES

    response = await client.post(
        "/diagrams",
        json={"sourceText": "a -> b", "diagramType": "sequence", "format": "png"},
        headers=auth_headers,
    )

    assert response.status_code == 201
    assert base64.b64decode(response.json()["content"]) == PNG_BYTES


@pytest.mark.asyncio
async def test_create_requires_identity(
    client: AsyncClient, sample_diagram: dict[str, str], renderer: FakeRenderer
) -> None:
    response = await client.post("/diagrams", json=sample_diagram)

    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert renderer.calls == []


@pytest.mark.asyncio
async def test_invalid_token_is_rejected(client: AsyncClient) -> None:
    response = await client.get("/diagrams", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"diagramType": "flow"},
        {"sourceText": "", "diagramType": "flow"},
        {"sourceText": "   ", "diagramType": "flow"},
        {"sourceText": "a -> b", "diagramType": "pie"},
        {"sourceText": "a -> b", "diagramType": "flow", "format": "gif"},
    ],
)
async def test_create_validation_errors(
    client: AsyncClient, auth_headers: dict[str, str], renderer: FakeRenderer, body: dict
) -> None:
    response = await client.post("/diagrams", json=body, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["error"] == "Validation failed"
    assert renderer.calls == []


@pytest.mark.asyncio
async def test_create_over_default_source_limit(
    client: AsyncClient, auth_headers: dict[str, str], renderer: FakeRenderer
) -> None:
    body = {"sourceText": "x" * (MAX_SOURCE_LENGTH + 1), "diagramType": "flow"}

    response = await client.post("/diagrams", json=body, headers=auth_headers)

    assert response.status_code == 400
    assert "maximum length" in response.json()["message"]
    assert renderer.calls == []


@pytest.mark.asyncio
async def test_create_honours_raised_source_limit(
    client: AsyncClient,
    auth_headers: dict[str, str],
    renderer: FakeRenderer,
    catalog: InMemoryMetadataStore,
    blobs: InMemoryBlobStore,
) -> None:
    app.state.diagram_service = DiagramService(
        renderer=renderer, catalog=catalog, blobs=blobs, max_source_length=200_000
    )
    body = {"sourceText": "x" * 150_000, "diagramType": "flow"}

    response = await client.post("/diagrams", json=body, headers=auth_headers)

    assert response.status_code == 201
    assert len(renderer.calls[0]["source_text"]) == 150_000


@pytest.mark.asyncio
async def test_create_null_format_and_metadata(
    client: AsyncClient, auth_headers: dict[str, str], catalog: InMemoryMetadataStore
) -> None:
    body = {"sourceText": "a -> b", "diagramType": "flow", "format": None, "metadata": None}

    response = await client.post("/diagrams", json=body, headers=auth_headers)

    assert response.status_code == 201
    assert response.json()["format"] == "svg"
    (row,) = catalog.rows.values()
    assert row["metadata"] == {}


@pytest.mark.asyncio
async def test_create_missing_source_message(
    client: AsyncClient, auth_headers: dict[str, str]
) -> None:
    response = await client.post("/diagrams", json={"diagramType": "flow"}, headers=auth_headers)
    assert "Required field 'sourceText' is missing" in response.json()["message"]


@pytest.mark.asyncio
async def test_create_syntax_error_is_shown(
    client: AsyncClient,
    auth_headers: dict[str, str],
    sample_diagram: dict[str, str],
    renderer: FakeRenderer,
    catalog: InMemoryMetadataStore,
) -> None:
    renderer.error = RenderSyntaxError("line 1: unexpected '->'")

    response = await client.post("/diagrams", json=sample_diagram, headers=auth_headers)

    assert response.status_code == 500
    data = response.json()
    assert data["message"] == "Diagram syntax error:\nline 1: unexpected '->'"
    assert data["type"] == "RenderSyntaxError"
    assert catalog.rows == {}


@pytest.mark.asyncio
async def test_create_timeout_is_generic(
    client: AsyncClient,
    auth_headers: dict[str, str],
    sample_diagram: dict[str, str],
    renderer: FakeRenderer,
    catalog: InMemoryMetadataStore,
) -> None:
    renderer.error = RenderTimeoutError("Rendering timed out after 25.0s")

    response = await client.post("/diagrams", json=sample_diagram, headers=auth_headers)

    assert response.status_code == 500
    assert "25.0s" not in response.json()["message"]
    assert catalog.rows == {}


@pytest.mark.asyncio
async def test_list_most_recent_first(
    client: AsyncClient, auth_headers: dict[str, str], catalog: InMemoryMetadataStore
) -> None:
    created = []
    for source in ("a -> b", "b -> c", "c -> d"):
        response = await client.post(
            "/diagrams", json={"sourceText": source, "diagramType": "flow"}, headers=auth_headers
        )
        created.append(response.json())

    response = await client.get("/diagrams", headers=auth_headers)

    assert response.status_code == 200
    diagrams = response.json()["diagrams"]
    assert len(diagrams) == 3
    expected = sorted(created, key=lambda d: (d["createdAt"], d["diagramId"]), reverse=True)
    assert [d["diagramId"] for d in diagrams] == [d["diagramId"] for d in expected]
    assert set(diagrams[0]) >= {"diagramId", "diagramType", "format", "createdAt", "accessUrl", "content"}


@pytest.mark.asyncio
async def test_list_empty(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    response = await client.get("/diagrams", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"diagrams": []}


@pytest.mark.asyncio
async def test_get_diagram(
    client: AsyncClient, auth_headers: dict[str, str], sample_diagram: dict[str, str]
) -> None:
    created = (await client.post("/diagrams", json=sample_diagram, headers=auth_headers)).json()

    response = await client.get(f"/diagrams/{created['diagramId']}", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["diagramId"] == created["diagramId"]
    assert data["content"] == created["content"]
    assert data["createdAt"] == created["createdAt"]


@pytest.mark.asyncio
async def test_get_unknown_diagram(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    response = await client.get("/diagrams/1700000000000-abcdef", headers=auth_headers)

    assert response.status_code == 404
    assert response.json()["error"] == "Diagram not found"


@pytest.mark.asyncio
async def test_owner_isolation(
    client: AsyncClient,
    auth_headers: dict[str, str],
    other_auth_headers: dict[str, str],
    sample_diagram: dict[str, str],
    blobs: InMemoryBlobStore,
) -> None:
    created = (await client.post("/diagrams", json=sample_diagram, headers=auth_headers)).json()
    path = f"/diagrams/{created['diagramId']}"

    assert (await client.get(path, headers=other_auth_headers)).status_code == 404
    assert (await client.delete(path, headers=other_auth_headers)).status_code == 404
    assert (await client.get("/diagrams", headers=other_auth_headers)).json() == {"diagrams": []}

    assert (await client.get(path, headers=auth_headers)).status_code == 200
    assert len(blobs.blobs) == 1


@pytest.mark.asyncio
async def test_delete_then_get(
    client: AsyncClient,
    auth_headers: dict[str, str],
    sample_diagram: dict[str, str],
    blobs: InMemoryBlobStore,
    catalog: InMemoryMetadataStore,
) -> None:
    created = (await client.post("/diagrams", json=sample_diagram, headers=auth_headers)).json()
    path = f"/diagrams/{created['diagramId']}"

    response = await client.delete(path, headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Diagram deleted successfully"}
    assert blobs.blobs == {}
    assert catalog.rows == {}

    assert (await client.get(path, headers=auth_headers)).status_code == 404
    assert (await client.delete(path, headers=auth_headers)).status_code == 404


@pytest.mark.asyncio
async def test_stale_row_surfaces_storage_error(
    client: AsyncClient,
    auth_headers: dict[str, str],
    sample_diagram: dict[str, str],
    blobs: InMemoryBlobStore,
) -> None:
    created = (await client.post("/diagrams", json=sample_diagram, headers=auth_headers)).json()
    blobs.blobs.clear()

    response = await client.get(f"/diagrams/{created['diagramId']}", headers=auth_headers)

    assert response.status_code == 500
    assert response.json()["type"] == "StorageError"


@pytest.mark.asyncio
async def test_unsupported_method(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    response = await client.put("/diagrams", headers=auth_headers)
    assert response.status_code == 405


@pytest.mark.asyncio
async def test_login_issues_usable_token(
    client: AsyncClient, sample_diagram: dict[str, str]
) -> None:
    response = await client.post("/login", json={"subject": "owner-z"})
    assert response.status_code == 200
    token = response.json()["access_token"]

    created = await client.post(
        "/diagrams", json=sample_diagram, headers={"Authorization": f"Bearer {token}"}
    )
    assert created.status_code == 201
    assert "diagrams/owner-z/" in created.json()["accessUrl"]
