"""Client for the remote rendering worker."""

import asyncio
from typing import Any, Protocol

import httpx
from loguru import logger

from .exceptions import (
    RenderProtocolError,
    RenderServiceUnavailableError,
    RenderSyntaxError,
    RenderTimeoutError,
)
from .models import DiagramFormat

DEFAULT_TIMEOUT_SECONDS = 25.0


class Renderer(Protocol):
    """Protocol for rendering backends."""

    async def render(
        self, source_text: str, format: DiagramFormat, owner_id: str, diagram_id: str
    ) -> str: ...
    async def health_check(self) -> bool: ...
    async def startup(self) -> None: ...
    async def shutdown(self) -> None: ...


class RenderClient:
    """Synchronous request/response client for the rendering worker.

    The worker renders the source, writes the artifact to the blob store and
    answers with the key it wrote. Every failure is mapped to a RenderError
    subclass; nothing is retried.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        render_path: str = "/render",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Worker base URL, e.g. http://internal-alb.
            timeout: Hard limit in seconds for a single render call.
            render_path: Fixed endpoint path on the worker.
            transport: Optional httpx transport (used by tests).
        """
        self.base_url = base_url
        self.timeout = timeout
        self.render_path = render_path
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def startup(self) -> None:
        """Open the HTTP client."""
        self._get_client()

    async def shutdown(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def render(
        self, source_text: str, format: DiagramFormat, owner_id: str, diagram_id: str
    ) -> str:
        """Render diagram source and return the content key the worker wrote.

        Args:
            source_text: Diagram source.
            format: Output format.
            owner_id: Owner of the diagram.
            diagram_id: Locally generated diagram id.

        Returns:
            Blob store key of the rendered artifact.

        Raises:
            RenderTimeoutError: The call exceeded the hard timeout.
            RenderSyntaxError: The worker reported a diagnostic for the source.
            RenderServiceUnavailableError: The worker failed or was unreachable.
            RenderProtocolError: The worker answered 200 without a content key.
        """
        payload = {
            "sourceText": source_text,
            "format": DiagramFormat(format).value,
            "ownerId": owner_id,
            "diagramId": diagram_id,
        }

        try:
            async with asyncio.timeout(self.timeout):
                response = await self._get_client().post(self.render_path, json=payload)
        except (TimeoutError, httpx.TimeoutException) as e:
            logger.error(f"Render request for {diagram_id} timed out after {self.timeout}s")
            raise RenderTimeoutError(
                f"Rendering service did not respond within {self.timeout:g} seconds"
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Error calling rendering service: {e}")
            raise RenderServiceUnavailableError(f"Rendering service unreachable: {e}") from e

        return self._parse_response(response)

    def _parse_response(self, response: httpx.Response) -> str:
        if response.status_code == 200:
            try:
                data = response.json()
            except ValueError as e:
                raise RenderProtocolError("Failed to parse rendering service response") from e

            if not isinstance(data, dict):
                raise RenderProtocolError("Rendering service returned invalid response")
            content_key = data.get("contentKey")
            if data.get("success") is not True or not isinstance(content_key, str) or not content_key:
                raise RenderProtocolError("Rendering service returned invalid response")

            logger.info(f"Rendering successful: {content_key}")
            return content_key

        body = response.text
        if response.status_code == 500:
            diagnostic = self._extract_diagnostic(response)
            if diagnostic:
                logger.warning(f"Rendering service rejected source: {diagnostic}")
                raise RenderSyntaxError(diagnostic)

        logger.error(f"Rendering service returned status {response.status_code}: {body}")
        raise RenderServiceUnavailableError(
            f"Rendering service returned status {response.status_code}",
            status_code=response.status_code,
            body=body,
        )

    @staticmethod
    def _extract_diagnostic(response: httpx.Response) -> str | None:
        """Pull the worker's diagnostic out of a structured 500 body."""
        try:
            data: Any = response.json()
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None
        message = data.get("message")
        if isinstance(message, str) and message.strip():
            return message
        return None

    async def health_check(self) -> bool:
        """Check if the worker answers its health endpoint."""
        try:
            response = await self._get_client().get("/health")
        except httpx.HTTPError as e:
            logger.warning(f"Rendering service health check failed: {e}")
            return False
        return response.status_code == 200
