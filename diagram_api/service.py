"""Diagram service: coordinates the renderer, blob store and catalog."""

import asyncio
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from loguru import logger

from .exceptions import BadRequestError, DiagramAPIError, InternalError, NotFoundError
from .models import (
    MAX_SOURCE_LENGTH,
    CreatedDiagram,
    Diagram,
    DiagramFormat,
    DiagramType,
    ResolvedDiagram,
    encode_content,
    format_timestamp,
    new_diagram_id,
)
from .render import Renderer
from .storage import BlobStore, MetadataStore
from .types import HealthStatus

DEFAULT_ACCESS_TTL = 3600


@contextmanager
def operation_scope(operation: str, owner_id: str, diagram_id: str | None = None) -> Iterator[Any]:
    """Bind operation context to the logger and log any failure before it propagates.

    Anything that is not already a DiagramAPIError is wrapped in InternalError.
    """
    with logger.contextualize(operation=operation, owner_id=owner_id, diagram_id=diagram_id):
        try:
            yield
        except DiagramAPIError as e:
            logger.error(
                f"{operation} failed for owner={owner_id} diagram={diagram_id}: "
                f"{e.__class__.__name__}: {e}"
            )
            raise
        except Exception as e:
            logger.exception(f"{operation} failed for owner={owner_id} diagram={diagram_id}")
            raise InternalError(f"Unexpected error during {operation}") from e


class DiagramService:
    """Create, list, get and delete rendered diagrams for an owner.

    Consistency rules:
    - create renders first and only then writes the catalog row, so a row never
      points at a blob that was not written. A crash between the two leaves an
      orphan blob, which is tolerated.
    - delete removes the blob before the row. A crash between the two leaves a
      stale row pointing at nothing; this is surfaced, not repaired.
    - nothing is retried; every external failure reaches the caller.
    """

    def __init__(
        self,
        renderer: Renderer,
        catalog: MetadataStore,
        blobs: BlobStore,
        access_ttl: int = DEFAULT_ACCESS_TTL,
        max_source_length: int = MAX_SOURCE_LENGTH,
    ) -> None:
        """Initialize with injected dependencies."""
        self.renderer = renderer
        self.catalog = catalog
        self.blobs = blobs
        self.access_ttl = access_ttl
        self.max_source_length = max_source_length

    async def create(
        self,
        owner_id: str,
        source_text: str,
        diagram_type: DiagramType | str,
        format: DiagramFormat | str = DiagramFormat.SVG,
        metadata: dict[str, Any] | None = None,
    ) -> CreatedDiagram:
        """Render, catalog and return a new diagram with its content inline."""
        now = datetime.now(UTC)
        diagram_id = new_diagram_id(now)

        with operation_scope("create", owner_id, diagram_id):
            kind, fmt = self._validate_create(source_text, diagram_type, format)
            logger.info(f"Creating diagram for owner: {owner_id}, type: {kind.value}")

            started = time.perf_counter()
            content_key = await self.renderer.render(source_text, fmt, owner_id, diagram_id)
            render_duration_ms = int((time.perf_counter() - started) * 1000)
            logger.info(f"Rendering completed in {render_duration_ms}ms, key: {content_key}")

            diagram = Diagram(
                id=diagram_id,
                owner_id=owner_id,
                type=kind,
                format=fmt,
                created_at=format_timestamp(now),
                content_key=content_key,
                metadata=dict(metadata or {}),
            )
            await self.catalog.put(diagram.to_row())

            resolved = await self._resolve(diagram)
            return CreatedDiagram(
                diagram=diagram,
                access_url=resolved.access_url,
                content=resolved.content,
                render_duration_ms=render_duration_ms,
            )

    async def list(self, owner_id: str) -> list[ResolvedDiagram]:
        """Return an owner's diagrams, most recent first.

        Every listed diagram costs one access descriptor and one content fetch.
        """
        with operation_scope("list", owner_id):
            rows = await self.catalog.query_by_partition(owner_id, descending=True)
            logger.info(f"Listing {len(rows)} diagrams for owner: {owner_id}")
            diagrams = [Diagram.from_row(row) for row in rows]
            try:
                async with asyncio.TaskGroup() as group:
                    tasks = [group.create_task(self._resolve(d)) for d in diagrams]
            except ExceptionGroup as eg:
                # The first failure cancels the remaining fetches
                raise eg.exceptions[0]
            return [task.result() for task in tasks]

    async def get(self, owner_id: str, diagram_id: str) -> ResolvedDiagram:
        """Return a single diagram with its content."""
        with operation_scope("get", owner_id, diagram_id):
            diagram = await self._find(owner_id, diagram_id)
            return await self._resolve(diagram)

    async def delete(self, owner_id: str, diagram_id: str) -> None:
        """Delete a diagram's blob, then its catalog row."""
        with operation_scope("delete", owner_id, diagram_id):
            diagram = await self._find(owner_id, diagram_id)
            logger.info(f"Deleting diagram {diagram_id} for owner: {owner_id}")
            await self.blobs.delete(diagram.content_key)
            await self.catalog.delete_by_key(diagram.partition_key, diagram.sort_key)

    async def health_check(self) -> HealthStatus:
        """Check health of all components."""
        logger.debug("Performing health checks")
        return {
            "catalog": await self._check("catalog", self.catalog.health_check),
            "blobs": await self._check("blobs", self.blobs.health_check),
            "renderer": await self._check("renderer", self.renderer.health_check),
        }

    def _validate_create(
        self, source_text: str, diagram_type: DiagramType | str, format: DiagramFormat | str
    ) -> tuple[DiagramType, DiagramFormat]:
        if not source_text or not source_text.strip():
            raise BadRequestError("Missing required field: sourceText")
        if len(source_text) > self.max_source_length:
            raise BadRequestError(
                f"sourceText exceeds maximum length ({self.max_source_length} characters)"
            )
        try:
            kind = DiagramType(diagram_type)
        except ValueError as e:
            raise BadRequestError(f"Invalid diagramType: {diagram_type}") from e
        try:
            fmt = DiagramFormat(format)
        except ValueError as e:
            raise BadRequestError(f"Invalid format: {format}") from e
        return kind, fmt

    async def _find(self, owner_id: str, diagram_id: str) -> Diagram:
        # diagramId is not a sort key prefix, so this is a filtered partition query
        rows = await self.catalog.query_by_partition(owner_id, diagram_id=diagram_id)
        if not rows:
            raise NotFoundError("Diagram not found")
        return Diagram.from_row(rows[0])

    async def _resolve(self, diagram: Diagram) -> ResolvedDiagram:
        access = await self.blobs.issue_timed_access(diagram.content_key, self.access_ttl)
        data = await self.blobs.get(diagram.content_key)
        return ResolvedDiagram(
            diagram=diagram,
            access_url=access.url,
            content=encode_content(data, diagram.format),
        )

    @staticmethod
    async def _check(name: str, probe: Any) -> bool:
        try:
            return bool(await probe())
        except Exception as e:  # noqa: BLE001
            logger.error(f"{name} health check failed: {e}")
            return False
