"""Domain record, catalog keys and request/response models."""

import base64
import random
import string
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from .types import CatalogRow

MAX_SOURCE_LENGTH = 100_000

_ID_ALPHABET = string.ascii_lowercase + string.digits


class DiagramType(str, Enum):
    """Supported diagram kinds."""

    ARCHITECTURE = "architecture"
    SEQUENCE = "sequence"
    FLOW = "flow"


class DiagramFormat(str, Enum):
    """Rendered artifact formats."""

    SVG = "svg"
    PNG = "png"


def partition_key(owner_id: str) -> str:
    return f"OWNER#{owner_id}"


def sort_key(created_at: str, diagram_id: str) -> str:
    return f"DIAGRAM#{created_at}#{diagram_id}"


def format_timestamp(moment: datetime) -> str:
    """Fixed-width UTC timestamp with millisecond precision, e.g. 2025-01-01T00:00:00.000Z."""
    moment = moment.astimezone(UTC)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def new_diagram_id(moment: datetime, suffix_length: int = 6) -> str:
    """Generate a diagram id from a millisecond timestamp and a short random suffix.

    Unique enough per owner for interactive use, not collision free.
    """
    millis = int(moment.timestamp() * 1000)
    suffix = "".join(random.choices(_ID_ALPHABET, k=suffix_length))  # nosec B311
    return f"{millis}-{suffix}"


def encode_content(data: bytes, fmt: DiagramFormat) -> str:
    """Make rendered bytes JSON friendly: SVG stays text, PNG becomes base64."""
    if fmt is DiagramFormat.PNG:
        return base64.b64encode(data).decode("ascii")
    return data.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class Diagram:
    """An immutable catalog entry for a rendered diagram."""

    id: str
    owner_id: str
    type: DiagramType
    format: DiagramFormat
    created_at: str
    content_key: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def partition_key(self) -> str:
        return partition_key(self.owner_id)

    @property
    def sort_key(self) -> str:
        return sort_key(self.created_at, self.id)

    def to_row(self) -> CatalogRow:
        return {
            "PK": self.partition_key,
            "SK": self.sort_key,
            "diagramId": self.id,
            "ownerId": self.owner_id,
            "diagramType": self.type.value,
            "format": self.format.value,
            "createdAt": self.created_at,
            "contentKey": self.content_key,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_row(cls, row: CatalogRow) -> "Diagram":
        owner_id = row.get("ownerId") or row["PK"].removeprefix("OWNER#")
        return cls(
            id=row["diagramId"],
            owner_id=owner_id,
            type=DiagramType(row["diagramType"]),
            format=DiagramFormat(row.get("format") or DiagramFormat.SVG.value),
            created_at=row["createdAt"],
            content_key=row["contentKey"],
            metadata=dict(row.get("metadata") or {}),
        )


@dataclass(frozen=True)
class ResolvedDiagram:
    """A diagram together with a timed access URL and its inline content."""

    diagram: Diagram
    access_url: str
    content: str


@dataclass(frozen=True)
class CreatedDiagram(ResolvedDiagram):
    """Result of a successful create."""

    render_duration_ms: int = 0


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateDiagramRequest(_CamelModel):
    """Input for POST /diagrams.

    The source length limit is configurable, so DiagramService enforces it.
    """

    source_text: str = Field(..., min_length=1)
    diagram_type: DiagramType
    format: DiagramFormat = DiagramFormat.SVG
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("format", mode="before")
    @classmethod
    def default_null_format(cls, value: Any) -> Any:
        return DiagramFormat.SVG if value is None else value

    @field_validator("metadata", mode="before")
    @classmethod
    def default_null_metadata(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("source_text", mode="before")
    @classmethod
    def validate_source_text(cls, value: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise PydanticCustomError(
                "empty_source", "Diagram source text cannot be empty", {"input": value}
            )
        return value


class DiagramView(_CamelModel):
    """A diagram as returned by list and get."""

    diagram_id: str
    diagram_type: DiagramType
    format: DiagramFormat
    created_at: str
    access_url: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_resolved(cls, resolved: ResolvedDiagram) -> "DiagramView":
        diagram = resolved.diagram
        return cls(
            diagram_id=diagram.id,
            diagram_type=diagram.type,
            format=diagram.format,
            created_at=diagram.created_at,
            access_url=resolved.access_url,
            content=resolved.content,
            metadata=diagram.metadata,
        )


class CreateDiagramResponse(_CamelModel):
    """Response for POST /diagrams."""

    diagram_id: str
    diagram_type: DiagramType
    format: DiagramFormat
    created_at: str
    access_url: str
    content: str
    render_duration_ms: int

    @classmethod
    def from_created(cls, created: CreatedDiagram) -> "CreateDiagramResponse":
        diagram = created.diagram
        return cls(
            diagram_id=diagram.id,
            diagram_type=diagram.type,
            format=diagram.format,
            created_at=diagram.created_at,
            access_url=created.access_url,
            content=created.content,
            render_duration_ms=created.render_duration_ms,
        )


class DiagramListResponse(BaseModel):
    """Response for GET /diagrams."""

    diagrams: list[DiagramView]


class DeleteDiagramResponse(BaseModel):
    """Response for DELETE /diagrams/{diagramId}."""

    message: str = "Diagram deleted successfully"
