"""Type definitions for the Diagram API."""

from typing import Any

from typing_extensions import TypedDict


class CatalogRow(TypedDict, total=False):
    """Catalog record for a rendered diagram, as persisted."""

    PK: str
    SK: str
    diagramId: str
    ownerId: str
    diagramType: str
    format: str
    createdAt: str
    contentKey: str
    metadata: dict[str, Any]


class HealthStatus(TypedDict):
    """Health status of system components."""

    catalog: bool
    blobs: bool
    renderer: bool
