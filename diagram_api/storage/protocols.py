"""Storage protocol definitions using typing.Protocol."""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from ..types import CatalogRow


@dataclass(frozen=True)
class AccessDescriptor:
    """A time-limited reference to a stored blob."""

    url: str
    expires_at: datetime


class MetadataStore(Protocol):
    """Ordered, owner-partitioned catalog of diagram records."""

    async def put(self, row: CatalogRow) -> None:
        """Write a catalog row."""
        ...

    async def query_by_partition(
        self, owner_id: str, descending: bool = True, diagram_id: str | None = None
    ) -> list[CatalogRow]:
        """Return an owner's rows ordered by sort key, optionally filtered by id."""
        ...

    async def delete_by_key(self, partition_key: str, sort_key: str) -> None:
        """Remove a single row."""
        ...

    async def health_check(self) -> bool:
        """Check if the catalog is reachable."""
        ...

    async def startup(self) -> None:
        """Initialize catalog on startup."""
        ...

    async def shutdown(self) -> None:
        """Cleanup catalog on shutdown."""
        ...


class BlobStore(Protocol):
    """Storage for rendered artifact bytes."""

    async def put(self, key: str, data: bytes) -> None:
        """Store bytes under key."""
        ...

    async def get(self, key: str) -> bytes:
        """Fetch bytes stored under key."""
        ...

    async def delete(self, key: str) -> None:
        """Remove the blob stored under key."""
        ...

    async def issue_timed_access(self, key: str, ttl: int) -> AccessDescriptor:
        """Issue a descriptor granting read access for ttl seconds."""
        ...

    async def health_check(self) -> bool:
        """Check if the blob store is reachable."""
        ...

    async def startup(self) -> None:
        """Initialize blob store on startup."""
        ...

    async def shutdown(self) -> None:
        """Cleanup blob store on shutdown."""
        ...
