"""Filesystem blob store for local development."""

import asyncio
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from loguru import logger

from ..exceptions import StorageError
from .protocols import AccessDescriptor


class LocalBlobStore:
    """Blobs as files under a root directory shared with a local rendering worker.

    Access descriptors are plain file:// URIs; the expiry is advisory.
    """

    def __init__(self, blob_url: str):
        parsed = urlparse(blob_url)
        self.root = Path(parsed.netloc + parsed.path).expanduser().resolve()

    async def startup(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info(f"Local blob store at {self.root}")

    async def shutdown(self) -> None:
        pass

    async def put(self, key: str, data: bytes) -> None:
        path = self._path(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        await self._run("put", key, _write)

    async def get(self, key: str) -> bytes:
        path = self._path(key)
        if not path.is_file():
            raise StorageError(f"Diagram content not found: {key}")
        return await self._run("get", key, path.read_bytes)

    async def delete(self, key: str) -> None:
        path = self._path(key)
        await self._run("delete", key, lambda: path.unlink(missing_ok=True))

    async def issue_timed_access(self, key: str, ttl: int) -> AccessDescriptor:
        return AccessDescriptor(
            url=self._path(key).as_uri(),
            expires_at=datetime.now(UTC) + timedelta(seconds=ttl),
        )

    async def health_check(self) -> bool:
        return self.root.is_dir()

    def _path(self, key: str) -> Path:
        """Map a key to a file, refusing keys that escape the root."""
        path = (self.root / key).resolve()
        if not path.is_relative_to(self.root):
            raise StorageError(f"Invalid blob key: {key}")
        return path

    async def _run(self, action: str, key: str, call: Any) -> Any:
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, call)
        except OSError as e:
            logger.error(f"Local blob {action} failed for {key}: {e}")
            raise StorageError(f"Blob {action} failed: {e}") from e
