"""S3 blob store implementation."""

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import parse_qs, urlparse

from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from ..exceptions import StorageError
from .protocols import AccessDescriptor


class S3BlobStore:
    """Rendered artifacts in an S3 bucket, shared with the rendering worker."""

    def __init__(self, blob_url: str):
        """Initialize S3 blob store.

        Args:
            blob_url: S3 URL in format: s3://bucket-name?region=us-east-1
        """
        parsed = urlparse(blob_url)
        self.bucket = parsed.netloc
        self.region = parse_qs(parsed.query).get("region", [None])[0]
        self.client = None

    async def startup(self) -> None:
        """Create the S3 client."""
        import boto3

        self.client = boto3.client("s3", region_name=self.region)
        logger.info(f"Using S3 bucket: {self.bucket} in {self.region}")

    async def shutdown(self) -> None:
        """No cleanup needed for S3."""
        pass

    async def put(self, key: str, data: bytes) -> None:
        await self._run(
            "put", key, lambda: self.client.put_object(Bucket=self.bucket, Key=key, Body=data)
        )

    async def get(self, key: str) -> bytes:
        """Fetch object bytes.

        Args:
            key: Object key written by the rendering worker.

        Returns:
            Raw object content.

        Raises:
            StorageError: If the object is missing or S3 fails.
        """

        def _read() -> bytes:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()

        return await self._run("get", key, _read)

    async def delete(self, key: str) -> None:
        await self._run(
            "delete", key, lambda: self.client.delete_object(Bucket=self.bucket, Key=key)
        )

    async def issue_timed_access(self, key: str, ttl: int) -> AccessDescriptor:
        """Generate a presigned GET URL valid for ttl seconds."""
        url = await self._run(
            "presign",
            key,
            lambda: self.client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=ttl,
            ),
        )
        return AccessDescriptor(url=url, expires_at=datetime.now(UTC) + timedelta(seconds=ttl))

    async def health_check(self) -> bool:
        """Check if the bucket is reachable.

        Returns:
            True if S3 is healthy, False otherwise.
        """
        try:
            await self._run("head_bucket", "", lambda: self.client.head_bucket(Bucket=self.bucket))
            return True
        except StorageError as e:
            logger.warning(f"S3 health check failed: {e}")
            return False

    async def _run(self, action: str, key: str, call: Any) -> Any:
        """Run a blocking boto3 call in the default executor."""
        if self.client is None:
            raise StorageError("S3 blob store used before startup")
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, call)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("NoSuchKey", "404"):
                raise StorageError(f"Diagram content not found: {key}") from e
            logger.error(f"S3 {action} failed for {self.bucket}/{key}: {e}")
            raise StorageError(f"Blob {action} failed: {e}") from e
        except BotoCoreError as e:
            logger.error(f"S3 {action} failed for {self.bucket}/{key}: {e}")
            raise StorageError(f"Blob {action} failed: {e}") from e
