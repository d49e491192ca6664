"""Storage module with factories for creating catalog and blob store instances."""

from urllib.parse import urlparse

from loguru import logger

from ..config import settings
from ..exceptions import ConfigurationError
from .dynamodb import DynamoDBMetadataStore
from .local import LocalBlobStore
from .protocols import AccessDescriptor, BlobStore, MetadataStore
from .s3 import S3BlobStore
from .sqlite import SQLiteMetadataStore


def create_metadata_store(catalog_url: str | None = None) -> MetadataStore:
    """Create catalog instance based on URL scheme.

    Args:
        catalog_url: dynamodb:// or sqlite URL. Uses settings if not provided.

    Returns:
        MetadataStore instance.
    """
    url = catalog_url or settings.effective_catalog_url
    scheme = urlparse(url).scheme

    if scheme == "dynamodb":
        logger.info("Creating DynamoDB catalog")
        return DynamoDBMetadataStore(url)
    if scheme.startswith("sqlite"):
        logger.info("Creating SQLite catalog")
        return SQLiteMetadataStore(url)
    raise ConfigurationError(f"Unsupported catalog URL scheme: {scheme!r}")


def create_blob_store(blob_url: str | None = None) -> BlobStore:
    """Create blob store instance based on URL scheme.

    Args:
        blob_url: s3:// or file:// URL. Uses settings if not provided.

    Returns:
        BlobStore instance.
    """
    url = blob_url or settings.effective_blob_url
    scheme = urlparse(url).scheme

    if scheme == "s3":
        logger.info("Creating S3 blob store")
        return S3BlobStore(url)
    if scheme == "file":
        logger.info("Creating local blob store")
        return LocalBlobStore(url)
    raise ConfigurationError(f"Unsupported blob store URL scheme: {scheme!r}")


__all__ = [
    "AccessDescriptor",
    "BlobStore",
    "DynamoDBMetadataStore",
    "LocalBlobStore",
    "MetadataStore",
    "S3BlobStore",
    "SQLiteMetadataStore",
    "create_blob_store",
    "create_metadata_store",
]
