"""Service factory for dependency injection - clean environment-based setup."""

from enum import Enum

from loguru import logger

from .config import Settings, settings
from .render import RenderClient
from .service import DiagramService
from .storage import create_blob_store, create_metadata_store


class Environment(Enum):
    """Explicit environment types - no magic detection."""

    DEVELOPMENT = "development"
    DOCKER = "docker"
    LAMBDA = "lambda"


def detect_environment(config: Settings = settings) -> Environment:
    """Detect current environment with explicit logic."""
    if config.is_lambda_environment:
        return Environment.LAMBDA
    return Environment(config.environment)


class ServiceFactory:
    """Factory for creating configured DiagramService instances."""

    @staticmethod
    async def create_for_environment(config: Settings = settings) -> DiagramService:
        """Create a fully configured DiagramService for the current environment."""
        env = detect_environment(config)
        logger.info(f"Creating services for environment: {env.value}")

        catalog = create_metadata_store(config.effective_catalog_url)
        blobs = create_blob_store(config.effective_blob_url)
        renderer = RenderClient(
            config.render_service_url,
            timeout=config.render_timeout_seconds,
            render_path=config.render_path,
        )

        await catalog.startup()
        await blobs.startup()
        await renderer.startup()

        service = DiagramService(
            renderer=renderer,
            catalog=catalog,
            blobs=blobs,
            access_ttl=config.access_url_ttl_seconds,
            max_source_length=config.max_source_length,
        )

        logger.info(f"DiagramService created successfully for {env.value}")
        return service

    @staticmethod
    async def shutdown_service(service: DiagramService) -> None:
        """Clean shutdown of all service components."""
        logger.info("Shutting down DiagramService components")

        for name, component in (
            ("catalog", service.catalog),
            ("blob store", service.blobs),
            ("renderer", service.renderer),
        ):
            try:
                await component.shutdown()
                logger.debug(f"{name} shutdown complete")
            except (ConnectionError, TimeoutError, OSError) as e:
                logger.warning(f"{name} shutdown failed: {e}")

        logger.info("DiagramService shutdown complete")


async def create_service() -> DiagramService:
    """Create DiagramService for current environment (convenience function)."""
    return await ServiceFactory.create_for_environment()
