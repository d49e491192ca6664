"""Configuration using pydantic-settings."""

import os
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with validation and constants."""

    model_config = SettingsConfigDict(env_prefix="DIAGRAM_", env_file=".env", extra="ignore")

    host: str = "0.0.0.0"  # nosec B104 - Required for container deployment
    port: int = 8000
    log_level: str = "INFO"
    log_file: str | None = None
    log_json: bool = False

    environment: Literal["development", "docker", "lambda"] = "development"

    aws_region: str = "us-east-1"
    dynamodb_table: str = "Diagrams"
    s3_bucket: str | None = None

    # Local development backends
    catalog_url: str = "sqlite+aiosqlite:///./data/diagrams.db"
    blob_url: str = "file://./data/blobs"

    # Rendering worker
    render_service_url: str = "http://localhost:3000"
    render_path: str = "/render"
    render_timeout_seconds: float = 25.0

    access_url_ttl_seconds: int = 3600
    max_source_length: int = 100_000

    rate_limit: str = "30/minute"
    cors_origins: list[str] = ["*"]

    # JWT settings (local development tokens only)
    secret_key: str = "your-secret-key-change-in-production"  # noqa: S105
    jwt_algorithm: str = "HS256"
    jwt_expiration_minutes: int = 60

    @property
    def is_lambda_environment(self) -> bool:
        """Check if running in AWS Lambda."""
        return self.environment == "lambda" or bool(os.getenv("AWS_LAMBDA_FUNCTION_NAME"))

    @property
    def effective_catalog_url(self) -> str:
        """Get the catalog URL based on environment."""
        if self.is_lambda_environment:
            return f"dynamodb://{self.dynamodb_table}?region={self.aws_region}"
        return self.catalog_url

    @property
    def effective_blob_url(self) -> str:
        """Get the blob store URL based on environment."""
        if self.is_lambda_environment or self.s3_bucket:
            return f"s3://{self.s3_bucket}?region={self.aws_region}"
        return self.blob_url

    @model_validator(mode="after")
    def validate_environment(self) -> "Settings":
        """Set environment based on DIAGRAM_ENV or AWS Lambda detection."""
        env = os.getenv("DIAGRAM_ENV", "").lower()
        if env in ("lambda", "docker", "development"):
            self.environment = env  # type: ignore[assignment]
        elif os.getenv("AWS_LAMBDA_FUNCTION_NAME"):
            self.environment = "lambda"
        return self

    @model_validator(mode="after")
    def validate_lambda_backends(self) -> "Settings":
        """Lambda deployments must point at real AWS resources."""
        if self.environment != "lambda":
            return self
        if not self.s3_bucket:
            raise ValueError(
                "Lambda environment detected but DIAGRAM_S3_BUCKET not set. "
                "Please set the DIAGRAM_S3_BUCKET environment variable."
            )
        if "render_service_url" not in self.model_fields_set:
            raise ValueError(
                "Lambda environment detected but DIAGRAM_RENDER_SERVICE_URL not set. "
                "Please set the DIAGRAM_RENDER_SERVICE_URL environment variable."
            )
        return self


settings = Settings()


def get_settings() -> Settings:
    """Get settings instance (for dependency injection)."""
    return settings
