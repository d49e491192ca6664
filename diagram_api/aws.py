"""AWS Lambda handler for the Diagram API."""

from typing import Any

from loguru import logger
from mangum import Mangum

from .api import app, configure_logging

configure_logging()
handler = Mangum(app, lifespan="off")


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """AWS Lambda entry point.

    Args:
        event: API Gateway HTTP API event; the JWT authorizer claims ride along in
            requestContext.authorizer.jwt.claims.
        context: Lambda context object with runtime information.

    Returns:
        Response dictionary with statusCode, headers, and body.

    """
    http = event.get("requestContext", {}).get("http", {})
    logger.info("Lambda event: {} {}", http.get("method"), http.get("path"))
    response = handler(event, context)
    logger.info("Lambda response status: {}", response.get("statusCode"))

    return response  # type: ignore[no-any-return]
