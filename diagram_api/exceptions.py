"""Domain-specific exceptions for the Diagram API."""


class DiagramAPIError(Exception):
    """Base exception for all Diagram API errors."""


class UnauthorizedError(DiagramAPIError):
    """Caller identity is missing or invalid."""


class BadRequestError(DiagramAPIError):
    """A required field or path parameter is missing or invalid."""


class NotFoundError(DiagramAPIError):
    """No matching diagram exists for the owner."""


class RenderError(DiagramAPIError):
    """Error related to the rendering worker."""


class RenderTimeoutError(RenderError):
    """The rendering worker did not answer within the hard timeout."""


class RenderSyntaxError(RenderError):
    """The rendering worker rejected the diagram source.

    The worker's diagnostic is kept verbatim so it can be shown to the caller.
    """

    def __init__(self, diagnostic: str) -> None:
        self.diagnostic = diagnostic
        super().__init__(f"Diagram syntax error:\n{diagnostic}")


class RenderServiceUnavailableError(RenderError):
    """The rendering worker failed or answered with an unexpected status."""

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class RenderProtocolError(RenderError):
    """The rendering worker answered 200 without a usable payload."""


class StorageError(DiagramAPIError):
    """Error related to blob store or catalog operations."""


class InternalError(DiagramAPIError):
    """Uncategorized failure."""


class ConfigurationError(DiagramAPIError):
    """Error related to configuration issues."""
