"""FastAPI application and route handlers."""

import sys
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import Body, Depends, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from . import __version__
from .auth import create_token, get_current_owner
from .config import settings
from .exceptions import (
    BadRequestError,
    DiagramAPIError,
    NotFoundError,
    RenderError,
    RenderSyntaxError,
    StorageError,
    UnauthorizedError,
)
from .factory import ServiceFactory
from .middleware import add_request_id
from .models import (
    CreateDiagramRequest,
    CreateDiagramResponse,
    DeleteDiagramResponse,
    DiagramListResponse,
    DiagramView,
)
from .service import DiagramService


def configure_logging() -> None:
    """Configure logging - should be called at startup, not import time."""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=settings.log_level,
        serialize=settings.log_json,
    )
    if settings.log_file:
        logger.add(
            settings.log_file,
            rotation="10 MB",
            retention="7 days",
            compression="zip",
            level=settings.log_level,
        )


def get_limiter() -> Limiter:
    """Get or create rate limiter."""
    return Limiter(
        key_func=get_remote_address,
        storage_uri="memory://",
        default_limits=[settings.rate_limit],
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    configure_logging()
    app.state.diagram_service = await ServiceFactory.create_for_environment()
    logger.info("Application started successfully")

    yield

    await ServiceFactory.shutdown_service(app.state.diagram_service)
    app.state.diagram_service = None
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Diagram API",
    version=__version__,
    description="Render, store and retrieve diagrams",
    lifespan=lifespan,
)

app.middleware("http")(add_request_id)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

limiter = get_limiter()
app.state.limiter = limiter  # Required by slowapi
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle validation errors with clean messages."""
    error_messages = []

    for error in exc.errors():  # type: ignore[attr-defined]
        field = error["loc"][-1] if error["loc"] else "field"
        message = error.get("msg", f"Invalid {field}")

        match error["type"]:
            case "missing":
                message = f"Required field '{field}' is missing"
            case "json_invalid":
                message = "Invalid JSON format"

        error_messages.append(message)

    logger.warning(f"{request.method} {request.url.path} rejected: {'; '.join(error_messages)}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Validation failed",
            "message": "; ".join(error_messages),
            "details": error_messages,
        },
    )


app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]


def _error_response(exc: DiagramAPIError) -> tuple[int, str, str]:
    """Map a domain error to (status, error, message). Only syntax errors leak detail."""
    match exc:
        case UnauthorizedError():
            return status.HTTP_401_UNAUTHORIZED, "Unauthorized", str(exc)
        case BadRequestError():
            return status.HTTP_400_BAD_REQUEST, "Bad request", str(exc)
        case NotFoundError():
            return status.HTTP_404_NOT_FOUND, "Diagram not found", str(exc)
        case RenderSyntaxError():
            return status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to render diagram", str(exc)
        case RenderError():
            return (
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Failed to render diagram",
                "Diagram rendering failed. Please check your diagram source and try again.",
            )
        case StorageError():
            return (
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Storage failure",
                "Diagram storage is temporarily unavailable",
            )
        case _:
            return (
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Internal server error",
                "An unexpected error occurred",
            )


@app.exception_handler(DiagramAPIError)
async def diagram_api_exception_handler(request: Request, exc: DiagramAPIError) -> JSONResponse:
    """Handle domain-specific errors."""
    status_code, error, message = _error_response(exc)
    logger.error(
        f"{request.method} {request.url.path} -> {status_code} {exc.__class__.__name__}: {exc} "
        f"(owner={getattr(request.state, 'owner_id', None)}, "
        f"diagram={request.path_params.get('diagram_id')})"
    )

    headers = {"X-Request-ID": getattr(request.state, "request_id", "")}
    if status_code == status.HTTP_401_UNAUTHORIZED:
        headers["WWW-Authenticate"] = "Bearer"

    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message, "type": exc.__class__.__name__},
        headers=headers,
    )


async def get_diagram_service(request: Request) -> DiagramService:
    """Get the diagram service, building it on first use when lifespan did not run (Lambda)."""
    service = getattr(request.app.state, "diagram_service", None)
    if service is None:
        service = await ServiceFactory.create_for_environment()
        request.app.state.diagram_service = service
    return service


ServiceDep = Annotated[DiagramService, Depends(get_diagram_service)]
OwnerDep = Annotated[str, Depends(get_current_owner)]


@app.post(
    "/diagrams",
    status_code=status.HTTP_201_CREATED,
    response_model=CreateDiagramResponse,
    tags=["diagrams"],
)
@limiter.limit(settings.rate_limit)
async def create_diagram_endpoint(
    request: Request,
    body: CreateDiagramRequest,
    service: ServiceDep,
    owner_id: OwnerDep,
) -> CreateDiagramResponse:
    """Render and store a new diagram."""
    created = await service.create(
        owner_id,
        body.source_text,
        body.diagram_type,
        format=body.format,
        metadata=body.metadata,
    )
    return CreateDiagramResponse.from_created(created)


@app.get("/diagrams", response_model=DiagramListResponse, tags=["diagrams"])
async def list_diagrams_endpoint(service: ServiceDep, owner_id: OwnerDep) -> DiagramListResponse:
    """List the caller's diagrams, most recent first."""
    resolved = await service.list(owner_id)
    return DiagramListResponse(diagrams=[DiagramView.from_resolved(r) for r in resolved])


@app.get("/diagrams/{diagram_id}", response_model=DiagramView, tags=["diagrams"])
async def get_diagram_endpoint(
    diagram_id: str, service: ServiceDep, owner_id: OwnerDep
) -> DiagramView:
    """Get one of the caller's diagrams."""
    return DiagramView.from_resolved(await service.get(owner_id, diagram_id))


@app.delete("/diagrams/{diagram_id}", response_model=DeleteDiagramResponse, tags=["diagrams"])
async def delete_diagram_endpoint(
    diagram_id: str, service: ServiceDep, owner_id: OwnerDep
) -> DeleteDiagramResponse:
    """Delete one of the caller's diagrams."""
    await service.delete(owner_id, diagram_id)
    return DeleteDiagramResponse()


@app.get("/health", tags=["health"])
async def health_endpoint(response: Response, service: ServiceDep) -> dict[str, Any]:
    """Check health status of all components."""
    services = await service.health_check()
    all_healthy = all(services.values())

    if not all_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {
        "status": "healthy" if all_healthy else "unhealthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "services": services,
    }


@app.get("/", tags=["health"])
async def root_endpoint() -> dict[str, str]:
    """API information endpoint."""
    return {
        "name": "Diagram API",
        "version": __version__,
        "status": "running",
        "docs": "/docs",
    }


if not settings.is_lambda_environment:

    @app.post("/login", tags=["auth"])
    async def login_endpoint(
        subject: str = Body(..., embed=True, min_length=3, max_length=100),
    ) -> dict[str, str]:
        """Issue a development token (the API Gateway authorizer replaces this in Lambda)."""
        return {"access_token": create_token(subject), "token_type": "bearer"}


app.openapi_tags = [
    {"name": "diagrams", "description": "Diagram operations"},
    {"name": "health", "description": "Health checks"},
    {"name": "auth", "description": "Development authentication"},
]


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    return app
