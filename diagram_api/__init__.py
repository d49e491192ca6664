"""Diagram API - render, store and retrieve diagrams."""

__version__ = "1.0.0"

from .api import app, create_app  # noqa: E402
from .models import Diagram, DiagramFormat, DiagramType  # noqa: E402
from .service import DiagramService  # noqa: E402

__all__ = [
    "Diagram",
    "DiagramFormat",
    "DiagramService",
    "DiagramType",
    "app",
    "create_app",
]
