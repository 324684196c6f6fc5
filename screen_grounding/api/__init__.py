"""FastAPI endpoints for the screen-grounding service.

This sub-package provides REST API endpoints for:
- Resolving element descriptions to coordinates
- Status reporting for the menu-bar filter cache
"""

from .app import create_app, run
from .routes import grounding_router, status_router

__all__ = [
    "create_app",
    "grounding_router",
    "run",
    "status_router",
]
