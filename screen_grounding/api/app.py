"""FastAPI application factory for the screen-grounding service."""

from __future__ import annotations

import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..core.config import config
from ..core.logger import log
from ..vision.detection_service import close_detection_service
from .routes import grounding_router, status_router

SERVICE_NAME = "Screen Grounding API"


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_detection_service()
    log.info(f"{SERVICE_NAME} shut down")


def create_app() -> FastAPI:
    """Build the API: CORS, request timing, grounding and status routers.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title=SERVICE_NAME,
        description="Resolve UI element descriptions to screenshot coordinates",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def time_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        log.info(f"{request.method} {request.url.path} -> {response.status_code}")
        log.log_performance(f"{request.method} {request.url.path}", (time.perf_counter() - start) * 1000)
        return response

    app.include_router(grounding_router, prefix="/api/v1/grounding", tags=["grounding"])
    app.include_router(status_router, prefix="/api/v1/status", tags=["status"])

    @app.get("/health")
    async def health_check():
        """Liveness plus which upstream services are configured."""
        return {
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": __version__,
            "reasoning_configured": bool(config.openai_api_key),
            "detection_configured": bool(config.google_cloud_vision_key),
            "tiered_detection": config.tiered_detection_enabled,
        }

    return app


def run() -> None:
    """Serve the API with uvicorn using the configured host and port."""
    config.validate_config()
    log.info(f"Starting {SERVICE_NAME} on {config.api_host}:{config.api_port}")
    uvicorn.run(create_app(), host=config.api_host, port=config.api_port)
