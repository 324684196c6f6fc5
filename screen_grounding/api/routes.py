"""API route definitions for the screen-grounding service."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from ..core.exceptions import ResolutionError
from ..core.filter_cache import get_filter_cache
from ..core.logger import log
from ..core.resolver import ElementResolver, get_element_resolver
from ..vision.models import ResolutionContext, ResolutionRequest, Screenshot

# Create router instances
grounding_router = APIRouter()
status_router = APIRouter()

# Resolver used by the routes; replaced in tests
resolver_instance: Optional[ElementResolver] = None


def get_resolver() -> ElementResolver:
    """Get or create the resolver used by the API."""
    global resolver_instance
    if resolver_instance is None:
        resolver_instance = get_element_resolver()
    return resolver_instance


# Pydantic models for request/response
class ScreenshotPayload(BaseModel):
    """Base64-encoded screenshot."""
    model_config = ConfigDict(populate_by_name=True)

    base64: str
    mime_type: str = Field(default="image/png", alias="mimeType")
    width: Optional[int] = Field(default=None, gt=0)
    height: Optional[int] = Field(default=None, gt=0)


class ContextPayload(BaseModel):
    """Optional hints about the captured screen."""
    model_config = ConfigDict(populate_by_name=True)

    active_app: Optional[str] = Field(default=None, alias="activeApp")
    active_url: Optional[str] = Field(default=None, alias="activeUrl")
    screen_width: Optional[int] = Field(default=None, gt=0, alias="screenWidth")
    screen_height: Optional[int] = Field(default=None, gt=0, alias="screenHeight")


class ResolveRequest(BaseModel):
    """Request model for element resolution."""
    screenshot: ScreenshotPayload
    description: str = Field(min_length=1)
    context: ContextPayload = Field(default_factory=ContextPayload)


class CoordinatesModel(BaseModel):
    x: int
    y: int


class ResolveResponse(BaseModel):
    """Response model mirroring ``DetectionResult``."""
    model_config = ConfigDict(populate_by_name=True)

    coordinates: CoordinatesModel
    confidence: float
    method: str
    selected_element: Optional[str] = Field(default=None, alias="selectedElement")


@grounding_router.post("/resolve", response_model=ResolveResponse, response_model_by_alias=True, response_model_exclude_none=True)
async def resolve_element(request: ResolveRequest):
    """Resolve a UI element description to a screen coordinate."""
    try:
        screenshot = Screenshot.from_base64(
            request.screenshot.base64,
            mime_type=request.screenshot.mime_type,
            width=request.screenshot.width,
            height=request.screenshot.height,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    context = ResolutionContext(
        active_app=request.context.active_app,
        active_url=request.context.active_url,
        screen_width=request.context.screen_width,
        screen_height=request.context.screen_height,
    )

    try:
        result = await get_resolver().resolve(
            ResolutionRequest(screenshot=screenshot, description=request.description, context=context)
        )
    except ResolutionError as e:
        log.error(f"Resolution error: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    return ResolveResponse(
        coordinates=CoordinatesModel(x=result.coordinates.x, y=result.coordinates.y),
        confidence=result.confidence,
        method=result.method.value,
        selected_element=result.selected_element,
    )


@status_router.get("/cache", response_model=Dict[str, Any])
async def get_cache_status():
    """Get menu-bar filter cache statistics."""
    return get_filter_cache().stats()
