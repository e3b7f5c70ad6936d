"""Health check + meta endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from pixeldirector.config import Settings
from pixeldirector.dependencies import get_settings
from pixeldirector.models.responses import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(settings: Settings = Depends(get_settings)) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version="0.1.0",
        native_edit_enabled=settings.use_native_edit and bool(settings.google_api_key),
        segmentation_backend=settings.segmentation_backend,
    )


@router.get("/prompts")
async def prompts() -> dict[str, str]:
    from pixeldirector.llm.prompts import get_all_templates

    return get_all_templates()
