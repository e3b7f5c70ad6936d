"""Master API router: mounts all endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from pixeldirector.api import analyze, edit, health, segment, upload

api_router = APIRouter(prefix="/api")

api_router.include_router(health.router)
api_router.include_router(upload.router)
api_router.include_router(analyze.router)
api_router.include_router(segment.router)
api_router.include_router(edit.router)
