"""POST /api/upload: keep an image server-side and hand back a short-lived handle."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from pixeldirector.dependencies import get_image_store
from pixeldirector.engine.image_store import ImageStore
from pixeldirector.engine.images import SourceKind, classify_image_source, load_image_bytes, to_data_uri
from pixeldirector.errors import ValidationError
from pixeldirector.models.requests import UploadRequest
from pixeldirector.models.responses import UploadResponse

router = APIRouter()
logger = logging.getLogger(__name__)


def resolve_request_image(reference: str, store: ImageStore) -> str:
    """Upload handles become their stored image; server-local paths are refused."""
    resolved = store.resolve(reference.strip())
    if classify_image_source(resolved) == SourceKind.FILE:
        raise ValidationError("local file paths are not accepted over HTTP")
    return resolved


@router.post("/upload", response_model=UploadResponse)
async def upload(req: UploadRequest, store: ImageStore = Depends(get_image_store)) -> UploadResponse:
    image = resolve_request_image(req.image, store)
    data, mime = await load_image_bytes(image)
    store.sweep()
    entry = store.put(to_data_uri(data, mime))
    logger.info("Upload %s: %d bytes (%s)", entry.handle, len(data), mime)
    return UploadResponse(handle=entry.handle, expires_in_s=store.ttl_s)
