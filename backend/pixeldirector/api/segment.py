"""POST /api/segment/label, /api/segment/point: masks for click- and label-driven edits."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from pixeldirector.api.upload import resolve_request_image
from pixeldirector.dependencies import get_image_store, get_native_editor, get_resolver
from pixeldirector.engine.image_store import ImageStore
from pixeldirector.engine.segmentation import SegmentationResolver
from pixeldirector.errors import UnsupportedOperationError
from pixeldirector.models.requests import SegmentLabelRequest, SegmentPointRequest
from pixeldirector.models.responses import SegmentResponse

router = APIRouter()


@router.post("/segment/label", response_model=SegmentResponse)
async def segment_label(
    req: SegmentLabelRequest,
    resolver: SegmentationResolver = Depends(get_resolver),
    store: ImageStore = Depends(get_image_store),
) -> SegmentResponse:
    result = await resolver.resolve(resolve_request_image(req.image, store), req.label)
    return SegmentResponse(
        found=result.found,
        mask=result.mask,
        confidence=result.confidence,
        bbox=result.bbox.to_list() if result.bbox else None,
    )


@router.post("/segment/point", response_model=SegmentResponse)
async def segment_point(
    req: SegmentPointRequest,
    native=Depends(get_native_editor),
    store: ImageStore = Depends(get_image_store),
) -> SegmentResponse:
    if native is None:
        raise UnsupportedOperationError("point segmentation needs native editing (GOOGLE_API_KEY)")
    result = await native.segment_at_point(resolve_request_image(req.image, store), req.x, req.y)
    return SegmentResponse(found=result.success, mask=result.image, error=result.error)
