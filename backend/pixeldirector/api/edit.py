"""POST /api/edit: instruction-driven edit (direct, planned, masked or quick operation).

POST /api/generate/object: standalone cut-out object for later insertion.
"""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends

from pixeldirector.api.upload import resolve_request_image
from pixeldirector.dependencies import get_image_store, get_orchestrator
from pixeldirector.engine.image_store import ImageStore
from pixeldirector.engine.orchestrator import EditOrchestrator, EditResult
from pixeldirector.errors import ValidationError
from pixeldirector.models.requests import EditRequest, GenerateObjectRequest
from pixeldirector.models.responses import EditResponse, GenerateObjectResponse, StepResponse
from pixeldirector.services.gemini import ReferenceElement

router = APIRouter()
logger = logging.getLogger(__name__)


def _to_response(result: EditResult) -> EditResponse:
    return EditResponse(
        success=result.success,
        image=result.image,
        strategy=result.strategy.value,
        fell_back=result.fell_back,
        plan_description=result.plan_description,
        steps=[
            StepResponse(
                index=s.index,
                type=s.type,
                duration_ms=s.duration_ms,
                report=s.report,
                region=s.region.to_list() if s.region else None,
                error=s.error,
            )
            for s in result.steps
        ],
        error=result.error_message,
        error_kind=result.error.kind.value if result.error else None,
        failed_index=result.failed_index,
        direct_error=result.direct_error,
        text_response=result.text_response,
        processing_time_ms=result.duration_ms,
    )


@router.post("/edit", response_model=EditResponse)
async def edit(
    req: EditRequest,
    orchestrator: EditOrchestrator = Depends(get_orchestrator),
    store: ImageStore = Depends(get_image_store),
) -> EditResponse:
    image = resolve_request_image(req.image, store)

    if req.quick_operation == "remove-bg":
        result = await orchestrator.run_operation(image, {"type": "background", "parameters": {"action": "remove"}})
        return _to_response(result)
    if req.quick_operation == "upscale":
        result = await orchestrator.run_operation(image, {"type": "upscale", "parameters": {"scale": req.scale}})
        return _to_response(result)

    instruction = req.instruction.strip()
    if not instruction:
        raise ValidationError("an instruction is required unless quick_operation is set")

    references = [
        ReferenceElement(label=r.label, image=resolve_request_image(r.image, store))
        for r in req.references
    ]

    if req.mask:
        mask = resolve_request_image(req.mask, store)
        result = await orchestrator.edit_masked(image, mask, instruction, references)
    elif references:
        result = await orchestrator.edit_with_references(image, instruction, references)
    elif req.strategy == "direct":
        result = await orchestrator.edit_direct(image, instruction)
    elif req.strategy == "planned":
        result = await orchestrator.edit_planned(image, instruction)
    else:
        result = await orchestrator.edit(image, instruction)

    logger.info(
        "Edit %r via %s: %s", instruction, result.strategy.value, "ok" if result.success else result.error_message
    )
    return _to_response(result)


@router.post("/generate/object", response_model=GenerateObjectResponse)
async def generate_object(
    req: GenerateObjectRequest,
    orchestrator: EditOrchestrator = Depends(get_orchestrator),
) -> GenerateObjectResponse:
    start = time.perf_counter()
    image = await orchestrator.generate_object(req.description.strip(), width=req.width, height=req.height)
    return GenerateObjectResponse(image=image, processing_time_ms=(time.perf_counter() - start) * 1000)
