"""POST /api/analyze, /api/plan, /api/verify: planner endpoints."""

from __future__ import annotations

import time

from fastapi import APIRouter, Depends

from pixeldirector.api.upload import resolve_request_image
from pixeldirector.dependencies import get_director, get_image_store
from pixeldirector.engine.image_store import ImageStore
from pixeldirector.llm.director import Director
from pixeldirector.models.edit_ops import describe_plan
from pixeldirector.models.requests import AnalyzeRequest, PlanRequest, VerifyRequest
from pixeldirector.models.responses import AnalyzeResponse, PlanResponse, VerifyResponse

router = APIRouter()


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze(
    req: AnalyzeRequest,
    director: Director = Depends(get_director),
    store: ImageStore = Depends(get_image_store),
) -> AnalyzeResponse:
    start = time.perf_counter()
    scene = await director.analyze_scene(resolve_request_image(req.image, store))
    return AnalyzeResponse(
        scene=scene.model_dump(by_alias=True),
        processing_time_ms=(time.perf_counter() - start) * 1000,
    )


@router.post("/plan", response_model=PlanResponse)
async def plan(
    req: PlanRequest,
    director: Director = Depends(get_director),
    store: ImageStore = Depends(get_image_store),
) -> PlanResponse:
    start = time.perf_counter()
    scene = await director.analyze_scene(resolve_request_image(req.image, store))
    edit_plan = await director.plan_edit(req.instruction, scene)
    return PlanResponse(
        scene=scene.model_dump(by_alias=True),
        plan=edit_plan.model_dump(by_alias=True),
        description=describe_plan(edit_plan),
        processing_time_ms=(time.perf_counter() - start) * 1000,
    )


@router.post("/verify", response_model=VerifyResponse)
async def verify(
    req: VerifyRequest,
    director: Director = Depends(get_director),
    store: ImageStore = Depends(get_image_store),
) -> VerifyResponse:
    result = await director.verify_edit(
        resolve_request_image(req.original, store),
        resolve_request_image(req.edited, store),
        req.instruction,
        req.expected_changes,
    )
    return VerifyResponse(
        success=result.success,
        changes_detected=result.changes_detected,
        issues=result.issues,
        confidence=result.confidence,
    )
