"""Operation dispatcher: runs a plan's operations strictly in order, one state machine per plan."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel

from pixeldirector.engine.regions import Box, moved_box, region_for_position, scaled_box
from pixeldirector.engine.segmentation import DetectionResult, SegmentationResolver
from pixeldirector.errors import NotFoundError, PixelDirectorError, UnsupportedOperationError
from pixeldirector.models.edit_ops import (
    AddOp,
    BackgroundOp,
    DescribeOp,
    DetectOp,
    ExtractOp,
    MoveOp,
    PlannedOperation,
    RelightOp,
    RemoveOp,
    ReplaceOp,
    ResizeOp,
    StyleOp,
    UpscaleOp,
    to_operation,
)

logger = logging.getLogger(__name__)


class TransformBackend(Protocol):
    """Image-producing capabilities the dispatcher drives. Each returns a new image reference."""

    async def remove_object(self, image: str, mask: str) -> str: ...

    async def replace_object(self, image: str, mask: str, replacement: str) -> str: ...

    async def insert_object(self, image: str, element: str, region: Box) -> str: ...

    async def regenerate_object(self, image: str, label: str, *, strength: float = 0.85) -> str: ...

    async def relight(
        self, image: str, style: str, *, light_source: str = "front", strength: float = 2.0
    ) -> str: ...

    async def remove_background(self, image: str) -> str: ...

    async def replace_background(self, image: str, description: str) -> str: ...

    async def upscale(self, image: str, scale: int = 4) -> str: ...

    async def detect_target(self, image: str, target: str) -> DetectionResult: ...

    async def describe_image(self, image: str, question: str | None = None) -> str: ...

    async def generate_object(self, description: str, *, width: int = 512, height: int = 512) -> str: ...


class DispatchState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class StepRecord:
    index: int
    type: str
    input_image: str
    output_image: str | None = None
    report: dict[str, Any] | None = None  # detect/describe/extract findings
    region: Box | None = None  # advisory target box for resize/move
    duration_ms: float = 0.0
    error: str | None = None


@dataclass
class DispatchOutcome:
    state: DispatchState
    image: str  # last successfully produced image (the input if nothing succeeded)
    operations: list[BaseModel] = field(default_factory=list)
    steps: list[StepRecord] = field(default_factory=list)
    error: PixelDirectorError | None = None
    failed_index: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == DispatchState.SUCCEEDED

    @property
    def reports(self) -> list[dict[str, Any]]:
        return [s.report for s in self.steps if s.report is not None]


class OperationDispatcher:
    """Feeds each operation the previous operation's output.

    Validation happens when an operation is reached, so earlier operations
    have already run. The first error stops the plan; completed work is
    never rolled back.
    """

    def __init__(self, resolver: SegmentationResolver, transforms: TransformBackend) -> None:
        self.resolver = resolver
        self.transforms = transforms

    async def run(
        self,
        image: str,
        operations: Sequence[PlannedOperation | BaseModel | dict[str, Any]],
    ) -> DispatchOutcome:
        outcome = DispatchOutcome(state=DispatchState.PENDING, image=image)
        if not operations:
            outcome.state = DispatchState.SUCCEEDED
            return outcome

        outcome.state = DispatchState.RUNNING
        start = time.perf_counter()
        logger.info("Dispatch: %d operation(s) queued", len(operations))

        current = image
        for index, raw in enumerate(operations):
            kind = _type_name(raw)
            step = StepRecord(index=index, type=kind, input_image=current)
            outcome.steps.append(step)
            t0 = time.perf_counter()
            try:
                op = raw if _is_variant(raw) else to_operation(raw)
                outcome.operations.append(op)
                current = await self._execute(op, current, step)
            except PixelDirectorError as e:
                if e.operation is None:
                    e.operation = kind
                step.error = str(e)
                step.duration_ms = (time.perf_counter() - t0) * 1000
                outcome.state = DispatchState.FAILED
                outcome.error = e
                outcome.failed_index = index
                outcome.image = current
                logger.warning("  [%d] %s FAILED: %s", index, kind, e)
                return outcome
            step.output_image = current
            step.duration_ms = (time.perf_counter() - t0) * 1000
            logger.info("  [%d] %s completed in %.0fms", index, kind, step.duration_ms)

        outcome.state = DispatchState.SUCCEEDED
        outcome.image = current
        logger.info(
            "Dispatch complete: %d operation(s) in %.0fms",
            len(operations),
            (time.perf_counter() - start) * 1000,
        )
        return outcome

    async def _locate(self, image: str, label: str):
        seg = await self.resolver.resolve(image, label)
        if not seg.found:
            raise NotFoundError(label)
        return seg

    async def _execute(self, op: BaseModel, image: str, step: StepRecord) -> str:
        t = self.transforms

        if isinstance(op, RemoveOp):
            seg = await self._locate(image, op.target)
            return await t.remove_object(image, seg.mask)

        elif isinstance(op, ReplaceOp):
            seg = await self._locate(image, op.target)
            return await t.replace_object(image, seg.mask, op.replacement)

        elif isinstance(op, ResizeOp):
            seg = await self._locate(image, op.target)
            if seg.bbox is not None:
                step.region = scaled_box(seg.bbox, op.scale)
            logger.debug("  resize %r x%.2f, advisory region %s", op.target, op.scale, step.region)
            cleaned = await t.remove_object(image, seg.mask)
            return await t.regenerate_object(cleaned, op.target, strength=0.9)

        elif isinstance(op, MoveOp):
            seg = await self._locate(image, op.target)
            if seg.bbox is not None:
                step.region = moved_box(seg.bbox, op.new_position)
            logger.debug("  move %r to %s, advisory region %s", op.target, op.new_position, step.region)
            cleaned = await t.remove_object(image, seg.mask)
            return await t.regenerate_object(cleaned, op.target, strength=0.85)

        elif isinstance(op, ExtractOp):
            seg = await self._locate(image, op.target)
            step.report = {
                "target": op.target,
                "confidence": seg.confidence,
                "bbox": seg.bbox.to_list() if seg.bbox else None,
            }
            return seg.mask

        elif isinstance(op, AddOp):
            step.region = region_for_position(op.position)
            return await t.insert_object(image, op.element, step.region)

        elif isinstance(op, BackgroundOp):
            if op.action == "replace":
                return await t.replace_background(image, op.replacement)
            return await t.remove_background(image)

        elif isinstance(op, RelightOp):
            return await t.relight(
                image, op.style, light_source=op.light_source, strength=op.strength
            )

        elif isinstance(op, UpscaleOp):
            return await t.upscale(image, op.scale)

        elif isinstance(op, DetectOp):
            result = await t.detect_target(image, op.target)
            step.report = result.summary()
            logger.info("  detect %r: %d found", op.target, len(result.detections))
            return image

        elif isinstance(op, DescribeOp):
            description = await t.describe_image(image, op.question)
            step.report = {"description": description}
            return image

        elif isinstance(op, StyleOp):
            raise UnsupportedOperationError("style transfer is not supported")

        raise UnsupportedOperationError(f"no handler for operation {type(op).__name__}")


def _is_variant(raw: Any) -> bool:
    return isinstance(raw, BaseModel) and not isinstance(raw, PlannedOperation)


def _type_name(raw: Any) -> str:
    if isinstance(raw, dict):
        return str(raw.get("type") or "unknown")
    return str(getattr(raw, "type", None) or "unknown")
