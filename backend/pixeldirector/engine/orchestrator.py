"""Edit orchestrator: Direct native edit first, one fallback to the Planned pipeline."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

import httpx

from pixeldirector.engine.compositor import composite_sources
from pixeldirector.engine.dispatcher import DispatchOutcome, OperationDispatcher, StepRecord
from pixeldirector.errors import PixelDirectorError
from pixeldirector.models.edit_ops import EditPlan, describe_plan
from pixeldirector.models.scene import SceneAnalysis

logger = logging.getLogger(__name__)


class Strategy(str, Enum):
    DIRECT = "direct"
    PLANNED = "planned"


class StrategySelector:
    """Two states. DIRECT may fall back to PLANNED once; PLANNED is final."""

    def __init__(self, start: Strategy = Strategy.DIRECT) -> None:
        self.current = start
        self.fell_back = False

    def fall_back(self) -> Strategy:
        if self.current != Strategy.DIRECT:
            raise RuntimeError(f"no fallback from {self.current.value}")
        self.current = Strategy.PLANNED
        self.fell_back = True
        return self.current


class Planner(Protocol):
    async def analyze_scene(self, image: str) -> SceneAnalysis: ...

    async def plan_edit(self, instruction: str, scene: SceneAnalysis) -> EditPlan: ...


class NativeEditor(Protocol):
    async def edit_image(self, image: str, instruction: str): ...

    async def edit_with_mask(self, image: str, mask: str, instruction: str): ...

    async def edit_with_references(self, image: str, instruction: str, references: list, mask: str | None = None): ...


@dataclass
class EditResult:
    success: bool
    image: str  # output, or the last good intermediate on failure
    original: str
    strategy: Strategy
    instruction: str = ""
    fell_back: bool = False
    scene: SceneAnalysis | None = None
    plan: EditPlan | None = None
    plan_description: str | None = None
    steps: list[StepRecord] = field(default_factory=list)
    error: PixelDirectorError | None = None
    failed_index: int | None = None
    message: str | None = None  # failure reason when there is no error object
    direct_error: str | None = None
    text_response: str | None = None
    duration_ms: float = 0.0

    @property
    def error_message(self) -> str | None:
        if self.error is not None:
            return str(self.error)
        return self.message

    @property
    def reports(self) -> list[dict[str, Any]]:
        return [s.report for s in self.steps if s.report is not None]


class EditOrchestrator:
    """Entry point for instruction-driven edits.

    ``native`` is optional; without it every edit goes straight to the
    Planned strategy. Scene and plan failures propagate as exceptions;
    dispatch failures come back inside the ``EditResult``.
    """

    def __init__(
        self,
        planner: Planner,
        dispatcher: OperationDispatcher,
        native: NativeEditor | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.planner = planner
        self.dispatcher = dispatcher
        self.native = native
        self._http = http_client

    async def edit(self, image: str, instruction: str) -> EditResult:
        """Try the Direct strategy; on failure fall back to Planned exactly once."""
        start = time.perf_counter()
        selector = StrategySelector(Strategy.DIRECT if self.native is not None else Strategy.PLANNED)

        direct_error = None
        if selector.current == Strategy.DIRECT:
            result = await self.edit_direct(image, instruction)
            if result.success:
                result.duration_ms = (time.perf_counter() - start) * 1000
                return result
            direct_error = result.message
            logger.warning("Direct edit failed (%s), falling back to planned edit", direct_error)
            selector.fall_back()

        result = await self.edit_planned(image, instruction)
        result.fell_back = selector.fell_back
        result.direct_error = direct_error
        result.duration_ms = (time.perf_counter() - start) * 1000
        return result

    def _native_result(self, image: str, instruction: str, native, what: str) -> EditResult:
        if not native.success:
            return EditResult(
                success=False,
                image=image,
                original=image,
                strategy=Strategy.DIRECT,
                instruction=instruction,
                message=native.error or f"{what} failed",
                text_response=native.text_response,
            )
        return EditResult(
            success=True,
            image=native.image,
            original=image,
            strategy=Strategy.DIRECT,
            instruction=instruction,
        )

    def _no_native(self, image: str, instruction: str) -> EditResult:
        return EditResult(
            success=False,
            image=image,
            original=image,
            strategy=Strategy.DIRECT,
            instruction=instruction,
            message="native editing is not configured",
        )

    async def edit_direct(self, image: str, instruction: str) -> EditResult:
        if self.native is None:
            return self._no_native(image, instruction)
        native = await self.native.edit_image(image, instruction)
        return self._native_result(image, instruction, native, "native edit")

    async def edit_planned(self, image: str, instruction: str) -> EditResult:
        """Analyze once, plan once, then dispatch the plan."""
        scene = await self.planner.analyze_scene(image)
        plan = await self.planner.plan_edit(instruction, scene)
        description = describe_plan(plan)
        logger.info("%s", description)

        if plan.is_empty:
            logger.info("No actionable operations for %r", instruction)
            return EditResult(
                success=False,
                image=image,
                original=image,
                strategy=Strategy.PLANNED,
                instruction=instruction,
                scene=scene,
                plan=plan,
                plan_description=description,
            )

        outcome: DispatchOutcome = await self.dispatcher.run(image, plan.operations)
        return EditResult(
            success=outcome.succeeded,
            image=outcome.image,
            original=image,
            strategy=Strategy.PLANNED,
            instruction=instruction,
            scene=scene,
            plan=plan,
            plan_description=description,
            steps=outcome.steps,
            error=outcome.error,
            failed_index=outcome.failed_index,
        )

    async def edit_masked(
        self,
        image: str,
        mask: str,
        instruction: str,
        references: list | None = None,
    ) -> EditResult:
        """Native edit confined to ``mask``, then composited so unmasked pixels are untouched."""
        if self.native is None:
            return self._no_native(image, instruction)
        if references:
            native = await self.native.edit_with_references(image, instruction, references, mask=mask)
        else:
            native = await self.native.edit_with_mask(image, mask, instruction)
        if not native.success:
            return self._native_result(image, instruction, native, "masked edit")
        composite = await composite_sources(image, native.image, mask, self._http)
        return EditResult(
            success=True,
            image=composite.data_uri,
            original=image,
            strategy=Strategy.DIRECT,
            instruction=instruction,
        )

    async def edit_with_references(self, image: str, instruction: str, references: list) -> EditResult:
        if self.native is None:
            return self._no_native(image, instruction)
        native = await self.native.edit_with_references(image, instruction, references)
        return self._native_result(image, instruction, native, "reference edit")

    async def run_operation(self, image: str, operation: dict[str, Any]) -> EditResult:
        """Run a single operation without planning (quick actions)."""
        outcome = await self.dispatcher.run(image, [operation])
        return EditResult(
            success=outcome.succeeded,
            image=outcome.image,
            original=image,
            strategy=Strategy.PLANNED,
            instruction=str(operation.get("type", "")),
            steps=outcome.steps,
            error=outcome.error,
            failed_index=outcome.failed_index,
        )

    async def generate_object(self, description: str, *, width: int = 512, height: int = 512) -> str:
        """Generate a standalone cut-out object, e.g. for later insertion."""
        logger.info("Generating object %r", description)
        return await self.dispatcher.transforms.generate_object(description, width=width, height=height)
