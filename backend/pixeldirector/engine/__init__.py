"""PixelDirector edit engine."""

from pixeldirector.engine.compositor import CompositeResult, composite, composite_sources
from pixeldirector.engine.dispatcher import DispatchOutcome, DispatchState, OperationDispatcher
from pixeldirector.engine.orchestrator import EditOrchestrator, EditResult, Strategy, StrategySelector
from pixeldirector.engine.parser import parse_structured
from pixeldirector.engine.retry import GENERATION_POLICY, SUBMISSION_POLICY, RetryPolicy, with_retry
from pixeldirector.engine.segmentation import SegmentationResolver, SegmentationResult

__all__ = [
    "CompositeResult",
    "composite",
    "composite_sources",
    "DispatchOutcome",
    "DispatchState",
    "OperationDispatcher",
    "EditOrchestrator",
    "EditResult",
    "Strategy",
    "StrategySelector",
    "parse_structured",
    "GENERATION_POLICY",
    "SUBMISSION_POLICY",
    "RetryPolicy",
    "with_retry",
    "SegmentationResolver",
    "SegmentationResult",
]
