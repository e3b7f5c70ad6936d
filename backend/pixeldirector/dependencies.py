"""FastAPI dependency injection."""

from __future__ import annotations

from functools import lru_cache

from pixeldirector.config import settings
from pixeldirector.engine.dispatcher import OperationDispatcher
from pixeldirector.engine.image_store import ImageStore
from pixeldirector.engine.orchestrator import EditOrchestrator
from pixeldirector.engine.segmentation import (
    DetectThenMaskBackend,
    GroundedSamBackend,
    NativeMaskBackend,
    SegmentationResolver,
)
from pixeldirector.llm.director import Director
from pixeldirector.services.gemini import NativeImageEditor
from pixeldirector.services.replicate import ReplicateClient

_image_store = ImageStore(
    ttl_s=settings.image_store_ttl_s,
    max_entries=settings.image_store_max_entries,
)


def get_settings():
    return settings


def get_image_store() -> ImageStore:
    return _image_store


@lru_cache(maxsize=1)
def get_replicate() -> ReplicateClient:
    return ReplicateClient()


@lru_cache(maxsize=1)
def get_native_editor() -> NativeImageEditor | None:
    if not settings.use_native_edit or not settings.google_api_key:
        return None
    return NativeImageEditor()


@lru_cache(maxsize=1)
def get_director() -> Director:
    return Director()


def get_resolver() -> SegmentationResolver:
    if settings.segmentation_backend == "native":
        native = get_native_editor() or NativeImageEditor()
        return SegmentationResolver(NativeMaskBackend(native))
    if settings.segmentation_backend == "detect_then_mask":
        return SegmentationResolver(DetectThenMaskBackend(get_replicate()))
    return SegmentationResolver(GroundedSamBackend(get_replicate()))


def get_orchestrator() -> EditOrchestrator:
    replicate = get_replicate()
    return EditOrchestrator(
        planner=get_director(),
        dispatcher=OperationDispatcher(get_resolver(), replicate),
        native=get_native_editor(),
    )
