"""Segmentation resolver: text label in, best mask (or not-found) out."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from pixeldirector.engine.regions import Box
from pixeldirector.errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MaskCandidate:
    """One mask a backend produced for a label."""

    mask: str
    confidence: float | None = None
    bbox: Box | None = None


@dataclass(frozen=True)
class Detection:
    label: str
    bbox: Box
    confidence: float


@dataclass(frozen=True)
class DetectionResult:
    """Boxes found for a text query, in the order the detector returned them."""

    query: str
    detections: list[Detection]

    @property
    def found(self) -> bool:
        return bool(self.detections)

    def summary(self) -> dict:
        return {
            "query": self.query,
            "count": len(self.detections),
            "detections": [
                {"label": d.label, "bbox": d.bbox.to_list(), "confidence": d.confidence}
                for d in self.detections
            ],
        }


@dataclass(frozen=True)
class SegmentationResult:
    found: bool
    mask: str | None = None
    confidence: float | None = None
    bbox: Box | None = None

    @classmethod
    def not_found(cls) -> SegmentationResult:
        return cls(found=False)


class SegmentationBackend(Protocol):
    """Anything that can turn (image, label) into zero or more mask candidates."""

    name: str
    assumed_confidence: float

    async def candidates(self, image: str, label: str) -> list[MaskCandidate]: ...


class DetectAndSegmentService(Protocol):
    async def detect_and_segment(self, image: str, label: str) -> list[MaskCandidate]: ...


class DetectorService(Protocol):
    async def detect_objects(self, image: str, prompt: str) -> DetectionResult: ...

    async def generate_mask(self, image: str, box: Box) -> str: ...


class NativeSegmenter(Protocol):
    async def segment_by_label(self, image: str, label: str): ...


class GroundedSamBackend:
    """Single combined detect-and-segment call."""

    name = "grounded_sam"
    # The combined model reports no score
    assumed_confidence = 0.95

    def __init__(self, service: DetectAndSegmentService) -> None:
        self.service = service

    async def candidates(self, image: str, label: str) -> list[MaskCandidate]:
        return await self.service.detect_and_segment(image, label)


class DetectThenMaskBackend:
    """Detect boxes first, then ask for a mask of the best-scoring box."""

    name = "detect_then_mask"
    assumed_confidence = 0.5

    def __init__(self, service: DetectorService) -> None:
        self.service = service

    async def candidates(self, image: str, label: str) -> list[MaskCandidate]:
        detection = await self.service.detect_objects(image, label)
        if not detection.found:
            return []
        best = _best_index([d.confidence for d in detection.detections])
        box = detection.detections[best]
        mask = await self.service.generate_mask(image, box.bbox)
        return [MaskCandidate(mask=mask, confidence=box.confidence, bbox=box.bbox)]


class NativeMaskBackend:
    """Ask the native image model to paint a mask for the label."""

    name = "native"
    assumed_confidence = 0.8

    def __init__(self, segmenter: NativeSegmenter) -> None:
        self.segmenter = segmenter

    async def candidates(self, image: str, label: str) -> list[MaskCandidate]:
        result = await self.segmenter.segment_by_label(image, label)
        if not result.success or not result.image:
            logger.info("Native mask for %r unavailable: %s", label, result.error or "no image")
            return []
        return [MaskCandidate(mask=result.image)]


def _best_index(scores: list[float | None]) -> int:
    """Index of the highest score; the first one wins ties and missing scores lose."""
    best, best_score = 0, None
    for i, score in enumerate(scores):
        if score is None:
            continue
        if best_score is None or score > best_score:
            best, best_score = i, score
    return best


class SegmentationResolver:
    """Resolves a label to the single best mask using whichever backend it was given."""

    def __init__(self, backend: SegmentationBackend) -> None:
        self.backend = backend

    async def resolve(self, image: str, label: str | None) -> SegmentationResult:
        if not isinstance(label, str) or not label.strip():
            raise ValidationError(f"segmentation needs a non-empty label, got {label!r}")
        label = label.strip()

        found = await self.backend.candidates(image, label)
        if not found:
            logger.info("Segmentation [%s]: %r not found", self.backend.name, label)
            return SegmentationResult.not_found()

        chosen = found[_best_index([c.confidence for c in found])]
        confidence = (
            chosen.confidence if chosen.confidence is not None else self.backend.assumed_confidence
        )
        logger.info(
            "Segmentation [%s]: %r -> %d candidate(s), confidence %.2f",
            self.backend.name,
            label,
            len(found),
            confidence,
        )
        return SegmentationResult(
            found=True, mask=chosen.mask, confidence=confidence, bbox=chosen.bbox
        )
