"""Scene analysis models returned by the planning model."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ElementCategory = Literal[
    "person",
    "animal",
    "object",
    "text",
    "logo",
    "vehicle",
    "furniture",
    "plant",
    "food",
    "building",
    "nature",
    "abstract",
    "clothing",
    "accessory",
    "other",
]

ElementSize = Literal["tiny", "small", "medium", "large", "dominant"]

_CATEGORIES = set(ElementCategory.__args__)
_SIZES = set(ElementSize.__args__)


class _SceneModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class BoundingBox(_SceneModel):
    """Percentages of the image (0-100) from the top-left corner."""

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0


class SceneElement(_SceneModel):
    id: str = ""
    label: str
    category: ElementCategory = "other"
    position: str = ""  # "top-left", "center", "foreground-right", ...
    size: ElementSize = "medium"
    description: str = ""
    colors: list[str] = Field(default_factory=list)
    bounding_box: BoundingBox | None = None
    material: str | None = None
    state: str | None = None
    confidence: float = 1.0

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, v):
        v = str(v or "").strip().lower()
        return v if v in _CATEGORIES else "other"

    @field_validator("size", mode="before")
    @classmethod
    def _coerce_size(cls, v):
        v = str(v or "").strip().lower()
        return v if v in _SIZES else "medium"

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v):
        try:
            return min(1.0, max(0.0, float(v)))
        except (TypeError, ValueError):
            return 0.0


class PeopleSummary(_SceneModel):
    count: int = 0
    descriptions: list[str] = Field(default_factory=list)


class TextItem(_SceneModel):
    content: str = ""
    position: str = ""
    style: str = ""


class TextSummary(_SceneModel):
    items: list[TextItem] = Field(default_factory=list)


class LogoItem(_SceneModel):
    brand: str = "unknown"
    position: str = ""
    size: str = ""


class LogoSummary(_SceneModel):
    items: list[LogoItem] = Field(default_factory=list)


class Lighting(_SceneModel):
    type: str = ""
    direction: str = ""
    quality: str = ""
    color_temperature: str = ""


class ColorSummary(_SceneModel):
    dominant: list[str] = Field(default_factory=list)
    accent: list[str] = Field(default_factory=list)
    palette: str = ""


class Background(_SceneModel):
    type: str = ""
    description: str = ""
    complexity: str = ""


class Composition(_SceneModel):
    type: str = ""
    focus_point: str = ""
    depth: str = ""


class ImageQuality(_SceneModel):
    resolution: str = ""
    noise: str = ""
    blur: str = ""
    artifacts: list[str] = Field(default_factory=list)


class SceneAnalysis(_SceneModel):
    """Everything the planner knows about an image before planning an edit."""

    elements: list[SceneElement] = Field(default_factory=list)
    people: PeopleSummary = Field(default_factory=PeopleSummary)
    text: TextSummary = Field(default_factory=TextSummary)
    logos: LogoSummary = Field(default_factory=LogoSummary)
    lighting: Lighting = Field(default_factory=Lighting)
    colors: ColorSummary = Field(default_factory=ColorSummary)
    style: str = ""
    background: Background = Field(default_factory=Background)
    composition: Composition = Field(default_factory=Composition)
    mood: str = ""
    quality: ImageQuality = Field(default_factory=ImageQuality)
    text_visible: list[str] = Field(default_factory=list)
    suggested_edits: list[str] = Field(default_factory=list)

    def labels(self) -> list[str]:
        return [e.label for e in self.elements]

    def find(self, label: str) -> SceneElement | None:
        """First element whose label contains ``label`` (case-insensitive)."""
        needle = label.strip().lower()
        for element in self.elements:
            if needle and needle in element.label.lower():
                return element
        return None


class Verification(_SceneModel):
    success: bool = False
    changes_detected: list[str] = Field(default_factory=list)
    issues: list[str] = Field(default_factory=list)
    confidence: float = 0.0

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v):
        try:
            return min(1.0, max(0.0, float(v)))
        except (TypeError, ValueError):
            return 0.0
