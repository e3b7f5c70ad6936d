"""API request models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class UploadRequest(BaseModel):
    image: str = Field(..., description="Image as data URI, raw base64 or http(s) URL")


class AnalyzeRequest(BaseModel):
    image: str = Field(..., description="Image reference or upload handle")


class PlanRequest(BaseModel):
    image: str = Field(..., description="Image reference or upload handle")
    instruction: str = Field(..., min_length=1, description="Edit instruction in natural language")


class SegmentLabelRequest(BaseModel):
    image: str = Field(..., description="Image reference or upload handle")
    label: str = Field(..., description="What to segment, e.g. 'red mug'")


class SegmentPointRequest(BaseModel):
    image: str = Field(..., description="Image reference or upload handle")
    x: float = Field(..., description="Click x coordinate (pixels)")
    y: float = Field(..., description="Click y coordinate (pixels)")


class ReferenceInput(BaseModel):
    label: str = Field(..., description="Name used for this element in the instruction")
    image: str = Field(..., description="Reference image or upload handle")


class EditRequest(BaseModel):
    image: str = Field(..., description="Image reference or upload handle")
    instruction: str = Field(default="", description="Edit instruction in natural language")
    strategy: Literal["auto", "direct", "planned"] = Field(
        default="auto",
        description="auto tries a direct native edit and falls back to planning",
    )
    mask: str | None = Field(default=None, description="Confine the edit to the white area of this mask")
    references: list[ReferenceInput] = Field(default_factory=list)
    quick_operation: Literal["remove-bg", "upscale"] | None = Field(
        default=None, description="Run one operation without planning"
    )
    scale: Literal[2, 4] = Field(default=4, description="Upscale factor for quick upscale")


class VerifyRequest(BaseModel):
    original: str = Field(..., description="Image before the edit")
    edited: str = Field(..., description="Image after the edit")
    instruction: str
    expected_changes: list[str] = Field(default_factory=list)


class GenerateObjectRequest(BaseModel):
    description: str = Field(..., min_length=1, description="Object to generate, e.g. 'a green armchair'")
    width: int = Field(default=512, ge=64, le=1440, multiple_of=64)
    height: int = Field(default=512, ge=64, le=1440, multiple_of=64)
