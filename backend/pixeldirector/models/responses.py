"""API response models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    native_edit_enabled: bool = False
    segmentation_backend: str = ""


class UploadResponse(BaseModel):
    handle: str
    expires_in_s: float


class AnalyzeResponse(BaseModel):
    scene: dict[str, Any]
    processing_time_ms: float = 0.0


class PlanResponse(BaseModel):
    scene: dict[str, Any]
    plan: dict[str, Any]
    description: str
    processing_time_ms: float = 0.0


class SegmentResponse(BaseModel):
    found: bool
    mask: str | None = None
    confidence: float | None = None
    bbox: list[float] | None = None
    error: str | None = None


class StepResponse(BaseModel):
    index: int
    type: str
    duration_ms: float = 0.0
    report: dict[str, Any] | None = None
    region: list[float] | None = None
    error: str | None = None


class EditResponse(BaseModel):
    success: bool
    image: str
    strategy: str
    fell_back: bool = False
    plan_description: str | None = None
    steps: list[StepResponse] = Field(default_factory=list)
    error: str | None = None
    error_kind: str | None = None
    failed_index: int | None = None
    direct_error: str | None = None
    text_response: str | None = None
    processing_time_ms: float = 0.0


class GenerateObjectResponse(BaseModel):
    image: str
    processing_time_ms: float = 0.0


class VerifyResponse(BaseModel):
    success: bool
    changes_detected: list[str] = Field(default_factory=list)
    issues: list[str] = Field(default_factory=list)
    confidence: float = 0.0


class ErrorResponse(BaseModel):
    error: str
    detail: str
    operation: str | None = None
