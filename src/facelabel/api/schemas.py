"""Pydantic request/response schemas for the FaceLabel API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class LabeledFace(BaseModel):
    """A detected face with its model score and label."""

    x: int = Field(description="Bounding box left edge in pixels (orientation-corrected frame)")
    y: int = Field(description="Bounding box top edge in pixels (orientation-corrected frame)")
    width: int
    height: int
    score: float = Field(description="Raw scoring model output")
    label: str = Field(description="'First person', 'Second person', or '' when unclassified")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    gpu: bool
    detector_available: bool
    models_loaded: list[str]
    concurrent_requests: int
    queue_depth: int
    frames_processed: int


class ModelInfo(BaseModel):
    """Information about a known model."""

    name: str
    task: str = Field(description="Model task: 'face_detection' or 'face_scoring'")
    status: str = Field(description="Model status: 'active', 'available', or 'unavailable'")


class ModelsResponse(BaseModel):
    """Response for the models listing endpoint."""

    models: list[ModelInfo]


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
