"""Pydantic request/response schemas for the imgrecognition API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ClassifyUrlRequest(BaseModel):
    """Request body for classifying an image at a URL."""

    url: str = Field(min_length=1)


class ImageTag(BaseModel):
    """A single classification tag with confidence score."""

    label: str
    confidence: float = Field(ge=0.0, le=1.0)


class ClassifyImageResponse(BaseModel):
    """Response for the classification endpoints, best tag first."""

    tags: list[ImageTag]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    model: str
    num_classes: int
    concurrent_requests: int
    queue_depth: int


class ModelInfo(BaseModel):
    """The bound classification model and the preprocessing it expects."""

    name: str
    input_port: str
    output_port: str
    input_size: int
    mean: float
    channels: int
    num_classes: int


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
