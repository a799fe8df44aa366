"""Error taxonomy for the recognition pipeline.

Every failure aborts the whole classification. ``stage`` is stamped by the
pipeline so callers can tell which step failed.
"""

from __future__ import annotations


class RecognitionError(Exception):
    """Base class for all imgrecognition failures."""

    summary = "recognition failed"

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.stage = stage


class UsageError(RecognitionError):
    summary = "usage: imgrecognition <image_url>"


class FetchError(RecognitionError):
    summary = "unable to get image from url"


class ModelLoadError(RecognitionError):
    summary = "unable to load model"


class GraphConstructionError(RecognitionError):
    summary = "unable to build preprocessing graph"


class SessionError(RecognitionError):
    summary = "could not init session"


class ExecutionError(RecognitionError):
    summary = "could not run inference"


class ImageDecodeError(ExecutionError):
    summary = "unable to make a tensor from image"


class InsufficientResultsError(RecognitionError):
    """Fewer label/probability pairs exist than the requested top-K."""

    summary = "not enough candidate labels"

    def __init__(self, available: int, requested: int) -> None:
        super().__init__(f"only {available} candidate labels available, {requested} requested")
        self.available = available
        self.requested = requested
