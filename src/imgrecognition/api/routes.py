"""API route definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, HTTPException, Request, UploadFile, status

from imgrecognition.api.middleware import verify_api_key
from imgrecognition.api.schemas import (
    ClassifyImageResponse,
    ClassifyUrlRequest,
    ErrorResponse,
    HealthResponse,
    ImageTag,
    ModelInfo,
)
from imgrecognition.errors import FetchError, ImageDecodeError, RecognitionError
from imgrecognition.fetch import fetch_image

if TYPE_CHECKING:
    from imgrecognition.config import Settings
    from imgrecognition.ml.inference import InferencePool
    from imgrecognition.ml.pipeline import ClassificationPipeline
    from imgrecognition.ml.ranking import Label

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])

_ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: {"model": ErrorResponse},
    status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
}


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_inference_pool(request: Request) -> InferencePool:
    pool: InferencePool = request.app.state.inference_pool
    return pool


def _get_pipeline(request: Request) -> ClassificationPipeline:
    pipeline: ClassificationPipeline = request.app.state.pipeline
    return pipeline


def _to_response(labels: list[Label]) -> ClassifyImageResponse:
    return ClassifyImageResponse(tags=[ImageTag(label=label.name, confidence=label.probability) for label in labels])


async def _run_classification(request: Request, image: bytes) -> ClassifyImageResponse:
    pool = _get_inference_pool(request)
    pipeline = _get_pipeline(request)
    try:
        labels = await pool.run(pipeline.classify, image)
    except TimeoutError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Inference queue is full, retry later",
        ) from None
    except ImageDecodeError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except RecognitionError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"{exc.summary} (stage {exc.stage}): {exc}",
        ) from exc
    return _to_response(labels)


@router.post(
    "/classify-image",
    response_model=ClassifyImageResponse,
    responses=_ERROR_RESPONSES,
    summary="Classify an uploaded JPEG",
)
async def classify_image(request: Request, file: UploadFile) -> ClassifyImageResponse:
    """Classify an uploaded image and return ranked tags."""
    settings = _get_settings(request)
    image = await file.read(settings.max_file_size + 1)
    if len(image) > settings.max_file_size:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {settings.max_file_size} bytes",
        )
    return await _run_classification(request, image)


@router.post(
    "/classify-url",
    response_model=ClassifyImageResponse,
    responses={**_ERROR_RESPONSES, status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse}},
    summary="Fetch and classify the JPEG at a URL",
)
async def classify_url(request: Request, body: ClassifyUrlRequest) -> ClassifyImageResponse:
    """Fetch an image over HTTP, classify it and return ranked tags."""
    settings = _get_settings(request)
    pool = _get_inference_pool(request)
    try:
        image = await pool.run(_fetch, body.url, settings)
    except TimeoutError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Inference queue is full, retry later",
        ) from None
    except FetchError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return await _run_classification(request, image)


def _fetch(url: str, settings: Settings) -> bytes:
    return fetch_image(url, timeout=settings.fetch_timeout, max_bytes=settings.max_file_size)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    pipeline = _get_pipeline(request)
    pool = _get_inference_pool(request)
    return HealthResponse(
        status="ok",
        model=pipeline.model.name,
        num_classes=len(pipeline.model.labels),
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )


@router.get(
    "/model",
    response_model=ModelInfo,
    summary="Describe the bound classification model",
)
async def model_info(request: Request) -> ModelInfo:
    """Return the loaded model and the preprocessing constants bound to it."""
    pipeline = _get_pipeline(request)
    return ModelInfo(
        name=pipeline.model.name,
        input_port=pipeline.model.input_port,
        output_port=pipeline.model.output_port,
        input_size=pipeline.config.input_size,
        mean=pipeline.config.mean,
        channels=pipeline.config.channels,
        num_classes=len(pipeline.model.labels),
    )
