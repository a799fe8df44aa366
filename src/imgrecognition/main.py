"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from imgrecognition.config import Settings

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from imgrecognition.api.routes import router
from imgrecognition.config import get_settings
from imgrecognition.ml.inference import InferencePool
from imgrecognition.ml.model_store import ModelStore
from imgrecognition.ml.pipeline import ClassificationPipeline

logger = logging.getLogger(__name__)


def init_state(app: FastAPI, settings: Settings) -> None:
    """Load the classifier once and attach shared, read-only state to the app."""
    model = ModelStore(settings).load()
    app.state.settings = settings
    app.state.pipeline = ClassificationPipeline(model, settings)
    app.state.inference_pool = InferencePool(settings)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize on startup, clean up on shutdown."""
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting imgrecognition (model=%s, input_size=%s, max_concurrent=%s)",
        settings.graph_file,
        settings.input_size,
        settings.max_concurrent,
    )

    init_state(app, settings)

    logger.info("imgrecognition ready")
    yield

    logger.info("Shutting down imgrecognition")
    app.state.inference_pool.shutdown()
    logger.info("imgrecognition shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="imgrecognition",
        description="Top-5 image classification with a pretrained ONNX network",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(router)
    return application


app = create_app()
