"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from facelabel.api.routes import router
from facelabel.config import get_settings
from facelabel.ml.inference import InferencePool
from facelabel.ml.model_manager import OnnxModelManager
from facelabel.ml.pipeline import FacePipeline

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: load models on startup, release them on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting FaceLabel (device=%s, max_concurrent=%s, cascade=%s, input_size=%s, rotate_frame=%s)",
        settings.device,
        settings.max_concurrent,
        settings.cascade,
        settings.input_size,
        settings.rotate_frame,
    )

    # A missing scorer aborts startup; a missing cascade only disables detection.
    model_manager = OnnxModelManager(settings)
    pipeline = FacePipeline(model_manager.load_detector(), model_manager.load_scorer(), settings)
    app.state.model_manager = model_manager
    app.state.pipeline = pipeline

    inference_pool = InferencePool(settings)
    app.state.inference_pool = inference_pool

    logger.info("FaceLabel ready")
    yield

    logger.info("Shutting down FaceLabel")
    inference_pool.shutdown()
    model_manager.shutdown()
    logger.info("FaceLabel shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="FaceLabel",
        description="Haar-cascade face detection with per-face model labelling",
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
