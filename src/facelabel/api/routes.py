"""API route definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, HTTPException, Request, UploadFile, status
from fastapi.responses import Response

from facelabel.api.dependencies import (
    get_inference_pool,
    get_model_manager,
    get_pipeline,
    get_settings,
    verify_api_key,
)
from facelabel.api.schemas import (
    ErrorResponse,
    HealthResponse,
    LabeledFace,
    ModelInfo,
    ModelsResponse,
)
from facelabel.ml.model_manager import CASCADE_REGISTRY, scorer_model_name
from facelabel.ml.preprocessing import decode_image, encode_png

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray

    from facelabel.config import Settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])

_UPLOAD_ERRORS: dict[int | str, dict[str, object]] = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
}


async def _read_frame(file: UploadFile, settings: Settings) -> NDArray[np.uint8]:
    data = await file.read()
    try:
        return decode_image(
            data,
            max_file_size=settings.max_file_size,
            max_image_pixels=settings.max_image_pixels,
        )
    except ValueError as exc:
        logger.info("Rejected upload %s: %s", file.filename, exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


def _busy() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Pipeline busy, try again later",
    )


@router.post(
    "/annotate-frame",
    response_class=Response,
    responses={status.HTTP_200_OK: {"content": {"image/png": {}}}, **_UPLOAD_ERRORS},
    summary="Label faces on a frame",
)
async def annotate_frame(request: Request, file: UploadFile) -> Response:
    """Detect, score and label faces, returning the annotated frame as PNG."""
    pool = get_inference_pool(request)
    pipeline = get_pipeline(request)
    frame = await _read_frame(file, get_settings(request))
    try:
        annotated = await pool.run(pipeline.process_frame, frame)
    except TimeoutError:
        raise _busy() from None
    return Response(content=encode_png(annotated), media_type="image/png")


@router.post(
    "/detect-faces",
    response_model=list[LabeledFace],
    responses=_UPLOAD_ERRORS,
    summary="Detect and label faces",
)
async def detect_faces(request: Request, file: UploadFile) -> list[LabeledFace]:
    """Return every scored face in an uploaded frame."""
    pool = get_inference_pool(request)
    pipeline = get_pipeline(request)
    frame = await _read_frame(file, get_settings(request))
    try:
        results = await pool.run(pipeline.analyze, frame)
    except TimeoutError:
        raise _busy() from None
    return [
        LabeledFace(
            x=r.box.x,
            y=r.box.y,
            width=r.box.width,
            height=r.box.height,
            score=r.score,
            label=r.label,
        )
        for r in results
    ]


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    settings = get_settings(request)
    pool = get_inference_pool(request)
    pipeline = get_pipeline(request)
    manager = get_model_manager(request)
    return HealthResponse(
        status="ok",
        gpu=settings.device == "cuda",
        detector_available=pipeline.detector.available,
        models_loaded=manager.get_loaded_models(),
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
        frames_processed=pool.frames_processed,
    )


@router.get(
    "/models",
    response_model=ModelsResponse,
    summary="List known models",
)
async def list_models(request: Request) -> ModelsResponse:
    """Return the bundled cascades and the configured scorer with their status."""
    settings = get_settings(request)
    pipeline = get_pipeline(request)
    loaded = set(get_model_manager(request).get_loaded_models())

    cascades = list(CASCADE_REGISTRY)
    if settings.cascade not in CASCADE_REGISTRY:
        cascades.append(settings.cascade)

    models: list[ModelInfo] = []
    for name in cascades:
        if name != settings.cascade:
            model_status = "available"
        elif pipeline.detector.available:
            model_status = "active"
        else:
            model_status = "unavailable"
        models.append(ModelInfo(name=name, task="face_detection", status=model_status))

    scorer = scorer_model_name(settings)
    models.append(
        ModelInfo(
            name=scorer,
            task="face_scoring",
            status="active" if scorer in loaded else "unavailable",
        )
    )
    return ModelsResponse(models=models)
