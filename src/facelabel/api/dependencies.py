"""Request dependencies: app-state accessors and API key authentication."""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

if TYPE_CHECKING:
    from facelabel.config import Settings
    from facelabel.ml.inference import InferencePool
    from facelabel.ml.model_manager import ModelManager
    from facelabel.ml.pipeline import FacePipeline

_bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def get_inference_pool(request: Request) -> InferencePool:
    pool: InferencePool = request.app.state.inference_pool
    return pool


def get_model_manager(request: Request) -> ModelManager:
    manager: ModelManager = request.app.state.model_manager
    return manager


def get_pipeline(request: Request) -> FacePipeline:
    pipeline: FacePipeline = request.app.state.pipeline
    return pipeline


async def verify_api_key(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
) -> None:
    """Reject requests without the configured bearer key.

    With FACELABEL_API_KEY unset, every request passes.
    """
    expected = get_settings(request).api_key
    if expected is None:
        return

    supplied = credentials.credentials if credentials is not None else ""
    if not secrets.compare_digest(supplied.encode(), expected.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
            headers={"WWW-Authenticate": "Bearer"},
        )
