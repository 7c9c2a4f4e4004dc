"""Environment-based configuration for FaceLabel."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from FACELABEL_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FACELABEL_",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8083

    # Authentication (None = disabled)
    api_key: str | None = None

    # ML device ("cuda" is the GPU acceleration path)
    device: Literal["cpu", "cuda", "openvino"] = "cpu"

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=2, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)

    # Concurrency
    max_concurrent: int = Field(default=1, ge=1)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=209_715_200, ge=1)

    # Model sources
    models_dir: str = "models"
    cascade: str = "haarcascade_frontalface_alt"
    scorer_model_path: str = "models/face_scorer.onnx"
    scorer_model_repo: str | None = None
    scorer_model_filename: str = "face_scorer.onnx"
    input_size: int = Field(default=96, ge=1)
    gpu_mem_limit: int = Field(default=2_147_483_648, ge=0)

    # Cascade detector
    min_face_fraction: float = Field(default=0.1, gt=0.0, le=1.0)
    scale_factor: float = Field(default=1.1, gt=1.0)
    min_neighbors: int = Field(default=2, ge=0)

    # Pipeline
    rotate_frame: bool = True
    resize_interpolation: Literal["nearest", "bilinear"] = "nearest"


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
