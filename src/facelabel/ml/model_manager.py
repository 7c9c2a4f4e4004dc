"""Model manager: resolve, load and cache the cascade and scoring model.

The Haar cascade is resolved from OpenCV's bundled data or a local path.
The scoring model is a local ONNX file or a file fetched from the
HuggingFace Hub. Handles are built once and reused for every frame.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import cv2
from huggingface_hub import hf_hub_download
from onnxruntime import InferenceSession, SessionOptions
from onnxruntime.capi.onnxruntime_pybind11_state import ExecutionMode

from facelabel.ml.face_detector import HaarCascadeDetector
from facelabel.ml.scorer import OnnxFaceScorer

if TYPE_CHECKING:
    from facelabel.config import Settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol (kept for test mocking)
# ---------------------------------------------------------------------------


class ModelManager(Protocol):
    """Protocol for model lifecycle management."""

    def load_detector(self) -> HaarCascadeDetector:
        """Return the cached or newly loaded cascade detector."""
        ...

    def load_scorer(self) -> OnnxFaceScorer:
        """Return the cached or newly loaded face scorer."""
        ...

    def get_loaded_models(self) -> list[str]:
        """Return names of currently loaded models."""
        ...

    def shutdown(self) -> None:
        """Release all cached handles."""
        ...


# ---------------------------------------------------------------------------
# Cascade registry
# ---------------------------------------------------------------------------

CASCADE_REGISTRY: dict[str, str] = {
    "haarcascade_frontalface_alt": "haarcascade_frontalface_alt.xml",
    "haarcascade_frontalface_alt2": "haarcascade_frontalface_alt2.xml",
    "haarcascade_frontalface_alt_tree": "haarcascade_frontalface_alt_tree.xml",
    "haarcascade_frontalface_default": "haarcascade_frontalface_default.xml",
}


def resolve_cascade_path(cascade: str) -> str:
    """Return the file path for a registry name or pass a path through."""
    filename = CASCADE_REGISTRY.get(cascade)
    if filename is None:
        return cascade
    # Builds without bundled cascade data resolve to a bare filename, which fails to load.
    data_dir = getattr(getattr(cv2, "data", None), "haarcascades", "")
    return str(Path(data_dir) / filename)


def scorer_model_name(settings: Settings) -> str:
    """Return the display name of the configured scoring model."""
    if settings.scorer_model_repo:
        return settings.scorer_model_filename
    return Path(settings.scorer_model_path).name


# ---------------------------------------------------------------------------
# Concrete implementation
# ---------------------------------------------------------------------------


class OnnxModelManager:
    """Loads the cascade detector and the ONNX face scorer once and caches them."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._models_dir = Path(settings.models_dir)

        self._lock = threading.Lock()
        self._detector: HaarCascadeDetector | None = None
        self._scorer: OnnxFaceScorer | None = None

        self._providers = self._build_providers()
        self._session_options = self._build_session_options()

    # -- Public API ---------------------------------------------------------

    def ensure_scorer_model(self) -> Path:
        """Return the local scoring model path, downloading it if configured.

        Raises:
            FileNotFoundError: If the configured local model does not exist.
        """
        settings = self._settings
        if settings.scorer_model_repo:
            self._models_dir.mkdir(parents=True, exist_ok=True)
            downloaded = Path(
                hf_hub_download(
                    repo_id=settings.scorer_model_repo,
                    filename=settings.scorer_model_filename,
                    local_dir=str(self._models_dir),
                )
            )
            logger.info("Downloaded %s to %s", settings.scorer_model_filename, downloaded)
            return downloaded

        path = Path(settings.scorer_model_path)
        if not path.is_file():
            raise FileNotFoundError(f"Scoring model not found: {path}")
        return path

    def load_detector(self) -> HaarCascadeDetector:
        with self._lock:
            if self._detector is None:
                self._detector = HaarCascadeDetector(
                    resolve_cascade_path(self._settings.cascade),
                    scale_factor=self._settings.scale_factor,
                    min_neighbors=self._settings.min_neighbors,
                )
            return self._detector

    def load_scorer(self) -> OnnxFaceScorer:
        with self._lock:
            if self._scorer is not None:
                return self._scorer

        model_path = self.ensure_scorer_model()
        session = InferenceSession(
            str(model_path),
            sess_options=self._session_options,
            providers=self._providers,
        )
        scorer = OnnxFaceScorer(session, self._settings.input_size)

        with self._lock:
            # Double-check: another thread may have created it while we loaded.
            if self._scorer is None:
                self._scorer = scorer
                logger.info("Loaded scorer from %s (input_size=%d)", model_path, self._settings.input_size)
            return self._scorer

    def get_loaded_models(self) -> list[str]:
        """Return names of models with live handles."""
        loaded: list[str] = []
        with self._lock:
            if self._detector is not None and self._detector.available:
                loaded.append(self._settings.cascade)
            if self._scorer is not None:
                loaded.append(scorer_model_name(self._settings))
        return loaded

    def shutdown(self) -> None:
        """Drop all cached handles."""
        with self._lock:
            self._detector = None
            self._scorer = None
            logger.info("All model handles released")

    # -- Internal -----------------------------------------------------------

    def _build_providers(self) -> list[str | tuple[str, dict[str, object]]]:
        device = self._settings.device
        if device == "cuda":
            return [
                (
                    "CUDAExecutionProvider",
                    {
                        "device_id": 0,
                        "gpu_mem_limit": self._settings.gpu_mem_limit,
                        "arena_extend_strategy": "kSameAsRequested",
                    },
                ),
                "CPUExecutionProvider",
            ]
        if device == "openvino":
            return [
                ("OpenVINOExecutionProvider", {"device_type": "CPU"}),
                "CPUExecutionProvider",
            ]
        return ["CPUExecutionProvider"]

    def _build_session_options(self) -> SessionOptions:
        opts = SessionOptions()
        opts.intra_op_num_threads = self._settings.intra_op_threads
        opts.inter_op_num_threads = self._settings.inter_op_threads
        opts.execution_mode = ExecutionMode.ORT_SEQUENTIAL

        if self._settings.device == "openvino":
            # OpenVINO does its own graph optimization
            from onnxruntime import GraphOptimizationLevel

            opts.graph_optimization_level = GraphOptimizationLevel.ORT_DISABLE_ALL
        return opts
