"""Face scoring model.

Maps a normalized face buffer to a single scalar via ONNX Runtime.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray
    from onnxruntime import InferenceSession

logger = logging.getLogger(__name__)


class ModelConfigError(RuntimeError):
    """The scoring model was built for a different input geometry."""


class ScoringError(RuntimeError):
    """An inference run failed."""


class FaceScorer(Protocol):
    """Protocol for face scoring models."""

    @property
    def input_size(self) -> int:
        """Return the square side length the model expects."""
        ...

    def infer(self, buffer: NDArray[np.float32]) -> float:
        """Score a face crop.

        Args:
            buffer: Flat float32 buffer of length 3 * input_size**2.

        Returns:
            The model's single output value.
        """
        ...


class OnnxFaceScorer:
    """Runs a single-output face model through an ONNX Runtime session.

    The model input is NHWC ``(1, input_size, input_size, 3)`` float32.
    """

    def __init__(self, session: InferenceSession, input_size: int) -> None:
        self._session = session
        self._input_size = input_size

        model_input = session.get_inputs()[0]
        self._input_name: str = model_input.name
        self._check_input_shape(model_input.shape)

    @property
    def input_size(self) -> int:
        return self._input_size

    @property
    def buffer_length(self) -> int:
        return 3 * self._input_size * self._input_size

    def infer(self, buffer: NDArray[np.float32]) -> float:
        if buffer.size != self.buffer_length:
            raise ModelConfigError(f"Buffer has {buffer.size} values, model expects {self.buffer_length}")

        tensor = np.ascontiguousarray(buffer, dtype=np.float32).reshape(1, self._input_size, self._input_size, 3)
        try:
            outputs = self._session.run(None, {self._input_name: tensor})
        except Exception as exc:
            raise ScoringError(f"Inference failed: {exc}") from exc

        result = np.asarray(outputs[0])
        if result.size == 0:
            raise ScoringError("Model returned an empty output")
        return float(result.reshape(-1)[0])

    def _check_input_shape(self, shape: list[int | str | None]) -> None:
        # Symbolic (str/None) dimensions are accepted as-is.
        expected = (1, self._input_size, self._input_size, 3)
        if len(shape) != len(expected):
            raise ModelConfigError(f"Model input has rank {len(shape)}, expected {len(expected)}")
        for actual, want in zip(shape[1:], expected[1:], strict=True):
            if isinstance(actual, int) and actual != want:
                raise ModelConfigError(f"Model input shape {list(shape)} does not match input_size={self._input_size}")
