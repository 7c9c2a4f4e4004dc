"""Frame pipeline: orient -> detect -> score -> annotate.

Each call is an independent, synchronous pass over one frame. The only
state shared across calls is the injected detector and scorer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from facelabel.ml.annotator import annotate, label_for_score
from facelabel.ml.face_detector import FaceBox, min_face_size
from facelabel.ml.preprocessing import (
    crop_region,
    is_valid_frame,
    normalize_orientation,
    pack_normalized_buffer,
    resize_square,
    restore_orientation,
    to_grayscale,
)
from facelabel.ml.scorer import ModelConfigError, ScoringError

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from facelabel.config import Settings
    from facelabel.ml.face_detector import FaceDetector
    from facelabel.ml.scorer import FaceScorer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FaceResult:
    """A scored face; ``box`` is in orientation-corrected frame coordinates."""

    box: FaceBox
    score: float
    label: str


class FacePipeline:
    """Detects, scores and labels faces on camera frames."""

    def __init__(self, detector: FaceDetector, scorer: FaceScorer, settings: Settings) -> None:
        self._detector = detector
        self._scorer = scorer
        self._rotate = settings.rotate_frame
        self._min_face_fraction = settings.min_face_fraction
        self._interpolation = settings.resize_interpolation

    @property
    def detector(self) -> FaceDetector:
        return self._detector

    def process_frame(self, frame: NDArray[np.uint8]) -> NDArray[np.uint8]:
        """Annotate ``frame`` in place and return it."""
        self.analyze(frame)
        return frame

    def analyze(self, frame: NDArray[np.uint8]) -> list[FaceResult]:
        """Annotate ``frame`` in place and return the per-face results.

        Malformed or empty frames are left untouched and yield no results.
        """
        if not is_valid_frame(frame):
            logger.debug("Skipping invalid frame")
            return []

        working = normalize_orientation(frame) if self._rotate else frame.copy()
        gray = to_grayscale(working)
        boxes = self._detector.detect(gray, min_face_size(gray, self._min_face_fraction))
        logger.debug("Detected %d face(s) in %dx%d frame", len(boxes), gray.shape[1], gray.shape[0])

        # Crops always come from the undrawn frame.
        source = working.copy() if len(boxes) > 1 else working
        results: list[FaceResult] = []
        for box in boxes:
            result = self._classify(source, box)
            if result is None:
                continue
            annotate(working, result.box, result.label)
            results.append(result)

        np.copyto(frame, restore_orientation(working) if self._rotate else working)
        return results

    def _classify(self, frame: NDArray[np.uint8], box: FaceBox) -> FaceResult | None:
        crop = crop_region(frame, box)
        if crop is None:
            logger.debug("Skipping %s outside %dx%d frame", box, frame.shape[1], frame.shape[0])
            return None

        input_size = self._scorer.input_size
        resized = resize_square(crop, input_size, self._interpolation)
        buffer = pack_normalized_buffer(resized, input_size)
        try:
            score = self._scorer.infer(buffer)
        except (ModelConfigError, ScoringError) as exc:
            logger.warning("Scoring failed for %s: %s", box, exc)
            return None
        return FaceResult(box=box, score=score, label=label_for_score(score))
