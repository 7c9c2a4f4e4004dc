"""Face detection: Haar cascade adapter.

The cascade itself is OpenCV's; this module only computes the minimum-size
hint, runs ``detectMultiScale`` and converts its rectangles to ``FaceBox``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import cv2

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FaceBox:
    """Axis-aligned face rectangle in frame pixel coordinates."""

    x: int
    y: int
    width: int
    height: int

    @property
    def top_left(self) -> tuple[int, int]:
        return (self.x, self.y)

    @property
    def bottom_right(self) -> tuple[int, int]:
        return (self.x + self.width, self.y + self.height)

    def fits_within(self, frame_width: int, frame_height: int) -> bool:
        """Return True if the box is non-empty and fully inside the frame."""
        return (
            self.width > 0
            and self.height > 0
            and self.x >= 0
            and self.y >= 0
            and self.x + self.width <= frame_width
            and self.y + self.height <= frame_height
        )


class FaceDetector(Protocol):
    """Protocol for face detectors."""

    @property
    def available(self) -> bool:
        """Return False if the detector could not be initialized."""
        ...

    def detect(self, gray: NDArray[np.uint8], min_size: int) -> list[FaceBox]:
        """Detect faces in a grayscale image.

        Args:
            gray: HxW uint8 array.
            min_size: Smallest face side, in pixels, worth reporting.

        Returns:
            Possibly empty, possibly overlapping list of face boxes.
        """
        ...


def min_face_size(gray: NDArray[np.uint8], fraction: float) -> int:
    """Return the minimum detectable face side for a frame of this height."""
    return int(gray.shape[0] * fraction)


class HaarCascadeDetector:
    """Wraps a ``cv2.CascadeClassifier``.

    A cascade that fails to load does not raise: the detector is marked
    unavailable and reports no faces for its lifetime.
    """

    def __init__(
        self,
        cascade_path: str,
        *,
        scale_factor: float = 1.1,
        min_neighbors: int = 2,
    ) -> None:
        self._scale_factor = scale_factor
        self._min_neighbors = min_neighbors

        classifier: cv2.CascadeClassifier | None = None
        try:
            classifier = cv2.CascadeClassifier()
            loaded = classifier.load(cascade_path)
        except (cv2.error, AttributeError) as exc:
            # AttributeError: OpenCV build without the objdetect cascade API.
            logger.error("Failed to load cascade %s: %s", cascade_path, exc)
            loaded = False
        if not loaded or classifier is None or classifier.empty():
            logger.error("Cascade %s unavailable, face detection disabled", cascade_path)
            classifier = None
        else:
            logger.info("Loaded cascade %s", cascade_path)
        self._classifier = classifier

    @property
    def available(self) -> bool:
        return self._classifier is not None

    def detect(self, gray: NDArray[np.uint8], min_size: int) -> list[FaceBox]:
        if self._classifier is None or gray.size == 0:
            return []

        rects = self._classifier.detectMultiScale(
            gray,
            scaleFactor=self._scale_factor,
            minNeighbors=self._min_neighbors,
            flags=cv2.CASCADE_SCALE_IMAGE,
            minSize=(min_size, min_size),
        )
        return [FaceBox(int(x), int(y), int(w), int(h)) for (x, y, w, h) in rects]
