"""Score-to-label mapping and frame annotation."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import cv2

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray

    from facelabel.ml.face_detector import FaceBox

FIRST_PERSON = "First person"
SECOND_PERSON = "Second person"
UNCLASSIFIED = ""

BOX_COLOR = (0, 255, 0, 255)
BOX_THICKNESS = 2
TEXT_COLOR = (255, 255, 255, 150)
TEXT_FONT = cv2.FONT_HERSHEY_PLAIN
TEXT_SCALE = 1.5
TEXT_THICKNESS = 2
TEXT_OFFSET = (10, 20)


def label_for_score(score: float) -> str:
    """Map a model score to a label; scores outside [0, 1) are unclassified."""
    if math.isnan(score):
        return UNCLASSIFIED
    if 0.0 <= score < 0.5:
        return FIRST_PERSON
    if 0.5 <= score < 1.0:
        return SECOND_PERSON
    return UNCLASSIFIED


def annotate(frame: NDArray[np.uint8], box: FaceBox, label: str) -> None:
    """Draw the face rectangle and its label onto ``frame`` in place."""
    cv2.rectangle(frame, box.top_left, box.bottom_right, BOX_COLOR, BOX_THICKNESS)
    if label == UNCLASSIFIED:
        return
    origin = (box.x + TEXT_OFFSET[0], box.y + TEXT_OFFSET[1])
    cv2.putText(frame, label, origin, TEXT_FONT, TEXT_SCALE, TEXT_COLOR, TEXT_THICKNESS)
