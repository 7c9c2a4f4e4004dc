"""Image preprocessing for the face pipeline.

Covers upload decoding and encoding, sensor orientation correction,
grayscale conversion for detection, and packing face crops into the
normalized float buffer the scoring model consumes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

import cv2
import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from facelabel.ml.face_detector import FaceBox

_INTERPOLATION: dict[str, int] = {
    "nearest": cv2.INTER_NEAREST,
    "bilinear": cv2.INTER_LINEAR,
}


# ---------------------------------------------------------------------------
# Upload codec
# ---------------------------------------------------------------------------


def decode_image(image_bytes: bytes, *, max_file_size: int, max_image_pixels: int) -> NDArray[np.uint8]:
    """Decode raw image bytes into an RGBA uint8 numpy array.

    EXIF orientation is applied. 16-bit and float images are scaled to
    8 bits per channel, and the output alpha is always opaque.

    Args:
        image_bytes: Raw file bytes (any format OpenCV can read).
        max_file_size: Upper bound on ``len(image_bytes)``.
        max_image_pixels: Upper bound on decoded width * height.

    Returns:
        HxWx4 RGBA uint8 numpy array.

    Raises:
        ValueError: If the image cannot be decoded or exceeds size limits.
    """
    if len(image_bytes) > max_file_size:
        raise ValueError(f"File exceeds {max_file_size} bytes")

    encoded = np.frombuffer(image_bytes, dtype=np.uint8)
    decoded = cv2.imdecode(encoded, cv2.IMREAD_COLOR | cv2.IMREAD_ANYDEPTH) if encoded.size else None
    if decoded is None:
        raise ValueError("Could not decode image")

    height, width = decoded.shape[:2]
    if height * width > max_image_pixels:
        raise ValueError(f"Image exceeds {max_image_pixels} pixels")

    return cv2.cvtColor(_to_uint8(decoded), cv2.COLOR_BGR2RGBA)


def _to_uint8(image: np.ndarray) -> NDArray[np.uint8]:
    """Scale 16-bit and float (0..1) images down to 8 bits per channel."""
    if image.dtype == np.uint8:
        return image
    if image.dtype == np.uint16:
        return (image >> 8).astype(np.uint8)
    if np.issubdtype(image.dtype, np.floating):
        return (np.clip(image, 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)
    raise ValueError(f"Unsupported image depth {image.dtype}")


def encode_png(frame: NDArray[np.uint8]) -> bytes:
    """Encode an RGBA or RGB frame as PNG bytes."""
    if frame.shape[2] == 4:
        bgr = cv2.cvtColor(frame, cv2.COLOR_RGBA2BGRA)
    else:
        bgr = cv2.cvtColor(frame, cv2.COLOR_RGB2BGR)
    ok, buffer = cv2.imencode(".png", bgr)
    if not ok:
        raise ValueError("Could not encode frame as PNG")
    return buffer.tobytes()


# ---------------------------------------------------------------------------
# Frame preparation
# ---------------------------------------------------------------------------


def is_valid_frame(frame: object) -> bool:
    """Return True for a non-empty HxWx3 or HxWx4 uint8 array."""
    return (
        isinstance(frame, np.ndarray)
        and frame.dtype == np.uint8
        and frame.ndim == 3
        and frame.shape[2] in (3, 4)
        and frame.size > 0
    )


def normalize_orientation(frame: NDArray[np.uint8]) -> NDArray[np.uint8]:
    """Transpose then flip horizontally (90 degrees clockwise)."""
    return cv2.rotate(frame, cv2.ROTATE_90_CLOCKWISE)


def restore_orientation(frame: NDArray[np.uint8]) -> NDArray[np.uint8]:
    """Transpose then flip vertically; inverse of ``normalize_orientation``."""
    return cv2.rotate(frame, cv2.ROTATE_90_COUNTERCLOCKWISE)


def to_grayscale(frame: NDArray[np.uint8]) -> NDArray[np.uint8]:
    if frame.size == 0:
        return np.zeros(frame.shape[:2], dtype=np.uint8)
    code = cv2.COLOR_RGBA2GRAY if frame.shape[2] == 4 else cv2.COLOR_RGB2GRAY
    return cv2.cvtColor(frame, code)


# ---------------------------------------------------------------------------
# Region classifier input
# ---------------------------------------------------------------------------


def crop_region(frame: NDArray[np.uint8], box: FaceBox) -> NDArray[np.uint8] | None:
    """Return a view of ``frame`` under ``box``, or None if the box does not fit."""
    height, width = frame.shape[:2]
    if not box.fits_within(width, height):
        return None
    return frame[box.y : box.y + box.height, box.x : box.x + box.width]


def resize_square(
    crop: NDArray[np.uint8],
    input_size: int,
    interpolation: Literal["nearest", "bilinear"] = "nearest",
) -> NDArray[np.uint8]:
    return cv2.resize(crop, (input_size, input_size), interpolation=_INTERPOLATION[interpolation])


def pack_normalized_buffer(image: NDArray[np.uint8], input_size: int) -> NDArray[np.float32]:
    """Pack a square crop into a flat R,G,B-interleaved float buffer in [0, 1].

    Pixels are emitted in row-major order; alpha is dropped.

    Raises:
        ValueError: If ``image`` is not ``input_size`` x ``input_size`` with
            at least three channels.
    """
    if image.ndim != 3 or image.shape[:2] != (input_size, input_size) or image.shape[2] < 3:
        raise ValueError(f"Expected {input_size}x{input_size} color image, got shape {image.shape}")

    rgb = image[:, :, :3].astype(np.float32)
    rgb /= 255.0
    return rgb.reshape(-1)
