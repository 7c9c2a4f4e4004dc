"""Tests for frame preprocessing and buffer packing."""

from __future__ import annotations

import cv2
import numpy as np
import pytest

from facelabel.ml.face_detector import FaceBox
from facelabel.ml.preprocessing import (
    crop_region,
    decode_image,
    encode_png,
    is_valid_frame,
    normalize_orientation,
    pack_normalized_buffer,
    resize_square,
    restore_orientation,
    to_grayscale,
)

_LIMITS = {"max_file_size": 10_000_000, "max_image_pixels": 10_000_000}


def _gradient_frame(height: int, width: int) -> np.ndarray:
    rng = np.random.default_rng(seed=7)
    return rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)


# ---------------------------------------------------------------------------
# Orientation and grayscale
# ---------------------------------------------------------------------------


class TestOrientation:
    def test_normalize_rotates_clockwise(self) -> None:
        frame = _gradient_frame(3, 5)
        rotated = normalize_orientation(frame)
        assert rotated.shape == (5, 3, 4)
        np.testing.assert_array_equal(rotated, np.rot90(frame, k=-1))

    def test_restore_inverts_normalize(self) -> None:
        frame = _gradient_frame(40, 64)
        restored = restore_orientation(normalize_orientation(frame))
        np.testing.assert_array_equal(restored, frame)

    def test_grayscale_from_rgba(self) -> None:
        frame = np.zeros((4, 6, 4), dtype=np.uint8)
        frame[..., 3] = 255
        gray = to_grayscale(frame)
        assert gray.shape == (4, 6)
        assert gray.dtype == np.uint8

    def test_grayscale_from_rgb(self) -> None:
        frame = np.full((4, 6, 3), 255, dtype=np.uint8)
        gray = to_grayscale(frame)
        assert gray.shape == (4, 6)
        assert int(gray.max()) == 255

    def test_grayscale_of_zero_area_frame_is_empty(self) -> None:
        gray = to_grayscale(np.zeros((0, 10, 4), dtype=np.uint8))
        assert gray.size == 0

    def test_is_valid_frame(self) -> None:
        assert is_valid_frame(np.zeros((2, 2, 4), dtype=np.uint8))
        assert is_valid_frame(np.zeros((2, 2, 3), dtype=np.uint8))
        assert not is_valid_frame(np.zeros((0, 2, 4), dtype=np.uint8))
        assert not is_valid_frame(np.zeros((2, 2), dtype=np.uint8))
        assert not is_valid_frame(np.zeros((2, 2, 4), dtype=np.float32))
        assert not is_valid_frame(None)


# ---------------------------------------------------------------------------
# Crop, resize, pack
# ---------------------------------------------------------------------------


class TestCropRegion:
    def test_crop_inside_frame_is_view(self) -> None:
        frame = _gradient_frame(20, 30)
        crop = crop_region(frame, FaceBox(5, 4, 10, 8))
        assert crop is not None
        assert crop.shape == (8, 10, 4)
        assert np.shares_memory(crop, frame)
        np.testing.assert_array_equal(crop, frame[4:12, 5:15])

    def test_box_touching_far_edge_fits(self) -> None:
        frame = _gradient_frame(20, 30)
        assert crop_region(frame, FaceBox(20, 10, 10, 10)) is not None

    @pytest.mark.parametrize(
        "box",
        [
            FaceBox(25, 5, 10, 10),
            FaceBox(-1, 0, 5, 5),
            FaceBox(100, 100, 10, 10),
            FaceBox(0, 0, 0, 5),
        ],
    )
    def test_box_not_fully_inside_is_skipped(self, box: FaceBox) -> None:
        frame = _gradient_frame(20, 30)
        assert crop_region(frame, box) is None


class TestResizeSquare:
    def test_nearest_keeps_solid_colour(self) -> None:
        crop = np.full((13, 7, 4), (10, 20, 30, 255), dtype=np.uint8)
        resized = resize_square(crop, 16)
        assert resized.shape == (16, 16, 4)
        assert (resized == np.array([10, 20, 30, 255], dtype=np.uint8)).all()

    def test_bilinear(self) -> None:
        crop = np.zeros((4, 4, 3), dtype=np.uint8)
        assert resize_square(crop, 9, "bilinear").shape == (9, 9, 3)


class TestPackNormalizedBuffer:
    def test_length_and_range(self) -> None:
        image = _gradient_frame(12, 12)
        buffer = pack_normalized_buffer(image, 12)
        assert buffer.dtype == np.float32
        assert buffer.shape == (3 * 12 * 12,)
        assert float(buffer.min()) >= 0.0
        assert float(buffer.max()) <= 1.0

    def test_row_major_rgb_order_drops_alpha(self) -> None:
        image = np.zeros((2, 2, 4), dtype=np.uint8)
        image[0, 0] = (255, 0, 0, 7)
        image[0, 1] = (0, 255, 0, 7)
        image[1, 0] = (0, 0, 255, 7)
        image[1, 1] = (51, 102, 153, 7)

        buffer = pack_normalized_buffer(image, 2)

        expected = np.array(
            [1, 0, 0, 0, 1, 0, 0, 0, 1, 0.2, 0.4, 0.6],
            dtype=np.float32,
        )
        np.testing.assert_allclose(buffer, expected, atol=1e-6)

    def test_wrong_size_raises(self) -> None:
        with pytest.raises(ValueError, match="8x8"):
            pack_normalized_buffer(np.zeros((4, 4, 4), dtype=np.uint8), 8)

    def test_single_channel_raises(self) -> None:
        with pytest.raises(ValueError):
            pack_normalized_buffer(np.zeros((4, 4, 1), dtype=np.uint8), 4)


# ---------------------------------------------------------------------------
# Upload codec
# ---------------------------------------------------------------------------


class TestDecodeImage:
    def test_png_decodes_to_rgba(self) -> None:
        bgr = np.zeros((6, 9, 3), dtype=np.uint8)
        bgr[..., 2] = 200  # red in BGR
        ok, png = cv2.imencode(".png", bgr)
        assert ok

        frame = decode_image(png.tobytes(), **_LIMITS)

        assert frame.shape == (6, 9, 4)
        assert tuple(frame[0, 0]) == (200, 0, 0, 255)

    def test_encode_png_preserves_rgb(self) -> None:
        frame = _gradient_frame(5, 5)
        decoded = decode_image(encode_png(frame), **_LIMITS)
        np.testing.assert_array_equal(decoded[..., :3], frame[..., :3])
        assert (decoded[..., 3] == 255).all()

    def test_sixteen_bit_png_decodes_to_eight_bit(self) -> None:
        bgr16 = np.zeros((6, 9, 3), dtype=np.uint16)
        bgr16[..., 2] = 0xFFFF  # red in BGR
        bgr16[..., 1] = 0x8000
        ok, png = cv2.imencode(".png", bgr16)
        assert ok

        frame = decode_image(png.tobytes(), **_LIMITS)

        assert frame.dtype == np.uint8
        assert frame.shape == (6, 9, 4)
        assert tuple(frame[0, 0]) == (255, 128, 0, 255)
        assert is_valid_frame(frame)

    def test_sixteen_bit_rgba_png_decodes(self) -> None:
        bgra16 = np.full((4, 4, 4), 0x4000, dtype=np.uint16)
        ok, png = cv2.imencode(".png", bgra16)
        assert ok

        frame = decode_image(png.tobytes(), **_LIMITS)

        assert frame.dtype == np.uint8
        assert tuple(frame[1, 1]) == (64, 64, 64, 255)

    def test_garbage_raises(self) -> None:
        with pytest.raises(ValueError, match="decode"):
            decode_image(b"not an image", **_LIMITS)

    def test_empty_raises(self) -> None:
        with pytest.raises(ValueError, match="decode"):
            decode_image(b"", **_LIMITS)

    def test_file_size_limit(self) -> None:
        with pytest.raises(ValueError, match="bytes"):
            decode_image(b"x" * 11, max_file_size=10, max_image_pixels=100)

    def test_pixel_limit(self) -> None:
        ok, png = cv2.imencode(".png", np.zeros((20, 20, 3), dtype=np.uint8))
        assert ok
        with pytest.raises(ValueError, match="pixels"):
            decode_image(png.tobytes(), max_file_size=10_000_000, max_image_pixels=100)
