"""Tests for the page cleanup applied before local OCR."""

import cv2
import numpy as np
import pytest

from delivery_ocr.providers.preprocessing import (
    estimate_skew,
    prepare_for_ocr,
    smooth,
    straighten,
    threshold,
)
from delivery_ocr.utils.config import PreprocessingConfig


def _make_noisy_image(height: int = 200, width: int = 300) -> np.ndarray:
    """Create a synthetic noisy grayscale image for testing."""
    rng = np.random.default_rng(42)
    base = np.zeros((height, width), dtype=np.uint8)
    base[50:150, 50:250] = 200
    noise = rng.integers(0, 50, size=(height, width), dtype=np.uint8)
    return np.clip(base.astype(np.int16) + noise.astype(np.int16), 0, 255).astype(
        np.uint8
    )


def _make_ruled_page(vertical: bool = False) -> np.ndarray:
    """White page with dark ruled lines, horizontal unless ``vertical``."""
    page = np.full((300, 400), 255, dtype=np.uint8)
    for offset in range(40, 280, 40):
        if vertical:
            cv2.line(page, (offset, 10), (offset, 290), 0, 2)
        else:
            cv2.line(page, (10, offset), (390, offset), 0, 2)
    return page


class TestSkew:
    """Tests for skew estimation and correction."""

    def test_blank_page(self) -> None:
        blank = np.zeros((100, 100), dtype=np.uint8)
        assert estimate_skew(blank) == 0.0

    def test_horizontal_lines(self) -> None:
        assert abs(estimate_skew(_make_ruled_page())) < 1.0

    def test_steep_lines_ignored(self) -> None:
        assert estimate_skew(_make_ruled_page(vertical=True)) == 0.0

    def test_straighten_keeps_shape(self) -> None:
        image = _make_noisy_image()
        assert straighten(image).shape == image.shape

    def test_straighten_no_change_when_level(self) -> None:
        blank = np.zeros((100, 100), dtype=np.uint8)
        np.testing.assert_array_equal(straighten(blank), blank)


class TestSmooth:
    """Tests for noise reduction."""

    def test_gaussian_reduces_variance(self) -> None:
        noisy = _make_noisy_image()
        smoothed = smooth(noisy, method="gaussian")
        assert smoothed.shape == noisy.shape
        assert smoothed.var() <= noisy.var()

    def test_bilateral_keeps_shape(self) -> None:
        image = _make_noisy_image()
        assert smooth(image).shape == image.shape

    def test_invalid_method_raises(self) -> None:
        with pytest.raises(ValueError, match="Unsupported denoise method"):
            smooth(_make_noisy_image(), method="magic")


class TestThreshold:
    """Tests for binarization."""

    @pytest.mark.parametrize("method", ["adaptive", "otsu"])
    def test_produces_binary(self, method: str) -> None:
        binary = threshold(_make_noisy_image(), method=method)
        assert set(np.unique(binary)).issubset({0, 255})


class TestPrepareForOCR:
    """Tests for the configured cleanup sequence."""

    def test_disabled_returns_input(self) -> None:
        image = _make_noisy_image()
        result = prepare_for_ocr(image, PreprocessingConfig(enabled=False))
        np.testing.assert_array_equal(result, image)

    def test_all_steps(self) -> None:
        image = _make_noisy_image()
        result = prepare_for_ocr(image, PreprocessingConfig())
        assert result.shape == image.shape
        assert set(np.unique(result)).issubset({0, 255})

    def test_individual_steps_disabled(self) -> None:
        config = PreprocessingConfig(
            deskew_enabled=False,
            denoise_enabled=False,
            binarize_enabled=False,
        )
        image = _make_noisy_image()
        np.testing.assert_array_equal(prepare_for_ocr(image, config), image)
