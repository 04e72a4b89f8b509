"""Image cleanup applied to photographed documents before local OCR.

Phone photos of delivery notes are usually tilted, unevenly lit and
grainy. These OpenCV steps straighten, smooth and threshold a grayscale
page so Tesseract sees dark text on a white background.
"""

import cv2
import numpy as np

from delivery_ocr.utils.config import PreprocessingConfig
from delivery_ocr.utils.logger import get_logger

logger = get_logger(__name__)

# Lines steeper than this are page edges or table rules, not text baselines.
_MAX_BASELINE_ANGLE = 30.0


def estimate_skew(gray: np.ndarray) -> float:
    """Estimate page rotation in degrees from near-horizontal line segments.

    Returns 0.0 when no usable segments are found.
    """
    edges = cv2.Canny(gray, 50, 150, apertureSize=3)
    segments = cv2.HoughLinesP(
        edges, 1, np.pi / 180, 100, minLineLength=gray.shape[1] // 4, maxLineGap=10
    )
    if segments is None:
        return 0.0

    angles: list[float] = []
    for x1, y1, x2, y2 in segments[:, 0]:
        angle = float(np.degrees(np.arctan2(y2 - y1, x2 - x1)))
        if abs(angle) < _MAX_BASELINE_ANGLE:
            angles.append(angle)
    if not angles:
        return 0.0
    return float(np.median(angles))


def straighten(gray: np.ndarray, min_angle: float = 0.5) -> np.ndarray:
    """Rotate the page so text baselines are horizontal."""
    angle = estimate_skew(gray)
    if abs(angle) < min_angle:
        return gray

    h, w = gray.shape[:2]
    matrix = cv2.getRotationMatrix2D((w // 2, h // 2), angle, 1.0)
    logger.debug("Straightening page by %.2f degrees", angle)
    return cv2.warpAffine(
        gray,
        matrix,
        (w, h),
        flags=cv2.INTER_CUBIC,
        borderMode=cv2.BORDER_REPLICATE,
    )


def smooth(gray: np.ndarray, method: str = "bilateral") -> np.ndarray:
    """Reduce sensor noise; bilateral filtering keeps glyph edges sharp.

    Raises:
        ValueError: If ``method`` is not ``"bilateral"`` or ``"gaussian"``.
    """
    if method == "bilateral":
        return cv2.bilateralFilter(gray, 9, 75, 75)
    if method == "gaussian":
        return cv2.GaussianBlur(gray, (5, 5), 0)
    raise ValueError(f"Unsupported denoise method: {method}")


def threshold(gray: np.ndarray, method: str = "adaptive") -> np.ndarray:
    """Binarize to 0/255. Adaptive thresholding copes with uneven lighting."""
    if method == "otsu":
        _, binary = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
        return binary
    return cv2.adaptiveThreshold(
        gray, 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C, cv2.THRESH_BINARY, 31, 10
    )


def prepare_for_ocr(gray: np.ndarray, config: PreprocessingConfig) -> np.ndarray:
    """Apply the enabled cleanup steps to a grayscale page image."""
    if not config.enabled:
        return gray

    result = gray
    if config.deskew_enabled:
        result = straighten(result)
    if config.denoise_enabled:
        result = smooth(result, config.denoise_method)
    if config.binarize_enabled:
        result = threshold(result, config.binarize_method)
    return result
