"""
Fixed-Position Watermark Detector

Scores the hypothesis "the logo occupies exactly this rectangle" in three
gated stages:

    1. Spatial NCC   - grayscale region vs. alpha map (circuit breaker)
    2. Gradient NCC  - Sobel magnitude of region vs. alpha map (edge signature)
    3. Variance      - texture dampening relative to the patch just above

Detection is advisory: degenerate input yields a zero, non-detected result
rather than an exception.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from .geometry import Region, WatermarkSize

logger = logging.getLogger(__name__)

# Below this a template is flat and TM_CCOEFF_NORMED degenerates
FLAT_TEMPLATE_STD = 1e-6


@dataclass(frozen=True)
class DetectionResult:
    """Result of fixed-position watermark detection."""
    detected: bool = False
    confidence: float = 0.0
    region: Region = Region(0, 0, 0, 0)
    size: WatermarkSize = WatermarkSize.SMALL

    # Per-stage scores
    spatial_score: float = 0.0
    gradient_score: float = 0.0
    variance_score: float = 0.0


def to_gray(image: np.ndarray) -> np.ndarray:
    """Grayscale view of a BGR, BGRA or single-channel image."""
    if image.ndim == 2:
        return image
    channels = image.shape[2]
    if channels == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    if channels == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return image[:, :, 0]


def ncc_max(image: np.ndarray, template: np.ndarray) -> tuple[float, tuple[int, int]]:
    """
    Best normalized cross-correlation of a template over an image.

    Both inputs are float32. Returns (max score, (x, y) of the first maximum
    in raster order). A flat template has no defined correlation and scores 0.
    """
    if float(np.std(template)) < FLAT_TEMPLATE_STD:
        return 0.0, (0, 0)
    match = cv2.matchTemplate(image, template, cv2.TM_CCOEFF_NORMED)
    _, max_val, _, max_loc = cv2.minMaxLoc(match)
    return float(max_val), max_loc


def gradient_magnitude(field: np.ndarray) -> np.ndarray:
    gx = cv2.Sobel(field, cv2.CV_32F, 1, 0, ksize=3)
    gy = cv2.Sobel(field, cv2.CV_32F, 0, 1, ksize=3)
    return cv2.magnitude(gx, gy)


class FixedPositionDetector:
    """
    Three-stage detector for a logo at a known candidate rectangle.

    Stateless; one instance can be shared across threads.
    """

    # Stage 1 circuit breaker
    SPATIAL_THRESHOLD = 0.25
    REJECT_CONFIDENCE_FACTOR = 0.5

    # Stage 3 applicability
    MIN_REFERENCE_HEIGHT = 8
    MIN_REFERENCE_STD = 5.0

    # Fusion
    SPATIAL_WEIGHT = 0.50
    GRADIENT_WEIGHT = 0.30
    VARIANCE_WEIGHT = 0.20
    DETECTION_THRESHOLD = 0.35

    def detect_at(
        self,
        image: np.ndarray,
        alpha_map: np.ndarray,
        position: tuple[int, int],
        size: WatermarkSize = WatermarkSize.SMALL,
        logo_size: Optional[int] = None,
    ) -> DetectionResult:
        """
        Score a candidate rectangle.

        Args:
            image: BGR (or grayscale) image
            alpha_map: Alpha map; its shape defines the rectangle size
            position: Top-left (x, y) of the candidate rectangle
            size: Size class reported back in the result
            logo_size: Cap on the variance reference patch height
                (defaults to the alpha map height)

        Returns:
            DetectionResult with per-stage scores
        """
        if image is None or image.size == 0:
            return DetectionResult(size=size)

        alpha_h, alpha_w = alpha_map.shape[:2]
        region = Region(position[0], position[1], alpha_w, alpha_h)
        if logo_size is None:
            logo_size = alpha_h

        img_h, img_w = image.shape[:2]
        roi = region.intersect(Region(0, 0, img_w, img_h))
        if roi != region:
            # Only footprints fully inside the image are scored
            logger.debug(f"Detection: region {region.as_tuple()} not inside {img_w}x{img_h} image")
            return DetectionResult(region=region, size=size)

        gray_region = to_gray(image[roi.y:roi.bottom, roi.x:roi.right])
        gray_f = gray_region.astype(np.float32) / 255.0
        alpha_region = np.ascontiguousarray(alpha_map, dtype=np.float32)

        # Stage 1: spatial structural correlation
        spatial_score, _ = ncc_max(gray_f, alpha_region)

        if spatial_score < self.SPATIAL_THRESHOLD:
            logger.debug(
                f"Detection: spatial={spatial_score:.3f} < {self.SPATIAL_THRESHOLD:.2f}, rejected"
            )
            return DetectionResult(
                detected=False,
                confidence=max(0.0, float(spatial_score * self.REJECT_CONFIDENCE_FACTOR)),
                region=region,
                size=size,
                spatial_score=spatial_score,
            )

        # Stage 2: gradient-domain correlation
        gradient_score, _ = ncc_max(
            gradient_magnitude(gray_f), gradient_magnitude(alpha_region)
        )

        # Stage 3: texture dampening against the patch above the logo
        variance_score = self._variance_score(image, gray_region, roi, logo_size)

        confidence = (
            spatial_score * self.SPATIAL_WEIGHT
            + gradient_score * self.GRADIENT_WEIGHT
            + variance_score * self.VARIANCE_WEIGHT
        )
        confidence = float(np.clip(confidence, 0.0, 1.0))
        detected = confidence >= self.DETECTION_THRESHOLD

        logger.debug(
            f"Detection: spatial={spatial_score:.3f}, grad={gradient_score:.3f}, "
            f"var={variance_score:.3f} -> conf={confidence:.3f} "
            f"({'DETECTED' if detected else 'not detected'})"
        )

        return DetectionResult(
            detected=detected,
            confidence=confidence,
            region=region,
            size=size,
            spatial_score=spatial_score,
            gradient_score=gradient_score,
            variance_score=variance_score,
        )

    def _variance_score(
        self,
        image: np.ndarray,
        gray_region: np.ndarray,
        roi: Region,
        logo_size: int,
    ) -> float:
        ref_h = min(roi.y, logo_size)
        if ref_h <= self.MIN_REFERENCE_HEIGHT:
            return 0.0

        gray_ref = to_gray(image[roi.y - ref_h:roi.y, roi.x:roi.right])

        _, std_wm = cv2.meanStdDev(gray_region)
        _, std_ref = cv2.meanStdDev(gray_ref)
        std_wm = float(std_wm[0][0])
        std_ref = float(std_ref[0][0])

        if std_ref <= self.MIN_REFERENCE_STD:
            return 0.0
        return float(np.clip(1.0 - std_wm / std_ref, 0.0, 1.0))
