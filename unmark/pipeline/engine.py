"""
Watermark Engine

Owns the two canonical alpha maps and exposes detect / remove / add /
guided-detect entry points. Callers construct one engine and share it;
there is no process-wide instance.
"""

import logging
from typing import Optional

import numpy as np

from ..config import Settings
from .alpha_map import (
    LARGE_ALPHA_SIZE,
    SMALL_ALPHA_SIZE,
    CaptureSource,
    build_alpha_maps,
    decode_capture,
    resample_alpha_map,
)
from .blend import DEFAULT_LOGO_VALUE, apply_forward, apply_reverse, ensure_bgr
from .detector import DetectionResult, FixedPositionDetector
from .geometry import (
    Region,
    WatermarkSize,
    get_watermark_size,
    position_for_size,
)
from .guided import CancelFlag, GuidedDetectionResult, GuidedSearchEngine

logger = logging.getLogger(__name__)


class WatermarkEngine:
    """
    Watermark engine built from background captures.

    Math:
        add:    result = alpha * logo + (1 - alpha) * original
        remove: original = (result - alpha * logo) / (1 - alpha)

    The alpha maps are read-only after construction, so one engine can serve
    concurrent calls on different image buffers.
    """

    def __init__(
        self,
        bg_small: CaptureSource,
        bg_large: CaptureSource,
        logo_value: float = DEFAULT_LOGO_VALUE,
    ):
        """
        Initialize the engine from the 48x48 and 96x96 background captures.

        Args:
            bg_small: Path to, or encoded bytes of, the small capture
            bg_large: Path to, or encoded bytes of, the large capture
            logo_value: Logo brightness (255 = white)

        Raises:
            LoadError: If either capture cannot be read or decoded
        """
        small_capture = decode_capture(bg_small, "small background capture")
        large_capture = decode_capture(bg_large, "large background capture")

        self._alpha_small, self._alpha_large = build_alpha_maps(small_capture, large_capture)
        self._alpha_small.flags.writeable = False
        self._alpha_large.flags.writeable = False

        self.logo_value = logo_value
        self._detector = FixedPositionDetector()
        self._guided = GuidedSearchEngine(self._alpha_large)

        source = "memory" if isinstance(bg_small, (bytes, bytearray, memoryview)) else "files"
        logger.info(f"Loaded background captures from {source}")

    @classmethod
    def from_settings(cls, settings: Settings) -> "WatermarkEngine":
        """Build an engine from the configured capture paths."""
        return cls(settings.bg_small_path, settings.bg_large_path, settings.logo_value)

    def get_alpha_map(self, size: WatermarkSize) -> np.ndarray:
        """Read-only canonical alpha map for a size class."""
        return self._alpha_large if size == WatermarkSize.LARGE else self._alpha_small

    def _alpha_for_region(self, region: Region) -> np.ndarray:
        if (region.width, region.height) == (SMALL_ALPHA_SIZE, SMALL_ALPHA_SIZE):
            return self._alpha_small
        if (region.width, region.height) == (LARGE_ALPHA_SIZE, LARGE_ALPHA_SIZE):
            return self._alpha_large
        return resample_alpha_map(self._alpha_large, region.width, region.height)

    def _resolve(self, image: np.ndarray, force_size: Optional[WatermarkSize]):
        h, w = image.shape[:2]
        size = force_size or get_watermark_size(w, h)
        config = position_for_size(size)
        return size, config, config.get_position(w, h)

    # =========================================================================
    # Detection
    # =========================================================================

    def detect_watermark(
        self,
        image: np.ndarray,
        force_size: Optional[WatermarkSize] = None,
    ) -> DetectionResult:
        """
        Three-stage detection at the standard position.

        Args:
            image: The image to analyze
            force_size: Force a specific watermark size (auto-detect if None)

        Returns:
            DetectionResult; an empty image yields a zero, non-detected result
        """
        if image is None or image.size == 0:
            return DetectionResult()

        size, config, pos = self._resolve(image, force_size)
        return self._detector.detect_at(
            image, self.get_alpha_map(size), pos, size=size, logo_size=config.logo_size
        )

    def detect_region(self, image: np.ndarray, region: Region) -> DetectionResult:
        """Three-stage detection at an arbitrary rectangle."""
        if image is None or image.size == 0 or region.is_empty:
            return DetectionResult(region=region)

        size = WatermarkSize.LARGE if region.width > SMALL_ALPHA_SIZE else WatermarkSize.SMALL
        return self._detector.detect_at(
            image,
            self._alpha_for_region(region),
            (region.x, region.y),
            size=size,
            logo_size=region.height,
        )

    def guided_detect(
        self,
        image: np.ndarray,
        search_rect: Region,
        cancel_flag: Optional[CancelFlag] = None,
        min_size: int = 16,
        max_size: int = 256,
    ) -> GuidedDetectionResult:
        """Multi-scale search for the logo inside a search window."""
        return self._guided.search(image, search_rect, cancel_flag, min_size, max_size)

    # =========================================================================
    # Blending
    # =========================================================================

    def remove_watermark(
        self,
        image: np.ndarray,
        force_size: Optional[WatermarkSize] = None,
    ) -> np.ndarray:
        """
        Remove the watermark at the standard position.

        BGR images are modified in place. Gray and BGRA input is converted
        first, so always use the returned array.
        """
        image = ensure_bgr(image)
        size, _, pos = self._resolve(image, force_size)
        alpha_map = self.get_alpha_map(size)

        logger.debug(
            f"Removing watermark at {pos} with {alpha_map.shape[1]}x{alpha_map.shape[0]} "
            f"alpha map (size: {size.value})"
        )
        apply_reverse(image, alpha_map, pos, self.logo_value)
        return image

    def add_watermark(
        self,
        image: np.ndarray,
        force_size: Optional[WatermarkSize] = None,
    ) -> np.ndarray:
        """Add the watermark at the standard position (see remove_watermark)."""
        image = ensure_bgr(image)
        size, _, pos = self._resolve(image, force_size)
        alpha_map = self.get_alpha_map(size)

        logger.debug(
            f"Adding watermark at {pos} with {alpha_map.shape[1]}x{alpha_map.shape[0]} "
            f"alpha map (size: {size.value})"
        )
        apply_forward(image, alpha_map, pos, self.logo_value)
        return image

    def remove_watermark_custom(self, image: np.ndarray, region: Region) -> np.ndarray:
        """Remove a watermark of arbitrary size with an interpolated alpha map."""
        image = ensure_bgr(image)
        if region.is_empty:
            return image
        logger.info(
            f"Removing watermark at ({region.x},{region.y}) with "
            f"{region.width}x{region.height} alpha map"
        )
        apply_reverse(image, self._alpha_for_region(region), (region.x, region.y), self.logo_value)
        return image

    def add_watermark_custom(self, image: np.ndarray, region: Region) -> np.ndarray:
        """Add a watermark of arbitrary size with an interpolated alpha map."""
        image = ensure_bgr(image)
        if region.is_empty:
            return image
        logger.info(
            f"Adding watermark at ({region.x},{region.y}) with "
            f"{region.width}x{region.height} alpha map"
        )
        apply_forward(image, self._alpha_for_region(region), (region.x, region.y), self.logo_value)
        return image


def detect_watermark_region(
    image: np.ndarray,
    engine: WatermarkEngine,
) -> Optional[DetectionResult]:
    """
    Convenience wrapper around WatermarkEngine.detect_watermark.

    Returns None for an empty image.
    """
    if image is None or image.size == 0:
        return None

    logger.info(f"Watermark detection in {image.shape[1]}x{image.shape[0]} image")
    result = engine.detect_watermark(image)
    logger.info(
        f"Detection: spatial={result.spatial_score:.2f} grad={result.gradient_score:.2f} "
        f"var={result.variance_score:.2f} -> confidence={result.confidence:.2f} "
        f"({'DETECTED' if result.detected else 'not detected'})"
    )
    return result
