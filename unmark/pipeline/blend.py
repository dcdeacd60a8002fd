"""
Alpha Blending

Forward and reverse alpha compositing of the logo at a fixed position.

The generator adds the watermark as:
    output = alpha * logo + (1 - alpha) * original

To recover the original:
    original = (output - alpha * logo) / (1 - alpha)
"""

import logging

import cv2
import numpy as np

from ..errors import InvalidImage

logger = logging.getLogger(__name__)

# Pixels with alpha below this are left untouched (capture noise)
ALPHA_THRESHOLD = 0.002

# Alpha is clamped here before reversing, so the divisor never drops below 0.01
MAX_ALPHA = 0.99

DEFAULT_LOGO_VALUE = 255.0


def ensure_bgr(image: np.ndarray) -> np.ndarray:
    """
    Normalize a 1- or 4-channel image to 3-channel BGR.

    Returns the same array when it is already BGR, otherwise a converted copy.
    """
    if image is None or image.size == 0:
        raise InvalidImage("Empty image provided")

    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    channels = image.shape[2]
    if channels == 3:
        return image
    if channels == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    if channels == 1:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    raise InvalidImage(f"Unsupported channel count: {channels}")


def _check_image(image: np.ndarray) -> None:
    if not isinstance(image, np.ndarray) or image.size == 0:
        raise InvalidImage("Empty image provided")
    if image.ndim != 3 or image.shape[2] != 3:
        raise InvalidImage(f"Expected a 3-channel BGR image, got shape {image.shape}")


def _footprint(
    image: np.ndarray,
    alpha_map: np.ndarray,
    position: tuple[int, int],
):
    """Clip the alpha map footprint at `position` to the image bounds."""
    x, y = position
    alpha_h, alpha_w = alpha_map.shape[:2]
    img_h, img_w = image.shape[:2]

    x1, y1 = max(0, x), max(0, y)
    x2, y2 = min(img_w, x + alpha_w), min(img_h, y + alpha_h)
    if x1 >= x2 or y1 >= y2:
        return None

    window = (slice(y1, y2), slice(x1, x2))
    alpha = alpha_map[y1 - y:y2 - y, x1 - x:x2 - x].astype(np.float32)
    return window, alpha


def _store(result: np.ndarray, dtype: np.dtype) -> np.ndarray:
    """Round and clip blended values back into the image's intensity range."""
    if np.issubdtype(dtype, np.integer):
        info = np.iinfo(dtype)
        return np.clip(np.rint(result), info.min, info.max).astype(dtype)
    return np.clip(result, 0.0, DEFAULT_LOGO_VALUE).astype(dtype)


def apply_forward(
    image: np.ndarray,
    alpha_map: np.ndarray,
    position: tuple[int, int],
    logo_value: float = DEFAULT_LOGO_VALUE,
) -> None:
    """
    Composite the logo onto the image in place.

    Args:
        image: BGR image, modified in place
        alpha_map: Alpha map whose size defines the footprint
        position: Top-left (x, y) of the footprint; may lie partly outside the image
        logo_value: Logo brightness (255 = white)
    """
    _check_image(image)
    clipped = _footprint(image, alpha_map, position)
    if clipped is None:
        logger.debug(f"Footprint at {position} lies outside the image, nothing to add")
        return
    window, alpha = clipped

    region = image[window].astype(np.float32)
    a = alpha[:, :, np.newaxis]
    blended = a * logo_value + (1.0 - a) * region

    mask = (alpha >= ALPHA_THRESHOLD)[:, :, np.newaxis]
    image[window] = _store(np.where(mask, blended, region), image.dtype)


def apply_reverse(
    image: np.ndarray,
    alpha_map: np.ndarray,
    position: tuple[int, int],
    logo_value: float = DEFAULT_LOGO_VALUE,
) -> None:
    """
    Remove the logo from the image in place by reversing the alpha blend.

    Alpha is clamped to MAX_ALPHA and the result is clipped to the valid
    range, so fully opaque pixels never divide by zero.
    """
    _check_image(image)
    clipped = _footprint(image, alpha_map, position)
    if clipped is None:
        logger.debug(f"Footprint at {position} lies outside the image, nothing to remove")
        return
    window, alpha = clipped

    region = image[window].astype(np.float32)
    mask = (alpha >= ALPHA_THRESHOLD)[:, :, np.newaxis]

    a = np.clip(alpha, 0.0, MAX_ALPHA)[:, :, np.newaxis]
    restored = (region - a * logo_value) / (1.0 - a)

    image[window] = _store(np.where(mask, restored, region), image.dtype)
