"""
Alpha Map Builder

Derives opacity masks from reference background captures.

A capture is the overlay rendered by the generator on a pure black
background, so every pixel reads exactly alpha * logo_value. Dividing by the
maximum channel intensity recovers the alpha the compositor used.
"""

import logging
import os
from pathlib import Path
from typing import Union

import cv2
import numpy as np

from ..errors import LoadError

logger = logging.getLogger(__name__)

SMALL_ALPHA_SIZE = 48
LARGE_ALPHA_SIZE = 96

MAX_INTENSITY = 255.0

CaptureSource = Union[str, os.PathLike, bytes, bytearray, memoryview]


def decode_capture(source: CaptureSource, label: str = "capture") -> np.ndarray:
    """
    Decode a reference capture from a file path or an in-memory buffer.

    Args:
        source: Path to an image file, or encoded image bytes (PNG etc.)
        label: Name used in error messages

    Returns:
        BGR uint8 image

    Raises:
        LoadError: If the source is missing or cannot be decoded
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        buf = np.frombuffer(bytes(source), dtype=np.uint8)
        if buf.size == 0:
            raise LoadError(f"Failed to decode {label}: empty buffer")
        try:
            image = cv2.imdecode(buf, cv2.IMREAD_COLOR)
        except cv2.error as e:
            raise LoadError(f"Failed to decode {label}: {e}") from e
        if image is None or image.size == 0:
            raise LoadError(f"Failed to decode {label} from memory")
        return image

    path = Path(source)
    if not path.is_file():
        raise LoadError(f"Failed to load {label}: {path} does not exist")

    image = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if image is None or image.size == 0:
        raise LoadError(f"Failed to load {label}: {path}")
    return image


def calculate_alpha_map(capture: np.ndarray) -> np.ndarray:
    """
    Convert a background capture into a normalized alpha map.

    alpha = mean(B, G, R) / 255, per pixel.
    """
    values = capture.astype(np.float32)
    if values.ndim == 3:
        values = values.mean(axis=2)
    alpha = np.clip(values / MAX_INTENSITY, 0.0, 1.0)
    return alpha.astype(np.float32)


def _fit_capture(capture: np.ndarray, size: int, label: str) -> np.ndarray:
    h, w = capture.shape[:2]
    if (w, h) == (size, size):
        return capture
    logger.warning(f"{label} is {w}x{h}, expected {size}x{size}. Resizing.")
    return cv2.resize(capture, (size, size), interpolation=cv2.INTER_AREA)


def build_alpha_maps(
    bg_small: np.ndarray,
    bg_large: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Build the canonical small (48x48) and large (96x96) alpha maps.

    Captures of the wrong resolution are area-resampled first.

    Returns:
        Tuple of (alpha_small, alpha_large), float32 in [0, 1]
    """
    small = calculate_alpha_map(_fit_capture(bg_small, SMALL_ALPHA_SIZE, "Small capture"))
    large = calculate_alpha_map(_fit_capture(bg_large, LARGE_ALPHA_SIZE, "Large capture"))

    logger.debug(
        f"Alpha map small: {small.shape[1]}x{small.shape[0]}, "
        f"large: {large.shape[1]}x{large.shape[0]}"
    )
    logger.debug(f"Large alpha map range: {large.min():.4f} - {large.max():.4f}")

    return small, large


def resample_alpha_map(source: np.ndarray, width: int, height: int) -> np.ndarray:
    """
    Interpolate an alpha map to an arbitrary size.

    Bilinear when upscaling in either dimension, area averaging otherwise.
    The result is a new array owned by the caller.
    """
    src_h, src_w = source.shape[:2]
    if (width, height) == (src_w, src_h):
        return source.copy()

    upscale = width > src_w or height > src_h
    method = cv2.INTER_LINEAR if upscale else cv2.INTER_AREA
    resized = cv2.resize(source, (width, height), interpolation=method)

    logger.debug(
        f"Created interpolated alpha map: {src_w}x{src_h} -> {width}x{height} "
        f"(method: {'bilinear' if upscale else 'area'})"
    )
    return resized.astype(np.float32, copy=False)
