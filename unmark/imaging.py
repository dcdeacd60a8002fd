"""
Image I/O

Decode/encode helpers around OpenCV, plus PIL conversions.
"""

import logging
from pathlib import Path
from typing import Optional

import cv2
import numpy as np
from PIL import Image

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".bmp")


def load_image(path: Path) -> Optional[np.ndarray]:
    """Read an image as BGR; None if it cannot be decoded."""
    image = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if image is None or image.size == 0:
        return None
    return image


def encode_params(path: Path, settings: Optional[Settings] = None) -> list[int]:
    """
    Format-specific write parameters chosen from the file extension.

    - JPEG: near-lossless quality
    - PNG: moderate compression
    - WebP: quality > 100 selects lossless
    """
    settings = settings or get_settings()
    ext = path.suffix.lower()

    if ext in (".jpg", ".jpeg"):
        return [cv2.IMWRITE_JPEG_QUALITY, settings.jpeg_quality]
    if ext == ".png":
        return [cv2.IMWRITE_PNG_COMPRESSION, settings.png_compression]
    if ext == ".webp":
        return [cv2.IMWRITE_WEBP_QUALITY, settings.webp_quality]
    return []


def save_image(path: Path, image: np.ndarray, settings: Optional[Settings] = None) -> bool:
    """Write an image, creating the parent directory if needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    return bool(cv2.imwrite(str(path), image, encode_params(path, settings)))


def pil_to_bgr(image: Image.Image) -> np.ndarray:
    return cv2.cvtColor(np.array(image.convert("RGB")), cv2.COLOR_RGB2BGR)


def bgr_to_pil(image: np.ndarray) -> Image.Image:
    return Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGR2RGB))
