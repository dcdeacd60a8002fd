"""
Watermark Geometry

Size rules and placement for the corner logo.

Rules:
    - W > 1024 AND H > 1024: 96x96 logo at (W-64-96, H-64-96)
    - Otherwise:             48x48 logo at (W-32-48, H-32-48)

A 1024x1024 image is Small. All functions here are pure.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

LARGE_IMAGE_THRESHOLD = 1024


class WatermarkSize(Enum):
    """Watermark size class, derived from image dimensions."""
    SMALL = "small"  # 48x48
    LARGE = "large"  # 96x96


@dataclass(frozen=True)
class Region:
    """Axis-aligned rectangle in pixel coordinates."""
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def intersect(self, other: "Region") -> Optional["Region"]:
        """Return the overlap with another rectangle, or None if they do not overlap."""
        x1 = max(self.x, other.x)
        y1 = max(self.y, other.y)
        x2 = min(self.right, other.right)
        y2 = min(self.bottom, other.bottom)
        if x1 >= x2 or y1 >= y2:
            return None
        return Region(x1, y1, x2 - x1, y2 - y1)

    def as_tuple(self) -> tuple[int, int, int, int]:
        return (self.x, self.y, self.width, self.height)


@dataclass(frozen=True)
class WatermarkPosition:
    """Placement geometry: margins from the bottom-right corner and logo edge length."""
    margin_right: int
    margin_bottom: int
    logo_size: int

    def get_position(self, image_width: int, image_height: int) -> tuple[int, int]:
        """Top-left corner of the logo for an image of the given size."""
        return (
            image_width - self.margin_right - self.logo_size,
            image_height - self.margin_bottom - self.logo_size,
        )

    def get_region(self, image_width: int, image_height: int) -> Region:
        x, y = self.get_position(image_width, image_height)
        return Region(x, y, self.logo_size, self.logo_size)


SMALL_POSITION = WatermarkPosition(margin_right=32, margin_bottom=32, logo_size=48)
LARGE_POSITION = WatermarkPosition(margin_right=64, margin_bottom=64, logo_size=96)


def get_watermark_size(image_width: int, image_height: int) -> WatermarkSize:
    """Large only when BOTH dimensions exceed 1024."""
    if image_width > LARGE_IMAGE_THRESHOLD and image_height > LARGE_IMAGE_THRESHOLD:
        return WatermarkSize.LARGE
    return WatermarkSize.SMALL


def position_for_size(size: WatermarkSize) -> WatermarkPosition:
    return LARGE_POSITION if size == WatermarkSize.LARGE else SMALL_POSITION


def get_watermark_config(image_width: int, image_height: int) -> WatermarkPosition:
    """Placement geometry for an image of the given size."""
    return position_for_size(get_watermark_size(image_width, image_height))


def fallback_region(image_width: int, image_height: int) -> Region:
    """Canonical watermark rectangle, used when detection is skipped or fails."""
    return get_watermark_config(image_width, image_height).get_region(image_width, image_height)
