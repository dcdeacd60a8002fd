"""
Unmark Pipeline

Alpha map derivation, blending, detection and guided search.
"""

from .alpha_map import build_alpha_maps, calculate_alpha_map, resample_alpha_map
from .blend import apply_forward, apply_reverse, ensure_bgr
from .detector import DetectionResult, FixedPositionDetector
from .engine import WatermarkEngine, detect_watermark_region
from .geometry import (
    LARGE_POSITION,
    SMALL_POSITION,
    Region,
    WatermarkPosition,
    WatermarkSize,
    fallback_region,
    get_watermark_config,
    get_watermark_size,
)
from .guided import GuidedDetectionResult, GuidedSearchEngine
from .processor import BatchSummary, ProcessResult, process_batch, process_image

__all__ = [
    # Alpha maps
    "build_alpha_maps",
    "calculate_alpha_map",
    "resample_alpha_map",
    # Blending
    "apply_forward",
    "apply_reverse",
    "ensure_bgr",
    # Geometry
    "Region",
    "WatermarkPosition",
    "WatermarkSize",
    "SMALL_POSITION",
    "LARGE_POSITION",
    "fallback_region",
    "get_watermark_config",
    "get_watermark_size",
    # Detection
    "DetectionResult",
    "FixedPositionDetector",
    "GuidedDetectionResult",
    "GuidedSearchEngine",
    # Engine
    "WatermarkEngine",
    "detect_watermark_region",
    # Processing
    "BatchSummary",
    "ProcessResult",
    "process_batch",
    "process_image",
]
