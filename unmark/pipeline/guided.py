"""
Guided Multi-Scale Detection

Locates a logo of unknown size and position inside a user-chosen search
window by template matching the large alpha map at many scales.

Two phases:
    1. Coarse: scales every 8px from min to max (plus the standard 48/96),
       best NCC location per scale, keep the top 5 by size-adjusted score.
    2. Fine: re-scan +/-10px around each candidate's scale in 2px steps.

NCC favours small templates (a 24x24 patch matches well almost anywhere
inside the real logo), so scores are weighted toward the reference size:

    adjusted = raw_ncc * min(1, sqrt(scale / 96))

Cancellation is cooperative: the flag is polled before each coarse scale
and before each fine candidate, never inside a correlation pass.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Optional, Protocol

import numpy as np

from .alpha_map import resample_alpha_map
from .detector import ncc_max, to_gray
from .geometry import Region

logger = logging.getLogger(__name__)


class CancelFlag(Protocol):
    """Anything with is_set(), e.g. threading.Event."""

    def is_set(self) -> bool: ...


@dataclass(frozen=True)
class GuidedDetectionResult:
    """Result of a guided multi-scale search."""
    found: bool = False
    confidence: float = 0.0      # size-adjusted score
    raw_ncc: float = 0.0         # unadjusted NCC of the winning match
    match_rect: Region = Region(0, 0, 0, 0)  # image-absolute
    detected_size: int = 0
    scales_searched: int = 0
    total_scales: int = 0
    was_cancelled: bool = False
    elapsed_ms: float = 0.0


@dataclass
class _Candidate:
    position: tuple[int, int]  # within the search window
    scale: int
    raw_score: float
    adjusted_score: float


class GuidedSearchEngine:
    """Coarse-to-fine scale and position search using one alpha template."""

    REFERENCE_SIZE = 96.0
    MIN_WINDOW = 8
    MIN_SCALE = 16

    COARSE_SCALE_STEP = 8
    STANDARD_SIZES = (48, 96)
    STANDARD_SIZE_TOLERANCE = 2
    TOP_K = 5
    MIN_ADJUSTED_SCORE = 0.08

    FINE_SCALE_STEP = 2
    FINE_SCALE_RANGE = 10

    def __init__(self, template_source: np.ndarray):
        """
        Args:
            template_source: Alpha map resampled per scale (the 96x96 map)
        """
        self._source = template_source

    @classmethod
    def size_adjusted_score(cls, raw_ncc: float, scale: int) -> float:
        weight = min(math.sqrt(scale / cls.REFERENCE_SIZE), 1.0)
        return raw_ncc * weight

    @classmethod
    def coarse_scales(cls, min_size: int, max_size: int) -> list[int]:
        """Coarse scale list: every 8px, plus standard sizes not already within 2px."""
        scales = list(range(min_size, max_size + 1, cls.COARSE_SCALE_STEP))
        for std_size in cls.STANDARD_SIZES:
            if min_size <= std_size <= max_size:
                if not any(abs(s - std_size) <= cls.STANDARD_SIZE_TOLERANCE for s in scales):
                    scales.append(std_size)
        return sorted(scales)

    def _match_at_scale(self, gray_f: np.ndarray, scale: int) -> Optional[_Candidate]:
        if scale > gray_f.shape[1] or scale > gray_f.shape[0]:
            return None
        template = resample_alpha_map(self._source, scale, scale)
        raw, loc = ncc_max(gray_f, template)
        return _Candidate(loc, scale, raw, self.size_adjusted_score(raw, scale))

    def search(
        self,
        image: np.ndarray,
        search_rect: Region,
        cancel_flag: Optional[CancelFlag] = None,
        min_size: int = 16,
        max_size: int = 256,
    ) -> GuidedDetectionResult:
        """
        Search for the logo inside `search_rect`.

        Args:
            image: BGR (or grayscale) image
            search_rect: Search window in image coordinates; clamped to the image
            cancel_flag: Optional shared flag polled between scales
            min_size: Smallest template edge (clamped to >= 16)
            max_size: Largest template edge (clamped to the window's short side)

        Returns:
            GuidedDetectionResult; found=False when nothing scores above 0.08
        """
        start_time = time.perf_counter()

        def elapsed_ms() -> float:
            return (time.perf_counter() - start_time) * 1000.0

        def cancelled() -> bool:
            return cancel_flag is not None and cancel_flag.is_set()

        if image is None or image.size == 0:
            return GuidedDetectionResult()
        if search_rect.width < self.MIN_WINDOW or search_rect.height < self.MIN_WINDOW:
            return GuidedDetectionResult()

        img_h, img_w = image.shape[:2]
        search = search_rect.intersect(Region(0, 0, img_w, img_h))
        if search is None or search.width < self.MIN_WINDOW or search.height < self.MIN_WINDOW:
            return GuidedDetectionResult()

        min_size = max(min_size, self.MIN_SCALE)
        max_size = min(max_size, search.width, search.height)
        if min_size > max_size:
            logger.debug(
                f"guided_detect: min_size {min_size} > max_size {max_size}, no search possible"
            )
            return GuidedDetectionResult()

        gray = to_gray(image[search.y:search.bottom, search.x:search.right])
        gray_f = gray.astype(np.float32) / 255.0

        # Phase 1: coarse scan
        scales = self.coarse_scales(min_size, max_size)
        total_scales = len(scales)
        scales_searched = 0
        was_cancelled = False
        candidates: list[_Candidate] = []

        logger.debug(
            f"guided_detect: searching {total_scales} scales [{min_size}-{max_size}] "
            f"in {search.width}x{search.height} region"
        )

        for scale in scales:
            if cancelled():
                was_cancelled = True
                logger.debug(f"guided_detect: cancelled at scale {scale}")
                break

            candidate = self._match_at_scale(gray_f, scale)
            scales_searched += 1
            if candidate is None:
                continue

            logger.debug(
                f"  scale {scale:3d}: raw_ncc={candidate.raw_score:.3f} "
                f"adjusted={candidate.adjusted_score:.3f}"
            )

            if candidate.adjusted_score <= self.MIN_ADJUSTED_SCORE:
                continue
            if len(candidates) < self.TOP_K:
                candidates.append(candidate)
            elif candidate.adjusted_score > candidates[-1].adjusted_score:
                candidates[-1] = candidate
            else:
                continue
            candidates.sort(key=lambda c: c.adjusted_score, reverse=True)

        if not candidates:
            logger.info(
                f"guided_detect: no candidates found in {elapsed_ms():.1f} ms "
                f"({scales_searched} scales)"
            )
            return GuidedDetectionResult(
                scales_searched=scales_searched,
                total_scales=total_scales,
                was_cancelled=was_cancelled,
                elapsed_ms=elapsed_ms(),
            )

        for c in candidates:
            logger.debug(
                f"  candidate scale={c.scale} pos={c.position} "
                f"raw={c.raw_score:.3f} adj={c.adjusted_score:.3f}"
            )

        # Phase 2: fine refinement around the coarse candidates
        best: Optional[_Candidate] = None
        for candidate in candidates:
            if cancelled():
                was_cancelled = True
                break

            scale_lo = max(min_size, candidate.scale - self.FINE_SCALE_RANGE)
            scale_hi = min(max_size, candidate.scale + self.FINE_SCALE_RANGE)
            for scale in range(scale_lo, scale_hi + 1, self.FINE_SCALE_STEP):
                refined = self._match_at_scale(gray_f, scale)
                if refined is None:
                    continue
                if best is None or refined.adjusted_score > best.adjusted_score:
                    best = refined

        if best is None or best.adjusted_score <= self.MIN_ADJUSTED_SCORE:
            logger.info(f"guided_detect: no match above threshold in {elapsed_ms():.1f} ms")
            return GuidedDetectionResult(
                scales_searched=scales_searched,
                total_scales=total_scales,
                was_cancelled=was_cancelled,
                elapsed_ms=elapsed_ms(),
            )

        match_rect = Region(
            search.x + best.position[0],
            search.y + best.position[1],
            best.scale,
            best.scale,
        )
        result = GuidedDetectionResult(
            found=True,
            confidence=best.adjusted_score,
            raw_ncc=best.raw_score,
            match_rect=match_rect,
            detected_size=best.scale,
            scales_searched=scales_searched,
            total_scales=total_scales,
            was_cancelled=was_cancelled,
            elapsed_ms=elapsed_ms(),
        )

        logger.info(
            f"guided_detect: found at ({match_rect.x},{match_rect.y}) "
            f"size {best.scale}x{best.scale} raw_ncc={best.raw_score:.3f} "
            f"adjusted={best.adjusted_score:.3f} in {result.elapsed_ms:.1f} ms "
            f"({scales_searched} coarse scales, {len(candidates)} candidates refined)"
        )
        return result
