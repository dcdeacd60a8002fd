"""
Image Processing

Load -> (optional detect) -> blend -> save for single files and batches.

Every file's outcome is independent: failures are logged and counted, never
raised out of a batch.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional

from PIL import Image

from ..config import Settings
from ..imaging import (
    SUPPORTED_EXTENSIONS,
    bgr_to_pil,
    load_image,
    pil_to_bgr,
    save_image,
)
from .engine import WatermarkEngine
from .geometry import WatermarkSize

logger = logging.getLogger(__name__)

DEFAULT_DETECTION_THRESHOLD = 0.25


@dataclass
class ProcessResult:
    """Result of processing one image file."""
    success: bool = False
    skipped: bool = False  # No watermark detected, file left alone
    confidence: float = 0.0
    message: str = ""
    input_path: Optional[Path] = None
    output_path: Optional[Path] = None


@dataclass
class BatchSummary:
    """Aggregated outcome of a batch run."""
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    results: list[ProcessResult] = field(default_factory=list)

    def record(self, result: ProcessResult) -> None:
        self.results.append(result)
        if not result.success:
            self.failed += 1
        elif result.skipped:
            self.skipped += 1
        else:
            self.succeeded += 1

    @property
    def total(self) -> int:
        return len(self.results)


def process_image(
    input_path: Path,
    output_path: Path,
    remove: bool,
    engine: WatermarkEngine,
    force_size: Optional[WatermarkSize] = None,
    use_detection: bool = False,
    detection_threshold: float = DEFAULT_DETECTION_THRESHOLD,
    settings: Optional[Settings] = None,
) -> ProcessResult:
    """
    Process a single image file.

    Args:
        input_path: Input image path
        output_path: Output image path (may equal input_path for in-place edits)
        remove: Remove the watermark (True) or add it (False)
        engine: The watermark engine to use
        force_size: Force a specific watermark size (auto-detect if None)
        use_detection: Run detection first and skip images without a watermark
            (removal only)
        detection_threshold: Confidence below which an undetected image is skipped
        settings: Encoding settings (defaults to get_settings())

    Returns:
        ProcessResult; errors are reported here rather than raised
    """
    input_path = Path(input_path)
    output_path = Path(output_path)
    result = ProcessResult(input_path=input_path, output_path=output_path)

    try:
        image = load_image(input_path)
        if image is None:
            result.message = "Failed to load image"
            logger.error(f"Failed to load image: {input_path}")
            return result

        logger.info(f"Processing: {input_path.name} ({image.shape[1]}x{image.shape[0]})")

        if use_detection and remove:
            detection = engine.detect_watermark(image, force_size)
            result.confidence = detection.confidence

            if not detection.detected and detection.confidence < detection_threshold:
                result.success = True
                result.skipped = True
                result.message = (
                    f"No watermark detected ({detection.confidence * 100:.0f}%), skipped"
                )
                logger.info(
                    f"{input_path.name}: {result.message} "
                    f"(spatial={detection.spatial_score:.2f}, "
                    f"grad={detection.gradient_score:.2f}, var={detection.variance_score:.2f})"
                )
                return result

            logger.info(
                f"Watermark detected ({detection.confidence * 100:.0f}% confidence), processing..."
            )

        if remove:
            image = engine.remove_watermark(image, force_size)
        else:
            image = engine.add_watermark(image, force_size)

        if not save_image(output_path, image, settings):
            result.message = "Failed to write image"
            logger.error(f"Failed to write image: {output_path}")
            return result

        result.success = True
        result.message = "Watermark removed" if remove else "Watermark added"
        logger.info(f"Saved: {output_path.name}")
        return result

    except Exception as e:
        result.message = f"Error: {e}"
        logger.error(f"Error processing {input_path}: {e}")
        return result


def iter_images(directory: Path) -> list[Path]:
    """Supported image files directly inside a directory, sorted by name."""
    return sorted(
        p for p in Path(directory).iterdir()
        if p.is_file() and p.suffix.lower() in SUPPORTED_EXTENSIONS
    )


def process_batch(
    inputs: Iterable[Path],
    output_dir: Path,
    remove: bool,
    engine: WatermarkEngine,
    force_size: Optional[WatermarkSize] = None,
    use_detection: bool = False,
    detection_threshold: float = DEFAULT_DETECTION_THRESHOLD,
    settings: Optional[Settings] = None,
    progress_callback: Optional[Callable[[int, int, str], None]] = None,
) -> BatchSummary:
    """
    Process several images sequentially into `output_dir`.

    Args:
        inputs: Image paths
        output_dir: Destination directory (created if missing)
        progress_callback: Optional callback(current, total, message)

    Returns:
        BatchSummary with per-file results and success/failure/skip counts
    """
    paths = [Path(p) for p in inputs]
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    summary = BatchSummary()
    total = len(paths)

    for i, path in enumerate(paths):
        if progress_callback:
            progress_callback(i + 1, total, f"Processing {path.name}")

        summary.record(process_image(
            path,
            output_dir / path.name,
            remove,
            engine,
            force_size=force_size,
            use_detection=use_detection,
            detection_threshold=detection_threshold,
            settings=settings,
        ))

    logger.info(
        f"Batch completed: {summary.succeeded} succeeded, {summary.skipped} skipped, "
        f"{summary.failed} failed"
    )
    return summary


def remove_from_pil(
    image: Image.Image,
    engine: WatermarkEngine,
    force_size: Optional[WatermarkSize] = None,
) -> Image.Image:
    """Remove the watermark from a PIL Image, returning a new RGB image."""
    return bgr_to_pil(engine.remove_watermark(pil_to_bgr(image), force_size))


def add_to_pil(
    image: Image.Image,
    engine: WatermarkEngine,
    force_size: Optional[WatermarkSize] = None,
) -> Image.Image:
    """Add the watermark to a PIL Image, returning a new RGB image."""
    return bgr_to_pil(engine.add_watermark(pil_to_bgr(image), force_size))
