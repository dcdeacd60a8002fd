"""
Unmark CLI

Removes (or adds) the corner logo on single images or whole directories.

Simple usage:  unmark <image> [<image> ...]   (in-place removal)
Full usage:    unmark -i <file|dir> -o <file|dir> [options]
"""

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from . import __version__
from .config import get_settings
from .errors import LoadError
from .imaging import load_image
from .pipeline.engine import WatermarkEngine
from .pipeline.geometry import Region, WatermarkSize
from .pipeline.processor import (
    BatchSummary,
    ProcessResult,
    iter_images,
    process_batch,
    process_image,
)

logger = logging.getLogger(__name__)
console = Console()


def setup_logging(level: str) -> None:
    """Configure rich logging for the CLI."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="unmark",
        description="Remove (or add) the visible corner watermark of AI-generated images",
        epilog="Simple usage: unmark <image>  (in-place edit)",
    )
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-i", "--input", type=Path, required=True, help="Input image file or directory")
    parser.add_argument("-o", "--output", type=Path, help="Output image file or directory")

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("-r", "--remove", action="store_true", help="Remove the watermark (default)")
    mode.add_argument("--add", action="store_true", help="Add the watermark instead of removing it")

    size = parser.add_mutually_exclusive_group()
    size.add_argument("--force-small", action="store_true", help="Force 48x48 watermark regardless of image size")
    size.add_argument("--force-large", action="store_true", help="Force 96x96 watermark regardless of image size")

    parser.add_argument("--detect", action="store_true", help="Skip images where no watermark is detected")
    parser.add_argument("--threshold", type=float, default=None, help="Detection confidence threshold")

    parser.add_argument(
        "--guided", type=int, nargs=4, metavar=("X", "Y", "W", "H"),
        help="Search this window for the watermark and report where it is",
    )
    parser.add_argument("--min-size", type=int, default=None, help="Smallest logo size for --guided")
    parser.add_argument("--max-size", type=int, default=None, help="Largest logo size for --guided")

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Suppress all output except errors")
    return parser


def is_simple_mode(argv: list[str]) -> bool:
    """Simple mode: one or more arguments, none of them flags."""
    return bool(argv) and not any(arg.startswith("-") for arg in argv)


def print_summary(summary: BatchSummary) -> None:
    if summary.total <= 1:
        return
    line = f"\n[green][OK] Completed: {summary.succeeded} succeeded[/green]"
    if summary.skipped:
        line += f", [yellow]{summary.skipped} skipped[/yellow]"
    if summary.failed:
        line += f", [red]{summary.failed} failed[/red]"
    console.print(line)


def run_simple_mode(argv: list[str]) -> int:
    """Remove watermarks in place from each listed file."""
    settings = get_settings()
    setup_logging(settings.log_level)

    try:
        engine = WatermarkEngine.from_settings(settings)
    except LoadError as e:
        logger.error(f"Fatal error: {e}")
        return 1

    summary = BatchSummary()
    for arg in argv:
        path = Path(arg)
        if not path.exists():
            logger.error(f"File not found: {arg}")
            summary.record(ProcessResult(message="File not found", input_path=path))
            continue
        if path.is_dir():
            logger.error(f"Skipping directory: {arg} (for directories use -i <dir> -o <dir>)")
            summary.record(ProcessResult(message="Is a directory", input_path=path))
            continue
        summary.record(process_image(path, path, True, engine, settings=settings))

    print_summary(summary)
    return 1 if summary.failed else 0


def run_guided(engine: WatermarkEngine, args: argparse.Namespace) -> int:
    """Report where the watermark is inside the requested window."""
    settings = get_settings()
    image = load_image(args.input)
    if image is None:
        logger.error(f"Failed to load image: {args.input}")
        return 1

    cancel = threading.Event()
    previous = signal.signal(signal.SIGINT, lambda signum, frame: cancel.set())
    try:
        result = engine.guided_detect(
            image,
            Region(*args.guided),
            cancel_flag=cancel,
            min_size=args.min_size or settings.guided_min_size,
            max_size=args.max_size or settings.guided_max_size,
        )
    finally:
        signal.signal(signal.SIGINT, previous)

    if result.was_cancelled:
        console.print(f"[yellow]Search cancelled after {result.scales_searched}/{result.total_scales} scales[/yellow]")
    if not result.found:
        console.print("[red]No watermark found in the search window[/red]")
        return 1

    rect = result.match_rect
    console.print(
        f"[green]Found[/green] at ({rect.x}, {rect.y}) size {rect.width}x{rect.height} "
        f"confidence={result.confidence:.3f} raw_ncc={result.raw_ncc:.3f}"
    )
    return 0


def run(argv: Optional[list[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if is_simple_mode(argv):
        return run_simple_mode(argv)

    args = build_parser().parse_args(argv)
    settings = get_settings()

    if args.quiet:
        setup_logging("ERROR")
    elif args.verbose:
        setup_logging("DEBUG")
    else:
        setup_logging(settings.log_level)

    force_size = None
    if args.force_small:
        force_size = WatermarkSize.SMALL
        logger.info("Forcing 48x48 watermark size")
    elif args.force_large:
        force_size = WatermarkSize.LARGE
        logger.info("Forcing 96x96 watermark size")

    if not args.input.exists():
        logger.error(f"Input not found: {args.input}")
        return 1

    try:
        engine = WatermarkEngine.from_settings(settings)
    except LoadError as e:
        logger.error(f"Fatal error: {e}")
        return 1

    if args.guided:
        return run_guided(engine, args)

    if args.output is None:
        logger.error("--output is required unless --guided is used")
        return 1

    remove = not args.add
    threshold = args.threshold if args.threshold is not None else settings.detection_threshold

    if args.input.is_dir():
        logger.info(f"Batch processing directory: {args.input}")
        summary = process_batch(
            iter_images(args.input),
            args.output,
            remove,
            engine,
            force_size=force_size,
            use_detection=args.detect,
            detection_threshold=threshold,
            settings=settings,
        )
        print_summary(summary)
        return 1 if summary.failed else 0

    result = process_image(
        args.input,
        args.output,
        remove,
        engine,
        force_size=force_size,
        use_detection=args.detect,
        detection_threshold=threshold,
        settings=settings,
    )
    return 0 if result.success else 1


def main():
    sys.exit(run())


if __name__ == "__main__":
    main()
