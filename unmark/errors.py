"""
Unmark Errors

Hard failures only. "No watermark found" is never an error: detection and
guided search report it as ordinary result data.
"""


class UnmarkError(Exception):
    """Base class for engine errors."""


class LoadError(UnmarkError):
    """A reference capture could not be read or decoded; the engine is unusable."""


class InvalidImage(UnmarkError, ValueError):
    """An image buffer is empty or not in a supported pixel layout."""
