"""
Unmark Configuration

Environment-based configuration for the watermark engine and CLI.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings


# Reference captures ship next to the package by default
ASSETS_DIR = Path(__file__).parent / "assets"


class Settings(BaseSettings):
    """Engine settings loaded from environment variables (UNMARK_*)."""

    # Reference background captures (overlay rendered on a black background)
    bg_small_path: Path = ASSETS_DIR / "bg_48.png"
    bg_large_path: Path = ASSETS_DIR / "bg_96.png"

    # Logo brightness used by the compositor (255 = white)
    logo_value: float = 255.0

    # Confidence below which a file is skipped when detection is enabled
    detection_threshold: float = 0.25

    # Output encoding
    jpeg_quality: int = 100
    png_compression: int = 6
    webp_quality: int = 101  # >100 selects lossless WebP

    # Guided search defaults
    guided_min_size: int = 16
    guided_max_size: int = 256

    # Logging
    log_level: str = "INFO"

    class Config:
        env_prefix = "UNMARK_"
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
