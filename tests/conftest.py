"""Shared test fixtures: synthetic reference captures and engines."""

from pathlib import Path

import numpy as np
import pytest

from unmark.config import get_settings
from unmark.pipeline.engine import WatermarkEngine

from .synthetic import encode_png, make_capture


@pytest.fixture(scope="session")
def capture_bytes() -> tuple[bytes, bytes]:
    return encode_png(make_capture(48)), encode_png(make_capture(96))


@pytest.fixture(scope="session")
def engine(capture_bytes) -> WatermarkEngine:
    small, large = capture_bytes
    return WatermarkEngine(small, large)


@pytest.fixture
def capture_files(tmp_path, capture_bytes) -> tuple[Path, Path]:
    captures = tmp_path / "captures"
    captures.mkdir()
    small_path = captures / "bg_48.png"
    large_path = captures / "bg_96.png"
    small_path.write_bytes(capture_bytes[0])
    large_path.write_bytes(capture_bytes[1])
    return small_path, large_path


@pytest.fixture
def configured_env(monkeypatch, capture_files):
    """Point Settings at the synthetic captures."""
    small_path, large_path = capture_files
    monkeypatch.setenv("UNMARK_BG_SMALL_PATH", str(small_path))
    monkeypatch.setenv("UNMARK_BG_LARGE_PATH", str(large_path))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def textured_image():
    """Return a factory for noisy BGR images around a mid-gray level."""
    def factory(width: int, height: int, level: int = 80, noise: int = 10, seed: int = 7):
        rng = np.random.default_rng(seed)
        values = level + rng.integers(-noise, noise + 1, size=(height, width, 3))
        return np.clip(values, 0, 255).astype(np.uint8)
    return factory
