"""Tests for the WatermarkEngine entry points."""

import numpy as np
import pytest

from unmark.config import get_settings
from unmark.errors import LoadError
from unmark.pipeline.engine import WatermarkEngine, detect_watermark_region
from unmark.pipeline.geometry import Region, WatermarkSize


class TestConstruction:

    def test_alpha_maps_have_canonical_shapes(self, engine):
        assert engine.get_alpha_map(WatermarkSize.SMALL).shape == (48, 48)
        assert engine.get_alpha_map(WatermarkSize.LARGE).shape == (96, 96)

    def test_alpha_maps_are_read_only(self, engine):
        alpha = engine.get_alpha_map(WatermarkSize.LARGE)
        with pytest.raises(ValueError):
            alpha[0, 0] = 1.0

    def test_from_paths(self, capture_files):
        small, large = capture_files
        engine = WatermarkEngine(small, large)
        assert engine.get_alpha_map(WatermarkSize.LARGE).max() > 0.3

    def test_from_settings(self, configured_env):
        engine = WatermarkEngine.from_settings(get_settings())
        assert engine.logo_value == 255.0

    def test_missing_capture_is_fatal(self, tmp_path, capture_bytes):
        with pytest.raises(LoadError):
            WatermarkEngine(tmp_path / "nope.png", capture_bytes[1])

    def test_undecodable_capture_is_fatal(self, capture_bytes):
        with pytest.raises(LoadError):
            WatermarkEngine(capture_bytes[0], b"\x89PNG garbage")


class TestAddRemove:

    @pytest.mark.parametrize("width,height", [(800, 600), (1400, 1200)])
    def test_round_trip(self, engine, width, height):
        rng = np.random.default_rng(5)
        original = rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)
        image = original.copy()

        engine.add_watermark(image)
        assert not np.array_equal(image, original)
        engine.remove_watermark(image)

        assert np.abs(image.astype(int) - original.astype(int)).max() <= 2

        size = 96 if width > 1024 and height > 1024 else 48
        margin = 64 if size == 96 else 32
        x, y = width - margin - size, height - margin - size
        outside = np.ones((height, width), dtype=bool)
        outside[y:y + size, x:x + size] = False
        np.testing.assert_array_equal(image[outside], original[outside])

    def test_blend_is_in_place(self, engine):
        image = np.full((600, 600, 3), 40, dtype=np.uint8)
        result = engine.add_watermark(image)
        assert result is image
        assert image[600 - 80:600 - 32, 600 - 80:600 - 32].max() > 40

    def test_force_size(self, engine):
        image = np.full((600, 600, 3), 40, dtype=np.uint8)
        engine.add_watermark(image, force_size=WatermarkSize.LARGE)
        # Large placement: (600-160, 600-160) .. +96
        assert image[440:536, 440:536].max() > 40

    def test_grayscale_input_is_converted(self, engine):
        gray = np.full((300, 300), 40, dtype=np.uint8)
        result = engine.add_watermark(gray)
        assert result.shape == (300, 300, 3)

    def test_bgra_input_is_converted(self, engine):
        bgra = np.full((300, 300, 4), 40, dtype=np.uint8)
        assert engine.remove_watermark(bgra).shape == (300, 300, 3)

    def test_empty_image_raises(self, engine):
        with pytest.raises(ValueError):
            engine.remove_watermark(np.zeros((0, 0, 3), dtype=np.uint8))


class TestCustomRegion:

    @pytest.mark.parametrize("edge", [48, 72, 96, 130])
    def test_custom_round_trip(self, engine, edge):
        rng = np.random.default_rng(edge)
        original = rng.integers(0, 256, size=(400, 400, 3), dtype=np.uint8)
        image = original.copy()
        region = Region(100, 120, edge, edge)

        engine.add_watermark_custom(image, region)
        engine.remove_watermark_custom(image, region)

        assert np.abs(image.astype(int) - original.astype(int)).max() <= 2

    def test_custom_region_detected(self, engine):
        image = np.full((500, 500, 3), 70, dtype=np.uint8)
        region = Region(200, 250, 72, 72)
        engine.add_watermark_custom(image, region)

        result = engine.detect_region(image, region)
        assert result.detected
        assert result.region == region

    def test_empty_region_is_noop(self, engine):
        image = np.full((50, 50, 3), 70, dtype=np.uint8)
        engine.add_watermark_custom(image, Region(0, 0, 0, 0))
        assert (image == 70).all()


class TestLegacyWrapper:

    def test_empty_image_returns_none(self, engine):
        assert detect_watermark_region(np.zeros((0, 0, 3), dtype=np.uint8), engine) is None

    def test_returns_detection(self, engine, textured_image):
        image = engine.add_watermark(textured_image(1100, 1100))
        result = detect_watermark_region(image, engine)
        assert result is not None and result.detected
