"""Tests for the three-stage fixed-position detector."""

import numpy as np
import pytest

from unmark.pipeline.detector import DetectionResult, FixedPositionDetector, ncc_max
from unmark.pipeline.geometry import Region, WatermarkSize


@pytest.fixture
def detector():
    return FixedPositionDetector()


class TestDetectWatermark:

    def test_detects_composited_logo(self, engine, textured_image):
        image = textured_image(1200, 1200)
        engine.add_watermark(image)

        result = engine.detect_watermark(image)

        assert result.detected
        assert result.confidence >= 0.35
        assert result.size == WatermarkSize.LARGE
        assert result.region == Region(1040, 1040, 96, 96)
        assert result.spatial_score > 0.9
        assert result.gradient_score > 0.3

    def test_detects_small_logo(self, engine, textured_image):
        image = textured_image(800, 600)
        engine.add_watermark(image)

        result = engine.detect_watermark(image)

        assert result.detected
        assert result.size == WatermarkSize.SMALL
        assert result.region == Region(720, 520, 48, 48)

    def test_shifted_rectangle_is_rejected(self, engine, detector, textured_image):
        image = textured_image(1200, 1200)
        engine.add_watermark(image)

        alpha = engine.get_alpha_map(WatermarkSize.LARGE)
        result = detector.detect_at(image, alpha, (1040 - 150, 1040), size=WatermarkSize.LARGE)

        assert not result.detected
        assert result.confidence < 0.35

    def test_clean_image_not_detected(self, engine, textured_image):
        result = engine.detect_watermark(textured_image(1200, 1200))
        assert not result.detected

    def test_forced_size_moves_region(self, engine, textured_image):
        image = textured_image(1200, 1200)
        result = engine.detect_watermark(image, force_size=WatermarkSize.SMALL)
        assert result.size == WatermarkSize.SMALL
        assert result.region == Region(1200 - 80, 1200 - 80, 48, 48)


class TestCircuitBreaker:

    def test_flat_image_terminates_early(self, engine):
        image = np.full((1200, 1200, 3), 128, dtype=np.uint8)
        result = engine.detect_watermark(image)

        assert result.spatial_score < 0.25
        assert result.gradient_score == 0.0
        assert result.variance_score == 0.0
        assert result.confidence == pytest.approx(max(0.0, result.spatial_score * 0.5))
        assert not result.detected


class TestDegenerateInput:

    def test_empty_image_returns_zero_result(self, engine):
        result = engine.detect_watermark(np.zeros((0, 0, 3), dtype=np.uint8))
        assert result == DetectionResult()

    def test_none_image(self, engine):
        assert not engine.detect_watermark(None).detected

    def test_region_outside_image(self, engine, detector):
        image = np.full((100, 100, 3), 50, dtype=np.uint8)
        alpha = engine.get_alpha_map(WatermarkSize.SMALL)
        result = detector.detect_at(image, alpha, (500, 500))

        assert not result.detected
        assert result.confidence == 0.0
        assert result.region == Region(500, 500, 48, 48)

    def test_tiny_image_has_negative_position(self, engine):
        image = np.full((60, 60, 3), 50, dtype=np.uint8)
        result = engine.detect_watermark(image)
        assert not result.detected
        assert result.confidence == 0.0

    def test_noise_image_smaller_than_logo(self, engine):
        rng = np.random.default_rng(3)
        image = rng.integers(0, 256, size=(40, 40, 3), dtype=np.uint8)

        result = engine.detect_watermark(image)

        assert result.region == Region(-40, -40, 48, 48)
        assert not result.detected
        assert result.confidence == 0.0
        assert result.spatial_score == 0.0

    @pytest.mark.parametrize("region", [
        Region(299, 299, 96, 96),
        Region(-95, 100, 96, 96),
        Region(250, 250, 96, 96),
    ])
    def test_partially_outside_region_scores_zero(self, engine, region):
        rng = np.random.default_rng(5)
        image = rng.integers(0, 256, size=(300, 300, 3), dtype=np.uint8)

        result = engine.detect_region(image, region)

        assert not result.detected
        assert result.confidence == 0.0
        assert result.region == region

    def test_flat_alpha_map_scores_zero(self, detector):
        rng = np.random.default_rng(9)
        image = rng.integers(0, 256, size=(200, 200, 3), dtype=np.uint8)
        flat = np.zeros((48, 48), dtype=np.float32)

        result = detector.detect_at(image, flat, (50, 50))

        assert result.spatial_score == 0.0
        assert not result.detected

    def test_flat_template_correlation_is_zero(self):
        field = np.random.default_rng(1).random((30, 30), dtype=np.float32)
        score, loc = ncc_max(field, np.full((8, 8), 0.4, dtype=np.float32))
        assert score == 0.0
        assert loc == (0, 0)

    def test_rejection_confidence_never_negative(self, engine, detector):
        alpha = engine.get_alpha_map(WatermarkSize.SMALL)
        image = np.zeros((100, 100, 3), dtype=np.uint8)
        # Inverted logo: anti-correlated with the alpha map
        image[20:68, 20:68] = ((1.0 - alpha) * 200).astype(np.uint8)[:, :, None]

        result = detector.detect_at(image, alpha, (20, 20))

        assert result.spatial_score < 0.0
        assert result.confidence == 0.0
        assert not result.detected


class TestVarianceStage:

    def test_dampened_texture_scores_positive(self, engine, detector):
        rng = np.random.default_rng(11)
        image = rng.integers(0, 256, size=(600, 600, 3), dtype=np.uint8)
        alpha = engine.get_alpha_map(WatermarkSize.LARGE)

        # Flatten the texture under the rectangle and paint the logo on it
        image[300:396, 300:396] = 60
        engine.add_watermark_custom(image, Region(300, 300, 96, 96))

        result = detector.detect_at(image, alpha, (300, 300), size=WatermarkSize.LARGE)
        assert result.variance_score > 0.0
        assert result.detected

    def test_reference_patch_too_short(self, engine, detector):
        image = np.full((120, 120, 3), 60, dtype=np.uint8)
        engine.add_watermark_custom(image, Region(10, 5, 96, 96))
        alpha = engine.get_alpha_map(WatermarkSize.LARGE)

        result = detector.detect_at(image, alpha, (10, 5))
        assert result.variance_score == 0.0

    def test_low_texture_reference_disables_stage(self, engine, detector):
        rng = np.random.default_rng(13)
        # Reference rows are nearly flat (std ~3), the candidate is textured
        image = np.clip(rng.normal(100, 3, size=(300, 300, 3)), 0, 255).astype(np.uint8)
        textured = 80 + rng.integers(-20, 21, size=(96, 96, 3))
        image[150:246, 100:196] = textured.astype(np.uint8)
        engine.add_watermark_custom(image, Region(100, 150, 96, 96))
        alpha = engine.get_alpha_map(WatermarkSize.LARGE)

        result = detector.detect_at(image, alpha, (100, 150), size=WatermarkSize.LARGE)

        assert result.spatial_score >= 0.25
        assert result.variance_score == 0.0
