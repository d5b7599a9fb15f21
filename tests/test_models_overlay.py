"""Tests for API payload mapping, box rescaling, and overlay drawing."""

import numpy as np
import pytest

from models import BBox, BoundingBoxDetection, Category, DetectionResult
from overlay import detection_label, draw_overlay, rescale_detections, rescale_result


class TestFromApiResponse:
    def test_fire_payload(self, fire_payload):
        r = DetectionResult.from_api_response(fire_payload)
        assert r.has_fire is True
        assert r.fire_detected is True
        assert r.category == Category.URBAN_FIRE
        assert r.confidence == 85
        assert r.image_size == (640, 480)
        assert r.detections[0].class_name == "fire"
        assert r.detections[0].bbox == BBox(x=100, y=100, width=100, height=100)
        assert r.scene_info.urban_prob == 0.9
        assert r.timestamp.startswith("2023-11-14")

    def test_smoke_only_is_fire_detected_for_display(self, smoke_payload):
        r = DetectionResult.from_api_response(smoke_payload)
        assert r.has_fire is False
        assert r.fire_detected is True

    def test_unknown_status_maps_to_no_fire(self, fire_payload):
        fire_payload["status"] = "industrial_fire"
        assert DetectionResult.from_api_response(fire_payload).category == Category.NO_FIRE

    def test_confidence_falls_back_to_scene_fraction(self, fire_payload):
        del fire_payload["confidence"]
        assert DetectionResult.from_api_response(fire_payload).confidence == pytest.approx(85.0)

    def test_missing_flags_raise(self):
        with pytest.raises(KeyError):
            DetectionResult.from_api_response({"status": "no_fire"})

    def test_to_dict_shape(self, fire_payload):
        d = DetectionResult.from_api_response(fire_payload).to_dict()
        assert d["category"] == "urban_fire"
        assert d["detections"][0]["class"] == "fire"
        assert d["image_size"] == {"width": 640, "height": 480}

    def test_detection_from_dict(self):
        det = BoundingBoxDetection.from_dict(
            {"class": "smoke", "confidence": 0.5, "bbox": {"x": 1, "y": 2, "width": 3, "height": 4}}
        )
        assert det.class_name == "smoke"
        assert det.bbox == BBox(1, 2, 3, 4)


class TestRescale:
    def test_half_scale(self):
        det = BoundingBoxDetection("fire", 0.9, BBox(x=100, y=100, width=100, height=100))
        (out,) = rescale_detections([det], (640, 480), (320, 240))
        assert out.bbox == BBox(x=50, y=50, width=50, height=50)
        assert out.class_name == "fire"

    def test_from_server_corners(self, fire_payload):
        result = DetectionResult.from_api_response(fire_payload)
        scaled = rescale_result(result, (320, 240))
        assert scaled.detections[0].bbox == BBox(x=50, y=50, width=50, height=50)
        # Original is untouched
        assert result.detections[0].bbox.x == 100

    def test_no_image_size_unchanged(self):
        det = BoundingBoxDetection("smoke", 0.8, BBox(10, 20, 30, 40))
        r = DetectionResult(True, True, Category.UNCERTAIN, 80.0, detections=(det,))
        assert rescale_result(r, (320, 240)) is r

    def test_zero_image_size_passthrough(self):
        det = BoundingBoxDetection("fire", 0.9, BBox(1, 1, 1, 1))
        assert rescale_detections([det], (0, 0), (320, 240)) == [det]


class TestDrawOverlay:
    def _result(self, fire=True):
        det = BoundingBoxDetection("fire", 0.85, BBox(50, 60, 100, 80))
        return DetectionResult(fire, False, Category.WILDFIRE, 85.0, detections=(det,))

    def test_draws_on_copy(self, black_frame):
        original = black_frame.copy()
        annotated = draw_overlay(black_frame, self._result())
        assert annotated.shape == black_frame.shape
        assert np.any(annotated != black_frame)
        np.testing.assert_array_equal(black_frame, original)

    def test_nothing_drawn_without_detection(self, black_frame):
        annotated = draw_overlay(black_frame, self._result(fire=False))
        np.testing.assert_array_equal(annotated, black_frame)

    def test_label(self):
        det = BoundingBoxDetection("smoke", 0.5, BBox(0, 0, 1, 1))
        assert detection_label(det) == "smoke 50%"
