"""Bounding-box rescaling and drawing for detection results."""

import cv2
import numpy as np

from models import BBox, BoundingBoxDetection, DetectionResult

# BGR
FIRE_COLOR = (0, 69, 255)
SMOKE_COLOR = (0, 215, 255)


def rescale_detections(
    detections,
    image_size: tuple[int, int],
    display_size: tuple[int, int],
) -> list[BoundingBoxDetection]:
    """Map boxes from source-image pixels onto the display surface."""
    img_w, img_h = image_size
    disp_w, disp_h = display_size
    if not img_w or not img_h:
        return list(detections)
    scale_x = disp_w / img_w
    scale_y = disp_h / img_h
    return [
        BoundingBoxDetection(
            class_name=d.class_name,
            confidence=d.confidence,
            bbox=BBox(
                x=d.bbox.x * scale_x,
                y=d.bbox.y * scale_y,
                width=d.bbox.width * scale_x,
                height=d.bbox.height * scale_y,
            ),
        )
        for d in detections
    ]


def rescale_result(result: DetectionResult, display_size: tuple[int, int]) -> DetectionResult:
    """Return ``result`` with boxes in display coordinates (unchanged if no image size)."""
    if not result.detections or not result.image_size:
        return result
    return result.with_detections(
        rescale_detections(result.detections, result.image_size, display_size)
    )


def detection_label(detection: BoundingBoxDetection) -> str:
    return f"{detection.class_name} {detection.confidence:.0%}"


def draw_overlay(frame: np.ndarray, result: DetectionResult) -> np.ndarray:
    """Draw boxes and labels on a copy of the frame; boxes must be in frame pixels."""
    annotated = frame.copy()
    if not result.fire_detected:
        return annotated
    for det in result.detections:
        x1 = int(det.bbox.x)
        y1 = int(det.bbox.y)
        x2 = int(det.bbox.x + det.bbox.width)
        y2 = int(det.bbox.y + det.bbox.height)
        color = FIRE_COLOR if det.class_name == "fire" else SMOKE_COLOR
        cv2.rectangle(annotated, (x1, y1), (x2, y2), color, 2)
        label = detection_label(det)
        (tw, th), _ = cv2.getTextSize(label, cv2.FONT_HERSHEY_SIMPLEX, 0.6, 1)
        cv2.rectangle(annotated, (x1, y1 - th - 8), (x1 + tw + 4, y1), color, -1)
        cv2.putText(
            annotated, label, (x1 + 2, y1 - 4),
            cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 0, 0), 1, cv2.LINE_AA,
        )
    return annotated
