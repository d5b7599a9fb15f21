"""Detection result types shared by the providers, pipeline, and history store."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum


class Category(str, Enum):
    NO_FIRE = "no_fire"
    WILDFIRE = "wildfire"
    URBAN_FIRE = "urban_fire"
    UNCERTAIN = "uncertain"

    @classmethod
    def from_status(cls, status: str | None) -> "Category":
        """Map a backend ``status`` string; anything unknown is ``no_fire``."""
        try:
            return cls(status)
        except ValueError:
            return cls.NO_FIRE


@dataclass(frozen=True)
class BBox:
    x: float
    y: float
    width: float
    height: float

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class BoundingBoxDetection:
    class_name: str  # "fire" or "smoke"
    confidence: float  # 0-1
    bbox: BBox

    def to_dict(self) -> dict:
        return {
            "class": self.class_name,
            "confidence": self.confidence,
            "bbox": self.bbox.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BoundingBoxDetection":
        b = data.get("bbox", {})
        return cls(
            class_name=data.get("class", "fire"),
            confidence=float(data.get("confidence", 0.0)),
            bbox=BBox(
                x=float(b.get("x", 0)),
                y=float(b.get("y", 0)),
                width=float(b.get("width", 0)),
                height=float(b.get("height", 0)),
            ),
        )


@dataclass(frozen=True)
class SceneInfo:
    scene_type: str | None
    wildfire_prob: float
    urban_prob: float
    confidence: float

    def to_dict(self) -> dict:
        return {
            "scene_type": self.scene_type,
            "wildfire_prob": self.wildfire_prob,
            "urban_prob": self.urban_prob,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float
    address: str = ""

    def to_dict(self) -> dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "address": self.address,
        }


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class DetectionResult:
    """One classification outcome. ``confidence`` is a 0-100 risk percentage."""

    has_fire: bool
    has_smoke: bool
    category: Category
    confidence: float
    detections: tuple[BoundingBoxDetection, ...] = ()
    scene_info: SceneInfo | None = None
    image_size: tuple[int, int] | None = None  # (width, height)
    annotated_image: str | None = None  # base64 JPEG
    timestamp: str = field(default_factory=_now_iso)
    source: str = "remote"

    @property
    def fire_detected(self) -> bool:
        return self.has_fire or self.has_smoke

    @property
    def risk_level(self) -> int:
        return round(self.confidence)

    def with_detections(self, detections) -> "DetectionResult":
        return replace(self, detections=tuple(detections))

    def to_dict(self) -> dict:
        return {
            "fire_detected": self.fire_detected,
            "has_fire": self.has_fire,
            "has_smoke": self.has_smoke,
            "category": self.category.value,
            "confidence": self.confidence,
            "detections": [d.to_dict() for d in self.detections],
            "scene_info": self.scene_info.to_dict() if self.scene_info else None,
            "image_size": (
                {"width": self.image_size[0], "height": self.image_size[1]}
                if self.image_size
                else None
            ),
            "timestamp": self.timestamp,
            "source": self.source,
        }

    @classmethod
    def from_api_response(cls, data: dict) -> "DetectionResult":
        """Build a result from the ``/api/reports/detect`` JSON payload.

        Raises KeyError/TypeError/ValueError on a payload that is missing the
        detection flags or carries non-numeric geometry.
        """
        has_fire = bool(data["has_fire"])
        has_smoke = bool(data["has_smoke"])

        detections = []
        for box in data.get("boxes") or []:
            x1 = float(box.get("x1") or 0)
            y1 = float(box.get("y1") or 0)
            x2 = float(box.get("x2") or 0)
            y2 = float(box.get("y2") or 0)
            detections.append(BoundingBoxDetection(
                class_name=box.get("class") or "fire",
                confidence=float(box.get("confidence") or 0),
                bbox=BBox(x=x1, y=y1, width=x2 - x1, height=y2 - y1),
            ))

        scene = data.get("scene_analysis")
        scene_info = None
        if scene:
            scene_info = SceneInfo(
                scene_type=scene.get("scene_type"),
                wildfire_prob=float(scene.get("wildfire_prob") or 0),
                urban_prob=float(scene.get("urban_prob") or 0),
                confidence=float(scene.get("confidence") or 0),
            )

        # Backend reports confidence as a percentage; older builds only
        # filled the scene analysis, which is a 0-1 fraction.
        if data.get("confidence") is not None:
            confidence = float(data["confidence"])
        elif scene_info is not None:
            confidence = scene_info.confidence * 100
        else:
            confidence = 0.0

        size = data.get("image_size")
        image_size = (int(size["width"]), int(size["height"])) if size else None

        ts = data.get("timestamp")
        if isinstance(ts, (int, float)):
            timestamp = datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()
        else:
            timestamp = _now_iso()

        return cls(
            has_fire=has_fire,
            has_smoke=has_smoke,
            category=Category.from_status(data.get("status")),
            confidence=confidence,
            detections=tuple(detections),
            scene_info=scene_info,
            image_size=image_size,
            annotated_image=data.get("annotated_image"),
            timestamp=timestamp,
            source="remote",
        )
