"""Classification provider tiers: remote backend, local YOLO model, simulator.

Each provider exposes ``classify(frame)`` returning a ``DetectionResult`` or
``None`` when it is unavailable. ``ProviderChain`` tries them in order and
moves to the next tier when one is unavailable or raises.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field

import config
from api_client import BackendClient, ServerUnreachableError
from auth import Session
from camera import Frame
from geolocation import LocationService
from models import BBox, BoundingBoxDetection, Category, DetectionResult

logger = logging.getLogger(__name__)


class NoProviderAvailable(Exception):
    """Every tier was unavailable or failed."""


class ClassificationProvider:
    name = "provider"

    async def classify(self, frame: Frame | None) -> DetectionResult | None:
        raise NotImplementedError


class RemoteProvider(ClassificationProvider):
    """Uploads the frame to the backend, probing health while it is offline."""

    name = "remote"

    def __init__(
        self,
        backend: BackendClient,
        session: Session | None = None,
        location_service: LocationService | None = None,
    ):
        self.backend = backend
        self.session = session
        self.location_service = location_service
        self.online: bool | None = None  # None until the first health check

    async def check_health(self) -> bool:
        result = await self.backend.check_health()
        self.online = result["success"]
        return self.online

    async def classify(self, frame: Frame | None) -> DetectionResult | None:
        if not config.USE_REMOTE_API or frame is None:
            return None
        if not self.online and not await self.check_health():
            logger.debug("Backend offline, skipping remote tier")
            return None

        location = self.location_service.current if self.location_service else None
        token = self.session.token if self.session else None
        try:
            result = await self.backend.detect_fire(frame.jpeg, location, token)
        except ServerUnreachableError:
            self.online = False
            raise
        self.online = True
        return result


class LocalModelProvider(ClassificationProvider):
    """Runs a fire/smoke YOLO checkpoint on-device when one is configured."""

    name = "local"

    def __init__(self, model_path: str | None = None):
        self.model_path = model_path if model_path is not None else config.LOCAL_MODEL_PATH
        self.model = None
        self._load_failed = False

    def load_model(self) -> bool:
        if self.model is not None:
            return True
        if not self.model_path or self._load_failed:
            return False
        try:
            from ultralytics import YOLO
            self.model = YOLO(self.model_path)
            logger.info("Local model loaded from %s", self.model_path)
            return True
        except Exception as e:
            logger.error("Failed to load local model %s: %s", self.model_path, e)
            self._load_failed = True
            return False

    def _infer(self, frame: Frame) -> DetectionResult:
        results = self.model(
            frame.image,
            conf=config.LOCAL_MODEL_CONFIDENCE,
            device=config.LOCAL_MODEL_DEVICE,
            verbose=False,
        )
        detections = []
        for result in results:
            for box in result.boxes:
                cls_name = self.model.names[int(box.cls[0])]
                if cls_name not in ("fire", "smoke"):
                    continue
                x1, y1, x2, y2 = box.xyxy[0].tolist()
                detections.append(BoundingBoxDetection(
                    class_name=cls_name,
                    confidence=float(box.conf[0]),
                    bbox=BBox(x=x1, y=y1, width=x2 - x1, height=y2 - y1),
                ))

        has_fire = any(d.class_name == "fire" for d in detections)
        has_smoke = any(d.class_name == "smoke" for d in detections)
        confidence = max((d.confidence for d in detections), default=0.0) * 100
        return DetectionResult(
            has_fire=has_fire,
            has_smoke=has_smoke,
            # No scene classifier on-device
            category=Category.UNCERTAIN if detections else Category.NO_FIRE,
            confidence=confidence,
            detections=tuple(detections),
            image_size=(frame.width, frame.height),
            source=self.name,
        )

    async def classify(self, frame: Frame | None) -> DetectionResult | None:
        if frame is None or not self.load_model():
            return None
        return await asyncio.to_thread(self._infer, frame)


class SimulatorProvider(ClassificationProvider):
    """Manufactures plausible results; always available."""

    name = "simulator"

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()

    def simulate(self, frame: Frame | None = None) -> DetectionResult:
        """Boxes are placed in the frame, or in a nominal camera frame when there is none."""
        if frame is not None:
            image_size = (frame.width, frame.height)
        else:
            image_size = (config.FRAME_WIDTH, config.FRAME_HEIGHT)
        if self.rng.random() >= config.SIMULATOR_FIRE_PROBABILITY:
            return DetectionResult(
                has_fire=False,
                has_smoke=False,
                category=Category.NO_FIRE,
                confidence=0.0,
                source=self.name,
            )

        category = Category(self.rng.choice(config.SIMULATOR_CATEGORIES))
        box_class = "fire" if self.rng.random() > 0.5 else "smoke"
        detection = BoundingBoxDetection(
            class_name=box_class,
            confidence=0.8 + self.rng.random() * 0.15,
            bbox=BBox(
                x=self.rng.random() * 300,
                y=self.rng.random() * 400,
                width=100 + self.rng.random() * 100,
                height=100 + self.rng.random() * 100,
            ),
        )
        return DetectionResult(
            has_fire=True,
            has_smoke=box_class == "smoke",
            category=category,
            confidence=(0.7 + self.rng.random() * 0.25) * 100,
            detections=(detection,),
            image_size=image_size,
            source=self.name,
        )

    async def classify(self, frame: Frame | None) -> DetectionResult | None:
        return self.simulate(frame)


@dataclass
class ChainOutcome:
    result: DetectionResult
    provider: str
    errors: list[tuple[str, Exception]] = field(default_factory=list)

    @property
    def server_unreachable(self) -> bool:
        return any(isinstance(e, ServerUnreachableError) for _, e in self.errors)


class ProviderChain:
    def __init__(self, providers: list[ClassificationProvider]):
        self.providers = list(providers)

    def get(self, name: str) -> ClassificationProvider | None:
        return next((p for p in self.providers if p.name == name), None)

    async def classify(self, frame: Frame | None) -> ChainOutcome:
        errors: list[tuple[str, Exception]] = []
        for provider in self.providers:
            try:
                result = await provider.classify(frame)
            except Exception as e:
                logger.warning("Provider %s failed, falling back: %s", provider.name, e)
                errors.append((provider.name, e))
                continue
            if result is None:
                logger.debug("Provider %s unavailable", provider.name)
                continue
            return ChainOutcome(result=result, provider=provider.name, errors=errors)

        raise NoProviderAvailable(
            "No classification provider produced a result: "
            + ", ".join(f"{name}: {e}" for name, e in errors)
        )
