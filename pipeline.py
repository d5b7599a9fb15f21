"""The detect-and-report cycle: capture → classify → interpret → persist."""

import logging
from collections.abc import Callable

import numpy as np

import config
from alerts import AlertManager
from camera import Camera, CameraError, Frame
from detector import NoProviderAvailable, ProviderChain, SimulatorProvider
from geolocation import LocationService
from models import DetectionResult
from overlay import draw_overlay, rescale_result
from scheduler import CaptureScheduler
from state_machine import Alert, DetectionStateMachine
from storage import HistoryStore

logger = logging.getLogger(__name__)


class DetectionPipeline:
    """Runs capture cycles for one device and owns its scheduler."""

    def __init__(
        self,
        chain: ProviderChain,
        history: HistoryStore,
        camera: Camera | None = None,
        alert_manager: AlertManager | None = None,
        location_service: LocationService | None = None,
        state_machine: DetectionStateMachine | None = None,
        interval: float | None = None,
    ):
        self.chain = chain
        self.history = history
        self.camera = camera
        self.alert_manager = alert_manager
        self.location_service = location_service
        self.state_machine = state_machine or DetectionStateMachine()
        self.scheduler = CaptureScheduler(self.detect_and_report, interval, on_stop=self._on_stop)
        self.frame_listeners: list[Callable[[np.ndarray], None]] = []
        self.last_frame: np.ndarray | None = None
        self._generation = 0

    # ── Session control ──────────────────────────────────────────────────

    @property
    def is_active(self) -> bool:
        return self.scheduler.is_active

    def start(self):
        if self.is_active:
            return
        self._generation += 1
        self.state_machine.reset()
        self.scheduler.start()

    def stop(self):
        self.scheduler.stop()

    def _on_stop(self):
        # Keep the reported result visible; clear anything transient.
        if not self.state_machine.reported:
            self.state_machine.clear_result()

    def _emit(self, alerts: list[Alert]):
        if not self.alert_manager:
            return
        for alert in alerts:
            self.alert_manager.handle_alert(alert)

    # ── One cycle ────────────────────────────────────────────────────────

    async def _capture(self) -> Frame | None:
        if self.camera is None or config.SIMULATOR_ONLY:
            return None
        try:
            return await self.camera.take_photo()
        except CameraError as e:
            logger.warning("Frame capture failed: %s", e)
            return None

    async def _refresh_location(self):
        if self.location_service is not None and self.location_service.is_stale():
            await self.location_service.refresh()

    async def detect_and_report(self) -> DetectionResult | None:
        """Run one capture cycle; returns the interpreted result, if any."""
        generation = self._generation
        if not self.state_machine.begin_capture():
            return None

        frame = await self._capture()
        if frame is not None:
            self.last_frame = frame.image
        await self._refresh_location()

        self.state_machine.begin_classify()
        try:
            outcome = await self.chain.classify(frame)
        except NoProviderAvailable as e:
            logger.error("%s", e)
            self._emit(self.state_machine.fail(str(e)))
            return None

        if generation != self._generation:
            logger.info("Discarding result from a previous detection session")
            return None

        remote = self.chain.get("remote")
        online = getattr(remote, "online", None)
        if outcome.server_unreachable:
            error = next((str(e) for name, e in outcome.errors if name == "remote"), None)
            self._emit(self.state_machine.mark_server_status(False, error))
        elif online is False:
            self._emit(self.state_machine.mark_server_status(False, "Health check failed."))
        elif online:
            self.state_machine.mark_server_status(True)

        result = outcome.result
        if frame is not None:
            self._publish_frame(frame, result)

        display = rescale_result(result, (config.DISPLAY_WIDTH, config.DISPLAY_HEIGHT))
        alerts = self.state_machine.apply_result(display, outcome.provider)

        if self.state_machine.reported:
            self.stop()
            self._persist(result)
        elif result.has_smoke and not result.has_fire:
            logger.info("Smoke detected (risk %d%%), not reported", result.risk_level)

        self._emit(alerts)
        return display

    def _persist(self, result: DetectionResult) -> dict | None:
        record = result.to_dict()
        location = self.location_service.current if self.location_service else None
        record["location"] = location.to_dict() if location else None
        if result.annotated_image:
            record["annotated_image"] = result.annotated_image
        saved = self.history.save(record)
        if saved:
            logger.info("Detection %s saved to history", saved["id"])
        return saved

    def _publish_frame(self, frame: Frame, result: DetectionResult):
        if not self.frame_listeners:
            return
        annotated = draw_overlay(
            frame.image, rescale_result(result, (frame.width, frame.height))
        )
        for callback in list(self.frame_listeners):
            try:
                callback(annotated)
            except Exception:
                logger.exception("Frame listener failed")

    async def run_simulation(self) -> DetectionResult:
        """Manual fallback offered when the server is unreachable."""
        simulator = self.chain.get("simulator") or SimulatorProvider()
        result = await simulator.classify(None)
        display = rescale_result(result, (config.DISPLAY_WIDTH, config.DISPLAY_HEIGHT))
        self.state_machine.show_result(display, simulator.name)
        return display
