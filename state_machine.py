"""Detection session state and the alert decision engine for FireScout."""

import time
from dataclasses import dataclass, field
from enum import Enum

import config
from models import DetectionResult

CATEGORY_LABELS = {
    "wildfire": "Wildfire",
    "urban_fire": "Urban fire",
    "uncertain": "Unclassified fire",
    "no_fire": "No fire",
}

PROVIDER_LABELS = {
    "local": "the local model",
    "simulator": "the simulator",
}


class DetectionState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    CLASSIFYING = "classifying"
    REPORTED = "reported"
    DISPLAYED = "displayed"
    FAILED = "failed"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass
class Alert:
    type: str  # e.g., "fire_reported", "server_unreachable", "detection_failed"
    severity: Severity
    message: str
    timestamp: float = field(default_factory=time.time)
    actions: list[str] = field(default_factory=list)  # e.g., ["simulate"]

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "severity": self.severity.value,
            "message": self.message,
            "timestamp": self.timestamp,
            "actions": list(self.actions),
        }


class DetectionStateMachine:
    """Tracks one detection session and decides what each result means."""

    def __init__(self):
        self.state = DetectionState.IDLE
        self.reported = False
        self.current_result: DetectionResult | None = None
        self.server_online: bool | None = None
        self.last_error: str | None = None
        self.last_provider: str | None = None
        self.cycles = 0

        # Alert deduplication: alert_type -> last_fired timestamp
        self._alert_cooldowns: dict[str, float] = {}

    def reset(self):
        """Start a fresh session; cooldowns survive."""
        self.state = DetectionState.IDLE
        self.reported = False
        self.current_result = None
        self.last_error = None

    def clear_result(self):
        self.current_result = None
        if self.state != DetectionState.REPORTED:
            self.state = DetectionState.IDLE

    def begin_capture(self) -> bool:
        """Enter CAPTURING; False once the session has reported."""
        if self.reported:
            return False
        self.state = DetectionState.CAPTURING
        return True

    def begin_classify(self):
        self.state = DetectionState.CLASSIFYING

    def should_report(self, result: DetectionResult) -> bool:
        return result.has_fire and result.confidence >= config.REPORT_CONFIDENCE_THRESHOLD

    def show_result(self, result: DetectionResult, provider: str | None = None):
        """Display a result without reporting it; a reported session stays REPORTED."""
        self.cycles += 1
        self.current_result = result
        self.last_provider = provider
        self.last_error = None
        if not self.reported:
            self.state = DetectionState.DISPLAYED

    def apply_result(self, result: DetectionResult, provider: str | None = None) -> list[Alert]:
        """Record a classified result and return the alerts it raises.

        Fire at or above the threshold ends the session as REPORTED; anything
        else (smoke only, low confidence, nothing) is just DISPLAYED.
        """
        if not self.should_report(result):
            self.show_result(result, provider)
            return []

        now = time.time()
        self.cycles += 1
        self.current_result = result
        self.last_provider = provider
        self.last_error = None
        self.state = DetectionState.REPORTED
        self.reported = True

        label = CATEGORY_LABELS.get(result.category.value, result.category.value)
        if provider == "remote":
            outcome = "The report was sent to the server"
        else:
            source = PROVIDER_LABELS.get(provider, provider or "an offline classifier")
            outcome = f"Detected by {source}, not sent to the server"
        return [Alert(
            type="fire_reported",
            severity=Severity.CRITICAL,
            message=(
                f"Fire detected! {label}, risk {result.risk_level}%. "
                f"{outcome}. Detection has stopped."
            ),
            timestamp=now,
            actions=["view_reports"],
        )]

    def mark_server_status(self, online: bool, error: str | None = None) -> list[Alert]:
        now = time.time()
        alerts: list[Alert] = []
        self.server_online = online
        if not online:
            alert = self._maybe_alert(
                "server_unreachable", Severity.WARNING,
                f"Cannot reach the detection server. {error or ''}".strip(),
                now, actions=["check_server", "simulate"],
            )
            if alert:
                alerts.append(alert)
        return alerts

    def fail(self, error: str) -> list[Alert]:
        now = time.time()
        self.state = DetectionState.FAILED
        self.last_error = error
        alert = self._maybe_alert(
            "detection_failed", Severity.WARNING,
            f"Fire detection failed: {error}", now,
        )
        return [alert] if alert else []

    def _maybe_alert(
        self,
        alert_type: str,
        severity: Severity,
        message: str,
        now: float,
        cooldown: float | None = None,
        actions: list[str] | None = None,
    ) -> Alert | None:
        """Create an alert if not in cooldown period."""
        cd = cooldown if cooldown is not None else config.ALERT_COOLDOWN_SECONDS
        last = self._alert_cooldowns.get(alert_type)
        if last is not None and now - last < cd:
            return None
        self._alert_cooldowns[alert_type] = now
        return Alert(
            type=alert_type,
            severity=severity,
            message=message,
            timestamp=now,
            actions=actions or [],
        )

    def get_status(self) -> dict:
        result = self.current_result
        return {
            "state": self.state.value,
            "reported": self.reported,
            "server_online": self.server_online,
            "provider": self.last_provider,
            "last_error": self.last_error,
            "cycles": self.cycles,
            "fire_detected": result.fire_detected if result else False,
            "risk_level": result.risk_level if result else 0,
            "category": result.category.value if result else None,
            "result": result.to_dict() if result else None,
        }
