"""Alert surfacing for FireScout — bounded alert log, listeners, and voice."""

import logging
import subprocess
import sys
import threading
from collections.abc import Callable

import config
from state_machine import Alert, Severity

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.CRITICAL: logging.CRITICAL,
}


class AlertManager:
    """Keeps recent alerts, notifies listeners, and optionally speaks them."""

    def __init__(self, voice: bool = True):
        self._tts_engine = None
        self._tts_lock = threading.Lock()
        self.voice = voice
        if voice:
            self._init_tts()

        self.alert_log: list[dict] = []
        self._log_lock = threading.Lock()
        self._listeners: list[Callable[[dict], None]] = []

    def _init_tts(self):
        try:
            import pyttsx3
            self._tts_engine = pyttsx3.init()
            self._tts_engine.setProperty("rate", config.TTS_RATE)
        except Exception as e:
            logger.info("pyttsx3 unavailable, using system speech: %s", e)
            self._tts_engine = None

    def add_listener(self, callback: Callable[[dict], None]):
        self._listeners.append(callback)

    def handle_alert(self, alert: Alert):
        entry = alert.to_dict()
        logger.log(_LOG_LEVELS.get(alert.severity, logging.INFO), "[%s] %s", alert.type, alert.message)

        with self._log_lock:
            self.alert_log.append(entry)
            if len(self.alert_log) > config.ALERT_LOG_SIZE:
                self.alert_log = self.alert_log[-config.ALERT_LOG_SIZE:]

        for callback in list(self._listeners):
            try:
                callback(entry)
            except Exception:
                logger.exception("Alert listener failed")

        if self.voice:
            thread = threading.Thread(
                target=self._speak, args=(alert.message, alert.severity), daemon=True
            )
            thread.start()

    def _speak(self, text: str, severity: Severity):
        volume = {
            Severity.INFO: config.TTS_VOLUME_INFO,
            Severity.WARNING: config.TTS_VOLUME_WARNING,
            Severity.CRITICAL: config.TTS_VOLUME_CRITICAL,
        }.get(severity, config.TTS_VOLUME_INFO)

        with self._tts_lock:
            if self._tts_engine is not None:
                try:
                    self._tts_engine.setProperty("volume", volume)
                    self._tts_engine.say(text)
                    self._tts_engine.runAndWait()
                    return
                except Exception as e:
                    logger.warning("TTS engine failed, falling back to system speech: %s", e)

            self._system_speak(text)

    def _system_speak(self, text: str):
        try:
            if sys.platform == "darwin":
                subprocess.run(["say", text], timeout=15, check=False)
            elif sys.platform == "linux":
                subprocess.run(
                    ["espeak", text], timeout=15, check=False,
                    stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
                )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug("System speech unavailable: %s", e)

    def get_recent_alerts(self, n: int = 50) -> list[dict]:
        with self._log_lock:
            return list(self.alert_log[-n:])
