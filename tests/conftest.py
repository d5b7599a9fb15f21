"""Shared fixtures for FireScout tests."""

import json
import random
import sys
from pathlib import Path
from unittest.mock import MagicMock

import httpx
import numpy as np
import pytest

# Ensure project root is on sys.path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

# ── Mock heavy third-party imports before any project module loads ────────────
# ultralytics — imported locally inside detector.LocalModelProvider.load_model()
_mock_yolo_module = MagicMock()
sys.modules["ultralytics"] = _mock_yolo_module

# pyttsx3 — imported locally inside alerts._init_tts()
_mock_pyttsx3 = MagicMock()
sys.modules["pyttsx3"] = _mock_pyttsx3

# uvicorn (not needed at import time for tests)
sys.modules.setdefault("uvicorn", MagicMock())

import config  # noqa: E402 — must come after sys.path tweak
from api_client import BackendClient  # noqa: E402
from storage import HistoryStore, KeyValueStore  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_config(tmp_path):
    """Reset config values to defaults before each test."""
    config.API_BASE_URL = "http://backend.test"
    config.STORAGE_PATH = str(tmp_path / "storage.json")
    config.DETECTION_INTERVAL_SECONDS = 3.5
    config.REPORT_CONFIDENCE_THRESHOLD = 70
    config.USE_REMOTE_API = True
    config.SIMULATOR_ONLY = False
    config.LOCAL_MODEL_PATH = None
    config.SIMULATOR_FIRE_PROBABILITY = 0.15
    config.HISTORY_MAX_ENTRIES = 100
    config.DISPLAY_WIDTH = 640
    config.DISPLAY_HEIGHT = 360
    config.DEVICE_LATITUDE = None
    config.DEVICE_LONGITUDE = None
    config.KAKAO_API_KEY = ""
    config.LOCATION_REFRESH_SECONDS = 600
    config.ALERT_COOLDOWN_SECONDS = 30
    config.ALERT_LOG_SIZE = 100
    config.TTS_VOLUME_INFO = 0.7
    config.TTS_VOLUME_WARNING = 0.9
    config.TTS_VOLUME_CRITICAL = 1.0
    yield


class ScriptedRandom(random.Random):
    """``random.Random`` whose ``random()`` replays a fixed sequence."""

    def __init__(self, values):
        super().__init__(0)
        self._values = list(values)

    def random(self):
        return self._values.pop(0) if self._values else 0.5


@pytest.fixture
def scripted_random():
    return ScriptedRandom


@pytest.fixture
def kv_store(tmp_path):
    return KeyValueStore(str(tmp_path / "storage.json"))


@pytest.fixture
def history(kv_store):
    return HistoryStore(kv_store)


@pytest.fixture
def black_frame():
    """480p black frame."""
    return np.zeros((480, 640, 3), dtype=np.uint8)


def make_backend(handler) -> BackendClient:
    """BackendClient whose requests are answered by ``handler(request)``."""
    return BackendClient("http://backend.test", transport=httpx.MockTransport(handler))


@pytest.fixture
def backend_factory():
    return make_backend


@pytest.fixture
def fire_payload():
    """Backend response for a confident urban fire in a 640x480 image."""
    return {
        "status": "urban_fire",
        "has_fire": True,
        "has_smoke": False,
        "confidence": 85,
        "boxes": [
            {"x1": 100, "y1": 100, "x2": 200, "y2": 200, "confidence": 0.91, "class": "fire"},
        ],
        "scene_analysis": {
            "scene_type": "urban_fire",
            "wildfire_prob": 0.1,
            "urban_prob": 0.9,
            "confidence": 0.85,
        },
        "image_size": {"width": 640, "height": 480},
        "timestamp": 1700000000,
    }


@pytest.fixture
def smoke_payload(fire_payload):
    payload = json.loads(json.dumps(fire_payload))
    payload.update(status="uncertain", has_fire=False, has_smoke=True)
    payload["boxes"][0]["class"] = "smoke"
    return payload
