"""FireScout configuration — endpoints, thresholds, timers, and storage settings."""

import os

# ── Backend ───────────────────────────────────────────────────────────────────
API_BASE_URL = os.environ.get("FIRESCOUT_API_BASE_URL", "http://localhost:3000")
REQUEST_TIMEOUT_SECONDS = 30.0
HEALTH_TIMEOUT_SECONDS = 5.0

API_ENDPOINTS = {
    # Auth
    "LOGIN": "/api/auth/login",
    "REGISTER": "/api/auth/register",
    "PROFILE": "/api/users/profile",
    "CHANGE_PASSWORD": "/api/user/password",
    "DEACTIVATE": "/api/user/deactivate",
    "FIND_EMAIL": "/api/auth/find-email",
    "RESET_PASSWORD": "/api/auth/reset-password",
    # Detection & reports
    "HEALTH": "/api",
    "DETECT": "/api/reports/detect",
    "MY_REPORTS": "/api/reports/my",
    "REPORT_DETAIL": "/api/reports",
    # User
    "MY_RANK": "/api/users/rank",
    "ALL_RANKS": "/api/ranks",
    "SHELTERS": "/api/shelters",
    "INQUIRIES": "/api/inquiries",
}

# ── Camera ────────────────────────────────────────────────────────────────────
CAMERA_INDEX = 0
FRAME_WIDTH = 1280
FRAME_HEIGHT = 720
CAPTURE_JPEG_QUALITY = 60  # speed over quality for uploads

# ── Display surface (overlay boxes are rescaled to this) ─────────────────────
DISPLAY_WIDTH = 640
DISPLAY_HEIGHT = 360

# ── Detection Loop ───────────────────────────────────────────────────────────
DETECTION_INTERVAL_SECONDS = 3.5
REPORT_CONFIDENCE_THRESHOLD = 70  # risk percentage, 0-100
USE_REMOTE_API = True
SIMULATOR_ONLY = False  # skip camera and remote tiers entirely

# ── Local Model (second provider tier) ───────────────────────────────────────
# Path to a fire/smoke YOLO checkpoint; None disables the local tier.
LOCAL_MODEL_PATH = None
LOCAL_MODEL_CONFIDENCE = 0.5
LOCAL_MODEL_DEVICE = None  # None = auto-detect

# ── Simulator (last provider tier) ───────────────────────────────────────────
SIMULATOR_FIRE_PROBABILITY = 0.15
SIMULATOR_CATEGORIES = ["wildfire", "urban_fire", "uncertain"]

# ── Location ─────────────────────────────────────────────────────────────────
# Fixed device position (no GPS on desktop); None falls back to the default.
DEVICE_LATITUDE = None
DEVICE_LONGITUDE = None
DEFAULT_LOCATION = {
    "latitude": 37.5665,
    "longitude": 126.9780,
    "address": "Location unavailable",
}
KAKAO_API_KEY = os.environ.get("KAKAO_API_KEY", "")
KAKAO_GEOCODE_URL = "https://dapi.kakao.com/v2/local/geo/coord2address.json"
GEOCODE_TIMEOUT_SECONDS = 5.0
LOCATION_REFRESH_SECONDS = 600  # re-geocode the device position this often

# ── Weather (KMA ultra-short-term observations) ──────────────────────────────
WEATHER_API_KEY = os.environ.get("KMA_API_KEY", "")
WEATHER_API_URL = (
    "http://apis.data.go.kr/1360000/VilageFcstInfoService_2.0/getUltraSrtNcst"
)
DEFAULT_WEATHER = {"humidity": 50.0, "wind_direction": "N", "wind_speed": 2.0}

# ── Local Storage ────────────────────────────────────────────────────────────
STORAGE_PATH = os.path.expanduser("~/.firescout/storage.json")
HISTORY_KEY = "detection_history"
TOKEN_KEY = "access_token"
USER_KEY = "user"
HISTORY_MAX_ENTRIES = 100

# ── Alerts ───────────────────────────────────────────────────────────────────
ALERT_COOLDOWN_SECONDS = 30
ALERT_LOG_SIZE = 100
TTS_RATE = 175  # words per minute
TTS_VOLUME_INFO = 0.7
TTS_VOLUME_WARNING = 0.9
TTS_VOLUME_CRITICAL = 1.0

# ── Dashboard ─────────────────────────────────────────────────────────────────
DASHBOARD_HOST = "0.0.0.0"
DASHBOARD_PORT = 8000
JPEG_QUALITY = 70  # 0-100, lower = smaller frames over WebSocket

# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.environ.get("FIRESCOUT_LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
