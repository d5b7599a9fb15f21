"""FastAPI + WebSocket backend for the FireScout dashboard."""

import asyncio
import base64
import json
import logging
import math
from pathlib import Path

import cv2
import numpy as np
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

import config

logger = logging.getLogger(__name__)

app = FastAPI(title="FireScout Dashboard")

STATIC_DIR = Path(__file__).parent / "static"
app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

# ── Shared State (set by main.py) ────────────────────────────────────────────
_shared = {
    "pipeline": None,          # DetectionPipeline
    "alert_manager": None,     # AlertManager
    "history": None,           # HistoryStore
    "location_service": None,  # LocationService
    "weather": None,           # WeatherService
}

_frame_clients: list[WebSocket] = []
_alert_clients: list[WebSocket] = []
_background_tasks: set[asyncio.Task] = set()


def set_shared_state(key: str, value):
    """Called by main.py to share components with the dashboard."""
    _shared[key] = value


def get_shared_state(key: str):
    return _shared.get(key)


def _require(key: str):
    component = _shared.get(key)
    if component is None:
        raise HTTPException(status_code=503, detail=f"{key} not initialized")
    return component


# ── REST Endpoints ───────────────────────────────────────────────────────────

@app.get("/", response_class=HTMLResponse)
async def root():
    html_path = STATIC_DIR / "index.html"
    return HTMLResponse(content=html_path.read_text())


@app.get("/api/status")
async def get_status():
    pipeline = _shared.get("pipeline")
    if pipeline is None:
        return {"active": False, "processing": False, "state": "idle"}
    location = pipeline.location_service.current if pipeline.location_service else None
    return {
        **pipeline.state_machine.get_status(),
        "active": pipeline.is_active,
        "processing": pipeline.scheduler.is_processing,
        "interval": pipeline.scheduler.interval,
        "location": location.to_dict() if location else None,
    }


@app.post("/api/detection/start")
async def start_detection():
    pipeline = _require("pipeline")
    pipeline.start()
    return {"status": "ok", "active": pipeline.is_active}


@app.post("/api/detection/stop")
async def stop_detection():
    pipeline = _require("pipeline")
    pipeline.stop()
    return {"status": "ok", "active": pipeline.is_active}


@app.post("/api/simulate")
async def simulate():
    pipeline = _require("pipeline")
    result = await pipeline.run_simulation()
    return result.to_dict()


@app.get("/api/history")
async def get_history(category: str | None = None):
    history = _shared.get("history")
    if history is None:
        return []
    return history.filter(category)


@app.get("/api/history/stats")
async def get_history_stats():
    history = _shared.get("history")
    if history is None:
        return {"total": 0, "wildfire": 0, "urban_fire": 0, "uncertain": 0}
    return history.stats()


@app.delete("/api/history/{record_id}")
async def delete_history_record(record_id: str):
    history = _require("history")
    return {"status": "ok" if history.delete(record_id) else "error", "id": record_id}


@app.delete("/api/history")
async def clear_history():
    history = _require("history")
    return {"status": "ok" if history.clear() else "error"}


@app.get("/api/alerts")
async def get_alerts():
    am = _shared.get("alert_manager")
    if am is None:
        return []
    return am.get_recent_alerts()


@app.get("/api/weather")
async def get_weather():
    weather = _require("weather")
    location_service = _shared.get("location_service")
    location = location_service.current if location_service else None
    lat = location.latitude if location else config.DEFAULT_LOCATION["latitude"]
    lng = location.longitude if location else config.DEFAULT_LOCATION["longitude"]
    return await weather.get_weather(lat, lng)


class ConfigUpdate(BaseModel):
    key: str
    value: bool | int | float | str | None


# Keys whose default is None, with the type they take when set
_OPTIONAL_KEYS = {
    "DEVICE_LATITUDE": float,
    "DEVICE_LONGITUDE": float,
    "LOCAL_MODEL_PATH": str,
    "LOCAL_MODEL_DEVICE": str,
}


def _coerce_config_value(key: str, value):
    """Convert ``value`` to the type of the current setting; raises ValueError if it can't be."""
    current = getattr(config, key)
    if isinstance(current, (dict, list)):
        raise ValueError(f"{key} cannot be changed at runtime")
    target = _OPTIONAL_KEYS.get(key, type(current))
    if value is None:
        if key not in _OPTIONAL_KEYS:
            raise ValueError(f"{key} cannot be empty")
        return None
    if target is bool:
        if not isinstance(value, bool):
            raise ValueError(f"{key} expects true or false")
        return value
    if target in (int, float):
        if isinstance(value, bool):
            raise ValueError(f"{key} expects a number")
        number = float(value)
        if not math.isfinite(number):
            raise ValueError(f"{key} expects a finite number")
        if target is int and number.is_integer():
            return int(number)
        return number
    if target is str:
        if not isinstance(value, str):
            raise ValueError(f"{key} expects a string")
        return value
    raise ValueError(f"{key} cannot be changed at runtime")


@app.post("/api/config")
async def update_config(update: ConfigUpdate):
    if not update.key.isupper() or not hasattr(config, update.key):
        return {"status": "error", "message": f"Unknown config key: {update.key}"}
    try:
        value = _coerce_config_value(update.key, update.value)
    except ValueError as e:
        return {"status": "error", "message": str(e)}
    if update.key == "DETECTION_INTERVAL_SECONDS" and value <= 0:
        return {"status": "error", "message": "DETECTION_INTERVAL_SECONDS must be positive"}

    setattr(config, update.key, value)
    pipeline = _shared.get("pipeline")
    if update.key == "DETECTION_INTERVAL_SECONDS" and pipeline is not None:
        pipeline.scheduler.interval = value
    location_service = _shared.get("location_service")
    if update.key.startswith("DEVICE_") and location_service is not None:
        await location_service.refresh()
    return {"status": "ok", "key": update.key, "value": value}


# ── WebSocket: Frames and Alerts ─────────────────────────────────────────────

async def _hold_open(websocket: WebSocket, clients: list[WebSocket]):
    await websocket.accept()
    clients.append(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        if websocket in clients:
            clients.remove(websocket)


@app.websocket("/ws")
async def ws_frames(websocket: WebSocket):
    await _hold_open(websocket, _frame_clients)


@app.websocket("/ws/alerts")
async def ws_alerts(websocket: WebSocket):
    await _hold_open(websocket, _alert_clients)


async def _broadcast(clients: list[WebSocket], message: str):
    disconnected = []
    for ws in clients:
        try:
            await ws.send_text(message)
        except Exception:
            disconnected.append(ws)
    for ws in disconnected:
        if ws in clients:
            clients.remove(ws)


def _schedule(coro):
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        coro.close()
        return None
    task = loop.create_task(coro)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


def broadcast_frame(frame: np.ndarray):
    """Encode an annotated frame and push it to connected frame clients."""
    if not _frame_clients:
        return
    ok, buffer = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, config.JPEG_QUALITY])
    if not ok:
        logger.warning("Could not encode frame for dashboard")
        return
    _schedule(_broadcast(_frame_clients, base64.b64encode(buffer).decode("utf-8")))


def broadcast_alert(alert_dict: dict):
    if not _alert_clients:
        return
    _schedule(_broadcast(_alert_clients, json.dumps(alert_dict)))
