"""Local key-value storage and the bounded detection history list."""

import json
import logging
import os
import threading
import uuid

import config

logger = logging.getLogger(__name__)


class KeyValueStore:
    """Small JSON-file backed key-value store with string values."""

    def __init__(self, path: str | None = None):
        self.path = path or config.STORAGE_PATH
        self._lock = threading.Lock()

    def _read_all(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Storage file {self.path} is not a JSON object")
        return data

    def _write_all(self, data: dict):
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = self.path + ".tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f)
        os.replace(tmp_path, self.path)

    def get_item(self, key: str) -> str | None:
        with self._lock:
            return self._read_all().get(key)

    def set_item(self, key: str, value: str):
        with self._lock:
            try:
                data = self._read_all()
            except (OSError, ValueError):
                logger.warning("Storage file unreadable, starting fresh: %s", self.path)
                data = {}
            data[key] = value
            self._write_all(data)

    def remove_item(self, key: str):
        with self._lock:
            data = self._read_all()
            if key in data:
                del data[key]
                self._write_all(data)


class HistoryStore:
    """Ordered list of positive detections, capped with FIFO truncation."""

    def __init__(self, store: KeyValueStore, key: str | None = None, max_entries: int | None = None):
        self.store = store
        self.key = key or config.HISTORY_KEY
        self.max_entries = max_entries or config.HISTORY_MAX_ENTRIES

    def load(self) -> list[dict]:
        """Return the full history; missing or corrupt data reads as empty."""
        try:
            raw = self.store.get_item(self.key)
            if not raw:
                return []
            history = json.loads(raw)
        except (OSError, ValueError) as e:
            logger.error("Failed to load detection history: %s", e)
            return []
        if not isinstance(history, list):
            logger.error("Detection history is not a list, ignoring it")
            return []
        return history

    def save(self, record: dict) -> dict | None:
        """Append ``record`` with a generated id and persist the trimmed list."""
        try:
            history = self.load()
            saved = {**record, "id": uuid.uuid4().hex}
            history.append(saved)
            history = history[-self.max_entries:]
            self.store.set_item(self.key, json.dumps(history))
            return saved
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to save detection: %s", e)
            return None

    def delete(self, record_id: str) -> bool:
        try:
            history = self.load()
            filtered = [item for item in history if item.get("id") != record_id]
            self.store.set_item(self.key, json.dumps(filtered))
            return True
        except (OSError, ValueError) as e:
            logger.error("Failed to delete detection %s: %s", record_id, e)
            return False

    def clear(self) -> bool:
        try:
            self.store.remove_item(self.key)
            return True
        except (OSError, ValueError) as e:
            logger.error("Failed to clear detections: %s", e)
            return False

    def filter(self, category: str | None = None) -> list[dict]:
        history = self.load()
        if category in (None, "all"):
            return history
        return [h for h in history if h.get("category") == category]

    def stats(self) -> dict:
        history = self.load()
        return {
            "total": len(history),
            "wildfire": sum(1 for h in history if h.get("category") == "wildfire"),
            "urban_fire": sum(1 for h in history if h.get("category") == "urban_fire"),
            "uncertain": sum(1 for h in history if h.get("category") == "uncertain"),
        }
