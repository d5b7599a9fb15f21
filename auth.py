"""Session handling and account endpoints (login, register, profile, password)."""

import json
import logging
import re

import config
from api_client import BackendClient, BackendError, ServerUnreachableError
from storage import KeyValueStore

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class Session:
    """Access token and user profile, persisted in the key-value store."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    @property
    def token(self) -> str | None:
        return self._store.get_item(config.TOKEN_KEY)

    @property
    def user(self) -> dict | None:
        raw = self._store.get_item(config.USER_KEY)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Stored user profile is corrupt, ignoring it")
            return None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def save(self, token: str, user: dict | None):
        self._store.set_item(config.TOKEN_KEY, token)
        self._store.set_item(config.USER_KEY, json.dumps(user or {}))

    def update_user(self, user: dict):
        self._store.set_item(config.USER_KEY, json.dumps(user))

    def clear(self):
        self._store.remove_item(config.TOKEN_KEY)
        self._store.remove_item(config.USER_KEY)


def failure_result(e: BackendError, base_url: str) -> dict:
    if isinstance(e, ServerUnreachableError):
        return {
            "success": False,
            "error": f"Cannot connect to the server ({base_url}). "
                     "Check that the backend is running and reachable.",
        }
    message = getattr(e, "message", None) or str(e)
    return {"success": False, "error": message}


class AuthClient:
    """Account operations. Every method returns ``{"success": bool, ...}``."""

    def __init__(self, backend: BackendClient, session: Session):
        self.backend = backend
        self.session = session

    async def login(self, email: str, password: str) -> dict:
        email = email.strip().lower()
        if not EMAIL_RE.match(email):
            return {"success": False, "error": "Enter a valid email address (e.g. user@example.com)."}

        logger.info("Login request for %s", email)
        try:
            data = await self.backend.request_json(
                "POST", config.API_ENDPOINTS["LOGIN"],
                json={"email": email, "password": password},
            )
        except BackendError as e:
            logger.error("Login failed: %s", e)
            return failure_result(e, self.backend.base_url)

        token = data.get("access_token")
        if not token:
            return {"success": False, "error": "Login response did not include an access token."}
        self.session.save(token, data.get("user"))
        return {"success": True, "user": data.get("user"), "token": token}

    async def register(self, user_data: dict) -> dict:
        try:
            data = await self.backend.request_json(
                "POST", config.API_ENDPOINTS["REGISTER"], json=user_data,
            )
        except BackendError as e:
            logger.error("Register failed: %s", e)
            return failure_result(e, self.backend.base_url)

        token = data.get("access_token")
        if token:
            self.session.save(token, data.get("user"))
        return {"success": True, "user": data.get("user"), "token": token}

    def logout(self):
        self.session.clear()
        logger.info("Logged out")

    async def get_profile(self) -> dict:
        try:
            data = await self.backend.request_json(
                "GET", config.API_ENDPOINTS["PROFILE"],
                headers=self.backend.auth_headers(self.session.token),
            )
        except BackendError as e:
            logger.error("Get profile failed: %s", e)
            return failure_result(e, self.backend.base_url)
        return {"success": True, "profile": data}

    async def update_profile(self, profile_data: dict) -> dict:
        try:
            data = await self.backend.request_json(
                "PATCH", config.API_ENDPOINTS["PROFILE"],
                json=profile_data,
                headers=self.backend.auth_headers(self.session.token),
            )
        except BackendError as e:
            logger.error("Update profile failed: %s", e)
            return failure_result(e, self.backend.base_url)
        self.session.update_user(data)
        return {"success": True, "user": data}

    async def change_password(self, current_password: str, new_password: str) -> dict:
        try:
            data = await self.backend.request_json(
                "POST", config.API_ENDPOINTS["CHANGE_PASSWORD"],
                json={"current_password": current_password, "new_password": new_password},
                headers=self.backend.auth_headers(self.session.token),
            )
        except BackendError as e:
            logger.error("Change password failed: %s", e)
            return failure_result(e, self.backend.base_url)
        return {"success": True, "message": data.get("message")}

    async def deactivate(self, password: str) -> dict:
        try:
            data = await self.backend.request_json(
                "POST", config.API_ENDPOINTS["DEACTIVATE"],
                json={"password": password},
                headers=self.backend.auth_headers(self.session.token),
            )
        except BackendError as e:
            logger.error("Deactivate failed: %s", e)
            return failure_result(e, self.backend.base_url)
        self.session.clear()
        return {"success": True, "message": data.get("message")}

    async def find_email(self, name: str, phone: str) -> dict:
        try:
            data = await self.backend.request_json(
                "POST", config.API_ENDPOINTS["FIND_EMAIL"],
                json={"name": name, "phone": phone},
            )
        except BackendError as e:
            return failure_result(e, self.backend.base_url)
        return {"success": True, "email": data.get("email")}

    async def reset_password(self, email: str, phone: str, new_password: str) -> dict:
        try:
            data = await self.backend.request_json(
                "POST", config.API_ENDPOINTS["RESET_PASSWORD"],
                json={"email": email, "phone": phone, "new_password": new_password},
            )
        except BackendError as e:
            return failure_result(e, self.backend.base_url)
        return {"success": True, "message": data.get("message")}
