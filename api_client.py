"""HTTP client for the fire-detection backend (health check and detect-and-report)."""

import logging

import httpx

import config
from models import DetectionResult, Location

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """Base class for backend call failures."""


class ServerUnreachableError(BackendError):
    """Connection refused, DNS failure, or timeout."""


class BackendResponseError(BackendError):
    def __init__(self, status_code: int, message: str):
        super().__init__(f"Server error {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class MalformedResponseError(BackendError):
    """Response body was not the JSON shape we expect."""


def error_message(response: httpx.Response, default: str) -> str:
    """Pull a human-readable message out of an error response."""
    try:
        data = response.json()
    except ValueError:
        return response.text[:100] or default
    if not isinstance(data, dict):
        return default
    message = data.get("error") or data.get("message") or default
    if isinstance(message, list):
        message = ", ".join(str(m) for m in message)
    return str(message)


class BackendClient:
    """Thin async wrapper over ``httpx.AsyncClient`` bound to ``config.API_BASE_URL``."""

    def __init__(self, base_url: str | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = (base_url or config.API_BASE_URL).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=config.REQUEST_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def aclose(self):
        await self._client.aclose()

    @staticmethod
    def auth_headers(token: str | None) -> dict:
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send a request, mapping transport failures to ``ServerUnreachableError``."""
        try:
            return await self._client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            raise ServerUnreachableError(
                f"Cannot reach server at {self.base_url}: {e}"
            ) from e

    async def request_json(self, method: str, path: str, **kwargs):
        """Send a request and return the decoded JSON body of a 2xx response."""
        response = await self.request(method, path, **kwargs)
        if response.is_error:
            raise BackendResponseError(
                response.status_code, error_message(response, response.reason_phrase)
            )
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"Server returned non-JSON response: {response.text[:100]}"
            ) from e

    async def check_health(self) -> dict:
        """Check ``GET /api``. Never raises; returns ``{"success": bool, ...}``."""
        try:
            response = await self.request(
                "GET",
                config.API_ENDPOINTS["HEALTH"],
                headers={"Accept": "application/json"},
                timeout=config.HEALTH_TIMEOUT_SECONDS,
            )
        except ServerUnreachableError as e:
            logger.error("Backend health check failed: %s", e)
            return {"success": False, "error": str(e)}

        if response.is_error:
            logger.error("Backend health check returned %s", response.status_code)
            return {"success": False, "error": f"Server returned {response.status_code}"}

        try:
            data = response.json()
        except ValueError:
            data = {"status": "ok"}
        logger.info("Backend server is available")
        return {"success": True, "data": data}

    async def detect_fire(
        self,
        image: bytes,
        location: Location | None = None,
        token: str | None = None,
    ) -> DetectionResult:
        """Upload a JPEG frame for classification and auto-reporting."""
        loc = location or Location(**config.DEFAULT_LOCATION)
        files = {"file": ("fire_detection.jpg", image, "image/jpeg")}
        data = {
            "latitude": str(loc.latitude),
            "longitude": str(loc.longitude),
            "address": loc.address or config.DEFAULT_LOCATION["address"],
        }

        logger.debug("Uploading %d byte frame to %s", len(image), config.API_ENDPOINTS["DETECT"])
        payload = await self.request_json(
            "POST",
            config.API_ENDPOINTS["DETECT"],
            files=files,
            data=data,
            headers=self.auth_headers(token),
        )
        if not isinstance(payload, dict):
            raise MalformedResponseError("Detection response is not a JSON object")
        try:
            return DetectionResult.from_api_response(payload)
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedResponseError(f"Unexpected detection payload: {e}") from e
