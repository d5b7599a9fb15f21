"""Device location snapshots with Kakao reverse geocoding."""

import logging
import time

import httpx

import config
from models import Location

logger = logging.getLogger(__name__)


def fallback_address(latitude: float, longitude: float) -> str:
    return f"Lat: {latitude:.4f}, Lng: {longitude:.4f}"


def format_kakao_address(document: dict) -> str | None:
    """Road address first (with building name or number), then lot address."""
    road = document.get("road_address")
    if road:
        parts = [
            road.get("region_1depth_name"),
            road.get("region_2depth_name"),
            road.get("region_3depth_name"),
            road.get("road_name"),
        ]
        if road.get("building_name"):
            parts.append(road["building_name"])
        elif road.get("main_building_no"):
            parts.append(road["main_building_no"])
        return " ".join(p for p in parts if p).strip()

    address = document.get("address")
    if address:
        parts = [
            address.get("region_1depth_name"),
            address.get("region_2depth_name"),
            address.get("region_3depth_name"),
        ]
        return " ".join(p for p in parts if p).strip()
    return None


class LocationService:
    """Produces immutable ``Location`` snapshots for the configured device position."""

    def __init__(self, client: httpx.AsyncClient | None = None):
        self._client = client or httpx.AsyncClient(timeout=config.GEOCODE_TIMEOUT_SECONDS)
        self.current: Location | None = None
        self.refreshed_at: float | None = None  # monotonic

    async def aclose(self):
        await self._client.aclose()

    def is_stale(self, max_age: float | None = None) -> bool:
        """True when there is no snapshot or it is older than ``max_age`` seconds."""
        if self.current is None or self.refreshed_at is None:
            return True
        max_age = config.LOCATION_REFRESH_SECONDS if max_age is None else max_age
        return time.monotonic() - self.refreshed_at >= max_age

    def _position(self) -> tuple[float, float]:
        if config.DEVICE_LATITUDE is None or config.DEVICE_LONGITUDE is None:
            return config.DEFAULT_LOCATION["latitude"], config.DEFAULT_LOCATION["longitude"]
        return float(config.DEVICE_LATITUDE), float(config.DEVICE_LONGITUDE)

    async def reverse_geocode(self, latitude: float, longitude: float) -> str:
        if not config.KAKAO_API_KEY:
            return fallback_address(latitude, longitude)

        try:
            response = await self._client.get(
                config.KAKAO_GEOCODE_URL,
                params={"x": longitude, "y": latitude},
                headers={"Authorization": f"KakaoAK {config.KAKAO_API_KEY}"},
            )
            if response.is_success:
                documents = response.json().get("documents") or []
                if documents:
                    address = format_kakao_address(documents[0])
                    if address:
                        return address
                else:
                    logger.warning("No documents in Kakao geocoding response")
            else:
                logger.error("Kakao geocoding error %s: %s", response.status_code, response.text[:200])
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Reverse geocoding failed: %s", e)

        return fallback_address(latitude, longitude)

    async def refresh(self) -> Location:
        """Take a new snapshot of the device position and its address."""
        latitude, longitude = self._position()
        address = await self.reverse_geocode(latitude, longitude)
        self.current = Location(latitude=latitude, longitude=longitude, address=address)
        self.refreshed_at = time.monotonic()
        logger.info("Current location: %.5f, %.5f (%s)", latitude, longitude, address)
        return self.current
