"""KMA ultra-short-term weather observations for the current location."""

import logging
import math
from datetime import datetime, timedelta

import httpx

import config

logger = logging.getLogger(__name__)

# Lambert conformal conic projection parameters of the KMA 5 km grid
EARTH_RADIUS_KM = 6371.00877
GRID_KM = 5.0
STANDARD_LAT1 = 30.0
STANDARD_LAT2 = 60.0
ORIGIN_LON = 126.0
ORIGIN_LAT = 38.0
ORIGIN_X = 43
ORIGIN_Y = 136

WIND_DIRECTIONS = ["N", "NE", "E", "SE", "S", "SW", "W", "NW"]


def convert_to_grid(lat: float, lon: float) -> tuple[int, int]:
    """Convert WGS84 lat/lon to KMA forecast grid (nx, ny)."""
    degrad = math.pi / 180.0
    re = EARTH_RADIUS_KM / GRID_KM
    slat1 = STANDARD_LAT1 * degrad
    slat2 = STANDARD_LAT2 * degrad
    olon = ORIGIN_LON * degrad
    olat = ORIGIN_LAT * degrad

    sn = math.tan(math.pi * 0.25 + slat2 * 0.5) / math.tan(math.pi * 0.25 + slat1 * 0.5)
    sn = math.log(math.cos(slat1) / math.cos(slat2)) / math.log(sn)
    sf = math.tan(math.pi * 0.25 + slat1 * 0.5)
    sf = math.pow(sf, sn) * math.cos(slat1) / sn
    ro = math.tan(math.pi * 0.25 + olat * 0.5)
    ro = re * sf / math.pow(ro, sn)

    ra = math.tan(math.pi * 0.25 + lat * degrad * 0.5)
    ra = re * sf / math.pow(ra, sn)
    theta = lon * degrad - olon
    if theta > math.pi:
        theta -= 2.0 * math.pi
    if theta < -math.pi:
        theta += 2.0 * math.pi
    theta *= sn

    nx = math.floor(ra * math.sin(theta) + ORIGIN_X + 0.5)
    ny = math.floor(ro - ra * math.cos(theta) + ORIGIN_Y + 0.5)
    return nx, ny


def base_date_time(now: datetime | None = None) -> tuple[str, str]:
    """Observations are published on the hour and available from minute 10."""
    now = now or datetime.now()
    if now.minute < 10:
        now -= timedelta(hours=1)
    return now.strftime("%Y%m%d"), now.strftime("%H00")


def wind_direction(degrees: float) -> str:
    return WIND_DIRECTIONS[round(degrees / 45) % 8]


class WeatherService:
    def __init__(self, client: httpx.AsyncClient | None = None):
        self._client = client or httpx.AsyncClient(timeout=10.0)

    async def aclose(self):
        await self._client.aclose()

    async def get_weather(self, latitude: float, longitude: float, now: datetime | None = None) -> dict:
        """Return humidity, wind direction and wind speed; defaults on any failure."""
        nx, ny = convert_to_grid(latitude, longitude)
        base_date, base_time = base_date_time(now)
        logger.debug("Weather lookup (%s, %s) -> grid (%d, %d) at %s %s",
                     latitude, longitude, nx, ny, base_date, base_time)

        params = {
            "serviceKey": config.WEATHER_API_KEY,
            "numOfRows": 10,
            "pageNo": 1,
            "dataType": "JSON",
            "base_date": base_date,
            "base_time": base_time,
            "nx": nx,
            "ny": ny,
        }
        try:
            response = await self._client.get(config.WEATHER_API_URL, params=params)
        except httpx.HTTPError as e:
            logger.error("Weather API call failed: %s", e)
            return dict(config.DEFAULT_WEATHER)

        if response.is_error:
            logger.error("Weather API error: %s", response.status_code)
            return dict(config.DEFAULT_WEATHER)

        try:
            data = response.json()
        except ValueError:
            logger.error("Weather API returned non-JSON: %s", response.text[:200])
            return dict(config.DEFAULT_WEATHER)

        body = data.get("response", {}) if isinstance(data, dict) else {}
        if body.get("header", {}).get("resultCode") != "00":
            logger.warning("Weather API error: %s", body.get("header", {}).get("resultMsg"))
            return dict(config.DEFAULT_WEATHER)

        items = (body.get("body", {}).get("items") or {}).get("item") or []
        if not items:
            logger.warning("Weather API returned no items, using defaults")
            return dict(config.DEFAULT_WEATHER)

        weather = {"humidity": 50.0, "wind_direction": "N", "wind_speed": 0.0}
        for item in items:
            try:
                value = float(item.get("obsrValue"))
            except (TypeError, ValueError):
                continue
            category = item.get("category")
            if category == "REH":
                weather["humidity"] = value
            elif category == "VEC":
                weather["wind_direction"] = wind_direction(value)
            elif category == "WSD":
                weather["wind_speed"] = value
        return weather
