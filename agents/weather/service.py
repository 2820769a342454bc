"""
Weather service - postal code geocoding and 7-day Open-Meteo forecast
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import requests

from agents.schedule.clock import timezone_for_zip
from agents.weather.models import CurrentConditions, ForecastDay, Location, WeatherData
from core.cache import CacheManager
from core.exceptions import LocationNotFoundError, NetworkError, ExternalAPIError

logger = logging.getLogger(__name__)

# WMO weather interpretation codes
WMO_CODES = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    56: "Light freezing drizzle",
    57: "Dense freezing drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    66: "Light freezing rain",
    67: "Heavy freezing rain",
    71: "Slight snow fall",
    73: "Moderate snow fall",
    75: "Heavy snow fall",
    77: "Snow grains",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}


def describe_weather_code(code: Optional[int]) -> str:
    return WMO_CODES.get(code, "Unknown weather")


class WeatherService:
    """Fetches and caches weather keyed by postal code"""

    def __init__(self, config: Dict[str, Any], cache: Optional[CacheManager] = None,
                 session: Optional[requests.Session] = None):
        self.config = config
        self.cache = cache
        self.session = session or requests.Session()
        self.timeout = config.get("request_timeout", 20)

    def _safe_num(self, v) -> Optional[float]:
        try:
            return float(v)
        except (TypeError, ValueError):
            return None

    def _safe_idx(self, seq, i):
        if not isinstance(seq, list):
            return None
        try:
            return seq[i]
        except (IndexError, TypeError):
            return None

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Tuple[int, Dict[str, Any]]:
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Weather request to {url} failed: {e}")
            raise NetworkError(f"Weather service unreachable: {e}") from e

        if resp.status_code == 404:
            return 404, {}
        try:
            resp.raise_for_status()
            return resp.status_code, resp.json()
        except requests.HTTPError as e:
            raise NetworkError(f"Weather service returned HTTP {resp.status_code}") from e
        except ValueError as e:
            raise ExternalAPIError(f"Weather service returned invalid JSON: {e}") from e

    def geocode(self, zip_code: str) -> Location:
        """Resolve a US postal code to coordinates"""
        status, payload = self._get_json(f"{self.config['geocode_url']}/{zip_code}")
        if status == 404:
            raise LocationNotFoundError(f"Zip code {zip_code} not found")

        places = payload.get("places") or []
        if not places:
            raise LocationNotFoundError(f"Zip code {zip_code} not found")

        return Location(
            zip_code=zip_code,
            latitude=float(places[0]["latitude"]),
            longitude=float(places[0]["longitude"]),
            timezone=timezone_for_zip(zip_code),
        )

    def fetch_weather(self, zip_code: str) -> WeatherData:
        """Blocking fetch of current conditions, trailing rainfall and the 7-day forecast"""
        location = self.geocode(zip_code)
        params = {
            "latitude": location.latitude,
            "longitude": location.longitude,
            "current": "temperature_2m,relative_humidity_2m,weather_code,wind_speed_10m,precipitation,is_day",
            "daily": ",".join([
                "weather_code",
                "temperature_2m_max",
                "temperature_2m_min",
                "precipitation_sum",
                "precipitation_probability_max",
                "relative_humidity_2m_mean",
            ]),
            "temperature_unit": "fahrenheit",
            "wind_speed_unit": "mph",
            "precipitation_unit": "inch",
            "timezone": location.timezone,
            "forecast_days": self.config.get("forecast_days", 7),
            "past_days": 1,
        }

        status, payload = self._get_json(self.config["forecast_url"], params)
        if status == 404 or payload.get("error"):
            reason = payload.get("reason", "Open-Meteo error")
            logger.error(f"Open-Meteo API error: {reason}")
            raise ExternalAPIError(reason)

        weather = self.parse_forecast(payload, location)
        logger.info(f"Weather fetched for {zip_code}: {len(weather.forecast)} forecast days")
        return weather

    def parse_forecast(self, payload: Dict[str, Any], location: Optional[Location] = None) -> WeatherData:
        """Map an Open-Meteo payload; daily arrays start with yesterday (past_days=1)"""
        current = payload.get("current", {}) or {}
        daily = payload.get("daily", {}) or {}
        times: List[str] = daily.get("time", []) or []

        def col(name: str, i: int) -> Optional[float]:
            return self._safe_num(self._safe_idx(daily.get(name), i))

        recent = col("precipitation_sum", 0) or 0.0
        forecast = []
        for i in range(1, len(times)):
            code = self._safe_idx(daily.get("weather_code"), i)
            forecast.append(ForecastDay(
                date=times[i],
                temp_high=round(col("temperature_2m_max", i) or 0.0),
                temp_low=round(col("temperature_2m_min", i)) if col("temperature_2m_min", i) is not None else None,
                precip_probability=col("precipitation_probability_max", i) or 0.0,
                precip_amount=round(col("precipitation_sum", i) or 0.0, 2),
                humidity=col("relative_humidity_2m_mean", i),
                weather_code=code,
                description=describe_weather_code(code),
            ))

        return WeatherData(
            current=CurrentConditions(
                temp=round(self._safe_num(current.get("temperature_2m")) or 0.0),
                description=describe_weather_code(current.get("weather_code")),
                humidity=self._safe_num(current.get("relative_humidity_2m")),
                wind_speed=self._safe_num(current.get("wind_speed_10m")),
                is_day=current.get("is_day") == 1,
            ),
            forecast=forecast,
            recent_rainfall=round(max(recent, 0.0), 2),
            location=location,
            fetched_at=datetime.now().isoformat(),
        )

    async def get_weather(self, zip_code: str, use_cache: bool = True) -> WeatherData:
        """Fetch weather without blocking the event loop; cached per postal code"""
        cache_key = f"weather:{zip_code}"
        if use_cache and self.cache:
            cached = await self.cache.get(cache_key)
            if cached:
                logger.info(f"Cache hit for key: {cache_key}")
                return WeatherData.model_validate(cached)

        loop = asyncio.get_running_loop()
        weather = await loop.run_in_executor(None, self.fetch_weather, zip_code)

        if self.cache:
            await self.cache.set(cache_key, weather.model_dump())
        return weather
