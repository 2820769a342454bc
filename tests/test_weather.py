"""Tests for the weather service against mocked HTTP endpoints."""

import pytest
import requests
import responses

from agents.weather.service import WeatherService, describe_weather_code
from core.cache import CacheManager
from core.exceptions import ExternalAPIError, LocationNotFoundError, NetworkError

GEOCODE_URL = "https://api.zippopotam.us/us/60601"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

GEOCODE_PAYLOAD = {
    "post code": "60601",
    "places": [{"place name": "Chicago", "latitude": "41.8858", "longitude": "-87.6181"}],
}

FORECAST_PAYLOAD = {
    "current": {
        "temperature_2m": 78.4,
        "relative_humidity_2m": 55,
        "weather_code": 2,
        "wind_speed_10m": 8.1,
        "is_day": 1,
    },
    "daily": {
        "time": ["2025-06-09", "2025-06-10", "2025-06-11", "2025-06-12",
                 "2025-06-13", "2025-06-14", "2025-06-15", "2025-06-16"],
        "weather_code": [61, 0, 3, 63, 0, 1, 95, 2],
        "temperature_2m_max": [75.2, 82.6, 84.1, 79.0, 88.5, 90.2, 86.0, 81.3],
        "temperature_2m_min": [60.1, 64.0, 66.2, 62.0, 68.9, 70.4, 67.0, 63.3],
        "precipitation_sum": [0.42, 0.0, 0.0, 0.35, 0.0, 0.0, 0.8, 0.01],
        "precipitation_probability_max": [90, 5, 10, 70, 0, 5, 85, None],
        "relative_humidity_2m_mean": [80, 50, 52, 75, 45, 40, 70, 55],
    },
}


@pytest.fixture
def service(settings):
    return WeatherService(settings.weather_config, cache=CacheManager(ttl=600))


class TestParseForecast:
    def test_yesterday_becomes_recent_rainfall(self, service):
        weather = service.parse_forecast(FORECAST_PAYLOAD)

        assert weather.recent_rainfall == 0.42
        assert [f.date for f in weather.forecast][0] == "2025-06-10"
        assert len(weather.forecast) == 7

    def test_daily_values(self, service):
        weather = service.parse_forecast(FORECAST_PAYLOAD)

        storm = weather.forecast_for("2025-06-15")
        assert storm.temp_high == 86
        assert storm.precip_probability == 85
        assert storm.precip_amount == 0.8
        assert storm.description == "Thunderstorm"

    def test_missing_values_default(self, service):
        weather = service.parse_forecast(FORECAST_PAYLOAD)
        assert weather.forecast[-1].precip_probability == 0

    def test_current_conditions(self, service):
        current = service.parse_forecast(FORECAST_PAYLOAD).current

        assert current.temp == 78
        assert current.description == "Partly cloudy"
        assert current.is_day

    def test_unknown_code(self):
        assert describe_weather_code(42) == "Unknown weather"


class TestFetch:
    @responses.activate
    def test_fetch_weather(self, service):
        responses.add(responses.GET, GEOCODE_URL, json=GEOCODE_PAYLOAD)
        responses.add(responses.GET, FORECAST_URL, json=FORECAST_PAYLOAD)

        weather = service.fetch_weather("60601")

        assert weather.location.timezone == "America/Chicago"
        assert weather.location.latitude == pytest.approx(41.8858)
        forecast_call = responses.calls[1].request
        assert "past_days=1" in forecast_call.url
        assert "temperature_unit=fahrenheit" in forecast_call.url

    @responses.activate
    def test_unknown_zip(self, service):
        responses.add(responses.GET, "https://api.zippopotam.us/us/00000", json={}, status=404)

        with pytest.raises(LocationNotFoundError):
            service.fetch_weather("00000")

    @responses.activate
    def test_zip_without_places(self, service):
        responses.add(responses.GET, GEOCODE_URL, json={"places": []})

        with pytest.raises(LocationNotFoundError):
            service.geocode("60601")

    @responses.activate
    def test_connection_error_is_network_error(self, service):
        responses.add(responses.GET, GEOCODE_URL, body=requests.ConnectionError("refused"))

        with pytest.raises(NetworkError) as exc:
            service.fetch_weather("60601")
        assert exc.value.retryable

    @responses.activate
    def test_server_error_is_network_error(self, service):
        responses.add(responses.GET, GEOCODE_URL, json=GEOCODE_PAYLOAD)
        responses.add(responses.GET, FORECAST_URL, status=503)

        with pytest.raises(NetworkError):
            service.fetch_weather("60601")

    @responses.activate
    def test_open_meteo_error_payload(self, service):
        responses.add(responses.GET, GEOCODE_URL, json=GEOCODE_PAYLOAD)
        responses.add(responses.GET, FORECAST_URL, json={"error": True, "reason": "Bad latitude"})

        with pytest.raises(ExternalAPIError, match="Bad latitude"):
            service.fetch_weather("60601")


class TestCaching:
    @pytest.mark.asyncio
    @responses.activate
    async def test_second_call_hits_cache(self, service):
        responses.add(responses.GET, GEOCODE_URL, json=GEOCODE_PAYLOAD)
        responses.add(responses.GET, FORECAST_URL, json=FORECAST_PAYLOAD)

        first = await service.get_weather("60601")
        second = await service.get_weather("60601")

        assert first == second
        assert len(responses.calls) == 2

    @pytest.mark.asyncio
    @responses.activate
    async def test_bypass_cache(self, service):
        responses.add(responses.GET, GEOCODE_URL, json=GEOCODE_PAYLOAD)
        responses.add(responses.GET, FORECAST_URL, json=FORECAST_PAYLOAD)

        await service.get_weather("60601")
        await service.get_weather("60601", use_cache=False)

        assert len(responses.calls) == 4
