"""Shared test fixtures for the AquaMind backend tests."""

from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pytest
from dateutil import tz
from fastapi.testclient import TestClient

from agents.assistant.actuation import SimulatedController
from agents.assistant.agent import AssistantAgent
from agents.assistant.conversation import ConversationStore
from agents.base import AgentRegistry
from agents.planner.agent import PlannerAgent
from agents.planner.generation import FixtureGenerationBackend
from agents.schedule.clock import LocalClock
from agents.schedule.engine import expected_days
from agents.schedule.manager import PlanManager
from agents.schedule.models import SprinklerZone, WateringSchedule
from agents.weather.models import CurrentConditions, ForecastDay, WeatherData
from api.app import create_app
from core.config import Settings

TODAY = "2025-06-10"
TIMEZONE = "America/Chicago"


class FakeClock:
    """Settable UTC clock; the default instant is 05:10 local time in Chicago (CDT)."""

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime(2025, 6, 10, 10, 10, tzinfo=tz.UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)

    def set_local(self, hhmm: str, day: str = TODAY) -> None:
        local = datetime.fromisoformat(f"{day}T{hhmm}").replace(tzinfo=tz.gettz(TIMEZONE))
        self.now = local.astimezone(tz.UTC)


class FakeWeatherService:
    """Stands in for WeatherService; tests mutate ``data`` to change the forecast."""

    def __init__(self, data: WeatherData):
        self.data = data
        self.calls = 0

    async def get_weather(self, zip_code: str, use_cache: bool = True) -> WeatherData:
        self.calls += 1
        return self.data.model_copy(deep=True)


def build_weather(today: str = TODAY, probability: float = 20, high: float = 80,
                  amount: float = 0.0, recent_rainfall: float = 0.0, current_temp: float = 75) -> WeatherData:
    return WeatherData(
        current=CurrentConditions(temp=current_temp, description="Clear sky", humidity=40),
        forecast=[
            ForecastDay(date=day, temp_high=high, temp_low=high - 20,
                        precip_probability=probability, precip_amount=amount)
            for day in expected_days(today)
        ],
        recent_rainfall=recent_rainfall,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        environment="testing",
        generation_backend="fixture",
        zip_code="60601",
        current_user="admin",
    )


@pytest.fixture
def zones(settings) -> List[SprinklerZone]:
    return [SprinklerZone.model_validate(z) for z in settings.zones]


@pytest.fixture
def local_clock(clock):
    return LocalClock(TIMEZONE, source=clock)


@pytest.fixture
def manager(local_clock, zones):
    return PlanManager(local_clock, zones)


@pytest.fixture
def store(clock):
    return ConversationStore(clock=clock)


@pytest.fixture
def controller(clock):
    return SimulatedController(clock=clock)


@pytest.fixture
def weather():
    return FakeWeatherService(build_weather())


@pytest.fixture
def backend():
    return FixtureGenerationBackend()


@pytest.fixture
def planner(weather, manager, backend, settings):
    return PlannerAgent(weather, manager, backend, settings=settings)


@pytest.fixture
def assistant(store, controller, planner, settings):
    return AssistantAgent(store, controller, planner=planner, settings=settings)


@pytest.fixture
def client(planner, assistant):
    app = create_app()
    registry = AgentRegistry()
    registry.register(planner)
    registry.register(assistant)
    app.state.registry = registry
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_plan():
    """Build a 7-day plan from {day offset: [(zone_id, "HH:MM", minutes, canceled?)]}."""

    def _make(events: Optional[Dict[int, list]] = None, today: str = TODAY) -> WateringSchedule:
        events = events or {}
        schedule = []
        for offset, day in enumerate(expected_days(today)):
            day_events = []
            for entry in events.get(offset, []):
                zone_id, start, minutes = entry[:3]
                day_events.append({
                    "zoneId": zone_id,
                    "zoneName": f"Zone {zone_id}",
                    "startTime": start,
                    "durationMinutes": minutes,
                    "isCanceled": entry[3] if len(entry) > 3 else False,
                })
            schedule.append({"day": day, "events": day_events})
        return WateringSchedule.model_validate({"reasoning": "test plan", "schedule": schedule})

    return _make
