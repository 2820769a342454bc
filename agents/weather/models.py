"""
Pydantic models for the weather service
"""
from typing import List, Optional

from pydantic import Field

from agents.schedule.models import CamelModel


class CurrentConditions(CamelModel):
    temp: float = Field(..., description="Current temperature, °F")
    description: str = "Unknown weather"
    humidity: Optional[float] = None
    wind_speed: Optional[float] = Field(None, description="mph")
    is_day: bool = True


class ForecastDay(CamelModel):
    date: str = Field(..., description="YYYY-MM-DD")
    temp_high: float = Field(..., description="°F")
    temp_low: Optional[float] = Field(None, description="°F")
    precip_probability: float = Field(0, ge=0, le=100)
    precip_amount: float = Field(0, ge=0, description="inches")
    humidity: Optional[float] = None
    weather_code: Optional[int] = None
    description: str = "Unknown weather"


class Location(CamelModel):
    zip_code: str
    latitude: float
    longitude: float
    timezone: str


class WeatherData(CamelModel):
    current: CurrentConditions
    forecast: List[ForecastDay]
    recent_rainfall: float = Field(0, ge=0, description="inches over the last 24h")
    location: Optional[Location] = None
    fetched_at: Optional[str] = None

    def forecast_for(self, day: str) -> Optional[ForecastDay]:
        for f in self.forecast:
            if f.date == day:
                return f
        return None
