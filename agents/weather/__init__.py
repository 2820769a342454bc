"""
Weather service package
"""

from .service import WeatherService
from .models import WeatherData, ForecastDay

__all__ = ["WeatherService", "WeatherData", "ForecastDay"]
