# server/core/config.py
"""
Configuration management for the AquaMind backend
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional, Dict, Any
import logging
import os
from functools import lru_cache
from enum import Enum
from dotenv import load_dotenv
load_dotenv()

logger = logging.getLogger(__name__)

class Environment(str, Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"

class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"

class GenerationBackendKind(str, Enum):
    FIXTURE = "fixture"
    GEMINI = "gemini"

DEFAULT_ZONES: List[Dict[str, Any]] = [
    {"id": 1, "name": "Front Lawn", "relay": 1, "plantType": "Grass", "sprinklerType": "Spray",
     "sunExposure": "Full Sun", "waterRequirement": "Standard", "headDetails": {"arc180": 10, "arc90": 5}},
    {"id": 2, "name": "Flower Beds", "relay": 2, "plantType": "Flowers", "sprinklerType": "Drip",
     "sunExposure": "Partial Shade", "waterRequirement": "Standard", "flowRateGPH": 20},
    {"id": 3, "name": "Vegetable Garden", "relay": 3, "plantType": "Vegetables", "sprinklerType": "Spray",
     "sunExposure": "Full Sun", "waterRequirement": "High", "headDetails": {"arc180": 10}},
    {"id": 4, "name": "Backyard", "relay": 4, "plantType": "Grass", "sprinklerType": "Rotor",
     "sunExposure": "Partial Shade", "waterRequirement": "Standard", "headDetails": {"arc360": 4, "arc180": 4}},
]

class Settings(BaseSettings):
    """Application settings with validation"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Environment
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = True

    # API Configuration
    api_title: str = "AquaMind Irrigation Backend"
    api_version: str = "1.0.0"
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Logging
    log_level: LogLevel = LogLevel.INFO
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # CORS
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:4173"
    ]
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = ["*"]
    cors_allow_headers: List[str] = ["*"]

    # Generation backend
    generation_backend: GenerationBackendKind = GenerationBackendKind.FIXTURE
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    generation_timeout_seconds: float = 45.0

    # Cache Configuration
    cache_enabled: bool = True
    cache_default_ttl: int = 3600  # 1 hour

    # Site
    zip_code: str = "60601"
    watering_preference: str = "Standard"
    current_user: str = "admin"
    zones: List[Dict[str, Any]] = DEFAULT_ZONES

    # Agent Configurations
    conversation_config: Dict[str, Any] = {
        "max_exchanges": 5,
        "session_timeout_minutes": 30,
        "default_session_id": "default-session",
    }

    assistant_config: Dict[str, Any] = {
        "min_zone_id": 1,
        "max_zone_id": 4,
        "default_duration_sec": 600,
        "confirm_above_sec": 600,
        "max_duration_sec": 3600,
        "min_rain_delay_hours": 1,
        "max_rain_delay_hours": 168,
        "max_prompt_chars": 2000,
    }

    planner_config: Dict[str, Any] = {
        "horizon_days": 7,
        "window_start": "04:00",
        "window_end": "07:00",
        "ai_user_name": "AquaMind AI",
        "plan_temperature": 0.2,
        "chat_temperature": 0.2,
        "proactive_temperature": 0.1,
        "proactive_interval_minutes": 0,
        # significant-change thresholds for proactive re-evaluation
        "precip_jump_points": 30,
        "temp_swing_f": 10,
        "dry_day_max_in": 0.01,
        "new_rain_min_in": 0.25,
        "storm_probability": 70,
        "storm_amount_in": 0.5,
        "storm_miss_rainfall_in": 0.1,
        "high_temp_f": 85,
    }

    weather_config: Dict[str, Any] = {
        "geocode_url": "https://api.zippopotam.us/us",
        "forecast_url": "https://api.open-meteo.com/v1/forecast",
        "forecast_days": 7,
        "request_timeout": 20,
    }

    def __init__(self, **kwargs):
        super().__init__(**kwargs)

        if not self.gemini_api_key:
            self.gemini_api_key = os.getenv('GEMINI_API_KEY') or os.getenv('GOOGLE_API_KEY')

    def get_agent_config(self, agent_name: str) -> Dict[str, Any]:
        """Get configuration for specific agent"""
        config_map = {
            "assistant": self.assistant_config,
            "planner": self.planner_config,
            "weather": self.weather_config,
            "conversation": self.conversation_config,
        }
        return config_map.get(agent_name, {})

    @property
    def is_development(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()

def validate_api_keys(settings: Settings) -> None:
    """Validate required API keys based on environment"""
    if settings.generation_backend != GenerationBackendKind.GEMINI:
        logger.info("Using fixture generation backend, no API key required")
        return

    if not settings.gemini_api_key:
        if settings.is_production:
            raise ValueError("Missing required API key in production: GEMINI_API_KEY")
        logger.warning("GEMINI_API_KEY not set - plan generation requests will fail")
    else:
        logger.info("Gemini API key is available")
