# server/run.py
"""
Main entry point for the AquaMind Irrigation Backend
"""

import uvicorn
import logging
from contextlib import asynccontextmanager

from api.app import create_app
from core.cache import CacheManager
from core.config import Settings, get_settings, validate_api_keys
from core.logging import setup_logging
from agents.assistant.actuation import SimulatedController
from agents.assistant.agent import AssistantAgent
from agents.assistant.conversation import ConversationStore
from agents.base import AgentRegistry
from agents.planner.agent import PlannerAgent
from agents.planner.generation import build_backend
from agents.schedule.clock import LocalClock, timezone_for_zip
from agents.schedule.manager import PlanManager
from agents.schedule.models import SprinklerZone
from agents.weather.service import WeatherService

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

def build_registry(settings: Settings):
    """Construct the store, the plan owner and the agents for one process"""
    store = ConversationStore.from_config(settings.get_agent_config("conversation"))

    zones = [SprinklerZone.model_validate(z) for z in settings.zones]
    clock = LocalClock(timezone_for_zip(settings.zip_code))
    manager = PlanManager(
        clock,
        zones,
        ai_user=settings.planner_config.get("ai_user_name", "AquaMind AI"),
        horizon_days=settings.planner_config.get("horizon_days", 7),
    )

    cache = CacheManager(ttl=settings.cache_default_ttl) if settings.cache_enabled else None
    weather = WeatherService(settings.get_agent_config("weather"), cache=cache)

    planner = PlannerAgent(weather, manager, build_backend(settings), settings=settings)
    actuator = SimulatedController(zone_ids=[z.id for z in zones])
    assistant = AssistantAgent(store, actuator, planner=planner, settings=settings)

    registry = AgentRegistry()
    registry.register(planner)
    registry.register(assistant)
    return registry, store

@asynccontextmanager
async def lifespan(app):
    """Application lifespan management"""

    # Startup
    logger.info("🚀 Starting AquaMind Irrigation Backend")
    settings = get_settings()

    logger.info("Initializing agents...")
    try:
        validate_api_keys(settings)
        registry, store = build_registry(settings)
        app.state.registry = registry

        # Test agent health
        health_results = await registry.health_check_all()
        for agent_name, health in health_results.items():
            status = "✅" if health["status"] == "healthy" else "❌"
            logger.info(f"{status} {agent_name}: {health['status']}")

        registry.get("planner").start_proactive_loop()
        logger.info("🎯 All agents initialized successfully")

    except Exception as e:
        logger.error(f"❌ Failed to initialize agents: {e}")
        raise

    yield

    # Shutdown
    logger.info("🛑 Shutting down AquaMind Irrigation Backend")
    await registry.get("planner").stop_proactive_loop()
    store.shutdown()

def create_application():
    """Create FastAPI application with all configurations"""
    return create_app(lifespan=lifespan)

def main():
    """Main entry point"""
    settings = get_settings()

    logger.info(f"Starting server on {settings.api_host}:{settings.api_port}")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Debug mode: {settings.debug}")

    # Run server with proper import string for reload
    if settings.debug:
        # Use import string for reload to work
        uvicorn.run(
            "run:create_application",
            factory=True,
            host=settings.api_host,
            port=settings.api_port,
            reload=True,
            log_level=settings.log_level.value.lower(),
            access_log=True
        )
    else:
        # Production mode - create app directly
        app = create_application()
        uvicorn.run(
            app,
            host=settings.api_host,
            port=settings.api_port,
            reload=False,
            log_level=settings.log_level.value.lower(),
            access_log=True
        )

if __name__ == "__main__":
    main()
