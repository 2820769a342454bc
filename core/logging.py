# server/core/logging.py
"""
Logging configuration for the backend
"""
import logging
import sys
from typing import Optional

from .config import get_settings

# chatty third-party loggers
QUIET_LOGGERS = ("httpx", "urllib3", "google_genai", "langchain_google_genai", "watchfiles")

def setup_logging(level: Optional[str] = None) -> None:
    """Configure the root logger; ``level`` overrides LOG_LEVEL from settings"""
    settings = get_settings()
    level_name = (level or settings.log_level.value).upper()

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=settings.log_format,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    logging.getLogger("uvicorn").setLevel(logging.INFO)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # plan commits and gate decisions are the audit trail; keep them visible
    if settings.is_production:
        logging.getLogger("agents.schedule.manager").setLevel(logging.INFO)
        logging.getLogger("agents.assistant.gate").setLevel(logging.INFO)
