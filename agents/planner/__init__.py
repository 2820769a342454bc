"""
Plan synthesis package
"""

from .agent import PlannerAgent, ChatOutcome
from .generation import GenerationBackend, FixtureGenerationBackend, GeminiGenerationBackend, build_backend
from .models import PlanRequest, PlanResponse, ProactiveResult

__all__ = [
    "PlannerAgent", "ChatOutcome", "GenerationBackend", "FixtureGenerationBackend",
    "GeminiGenerationBackend", "build_backend", "PlanRequest", "PlanResponse", "ProactiveResult",
]
