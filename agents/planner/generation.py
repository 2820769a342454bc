"""
Generation backends for plan synthesis

The backend is an opaque "prompt in, JSON object out" function. Replies are
untrusted; the planner validates them against the reply schema.
"""
import asyncio
import json
import logging
from abc import ABC, abstractmethod
from datetime import date, timedelta
from typing import Any, Dict, List, Literal, Optional, Type

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from pydantic import BaseModel, ConfigDict, Field

from core.config import GenerationBackendKind, Settings
from core.exceptions import AgentConfigError, AquaMindError, ExternalAPIError, NetworkError, SchemaError

logger = logging.getLogger(__name__)


class GenerationRequest(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    kind: Literal["plan", "chat", "proactive"]
    prompt: str
    reply_schema: Type[BaseModel]
    temperature: float = 0.2
    context: Dict[str, Any] = Field(default_factory=dict)


class GenerationBackend(ABC):
    name = "abstract"

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> Dict[str, Any]:
        """Return the raw JSON object produced for ``request``"""
        pass


def strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


# HTTP statuses that mean "try again later" rather than "this request is wrong"
RETRYABLE_STATUS = {408, 429, 500, 502, 503, 504}
AUTH_STATUS = {401, 403}


def classify_backend_failure(error: Exception) -> AquaMindError:
    """Map a backend client exception onto the error taxonomy; only transport trouble is retryable"""
    if isinstance(error, (asyncio.TimeoutError, OSError)):
        return NetworkError(f"Generation backend unavailable: {error}")
    status = getattr(error, "code", None) or getattr(error, "status_code", None)
    if isinstance(status, int):
        if status in RETRYABLE_STATUS:
            return NetworkError(f"Generation backend unavailable ({status}): {error}")
        if status in AUTH_STATUS:
            return AgentConfigError(f"Generation backend rejected the credentials ({status}): {error}")
    return ExternalAPIError(f"Generation backend call failed: {error}")


class GeminiGenerationBackend(GenerationBackend):
    """Google Gemini through langchain-google-genai"""

    name = "gemini"

    def __init__(self, api_key: Optional[str], model: str = "gemini-2.5-flash"):
        self.api_key = api_key
        self.model = model
        self._llms: Dict[float, ChatGoogleGenerativeAI] = {}
        if not api_key:
            logger.warning("No GEMINI_API_KEY found - plan generation will not work")

    def _llm(self, temperature: float) -> ChatGoogleGenerativeAI:
        if not self.api_key:
            raise AgentConfigError("Gemini API key not configured - cannot generate plans")
        if temperature not in self._llms:
            self._llms[temperature] = ChatGoogleGenerativeAI(
                model=self.model,
                temperature=temperature,
                google_api_key=self.api_key,
            )
        return self._llms[temperature]

    async def generate(self, request: GenerationRequest) -> Dict[str, Any]:
        llm = self._llm(request.temperature)
        schema = json.dumps(request.reply_schema.model_json_schema(by_alias=True))
        messages = [
            SystemMessage(content=f"Respond with a single JSON object that validates against this JSON schema:\n{schema}"),
            HumanMessage(content=request.prompt),
        ]

        try:
            response = await llm.ainvoke(messages)
        except Exception as e:
            logger.error(f"Gemini {request.kind} call failed: {e}")
            raise classify_backend_failure(e) from e

        content = response.content
        if isinstance(content, list):
            content = "".join(p.get("text", "") if isinstance(p, dict) else str(p) for p in content)
        if not content or not content.strip():
            raise SchemaError(f"Generation backend returned an empty {request.kind} reply")

        try:
            parsed = json.loads(strip_code_fences(content))
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse {request.kind} reply as JSON: {e}")
            logger.error(f"Response text: {content[:500]}...")
            raise SchemaError("Generation reply was not valid JSON") from e

        if not isinstance(parsed, dict):
            raise SchemaError("Generation reply must be a JSON object")
        return parsed


class FixtureGenerationBackend(GenerationBackend):
    """
    Deterministic offline replies for development and tests

    - plan: zones 1 and 2 every other day at 05:00 and 05:25
    - chat: "cancel" cancels the next upcoming event, anything else is answered
    - proactive: adds a 10-minute watering tomorrow
    """

    name = "fixture"

    def __init__(self):
        self.calls: List[GenerationRequest] = []

    async def generate(self, request: GenerationRequest) -> Dict[str, Any]:
        self.calls.append(request)
        handler = {
            "plan": self._plan,
            "chat": self._chat,
            "proactive": self._proactive,
        }[request.kind]
        return handler(request.context)

    @staticmethod
    def _zone_name(ctx: Dict[str, Any], zone_id: int) -> str:
        for zone in ctx.get("zones", []):
            if zone["id"] == zone_id:
                return zone["name"]
        return f"Zone {zone_id}"

    def _plan(self, ctx: Dict[str, Any]) -> Dict[str, Any]:
        schedule = []
        for i, day in enumerate(ctx["days"]):
            events = []
            if i % 2 == 0:
                events = [
                    {"zoneId": 1, "zoneName": self._zone_name(ctx, 1), "startTime": "05:00", "durationMinutes": 20},
                    {"zoneId": 2, "zoneName": self._zone_name(ctx, 2), "startTime": "05:25", "durationMinutes": 15},
                ]
            schedule.append({"day": day, "events": events})
        return {
            "reasoning": "Alternate-day early morning watering for the lawn and flower beds.",
            "schedule": schedule,
        }

    @staticmethod
    def _horizon(ctx: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Current plan restricted to the horizon days, with empty days filled in"""
        by_day = {d["day"]: d for d in (ctx.get("plan") or {}).get("schedule", [])}
        return [
            {"day": day, "events": [dict(e) for e in by_day.get(day, {}).get("events", [])]}
            for day in ctx["days"]
        ]

    def _chat(self, ctx: Dict[str, Any]) -> Dict[str, Any]:
        message = ctx.get("message", "").lower()
        if "cancel" not in message:
            return {
                "responseType": "answer",
                "answer": "Your plan waters early in the morning to limit evaporation and skips days with enough rain.",
            }

        schedule = self._horizon(ctx)
        target = None
        for daily in schedule:
            for event in daily["events"]:
                upcoming = daily["day"] > ctx["today"] or (
                    daily["day"] == ctx["today"] and event["startTime"] > ctx["now_time"]
                )
                if upcoming and not event.get("isCanceled"):
                    target = (daily, event)
                    break
            if target:
                break

        if target is None:
            return {"responseType": "answer", "answer": "There is no upcoming watering to cancel."}

        daily, event = target
        event["isCanceled"] = True
        reply = {
            "responseType": "modification",
            "confirmationMessage": f"Canceled the {event['startTime']} watering for {event['zoneName']} on {daily['day']}.",
            "directChangeSchedule": schedule,
            "reasoning": "Canceled at the user's request.",
        }

        next_day = (date.fromisoformat(daily["day"]) + timedelta(days=1)).isoformat()
        if next_day in ctx["days"]:
            compensated = [{"day": d["day"], "events": [dict(e) for e in d["events"]]} for d in schedule]
            for d in compensated:
                if d["day"] == next_day:
                    d["events"].append({
                        "zoneId": event["zoneId"],
                        "zoneName": event["zoneName"],
                        "startTime": "06:30",
                        "durationMinutes": max(1, event.get("durationMinutes", 10) // 2),
                    })
            reply["followUpQuestion"] = (
                f"Would you like me to add a shorter watering for {event['zoneName']} on {next_day} to make up for it?"
            )
            reply["compensatedSchedule"] = compensated
        return reply

    def _proactive(self, ctx: Dict[str, Any]) -> Dict[str, Any]:
        schedule = self._horizon(ctx)
        if len(schedule) < 2:
            return {"isAdjustmentNeeded": False}

        tomorrow = schedule[1]
        tomorrow["events"].append({
            "zoneId": 1,
            "zoneName": self._zone_name(ctx, 1),
            "startTime": "06:30",
            "durationMinutes": 10,
        })
        return {
            "isAdjustmentNeeded": True,
            "notificationMessage": f"The forecast changed, so I added a 10-minute watering for "
                                   f"{self._zone_name(ctx, 1)} on {tomorrow['day']} at 06:30.",
            "newSchedule": {"reasoning": "Adjusted for the updated forecast.", "schedule": schedule},
        }


def build_backend(settings: Settings) -> GenerationBackend:
    """Select the generation backend once, from settings"""
    if settings.generation_backend == GenerationBackendKind.GEMINI:
        logger.info(f"Using Gemini generation backend ({settings.gemini_model})")
        return GeminiGenerationBackend(settings.gemini_api_key, settings.gemini_model)
    logger.info("Using fixture generation backend")
    return FixtureGenerationBackend()
