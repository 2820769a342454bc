# server/agents/planner/agent.py
"""
Plan synthesis agent - weather-aware 7-day watering plans
"""

import asyncio
from typing import Any, Dict, List, Optional

from agents.base import BaseAgent
from agents.planner.generation import GenerationBackend, GenerationRequest
from agents.planner.models import (
    ChatReply, PlanContext, PlanReply, PlanRequest, PlanResponse, ProactiveReply, ProactiveResult
)
from agents.planner.prompts import build_chat_prompt, build_plan_prompt, build_proactive_prompt
from agents.planner.service import PlannerService
from agents.schedule import engine
from agents.schedule.clock import timezone_for_zip
from agents.schedule.manager import PlanManager, PlanSnapshot
from agents.schedule.models import CamelModel, PlanCandidate, WateringPreference, WateringSchedule
from agents.schedule.usage import plan_water_usage
from agents.weather.models import WeatherData
from agents.weather.service import WeatherService
from core.config import Settings
from core.exceptions import AquaMindError, NetworkError, StateError, user_message


class ChatOutcome(CamelModel):
    """Result of a free-form chat turn routed to the generation backend"""
    response_type: str
    answer: Optional[str] = None
    confirmation_message: Optional[str] = None
    follow_up_question: Optional[str] = None
    plan: Optional[WateringSchedule] = None
    compensated_plan: Optional[WateringSchedule] = None
    candidate: Optional[PlanCandidate] = None
    revision: int = 0


class PlannerAgent(BaseAgent[PlanRequest, PlanResponse]):
    """
    Plan synthesis orchestrator

    Features:
    - Full 7-day plan generation from forecast, zones and history
    - Chat modifications with optional AI compensation offers
    - Proactive re-evaluation when the forecast changes significantly
    """

    def __init__(self, weather: WeatherService, manager: PlanManager, backend: GenerationBackend,
                 settings: Optional[Settings] = None):
        super().__init__("planner", settings)
        self.service = PlannerService(config=self.config)
        self.weather = weather
        self.manager = manager
        self.backend = backend
        self.zip_code = self.settings.zip_code
        self.preference = WateringPreference(self.settings.watering_preference)
        self.horizon_days = self.config.get("horizon_days", engine.HORIZON_DAYS)
        self._proactive_task: Optional[asyncio.Task] = None
        self.logger.info(f"Planner agent initialized with {backend.name} backend")

    def _validate_config(self) -> None:
        """Validate planner agent configuration"""
        required_config = ["horizon_days", "window_start", "window_end", "ai_user_name"]

        missing = [key for key in required_config if key not in self.config]
        if missing:
            self.logger.warning(f"Missing planner config (using defaults): {missing}")

    @property
    def window(self) -> Dict[str, str]:
        return {
            "window_start": self.config.get("window_start", "04:00"),
            "window_end": self.config.get("window_end", "07:00"),
        }

    def _context(self, weather: WeatherData, snapshot: PlanSnapshot,
                 preference: Optional[WateringPreference] = None, zip_code: Optional[str] = None,
                 **extra) -> PlanContext:
        return PlanContext(
            zip_code=zip_code or self.zip_code,
            timezone=snapshot.timezone,
            local_date=snapshot.local_date,
            local_time=snapshot.local_time,
            preference=preference or self.preference,
            zones=self.manager.zones,
            weather=weather,
            plan=snapshot.plan,
            extra=extra,
        )

    async def _generate(self, request: GenerationRequest) -> Dict[str, Any]:
        timeout = self.settings.generation_timeout_seconds
        try:
            return await asyncio.wait_for(self.backend.generate(request), timeout=timeout)
        except asyncio.TimeoutError as e:
            self.logger.error(f"Generation ({request.kind}) timed out after {timeout}s")
            raise NetworkError(f"Generation backend timed out after {timeout:g}s") from e

    async def process_request(self, request: PlanRequest) -> PlanResponse:
        """Generate a fresh 7-day plan and make it the active one"""
        zip_code = request.zip_code or self.zip_code
        preference = request.preference or self.preference

        self.logger.info(f"Generating plan for {zip_code} ({preference.value})")

        # Step 1: Weather and local time
        weather = await self.weather.get_weather(zip_code, use_cache=request.use_cache)
        previous_timezone = self.manager.clock.timezone_name
        await self.manager.relocate(timezone_for_zip(zip_code))
        try:
            snapshot = await self.manager.snapshot()
            ctx = self._context(weather, snapshot, preference=preference, zip_code=zip_code)

            # Step 2: Ask the backend
            raw = await self._generate(GenerationRequest(
                kind="plan",
                prompt=build_plan_prompt(ctx, **self.window),
                reply_schema=PlanReply,
                temperature=self.config.get("plan_temperature", 0.2),
                context=self.service.fixture_context(ctx, engine.expected_days(ctx.local_date, self.horizon_days)),
            ))
            reply = self.service.parse_reply(PlanReply, raw)

            # Step 3: Commit; slots that passed by commit time are dropped there
            committed = await self.manager.replace_plan(
                WateringSchedule(reasoning=reply.reasoning, schedule=reply.schedule),
                forecast=weather.forecast,
            )
        except Exception:
            await self.manager.relocate(previous_timezone)
            raise

        self.zip_code = zip_code
        self.preference = preference
        usage = plan_water_usage(committed, self.manager.system_status)

        return PlanResponse(
            success=True,
            plan=committed,
            revision=self.manager.revision,
            timezone=ctx.timezone,
            local_date=ctx.local_date,
            local_time=ctx.local_time,
            weather=weather,
            total_gallons=usage.total_gallons,
            message=reply.reasoning,
        )

    def get_fallback_response(self, request: PlanRequest, error: Exception) -> PlanResponse:
        """Keep the current plan and report why synthesis failed"""
        return PlanResponse(
            success=False,
            revision=self.manager.revision,
            message=user_message(error),
            error_kind=getattr(error, "kind", "internal"),
            retryable=getattr(error, "retryable", False),
        )

    async def chat(self, message: str, transcript: str = "") -> ChatOutcome:
        """Answer a question or apply a schedule modification described in ``message``"""
        snapshot = await self.manager.snapshot()
        if snapshot.plan is None:
            raise StateError("No active watering plan; generate one first")

        weather = await self.weather.get_weather(self.zip_code)
        ctx = self._context(weather, snapshot)
        raw = await self._generate(GenerationRequest(
            kind="chat",
            prompt=build_chat_prompt(ctx, message, transcript, **self.window),
            reply_schema=ChatReply,
            temperature=self.config.get("chat_temperature", 0.2),
            context=self.service.fixture_context(
                ctx, engine.expected_days(ctx.local_date, self.horizon_days), message=message
            ),
        ))
        reply = self.service.parse_reply(ChatReply, raw)

        if reply.response_type == "answer":
            return ChatOutcome(
                response_type="answer",
                answer=reply.answer or "",
                plan=snapshot.plan,
                revision=snapshot.revision,
            )

        compensated = reply.compensated_plan()
        plan, candidate = await self.manager.apply_chat_modification(
            reply.direct_plan(), compensated, reply.follow_up_question,
            user=self.settings.current_user, expected_revision=snapshot.revision,
        )
        return ChatOutcome(
            response_type="modification",
            confirmation_message=reply.confirmation_message or "Schedule updated.",
            follow_up_question=reply.follow_up_question if candidate else None,
            plan=plan,
            compensated_plan=candidate.plan if candidate else None,
            candidate=candidate,
            revision=self.manager.revision,
        )

    async def check_proactive(self) -> ProactiveResult:
        """Re-evaluate the active plan against the latest forecast"""
        snapshot = await self.manager.snapshot()
        if snapshot.plan is None:
            return ProactiveResult(adjustment_proposed=False, message="No active plan to re-evaluate")

        weather = await self.weather.get_weather(self.zip_code, use_cache=False)
        reasons = self.service.detect_significant_changes(snapshot.assumed_forecast, weather, snapshot.local_date)
        if not reasons:
            self.logger.info("Proactive check: forecast unchanged, no adjustment")
            return ProactiveResult(adjustment_proposed=False, message="No adjustment needed")

        self.logger.info(f"Proactive check found {len(reasons)} significant change(s): {reasons}")
        ctx = self._context(weather, snapshot, system_status=snapshot.system_status.value)
        raw = await self._generate(GenerationRequest(
            kind="proactive",
            prompt=build_proactive_prompt(ctx, reasons),
            reply_schema=ProactiveReply,
            temperature=self.config.get("proactive_temperature", 0.1),
            context=self.service.fixture_context(
                ctx, engine.expected_days(ctx.local_date, self.horizon_days), reasons=reasons
            ),
        ))
        reply = self.service.parse_reply(ProactiveReply, raw)

        if not reply.is_adjustment_needed:
            return ProactiveResult(adjustment_proposed=False, reasons=reasons, message="No adjustment needed")

        message = reply.notification_message or "I've suggested a plan adjustment for the updated forecast."
        candidate = await self.manager.stage_candidate(
            "proactive", reply.new_schedule, message,
            expected_revision=snapshot.revision, forecast=weather.forecast,
        )
        return ProactiveResult(adjustment_proposed=True, reasons=reasons, message=message, candidate=candidate)

    async def _proactive_loop(self, interval_minutes: float) -> None:
        while True:
            await asyncio.sleep(interval_minutes * 60)
            try:
                result = await self.check_proactive()
                if result.adjustment_proposed:
                    self.logger.info(f"Proactive suggestion staged: {result.message}")
            except AquaMindError as e:
                self.logger.warning(f"Proactive check failed ({e.kind}): {e}")

    def start_proactive_loop(self) -> Optional[asyncio.Task]:
        interval = self.config.get("proactive_interval_minutes", 0)
        if not interval or self._proactive_task is not None:
            return self._proactive_task
        self.logger.info(f"Proactive checks every {interval} minutes")
        self._proactive_task = asyncio.create_task(self._proactive_loop(interval))
        return self._proactive_task

    async def stop_proactive_loop(self) -> None:
        if self._proactive_task is None:
            return
        self._proactive_task.cancel()
        try:
            await self._proactive_task
        except asyncio.CancelledError:
            pass
        self._proactive_task = None

    async def health_check(self) -> Dict[str, Any]:
        health = await super().health_check()
        health["backend"] = self.backend.name
        health["plan_revision"] = self.manager.revision
        return health
