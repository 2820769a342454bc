"""
Single owner of the active watering plan

Every mutation (synthesis replacement, direct change, compensation or proactive
acceptance, cancellation toggle) runs inside one asyncio lock per plan, so no
caller ever observes a half-applied merge. Long-running generation calls happen
outside the lock; their results are applied here.
"""
import asyncio
import logging
import uuid
from typing import List, Optional

from pydantic import Field

from agents.schedule import engine
from agents.schedule.clock import LocalClock
from agents.schedule.models import (
    CamelModel, WateringSchedule, PlanCandidate, SprinklerZone, SystemStatus, UsageSummary
)
from agents.schedule.usage import calculate_water_usage, plan_water_usage
from agents.weather.models import ForecastDay
from core.exceptions import SchemaError, StateError

logger = logging.getLogger(__name__)


class PlanSnapshot(CamelModel):
    plan: Optional[WateringSchedule] = None
    revision: int = 0
    assumed_forecast: List[ForecastDay] = Field(default_factory=list)
    candidate: Optional[PlanCandidate] = None
    system_status: SystemStatus = SystemStatus.IDLE
    timezone: str
    local_date: str
    local_time: str


class PlanManager:
    """Serializes all mutations of one plan"""

    def __init__(self, clock: LocalClock, zones: List[SprinklerZone], ai_user: str = "AquaMind AI",
                 horizon_days: int = engine.HORIZON_DAYS):
        self.clock = clock
        self.zones = zones
        self.ai_user = ai_user
        self.horizon_days = horizon_days
        self._lock = asyncio.Lock()
        self._plan: Optional[WateringSchedule] = None
        self._forecast: List[ForecastDay] = []
        self._candidate: Optional[PlanCandidate] = None
        self._candidate_forecast: Optional[List[ForecastDay]] = None
        self._revision = 0
        self._status = SystemStatus.IDLE

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def system_status(self) -> SystemStatus:
        return self._status

    async def snapshot(self) -> PlanSnapshot:
        async with self._lock:
            return self._snapshot()

    def _snapshot(self) -> PlanSnapshot:
        return PlanSnapshot(
            plan=self._plan.model_copy(deep=True) if self._plan else None,
            revision=self._revision,
            assumed_forecast=[f.model_copy() for f in self._forecast],
            candidate=self._candidate.model_copy(deep=True) if self._candidate else None,
            system_status=self._status,
            timezone=self.clock.timezone_name,
            local_date=self.clock.today_str(),
            local_time=self.clock.time_str(),
        )

    def _check_structure(self, plan: WateringSchedule, what: str) -> None:
        problems = engine.validate_plan_structure(plan, self.clock.today_str(), self.horizon_days)
        if problems:
            raise SchemaError(f"{what} rejected: {'; '.join(problems)}")

    def _check_revision(self, expected_revision: Optional[int]) -> None:
        if expected_revision is not None and expected_revision != self._revision:
            raise StateError(
                f"Plan changed while the request was in flight (revision {expected_revision} -> {self._revision})"
            )

    def _commit(self, plan: WateringSchedule, reason: str) -> WateringSchedule:
        self._plan = calculate_water_usage(plan, self.zones)
        self._revision += 1
        self._candidate = None
        self._candidate_forecast = None
        if self._status not in (SystemStatus.DISABLED, SystemStatus.WATERING):
            self._status = SystemStatus.AI_SCHEDULE_ACTIVE
        logger.info(f"Plan revision {self._revision} committed ({reason}, {self._plan.event_count()} events)")
        return self._plan.model_copy(deep=True)

    def _require_plan(self) -> WateringSchedule:
        if self._plan is None:
            raise StateError("No active watering plan; generate one first")
        return self._plan

    async def replace_plan(self, plan: WateringSchedule, forecast: Optional[List[ForecastDay]] = None,
                           reason: str = "synthesis") -> WateringSchedule:
        """Accept a freshly synthesized plan wholesale; slots already elapsed at commit time are dropped"""
        async with self._lock:
            self._check_structure(plan, "Synthesized plan")
            plan = engine.filter_elapsed_events(plan, self.clock.today_str(), self.clock.time_str())
            if forecast is not None:
                self._forecast = [f.model_copy() for f in forecast]
            return self._commit(plan, reason)

    def _apply_direct_locked(self, change: WateringSchedule, user: str) -> WateringSchedule:
        base = self._require_plan()
        self._check_structure(change, "Direct change")
        merged = engine.apply_direct_change(
            base, change,
            today=self.clock.today_str(), now_time=self.clock.time_str(),
            user=user, timestamp=self.clock.timestamp(), horizon_days=self.horizon_days,
        )
        return self._commit(merged, f"direct change by {user}")

    def _stage_locked(self, kind: str, plan: WateringSchedule, message: str,
                      forecast: Optional[List[ForecastDay]] = None) -> PlanCandidate:
        current = self._require_plan()
        self._check_structure(plan, f"{kind.capitalize()} plan")
        proposed = engine.apply_compensation(
            current, plan,
            today=self.clock.today_str(), now_time=self.clock.time_str(),
            timestamp=self.clock.timestamp(), ai_user=self.ai_user, horizon_days=self.horizon_days,
        )
        self._candidate = PlanCandidate(
            id=uuid.uuid4().hex,
            kind=kind,
            message=message,
            plan=calculate_water_usage(proposed, self.zones),
            created_at=self.clock.timestamp(),
        )
        self._candidate_forecast = [f.model_copy() for f in forecast] if forecast is not None else None
        logger.info(f"Staged {kind} candidate {self._candidate.id} against revision {self._revision}")
        return self._candidate.model_copy(deep=True)

    async def apply_direct_change(self, change: WateringSchedule, user: str,
                                  expected_revision: Optional[int] = None) -> WateringSchedule:
        async with self._lock:
            self._check_revision(expected_revision)
            return self._apply_direct_locked(change, user)

    async def apply_chat_modification(self, direct: WateringSchedule, compensated: Optional[WateringSchedule],
                                      follow_up: Optional[str], user: str,
                                      expected_revision: Optional[int] = None):
        """Apply the direct change and stage the compensation in one critical section"""
        async with self._lock:
            self._check_revision(expected_revision)
            plan = self._apply_direct_locked(direct, user)
            candidate = None
            if compensated is not None and follow_up:
                try:
                    candidate = self._stage_locked("compensation", compensated, follow_up)
                except SchemaError as e:
                    logger.warning(f"Dropped compensation offer: {e}")
            return plan, candidate

    async def stage_candidate(self, kind: str, plan: WateringSchedule, message: str,
                              expected_revision: Optional[int] = None,
                              forecast: Optional[List[ForecastDay]] = None) -> PlanCandidate:
        """Offer ``plan`` for acceptance; ``forecast`` becomes the assumed forecast if accepted"""
        async with self._lock:
            self._check_revision(expected_revision)
            return self._stage_locked(kind, plan, message, forecast)

    def _take_candidate(self, candidate_id: str) -> PlanCandidate:
        if self._candidate is None or self._candidate.id != candidate_id:
            raise StateError(f"No pending plan suggestion with id {candidate_id}")
        candidate, self._candidate = self._candidate, None
        return candidate

    async def accept_candidate(self, candidate_id: str) -> WateringSchedule:
        async with self._lock:
            candidate = self._take_candidate(candidate_id)
            current = self._require_plan()
            if not candidate.plan.schedule or candidate.plan.schedule[0].day != self.clock.today_str():
                self._candidate_forecast = None
                raise StateError("Suggestion expired; it was made for an earlier day")
            self._check_structure(candidate.plan, "Suggested plan")
            # re-reconcile so slots that elapsed since staging stay untouched
            proposed = engine.reconcile(
                current, candidate.plan,
                today=self.clock.today_str(), now_time=self.clock.time_str(),
                by="AI", user=self.ai_user, timestamp=self.clock.timestamp(),
            )
            if self._candidate_forecast is not None:
                self._forecast = self._candidate_forecast
            return self._commit(proposed, f"{candidate.kind} accepted")

    async def decline_candidate(self, candidate_id: str) -> None:
        async with self._lock:
            candidate = self._take_candidate(candidate_id)
            self._candidate_forecast = None
            logger.info(f"{candidate.kind.capitalize()} candidate {candidate.id} declined")

    async def toggle_cancellation(self, day: str, index: int, user: str) -> WateringSchedule:
        async with self._lock:
            plan = engine.toggle_event_cancellation(
                self._require_plan(), day, index,
                today=self.clock.today_str(), now_time=self.clock.time_str(),
                user=user, timestamp=self.clock.timestamp(),
            )
            return self._commit(plan, f"cancellation toggled by {user}")

    async def relocate(self, timezone_name: str) -> None:
        """Move the plan owner to another timezone; plan days are re-read in the new zone"""
        async with self._lock:
            if timezone_name != self.clock.timezone_name:
                logger.info(f"Plan timezone {self.clock.timezone_name} -> {timezone_name}")
                self.clock = self.clock.with_timezone(timezone_name)

    async def set_system_status(self, status: SystemStatus) -> SystemStatus:
        async with self._lock:
            logger.info(f"System status {self._status.value} -> {status.value}")
            self._status = status
            return self._status

    async def usage(self) -> UsageSummary:
        async with self._lock:
            plan = self._require_plan()
            return plan_water_usage(plan, self._status)
