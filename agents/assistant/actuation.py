"""
Zone actuation interface and an in-process simulated controller
"""
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from agents.schedule.clock import utc_now

logger = logging.getLogger(__name__)


class ActuationResult(BaseModel):
    success: bool
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)


class RainDelayState(BaseModel):
    is_active: bool = False
    hours_remaining: int = 0
    expires_at: Optional[str] = None


class StatusSnapshot(BaseModel):
    active_zone_id: Optional[int] = None
    active_zone_name: Optional[str] = None
    time_remaining: int = 0
    rain_delay: RainDelayState = Field(default_factory=RainDelayState)


class ControllerSchedule(BaseModel):
    id: str
    zone_id: int
    start_time: str
    days_of_week: List[int]
    duration_sec: int
    enabled: bool = True


class RunLogEntry(BaseModel):
    zone_id: int
    source: str
    started_at: str
    stopped_at: str
    duration_sec: int
    success: bool = True


class ActuationLayer(ABC):
    """Physical zone control as seen by the command pipeline"""

    @abstractmethod
    async def start_zone(self, zone_id: int, duration_sec: int, source: str) -> ActuationResult:
        pass

    @abstractmethod
    async def stop_zone(self, zone_id: Union[int, str]) -> ActuationResult:
        pass

    @abstractmethod
    async def set_rain_delay(self, hours: Union[int, bool]) -> ActuationResult:
        """``hours`` of delay, or ``False`` to clear it"""
        pass

    @abstractmethod
    async def create_schedule(self, zone_id: int, start_time: str, days_of_week: List[int],
                              duration_sec: int) -> ActuationResult:
        pass

    @abstractmethod
    async def get_status(self) -> StatusSnapshot:
        pass


class SimulatedController(ActuationLayer):
    """
    In-memory controller for development and tests

    One zone runs at a time; starting another zone stops the running one.
    Starts are refused while a rain delay is active. Every completed run is
    appended to ``run_log`` with the source that triggered it.
    """

    def __init__(self, zone_ids: Optional[List[int]] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.zone_ids = list(zone_ids or [1, 2, 3, 4])
        self._clock = clock or utc_now
        self.active_zone_id: Optional[int] = None
        self._run_started: Optional[datetime] = None
        self._run_source = "manual"
        self._ends_at: Optional[datetime] = None
        self._rain_delay_until: Optional[datetime] = None
        self._rain_delay_hours = 0
        self.schedules: List[ControllerSchedule] = []
        self.run_log: List[RunLogEntry] = []
        self.calls: List[str] = []

    def _rain_delay_active(self) -> bool:
        return self._rain_delay_until is not None and self._clock() < self._rain_delay_until

    def _expire_finished_run(self) -> None:
        if self.active_zone_id is not None and self._ends_at and self._clock() >= self._ends_at:
            self._finish_run(self._ends_at)

    def _finish_run(self, stopped_at: datetime, success: bool = True) -> None:
        entry = RunLogEntry(
            zone_id=self.active_zone_id,
            source=self._run_source,
            started_at=self._run_started.isoformat(),
            stopped_at=stopped_at.isoformat(),
            duration_sec=int((stopped_at - self._run_started).total_seconds()),
            success=success,
        )
        self.run_log.insert(0, entry)
        logger.info(f"{'✓' if success else '✗'} Zone {entry.zone_id} ran for {entry.duration_sec} seconds ({entry.source})")
        self.active_zone_id = None
        self._run_started = None
        self._ends_at = None

    async def start_zone(self, zone_id: int, duration_sec: int, source: str) -> ActuationResult:
        self.calls.append("start_zone")
        self._expire_finished_run()

        if self._rain_delay_active():
            return ActuationResult(success=False, message="Rain delay active")
        if zone_id not in self.zone_ids:
            return ActuationResult(success=False, message=f"Zone {zone_id} not found")

        now = self._clock()
        if self.active_zone_id is not None:
            self._finish_run(now)

        self.active_zone_id = zone_id
        self._run_started = now
        self._run_source = source
        self._ends_at = now + timedelta(seconds=duration_sec)
        logger.info(f"[{source}] Zone {zone_id} started for {duration_sec} seconds")
        return ActuationResult(
            success=True,
            message=f"Zone {zone_id} started for {duration_sec} seconds",
            data={"zoneId": zone_id, "durationSec": duration_sec, "source": source},
        )

    async def stop_zone(self, zone_id: Union[int, str]) -> ActuationResult:
        self.calls.append("stop_zone")
        self._expire_finished_run()

        if zone_id == "all":
            if self.active_zone_id is None:
                return ActuationResult(success=True, message="No zones are currently running")
            zone_id = self.active_zone_id
        elif zone_id not in self.zone_ids:
            return ActuationResult(success=False, message=f"Zone {zone_id} not found")

        if self.active_zone_id == zone_id:
            self._finish_run(self._clock())
        return ActuationResult(success=True, message=f"Zone {zone_id} stopped", data={"zoneId": zone_id})

    async def set_rain_delay(self, hours: Union[int, bool]) -> ActuationResult:
        self.calls.append("set_rain_delay")
        if hours is False:
            self._rain_delay_until = None
            self._rain_delay_hours = 0
            logger.info("Rain delay cleared")
            return ActuationResult(success=True, message="Rain delay cleared")

        self._rain_delay_until = self._clock() + timedelta(hours=int(hours))
        self._rain_delay_hours = int(hours)
        logger.info(f"Rain delay set for {hours} hours")
        return ActuationResult(
            success=True,
            message=f"Rain delay set for {hours} hours",
            data={"expiresAt": self._rain_delay_until.isoformat()},
        )

    async def create_schedule(self, zone_id: int, start_time: str, days_of_week: List[int],
                              duration_sec: int) -> ActuationResult:
        self.calls.append("create_schedule")
        schedule = ControllerSchedule(
            id=uuid.uuid4().hex[:8],
            zone_id=zone_id,
            start_time=start_time,
            days_of_week=sorted(days_of_week),
            duration_sec=duration_sec,
        )
        self.schedules.append(schedule)
        logger.info(f"Schedule {schedule.id} created for zone {zone_id}")
        return ActuationResult(success=True, message="Schedule created", data=schedule.model_dump())

    async def get_status(self) -> StatusSnapshot:
        self._expire_finished_run()
        now = self._clock()

        remaining = 0
        if self.active_zone_id is not None and self._ends_at:
            remaining = max(0, int((self._ends_at - now).total_seconds()))

        delay = RainDelayState()
        if self._rain_delay_active():
            hours_left = (self._rain_delay_until - now).total_seconds() / 3600
            delay = RainDelayState(
                is_active=True,
                hours_remaining=max(1, round(hours_left)),
                expires_at=self._rain_delay_until.isoformat(),
            )

        return StatusSnapshot(
            active_zone_id=self.active_zone_id,
            active_zone_name=f"Zone {self.active_zone_id}" if self.active_zone_id else None,
            time_remaining=remaining,
            rain_delay=delay,
        )
