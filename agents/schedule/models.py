"""
Pydantic models for the 7-day watering plan
"""
import re
from datetime import date as dt_date
from enum import Enum
from typing import List, Optional, Dict, Literal

from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator, model_validator
from pydantic.alias_generators import to_camel

HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class CamelModel(BaseModel):
    """Snake-case in Python, camelCase on the wire"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PlantType(str, Enum):
    GRASS = "Grass"
    FLOWERS = "Flowers"
    VEGETABLES = "Vegetables"
    SHRUBS = "Shrubs"
    TREES = "Trees"
    FOUNDATION = "Foundation"


class SprinklerType(str, Enum):
    SPRAY = "Spray"
    ROTOR = "Rotor"
    DRIP = "Drip"


class WaterRequirement(str, Enum):
    LOW = "Low"
    STANDARD = "Standard"
    HIGH = "High"


class WateringPreference(str, Enum):
    CONSERVE = "Conserve"
    STANDARD = "Standard"
    LUSH = "Lush"


class SystemStatus(str, Enum):
    IDLE = "Idle"
    WATERING = "Watering"
    SCHEDULED = "Scheduled"
    OPTIMIZING = "Optimizing"
    RAIN_DELAY = "Rain Delay"
    ERROR = "Error"
    AI_SCHEDULE_ACTIVE = "AI Schedule Active"
    DISABLED = "Disabled"


class HeadDetails(CamelModel):
    arc90: int = Field(0, ge=0)
    arc180: int = Field(0, ge=0)
    arc270: int = Field(0, ge=0)
    arc360: int = Field(0, ge=0)


class SprinklerZone(CamelModel):
    id: int = Field(..., ge=1)
    name: str
    enabled: bool = True
    relay: int = Field(..., ge=1)
    plant_type: PlantType = PlantType.GRASS
    sprinkler_type: SprinklerType = SprinklerType.SPRAY
    sun_exposure: str = "Full Sun"
    water_requirement: WaterRequirement = WaterRequirement.STANDARD
    head_details: Optional[HeadDetails] = None
    flow_rate_gph: Optional[float] = Field(None, ge=0, alias="flowRateGPH")
    head_count: Optional[int] = Field(None, ge=1, description="Legacy head count when arcs are unknown")


class ScheduleAdjustment(CamelModel):
    by: Literal["User", "AI"] = "User"
    user: str
    timestamp: str = Field(..., description="ISO-8601 timestamp of the change")


class ScheduleEvent(CamelModel):
    zone_id: int
    zone_name: str
    start_time: str = Field(..., description="24-hour local start time, HH:MM")
    duration_minutes: int = Field(
        ...,
        gt=0,
        validation_alias=AliasChoices("durationMinutes", "duration_minutes", "duration"),
    )
    water_usage: Optional[float] = Field(None, ge=0, description="Estimated gallons")
    is_canceled: bool = False
    adjustment: Optional[ScheduleAdjustment] = None

    @field_validator("start_time")
    @classmethod
    def check_start_time(cls, v: str) -> str:
        v = v.strip()
        # tolerate "5:30" from the generation layer
        if re.match(r"^\d:\d{2}$", v):
            v = f"0{v}"
        if not HHMM_PATTERN.match(v):
            raise ValueError(f"start time must be HH:MM (24h), got {v!r}")
        return v

    @field_validator("is_canceled", mode="before")
    @classmethod
    def none_is_not_canceled(cls, v):
        return False if v is None else v

    def slot_key(self) -> tuple:
        return (self.zone_id, self.start_time)


class DailySchedule(CamelModel):
    day: str = Field(..., description="YYYY-MM-DD")
    events: List[ScheduleEvent] = Field(default_factory=list)

    @field_validator("day")
    @classmethod
    def check_day(cls, v: str) -> str:
        dt_date.fromisoformat(v)
        return v

    @field_validator("events", mode="before")
    @classmethod
    def none_is_empty(cls, v):
        return [] if v is None else v


class WateringSchedule(CamelModel):
    reasoning: str
    schedule: List[DailySchedule]

    @model_validator(mode="after")
    def unique_days(self) -> "WateringSchedule":
        seen = set()
        for daily in self.schedule:
            if daily.day in seen:
                raise ValueError(f"duplicate day {daily.day} in plan")
            seen.add(daily.day)
        return self

    def get_day(self, day: str) -> Optional[DailySchedule]:
        for daily in self.schedule:
            if daily.day == day:
                return daily
        return None

    def event_count(self) -> int:
        return sum(len(d.events) for d in self.schedule)


class PlanCandidate(CamelModel):
    """Alternative plan waiting for the user to accept or decline"""
    id: str
    kind: Literal["compensation", "proactive"]
    message: str
    plan: WateringSchedule
    created_at: str


class DailyUsage(CamelModel):
    day: str
    gallons: float


class UsageSummary(CamelModel):
    system_status: SystemStatus
    days: List[DailyUsage]
    total_gallons: float
    by_zone: Dict[int, float] = Field(default_factory=dict)
