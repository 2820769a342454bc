"""
Pydantic models for plan synthesis, chat modification and proactive checks
"""
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, model_validator

from agents.schedule.models import (
    CamelModel, DailySchedule, PlanCandidate, SprinklerZone, WateringPreference, WateringSchedule
)
from agents.weather.models import WeatherData


class PlanRequest(CamelModel):
    zip_code: Optional[str] = Field(None, description="US postal code; defaults to the configured site")
    preference: Optional[WateringPreference] = None
    use_cache: bool = True


class PlanResponse(CamelModel):
    success: bool
    plan: Optional[WateringSchedule] = None
    revision: int = 0
    timezone: Optional[str] = None
    local_date: Optional[str] = None
    local_time: Optional[str] = None
    weather: Optional[WeatherData] = None
    total_gallons: float = 0.0
    message: str = ""
    error_kind: Optional[str] = None
    retryable: bool = False


class PlanReply(WateringSchedule):
    """Structured reply for full-plan synthesis"""


class ChatReply(CamelModel):
    """Structured reply for a free-form chat turn"""
    response_type: Literal["answer", "modification"]
    answer: Optional[str] = None
    confirmation_message: Optional[str] = None
    follow_up_question: Optional[str] = None
    direct_change_schedule: Optional[List[DailySchedule]] = None
    compensated_schedule: Optional[List[DailySchedule]] = None
    reasoning: Optional[str] = None

    @model_validator(mode="after")
    def modification_needs_direct_change(self) -> "ChatReply":
        if self.response_type == "modification" and not self.direct_change_schedule:
            raise ValueError("modification reply requires a directChangeSchedule")
        return self

    def direct_plan(self) -> WateringSchedule:
        return WateringSchedule(
            reasoning=self.reasoning or "Schedule modified by user request.",
            schedule=self.direct_change_schedule or [],
        )

    def compensated_plan(self) -> Optional[WateringSchedule]:
        if not self.compensated_schedule:
            return None
        return WateringSchedule(
            reasoning=self.reasoning or "Schedule adjusted with AI compensation.",
            schedule=self.compensated_schedule,
        )


class ProactiveReply(CamelModel):
    is_adjustment_needed: bool
    notification_message: Optional[str] = None
    new_schedule: Optional[WateringSchedule] = None

    @model_validator(mode="after")
    def adjustment_needs_plan(self) -> "ProactiveReply":
        if self.is_adjustment_needed and self.new_schedule is None:
            raise ValueError("adjustment reply requires a newSchedule")
        return self


class ProactiveResult(CamelModel):
    adjustment_proposed: bool
    reasons: List[str] = Field(default_factory=list)
    message: str = ""
    candidate: Optional[PlanCandidate] = None


class PlanContext(CamelModel):
    """Everything a prompt builder needs, captured at one instant"""
    zip_code: str
    timezone: str
    local_date: str
    local_time: str
    preference: WateringPreference
    zones: List[SprinklerZone]
    weather: WeatherData
    plan: Optional[WateringSchedule] = None
    extra: Dict[str, Any] = Field(default_factory=dict)
