"""
Watering plan model, merge engine and plan ownership
"""

from .models import WateringSchedule, DailySchedule, ScheduleEvent, SprinklerZone, SystemStatus
from .manager import PlanManager

__all__ = ["WateringSchedule", "DailySchedule", "ScheduleEvent", "SprinklerZone", "SystemStatus", "PlanManager"]
