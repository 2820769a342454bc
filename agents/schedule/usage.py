"""
Water usage estimation for watering plans
"""
from collections import defaultdict
from typing import Dict, List

from agents.schedule.models import (
    WateringSchedule, DailySchedule, SprinklerZone, SprinklerType, SystemStatus,
    DailyUsage, UsageSummary
)

# Average gallons per minute for a full 360-degree head; partial arcs are prorated
GPM_PER_360_HEAD = {
    SprinklerType.SPRAY: 1.5,
    SprinklerType.ROTOR: 2.0,
}

# Fallback for zones configured without head details
LEGACY_GPM = {
    SprinklerType.SPRAY: 1.5,
    SprinklerType.ROTOR: 0.7,
    SprinklerType.DRIP: 0.2,
}


def zone_gpm(zone: SprinklerZone) -> float:
    """Gallons per minute delivered by a zone"""
    if zone.sprinkler_type == SprinklerType.DRIP:
        if zone.flow_rate_gph and zone.flow_rate_gph > 0:
            return zone.flow_rate_gph / 60
        return LEGACY_GPM[SprinklerType.DRIP]

    if zone.head_details:
        base = GPM_PER_360_HEAD.get(zone.sprinkler_type, 0.0)
        heads = zone.head_details
        return (heads.arc360 * base
                + heads.arc270 * base * 0.75
                + heads.arc180 * base * 0.5
                + heads.arc90 * base * 0.25)

    return LEGACY_GPM[zone.sprinkler_type] * (zone.head_count or 1)


def calculate_water_usage(plan: WateringSchedule, zones: List[SprinklerZone]) -> WateringSchedule:
    """Return a copy of ``plan`` with ``water_usage`` set on every event"""
    zones_by_id: Dict[int, SprinklerZone] = {z.id: z for z in zones}
    result = plan.model_copy(deep=True)
    for daily in result.schedule:
        for event in daily.events:
            zone = zones_by_id.get(event.zone_id)
            event.water_usage = round(event.duration_minutes * zone_gpm(zone), 2) if zone else 0.0
    return result


def daily_water_usage(daily: DailySchedule, system_status: SystemStatus) -> float:
    """Gallons for one day; a disabled system uses nothing"""
    if system_status == SystemStatus.DISABLED:
        return 0.0
    return sum(e.water_usage or 0.0 for e in daily.events if not e.is_canceled)


def plan_water_usage(plan: WateringSchedule, system_status: SystemStatus) -> UsageSummary:
    days = [
        DailyUsage(day=d.day, gallons=round(daily_water_usage(d, system_status), 2))
        for d in plan.schedule
    ]
    by_zone: Dict[int, float] = defaultdict(float)
    if system_status != SystemStatus.DISABLED:
        for daily in plan.schedule:
            for event in daily.events:
                if not event.is_canceled:
                    by_zone[event.zone_id] += event.water_usage or 0.0

    return UsageSummary(
        system_status=system_status,
        days=days,
        total_gallons=round(sum(d.gallons for d in days), 2),
        by_zone={k: round(v, 2) for k, v in by_zone.items()},
    )
