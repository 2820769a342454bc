"""
Merge engine for the 7-day watering plan

All functions are pure: they take plans and return new plans, never mutating
their inputs. Slot times are compared as zero-padded "HH:MM" strings in the
plan owner's local timezone.
"""
import logging
from datetime import date, timedelta
from typing import List, Optional

from agents.schedule.models import (
    WateringSchedule, DailySchedule, ScheduleEvent, ScheduleAdjustment
)
from core.exceptions import CommandValidationError, TimingConstraintError

logger = logging.getLogger(__name__)

HORIZON_DAYS = 7


def expected_days(today: str, horizon_days: int = HORIZON_DAYS) -> List[str]:
    start = date.fromisoformat(today)
    return [(start + timedelta(days=i)).isoformat() for i in range(horizon_days)]


def validate_plan_structure(plan: WateringSchedule, today: str, horizon_days: int = HORIZON_DAYS) -> List[str]:
    """Return structural problems with ``plan``; an empty list means it is acceptable"""
    errors = []
    days = [d.day for d in plan.schedule]

    if len(days) != horizon_days:
        errors.append(f"plan must cover exactly {horizon_days} days, got {len(days)}")
    if len(set(days)) != len(days):
        errors.append("plan contains duplicate days")

    wanted = expected_days(today, horizon_days)
    if len(days) == horizon_days and days != wanted:
        errors.append(f"plan days must run {wanted[0]}..{wanted[-1]} in order, got {days[0]}..{days[-1]}")
    return errors


def is_elapsed(day: str, start_time: str, today: str, now_time: str) -> bool:
    """A slot has elapsed when its day is past, or it is today and not strictly after now"""
    if day < today:
        return True
    return day == today and start_time <= now_time


def filter_elapsed_events(plan: WateringSchedule, today: str, now_time: str) -> WateringSchedule:
    """Drop events scheduled for today at or before the current local time"""
    result = plan.model_copy(deep=True)
    for daily in result.schedule:
        if daily.day != today:
            continue
        kept = [e for e in daily.events if e.start_time > now_time]
        dropped = len(daily.events) - len(kept)
        if dropped:
            logger.info(f"Discarded {dropped} elapsed event(s) for {today} (now {now_time})")
        daily.events = kept
    return result


def _stamp(by: str, user: str, timestamp: str) -> ScheduleAdjustment:
    return ScheduleAdjustment(by=by, user=user, timestamp=timestamp)


def _match_events(base_events: List[ScheduleEvent], proposed: List[ScheduleEvent]) -> List[Optional[int]]:
    """Pair each proposed event with a base event index (exact slot first, then same zone)"""
    taken = [False] * len(base_events)
    matches: List[Optional[int]] = [None] * len(proposed)

    for i, event in enumerate(proposed):
        for j, prior in enumerate(base_events):
            if not taken[j] and prior.slot_key() == event.slot_key():
                taken[j] = True
                matches[i] = j
                break

    for i, event in enumerate(proposed):
        if matches[i] is not None:
            continue
        for j, prior in enumerate(base_events):
            if not taken[j] and prior.zone_id == event.zone_id:
                taken[j] = True
                matches[i] = j
                break
    return matches


def _merge_day(day: str, base_events: List[ScheduleEvent], proposed: List[ScheduleEvent],
               today: str, now_time: str, stamp: ScheduleAdjustment) -> List[ScheduleEvent]:
    matches = _match_events(base_events, proposed)
    merged: List[ScheduleEvent] = []

    for event, idx in zip(proposed, matches):
        event = event.model_copy(deep=True)
        if idx is None:
            if is_elapsed(day, event.start_time, today, now_time):
                logger.info(f"Ignoring new event in elapsed slot {day} {event.start_time} zone {event.zone_id}")
                continue
            event.adjustment = None
            merged.append(event)
            continue

        prior = base_events[idx]
        if is_elapsed(day, prior.start_time, today, now_time) or is_elapsed(day, event.start_time, today, now_time):
            merged.append(prior.model_copy(deep=True))
            continue

        changed = (
            event.start_time != prior.start_time
            or event.duration_minutes != prior.duration_minutes
            or event.is_canceled != prior.is_canceled
        )
        event.adjustment = stamp.model_copy() if changed else (
            prior.adjustment.model_copy() if prior.adjustment else None
        )
        merged.append(event)

    taken = {idx for idx in matches if idx is not None}
    for j, prior in enumerate(base_events):
        if j in taken:
            continue
        kept = prior.model_copy(deep=True)
        if not prior.is_canceled and not is_elapsed(day, prior.start_time, today, now_time):
            kept.is_canceled = True
            kept.adjustment = stamp.model_copy()
        merged.append(kept)

    return merged


def reconcile(base: WateringSchedule, proposed: WateringSchedule, *, today: str, now_time: str,
              by: str, user: str, timestamp: str) -> WateringSchedule:
    """Take ``proposed`` as the new plan and carry provenance over from ``base``"""
    stamp = _stamp(by, user, timestamp)
    result = proposed.model_copy(deep=True)
    for daily in result.schedule:
        base_day = base.get_day(daily.day)
        base_events = base_day.events if base_day else []
        daily.events = _merge_day(daily.day, base_events, daily.events, today, now_time, stamp)
    return result


def apply_direct_change(base: WateringSchedule, change: WateringSchedule, *, today: str, now_time: str,
                        user: str, timestamp: str, horizon_days: int = HORIZON_DAYS) -> WateringSchedule:
    """Replace ``base`` with ``change``; a structurally invalid change leaves ``base`` as is"""
    problems = validate_plan_structure(change, today, horizon_days)
    if problems:
        logger.warning(f"Rejected direct change: {'; '.join(problems)}")
        return base
    return reconcile(base, change, today=today, now_time=now_time, by="User", user=user, timestamp=timestamp)


def apply_compensation(direct: WateringSchedule, compensated: Optional[WateringSchedule], *, today: str,
                       now_time: str, timestamp: str, ai_user: str = "AquaMind AI",
                       horizon_days: int = HORIZON_DAYS) -> WateringSchedule:
    """Plan that becomes active if the compensation is accepted (``direct`` when there is none)"""
    if compensated is None:
        return direct
    problems = validate_plan_structure(compensated, today, horizon_days)
    if problems:
        logger.warning(f"Rejected compensated plan: {'; '.join(problems)}")
        return direct
    return reconcile(direct, compensated, today=today, now_time=now_time, by="AI", user=ai_user, timestamp=timestamp)


def toggle_event_cancellation(plan: WateringSchedule, day: str, index: int, *, today: str, now_time: str,
                              user: str, timestamp: str) -> WateringSchedule:
    """Flip ``isCanceled`` on one event; the event always stays in its day"""
    daily: Optional[DailySchedule] = plan.get_day(day)
    if daily is None:
        raise CommandValidationError(f"No schedule for {day}", [f"unknown day {day}"])
    if index < 0 or index >= len(daily.events):
        raise CommandValidationError(f"No event #{index} on {day}", [f"event index {index} out of range"])

    target = daily.events[index]
    if is_elapsed(day, target.start_time, today, now_time):
        raise TimingConstraintError(
            f"The {target.start_time} watering for {target.zone_name} on {day} has already passed"
        )

    result = plan.model_copy(deep=True)
    event = result.get_day(day).events[index]
    event.is_canceled = not event.is_canceled
    event.adjustment = _stamp("User", user, timestamp)
    return result
