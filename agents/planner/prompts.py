"""
Prompt builders for the generation backend
"""
from typing import List, Optional

from agents.planner.models import PlanContext
from agents.schedule.models import SprinklerType, SprinklerZone, WateringSchedule
from agents.weather.models import WeatherData

PREFERENCE_TIERS = """- "Conserve": Prioritize water savings. Water only when absolutely necessary. Shorter durations.
- "Standard": A balanced approach to lawn health and water usage.
- "Lush": Prioritize a green, lush lawn. Water more frequently and for longer durations, but still be smart about it."""

REQUIREMENT_TIERS = """Each zone has a waterRequirement setting ('Low', 'Standard', 'High'):
- 'High' means very thirsty plants (new sod, a vegetable garden) that need more frequent or longer watering.
- 'Standard' is for a typical, established lawn.
- 'Low' is for drought-tolerant plants that need minimal watering.
You MUST adjust watering duration and frequency based on this requirement."""

FOUNDATION_RULE = (
    "A 'Foundation' plant type is a soaker hose or drip line around a house foundation that keeps soil "
    "moisture consistent to prevent cracking; it needs frequent, short, low-volume cycles, especially in hot, dry weather."
)


def format_zones(zones: List[SprinklerZone]) -> str:
    lines = []
    for z in zones:
        if z.sprinkler_type == SprinklerType.DRIP:
            hardware = f"{z.flow_rate_gph:g} GPH total flow" if z.flow_rate_gph else "drip system"
        elif z.head_details:
            h = z.head_details
            parts = []
            if h.arc360:
                parts.append(f"{h.arc360} full-circle (360°)")
            if h.arc270:
                parts.append(f"{h.arc270} three-quarter (270°)")
            if h.arc180:
                parts.append(f"{h.arc180} half-circle (180°)")
            if h.arc90:
                parts.append(f"{h.arc90} quarter-circle (90°)")
            hardware = f"{', '.join(parts)} {z.sprinkler_type.value} heads" if parts else f"unknown {z.sprinkler_type.value} heads"
        else:
            hardware = f"unknown {z.sprinkler_type.value} heads"

        state = "" if z.enabled else " DISABLED, do not schedule."
        lines.append(
            f"- Zone {z.id} ({z.name}): Relay {z.relay}. {z.plant_type.value} in {z.sun_exposure} "
            f"with a {z.water_requirement.value} water requirement. Hardware: {hardware}.{state}"
        )
    return "\n".join(lines)


def format_weather(weather: WeatherData) -> str:
    current = weather.current
    humidity = f"{current.humidity:g}% humidity" if current.humidity is not None else "humidity unknown"
    forecast = "\n".join(
        f"  - {f.date}: high {f.temp_high:g}°F, {f.precip_probability:g}% chance of {f.precip_amount:g}\" rain ({f.description})"
        for f in weather.forecast
    )
    return (
        f"- Current: {current.temp:g}°F, {current.description}, {humidity}.\n"
        f"- Recent Rainfall (last 24h): {weather.recent_rainfall:g} inches.\n"
        f"- 7-Day Forecast:\n{forecast}"
    )


def format_history(plan: Optional[WateringSchedule], today: str) -> str:
    """Past days are ground truth; today onwards is the plan being replaced or edited"""
    if plan is None or not plan.schedule:
        return "No prior watering history available. Create a schedule based on the forecast."

    past, future = [], []
    for daily in plan.schedule:
        if not daily.events:
            continue
        events = "; ".join(
            f"{e.zone_name} for {e.duration_minutes} min at {e.start_time}{' (CANCELED)' if e.is_canceled else ''}"
            for e in daily.events
        )
        (past if daily.day < today else future).append(f"- {daily.day}: {events}")

    history = "\n".join(past) or "- No watering occurred in the last few days according to the schedule."
    upcoming = "\n".join(future) or "- No watering is scheduled for the upcoming days."
    return (
        f"**Watering History (Past Events - Ground Truth):**\n{history}\n\n"
        f"**Current & Future Plan:**\n{upcoming}"
    )


def format_local_time(ctx: PlanContext) -> str:
    return (
        f"- User's approximate timezone: {ctx.timezone}\n"
        f"- Current local date for user: {ctx.local_date}\n"
        f"- Current local time for user: {ctx.local_time}"
    )


def build_plan_prompt(ctx: PlanContext, window_start: str = "04:00", window_end: str = "07:00") -> str:
    return f"""You are an expert AI irrigation controller. Create an optimal 7-day watering schedule for a home sprinkler system.

**System Goal:**
- Keep the lawn and garden healthy.
- Conserve water by avoiding watering when it's not needed (after rain, before expected rain).

**Local Time Context:**
{format_local_time(ctx)}

**Timing Rules:**
1. All start times MUST be 24-hour HH:MM in the user's local time.
2. The optimal watering window is {window_start} to {window_end} local time. Schedule all events within it unless there is a compelling reason otherwise.
3. Do NOT schedule events for today that have already passed. If it is 11:00 on {ctx.local_date}, there can be no 05:00 event on {ctx.local_date}; use the next window instead.

**User Preference:** "{ctx.preference.value}"
{PREFERENCE_TIERS}

**Current & Forecasted Weather:**
{format_weather(ctx.weather)}

**Watering Context from Previous Schedule:**
{format_history(ctx.plan, ctx.local_date)}

**Sprinkler Zones:**
{format_zones(ctx.zones)}

**Instructions:**
1. The Watering History is the ground truth of what happened recently; use it to avoid overwatering zones that were recently irrigated. The Current & Future Plan is what you are replacing.
2. {REQUIREMENT_TIERS}
3. {FOUNDATION_RULE}
4. The schedule must contain exactly 7 entries, one per day from {ctx.local_date}, each 'day' formatted YYYY-MM-DD. Days that need no watering have an empty 'events' array.
5. Do not schedule watering if there has been more than 0.5 inches of recent rain, or if there is a >70% chance of significant rain (>0.5 inches) today or tomorrow.
6. Provide a brief 'reasoning'.
7. Reply with JSON only: {{"reasoning": str, "schedule": [{{"day": "YYYY-MM-DD", "events": [{{"zoneId": int, "zoneName": str, "startTime": "HH:MM", "durationMinutes": int}}]}}]}}
"""


def build_chat_prompt(ctx: PlanContext, message: str, transcript: str = "",
                      window_start: str = "04:00", window_end: str = "07:00") -> str:
    conversation = f"\n{transcript}\n" if transcript else ""
    return f"""You are AquaMind AI, an expert irrigation controller chatting with the user.
You either answer questions ("Why are we watering tomorrow?") or modify the schedule on command ("Cancel the watering for the front lawn").

**Current Context:**
- User Preference: "{ctx.preference.value}"
{format_weather(ctx.weather)}
- Zones:
{format_zones(ctx.zones)}

{format_history(ctx.plan, ctx.local_date)}

**Local Time Context:**
{format_local_time(ctx)}
{conversation}
**User's Input:** "{message}"

**Instructions:**
1. Decide whether the input is a question or a command.
2. For a question: set responseType to "answer" and put the reply in 'answer'. Leave the schedule fields empty.
3. For a command: set responseType to "modification" and provide:
   - 'confirmationMessage' describing the change,
   - 'directChangeSchedule': the complete 7-day schedule with ONLY the user's command applied,
   - optionally a 'followUpQuestion' offering a smart compensation, with 'compensatedSchedule' holding the complete 7-day schedule with BOTH the command and the compensation applied.
4. The Watering History is what actually happened; let it drive any compensation (e.g. making up a skipped watering).
5. The optimal watering window is {window_start} to {window_end} local time. Do not modify or add events at times that have already passed today. If the command is impossible, explain why in 'confirmationMessage' and return the schedule unchanged.
6. Reply with JSON only: {{"responseType": "answer"|"modification", "answer": str|null, "confirmationMessage": str|null, "followUpQuestion": str|null, "directChangeSchedule": [DailySchedule]|null, "compensatedSchedule": [DailySchedule]|null, "reasoning": str|null}}
"""


def build_proactive_prompt(ctx: PlanContext, reasons: List[str]) -> str:
    detected = "\n".join(f"- {r}" for r in reasons)
    return f"""You are AquaMind AI, an expert irrigation controller performing a proactive check.
The forecast has changed significantly since the current plan was made. Decide whether the plan is still optimal.

**Current System Status:** {ctx.extra.get("system_status", "Unknown")}

**Local Time Context:**
{format_local_time(ctx)}

**Current Schedule Context:**
{format_history(ctx.plan, ctx.local_date)}

**Latest Weather Data:**
{format_weather(ctx.weather)}

**Detected Significant Changes:**
{detected}

**Sprinkler Zones:**
{format_zones(ctx.zones)}

**Instructions:**
1. BE CONSERVATIVE. Only adjust when the changes above give a high-confidence reason that saves considerable water or prevents damage.
2. Do not touch events at times that have already passed today.
3. If no adjustment is needed, set isAdjustmentNeeded to false and the other fields to null.
4. Otherwise set isAdjustmentNeeded to true, return the complete new 7-day plan in 'newSchedule' and explain exactly what changed and why in 'notificationMessage'.
5. Reply with JSON only: {{"isAdjustmentNeeded": bool, "notificationMessage": str|null, "newSchedule": {{"reasoning": str, "schedule": [DailySchedule]}}|null}}
"""
