"""
Pattern-based intent classifier

Free text is tested against an ordered list of recognizers; the first match
wins. Each recognizer is plain data (kind, regex, extractor, confirmation
rule) so it can be exercised on its own.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Pattern

from pydantic import Field

from agents.schedule.models import CamelModel, HHMM_PATTERN

ALL_ZONES = "all"
MATCH_CONFIDENCE = 0.9
DAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]

_WEEKDAY_INDEX = {
    "sunday": 0, "monday": 1, "tuesday": 2, "wednesday": 3,
    "thursday": 4, "friday": 5, "saturday": 6,
}
_DAY_ALIASES = {
    "weekday": [1, 2, 3, 4, 5],
    "weekend": [0, 6],
    "day": [0, 1, 2, 3, 4, 5, 6],
    "daily": [0, 1, 2, 3, 4, 5, 6],
}
_DAY_TOKEN = re.compile(
    r"\b(sunday|monday|tuesday|wednesday|thursday|friday|saturday|weekday|weekend|daily|day)s?\b"
)
_SCHEDULE_ZONE = re.compile(r"\bzone\s+(\d+)")
# "at 6", "at 6:30", "at 6pm"; without "at" only "6:30" or "6pm" count as a time
_SCHEDULE_TIME = re.compile(
    r"\bat\s+(?P<hour>\d{1,2})(?::(?P<minute>\d{2}))?\s*(?P<meridiem>am|pm)?\b"
    r"|\b(?P<hour2>\d{1,2})(?::(?P<minute2>\d{2})\s*(?P<meridiem2>am|pm)?|\s*(?P<meridiem3>am|pm))\b"
)
_SCHEDULE_DURATION = re.compile(
    r"\b(?:for|duration(?:\s+of)?)\s+(\d+(?:\.\d+)?)\s*(minutes?|mins?|seconds?|secs?)\b"
)


class IntentKind(str, Enum):
    START_ZONE = "startZone"
    STOP_ZONE = "stopZone"
    SET_RAIN_DELAY = "setRainDelay"
    CLEAR_RAIN_DELAY = "clearRainDelay"
    CREATE_SCHEDULE = "createSchedule"
    GET_STATUS = "getStatus"
    UNKNOWN = "unknown"


class ParsedIntent(CamelModel):
    kind: IntentKind
    parameters: Dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(0.0, ge=0, le=1)
    requires_confirmation: bool = False
    validation_errors: List[str] = Field(default_factory=list)

    @property
    def is_actionable(self) -> bool:
        return self.kind != IntentKind.UNKNOWN

    @property
    def is_executable(self) -> bool:
        return self.is_actionable and not self.validation_errors


@dataclass(frozen=True)
class IntentRecognizer:
    kind: IntentKind
    pattern: Pattern
    extract: Callable[[re.Match, str], Dict[str, Any]]
    needs_confirmation: Callable[[Dict[str, Any]], bool]

    def match(self, text: str) -> Optional[Dict[str, Any]]:
        m = self.pattern.search(text)
        return self.extract(m, text) if m else None


def _to_seconds(amount: Optional[str], unit: Optional[str], default_sec: int) -> int:
    if amount is None:
        return default_sec
    value = float(amount)
    if unit and unit.startswith("sec"):
        return int(round(value))
    return int(round(value * 60))


def _hours(amount: Optional[str], unit: Optional[str]) -> Optional[int]:
    if amount is None:
        return None
    hours = int(amount)
    return hours * 24 if unit and unit.startswith("day") else hours


def _days_of_week(text: str) -> List[int]:
    days = set()
    for token in _DAY_TOKEN.findall(text):
        if token in _WEEKDAY_INDEX:
            days.add(_WEEKDAY_INDEX[token])
        else:
            days.update(_DAY_ALIASES[token])
    return sorted(days)


def _never(params: Dict[str, Any]) -> bool:
    return False


def _always(params: Dict[str, Any]) -> bool:
    return True


def format_duration(seconds: int) -> str:
    if seconds % 60 == 0:
        minutes = seconds // 60
        return f"{minutes} minute{'' if minutes == 1 else 's'}"
    return f"{seconds} second{'' if seconds == 1 else 's'}"


def format_days(days: List[int]) -> str:
    return ", ".join(DAY_NAMES[d] for d in days if 0 <= d <= 6)


class IntentClassifier:
    """Maps free text to a typed, validated command"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.min_zone_id = config.get("min_zone_id", 1)
        self.max_zone_id = config.get("max_zone_id", 4)
        self.default_duration_sec = config.get("default_duration_sec", 600)
        self.confirm_above_sec = config.get("confirm_above_sec", 600)
        self.max_duration_sec = config.get("max_duration_sec", 3600)
        self.min_rain_delay_hours = config.get("min_rain_delay_hours", 1)
        self.max_rain_delay_hours = config.get("max_rain_delay_hours", 168)
        self.recognizers = self._build_recognizers()

    def _build_recognizers(self) -> List[IntentRecognizer]:
        default_sec = self.default_duration_sec

        def create_schedule(m: re.Match, text: str) -> Dict[str, Any]:
            rest = text[m.end():]
            zone = _SCHEDULE_ZONE.search(rest)
            at = _SCHEDULE_TIME.search(rest)
            start_time = None
            if at:
                hour = int(at.group("hour") or at.group("hour2"))
                minute = int(at.group("minute") or at.group("minute2") or 0)
                meridiem = at.group("meridiem") or at.group("meridiem2") or at.group("meridiem3")
                if meridiem == "pm" and hour < 12:
                    hour += 12
                elif meridiem == "am" and hour == 12:
                    hour = 0
                start_time = f"{hour:02d}:{minute:02d}"
            duration = _SCHEDULE_DURATION.search(rest)
            return {
                "zoneId": int(zone.group(1)) if zone else None,
                "startTime": start_time,
                "daysOfWeek": _days_of_week(rest),
                "durationSec": _to_seconds(duration.group(1), duration.group(2), default_sec) if duration else default_sec,
            }

        def start_zone(m: re.Match, text: str) -> Dict[str, Any]:
            return {
                "zoneId": int(m.group(1)),
                "durationSec": _to_seconds(m.group(2), m.group(3), default_sec),
            }

        return [
            IntentRecognizer(
                IntentKind.CREATE_SCHEDULE,
                re.compile(r"\b(?:create|add|set up|make)\s+(?:a\s+)?(?:new\s+)?(?:watering\s+)?schedule\b"),
                create_schedule,
                _always,
            ),
            IntentRecognizer(
                IntentKind.STOP_ZONE,
                re.compile(r"\b(?:stop|turn off|shut off|deactivate|halt)\s+(?:all\b|everything|every zone)"),
                lambda m, text: {"zoneId": ALL_ZONES},
                _always,
            ),
            IntentRecognizer(
                IntentKind.STOP_ZONE,
                re.compile(r"\b(?:stop|turn off|shut off|deactivate|halt|cancel)\s+(?:zone\s+)?(\d+)"),
                lambda m, text: {"zoneId": int(m.group(1))},
                _never,
            ),
            IntentRecognizer(
                IntentKind.CLEAR_RAIN_DELAY,
                re.compile(r"\b(?:clear|remove|cancel|disable|deactivate|end|stop|turn off)\s+(?:the\s+)?rain\s*delay"),
                lambda m, text: {},
                _never,
            ),
            IntentRecognizer(
                IntentKind.SET_RAIN_DELAY,
                re.compile(
                    r"\b(?:set|activate|enable|create|add|start)\s+(?:a\s+)?rain\s*delay"
                    r"(?:\s+(?:for|of))?(?:\s+(\d+)\s*(hours?|hrs?|days?)?)?"
                ),
                lambda m, text: {"hours": _hours(m.group(1), m.group(2))},
                _never,
            ),
            IntentRecognizer(
                IntentKind.SET_RAIN_DELAY,
                re.compile(
                    r"\b(?:pause|suspend|delay)\s+(?:all\s+)?(?:watering|irrigation|zones|all zones)"
                    r"(?:\s+(?:for|of))?\s+(\d+)\s*(hours?|hrs?|days?)?"
                ),
                lambda m, text: {"hours": _hours(m.group(1), m.group(2))},
                _never,
            ),
            IntentRecognizer(
                IntentKind.CLEAR_RAIN_DELAY,
                re.compile(r"\b(?:resume|restart|continue|unpause)\s+(?:the\s+)?(?:watering|irrigation)"),
                lambda m, text: {},
                _never,
            ),
            IntentRecognizer(
                IntentKind.START_ZONE,
                re.compile(
                    r"\b(?:start|run|turn on|activate|water)\s+(?:zone\s+)?(\d+)"
                    r"(?:\s+(?:for\s+|duration\s+)?(\d+(?:\.\d+)?)\s*(minutes?|mins?|seconds?|secs?)?)?"
                ),
                start_zone,
                lambda params: params["durationSec"] > self.confirm_above_sec,
            ),
            IntentRecognizer(
                IntentKind.GET_STATUS,
                re.compile(r"\b(?:what'?s|what is|show|tell me|check)\s+(?:me\s+)?(?:the\s+)?(?:status|running|active|current)"),
                lambda m, text: {},
                _never,
            ),
            IntentRecognizer(
                IntentKind.GET_STATUS,
                re.compile(r"\b(?:is\s+)?(?:anything|any zones?)\s+(?:running|active|on)\b"),
                lambda m, text: {},
                _never,
            ),
        ]

    def parse_intent(self, text: str) -> ParsedIntent:
        normalized = " ".join((text or "").strip().lower().split())

        for recognizer in self.recognizers:
            params = recognizer.match(normalized)
            if params is None:
                continue

            errors = self.validate_intent(recognizer.kind, params)
            return ParsedIntent(
                kind=recognizer.kind,
                parameters=params,
                confidence=MATCH_CONFIDENCE,
                requires_confirmation=recognizer.needs_confirmation(params),
                validation_errors=errors,
            )

        return ParsedIntent(kind=IntentKind.UNKNOWN)

    def _zone_errors(self, zone_id: Any, allow_all: bool = False) -> List[str]:
        if allow_all and zone_id == ALL_ZONES:
            return []
        if not isinstance(zone_id, int) or not self.min_zone_id <= zone_id <= self.max_zone_id:
            return [f"Invalid zone ID. Must be {self.min_zone_id}-{self.max_zone_id}"]
        return []

    def _duration_errors(self, duration: Any) -> List[str]:
        if not isinstance(duration, int) or duration < 1:
            return ["Invalid duration. Must be at least 1 second"]
        if duration > self.max_duration_sec:
            return [f"Duration too long. Maximum is {self.max_duration_sec // 60} minutes"]
        return []

    def validate_intent(self, kind: IntentKind, params: Dict[str, Any]) -> List[str]:
        errors: List[str] = []

        if kind == IntentKind.START_ZONE:
            errors += self._zone_errors(params.get("zoneId"))
            errors += self._duration_errors(params.get("durationSec"))

        elif kind == IntentKind.STOP_ZONE:
            errors += self._zone_errors(params.get("zoneId"), allow_all=True)

        elif kind == IntentKind.SET_RAIN_DELAY:
            hours = params.get("hours")
            if not isinstance(hours, int) or not self.min_rain_delay_hours <= hours <= self.max_rain_delay_hours:
                errors.append(
                    f"Invalid rain delay. Must be {self.min_rain_delay_hours}-{self.max_rain_delay_hours} hours (7 days)"
                )

        elif kind == IntentKind.CREATE_SCHEDULE:
            errors += self._zone_errors(params.get("zoneId"))
            if not HHMM_PATTERN.match(str(params.get("startTime", ""))):
                errors.append("Invalid start time. Use 24-hour HH:MM")
            if not params.get("daysOfWeek"):
                errors.append("Must specify at least one day")
            errors += self._duration_errors(params.get("durationSec"))

        return errors

    def generate_confirmation_message(self, intent: ParsedIntent) -> str:
        params = intent.parameters

        if intent.kind == IntentKind.START_ZONE:
            return f"Confirm: Start Zone {params['zoneId']} for {format_duration(params['durationSec'])}?"
        if intent.kind == IntentKind.STOP_ZONE:
            if params.get("zoneId") == ALL_ZONES:
                return "Confirm: Stop all active zones?"
            return f"Confirm: Stop Zone {params['zoneId']}?"
        if intent.kind == IntentKind.SET_RAIN_DELAY:
            return f"Confirm: Set a rain delay for {params.get('hours')} hours?"
        if intent.kind == IntentKind.CLEAR_RAIN_DELAY:
            return "Confirm: Clear the rain delay and resume watering?"
        if intent.kind == IntentKind.CREATE_SCHEDULE:
            return (
                f"Confirm: Create schedule for Zone {params['zoneId']} at {params['startTime']} "
                f"on {format_days(params['daysOfWeek'])} for {format_duration(params['durationSec'])}?"
            )
        return "Confirm this action?"
