"""
Local time helpers: postal-code timezone lookup and "now" in the plan owner's zone
"""
from datetime import datetime, timedelta, date
from typing import Callable, List, Optional, Tuple

from dateutil import tz

DEFAULT_TIMEZONE = "America/Chicago"

# Simplified US ZIP prefix -> IANA zone table, not exhaustive
_ZIP_PREFIX_ZONES: List[Tuple[int, int, str]] = [
    (0, 499, "America/New_York"),
    (500, 849, "America/Chicago"),
    (850, 935, "America/Denver"),
    (936, 999, "America/Los_Angeles"),
]


def timezone_for_zip(zip_code: str) -> str:
    """Map a US postal code to an IANA timezone name"""
    try:
        prefix = int(str(zip_code).strip()[:3])
    except (TypeError, ValueError):
        return DEFAULT_TIMEZONE
    for low, high, zone in _ZIP_PREFIX_ZONES:
        if low <= prefix <= high:
            return zone
    return DEFAULT_TIMEZONE


def utc_now() -> datetime:
    return datetime.now(tz.UTC)


class LocalClock:
    """Current date/time in a fixed IANA zone; ``source`` is injectable for tests"""

    def __init__(self, timezone_name: str, source: Optional[Callable[[], datetime]] = None):
        self.timezone_name = timezone_name
        self.tzinfo = tz.gettz(timezone_name) or tz.gettz(DEFAULT_TIMEZONE)
        self._source = source or utc_now

    def with_timezone(self, timezone_name: str) -> "LocalClock":
        return LocalClock(timezone_name, self._source)

    def now(self) -> datetime:
        current = self._source()
        if current.tzinfo is None:
            current = current.replace(tzinfo=tz.UTC)
        return current.astimezone(self.tzinfo)

    def today(self) -> date:
        return self.now().date()

    def today_str(self) -> str:
        return self.today().isoformat()

    def time_str(self) -> str:
        return self.now().strftime("%H:%M")

    def horizon(self, days: int = 7) -> List[str]:
        start = self.today()
        return [(start + timedelta(days=i)).isoformat() for i in range(days)]

    def timestamp(self) -> str:
        return self.now().isoformat(timespec="seconds")
