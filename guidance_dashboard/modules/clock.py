"""
Clock Module - QR Guidance Attendance Dashboard

Civil date/time helpers pinned to one school timezone. Every date string the
ledger stores and every time-in a scan records comes from here, so the host
machine's local zone never leaks into attendance data.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo
import logging

DEFAULT_TIMEZONE = 'Asia/Manila'


@dataclass(frozen=True)
class CivilDateTime:
    """Current wall-clock moment in the school timezone."""
    date: str
    time: str
    hours: int
    minutes: int
    total_minutes: int
    day_name: str
    year: int


@dataclass(frozen=True)
class CivilDate:
    """A calendar day relative to today in the school timezone."""
    date: str
    day_short: str
    day_full: str
    year: int


class CivilClock:
    """
    Produces civil dates and times for a fixed timezone.

    Args:
        tz_name (str): IANA timezone name
        now_func (Callable): Returns the current aware datetime (tests pin it)
    """

    def __init__(self, tz_name: str = DEFAULT_TIMEZONE,
                 now_func: Optional[Callable[[], datetime]] = None):
        self.tz = ZoneInfo(tz_name)
        self.tz_name = tz_name
        self._now_func = now_func or (lambda: datetime.now(timezone.utc))
        self.logger = logging.getLogger(__name__)

    def _local_now(self) -> datetime:
        current = self._now_func()
        if current.tzinfo is None:
            # naive datetimes are taken as already being school-local
            return current.replace(tzinfo=self.tz)
        return current.astimezone(self.tz)

    def now(self) -> CivilDateTime:
        """Get the current civil date and time."""
        local = self._local_now()
        return CivilDateTime(
            date=local.strftime('%Y-%m-%d'),
            time=local.strftime('%I:%M %p'),
            hours=local.hour,
            minutes=local.minute,
            total_minutes=local.hour * 60 + local.minute,
            day_name=local.strftime('%A'),
            year=local.year
        )

    def today(self) -> str:
        return self.now().date

    def date_offset(self, delta_days: int = 0) -> CivilDate:
        """
        Get the civil date `delta_days` away from today (negative for past days).

        Args:
            delta_days (int): Day offset from today

        Returns:
            CivilDate: Date string, weekday names and year
        """
        target = self._local_now() + timedelta(days=delta_days)
        return CivilDate(
            date=target.strftime('%Y-%m-%d'),
            day_short=target.strftime('%a'),
            day_full=target.strftime('%A'),
            year=target.year
        )


def parse_civil_date(value: str) -> str:
    """Validate a YYYY-MM-DD string and return it normalized."""
    try:
        return datetime.strptime(value.strip(), '%Y-%m-%d').strftime('%Y-%m-%d')
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD")
