"""Local calendar arithmetic for a single configured timezone.

Every grouping by local day or hour goes through :class:`TimeZoneCalendar`.
Offsets come from the IANA database, so daylight-saving transitions are
handled without any fixed-offset arithmetic.
"""
from __future__ import annotations

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_DAY_NAMES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

_MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


def ensure_utc(instant: datetime) -> datetime:
    """Return *instant* as an aware UTC datetime; naive values are taken as UTC."""

    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def format_hour(hour: int) -> str:
    return f"{hour:02d}:00"


class TimeZoneCalendar:
    """Convert instants to local calendar values in one timezone."""

    def __init__(self, name: str = "America/Los_Angeles") -> None:
        try:
            self.tz = ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone '{name}'") from exc
        self.name = name

    def __repr__(self) -> str:
        return f"TimeZoneCalendar({self.name!r})"

    def to_local(self, instant: datetime) -> datetime:
        return ensure_utc(instant).astimezone(self.tz)

    def local_date(self, instant: datetime) -> date:
        return self.to_local(instant).date()

    def local_hour(self, instant: datetime) -> int:
        return self.to_local(instant).hour

    def start_of_date(self, day: date) -> datetime:
        """Return the UTC instant of local midnight at the start of *day*."""

        # A midnight skipped by a DST jump resolves with the pre-transition offset.
        return datetime.combine(day, time(0), tzinfo=self.tz).astimezone(timezone.utc)

    def start_of_local_day(self, instant: datetime) -> datetime:
        return self.start_of_date(self.local_date(instant))

    def today(self, now: datetime | None = None) -> date:
        if now is None:
            now = datetime.now(timezone.utc)
        return self.local_date(now)

    def display_time(self, instant: datetime) -> str:
        return self.to_local(instant).strftime("%H:%M")

    @staticmethod
    def day_name(day: date) -> str:
        return _DAY_NAMES[day.weekday()]

    @staticmethod
    def format_date(day: date) -> str:
        return f"{_MONTH_NAMES[day.month - 1][:3]} {day.day}, {day.year}"

    @staticmethod
    def month_name(year: int, month: int) -> str:
        return f"{_MONTH_NAMES[month - 1]} {year}"
