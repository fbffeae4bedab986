"""Bucket boundaries and window selection."""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Tuple

from .errors import InvalidWindow, WindowTooLarge
from .tzcalendar import TimeZoneCalendar, ensure_utc

logger = logging.getLogger(__name__)

MAX_BUCKETS = 100_000
SUPPORTED_INTERVALS = (5, 15, 30, 60, 120)

ROLLING_MODES = {"rolling24h", "24h"}
FIXED_MODES = {"fixedRange", "fixed"}

ROLLING_HOURS = 24

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Named ranges offered by the dashboard date picker, in local days back from today
PRESET_DAYS = {
    "24h": 0,
    "7d": 7,
    "30d": 30,
    "90d": 90,
}

Window = Tuple[datetime, datetime]


def _width(interval_minutes: int) -> timedelta:
    return timedelta(minutes=interval_minutes)


def bucket_count(start: datetime, end: datetime, interval_minutes: int) -> int:
    """Return ``ceil((end - start) / interval)``."""

    return -(-(end - start) // _width(interval_minutes))


def bucket_starts(
    start: datetime,
    end: datetime,
    interval_minutes: int,
    max_buckets: int = MAX_BUCKETS,
) -> List[datetime]:
    """Return the start of every bucket covering ``[start, end)``.

    The last bucket may extend past *end*; callers clip it to the window.
    """

    if interval_minutes <= 0:
        raise InvalidWindow(f"Interval must be positive, got {interval_minutes}")
    start = ensure_utc(start)
    end = ensure_utc(end)
    if end <= start:
        raise InvalidWindow(
            f"Window end {end.isoformat()} is not after start {start.isoformat()}"
        )
    count = bucket_count(start, end, interval_minutes)
    if count > max_buckets:
        raise WindowTooLarge(count, max_buckets)
    width = _width(interval_minutes)
    logger.debug(
        "Generating %d buckets of %d minutes from %s", count, interval_minutes, start
    )
    return [start + k * width for k in range(count)]


def floor_to_interval(instant: datetime, interval_minutes: int) -> datetime:
    """Round *instant* down to a multiple of the interval since the Unix epoch."""

    width = _width(interval_minutes)
    return _EPOCH + ((ensure_utc(instant) - _EPOCH) // width) * width


def ceil_to_interval(instant: datetime, interval_minutes: int) -> datetime:
    floored = floor_to_interval(instant, interval_minutes)
    if floored == ensure_utc(instant):
        return floored
    return floored + _width(interval_minutes)


def check_interval(interval_minutes: int) -> None:
    if interval_minutes not in SUPPORTED_INTERVALS:
        allowed = ", ".join(str(i) for i in SUPPORTED_INTERVALS)
        raise InvalidWindow(
            f"Unsupported interval {interval_minutes}; expected one of {allowed}"
        )


def rolling_window(now: datetime, interval_minutes: int) -> Window:
    """Return the last 24 hours ending at the next interval boundary after *now*."""

    end = ceil_to_interval(now, interval_minutes)
    start = floor_to_interval(end - timedelta(hours=ROLLING_HOURS), interval_minutes)
    return start, end


def extent_window(
    timestamps: Iterable[datetime], interval_minutes: int
) -> Window | None:
    """Return the window spanned by *timestamps*, rounded outward.

    The end is the boundary after the latest timestamp so it always falls
    inside the last bucket. Returns ``None`` when there are no timestamps.
    """

    values = [ensure_utc(ts) for ts in timestamps]
    if not values:
        return None
    start = floor_to_interval(min(values), interval_minutes)
    end = floor_to_interval(max(values), interval_minutes) + _width(interval_minutes)
    return start, end


def date_window(
    start_date: date, end_date: date, calendar: TimeZoneCalendar
) -> Window:
    """Return ``[local midnight of start_date, local midnight after end_date)``."""

    if end_date < start_date:
        raise InvalidWindow(
            f"End date {end_date.isoformat()} is before start date {start_date.isoformat()}"
        )
    start = calendar.start_of_date(start_date)
    end = calendar.start_of_date(end_date + timedelta(days=1))
    return start, end


def preset_dates(preset: str, today: date) -> Tuple[date, date]:
    """Map a named range such as ``7d`` to local ``(start_date, end_date)``."""

    if preset == "1y":
        try:
            return today.replace(year=today.year - 1), today
        except ValueError:
            # 29 February has no counterpart in the previous year
            return today.replace(year=today.year - 1, day=28), today
    if preset not in PRESET_DAYS:
        raise InvalidWindow(f"Unknown date range preset '{preset}'")
    return today - timedelta(days=PRESET_DAYS[preset]), today
