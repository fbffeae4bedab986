"""Roll bucket series up into day, week and month calendar views."""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from itertools import groupby
from typing import Any, Dict, Iterable, List, Sequence

from .classify import Bucket
from .tzcalendar import TimeZoneCalendar, format_hour

logger = logging.getLogger(__name__)

WEEK_DAYS = 7
GRID_CELLS = 42
ONLINE_DAY_THRESHOLD = 50


@dataclass(frozen=True)
class DaySummary:
    local_date: date
    day_name: str
    uptime_percentage: float = 0.0
    online_session_count: int = 0
    offline_session_count: int = 0
    total_heartbeats: int = 0
    is_online_day: bool = False
    peak_activity_hour: str | None = None
    bucket_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["local_date"] = self.local_date.isoformat()
        return data


@dataclass(frozen=True)
class MonthDayData:
    local_date: date
    day_of_month: int
    is_current_month: bool
    is_today: bool
    has_data: bool = False
    day_name: str = ""
    uptime_percentage: float = 0.0
    online_session_count: int = 0
    offline_session_count: int = 0
    total_heartbeats: int = 0
    is_online_day: bool = False
    peak_activity_hour: str | None = None
    bucket_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["local_date"] = self.local_date.isoformat()
        return data


@dataclass(frozen=True)
class MonthSummary:
    average_uptime: float = 0.0
    online_days: int = 0
    offline_days: int = 0
    online_session_count: int = 0
    offline_session_count: int = 0
    total_heartbeats: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _summarize_day(
    day: date, buckets: Sequence[Bucket], calendar: TimeZoneCalendar
) -> DaySummary:
    online = sum(1 for b in buckets if b.is_online)
    uptime = online / len(buckets) * 100 if buckets else 0.0

    online_runs = 0
    offline_runs = 0
    state: bool | None = None
    heartbeats_by_hour = [0] * 24
    for b in buckets:
        if b.is_online != state:
            if b.is_online:
                online_runs += 1
            else:
                offline_runs += 1
            state = b.is_online
        heartbeats_by_hour[calendar.local_hour(b.start)] += b.heartbeat_count

    peak_count = max(heartbeats_by_hour)
    peak = heartbeats_by_hour.index(peak_count) if peak_count > 0 else None
    return DaySummary(
        local_date=day,
        day_name=calendar.day_name(day),
        uptime_percentage=round(uptime, 2),
        online_session_count=online_runs,
        offline_session_count=offline_runs,
        total_heartbeats=sum(heartbeats_by_hour),
        is_online_day=uptime > ONLINE_DAY_THRESHOLD,
        peak_activity_hour=format_hour(peak) if peak is not None else None,
        bucket_count=len(buckets),
    )


def summarize_days(
    buckets: Sequence[Bucket], calendar: TimeZoneCalendar
) -> List[DaySummary]:
    """Group a bucket series by local date, oldest day first."""

    summaries = [
        _summarize_day(day, list(group), calendar)
        for day, group in groupby(buckets, key=lambda b: calendar.local_date(b.start))
    ]
    logger.debug("Summarised %d buckets into %d days", len(buckets), len(summaries))
    return summaries


def _empty_day(day: date, calendar: TimeZoneCalendar) -> DaySummary:
    return DaySummary(local_date=day, day_name=calendar.day_name(day))


def week(
    summaries: Iterable[DaySummary],
    today: date,
    calendar: TimeZoneCalendar,
) -> List[DaySummary]:
    """Return the seven local days ending today, oldest first.

    Days after *today* are dropped; days without buckets are zero-filled.
    """

    by_date = {s.local_date: s for s in summaries if s.local_date <= today}
    days = [today - timedelta(days=offset) for offset in range(WEEK_DAYS - 1, -1, -1)]
    return [by_date.get(day) or _empty_day(day, calendar) for day in days]


def grid_start(year: int, month: int) -> date:
    """Return the Sunday on or before the first day of the month."""

    first = date(year, month, 1)
    return first - timedelta(days=(first.weekday() + 1) % 7)


def month_grid(
    summaries: Iterable[DaySummary],
    year: int,
    month: int,
    today: date,
) -> List[MonthDayData]:
    """Lay day summaries onto a six-week Sunday-first grid.

    Cells outside the month and days after *today* carry zeroed stats.
    """

    by_date = {s.local_date: s for s in summaries if s.local_date <= today}
    start = grid_start(year, month)
    cells: List[MonthDayData] = []
    for offset in range(GRID_CELLS):
        day = start + timedelta(days=offset)
        in_month = day.month == month and day.year == year
        summary = by_date.get(day) if in_month else None
        if summary is None:
            cells.append(
                MonthDayData(
                    local_date=day,
                    day_of_month=day.day,
                    is_current_month=in_month,
                    is_today=in_month and day == today,
                    day_name=TimeZoneCalendar.day_name(day),
                )
            )
            continue
        cells.append(
            MonthDayData(
                local_date=day,
                day_of_month=day.day,
                is_current_month=True,
                is_today=day == today,
                has_data=True,
                day_name=summary.day_name,
                uptime_percentage=summary.uptime_percentage,
                online_session_count=summary.online_session_count,
                offline_session_count=summary.offline_session_count,
                total_heartbeats=summary.total_heartbeats,
                is_online_day=summary.is_online_day,
                peak_activity_hour=summary.peak_activity_hour,
                bucket_count=summary.bucket_count,
            )
        )
    return cells


def month_summary(cells: Iterable[MonthDayData]) -> MonthSummary:
    """Aggregate the measured days of the displayed month."""

    measured = [c for c in cells if c.is_current_month and c.has_data]
    if not measured:
        return MonthSummary()
    online_days = sum(1 for c in measured if c.is_online_day)
    return MonthSummary(
        average_uptime=round(
            sum(c.uptime_percentage for c in measured) / len(measured), 2
        ),
        online_days=online_days,
        offline_days=len(measured) - online_days,
        online_session_count=sum(c.online_session_count for c in measured),
        offline_session_count=sum(c.offline_session_count for c in measured),
        total_heartbeats=sum(c.total_heartbeats for c in measured),
    )
