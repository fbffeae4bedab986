"""Uptime views built from a device's heartbeats.

Each view is computed from scratch for every call: the heartbeat list is
copied into a sorted index, bucketed, classified and then reduced. Nothing is
cached between calls, so repeated calls with the same inputs and ``now``
produce identical results.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Tuple

from . import patterns as patterns_mod
from . import rollup
from . import stats as stats_mod
from .buckets import (
    FIXED_MODES,
    ROLLING_MODES,
    Window,
    bucket_starts,
    check_interval,
    date_window,
    extent_window,
    preset_dates,
    rolling_window,
)
from .classify import Bucket, classify
from .errors import InvalidWindow
from .heartbeats import HeartbeatIndexer, HeartbeatRecord
from .options import Options
from .patterns import DevicePatterns
from .stats import UptimeStats
from .tzcalendar import TimeZoneCalendar, ensure_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DateRange:
    start_date: str = ""
    end_date: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"start_date": self.start_date, "end_date": self.end_date}


@dataclass
class Timeline:
    mode: str
    interval_minutes: int
    timezone: str
    window_start: datetime | None
    window_end: datetime | None
    buckets: List[Bucket] = field(default_factory=list)
    stats: UptimeStats = field(default_factory=UptimeStats)
    patterns: DevicePatterns = field(default_factory=DevicePatterns)
    date_range: DateRange = field(default_factory=DateRange)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "interval_minutes": self.interval_minutes,
            "timezone": self.timezone,
            "window_start": _iso(self.window_start),
            "window_end": _iso(self.window_end),
            "date_range": self.date_range.to_dict(),
            "buckets": [b.to_dict() for b in self.buckets],
            "stats": self.stats.to_dict(),
            "patterns": self.patterns.to_dict(),
        }


@dataclass
class WeekView:
    today: date
    window_start: datetime
    window_end: datetime
    days: List[rollup.DaySummary]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "today": self.today.isoformat(),
            "window_start": _iso(self.window_start),
            "window_end": _iso(self.window_end),
            "days": [d.to_dict() for d in self.days],
        }


@dataclass
class MonthView:
    year: int
    month: int
    month_name: str
    cells: List[rollup.MonthDayData]
    summary: rollup.MonthSummary

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "month": self.month,
            "month_name": self.month_name,
            "cells": [c.to_dict() for c in self.cells],
            "summary": self.summary.to_dict(),
        }


def _iso(value: datetime | None) -> str | None:
    return value.astimezone(timezone.utc).isoformat() if value is not None else None


def _now(now: datetime | None) -> datetime:
    return ensure_utc(now) if now is not None else datetime.now(timezone.utc)


def _index(heartbeats: Iterable[HeartbeatRecord]) -> HeartbeatIndexer:
    return HeartbeatIndexer(
        replace(hb, timestamp=ensure_utc(hb.timestamp)) for hb in heartbeats
    )


def normalise_mode(mode: str) -> str:
    if mode in ROLLING_MODES:
        return "rolling24h"
    if mode in FIXED_MODES:
        return "fixedRange"
    raise InvalidWindow(f"Unknown window mode '{mode}'")


def resolve_window(
    mode: str,
    interval_minutes: int,
    calendar: TimeZoneCalendar,
    *,
    now: datetime,
    timestamps: Iterable[datetime] = (),
    start_date: date | None = None,
    end_date: date | None = None,
    preset: str | None = None,
) -> Window | None:
    """Pick the window for a timeline request.

    Returns ``None`` only for a data-extent window over no heartbeats.
    """

    check_interval(interval_minutes)
    if normalise_mode(mode) == "rolling24h":
        return rolling_window(now, interval_minutes)
    if preset is not None:
        start_date, end_date = preset_dates(preset, calendar.today(now))
    if start_date is not None and end_date is not None:
        return date_window(start_date, end_date, calendar)
    if start_date is not None or end_date is not None:
        raise InvalidWindow("Both start_date and end_date are required for a date range")
    return extent_window(timestamps, interval_minutes)


def build_series(
    indexer: HeartbeatIndexer,
    window: Window,
    interval_minutes: int,
    calendar: TimeZoneCalendar,
    options: Options,
) -> List[Bucket]:
    start, end = window
    starts = bucket_starts(start, end, interval_minutes, options.max_buckets)
    return classify(
        indexer,
        starts,
        interval_minutes,
        end,
        calendar,
        grace_minutes=options.grace_minutes,
    )


def _date_range(buckets: List[Bucket], calendar: TimeZoneCalendar) -> DateRange:
    if not buckets:
        return DateRange()
    return DateRange(
        start_date=calendar.format_date(calendar.local_date(buckets[0].start)),
        end_date=calendar.format_date(calendar.local_date(buckets[-1].start)),
    )


def timeline(
    heartbeats: Iterable[HeartbeatRecord],
    *,
    mode: str = "rolling24h",
    interval_minutes: int | None = None,
    options: Options | None = None,
    now: datetime | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    preset: str | None = None,
) -> Timeline:
    """Return the bucketed online/offline timeline with stats and patterns."""

    options = options or Options()
    interval = (
        interval_minutes if interval_minutes is not None else options.default_interval
    )
    calendar = TimeZoneCalendar(options.timezone)
    indexer = _index(heartbeats)
    now = _now(now)

    window = resolve_window(
        mode,
        interval,
        calendar,
        now=now,
        timestamps=indexer.timestamps,
        start_date=start_date,
        end_date=end_date,
        preset=preset,
    )
    result = Timeline(
        mode=normalise_mode(mode),
        interval_minutes=interval,
        timezone=calendar.name,
        window_start=window[0] if window else None,
        window_end=window[1] if window else None,
    )
    if window is None:
        logger.debug("No heartbeats to derive a window from")
        return result

    buckets = build_series(indexer, window, interval, calendar, options)
    result.buckets = buckets
    result.stats = stats_mod.from_buckets(buckets, interval)
    result.patterns = patterns_mod.analyze(buckets, interval, calendar)
    result.date_range = _date_range(buckets, calendar)
    return result


def _calendar_series(
    heartbeats: Iterable[HeartbeatRecord],
    first_day: date,
    days: int,
    now: datetime,
    calendar: TimeZoneCalendar,
    options: Options,
) -> Tuple[Window, List[Bucket]]:
    """Bucket the local days starting at *first_day*, stopping at *now*."""

    start = calendar.start_of_date(first_day)
    end = min(calendar.start_of_date(first_day + timedelta(days=days)), now)
    if end <= start:
        return (start, start), []
    window = (start, end)
    buckets = build_series(
        _index(heartbeats), window, options.calendar_interval, calendar, options
    )
    return window, buckets


def week_view(
    heartbeats: Iterable[HeartbeatRecord],
    *,
    options: Options | None = None,
    now: datetime | None = None,
) -> WeekView:
    """Return daily summaries for the seven local days ending today."""

    options = options or Options()
    calendar = TimeZoneCalendar(options.timezone)
    now = _now(now)
    today = calendar.today(now)
    first_day = today - timedelta(days=rollup.WEEK_DAYS - 1)
    window, buckets = _calendar_series(
        heartbeats, first_day, rollup.WEEK_DAYS, now, calendar, options
    )
    days = rollup.week(rollup.summarize_days(buckets, calendar), today, calendar)
    return WeekView(today=today, window_start=window[0], window_end=window[1], days=days)


def month_view(
    heartbeats: Iterable[HeartbeatRecord],
    year: int | None = None,
    month: int | None = None,
    *,
    options: Options | None = None,
    now: datetime | None = None,
) -> MonthView:
    """Return the 42-cell calendar grid for a month (default: the current one)."""

    options = options or Options()
    calendar = TimeZoneCalendar(options.timezone)
    now = _now(now)
    today = calendar.today(now)
    year = year or today.year
    month = month or today.month
    if not 1 <= month <= 12:
        raise InvalidWindow(f"Month must be between 1 and 12, got {month}")

    first_day = rollup.grid_start(year, month)
    _, buckets = _calendar_series(
        heartbeats, first_day, rollup.GRID_CELLS, now, calendar, options
    )
    cells = rollup.month_grid(
        rollup.summarize_days(buckets, calendar), year, month, today
    )
    return MonthView(
        year=year,
        month=month,
        month_name=calendar.month_name(year, month),
        cells=cells,
        summary=rollup.month_summary(cells),
    )
