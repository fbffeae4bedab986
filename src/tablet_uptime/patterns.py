"""Behavioural patterns derived from a bucket series."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

from .classify import Bucket
from .tzcalendar import TimeZoneCalendar, format_hour

# Reliability points lost per offline drop per hour
FLAP_PENALTY = 10


@dataclass(frozen=True)
class DevicePatterns:
    most_active_hour: str | None = None
    least_active_hour: str | None = None
    average_session_minutes: float = 0.0
    offline_sessions_per_hour: float = 0.0
    reliability_score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "most_active_hour": self.most_active_hour,
            "least_active_hour": self.least_active_hour,
            "average_session_minutes": self.average_session_minutes,
            "offline_sessions_per_hour": self.offline_sessions_per_hour,
            "reliability_score": self.reliability_score,
        }


def hourly_histogram(
    buckets: Sequence[Bucket], calendar: TimeZoneCalendar
) -> Tuple[List[int], List[bool]]:
    """Return online bucket counts per local hour and which hours were observed."""

    counts = [0] * 24
    seen = [False] * 24
    for b in buckets:
        hour = calendar.local_hour(b.start)
        seen[hour] = True
        if b.is_online:
            counts[hour] += 1
    return counts, seen


def _online_runs(buckets: Sequence[Bucket]) -> Tuple[List[int], int]:
    """Return the length of every online run and how many of them ended offline."""

    runs: List[int] = []
    drops = 0
    current = 0
    for b in buckets:
        if b.is_online:
            current += 1
        elif current:
            runs.append(current)
            drops += 1
            current = 0
    if current:
        runs.append(current)
    return runs, drops


def analyze(
    buckets: Sequence[Bucket],
    interval_minutes: int,
    calendar: TimeZoneCalendar,
) -> DevicePatterns:
    """Summarise when a device is active and how often it drops offline."""

    if not buckets:
        return DevicePatterns()

    counts, seen = hourly_histogram(buckets, calendar)
    most: int | None = None
    least: int | None = None
    for hour in range(24):
        if not seen[hour]:
            continue
        if counts[hour] > 0 and (most is None or counts[hour] > counts[most]):
            most = hour
        if least is None or counts[hour] < counts[least]:
            least = hour

    runs, drops = _online_runs(buckets)
    avg_session = sum(runs) / len(runs) * interval_minutes if runs else 0.0
    hours = len(buckets) * interval_minutes / 60
    per_hour = drops / hours
    return DevicePatterns(
        most_active_hour=format_hour(most) if most is not None else None,
        least_active_hour=format_hour(least) if least is not None else None,
        average_session_minutes=round(avg_session, 2),
        offline_sessions_per_hour=round(per_hour, 4),
        reliability_score=round(max(0.0, 100 - per_hour * FLAP_PENALTY), 2),
    )
