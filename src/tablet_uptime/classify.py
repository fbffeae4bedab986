"""Online/offline classification of fixed-width buckets."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Dict, List, Sequence

from .heartbeats import HeartbeatIndexer, HeartbeatRecord
from .tzcalendar import TimeZoneCalendar

logger = logging.getLogger(__name__)

DEFAULT_GRACE_MINUTES = 3


@dataclass(frozen=True)
class Bucket:
    """One slot of the online/offline series."""

    start: datetime
    end: datetime
    is_online: bool
    prev_is_online: bool | None = None
    avg_battery: float = 0.0
    avg_cpu: float = 0.0
    heartbeat_count: int = 0
    display_time: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "display_time": self.display_time,
            "is_online": self.is_online,
            "prev_is_online": self.prev_is_online,
            "avg_battery": self.avg_battery,
            "avg_cpu": self.avg_cpu,
            "heartbeat_count": self.heartbeat_count,
        }


def _mean(values: Sequence[float | None]) -> float:
    present = [v for v in values if v is not None]
    if not present:
        return 0.0
    return sum(present) / len(present)


def classify_bucket(
    start: datetime,
    end: datetime,
    in_bucket: Sequence[HeartbeatRecord],
    previous: HeartbeatRecord | None,
    grace_minutes: int = DEFAULT_GRACE_MINUTES,
    display_time: str = "",
) -> Bucket:
    """Classify one bucket from its own heartbeats or the last one before it."""

    if in_bucket:
        return Bucket(
            start=start,
            end=end,
            is_online=True,
            avg_battery=_mean([hb.battery_level for hb in in_bucket]),
            avg_cpu=_mean([hb.cpu_usage for hb in in_bucket]),
            heartbeat_count=len(in_bucket),
            display_time=display_time,
        )
    if previous is not None and start - previous.timestamp <= timedelta(
        minutes=grace_minutes
    ):
        # Still warm from a recent ping; no samples to average.
        return Bucket(start=start, end=end, is_online=True, display_time=display_time)
    return Bucket(start=start, end=end, is_online=False, display_time=display_time)


def link_previous(buckets: Sequence[Bucket]) -> List[Bucket]:
    """Fill ``prev_is_online`` from the preceding bucket."""

    linked: List[Bucket] = []
    prev: bool | None = None
    for bucket in buckets:
        linked.append(replace(bucket, prev_is_online=prev))
        prev = bucket.is_online
    return linked


def classify(
    indexer: HeartbeatIndexer,
    starts: Sequence[datetime],
    interval_minutes: int,
    window_end: datetime,
    calendar: TimeZoneCalendar,
    grace_minutes: int = DEFAULT_GRACE_MINUTES,
) -> List[Bucket]:
    """Return the linked bucket series for *starts*.

    Each bucket spans ``[start, start + interval)`` clipped to *window_end*.
    """

    width = timedelta(minutes=interval_minutes)
    ends = [min(start + width, window_end) for start in starts]
    buckets = [
        classify_bucket(
            start,
            end,
            in_bucket,
            previous,
            grace_minutes,
            display_time=calendar.display_time(start),
        )
        for (start, end), (in_bucket, previous) in zip(
            zip(starts, ends), indexer.sweep(starts, ends)
        )
    ]
    logger.debug(
        "Classified %d buckets (%d online) from %d heartbeats",
        len(buckets),
        sum(1 for b in buckets if b.is_online),
        len(indexer),
    )
    return link_previous(buckets)
