"""Heartbeat records and a time index over them."""
from __future__ import annotations

from bisect import bisect_left
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Sequence, Tuple


@dataclass(frozen=True)
class HeartbeatRecord:
    """A single status ping reported by a device."""

    device_id: str
    timestamp: datetime
    battery_level: float | None = None
    cpu_usage: float | None = None
    device_name: str | None = None

    def matches(self, device: str) -> bool:
        """True when *device* is this record's id or its human-readable name."""
        return device == self.device_id or device == self.device_name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "device_id": self.device_id,
            "device_name": self.device_name,
            "timestamp": self.timestamp.astimezone(timezone.utc).isoformat(),
            "battery_level": self.battery_level,
            "cpu_usage": self.cpu_usage,
        }


class HeartbeatIndexer:
    """Heartbeats sorted by timestamp with windowed lookups.

    Sorting is stable, so heartbeats sharing a timestamp keep their input
    order. Lookups use binary search; :meth:`sweep` walks buckets with a
    single forward pointer instead of filtering the whole list per bucket.
    """

    def __init__(self, heartbeats: Iterable[HeartbeatRecord]) -> None:
        self._records: List[HeartbeatRecord] = sorted(
            heartbeats, key=lambda hb: hb.timestamp
        )
        self._times: List[datetime] = [hb.timestamp for hb in self._records]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[HeartbeatRecord]:
        return iter(self._records)

    @property
    def timestamps(self) -> Sequence[datetime]:
        return self._times

    def in_range(self, start: datetime, end: datetime) -> List[HeartbeatRecord]:
        """Return heartbeats with ``start <= timestamp < end``."""

        lo = bisect_left(self._times, start)
        hi = bisect_left(self._times, end, lo)
        return self._records[lo:hi]

    def last_before(self, instant: datetime) -> HeartbeatRecord | None:
        """Return the latest heartbeat strictly before *instant*."""

        idx = bisect_left(self._times, instant)
        if idx == 0:
            return None
        return self._records[idx - 1]

    def sweep(
        self,
        starts: Sequence[datetime],
        ends: Sequence[datetime],
    ) -> Iterator[Tuple[List[HeartbeatRecord], HeartbeatRecord | None]]:
        """Yield ``(in_bucket, last_before_start)`` for each time-ordered bucket."""

        records = self._records
        times = self._times
        pos = bisect_left(times, starts[0]) if starts else 0
        for start, end in zip(starts, ends):
            while pos < len(times) and times[pos] < start:
                pos += 1
            previous = records[pos - 1] if pos > 0 else None
            first = pos
            while pos < len(times) and times[pos] < end:
                pos += 1
            yield records[first:pos], previous
