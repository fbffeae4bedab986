from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Sequence

from .classify import Bucket


@dataclass(frozen=True)
class UptimeStats:
    total_online_minutes: int = 0
    uptime_percentage: float = 0.0
    session_count: int = 0
    average_session_minutes: float = 0.0
    longest_session_minutes: int = 0
    longest_offline_minutes: int = 0
    first_online_bucket_time: datetime | None = None
    last_online_bucket_time: datetime | None = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_online_minutes": self.total_online_minutes,
            "uptime_percentage": self.uptime_percentage,
            "session_count": self.session_count,
            "average_session_minutes": self.average_session_minutes,
            "longest_session_minutes": self.longest_session_minutes,
            "longest_offline_minutes": self.longest_offline_minutes,
            "first_online_bucket_time": (
                self.first_online_bucket_time.isoformat()
                if self.first_online_bucket_time
                else None
            ),
            "last_online_bucket_time": (
                self.last_online_bucket_time.isoformat()
                if self.last_online_bucket_time
                else None
            ),
        }


def from_buckets(buckets: Sequence[Bucket], interval_minutes: int) -> UptimeStats:
    """Compute uptime statistics from a bucket series."""
    if not buckets:
        return UptimeStats()

    online = 0
    sessions = 0
    session_run = 0
    offline_run = 0
    longest_session = 0
    longest_offline = 0
    first_online: datetime | None = None
    last_online: datetime | None = None
    was_online = False
    for b in buckets:
        if b.is_online:
            if not was_online:
                sessions += 1
                if first_online is None:
                    first_online = b.start
                longest_offline = max(longest_offline, offline_run)
                offline_run = 0
            session_run += 1
            online += 1
            last_online = b.start
        else:
            if was_online:
                longest_session = max(longest_session, session_run)
                session_run = 0
            offline_run += 1
        was_online = b.is_online
    # close whichever run reaches the last bucket
    longest_session = max(longest_session, session_run)
    longest_offline = max(longest_offline, offline_run)

    total_online = online * interval_minutes
    avg = total_online / sessions if sessions else 0.0
    return UptimeStats(
        total_online_minutes=total_online,
        uptime_percentage=round(online / len(buckets) * 100, 2),
        session_count=sessions,
        average_session_minutes=round(avg, 2),
        longest_session_minutes=longest_session * interval_minutes,
        longest_offline_minutes=longest_offline * interval_minutes,
        first_online_bucket_time=first_online,
        last_online_bucket_time=last_online,
    )
