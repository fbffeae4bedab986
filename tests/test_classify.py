from datetime import timedelta

from conftest import hb, utc
from tablet_uptime.buckets import bucket_starts
from tablet_uptime.classify import Bucket, classify, classify_bucket, link_previous
from tablet_uptime.heartbeats import HeartbeatIndexer
from tablet_uptime.tzcalendar import TimeZoneCalendar

CAL = TimeZoneCalendar("UTC")


def _series(beats, start, end, interval=5, grace=3):
    starts = bucket_starts(start, end, interval)
    return classify(HeartbeatIndexer(beats), starts, interval, end, CAL, grace_minutes=grace)


def test_grace_keeps_next_bucket_online():
    beats = [
        hb(utc(2026, 10, 19, 10, 0), battery=80),
        hb(utc(2026, 10, 19, 10, 4), battery=60),
    ]
    first, second = _series(beats, utc(2026, 10, 19, 10), utc(2026, 10, 19, 10, 10))

    assert first.is_online
    assert first.avg_battery == 70
    assert first.heartbeat_count == 2
    assert first.prev_is_online is None
    assert first.display_time == "10:00"

    assert second.is_online
    assert second.heartbeat_count == 0
    assert second.avg_battery == 0
    assert second.prev_is_online is True


def test_gap_beyond_grace_is_offline():
    beats = [hb(utc(2026, 10, 19, 8, 0)), hb(utc(2026, 10, 19, 8, 10))]
    buckets = _series(beats, utc(2026, 10, 19, 8), utc(2026, 10, 19, 8, 15))
    assert [b.is_online for b in buckets] == [True, False, True]
    assert [b.prev_is_online for b in buckets] == [None, True, False]


def test_heartbeat_before_window_counts_for_grace():
    beats = [hb(utc(2026, 10, 19, 9, 58))]
    buckets = _series(beats, utc(2026, 10, 19, 10), utc(2026, 10, 19, 10, 10))
    assert [b.is_online for b in buckets] == [True, False]


def test_missing_metrics_are_ignored_in_averages():
    start = utc(2026, 10, 19, 10)
    bucket = classify_bucket(
        start,
        start + timedelta(minutes=5),
        [hb(start, battery=50, cpu=None), hb(start, battery=None, cpu=20)],
        None,
    )
    assert bucket.avg_battery == 50
    assert bucket.avg_cpu == 20


def test_last_bucket_is_clipped_to_window():
    end = utc(2026, 10, 19, 10, 7)
    buckets = _series([], utc(2026, 10, 19, 10), end)
    assert buckets[-1].end == end
    assert not any(b.is_online for b in buckets)


def test_link_previous():
    start = utc(2026, 10, 19)
    raw = [
        Bucket(start=start, end=start, is_online=state)
        for state in (False, True, True)
    ]
    assert [b.prev_is_online for b in link_previous(raw)] == [None, False, True]


def test_bucket_to_dict():
    start = utc(2026, 10, 19, 10)
    data = Bucket(start=start, end=start + timedelta(minutes=5), is_online=True).to_dict()
    assert data["start"] == "2026-10-19T10:00:00+00:00"
    assert data["is_online"] is True
    assert data["prev_is_online"] is None
