from datetime import datetime, timedelta, timezone

from conftest import hb, utc
from tablet_uptime.heartbeats import HeartbeatIndexer, HeartbeatRecord


def test_sorted_with_stable_ties():
    first = hb(utc(2026, 10, 19, 10), battery=10)
    second = hb(utc(2026, 10, 19, 10), battery=20)
    early = hb(utc(2026, 10, 19, 9))
    index = HeartbeatIndexer([first, early, second])
    assert list(index) == [early, first, second]
    assert len(index) == 3


def test_in_range_is_half_open():
    beats = [hb(utc(2026, 10, 19, 10, m)) for m in (0, 5, 10)]
    index = HeartbeatIndexer(beats)
    found = index.in_range(utc(2026, 10, 19, 10, 0), utc(2026, 10, 19, 10, 10))
    assert found == beats[:2]


def test_last_before_is_strict():
    beats = [hb(utc(2026, 10, 19, 10, m)) for m in (0, 5)]
    index = HeartbeatIndexer(beats)
    assert index.last_before(utc(2026, 10, 19, 10, 5)) == beats[0]
    assert index.last_before(utc(2026, 10, 19, 10, 0)) is None
    assert index.last_before(utc(2026, 10, 19, 11)) == beats[1]


def test_sweep_matches_per_bucket_lookups():
    base = utc(2026, 10, 19, 8)
    beats = [hb(base + timedelta(minutes=m)) for m in (-3, 1, 2, 16, 50)]
    index = HeartbeatIndexer(beats)
    starts = [base + timedelta(minutes=15 * k) for k in range(4)]
    ends = [s + timedelta(minutes=15) for s in starts]
    swept = list(index.sweep(starts, ends))
    expected = [(index.in_range(s, e), index.last_before(s)) for s, e in zip(starts, ends)]
    assert swept == expected
    assert [len(found) for found, _ in swept] == [2, 1, 0, 1]
    assert swept[0][1] == beats[0]


def test_record_to_dict_uses_utc():
    paris = timezone(timedelta(hours=2))
    record = HeartbeatRecord(
        device_id="T-1",
        timestamp=datetime(2026, 10, 19, 12, tzinfo=paris),
        battery_level=50,
        device_name="lobby-tablet",
    )
    assert record.to_dict() == {
        "device_id": "T-1",
        "device_name": "lobby-tablet",
        "timestamp": "2026-10-19T10:00:00+00:00",
        "battery_level": 50,
        "cpu_usage": None,
    }
    assert record.matches("T-1") and record.matches("lobby-tablet")
    assert not hb(utc(2026, 10, 19)).matches("lobby-tablet")
