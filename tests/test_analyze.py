import json
from datetime import date, timedelta

import pytest

from conftest import hb, utc
from tablet_uptime import analyze
from tablet_uptime.buckets import bucket_count
from tablet_uptime.errors import InvalidWindow, WindowTooLarge
from tablet_uptime.options import Options

NOW = utc(2026, 10, 19, 10, 2)
LA = Options(timezone="America/Los_Angeles")


def test_rolling_without_heartbeats_is_all_offline():
    result = analyze.timeline([], options=Options(timezone="UTC"), now=NOW)
    assert result.mode == "rolling24h"
    assert len(result.buckets) == 288
    assert not any(b.is_online for b in result.buckets)
    assert result.stats.uptime_percentage == 0
    assert result.stats.session_count == 0
    assert result.window_end == utc(2026, 10, 19, 10, 5)


def test_repeated_calls_are_identical():
    beats = [hb(NOW - timedelta(minutes=m), battery=50 + m % 7) for m in range(0, 600, 4)]
    first = analyze.timeline(beats, options=LA, now=NOW).to_dict()
    second = analyze.timeline(list(reversed(beats)), options=LA, now=NOW).to_dict()
    assert json.dumps(first, sort_keys=True) == json.dumps(second, sort_keys=True)


def test_fixed_range_by_dates():
    beats = [hb(utc(2026, 10, 1, 17, 5)), hb(utc(2026, 10, 1, 17, 40))]
    result = analyze.timeline(
        beats,
        mode="fixedRange",
        interval_minutes=60,
        options=LA,
        now=NOW,
        start_date=date(2026, 10, 1),
        end_date=date(2026, 10, 2),
    )
    assert result.window_start == utc(2026, 10, 1, 7)
    assert len(result.buckets) == 48
    assert result.stats.session_count == 1
    assert result.date_range.start_date == "Oct 1, 2026"
    assert result.date_range.end_date == "Oct 2, 2026"
    assert result.patterns.most_active_hour == "10:00"


def test_fixed_range_by_preset():
    result = analyze.timeline(
        [], mode="fixed", interval_minutes=60, options=LA, now=NOW, preset="7d"
    )
    assert result.window_start == utc(2026, 10, 12, 7)
    assert result.window_end == utc(2026, 10, 20, 7)


def test_fixed_range_without_dates_uses_data_extent():
    beats = [hb(utc(2026, 10, 19, 1, 3)), hb(utc(2026, 10, 19, 2, 50))]
    result = analyze.timeline(beats, mode="fixedRange", interval_minutes=15, options=LA, now=NOW)
    assert result.window_start == utc(2026, 10, 19, 1)
    assert result.window_end == utc(2026, 10, 19, 3)
    assert result.buckets[0].is_online and result.buckets[-1].is_online


def test_data_extent_without_heartbeats_is_empty():
    result = analyze.timeline([], mode="fixedRange", options=LA, now=NOW)
    assert result.buckets == []
    assert result.window_start is None
    assert result.to_dict()["stats"]["uptime_percentage"] == 0


def test_window_errors():
    with pytest.raises(InvalidWindow):
        analyze.timeline([], mode="weekly", now=NOW)
    with pytest.raises(InvalidWindow):
        analyze.timeline([], interval_minutes=7, now=NOW)
    with pytest.raises(InvalidWindow):
        analyze.timeline([], interval_minutes=0, now=NOW)
    with pytest.raises(InvalidWindow):
        analyze.timeline([], mode="fixedRange", start_date=date(2026, 10, 1), now=NOW)
    with pytest.raises(WindowTooLarge):
        analyze.timeline([], options=Options(max_buckets=10), now=NOW)


def test_week_bucket_counts_cover_the_window():
    beats = [hb(NOW - timedelta(hours=h)) for h in range(0, 100, 3)]
    view = analyze.week_view(beats, options=LA, now=NOW)
    assert len(view.days) == 7
    assert view.days[-1].local_date == date(2026, 10, 19)
    assert view.window_start == utc(2026, 10, 13, 7)
    assert view.window_end == NOW
    total = bucket_count(view.window_start, view.window_end, LA.calendar_interval)
    assert sum(d.bucket_count for d in view.days) == total
    assert view.days[0].total_heartbeats == 0


def test_month_view():
    beats = [hb(utc(2026, 10, 5, 18)), hb(utc(2026, 10, 5, 18, 10))]
    view = analyze.month_view(beats, options=LA, now=NOW)
    assert (view.year, view.month) == (2026, 10)
    assert view.month_name == "October 2026"
    assert len(view.cells) == 42
    assert sum(1 for c in view.cells if c.is_today) == 1
    oct_5 = next(c for c in view.cells if c.local_date == date(2026, 10, 5))
    assert oct_5.total_heartbeats == 2
    assert view.summary.total_heartbeats == 2
    payload = view.to_dict()
    assert payload["cells"][0]["local_date"] == "2026-09-27"


def test_month_out_of_range():
    with pytest.raises(InvalidWindow):
        analyze.month_view([], 2026, 13, now=NOW)


def test_future_month_has_no_data():
    view = analyze.month_view([], 2027, 3, options=LA, now=NOW)
    assert len(view.cells) == 42
    assert not any(c.has_data for c in view.cells)
    assert not any(c.is_today for c in view.cells)
