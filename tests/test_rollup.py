from datetime import date, timedelta

from conftest import utc
from tablet_uptime import rollup
from tablet_uptime.classify import Bucket
from tablet_uptime.tzcalendar import TimeZoneCalendar

CAL = TimeZoneCalendar("UTC")


def _two_days():
    base = utc(2026, 10, 18, 22)
    states = [(True, 2), (False, 0), (True, 1), (True, 3)]
    return [
        Bucket(
            start=base + timedelta(hours=k),
            end=base + timedelta(hours=k + 1),
            is_online=online,
            heartbeat_count=count,
        )
        for k, (online, count) in enumerate(states)
    ]


def test_summarize_days_groups_by_local_date():
    first, second = rollup.summarize_days(_two_days(), CAL)

    assert first.local_date == date(2026, 10, 18)
    assert first.day_name == "Sunday"
    assert first.uptime_percentage == 50
    assert not first.is_online_day
    assert (first.online_session_count, first.offline_session_count) == (1, 1)
    assert first.peak_activity_hour == "22:00"

    assert second.local_date == date(2026, 10, 19)
    assert second.uptime_percentage == 100
    assert second.is_online_day
    assert second.total_heartbeats == 4
    assert second.peak_activity_hour == "01:00"
    assert second.bucket_count == 2


def test_day_without_heartbeats_has_no_peak():
    bucket = Bucket(start=utc(2026, 10, 19, 3), end=utc(2026, 10, 19, 4), is_online=True)
    (summary,) = rollup.summarize_days([bucket], CAL)
    assert summary.peak_activity_hour is None
    assert summary.total_heartbeats == 0


def test_week_is_chronological_and_zero_filled():
    today = date(2026, 10, 19)
    days = rollup.week(rollup.summarize_days(_two_days(), CAL), today, CAL)
    assert [d.local_date for d in days] == [today - timedelta(days=n) for n in range(6, -1, -1)]
    assert days[0].uptime_percentage == 0
    assert days[0].day_name == "Tuesday"
    assert days[-2].uptime_percentage == 50
    assert days[-1].uptime_percentage == 100


def test_grid_starts_on_sunday():
    assert rollup.grid_start(2026, 10) == date(2026, 9, 27)
    assert rollup.grid_start(2026, 11) == date(2026, 11, 1)


def test_month_grid_has_42_cells_and_one_today():
    today = date(2026, 10, 19)
    cells = rollup.month_grid(rollup.summarize_days(_two_days(), CAL), 2026, 10, today)
    assert len(cells) == rollup.GRID_CELLS
    assert [c.local_date for c in cells if c.is_today] == [today]
    assert not cells[0].is_current_month
    assert cells[0].local_date == date(2026, 9, 27)

    oct_19 = next(c for c in cells if c.local_date == today)
    assert oct_19.has_data
    assert oct_19.uptime_percentage == 100
    assert not next(c for c in cells if c.local_date == date(2026, 10, 20)).has_data


def test_padding_cell_is_never_today():
    cells = rollup.month_grid([], 2026, 9, date(2026, 10, 1))
    assert len(cells) == 42
    assert not any(c.is_today for c in cells)


def test_month_summary_counts_measured_days():
    cells = rollup.month_grid(
        rollup.summarize_days(_two_days(), CAL), 2026, 10, date(2026, 10, 19)
    )
    summary = rollup.month_summary(cells)
    assert summary.average_uptime == 75
    assert summary.online_days == 1
    assert summary.offline_days == 1
    assert summary.total_heartbeats == 6
    assert rollup.month_summary([]) == rollup.MonthSummary()
