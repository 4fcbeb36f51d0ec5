"""Tests for tracker/timers.py: category timers and boundary resets."""

import pytest

from tracker import timers
from tracker.models import Category, CategoryKind, TrackerData

from conftest import at


def _add(data, name="Deep work", kind=CategoryKind.WORK, now=None):
    return timers.add_category(data, name, kind, now or at(2024, 1, 10, 9))


def test_add_category_zeroed_with_current_keys(data):
    cat = _add(data)
    assert cat.total_minutes == cat.today_minutes == cat.week_minutes == 0
    assert cat.last_day_key == "2024-01-10"
    assert cat.last_week_key == "2024-W02"
    assert cat.is_running is False
    assert timers.list_categories(data) == [cat]


def test_add_category_rejects_empty_name(data):
    with pytest.raises(ValueError, match="empty"):
        timers.add_category(data, "   ", CategoryKind.WORK, at(2024, 1, 10, 9))


def test_list_categories_by_kind_keeps_insertion_order(data):
    a = _add(data, "A")
    b = _add(data, "B", CategoryKind.SPORTS)
    c = _add(data, "C")
    assert timers.list_categories(data, CategoryKind.WORK) == [a, c]
    assert timers.list_categories(data, CategoryKind.SPORTS) == [b]


def test_start_stop_accumulates_everywhere(data):
    cat = _add(data)
    assert timers.start(cat, at(2024, 1, 10, 9))
    assert cat.started_at == at(2024, 1, 10, 9)
    elapsed = timers.stop(cat, at(2024, 1, 10, 9, 30))
    assert elapsed == pytest.approx(30)
    assert cat.today_minutes == pytest.approx(30)
    assert cat.week_minutes == pytest.approx(30)
    assert cat.total_minutes == pytest.approx(30)
    assert cat.daily_minutes == {"2024-01-10": pytest.approx(30)}
    assert cat.is_running is False
    assert cat.started_at is None


def test_start_twice_and_stop_when_stopped_are_noops(data):
    cat = _add(data)
    assert timers.start(cat, at(2024, 1, 10, 9))
    assert timers.start(cat, at(2024, 1, 10, 9, 10)) is False
    assert cat.started_at == at(2024, 1, 10, 9)
    timers.stop(cat, at(2024, 1, 10, 9, 20))
    assert timers.stop(cat, at(2024, 1, 10, 9, 40)) is None
    assert cat.total_minutes == pytest.approx(20)


def test_reads_while_running_do_not_double_count(data):
    cat = _add(data)
    timers.start(cat, at(2024, 1, 10, 9))
    for minute in range(1, 45):
        live = timers.current_time(cat, at(2024, 1, 10, 9, minute))
        assert live.total == pytest.approx(minute)
    assert cat.total_minutes == 0
    timers.stop(cat, at(2024, 1, 10, 9, 45))
    assert cat.total_minutes == pytest.approx(45)
    assert timers.current_time(cat, at(2024, 1, 10, 9, 50)).total == pytest.approx(45)


def test_toggle_enforces_single_running_category_across_kinds(data):
    work = _add(data, "Write")
    sport = _add(data, "Run", CategoryKind.SPORTS)
    assert timers.toggle_timer(data, work.id, at(2024, 1, 10, 9)) is True
    assert timers.toggle_timer(data, sport.id, at(2024, 1, 10, 9, 25)) is True

    assert work.is_running is False
    assert work.total_minutes == pytest.approx(25)
    assert sport.is_running is True
    assert [c.id for c in data.categories.values() if c.is_running] == [sport.id]
    assert timers.running_category(data) is sport


def test_toggle_running_category_stops_it(data):
    cat = _add(data)
    timers.toggle_timer(data, cat.id, at(2024, 1, 10, 9))
    assert timers.toggle_timer(data, cat.id, at(2024, 1, 10, 10)) is False
    assert cat.total_minutes == pytest.approx(60)


def test_unknown_id_is_noop(data):
    assert timers.toggle_timer(data, "missing", at(2024, 1, 10, 9)) is None
    assert timers.delete_category(data, "missing", at(2024, 1, 10, 9)) is None


def test_day_boundary_resets_today_only():
    cat = Category(
        id="c", name="Read", today_minutes=50, week_minutes=120, total_minutes=500,
        last_day_key="2024-01-01", last_week_key="2024-W01",
    )
    timers.start(cat, at(2024, 1, 2, 8))
    assert cat.today_minutes == 0
    assert cat.week_minutes == 120
    assert cat.total_minutes == 500
    timers.stop(cat, at(2024, 1, 2, 8, 10))
    assert cat.today_minutes == pytest.approx(10)
    assert cat.week_minutes == pytest.approx(130)
    assert cat.total_minutes == pytest.approx(510)


def test_week_boundary_resets_week_and_today():
    cat = Category(
        id="c", name="Read", today_minutes=50, week_minutes=120, total_minutes=500,
        last_day_key="2024-01-14", last_week_key="2024-W02",
    )
    timers.start(cat, at(2024, 1, 15, 8))
    assert cat.week_minutes == 0
    assert cat.today_minutes == 0
    assert cat.total_minutes == 500


def test_stop_after_midnight_books_segment_on_new_day():
    cat = Category(id="c", name="Late", last_day_key="2024-01-10", last_week_key="2024-W02", today_minutes=30)
    timers.start(cat, at(2024, 1, 10, 23, 30))
    timers.stop(cat, at(2024, 1, 11, 0, 30))
    assert cat.today_minutes == pytest.approx(60)
    assert cat.last_day_key == "2024-01-11"
    assert cat.daily_minutes == {"2024-01-11": pytest.approx(60)}


def test_read_projects_stale_totals_without_writing():
    cat = Category(
        id="c", name="Read", today_minutes=50, week_minutes=120, total_minutes=500,
        last_day_key="2024-01-01", last_week_key="2024-W01",
    )
    ct = timers.current_time(cat, at(2024, 1, 10, 12))
    assert ct.today == 0
    assert ct.week == 0
    assert ct.total == 500
    # Stored values untouched until the next start/stop.
    assert cat.today_minutes == 50
    assert cat.last_day_key == "2024-01-01"


def test_clock_skew_adds_zero(data):
    cat = _add(data)
    timers.start(cat, at(2024, 1, 10, 9))
    assert timers.current_time(cat, at(2024, 1, 10, 8)).total == 0
    assert timers.stop(cat, at(2024, 1, 10, 8, 55)) == 0
    assert cat.total_minutes == 0
    assert cat.today_minutes >= 0
    assert cat.is_running is False


def test_delete_running_category_flushes_elapsed(data):
    cat = _add(data)
    timers.start(cat, at(2024, 1, 10, 9))
    before = timers.current_time(cat, at(2024, 1, 10, 9, 40)).total
    removed = timers.delete_category(data, cat.id, at(2024, 1, 10, 9, 40))
    assert removed.total_minutes == pytest.approx(before)
    assert removed.is_running is False
    assert cat.id not in data.categories


def test_stop_all_except(data):
    a = _add(data, "A")
    b = _add(data, "B")
    timers.start(a, at(2024, 1, 10, 9))
    timers.start(b, at(2024, 1, 10, 9))
    assert timers.stop_all(data, at(2024, 1, 10, 9, 5), except_id=b.id) == [a.id]
    assert b.is_running
    assert timers.stop_all(data, at(2024, 1, 10, 9, 10)) == [b.id]


def test_weekly_series_last_seven_days_oldest_first():
    cat = Category(id="c", name="x", daily_minutes={"2024-01-04": 5.0, "2024-01-10": 20.0, "2024-01-02": 99.0})
    assert timers.weekly_series(cat, at(2024, 1, 10, 12)) == [5.0, 0, 0, 0, 0, 0, 20.0]


def test_totals_by_kind_includes_live_time(data):
    w = _add(data, "W")
    s = _add(data, "S", CategoryKind.SPORTS)
    timers.start(w, at(2024, 1, 10, 9))
    timers.stop(w, at(2024, 1, 10, 9, 30))
    timers.start(s, at(2024, 1, 10, 10))
    totals = timers.totals_by_kind(data, at(2024, 1, 10, 10, 15))
    assert totals["work"].total == pytest.approx(30)
    assert totals["sports"].today == pytest.approx(15)


def test_round_trip_comes_back_stopped(data):
    cat = _add(data)
    timers.start(cat, at(2024, 1, 10, 9))
    restored = TrackerData.from_dict(data.to_dict())
    again = restored.categories[cat.id]
    assert again.is_running is False
    assert again.started_at is None
