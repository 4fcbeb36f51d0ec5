"""Tests for tracker/habits.py: entries, streaks, completion rate."""

from datetime import date, time, timedelta
from zoneinfo import ZoneInfo

import pytest

from tracker import habits
from tracker.models import HabitEntry, HabitType

from conftest import at

TODAY = at(2024, 1, 10, 20)


def _habit(data, created=None):
    return habits.add_habit(data, "Read 20 pages", created or at(2024, 1, 1, 9))


def _days_ago(n):
    return TODAY - timedelta(days=n)


def test_add_habit_requires_name(data):
    with pytest.raises(ValueError):
        habits.add_habit(data, "", TODAY)


def test_first_toggle_creates_completed_entry(data):
    habit = _habit(data)
    entry = habits.toggle_entry(data, habit.id, TODAY, TODAY)
    assert entry.completed is True
    assert entry.day == "2024-01-10"
    again = habits.toggle_entry(data, habit.id, TODAY, TODAY)
    assert again is entry
    assert entry.completed is False
    assert len(data.habit_entries) == 1


def test_toggle_unknown_habit_is_noop(data):
    assert habits.toggle_entry(data, "missing", TODAY, TODAY) is None
    assert data.habit_entries == []


def test_current_streak_counts_back_from_today(data):
    habit = _habit(data)
    for n in (0, 1, 2):
        habits.toggle_entry(data, habit.id, _days_ago(n), TODAY)
    assert habit.current_streak == 3

    habits.toggle_entry(data, habit.id, _days_ago(1), TODAY)  # D-1 off
    assert habit.current_streak == 1

    habits.toggle_entry(data, habit.id, TODAY, TODAY)  # D off
    assert habit.current_streak == 0


def test_current_streak_zero_until_ticked_today(data):
    habit = _habit(data)
    habits.toggle_entry(data, habit.id, _days_ago(1), TODAY)
    habits.toggle_entry(data, habit.id, _days_ago(2), TODAY)
    assert habit.current_streak == 0
    assert habit.longest_streak == 2


def test_longest_streak_over_history(data):
    habit = _habit(data)
    for n in (9, 8, 7, 6, 4, 3, 0):
        habits.toggle_entry(data, habit.id, _days_ago(n), TODAY)
    assert habit.longest_streak == 4
    assert habit.current_streak == 1


def test_completion_rate_from_creation_day(data):
    habit = _habit(data, created=at(2024, 1, 1, 9))
    for n in (0, 1, 2, 3, 4):
        habits.toggle_entry(data, habit.id, _days_ago(n), TODAY)
    # 5 completed out of 10 days (Jan 1 through Jan 10).
    assert habit.completion_rate == pytest.approx(50.0)


def test_completion_rate_counts_entries_before_creation(data):
    habit = _habit(data, created=at(2024, 1, 10, 9))
    habits.toggle_entry(data, habit.id, _days_ago(1), TODAY)
    stats = habits.compute_stats(data, habit, date(2024, 1, 10))
    assert stats.days_tracked == 2
    assert stats.completion_rate == pytest.approx(50.0)


def test_compute_stats_does_not_write(data):
    habit = _habit(data)
    data.habit_entries.append(HabitEntry(habit_id=habit.id, day="2024-01-10", completed=True))
    stats = habits.compute_stats(data, habit, date(2024, 1, 10))
    assert stats.current_streak == 1
    assert habit.current_streak == 0


def test_days_tracked_uses_local_creation_day(data):
    # 23:00 UTC on Jan 9 is already Jan 10 in Tokyo.
    habit = _habit(data, created=at(2024, 1, 9, 23))
    stats = habits.compute_stats(data, habit, date(2024, 1, 10), ZoneInfo("Asia/Tokyo"))
    assert stats.days_tracked == 1
    assert habits.compute_stats(data, habit, date(2024, 1, 10)).days_tracked == 2


def test_update_habit_validates(data):
    habit = _habit(data)
    updated, errors = habits.update_habit(data, habit.id, {"name": "Read 30 pages", "type": "bad"})
    assert errors == []
    assert updated.name == "Read 30 pages"
    assert updated.type is HabitType.BAD

    _, errors = habits.update_habit(data, habit.id, {"current_streak": 10})
    assert errors == ["Field is not editable: current_streak"]
    _, errors = habits.update_habit(data, habit.id, {"type": "neutral"})
    assert errors
    _, errors = habits.update_habit(data, "missing", {"name": "x"})
    assert errors == ["Habit not found: missing"]


def test_delete_habit_removes_entries(data):
    habit = _habit(data)
    other = habits.add_habit(data, "Stretch", TODAY)
    habits.toggle_entry(data, habit.id, TODAY, TODAY)
    habits.toggle_entry(data, other.id, TODAY, TODAY)
    assert habits.delete_habit(data, habit.id) is habit
    assert [e.habit_id for e in data.habit_entries] == [other.id]
    assert habits.delete_habit(data, habit.id) is None


def test_reminder_returns_previous_id(data):
    habit = _habit(data)
    assert habits.set_reminder(habit, time(8, 0), "habit_a") is None
    assert habits.set_reminder(habit, time(9, 0), "habit_b") == "habit_a"
    assert habit.reminder_enabled and habit.reminder_time == time(9, 0)
    assert habits.clear_reminder(habit) == "habit_b"
    assert habit.reminder_enabled is False
