"""Habit tracking and streak computation for tracklog.

One entry per habit per calendar day; toggling a day flips it (a first
toggle creates it completed). Streaks and completion rate are derived
from the entry set and written back onto the habit after every toggle.

Convention: the current streak counts completed days walking backward
from today and stops at the first day that is missing or not completed.
A habit not yet ticked today therefore has a current streak of 0.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any

from tracker.calendar_keys import day_key, local_date, parse_day_key
from tracker.models import Habit, HabitEntry, HabitStats, HabitType, TrackerData, new_id

EDITABLE_FIELDS = {"name", "description", "type"}


# ── CRUD ──────────────────────────────────────────────────────


def add_habit(
    data: TrackerData,
    name: str,
    now: datetime,
    description: str = "",
    habit_type: HabitType = HabitType.GOOD,
) -> Habit:
    name = (name or "").strip()
    if not name:
        raise ValueError("Habit name must not be empty")
    habit = Habit(
        id=new_id(),
        name=name,
        description=description,
        type=HabitType(habit_type),
        created_at=now,
    )
    data.habits[habit.id] = habit
    return habit


def find_habit(data: TrackerData, habit_id: str) -> Habit | None:
    return data.habits.get(habit_id)


def update_habit(data: TrackerData, habit_id: str, updates: dict[str, Any]) -> tuple[Habit | None, list[str]]:
    """Apply name/description/type updates. Returns (habit, errors)."""
    habit = data.habits.get(habit_id)
    if habit is None:
        return None, [f"Habit not found: {habit_id}"]

    errors = [f"Field is not editable: {k}" for k in updates if k not in EDITABLE_FIELDS]
    if "name" in updates and not str(updates["name"] or "").strip():
        errors.append("Habit name must not be empty")
    if "type" in updates and updates["type"] not in {t.value for t in HabitType} | set(HabitType):
        errors.append(f"Invalid habit type: {updates['type']}")
    if errors:
        return None, errors

    if "name" in updates:
        habit.name = str(updates["name"]).strip()
    if "description" in updates:
        habit.description = str(updates["description"] or "")
    if "type" in updates:
        habit.type = HabitType(updates["type"])
    return habit, []


def delete_habit(data: TrackerData, habit_id: str) -> Habit | None:
    """Remove a habit and its entries. Returns the removed habit."""
    habit = data.habits.pop(habit_id, None)
    if habit is None:
        return None
    data.habit_entries = [e for e in data.habit_entries if e.habit_id != habit_id]
    return habit


# ── Entries ───────────────────────────────────────────────────


def find_entry(data: TrackerData, habit_id: str, day: str) -> HabitEntry | None:
    for entry in data.habit_entries:
        if entry.habit_id == habit_id and entry.day == day:
            return entry
    return None


def habit_entry(data: TrackerData, habit_id: str, when: datetime, tz: tzinfo | None = None) -> HabitEntry | None:
    return find_entry(data, habit_id, day_key(when, tz))


def toggle_entry(
    data: TrackerData,
    habit_id: str,
    when: datetime,
    now: datetime,
    tz: tzinfo | None = None,
) -> HabitEntry | None:
    """Flip completion for the day of *when* and recompute the habit's stats."""
    habit = data.habits.get(habit_id)
    if habit is None:
        return None

    key = day_key(when, tz)
    entry = find_entry(data, habit_id, key)
    if entry is None:
        entry = HabitEntry(habit_id=habit_id, day=key, completed=True)
        data.habit_entries.append(entry)
    else:
        entry.completed = not entry.completed

    recompute_stats(data, habit, local_date(now, tz), tz)
    return entry


def completed_days(data: TrackerData, habit_id: str) -> set[date]:
    return {
        parse_day_key(e.day)
        for e in data.habit_entries
        if e.habit_id == habit_id and e.completed
    }


# ── Streaks ───────────────────────────────────────────────────


def current_streak(done: set[date], today: date) -> int:
    streak = 0
    day = today
    while day in done:
        streak += 1
        day -= timedelta(days=1)
    return streak


def longest_streak(done: set[date]) -> int:
    longest = run = 0
    previous: date | None = None
    for day in sorted(done):
        if previous is not None and (day - previous).days == 1:
            run += 1
        else:
            run = 1
        longest = max(longest, run)
        previous = day
    return longest


def compute_stats(data: TrackerData, habit: Habit, today: date, tz: tzinfo | None = None) -> HabitStats:
    """Derive streaks and completion rate as of *today* without writing anything.

    Days tracked run from the habit's creation day (or its first entry,
    whichever is earlier) to today inclusive; future entries are ignored.
    """
    done = {d for d in completed_days(data, habit.id) if d <= today}
    entry_days = [
        parse_day_key(e.day) for e in data.habit_entries
        if e.habit_id == habit.id and parse_day_key(e.day) <= today
    ]
    starts = entry_days + ([local_date(habit.created_at, tz)] if habit.created_at else [])
    if not starts:
        return HabitStats()

    days_tracked = max(1, (today - min(starts)).days + 1)
    return HabitStats(
        current_streak=current_streak(done, today),
        longest_streak=longest_streak(done),
        completion_rate=min(100.0, len(done) / days_tracked * 100),
        days_tracked=days_tracked,
    )


def recompute_stats(data: TrackerData, habit: Habit, today: date, tz: tzinfo | None = None) -> HabitStats:
    stats = compute_stats(data, habit, today, tz)
    habit.current_streak = stats.current_streak
    habit.longest_streak = stats.longest_streak
    habit.completion_rate = stats.completion_rate
    return stats


# ── Reminders ─────────────────────────────────────────────────


def set_reminder(habit: Habit, at: time, notification_id: str) -> str | None:
    """Store the reminder; returns the previous notification id to cancel."""
    previous = habit.notification_id
    habit.reminder_enabled = True
    habit.reminder_time = at
    habit.notification_id = notification_id
    return previous


def clear_reminder(habit: Habit) -> str | None:
    previous = habit.notification_id
    habit.reminder_enabled = False
    habit.reminder_time = None
    habit.notification_id = None
    return previous
