"""Tests for tracker/notifications.py: schedulers and reminder builders."""

import json

import pytest

from tracker import notifications
from tracker.models import Habit
from tracker.notifications import InMemoryScheduler, JsonFileScheduler, Notification

from conftest import at


def test_in_memory_schedule_cancel_list():
    scheduler = InMemoryScheduler()
    scheduler.schedule(Notification(id="b", fire_at=at(2024, 1, 11, 8)))
    scheduler.schedule(Notification(id="a", fire_at=at(2024, 1, 10, 8)))
    assert scheduler.list_pending() == ["a", "b"]
    scheduler.cancel(["a", "does-not-exist"])
    assert scheduler.list_pending() == ["b"]


def test_in_memory_rejects_incomplete_notifications():
    scheduler = InMemoryScheduler()
    with pytest.raises(ValueError):
        scheduler.schedule(Notification(id="", fire_at=at(2024, 1, 10)))
    with pytest.raises(ValueError):
        scheduler.schedule(Notification(id="x"))


def test_json_file_scheduler_persists(tmp_path):
    path = tmp_path / "notifications.json"
    scheduler = JsonFileScheduler(path)
    scheduler.schedule(notifications.habit_review(at(2024, 1, 11, 8)))
    reloaded = JsonFileScheduler(path)
    assert reloaded.list_pending() == ["daily_habit_review"]
    assert reloaded.get("daily_habit_review").repeat == "daily"
    assert [n.id for n in reloaded.due(at(2024, 1, 11, 8))] == ["daily_habit_review"]
    assert reloaded.due(at(2024, 1, 11, 7)) == []


def test_json_file_scheduler_survives_corrupt_file(tmp_path):
    path = tmp_path / "notifications.json"
    path.write_text("{not json", encoding="utf-8")
    scheduler = JsonFileScheduler(path)
    assert scheduler.list_pending() == []
    scheduler.schedule(Notification(id="x", fire_at=at(2024, 1, 10)))
    assert json.loads(path.read_text(encoding="utf-8"))["pending"][0]["id"] == "x"


def test_sleep_alarm_next_occurrence():
    now = at(2024, 1, 10, 23)
    alarm = notifications.sleep_alarm(at(2024, 1, 10, 7), now)
    assert alarm.id.startswith("sleepAlarm_")
    assert alarm.fire_at == at(2024, 1, 11, 7)
    future = notifications.sleep_alarm(at(2024, 1, 11, 6, 30), now)
    assert future.fire_at == at(2024, 1, 11, 6, 30)


def test_next_weekday_at_uses_sunday_as_one():
    # 2024-01-10 is a Wednesday (weekday 4).
    now = at(2024, 1, 10, 9)
    assert notifications.next_weekday_at(4, 8, now) == at(2024, 1, 17, 8)
    assert notifications.next_weekday_at(4, 10, now) == at(2024, 1, 10, 10)
    assert notifications.next_weekday_at(1, 8, now) == at(2024, 1, 14, 8)
    assert notifications.next_weekday_at(2, 8, now) == at(2024, 1, 15, 8)


def test_builders_ids():
    fire = at(2024, 1, 11, 8)
    assert notifications.gym_reminder(3, fire).id == "gym_3"
    assert notifications.inactivity_nudge(fire).id == "inactivity_nudge"
    reminder = notifications.habit_reminder(Habit(id="h1", name="Floss"), fire)
    assert reminder.id.startswith("habit_h1_")
    assert "Floss" in reminder.body
