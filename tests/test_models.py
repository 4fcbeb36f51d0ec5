"""Tests for tracker/models.py: dataclass serialization."""

from datetime import time

from tracker.models import (
    SCHEMA_VERSION,
    Category,
    CategoryKind,
    ContactClass,
    ContactProfile,
    Habit,
    HabitType,
    SleepState,
    TrackerData,
    Workout,
)

from conftest import at


def test_category_to_dict_omits_running_state():
    cat = Category(id="c1", name="Deep work", total_minutes=30, is_running=True, started_at=at(2024, 1, 1, 9))
    d = cat.to_dict()
    assert "isRunning" not in d
    assert "startedAt" not in d
    assert d["totalMinutes"] == 30


def test_category_from_dict_legacy_keys():
    cat = Category.from_dict(
        {"id": "c1", "name": "Run", "total": 90, "today": 10, "week": 40,
         "lastDate": "2024-01-10", "lastWeek": "2024-W02", "dailyTimes": {"2024-01-10": 10}},
        CategoryKind.SPORTS,
    )
    assert cat.kind is CategoryKind.SPORTS
    assert cat.total_minutes == 90
    assert cat.today_minutes == 10
    assert cat.week_minutes == 40
    assert cat.last_day_key == "2024-01-10"
    assert cat.daily_minutes == {"2024-01-10": 10.0}


def test_category_from_dict_clamps_negative_totals():
    cat = Category.from_dict({"id": "c1", "name": "x", "totalMinutes": -5}, CategoryKind.WORK)
    assert cat.total_minutes == 0.0


def test_sleep_state_drops_sleeping_flag_without_start():
    state = SleepState.from_dict({"isSleeping": True})
    assert state.is_sleeping is False


def test_sleep_state_wind_down_round_trip():
    state = SleepState(wind_down_enabled=True, wind_down_minutes=45, wind_down_time=time(21, 30))
    d = state.to_dict()
    assert d["windDownTime"] == "21:30"
    back = SleepState.from_dict(d)
    assert back.wind_down_time == time(21, 30)
    assert back.wind_down_minutes == 45


def test_habit_unknown_type_defaults_to_good():
    habit = Habit.from_dict({"id": "h1", "name": "Read", "type": "weird"})
    assert habit.type is HabitType.GOOD


def test_contact_class_values_match_display_names():
    contact = ContactProfile.from_dict({"id": "p1", "name": "Sam", "contactClass": "Close Family"})
    assert contact.contact_class is ContactClass.CLOSE_FAMILY
    assert contact.to_dict()["contactClass"] == "Close Family"


def test_tracker_data_splits_categories_by_kind():
    data = TrackerData()
    data.categories["w"] = Category(id="w", name="Write", kind=CategoryKind.WORK)
    data.categories["s"] = Category(id="s", name="Swim", kind=CategoryKind.SPORTS)
    d = data.to_dict()
    assert d["version"] == SCHEMA_VERSION
    assert [c["id"] for c in d["workCategories"]] == ["w"]
    assert [c["id"] for c in d["sportsCategories"]] == ["s"]


def test_tracker_data_round_trip_keeps_everything_but_running_state():
    data = TrackerData()
    data.categories["w"] = Category(id="w", name="Write", total_minutes=12.5, is_running=True, started_at=at(2024, 1, 1))
    data.workouts["wk"] = Workout(id="wk", name="Push day")
    data.gym_days = [2, 4]
    back = TrackerData.from_dict(data.to_dict())
    assert back.categories["w"].total_minutes == 12.5
    assert back.categories["w"].is_running is False
    assert back.workouts["wk"].name == "Push day"
    assert back.gym_days == [2, 4]


def test_tracker_data_from_dict_ignores_bad_gym_days_and_unknown_keys():
    data = TrackerData.from_dict({"gymDays": [0, 3, 3, 9], "somethingElse": 1})
    assert data.gym_days == [3]


def test_tracker_data_from_empty():
    data = TrackerData.from_dict({})
    assert data.categories == {}
    assert data.sleep.is_sleeping is False
