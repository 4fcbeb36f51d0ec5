"""Tests for ui/app.py: JSON API over the tracker service."""

import pytest
from fastapi.testclient import TestClient

from tracker.config import Settings
from tracker.notifications import InMemoryScheduler
from tracker.service import TrackerService
from tracker.store import MemoryStore
from ui import app as app_module

from conftest import ManualClock, at


@pytest.fixture
def clock():
    return ManualClock(at(2024, 1, 10, 9))


@pytest.fixture
def client(clock, monkeypatch):
    monkeypatch.delenv("TRACKLOG_USERNAME", raising=False)
    monkeypatch.delenv("TRACKLOG_PASSWORD", raising=False)
    svc = TrackerService(clock=clock, store=MemoryStore(), scheduler=InMemoryScheduler(), settings=Settings())
    app_module.app.dependency_overrides[app_module.get_service] = lambda: svc
    app_module._executions.clear()
    yield TestClient(app_module.app)
    app_module.app.dependency_overrides.clear()


def test_healthz(client):
    assert client.get("/healthz").json() == {"ok": "true"}


def test_auth_required_when_configured(client, monkeypatch):
    monkeypatch.setenv("TRACKLOG_USERNAME", "me")
    monkeypatch.setenv("TRACKLOG_PASSWORD", "secret")
    assert client.get("/api/categories").status_code == 401
    assert client.get("/api/categories", auth=("me", "wrong")).status_code == 401
    assert client.get("/api/categories", auth=("me", "secret")).status_code == 200


def test_category_timer_flow(client, clock):
    created = client.post("/api/categories", json={"name": "Write", "kind": "work"}).json()
    cat_id = created["category"]["id"]

    toggled = client.post(f"/api/categories/{cat_id}/toggle").json()
    assert toggled["running"] is True
    clock.advance(minutes=30)
    listed = client.get("/api/categories").json()["categories"]
    assert listed[0]["current"]["total"] == pytest.approx(30)

    toggled = client.post(f"/api/categories/{cat_id}/toggle").json()
    assert toggled["running"] is False
    weekly = client.get(f"/api/categories/{cat_id}/weekly").json()
    assert weekly["minutes"][-1] == pytest.approx(30)
    assert client.get("/api/totals").json()["work"]["total"] == pytest.approx(30)


def test_category_errors(client):
    assert client.post("/api/categories", json={"name": ""}).status_code == 400
    assert client.post("/api/categories", json={"name": "x", "kind": "chess"}).status_code == 400
    assert client.post("/api/categories/missing/toggle").status_code == 404
    assert client.delete("/api/categories/missing").status_code == 404


def test_sleep_flow(client, clock):
    clock.set(at(2024, 1, 10, 22, 30))
    started = client.post("/api/sleep/start", json={"alarm_time": "2024-01-11T06:30:00+00:00"}).json()
    assert started["alarm_id"].startswith("sleepAlarm_")
    assert client.post("/api/sleep/start").status_code == 409
    assert started["alarm_id"] in client.get("/api/notifications").json()["pending"]

    clock.set(at(2024, 1, 11, 6, 30))
    woke = client.post("/api/sleep/wake").json()
    assert woke["duration_hours"] == pytest.approx(8)
    assert client.post("/api/sleep/wake").status_code == 409
    stats = client.get("/api/sleep/statistics").json()
    assert stats["sessions"] == 1
    assert stats["avgDurationHours"] == pytest.approx(8)
    assert stats["consistencyScore"] == 50.0


def test_sleep_start_rejects_bad_alarm(client):
    assert client.post("/api/sleep/start", json={"alarm_time": "tomorrow"}).status_code == 400


def test_sleep_start_accepts_alarm_without_offset(client, clock):
    clock.set(at(2024, 1, 10, 22, 30))
    started = client.post("/api/sleep/start", json={"alarm_time": "2024-01-11T07:00:00"})
    assert started.status_code == 200
    assert started.json()["alarm_id"] in client.get("/api/notifications").json()["pending"]
    assert client.get("/api/sleep").json()["isSleeping"] is True
    assert client.get("/api/sleep").json()["alarmTime"] == "2024-01-11T07:00:00+00:00"


def test_habit_flow(client):
    habit = client.post("/api/habits", json={"name": "Meditate"}).json()["habit"]
    toggled = client.post(f"/api/habits/{habit['id']}/toggle", json={}).json()
    assert toggled["entry"]["completed"] is True
    assert toggled["stats"]["currentStreak"] == 1

    bad = client.put(f"/api/habits/{habit['id']}", json={"type": "neutral"})
    assert bad.status_code == 400
    reminder = client.put(f"/api/habits/{habit['id']}/reminder", json={"time": "20:00"}).json()
    assert reminder["notificationId"].startswith(f"habit_{habit['id']}_")
    assert client.delete(f"/api/habits/{habit['id']}").json()["ok"] is True
    assert client.get(f"/api/habits/{habit['id']}/stats").status_code == 404


def test_workout_execution_flow(client, clock):
    exercises = client.get("/api/exercises", params={"type": "gym"}).json()
    bench = next(e for e in exercises["Chest"] if e["name"] == "Bench Press")
    workout = client.post("/api/workouts", json={"name": "Push"}).json()["workout"]
    client.post(f"/api/workouts/{workout['id']}/sets", json={"exercise_id": bench["id"], "sets": 2, "reps": 5, "weight": 80})

    execution = client.post(f"/api/workouts/{workout['id']}/start").json()["execution"]
    first_set = execution["sets"][0]["id"]
    edited = client.patch(
        f"/api/executions/{execution['sessionId']}/sets/{first_set}",
        json={"reps": 6, "completed": True},
    ).json()["execution"]
    assert edited["completedCount"] == 1

    clock.advance(minutes=30)
    session = client.post(f"/api/executions/{execution['sessionId']}/finish").json()["session"]
    assert session["duration"] == 1800
    assert session["completedExercises"][0]["reps"] == 6
    assert client.post(f"/api/executions/{execution['sessionId']}/finish").status_code == 404

    listed = client.get("/api/workouts").json()
    assert listed["workouts"][0]["averageDuration"] == 1800
    on_day = client.get("/api/workouts/sessions", params={"day": "2024-01-10"}).json()
    assert len(on_day["sessions"]) == 1
    dates = client.get("/api/workouts/completion_dates", params={"workout_id": workout["id"]}).json()
    assert dates == {"dates": ["2024-01-10T09:00:00+00:00"]}


def test_gym_days(client):
    assert client.post("/api/gym_days/3/toggle").json()["gymDays"] == [3]
    assert client.post("/api/gym_days/9/toggle").status_code == 400


def test_contacts_and_calls(client):
    contact = client.post("/api/contacts", json={"name": "Alex", "contact_class": "Family"}).json()["contact"]
    call = client.post(
        f"/api/contacts/{contact['id']}/calls",
        json={"time": "2024-01-12T18:00:00+00:00", "note": "Catch up"},
    ).json()["call"]
    upcoming = client.get("/api/calls/upcoming").json()["calls"]
    assert upcoming[0]["contact"] == "Alex"
    done = client.post(f"/api/contacts/{contact['id']}/calls/{call['id']}/complete").json()
    assert done["call"]["completed"] is True
    assert client.get("/api/calls/upcoming").json()["calls"] == []
    assert client.put(f"/api/contacts/{contact['id']}", json={"contact_class": "Enemies"}).status_code == 400


def test_index_renders(client):
    client.post("/api/categories", json={"name": "Write <draft>", "kind": "work"})
    html = client.get("/").text
    assert "Write &lt;draft&gt;" in html
    assert "Currently awake" in html


def test_call_time_without_offset(client):
    contact = client.post("/api/contacts", json={"name": "Sam"}).json()["contact"]
    created = client.post(f"/api/contacts/{contact['id']}/calls", json={"time": "2024-01-12T18:00:00"})
    assert created.status_code == 200
    upcoming = client.get("/api/calls/upcoming").json()["calls"]
    assert [c["contact"] for c in upcoming] == ["Sam"]


def test_habit_streaks_reflect_today(client, clock):
    habit = client.post("/api/habits", json={"name": "Meditate"}).json()["habit"]
    client.post(f"/api/habits/{habit['id']}/toggle", json={})
    assert "streak 1" in client.get("/").text

    clock.advance(days=2)
    assert "streak 0" in client.get("/").text
    listed = client.get("/api/habits").json()["habits"]
    assert listed[0]["stats"]["currentStreak"] == 0
    assert listed[0]["stats"]["longestStreak"] == 1
