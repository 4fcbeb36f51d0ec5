from __future__ import annotations

import os
import secrets
from datetime import date
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from tracker import (
    InvalidStateError,
    NotFoundError,
    TrackerService,
    WorkoutExecution,
    localize,
    setup_logging,
)
from tracker.models import parse_time_of_day, parse_timestamp

setup_logging()


# ── HTML helpers ──────────────────────────────────────────────

def _escape(s: str) -> str:
    return (
        s.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def _fmt_minutes(minutes: float) -> str:
    total = int(minutes)
    return f"{total // 60}h {total % 60:02d}m"


# ── App & auth ────────────────────────────────────────────────

app = FastAPI(title="tracklog", version="0.2.0")

security = HTTPBasic(auto_error=False)

_service: TrackerService | None = None
# Running workout executions by session id; they only reach the store on finish.
_executions: dict[str, WorkoutExecution] = {}


def get_service() -> TrackerService:
    global _service
    if _service is None:
        _service = TrackerService.open()
    return _service


def get_current_user(credentials: HTTPBasicCredentials | None = Depends(security)) -> str:
    expected_username = os.environ.get("TRACKLOG_USERNAME", "")
    expected_password = os.environ.get("TRACKLOG_PASSWORD", "")

    if not expected_username or not expected_password:
        return "guest"

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Basic"},
        )

    correct_username = secrets.compare_digest(credentials.username.encode("utf-8"), expected_username.encode("utf-8"))
    correct_password = secrets.compare_digest(credentials.password.encode("utf-8"), expected_password.encode("utf-8"))

    if not (correct_username and correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username


@app.exception_handler(NotFoundError)
def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidStateError)
def _invalid_state(request: Request, exc: InvalidStateError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(ValueError)
def _bad_value(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def _require(obj: Any, kind: str, item_id: str) -> Any:
    if obj is None:
        raise NotFoundError(kind, item_id)
    return obj


def _parse_when(payload: dict[str, Any], key: str, svc: TrackerService) -> Any:
    raw = payload.get(key)
    if raw is None:
        return None
    value = parse_timestamp(raw)
    if value is None:
        raise ValueError(f"Invalid timestamp for {key}: {raw}")
    return localize(value, svc.tz)


def _parse_time(payload: dict[str, Any], key: str) -> Any:
    value = parse_time_of_day(payload.get(key))
    if value is None:
        raise ValueError(f"Invalid or missing time of day for {key}: {payload.get(key)}")
    return value


def _category_json(svc: TrackerService, category_id: str) -> dict[str, Any]:
    category = _require(svc.category(category_id), "Category", category_id)
    return {
        "id": category.id,
        "name": category.name,
        "kind": category.kind.value,
        "isRunning": category.is_running,
        "current": svc.current_time(category_id).to_dict(),
    }


def _execution_json(execution: WorkoutExecution) -> dict[str, Any]:
    return {
        "workoutId": execution.workout_id,
        "sessionId": execution.session_id,
        "startedAt": execution.started_at.isoformat(),
        "sets": [s.to_dict() for s in execution.exercises],
        "completedCount": execution.completed_count(),
    }


# ── Dashboard ─────────────────────────────────────────────────

@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"ok": "true"}


@app.get("/", response_class=HTMLResponse)
def index(username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> HTMLResponse:
    rows = []
    for category in svc.categories():
        ct = svc.current_time(category.id)
        marker = "&#9654;" if category.is_running else ""
        rows.append(
            f"<tr><td>{marker}</td><td>{_escape(category.name)}</td><td>{category.kind.value}</td>"
            f"<td>{_fmt_minutes(ct.today)}</td><td>{_fmt_minutes(ct.week)}</td><td>{_fmt_minutes(ct.total)}</td></tr>"
        )
    stats = svc.sleep_statistics()
    sleeping = "asleep" if svc.data.sleep.is_sleeping else "awake"
    habit_items = "".join(
        f"<li>{_escape(h.name)} <span class=\"muted\">streak {svc.habit_stats(h.id).current_streak}</span></li>"
        for h in svc.habits()
    )
    html = f"""<!doctype html>
<html lang="en">
<head><meta charset="utf-8"><title>tracklog</title></head>
<body>
<h1>tracklog</h1>
<h2>Timers</h2>
<table>
<tr><th></th><th>Category</th><th>Kind</th><th>Today</th><th>Week</th><th>Total</th></tr>
{''.join(rows) or '<tr><td colspan="6">(no categories yet)</td></tr>'}
</table>
<h2>Sleep</h2>
<p>Currently {sleeping}. Average {stats.avg_duration_hours:.1f}h, consistency {stats.consistency_score:.0f}/100.</p>
<h2>Habits</h2>
<ul>{habit_items or '<li>(no habits yet)</li>'}</ul>
</body>
</html>"""
    return HTMLResponse(html)


@app.get("/api/state")
def api_get_state(username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    """Full aggregate snapshot as persisted."""
    return svc.data.to_dict()


@app.get("/api/warnings")
def api_warnings(username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    """Collaborator failures (save, notification, hook) recorded since startup."""
    return {"warnings": list(svc.warnings)}


@app.get("/api/notifications")
def api_notifications(username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    return {"pending": svc.pending_notifications()}


# ── Categories & timers ───────────────────────────────────────

@app.get("/api/categories")
def api_list_categories(
    kind: str | None = None,
    username: str = Depends(get_current_user),
    svc: TrackerService = Depends(get_service),
) -> dict[str, Any]:
    return {"categories": [_category_json(svc, c.id) for c in svc.categories(kind)]}


@app.post("/api/categories")
def api_add_category(
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    svc: TrackerService = Depends(get_service),
) -> dict[str, Any]:
    category = svc.add_category(str(payload.get("name", "")), payload.get("kind", "work"))
    return {"ok": True, "category": _category_json(svc, category.id)}


@app.delete("/api/categories/{category_id}")
def api_delete_category(category_id: str, username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    category = _require(svc.delete_category(category_id), "Category", category_id)
    return {"ok": True, "category": category.to_dict()}


@app.post("/api/categories/{category_id}/toggle")
def api_toggle_timer(category_id: str, username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    running = _require(svc.toggle_timer(category_id), "Category", category_id)
    return {"ok": True, "running": running, "category": _category_json(svc, category_id)}


@app.post("/api/timers/stop_all")
def api_stop_all(username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    return {"ok": True, "stopped": svc.stop_all_timers()}


@app.get("/api/categories/{category_id}/weekly")
def api_weekly_series(category_id: str, username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    series = _require(svc.weekly_series(category_id), "Category", category_id)
    return {"categoryId": category_id, "minutes": [round(m, 2) for m in series]}


@app.get("/api/totals")
def api_totals(username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    return {kind: ct.to_dict() for kind, ct in svc.totals_by_kind().items()}


# ── Sleep ─────────────────────────────────────────────────────

@app.get("/api/sleep")
def api_sleep_state(username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    state = svc.data.sleep
    return {
        "isSleeping": state.is_sleeping,
        "sleepStartTime": state.sleep_start_time.isoformat() if state.sleep_start_time else None,
        "alarmTime": state.alarm_time.isoformat() if state.alarm_time else None,
        "minutesToday": round(svc.sleep_minutes_today(), 1),
        "isSleepHours": svc.is_sleep_hours(),
        "windDownRemainingMinutes": svc.wind_down_remaining_minutes(),
    }


@app.post("/api/sleep/start")
def api_sleep_start(
    payload: dict[str, Any] = Body(default={}),
    username: str = Depends(get_current_user),
    svc: TrackerService = Depends(get_service),
) -> dict[str, Any]:
    result = svc.go_to_sleep(_parse_when(payload, "alarm_time", svc))
    if not result["ok"]:
        raise InvalidStateError("Already asleep")
    return result


@app.post("/api/sleep/wake")
def api_sleep_wake(username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    result = svc.wake_up()
    if not result["ok"]:
        raise InvalidStateError("Not sleeping")
    return result


@app.post("/api/sleep/toggle")
def api_sleep_toggle(
    payload: dict[str, Any] = Body(default={}),
    username: str = Depends(get_current_user),
    svc: TrackerService = Depends(get_service),
) -> dict[str, Any]:
    return svc.toggle_sleep(_parse_when(payload, "alarm_time", svc))


@app.get("/api/sleep/statistics")
def api_sleep_statistics(username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    return {"sessions": len(svc.data.sleep.sessions), **svc.sleep_statistics().to_dict()}


@app.put("/api/sleep/wind_down")
def api_set_wind_down(
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    svc: TrackerService = Depends(get_service),
) -> dict[str, Any]:
    handle = svc.schedule_wind_down(_parse_time(payload, "time"), int(payload.get("minutes", 30)))
    return {"ok": True, "notificationId": handle}


@app.delete("/api/sleep/wind_down")
def api_cancel_wind_down(username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    svc.cancel_wind_down()
    return {"ok": True}


# ── Habits ────────────────────────────────────────────────────

@app.get("/api/habits")
def api_list_habits(username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    return {"habits": [{**h.to_dict(), "stats": svc.habit_stats(h.id).to_dict()} for h in svc.habits()]}


@app.post("/api/habits")
def api_add_habit(
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    svc: TrackerService = Depends(get_service),
) -> dict[str, Any]:
    habit = svc.add_habit(
        str(payload.get("name", "")),
        str(payload.get("description", "")),
        payload.get("type", "good"),
    )
    return {"ok": True, "habit": habit.to_dict()}


@app.put("/api/habits/{habit_id}")
def api_update_habit(
    habit_id: str,
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    svc: TrackerService = Depends(get_service),
) -> dict[str, Any]:
    _require(svc.data.habits.get(habit_id), "Habit", habit_id)
    habit, errors = svc.update_habit(habit_id, payload)
    if errors:
        raise HTTPException(status_code=400, detail="; ".join(errors))
    return {"ok": True, "habit": habit.to_dict()}


@app.delete("/api/habits/{habit_id}")
def api_delete_habit(habit_id: str, username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    _require(svc.delete_habit(habit_id), "Habit", habit_id)
    return {"ok": True, "habit_id": habit_id}


@app.post("/api/habits/{habit_id}/toggle")
def api_toggle_habit(
    habit_id: str,
    payload: dict[str, Any] = Body(default={}),
    username: str = Depends(get_current_user),
    svc: TrackerService = Depends(get_service),
) -> dict[str, Any]:
    entry = _require(svc.toggle_habit_entry(habit_id, _parse_when(payload, "when", svc)), "Habit", habit_id)
    return {"ok": True, "entry": entry.to_dict(), "stats": svc.habit_stats(habit_id).to_dict()}


@app.get("/api/habits/{habit_id}/stats")
def api_habit_stats(habit_id: str, username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    return _require(svc.habit_stats(habit_id), "Habit", habit_id).to_dict()


@app.put("/api/habits/{habit_id}/reminder")
def api_set_habit_reminder(
    habit_id: str,
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    svc: TrackerService = Depends(get_service),
) -> dict[str, Any]:
    at = _parse_time(payload, "time")
    _require(svc.data.habits.get(habit_id), "Habit", habit_id)
    return {"ok": True, "notificationId": svc.schedule_habit_reminder(habit_id, at)}


@app.delete("/api/habits/{habit_id}/reminder")
def api_cancel_habit_reminder(habit_id: str, username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    if not svc.cancel_habit_reminder(habit_id):
        raise NotFoundError("Habit", habit_id)
    return {"ok": True}


# ── Workouts ──────────────────────────────────────────────────

@app.get("/api/exercises")
def api_exercises(
    type: str | None = None,
    username: str = Depends(get_current_user),
    svc: TrackerService = Depends(get_service),
) -> dict[str, Any]:
    groups = svc.exercises(type)
    return {group: [e.to_dict() for e in items] for group, items in groups.items()}


@app.get("/api/workouts")
def api_list_workouts(username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    return {
        "workouts": [
            {**w.to_dict(), "averageDuration": svc.average_duration(w.id)} for w in svc.workouts()
        ],
        "gymDays": list(svc.data.gym_days),
    }


@app.post("/api/workouts")
def api_create_workout(
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    svc: TrackerService = Depends(get_service),
) -> dict[str, Any]:
    workout = svc.create_workout(str(payload.get("name", "")))
    return {"ok": True, "workout": workout.to_dict()}


@app.delete("/api/workouts/{workout_id}")
def api_delete_workout(workout_id: str, username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    if not svc.delete_workout(workout_id):
        raise NotFoundError("Workout", workout_id)
    return {"ok": True, "workout_id": workout_id}


@app.post("/api/workouts/{workout_id}/sets")
def api_add_planned_set(
    workout_id: str,
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    svc: TrackerService = Depends(get_service),
) -> dict[str, Any]:
    planned = svc.add_exercise_to_workout(
        workout_id,
        str(payload.get("exercise_id", "")),
        int(payload.get("sets", 1)),
        int(payload.get("reps", 0)),
        float(payload.get("weight", 0.0)),
    )
    _require(planned, "Workout", workout_id)
    return {"ok": True, "set": planned.to_dict()}


@app.delete("/api/workouts/{workout_id}/sets/{index}")
def api_remove_planned_set(workout_id: str, index: int, username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    if not svc.remove_planned_set(workout_id, index):
        raise NotFoundError("Planned set", f"{workout_id}[{index}]")
    return {"ok": True}


@app.post("/api/workouts/{workout_id}/start")
def api_start_workout(workout_id: str, username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    execution = _require(svc.start_workout(workout_id), "Workout", workout_id)
    _executions[execution.session_id] = execution
    return {"ok": True, "execution": _execution_json(execution)}


@app.patch("/api/executions/{session_id}/sets/{set_id}")
def api_edit_execution_set(
    session_id: str,
    set_id: str,
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
) -> dict[str, Any]:
    execution = _require(_executions.get(session_id), "Workout execution", session_id)
    found = True
    if "reps" in payload:
        found = execution.adjust_reps(set_id, int(payload["reps"])) and found
    if "weight" in payload:
        found = execution.adjust_weight(set_id, float(payload["weight"])) and found
    if "completed" in payload:
        found = execution.mark_done(set_id, bool(payload["completed"])) and found
    if not found:
        raise NotFoundError("Set", set_id)
    return {"ok": True, "execution": _execution_json(execution)}


@app.post("/api/executions/{session_id}/finish")
def api_finish_workout(session_id: str, username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    execution = _require(_executions.get(session_id), "Workout execution", session_id)
    session = _require(svc.finish_workout(execution), "Workout session", session_id)
    del _executions[session_id]
    return {"ok": True, "session": session.to_dict()}


@app.get("/api/workouts/sessions")
def api_sessions_on(day: str, username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    return {"day": day, "sessions": [s.to_dict() for s in svc.sessions_on(date.fromisoformat(day))]}


@app.get("/api/workouts/completion_dates")
def api_completion_dates(
    workout_id: str | None = None,
    username: str = Depends(get_current_user),
    svc: TrackerService = Depends(get_service),
) -> dict[str, Any]:
    """Session dates for one workout (or all), for calendar heatmaps."""
    return {"dates": [d.isoformat() for d in svc.completion_dates(workout_id)]}


@app.post("/api/gym_days/{weekday}/toggle")
def api_toggle_gym_day(weekday: int, username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    selected = svc.toggle_gym_day(weekday)
    return {"ok": True, "selected": selected, "gymDays": list(svc.data.gym_days)}


# ── Contacts ──────────────────────────────────────────────────

@app.get("/api/contacts")
def api_list_contacts(username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    return {"contacts": [c.to_dict() for c in svc.data.contacts.values()]}


@app.post("/api/contacts")
def api_add_contact(
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    svc: TrackerService = Depends(get_service),
) -> dict[str, Any]:
    contact = svc.add_contact(
        str(payload.get("name", "")),
        payload.get("phone_number"),
        payload.get("contact_class", "Other"),
    )
    return {"ok": True, "contact": contact.to_dict()}


@app.put("/api/contacts/{contact_id}")
def api_update_contact(
    contact_id: str,
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    svc: TrackerService = Depends(get_service),
) -> dict[str, Any]:
    _require(svc.data.contacts.get(contact_id), "Contact", contact_id)
    contact, errors = svc.update_contact(contact_id, payload)
    if errors:
        raise HTTPException(status_code=400, detail="; ".join(errors))
    return {"ok": True, "contact": contact.to_dict()}


@app.delete("/api/contacts/{contact_id}")
def api_delete_contact(contact_id: str, username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    _require(svc.delete_contact(contact_id), "Contact", contact_id)
    return {"ok": True, "contact_id": contact_id}


@app.post("/api/contacts/{contact_id}/calls")
def api_schedule_call(
    contact_id: str,
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    svc: TrackerService = Depends(get_service),
) -> dict[str, Any]:
    when = _parse_when(payload, "time", svc)
    if when is None:
        raise ValueError("Missing call time")
    call = _require(svc.schedule_call(contact_id, when, str(payload.get("note", ""))), "Contact", contact_id)
    return {"ok": True, "call": call.to_dict()}


@app.post("/api/contacts/{contact_id}/calls/{call_id}/complete")
def api_complete_call(contact_id: str, call_id: str, username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    call = _require(svc.complete_call(contact_id, call_id), "Call", call_id)
    return {"ok": True, "call": call.to_dict()}


@app.delete("/api/contacts/{contact_id}/calls/{call_id}")
def api_delete_call(contact_id: str, call_id: str, username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    _require(svc.delete_scheduled_call(contact_id, call_id), "Call", call_id)
    return {"ok": True, "call_id": call_id}


@app.get("/api/calls/upcoming")
def api_upcoming_calls(username: str = Depends(get_current_user), svc: TrackerService = Depends(get_service)) -> dict[str, Any]:
    return {
        "calls": [
            {"contact": contact.name, "contactId": contact.id, **call.to_dict()}
            for contact, call in svc.upcoming_calls()
        ]
    }


# ── Entry point ────────────────────────────────────────────────


def serve() -> None:
    import uvicorn

    uvicorn.run(
        app,
        host=os.environ.get("TRACKLOG_HOST", "127.0.0.1"),
        port=int(os.environ.get("TRACKLOG_PORT", "8787")),
    )
