"""Typed dataclasses for the tracklog data model.

All models use from_dict/to_dict for JSON serialization.
camelCase in JSON is mapped to snake_case in Python.
Unknown keys are ignored; missing keys use defaults.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, time
from enum import Enum
from typing import Any

SCHEMA_VERSION = 2


def new_id() -> str:
    return str(uuid.uuid4())


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string; anything unparseable becomes None."""
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def parse_time_of_day(value: Any) -> time | None:
    if isinstance(value, time):
        return value
    if not value:
        return None
    try:
        return time.fromisoformat(str(value))
    except ValueError:
        return None


def _enum_value(enum_cls: type[Enum], value: Any, default: Enum) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        return default


# ── Enumerations ──────────────────────────────────────────────


class CategoryKind(str, Enum):
    WORK = "work"
    SPORTS = "sports"


class HabitType(str, Enum):
    GOOD = "good"
    BAD = "bad"


class ExerciseType(str, Enum):
    GYM = "gym"
    CALISTHENICS = "calisthenics"


class ContactClass(str, Enum):
    FRIENDS = "Friends"
    CLOSE_FRIENDS = "Close Friends"
    FAMILY = "Family"
    CLOSE_FAMILY = "Close Family"
    COLLEAGUES = "Colleagues"
    OTHER = "Other"


# ── Categories ────────────────────────────────────────────────


@dataclass
class Category:
    """A trackable activity bucket with day/week/total accumulators (minutes)."""

    id: str = ""
    name: str = ""
    kind: CategoryKind = CategoryKind.WORK
    total_minutes: float = 0.0
    today_minutes: float = 0.0
    week_minutes: float = 0.0
    last_day_key: str = ""
    last_week_key: str = ""
    # Transient: never written at rest, a restart comes back stopped.
    is_running: bool = False
    started_at: datetime | None = None
    daily_minutes: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: dict[str, Any], kind: CategoryKind) -> Category:
        # Older blobs used total/today/week/lastDate/lastWeek/dailyTimes.
        daily = d.get("dailyMinutes", d.get("dailyTimes")) or {}
        return cls(
            id=str(d.get("id", "")),
            name=str(d.get("name", "")),
            kind=kind,
            total_minutes=max(0.0, float(d.get("totalMinutes", d.get("total", 0.0)) or 0.0)),
            today_minutes=max(0.0, float(d.get("todayMinutes", d.get("today", 0.0)) or 0.0)),
            week_minutes=max(0.0, float(d.get("weekMinutes", d.get("week", 0.0)) or 0.0)),
            last_day_key=str(d.get("lastDayKey", d.get("lastDate", "")) or ""),
            last_week_key=str(d.get("lastWeekKey", d.get("lastWeek", "")) or ""),
            daily_minutes={str(k): float(v) for k, v in daily.items()} if isinstance(daily, dict) else {},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "totalMinutes": self.total_minutes,
            "todayMinutes": self.today_minutes,
            "weekMinutes": self.week_minutes,
            "lastDayKey": self.last_day_key,
            "lastWeekKey": self.last_week_key,
            "dailyMinutes": dict(self.daily_minutes),
        }


@dataclass(frozen=True)
class CurrentTime:
    """Read-side projection of a category's accumulators, live time included."""

    today: float = 0.0
    week: float = 0.0
    total: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {"today": round(self.today, 3), "week": round(self.week, 3), "total": round(self.total, 3)}


# ── Sleep ─────────────────────────────────────────────────────


@dataclass
class SleepSession:
    id: str = ""
    start_time: datetime | None = None
    end_time: datetime | None = None

    def duration_hours(self) -> float:
        if self.start_time is None or self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds() / 3600

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> SleepSession:
        return cls(
            id=str(d.get("id", "")),
            start_time=parse_timestamp(d.get("startTime")),
            end_time=parse_timestamp(d.get("endTime")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "startTime": format_timestamp(self.start_time),
            "endTime": format_timestamp(self.end_time),
        }


@dataclass
class SleepState:
    is_sleeping: bool = False
    sleep_start_time: datetime | None = None
    alarm_time: datetime | None = None
    total_sleep_minutes_today: float = 0.0
    last_day_key: str = ""
    pending_alarm_handle: str | None = None
    sessions: list[SleepSession] = field(default_factory=list)
    # Wind-down phase
    wind_down_enabled: bool = False
    wind_down_minutes: int = 30
    wind_down_time: time | None = None
    wind_down_handle: str | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> SleepState:
        if not d or not isinstance(d, dict):
            return cls()
        sessions = []
        for s in d.get("sleepSessions") or []:
            session = SleepSession.from_dict(s)
            if session.start_time is not None and session.end_time is not None:
                sessions.append(session)
        start = parse_timestamp(d.get("sleepStartTime"))
        return cls(
            # isSleeping without a start time cannot be resumed.
            is_sleeping=bool(d.get("isSleeping", False)) and start is not None,
            sleep_start_time=start if d.get("isSleeping") else None,
            alarm_time=parse_timestamp(d.get("alarmTime")),
            total_sleep_minutes_today=float(d.get("totalSleepMinutesToday", 0.0) or 0.0),
            last_day_key=str(d.get("lastDayKey", "") or ""),
            pending_alarm_handle=d.get("pendingAlarmHandle", d.get("systemAlarmId")),
            sessions=sessions,
            wind_down_enabled=bool(d.get("windDownEnabled", False)),
            wind_down_minutes=int(d.get("windDownDuration", 30) or 30),
            wind_down_time=parse_time_of_day(d.get("windDownTime")),
            wind_down_handle=d.get("windDownNotificationId"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "isSleeping": self.is_sleeping,
            "sleepStartTime": format_timestamp(self.sleep_start_time),
            "alarmTime": format_timestamp(self.alarm_time),
            "totalSleepMinutesToday": self.total_sleep_minutes_today,
            "lastDayKey": self.last_day_key,
            "pendingAlarmHandle": self.pending_alarm_handle,
            "sleepSessions": [s.to_dict() for s in self.sessions],
            "windDownEnabled": self.wind_down_enabled,
            "windDownDuration": self.wind_down_minutes,
            "windDownTime": self.wind_down_time.strftime("%H:%M") if self.wind_down_time else None,
            "windDownNotificationId": self.wind_down_handle,
        }


@dataclass
class SleepStatistics:
    avg_duration_hours: float = 0.0
    avg_bedtime_hour: float = 0.0
    avg_wake_hour: float = 0.0
    bedtime_std_dev_minutes: float = 0.0
    wake_std_dev_minutes: float = 0.0
    consistency_score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "avgDurationHours": round(self.avg_duration_hours, 3),
            "avgBedtimeHour": round(self.avg_bedtime_hour, 3),
            "avgWakeHour": round(self.avg_wake_hour, 3),
            "bedtimeStdDevMinutes": round(self.bedtime_std_dev_minutes, 1),
            "wakeStdDevMinutes": round(self.wake_std_dev_minutes, 1),
            "consistencyScore": round(self.consistency_score, 1),
        }


# ── Habits ────────────────────────────────────────────────────


@dataclass
class HabitEntry:
    habit_id: str = ""
    day: str = ""  # day key
    completed: bool = False
    note: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> HabitEntry:
        return cls(
            habit_id=str(d.get("habitId", "")),
            day=str(d.get("day", "")),
            completed=bool(d.get("completed", False)),
            note=str(d.get("note", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"habitId": self.habit_id, "day": self.day, "completed": self.completed}
        if self.note:
            d["note"] = self.note
        return d


@dataclass
class Habit:
    id: str = ""
    name: str = ""
    description: str = ""
    type: HabitType = HabitType.GOOD
    created_at: datetime | None = None
    # Derived from the entry set; only habits.recompute_stats writes these.
    current_streak: int = 0
    longest_streak: int = 0
    completion_rate: float = 0.0
    reminder_enabled: bool = False
    reminder_time: time | None = None
    notification_id: str | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Habit:
        return cls(
            id=str(d.get("id", "")),
            name=str(d.get("name", "")),
            description=str(d.get("description", "")),
            type=_enum_value(HabitType, d.get("type"), HabitType.GOOD),
            created_at=parse_timestamp(d.get("createdAt")),
            current_streak=int(d.get("currentStreak", 0) or 0),
            longest_streak=int(d.get("longestStreak", 0) or 0),
            completion_rate=float(d.get("completionRate", 0.0) or 0.0),
            reminder_enabled=bool(d.get("reminderEnabled", False)),
            reminder_time=parse_time_of_day(d.get("reminderTime")),
            notification_id=d.get("notificationId"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type.value,
            "createdAt": format_timestamp(self.created_at),
            "currentStreak": self.current_streak,
            "longestStreak": self.longest_streak,
            "completionRate": round(self.completion_rate, 3),
            "reminderEnabled": self.reminder_enabled,
            "reminderTime": self.reminder_time.strftime("%H:%M") if self.reminder_time else None,
            "notificationId": self.notification_id,
        }


@dataclass(frozen=True)
class HabitStats:
    current_streak: int = 0
    longest_streak: int = 0
    completion_rate: float = 0.0
    days_tracked: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentStreak": self.current_streak,
            "longestStreak": self.longest_streak,
            "completionRate": round(self.completion_rate, 1),
            "daysTracked": self.days_tracked,
        }


# ── Workouts ──────────────────────────────────────────────────


@dataclass
class Exercise:
    id: str = ""
    name: str = ""
    muscle_group: str = ""
    last_reps: int = 8
    last_weight: float = 0.0
    exercise_type: ExerciseType = ExerciseType.GYM

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Exercise:
        return cls(
            id=str(d.get("id", "")),
            name=str(d.get("name", "")),
            muscle_group=str(d.get("muscleGroup", "")),
            last_reps=int(d.get("lastReps", 8)),
            last_weight=float(d.get("lastWeight", 0.0)),
            exercise_type=_enum_value(ExerciseType, d.get("exerciseType"), ExerciseType.GYM),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "muscleGroup": self.muscle_group,
            "lastReps": self.last_reps,
            "lastWeight": self.last_weight,
            "exerciseType": self.exercise_type.value,
        }


@dataclass
class WorkoutSet:
    """One planned exercise line: *sets* x *reps* at *weight*."""

    id: str = ""
    exercise_id: str = ""
    reps: int = 0
    weight: float = 0.0
    sets: int = 1

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> WorkoutSet:
        return cls(
            id=str(d.get("id", "")),
            exercise_id=str(d.get("exerciseId", "")),
            reps=int(d.get("reps", 0)),
            weight=float(d.get("weight", 0.0)),
            sets=int(d.get("sets", 1)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "exerciseId": self.exercise_id,
            "reps": self.reps,
            "weight": self.weight,
            "sets": self.sets,
        }


@dataclass
class CompletedExerciseSet:
    id: str = ""
    exercise_id: str = ""
    reps: int = 0
    weight: float = 0.0
    completed: bool = False

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> CompletedExerciseSet:
        return cls(
            id=str(d.get("id", "")),
            exercise_id=str(d.get("exerciseId", "")),
            reps=int(d.get("reps", 0)),
            weight=float(d.get("weight", 0.0)),
            completed=bool(d.get("completed", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "exerciseId": self.exercise_id,
            "reps": self.reps,
            "weight": self.weight,
            "completed": self.completed,
        }


@dataclass
class CompletedWorkoutSession:
    id: str = ""
    workout_id: str = ""
    date: datetime | None = None
    duration: int = 0  # seconds
    completed_exercises: list[CompletedExerciseSet] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> CompletedWorkoutSession:
        return cls(
            id=str(d.get("id", "")),
            workout_id=str(d.get("workoutId", "")),
            date=parse_timestamp(d.get("date")),
            duration=int(d.get("duration", 0) or 0),
            completed_exercises=[CompletedExerciseSet.from_dict(e) for e in (d.get("completedExercises") or [])],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "workoutId": self.workout_id,
            "date": format_timestamp(self.date),
            "duration": self.duration,
            "completedExercises": [e.to_dict() for e in self.completed_exercises],
        }


@dataclass
class Workout:
    id: str = ""
    name: str = ""
    sets: list[WorkoutSet] = field(default_factory=list)
    completed_sessions: list[CompletedWorkoutSession] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Workout:
        return cls(
            id=str(d.get("id", "")),
            name=str(d.get("name", "")),
            sets=[WorkoutSet.from_dict(s) for s in (d.get("sets") or [])],
            completed_sessions=[CompletedWorkoutSession.from_dict(s) for s in (d.get("completedSessions") or [])],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "sets": [s.to_dict() for s in self.sets],
            "completedSessions": [s.to_dict() for s in self.completed_sessions],
        }


# ── Contacts ──────────────────────────────────────────────────


@dataclass
class ScheduledCall:
    id: str = ""
    contact_id: str = ""
    scheduled_time: datetime | None = None
    note: str = ""
    completed: bool = False
    notification_id: str | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ScheduledCall:
        return cls(
            id=str(d.get("id", "")),
            contact_id=str(d.get("contactId", "")),
            scheduled_time=parse_timestamp(d.get("scheduledTime")),
            note=str(d.get("note", "")),
            completed=bool(d.get("completed", False)),
            notification_id=d.get("notificationId"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "contactId": self.contact_id,
            "scheduledTime": format_timestamp(self.scheduled_time),
            "note": self.note,
            "completed": self.completed,
            "notificationId": self.notification_id,
        }


@dataclass
class ContactProfile:
    id: str = ""
    name: str = ""
    phone_number: str | None = None
    contact_class: ContactClass = ContactClass.OTHER
    current_news: str = ""
    preferences: str = ""
    interests: str = ""
    notes: str = ""
    scheduled_calls: list[ScheduledCall] = field(default_factory=list)
    last_contact: datetime | None = None
    created_at: datetime | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ContactProfile:
        return cls(
            id=str(d.get("id", "")),
            name=str(d.get("name", "")),
            phone_number=d.get("phoneNumber"),
            contact_class=_enum_value(ContactClass, d.get("contactClass"), ContactClass.OTHER),
            current_news=str(d.get("currentNews", "")),
            preferences=str(d.get("preferences", "")),
            interests=str(d.get("interests", "")),
            notes=str(d.get("notes", "")),
            scheduled_calls=[ScheduledCall.from_dict(c) for c in (d.get("scheduledCalls") or [])],
            last_contact=parse_timestamp(d.get("lastContact")),
            created_at=parse_timestamp(d.get("createdAt")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "phoneNumber": self.phone_number,
            "contactClass": self.contact_class.value,
            "currentNews": self.current_news,
            "preferences": self.preferences,
            "interests": self.interests,
            "notes": self.notes,
            "scheduledCalls": [c.to_dict() for c in self.scheduled_calls],
            "lastContact": format_timestamp(self.last_contact),
            "createdAt": format_timestamp(self.created_at),
        }


# ── Aggregate ─────────────────────────────────────────────────


def _by_id(items: list[Any]) -> dict[str, Any]:
    return {item.id: item for item in items if item.id}


@dataclass
class TrackerData:
    """Root aggregate; the only thing the persistence store ever sees."""

    categories: dict[str, Category] = field(default_factory=dict)
    workouts: dict[str, Workout] = field(default_factory=dict)
    exercises: dict[str, Exercise] = field(default_factory=dict)
    gym_days: list[int] = field(default_factory=list)
    sleep: SleepState = field(default_factory=SleepState)
    habits: dict[str, Habit] = field(default_factory=dict)
    habit_entries: list[HabitEntry] = field(default_factory=list)
    contacts: dict[str, ContactProfile] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> TrackerData:
        if not d or not isinstance(d, dict):
            return cls()
        categories: dict[str, Category] = {}
        for key, kind in (("workCategories", CategoryKind.WORK), ("sportsCategories", CategoryKind.SPORTS)):
            for c in d.get(key) or []:
                if isinstance(c, dict):
                    cat = Category.from_dict(c, kind)
                    if cat.id:
                        categories[cat.id] = cat
        return cls(
            categories=categories,
            workouts=_by_id([Workout.from_dict(w) for w in (d.get("workouts") or [])]),
            exercises=_by_id([Exercise.from_dict(e) for e in (d.get("exercises") or [])]),
            gym_days=sorted({int(x) for x in (d.get("gymDays") or []) if 1 <= int(x) <= 7}),
            sleep=SleepState.from_dict(d.get("sleepData") or {}),
            habits=_by_id([Habit.from_dict(h) for h in (d.get("habits") or [])]),
            habit_entries=[HabitEntry.from_dict(e) for e in (d.get("habitEntries") or [])],
            contacts=_by_id([ContactProfile.from_dict(c) for c in (d.get("contacts") or [])]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": SCHEMA_VERSION,
            "workCategories": [c.to_dict() for c in self.categories.values() if c.kind is CategoryKind.WORK],
            "sportsCategories": [c.to_dict() for c in self.categories.values() if c.kind is CategoryKind.SPORTS],
            "workouts": [w.to_dict() for w in self.workouts.values()],
            "exercises": [e.to_dict() for e in self.exercises.values()],
            "gymDays": list(self.gym_days),
            "sleepData": self.sleep.to_dict(),
            "habits": [h.to_dict() for h in self.habits.values()],
            "habitEntries": [e.to_dict() for e in self.habit_entries],
            "contacts": [c.to_dict() for c in self.contacts.values()],
        }
