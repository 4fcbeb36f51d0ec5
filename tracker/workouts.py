"""Workout plans, execution and session aggregation for tracklog.

A workout's plan (``sets``) and its executions (``completed_sessions``)
are independent: editing the plan never rewrites past sessions.

Executions are commit-on-finish. ``start_workout`` appends one empty
session and hands back a WorkoutExecution working copy; rep/weight and
set edits happen on that copy only, and ``finish_workout`` writes the
final exercise list and duration into the session once.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo

from tracker.calendar_keys import local_date
from tracker.models import (
    CompletedExerciseSet,
    CompletedWorkoutSession,
    Exercise,
    ExerciseType,
    TrackerData,
    Workout,
    WorkoutSet,
    new_id,
)

logger = logging.getLogger(__name__)

GYM_CATALOG: list[tuple[str, list[str]]] = [
    ("Chest", ["Bench Press", "Incline Press", "Cable Fly", "Dumbbell Press"]),
    ("Back", ["Deadlift", "Bent Row", "Pull-up", "Lat Pulldown"]),
    ("Shoulders", ["Shoulder Press", "Lateral Raise", "Shrug", "Front Raise"]),
    ("Legs", ["Squat", "Leg Press", "Leg Curl", "Leg Extension"]),
    ("Arms", ["Bicep Curl", "Tricep Dips", "Hammer Curl", "Overhead Extension"]),
    ("Core", ["Plank", "Ab Wheel", "Cable Crunch", "Russian Twist"]),
]

CALISTHENICS_CATALOG: list[tuple[str, list[str]]] = [
    ("Chest", ["Push-ups", "Diamond Push-ups", "Decline Push-ups", "Archer Push-ups"]),
    ("Back", ["Pull-ups", "Chin-ups", "Inverted Rows", "Superman Holds"]),
    ("Shoulders", ["Pike Push-ups", "Handstand Push-ups", "Plank to Down Dog", "Arm Circles"]),
    ("Legs", ["Bodyweight Squats", "Lunges", "Bulgarian Split Squats", "Pistol Squats"]),
    ("Arms", ["Close Grip Push-ups", "Tricep Dips", "Inverted Curls", "Diamond Push-ups"]),
    ("Core", ["Plank", "Mountain Climbers", "Leg Raises", "Hollow Body Hold"]),
]


# ── Exercise catalog ──────────────────────────────────────────


def seed_exercises(data: TrackerData) -> int:
    """Fill an empty exercise catalog with the default gym and calisthenics sets."""
    if data.exercises:
        return 0
    for exercise_type, catalog in (
        (ExerciseType.GYM, GYM_CATALOG),
        (ExerciseType.CALISTHENICS, CALISTHENICS_CATALOG),
    ):
        for group, names in catalog:
            for name in names:
                exercise = Exercise(id=new_id(), name=name, muscle_group=group, exercise_type=exercise_type)
                data.exercises[exercise.id] = exercise
    return len(data.exercises)


def exercises_by_group(data: TrackerData, exercise_type: ExerciseType | None = None) -> dict[str, list[Exercise]]:
    groups: dict[str, list[Exercise]] = {}
    for exercise in data.exercises.values():
        if exercise_type is None or exercise.exercise_type is exercise_type:
            groups.setdefault(exercise.muscle_group, []).append(exercise)
    return groups


# ── Plans ─────────────────────────────────────────────────────


def create_workout(data: TrackerData, name: str) -> Workout:
    name = (name or "").strip()
    if not name:
        raise ValueError("Workout name must not be empty")
    workout = Workout(id=new_id(), name=name)
    data.workouts[workout.id] = workout
    return workout


def find_workout(data: TrackerData, workout_id: str) -> Workout | None:
    return data.workouts.get(workout_id)


def delete_workout(data: TrackerData, workout_id: str) -> bool:
    return data.workouts.pop(workout_id, None) is not None


def add_exercise_to_workout(
    data: TrackerData,
    workout_id: str,
    exercise_id: str,
    sets: int,
    reps: int,
    weight: float,
) -> WorkoutSet | None:
    """Append a planned set and remember reps/weight on the exercise."""
    workout = data.workouts.get(workout_id)
    if workout is None:
        return None
    planned = WorkoutSet(id=new_id(), exercise_id=exercise_id, reps=reps, weight=weight, sets=max(1, sets))
    workout.sets.append(planned)

    exercise = data.exercises.get(exercise_id)
    if exercise is not None:
        exercise.last_reps = reps
        exercise.last_weight = weight
    return planned


def remove_planned_set(data: TrackerData, workout_id: str, index: int) -> bool:
    workout = data.workouts.get(workout_id)
    if workout is None or not 0 <= index < len(workout.sets):
        return False
    workout.sets.pop(index)
    return True


def update_planned_set(
    data: TrackerData,
    workout_id: str,
    index: int,
    reps: int | None = None,
    weight: float | None = None,
) -> bool:
    workout = data.workouts.get(workout_id)
    if workout is None or not 0 <= index < len(workout.sets):
        return False
    if reps is not None:
        workout.sets[index].reps = reps
    if weight is not None:
        workout.sets[index].weight = weight
    return True


# ── Execution ─────────────────────────────────────────────────


@dataclass
class WorkoutExecution:
    """In-memory working copy of one workout run; nothing here is persisted until finish."""

    workout_id: str
    session_id: str
    started_at: datetime
    exercises: list[CompletedExerciseSet] = field(default_factory=list)

    def _get(self, set_id: str) -> CompletedExerciseSet | None:
        for item in self.exercises:
            if item.id == set_id:
                return item
        return None

    def adjust_reps(self, set_id: str, reps: int) -> bool:
        item = self._get(set_id)
        if item is None:
            return False
        item.reps = max(0, reps)
        return True

    def adjust_weight(self, set_id: str, weight: float) -> bool:
        item = self._get(set_id)
        if item is None:
            return False
        item.weight = max(0.0, weight)
        return True

    def mark_done(self, set_id: str, done: bool = True) -> bool:
        item = self._get(set_id)
        if item is None:
            return False
        item.completed = done
        return True

    def add_set(self, exercise_id: str) -> CompletedExerciseSet:
        """Add a set, copying reps/weight from the exercise's last set if there is one."""
        last = next((e for e in reversed(self.exercises) if e.exercise_id == exercise_id), None)
        item = CompletedExerciseSet(
            id=new_id(),
            exercise_id=exercise_id,
            reps=last.reps if last else 0,
            weight=last.weight if last else 0.0,
        )
        if last is None:
            self.exercises.append(item)
        else:
            self.exercises.insert(self.exercises.index(last) + 1, item)
        return item

    def remove_set(self, set_id: str) -> bool:
        item = self._get(set_id)
        if item is None:
            return False
        self.exercises.remove(item)
        return True

    def add_exercise(self, exercise_id: str, sets: int, reps: int, weight: float) -> list[CompletedExerciseSet]:
        added = [
            CompletedExerciseSet(id=new_id(), exercise_id=exercise_id, reps=reps, weight=weight)
            for _ in range(max(1, sets))
        ]
        self.exercises.extend(added)
        return added

    def remove_exercise(self, exercise_id: str) -> int:
        before = len(self.exercises)
        self.exercises = [e for e in self.exercises if e.exercise_id != exercise_id]
        return before - len(self.exercises)

    def completed_count(self) -> int:
        return sum(1 for e in self.exercises if e.completed)


def start_workout(data: TrackerData, workout_id: str, now: datetime) -> WorkoutExecution | None:
    """Create the (empty) session record and a working copy seeded from the plan."""
    workout = data.workouts.get(workout_id)
    if workout is None:
        return None
    session = CompletedWorkoutSession(id=new_id(), workout_id=workout_id, date=now, duration=0)
    workout.completed_sessions.append(session)

    seeded = [
        CompletedExerciseSet(id=new_id(), exercise_id=planned.exercise_id, reps=planned.reps, weight=planned.weight)
        for planned in workout.sets
        for _ in range(max(1, planned.sets))
    ]
    logger.info("Workout started: %s", workout.name)
    return WorkoutExecution(workout_id=workout_id, session_id=session.id, started_at=now, exercises=seeded)


def finish_workout(data: TrackerData, execution: WorkoutExecution, now: datetime) -> CompletedWorkoutSession | None:
    """Commit the working copy into its session: exercise list and whole-second duration."""
    workout = data.workouts.get(execution.workout_id)
    if workout is None:
        return None
    session = next((s for s in workout.completed_sessions if s.id == execution.session_id), None)
    if session is None:
        return None
    session.completed_exercises = copy.deepcopy(execution.exercises)
    session.duration = max(0, int((now - execution.started_at).total_seconds()))
    logger.info("Workout finished: %s (%ds)", workout.name, session.duration)
    return session


# ── Aggregation ───────────────────────────────────────────────


def average_duration(data: TrackerData, workout_id: str) -> int:
    """Integer-truncated mean session duration in seconds; 0 without sessions."""
    workout = data.workouts.get(workout_id)
    if workout is None or not workout.completed_sessions:
        return 0
    total = sum(s.duration for s in workout.completed_sessions)
    return total // len(workout.completed_sessions)


def total_duration(data: TrackerData, workout_id: str) -> int:
    workout = data.workouts.get(workout_id)
    if workout is None:
        return 0
    return sum(s.duration for s in workout.completed_sessions)


def completion_dates(data: TrackerData, workout_id: str | None = None) -> list[datetime]:
    """Dates of every completed session of one workout, or of all workouts."""
    if workout_id is None:
        workouts = list(data.workouts.values())
    else:
        workout = data.workouts.get(workout_id)
        workouts = [workout] if workout is not None else []
    return [s.date for w in workouts for s in w.completed_sessions if s.date is not None]


def sessions_on(data: TrackerData, day: date, tz: tzinfo | None = None) -> list[CompletedWorkoutSession]:
    return [
        s
        for w in data.workouts.values()
        for s in w.completed_sessions
        if s.date is not None and local_date(s.date, tz) == day
    ]


# ── Gym days ──────────────────────────────────────────────────


def toggle_gym_day(data: TrackerData, weekday: int) -> bool:
    """Toggle a gym day (1 = Sunday ... 7 = Saturday). Returns True if now selected."""
    if not 1 <= weekday <= 7:
        raise ValueError(f"Weekday must be 1-7, got {weekday}")
    if weekday in data.gym_days:
        data.gym_days.remove(weekday)
        return False
    data.gym_days.append(weekday)
    data.gym_days.sort()
    return True
