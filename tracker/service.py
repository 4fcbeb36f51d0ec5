"""Aggregate-owning service for tracklog.

TrackerService holds the TrackerData aggregate together with the injected
clock, persistence store and notification scheduler. Every command runs
under one lock around the whole aggregate, mutates it through the engine
modules, then saves a full snapshot.

Collaborators are fire-and-forget: a failed save, notification or hook is
logged and recorded in ``warnings``, and the state change that triggered
it stands.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Any

from tracker import contacts, habits, notifications, sleep, timers, workouts
from tracker.calendar_keys import local_date, localize, next_time_of_day
from tracker.config import (
    Settings,
    SystemClock,
    load_settings,
    notifications_path,
    state_path,
    workspace_root,
)
from tracker.hooks import run_hooks
from tracker.models import (
    Category,
    CategoryKind,
    CompletedWorkoutSession,
    ContactClass,
    ContactProfile,
    CurrentTime,
    Exercise,
    ExerciseType,
    Habit,
    HabitEntry,
    HabitStats,
    HabitType,
    ScheduledCall,
    SleepStatistics,
    TrackerData,
    Workout,
    WorkoutSet,
)
from tracker.notifications import InMemoryScheduler, JsonFileScheduler, Notification, NotificationScheduler
from tracker.store import JsonFileStore, PersistenceStore

logger = logging.getLogger(__name__)

MAX_WARNINGS = 50


class TrackerService:
    def __init__(
        self,
        clock: Any,
        store: PersistenceStore,
        scheduler: NotificationScheduler | None = None,
        settings: Settings | None = None,
        root: Path | None = None,
    ) -> None:
        self.clock = clock
        self.store = store
        self.scheduler = scheduler if scheduler is not None else InMemoryScheduler()
        self.settings = settings or Settings()
        self.tz = self.settings.tz
        # Hooks only run for a workspace-backed service.
        self.root = root
        self.warnings: deque[str] = deque(maxlen=MAX_WARNINGS)
        self._lock = threading.RLock()

        self.data = self._load()
        if workouts.seed_exercises(self.data):
            self._save()
        self._schedule_habit_review()

    @classmethod
    def open(cls, root: Path | None = None) -> TrackerService:
        """Build a service over a workspace directory (JSON state + JSON notification queue)."""
        if root is None:
            root = workspace_root()
        settings = load_settings(root)
        return cls(
            clock=SystemClock(settings.tz),
            store=JsonFileStore(state_path(root)),
            scheduler=JsonFileScheduler(notifications_path(root)),
            settings=settings,
            root=root,
        )

    # ── Collaborators ─────────────────────────────────────────

    def now(self) -> datetime:
        return self.clock.now()

    def _localize(self, value: datetime | None) -> datetime | None:
        # Naive timestamps from callers are read in the configured timezone.
        return localize(value, self.tz) if value is not None else None

    def _warn(self, message: str) -> None:
        logger.warning(message, exc_info=True)
        self.warnings.append(message)

    def _load(self) -> TrackerData:
        try:
            blob = self.store.load()
        except (OSError, ValueError):
            self._warn("Could not read saved state; starting empty")
            return TrackerData()
        if blob is None:
            return TrackerData()
        try:
            return TrackerData.from_dict(blob)
        except (TypeError, ValueError, AttributeError):
            self._warn("Saved state is corrupt; starting empty")
            return TrackerData()

    def _save(self) -> bool:
        try:
            self.store.save(self.data.to_dict())
        except Exception:
            self._warn("Could not persist state")
            return False
        return True

    def _schedule(self, notification: Notification) -> bool:
        try:
            self.scheduler.schedule(notification)
        except Exception:
            self._warn(f"Could not schedule notification {notification.id}")
            return False
        return True

    def _cancel(self, ids: list[str | None]) -> None:
        ids = [i for i in ids if i]
        if not ids:
            return
        try:
            self.scheduler.cancel(ids)
        except Exception:
            self._warn(f"Could not cancel notifications {', '.join(ids)}")

    def _hook(self, hook_point: str, context: dict[str, Any]) -> None:
        if self.root is None:
            return
        try:
            run_hooks(hook_point, context, self.root)
        except Exception:
            self._warn(f"Hook {hook_point} failed")

    def pending_notifications(self) -> list[str]:
        try:
            return self.scheduler.list_pending()
        except Exception:
            self._warn("Could not list pending notifications")
            return []

    # ── Categories & timers ───────────────────────────────────

    def add_category(self, name: str, kind: CategoryKind | str) -> Category:
        with self._lock:
            category = timers.add_category(self.data, name, CategoryKind(kind), self.now(), self.tz)
            self._save()
            return category

    def delete_category(self, category_id: str) -> Category | None:
        with self._lock:
            now = self.now()
            was_running = bool(self.data.categories.get(category_id) and self.data.categories[category_id].is_running)
            category = timers.delete_category(self.data, category_id, now, self.tz)
            if category is None:
                return None
            self._save()
            if was_running:
                self._refresh_inactivity_nudge(now)
                self._hook("on_timer_stop", {"category_id": category.id, "name": category.name, "deleted": True})
            return category

    def categories(self, kind: CategoryKind | str | None = None) -> list[Category]:
        with self._lock:
            return timers.list_categories(self.data, CategoryKind(kind) if kind is not None else None)

    def category(self, category_id: str) -> Category | None:
        with self._lock:
            return timers.find_category(self.data, category_id)

    def running_category(self) -> Category | None:
        with self._lock:
            return timers.running_category(self.data)

    def toggle_timer(self, category_id: str) -> bool | None:
        """Start the category (stopping any other) or stop it if running.

        Returns True if now running, False if stopped, None if unknown.
        """
        with self._lock:
            now = self.now()
            before = {c.id for c in self.data.categories.values() if c.is_running}
            running = timers.toggle_timer(self.data, category_id, now, self.tz)
            if running is None:
                return None
            self._save()
            self._refresh_inactivity_nudge(now)
            for stopped_id in sorted(before - {category_id} if running else before):
                self._hook("on_timer_stop", self._category_context(stopped_id))
            if running:
                self._hook("on_timer_start", self._category_context(category_id))
            return running

    def start_timer(self, category_id: str) -> bool | None:
        """Ensure the category is running. Returns False if it already was."""
        with self._lock:
            category = self.data.categories.get(category_id)
            if category is None:
                return None
            if category.is_running:
                return False
            return self.toggle_timer(category_id)

    def stop_timer(self, category_id: str) -> float | None:
        """Stop a running category. Returns the minutes added, None if unknown or not running."""
        with self._lock:
            category = self.data.categories.get(category_id)
            if category is None:
                return None
            now = self.now()
            elapsed = timers.stop(category, now, self.tz)
            if elapsed is None:
                return None
            self._save()
            self._refresh_inactivity_nudge(now)
            self._hook("on_timer_stop", self._category_context(category_id))
            return elapsed

    def stop_all_timers(self) -> list[str]:
        """Stop everything, e.g. when the host app goes to the background."""
        with self._lock:
            now = self.now()
            stopped = timers.stop_all(self.data, now, self.tz)
            if stopped:
                self._save()
                self._refresh_inactivity_nudge(now)
                for category_id in stopped:
                    self._hook("on_timer_stop", self._category_context(category_id))
            return stopped

    def current_time(self, category_id: str) -> CurrentTime | None:
        with self._lock:
            category = self.data.categories.get(category_id)
            if category is None:
                return None
            return timers.current_time(category, self.now(), self.tz)

    def weekly_series(self, category_id: str) -> list[float] | None:
        with self._lock:
            category = self.data.categories.get(category_id)
            if category is None:
                return None
            return timers.weekly_series(category, self.now(), self.tz)

    def totals_by_kind(self) -> dict[str, CurrentTime]:
        with self._lock:
            return timers.totals_by_kind(self.data, self.now(), self.tz)

    def _category_context(self, category_id: str) -> dict[str, Any]:
        category = self.data.categories.get(category_id)
        if category is None:
            return {"category_id": category_id}
        return {
            "category_id": category.id,
            "name": category.name,
            "kind": category.kind.value,
            "total_minutes": round(category.total_minutes, 2),
        }

    def _refresh_inactivity_nudge(self, now: datetime) -> None:
        if not self.settings.inactivity_nudge_enabled:
            return
        working = any(c.is_running and c.kind is CategoryKind.WORK for c in self.data.categories.values())
        if working:
            self._cancel([notifications.INACTIVITY_NUDGE_ID])
        else:
            fire_at = now + timedelta(minutes=self.settings.inactivity_nudge_minutes)
            self._schedule(notifications.inactivity_nudge(fire_at))

    # ── Sleep ─────────────────────────────────────────────────

    def go_to_sleep(self, alarm_time: datetime | None = None) -> dict[str, Any]:
        with self._lock:
            now = self.now()
            alarm_time = self._localize(alarm_time)
            state = self.data.sleep
            if not sleep.go_to_sleep(state, now, alarm_time):
                return {"ok": False, "reason": "already-asleep"}

            if alarm_time is not None:
                self._cancel([state.pending_alarm_handle])
                state.pending_alarm_handle = None
                try:
                    alarm = notifications.sleep_alarm(alarm_time, now)
                except (TypeError, ValueError):
                    self._warn("Could not build sleep alarm")
                else:
                    if self._schedule(alarm):
                        state.pending_alarm_handle = alarm.id
            self._save()

            message = sleep.bedtime_message(
                now, self.tz, self.settings.early_bedtime_hour, self.settings.late_bedtime_hour,
            )
            self._hook("on_sleep", {"start": now.isoformat(), "alarm": alarm_time.isoformat() if alarm_time else None})
            return {"ok": True, "message": message, "alarm_id": state.pending_alarm_handle}

    def wake_up(self) -> dict[str, Any]:
        with self._lock:
            now = self.now()
            state = self.data.sleep
            if not state.is_sleeping:
                return {"ok": False, "reason": "not-sleeping"}

            session = sleep.wake_up(state, now, self.settings.sleep_session_limit, self.tz)
            handle = state.pending_alarm_handle
            state.pending_alarm_handle = None
            stale = [i for i in self.pending_notifications() if i.startswith(notifications.SLEEP_ALARM_PREFIX)]
            self._cancel([handle] + stale)
            self._save()

            duration = session.duration_hours() if session else 0.0
            self._hook("on_wake", {"end": now.isoformat(), "duration_hours": round(duration, 2)})
            return {
                "ok": True,
                "session": session.to_dict() if session else None,
                "duration_hours": duration,
                "message": sleep.wake_message(now, duration, self.tz) if session else None,
            }

    def toggle_sleep(self, alarm_time: datetime | None = None) -> dict[str, Any]:
        with self._lock:
            if self.data.sleep.is_sleeping:
                return self.wake_up()
            return self.go_to_sleep(alarm_time)

    def sleep_statistics(self) -> SleepStatistics:
        with self._lock:
            return sleep.compute_statistics(self.data.sleep.sessions, self.tz)

    def sleep_minutes_today(self) -> float:
        with self._lock:
            return sleep.sleep_minutes_today(self.data.sleep, self.now(), self.tz)

    def is_sleep_hours(self) -> bool:
        with self._lock:
            return sleep.is_sleep_hours(self.now(), self.tz)

    def schedule_wind_down(self, at: time, minutes: int) -> str | None:
        """Enable the daily wind-down reminder. Returns the notification id if scheduled."""
        with self._lock:
            now = self.now()
            state = self.data.sleep
            self._cancel([state.wind_down_handle])
            state.wind_down_handle = None
            sleep.set_wind_down(state, at, minutes)
            reminder = notifications.wind_down(next_time_of_day(at, now, self.tz))
            if self._schedule(reminder):
                state.wind_down_handle = reminder.id
            self._save()
            return state.wind_down_handle

    def cancel_wind_down(self) -> None:
        with self._lock:
            self._cancel([sleep.clear_wind_down(self.data.sleep)])
            self._save()

    def wind_down_remaining_minutes(self) -> int | None:
        with self._lock:
            return sleep.wind_down_remaining_minutes(self.data.sleep, self.now(), self.tz)

    # ── Habits ────────────────────────────────────────────────

    def add_habit(self, name: str, description: str = "", habit_type: HabitType | str = HabitType.GOOD) -> Habit:
        with self._lock:
            habit = habits.add_habit(self.data, name, self.now(), description, HabitType(habit_type))
            self._save()
            return habit

    def update_habit(self, habit_id: str, updates: dict[str, Any]) -> tuple[Habit | None, list[str]]:
        with self._lock:
            habit, errors = habits.update_habit(self.data, habit_id, updates)
            if habit is not None:
                self._save()
            return habit, errors

    def delete_habit(self, habit_id: str) -> Habit | None:
        with self._lock:
            habit = habits.delete_habit(self.data, habit_id)
            if habit is None:
                return None
            self._cancel([habit.notification_id])
            self._save()
            return habit

    def habits(self) -> list[Habit]:
        with self._lock:
            return list(self.data.habits.values())

    def toggle_habit_entry(self, habit_id: str, when: datetime | None = None) -> HabitEntry | None:
        with self._lock:
            now = self.now()
            entry = habits.toggle_entry(self.data, habit_id, self._localize(when) or now, now, self.tz)
            if entry is None:
                return None
            self._save()
            self._hook("on_habit_toggle", {"habit_id": habit_id, "day": entry.day, "completed": entry.completed})
            return entry

    def habit_entry(self, habit_id: str, when: datetime) -> HabitEntry | None:
        with self._lock:
            return habits.habit_entry(self.data, habit_id, self._localize(when), self.tz)

    def habit_stats(self, habit_id: str) -> HabitStats | None:
        """Streaks and completion rate as of today, computed without writing."""
        with self._lock:
            habit = self.data.habits.get(habit_id)
            if habit is None:
                return None
            return habits.compute_stats(self.data, habit, local_date(self.now(), self.tz), self.tz)

    def schedule_habit_reminder(self, habit_id: str, at: time) -> str | None:
        with self._lock:
            habit = self.data.habits.get(habit_id)
            if habit is None:
                return None
            reminder = notifications.habit_reminder(habit, next_time_of_day(at, self.now(), self.tz))
            self._cancel([habits.set_reminder(habit, at, reminder.id)])
            if not self._schedule(reminder):
                habit.notification_id = None
            self._save()
            return habit.notification_id

    def cancel_habit_reminder(self, habit_id: str) -> bool:
        with self._lock:
            habit = self.data.habits.get(habit_id)
            if habit is None:
                return False
            self._cancel([habits.clear_reminder(habit)])
            self._save()
            return True

    def _schedule_habit_review(self) -> None:
        at = time(self.settings.habit_review_hour, 0)
        self._schedule(notifications.habit_review(next_time_of_day(at, self.now(), self.tz)))

    # ── Workouts ──────────────────────────────────────────────

    def exercises(self, exercise_type: ExerciseType | str | None = None) -> dict[str, list[Exercise]]:
        with self._lock:
            kind = ExerciseType(exercise_type) if exercise_type is not None else None
            return workouts.exercises_by_group(self.data, kind)

    def create_workout(self, name: str) -> Workout:
        with self._lock:
            workout = workouts.create_workout(self.data, name)
            self._save()
            return workout

    def workouts(self) -> list[Workout]:
        with self._lock:
            return list(self.data.workouts.values())

    def delete_workout(self, workout_id: str) -> bool:
        with self._lock:
            deleted = workouts.delete_workout(self.data, workout_id)
            if deleted:
                self._save()
            return deleted

    def add_exercise_to_workout(
        self, workout_id: str, exercise_id: str, sets: int, reps: int, weight: float,
    ) -> WorkoutSet | None:
        with self._lock:
            planned = workouts.add_exercise_to_workout(self.data, workout_id, exercise_id, sets, reps, weight)
            if planned is not None:
                self._save()
            return planned

    def remove_planned_set(self, workout_id: str, index: int) -> bool:
        with self._lock:
            removed = workouts.remove_planned_set(self.data, workout_id, index)
            if removed:
                self._save()
            return removed

    def update_planned_set(
        self, workout_id: str, index: int, reps: int | None = None, weight: float | None = None,
    ) -> bool:
        with self._lock:
            updated = workouts.update_planned_set(self.data, workout_id, index, reps, weight)
            if updated:
                self._save()
            return updated

    def start_workout(self, workout_id: str) -> workouts.WorkoutExecution | None:
        with self._lock:
            execution = workouts.start_workout(self.data, workout_id, self.now())
            if execution is not None:
                self._save()
            return execution

    def finish_workout(self, execution: workouts.WorkoutExecution) -> CompletedWorkoutSession | None:
        with self._lock:
            session = workouts.finish_workout(self.data, execution, self.now())
            if session is None:
                return None
            self._save()
            self._hook("on_workout_finish", {
                "workout_id": execution.workout_id,
                "session_id": session.id,
                "duration": session.duration,
                "sets": len(session.completed_exercises),
            })
            return session

    def average_duration(self, workout_id: str) -> int:
        with self._lock:
            return workouts.average_duration(self.data, workout_id)

    def completion_dates(self, workout_id: str | None = None) -> list[datetime]:
        with self._lock:
            return workouts.completion_dates(self.data, workout_id)

    def sessions_on(self, day: date) -> list[CompletedWorkoutSession]:
        with self._lock:
            return workouts.sessions_on(self.data, day, self.tz)

    def toggle_gym_day(self, weekday: int) -> bool:
        with self._lock:
            selected = workouts.toggle_gym_day(self.data, weekday)
            if selected:
                fire_at = notifications.next_weekday_at(weekday, self.settings.gym_reminder_hour, self.now(), self.tz)
                self._schedule(notifications.gym_reminder(weekday, fire_at))
            else:
                self._cancel([notifications.gym_reminder_id(weekday)])
            self._save()
            return selected

    # ── Contacts ──────────────────────────────────────────────

    def add_contact(
        self,
        name: str,
        phone_number: str | None = None,
        contact_class: ContactClass | str = ContactClass.OTHER,
    ) -> ContactProfile:
        with self._lock:
            contact = contacts.add_contact(self.data, name, self.now(), phone_number, ContactClass(contact_class))
            self._save()
            return contact

    def update_contact(self, contact_id: str, updates: dict[str, Any]) -> tuple[ContactProfile | None, list[str]]:
        with self._lock:
            contact, errors = contacts.update_contact(self.data, contact_id, updates)
            if contact is not None:
                self._save()
            return contact, errors

    def delete_contact(self, contact_id: str) -> ContactProfile | None:
        with self._lock:
            contact = contacts.delete_contact(self.data, contact_id)
            if contact is None:
                return None
            self._cancel(contacts.pending_notification_ids(contact))
            self._save()
            return contact

    def schedule_call(self, contact_id: str, when: datetime, note: str = "") -> ScheduledCall | None:
        with self._lock:
            when = self._localize(when)
            call = contacts.schedule_call(self.data, contact_id, when, note)
            if call is None:
                return None
            if when > self.now():
                try:
                    reminder = notifications.call_reminder(self.data.contacts[contact_id], call)
                except (TypeError, ValueError):
                    self._warn(f"Could not build reminder for call {call.id}")
                else:
                    self._schedule(reminder)
            self._save()
            return call

    def complete_call(self, contact_id: str, call_id: str) -> ScheduledCall | None:
        with self._lock:
            call = contacts.complete_call(self.data, contact_id, call_id, self.now())
            if call is None:
                return None
            self._cancel([call.notification_id])
            self._save()
            return call

    def delete_scheduled_call(self, contact_id: str, call_id: str) -> ScheduledCall | None:
        with self._lock:
            call = contacts.delete_scheduled_call(self.data, contact_id, call_id)
            if call is None:
                return None
            self._cancel([call.notification_id])
            self._save()
            return call

    def upcoming_calls(self) -> list[tuple[ContactProfile, ScheduledCall]]:
        with self._lock:
            return contacts.upcoming_calls(self.data, self.now())
