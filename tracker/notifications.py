"""Notification scheduling collaborator for tracklog.

The tracker never delivers notifications itself. It hands Notification
records to a scheduler (``schedule``/``cancel``/``list_pending``) and
treats every call as fire-and-forget. Cancelling an unknown id is not an
error.

The builder functions below produce the records the tracker schedules:
sleep alarm, wind-down, gym-day, habit, daily habit review, inactivity
nudge and call reminders.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from pathlib import Path
from typing import Any

from tracker.calendar_keys import local_datetime, next_occurrence
from tracker.models import ContactProfile, Habit, ScheduledCall, format_timestamp, new_id, parse_timestamp
from tracker.store import read_json, write_json_atomic

logger = logging.getLogger(__name__)

REPEAT_DAILY = "daily"
REPEAT_WEEKLY = "weekly"

SLEEP_ALARM_PREFIX = "sleepAlarm_"
WIND_DOWN_PREFIX = "windDown_"
HABIT_REVIEW_ID = "daily_habit_review"
INACTIVITY_NUDGE_ID = "inactivity_nudge"


@dataclass
class Notification:
    id: str = ""
    fire_at: datetime | None = None
    title: str = ""
    body: str = ""
    category: str = ""
    repeat: str | None = None  # None, daily, weekly
    user_info: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Notification:
        return cls(
            id=str(d.get("id", "")),
            fire_at=parse_timestamp(d.get("fireAt")),
            title=str(d.get("title", "")),
            body=str(d.get("body", "")),
            category=str(d.get("category", "")),
            repeat=d.get("repeat"),
            user_info=d.get("userInfo") or {},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fireAt": format_timestamp(self.fire_at),
            "title": self.title,
            "body": self.body,
            "category": self.category,
            "repeat": self.repeat,
            "userInfo": self.user_info,
        }


# ── Schedulers ────────────────────────────────────────────────


class NotificationScheduler:
    """Interface for the host's notification system."""

    def schedule(self, notification: Notification) -> None:
        raise NotImplementedError

    def cancel(self, ids: list[str]) -> None:
        raise NotImplementedError

    def list_pending(self) -> list[str]:
        raise NotImplementedError


class InMemoryScheduler(NotificationScheduler):
    """Pending notifications kept in a dict keyed by id (re-scheduling an id replaces it)."""

    def __init__(self) -> None:
        self.pending: dict[str, Notification] = {}

    def schedule(self, notification: Notification) -> None:
        if not notification.id:
            raise ValueError("Notification id must not be empty")
        if notification.fire_at is None:
            raise ValueError(f"Notification {notification.id} has no fire time")
        self.pending[notification.id] = notification

    def cancel(self, ids: list[str]) -> None:
        for notification_id in ids:
            self.pending.pop(notification_id, None)

    def list_pending(self) -> list[str]:
        return sorted(self.pending, key=lambda i: self.pending[i].fire_at)

    def get(self, notification_id: str) -> Notification | None:
        return self.pending.get(notification_id)


class JsonFileScheduler(InMemoryScheduler):
    """InMemoryScheduler persisted to a JSON file so a host process can poll it."""

    def __init__(self, path: Path) -> None:
        super().__init__()
        self.path = Path(path)
        try:
            data = read_json(self.path) or {}
        except ValueError:
            logger.warning("Notification queue %s is corrupt, starting empty", self.path, exc_info=True)
            data = {}
        for item in data.get("pending") or []:
            notification = Notification.from_dict(item)
            if notification.id and notification.fire_at is not None:
                self.pending[notification.id] = notification

    def _flush(self) -> None:
        write_json_atomic(self.path, {"pending": [self.pending[i].to_dict() for i in self.list_pending()]})

    def schedule(self, notification: Notification) -> None:
        super().schedule(notification)
        self._flush()

    def cancel(self, ids: list[str]) -> None:
        super().cancel(ids)
        self._flush()

    def due(self, now: datetime) -> list[Notification]:
        """Notifications whose fire time has passed."""
        return [n for n in self.pending.values() if n.fire_at is not None and n.fire_at <= now]


# ── Builders ──────────────────────────────────────────────────


def sleep_alarm(alarm_time: datetime, now: datetime) -> Notification:
    """One-shot wake-up alarm at *alarm_time*, or the day after if that has passed."""
    return Notification(
        id=f"{SLEEP_ALARM_PREFIX}{new_id()}",
        fire_at=next_occurrence(alarm_time, now),
        title="Wake Up Time!",
        body="Time to start your day! Hope you had a good rest.",
        category="ALARM",
        user_info={"alarm_type": "sleep_alarm"},
    )


def wind_down(fire_at: datetime) -> Notification:
    return Notification(
        id=f"{WIND_DOWN_PREFIX}{new_id()}",
        fire_at=fire_at,
        title="Wind-Down Time",
        body="Time to start winding down for better sleep. Consider dimming lights and avoiding screens.",
        category="WIND_DOWN",
        repeat=REPEAT_DAILY,
    )


def gym_reminder_id(weekday: int) -> str:
    return f"gym_{weekday}"


def next_weekday_at(weekday: int, hour: int, now: datetime, tz: tzinfo | None = None) -> datetime:
    """Next *hour*:00 on *weekday* (1 = Sunday ... 7 = Saturday) strictly after *now*."""
    local_now = local_datetime(now, tz)
    current = (local_now.weekday() + 1) % 7 + 1  # Python Mon=0 -> 2, Sun=6 -> 1
    candidate = local_now.replace(hour=hour, minute=0, second=0, microsecond=0)
    candidate += timedelta(days=(weekday - current) % 7)
    if candidate <= local_now:
        candidate += timedelta(days=7)
    return candidate


def gym_reminder(weekday: int, fire_at: datetime) -> Notification:
    return Notification(
        id=gym_reminder_id(weekday),
        fire_at=fire_at,
        title="Gym Time!",
        body="Time to hit the gym!",
        category="GYM",
        repeat=REPEAT_WEEKLY,
        user_info={"weekday": weekday},
    )


def habit_reminder(habit: Habit, fire_at: datetime) -> Notification:
    return Notification(
        id=f"habit_{habit.id}_{new_id()}",
        fire_at=fire_at,
        title="Habit Reminder",
        body=f"Don't forget: {habit.name}",
        category="HABIT_REMINDER",
        repeat=REPEAT_DAILY,
        user_info={"habitId": habit.id},
    )


def habit_review(fire_at: datetime) -> Notification:
    return Notification(
        id=HABIT_REVIEW_ID,
        fire_at=fire_at,
        title="Daily Habit Check",
        body="Take a moment to review your habits from yesterday",
        category="HABIT_REVIEW",
        repeat=REPEAT_DAILY,
    )


def inactivity_nudge(fire_at: datetime) -> Notification:
    return Notification(
        id=INACTIVITY_NUDGE_ID,
        fire_at=fire_at,
        title="Still there?",
        body="No work timer is running. Pick a category and get started.",
        category="INACTIVITY",
    )


def call_reminder(contact: ContactProfile, call: ScheduledCall) -> Notification:
    body = f"Time to call {contact.name}"
    if call.note:
        body += f" - {call.note}"
    return Notification(
        id=call.notification_id or f"call_{contact.id}_{new_id()}",
        fire_at=call.scheduled_time,
        title="Call Reminder",
        body=body,
        category="CALL_REMINDER",
        user_info={"contactId": contact.id, "callId": call.id},
    )
