"""Sleep engine for tracklog.

Two states, awake and asleep. Going to sleep records the start time;
waking up turns the interval into a SleepSession appended to a bounded
log (oldest evicted first). Statistics and the consistency score are
computed from that log.

Bedtime and wake time are taken as local hour + minute/60 with no
wraparound, so 23:30 and 00:30 are 23.5 and 0.5. Users whose bedtimes
straddle midnight get a skewed mean and a large deviation.
"""

from __future__ import annotations

import logging
from datetime import datetime, time, tzinfo
from statistics import fmean, pstdev

from tracker.calendar_keys import day_key, hour_of_day, local_datetime, next_time_of_day
from tracker.models import SleepSession, SleepState, SleepStatistics, new_id

logger = logging.getLogger(__name__)

DEFAULT_SESSION_LIMIT = 30

CONSISTENCY_BASELINE = 50.0
CONSISTENCY_MIN_SESSIONS = 3
DURATION_REFERENCE_HOURS = 3.0
TIME_OF_DAY_REFERENCE_HOURS = 4.0

EARLY_BEDTIME_HOUR = 22
LATE_BEDTIME_HOUR = 23
SLEEP_HOURS_START = 22
SLEEP_HOURS_END = 6


# ── Transitions ───────────────────────────────────────────────


def go_to_sleep(state: SleepState, now: datetime, alarm_time: datetime | None = None) -> bool:
    """Awake -> asleep. Returns False (no-op) if already asleep."""
    if state.is_sleeping:
        return False
    state.is_sleeping = True
    state.sleep_start_time = now
    state.alarm_time = alarm_time
    logger.info("Going to sleep at %s", now.isoformat(timespec="minutes"))
    return True


def wake_up(
    state: SleepState,
    now: datetime,
    session_limit: int = DEFAULT_SESSION_LIMIT,
    tz: tzinfo | None = None,
) -> SleepSession | None:
    """Asleep -> awake, recording the session.

    Returns the new session, or None when there was nothing to record
    (already awake, or the clock reads earlier than the sleep start).
    """
    if not state.is_sleeping or state.sleep_start_time is None:
        return None

    start = state.sleep_start_time
    session = None
    if now > start:
        session = SleepSession(id=new_id(), start_time=start, end_time=now)
        state.sessions.append(session)
        while len(state.sessions) > max(1, session_limit):
            state.sessions.pop(0)

        today = day_key(now, tz)
        if state.last_day_key != today:
            state.total_sleep_minutes_today = 0.0
            state.last_day_key = today
        state.total_sleep_minutes_today += session.duration_hours() * 60
        logger.info("Woke up after %.2fh", session.duration_hours())
    else:
        logger.warning("Clock skew on wake-up: now is before sleep start, no session recorded")

    state.is_sleeping = False
    state.sleep_start_time = None
    state.alarm_time = None
    return session


def sleep_minutes_today(state: SleepState, now: datetime, tz: tzinfo | None = None) -> float:
    """Recorded sleep minutes for the day of *now* (0 once the day has rolled over)."""
    if state.last_day_key != day_key(now, tz):
        return 0.0
    return state.total_sleep_minutes_today


# ── Messages ──────────────────────────────────────────────────


def bedtime_message(
    now: datetime,
    tz: tzinfo | None = None,
    early_hour: int = EARLY_BEDTIME_HOUR,
    late_hour: int = LATE_BEDTIME_HOUR,
) -> str | None:
    hour = local_datetime(now, tz).hour
    if hour < early_hour:
        return "Great choice! Going to bed early is excellent for your health!"
    if hour >= late_hour:
        return "Better late than never! Your body will thank you for the rest."
    return None


def wake_message(now: datetime, duration_hours: float, tz: tzinfo | None = None) -> str | None:
    hour = local_datetime(now, tz).hour
    if hour < 7 and duration_hours >= 8:
        return "Wonderful! You woke up early after a full night's sleep!"
    if duration_hours < 6:
        return "You might want to get more sleep tonight. Your body needs rest!"
    return None


def is_sleep_hours(now: datetime, tz: tzinfo | None = None) -> bool:
    hour = local_datetime(now, tz).hour
    return hour >= SLEEP_HOURS_START or hour < SLEEP_HOURS_END


# ── Statistics ────────────────────────────────────────────────


def consistency_score(durations: list[float], bedtimes: list[float], wake_times: list[float]) -> float:
    """0-100 score rewarding low spread in duration, bedtime and wake time.

    Fewer than three sessions give the 50.0 baseline.
    """
    if len(durations) < CONSISTENCY_MIN_SESSIONS:
        return CONSISTENCY_BASELINE

    duration_score = max(0.0, 100 - (pstdev(durations) / DURATION_REFERENCE_HOURS) * 50)
    bedtime_score = max(0.0, 100 - (pstdev(bedtimes) / TIME_OF_DAY_REFERENCE_HOURS) * 25)
    wake_score = max(0.0, 100 - (pstdev(wake_times) / TIME_OF_DAY_REFERENCE_HOURS) * 25)
    return (duration_score + bedtime_score + wake_score) / 3


def compute_statistics(sessions: list[SleepSession], tz: tzinfo | None = None) -> SleepStatistics:
    """Averages and spreads over the retained sessions; all zero when empty."""
    if not sessions:
        return SleepStatistics()

    durations = [s.duration_hours() for s in sessions]
    bedtimes = [hour_of_day(s.start_time, tz) for s in sessions]
    wake_times = [hour_of_day(s.end_time, tz) for s in sessions]

    return SleepStatistics(
        avg_duration_hours=fmean(durations),
        avg_bedtime_hour=fmean(bedtimes),
        avg_wake_hour=fmean(wake_times),
        bedtime_std_dev_minutes=pstdev(bedtimes) * 60,
        wake_std_dev_minutes=pstdev(wake_times) * 60,
        consistency_score=consistency_score(durations, bedtimes, wake_times),
    )


# ── Wind-down ─────────────────────────────────────────────────


def set_wind_down(state: SleepState, at: time, minutes: int) -> None:
    if minutes <= 0:
        raise ValueError("Wind-down duration must be positive")
    state.wind_down_enabled = True
    state.wind_down_time = at
    state.wind_down_minutes = minutes


def clear_wind_down(state: SleepState) -> str | None:
    """Disable wind-down; returns the notification handle that needs cancelling."""
    handle = state.wind_down_handle
    state.wind_down_enabled = False
    state.wind_down_time = None
    state.wind_down_handle = None
    return handle


def wind_down_remaining_minutes(state: SleepState, now: datetime, tz: tzinfo | None = None) -> int | None:
    """Whole minutes until the next wind-down start, or None when disabled."""
    if not state.wind_down_enabled or state.wind_down_time is None:
        return None
    target = next_time_of_day(state.wind_down_time, now, tz)
    return int((target - local_datetime(now, tz)).total_seconds() // 60)
