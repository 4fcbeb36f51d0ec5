"""Calendar bucketing keys for tracklog.

Day keys are ISO dates (``2024-01-02``), week keys are ISO weeks
(``2024-W01``). Both are computed in the timezone passed in, or in the
timestamp's own timezone when none is given.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, tzinfo


def local_datetime(ts: datetime, tz: tzinfo | None = None) -> datetime:
    """Convert *ts* into *tz* (no-op for naive timestamps or tz=None)."""
    if tz is not None and ts.tzinfo is not None:
        return ts.astimezone(tz)
    return ts


def localize(ts: datetime, tz: tzinfo) -> datetime:
    """Attach *tz* to a naive timestamp; aware timestamps pass through."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=tz)
    return ts


def local_date(ts: datetime, tz: tzinfo | None = None) -> date:
    return local_datetime(ts, tz).date()


def day_key(ts: datetime, tz: tzinfo | None = None) -> str:
    """Calendar-day key, e.g. '2024-01-02'."""
    return local_date(ts, tz).isoformat()


def week_key(ts: datetime, tz: tzinfo | None = None) -> str:
    """ISO week key, e.g. '2024-W01'.

    Uses the ISO year, so 2024-12-30 belongs to '2025-W01'.
    """
    iso_year, iso_week, _ = local_date(ts, tz).isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def parse_day_key(key: str) -> date:
    return date.fromisoformat(key)


def last_day_keys(ts: datetime, days: int, tz: tzinfo | None = None) -> list[str]:
    """The *days* day keys ending with the day of *ts*, oldest first."""
    today = local_date(ts, tz)
    return [(today - timedelta(days=offset)).isoformat() for offset in range(days - 1, -1, -1)]


def hour_of_day(ts: datetime, tz: tzinfo | None = None) -> float:
    """Local time of day as fractional hours (23:30 -> 23.5).

    Seconds are ignored and there is no wraparound at midnight.
    """
    local = local_datetime(ts, tz)
    return local.hour + local.minute / 60.0


def start_of_day(ts: datetime, tz: tzinfo | None = None) -> datetime:
    local = local_datetime(ts, tz)
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def next_occurrence(target: datetime, now: datetime) -> datetime:
    """*target* if it is still ahead of *now*, otherwise the same time one day later."""
    if target <= now:
        return target + timedelta(days=1)
    return target


def next_time_of_day(at: time, now: datetime, tz: tzinfo | None = None) -> datetime:
    """The next datetime after *now* whose local time of day is *at*."""
    local_now = local_datetime(now, tz)
    candidate = local_now.replace(hour=at.hour, minute=at.minute, second=0, microsecond=0)
    return next_occurrence(candidate, local_now)
