"""Category timer engine for tracklog.

Work and sports categories accumulate minutes into today/week/total
buckets. Only one category (of either kind) runs at a time: starting one
stops every other. Day and week buckets are reset lazily when a category
is started or stopped in a new day/week, and reads project that reset
without writing it back.

Reads never mutate stored totals. A running category's live time is added
on the fly from ``started_at``, so any number of reads followed by one stop
counts the interval exactly once.
"""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo

from tracker.calendar_keys import day_key, last_day_keys, week_key
from tracker.models import Category, CategoryKind, CurrentTime, TrackerData, new_id

logger = logging.getLogger(__name__)

WEEKLY_SERIES_DAYS = 7


# ── CRUD ──────────────────────────────────────────────────────


def add_category(
    data: TrackerData,
    name: str,
    kind: CategoryKind,
    now: datetime,
    tz: tzinfo | None = None,
) -> Category:
    """Append a new, stopped category with zeroed accumulators."""
    name = (name or "").strip()
    if not name:
        raise ValueError("Category name must not be empty")
    category = Category(
        id=new_id(),
        name=name,
        kind=CategoryKind(kind),
        last_day_key=day_key(now, tz),
        last_week_key=week_key(now, tz),
    )
    data.categories[category.id] = category
    return category


def find_category(data: TrackerData, category_id: str) -> Category | None:
    return data.categories.get(category_id)


def list_categories(data: TrackerData, kind: CategoryKind | None = None) -> list[Category]:
    """Categories in insertion (display) order, optionally of one kind."""
    return [c for c in data.categories.values() if kind is None or c.kind is kind]


def running_category(data: TrackerData) -> Category | None:
    for category in data.categories.values():
        if category.is_running:
            return category
    return None


def delete_category(
    data: TrackerData,
    category_id: str,
    now: datetime,
    tz: tzinfo | None = None,
) -> Category | None:
    """Remove a category, stopping it first so in-flight time is applied.

    Returns the removed category as it stood after the forced stop,
    or None if the id is unknown.
    """
    category = data.categories.get(category_id)
    if category is None:
        return None
    if category.is_running:
        stop(category, now, tz)
    del data.categories[category_id]
    return category


# ── Start / stop ──────────────────────────────────────────────


def elapsed_minutes(category: Category, now: datetime) -> float:
    """Live minutes since ``started_at``; 0 when stopped or when the clock went backwards."""
    if not category.is_running or category.started_at is None:
        return 0.0
    seconds = (now - category.started_at).total_seconds()
    if seconds < 0:
        logger.warning(
            "Clock skew on category %s: now is %.1fs before start, counting 0",
            category.id, -seconds,
        )
        return 0.0
    return seconds / 60


def _roll_boundaries(category: Category, now: datetime, tz: tzinfo | None) -> None:
    wk = week_key(now, tz)
    if category.last_week_key != wk:
        category.week_minutes = 0.0
        category.last_week_key = wk
    dk = day_key(now, tz)
    if category.last_day_key != dk:
        category.today_minutes = 0.0
        category.last_day_key = dk


def start(category: Category, now: datetime, tz: tzinfo | None = None) -> bool:
    """Start a stopped category. Returns False if it was already running."""
    if category.is_running:
        return False
    _roll_boundaries(category, now, tz)
    category.is_running = True
    category.started_at = now
    logger.info("Timer started: %s (%s)", category.name, category.kind.value)
    return True


def stop(category: Category, now: datetime, tz: tzinfo | None = None) -> float | None:
    """Stop a running category and apply its elapsed minutes.

    The whole segment is booked on the day/week of *now*. Returns the
    minutes added, or None if the category was not running.
    """
    if not category.is_running:
        return None
    elapsed = elapsed_minutes(category, now)
    _roll_boundaries(category, now, tz)
    category.today_minutes += elapsed
    category.week_minutes += elapsed
    category.total_minutes += elapsed
    key = day_key(now, tz)
    category.daily_minutes[key] = category.daily_minutes.get(key, 0.0) + elapsed
    category.is_running = False
    category.started_at = None
    logger.info("Timer stopped: %s (+%.2f min)", category.name, elapsed)
    return elapsed


def stop_all(
    data: TrackerData,
    now: datetime,
    tz: tzinfo | None = None,
    except_id: str | None = None,
) -> list[str]:
    """Stop every running category except *except_id*. Returns the stopped ids."""
    stopped = []
    for category in data.categories.values():
        if category.id != except_id and category.is_running:
            stop(category, now, tz)
            stopped.append(category.id)
    return stopped


def toggle_timer(
    data: TrackerData,
    category_id: str,
    now: datetime,
    tz: tzinfo | None = None,
) -> bool | None:
    """Stop the category if running, otherwise stop all others and start it.

    Returns True if the category is now running, False if it was stopped,
    None if the id is unknown.
    """
    category = data.categories.get(category_id)
    if category is None:
        return None
    if category.is_running:
        stop(category, now, tz)
        return False
    stop_all(data, now, tz, except_id=category_id)
    start(category, now, tz)
    return True


# ── Read-side projections ─────────────────────────────────────


def current_time(category: Category, now: datetime, tz: tzinfo | None = None) -> CurrentTime:
    """Today/week/total minutes as of *now*, live time included, nothing written."""
    today = category.today_minutes if category.last_day_key == day_key(now, tz) else 0.0
    week = category.week_minutes if category.last_week_key == week_key(now, tz) else 0.0
    live = elapsed_minutes(category, now)
    return CurrentTime(
        today=today + live,
        week=week + live,
        total=category.total_minutes + live,
    )


def weekly_series(category: Category, now: datetime, tz: tzinfo | None = None) -> list[float]:
    """Stored minutes for the last 7 days ending today, oldest first."""
    return [category.daily_minutes.get(key, 0.0) for key in last_day_keys(now, WEEKLY_SERIES_DAYS, tz)]


def totals_by_kind(data: TrackerData, now: datetime, tz: tzinfo | None = None) -> dict[str, CurrentTime]:
    """Summed projections per category kind."""
    result = {}
    for kind in CategoryKind:
        today = week = total = 0.0
        for category in list_categories(data, kind):
            ct = current_time(category, now, tz)
            today += ct.today
            week += ct.week
            total += ct.total
        result[kind.value] = CurrentTime(today=today, week=week, total=total)
    return result
