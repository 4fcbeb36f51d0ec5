"""Shared test fixtures for tracklog tests."""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import yaml

from tracker.config import Settings
from tracker.models import TrackerData
from tracker.notifications import InMemoryScheduler
from tracker.service import TrackerService
from tracker.store import MemoryStore

UTC = timezone.utc

# Wednesday; ISO week 2024-W02.
START = datetime(2024, 1, 10, 9, 0, tzinfo=UTC)


class ManualClock:
    """Clock the test moves by hand."""

    def __init__(self, now: datetime = START) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current

    def set(self, now: datetime) -> datetime:
        self.current = now
        return self.current


class FailingStore(MemoryStore):
    def save(self, blob):
        raise OSError("disk full")


class FailingScheduler(InMemoryScheduler):
    def schedule(self, notification):
        raise RuntimeError("notifications denied")

    def cancel(self, ids):
        raise RuntimeError("notifications denied")


def at(*args: int) -> datetime:
    """UTC datetime shorthand: at(2024, 1, 10, 9, 30)."""
    return datetime(*args, tzinfo=UTC)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def scheduler() -> InMemoryScheduler:
    return InMemoryScheduler()


@pytest.fixture
def data() -> TrackerData:
    return TrackerData()


@pytest.fixture
def service(clock, store, scheduler) -> TrackerService:
    return TrackerService(clock=clock, store=store, scheduler=scheduler, settings=Settings())


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create a temporary workspace with settings.yaml and an empty data dir."""
    root = tmp_path / "workspace"
    (root / "data").mkdir(parents=True)

    settings = {
        "timezone": "UTC",
        "sleep_session_limit": 30,
        "gym_reminder_hour": 8,
        "inactivity_nudge_minutes": 45,
    }
    (root / "settings.yaml").write_text(
        yaml.dump(settings, default_flow_style=False), encoding="utf-8"
    )

    os.environ["TRACKLOG_ROOT"] = str(root)
    yield root
    if "TRACKLOG_ROOT" in os.environ:
        del os.environ["TRACKLOG_ROOT"]
