"""Workspace root, settings, clock and logging setup for tracklog."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from datetime import datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def workspace_root() -> Path:
    """Get the workspace root directory (contains data/, settings.yaml, hooks.yaml)."""
    return Path(
        os.environ.get("TRACKLOG_ROOT", str(Path.home() / "tracklog"))
    ).expanduser().resolve()


def read_yaml(path: Path) -> dict[str, Any]:
    """Read a YAML file, returning empty dict if missing, empty or not a mapping."""
    if not path.exists():
        return {}
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    result = yaml.safe_load(text)
    return result if isinstance(result, dict) else {}


# ── Path helpers ──────────────────────────────────────────────

def state_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "data" / "tracker.json"


def notifications_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "data" / "notifications.json"


def settings_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "settings.yaml"


def hooks_config_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "hooks.yaml"


# ── Settings ──────────────────────────────────────────────────


@dataclass
class Settings:
    timezone: str = "UTC"
    sleep_session_limit: int = 30
    gym_reminder_hour: int = 8
    habit_review_hour: int = 8
    inactivity_nudge_minutes: int = 60
    inactivity_nudge_enabled: bool = True
    early_bedtime_hour: int = 22
    late_bedtime_hour: int = 23

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Settings:
        settings = cls()
        if not d or not isinstance(d, dict):
            return settings
        for f in fields(cls):
            if f.name not in d:
                continue
            default = getattr(settings, f.name)
            try:
                value = _coerce(d[f.name], type(default))
            except (TypeError, ValueError):
                logger.warning("Invalid setting %s=%r, using %r", f.name, d[f.name], default)
                continue
            setattr(settings, f.name, value)
        try:
            ZoneInfo(settings.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, using UTC", settings.timezone)
            settings.timezone = "UTC"
        if settings.sleep_session_limit < 1:
            logger.warning("sleep_session_limit must be positive, using 30")
            settings.sleep_session_limit = 30
        return settings

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def _coerce(value: Any, kind: type) -> Any:
    if kind is bool:
        if isinstance(value, bool):
            return value
        raise TypeError(f"expected bool, got {value!r}")
    if kind is int:
        if isinstance(value, bool):
            raise TypeError("bool is not an int setting")
        return int(value)
    return kind(value)


def load_settings(root: Path | None = None) -> Settings:
    """Load settings.yaml; missing or malformed files give defaults."""
    try:
        data = read_yaml(settings_path(root))
    except yaml.YAMLError:
        logger.warning("Could not parse %s, using defaults", settings_path(root), exc_info=True)
        data = {}
    return Settings.from_dict(data)


# ── Clock ─────────────────────────────────────────────────────


class SystemClock:
    """Wall clock in the user's timezone."""

    def __init__(self, tz: ZoneInfo | None = None) -> None:
        self.tz = tz or ZoneInfo("UTC")

    def now(self) -> datetime:
        return datetime.now(self.tz)


# ── Logging ───────────────────────────────────────────────────


def setup_logging(level: str | None = None) -> None:
    """Configure root logging for hosts. Level from $TRACKLOG_LOG_LEVEL (default INFO)."""
    name = (level or os.environ.get("TRACKLOG_LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=getattr(logging, name, logging.INFO), format=LOG_FORMAT)
