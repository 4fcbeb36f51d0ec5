"""Lifecycle hooks for tracklog.

Shell commands registered in hooks.yaml (workspace root) run when the
tracker changes state. Each command receives the event context as JSON
on stdin:

    on_timer_stop:
      - "notify-send 'Timer stopped'"
      - command: ./sync.sh
        timeout: 10

Hook points: on_timer_start, on_timer_stop, on_sleep, on_wake,
on_habit_toggle, on_workout_finish.
"""

from __future__ import annotations

import json
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from tracker.config import hooks_config_path, read_yaml

logger = logging.getLogger(__name__)

VALID_HOOK_POINTS = frozenset({
    "on_timer_start",
    "on_timer_stop",
    "on_sleep",
    "on_wake",
    "on_habit_toggle",
    "on_workout_finish",
})

DEFAULT_TIMEOUT = 30
OUTPUT_LIMIT = 4096


@dataclass(frozen=True)
class HookCommand:
    command: str
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def parse(cls, entry: Any) -> HookCommand | None:
        """A bare string or a {command, timeout} mapping; anything else is skipped."""
        if isinstance(entry, str):
            return cls(entry) if entry.strip() else None
        if not isinstance(entry, dict) or not entry.get("command"):
            return None
        try:
            timeout = float(entry.get("timeout", DEFAULT_TIMEOUT))
        except (TypeError, ValueError):
            logger.warning("Bad timeout %r for hook %r, using %ss", entry.get("timeout"), entry["command"], DEFAULT_TIMEOUT)
            timeout = DEFAULT_TIMEOUT
        return cls(str(entry["command"]), timeout)


def load_hooks_config(root: Path) -> dict[str, Any]:
    path = hooks_config_path(root)
    return read_yaml(path) if path.exists() else {}


def hooks_for(hook_point: str, root: Path) -> list[HookCommand]:
    entries = load_hooks_config(root).get(hook_point) or []
    if not isinstance(entries, list):
        logger.warning("hooks.yaml: %s must be a list", hook_point)
        return []
    return [hook for hook in map(HookCommand.parse, entries) if hook is not None]


def _run(hook: HookCommand, hook_point: str, payload: str, root: Path) -> dict[str, Any]:
    result: dict[str, Any] = {"hook_point": hook_point, "command": hook.command}
    try:
        proc = subprocess.run(
            hook.command,
            shell=True,
            cwd=str(root),
            input=payload,
            text=True,
            capture_output=True,
            timeout=hook.timeout,
        )
    except subprocess.TimeoutExpired:
        logger.warning("Hook %s timed out after %ss: %s", hook_point, hook.timeout, hook.command)
        result.update(exit_code=-1, error=f"Hook timed out after {hook.timeout:g}s")
        return result
    except OSError as e:
        logger.warning("Hook %s could not start: %s", hook_point, e)
        result.update(exit_code=-1, error=str(e))
        return result

    if proc.returncode != 0:
        logger.warning("Hook %s exited with %d: %s", hook_point, proc.returncode, hook.command)
    result.update(
        exit_code=proc.returncode,
        stdout=proc.stdout[:OUTPUT_LIMIT],
        stderr=proc.stderr[:OUTPUT_LIMIT],
    )
    return result


def run_hooks(hook_point: str, context: dict[str, Any], root: Path) -> list[dict[str, Any]]:
    """Run every command registered for *hook_point*, in order.

    Returns one result dict per command (exit_code, stdout/stderr or error).
    Unknown hook points run nothing.
    """
    if hook_point not in VALID_HOOK_POINTS:
        return []
    hooks = hooks_for(hook_point, root)
    if not hooks:
        return []
    payload = json.dumps(context, ensure_ascii=False, default=str)
    return [_run(hook, hook_point, payload, root) for hook in hooks]
