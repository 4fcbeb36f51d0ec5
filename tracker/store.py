"""Persistence store for the tracker aggregate.

A store only ever sees whole-aggregate snapshots: ``load()`` returns the
last saved blob (or None) and ``save(blob)`` replaces it.
"""

from __future__ import annotations

import copy
import fcntl
import json
import os
import tempfile
from pathlib import Path
from typing import Any


def read_json(path: Path) -> dict[str, Any] | None:
    """Read a JSON file, returning None if missing or empty.

    Raises ValueError (json.JSONDecodeError) on malformed content.
    """
    if not path.exists():
        return None
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return None
    return json.loads(text)


def write_json_atomic(path: Path, data: Any) -> None:
    """Atomic JSON write with file locking: temp file + flock + fsync + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=".tmp_", suffix=".json")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        os.rename(temp_path, path)
    except Exception:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise


class PersistenceStore:
    """Interface: load() -> blob | None, save(blob)."""

    def load(self) -> dict[str, Any] | None:
        raise NotImplementedError

    def save(self, blob: dict[str, Any]) -> None:
        raise NotImplementedError


class MemoryStore(PersistenceStore):
    """Keeps a deep copy of the last saved blob in memory."""

    def __init__(self, blob: dict[str, Any] | None = None) -> None:
        self.blob = copy.deepcopy(blob)
        self.saves = 0

    def load(self) -> dict[str, Any] | None:
        return copy.deepcopy(self.blob)

    def save(self, blob: dict[str, Any]) -> None:
        self.blob = copy.deepcopy(blob)
        self.saves += 1


class JsonFileStore(PersistenceStore):
    """The aggregate as one JSON file, rewritten atomically on every save."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> dict[str, Any] | None:
        data = read_json(self.path)
        if data is not None and not isinstance(data, dict):
            raise ValueError(f"State blob is not a JSON object: {self.path}")
        return data

    def save(self, blob: dict[str, Any]) -> None:
        write_json_atomic(self.path, blob)
