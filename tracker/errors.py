"""Exception types for tracklog.

Engines recover from unknown ids and invalid transitions locally (they
return None/False); these exceptions exist for hosts that prefer to raise.
"""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for tracklog errors."""


class NotFoundError(TrackerError):
    """An id did not match any category, habit, workout or contact."""

    def __init__(self, kind: str, item_id: str) -> None:
        super().__init__(f"{kind} not found: {item_id}")
        self.kind = kind
        self.item_id = item_id


class InvalidStateError(TrackerError):
    """A command was issued in a state that does not allow it."""
