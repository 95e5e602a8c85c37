"""Event records passed from the filesystem observer to the reconciler."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class WatchAction(str, Enum):
    """What happened to an entity file."""

    ADDED = "added"
    CHANGED = "changed"
    REMOVED = "removed"


@dataclass(frozen=True, slots=True)
class WatchEvent:
    """A single filesystem notification for an entity file.

    Attributes:
        action: Kind of change observed.
        path: Absolute path of the affected file.
    """

    action: WatchAction
    path: Path


__all__ = ["WatchAction", "WatchEvent"]
