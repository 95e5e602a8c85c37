"""Reconciliation of external library changes into the in-memory store."""

from .events import WatchAction, WatchEvent
from .reconciler import Reconciler
from .service import LibraryWatcher, attach_watcher

__all__ = ["LibraryWatcher", "Reconciler", "WatchAction", "WatchEvent", "attach_watcher"]
