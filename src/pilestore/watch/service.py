"""Filesystem watcher keeping an entity store in sync with its library root."""

from __future__ import annotations

import logging
import os
import queue
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver
from watchdog.observers.polling import PollingObserver

from pilestore.config import WatchSettings
from pilestore.storage.paths import decode_path
from pilestore.storage.repository import EntityRepository
from pilestore.store import EntityStore

from .events import WatchAction, WatchEvent
from .reconciler import Reconciler

LOGGER = logging.getLogger(__name__)

_QUEUE_POLL_SECONDS = 0.1

EventCallback = Callable[[WatchEvent], None]


class LibraryWatcher:
    """Observe a library root and reconcile entity file changes into a store.

    The observer thread only converts notifications into :class:`WatchEvent`
    records on a bounded queue. A single consumer thread drains the queue in
    arrival order and is the only code path applying watcher mutations.
    """

    def __init__(
        self,
        store: EntityStore,
        repository: EntityRepository,
        settings: WatchSettings | None = None,
        *,
        on_event: Optional[EventCallback] = None,
    ) -> None:
        """Initialize the watcher.

        Args:
            store: Store receiving reconciled mutations.
            repository: Repository for the watched root; used to read files and to
                recognize writes made by this process.
            settings: Watch settings; defaults apply when omitted.
            on_event: Optional callable invoked after each event that changed the store.
        """
        self._settings = settings or WatchSettings()
        self._root = repository.root
        self._reconciler = Reconciler(store, repository)
        self._on_event = on_event
        self._queue: queue.Queue[WatchEvent | None] = queue.Queue(
            maxsize=self._settings.queue_size
        )
        self._stop_event = threading.Event()
        self._observer: BaseObserver | None = None
        self._consumer: threading.Thread | None = None

    @property
    def root(self) -> Path:
        """Return the watched library root."""
        return self._root

    @property
    def running(self) -> bool:
        return self._observer is not None

    def start(self) -> "LibraryWatcher":
        """Begin delivering events for the library root.

        Returns:
            LibraryWatcher: ``self``, for chaining.

        Raises:
            RuntimeError: If the watcher is already running.
        """
        if self._observer is not None:
            raise RuntimeError("LibraryWatcher is already running.")

        self._stop_event.clear()
        self._consumer = threading.Thread(
            target=self._run_loop, name="pilestore-reconciler", daemon=True
        )
        self._consumer.start()

        observer = self._build_observer()
        handler = _LibraryEventHandler(self._root, self._enqueue)
        observer.schedule(handler, str(self._root), recursive=True)
        observer.start()
        self._observer = observer
        LOGGER.info("Watching library at %s", self._root)
        return self

    def stop(self) -> None:
        """Stop delivering events and release observer resources.

        Events that were observed but not yet applied are discarded.
        """
        self._stop_event.set()
        observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            observer.join(timeout=self._settings.stop_timeout_seconds)

        self._discard_pending()
        consumer, self._consumer = self._consumer, None
        if consumer is not None:
            # Unblock the consumer so it can exit promptly.
            try:
                self._queue.put_nowait(None)
            except queue.Full:
                pass
            consumer.join(timeout=self._settings.stop_timeout_seconds)
            self._discard_pending()
        LOGGER.info("Stopped watching %s", self._root)

    def drain(self, timeout: float = 5.0) -> bool:
        """Wait until every queued event has been applied.

        Args:
            timeout: Maximum number of seconds to wait.

        Returns:
            bool: ``True`` when the queue emptied before the timeout.
        """
        deadline = time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    def submit(self, event: WatchEvent) -> None:
        """Queue ``event`` for reconciliation as if the observer had produced it."""
        self._enqueue(event)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _build_observer(self) -> BaseObserver:
        if self._settings.use_polling:
            return PollingObserver(timeout=self._settings.polling_interval_seconds)
        return Observer()

    def _enqueue(self, event: WatchEvent) -> None:
        while not self._stop_event.is_set():
            try:
                self._queue.put(event, timeout=_QUEUE_POLL_SECONDS)
                return
            except queue.Full:
                continue

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                event = self._queue.get(timeout=_QUEUE_POLL_SECONDS)
            except queue.Empty:
                continue
            try:
                if event is None or self._stop_event.is_set():
                    break
                self._apply(event)
            finally:
                self._queue.task_done()

    def _apply(self, event: WatchEvent) -> None:
        try:
            changed = self._reconciler.apply(event)
        except Exception:  # pragma: no cover - a bad event must not end the loop
            LOGGER.exception("Failed to reconcile %s for %s", event.action.value, event.path)
            return
        LOGGER.debug("%s %s (store changed: %s)", event.action.value, event.path, changed)
        if changed and self._on_event is not None:
            self._on_event(event)

    def _discard_pending(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return
            self._queue.task_done()


class _LibraryEventHandler(FileSystemEventHandler):
    """Forward entity file notifications into the watcher queue."""

    def __init__(self, root: Path, sink: Callable[[WatchEvent], None]) -> None:
        self._root = root
        self._sink = sink

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle a filesystem create event."""
        self._forward(WatchAction.ADDED, event.src_path, event)

    def on_closed(self, event: FileSystemEvent) -> None:
        """Handle a file closed after writing; the content is now complete."""
        self._forward(WatchAction.ADDED, event.src_path, event)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle a filesystem modify event."""
        self._forward(WatchAction.CHANGED, event.src_path, event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle a filesystem delete event."""
        self._forward(WatchAction.REMOVED, event.src_path, event)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle a rename; the destination may replace an existing entity file."""
        self._forward(WatchAction.REMOVED, event.src_path, event)
        dest = getattr(event, "dest_path", None)
        if dest:
            self._forward(WatchAction.CHANGED, dest, event)
            self._forward(WatchAction.ADDED, dest, event)

    def _forward(self, action: WatchAction, raw_path: str | bytes, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        path = Path(os.fsdecode(raw_path))
        if decode_path(path, self._root) is None:
            return
        self._sink(WatchEvent(action, path))


def attach_watcher(
    store: EntityStore,
    repository: EntityRepository,
    settings: WatchSettings | None = None,
    *,
    on_event: Optional[EventCallback] = None,
) -> LibraryWatcher:
    """Start watching ``repository.root`` for ``store`` and return the handle.

    The store is expected to be bootstrapped already; files that exist when
    watching starts are not reported again.
    """
    return LibraryWatcher(store, repository, settings, on_event=on_event).start()


__all__ = ["LibraryWatcher", "attach_watcher"]
