"""Translate entity file events into store mutations."""

from __future__ import annotations

import logging

from pilestore.storage.errors import EntityParseError
from pilestore.storage.paths import decode_path
from pilestore.storage.repository import EntityRepository
from pilestore.store import EntityStore

from .events import WatchAction, WatchEvent

LOGGER = logging.getLogger(__name__)


class Reconciler:
    """Apply watch events to a store without ever writing files back.

    Every mutation is idempotent: repeated adds, updates for unknown uids,
    and removals of absent entities are all no-ops.
    """

    def __init__(self, store: EntityStore, repository: EntityRepository) -> None:
        self._store = store
        self._repository = repository

    @property
    def store(self) -> EntityStore:
        return self._store

    def apply(self, event: WatchEvent) -> bool:
        """Apply ``event`` to the store.

        Args:
            event: Filesystem event for a path under the library root.

        Returns:
            bool: ``True`` when the store changed.
        """
        ref = decode_path(event.path, self._repository.root)
        if ref is None:
            return False

        if event.action is WatchAction.REMOVED:
            return self._store.evict(ref.kind, ref.uid) is not None

        try:
            decoded = self._repository.read_entity(event.path)
        except EntityParseError as exc:
            # Usually a write still in flight; the next event retries.
            LOGGER.debug("Ignoring %s event for %s: %s", event.action.value, event.path, exc)
            return False
        if decoded is None:
            return False

        if event.action is WatchAction.ADDED:
            return self._store.insert(ref.kind, decoded.entity)

        if self._repository.wrote(event.path, decoded.text):
            return False
        updated = self._store.update_fields(ref.kind, ref.uid, decoded.payload)
        if updated:
            self._repository.forget(event.path)
        return updated


__all__ = ["Reconciler"]
