"""In-memory working set of racks, folders, and notes."""

from __future__ import annotations

import threading
from typing import Any, Callable, Iterator, Mapping, Optional

from pilestore.models import EntityModel, Folder, Note
from pilestore.storage.paths import KIND_ORDER, Kind


class EntityStore:
    """Hold one insertion-ordered collection per kind, keyed by uid.

    Every access goes through a single re-entrant lock, so watcher-driven and
    local mutations never interleave on the same collection. ``find`` returns
    the instance held by the store; callers mutate it in place.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._items: dict[Kind, dict[str, EntityModel]] = {kind: {} for kind in KIND_ORDER}

    @property
    def lock(self) -> threading.RLock:
        """Return the lock serializing store access."""
        return self._lock

    @property
    def collections(self) -> dict[Kind, list[EntityModel]]:
        """Return a snapshot of every collection, in insertion order."""
        with self._lock:
            return {kind: list(items.values()) for kind, items in self._items.items()}

    def all(self, kind: Kind) -> list[EntityModel]:
        """Return a snapshot of the entities of ``kind``."""
        with self._lock:
            return list(self._items[Kind(kind)].values())

    def count(self, kind: Kind) -> int:
        with self._lock:
            return len(self._items[Kind(kind)])

    def find(self, kind: Kind, uid: str) -> Optional[EntityModel]:
        """Return the stored entity of ``kind`` with ``uid``, if any."""
        with self._lock:
            return self._items[Kind(kind)].get(uid)

    def insert(self, kind: Kind, entity: EntityModel) -> bool:
        """Add ``entity`` unless an entity with the same uid is already held.

        Returns:
            bool: ``True`` when the entity was added, ``False`` for a duplicate.
        """
        kind = Kind(kind)
        if entity.KIND is not kind:
            raise TypeError(f"Cannot store {type(entity).__name__} in {kind.dirname}")
        with self._lock:
            items = self._items[kind]
            if entity.uid in items:
                return False
            items[entity.uid] = entity
            return True

    def update_fields(self, kind: Kind, uid: str, payload: Mapping[str, Any]) -> bool:
        """Overwrite the mutable attributes of a held entity in place.

        An unknown uid is ignored; updates never create entities.

        Returns:
            bool: ``True`` when an entity was updated.
        """
        with self._lock:
            entity = self._items[Kind(kind)].get(uid)
            if entity is None:
                return False
            entity.apply_payload(payload)
            return True

    def evict(self, kind: Kind, uid: str) -> Optional[EntityModel]:
        """Remove and return the entity with ``uid``; ``None`` when absent."""
        with self._lock:
            return self._items[Kind(kind)].pop(uid, None)

    def clear(self) -> None:
        with self._lock:
            for items in self._items.values():
                items.clear()

    def __len__(self) -> int:
        with self._lock:
            return sum(len(items) for items in self._items.values())

    def __iter__(self) -> Iterator[EntityModel]:
        for kind in KIND_ORDER:
            yield from self.all(kind)

    # Queries used by the editor layer ---------------------------------

    def folders_in(self, rack_uid: Optional[str]) -> list[Folder]:
        """Return folders whose ``rack_uid`` equals ``rack_uid``, sorted by ordering."""
        matching = [f for f in self.folders() if f.rack_uid == rack_uid]
        return sorted(matching, key=lambda f: f.ordering)

    def notes_in(self, folder_uid: Optional[str]) -> list[Note]:
        """Return notes filed under ``folder_uid``."""
        return [n for n in self.notes() if n.folder_uid == folder_uid]

    def latest_updated_note(self) -> Optional[Note]:
        """Return the note with the most recent ``updated_at``."""
        notes = self.notes()
        if not notes:
            return None
        return max(notes, key=lambda n: n.updated_at)

    def note_before(
        self,
        note: Note,
        key: Callable[[Note], Any] = lambda n: n.updated_at,
    ) -> Optional[Note]:
        """Return the note to select once ``note`` goes away.

        Notes are sorted by ``key``; the neighbour following ``note`` is
        returned, or the one preceding it when ``note`` is last.
        """
        ordered = sorted(self.notes(), key=key)
        uids = [n.uid for n in ordered]
        if note.uid not in uids:
            return None
        index = uids.index(note.uid)
        if index + 1 < len(ordered):
            return ordered[index + 1]
        if index > 0:
            return ordered[index - 1]
        return None

    def folders(self) -> list[Folder]:
        return [f for f in self.all(Kind.FOLDERS) if isinstance(f, Folder)]

    def notes(self) -> list[Note]:
        return [n for n in self.all(Kind.NOTES) if isinstance(n, Note)]


__all__ = ["EntityStore"]
