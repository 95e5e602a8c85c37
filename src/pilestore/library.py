"""Library facade tying together the store, the repository, and the watcher."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from pilestore.config import PileConfig
from pilestore.models import EntityModel, Folder, Rack, model_for
from pilestore.storage.cascade import remove_folder, remove_rack
from pilestore.storage.errors import LibraryNotConfiguredError
from pilestore.storage.paths import KIND_ORDER, EntityRef, Kind
from pilestore.storage.repository import EntityRepository
from pilestore.store import EntityStore
from pilestore.watch import LibraryWatcher
from pilestore.watch.service import EventCallback

LOGGER = logging.getLogger(__name__)


class Library:
    """A library root loaded into memory, with local mutation entry points.

    Local mutations update the store and save through the repository. While a
    watcher is attached, removals are evicted from the store by the watcher
    when it sees the files disappear; without one they are evicted directly.
    """

    def __init__(
        self,
        root: Path,
        store: EntityStore,
        repository: EntityRepository,
        config: PileConfig,
    ) -> None:
        self._root = root
        self._store = store
        self._repository = repository
        self._config = config
        self._watcher: LibraryWatcher | None = None
        self._on_event: Optional[EventCallback] = None

    @classmethod
    def bootstrap(cls, root: Path | str, config: PileConfig | None = None) -> "Library":
        """Load every entity under ``root`` into a fresh store.

        Missing kind directories are created, so an empty or new directory
        yields an empty library.

        Args:
            root: Library root directory.
            config: Effective configuration; defaults apply when omitted.

        Returns:
            Library: Bootstrapped library without a watcher.
        """
        config = config or PileConfig()
        resolved = Path(root).expanduser().resolve()
        resolved.mkdir(parents=True, exist_ok=True)

        repository = EntityRepository(resolved, config.storage)
        store = EntityStore()
        for kind in KIND_ORDER:
            for entity in repository.load_all(kind):
                store.insert(kind, entity)
        LOGGER.info(
            "Loaded library %s: %s",
            resolved,
            ", ".join(f"{store.count(kind)} {kind.dirname}" for kind in KIND_ORDER),
        )
        return cls(resolved, store, repository, config)

    @classmethod
    def from_config(cls, config: PileConfig) -> "Library":
        """Bootstrap the library stored at ``config.library.path``.

        Raises:
            LibraryNotConfiguredError: If no library path is configured.
        """
        if not config.library.path:
            raise LibraryNotConfiguredError(
                "No library path configured; set `library.path` or pass a PATH."
            )
        return cls.bootstrap(config.library.path, config)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def store(self) -> EntityStore:
        return self._store

    @property
    def repository(self) -> EntityRepository:
        return self._repository

    @property
    def watcher(self) -> LibraryWatcher | None:
        return self._watcher

    def find(self, kind: Kind, uid: str) -> Optional[EntityModel]:
        """Return the stored entity of ``kind`` with ``uid``, if any."""
        return self._store.find(kind, uid)

    # ------------------------------------------------------------------ #
    # Local mutations                                                    #
    # ------------------------------------------------------------------ #

    def create(self, kind: Kind, **fields: Any) -> EntityModel:
        """Create an entity of ``kind``, add it to the store, and save it."""
        entity = model_for(kind)(**fields)
        return self.add(entity)

    def add(self, entity: EntityModel) -> EntityModel:
        """Insert an entity built by the caller and save it.

        Returns:
            EntityModel: The stored instance, which is the existing one when the
            uid was already present.
        """
        with self._store.lock:
            if not self._store.insert(entity.KIND, entity):
                return self._store.find(entity.KIND, entity.uid) or entity
        self._repository.save(entity)
        return entity

    def update(self, entity: EntityModel, **fields: Any) -> EntityModel:
        """Assign ``fields`` on ``entity`` and save it.

        All values are validated before any is assigned, so a rejected update
        leaves both the entity and its file untouched.

        Raises:
            ValueError: If ``fields`` names ``uid`` or an unknown attribute.
            pydantic.ValidationError: If a value does not fit its field.
        """
        if "uid" in fields:
            raise ValueError("uid is immutable")
        unknown = sorted(set(fields) - set(type(entity).model_fields))
        if unknown:
            raise ValueError(f"{type(entity).__name__} has no field(s): {', '.join(unknown)}")
        with self._store.lock:
            type(entity).model_validate({**entity.model_dump(), **fields})
            for name, value in fields.items():
                setattr(entity, name, value)
        self._repository.save(entity)
        return entity

    def save(self, entity: EntityModel) -> None:
        """Persist ``entity`` after the caller mutated it directly."""
        self._repository.save(entity)

    def remove(self, entity: EntityModel) -> list[EntityRef]:
        """Delete ``entity`` and, for racks and folders, everything they contain.

        Returns:
            list[EntityRef]: Identities whose files were deleted.
        """
        with self._store.lock:
            if isinstance(entity, Rack):
                removed = remove_rack(
                    self._repository,
                    entity,
                    self._store.folders_in(entity.uid),
                    self._store.notes(),
                )
            elif isinstance(entity, Folder):
                removed = remove_folder(
                    self._repository,
                    entity,
                    self._store.notes_in(entity.uid),
                )
            else:
                self._repository.remove(entity)
                removed = [entity.ref]

            if self._watcher is None:
                for ref in removed:
                    self._store.evict(ref.kind, ref.uid)
        return removed

    # ------------------------------------------------------------------ #
    # Watching and relocation                                            #
    # ------------------------------------------------------------------ #

    def attach_watcher(self, on_event: Optional[EventCallback] = None) -> LibraryWatcher:
        """Start reconciling external changes under the root into the store.

        Raises:
            RuntimeError: If a watcher is already attached.
        """
        if self._watcher is not None:
            raise RuntimeError("A watcher is already attached to this library.")
        self._on_event = on_event
        self._watcher = LibraryWatcher(
            self._store, self._repository, self._config.watch, on_event=on_event
        ).start()
        return self._watcher

    def detach_watcher(self) -> None:
        """Stop the attached watcher, if any."""
        watcher, self._watcher = self._watcher, None
        if watcher is not None:
            watcher.stop()

    def switch_root(self, new_root: Path | str) -> None:
        """Point the library at ``new_root``.

        The old watcher is stopped, pending writes are flushed, the old store is
        discarded, and a new store is bootstrapped from ``new_root``. A watcher
        is started on the new root when one was attached before.
        """
        was_watching = self._watcher is not None
        self.detach_watcher()
        self._repository.close()

        fresh = Library.bootstrap(new_root, self._config)
        self._root = fresh.root
        self._store = fresh.store
        self._repository = fresh.repository
        LOGGER.info("Switched library to %s", self._root)

        if was_watching:
            self.attach_watcher(self._on_event)

    def flush(self) -> None:
        """Wait for queued file writes to finish."""
        self._repository.flush()

    def close(self) -> None:
        """Stop watching and finish pending writes."""
        self.detach_watcher()
        self._repository.close()

    def __enter__(self) -> "Library":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def bootstrap(root: Path | str, config: PileConfig | None = None) -> Library:
    """Return a :class:`Library` loaded from ``root``."""
    return Library.bootstrap(root, config)


__all__ = ["Library", "bootstrap"]
