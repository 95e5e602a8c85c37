"""Persistence of entities as one JSON file each under the library root."""

from __future__ import annotations

import atexit
import json
import logging
import queue
import threading
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Any, NamedTuple, Optional

from pydantic import ValidationError

from pilestore.config import StorageSettings
from pilestore.models import EntityModel, model_for

from .errors import EntityParseError
from .paths import EntityRef, Kind, decode_path, encode_path, kind_dir

LOGGER = logging.getLogger(__name__)

_WRITE_HISTORY = 8


class DecodedFile(NamedTuple):
    """Validated content of an entity file.

    Attributes:
        ref: Identity decoded from the path.
        entity: Entity built from the content, carrying the path uid.
        payload: Parsed JSON object with ``uid`` forced to the path uid.
        text: Raw file text as read.
    """

    ref: EntityRef
    entity: EntityModel
    payload: dict[str, Any]
    text: str


@dataclass(slots=True)
class _Job:
    path: Path
    text: Optional[str]  # None deletes the file


class EntityRepository:
    """Save, remove, and load entity files for one library root.

    Writes are best effort: failures are logged and never raised to the
    caller. With ``async_writes`` enabled, writes and deletes run on a single
    background thread in submission order.
    """

    def __init__(self, root: Path, settings: StorageSettings | None = None) -> None:
        """Initialize the repository.

        Args:
            root: Library root directory.
            settings: Storage settings; defaults apply when omitted.
        """
        self._root = Path(root)
        self._settings = settings or StorageSettings()
        self._jobs: queue.Queue[_Job | None] = queue.Queue()
        self._writer: threading.Thread | None = None
        self._lock = threading.Lock()
        self._written: dict[Path, deque[str]] = {}

    @property
    def root(self) -> Path:
        """Return the library root directory."""
        return self._root

    def path_for(self, kind: Kind, uid: str) -> Path:
        """Return the file path of the entity identified by ``kind`` and ``uid``."""
        return encode_path(self._root, kind, uid)

    def save(self, entity: EntityModel) -> None:
        """Write ``entity`` to its file, replacing any previous version."""
        path = self.path_for(entity.KIND, entity.uid)
        text = json.dumps(entity.to_payload(), indent=self._settings.indent, ensure_ascii=False)
        with self._lock:
            self._written.setdefault(path, deque(maxlen=_WRITE_HISTORY)).append(text)
        self._submit(_Job(path, text))

    def remove(self, entity: EntityModel) -> None:
        """Delete the file of ``entity``; a missing file is not an error."""
        self.remove_ref(entity.ref)

    def remove_ref(self, ref: EntityRef) -> None:
        """Delete the file identified by ``ref``."""
        path = self.path_for(ref.kind, ref.uid)
        self.forget(path)
        self._submit(_Job(path, None))

    def wrote(self, path: Path, text: str) -> bool:
        """Return whether ``text`` matches one of the recent saves to ``path``.

        Used to recognize change notifications caused by this process.
        """
        with self._lock:
            return text in self._written.get(Path(path), ())

    def forget(self, path: Path) -> None:
        """Drop the save history of ``path``.

        Called once an external change to ``path`` has been applied, so that
        a later external revert to one of our earlier texts is not mistaken
        for our own write.
        """
        with self._lock:
            self._written.pop(Path(path), None)

    def load_all(self, kind: Kind) -> list[EntityModel]:
        """Load every valid entity file of ``kind``.

        A missing kind directory is created and yields an empty list. Files
        whose names do not decode or whose content cannot be parsed are
        skipped and logged.

        Args:
            kind: Entity kind to load.

        Returns:
            list[EntityModel]: Entities in filename order.
        """
        directory = kind_dir(self._root, kind)
        try:
            candidates = sorted(directory.iterdir())
        except FileNotFoundError:
            LOGGER.info("Creating missing %s directory at %s", kind.dirname, directory)
            directory.mkdir(parents=True, exist_ok=True)
            return []

        entities: list[EntityModel] = []
        for path in candidates:
            ref = decode_path(path, self._root)
            if ref is None or ref.kind is not kind:
                LOGGER.debug("Ignoring non-entity file %s", path)
                continue
            try:
                decoded = self.read_entity(path)
            except EntityParseError as exc:
                LOGGER.warning("Skipping unreadable %s file %s: %s", kind.dirname, path, exc)
                continue
            if decoded is not None:
                entities.append(decoded.entity)
        return entities

    def read_entity(self, path: Path) -> Optional[DecodedFile]:
        """Read and validate the entity file at ``path``.

        Args:
            path: Candidate entity file.

        Returns:
            Optional[DecodedFile]: Decoded content, or ``None`` when ``path`` does
            not name an entity file under the root.

        Raises:
            EntityParseError: If the file cannot be read, is not a JSON object,
                or does not validate.
        """
        path = Path(path)
        ref = decode_path(path, self._root)
        if ref is None:
            return None

        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise EntityParseError(f"Cannot read {path}: {exc}") from exc
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise EntityParseError(f"Invalid JSON in {path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise EntityParseError(f"Expected a JSON object in {path}")

        content_uid = payload.get("uid")
        if content_uid is not None and content_uid != ref.uid:
            LOGGER.debug("Content uid %s of %s disagrees with its filename", content_uid, path)
        payload["uid"] = ref.uid

        try:
            entity = model_for(ref.kind).from_payload(payload)
        except ValidationError as exc:
            raise EntityParseError(f"Invalid {ref.kind.dirname} data in {path}: {exc}") from exc
        return DecodedFile(ref=ref, entity=entity, payload=payload, text=text)

    def flush(self) -> None:
        """Block until every queued write and delete has been attempted."""
        if self._writer is not None:
            self._jobs.join()

    def close(self) -> None:
        """Finish pending work and stop the background writer."""
        with self._lock:
            writer = self._writer
            self._writer = None
        if writer is None:
            return
        self._jobs.put(None)
        writer.join()
        atexit.unregister(self.close)

    # Internal helpers -------------------------------------------------

    def _submit(self, job: _Job) -> None:
        if not self._settings.async_writes:
            self._perform(job)
            return
        with self._lock:
            if self._writer is None:
                self._writer = threading.Thread(
                    target=self._drain_jobs, name="pilestore-writer", daemon=True
                )
                self._writer.start()
                atexit.register(self.close)
        self._jobs.put(job)

    def _drain_jobs(self) -> None:
        while True:
            job = self._jobs.get()
            try:
                if job is None:
                    return
                self._perform(job)
            finally:
                self._jobs.task_done()

    def _perform(self, job: _Job) -> None:
        if job.text is None:
            try:
                job.path.unlink()
            except FileNotFoundError:
                pass
            except OSError:
                LOGGER.exception("Failed to delete %s", job.path)
            return

        try:
            job.path.parent.mkdir(parents=True, exist_ok=True)
            job.path.write_text(job.text, encoding="utf-8")
        except OSError:
            LOGGER.exception("Failed to write %s", job.path)


__all__ = ["DecodedFile", "EntityRepository"]
