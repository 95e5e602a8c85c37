"""Path codec mapping entity kinds and uids to files under a library root."""

from __future__ import annotations

import re
import uuid
from enum import Enum
from pathlib import Path
from typing import NamedTuple, Optional

ENTITY_SUFFIX = ".json"

_UID_PATTERN = re.compile(r"^[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}$")


class Kind(str, Enum):
    """Entity kinds; the value doubles as the storage subdirectory name."""

    RACKS = "racks"
    FOLDERS = "folders"
    NOTES = "notes"

    @property
    def dirname(self) -> str:
        """Return the subdirectory name holding entities of this kind."""
        return self.value


# Load order matters for bootstrap: parents before children.
KIND_ORDER: tuple[Kind, ...] = (Kind.RACKS, Kind.FOLDERS, Kind.NOTES)

_KIND_BY_DIRNAME = {kind.dirname: kind for kind in Kind}


class EntityRef(NamedTuple):
    """Identity of an entity as encoded in its file path."""

    kind: Kind
    uid: str


def new_uid() -> str:
    """Return a freshly minted canonical uid."""
    return str(uuid.uuid4())


def is_canonical_uid(value: object) -> bool:
    """Return whether ``value`` is a lowercase 8-4-4-4-12 hex UUID string."""
    return isinstance(value, str) and _UID_PATTERN.match(value) is not None


def kind_dir(root: Path, kind: Kind) -> Path:
    """Return the directory storing entities of ``kind`` under ``root``."""
    return Path(root) / kind.dirname


def encode_path(root: Path, kind: Kind, uid: str) -> Path:
    """Return the file path storing the entity identified by ``kind`` and ``uid``.

    Args:
        root: Library root directory.
        kind: Entity kind.
        uid: Canonical uid of the entity.

    Returns:
        Path: Location of the entity's JSON file.

    Raises:
        ValueError: If ``uid`` is not a canonical lowercase UUID.
    """
    if not is_canonical_uid(uid):
        raise ValueError(f"Not a canonical uid: {uid!r}")
    return kind_dir(root, Kind(kind)) / f"{uid}{ENTITY_SUFFIX}"


def decode_path(path: Path | str, root: Optional[Path] = None) -> Optional[EntityRef]:
    """Recover the entity identity encoded in ``path``.

    Args:
        path: Candidate file path.
        root: Optional library root; when given the kind directory must be a
            direct child of it.

    Returns:
        Optional[EntityRef]: Decoded identity, or ``None`` for paths that do
        not name an entity file.
    """
    candidate = Path(path)
    if candidate.suffix != ENTITY_SUFFIX:
        return None
    uid = candidate.name[: -len(ENTITY_SUFFIX)]
    if not is_canonical_uid(uid):
        return None
    kind = _KIND_BY_DIRNAME.get(candidate.parent.name)
    if kind is None:
        return None
    if root is not None and candidate.parent.parent != Path(root):
        return None
    return EntityRef(kind, uid)


__all__ = [
    "ENTITY_SUFFIX",
    "KIND_ORDER",
    "EntityRef",
    "Kind",
    "decode_path",
    "encode_path",
    "is_canonical_uid",
    "kind_dir",
    "new_uid",
]
