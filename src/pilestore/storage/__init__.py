"""On-disk layout, persistence, and copying of library entities."""

from .errors import EntityParseError, LibraryNotConfiguredError, StorageError
from .paths import (
    KIND_ORDER,
    EntityRef,
    Kind,
    decode_path,
    encode_path,
    is_canonical_uid,
    kind_dir,
    new_uid,
)

__all__ = [
    "KIND_ORDER",
    "EntityParseError",
    "EntityRef",
    "Kind",
    "LibraryNotConfiguredError",
    "StorageError",
    "decode_path",
    "encode_path",
    "is_canonical_uid",
    "kind_dir",
    "new_uid",
]
