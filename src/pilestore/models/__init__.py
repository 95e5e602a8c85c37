"""Entity models and the kind-to-model table."""

from __future__ import annotations

from typing import Mapping, Type

from pilestore.storage.paths import Kind

from .base import EntityModel, Persistable
from .entities import Folder, Note, Rack

MODEL_FOR_KIND: Mapping[Kind, Type[EntityModel]] = {
    Kind.RACKS: Rack,
    Kind.FOLDERS: Folder,
    Kind.NOTES: Note,
}


def model_for(kind: Kind) -> Type[EntityModel]:
    """Return the model class persisted under ``kind``."""
    return MODEL_FOR_KIND[Kind(kind)]


__all__ = [
    "MODEL_FOR_KIND",
    "EntityModel",
    "Folder",
    "Note",
    "Persistable",
    "Rack",
    "model_for",
]
