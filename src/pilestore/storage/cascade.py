"""Cascading removal of racks and folders together with their children.

These helpers only delete files. Evicting the removed entities from the
in-memory store is left to the watcher, which observes the resulting delete
events for the same paths.
"""

from __future__ import annotations

from typing import Iterable

from pilestore.models import Folder, Note, Rack

from .paths import EntityRef
from .repository import EntityRepository


def remove_folder(
    repository: EntityRepository,
    folder: Folder,
    notes: Iterable[Note],
) -> list[EntityRef]:
    """Delete ``folder`` and every note filed in it.

    Args:
        repository: Repository owning the files.
        folder: Folder to remove.
        notes: All known notes; only those whose ``folder_uid`` matches are removed.

    Returns:
        list[EntityRef]: Identities whose files were deleted, children first.
    """
    removed: list[EntityRef] = []
    for note in list(notes):
        if note.folder_uid == folder.uid:
            repository.remove(note)
            removed.append(note.ref)
    repository.remove(folder)
    removed.append(folder.ref)
    return removed


def remove_rack(
    repository: EntityRepository,
    rack: Rack,
    folders: Iterable[Folder],
    notes: Iterable[Note],
) -> list[EntityRef]:
    """Delete ``rack``, its folders, and the notes in those folders.

    Args:
        repository: Repository owning the files.
        rack: Rack to remove.
        folders: All known folders.
        notes: All known notes.

    Returns:
        list[EntityRef]: Identities whose files were deleted, children first.
    """
    notes = list(notes)
    removed: list[EntityRef] = []
    for folder in list(folders):
        if folder.rack_uid == rack.uid:
            removed.extend(remove_folder(repository, folder, notes))
    repository.remove(rack)
    removed.append(rack.ref)
    return removed


__all__ = ["remove_folder", "remove_rack"]
