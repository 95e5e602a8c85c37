"""In-memory entity store tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from pilestore.models import Folder, Note, Rack
from pilestore.storage.paths import Kind
from pilestore.store import EntityStore

BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _note(minutes: int, **fields) -> Note:
    stamp = BASE + timedelta(minutes=minutes)
    return Note(created_at=stamp, updated_at=stamp, **fields)


def test_insert_twice_keeps_one_entity() -> None:
    store = EntityStore()
    note = Note(body="a")

    assert store.insert(Kind.NOTES, note) is True
    assert store.insert(Kind.NOTES, Note(uid=note.uid, body="b")) is False

    assert store.count(Kind.NOTES) == 1
    assert store.find(Kind.NOTES, note.uid) is note
    assert len(store) == 1


def test_insert_rejects_wrong_kind() -> None:
    store = EntityStore()

    with pytest.raises(TypeError):
        store.insert(Kind.FOLDERS, Rack())


def test_update_fields_for_unknown_uid_is_noop() -> None:
    store = EntityStore()

    updated = store.update_fields(Kind.RACKS, Rack().uid, {"name": "Ghost"})

    assert updated is False
    assert store.count(Kind.RACKS) == 0


def test_update_fields_mutates_held_instance() -> None:
    store = EntityStore()
    folder = Folder(name="Old")
    store.insert(Kind.FOLDERS, folder)

    assert store.update_fields(Kind.FOLDERS, folder.uid, {"name": "New", "ordering": 3})

    assert folder.name == "New"
    assert folder.ordering == 3


def test_evict_returns_entity_once() -> None:
    store = EntityStore()
    rack = Rack()
    store.insert(Kind.RACKS, rack)

    assert store.evict(Kind.RACKS, rack.uid) is rack
    assert store.evict(Kind.RACKS, rack.uid) is None
    assert store.find(Kind.RACKS, rack.uid) is None


def test_collections_and_iteration_follow_kind_order() -> None:
    store = EntityStore()
    note, folder, rack = Note(), Folder(), Rack()
    store.insert(Kind.NOTES, note)
    store.insert(Kind.FOLDERS, folder)
    store.insert(Kind.RACKS, rack)

    assert list(store) == [rack, folder, note]
    assert store.collections[Kind.NOTES] == [note]

    store.clear()
    assert len(store) == 0


def test_folders_in_sorted_by_ordering() -> None:
    store = EntityStore()
    rack = Rack()
    second = Folder(rack_uid=rack.uid, ordering=2)
    first = Folder(rack_uid=rack.uid, ordering=1)
    stray = Folder(rack_uid=None)
    for folder in (second, first, stray):
        store.insert(Kind.FOLDERS, folder)

    assert store.folders_in(rack.uid) == [first, second]
    assert store.folders_in(None) == [stray]


def test_notes_in_and_latest_updated_note() -> None:
    store = EntityStore()
    folder = Folder()
    old = _note(1, folder_uid=folder.uid)
    new = _note(5, folder_uid=folder.uid)
    other = _note(3)
    for note in (old, new, other):
        store.insert(Kind.NOTES, note)

    assert store.notes_in(folder.uid) == [old, new]
    assert store.latest_updated_note() is new
    assert EntityStore().latest_updated_note() is None


def test_note_before_picks_neighbour() -> None:
    store = EntityStore()
    first, middle, last = _note(1), _note(2), _note(3)
    for note in (last, first, middle):
        store.insert(Kind.NOTES, note)

    assert store.note_before(first) is middle
    assert store.note_before(last) is middle
    assert store.note_before(Note()) is None


def test_note_before_single_note_returns_none() -> None:
    store = EntityStore()
    only = _note(1)
    store.insert(Kind.NOTES, only)

    assert store.note_before(only) is None
