"""Integration tests for the library watcher using the polling observer."""

from __future__ import annotations

import json
import os
import time
from pathlib import Path
from typing import Callable

import pytest

from pilestore.config import PileConfig
from pilestore.library import Library
from pilestore.models import Folder, Note, Rack
from pilestore.storage.paths import Kind, kind_dir, new_uid
from pilestore.watch import WatchAction, WatchEvent

POLL_SECONDS = 0.1


def _config() -> PileConfig:
    return PileConfig.model_validate(
        {
            "storage": {"async_writes": False},
            "watch": {"use_polling": True, "polling_interval_seconds": POLL_SECONDS},
        }
    )


def _wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


def _write_atomically(target: Path, data: dict) -> None:
    staging = target.parent.parent / f".{target.name}.tmp"
    staging.write_text(json.dumps(data), encoding="utf-8")
    os.replace(staging, target)


@pytest.fixture()
def library(tmp_path: Path):
    library = Library.bootstrap(tmp_path / "library", _config())
    yield library
    library.close()


def test_external_note_is_added(library: Library) -> None:
    events: list[WatchEvent] = []
    library.attach_watcher(on_event=events.append)
    uid = new_uid()

    _write_atomically(library.repository.path_for(Kind.NOTES, uid), {"body": "hello"})

    assert _wait_for(lambda: library.find(Kind.NOTES, uid) is not None)
    note = library.find(Kind.NOTES, uid)
    assert isinstance(note, Note)
    assert note.body == "hello"
    assert note.folder_uid is None
    assert _wait_for(lambda: any(event.action is WatchAction.ADDED for event in events))


def test_external_edit_updates_in_place(library: Library) -> None:
    folder = library.create(Kind.FOLDERS, name="Inbox")
    path = library.repository.path_for(Kind.FOLDERS, folder.uid)
    library.attach_watcher()

    path.write_text(json.dumps({"uid": folder.uid, "name": "Renamed inbox"}), encoding="utf-8")

    assert _wait_for(lambda: folder.name == "Renamed inbox")
    assert library.find(Kind.FOLDERS, folder.uid) is folder


def test_external_delete_evicts(library: Library) -> None:
    rack = library.create(Kind.RACKS, name="Old")
    library.attach_watcher()

    library.repository.path_for(Kind.RACKS, rack.uid).unlink()

    assert _wait_for(lambda: library.find(Kind.RACKS, rack.uid) is None)


def test_files_present_at_start_are_not_reported(library: Library) -> None:
    library.create(Kind.NOTES, body="existing")
    events: list[WatchEvent] = []

    watcher = library.attach_watcher(on_event=events.append)
    time.sleep(POLL_SECONDS * 5)

    assert watcher.drain()
    assert events == []
    assert library.store.count(Kind.NOTES) == 1


def test_own_saves_do_not_duplicate_or_replay(library: Library) -> None:
    events: list[WatchEvent] = []
    watcher = library.attach_watcher(on_event=events.append)

    note = library.create(Kind.NOTES, body="mine")
    library.update(note, body="mine, edited")
    time.sleep(POLL_SECONDS * 5)

    assert watcher.drain()
    assert library.store.count(Kind.NOTES) == 1
    assert library.find(Kind.NOTES, note.uid) is note
    assert note.body == "mine, edited"
    assert events == []


def test_cascade_removal_empties_store(library: Library) -> None:
    rack = library.create(Kind.RACKS, name="Work")
    assert isinstance(rack, Rack)
    for index in range(2):
        folder = library.create(Kind.FOLDERS, name=f"F{index}", rack_uid=rack.uid)
        assert isinstance(folder, Folder)
        library.create(Kind.NOTES, body=f"note {index}", folder_uid=folder.uid)
    library.attach_watcher()

    removed = library.remove(rack)

    assert len(removed) == 5
    assert _wait_for(lambda: len(library.store) == 0)
    for kind in Kind:
        assert list(kind_dir(library.root, kind).glob("*.json")) == []


def test_watcher_cannot_start_twice(library: Library) -> None:
    watcher = library.attach_watcher()

    with pytest.raises(RuntimeError):
        watcher.start()
    with pytest.raises(RuntimeError):
        library.attach_watcher()

    library.detach_watcher()
    assert not watcher.running
    assert library.watcher is None
