"""Library facade tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from pilestore.config import PileConfig
from pilestore.library import Library, bootstrap
from pilestore.models import Note
from pilestore.storage import LibraryNotConfiguredError
from pilestore.storage.paths import Kind, kind_dir


def _config(**watch: object) -> PileConfig:
    return PileConfig.model_validate({"storage": {"async_writes": False}, "watch": watch})


def _read(library: Library, kind: Kind, uid: str) -> dict:
    return json.loads(library.repository.path_for(kind, uid).read_text(encoding="utf-8"))


def test_bootstrap_empty_directory(tmp_path: Path) -> None:
    with bootstrap(tmp_path / "new", _config()) as library:
        assert len(library.store) == 0
        assert all(kind_dir(library.root, kind).is_dir() for kind in Kind)


def test_bootstrap_loads_existing_files(tmp_path: Path) -> None:
    with Library.bootstrap(tmp_path, _config()) as first:
        rack = first.create(Kind.RACKS, name="Personal")
        folder = first.create(Kind.FOLDERS, name="Ideas", rack_uid=rack.uid)
        first.create(Kind.NOTES, body="one", folder_uid=folder.uid)

    with Library.bootstrap(tmp_path, _config()) as second:
        assert second.store.count(Kind.RACKS) == 1
        assert second.store.folders_in(rack.uid)[0].name == "Ideas"
        assert [note.body for note in second.store.notes_in(folder.uid)] == ["one"]


def test_update_persists_fields(tmp_path: Path) -> None:
    with Library.bootstrap(tmp_path, _config()) as library:
        note = library.create(Kind.NOTES, body="v1")
        assert isinstance(note, Note)
        before = note.updated_at

        library.update(note, body="v2", qiita_url="published-id")

        data = _read(library, Kind.NOTES, note.uid)
        assert data["body"] == "v2"
        assert data["qiitaURL"] == "published-id"
        assert note.updated_at >= before


def test_update_rejects_uid(tmp_path: Path) -> None:
    with Library.bootstrap(tmp_path, _config()) as library:
        rack = library.create(Kind.RACKS)

        with pytest.raises(ValueError):
            library.update(rack, uid="00000000-0000-0000-0000-000000000000")


def test_add_duplicate_returns_stored_instance(tmp_path: Path) -> None:
    with Library.bootstrap(tmp_path, _config()) as library:
        original = library.add(Note(body="kept"))
        duplicate = Note(uid=original.uid, body="dropped")

        assert library.add(duplicate) is original
        assert _read(library, Kind.NOTES, original.uid)["body"] == "kept"


def test_remove_without_watcher_evicts_immediately(tmp_path: Path) -> None:
    with Library.bootstrap(tmp_path, _config()) as library:
        folder = library.create(Kind.FOLDERS, name="Trash")
        note = library.create(Kind.NOTES, folder_uid=folder.uid)
        keep = library.create(Kind.NOTES, body="unfiled")

        removed = library.remove(folder)

        assert [ref.uid for ref in removed] == [note.uid, folder.uid]
        assert library.find(Kind.FOLDERS, folder.uid) is None
        assert library.find(Kind.NOTES, note.uid) is None
        assert library.find(Kind.NOTES, keep.uid) is keep
        assert not library.repository.path_for(Kind.NOTES, note.uid).exists()


def test_switch_root_replaces_store(tmp_path: Path) -> None:
    with Library.bootstrap(tmp_path / "b", _config()) as other:
        rack = other.create(Kind.RACKS, name="Elsewhere")

    with Library.bootstrap(tmp_path / "a", _config()) as library:
        library.create(Kind.NOTES, body="left behind")

        library.switch_root(tmp_path / "b")

        assert library.root == (tmp_path / "b").resolve()
        assert library.store.count(Kind.NOTES) == 0
        assert library.find(Kind.RACKS, rack.uid).name == "Elsewhere"

        note = library.create(Kind.NOTES, body="new home")
        assert library.repository.path_for(Kind.NOTES, note.uid).is_relative_to(library.root)


def test_switch_root_restarts_watcher(tmp_path: Path) -> None:
    config = _config(use_polling=True, polling_interval_seconds=0.1)
    with Library.bootstrap(tmp_path / "a", config) as library:
        library.attach_watcher()
        old_watcher = library.watcher

        library.switch_root(tmp_path / "b")

        assert library.watcher is not None
        assert library.watcher is not old_watcher
        assert library.watcher.root == library.root
        assert old_watcher is not None and not old_watcher.running


def test_from_config_requires_path(tmp_path: Path) -> None:
    with pytest.raises(LibraryNotConfiguredError):
        Library.from_config(_config())

    config = PileConfig.model_validate(
        {"library": {"path": str(tmp_path)}, "storage": {"async_writes": False}}
    )
    with Library.from_config(config) as library:
        assert library.root == tmp_path.resolve()


def test_update_with_wrong_type_changes_nothing(tmp_path: Path) -> None:
    with Library.bootstrap(tmp_path, _config()) as library:
        folder = library.create(Kind.FOLDERS, name="Inbox", ordering=2)
        before = _read(library, Kind.FOLDERS, folder.uid)

        with pytest.raises(ValidationError):
            library.update(folder, name="Renamed", ordering="first")

        assert folder.name == "Inbox"
        assert folder.ordering == 2
        assert _read(library, Kind.FOLDERS, folder.uid) == before

    with Library.bootstrap(tmp_path, _config()) as reloaded:
        assert reloaded.find(Kind.FOLDERS, folder.uid).name == "Inbox"


def test_update_rejects_unknown_field(tmp_path: Path) -> None:
    with Library.bootstrap(tmp_path, _config()) as library:
        rack = library.create(Kind.RACKS, name="Plain")

        with pytest.raises(ValueError):
            library.update(rack, colour="red")

        assert _read(library, Kind.RACKS, rack.uid)["name"] == "Plain"
