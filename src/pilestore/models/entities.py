"""Rack, folder, and note models stored as one JSON file each."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, ClassVar, Mapping, Optional

from pydantic import Field, field_validator

from pilestore.storage.paths import Kind

from .base import EntityModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _blank_if_none(value: Any) -> Any:
    return "" if value is None else value


class Rack(EntityModel):
    """Top-level container grouping folders.

    Attributes:
        name: Display name.
        ordering: Position among other racks.
    """

    KIND: ClassVar[Kind] = Kind.RACKS

    name: str = ""
    ordering: int = 0

    @field_validator("name", mode="before")
    @classmethod
    def _name_default(cls, value: Any) -> Any:
        return _blank_if_none(value)

    @field_validator("ordering", mode="before")
    @classmethod
    def _ordering_default(cls, value: Any) -> Any:
        return 0 if value is None else value


class Folder(EntityModel):
    """Container of notes, optionally placed inside a rack.

    Attributes:
        name: Display name.
        rack_uid: Owning rack uid; an unknown uid means the folder is unparented.
        ordering: Position among folders of the same rack.
    """

    KIND: ClassVar[Kind] = Kind.FOLDERS

    name: str = ""
    rack_uid: Optional[str] = Field(default=None, alias="rackUid")
    ordering: int = 0

    @field_validator("name", mode="before")
    @classmethod
    def _name_default(cls, value: Any) -> Any:
        return _blank_if_none(value)

    @field_validator("ordering", mode="before")
    @classmethod
    def _ordering_default(cls, value: Any) -> Any:
        return 0 if value is None else value

    @property
    def parent_uid(self) -> Optional[str]:
        return self.rack_uid


class Note(EntityModel):
    """Markdown document, optionally filed in a folder.

    Attributes:
        body: Raw document text.
        folder_uid: Owning folder uid; an unknown uid means the note is unparented.
        created_at: Creation timestamp.
        updated_at: Timestamp of the last body change.
        qiita_url: Identifier of the externally published copy, if any.
    """

    KIND: ClassVar[Kind] = Kind.NOTES

    body: str = ""
    folder_uid: Optional[str] = Field(default=None, alias="folderUid")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    qiita_url: Optional[str] = Field(default=None, alias="qiitaURL")

    @field_validator("body", mode="before")
    @classmethod
    def _body_default(cls, value: Any) -> Any:
        return _blank_if_none(value)

    def __setattr__(self, name: str, value: Any) -> None:
        if name != "body":
            super().__setattr__(name, value)
            return
        previous = self.body
        super().__setattr__(name, value)
        if self.body != previous:
            super().__setattr__("updated_at", _utcnow())

    @property
    def parent_uid(self) -> Optional[str]:
        return self.folder_uid

    def apply_payload(self, payload: Mapping[str, Any]) -> None:
        """Overwrite attributes from file content.

        Timestamps missing from the payload are left alone, so ``updated_at``
        only moves when the body actually differs.
        """
        incoming = self._incoming(payload)
        self.folder_uid = incoming.folder_uid
        self.qiita_url = incoming.qiita_url
        self.body = incoming.body
        if "created_at" in incoming.model_fields_set:
            self.created_at = incoming.created_at
        if "updated_at" in incoming.model_fields_set:
            self.updated_at = incoming.updated_at

    @classmethod
    def new_empty(cls, folder_uid: Optional[str] = None) -> "Note":
        """Return a blank note filed under ``folder_uid``."""
        return cls(body="", folder_uid=folder_uid)


__all__ = ["Rack", "Folder", "Note"]
