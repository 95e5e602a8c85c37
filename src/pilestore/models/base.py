"""Shared persistence contract for library entities."""

from __future__ import annotations

from typing import Any, ClassVar, Mapping, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pilestore.storage.paths import EntityRef, Kind, is_canonical_uid, new_uid


@runtime_checkable
class Persistable(Protocol):
    """Capability every stored entity provides to the store and repository."""

    KIND: ClassVar[Kind]
    uid: str

    def to_payload(self) -> dict[str, Any]: ...

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Persistable": ...

    def apply_payload(self, payload: Mapping[str, Any]) -> None: ...


class EntityModel(BaseModel):
    """Pydantic base implementing :class:`Persistable` for library entities.

    Attributes:
        uid: Immutable canonical identifier, minted when absent.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True, validate_assignment=True)

    KIND: ClassVar[Kind]

    uid: str = Field(default_factory=new_uid, frozen=True)

    @field_validator("uid", mode="before")
    @classmethod
    def _validate_uid(cls, value: Any) -> Any:
        if value is None:
            return new_uid()
        if not is_canonical_uid(value):
            raise ValueError(f"uid must be a canonical lowercase UUID, got {value!r}")
        return value

    @property
    def ref(self) -> EntityRef:
        """Return the path identity of this entity."""
        return EntityRef(self.KIND, self.uid)

    @property
    def parent_uid(self) -> Optional[str]:
        """Return the uid of the owning entity, if the kind has one."""
        return None

    def to_payload(self) -> dict[str, Any]:
        """Serialize every attribute, uid included, using on-disk key names."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "EntityModel":
        """Build an entity from decoded file content.

        Raises:
            pydantic.ValidationError: If the payload does not describe a valid entity.
        """
        return cls.model_validate(dict(payload))

    def apply_payload(self, payload: Mapping[str, Any]) -> None:
        """Overwrite mutable attributes in place from decoded file content.

        The uid is never touched; the caller's identity wins over the payload's.
        """
        incoming = self._incoming(payload)
        for name in self.mutable_fields():
            setattr(self, name, getattr(incoming, name))

    @classmethod
    def mutable_fields(cls) -> list[str]:
        """Return attribute names that may change after creation."""
        return [name for name in cls.model_fields if name != "uid"]

    def _incoming(self, payload: Mapping[str, Any]) -> "EntityModel":
        data = dict(payload)
        data["uid"] = self.uid
        return type(self).model_validate(data)


__all__ = ["EntityModel", "Persistable"]
