"""Pydantic models for remote records, zones and typed record fields."""

from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_OWNER_NAME = "__defaultOwner__"


class RecordLocation(str, Enum):
    """Database a record is stored in."""

    PRIVATE = "private"
    SHARED = "shared"
    PUBLIC = "public"


class RecordType(str, Enum):
    """Record type names known to the engine."""

    UNKNOWN = "unknown"
    LIST = "list"
    TODO = "todo"
    SHARE = "cloudkit.share"

    @classmethod
    def from_type_name(cls, type_name: str) -> "RecordType":
        """Map a raw remote type name to a RecordType, UNKNOWN if unrecognised."""
        try:
            return cls(type_name)
        except ValueError:
            return cls.UNKNOWN


class ReferenceAction(str, Enum):
    """What happens to the referencing record when the target is deleted."""

    NONE = "none"
    DELETE_SELF = "deleteSelf"


class ZoneID(BaseModel):
    """Identifies a zone within a database."""

    model_config = ConfigDict(frozen=True)

    zone_name: str = Field(default=..., min_length=1, description="Zone name")
    owner_name: str = Field(default=DEFAULT_OWNER_NAME, description="Zone owner")

    def __str__(self) -> str:
        return f"{self.zone_name}:{self.owner_name}"


class RecordID(BaseModel):
    """Identifies a record within a zone."""

    model_config = ConfigDict(frozen=True)

    record_name: str = Field(
        default_factory=lambda: str(uuid4()), min_length=1, description="Record name"
    )
    zone_id: ZoneID = Field(default=..., description="Zone the record lives in")

    def __str__(self) -> str:
        return f"{self.record_name}@{self.zone_id}"


class Reference(BaseModel):
    """A pointer from one record to another."""

    model_config = ConfigDict(frozen=True)

    record_id: RecordID
    action: ReferenceAction = ReferenceAction.NONE

    @classmethod
    def to(cls, record: "Record", action: ReferenceAction = ReferenceAction.NONE) -> "Reference":
        return cls(record_id=record.record_id, action=action)


FieldValue = Union[str, datetime, bytes, Reference]


class Record(BaseModel):
    """A typed, field-bearing remote entity.

    Records are immutable; an update is a new Record carrying the same
    ``record_id`` that supersedes the previous one.
    """

    model_config = ConfigDict(frozen=True)

    record_id: RecordID = Field(default=..., description="Unique identifier within a zone")
    record_type: RecordType = Field(default=RecordType.UNKNOWN, description="Type tag")
    location: RecordLocation = Field(
        default=RecordLocation.PRIVATE, description="Database the record is stored in"
    )
    fields: dict[str, FieldValue] = Field(default_factory=dict, description="Named field values")
    parent: Reference | None = Field(default=None, description="Parent record for hierarchy")
    share: Reference | None = Field(default=None, description="Share object bound to the record")
    change_tag: str | None = Field(
        default=None, description="Server-assigned version marker, None until first save"
    )

    @field_validator("record_type", mode="before")
    @classmethod
    def parse_record_type(cls, v: Any) -> RecordType:
        if isinstance(v, RecordType):
            return v
        return RecordType.from_type_name(str(v))

    @property
    def zone_id(self) -> ZoneID:
        return self.record_id.zone_id

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)

    def with_location(self, location: RecordLocation) -> "Record":
        """Return this record tagged with ``location``."""
        if self.location is location:
            return self
        return self.model_copy(update={"location": location})

    def references(self) -> list[Reference]:
        """All references held in fields, plus the parent reference."""
        refs = [value for value in self.fields.values() if isinstance(value, Reference)]
        if self.parent is not None:
            refs.append(self.parent)
        return refs


# Typed field schemas


class RecordFields(BaseModel):
    """Base class for the closed field schema of one record type."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    record_type: ClassVar[RecordType] = RecordType.UNKNOWN

    def to_fields(self) -> dict[str, FieldValue]:
        """Map the schema onto remote field names, dropping unset optionals."""
        fields: dict[str, FieldValue] = {}
        for name, info in type(self).model_fields.items():
            value = getattr(self, name)
            if value is not None:
                fields[info.alias or name] = value
        return fields


class ListFields(RecordFields):
    """Fields of a ``list`` record."""

    record_type: ClassVar[RecordType] = RecordType.LIST

    title: str = Field(default=..., min_length=1, description="List title")


class TodoFields(RecordFields):
    """Fields of a ``todo`` record."""

    record_type: ClassVar[RecordType] = RecordType.TODO

    title: str = Field(default=..., min_length=1, description="Todo title")
    note: str = Field(default="", description="Free-form note")
    date_completed: datetime | None = Field(
        default=None, alias="dateCompleted", description="Completion time, None while open"
    )
    list_ref: Reference = Field(
        default=..., alias="list", description="Owning list (delete-self reference)"
    )

    @field_validator("list_ref")
    @classmethod
    def list_reference_deletes_self(cls, v: Reference) -> Reference:
        if v.action is not ReferenceAction.DELETE_SELF:
            return v.model_copy(update={"action": ReferenceAction.DELETE_SELF})
        return v


class ShareFields(RecordFields):
    """Presentation fields of a share object."""

    record_type: ClassVar[RecordType] = RecordType.SHARE

    title: str | None = Field(default=None, description="Title shown to invitees")
    thumbnail_image_data: bytes | None = Field(
        default=None, alias="thumbnailImageData", description="Thumbnail shown to invitees"
    )


FIELD_SCHEMAS: dict[RecordType, type[RecordFields]] = {
    RecordType.LIST: ListFields,
    RecordType.TODO: TodoFields,
    RecordType.SHARE: ShareFields,
}
