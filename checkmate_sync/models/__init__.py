"""Data models for the CheckMate sync engine."""

from checkmate_sync.models.config import (
    AppConfig,
    ErrorPolicy,
    LoggingConfig,
    RemoteStoreConfig,
    RetryConfig,
    SyncConfig,
)
from checkmate_sync.models.record import (
    DEFAULT_OWNER_NAME,
    FIELD_SCHEMAS,
    FieldValue,
    ListFields,
    Record,
    RecordFields,
    RecordID,
    RecordLocation,
    RecordType,
    Reference,
    ReferenceAction,
    ShareFields,
    TodoFields,
    ZoneID,
)

__all__ = [
    "AppConfig",
    "DEFAULT_OWNER_NAME",
    "ErrorPolicy",
    "FIELD_SCHEMAS",
    "FieldValue",
    "ListFields",
    "LoggingConfig",
    "Record",
    "RecordFields",
    "RecordID",
    "RecordLocation",
    "RecordType",
    "Reference",
    "ReferenceAction",
    "RemoteStoreConfig",
    "RetryConfig",
    "ShareFields",
    "SyncConfig",
    "TodoFields",
    "ZoneID",
]
