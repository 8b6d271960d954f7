"""Remote record store interface, error codes and the in-memory implementation"""

from checkmate_sync.remote.client import (
    DatabaseChangesPage,
    ModifyResult,
    RecordChanged,
    RecordDeleted,
    RemoteStoreClient,
    ShareMetadata,
    ZoneChange,
    ZoneChangeEvent,
    ZoneChangeKind,
    ZoneFetchCompleted,
    ZoneFetchRequest,
)
from checkmate_sync.remote.errors import ErrorCode, RemoteStoreError
from checkmate_sync.remote.memory import InMemoryRemoteStore

__all__ = [
    "DatabaseChangesPage",
    "ErrorCode",
    "InMemoryRemoteStore",
    "ModifyResult",
    "RecordChanged",
    "RecordDeleted",
    "RemoteStoreClient",
    "RemoteStoreError",
    "ShareMetadata",
    "ZoneChange",
    "ZoneChangeEvent",
    "ZoneChangeKind",
    "ZoneFetchCompleted",
    "ZoneFetchRequest",
]
