"""CheckMate cloud sync engine.

Keeps a local cache of todo lists, todos and their shares consistent with a
remote record store, using incremental change cursors per database and zone.
"""

from checkmate_sync.engine import CloudSyncEngine
from checkmate_sync.exceptions import (
    InvalidRecordFieldsError,
    LocalSyncError,
    RemoteOperationError,
    SyncEngineError,
    ZoneNotKnownError,
)
from checkmate_sync.models import Record, RecordID, RecordLocation, RecordType, ZoneID
from checkmate_sync.remote import ErrorCode, RemoteStoreClient, RemoteStoreError
from checkmate_sync.sync import RecordsChanged, RetryStrategy, StrategyKind, SyncReport

__all__ = [
    "CloudSyncEngine",
    "ErrorCode",
    "InvalidRecordFieldsError",
    "LocalSyncError",
    "Record",
    "RecordID",
    "RecordLocation",
    "RecordType",
    "RecordsChanged",
    "RemoteOperationError",
    "RemoteStoreClient",
    "RemoteStoreError",
    "RetryStrategy",
    "StrategyKind",
    "SyncEngineError",
    "SyncReport",
    "ZoneID",
]
