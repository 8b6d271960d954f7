"""Exceptions raised by the sync engine."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from checkmate_sync.sync.error_classifier import RetryStrategy


class SyncEngineError(Exception):
    """Base exception for sync engine errors."""

    pass


class LocalSyncError(SyncEngineError):
    """Raised for failures detected locally, before any remote call."""

    pass


class ZoneNotKnownError(LocalSyncError):
    """Raised when a record is created before its zone has been discovered."""

    def __init__(self, zone_name: str):
        super().__init__(
            f"Zone '{zone_name}' is not known yet. Run a sync or start the engine first."
        )
        self.zone_name = zone_name


class InvalidRecordFieldsError(LocalSyncError):
    """Raised when record fields do not match the schema of the record type."""

    pass


class RemoteOperationError(SyncEngineError):
    """Raised when a remote operation fails; carries the classified strategy."""

    def __init__(self, operation: str, strategy: "RetryStrategy", message: str = ""):
        super().__init__(message or f"{operation} failed: {strategy.kind.value}")
        self.operation = operation
        self.strategy = strategy
