"""Data models for synchronization operations."""

from datetime import datetime

from pydantic import BaseModel, Field

from checkmate_sync.exceptions import RemoteOperationError
from checkmate_sync.models.record import Record, RecordID, RecordLocation, ZoneID
from checkmate_sync.sync.error_classifier import RetryStrategy


class ZoneDelta(BaseModel):
    """Record changes received for one zone, applied only once the zone completes."""

    zone_id: ZoneID
    changed: dict[RecordID, Record] = Field(default_factory=dict)
    deleted: dict[RecordID, None] = Field(default_factory=dict)

    def record_changed(self, record: Record) -> None:
        self.deleted.pop(record.record_id, None)
        self.changed[record.record_id] = record

    def record_deleted(self, record_id: RecordID) -> None:
        self.changed.pop(record_id, None)
        self.deleted[record_id] = None

    @property
    def has_changes(self) -> bool:
        return bool(self.changed or self.deleted)


class SyncReport(BaseModel):
    """Report of one database's synchronization."""

    location: RecordLocation = Field(..., description="Database that was synced")
    zones_changed: list[ZoneID] = Field(
        default_factory=list, description="Zones reported as changed"
    )
    zones_purged: list[ZoneID] = Field(
        default_factory=list, description="Zones reported as purged or deleted"
    )
    records_upserted: int = Field(default=0, ge=0, description="Records added or replaced")
    records_deleted: int = Field(default=0, ge=0, description="Records removed")
    zone_fetch_performed: bool = Field(
        default=False, description="Whether a record-delta fetch was issued"
    )
    notified: bool = Field(default=False, description="Whether a change event was published")
    duration_seconds: float = Field(default=0.0, ge=0.0, description="Sync duration in seconds")
    start_time: datetime = Field(..., description="Sync start timestamp")
    end_time: datetime = Field(..., description="Sync end timestamp")
    strategy: RetryStrategy | None = Field(
        default=None, description="Classified failure, None on success"
    )
    errors: list[str] = Field(
        default_factory=list, description="List of errors encountered during sync"
    )

    @property
    def total_changes(self) -> int:
        return self.records_upserted + self.records_deleted + len(self.zones_purged)

    @property
    def success(self) -> bool:
        """Check if sync completed without errors."""
        return self.strategy is None and len(self.errors) == 0

    def raise_for_strategy(self) -> None:
        """Raise RemoteOperationError if this sync failed."""
        if self.strategy is not None:
            raise RemoteOperationError(
                f"fetch_updates({self.location.value})",
                self.strategy,
                "; ".join(self.errors) or "",
            )
