"""Abstract remote record store client and the models it exchanges."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import AsyncIterator, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from checkmate_sync.models.record import Record, RecordID, RecordLocation, RecordType, ZoneID
from checkmate_sync.remote.errors import RemoteStoreError


class ZoneChangeKind(str, Enum):
    CHANGED = "changed"
    PURGED = "purged"
    DELETED = "deleted"


class ZoneChange(BaseModel):
    """A zone-membership change reported by a database-change fetch."""

    zone_id: ZoneID
    kind: ZoneChangeKind = ZoneChangeKind.CHANGED


class DatabaseChangesPage(BaseModel):
    """One page of a database-change fetch."""

    changes: list[ZoneChange] = Field(default_factory=list)
    cursor: str = Field(default=..., description="Cursor covering this page")
    more_coming: bool = Field(default=False, description="Fetch again with ``cursor`` if True")


class ZoneFetchRequest(BaseModel):
    """Per-zone part of a combined record-delta fetch."""

    zone_id: ZoneID
    cursor: str | None = Field(default=None, description="None fetches the whole zone")
    results_limit: int | None = Field(default=None, ge=1)


class RecordChanged(BaseModel):
    event: Literal["record_changed"] = "record_changed"
    record: Record


class RecordDeleted(BaseModel):
    event: Literal["record_deleted"] = "record_deleted"
    record_id: RecordID
    record_type: RecordType = RecordType.UNKNOWN


class ZoneFetchCompleted(BaseModel):
    """Signals that every change of one zone for this round has been delivered."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    event: Literal["zone_fetch_completed"] = "zone_fetch_completed"
    zone_id: ZoneID
    cursor: str | None = None
    more_coming: bool = False
    error: RemoteStoreError | None = None


ZoneChangeEvent = Union[RecordChanged, RecordDeleted, ZoneFetchCompleted]


class ModifyResult(BaseModel):
    """Outcome of a successful batch write."""

    saved: list[Record] = Field(default_factory=list, description="Server versions of saved records")
    deleted: list[RecordID] = Field(default_factory=list, description="Identifiers actually deleted")


class ShareMetadata(BaseModel):
    """Describes a share another user invited us to."""

    share_record_id: RecordID
    root_record_id: RecordID
    owner_name: str


class RemoteStoreClient(ABC):
    """Abstract interface to the remote record store.

    Every method raises RemoteStoreError on failure. Implementations translate
    their transport errors into RemoteStoreError codes so the engine can
    classify them uniformly.
    """

    @abstractmethod
    async def fetch_database_changes(
        self, location: RecordLocation, cursor: str | None, page_size: int | None = None
    ) -> DatabaseChangesPage:
        """Fetch one page of zone changes since ``cursor``.

        Args:
            location: Database to query
            cursor: Last database cursor seen, None for everything
            page_size: Maximum number of zone changes in the page

        Returns:
            Page of zone changes; call again with its cursor while ``more_coming``
        """

    @abstractmethod
    def fetch_zone_changes(
        self, location: RecordLocation, requests: list[ZoneFetchRequest]
    ) -> AsyncIterator[ZoneChangeEvent]:
        """Stream record changes for several zones in one combined request.

        Zones may complete in any order. Each zone's changes are followed by a
        ZoneFetchCompleted for that zone carrying its new cursor or its error.
        """

    @abstractmethod
    async def modify_records(
        self,
        location: RecordLocation,
        to_save: list[Record],
        to_delete: list[RecordID],
        atomic: bool = False,
    ) -> ModifyResult:
        """Save and delete records in one batch.

        Args:
            location: Database to write to
            to_save: Records to create or update
            to_delete: Identifiers to delete
            atomic: If True, either every item succeeds or none is applied

        Raises:
            RemoteStoreError: PARTIAL_FAILURE carries the per-item errors
        """

    @abstractmethod
    async def create_share(self, record: Record) -> Record:
        """Build (without saving) a share object rooted at ``record``."""

    @abstractmethod
    async def save_zones(self, location: RecordLocation, zone_ids: list[ZoneID]) -> list[ZoneID]:
        """Create zones if they do not exist. Returns the zones that now exist."""

    @abstractmethod
    async def subscribe_to_database(self, location: RecordLocation) -> None:
        """Ensure change pushes are delivered for ``location``. Idempotent."""

    @abstractmethod
    async def accept_shares(self, metadatas: list[ShareMetadata]) -> None:
        """Accept share invitations so their zones appear in the shared database."""
