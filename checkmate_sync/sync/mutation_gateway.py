"""Confirmed writes: create, update and delete records through the remote store."""

from typing import Any, Mapping

import structlog
from pydantic import ValidationError

from checkmate_sync.exceptions import (
    InvalidRecordFieldsError,
    LocalSyncError,
    RemoteOperationError,
    ZoneNotKnownError,
)
from checkmate_sync.models.config import ErrorPolicy
from checkmate_sync.models.record import (
    FIELD_SCHEMAS,
    Record,
    RecordFields,
    RecordID,
    RecordLocation,
    RecordType,
    Reference,
    TodoFields,
    ZoneID,
)
from checkmate_sync.remote.client import RemoteStoreClient
from checkmate_sync.remote.errors import ErrorCode, RemoteStoreError
from checkmate_sync.storage.record_cache import RecordCache
from checkmate_sync.sync.cursor_store import CursorStore
from checkmate_sync.sync.error_classifier import classify
from checkmate_sync.sync.notifications import ChangeNotifier, RecordsChanged

log = structlog.stdlib.get_logger()


class MutationGateway:
    """Funnels writes to the remote store and reconciles the cache from its response.

    The cache is only updated after the remote store confirms a write, and
    always with the server's version of each record. A failed write leaves the
    cache untouched and raises RemoteOperationError carrying the classified
    strategy.
    """

    def __init__(
        self,
        client: RemoteStoreClient,
        cache: RecordCache,
        cursors: CursorStore,
        notifier: ChangeNotifier,
        well_known_zone: ZoneID,
        error_policy: ErrorPolicy = ErrorPolicy.RESILIENT,
    ):
        self._client = client
        self._cache = cache
        self._cursors = cursors
        self._notifier = notifier
        self._well_known_zone = well_known_zone
        self._error_policy = error_policy

    async def save(self, record: Record) -> Record:
        """
        Submit a single write and cache the server's version.

        Args:
            record: Record to create or update

        Returns:
            The record as stored by the server

        Raises:
            RemoteOperationError: If the remote store rejected the write or
                confirmed it without returning the saved record
        """
        saved = await self.save_records([record], record.location)
        for server_record in saved:
            if server_record.record_id == record.record_id:
                return server_record

        error = RemoteStoreError(
            ErrorCode.SERVER_RESPONSE_LOST,
            f"Write of {record.record_id} was confirmed without the saved record",
        )
        raise self._failure("save", error, record_id=str(record.record_id))

    async def save_records(
        self, records: list[Record], location: RecordLocation, atomic: bool = False
    ) -> list[Record]:
        """Submit several writes as one batch and cache every saved record."""
        log.info("saving_records", location=location.value, count=len(records), atomic=atomic)

        try:
            result = await self._client.modify_records(location, records, [], atomic=atomic)
        except RemoteStoreError as e:
            raise self._failure("save", e, count=len(records)) from e

        saved = [record.with_location(location) for record in result.saved]
        for record in saved:
            self._cache.upsert(record)

        log.info("records_saved", location=location.value, count=len(saved))
        self._notifier.publish(
            RecordsChanged(location=location, upserted=[record.record_id for record in saved])
        )
        return saved

    async def delete(self, record_id: RecordID, location: RecordLocation) -> list[RecordID]:
        """
        Delete a record and drop it from the cache once the deletion is confirmed.

        Args:
            record_id: Identifier of the record to delete
            location: Database the record is stored in

        Returns:
            Identifiers the remote store reported as deleted

        Raises:
            RemoteOperationError: If the remote store rejected the delete
        """
        log.info("deleting_record", record_id=str(record_id), location=location.value)

        try:
            result = await self._client.modify_records(location, [], [record_id])
        except RemoteStoreError as e:
            raise self._failure("delete", e, record_id=str(record_id)) from e

        for deleted_id in result.deleted:
            self._cache.remove(deleted_id)

        log.info("record_deleted", record_id=str(record_id), deleted=len(result.deleted))
        self._notifier.publish(RecordsChanged(location=location, deleted=list(result.deleted)))
        return list(result.deleted)

    async def create(
        self,
        record_type: RecordType,
        fields: RecordFields | Mapping[str, Any],
        location: RecordLocation = RecordLocation.PRIVATE,
        parent: Reference | None = None,
    ) -> Record:
        """
        Build a new record from typed fields and save it.

        A record with a parent is created in the parent's zone; otherwise it is
        created in the well-known zone, which must have been discovered first.
        A todo without an explicit parent uses its list as parent.

        Raises:
            InvalidRecordFieldsError: If ``fields`` do not fit the type's schema
            ZoneNotKnownError: If no sync or start-up has discovered the zone yet
            RemoteOperationError: If the remote store rejected the write
        """
        typed_fields = self._validate_fields(record_type, fields)

        if parent is None and isinstance(typed_fields, TodoFields):
            parent = Reference(record_id=typed_fields.list_ref.record_id)

        if parent is not None:
            zone_id = parent.record_id.zone_id
        elif location is RecordLocation.PRIVATE:
            if not self._cursors.is_zone_known(self._well_known_zone):
                log.warning("zone_not_known", zone_id=str(self._well_known_zone))
                raise ZoneNotKnownError(self._well_known_zone.zone_name)
            zone_id = self._well_known_zone
        else:
            raise LocalSyncError(
                f"Records created in the {location.value} database need a parent record"
            )

        record = Record(
            record_id=RecordID(zone_id=zone_id),
            record_type=record_type,
            location=location,
            fields=typed_fields.to_fields(),
            parent=parent,
        )
        log.info(
            "creating_record",
            record_id=str(record.record_id),
            record_type=record_type.value,
            location=location.value,
        )
        return await self.save(record)

    def _validate_fields(
        self, record_type: RecordType, fields: RecordFields | Mapping[str, Any]
    ) -> RecordFields:
        schema = FIELD_SCHEMAS.get(record_type)
        if schema is None or record_type is RecordType.SHARE:
            raise InvalidRecordFieldsError(f"Records of type '{record_type.value}' cannot be created")

        if isinstance(fields, RecordFields):
            if not isinstance(fields, schema):
                raise InvalidRecordFieldsError(
                    f"{type(fields).__name__} does not describe a '{record_type.value}' record"
                )
            return fields

        try:
            return schema.model_validate(dict(fields))
        except ValidationError as e:
            raise InvalidRecordFieldsError(
                f"Invalid fields for a '{record_type.value}' record: {e}"
            ) from e

    def _failure(self, operation: str, error: RemoteStoreError, **context: Any) -> RemoteOperationError:
        strategy = classify(error, self._error_policy)
        log.warning(
            "remote_operation_failed",
            operation=operation,
            strategy=strategy.kind.value,
            **context,
            **error.log_context(),
        )
        return RemoteOperationError(operation, strategy, error.message)
