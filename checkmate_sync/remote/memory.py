"""In-memory implementation of the remote record store.

Keeps per-database zone logs and per-zone record logs so cursors behave like
the real service: a cursor is a position in a log, a fetch returns what
happened after it, and expired cursors are rejected. Fault injection helpers
let callers script failures for individual operations.
"""

import asyncio
import itertools
from collections import Counter, deque
from typing import AsyncIterator, Hashable
from uuid import uuid4

import structlog

from checkmate_sync.models.record import (
    Record,
    RecordID,
    RecordLocation,
    RecordType,
    Reference,
    ReferenceAction,
    ZoneID,
)
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

log = structlog.stdlib.get_logger()


class _ZoneState:
    def __init__(self, zone_id: ZoneID, seq: int = 0):
        self.zone_id = zone_id
        self.records: dict[RecordID, Record] = {}
        # (sequence, record_id, record_type) per save or delete
        self.log: list[tuple[int, RecordID, RecordType]] = []
        self.seq = seq

    def append(self, record_id: RecordID, record_type: RecordType) -> None:
        self.seq += 1
        self.log.append((self.seq, record_id, record_type))


class _DatabaseState:
    def __init__(self) -> None:
        self.zones: dict[ZoneID, _ZoneState] = {}
        # (sequence, zone_id, kind) per zone membership change
        self.log: list[tuple[int, ZoneID, ZoneChangeKind]] = []
        self.seq = 0

    def append(self, zone_id: ZoneID, kind: ZoneChangeKind) -> None:
        self.seq += 1
        self.log.append((self.seq, zone_id, kind))

    def last_change(self, zone_id: ZoneID) -> int:
        return max((seq for seq, zid, _ in self.log if zid == zone_id), default=0)


class InMemoryRemoteStore(RemoteStoreClient):
    """Remote record store held entirely in memory."""

    def __init__(self, default_page_size: int | None = None):
        """
        Initialize in-memory remote store.

        Args:
            default_page_size: Zone changes per database-change page when the
                caller does not ask for a page size (None: unpaged)
        """
        self._databases: dict[RecordLocation, _DatabaseState] = {
            location: _DatabaseState() for location in RecordLocation
        }
        self._history: dict[tuple[RecordID, str], Record] = {}
        self._tags = itertools.count(1)
        self._epoch = 1
        self._failures: dict[str, deque[RemoteStoreError]] = {}
        self._zone_failures: dict[ZoneID, deque[RemoteStoreError]] = {}
        self.default_page_size = default_page_size
        self.calls: Counter[str] = Counter()
        self.subscriptions: set[RecordLocation] = set()
        self.accepted_shares: list[ShareMetadata] = []
        # Set completion_gate to hold every zone completion until it is set;
        # gate_reached fires when a fetch is waiting on it.
        self.completion_gate: asyncio.Event | None = None
        self.gate_reached = asyncio.Event()

        log.info("in_memory_remote_store_initialized", page_size=default_page_size)

    # Fault injection and inspection

    def fail_next(self, operation: str, error: RemoteStoreError, times: int = 1) -> None:
        """Make the next ``times`` calls of ``operation`` raise ``error``."""
        queue = self._failures.setdefault(operation, deque())
        queue.extend([error] * times)

    def fail_zone_next(self, zone_id: ZoneID, error: RemoteStoreError) -> None:
        """Make the next fetch of ``zone_id`` complete with ``error``."""
        self._zone_failures.setdefault(zone_id, deque()).append(error)

    def expire_cursors(self) -> None:
        """Invalidate every cursor handed out so far."""
        self._epoch += 1
        log.info("remote_cursors_expired", epoch=self._epoch)

    def server_record(self, location: RecordLocation, record_id: RecordID) -> Record | None:
        zone = self._databases[location].zones.get(record_id.zone_id)
        return zone.records.get(record_id) if zone else None

    def server_records(self, location: RecordLocation) -> list[Record]:
        return [
            record
            for zone in self._databases[location].zones.values()
            for record in zone.records.values()
        ]

    # Server-side changes made by "other devices"

    def create_zone(self, location: RecordLocation, zone_id: ZoneID) -> None:
        db = self._databases[location]
        if zone_id not in db.zones:
            db.zones[zone_id] = _ZoneState(zone_id)
            db.append(zone_id, ZoneChangeKind.CHANGED)

    def seed(self, location: RecordLocation, records: list[Record]) -> list[Record]:
        """Write records server-side, bypassing conflict checks."""
        stored = []
        for record in records:
            self.create_zone(location, record.zone_id)
            stored.append(self._store(location, record))
        return stored

    def delete_server_record(self, location: RecordLocation, record_id: RecordID) -> None:
        self._delete(location, record_id)

    def purge_zone(self, location: RecordLocation, zone_id: ZoneID) -> None:
        """Drop every record of a zone and report the zone as purged."""
        db = self._databases[location]
        previous = db.zones.get(zone_id)
        # sequence keeps rising so cursors from before the purge stay valid
        db.zones[zone_id] = _ZoneState(zone_id, seq=previous.seq if previous else 0)
        db.append(zone_id, ZoneChangeKind.PURGED)

    def delete_zone(self, location: RecordLocation, zone_id: ZoneID) -> None:
        db = self._databases[location]
        db.zones.pop(zone_id, None)
        db.append(zone_id, ZoneChangeKind.DELETED)

    # RemoteStoreClient

    async def fetch_database_changes(
        self, location: RecordLocation, cursor: str | None, page_size: int | None = None
    ) -> DatabaseChangesPage:
        self._begin("fetch_database_changes")
        await asyncio.sleep(0)
        db = self._databases[location]
        page_size = page_size or self.default_page_size

        if cursor is None:
            entries = sorted(
                ((db.last_change(zone_id), zone_id, ZoneChangeKind.CHANGED) for zone_id in db.zones),
                key=lambda entry: entry[0],
            )
        else:
            since = self._decode_cursor(cursor, db.seq)
            entries = [entry for entry in db.log if entry[0] > since]

        page = entries if page_size is None else entries[:page_size]
        more_coming = len(page) < len(entries)
        next_seq = page[-1][0] if more_coming else db.seq

        # A purge or deletion followed by new writes is reported as both, in order
        collapsed: dict[ZoneID, list[ZoneChangeKind]] = {}
        for _, zone_id, kind in page:
            kinds = collapsed.pop(zone_id, [])
            if kind is ZoneChangeKind.CHANGED:
                kinds = [k for k in kinds if k is not ZoneChangeKind.CHANGED] + [kind]
            else:
                kinds = [kind]
            collapsed[zone_id] = kinds

        return DatabaseChangesPage(
            changes=[
                ZoneChange(zone_id=zone_id, kind=kind)
                for zone_id, kinds in collapsed.items()
                for kind in kinds
            ],
            cursor=self._encode_cursor(next_seq),
            more_coming=more_coming,
        )

    async def fetch_zone_changes(
        self, location: RecordLocation, requests: list[ZoneFetchRequest]
    ) -> AsyncIterator[ZoneChangeEvent]:
        self._begin("fetch_zone_changes")
        db = self._databases[location]

        for request in requests:
            await asyncio.sleep(0)
            zone = db.zones.get(request.zone_id)

            injected = self._zone_failures.get(request.zone_id)
            if injected:
                yield ZoneFetchCompleted(zone_id=request.zone_id, error=injected.popleft())
                continue

            if zone is None:
                yield ZoneFetchCompleted(
                    zone_id=request.zone_id,
                    error=RemoteStoreError(
                        ErrorCode.ZONE_NOT_FOUND, f"Zone {request.zone_id} does not exist"
                    ),
                )
                continue

            try:
                since = 0 if request.cursor is None else self._decode_cursor(request.cursor, zone.seq)
            except RemoteStoreError as e:
                yield ZoneFetchCompleted(zone_id=request.zone_id, error=e)
                continue

            latest: dict[RecordID, tuple[int, RecordType]] = {}
            for seq, record_id, record_type in zone.log:
                if seq > since:
                    latest.pop(record_id, None)
                    latest[record_id] = (seq, record_type)

            entries = list(latest.items())
            if request.results_limit is not None:
                batch = entries[: request.results_limit]
            else:
                batch = entries
            more_coming = len(batch) < len(entries)

            for record_id, (_, record_type) in batch:
                record = zone.records.get(record_id)
                if record is not None:
                    yield RecordChanged(record=record)
                elif request.cursor is not None:
                    yield RecordDeleted(record_id=record_id, record_type=record_type)
                await asyncio.sleep(0)

            if self.completion_gate is not None:
                self.gate_reached.set()
                await self.completion_gate.wait()

            next_seq = batch[-1][1][0] if more_coming else zone.seq
            yield ZoneFetchCompleted(
                zone_id=request.zone_id,
                cursor=self._encode_cursor(next_seq),
                more_coming=more_coming,
            )

    async def modify_records(
        self,
        location: RecordLocation,
        to_save: list[Record],
        to_delete: list[RecordID],
        atomic: bool = False,
    ) -> ModifyResult:
        self._begin("modify_records")
        await asyncio.sleep(0)
        db = self._databases[location]

        errors: dict[Hashable, RemoteStoreError] = {}
        for record in to_save:
            error = self._check_save(db, record)
            if error is not None:
                errors[record.record_id] = error
        for record_id in to_delete:
            zone = db.zones.get(record_id.zone_id)
            if zone is None:
                errors[record_id] = RemoteStoreError(ErrorCode.ZONE_NOT_FOUND, str(record_id.zone_id))
            elif record_id not in zone.records:
                errors[record_id] = RemoteStoreError(ErrorCode.UNKNOWN_ITEM, str(record_id))

        item_count = len(to_save) + len(to_delete)
        if errors and item_count == 1:
            raise next(iter(errors.values()))
        if errors and atomic:
            for record in to_save:
                errors.setdefault(record.record_id, RemoteStoreError(ErrorCode.BATCH_REQUEST_FAILED))
            for record_id in to_delete:
                errors.setdefault(record_id, RemoteStoreError(ErrorCode.BATCH_REQUEST_FAILED))
            raise RemoteStoreError(
                ErrorCode.PARTIAL_FAILURE, "Atomic batch rejected", partial_errors=errors
            )

        saved = [
            self._store(location, record) for record in to_save if record.record_id not in errors
        ]
        deleted = [record_id for record_id in to_delete if record_id not in errors]
        for record_id in deleted:
            self._delete(location, record_id)

        if errors:
            raise RemoteStoreError(
                ErrorCode.PARTIAL_FAILURE,
                f"{len(errors)} of {item_count} items failed",
                partial_errors=errors,
            )
        return ModifyResult(saved=saved, deleted=deleted)

    async def create_share(self, record: Record) -> Record:
        self._begin("create_share")
        share_id = RecordID(record_name=f"share-{uuid4()}", zone_id=record.zone_id)
        return Record(
            record_id=share_id,
            record_type=RecordType.SHARE,
            location=record.location,
            fields={"rootRecord": Reference(record_id=record.record_id)},
        )

    async def save_zones(self, location: RecordLocation, zone_ids: list[ZoneID]) -> list[ZoneID]:
        self._begin("save_zones")
        for zone_id in zone_ids:
            self.create_zone(location, zone_id)
        return list(zone_ids)

    async def subscribe_to_database(self, location: RecordLocation) -> None:
        self._begin("subscribe_to_database")
        self.subscriptions.add(location)

    async def accept_shares(self, metadatas: list[ShareMetadata]) -> None:
        self._begin("accept_shares")
        self.accepted_shares.extend(metadatas)

    # Internals

    def _begin(self, operation: str) -> None:
        self.calls[operation] += 1
        queue = self._failures.get(operation)
        if queue:
            error = queue.popleft()
            log.debug("injected_failure", operation=operation, error_code=error.code.value)
            raise error

    def _encode_cursor(self, seq: int) -> str:
        return f"{self._epoch}:{seq}"

    def _decode_cursor(self, cursor: str, current_seq: int) -> int:
        try:
            epoch_text, seq_text = cursor.split(":", 1)
            epoch, seq = int(epoch_text), int(seq_text)
        except ValueError as e:
            raise RemoteStoreError(ErrorCode.INVALID_ARGUMENTS, f"Malformed cursor {cursor!r}") from e
        if epoch != self._epoch or seq > current_seq:
            raise RemoteStoreError(ErrorCode.CHANGE_TOKEN_EXPIRED, "Change token expired")
        return seq

    def _check_save(self, db: _DatabaseState, record: Record) -> RemoteStoreError | None:
        zone = db.zones.get(record.zone_id)
        if zone is None:
            return RemoteStoreError(ErrorCode.ZONE_NOT_FOUND, str(record.zone_id))

        existing = zone.records.get(record.record_id)
        if existing is None:
            if record.change_tag is not None:
                return RemoteStoreError(ErrorCode.UNKNOWN_ITEM, str(record.record_id))
            return None

        if record.change_tag != existing.change_tag:
            return RemoteStoreError(
                ErrorCode.SERVER_RECORD_CHANGED,
                f"Record {record.record_id} was modified on the server",
                ancestor_record=self._history.get((record.record_id, record.change_tag or "")),
                server_record=existing,
                client_record=record,
            )
        if existing.share is not None and record.share is not None and existing.share != record.share:
            return RemoteStoreError(ErrorCode.ALREADY_SHARED, str(record.record_id))
        return None

    def _store(self, location: RecordLocation, record: Record) -> Record:
        zone = self._databases[location].zones[record.zone_id]
        tag = f"ct-{next(self._tags)}"
        stored = record.model_copy(update={"change_tag": tag, "location": location})
        zone.records[record.record_id] = stored
        zone.append(record.record_id, stored.record_type)
        self._history[(record.record_id, tag)] = stored
        self._databases[location].append(record.zone_id, ZoneChangeKind.CHANGED)
        return stored

    def _delete(self, location: RecordLocation, record_id: RecordID) -> None:
        db = self._databases[location]
        zone = db.zones.get(record_id.zone_id)
        if zone is None or record_id not in zone.records:
            return

        removed = zone.records.pop(record_id)
        zone.append(record_id, removed.record_type)
        db.append(record_id.zone_id, ZoneChangeKind.CHANGED)

        for other in list(zone.records.values()):
            if other.share is not None and other.share.record_id == record_id:
                self._store(location, other.model_copy(update={"share": None}))

        # delete-self references cascade
        dependents = [
            other.record_id
            for other in zone.records.values()
            if any(
                ref.record_id == record_id and ref.action is ReferenceAction.DELETE_SELF
                for ref in other.references()
            )
        ]
        for dependent in dependents:
            self._delete(location, dependent)
