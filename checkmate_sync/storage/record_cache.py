"""In-memory cache of records confirmed by the remote store."""

import threading
from typing import Iterable

import structlog

from checkmate_sync.models.record import Record, RecordID, RecordType, Reference, ZoneID

log = structlog.stdlib.get_logger()


class RecordCache:
    """Single source of truth the UI reads.

    Holds at most one record per RecordID; an upsert atomically supersedes the
    previous entry. All access is guarded by a re-entrant lock so readers on
    other threads can query while the event loop applies sync results.

    The cache never emits change notifications itself; the component that
    mutates it publishes one event per logical sync or write.
    """

    def __init__(self) -> None:
        self._records: dict[RecordID, Record] = {}
        self._lock = threading.RLock()

    def upsert(self, record: Record) -> None:
        """Replace any entry with the same identifier and append ``record``."""
        with self._lock:
            self._records.pop(record.record_id, None)
            self._records[record.record_id] = record
        log.debug(
            "record_cached",
            record_id=str(record.record_id),
            record_type=record.record_type.value,
            location=record.location.value,
        )

    def upsert_many(self, records: Iterable[Record]) -> None:
        with self._lock:
            for record in records:
                self.upsert(record)

    def remove(self, record_id: RecordID) -> bool:
        """Delete the entry if present. Returns True when something was removed."""
        with self._lock:
            removed = self._records.pop(record_id, None) is not None
        if removed:
            log.debug("record_uncached", record_id=str(record_id))
        return removed

    def remove_zone(self, zone_id: ZoneID) -> list[RecordID]:
        """Drop every record cached from ``zone_id``."""
        with self._lock:
            doomed = [rid for rid in self._records if rid.zone_id == zone_id]
            for record_id in doomed:
                del self._records[record_id]
        log.info("zone_records_uncached", zone_id=str(zone_id), count=len(doomed))
        return doomed

    def clear(self) -> int:
        """Empty the cache. Returns the number of records dropped."""
        with self._lock:
            count = len(self._records)
            self._records.clear()
        log.info("record_cache_cleared", count=count)
        return count

    def get(self, record_id: RecordID) -> Record | None:
        with self._lock:
            return self._records.get(record_id)

    def __contains__(self, record_id: object) -> bool:
        with self._lock:
            return record_id in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def record_ids(self) -> set[RecordID]:
        with self._lock:
            return set(self._records)

    def records(self, record_type: RecordType | None = None) -> list[Record]:
        """Snapshot of cached records, optionally filtered by type tag."""
        with self._lock:
            if record_type is None:
                return list(self._records.values())
            return [r for r in self._records.values() if r.record_type is record_type]

    def lists(self) -> list[Record]:
        return self.records(RecordType.LIST)

    def todos(self) -> list[Record]:
        return self.records(RecordType.TODO)

    def shares(self) -> list[Record]:
        return self.records(RecordType.SHARE)

    def todos_in_list(self, list_id: RecordID) -> list[Record]:
        """Todos whose ``list`` reference points at ``list_id``."""
        todos = []
        for todo in self.todos():
            reference = todo.get("list")
            if isinstance(reference, Reference) and reference.record_id == list_id:
                todos.append(todo)
        return todos
