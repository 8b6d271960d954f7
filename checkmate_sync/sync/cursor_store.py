"""Change cursor tracking for incremental fetches."""

import threading
from typing import Callable

import structlog
from pydantic import BaseModel, Field

from checkmate_sync.models.record import RecordLocation, ZoneID

log = structlog.stdlib.get_logger()

ZoneInvalidatedCallback = Callable[[ZoneID], object]


class ZoneCursor(BaseModel):
    """A zone-level cursor, serialisable without tuple keys."""

    zone_id: ZoneID
    cursor: str


class CursorSnapshot(BaseModel):
    """Exported cursor state a host can persist between runs."""

    database_cursors: dict[RecordLocation, str] = Field(default_factory=dict)
    zone_cursors: list[ZoneCursor] = Field(default_factory=list)
    pending_zones: dict[RecordLocation, list[ZoneID]] = Field(default_factory=dict)
    known_zones: list[ZoneID] = Field(default_factory=list)


class CursorStore:
    """Holds the last-seen change cursor per database and per zone.

    An absent cursor means "fetch everything". Besides the cursors the store
    tracks which zones a database-change fetch reported as changed but whose
    record deltas have not been fetched yet (pending), and which zones are known
    to exist.
    """

    def __init__(self, on_zone_invalidated: ZoneInvalidatedCallback | None = None):
        """
        Initialize cursor store.

        Args:
            on_zone_invalidated: Called with the zone ID whenever a zone is
                invalidated, so cached records of that zone can be purged
        """
        self._database_cursors: dict[RecordLocation, str] = {}
        self._zone_cursors: dict[ZoneID, str] = {}
        self._pending_zones: dict[RecordLocation, dict[ZoneID, None]] = {}
        self._known_zones: set[ZoneID] = set()
        self._on_zone_invalidated = on_zone_invalidated
        self._lock = threading.RLock()

    # Database cursors

    def get_database_cursor(self, location: RecordLocation) -> str | None:
        with self._lock:
            return self._database_cursors.get(location)

    def set_database_cursor(self, location: RecordLocation, cursor: str) -> None:
        with self._lock:
            self._database_cursors[location] = cursor
        log.debug("database_cursor_saved", location=location.value)

    # Zone cursors

    def get_zone_cursor(self, zone_id: ZoneID) -> str | None:
        with self._lock:
            return self._zone_cursors.get(zone_id)

    def set_zone_cursor(self, zone_id: ZoneID, cursor: str) -> None:
        with self._lock:
            self._zone_cursors[zone_id] = cursor
        log.debug("zone_cursor_saved", zone_id=str(zone_id))

    # Pending and known zones

    def add_pending_zone(self, location: RecordLocation, zone_id: ZoneID) -> None:
        with self._lock:
            self._pending_zones.setdefault(location, {})[zone_id] = None
            self._known_zones.add(zone_id)

    def discard_pending_zone(self, location: RecordLocation, zone_id: ZoneID) -> None:
        with self._lock:
            self._pending_zones.get(location, {}).pop(zone_id, None)

    def pending_zones(self, location: RecordLocation) -> list[ZoneID]:
        """Zones awaiting a record-delta fetch, in discovery order."""
        with self._lock:
            return list(self._pending_zones.get(location, {}))

    def mark_zone_known(self, zone_id: ZoneID) -> None:
        with self._lock:
            self._known_zones.add(zone_id)

    def is_zone_known(self, zone_id: ZoneID) -> bool:
        with self._lock:
            return zone_id in self._known_zones

    # Invalidation

    def invalidate_zone(self, zone_id: ZoneID) -> None:
        """Forget everything about a purged or deleted zone and purge its records."""
        with self._lock:
            self._zone_cursors.pop(zone_id, None)
            self._known_zones.discard(zone_id)
            for pending in self._pending_zones.values():
                pending.pop(zone_id, None)

        log.info("zone_invalidated", zone_id=str(zone_id))

        if self._on_zone_invalidated is not None:
            self._on_zone_invalidated(zone_id)

    def invalidate_all(self) -> None:
        """Drop every database and zone cursor, forcing a full re-fetch."""
        with self._lock:
            database_count = len(self._database_cursors)
            zone_count = len(self._zone_cursors)
            self._database_cursors.clear()
            self._zone_cursors.clear()
            self._pending_zones.clear()

        log.warning(
            "all_cursors_invalidated",
            database_cursors=database_count,
            zone_cursors=zone_count,
        )

    # Persistence

    def snapshot(self) -> CursorSnapshot:
        with self._lock:
            return CursorSnapshot(
                database_cursors=dict(self._database_cursors),
                zone_cursors=[
                    ZoneCursor(zone_id=zone_id, cursor=cursor)
                    for zone_id, cursor in self._zone_cursors.items()
                ],
                pending_zones={
                    location: list(zones) for location, zones in self._pending_zones.items()
                },
                known_zones=list(self._known_zones),
            )

    def restore(self, snapshot: CursorSnapshot) -> None:
        """Replace the current state with ``snapshot``."""
        with self._lock:
            self._database_cursors = dict(snapshot.database_cursors)
            self._zone_cursors = {zc.zone_id: zc.cursor for zc in snapshot.zone_cursors}
            self._pending_zones = {
                location: dict.fromkeys(zones)
                for location, zones in snapshot.pending_zones.items()
            }
            self._known_zones = set(snapshot.known_zones)

        log.info(
            "cursor_state_restored",
            database_cursors=len(snapshot.database_cursors),
            zone_cursors=len(snapshot.zone_cursors),
        )
