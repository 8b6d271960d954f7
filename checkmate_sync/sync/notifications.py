"""Typed "records changed" events and their broadcaster."""

import threading
from enum import Enum
from typing import Callable

import structlog
from pydantic import BaseModel, ConfigDict, Field

from checkmate_sync.models.record import RecordID, RecordLocation, ZoneID

log = structlog.stdlib.get_logger()


class ChangeKind(str, Enum):
    RECORDS_UPSERTED = "records_upserted"
    RECORDS_DELETED = "records_deleted"
    ZONES_PURGED = "zones_purged"


class RecordsChanged(BaseModel):
    """Published once per logical sync or write that touched the cache.

    Listeners may re-read the cache views, or use the identifiers carried here
    to avoid a full re-read.
    """

    model_config = ConfigDict(frozen=True)

    location: RecordLocation = Field(default=..., description="Database the change came from")
    upserted: list[RecordID] = Field(default_factory=list, description="Records added or replaced")
    deleted: list[RecordID] = Field(default_factory=list, description="Records removed")
    purged_zones: list[ZoneID] = Field(
        default_factory=list, description="Zones whose records were all dropped"
    )

    @property
    def kinds(self) -> set[ChangeKind]:
        kinds = set()
        if self.upserted:
            kinds.add(ChangeKind.RECORDS_UPSERTED)
        if self.deleted:
            kinds.add(ChangeKind.RECORDS_DELETED)
        if self.purged_zones:
            kinds.add(ChangeKind.ZONES_PURGED)
        return kinds


Listener = Callable[[RecordsChanged], object]


class ChangeNotifier:
    """Broadcasts RecordsChanged events to subscribed listeners."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``. Returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: RecordsChanged) -> None:
        with self._lock:
            listeners = list(self._listeners)

        log.info(
            "records_changed",
            location=event.location.value,
            upserted=len(event.upserted),
            deleted=len(event.deleted),
            purged_zones=len(event.purged_zones),
            listeners=len(listeners),
        )

        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                log.error(
                    "change_listener_failed",
                    listener=getattr(listener, "__name__", repr(listener)),
                    error=str(e),
                )
