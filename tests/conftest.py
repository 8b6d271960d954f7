"""Shared fixtures for sync engine tests."""

import pytest

from checkmate_sync.engine import CloudSyncEngine
from checkmate_sync.models.record import (
    Record,
    RecordID,
    RecordLocation,
    RecordType,
    Reference,
    ReferenceAction,
    ZoneID,
)
from checkmate_sync.remote.memory import InMemoryRemoteStore
from checkmate_sync.sync.notifications import RecordsChanged


@pytest.fixture
def todos_zone() -> ZoneID:
    return ZoneID(zone_name="todos")


@pytest.fixture
def store() -> InMemoryRemoteStore:
    return InMemoryRemoteStore()


@pytest.fixture
def engine(store: InMemoryRemoteStore) -> CloudSyncEngine:
    return CloudSyncEngine(store)


@pytest.fixture
def events(engine: CloudSyncEngine) -> list[RecordsChanged]:
    """Every RecordsChanged event the engine publishes."""
    received: list[RecordsChanged] = []
    engine.subscribe(received.append)
    return received


@pytest.fixture
def list_record(todos_zone: ZoneID) -> Record:
    return Record(
        record_id=RecordID(record_name="L1", zone_id=todos_zone),
        record_type=RecordType.LIST,
        fields={"title": "Groceries"},
    )


@pytest.fixture
def todo_record(todos_zone: ZoneID, list_record: Record) -> Record:
    return Record(
        record_id=RecordID(record_name="T1", zone_id=todos_zone),
        record_type=RecordType.TODO,
        fields={
            "title": "Milk",
            "note": "",
            "list": Reference.to(list_record, ReferenceAction.DELETE_SELF),
        },
        parent=Reference.to(list_record),
    )


@pytest.fixture
def seeded(
    store: InMemoryRemoteStore, list_record: Record, todo_record: Record
) -> tuple[Record, Record]:
    """L1 and T1 stored server-side in the private database, as stored."""
    stored_list, stored_todo = store.seed(RecordLocation.PRIVATE, [list_record, todo_record])
    return stored_list, stored_todo
