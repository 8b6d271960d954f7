"""Property-based tests for record models and typed field schemas.

**Feature: checkmate-sync, Property 18: Unknown type names map to UNKNOWN**
**Feature: checkmate-sync, Property 19: Todo list references delete themselves**
"""

from datetime import datetime, timezone

import pytest
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from checkmate_sync.models.record import (
    DEFAULT_OWNER_NAME,
    ListFields,
    Record,
    RecordID,
    RecordLocation,
    RecordType,
    Reference,
    ReferenceAction,
    ShareFields,
    TodoFields,
    ZoneID,
)

TODOS = ZoneID(zone_name="todos")
KNOWN_TYPE_NAMES = {record_type.value for record_type in RecordType}


@given(st.text(min_size=1).filter(lambda name: name not in KNOWN_TYPE_NAMES))
def test_property_18_unknown_type_names(type_name: str):
    """Property 18: Unknown type names map to UNKNOWN.

    **Feature: checkmate-sync, Property 18: Unknown type names map to UNKNOWN**
    """
    record = Record(record_id=RecordID(zone_id=TODOS), record_type=type_name)

    assert record.record_type is RecordType.UNKNOWN


@pytest.mark.parametrize(
    "type_name,expected",
    [("list", RecordType.LIST), ("todo", RecordType.TODO), ("cloudkit.share", RecordType.SHARE)],
)
def test_known_type_names(type_name: str, expected: RecordType):
    assert Record(record_id=RecordID(zone_id=TODOS), record_type=type_name).record_type is expected


@given(st.sampled_from(list(ReferenceAction)))
def test_property_19_todo_list_reference_deletes_self(action: ReferenceAction):
    """Property 19: Todo list references delete themselves.

    **Feature: checkmate-sync, Property 19: Todo list references delete themselves**
    """
    list_id = RecordID(record_name="L1", zone_id=TODOS)

    fields = TodoFields(title="Milk", list_ref=Reference(record_id=list_id, action=action))

    assert fields.list_ref.action is ReferenceAction.DELETE_SELF
    assert fields.list_ref.record_id == list_id


def test_zone_id_defaults_to_current_user():
    assert ZoneID(zone_name="todos").owner_name == DEFAULT_OWNER_NAME
    assert ZoneID(zone_name="todos") == TODOS
    assert ZoneID(zone_name="todos", owner_name="alice") != TODOS


def test_record_ids_are_generated_and_hashable():
    first, second = RecordID(zone_id=TODOS), RecordID(zone_id=TODOS)

    assert first != second
    assert len({first, second, first}) == 2


def test_records_are_immutable():
    record = Record(record_id=RecordID(zone_id=TODOS), record_type=RecordType.LIST)

    with pytest.raises(ValidationError):
        record.change_tag = "ct-9"


def test_to_fields_uses_remote_names_and_drops_unset_values():
    list_id = RecordID(record_name="L1", zone_id=TODOS)
    completed = datetime(2024, 1, 2, tzinfo=timezone.utc)

    open_todo = TodoFields(title="Milk", list_ref=Reference(record_id=list_id))
    done_todo = TodoFields.model_validate(
        {"title": "Milk", "dateCompleted": completed, "list": Reference(record_id=list_id)}
    )

    assert set(open_todo.to_fields()) == {"title", "note", "list"}
    assert done_todo.to_fields()["dateCompleted"] == completed
    assert ShareFields().to_fields() == {}
    assert ListFields(title="Groceries").to_fields() == {"title": "Groceries"}


def test_record_references_include_parent():
    parent = Reference(record_id=RecordID(record_name="L1", zone_id=TODOS))
    list_ref = Reference(
        record_id=RecordID(record_name="L1", zone_id=TODOS), action=ReferenceAction.DELETE_SELF
    )
    record = Record(
        record_id=RecordID(zone_id=TODOS),
        record_type=RecordType.TODO,
        fields={"title": "Milk", "list": list_ref},
        parent=parent,
    )

    assert record.references() == [list_ref, parent]
    assert record.get("missing", "default") == "default"


def test_with_location_returns_tagged_copy():
    record = Record(record_id=RecordID(zone_id=TODOS), record_type=RecordType.LIST)

    shared = record.with_location(RecordLocation.SHARED)

    assert shared.location is RecordLocation.SHARED
    assert record.location is RecordLocation.PRIVATE
    assert record.with_location(RecordLocation.PRIVATE) is record
