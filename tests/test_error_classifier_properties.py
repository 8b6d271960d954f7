"""Property-based tests for remote error classification.

**Feature: checkmate-sync, Property 10: Every error code maps to exactly one strategy**
**Feature: checkmate-sync, Property 11: Partial failures are reclassified per item**
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from checkmate_sync.models.config import ErrorPolicy
from checkmate_sync.models.record import Record, RecordID, RecordType, ZoneID
from checkmate_sync.remote.errors import ErrorCode, RemoteStoreError
from checkmate_sync.sync.error_classifier import RetryStrategy, StrategyKind, classify

PROGRAMMER_ERRORS = [
    ErrorCode.INTERNAL_ERROR,
    ErrorCode.MISSING_ENTITLEMENT,
    ErrorCode.CONSTRAINT_VIOLATION,
    ErrorCode.SERVER_REJECTED_REQUEST,
    ErrorCode.INVALID_ARGUMENTS,
    ErrorCode.BAD_CONTAINER,
    ErrorCode.BAD_DATABASE,
]


@given(code=st.sampled_from(list(ErrorCode)), policy=st.sampled_from(list(ErrorPolicy)))
def test_property_10_every_code_has_one_strategy(code: ErrorCode, policy: ErrorPolicy):
    """Property 10: Every error code maps to exactly one strategy.

    **Feature: checkmate-sync, Property 10: Every error code maps to exactly one strategy**
    """
    strategy = classify(RemoteStoreError(code), policy)

    assert isinstance(strategy, RetryStrategy)
    assert strategy.kind in StrategyKind
    assert classify(RemoteStoreError(code), policy) == strategy


@pytest.mark.parametrize(
    "code,kind",
    [
        (ErrorCode.NETWORK_FAILURE, StrategyKind.RETRY_IMMEDIATELY),
        (ErrorCode.NETWORK_UNAVAILABLE, StrategyKind.RETRY_WHEN_NETWORK_RESTORED),
        (ErrorCode.CHANGE_TOKEN_EXPIRED, StrategyKind.INVALIDATE_CURSORS_AND_REFETCH_ALL),
        (ErrorCode.LIMIT_EXCEEDED, StrategyKind.SPLIT_BATCH_AND_RETRY),
        (ErrorCode.SERVER_RESPONSE_LOST, StrategyKind.VERIFY_THEN_RETRY),
        (ErrorCode.ZONE_NOT_FOUND, StrategyKind.RECONCILE_THEN_RETRY),
        (ErrorCode.ALREADY_SHARED, StrategyKind.RECONCILE_THEN_RETRY),
        (ErrorCode.OPERATION_CANCELLED, StrategyKind.NO_RETRY),
        (ErrorCode.PARTICIPANT_MAY_NEED_VERIFICATION, StrategyKind.REDIRECT_TO_VERIFICATION),
        (ErrorCode.BATCH_REQUEST_FAILED, StrategyKind.NO_ACTIONABLE_ERROR),
        (ErrorCode.QUOTA_EXCEEDED, StrategyKind.UNKNOWN),
        (ErrorCode.NOT_AUTHENTICATED, StrategyKind.PROMPT_USER),
        (ErrorCode.UNKNOWN_ITEM, StrategyKind.PROMPT_USER),
        (ErrorCode.USER_DELETED_ZONE, StrategyKind.PROMPT_USER),
    ],
)
def test_classification_table(code: ErrorCode, kind: StrategyKind):
    assert classify(RemoteStoreError(code)).kind is kind


@pytest.mark.parametrize("code", PROGRAMMER_ERRORS)
def test_programmer_errors_follow_policy(code: ErrorCode):
    assert classify(RemoteStoreError(code), ErrorPolicy.RESILIENT).kind is StrategyKind.PROMPT_USER
    assert classify(RemoteStoreError(code), ErrorPolicy.STRICT).kind is StrategyKind.FATAL_STOP


@given(
    code=st.sampled_from(
        [ErrorCode.ZONE_BUSY, ErrorCode.SERVICE_UNAVAILABLE, ErrorCode.REQUEST_RATE_LIMITED]
    ),
    delay=st.one_of(st.none(), st.floats(min_value=0.0, max_value=3600.0)),
)
def test_retry_after_carries_server_delay(code: ErrorCode, delay: float | None):
    strategy = classify(RemoteStoreError(code, retry_after_seconds=delay))

    assert strategy.kind is StrategyKind.RETRY_AFTER
    assert strategy.retry_after_seconds == delay
    assert strategy.is_automatically_retryable


def test_conflict_carries_ancestor_and_server_record():
    zone = ZoneID(zone_name="todos")
    ancestor = Record(
        record_id=RecordID(record_name="L1", zone_id=zone),
        record_type=RecordType.LIST,
        fields={"title": "Old"},
        change_tag="ct-1",
    )
    server = ancestor.model_copy(update={"fields": {"title": "New"}, "change_tag": "ct-2"})

    strategy = classify(
        RemoteStoreError(
            ErrorCode.SERVER_RECORD_CHANGED, ancestor_record=ancestor, server_record=server
        )
    )

    assert strategy.kind is StrategyKind.MERGE_AND_RETRY
    assert strategy.ancestor == ancestor
    assert strategy.server_record == server
    assert not strategy.is_automatically_retryable


@given(
    item_codes=st.dictionaries(
        st.text(min_size=1, max_size=6), st.sampled_from(list(ErrorCode)), min_size=1, max_size=8
    )
)
def test_property_11_partial_failure_reclassifies_items(item_codes: dict[str, ErrorCode]):
    """Property 11: Partial failures are reclassified per item.

    **Feature: checkmate-sync, Property 11: Partial failures are reclassified per item**
    """
    error = RemoteStoreError(
        ErrorCode.PARTIAL_FAILURE,
        partial_errors={key: RemoteStoreError(code) for key, code in item_codes.items()},
    )

    strategy = classify(error)
    items = strategy.classify_items()

    assert strategy.kind is StrategyKind.PARTIAL_FAILURE
    assert set(items) == set(item_codes)
    for key, code in item_codes.items():
        assert items[key] == classify(RemoteStoreError(code))

    assert set(strategy.failed_items()) == {
        key for key, code in item_codes.items() if code is not ErrorCode.BATCH_REQUEST_FAILED
    }


def test_strict_policy_applies_to_partial_items():
    error = RemoteStoreError(
        ErrorCode.PARTIAL_FAILURE,
        partial_errors={"a": RemoteStoreError(ErrorCode.INVALID_ARGUMENTS)},
    )

    items = classify(error).classify_items(ErrorPolicy.STRICT)

    assert items["a"].kind is StrategyKind.FATAL_STOP


def test_error_log_context():
    error = RemoteStoreError(
        ErrorCode.REQUEST_RATE_LIMITED, "slow down", retry_after_seconds=5
    )

    assert error.log_context() == {
        "error_code": "request_rate_limited",
        "error": "slow down",
        "retry_after_seconds": 5,
    }
    assert str(error) == "slow down"
