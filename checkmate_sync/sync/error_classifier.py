"""Classification of remote errors into retry strategies.

This is the only place remote error codes are interpreted. Every remote call
site routes its failure through :func:`classify` and acts on the returned
:class:`RetryStrategy`.
"""

from enum import Enum
from typing import Any, Hashable

import structlog
from pydantic import BaseModel, ConfigDict, Field

from checkmate_sync.models.config import ErrorPolicy
from checkmate_sync.models.record import Record
from checkmate_sync.remote.errors import ErrorCode, RemoteStoreError

log = structlog.stdlib.get_logger()


class StrategyKind(str, Enum):
    """How to react to a failed remote operation."""

    PROMPT_USER = "prompt_user"
    FATAL_STOP = "fatal_stop"
    MERGE_AND_RETRY = "merge_and_retry"
    VERIFY_THEN_RETRY = "verify_then_retry"
    RECONCILE_THEN_RETRY = "reconcile_then_retry"
    NO_RETRY = "no_retry"
    INVALIDATE_CURSORS_AND_REFETCH_ALL = "invalidate_cursors_and_refetch_all"
    SPLIT_BATCH_AND_RETRY = "split_batch_and_retry"
    RETRY_WHEN_NETWORK_RESTORED = "retry_when_network_restored"
    RETRY_IMMEDIATELY = "retry_immediately"
    REDIRECT_TO_VERIFICATION = "redirect_to_verification"
    RETRY_AFTER = "retry_after"
    PARTIAL_FAILURE = "partial_failure"
    NO_ACTIONABLE_ERROR = "no_actionable_error"
    UNKNOWN = "unknown"


class RetryStrategy(BaseModel):
    """The classified reaction to one remote failure.

    Only the payload fields relevant to ``kind`` are set: ``retry_after_seconds``
    for RETRY_AFTER, ``ancestor``/``server_record`` for MERGE_AND_RETRY and
    ``item_errors`` for PARTIAL_FAILURE.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: StrategyKind
    retry_after_seconds: float | None = Field(default=None, ge=0.0)
    ancestor: Record | None = None
    server_record: Record | None = None
    item_errors: dict[Any, RemoteStoreError] = Field(default_factory=dict)

    @property
    def is_automatically_retryable(self) -> bool:
        return self.kind in _AUTOMATIC_RETRY_KINDS

    def classify_items(
        self, policy: ErrorPolicy = ErrorPolicy.RESILIENT
    ) -> dict[Hashable, "RetryStrategy"]:
        """Classify each sub-error of a partial failure independently."""
        return {key: classify(error, policy) for key, error in self.item_errors.items()}

    def failed_items(self, policy: ErrorPolicy = ErrorPolicy.RESILIENT) -> list[Hashable]:
        """Items that failed on their own account (not only by association)."""
        return [
            key
            for key, strategy in self.classify_items(policy).items()
            if strategy.kind is not StrategyKind.NO_ACTIONABLE_ERROR
        ]


_AUTOMATIC_RETRY_KINDS = frozenset(
    {
        StrategyKind.RETRY_IMMEDIATELY,
        StrategyKind.RETRY_AFTER,
        StrategyKind.RETRY_WHEN_NETWORK_RESTORED,
    }
)

# Broken builds, programmer errors or misconfigured containers
_PROGRAMMER_ERRORS = frozenset(
    {
        ErrorCode.INTERNAL_ERROR,
        ErrorCode.MISSING_ENTITLEMENT,
        ErrorCode.CONSTRAINT_VIOLATION,
        ErrorCode.SERVER_REJECTED_REQUEST,
        ErrorCode.INVALID_ARGUMENTS,
        ErrorCode.BAD_CONTAINER,
        ErrorCode.BAD_DATABASE,
    }
)

# Conditions the user has to fix or retry manually
_USER_ACTION_ERRORS = frozenset(
    {
        ErrorCode.MANAGED_ACCOUNT_RESTRICTED,
        ErrorCode.NOT_AUTHENTICATED,
        ErrorCode.INCOMPATIBLE_VERSION,
        ErrorCode.TOO_MANY_PARTICIPANTS,
        ErrorCode.PERMISSION_FAILURE,
        ErrorCode.UNKNOWN_ITEM,
        ErrorCode.REFERENCE_VIOLATION,
        ErrorCode.USER_DELETED_ZONE,
        ErrorCode.ASSET_FILE_MODIFIED,
        ErrorCode.ASSET_FILE_NOT_FOUND,
        ErrorCode.ASSET_NOT_AVAILABLE,
    }
)

_SIMPLE_KINDS: dict[ErrorCode, StrategyKind] = {
    ErrorCode.SERVER_RESPONSE_LOST: StrategyKind.VERIFY_THEN_RETRY,
    ErrorCode.ZONE_NOT_FOUND: StrategyKind.RECONCILE_THEN_RETRY,
    ErrorCode.ALREADY_SHARED: StrategyKind.RECONCILE_THEN_RETRY,
    ErrorCode.OPERATION_CANCELLED: StrategyKind.NO_RETRY,
    ErrorCode.CHANGE_TOKEN_EXPIRED: StrategyKind.INVALIDATE_CURSORS_AND_REFETCH_ALL,
    ErrorCode.LIMIT_EXCEEDED: StrategyKind.SPLIT_BATCH_AND_RETRY,
    ErrorCode.NETWORK_UNAVAILABLE: StrategyKind.RETRY_WHEN_NETWORK_RESTORED,
    ErrorCode.NETWORK_FAILURE: StrategyKind.RETRY_IMMEDIATELY,
    ErrorCode.PARTICIPANT_MAY_NEED_VERIFICATION: StrategyKind.REDIRECT_TO_VERIFICATION,
    ErrorCode.BATCH_REQUEST_FAILED: StrategyKind.NO_ACTIONABLE_ERROR,
    ErrorCode.QUOTA_EXCEEDED: StrategyKind.UNKNOWN,
}

_RETRY_AFTER_ERRORS = frozenset(
    {
        ErrorCode.ZONE_BUSY,
        ErrorCode.SERVICE_UNAVAILABLE,
        ErrorCode.REQUEST_RATE_LIMITED,
    }
)


def classify(
    error: RemoteStoreError, policy: ErrorPolicy = ErrorPolicy.RESILIENT
) -> RetryStrategy:
    """
    Map a remote error to exactly one retry strategy.

    Args:
        error: Error reported by the remote store
        policy: STRICT turns programmer/configuration errors into FATAL_STOP
                instead of PROMPT_USER

    Returns:
        RetryStrategy describing how the caller should react
    """
    code = error.code

    if code in _PROGRAMMER_ERRORS:
        kind = StrategyKind.FATAL_STOP if policy is ErrorPolicy.STRICT else StrategyKind.PROMPT_USER
        strategy = RetryStrategy(kind=kind)
    elif code is ErrorCode.SERVER_RECORD_CHANGED:
        strategy = RetryStrategy(
            kind=StrategyKind.MERGE_AND_RETRY,
            ancestor=error.ancestor_record,
            server_record=error.server_record,
        )
    elif code in _RETRY_AFTER_ERRORS:
        strategy = RetryStrategy(
            kind=StrategyKind.RETRY_AFTER, retry_after_seconds=error.retry_after_seconds
        )
    elif code is ErrorCode.PARTIAL_FAILURE:
        strategy = RetryStrategy(
            kind=StrategyKind.PARTIAL_FAILURE, item_errors=dict(error.partial_errors)
        )
    elif code in _USER_ACTION_ERRORS:
        strategy = RetryStrategy(kind=StrategyKind.PROMPT_USER)
    else:
        strategy = RetryStrategy(kind=_SIMPLE_KINDS[code])

    log.debug(
        "remote_error_classified",
        error_code=code.value,
        strategy=strategy.kind.value,
        policy=policy.value,
    )
    return strategy
