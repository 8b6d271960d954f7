"""Structured errors reported by the remote record store."""

from enum import Enum
from typing import Any, Hashable

from checkmate_sync.models.record import Record


class ErrorCode(str, Enum):
    """Every failure condition the remote record store reports."""

    INTERNAL_ERROR = "internal_error"
    PARTIAL_FAILURE = "partial_failure"
    NETWORK_UNAVAILABLE = "network_unavailable"
    NETWORK_FAILURE = "network_failure"
    BAD_CONTAINER = "bad_container"
    SERVICE_UNAVAILABLE = "service_unavailable"
    REQUEST_RATE_LIMITED = "request_rate_limited"
    MISSING_ENTITLEMENT = "missing_entitlement"
    NOT_AUTHENTICATED = "not_authenticated"
    PERMISSION_FAILURE = "permission_failure"
    UNKNOWN_ITEM = "unknown_item"
    INVALID_ARGUMENTS = "invalid_arguments"
    SERVER_RECORD_CHANGED = "server_record_changed"
    SERVER_REJECTED_REQUEST = "server_rejected_request"
    ASSET_FILE_NOT_FOUND = "asset_file_not_found"
    ASSET_FILE_MODIFIED = "asset_file_modified"
    INCOMPATIBLE_VERSION = "incompatible_version"
    CONSTRAINT_VIOLATION = "constraint_violation"
    OPERATION_CANCELLED = "operation_cancelled"
    CHANGE_TOKEN_EXPIRED = "change_token_expired"
    BATCH_REQUEST_FAILED = "batch_request_failed"
    ZONE_BUSY = "zone_busy"
    BAD_DATABASE = "bad_database"
    QUOTA_EXCEEDED = "quota_exceeded"
    ZONE_NOT_FOUND = "zone_not_found"
    LIMIT_EXCEEDED = "limit_exceeded"
    USER_DELETED_ZONE = "user_deleted_zone"
    TOO_MANY_PARTICIPANTS = "too_many_participants"
    ALREADY_SHARED = "already_shared"
    REFERENCE_VIOLATION = "reference_violation"
    MANAGED_ACCOUNT_RESTRICTED = "managed_account_restricted"
    PARTICIPANT_MAY_NEED_VERIFICATION = "participant_may_need_verification"
    SERVER_RESPONSE_LOST = "server_response_lost"
    ASSET_NOT_AVAILABLE = "asset_not_available"


class RemoteStoreError(Exception):
    """Raised by a remote store client when an operation fails.

    Args:
        code: Remote error code
        message: Human readable description
        retry_after_seconds: Server-suggested delay before retrying, if any
        partial_errors: Per-item errors of a partially failed batch, keyed by
            record or zone identifier
        ancestor_record: Last version the client and server agreed on (conflicts)
        server_record: Current server version (conflicts)
        client_record: Version the client attempted to write (conflicts)
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str = "",
        *,
        retry_after_seconds: float | None = None,
        partial_errors: dict[Hashable, "RemoteStoreError"] | None = None,
        ancestor_record: Record | None = None,
        server_record: Record | None = None,
        client_record: Record | None = None,
    ):
        super().__init__(message or code.value)
        self.code = code
        self.message = message or code.value
        self.retry_after_seconds = retry_after_seconds
        self.partial_errors: dict[Hashable, RemoteStoreError] = partial_errors or {}
        self.ancestor_record = ancestor_record
        self.server_record = server_record
        self.client_record = client_record

    def __repr__(self) -> str:
        return f"RemoteStoreError(code={self.code.value!r}, message={self.message!r})"

    def log_context(self) -> dict[str, Any]:
        """Key/value pairs describing this error for structured logs."""
        context: dict[str, Any] = {"error_code": self.code.value, "error": self.message}
        if self.retry_after_seconds is not None:
            context["retry_after_seconds"] = self.retry_after_seconds
        if self.partial_errors:
            context["failed_items"] = len(self.partial_errors)
        return context
