"""Configuration models for the CheckMate sync engine."""

from enum import Enum

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from checkmate_sync.models.record import RecordLocation


class ErrorPolicy(str, Enum):
    """How programmer/configuration errors are surfaced."""

    RESILIENT = "resilient"
    STRICT = "strict"


class RemoteStoreConfig(BaseModel):
    """Configuration for the remote record store client."""

    backend: str = Field(default="memory", description="Remote client backend (memory)")
    container_id: str = Field(
        default="iCloud.com.checkmate.todo", description="Remote container identifier"
    )
    page_size: int | None = Field(
        default=None, ge=1, description="Zone changes per database-change page (None: unpaged)"
    )
    results_limit: int | None = Field(
        default=None, ge=1, description="Record changes per zone fetch round (None: unlimited)"
    )


class SyncConfig(BaseModel):
    """Configuration for delta synchronization."""

    well_known_zone: str = Field(
        default="todos", min_length=1, description="Zone holding lists, todos and shares"
    )
    databases: list[RecordLocation] = Field(
        default_factory=lambda: [RecordLocation.PRIVATE, RecordLocation.SHARED],
        min_length=1,
        description="Databases synced by fetch_all_updates",
    )
    error_policy: ErrorPolicy = Field(
        default=ErrorPolicy.RESILIENT,
        description="resilient: prompt the user on programmer errors; strict: stop",
    )
    subscribe_on_start: bool = Field(
        default=True, description="Subscribe to database change pushes at start"
    )
    create_zone_on_start: bool = Field(
        default=True, description="Create the well-known zone in the private database at start"
    )


class RetryConfig(BaseModel):
    """Caller-side retry settings applied to classified failures."""

    max_retries: int = Field(default=3, ge=0, le=10, description="Retries after the first attempt")
    base_delay: float = Field(default=1.0, gt=0.0, description="Initial backoff delay in seconds")
    max_delay: float = Field(default=60.0, gt=0.0, description="Backoff ceiling in seconds")


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        description="If True, output JSON logs. If False, use console format.",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional path to log file. If None, logs only to stdout.",
    )
    max_file_bytes: int = Field(
        default=10 * 1024 * 1024,
        gt=0,
        description="Size in bytes at which the log file is rotated",
    )
    backup_count: int = Field(
        default=5,
        ge=0,
        description="Number of rotated log files kept",
    )


class AppConfig(BaseSettings):
    """Main application configuration.

    Values can be overridden from environment variables with the APP_ prefix,
    e.g. ``APP_SYNC__ERROR_POLICY=strict``.
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    remote: RemoteStoreConfig = Field(default_factory=RemoteStoreConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
