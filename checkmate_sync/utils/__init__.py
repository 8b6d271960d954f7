"""Utility modules for configuration, logging and retries."""

from checkmate_sync.utils.config_loader import ConfigLoader, ConfigurationError
from checkmate_sync.utils.logging_config import configure_logging, configure_logging_from_config
from checkmate_sync.utils.retry import retry_delay_for, strategy_retry

__all__ = [
    "ConfigLoader",
    "ConfigurationError",
    "configure_logging",
    "configure_logging_from_config",
    "retry_delay_for",
    "strategy_retry",
]
