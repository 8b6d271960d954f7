"""Property-based tests for logging functionality.

**Feature: checkmate-sync, Property 17: Log format**

Log entries contain the timestamp, severity level and event name, plus any
context variables bound around a sync.
"""

import json
import logging
from logging.handlers import RotatingFileHandler

import pytest
import structlog
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from checkmate_sync.models.config import LoggingConfig
from checkmate_sync.utils.logging_config import configure_logging, configure_logging_from_config


def _last_json_line(output: str) -> dict:
    lines = [line for line in output.splitlines() if line.strip()]
    assert lines, "expected log output"
    return json.loads(lines[-1])


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()
    logging.basicConfig(force=True)


@pytest.mark.parametrize("log_level", ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
def test_property_17_log_format_contains_required_fields(capsys, log_level: str) -> None:
    """
    Property 17: Log format

    *For any* log level, a JSON log entry contains timestamp, level and event.

    **Feature: checkmate-sync, Property 17: Log format**
    """
    configure_logging(log_level="DEBUG", json_logs=True)
    log = structlog.stdlib.get_logger("test_logger")

    getattr(log, log_level.lower())("sync_failed", error_code="network_failure")

    entry = _last_json_line(capsys.readouterr().out)
    assert entry["event"] == "sync_failed"
    assert entry["level"] == log_level.lower()
    assert entry["error_code"] == "network_failure"
    assert "timestamp" in entry
    assert entry["logger"] == "test_logger"


def test_bound_context_variables_are_included(capsys) -> None:
    configure_logging(log_level="INFO", json_logs=True)
    log = structlog.stdlib.get_logger("test_logger")

    with structlog.contextvars.bound_contextvars(location="shared"):
        log.info("sync_started")

    entry = _last_json_line(capsys.readouterr().out)
    assert entry["location"] == "shared"


def test_log_level_filters_lower_levels(capsys) -> None:
    configure_logging(log_level="WARNING", json_logs=True)
    log = structlog.stdlib.get_logger("test_logger")

    log.info("hidden_event")
    log.warning("visible_event")

    output = capsys.readouterr().out
    assert "hidden_event" not in output
    assert "visible_event" in output


def test_console_format_is_not_json(capsys) -> None:
    configure_logging(log_level="INFO", json_logs=False)
    log = structlog.stdlib.get_logger("test_logger")

    log.info("console_event", location="private")

    output = capsys.readouterr().out
    assert "console_event" in output
    with pytest.raises(json.JSONDecodeError):
        json.loads(output.strip().splitlines()[-1])


@given(message=st.text(min_size=1, max_size=200))
@settings(max_examples=50, suppress_health_check=[HealthCheck.function_scoped_fixture])
def test_log_file_receives_entries(tmp_path_factory, message: str) -> None:
    """Any message logged is written to the configured log file as JSON."""
    log_file = tmp_path_factory.mktemp("logs") / "sync.log"
    configure_logging(log_level="INFO", json_logs=True, log_file=str(log_file))
    log = structlog.stdlib.get_logger("test_logger")

    log.error("operation_failed", error=message)
    for handler in logging.root.handlers:
        handler.flush()

    entry = _last_json_line(log_file.read_text())
    assert entry["error"] == message


def test_configure_from_logging_section(tmp_path, capsys) -> None:
    log_file = tmp_path / "sync.log"
    config = LoggingConfig(
        log_level="WARNING", json_logs=True, log_file=str(log_file), backup_count=2
    )

    configure_logging_from_config(config)
    structlog.stdlib.get_logger("test_logger").warning("zone_fetch_failed", zone_id="todos")

    file_handlers = [h for h in logging.root.handlers if isinstance(h, RotatingFileHandler)]
    assert [h.backupCount for h in file_handlers] == [2]
    assert file_handlers[0].maxBytes == config.max_file_bytes
    assert _last_json_line(capsys.readouterr().out)["zone_id"] == "todos"


@pytest.mark.parametrize(
    "log_level,expected", [("DEBUG", logging.WARNING), ("ERROR", logging.ERROR)]
)
def test_event_loop_logger_is_kept_quiet(log_level: str, expected: int) -> None:
    configure_logging(log_level=log_level, json_logs=True)

    assert logging.getLogger("asyncio").level == expected
