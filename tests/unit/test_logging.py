"""Unit tests for structured logging setup."""

import io
import json

import pytest
import structlog

from harvester.utils.logging import (
    bind_run_context,
    clear_run_context,
    configure_logging,
)


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    clear_run_context()
    structlog.reset_defaults()


def test_production_logs_are_json_with_run_context():
    """Test JSON output carrying bound run context."""
    stream = io.StringIO()
    configure_logging(log_level="INFO", environment="production", stream=stream)
    bind_run_context(run_id="abc123")

    structlog.get_logger("test").info("record_emitted", url="https://example.com/")

    event = json.loads(stream.getvalue().strip().splitlines()[-1])
    assert event["event"] == "record_emitted"
    assert event["run_id"] == "abc123"
    assert event["url"] == "https://example.com/"
    assert event["level"] == "info"
    assert "timestamp" in event


def test_level_filtering():
    """Test that messages below the configured level are dropped."""
    stream = io.StringIO()
    configure_logging(log_level="WARNING", environment="production", stream=stream)

    logger = structlog.get_logger("test")
    logger.info("hidden")
    logger.warning("shown")

    lines = stream.getvalue().strip().splitlines()
    assert [json.loads(line)["event"] for line in lines] == ["shown"]


def test_clear_run_context():
    """Test that cleared context no longer appears on log lines."""
    stream = io.StringIO()
    configure_logging(log_level="INFO", environment="production", stream=stream)
    bind_run_context(run_id="abc123")
    clear_run_context()

    structlog.get_logger("test").info("after_clear")

    assert "run_id" not in json.loads(stream.getvalue().strip())


def test_environment_from_variable(monkeypatch: pytest.MonkeyPatch):
    """Test that HARVESTER_ENVIRONMENT selects the renderer when not passed."""
    monkeypatch.setenv("HARVESTER_ENVIRONMENT", "production")
    stream = io.StringIO()
    configure_logging(log_level="DEBUG", stream=stream)

    structlog.get_logger("test").debug("json_please")

    assert json.loads(stream.getvalue().strip())["event"] == "json_please"
