"""Tests for structured logging configuration."""

import json
import logging
from unittest.mock import patch

import pytest
import structlog

from scanrelay.observability.logging import (
    DEFAULT_SERVICE_NAME,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)


@pytest.fixture(autouse=True)
def _restore_logging():
    yield
    clear_context()
    configure_logging(log_format="console", log_level="INFO", force=True)


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_sets_root_level(self) -> None:
        configure_logging(log_format="console", log_level="WARNING", force=True)
        assert logging.getLogger().level == logging.WARNING

    def test_level_is_case_insensitive(self) -> None:
        configure_logging(log_level="debug", force=True)
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown log level"):
            configure_logging(log_level="LOUD", force=True)

    def test_json_output_carries_event_and_service(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(log_format="json", log_level="INFO", force=True)
        get_logger("scanrelay.test").info(
            "scanrelay.connection.accepted", role="pos", session_id="S1"
        )

        line = capsys.readouterr().out.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "scanrelay.connection.accepted"
        assert record["role"] == "pos"
        assert record["session_id"] == "S1"
        assert record["service"] == DEFAULT_SERVICE_NAME
        assert record["level"] == "info"
        assert "timestamp" in record

    def test_custom_service_name(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(log_format="json", service_name="relay-east", force=True)
        get_logger("scanrelay.test").warning("scanrelay.test.event")
        record = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert record["service"] == "relay-east"

    def test_reads_environment(self) -> None:
        with patch.dict(
            "os.environ",
            {"SCANRELAY_LOG_FORMAT": "json", "SCANRELAY_LOG_LEVEL": "ERROR"},
        ):
            configure_logging(force=True)
        assert logging.getLogger().level == logging.ERROR

    def test_does_not_reconfigure_without_force(self) -> None:
        configure_logging(log_level="DEBUG", force=True)
        configure_logging(log_level="ERROR")
        assert logging.getLogger().level == logging.DEBUG


class TestContext:
    def test_bound_context_appears_in_logs(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(log_format="json", force=True)
        bind_context(session_id="S9")
        get_logger("scanrelay.test").info("scanrelay.test.bound")
        record = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert record["session_id"] == "S9"

    def test_clear_context(self) -> None:
        bind_context(session_id="S9")
        clear_context()
        assert structlog.contextvars.get_contextvars() == {}

    def test_get_logger_returns_bound_logger(self) -> None:
        logger = get_logger("scanrelay.test")
        assert hasattr(logger, "info")
        assert hasattr(logger, "bind")
