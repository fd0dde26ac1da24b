"""Tests for the scanner relay CLI."""

import json
import re
from collections.abc import Iterator
from typing import Any
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from typer.testing import CliRunner

from scanrelay import __version__
from scanrelay.cli import app
from scanrelay.observability import configure_logging

# ANSI escape sequence pattern for stripping colors from output
ANSI_ESCAPE_PATTERN = re.compile(r"\x1b\[[0-9;]*m")


def strip_ansi(text: str) -> str:
    return ANSI_ESCAPE_PATTERN.sub("", text)


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    yield
    configure_logging(log_format="console", log_level="INFO", force=True)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


class TestCliVersion:
    def test_version_flag(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.stdout.strip() == f"scanrelay {__version__}"


class TestCliHelp:
    def test_help_lists_commands(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        output = strip_ansi(result.stdout)
        assert "serve" in output
        assert "schemas" in output


class TestSchemas:
    def test_prints_envelope_schema(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["schemas"])
        assert result.exit_code == 0
        schema = json.loads(result.stdout)
        text = json.dumps(schema)
        assert "server_shutdown" in text
        assert "barcode_received" in text


class TestServe:
    def test_runs_uvicorn_with_settings(
        self, runner: CliRunner, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("SCANRELAY_PORT", raising=False)
        with patch("scanrelay.cli.uvicorn.run") as run:
            result = runner.invoke(
                app,
                ["serve", "--port", "3100", "--heartbeat-interval", "15", "--log-format", "json"],
            )

        assert result.exit_code == 0, result.output
        run.assert_called_once()
        args: tuple[Any, ...] = run.call_args.args
        kwargs: dict[str, Any] = run.call_args.kwargs
        assert isinstance(args[0], FastAPI)
        assert args[0].state.settings.port == 3100
        assert args[0].state.relay.heartbeat.interval == 15.0
        assert kwargs["port"] == 3100
        assert kwargs["ws_ping_interval"] == 15.0
        assert kwargs["ws_ping_timeout"] == 15.0

    def test_no_transport_pings_disables_uvicorn_pings(
        self, runner: CliRunner, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("SCANRELAY_TRANSPORT_PINGS", raising=False)
        with patch("scanrelay.cli.uvicorn.run") as run:
            result = runner.invoke(app, ["serve", "--no-transport-pings"])
        assert result.exit_code == 0, result.output
        assert run.call_args.kwargs["ws_ping_interval"] is None
        assert run.call_args.kwargs["ws_ping_timeout"] is None
        assert run.call_args.args[0].state.relay.heartbeat.transport_pings is False

    def test_reads_environment(self, runner: CliRunner, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SCANRELAY_PORT", "3200")
        monkeypatch.setenv("SCANRELAY_SETTLE_DELAY", "0.2")
        with patch("scanrelay.cli.uvicorn.run") as run:
            result = runner.invoke(app, ["serve"])
        assert result.exit_code == 0, result.output
        assert run.call_args.kwargs["port"] == 3200
        assert run.call_args.args[0].state.relay.settle_delay == 0.2

    def test_invalid_environment_exits(
        self, runner: CliRunner, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SCANRELAY_PORT", "not-a-port")
        with patch("scanrelay.cli.uvicorn.run") as run:
            result = runner.invoke(app, ["serve"])
        assert result.exit_code == 1
        run.assert_not_called()

    def test_invalid_override_rejected(
        self, runner: CliRunner, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("SCANRELAY_PORT", raising=False)
        with patch("scanrelay.cli.uvicorn.run") as run:
            result = runner.invoke(app, ["serve", "--heartbeat-interval", "0"])
        assert result.exit_code != 0
        run.assert_not_called()

    @pytest.mark.parametrize(
        "option", [["--log-format", "xml"], ["--log-level", "LOUD"]]
    )
    def test_bad_logging_options(self, runner: CliRunner, option: list[str]) -> None:
        with patch("scanrelay.cli.uvicorn.run") as run:
            result = runner.invoke(app, ["serve", *option])
        assert result.exit_code == 2
        run.assert_not_called()
