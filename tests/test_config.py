"""Tests for relay settings."""

import pytest
from pydantic import ValidationError

from scanrelay.config import (
    DEFAULT_HEARTBEAT_INTERVAL,
    DEFAULT_PORT,
    DEFAULT_SETTLE_DELAY,
    RelaySettings,
)
from scanrelay.errors import ConfigurationError


class TestRelaySettings:
    def test_defaults(self) -> None:
        settings = RelaySettings.from_env({})
        assert settings.host == "0.0.0.0"
        assert settings.port == DEFAULT_PORT
        assert settings.settle_delay == DEFAULT_SETTLE_DELAY == 0.5
        assert settings.heartbeat_interval == DEFAULT_HEARTBEAT_INTERVAL == 30.0
        assert settings.diagnostics_interval == 60.0
        assert settings.transport_pings is True

    def test_env_overrides(self) -> None:
        settings = RelaySettings.from_env(
            {
                "SCANRELAY_HOST": "127.0.0.1",
                "SCANRELAY_PORT": "3001",
                "SCANRELAY_SETTLE_DELAY": "0.25",
                "SCANRELAY_HEARTBEAT_INTERVAL": "10",
                "SCANRELAY_DIAGNOSTICS_INTERVAL": "0",
            }
        )
        assert settings.host == "127.0.0.1"
        assert settings.port == 3001
        assert settings.settle_delay == 0.25
        assert settings.heartbeat_interval == 10.0
        assert settings.diagnostics_interval == 0.0

    @pytest.mark.parametrize(("raw", "expected"), [("0", False), ("false", False), ("Yes", True)])
    def test_transport_pings_flag(self, raw: str, expected: bool) -> None:
        settings = RelaySettings.from_env({"SCANRELAY_TRANSPORT_PINGS": raw})
        assert settings.transport_pings is expected

    def test_blank_values_fall_back_to_defaults(self) -> None:
        settings = RelaySettings.from_env({"SCANRELAY_PORT": "  "})
        assert settings.port == DEFAULT_PORT

    def test_reads_process_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SCANRELAY_PORT", "4000")
        assert RelaySettings.from_env().port == 4000

    @pytest.mark.parametrize(
        ("name", "value"),
        [
            ("SCANRELAY_PORT", "abc"),
            ("SCANRELAY_PORT", "0"),
            ("SCANRELAY_PORT", "70000"),
            ("SCANRELAY_SETTLE_DELAY", "-1"),
            ("SCANRELAY_HEARTBEAT_INTERVAL", "0"),
            ("SCANRELAY_TRANSPORT_PINGS", "maybe"),
        ],
    )
    def test_invalid_env_values(self, name: str, value: str) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            RelaySettings.from_env({name: value})
        assert exc_info.value.setting == name

    def test_direct_construction_validates(self) -> None:
        with pytest.raises(ValidationError):
            RelaySettings(heartbeat_interval=0)
