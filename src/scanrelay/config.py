"""Runtime settings for the relay server.

Defaults mirror the timings the deployed scanner and POS clients were built
against. Each value can be overridden from the environment:

    SCANRELAY_HOST                  Interface to bind (default 0.0.0.0)
    SCANRELAY_PORT                  Listening port (default 3000)
    SCANRELAY_SETTLE_DELAY          Seconds between registration and the
                                    pairing handshake (default 0.5)
    SCANRELAY_HEARTBEAT_INTERVAL    Liveness sweep period in seconds (default 30)
    SCANRELAY_DIAGNOSTICS_INTERVAL  Connection-count log period in seconds,
                                    0 disables it (default 60)
    SCANRELAY_TRANSPORT_PINGS       Whether the ASGI server pings each socket and
                                    drops unanswered ones (default true); when
                                    false the heartbeat sweep enforces liveness
"""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import Field

from scanrelay.errors import ConfigurationError
from scanrelay.models.base import RelayBaseModel

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
DEFAULT_SETTLE_DELAY = 0.5
DEFAULT_HEARTBEAT_INTERVAL = 30.0
DEFAULT_DIAGNOSTICS_INTERVAL = 60.0

ENV_HOST = "SCANRELAY_HOST"
ENV_PORT = "SCANRELAY_PORT"
ENV_SETTLE_DELAY = "SCANRELAY_SETTLE_DELAY"
ENV_HEARTBEAT_INTERVAL = "SCANRELAY_HEARTBEAT_INTERVAL"
ENV_DIAGNOSTICS_INTERVAL = "SCANRELAY_DIAGNOSTICS_INTERVAL"
ENV_TRANSPORT_PINGS = "SCANRELAY_TRANSPORT_PINGS"

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


class RelaySettings(RelayBaseModel):
    """Immutable relay configuration.

    Example:
        >>> RelaySettings(settle_delay=0.0).heartbeat_interval
        30.0
    """

    host: str = DEFAULT_HOST
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    settle_delay: float = Field(default=DEFAULT_SETTLE_DELAY, ge=0)
    heartbeat_interval: float = Field(default=DEFAULT_HEARTBEAT_INTERVAL, gt=0)
    diagnostics_interval: float = Field(default=DEFAULT_DIAGNOSTICS_INTERVAL, ge=0)
    transport_pings: bool = True

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "RelaySettings":
        """Build settings from ``SCANRELAY_*`` variables, falling back to defaults.

        Raises:
            ConfigurationError: If a variable is set but not a valid number or
                flag, or is outside its allowed range.
        """
        env = os.environ if environ is None else environ
        return cls(
            host=env.get(ENV_HOST, DEFAULT_HOST),
            port=int(_read_number(env, ENV_PORT, DEFAULT_PORT, minimum=1, maximum=65535)),
            settle_delay=_read_number(env, ENV_SETTLE_DELAY, DEFAULT_SETTLE_DELAY),
            heartbeat_interval=_read_number(
                env, ENV_HEARTBEAT_INTERVAL, DEFAULT_HEARTBEAT_INTERVAL, minimum=0.001
            ),
            diagnostics_interval=_read_number(
                env, ENV_DIAGNOSTICS_INTERVAL, DEFAULT_DIAGNOSTICS_INTERVAL
            ),
            transport_pings=_read_flag(env, ENV_TRANSPORT_PINGS, default=True),
        )


def _read_number(
    env: Mapping[str, str],
    name: str,
    default: float,
    minimum: float = 0.0,
    maximum: float | None = None,
) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return float(default)
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigurationError(name, raw, "not a number") from e
    if value < minimum:
        raise ConfigurationError(name, raw, f"must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise ConfigurationError(name, raw, f"must be <= {maximum}")
    return value


def _read_flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name, "").strip().lower()
    if not raw:
        return default
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise ConfigurationError(name, raw, "not a boolean flag")
