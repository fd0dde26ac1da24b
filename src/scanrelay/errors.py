"""Scanner relay error taxonomy.

Errors raised inside the relay carry a stable code following the
``scanrelay:<area>/<reason>`` pattern. They never cross the per-connection
boundary: the lifecycle controller turns them into close codes or ``error``
envelopes.
"""
from __future__ import annotations

from typing import Any

# RFC 6455 policy violation
WS_CLOSE_POLICY_VIOLATION = 1008


class RelayError(Exception):
    """Base exception for all relay errors.

    Attributes:
        code: Error code following the scanrelay:... pattern
        message: Human-readable error message
        details: Optional additional error context
    """

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to ``{code, message, details}`` dict."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class InvalidSessionPathError(RelayError):
    """Raised when an upgrade request path is not ``/api/ws/{role}/{sessionId}``.

    The connection attempt is refused with close code 1008 before any
    connection handle is created.
    """

    close_code = WS_CLOSE_POLICY_VIOLATION
    close_reason = "Invalid connection type or sessionId"

    def __init__(self, path: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="scanrelay:protocol/invalid_path",
            message=f"Invalid WebSocket path: {path}",
            details={"path": path, **(details or {})},
        )
        self.path = path


class MalformedFrameError(RelayError):
    """Raised when an inbound frame cannot be decoded into a JSON object.

    Non-fatal: the sender receives an ``error`` envelope and the connection
    stays open.
    """

    def __init__(self, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="scanrelay:protocol/malformed_frame",
            message=f"Malformed frame: {reason}",
            details=details or {},
        )
        self.reason = reason


class ConfigurationError(RelayError):
    """Raised when a setting has an unusable value."""

    def __init__(self, setting: str, value: Any, reason: str) -> None:
        super().__init__(
            code="scanrelay:config/invalid_value",
            message=f"Invalid value for {setting}: {value!r} ({reason})",
            details={"setting": setting, "value": value},
        )
        self.setting = setting
