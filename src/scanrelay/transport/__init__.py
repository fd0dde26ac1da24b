"""Transport layer of the scanner relay.

This package wires relay connections together:

- registry: connection handles and the (role, session id) registry
- notifier: pairing announcements
- router: inbound frame dispatch
- heartbeat: liveness sweep and diagnostics
- websocket: per-connection lifecycle and graceful shutdown
- server: FastAPI application factory

Example:
    >>> from scanrelay.transport import create_app
    >>> app = create_app()
"""

from scanrelay.transport.heartbeat import ConnectionCountLogger, HeartbeatMonitor
from scanrelay.transport.notifier import PairingNotifier
from scanrelay.transport.registry import ConnectionHandle, SessionRegistry
from scanrelay.transport.router import MessageRouter
from scanrelay.transport.server import create_app
from scanrelay.transport.websocket import RelayServer, parse_session_path

__all__ = [
    "ConnectionCountLogger",
    "ConnectionHandle",
    "HeartbeatMonitor",
    "MessageRouter",
    "PairingNotifier",
    "RelayServer",
    "SessionRegistry",
    "create_app",
    "parse_session_path",
]
