"""WebSocket lifecycle for the scanner relay.

Clients connect to ``/api/ws/{role}/{sessionId}`` where role is ``scanner``
or ``pos`` and the session id is alphanumeric. Any other path is refused with
close code 1008 before the upgrade is accepted.

Lifecycle of one connection:

1. Validate the path and accept the upgrade.
2. Register the handle, closing (1000) whichever connection held the same
   role and session before.
3. After a short settle delay, confirm the registration and pair with the
   counterpart if one is open.
4. Read frames in arrival order and hand each to the router.
5. On close, termination or eviction, free the registry slot (only if this
   handle still owns it) and tell the counterpart.

Everything runs on the event loop; the registry is only touched from there.
"""

from __future__ import annotations

import asyncio
import re
from contextlib import suppress

from fastapi import WebSocket

from scanrelay.config import RelaySettings
from scanrelay.errors import InvalidSessionPathError
from scanrelay.models.envelope import ErrorEnvelope, ServerShutdownEnvelope, utc_now
from scanrelay.models.enums import Role
from scanrelay.observability import get_logger, get_metrics
from scanrelay.transport.heartbeat import (
    DIAGNOSTICS_INTERVAL,
    HEARTBEAT_INTERVAL,
    WS_CLOSE_GOING_AWAY,
    ConnectionCountLogger,
    HeartbeatMonitor,
)
from scanrelay.transport.notifier import PairingNotifier
from scanrelay.transport.registry import ConnectionHandle, SessionRegistry
from scanrelay.transport.router import MessageRouter

logger = get_logger(__name__)

SESSION_PATH_PATTERN = re.compile(r"^/api/ws/(scanner|pos)/([A-Za-z0-9]+)$")
SESSION_PATH_TEMPLATE = "/api/ws/{role}/{sessionId}"

# Delay between registration and the pairing handshake (seconds)
SETTLE_DELAY = 0.5

# RFC 6455 close codes
WS_CLOSE_NORMAL = 1000
WS_CLOSE_ABNORMAL = 1006
WS_CLOSE_INTERNAL_ERROR = 1011

EVICTION_REASON = "Nueva conexión establecida para la misma sesión"
SHUTDOWN_MESSAGE = "El servidor se está cerrando de manera controlada"
SHUTDOWN_REASON = "Servidor cerrándose de manera controlada"
CONNECTION_ERROR_MESSAGE = "Error en la conexión WebSocket"


def parse_session_path(path: str) -> tuple[Role, str]:
    """Extract (role, session id) from an upgrade path.

    Example:
        >>> parse_session_path("/api/ws/scanner/S1")
        (<Role.SCANNER: 'scanner'>, 'S1')

    Raises:
        InvalidSessionPathError: If the path does not follow the relay grammar.
    """
    match = SESSION_PATH_PATTERN.fullmatch(path)
    if match is None:
        raise InvalidSessionPathError(path)
    return Role(match.group(1)), match.group(2)


class RelayServer:
    """Owns the session registry and drives every relay connection.

    Attributes:
        registry: Current handle per (role, session id).
        connections: Every accepted connection not yet torn down, including
            ones already superseded in the registry.
        notifier: Pairing announcements.
        router: Inbound frame dispatch.
        heartbeat: Liveness sweep over ``connections``.
        diagnostics: Periodic connection-count log.
    """

    def __init__(
        self,
        settle_delay: float = SETTLE_DELAY,
        heartbeat_interval: float = HEARTBEAT_INTERVAL,
        diagnostics_interval: float = DIAGNOSTICS_INTERVAL,
        transport_pings: bool = True,
    ) -> None:
        self.settle_delay = settle_delay
        self.registry = SessionRegistry()
        self.connections: set[ConnectionHandle] = set()
        self.notifier = PairingNotifier(self.registry)
        self.router = MessageRouter(self.registry)
        self.heartbeat = HeartbeatMonitor(
            self.connections, heartbeat_interval, transport_pings=transport_pings
        )
        self.diagnostics = ConnectionCountLogger(self.registry, diagnostics_interval)
        self._announcements: set[asyncio.Task[None]] = set()
        self._closing = False

    @classmethod
    def from_settings(cls, settings: RelaySettings) -> "RelayServer":
        return cls(
            settle_delay=settings.settle_delay,
            heartbeat_interval=settings.heartbeat_interval,
            diagnostics_interval=settings.diagnostics_interval,
            transport_pings=settings.transport_pings,
        )

    @property
    def closing(self) -> bool:
        return self._closing

    def start(self) -> None:
        """Start the heartbeat sweep and the diagnostics log."""
        self._closing = False
        self.heartbeat.start()
        self.diagnostics.start()
        logger.info(
            "scanrelay.server.started",
            heartbeat_interval=self.heartbeat.interval,
            transport_pings=self.heartbeat.transport_pings,
            diagnostics_interval=self.diagnostics.interval,
            settle_delay=self.settle_delay,
        )

    async def shutdown(self) -> None:
        """Stop periodic tasks, then notify and close every live connection."""
        self._closing = True
        await self.heartbeat.stop()
        await self.diagnostics.stop()
        for task in list(self._announcements):
            task.cancel()

        handles = list(self.connections)
        for handle in handles:
            await handle.try_send(ServerShutdownEnvelope(message=SHUTDOWN_MESSAGE))
            await handle.close(WS_CLOSE_NORMAL, SHUTDOWN_REASON)
        logger.info("scanrelay.server.shutdown", closed=len(handles))

    async def handle(self, websocket: WebSocket) -> None:
        """Serve one WebSocket from upgrade to teardown."""
        path = websocket.scope.get("path", "")
        try:
            role, session_id = parse_session_path(path)
        except InvalidSessionPathError as e:
            get_metrics().increment_counter("scanrelay_connections_rejected_total")
            logger.warning(
                "scanrelay.connection.rejected",
                path=path,
                client=str(websocket.client),
                error=e.code,
            )
            await websocket.close(code=e.close_code, reason=e.close_reason)
            return

        if self._closing:
            await websocket.close(code=WS_CLOSE_GOING_AWAY, reason=SHUTDOWN_REASON)
            return

        await websocket.accept()
        handle = ConnectionHandle(role=role, session_id=session_id, socket=websocket)
        await self._register(handle)
        logger.info(
            "scanrelay.connection.accepted",
            role=role.value,
            session_id=session_id,
            client=str(websocket.client),
        )
        self._schedule_announcement(handle)
        await self._serve(handle)

    async def _register(self, handle: ConnectionHandle) -> None:
        self.connections.add(handle)
        previous = self.registry.register(handle.role, handle.session_id, handle)
        get_metrics().increment_counter(
            "scanrelay_connections_total", {"role": handle.role.value}
        )
        self._update_gauges()
        if previous is None:
            return
        get_metrics().increment_counter("scanrelay_evictions_total", {"role": handle.role.value})
        logger.info(
            "scanrelay.registry.evicted",
            role=handle.role.value,
            session_id=handle.session_id,
            previous_open=previous.is_open,
        )
        if previous.is_open:
            await previous.close(WS_CLOSE_NORMAL, EVICTION_REASON)
        else:
            previous.mark_closed()

    def _schedule_announcement(self, handle: ConnectionHandle) -> None:
        task = asyncio.create_task(self._announce_after_settle(handle))
        self._announcements.add(task)
        task.add_done_callback(self._announcements.discard)

    async def _announce_after_settle(self, handle: ConnectionHandle) -> None:
        if self.settle_delay > 0:
            await asyncio.sleep(self.settle_delay)
        await self.notifier.announce(handle)

    async def _serve(self, handle: ConnectionHandle) -> None:
        reader = asyncio.create_task(
            self._read_frames(handle),
            name=f"scanrelay-reader-{handle.role.value}-{handle.session_id}",
        )
        handle.reader = reader
        try:
            await asyncio.wait({reader})
        finally:
            if not reader.done():
                reader.cancel()
                with suppress(asyncio.CancelledError):
                    await reader
            code, reason = await self._close_details(handle, reader)
            await self._teardown(handle, code, reason)

    async def _read_frames(self, handle: ConnectionHandle) -> tuple[int, str | None]:
        """Feed frames to the router until the client disconnects.

        Returns:
            The close code and reason sent by the client.
        """
        while True:
            message = await handle.socket.receive()
            if message["type"] == "websocket.disconnect":
                return message.get("code", WS_CLOSE_NORMAL), message.get("reason") or None
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes") or b""
            await self.router.route(handle, raw)

    async def _close_details(
        self, handle: ConnectionHandle, reader: asyncio.Task[tuple[int, str | None]]
    ) -> tuple[int | None, str | None]:
        if handle.closed_by_server:
            return handle.close_code, handle.close_reason
        if not reader.done() or reader.cancelled():
            return WS_CLOSE_ABNORMAL, None
        error = reader.exception()
        if error is not None:
            logger.warning(
                "scanrelay.connection.error",
                role=handle.role.value,
                session_id=handle.session_id,
                error=str(error),
            )
            await handle.try_send(
                ErrorEnvelope(message=CONNECTION_ERROR_MESSAGE, details=str(error))
            )
            await handle.close(WS_CLOSE_INTERNAL_ERROR, "Internal error")
            return WS_CLOSE_INTERNAL_ERROR, str(error)
        return reader.result()

    async def _teardown(
        self, handle: ConnectionHandle, code: int | None, reason: str | None
    ) -> None:
        handle.mark_closed()
        self.connections.discard(handle)
        current = self.registry.remove(handle.role, handle.session_id, handle)
        if current:
            await self.notifier.notify_disconnect(handle, code, reason)
        self._update_gauges()
        logger.info(
            "scanrelay.connection.closed",
            role=handle.role.value,
            session_id=handle.session_id,
            code=code,
            reason=reason,
            superseded=not current,
            duration_seconds=round((utc_now() - handle.connected_at).total_seconds(), 3),
        )

    def _update_gauges(self) -> None:
        metrics = get_metrics()
        for role in Role:
            metrics.set_gauge(
                "scanrelay_active_connections", self.registry.count(role), {"role": role.value}
            )
