"""Periodic background tasks: liveness sweep and connection diagnostics.

The heartbeat sweep runs every ``interval`` seconds over all live
connections. Each pass marks every connection not-alive and sends it a
``heartbeat`` envelope; inbound traffic marks it alive again.

Pong frames never reach an ASGI application. When the ASGI server pings every
connection itself (``transport_pings``, the default under ``scanrelay serve``
which sets uvicorn's ``ws_ping_interval`` and ``ws_ping_timeout`` to the
heartbeat period), a socket that is still open has answered its pings, and a
missed pong surfaces as an ordinary disconnect one to two periods after the
last answer. Without transport pings the sweep closes any connection whose
flag is still False from the previous pass.
"""

from __future__ import annotations

import asyncio
from collections.abc import Collection
from contextlib import suppress

from scanrelay.models.envelope import HeartbeatEnvelope
from scanrelay.models.enums import Role
from scanrelay.observability import get_logger, get_metrics
from scanrelay.transport.registry import ConnectionHandle, SessionRegistry

logger = get_logger(__name__)

HEARTBEAT_INTERVAL = 30.0
DIAGNOSTICS_INTERVAL = 60.0

# Close code and reason for connections dropped by the sweep (RFC 6455 going away)
WS_CLOSE_GOING_AWAY = 1001
HEARTBEAT_TIMEOUT_REASON = "Heartbeat timeout"


class PeriodicTask:
    """Runs :meth:`tick` every ``interval`` seconds until stopped.

    An interval of 0 disables the task. Errors raised by a tick are logged and
    the loop keeps going.
    """

    name = "periodic"

    def __init__(self, interval: float) -> None:
        self.interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.interval <= 0 or self.running:
            return
        self._task = asyncio.create_task(self._run(), name=f"scanrelay-{self.name}")
        logger.debug("scanrelay.periodic.started", task=self.name, interval=self.interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        logger.debug("scanrelay.periodic.stopped", task=self.name)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.tick()
            except Exception as e:
                logger.warning("scanrelay.periodic.tick_error", task=self.name, error=str(e))

    async def tick(self) -> None:
        raise NotImplementedError


class HeartbeatMonitor(PeriodicTask):
    """Sends periodic heartbeats and closes connections found unresponsive.

    Args:
        connections: Live handles, shared with the relay server.
        interval: Seconds between passes.
        transport_pings: True when the ASGI server pings each socket and drops
            the ones that miss a pong. Staleness is then left to it.
    """

    name = "heartbeat"

    def __init__(
        self,
        connections: Collection[ConnectionHandle],
        interval: float = HEARTBEAT_INTERVAL,
        transport_pings: bool = True,
    ) -> None:
        super().__init__(interval)
        self._connections = connections
        self.transport_pings = transport_pings

    async def tick(self) -> None:
        await self.sweep()

    async def sweep(self) -> list[ConnectionHandle]:
        """Run one liveness pass.

        Returns:
            The connections terminated during this pass.
        """
        terminated: list[ConnectionHandle] = []
        for handle in list(self._connections):
            if not handle.is_open:
                continue
            if not handle.is_alive and not self.transport_pings:
                logger.info(
                    "scanrelay.heartbeat.unresponsive",
                    role=handle.role.value,
                    session_id=handle.session_id,
                )
                await self._terminate(handle)
                terminated.append(handle)
                continue
            handle.is_alive = False
            if not await handle.try_send(HeartbeatEnvelope()):
                await self._terminate(handle)
                terminated.append(handle)
        return terminated

    async def _terminate(self, handle: ConnectionHandle) -> None:
        get_metrics().increment_counter(
            "scanrelay_heartbeat_terminations_total", {"role": handle.role.value}
        )
        await handle.close(WS_CLOSE_GOING_AWAY, HEARTBEAT_TIMEOUT_REASON)


class ConnectionCountLogger(PeriodicTask):
    """Logs how many connections each role holds and which sessions are paired."""

    name = "diagnostics"

    def __init__(self, registry: SessionRegistry, interval: float = DIAGNOSTICS_INTERVAL) -> None:
        super().__init__(interval)
        self._registry = registry

    async def tick(self) -> None:
        self.report()

    def report(self) -> dict[str, list[str]]:
        """Log the current pairing picture and return it.

        Returns:
            ``paired``, ``pos_only`` and ``scanner_only`` session id lists.
        """
        pos_sessions = set(self._registry.sessions(Role.POS))
        scanner_sessions = set(self._registry.sessions(Role.SCANNER))
        summary = {
            "paired": sorted(pos_sessions & scanner_sessions),
            "pos_only": sorted(pos_sessions - scanner_sessions),
            "scanner_only": sorted(scanner_sessions - pos_sessions),
        }
        logger.info(
            "scanrelay.diagnostics.connections",
            pos=len(pos_sessions),
            scanner=len(scanner_sessions),
            **summary,
        )
        return summary
