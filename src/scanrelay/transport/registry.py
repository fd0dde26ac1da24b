"""Connection handles and the session registry.

A :class:`ConnectionHandle` wraps one accepted WebSocket together with the
role and session it claimed at upgrade time. The :class:`SessionRegistry`
keeps, per role, the single current handle for every session id. Registry
operations are plain dictionary mutations with no I/O; closing evicted sockets
and notifying peers is left to the caller holding the result.

All mutation happens on the event loop thread, so the registry needs no lock.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect, WebSocketState

from scanrelay.models.base import RelayBaseModel
from scanrelay.models.envelope import utc_now
from scanrelay.models.enums import Role
from scanrelay.observability import get_logger

logger = get_logger(__name__)

# Exceptions a send or close on a dying socket may raise
SEND_ERRORS: tuple[type[BaseException], ...] = (WebSocketDisconnect, RuntimeError, OSError)


@dataclass(eq=False)
class ConnectionHandle:
    """One live relay connection.

    Attributes:
        role: Side of the session this connection plays.
        session_id: Case-sensitive alphanumeric id shared with the peer.
        socket: The accepted WebSocket; owned exclusively by this handle.
        is_alive: Liveness flag flipped by the heartbeat sweep and reset by
            any inbound traffic.
        connected_at: When the upgrade was accepted.
        close_code: Code used when the relay itself closed the socket.
        close_reason: Reason used when the relay itself closed the socket.
        reader: Task reading this socket's frames, cancelled on server-side close.
    """

    role: Role
    session_id: str
    socket: WebSocket
    is_alive: bool = True
    connected_at: datetime = field(default_factory=utc_now)
    close_code: int | None = None
    close_reason: str | None = None
    reader: asyncio.Task[Any] | None = field(default=None, repr=False)
    _closed: bool = field(default=False, repr=False)

    @property
    def is_open(self) -> bool:
        """True while both ends of the socket are connected and nobody closed it."""
        if self._closed:
            return False
        return (
            self.socket.client_state == WebSocketState.CONNECTED
            and self.socket.application_state == WebSocketState.CONNECTED
        )

    @property
    def closed_by_server(self) -> bool:
        return self.close_code is not None

    def mark_alive(self) -> None:
        self.is_alive = True

    def mark_closed(self) -> None:
        self._closed = True

    async def send_text(self, text: str) -> None:
        """Send a text frame; errors propagate to the caller."""
        await self.socket.send_text(text)

    async def send(self, envelope: RelayBaseModel) -> None:
        await self.send_text(envelope.to_frame())

    async def try_send(self, envelope: RelayBaseModel) -> bool:
        """Send if the socket is still open, never raising.

        Returns:
            True if the frame was handed to the transport.
        """
        if not self.is_open:
            return False
        try:
            await self.send(envelope)
        except SEND_ERRORS as e:
            logger.warning(
                "scanrelay.connection.send_failed",
                role=self.role.value,
                session_id=self.session_id,
                error=str(e),
            )
            return False
        return True

    async def close(self, code: int, reason: str) -> None:
        """Close the socket from the server side and stop its reader.

        Idempotent; a second call keeps the first code and reason.
        """
        if self._closed:
            return
        self._closed = True
        self.close_code = code
        self.close_reason = reason
        with suppress(*SEND_ERRORS):
            await self.socket.close(code=code, reason=reason)
        reader = self.reader
        if reader is not None and reader is not asyncio.current_task() and not reader.done():
            reader.cancel()


class SessionRegistry:
    """Mapping of (role, session id) to the current connection handle.

    Example:
        >>> registry = SessionRegistry()
        >>> registry.lookup(Role.POS, "S1") is None
        True
    """

    def __init__(self) -> None:
        self._slots: dict[Role, dict[str, ConnectionHandle]] = {role: {} for role in Role}

    def register(
        self, role: Role, session_id: str, handle: ConnectionHandle
    ) -> ConnectionHandle | None:
        """Install ``handle`` as the occupant of the (role, session_id) slot.

        Returns:
            The evicted previous occupant, or None when the slot was free.
            The caller is responsible for closing it.
        """
        slot = self._slots[role]
        previous = slot.get(session_id)
        slot[session_id] = handle
        if previous is handle:
            return None
        return previous

    def lookup(self, role: Role, session_id: str) -> ConnectionHandle | None:
        return self._slots[role].get(session_id)

    def counterpart(self, handle: ConnectionHandle) -> ConnectionHandle | None:
        """Current handle of the opposite role in ``handle``'s session."""
        return self.lookup(handle.role.counterpart, handle.session_id)

    def remove(self, role: Role, session_id: str, handle: ConnectionHandle) -> bool:
        """Free the slot if ``handle`` still occupies it.

        A handle that was already superseded leaves the newer occupant alone.

        Returns:
            True if the slot was freed.
        """
        slot = self._slots[role]
        if slot.get(session_id) is not handle:
            return False
        del slot[session_id]
        return True

    def is_current(self, handle: ConnectionHandle) -> bool:
        return self.lookup(handle.role, handle.session_id) is handle

    def sessions(self, role: Role) -> list[str]:
        return list(self._slots[role])

    def count(self, role: Role | None = None) -> int:
        if role is not None:
            return len(self._slots[role])
        return sum(len(slot) for slot in self._slots.values())

    def __iter__(self) -> Iterator[ConnectionHandle]:
        # Snapshot so callers may mutate the registry while iterating
        handles = [h for slot in self._slots.values() for h in slot.values()]
        return iter(handles)

    def __len__(self) -> int:
        return self.count()
