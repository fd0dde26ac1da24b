"""Shared test doubles and helpers for relay tests.

This module provides an in-memory stand-in for a Starlette WebSocket so the
registry, router, notifier and heartbeat can be exercised without a server.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

from starlette.websockets import WebSocketState

from scanrelay.models.enums import Role
from scanrelay.transport.registry import ConnectionHandle


class FakeWebSocket:
    """Records frames sent by the relay and replays frames pushed by a test."""

    def __init__(self, path: str = "/api/ws/scanner/S1", accepted: bool = True) -> None:
        state = WebSocketState.CONNECTED if accepted else WebSocketState.CONNECTING
        self.client_state = state
        self.application_state = state
        self.scope: dict[str, Any] = {"type": "websocket", "path": path}
        self.client = ("127.0.0.1", 50000)
        self.sent: list[str] = []
        self.closed_with: tuple[int, str] | None = None
        self.fail_sends = False
        self._incoming: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    async def accept(self) -> None:
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED

    async def send_text(self, text: str) -> None:
        if self.fail_sends:
            raise RuntimeError("send failed")
        if self.application_state != WebSocketState.CONNECTED:
            raise RuntimeError('Cannot call "send" once a close message has been sent.')
        self.sent.append(text)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        if self.application_state == WebSocketState.DISCONNECTED:
            raise RuntimeError("Unexpected ASGI message 'websocket.close'")
        self.closed_with = (code, reason or "")
        self.application_state = WebSocketState.DISCONNECTED

    async def receive(self) -> dict[str, Any]:
        message = await self._incoming.get()
        if message["type"] == "websocket.disconnect":
            self.client_state = WebSocketState.DISCONNECTED
        return message

    def push_text(self, text: str) -> None:
        self._incoming.put_nowait({"type": "websocket.receive", "text": text})

    def push_json(self, data: dict[str, Any]) -> None:
        self.push_text(json.dumps(data))

    def push_bytes(self, data: bytes) -> None:
        self._incoming.put_nowait({"type": "websocket.receive", "bytes": data})

    def push_disconnect(self, code: int = 1000, reason: str = "") -> None:
        self._incoming.put_nowait({"type": "websocket.disconnect", "code": code, "reason": reason})

    def drop(self) -> None:
        """Simulate the peer vanishing without a close frame."""
        self.client_state = WebSocketState.DISCONNECTED

    def sent_json(self) -> list[dict[str, Any]]:
        return [json.loads(text) for text in self.sent]

    def sent_types(self) -> list[str]:
        return [message["type"] for message in self.sent_json()]


def make_handle(role: Role = Role.SCANNER, session_id: str = "S1") -> ConnectionHandle:
    """Create a handle around a fresh, already-accepted fake socket."""
    socket = FakeWebSocket(path=f"/api/ws/{role.value}/{session_id}")
    return ConnectionHandle(role=role, session_id=session_id, socket=socket)  # type: ignore[arg-type]


def fake_socket(handle: ConnectionHandle) -> FakeWebSocket:
    assert isinstance(handle.socket, FakeWebSocket)
    return handle.socket


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the event loop until ``predicate`` holds or ``timeout`` elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)
