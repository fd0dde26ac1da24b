"""Shared pytest fixtures for relay tests."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from scanrelay.config import RelaySettings
from scanrelay.observability import reset_metrics
from scanrelay.transport.server import create_app
from scanrelay.transport.websocket import RelayServer

# Short enough to keep tests fast, long enough that the handshake is observable
TEST_SETTLE_DELAY = 0.01


@pytest.fixture(autouse=True)
def _reset_metrics() -> Iterator[None]:
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def settings() -> RelaySettings:
    return RelaySettings(
        settle_delay=TEST_SETTLE_DELAY,
        heartbeat_interval=3600.0,
        diagnostics_interval=0.0,
    )


@pytest.fixture
def relay(settings: RelaySettings) -> RelayServer:
    return RelayServer.from_settings(settings)


@pytest.fixture
def app(settings: RelaySettings, relay: RelayServer) -> FastAPI:
    return create_app(settings, relay=relay)


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    # Entering the client runs the lifespan and shares one event loop
    # between all WebSocket sessions opened through it.
    with TestClient(app) as test_client:
        yield test_client
