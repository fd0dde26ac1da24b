"""FastAPI application for the scanner relay.

The relay shares its HTTP listener with a few plain endpoints:

- ``GET /health`` and ``GET /api/health``: liveness probe
- ``GET /api/health/websocket``: WebSocket endpoint templates, timings and
  live connection counts, for pairing troubleshooting
- ``GET /relay/metrics``: Prometheus-compatible metrics
- WebSocket ``/api/ws/{role}/{sessionId}``: the relay itself. Every other
  WebSocket path is routed to the relay too, so it can be refused with 1008.

Example:
    >>> from scanrelay.config import RelaySettings
    >>> from scanrelay.transport.server import create_app
    >>> app = create_app(RelaySettings(settle_delay=0.1))
    >>>
    >>> # Run with: uvicorn scanrelay.transport.server:create_app --factory --port 3000
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket
from fastapi.responses import JSONResponse, PlainTextResponse

from scanrelay import __version__
from scanrelay.config import RelaySettings
from scanrelay.models.envelope import utc_now
from scanrelay.models.enums import Role
from scanrelay.observability import get_logger, get_metrics
from scanrelay.transport.websocket import SESSION_PATH_TEMPLATE, RelayServer

logger = get_logger(__name__)


def _timestamp() -> str:
    return utc_now().isoformat(timespec="milliseconds").replace("+00:00", "Z")


def create_app(
    settings: RelaySettings | None = None,
    relay: RelayServer | None = None,
) -> FastAPI:
    """Create the FastAPI application hosting the relay.

    Args:
        settings: Relay settings. Defaults to ``RelaySettings.from_env()``.
        relay: Pre-built relay server, mainly for tests. Built from
            ``settings`` when omitted.

    Returns:
        Configured FastAPI application. The relay is available as
        ``app.state.relay``; its background tasks run for the lifespan of the app.
    """
    if settings is None:
        settings = RelaySettings.from_env()
    if relay is None:
        relay = RelayServer.from_settings(settings)

    @asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
        relay.start()
        try:
            yield
        finally:
            await relay.shutdown()

    app = FastAPI(
        title="Scanner Relay",
        description="Pairs barcode scanners with point-of-sale terminals over WebSocket",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        lifespan=_lifespan,
    )
    app.state.relay = relay
    app.state.settings = settings

    def _health_payload() -> dict[str, str]:
        return {
            "status": "ok",
            "message": "API is running",
            "timestamp": _timestamp(),
        }

    @app.get("/health")
    async def health() -> JSONResponse:
        """Liveness probe: always OK if the process is running."""
        return JSONResponse(status_code=200, content=_health_payload())

    @app.get("/api/health")
    async def api_health() -> JSONResponse:
        return JSONResponse(status_code=200, content=_health_payload())

    @app.get("/api/health/websocket")
    async def websocket_info() -> JSONResponse:
        """Describe the relay endpoints so clients can check their pairing setup."""
        registry = relay.registry
        return JSONResponse(
            status_code=200,
            content={
                "status": "ok",
                "message": "WebSocket server is configured",
                "timestamp": _timestamp(),
                "serverInfo": {
                    "webSocketEnabled": not relay.closing,
                    "port": settings.port,
                    "endpoints": {
                        role.value: SESSION_PATH_TEMPLATE.replace("{role}", role.value)
                        for role in Role
                    },
                    "heartbeatIntervalSeconds": relay.heartbeat.interval,
                    "transportPings": relay.heartbeat.transport_pings,
                    "settleDelaySeconds": relay.settle_delay,
                    "connections": {role.value: registry.count(role) for role in Role},
                },
            },
        )

    @app.get("/relay/metrics")
    async def metrics() -> PlainTextResponse:
        """Return relay metrics in Prometheus text format."""
        return PlainTextResponse(
            content=get_metrics().export_prometheus(),
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    @app.websocket("/{ws_path:path}")
    async def relay_websocket(websocket: WebSocket, ws_path: str) -> None:
        """Relay connection; the full path is validated by the relay."""
        await relay.handle(websocket)

    logger.info(
        "scanrelay.server.app_created",
        port=settings.port,
        heartbeat_interval=settings.heartbeat_interval,
        settle_delay=settings.settle_delay,
    )
    return app
