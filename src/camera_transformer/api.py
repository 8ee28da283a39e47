"""
Status API
==========

FastAPI application exposing relay health and metrics.

Endpoints:
    GET  /          - Service information
    GET  /health    - Liveness probe (is process alive?)
    GET  /ready     - Readiness probe (bindings active + transport connected?)
    GET  /metrics   - Per-binding and transport metrics
"""

import time

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from camera_transformer import __version__
from camera_transformer.relay import StreamRelay
from camera_transformer.transport.base import Transport


def create_app(relay: StreamRelay, transport: Transport) -> FastAPI:
    """
    Build the status application for a running relay.

    Args:
        relay: The relay whose bindings are reported
        transport: The transport the relay is wired to

    Returns:
        FastAPI application (served by uvicorn from main.py)
    """
    app = FastAPI(
        title="camera-transformer",
        description="Image stream transformation relay",
        version=__version__,
    )
    startup_time = time.time()

    @app.get("/")
    async def root() -> JSONResponse:
        """Service information endpoint."""
        return JSONResponse({
            "service": "camera-transformer",
            "version": __version__,
            "bindings": [
                {"input": b.mapping.input_name, "output": b.mapping.output_name}
                for b in relay.bindings
            ],
        })

    @app.get("/health")
    async def health() -> JSONResponse:
        """Liveness probe. Always 200 while the process is running."""
        return JSONResponse({
            "status": "healthy",
            "uptime_seconds": round(time.time() - startup_time, 1),
        })

    @app.get("/ready")
    async def ready() -> JSONResponse:
        """
        Readiness probe.

        Returns 200 when every binding is active and the transport is
        connected, 503 otherwise.
        """
        bindings_active = relay.is_active()
        transport_connected = transport.connected
        body = {
            "status": "ready" if bindings_active and transport_connected else "not_ready",
            "bindings_active": bindings_active,
            "transport_connected": transport_connected,
        }
        return JSONResponse(body, status_code=200 if body["status"] == "ready" else 503)

    @app.get("/metrics")
    async def metrics() -> JSONResponse:
        """Detailed metrics for observability."""
        return JSONResponse({
            "uptime_seconds": round(time.time() - startup_time, 1),
            "bindings": relay.metrics(),
            "transport": transport.metrics(),
        })

    return app
