"""
HTTP Observability
==================

Optional FastAPI surface mirroring the status pipe.

Endpoints:
    GET  /         - Service information
    GET  /health   - Liveness probe
    GET  /status   - Current status snapshot as JSON
    GET  /metrics  - Pipe counters

Off by default; enabled with `http.enabled` or `--http-port`. The app
only reads from the ServerContext, it never changes session state.
"""

import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from variable_rtsp import __version__
from variable_rtsp.context import ServerContext


logger = logging.getLogger(__name__)


def create_app(context: ServerContext) -> FastAPI:
    """Build the FastAPI app bound to one server context."""
    app = FastAPI(
        title="variable-rtsp-server",
        description="Adaptive shared RTSP stream control plane",
        version=__version__,
    )

    @app.get("/")
    async def root() -> JSONResponse:
        """Service information endpoint."""
        server = context.settings.server
        return JSONResponse({
            "service": "variable-rtsp-server",
            "version": __version__,
            "engine": context.settings.engine.backend,
            "stream": f"rtsp://{server.host}:{server.port}{server.mount_point}",
        })

    @app.get("/health")
    async def health() -> JSONResponse:
        """Liveness probe, always 200 while the process runs."""
        return JSONResponse({
            "status": "healthy",
            "uptime_seconds": round(context.uptime, 1),
        })

    @app.get("/status")
    async def status() -> JSONResponse:
        """Same fields as a status-pipe snapshot."""
        return JSONResponse(context.reporter.to_dict())

    @app.get("/metrics")
    async def metrics() -> JSONResponse:
        return JSONResponse({
            "uptime_seconds": round(context.uptime, 1),
            "messages_emitted": context.reporter.messages_emitted,
            "commands_handled": context.dispatcher.commands_handled,
            **context.metrics.to_dict(),
        })

    return app
