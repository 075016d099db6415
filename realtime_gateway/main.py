"""
Realtime Gateway main application.

Presence, study-group rooms and collaboration relay for Learnova clients
over a single websocket endpoint.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from shared.config.settings import settings
from shared.config.logging import setup_logging, gateway_logger as logger
from realtime_gateway.connection_manager import ConnectionManager
from realtime_gateway.components.auth.strategies import AuthStrategy, create_realtime_auth_strategy
from realtime_gateway.components.connection.heartbeat import IdleSweeper
from realtime_gateway.components.endpoints.handlers import REALTIME_ENDPOINT, RealtimeEndpoint
from realtime_gateway.components.metrics.prometheus import generate_prometheus_metrics


SERVICE_NAME = "realtime-gateway"
VERSION = "1.0.0"


def _create_user_table() -> None:
    from shared.infrastructure.db import get_engine
    from realtime_gateway.components.data.models import Base

    Base.metadata.create_all(bind=get_engine())


def create_app(
    manager: ConnectionManager | None = None,
    auth_strategy: AuthStrategy | None = None,
    create_tables: bool = True,
) -> FastAPI:
    """
    Build the ASGI application.

    Args:
        manager: Connection manager to serve. A fresh one is built when omitted.
        auth_strategy: Handshake gate. Defaults to JWT verification from settings.
        create_tables: Create the users table at startup if missing.
    """
    manager = manager or ConnectionManager()
    auth_strategy = auth_strategy or create_realtime_auth_strategy()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler.

        Starts the idle sweeper when ws_idle_timeout is set; on shutdown
        closes every connection and waits for pending user store writes.
        """
        setup_logging()
        logger.info(
            "Starting Realtime Gateway",
            port=settings.ws_gateway_port,
            env=settings.environment,
            idle_timeout=settings.ws_idle_timeout,
        )
        for error in settings.validate_production_secrets():
            logger.warning("Configuration problem", error=error)

        if create_tables:
            try:
                await asyncio.to_thread(_create_user_table)
            except Exception as e:
                logger.error("Could not prepare user store", error=str(e))

        sweeper: IdleSweeper | None = None
        if manager.config.ws_idle_timeout > 0:
            sweeper = IdleSweeper(manager.evict_idle, interval=manager.config.ws_idle_sweep_interval)
            sweeper.start()

        yield

        logger.info("Shutting down Realtime Gateway")
        if sweeper is not None:
            await sweeper.stop()
        await manager.shutdown()
        logger.info("Realtime Gateway stopped")

    app = FastAPI(
        title="Learnova Realtime Gateway",
        description="Presence and study-group collaboration over websockets",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.manager = manager
    app.state.auth_strategy = auth_strategy

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origin_list,
        allow_credentials=True,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    # =========================================================================
    # Diagnostics
    # =========================================================================

    @app.get("/ws/health")
    def health_check(request: Request):
        """Basic health check endpoint."""
        current: ConnectionManager = request.app.state.manager
        try:
            stats = current.get_stats()
        except Exception as e:
            logger.warning("Failed to get stats in health check", error=str(e))
            stats = {"error": "stats_unavailable"}
        return {
            "status": "shutting_down" if current.is_shutdown else "healthy",
            "service": SERVICE_NAME,
            "version": app.version,
            "environment": settings.environment,
            **stats,
        }

    @app.get("/ws/presence")
    def presence(request: Request):
        """Users currently online and room sizes."""
        return request.app.state.manager.get_presence()

    @app.get("/ws/metrics")
    def prometheus_metrics(request: Request):
        """
        Prometheus-compatible metrics endpoint.

        Configure Prometheus scrape:
            scrape_configs:
              - job_name: 'realtime-gateway'
                static_configs:
                  - targets: ['localhost:5000']
                metrics_path: '/ws/metrics'
        """
        return PlainTextResponse(
            content=generate_prometheus_metrics(request.app.state.manager),
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    # =========================================================================
    # WebSocket Endpoint
    # =========================================================================

    @app.websocket(REALTIME_ENDPOINT)
    async def realtime_websocket(
        websocket: WebSocket,
        token: str | None = Query(None, description="JWT token"),
    ):
        endpoint = RealtimeEndpoint(
            websocket,
            websocket.app.state.manager,
            websocket.app.state.auth_strategy,
            token,
        )
        await endpoint.run()

    return app


app = create_app()


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "realtime_gateway.main:app",
        host="0.0.0.0",
        port=settings.ws_gateway_port,
        reload=True,
    )
