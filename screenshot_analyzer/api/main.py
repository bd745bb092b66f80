"""
FastAPI application for the Screenshot Analyzer service.

This module initializes and configures the FastAPI application that accepts
screenshot submissions and reports server status.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from screenshot_analyzer.api.endpoints import control, screenshot
from screenshot_analyzer.config.settings import settings
from screenshot_analyzer.core.event_sink import BroadcastEventSink
from screenshot_analyzer.service import ScreenshotService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager for startup and shutdown events.

    Builds the service from settings when none was injected, starts it on
    startup and stops it on shutdown.
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    if app.state.service is None:
        # Raises ConfigurationError without an AI service key, aborting startup.
        app.state.service = ScreenshotService.from_settings(settings, event_sink=BroadcastEventSink())

    service: ScreenshotService = app.state.service
    await service.start()

    yield

    logger.info("Shutting down application")
    await service.stop()


def create_app(service: Optional[ScreenshotService] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        service: Service to serve. Built from settings at startup when omitted.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="""Screenshot analysis API.

        This API provides endpoints for:
        - Submitting screenshots for AI summary and content classification
        - Listing recently analyzed screenshots
        - Server status, connection info and health monitoring
        - Toggling desktop screenshot auto-detection
        - Streaming processed-screenshot events over WebSocket""",
        debug=settings.DEBUG,
        lifespan=lifespan,
        openapi_tags=[
            {
                "name": "screenshots",
                "description": "Screenshot submission and status"
            },
            {
                "name": "control",
                "description": "Runtime control"
            },
            {
                "name": "health",
                "description": "Health check and monitoring"
            }
        ]
    )
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API routers
    app.include_router(screenshot.router, tags=["screenshots"])
    app.include_router(control.router, prefix="/control", tags=["control"])

    # Prometheus exposition
    app.mount("/metrics", make_asgi_app())

    @app.get("/health", tags=["health"], summary="Health Check")
    async def health_check():
        """
        Liveness marker.

        Returns:
            dict: Fixed healthy status, the server name and the current UTC time.
        """
        server_name = app.state.service.server_name if app.state.service is not None else settings.APP_NAME
        return {
            "status": "healthy",
            "server": server_name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app


# Create the application instance
app = create_app()
