"""
FastAPI application entry point for the Callboard live-update API.

This module wires the live-update engine together and exposes it over HTTP.
It configures logging and CORS, builds the engine objects in the application
lifespan and registers the API routers.

Engine objects created at startup (stored on ``app.state``):
- upstream: UpstreamClient for the external dashboard API
- controller: PollingController with its NotificationSequencer and scheduler
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from callboard import __version__
from callboard.api import api_router
from callboard.core.config import get_settings
from callboard.core.errors import UpstreamError
from callboard.services.notifications import NotificationSequencer
from callboard.services.outcome_classifier import (
    DEFAULT_CLASSIFIER,
    LookupOutcomeClassifier,
    log_classifier_conflicts,
)
from callboard.services.polling import PollingController
from callboard.services.scheduler import AsyncioScheduler
from callboard.services.upstream import UpstreamClient

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for FastAPI application startup and shutdown events.

    On startup:
        - Build the upstream client, scheduler, sequencer and polling controller
        - Report outcome labels the two classification tables disagree on
        - Load agent/project names for alert labels

    On shutdown:
        - Stop polling, drop pending alerts and close the upstream client
    """
    # Startup
    settings = get_settings()
    logger.info(f"Callboard API starting against {settings.upstream_base_url}")

    upstream = UpstreamClient.from_settings(settings)
    scheduler = AsyncioScheduler()
    sequencer = NotificationSequencer(
        scheduler,
        default_display_seconds=settings.default_display_seconds,
        milestone_display_seconds=settings.milestone_display_seconds,
        milestone_outcomes=settings.milestone_outcomes,
    )
    controller = PollingController.from_settings(
        settings,
        fetch_statistics=upstream.fetch_statistics,
        sequencer=sequencer,
        scheduler=scheduler,
    )

    log_classifier_conflicts(DEFAULT_CLASSIFIER, LookupOutcomeClassifier())

    try:
        controller.directory = await upstream.fetch_directory()
        logger.info(
            f"Loaded {len(controller.directory.agents)} agents and "
            f"{len(controller.directory.projects)} projects"
        )
    except UpstreamError as e:
        # Alerts fall back to raw ids until names are available
        logger.warning(f"Failed to load agent/project names: {e.message}")

    app.state.upstream = upstream
    app.state.controller = controller

    yield

    # Shutdown
    logger.info("Callboard API shutting down")
    await controller.shutdown()
    await upstream.aclose()


# Create FastAPI application
app = FastAPI(
    title="Callboard API",
    version=__version__,
    description=(
        "Live-update backend for call-center agent and campaign statistics. "
        "Polls aggregate statistics, detects counter increases and sequences "
        "them as alerts; groups per-call detail records."
    ),
    lifespan=lifespan,
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register API routers (session, notifications, calls)
app.include_router(api_router)


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancer probes.

    Returns:
        Dict with status 'healthy'
    """
    return {"status": "healthy"}


@app.get("/")
async def root():
    """
    Root endpoint providing API information.

    Returns:
        Dict with API name and version
    """
    return {
        "name": "Callboard API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


# Run with uvicorn when executed directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "callboard.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
