"""
FastAPI dependency injection module for the Callboard live-update service.

This module provides reusable FastAPI dependencies for configuration access and
for the long-lived engine objects created in the application lifespan (the
upstream client, the polling controller and its notification sequencer).

Key Dependencies Provided:
- get_settings_dependency / SettingsDep: the cached Settings singleton
- get_upstream_client / UpstreamDep: the shared UpstreamClient
- get_live_controller / ControllerDep: the PollingController owning the live session
- get_sequencer / SequencerDep: the controller's NotificationSequencer

The engine objects live on ``app.state`` so that tests can swap them out, either
by assigning ``app.state`` attributes or through ``app.dependency_overrides``.

Usage Examples:
    @router.get("/session")
    async def get_session(controller: ControllerDep) -> SessionView:
        return controller.view()
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from callboard.core.config import Settings, get_settings
from callboard.services.notifications import NotificationSequencer
from callboard.services.polling import PollingController
from callboard.services.upstream import UpstreamClient


# =============================================================================
# Settings Dependency
# =============================================================================

def get_settings_dependency() -> Settings:
    """
    Return the Settings singleton instance.

    Thin wrapper around get_settings() so tests can override it with
    ``app.dependency_overrides[get_settings_dependency] = lambda: test_settings``.
    """
    return get_settings()


# =============================================================================
# Engine Dependencies
# =============================================================================

def _from_state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=503, detail=f"Service not ready: {name} unavailable")
    return value


def get_upstream_client(request: Request) -> UpstreamClient:
    return _from_state(request, "upstream")


def get_live_controller(request: Request) -> PollingController:
    """
    Return the PollingController created during startup.

    Raises:
        HTTPException 503: If the application lifespan has not run.
    """
    return _from_state(request, "controller")


def get_sequencer(request: Request) -> NotificationSequencer:
    return _from_state(request, "controller").sequencer


# =============================================================================
# Type Aliases for Dependency Injection
# =============================================================================

# Usage: async def endpoint(settings: SettingsDep)
SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]

# Usage: async def endpoint(upstream: UpstreamDep)
UpstreamDep = Annotated[UpstreamClient, Depends(get_upstream_client)]

# Usage: async def endpoint(controller: ControllerDep)
ControllerDep = Annotated[PollingController, Depends(get_live_controller)]

# Usage: async def endpoint(sequencer: SequencerDep)
SequencerDep = Annotated[NotificationSequencer, Depends(get_sequencer)]
