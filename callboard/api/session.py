"""
FastAPI router module for the live filter session.

Drives the polling controller from the presentation layer.

Key Endpoints:
- GET /session - Current state, filters and last fetched statistics
- PUT /session/filters - Record a filter edit (suspends polling, clears alerts)
- POST /session/search - Explicit search: new generation, one fetch
- POST /session/refresh - Forced fetch with the current or last applied filters

Search and refresh return as soon as the fetch is issued. Pass ``?wait=true``
to wait for the fetch and get its outcome in the response.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, HTTPException, Query

from callboard.core.dependencies import ControllerDep
from callboard.core.errors import NoUsableFiltersError
from callboard.models.schemas import FetchTicketResponse, SessionView, StatisticsFilter


# =============================================================================
# Module Configuration
# =============================================================================

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# GET /session
# =============================================================================


@router.get("", response_model=SessionView)
async def get_session(controller: ControllerDep) -> SessionView:
    """Return the live session as seen by the presentation layer."""
    return controller.view()


# =============================================================================
# PUT /session/filters
# =============================================================================


@router.put("/filters", response_model=SessionView)
async def update_filters(filters: StatisticsFilter, controller: ControllerDep) -> SessionView:
    """
    Record an edit of the filter form.

    Auto-polling stops and pending alerts are dropped until the next search.
    The last fetched statistics stay in the response.
    """
    controller.mark_dirty(filters)
    return controller.view()


# =============================================================================
# POST /session/search and /session/refresh
# =============================================================================


@router.post("/search", response_model=FetchTicketResponse)
async def search(
    controller: ControllerDep,
    filters: Optional[StatisticsFilter] = Body(default=None),
    wait: bool = Query(default=False, description="Wait for the fetch to finish"),
) -> FetchTicketResponse:
    """
    Start a new search generation and issue exactly one fetch.

    Args:
        filters: Filters to search with; defaults to the last edited set
        wait: Wait for the fetch and include its outcome

    Raises:
        HTTPException 409: If the filters lack an agent, a project or a date bound
    """
    try:
        task = controller.fetch_now(filters)
    except NoUsableFiltersError as e:
        raise HTTPException(status_code=409, detail=str(e))

    generation = controller.session.search_generation
    outcome = await task if wait else None
    return FetchTicketResponse(searchGeneration=generation, state=controller.state, outcome=outcome)


@router.post("/refresh", response_model=FetchTicketResponse)
async def refresh(
    controller: ControllerDep,
    wait: bool = Query(default=False, description="Wait for the fetch to finish"),
) -> FetchTicketResponse:
    """
    Force one fetch regardless of the polling state.

    Raises:
        HTTPException 409: If there are neither valid current nor previously applied filters
    """
    try:
        task = controller.refresh()
    except NoUsableFiltersError as e:
        raise HTTPException(status_code=409, detail=str(e))

    generation = controller.session.search_generation
    outcome = await task if wait else None
    return FetchTicketResponse(searchGeneration=generation, state=controller.state, outcome=outcome)
