"""
FastAPI router module for per-call detail views.

Key Endpoints:
- POST /calls/group - Normalize and group raw call records supplied by the caller
- GET /calls/{agent_id}/{project_id} - Fetch detail records upstream, then group them
- POST /calls/{agent_id}/{project_id}/refresh - Merge newly fetched records into a shown batch

Grouping is pure: the same batch always yields the same groups and
representatives. Upstream failures map to 504 (timeout) and 502 (other).
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query

from callboard.core.dependencies import SettingsDep, UpstreamDep
from callboard.core.errors import FetchError, FetchTimeout
from callboard.models.schemas import CallGroup
from callboard.services.grouping import merge_records, normalize_and_group
from callboard.services.upstream import UpstreamClient


# =============================================================================
# Module Configuration
# =============================================================================

logger = logging.getLogger(__name__)

router = APIRouter()

_DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
_TIME_PATTERN = r"^\d{2}:\d{2}$"


# =============================================================================
# POST /calls/group
# =============================================================================


@router.post("/group", response_model=List[CallGroup])
async def group_calls(
    records: List[Dict[str, Any]],
    settings: SettingsDep,
) -> List[CallGroup]:
    """
    Normalize and group raw call records.

    Unparseable timestamps and durations degrade to null/zero rather than
    failing the request.

    Returns:
        Call groups, newest representative first
    """
    return normalize_and_group(records, tz=settings.tzinfo)


# =============================================================================
# GET /calls/{agent_id}/{project_id}
# =============================================================================


async def _fetch_details(
    upstream: UpstreamClient,
    agent_id: str,
    project_id: str,
    **window: Optional[str],
) -> List[Dict[str, Any]]:
    """Fetch raw detail records, mapping upstream failures to HTTP errors."""
    try:
        return await upstream.fetch_call_details(agent_id, project_id, **window)
    except FetchTimeout as e:
        logger.warning(f"Call details for {agent_id}/{project_id} timed out: {e.message}")
        raise HTTPException(status_code=504, detail=e.message)
    except FetchError as e:
        logger.warning(f"Call details for {agent_id}/{project_id} failed: {e.message}")
        raise HTTPException(status_code=502, detail=e.message)


@router.get("/{agent_id}/{project_id}", response_model=List[CallGroup])
async def get_call_groups(
    agent_id: str,
    project_id: str,
    settings: SettingsDep,
    upstream: UpstreamDep,
    dateFrom: Optional[str] = Query(default=None, pattern=_DATE_PATTERN),
    dateTo: Optional[str] = Query(default=None, pattern=_DATE_PATTERN),
    timeFrom: Optional[str] = Query(default=None, pattern=_TIME_PATTERN),
    timeTo: Optional[str] = Query(default=None, pattern=_TIME_PATTERN),
) -> List[CallGroup]:
    """
    Fetch the calls of one agent in one project and group them.

    Raises:
        HTTPException 504: If the upstream detail request timed out
        HTTPException 502: If the upstream detail request failed
    """
    records = await _fetch_details(
        upstream,
        agent_id,
        project_id,
        date_from=dateFrom,
        date_to=dateTo,
        time_from=timeFrom,
        time_to=timeTo,
    )

    groups = normalize_and_group(records, tz=settings.tzinfo)
    logger.info(f"Returning {len(groups)} call groups for {agent_id}/{project_id}")
    return groups


# =============================================================================
# POST /calls/{agent_id}/{project_id}/refresh
# =============================================================================


@router.post("/{agent_id}/{project_id}/refresh", response_model=List[CallGroup])
async def refresh_call_groups(
    agent_id: str,
    project_id: str,
    existing: List[Dict[str, Any]],
    settings: SettingsDep,
    upstream: UpstreamDep,
    dateFrom: Optional[str] = Query(default=None, pattern=_DATE_PATTERN),
    dateTo: Optional[str] = Query(default=None, pattern=_DATE_PATTERN),
    timeFrom: Optional[str] = Query(default=None, pattern=_TIME_PATTERN),
    timeTo: Optional[str] = Query(default=None, pattern=_TIME_PATTERN),
) -> List[CallGroup]:
    """
    Incremental detail refresh.

    The body holds the raw records the caller already shows. Freshly fetched
    records are appended only when their id is new, then everything is
    regrouped.
    """
    incoming = await _fetch_details(
        upstream,
        agent_id,
        project_id,
        date_from=dateFrom,
        date_to=dateTo,
        time_from=timeFrom,
        time_to=timeTo,
    )

    merged = merge_records(existing, incoming)
    logger.info(
        f"Merged {len(merged) - len(existing)} new call records for {agent_id}/{project_id}"
    )
    return normalize_and_group(merged, tz=settings.tzinfo)
