"""
Upstream Dashboard API Client

Async HTTP adapter for the external statistics, call-detail and lookup
endpoints. The backing store is consumed read-only through these endpoints.

Transport failures are translated into the service's error types:
- httpx timeouts -> FetchTimeout (retryable by the caller)
- non-2xx status, connection errors, undecodable bodies -> FetchError

Retry policy is not applied here; the polling controller decides which
failures are retried.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from callboard.core.config import Settings
from callboard.core.errors import FetchError, FetchTimeout
from callboard.models.schemas import DirectoryEntry, StatisticsFilter, StatisticsRow
from callboard.services.snapshot_diff import NameDirectory

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    """Best human-readable message from an error response."""
    message = f"HTTP {response.status_code}"
    try:
        payload = response.json()
    except ValueError:
        return message
    if isinstance(payload, dict):
        for field_name in ("message", "error", "detail"):
            value = payload.get(field_name)
            if isinstance(value, str) and value.strip():
                return f"{message}: {value.strip()}"
    return message


class UpstreamClient:
    """
    Client for the upstream dashboard API.

    Args:
        base_url: Root URL of the upstream service
        statistics_timeout: Seconds allowed for one statistics request
        detail_timeout: Seconds allowed for one call-detail request
        lookup_timeout: Seconds allowed for agent/project lookups
        client: Pre-built httpx.AsyncClient (tests inject a MockTransport here)
    """

    def __init__(
        self,
        base_url: str,
        statistics_timeout: float = 300.0,
        detail_timeout: float = 10.0,
        lookup_timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.statistics_timeout = statistics_timeout
        self.detail_timeout = detail_timeout
        self.lookup_timeout = lookup_timeout
        self._client = client or httpx.AsyncClient(base_url=self.base_url)

    @classmethod
    def from_settings(cls, settings: Settings) -> "UpstreamClient":
        return cls(
            base_url=settings.upstream_base_url,
            statistics_timeout=settings.statistics_timeout_seconds,
            detail_timeout=settings.detail_timeout_seconds,
            lookup_timeout=settings.lookup_timeout_seconds,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, timeout: float, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, timeout=timeout, **kwargs)
        except httpx.TimeoutException as e:
            raise FetchTimeout(f"{method} {path} timed out after {timeout:g}s") from e
        except httpx.HTTPError as e:
            raise FetchError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            raise FetchError(_error_message(response), status=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise FetchError(f"{method} {path} returned an invalid JSON body") from e

    # =========================================================================
    # Statistics
    # =========================================================================

    async def fetch_statistics(
        self,
        filters: StatisticsFilter,
        cache_bust: bool = True,
    ) -> List[StatisticsRow]:
        """
        Fetch aggregate statistics rows for a filter set.

        Args:
            filters: Filter body posted as-is (unset bounds omitted)
            cache_bust: Add a timestamp so the upstream response cache is bypassed

        Returns:
            Statistics rows in response order
        """
        body: Dict[str, Any] = filters.model_dump(exclude_none=True)
        if cache_bust:
            body["_cacheBust"] = int(time.time() * 1000)

        payload = await self._request("POST", "/api/statistics", self.statistics_timeout, json=body)
        if not isinstance(payload, list):
            raise FetchError("Statistics response is not a list")

        try:
            rows = [StatisticsRow.model_validate(item) for item in payload]
        except ValueError as e:
            raise FetchError(f"Statistics response has an unexpected shape: {e}") from e

        logger.debug(f"Fetched {len(rows)} statistics rows")
        return rows

    # =========================================================================
    # Call Details
    # =========================================================================

    async def fetch_call_details(
        self,
        agent_id: str,
        project_id: str,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        time_from: Optional[str] = None,
        time_to: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Fetch raw per-call records for one agent/project pair."""
        params = {
            "dateFrom": date_from,
            "dateTo": date_to,
            "timeFrom": time_from,
            "timeTo": time_to,
        }
        params = {k: v for k, v in params.items() if v}

        payload = await self._request(
            "GET",
            f"/api/call-details/{agent_id}/{project_id}",
            self.detail_timeout,
            params=params,
        )
        if not isinstance(payload, list):
            raise FetchError("Call details response is not a list")
        return payload

    # =========================================================================
    # Lookups
    # =========================================================================

    async def fetch_agents(self) -> List[DirectoryEntry]:
        return await self._fetch_lookup("/api/agents")

    async def fetch_projects(self) -> List[DirectoryEntry]:
        return await self._fetch_lookup("/api/projects")

    async def _fetch_lookup(self, path: str) -> List[DirectoryEntry]:
        payload = await self._request("GET", path, self.lookup_timeout)
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise FetchError(f"Lookup response from {path} is not a list")

        try:
            return [DirectoryEntry.model_validate(item) for item in payload]
        except ValueError as e:
            raise FetchError(f"Lookup response from {path} has an unexpected shape: {e}") from e

    async def fetch_directory(self) -> NameDirectory:
        """Agent and project display names for labeling alerts."""
        agents = await self.fetch_agents()
        projects = await self.fetch_projects()
        return NameDirectory(
            agents={a.id: a.name for a in agents},
            projects={p.id: p.name for p in projects},
        )
