"""
Client for the Hong Kong government location search service (map.gov.hk).

Returns raw candidates in HK80 grid coordinates. Any transport problem or
non-success response raises RemoteSearchError; callers decide how to degrade.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

import requests

from markermap.domain.errors import RemoteSearchError
from markermap.domain.models import SearchCandidate

logger = logging.getLogger(__name__)
_session = requests.Session()

REMOTE_SOURCE = "remote"


class LocationSearchClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        from markermap.settings import settings

        self.base_url = (base_url or settings.LOCATION_SEARCH_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.LOCATION_SEARCH_TIMEOUT
        self.headers = {
            "User-Agent": user_agent or settings.LOCATION_SEARCH_USER_AGENT,
            "Accept": "application/json",
        }
        self.session = session or _session
        self.logger = logging.getLogger(__name__)

    def _parse_items(self, data: Any) -> List[SearchCandidate]:
        if not isinstance(data, list):
            raise RemoteSearchError(f"Unexpected location search payload: {type(data).__name__}")
        results: List[SearchCandidate] = []
        for item in data:
            if not isinstance(item, dict):
                continue
            try:
                results.append(SearchCandidate.from_dict(item, source=REMOTE_SOURCE))
            except ValueError as exc:
                self.logger.debug("Skipping location search item: %s", exc)
        return results

    def search(self, query: str) -> List[SearchCandidate]:
        """Look up `query` remotely. Raises RemoteSearchError on any failure."""
        try:
            resp = self.session.get(
                self.base_url,
                params={"q": query},
                headers=self.headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise RemoteSearchError(f"Location search request failed for {query!r}: {exc}") from exc

        if not resp.ok:
            raise RemoteSearchError(f"Location search returned HTTP {resp.status_code} for {query!r}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise RemoteSearchError(f"Location search returned invalid JSON for {query!r}") from exc

        results = self._parse_items(data)
        self.logger.debug("LocationSearchClient.search: q=%r got %d results", query, len(results))
        return results

    async def asearch(self, query: str) -> List[SearchCandidate]:
        """Run `search` off the event loop."""
        return await asyncio.to_thread(self.search, query)


_default_search_client: Optional[LocationSearchClient] = None


def get_default_search_client() -> LocationSearchClient:
    global _default_search_client
    if _default_search_client is None:
        _default_search_client = LocationSearchClient()
    return _default_search_client
