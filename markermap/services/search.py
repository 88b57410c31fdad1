"""
Search merger.

Combines curated local matches with remote location-search hits into one
deduplicated, priority-ordered list of at most SEARCH_RESULT_LIMIT entries.
Local entries come first and win duplicate keys. A failing remote lookup
degrades to local-only results.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from markermap.domain.errors import RemoteSearchError
from markermap.domain.models import SearchCandidate
from markermap.services.local_places import match_local_places, normalize_query
from markermap.services.search_client import LocationSearchClient, get_default_search_client

logger = logging.getLogger(__name__)

SEARCH_RESULT_LIMIT = 5


class SearchState(str, Enum):
    """Distinguishes "never searched" from "searched, nothing found"."""
    NOT_SEARCHED = "not_searched"
    EMPTY = "empty"
    RESULTS = "results"


@dataclass
class SearchOutcome:
    query: str
    state: SearchState
    results: List[SearchCandidate] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "query": self.query,
            "state": self.state.value,
            "results": [c.to_dict() for c in self.results],
        }


def dedup_key(candidate: SearchCandidate) -> str:
    """English name when present, otherwise the Chinese name, case-folded."""
    name = candidate.name_en.strip() if candidate.name_en else ""
    return (name or candidate.name_zh.strip()).casefold()


def merge_results(
    local: Iterable[SearchCandidate],
    remote: Iterable[SearchCandidate],
    limit: int = SEARCH_RESULT_LIMIT,
) -> List[SearchCandidate]:
    merged: List[SearchCandidate] = []
    seen = set()
    for candidate in [*local, *remote]:
        key = dedup_key(candidate)
        if key in seen:
            continue
        seen.add(key)
        merged.append(candidate)
        if len(merged) >= limit:
            break
    return merged


class SearchSession:
    """
    Holds the current search results for one user.

    Each call to `search` takes a new sequence number. A response that comes
    back after a newer search (or a `clear`) has started is discarded, so the
    latest query always wins.
    """

    def __init__(
        self,
        client: Optional[LocationSearchClient] = None,
        local_places: Optional[Sequence[SearchCandidate]] = None,
        remote_enabled: Optional[bool] = None,
    ):
        if remote_enabled is None:
            from markermap.settings import settings

            remote_enabled = settings.REMOTE_SEARCH_ENABLED
        self.client = client
        self.local_places = local_places
        self.remote_enabled = remote_enabled
        self._seq = 0
        self._outcome = SearchOutcome(query="", state=SearchState.NOT_SEARCHED)

    @property
    def outcome(self) -> SearchOutcome:
        return self._outcome

    @property
    def state(self) -> SearchState:
        return self._outcome.state

    @property
    def results(self) -> List[SearchCandidate]:
        return list(self._outcome.results)

    @property
    def sequence(self) -> int:
        return self._seq

    def clear(self) -> None:
        """Drop current results and invalidate any in-flight search."""
        self._seq += 1
        self._outcome = SearchOutcome(query="", state=SearchState.NOT_SEARCHED)

    async def _remote_matches(self, query: str) -> List[SearchCandidate]:
        if not self.remote_enabled:
            return []
        client = self.client or get_default_search_client()
        try:
            return await client.asearch(query)
        except RemoteSearchError as exc:
            logger.warning("Remote search failed, using local results only: %s", exc)
            return []

    async def search(self, query: Optional[str]) -> Optional[SearchOutcome]:
        """
        Run a merged search for `query`.

        Returns the new outcome, or None when the response went stale before
        it arrived (the session state is then left to the newer search).
        A blank query performs no search and resets to NOT_SEARCHED.
        """
        if not normalize_query(query):
            self.clear()
            return self._outcome

        self._seq += 1
        seq = self._seq
        text = (query or "").strip()

        local = match_local_places(text, self.local_places)
        remote = await self._remote_matches(text)

        if seq != self._seq:
            logger.debug("Discarding stale search response for %r (seq %d, current %d)", text, seq, self._seq)
            return None

        merged = merge_results(local, remote)
        state = SearchState.RESULTS if merged else SearchState.EMPTY
        self._outcome = SearchOutcome(query=text, state=state, results=merged)
        logger.debug(
            "Search %r: %d local, %d remote, %d merged", text, len(local), len(remote), len(merged)
        )
        return self._outcome
