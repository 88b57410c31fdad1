"""
Curated local place dataset.

A fixed list of well-known Hong Kong places bundled with the package and
consulted synchronously before the remote search service.
"""
from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Sequence

from markermap.domain.models import SearchCandidate

logger = logging.getLogger(__name__)

LOCAL_SOURCE = "curated"


def normalize_query(query: Optional[str]) -> str:
    """Trim and case-fold a user query."""
    return (query or "").strip().casefold()


@lru_cache(maxsize=4)
def load_local_places(path: Optional[str] = None) -> tuple[SearchCandidate, ...]:
    """Load and cache the curated dataset. Invalid records are skipped."""
    if path is None:
        from markermap.settings import settings

        path = settings.LOCAL_PLACES_PATH
    p = Path(path)
    if not p.exists():
        logger.warning("Local places dataset not found at %s", p)
        return ()
    with p.open("r", encoding="utf-8") as fh:
        raw = json.load(fh)
    if not isinstance(raw, list):
        raise ValueError(f"Expected a list of places in {p}")
    places: List[SearchCandidate] = []
    for idx, item in enumerate(raw):
        if not isinstance(item, dict):
            logger.warning("Skipping local place #%d in %s: not an object", idx, p)
            continue
        try:
            places.append(SearchCandidate.from_dict(item, source=LOCAL_SOURCE))
        except ValueError as exc:
            logger.warning("Skipping local place #%d in %s: %s", idx, p, exc)
    logger.debug("Loaded %d local places from %s", len(places), p)
    return tuple(places)


def match_local_places(query: str, places: Optional[Sequence[SearchCandidate]] = None) -> List[SearchCandidate]:
    """
    Case-folded substring match of `query` against the dataset.

    The primary (Chinese) name is always checked. Matching the English name
    as well is a deliberate extension beyond primary-name matching, so
    latin-script queries hit curated entries too.
    """
    needle = normalize_query(query)
    if not needle:
        return []
    if places is None:
        places = load_local_places()
    return [
        place
        for place in places
        if needle in place.name_zh.casefold() or (place.name_en and needle in place.name_en.casefold())
    ]
