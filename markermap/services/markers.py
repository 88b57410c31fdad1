"""
Search-and-convert flow: turn a chosen search candidate into a stored marker.
"""
import logging
from typing import Optional

from markermap.domain.errors import ConversionError
from markermap.domain.models import Marker, SearchCandidate
from markermap.services.coordinates import to_geographic
from markermap.services.marker_store import MarkerStore

logger = logging.getLogger(__name__)


def add_marker_from_candidate(store: MarkerStore, candidate: SearchCandidate) -> Optional[Marker]:
    """
    Convert the candidate's grid position and append a marker to the store.

    Returns None (and leaves the store untouched) when the coordinates
    cannot be converted.
    """
    try:
        point = to_geographic(candidate.x, candidate.y)
    except ConversionError as exc:
        logger.warning("Skipping marker for %r: %s", candidate.name_zh, exc)
        return None
    return store.create(candidate, point)
