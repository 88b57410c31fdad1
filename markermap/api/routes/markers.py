"""
Marker API routes.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel

from markermap.api.state import get_search_session, get_store, get_toggle_state
from markermap.domain.models import Marker, SearchCandidate
from markermap.services.clustering import ClusterToggleState
from markermap.services.marker_store import MarkerStore
from markermap.services.markers import add_marker_from_candidate
from markermap.services.search import SearchSession

router = APIRouter()


class MarkerResponse(BaseModel):
    id: int
    nameZH: str
    nameEN: str
    districtZH: str
    lat: float
    lon: float
    type: int
    description: str
    color: str


class CandidateCreate(BaseModel):
    nameZH: str
    nameEN: str = ""
    x: float
    y: float
    districtZH: Optional[str] = None
    addressEN: Optional[str] = None


class MarkerPatch(BaseModel):
    nameZH: Optional[str] = None
    description: Optional[str] = None
    type: Optional[int] = None


def marker_to_response(marker: Marker) -> MarkerResponse:
    """Convert domain Marker to API response."""
    return MarkerResponse(**marker.to_dict(), color=marker.color)


@router.get("", response_model=List[MarkerResponse])
async def list_markers(store: MarkerStore = Depends(get_store)):
    """List markers in insertion order."""
    return [marker_to_response(m) for m in store.list()]


@router.post("", response_model=MarkerResponse, status_code=201)
async def create_marker(
    data: CandidateCreate,
    store: MarkerStore = Depends(get_store),
    toggles: ClusterToggleState = Depends(get_toggle_state),
    session: SearchSession = Depends(get_search_session),
):
    """Convert a chosen search candidate and add it as a marker, then drop the results."""
    candidate = SearchCandidate(
        name_zh=data.nameZH,
        name_en=data.nameEN,
        x=data.x,
        y=data.y,
        district_zh=data.districtZH,
        address_en=data.addressEN,
    )
    marker = add_marker_from_candidate(store, candidate)
    if marker is None:
        raise HTTPException(status_code=422, detail="Coordinates could not be converted")
    session.clear()
    toggles.prune(store.list())
    return marker_to_response(marker)


@router.patch("/{marker_id}", response_model=MarkerResponse)
async def update_marker(marker_id: int, data: MarkerPatch, store: MarkerStore = Depends(get_store)):
    """Rename, annotate or recolor a marker. Omitted fields are unchanged."""
    marker = store.update(
        marker_id,
        name_zh=data.nameZH,
        description=data.description,
        marker_type=data.type,
    )
    if marker is None:
        raise HTTPException(status_code=404, detail="Marker not found")
    return marker_to_response(marker)


@router.delete("/{marker_id}", status_code=204)
async def delete_marker(
    marker_id: int,
    store: MarkerStore = Depends(get_store),
    toggles: ClusterToggleState = Depends(get_toggle_state),
):
    """Delete a marker. Unknown ids are ignored."""
    store.delete(marker_id)
    toggles.prune(store.list())
    return Response(status_code=204)


@router.delete("", status_code=204)
async def clear_markers(
    store: MarkerStore = Depends(get_store),
    toggles: ClusterToggleState = Depends(get_toggle_state),
):
    """Remove every marker and the persisted state."""
    store.clear()
    toggles.prune([])
    return Response(status_code=204)
