"""
Layout API routes.

Serves the render-ready cluster layout and accepts toggle clicks from the
view layer.
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from markermap.api.state import get_store, get_toggle_state
from markermap.domain.models import LegStyle
from markermap.services.clustering import ClusterToggleState, group_markers
from markermap.services.marker_store import MarkerStore

router = APIRouter()
leg_style = LegStyle()


class ToggleResponse(BaseModel):
    key: str
    expanded: bool


@router.get("", response_model=List[dict])
async def get_layout(
    store: MarkerStore = Depends(get_store),
    toggles: ClusterToggleState = Depends(get_toggle_state),
):
    """Render items for the current markers and expanded flags."""
    return [item.to_dict(leg_style) for item in toggles.layout(store.list())]


@router.post("/{key}/toggle", response_model=ToggleResponse)
async def toggle_cluster(
    key: str,
    store: MarkerStore = Depends(get_store),
    toggles: ClusterToggleState = Depends(get_toggle_state),
):
    """Flip a cluster between collapsed and expanded."""
    members = group_markers(store.list()).get(key)
    if not members or len(members) < 2:
        raise HTTPException(status_code=404, detail="Cluster not found")
    return ToggleResponse(key=key, expanded=toggles.toggle(key))
