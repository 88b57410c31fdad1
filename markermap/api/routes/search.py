"""
Search API routes.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from markermap.api.state import get_search_session
from markermap.services.search import SearchSession

router = APIRouter()


class CandidateResponse(BaseModel):
    nameZH: str
    nameEN: str
    x: float
    y: float
    districtZH: Optional[str] = None
    addressEN: Optional[str] = None
    source: str


class SearchResponse(BaseModel):
    query: str
    state: str  # "not_searched" | "empty" | "results"
    results: List[CandidateResponse]
    stale: bool = False


@router.get("", response_model=SearchResponse)
async def search_places(q: str = "", session: SearchSession = Depends(get_search_session)):
    """Merged local + remote search. A blank query clears the current results."""
    outcome = await session.search(q)
    if outcome is None:
        # A newer query superseded this one; report the session's current state.
        return SearchResponse(**session.outcome.to_dict(), stale=True)
    return SearchResponse(**outcome.to_dict())


@router.delete("", status_code=204)
async def clear_search(session: SearchSession = Depends(get_search_session)):
    session.clear()
