"""
Process-wide state shared by the API routes.

One marker store, one search session and one set of cluster toggle flags per
process: the API fronts a single local user.
"""
from typing import Optional

from markermap.services.clustering import ClusterToggleState
from markermap.services.marker_store import MarkerStore
from markermap.services.search import SearchSession
from markermap.storage.kv_storage import get_default_storage

_store: Optional[MarkerStore] = None
_search_session: Optional[SearchSession] = None
_toggle_state: Optional[ClusterToggleState] = None


def get_store() -> MarkerStore:
    """Marker store backed by the default SQLite storage, loaded on first use."""
    global _store
    if _store is None:
        _store = MarkerStore(get_default_storage())
        _store.load()
    return _store


def get_search_session() -> SearchSession:
    global _search_session
    if _search_session is None:
        _search_session = SearchSession()
    return _search_session


def get_toggle_state() -> ClusterToggleState:
    global _toggle_state
    if _toggle_state is None:
        _toggle_state = ClusterToggleState()
    return _toggle_state


def reset_state() -> None:
    """Forget all process state (used by tests and on shutdown)."""
    global _store, _search_session, _toggle_state
    _store = None
    _search_session = None
    _toggle_state = None
