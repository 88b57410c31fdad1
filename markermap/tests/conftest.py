import sys
from pathlib import Path

import pytest

# Ensure the repository root is on sys.path for direct pytest runs
REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from markermap.domain.models import Marker, SearchCandidate  # noqa: E402


@pytest.fixture
def make_marker():
    def _make(marker_id: int, name: str = "Place", lat: float = 22.3, lon: float = 114.17, **kwargs) -> Marker:
        return Marker(
            id=marker_id,
            name_zh=name,
            name_en=kwargs.pop("name_en", ""),
            district_zh=kwargs.pop("district_zh", ""),
            lat=lat,
            lon=lon,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_candidate():
    def _make(name_zh: str, name_en: str = "", x: float = 836694.05, y: float = 819069.80, **kwargs) -> SearchCandidate:
        return SearchCandidate(name_zh=name_zh, name_en=name_en, x=x, y=y, **kwargs)

    return _make
