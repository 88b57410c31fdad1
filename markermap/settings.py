import os
from pathlib import Path

# Basic settings helper to read environment configuration.

PACKAGE_ROOT = Path(__file__).resolve().parent
DATA_DIR = PACKAGE_ROOT / "data"


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_float(val: str | None, default: float) -> float:
    if val is None or not val.strip():
        return default
    try:
        return float(val)
    except ValueError:
        return default


class Settings:
    def __init__(self) -> None:
        self.MARKERS_DB_PATH: str = os.getenv("MARKERS_DB_PATH") or str(DATA_DIR / "markers.sqlite")
        self.MARKERS_STORAGE_KEY: str = os.getenv("MARKERS_STORAGE_KEY") or "hk-map-markers"
        self.REMOTE_SEARCH_ENABLED: bool = _as_bool(os.getenv("REMOTE_SEARCH_ENABLED"), True)
        self.LOCATION_SEARCH_URL: str = (
            os.getenv("LOCATION_SEARCH_URL")
            or "https://www.map.gov.hk/gs/api/v1.0.0/locationSearch"
        )
        self.LOCATION_SEARCH_TIMEOUT: float = _as_float(os.getenv("LOCATION_SEARCH_TIMEOUT"), 5.0)
        self.LOCATION_SEARCH_USER_AGENT: str = (
            os.getenv("LOCATION_SEARCH_USER_AGENT") or "hk-marker-map/0.1"
        )
        self.LOCAL_PLACES_PATH: str = os.getenv("LOCAL_PLACES_PATH") or str(DATA_DIR / "local_places.json")


settings = Settings()
