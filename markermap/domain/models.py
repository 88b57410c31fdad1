"""
Core domain models for the marker map.
These are framework-agnostic and shared by the store, search and layout services.
"""
from dataclasses import dataclass, field
from enum import Enum
import math
from typing import Any, Dict, List, Optional, Tuple, Union


class MarkerType(int, Enum):
    """Marker categories; the value is the palette index."""
    RED = 0
    BLUE = 1
    GREEN = 2
    ORANGE = 3
    PURPLE = 4


DEFAULT_MARKER_TYPE = MarkerType.RED

# Category -> fill colour. Consumed by rendering only.
MARKER_PALETTE: Dict[MarkerType, str] = {
    MarkerType.RED: "#e74c3c",
    MarkerType.BLUE: "#3498db",
    MarkerType.GREEN: "#2ecc71",
    MarkerType.ORANGE: "#f39c12",
    MarkerType.PURPLE: "#9b59b6",
}

# (min_lat, max_lat, min_lon, max_lon) of the supported region, WGS84 degrees.
REGION_BOUNDS: Tuple[float, float, float, float] = (22.0, 22.7, 113.7, 114.6)


def normalize_marker_type(value: Any) -> int:
    """Return a valid palette index, falling back to the default category."""
    if isinstance(value, bool):
        return int(DEFAULT_MARKER_TYPE)
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int):
        try:
            return int(MarkerType(value))
        except ValueError:
            return int(DEFAULT_MARKER_TYPE)
    return int(DEFAULT_MARKER_TYPE)


def is_within_region(lat: float, lon: float) -> bool:
    min_lat, max_lat, min_lon, max_lon = REGION_BOUNDS
    return min_lat <= lat <= max_lat and min_lon <= lon <= max_lon


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_finite_coordinate(lat: Any, lon: Any) -> bool:
    return _is_number(lat) and _is_number(lon) and math.isfinite(lat) and math.isfinite(lon)


@dataclass(frozen=True)
class GeoPoint:
    """A WGS84 latitude/longitude pair in decimal degrees."""
    lat: float
    lon: float

    def as_tuple(self) -> Tuple[float, float]:
        return (self.lat, self.lon)


def _optional_text(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string, got {type(value).__name__}")
    return value


@dataclass
class SearchCandidate:
    """
    A transient search hit in HK80 grid coordinates.

    Never persisted; it is discarded once converted into a Marker or once a
    new search replaces it.
    """
    name_zh: str
    name_en: str
    x: float
    y: float
    district_zh: Optional[str] = None
    address_en: Optional[str] = None
    source: str = "remote"  # provenance, e.g. "curated" for the local dataset

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: str = "remote") -> "SearchCandidate":
        """Build from a camelCase payload; raises ValueError on missing or non-text fields."""
        name_zh = data.get("nameZH")
        if not isinstance(name_zh, str) or not name_zh.strip():
            raise ValueError("candidate is missing nameZH")
        try:
            x = float(data["x"])
            y = float(data["y"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"candidate {name_zh!r} has no usable x/y") from exc
        return cls(
            name_zh=name_zh,
            name_en=_optional_text(data, "nameEN") or "",
            x=x,
            y=y,
            district_zh=_optional_text(data, "districtZH"),
            address_en=_optional_text(data, "addressEN"),
            source=_optional_text(data, "source") or source,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nameZH": self.name_zh,
            "nameEN": self.name_en,
            "x": self.x,
            "y": self.y,
            "districtZH": self.district_zh,
            "addressEN": self.address_en,
            "source": self.source,
        }


@dataclass
class Marker:
    """
    A user-created point annotation.

    `lat`/`lon` are set once from the coordinate transformer and never
    recomputed. Only `name_zh`, `description` and `marker_type` change after
    creation.
    """
    id: int
    name_zh: str
    name_en: str
    district_zh: str
    lat: float
    lon: float
    marker_type: int = int(DEFAULT_MARKER_TYPE)
    description: str = ""

    @property
    def color(self) -> str:
        return MARKER_PALETTE[MarkerType(normalize_marker_type(self.marker_type))]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "nameZH": self.name_zh,
            "nameEN": self.name_en,
            "districtZH": self.district_zh,
            "lat": self.lat,
            "lon": self.lon,
            "type": self.marker_type,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Marker":
        """
        Strictly rebuild a marker from its persisted form.

        Older stored markers predate `type` and `description`; those fall back
        to defaults. Anything else that does not look like a marker raises
        ValueError.
        """
        if not isinstance(data, dict):
            raise ValueError("marker entry is not an object")
        marker_id = data.get("id")
        if not isinstance(marker_id, int) or isinstance(marker_id, bool):
            raise ValueError("marker id must be an integer")
        name_zh = data.get("nameZH")
        if not isinstance(name_zh, str):
            raise ValueError(f"marker {marker_id} has no nameZH")
        lat, lon = data.get("lat"), data.get("lon")
        if not is_finite_coordinate(lat, lon):
            raise ValueError(f"marker {marker_id} has invalid coordinates")
        if not is_within_region(lat, lon):
            raise ValueError(f"marker {marker_id} lies outside the supported region")
        optional_text = {}
        for key in ("nameEN", "districtZH", "description"):
            value = data.get(key)
            if value is None:
                value = ""
            if not isinstance(value, str):
                raise ValueError(f"marker {marker_id} field {key} must be a string")
            optional_text[key] = value
        return cls(
            id=marker_id,
            name_zh=name_zh,
            name_en=optional_text["nameEN"],
            district_zh=optional_text["districtZH"],
            lat=float(lat),
            lon=float(lon),
            marker_type=normalize_marker_type(data.get("type")),
            description=optional_text["description"],
        )


# Layout models produced by the cluster engine for the rendering collaborator

@dataclass(frozen=True)
class LegStyle:
    """Stroke weights (px) for spider legs: a thin visible line and a wide invisible hit area."""
    visible_weight: int = 2
    hit_weight: int = 14
    visible_color: str = "#555555"
    visible_opacity: float = 0.8


@dataclass
class SpiderLeg:
    """One expanded member of a cluster and the segment joining it to the centre."""
    marker: Marker
    position: GeoPoint
    angle: float
    segment: Tuple[GeoPoint, GeoPoint]

    def to_dict(self, style: LegStyle) -> Dict[str, Any]:
        start, end = self.segment
        line = [list(start.as_tuple()), list(end.as_tuple())]
        return {
            "marker": self.marker.to_dict(),
            "position": list(self.position.as_tuple()),
            "angle": self.angle,
            "leg": {"line": line, "weight": style.visible_weight, "color": style.visible_color,
                    "opacity": style.visible_opacity},
            "hitArea": {"line": line, "weight": style.hit_weight, "opacity": 0.0},
        }


@dataclass
class SingleMarkerItem:
    marker: Marker
    kind: str = field(default="single", init=False)

    def to_dict(self, style: Optional[LegStyle] = None) -> Dict[str, Any]:
        return {"kind": self.kind, "marker": self.marker.to_dict()}


@dataclass
class CollapsedClusterItem:
    key: str
    center: GeoPoint
    label: str
    members: List[Marker]
    kind: str = field(default="collapsed", init=False)

    def to_dict(self, style: Optional[LegStyle] = None) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "key": self.key,
            "center": list(self.center.as_tuple()),
            "label": self.label,
            "count": len(self.members),
            "members": [m.to_dict() for m in self.members],
        }


@dataclass
class ExpandedClusterItem:
    key: str
    center: GeoPoint
    label: str
    legs: List[SpiderLeg]
    kind: str = field(default="expanded", init=False)

    def to_dict(self, style: Optional[LegStyle] = None) -> Dict[str, Any]:
        style = style or LegStyle()
        return {
            "kind": self.kind,
            "key": self.key,
            "center": list(self.center.as_tuple()),
            "label": self.label,
            "count": len(self.legs),
            "legs": [leg.to_dict(style) for leg in self.legs],
        }


RenderItem = Union[SingleMarkerItem, CollapsedClusterItem, ExpandedClusterItem]
