"""
Cluster / spiderfication layout for coincident markers.

Markers whose coordinates round to the same key form a group. A group of one
renders as a plain marker. Larger groups are either collapsed into a single
representative with an aggregated label, or expanded ("spiderfied") into a
ring of members around the shared centre, each joined to it by a leg.

`build_layout` is a pure function of the marker list and the expanded-flag
mapping; the mapping itself is owned by the caller.
"""
from __future__ import annotations

import logging
import math
from collections import Counter
from typing import Dict, Iterable, List, Mapping, MutableMapping, Optional

from markermap.domain.models import (
    CollapsedClusterItem,
    ExpandedClusterItem,
    GeoPoint,
    Marker,
    RenderItem,
    SingleMarkerItem,
    SpiderLeg,
    is_finite_coordinate,
)

logger = logging.getLogger(__name__)

# Decimal places used for the grouping key (~0.1 m). Formatting rounds the
# exact binary value half-to-even.
CLUSTER_KEY_DECIMALS = 6

# Ring radius of an expanded cluster, in degrees.
SPIDER_RADIUS_DEG = 0.0003


def cluster_key(lat: float, lon: float, decimals: int = CLUSTER_KEY_DECIMALS) -> str:
    return f"{lat:.{decimals}f},{lon:.{decimals}f}"


def valid_markers(markers: Iterable[Marker]) -> List[Marker]:
    """Drop markers with missing or non-finite coordinates."""
    kept = []
    for marker in markers:
        if is_finite_coordinate(getattr(marker, "lat", None), getattr(marker, "lon", None)):
            kept.append(marker)
        else:
            logger.debug("Skipping marker %s with invalid coordinates", getattr(marker, "id", None))
    return kept


def group_markers(markers: Iterable[Marker]) -> Dict[str, List[Marker]]:
    """Group markers by cluster key, preserving first-seen key order and member order."""
    groups: Dict[str, List[Marker]] = {}
    for marker in valid_markers(markers):
        groups.setdefault(cluster_key(marker.lat, marker.lon), []).append(marker)
    return groups


def cluster_label(members: Iterable[Marker]) -> str:
    """Per-name counts in first-seen order, e.g. "A x2, B"."""
    counts = Counter(m.name_zh for m in members)
    parts = []
    for name, count in counts.items():
        parts.append(f"{name} x{count}" if count > 1 else name)
    return ", ".join(parts)


def group_center(members: List[Marker]) -> GeoPoint:
    # Members share a key; the first one's true position stands for the group.
    return GeoPoint(lat=members[0].lat, lon=members[0].lon)


def spider_positions(center: GeoPoint, count: int, radius: float = SPIDER_RADIUS_DEG) -> List[tuple]:
    """(angle, position) for `count` members spaced evenly around `center`, starting at angle 0."""
    step = 2 * math.pi / count
    out = []
    for i in range(count):
        angle = i * step
        out.append(
            (
                angle,
                GeoPoint(
                    lat=center.lat + radius * math.sin(angle),
                    lon=center.lon + radius * math.cos(angle),
                ),
            )
        )
    return out


def spiderfy(key: str, members: List[Marker], radius: float = SPIDER_RADIUS_DEG) -> ExpandedClusterItem:
    center = group_center(members)
    legs = [
        SpiderLeg(marker=marker, position=position, angle=angle, segment=(center, position))
        for marker, (angle, position) in zip(members, spider_positions(center, len(members), radius))
    ]
    return ExpandedClusterItem(key=key, center=center, label=cluster_label(members), legs=legs)


def build_layout(
    markers: Iterable[Marker],
    expanded: Optional[Mapping[str, bool]] = None,
    radius: float = SPIDER_RADIUS_DEG,
) -> List[RenderItem]:
    """
    Derive render items from the markers and the per-key expanded flags.

    Keys absent from `expanded` are collapsed. Flags for keys that are not
    (or no longer) clusters are ignored.
    """
    expanded = expanded or {}
    items: List[RenderItem] = []
    for key, members in group_markers(markers).items():
        if len(members) == 1:
            items.append(SingleMarkerItem(marker=members[0]))
        elif expanded.get(key, False):
            items.append(spiderfy(key, members, radius))
        else:
            items.append(
                CollapsedClusterItem(
                    key=key,
                    center=group_center(members),
                    label=cluster_label(members),
                    members=list(members),
                )
            )
    return items


def toggle(expanded: Mapping[str, bool], key: str) -> Dict[str, bool]:
    """Return a copy of `expanded` with `key` flipped."""
    updated = dict(expanded)
    updated[key] = not updated.get(key, False)
    return updated


class ClusterToggleState:
    """Expanded/collapsed flags per cluster key, owned by the view layer."""

    def __init__(self, flags: Optional[MutableMapping[str, bool]] = None):
        self._flags: Dict[str, bool] = dict(flags or {})

    @property
    def flags(self) -> Dict[str, bool]:
        return dict(self._flags)

    def is_expanded(self, key: str) -> bool:
        return self._flags.get(key, False)

    def toggle(self, key: str) -> bool:
        """Flip `key` and return its new expanded state."""
        self._flags = toggle(self._flags, key)
        return self._flags[key]

    def prune(self, markers: Iterable[Marker]) -> None:
        """Forget flags for keys that no longer hold more than one marker."""
        live = {key for key, members in group_markers(markers).items() if len(members) > 1}
        self._flags = {key: value for key, value in self._flags.items() if key in live}

    def layout(self, markers: Iterable[Marker], radius: float = SPIDER_RADIUS_DEG) -> List[RenderItem]:
        return build_layout(markers, self._flags, radius)
