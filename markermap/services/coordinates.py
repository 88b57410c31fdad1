"""
Hong Kong 1980 Grid (HK80) to WGS84 conversion.

The projection and datum shift are pinned to one fixed parameter set so that
every call produces identical output:

- ellipsoid: International 1924 (Hayford)
- transverse Mercator, origin 22°18'43.68"N 114°10'42.80"E, scale 1.0
- false easting 836694.05 m, false northing 819069.80 m
- 7-parameter Helmert shift HK1980 -> WGS84
"""
from __future__ import annotations

import logging
import math
from functools import lru_cache
from typing import Any, Tuple

from pyproj import Transformer
from pyproj.exceptions import ProjError

from markermap.domain.errors import ConversionError
from markermap.domain.models import GeoPoint, is_within_region

logger = logging.getLogger(__name__)

HK80_LAT_0 = 22.0 + 18.0 / 60.0 + 43.68 / 3600.0
HK80_LON_0 = 114.0 + 10.0 / 60.0 + 42.80 / 3600.0
HK80_FALSE_EASTING = 836694.05
HK80_FALSE_NORTHING = 819069.80
HK80_SCALE_FACTOR = 1.0
# dx, dy, dz (m), rx, ry, rz (arc-seconds), ds (ppm)
HK80_TO_WGS84_HELMERT: Tuple[float, ...] = (
    -162.619, -276.959, -161.764, 0.067753, -2.243648, -1.158828, -1.094246,
)

HK80_PROJ_STRING = (
    f"+proj=tmerc +lat_0={HK80_LAT_0!r} +lon_0={HK80_LON_0!r} "
    f"+k={HK80_SCALE_FACTOR!r} +x_0={HK80_FALSE_EASTING!r} +y_0={HK80_FALSE_NORTHING!r} "
    "+ellps=intl +towgs84=" + ",".join(repr(p) for p in HK80_TO_WGS84_HELMERT) + " "
    "+units=m +no_defs +type=crs"
)
WGS84_CRS = "EPSG:4326"


@lru_cache(maxsize=1)
def _grid_to_wgs84() -> Transformer:
    return Transformer.from_crs(HK80_PROJ_STRING, WGS84_CRS, always_xy=True)


@lru_cache(maxsize=1)
def _wgs84_to_grid() -> Transformer:
    return Transformer.from_crs(WGS84_CRS, HK80_PROJ_STRING, always_xy=True)


def _finite_pair(a: Any, b: Any) -> bool:
    try:
        return math.isfinite(float(a)) and math.isfinite(float(b))
    except (TypeError, ValueError):
        return False


def to_geographic(x: float, y: float) -> GeoPoint:
    """
    Convert an HK80 grid easting/northing (metres) to WGS84 lat/lon.

    Raises:
        ConversionError: if the inputs are not finite numbers, the projection
            fails, or the result falls outside the supported region.
    """
    if not _finite_pair(x, y):
        raise ConversionError(f"Grid coordinates must be finite numbers, got x={x!r} y={y!r}")
    try:
        lon, lat = _grid_to_wgs84().transform(float(x), float(y), errcheck=True)
    except ProjError as exc:
        raise ConversionError(f"HK80 conversion failed for x={x} y={y}: {exc}") from exc
    if not _finite_pair(lat, lon):
        raise ConversionError(f"HK80 conversion produced non-finite output for x={x} y={y}")
    if not is_within_region(lat, lon):
        raise ConversionError(
            f"HK80 point x={x} y={y} maps to ({lat:.6f}, {lon:.6f}), outside the supported region"
        )
    return GeoPoint(lat=lat, lon=lon)


def to_grid(lat: float, lon: float) -> Tuple[float, float]:
    """Inverse of `to_geographic`: WGS84 lat/lon to HK80 (easting, northing)."""
    if not _finite_pair(lat, lon):
        raise ConversionError(f"Coordinates must be finite numbers, got lat={lat!r} lon={lon!r}")
    try:
        x, y = _wgs84_to_grid().transform(float(lon), float(lat), errcheck=True)
    except ProjError as exc:
        raise ConversionError(f"WGS84 to HK80 conversion failed for ({lat}, {lon}): {exc}") from exc
    if not _finite_pair(x, y):
        raise ConversionError(f"WGS84 to HK80 conversion produced non-finite output for ({lat}, {lon})")
    return x, y
