"""Polygon area and perimeter over GPS points (no external dependencies).

Area uses a per-point equirectangular projection followed by the Shoelace
formula. Each vertex is scaled by the cosine of its own latitude rather than
one reference latitude, so the result is only good for small fields (tens of
hectares); the error grows with the latitude span of the polygon and near the
poles. Existing stored areas were computed this way, keep it unchanged.
"""

from __future__ import annotations

import math
from typing import Final, Protocol, Sequence

EARTH_RADIUS_M: Final[float] = 6_371_000.0  # mean Earth radius in meters


class LatLon(Protocol):
    lat: float
    lon: float


def _rad(deg: float) -> float:
    # same operation order as the stored values were computed with
    return deg * math.pi / 180.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute Haversine distance in meters between two lat/lon points.

    Args:
        lat1: Latitude 1 in degrees.
        lon1: Longitude 1 in degrees.
        lat2: Latitude 2 in degrees.
        lon2: Longitude 2 in degrees.

    Returns:
        Distance in meters.
    """

    phi1 = _rad(lat1)
    phi2 = _rad(lat2)
    d_phi = _rad(lat2 - lat1)
    d_lambda = _rad(lon2 - lon1)

    s_phi = math.sin(d_phi / 2.0)
    s_lambda = math.sin(d_lambda / 2.0)
    a = s_phi * s_phi + math.cos(phi1) * math.cos(phi2) * s_lambda * s_lambda
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_M * c


def _planar(p: LatLon) -> tuple[float, float]:
    lat = _rad(p.lat)
    lon = _rad(p.lon)
    return EARTH_RADIUS_M * lon * math.cos(lat), EARTH_RADIUS_M * lat


def compute_area(points: Sequence[LatLon]) -> float:
    """Area of the polygon traced by ``points``, in square meters.

    Vertices are used in the given order (no sorting); the polygon is closed
    implicitly. Winding direction does not matter.

    Args:
        points: Polygon vertices.

    Returns:
        Area in m², or 0.0 for fewer than 3 points.
    """

    if len(points) < 3:
        return 0.0

    xy = [_planar(p) for p in points]
    n = len(xy)
    total = 0.0
    for i in range(n):
        j = (i + 1) % n
        total += xy[i][0] * xy[j][1]
        total -= xy[j][0] * xy[i][1]
    return abs(total) / 2.0


def compute_perimeter(points: Sequence[LatLon]) -> float:
    """Closed-loop perimeter in meters.

    The edge from the last point back to the first is always included, even
    when the caller did not repeat the first point.

    Returns:
        Perimeter in meters, or 0.0 for fewer than 2 points.
    """

    n = len(points)
    if n < 2:
        return 0.0

    perimeter = 0.0
    for i in range(n):
        p1 = points[i]
        p2 = points[(i + 1) % n]
        perimeter += haversine_m(p1.lat, p1.lon, p2.lat, p2.lon)
    return perimeter
