from __future__ import annotations
from dataclasses import dataclass
from math import asin, cos, radians, sin, sqrt
from typing import Iterable, Protocol

"""
Geospatial helpers.

A tiny geometry layer shared by clustering, scoring and ranking. Inputs are not
validated here; range checks belong to the domain models.
"""

EARTH_RADIUS_M = 6_371_000


class LatLng(Protocol):
    lat: float
    lng: float


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in decimal degrees."""

    lat: float
    lng: float


def haversine_m(a: LatLng, b: LatLng) -> float:
    """Compute great-circle distance in meters between two points."""
    lat1 = radians(a.lat)
    lng1 = radians(a.lng)
    lat2 = radians(b.lat)
    lng2 = radians(b.lng)

    dlat = lat2 - lat1
    dlng = lng2 - lng1

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_M * asin(sqrt(min(1.0, h)))


def total_distance_m(points: Iterable[LatLng]) -> float:
    """Sum of consecutive leg distances along a path (0 for fewer than two points)."""
    total = 0.0
    prev: LatLng | None = None
    for p in points:
        if prev is not None:
            total += haversine_m(prev, p)
        prev = p
    return total


def centroid(points: Iterable[LatLng]) -> GeoPoint:
    """Planar mean of lat/lng values.

    Not a geodesic centroid: fine at city scale, wrong near the antimeridian.
    """
    n = 0
    lat_sum = 0.0
    lng_sum = 0.0
    for p in points:
        lat_sum += p.lat
        lng_sum += p.lng
        n += 1
    if n == 0:
        raise ValueError("centroid requires at least one point")
    return GeoPoint(lat=lat_sum / n, lng=lng_sum / n)
