"""
Lightweight spatial indexing (grid bucket) for lat/lng points.

Used by the live location store so radius searches over many drivers do not
scan every entry with a haversine call.

Cells come from an equirectangular projection around one reference latitude,
but queries never measure distance in that projection: each query turns its
radius into an exact lat/lng window, walks the cells overlapping it, and keeps
entries by haversine distance.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Generic, Iterator, TypeVar

from demandscope.core.geo import EARTH_RADIUS_M, GeoPoint, haversine_m

T = TypeVar("T")

_M_PER_DEG_LAT = 110_540.0
_M_PER_DEG_LNG_EQUATOR = 111_320.0
# Absorbs float error at the window edges; the haversine check decides membership.
_WINDOW_PAD_DEG = 1e-9


def _to_xy_m(lat: float, lng: float, *, lat0_deg: float) -> tuple[float, float]:
    # Monotonic in lat and in lng, so a lat/lng window maps onto a block of cells.
    lat0 = math.radians(float(lat0_deg))
    x = float(lng) * _M_PER_DEG_LNG_EQUATOR * math.cos(lat0)
    y = float(lat) * _M_PER_DEG_LAT
    return x, y


def degree_window(lat: float, lng: float, radius_m: float) -> tuple[float, float, float, float] | None:
    """Bounding (lat_lo, lat_hi, lng_lo, lng_hi) of every point within `radius_m` on the sphere.

    Returns None when no such box exists without wrapping: the circle reaches a pole
    or crosses the antimeridian. Callers then scan everything.
    """
    d = float(radius_m) / EARTH_RADIUS_M
    if d >= math.pi / 2:
        return None
    dlat = math.degrees(d)
    if lat + dlat >= 90 or lat - dlat <= -90:
        return None
    # Widest longitude spread of a spherical cap whose pole-side edge stays off the pole.
    dlng = math.degrees(math.asin(min(1.0, math.sin(d) / math.cos(math.radians(lat)))))
    if lng - dlng < -180 or lng + dlng > 180:
        return None
    pad = _WINDOW_PAD_DEG
    return lat - dlat - pad, lat + dlat + pad, lng - dlng - pad, lng + dlng + pad


@dataclass(frozen=True)
class _Entry(Generic[T]):
    item: T
    lat: float
    lng: float


class SpatialGridIndex(Generic[T]):
    """Immutable grid index; build once per snapshot, query many times."""

    def __init__(
        self,
        items: list[T],
        *,
        get_latlng: Callable[[T], tuple[float, float]],
        cell_size_m: float = 500.0,
        lat0_deg: float | None = None,
    ):
        if float(cell_size_m) <= 0:
            raise ValueError("cell_size_m must be > 0")
        self._cell_size_m = float(cell_size_m)
        self._cells: dict[tuple[int, int], list[_Entry[T]]] = {}

        coords = [(it, *map(float, get_latlng(it))) for it in items]
        if lat0_deg is None:
            # Center the projection on the data so cells stay roughly square.
            lat0_deg = sum(c[1] for c in coords) / len(coords) if coords else 0.0
        self._lat0_deg = float(lat0_deg)

        for it, lat, lng in coords:
            x_m, y_m = _to_xy_m(lat, lng, lat0_deg=self._lat0_deg)
            e = _Entry(item=it, lat=lat, lng=lng)
            self._cells.setdefault(self._cell_key_xy(x_m, y_m), []).append(e)
        self._size = len(coords)

    def __len__(self) -> int:
        return self._size

    def _cell_key_xy(self, x_m: float, y_m: float) -> tuple[int, int]:
        return (int(math.floor(x_m / self._cell_size_m)), int(math.floor(y_m / self._cell_size_m)))

    def _candidates(self, window: tuple[float, float, float, float] | None) -> Iterator[_Entry[T]]:
        if window is None:
            for cell in self._cells.values():
                yield from cell
            return

        lat_lo, lat_hi, lng_lo, lng_hi = window
        x_lo, y_lo = self._cell_key_xy(*_to_xy_m(lat_lo, lng_lo, lat0_deg=self._lat0_deg))
        x_hi, y_hi = self._cell_key_xy(*_to_xy_m(lat_hi, lng_hi, lat0_deg=self._lat0_deg))
        window_cells = (x_hi - x_lo + 1) * (y_hi - y_lo + 1)
        if window_cells > len(self._cells):
            # Large radius over a sparse index: walk occupied cells instead of the window.
            keys = [k for k in self._cells if x_lo <= k[0] <= x_hi and y_lo <= k[1] <= y_hi]
        else:
            keys = [(cx, cy) for cx in range(x_lo, x_hi + 1) for cy in range(y_lo, y_hi + 1)]
        for key in keys:
            yield from self._cells.get(key, ())

    def query_within(self, *, lat: float, lng: float, radius_m: float) -> list[T]:
        """Return items whose haversine distance to (lat, lng) is <= radius_m."""
        r = float(radius_m)
        if r < 0 or not self._size:
            return []
        origin = GeoPoint(lat=float(lat), lng=float(lng))
        window = degree_window(origin.lat, origin.lng, r)
        return [
            e.item
            for e in self._candidates(window)
            if haversine_m(origin, GeoPoint(lat=e.lat, lng=e.lng)) <= r
        ]
