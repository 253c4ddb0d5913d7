"""
Ephemeral live driver locations.

Drivers report positions frequently; an entry expires `ttl_seconds` after its last
update. Recommendation code only reads through `nearby_drivers`, so a shared
geo-indexed store can replace this in-process one without touching the ranking.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Protocol

from demandscope.core.geo import haversine_m
from demandscope.core.spatial_index import SpatialGridIndex
from demandscope.domain.models import DriverSnapshot, DriverStatus, GeoPoint


class LiveLocationStore(Protocol):
    def nearby_drivers(self, center: GeoPoint, radius_m: float) -> list[DriverSnapshot]: ...


class InMemoryLiveLocationStore:
    """Thread-safe driver location map with TTL expiry and radius search."""

    def __init__(
        self,
        *,
        ttl_seconds: float = 300,
        cell_size_m: float = 500,
        clock: Callable[[], float] = time.time,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self._ttl_seconds = float(ttl_seconds)
        self._cell_size_m = float(cell_size_m)
        self._clock = clock
        self._lock = threading.Lock()
        self._drivers: dict[str, DriverSnapshot] = {}
        self._index: SpatialGridIndex[DriverSnapshot] | None = None

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, d in self._drivers.items() if now - d.timestamp > self._ttl_seconds]
        for k in expired:
            del self._drivers[k]
        if expired:
            self._index = None

    def update_location(
        self, driver_id: str, lat: float, lng: float, status: DriverStatus = "available"
    ) -> DriverSnapshot:
        snapshot = DriverSnapshot(id=driver_id, lat=lat, lng=lng, status=status, timestamp=self._clock())
        with self._lock:
            self._drivers[driver_id] = snapshot
            self._index = None
        return snapshot

    def get_location(self, driver_id: str) -> DriverSnapshot | None:
        with self._lock:
            self._purge_expired(self._clock())
            return self._drivers.get(driver_id)

    def all_drivers(self) -> list[DriverSnapshot]:
        with self._lock:
            self._purge_expired(self._clock())
            return list(self._drivers.values())

    def remove_driver(self, driver_id: str) -> bool:
        with self._lock:
            removed = self._drivers.pop(driver_id, None) is not None
            if removed:
                self._index = None
            return removed

    def nearby_drivers(self, center: GeoPoint, radius_m: float) -> list[DriverSnapshot]:
        """Drivers within `radius_m` of `center`, nearest first. Any status."""
        with self._lock:
            self._purge_expired(self._clock())
            if self._index is None:
                self._index = SpatialGridIndex(
                    list(self._drivers.values()),
                    get_latlng=lambda d: (d.lat, d.lng),
                    cell_size_m=self._cell_size_m,
                )
            found = self._index.query_within(lat=center.lat, lng=center.lng, radius_m=radius_m)
        return sorted(found, key=lambda d: haversine_m(center, d))
