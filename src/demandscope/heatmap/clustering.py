"""
Greedy seed-based point clustering.

Each cluster is seeded by the first unassigned point (in input order) and absorbs
every later unassigned point within the threshold of that *seed*. Chains are not
merged transitively: two members may be up to 2x the threshold apart. Output
order and membership depend only on input order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from demandscope.core.geo import GeoPoint, centroid, haversine_m
from demandscope.domain.models import TracePoint


@dataclass(frozen=True)
class Cluster:
    """Trace points grouped under one seed; the seed is always `members[0]`."""

    members: tuple[TracePoint, ...]

    def __post_init__(self) -> None:
        if not self.members:
            raise ValueError("Cluster requires at least one member")

    @property
    def seed(self) -> TracePoint:
        return self.members[0]

    @property
    def count(self) -> int:
        return len(self.members)

    @property
    def center(self) -> GeoPoint:
        return centroid(self.members)


def cluster_points(points: Sequence[TracePoint], threshold_m: float) -> list[Cluster]:
    """Partition `points` into seed-based clusters. O(n^2) haversine calls."""
    if threshold_m < 0:
        raise ValueError("threshold_m must be >= 0")

    assigned = [False] * len(points)
    clusters: list[Cluster] = []

    for i, seed in enumerate(points):
        if assigned[i]:
            continue
        assigned[i] = True
        members = [seed]
        for j in range(i + 1, len(points)):
            if assigned[j]:
                continue
            if haversine_m(seed, points[j]) <= threshold_m:
                members.append(points[j])
                assigned[j] = True
        clusters.append(Cluster(members=tuple(members)))

    return clusters
