"""
Cluster -> heatmap point scoring.

Intensity is a linear ramp on member count that saturates at
`INTENSITY_SATURATION_COUNT`; it is a normalization scale, not a physical constant.
"""

from __future__ import annotations

from demandscope.core.geo import GeoPoint, haversine_m
from demandscope.domain.models import ClusteredPoint, GeoPoint as DomainGeoPoint, HeatmapPoint
from demandscope.heatmap.clustering import Cluster

INTENSITY_SATURATION_COUNT = 10


def cluster_geometry(cluster: Cluster, min_radius_m: float) -> tuple[GeoPoint, float, float]:
    """Return (center, radius_m, intensity) for a cluster."""
    if min_radius_m < 0:
        raise ValueError("min_radius_m must be >= 0")

    if cluster.count == 1:
        # An isolated sample: full intensity at the minimum footprint.
        seed = cluster.seed
        return GeoPoint(lat=seed.lat, lng=seed.lng), float(min_radius_m), 1.0

    center = cluster.center
    max_distance = max(haversine_m(center, m) for m in cluster.members)
    # Doubling gives the rendered circle some margin around the outermost member.
    radius = max(max_distance * 2, float(min_radius_m))
    intensity = min(cluster.count / INTENSITY_SATURATION_COUNT, 1.0)
    return center, radius, intensity


def score_cluster(cluster: Cluster, min_radius_m: float) -> HeatmapPoint:
    center, radius, intensity = cluster_geometry(cluster, min_radius_m)
    return HeatmapPoint(lat=center.lat, lng=center.lng, radius=radius, intensity=intensity, count=cluster.count)


def to_clustered_point(cluster: Cluster, min_radius_m: float) -> ClusteredPoint:
    """Scored cluster with its members attached (raw cluster view)."""
    center, radius, intensity = cluster_geometry(cluster, min_radius_m)
    return ClusteredPoint(
        center=DomainGeoPoint(lat=center.lat, lng=center.lng),
        points=list(cluster.members),
        radius=radius,
        intensity=intensity,
        count=cluster.count,
    )
