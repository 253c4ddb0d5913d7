"""
Heatmap builder.

Pipeline: filter -> cluster -> score -> intensity threshold -> truncate.
The output keeps cluster-discovery order; it is never re-sorted by intensity.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from demandscope.domain.models import (
    BoundingBox,
    ClusteredPoint,
    HeatmapConfig,
    HeatmapPoint,
    HeatmapStats,
    TracePoint,
)
from demandscope.heatmap.clustering import cluster_points
from demandscope.heatmap.scoring import score_cluster, to_clustered_point

logger = logging.getLogger(__name__)

# Coarse on purpose: a true degree is ~111 km of latitude. Kept so existing heatmaps
# stay reproducible; grid_size=0.001 therefore means a 1 m clustering threshold.
GRID_DEGREES_TO_METERS = 1000.0


def grid_threshold_m(grid_size: float) -> float:
    return grid_size * GRID_DEGREES_TO_METERS


def filter_points(
    points: Iterable[TracePoint],
    *,
    track_ids: Iterable[str] | None = None,
    bounds: BoundingBox | None = None,
) -> list[TracePoint]:
    """Keep points on the given tracks (if any) and inside the inclusive bounds (if any)."""
    wanted = set(track_ids) if track_ids else None
    return [
        p
        for p in points
        if (wanted is None or p.track_id in wanted) and (bounds is None or bounds.contains(p.lat, p.lng))
    ]


def build_heatmap(
    points: Sequence[TracePoint],
    config: HeatmapConfig,
    *,
    track_ids: Iterable[str] | None = None,
    bounds: BoundingBox | None = None,
) -> list[HeatmapPoint]:
    if track_ids or bounds is not None:
        points = filter_points(points, track_ids=track_ids, bounds=bounds)

    clusters = cluster_points(points, grid_threshold_m(config.grid_size))
    scored = [score_cluster(c, config.radius) for c in clusters]
    kept = [p for p in scored if p.intensity >= config.intensity_threshold]
    result = kept[: config.max_points]

    logger.debug(
        "Heatmap built: points=%s clusters=%s above_threshold=%s returned=%s",
        len(points),
        len(clusters),
        len(kept),
        len(result),
    )
    return result


def clustered_points(
    points: Sequence[TracePoint],
    cluster_distance_m: float,
    *,
    min_radius_m: float,
) -> list[ClusteredPoint]:
    """Raw clusters (members attached) in discovery order; no threshold or truncation."""
    return [to_clustered_point(c, min_radius_m) for c in cluster_points(points, cluster_distance_m)]


def heatmap_stats(heatmap_points: Sequence[HeatmapPoint]) -> HeatmapStats:
    if not heatmap_points:
        return HeatmapStats()

    intensities = [p.intensity for p in heatmap_points]
    total = sum(intensities)
    return HeatmapStats(
        total_points=len(heatmap_points),
        total_intensity=total,
        average_intensity=total / len(heatmap_points),
        max_intensity=max(intensities),
        min_intensity=min(intensities),
    )
