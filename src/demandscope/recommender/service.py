from __future__ import annotations

# Orchestration layer shared by the API and the CLI.
# It wires together:
# - the point source (trace points, filtered by track ids / bounds)
# - heatmap building (clustering + scoring, pure)
# - the live location store (competing drivers)
# - the travel estimator (routing provider, may fail)
#
# Collaborators are always injected so tests stay offline and deterministic.

import logging
import time
from typing import Iterable

from demandscope.config.settings import Settings, get_settings
from demandscope.core.geo import haversine_m
from demandscope.domain.models import (
    BoundingBox,
    ClusteredPoint,
    DemandRecommendation,
    GeoPoint,
    HeatmapConfig,
    HeatmapConfigOverrides,
    HeatmapPoint,
    HeatmapStats,
)
from demandscope.heatmap.grid import build_heatmap, clustered_points, heatmap_stats
from demandscope.ingestion.live_locations import LiveLocationStore
from demandscope.ingestion.point_source import PointSource
from demandscope.recommender.ranking import TravelEstimator, rank_demand_points

logger = logging.getLogger(__name__)


def resolve_heatmap_config(overrides: HeatmapConfigOverrides | None, settings: Settings) -> HeatmapConfig:
    """Fill missing request fields from `settings.heatmap` (explicit zeros are kept)."""
    defaults = settings.heatmap
    given = overrides.model_dump(exclude_none=True) if overrides else {}
    return HeatmapConfig(
        grid_size=given.get("grid_size", defaults.grid_size),
        radius=given.get("radius", defaults.radius),
        intensity_threshold=given.get("intensity_threshold", defaults.intensity_threshold),
        max_points=given.get("max_points", defaults.max_points),
    )


def build_heatmap_from_source(
    point_source: PointSource,
    *,
    config: HeatmapConfigOverrides | HeatmapConfig | None = None,
    track_ids: Iterable[str] | None = None,
    bounds: BoundingBox | None = None,
    settings: Settings | None = None,
) -> list[HeatmapPoint]:
    settings = settings or get_settings()
    if not isinstance(config, HeatmapConfig):
        config = resolve_heatmap_config(config, settings)
    track_ids = list(track_ids) if track_ids else None

    t0 = time.monotonic()
    points = point_source.fetch_points(track_ids=track_ids, bounds=bounds)
    result = build_heatmap(points, config)
    logger.info(
        "Heatmap: %s points -> %s heatmap points in %sms",
        len(points),
        len(result),
        int((time.monotonic() - t0) * 1000),
    )
    return result


def heatmap_stats_from_source(
    point_source: PointSource,
    *,
    config: HeatmapConfigOverrides | None = None,
    track_ids: Iterable[str] | None = None,
    bounds: BoundingBox | None = None,
    settings: Settings | None = None,
) -> tuple[HeatmapStats, HeatmapConfig]:
    """Stats over the built heatmap plus the effective config used to build it."""
    settings = settings or get_settings()
    effective = resolve_heatmap_config(config, settings)
    points = build_heatmap_from_source(
        point_source, config=effective, track_ids=track_ids, bounds=bounds, settings=settings
    )
    return heatmap_stats(points), effective


def clustered_points_from_source(
    point_source: PointSource,
    *,
    cluster_distance_m: float | None = None,
    track_ids: Iterable[str] | None = None,
    bounds: BoundingBox | None = None,
    settings: Settings | None = None,
) -> list[ClusteredPoint]:
    settings = settings or get_settings()
    distance = settings.heatmap.clustering_distance_m if cluster_distance_m is None else float(cluster_distance_m)
    if distance < 0:
        raise ValueError("clustering distance must be >= 0")
    points = point_source.fetch_points(track_ids=list(track_ids) if track_ids else None, bounds=bounds)
    # Raw clusters use the clustering distance itself as their radius floor.
    return clustered_points(points, distance, min_radius_m=distance)


def demand_recommendations(
    driver_location: GeoPoint,
    max_distance_m: float | None = None,
    *,
    point_source: PointSource,
    live_store: LiveLocationStore,
    travel_estimator: TravelEstimator | None,
    settings: Settings | None = None,
) -> list[DemandRecommendation]:
    """Ranked positioning suggestions for a driver at `driver_location`."""
    settings = settings or get_settings()
    cfg = settings.recommendation
    max_distance = cfg.default_max_distance_m if max_distance_m is None else float(max_distance_m)
    if max_distance < 0:
        raise ValueError("max_distance_m must be >= 0")

    t0 = time.monotonic()
    demand_cfg = HeatmapConfig(**cfg.demand_heatmap.model_dump())
    heatmap = build_heatmap(point_source.fetch_points(), demand_cfg)

    # Competitors can sit just outside max_distance yet inside a reachable point's radius.
    reachable_radius = max(
        (p.radius for p in heatmap if haversine_m(driver_location, p) <= max_distance),
        default=0.0,
    )
    drivers = live_store.nearby_drivers(driver_location, max_distance + reachable_radius)

    result = rank_demand_points(
        driver_location, max_distance, heatmap, drivers, travel_estimator, settings=settings
    )
    logger.info(
        "Demand recommendations: heatmap=%s drivers=%s returned=%s in %sms",
        len(heatmap),
        len(drivers),
        len(result),
        int((time.monotonic() - t0) * 1000),
    )
    return result


def best_demand_point(
    driver_location: GeoPoint,
    max_distance_m: float | None = None,
    *,
    point_source: PointSource,
    live_store: LiveLocationStore,
    travel_estimator: TravelEstimator | None,
    settings: Settings | None = None,
) -> DemandRecommendation | None:
    ranked = demand_recommendations(
        driver_location,
        max_distance_m,
        point_source=point_source,
        live_store=live_store,
        travel_estimator=travel_estimator,
        settings=settings,
    )
    return ranked[0] if ranked else None
