"""
API routes.

Endpoints:
- `/api/heatmap*`: heatmap points, per-track / per-bounds variants, stats and raw clusters.
- `/api/drivers*`: live driver locations and positioning recommendations.
- `/api/tracks*`: track summaries over the loaded trace points.
- GET `/api/settings`: public tuning knobs for map clients.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Callable, TypeVar

from fastapi import APIRouter, HTTPException, Query

from demandscope.config.overrides import apply_settings_overrides
from demandscope.config.settings import Settings, get_settings
from demandscope.domain.models import (
    BoundsHeatmapRequest,
    ClusteredPoint,
    ClusterRequest,
    DemandRecommendation,
    DemandRequest,
    DriverLocationUpdate,
    DriverSnapshot,
    GeoPoint,
    HeatmapConfigOverrides,
    HeatmapPoint,
    HeatmapRequest,
    TrackStats,
    TrackSummary,
)
from demandscope.ingestion.live_locations import InMemoryLiveLocationStore
from demandscope.ingestion.osrm_client import OsrmClient
from demandscope.ingestion.point_source import InMemoryPointSource
from demandscope.recommender import service
from demandscope.tracks.summary import group_by_track, summarize_track, summarize_tracks, track_stats

logger = logging.getLogger(__name__)

router = APIRouter()

T = TypeVar("T")


@lru_cache
def _point_source() -> InMemoryPointSource:
    settings = get_settings()
    return InMemoryPointSource.from_file(settings.points.path, missing_ok=True)


@lru_cache
def _live_store() -> InMemoryLiveLocationStore:
    cfg = get_settings().live_locations
    return InMemoryLiveLocationStore(ttl_seconds=cfg.ttl_seconds, cell_size_m=cfg.index_cell_size_m)


@lru_cache
def _travel_estimator() -> OsrmClient:
    return OsrmClient(get_settings())


def _call(fn: Callable[[], T]) -> T:
    """Run a service call, mapping invalid input to 400 and anything else to 500."""
    try:
        return fn()
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"code": "VALIDATION_ERROR", "message": str(e)}) from e
    except Exception as e:
        logger.exception("Request failed")
        raise HTTPException(status_code=500, detail={"code": "INTERNAL_ERROR", "message": str(e)}) from e


def _request_settings(overrides: dict[str, Any] | None) -> Settings:
    return apply_settings_overrides(get_settings(), overrides)


@router.post("/api/heatmap", response_model=list[HeatmapPoint])
def post_heatmap(request: HeatmapRequest) -> list[HeatmapPoint]:
    """Cluster trace points (optionally filtered) into scored heatmap points."""
    return _call(
        lambda: service.build_heatmap_from_source(
            _point_source(),
            config=request.config,
            track_ids=request.track_ids,
            bounds=request.bounds,
            settings=_request_settings(request.settings_overrides),
        )
    )


@router.get("/api/heatmap/track/{track_id}", response_model=list[HeatmapPoint])
def get_heatmap_for_track(
    track_id: str,
    grid_size: float | None = Query(default=None, ge=0),
    radius: float | None = Query(default=None, ge=0),
    intensity_threshold: float | None = Query(default=None, ge=0, le=1),
    max_points: int | None = Query(default=None, ge=0),
) -> list[HeatmapPoint]:
    config = HeatmapConfigOverrides(
        grid_size=grid_size, radius=radius, intensity_threshold=intensity_threshold, max_points=max_points
    )
    return _call(lambda: service.build_heatmap_from_source(_point_source(), config=config, track_ids=[track_id]))


@router.post("/api/heatmap/bounds", response_model=list[HeatmapPoint])
def post_heatmap_for_bounds(request: BoundsHeatmapRequest) -> list[HeatmapPoint]:
    return _call(
        lambda: service.build_heatmap_from_source(_point_source(), config=request.config, bounds=request.bounds)
    )


@router.post("/api/heatmap/stats")
def post_heatmap_stats(request: HeatmapRequest) -> dict:
    """Aggregate intensity stats plus the effective config used."""
    stats, config = _call(
        lambda: service.heatmap_stats_from_source(
            _point_source(),
            config=request.config,
            track_ids=request.track_ids,
            bounds=request.bounds,
            settings=_request_settings(request.settings_overrides),
        )
    )
    return {**stats.model_dump(mode="json"), "config": config.model_dump(mode="json")}


@router.post("/api/heatmap/clusters", response_model=list[ClusteredPoint])
def post_heatmap_clusters(body: ClusterRequest) -> list[ClusteredPoint]:
    """Raw clusters with member points attached (no threshold / truncation)."""
    return _call(
        lambda: service.clustered_points_from_source(
            _point_source(),
            cluster_distance_m=body.clustering_distance,
            track_ids=body.request.track_ids,
            bounds=body.request.bounds,
            settings=_request_settings(body.request.settings_overrides),
        )
    )


@router.post("/api/drivers/location", response_model=DriverSnapshot)
def post_driver_location(update: DriverLocationUpdate) -> DriverSnapshot:
    return _live_store().update_location(update.driver_id, update.lat, update.lng, update.status)


@router.get("/api/drivers", response_model=list[DriverSnapshot])
def get_drivers() -> list[DriverSnapshot]:
    return _live_store().all_drivers()


@router.get("/api/drivers/nearby", response_model=list[DriverSnapshot])
def get_nearby_drivers(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_m: float | None = Query(default=None, ge=0),
) -> list[DriverSnapshot]:
    radius = get_settings().live_locations.default_nearby_radius_m if radius_m is None else radius_m
    return _live_store().nearby_drivers(GeoPoint(lat=lat, lng=lng), radius)


@router.get("/api/drivers/{driver_id}", response_model=DriverSnapshot)
def get_driver(driver_id: str) -> DriverSnapshot:
    snapshot = _live_store().get_location(driver_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": f"Unknown driver '{driver_id}'."})
    return snapshot


@router.delete("/api/drivers/{driver_id}")
def delete_driver(driver_id: str) -> dict:
    return {"removed": _live_store().remove_driver(driver_id)}


@router.post("/api/drivers/recommendations", response_model=list[DemandRecommendation])
def post_demand_recommendations(request: DemandRequest) -> list[DemandRecommendation]:
    """Ranked places to wait for demand, best first."""
    return _call(
        lambda: service.demand_recommendations(
            request.location,
            request.max_distance_m,
            point_source=_point_source(),
            live_store=_live_store(),
            travel_estimator=_travel_estimator(),
            settings=_request_settings(request.settings_overrides),
        )
    )


@router.post("/api/drivers/best-spot", response_model=DemandRecommendation | None)
def post_best_spot(request: DemandRequest) -> DemandRecommendation | None:
    return _call(
        lambda: service.best_demand_point(
            request.location,
            request.max_distance_m,
            point_source=_point_source(),
            live_store=_live_store(),
            travel_estimator=_travel_estimator(),
            settings=_request_settings(request.settings_overrides),
        )
    )


@router.get("/api/tracks", response_model=list[TrackSummary])
def get_tracks(include_route: bool = False, include_distance: bool = False) -> list[TrackSummary]:
    points = _point_source().fetch_points()
    return summarize_tracks(points, include_route=include_route, include_distance=include_distance)


@router.get("/api/tracks/stats", response_model=TrackStats)
def get_track_stats() -> TrackStats:
    return track_stats(_point_source().fetch_points())


@router.get("/api/tracks/{track_id}", response_model=TrackSummary)
def get_track(track_id: str, include_route: bool = False, include_distance: bool = False) -> TrackSummary:
    points = group_by_track(_point_source().fetch_points(track_ids=[track_id])).get(track_id)
    if not points:
        raise HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": "Track not found."})
    return summarize_track(track_id, points, include_route=include_route, include_distance=include_distance)


@router.get("/api/settings")
def get_public_settings() -> dict:
    """Return tuning knobs map clients use as request defaults."""
    data = get_settings().model_dump(mode="json")
    return {
        "heatmap": data.get("heatmap", {}),
        "recommendation": data.get("recommendation", {}),
        "live_locations": {"ttl_seconds": data.get("live_locations", {}).get("ttl_seconds")},
    }
