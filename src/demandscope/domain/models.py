"""
Domain models (Pydantic).

These types are the stable "contract" between layers:
- point source records (`TracePoint`) and request filters (`BoundingBox`, `HeatmapConfig`)
- heatmap outputs (`HeatmapPoint`, `ClusteredPoint`, `HeatmapStats`)
- live driver state (`DriverSnapshot`) and ranked output (`DemandRecommendation`)

Validation here is where invalid input is rejected; the math in
`demandscope.heatmap` and `demandscope.recommender` assumes validated values.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

DriverStatus = Literal["available", "busy", "offline"]
RouteProfile = Literal["driving", "walking", "cycling", "bus"]


class GeoPoint(BaseModel):
    """A geographic point in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class TracePoint(BaseModel):
    """One anonymized GPS sample belonging to a track."""

    model_config = ConfigDict(frozen=True)

    track_id: str
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    altitude: float = 0.0
    speed: float = 0.0
    bearing: float = 0.0


class BoundingBox(BaseModel):
    """Inclusive lat/lng box. Boxes crossing the antimeridian are not supported."""

    north: float = Field(..., ge=-90, le=90)
    south: float = Field(..., ge=-90, le=90)
    east: float = Field(..., ge=-180, le=180)
    west: float = Field(..., ge=-180, le=180)

    @model_validator(mode="after")
    def _validate_order(self) -> "BoundingBox":
        if self.north < self.south:
            raise ValueError("bounds.north must be >= bounds.south")
        if self.east < self.west:
            raise ValueError("bounds.east must be >= bounds.west")
        return self

    def contains(self, lat: float, lng: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lng <= self.east


class HeatmapConfig(BaseModel):
    """Clustering/scoring parameters for one heatmap build."""

    grid_size: float = Field(..., ge=0, description="Degrees; threshold = grid_size * 1000 m.")
    radius: float = Field(..., ge=0, description="Radius floor in meters.")
    intensity_threshold: float = Field(..., ge=0, le=1)
    max_points: int = Field(..., ge=0)


class HeatmapConfigOverrides(BaseModel):
    """Partial HeatmapConfig as sent by clients; missing fields use settings defaults."""

    grid_size: float | None = Field(default=None, ge=0)
    radius: float | None = Field(default=None, ge=0)
    intensity_threshold: float | None = Field(default=None, ge=0, le=1)
    max_points: int | None = Field(default=None, ge=0)


class HeatmapPoint(BaseModel):
    lat: float
    lng: float
    radius: float = Field(..., ge=0)
    intensity: float = Field(..., ge=0, le=1)
    count: int = Field(..., ge=1)


class ClusteredPoint(BaseModel):
    """A scored cluster with its member trace points attached."""

    center: GeoPoint
    points: list[TracePoint]
    radius: float = Field(..., ge=0)
    intensity: float = Field(..., ge=0, le=1)
    count: int = Field(..., ge=1)


class HeatmapStats(BaseModel):
    total_points: int = 0
    total_intensity: float = 0.0
    average_intensity: float = 0.0
    max_intensity: float = 0.0
    min_intensity: float = 0.0


class HeatmapRequest(BaseModel):
    bounds: BoundingBox | None = None
    config: HeatmapConfigOverrides | None = None
    track_ids: list[str] | None = None
    settings_overrides: dict[str, Any] | None = None


class ClusterRequest(BaseModel):
    request: HeatmapRequest = Field(default_factory=HeatmapRequest)
    clustering_distance: float | None = Field(default=None, ge=0)


class DriverSnapshot(BaseModel):
    """Point-in-time view of one driver from the live location store."""

    id: str
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    status: DriverStatus = "available"
    timestamp: float = 0.0


class DriverLocationUpdate(BaseModel):
    driver_id: str = Field(..., min_length=1)
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    status: DriverStatus = "available"


class TravelEstimate(BaseModel):
    distance_m: float = Field(..., ge=0)
    duration_seconds: float = Field(..., ge=0)


class DemandPoint(BaseModel):
    """A heatmap point annotated with local competition and its penalized score."""

    lat: float
    lng: float
    intensity: float = Field(..., ge=0, le=1)
    radius: float = Field(..., ge=0)
    count: int = Field(..., ge=1)
    driver_count: int = Field(..., ge=0)
    score: float = Field(..., ge=0, le=1)


class DemandRecommendation(BaseModel):
    point: DemandPoint
    distance_m: float = Field(..., ge=0)
    estimated_travel_seconds: float = Field(..., ge=0)
    competition_count: int = Field(..., ge=0)
    demand_intensity: float = Field(..., ge=0, le=1)
    final_score: float = Field(..., ge=0, le=1)
    travel_estimate_source: Literal["router", "fallback"] = "router"


class DemandRequest(BaseModel):
    """Driver-facing request for positioning suggestions."""

    location: GeoPoint
    max_distance_m: float | None = Field(default=None, ge=0)
    settings_overrides: dict[str, Any] | None = None


class TrackRoute(BaseModel):
    points: list[GeoPoint]
    distance_m: float = 0.0


class TrackSummary(BaseModel):
    id: str
    point_count: int
    total_distance_m: float | None = None
    route: TrackRoute | None = None


class TrackStats(BaseModel):
    total_tracks: int
    total_points: int
    average_points_per_track: float


class BoundsHeatmapRequest(BaseModel):
    bounds: BoundingBox
    config: HeatmapConfigOverrides | None = None
