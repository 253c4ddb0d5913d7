import pytest

from demandscope.config.overrides import apply_settings_overrides
from demandscope.config.settings import get_settings
from demandscope.domain.models import GeoPoint, HeatmapConfigOverrides, TracePoint, TravelEstimate
from demandscope.ingestion.live_locations import InMemoryLiveLocationStore
from demandscope.ingestion.point_source import InMemoryPointSource, load_trace_points
from demandscope.recommender import service


class StubEstimator:
    def estimate(self, start, end, profile="driving"):
        return TravelEstimate(distance_m=1000.0, duration_seconds=120.0)


DRIVER = GeoPoint(lat=25.0478, lng=121.5170)


def test_resolve_heatmap_config_fills_defaults_and_keeps_zero():
    settings = get_settings()
    cfg = service.resolve_heatmap_config(HeatmapConfigOverrides(max_points=0, radius=25), settings)
    assert cfg.max_points == 0
    assert cfg.radius == 25
    assert cfg.grid_size == settings.heatmap.grid_size
    assert cfg.intensity_threshold == settings.heatmap.intensity_threshold

    assert service.resolve_heatmap_config(None, settings).max_points == settings.heatmap.max_points


def test_build_heatmap_from_source_filters_by_track(trace_points):
    source = InMemoryPointSource(trace_points)
    points = service.build_heatmap_from_source(source, track_ids=["b"])
    assert [p.count for p in points] == [3, 1]


def test_empty_source_gives_empty_heatmap_and_zero_stats():
    source = InMemoryPointSource()
    assert service.build_heatmap_from_source(source) == []

    stats, config = service.heatmap_stats_from_source(source)
    assert stats.total_points == 0
    assert stats.max_intensity == 0
    assert config.max_points == get_settings().heatmap.max_points


def test_clustered_points_default_distance(trace_points):
    clusters = service.clustered_points_from_source(InMemoryPointSource(trace_points))
    assert [c.count for c in clusters] == [5, 3, 1]
    assert clusters[0].radius == get_settings().heatmap.clustering_distance_m

    with pytest.raises(ValueError):
        service.clustered_points_from_source(InMemoryPointSource(trace_points), cluster_distance_m=-5)


def test_demand_recommendations_rank_and_penalize(trace_points):
    source = InMemoryPointSource(trace_points)
    store = InMemoryLiveLocationStore()
    # Two idle drivers parked on the dense spot; a busy one does not count.
    store.update_location("d1", 25.0478, 121.5170)
    store.update_location("d2", 25.0478, 121.5170)
    store.update_location("d3", 25.0478, 121.5170, "busy")

    recs = service.demand_recommendations(
        DRIVER, 10_000, point_source=source, live_store=store, travel_estimator=StubEstimator()
    )

    # Singleton (1.0), dense spot 0.5 * (1 - 0.4) = 0.3, light spot 0.3.
    assert [r.point.count for r in recs] == [1, 5, 3]
    assert recs[1].competition_count == 2
    assert recs[1].final_score == pytest.approx(0.3)
    assert recs[0].estimated_travel_seconds == 120.0
    assert all(r.travel_estimate_source == "router" for r in recs)


def test_demand_recommendations_respect_max_distance(trace_points):
    recs = service.demand_recommendations(
        DRIVER,
        100,
        point_source=InMemoryPointSource(trace_points),
        live_store=InMemoryLiveLocationStore(),
        travel_estimator=None,
    )
    assert [r.point.count for r in recs] == [5]
    assert recs[0].distance_m == pytest.approx(0, abs=1e-6)
    assert recs[0].estimated_travel_seconds == 0


def test_demand_recommendations_use_request_settings(trace_points):
    settings = apply_settings_overrides(get_settings(), {"recommendation": {"demand_heatmap": {"intensity_threshold": 0.4}}})
    recs = service.demand_recommendations(
        DRIVER,
        None,
        point_source=InMemoryPointSource(trace_points),
        live_store=InMemoryLiveLocationStore(),
        travel_estimator=None,
        settings=settings,
    )
    assert [r.point.count for r in recs] == [1, 5]


def test_best_demand_point_empty_source_is_none():
    assert (
        service.best_demand_point(
            DRIVER,
            5000,
            point_source=InMemoryPointSource(),
            live_store=InMemoryLiveLocationStore(),
            travel_estimator=StubEstimator(),
        )
        is None
    )


def test_negative_max_distance_is_rejected():
    with pytest.raises(ValueError):
        service.demand_recommendations(
            DRIVER,
            -1,
            point_source=InMemoryPointSource(),
            live_store=InMemoryLiveLocationStore(),
            travel_estimator=None,
        )


def test_point_source_file_round_trip(tmp_path):
    path = tmp_path / "points.json"
    path.write_text(
        '[{"track_id": "a", "lat": 25.0, "lng": 121.5}, {"track_id": "b", "lat": 25.1, "lng": 121.6, "speed": 12.5}]',
        encoding="utf-8",
    )
    points = load_trace_points(path)
    assert points[1] == TracePoint(track_id="b", lat=25.1, lng=121.6, speed=12.5)

    source = InMemoryPointSource.from_file(path)
    assert len(source) == 2
    assert [p.track_id for p in source.fetch_points(track_ids=["a"])] == ["a"]

    assert len(InMemoryPointSource.from_file(tmp_path / "missing.json", missing_ok=True)) == 0
    with pytest.raises(FileNotFoundError):
        InMemoryPointSource.from_file(tmp_path / "missing.json")


def test_demand_recommendations_with_continent_scale_distance(trace_points):
    store = InMemoryLiveLocationStore()
    store.update_location("d1", 25.0478, 121.5170)

    recs = service.demand_recommendations(
        DRIVER,
        2_000_000,
        point_source=InMemoryPointSource(trace_points),
        live_store=store,
        travel_estimator=None,
    )
    assert [r.point.count for r in recs] == [1, 5, 3]
    assert recs[1].competition_count == 1
