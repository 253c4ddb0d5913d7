import pytest

from demandscope.domain.models import BoundingBox, HeatmapConfig, TracePoint
from demandscope.heatmap.clustering import cluster_points
from demandscope.heatmap.grid import build_heatmap, clustered_points, filter_points, grid_threshold_m, heatmap_stats
from demandscope.heatmap.scoring import score_cluster

DEFAULT_CONFIG = HeatmapConfig(grid_size=0.001, radius=100, intensity_threshold=0.1, max_points=1000)


def make_points(lat: float, lng: float, n: int) -> list[TracePoint]:
    return [TracePoint(track_id="t1", lat=lat, lng=lng) for _ in range(n)]


def test_grid_threshold_uses_coarse_degree_conversion():
    assert grid_threshold_m(0.001) == pytest.approx(1.0)
    assert grid_threshold_m(0.05) == pytest.approx(50.0)


def test_three_identical_points_make_one_heatmap_point():
    points = make_points(40.0, -74.0, 3)
    (point,) = build_heatmap(points, DEFAULT_CONFIG)
    assert (point.lat, point.lng, point.radius, point.count) == (40.0, -74.0, 100, 3)
    assert point.intensity == pytest.approx(0.3)


def test_eleven_close_points_saturate_intensity():
    points = make_points(40.0, -74.0, 11)
    (point,) = build_heatmap(points, DEFAULT_CONFIG)
    assert point.count == 11
    assert point.intensity == 1.0


def test_singleton_gets_full_intensity_and_floor_radius():
    (point,) = build_heatmap([TracePoint(track_id="x", lat=1.0, lng=2.0)], DEFAULT_CONFIG)
    assert (point.lat, point.lng, point.radius, point.intensity, point.count) == (1.0, 2.0, 100, 1.0, 1)


def test_radius_is_twice_the_spread_when_above_floor():
    # ~1.1 km apart; grid_size 2 -> 2000 m threshold puts both in one cluster.
    pts = [TracePoint(track_id="x", lat=0.0, lng=0.0), TracePoint(track_id="x", lat=0.01, lng=0.0)]
    config = DEFAULT_CONFIG.model_copy(update={"grid_size": 2.0})
    (point,) = build_heatmap(pts, config)
    assert point.lat == pytest.approx(0.005)
    assert point.radius == pytest.approx(1111.95, rel=1e-3)
    assert point.intensity == pytest.approx(0.2)


def test_threshold_filter_and_max_points_keep_discovery_order():
    points = [
        *make_points(10.0, 10.0, 2),  # intensity 0.2
        *make_points(20.0, 20.0, 6),  # 0.6
        *make_points(30.0, 30.0, 4),  # 0.4
        *make_points(40.0, 40.0, 8),  # 0.8
    ]
    config = DEFAULT_CONFIG.model_copy(update={"intensity_threshold": 0.3, "max_points": 2})
    result = build_heatmap(points, config)
    assert [p.lat for p in result] == [20.0, 30.0]
    assert all(p.intensity >= 0.3 for p in result)


def test_zero_max_points_returns_nothing(trace_points):
    config = DEFAULT_CONFIG.model_copy(update={"max_points": 0})
    assert build_heatmap(trace_points, config) == []


def test_filter_by_track_and_bounds(trace_points):
    only_b = filter_points(trace_points, track_ids=["b"])
    assert {p.track_id for p in only_b} == {"b"}
    assert len(only_b) == 4

    box = BoundingBox(north=25.05, south=25.04, east=121.52, west=121.50)
    assert len(filter_points(trace_points, bounds=box)) == 5
    assert filter_points(trace_points, track_ids=["b"], bounds=box) == []


def test_bounds_are_inclusive():
    p = TracePoint(track_id="x", lat=1.0, lng=1.0)
    box = BoundingBox(north=1.0, south=0.0, east=1.0, west=0.0)
    assert filter_points([p], bounds=box) == [p]


def test_inverted_bounds_are_rejected():
    with pytest.raises(ValueError):
        BoundingBox(north=0.0, south=1.0, east=1.0, west=0.0)


def test_build_heatmap_applies_filters(trace_points):
    result = build_heatmap(trace_points, DEFAULT_CONFIG, track_ids=["a"])
    assert len(result) == 1
    assert result[0].count == 5


def test_stats_over_empty_set_are_zero():
    stats = heatmap_stats([])
    assert stats.model_dump() == {
        "total_points": 0,
        "total_intensity": 0.0,
        "average_intensity": 0.0,
        "max_intensity": 0.0,
        "min_intensity": 0.0,
    }


def test_stats(trace_points):
    stats = heatmap_stats(build_heatmap(trace_points, DEFAULT_CONFIG))
    assert stats.total_points == 3
    assert stats.total_intensity == pytest.approx(0.5 + 0.3 + 1.0)
    assert stats.average_intensity == pytest.approx(1.8 / 3)
    assert stats.max_intensity == 1.0
    assert stats.min_intensity == pytest.approx(0.3)


def test_clustered_points_keep_members_and_use_floor(trace_points):
    result = clustered_points(trace_points, 50, min_radius_m=50)
    assert [c.count for c in result] == [5, 3, 1]
    assert all(c.radius == 50 for c in result)
    assert result[0].points == trace_points[:5]
    assert result[2].intensity == 1.0


def test_score_cluster_rejects_negative_floor():
    (cluster,) = cluster_points(make_points(0.0, 0.0, 2), 1)
    with pytest.raises(ValueError):
        score_cluster(cluster, -1)
