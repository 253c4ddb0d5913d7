import math

import pytest

from demandscope.core.geo import EARTH_RADIUS_M
from demandscope.domain.models import TracePoint
from demandscope.heatmap.clustering import Cluster, cluster_points


def _north_of_origin(meters: float, track_id: str = "t") -> TracePoint:
    return TracePoint(track_id=track_id, lat=math.degrees(meters / EARTH_RADIUS_M), lng=0.0)


def test_empty_input_gives_no_clusters():
    assert cluster_points([], 10) == []


def test_single_point_is_a_singleton():
    p = _north_of_origin(0)
    clusters = cluster_points([p], 10)
    assert len(clusters) == 1
    assert clusters[0].members == (p,)
    assert clusters[0].seed == p


def test_members_join_the_seed_not_each_other():
    # 0 m seeds; 8 m joins (<= 10 from seed); 16 m is 8 m from the second point but 16 m from the seed.
    pts = [_north_of_origin(0), _north_of_origin(8), _north_of_origin(16)]
    clusters = cluster_points(pts, 10)
    assert [c.count for c in clusters] == [2, 1]
    assert clusters[1].seed == pts[2]


def test_threshold_is_inclusive():
    # Coincident points are at distance 0, which a zero threshold still accepts.
    pts = [_north_of_origin(0), _north_of_origin(0)]
    assert len(cluster_points(pts, 0)) == 1
    assert len(cluster_points([_north_of_origin(0), _north_of_origin(10)], 9.9)) == 2


def test_clusters_partition_the_input_deterministically():
    pts = [_north_of_origin(m, track_id=str(m)) for m in (0, 3, 50, 52, 7, 200, 49)]
    first = cluster_points(pts, 5)
    second = cluster_points(pts, 5)

    assert first == second
    members = [m for c in first for m in c.members]
    assert sorted(members, key=lambda p: p.track_id) == sorted(pts, key=lambda p: p.track_id)
    assert len(first) <= len(pts)


def test_negative_threshold_is_rejected():
    with pytest.raises(ValueError):
        cluster_points([_north_of_origin(0)], -1)


def test_cluster_requires_members():
    with pytest.raises(ValueError):
        Cluster(members=())
