"""
Track summaries over trace points.

A track is every trace point sharing a `track_id`, in source order.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from demandscope.core.geo import total_distance_m
from demandscope.domain.models import GeoPoint, TracePoint, TrackRoute, TrackStats, TrackSummary


def group_by_track(points: Iterable[TracePoint]) -> dict[str, list[TracePoint]]:
    """Group points by track id; dict order follows first appearance."""
    tracks: dict[str, list[TracePoint]] = {}
    for p in points:
        tracks.setdefault(p.track_id, []).append(p)
    return tracks


def summarize_track(
    track_id: str,
    points: Sequence[TracePoint],
    *,
    include_route: bool = False,
    include_distance: bool = False,
) -> TrackSummary:
    summary = TrackSummary(id=track_id, point_count=len(points))
    distance = total_distance_m(points) if include_distance else None
    if include_route:
        summary.route = TrackRoute(
            points=[GeoPoint(lat=p.lat, lng=p.lng) for p in points],
            distance_m=distance or 0.0,
        )
    elif include_distance:
        summary.total_distance_m = distance
    return summary


def summarize_tracks(
    points: Iterable[TracePoint], *, include_route: bool = False, include_distance: bool = False
) -> list[TrackSummary]:
    return [
        summarize_track(track_id, pts, include_route=include_route, include_distance=include_distance)
        for track_id, pts in group_by_track(points).items()
    ]


def track_stats(points: Sequence[TracePoint]) -> TrackStats:
    total_tracks = len(group_by_track(points))
    total_points = len(points)
    average = total_points / total_tracks if total_tracks else 0.0
    return TrackStats(
        total_tracks=total_tracks,
        total_points=total_points,
        average_points_per_track=round(average, 2),
    )
