"""
DemandScope CLI entrypoint.

Intended for quick local runs against a trace point JSON file without the API.
All logic is delegated to `demandscope.recommender.service`.
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter

from demandscope.config.settings import get_settings
from demandscope.core.env import resolve_project_path
from demandscope.core.logging import configure_logging
from demandscope.domain.models import BoundingBox, DriverSnapshot, GeoPoint, HeatmapConfigOverrides
from demandscope.ingestion.live_locations import InMemoryLiveLocationStore
from demandscope.ingestion.osrm_client import OsrmClient
from demandscope.ingestion.point_source import InMemoryPointSource
from demandscope.recommender import service
from demandscope.tracks.summary import summarize_tracks, track_stats

_DRIVERS_ADAPTER = TypeAdapter(list[DriverSnapshot])


def _dump(value: Any) -> str:
    if isinstance(value, list):
        value = [v.model_dump(mode="json") for v in value]
    elif hasattr(value, "model_dump"):
        value = value.model_dump(mode="json")
    return json.dumps(value, ensure_ascii=False, indent=2)


def _point_source(args: argparse.Namespace) -> InMemoryPointSource:
    return InMemoryPointSource.from_file(args.points or get_settings().points.path)


def _bounds(args: argparse.Namespace) -> BoundingBox | None:
    if args.bounds is None:
        return None
    north, south, east, west = args.bounds
    return BoundingBox(north=north, south=south, east=east, west=west)


def _config(args: argparse.Namespace) -> HeatmapConfigOverrides:
    return HeatmapConfigOverrides(
        grid_size=args.grid_size,
        radius=args.radius,
        intensity_threshold=args.intensity_threshold,
        max_points=args.max_points,
    )


def _cmd_heatmap(args: argparse.Namespace) -> int:
    points = service.build_heatmap_from_source(
        _point_source(args), config=_config(args), track_ids=args.track or None, bounds=_bounds(args)
    )
    if args.json:
        print(_dump(points))
        return 0
    for i, p in enumerate(points, start=1):
        print(f"{i:>4}. ({p.lat:.6f}, {p.lng:.6f})  count={p.count}  intensity={p.intensity:.2f}  radius={p.radius:.0f}m")
    return 0


def _cmd_stats(args: argparse.Namespace) -> int:
    stats, config = service.heatmap_stats_from_source(
        _point_source(args), config=_config(args), track_ids=args.track or None, bounds=_bounds(args)
    )
    print(json.dumps({**stats.model_dump(mode="json"), "config": config.model_dump(mode="json")}, indent=2))
    return 0


def _cmd_clusters(args: argparse.Namespace) -> int:
    clusters = service.clustered_points_from_source(
        _point_source(args),
        cluster_distance_m=args.distance,
        track_ids=args.track or None,
        bounds=_bounds(args),
    )
    if args.json:
        print(_dump(clusters))
        return 0
    for i, c in enumerate(clusters, start=1):
        tracks = sorted({p.track_id for p in c.points})
        print(f"{i:>4}. ({c.center.lat:.6f}, {c.center.lng:.6f})  count={c.count}  tracks={','.join(tracks)}")
    return 0


def _cmd_recommend(args: argparse.Namespace) -> int:
    settings = get_settings()
    store = InMemoryLiveLocationStore(ttl_seconds=settings.live_locations.ttl_seconds)
    if args.drivers:
        payload = json.loads(resolve_project_path(args.drivers).read_text(encoding="utf-8"))
        for d in _DRIVERS_ADAPTER.validate_python(payload):
            store.update_location(d.id, d.lat, d.lng, d.status)

    recs = service.demand_recommendations(
        GeoPoint(lat=args.lat, lng=args.lng),
        args.max_distance,
        point_source=_point_source(args),
        live_store=store,
        travel_estimator=None if args.offline else OsrmClient(settings),
        settings=settings,
    )
    if args.json:
        print(_dump(recs))
        return 0
    if not recs:
        print("No demand points within range.")
        return 0
    for i, r in enumerate(recs, start=1):
        print(
            f"{i:>2}. ({r.point.lat:.6f}, {r.point.lng:.6f})  score={r.final_score:.3f}  "
            f"demand={r.demand_intensity:.2f}  competitors={r.competition_count}  "
            f"distance={r.distance_m:.0f}m  eta={r.estimated_travel_seconds:.0f}s ({r.travel_estimate_source})"
        )
    return 0


def _cmd_tracks(args: argparse.Namespace) -> int:
    points = _point_source(args).fetch_points()
    if args.stats:
        print(_dump(track_stats(points)))
        return 0
    print(_dump(summarize_tracks(points, include_distance=True)))
    return 0


def _add_filter_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--track", action="append", default=[], help="Repeatable track id filter.")
    p.add_argument(
        "--bounds",
        nargs=4,
        type=float,
        metavar=("NORTH", "SOUTH", "EAST", "WEST"),
        default=None,
    )


def _add_config_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--grid-size", type=float, default=None, help="Degrees (x1000 = clustering meters).")
    p.add_argument("--radius", type=float, default=None, help="Radius floor in meters.")
    p.add_argument("--intensity-threshold", type=float, default=None)
    p.add_argument("--max-points", type=int, default=None)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the DemandScope CLI."""
    parser = argparse.ArgumentParser(prog="demandscope")
    parser.add_argument("--points", type=Path, default=None, help="Trace point JSON file (default from settings).")
    parser.add_argument("--log-level", default=None, help="Root log level (default from settings).")
    sub = parser.add_subparsers(dest="command", required=True)

    hm = sub.add_parser("heatmap", help="Build heatmap points from trace points.")
    _add_filter_args(hm)
    _add_config_args(hm)
    hm.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    hm.set_defaults(func=_cmd_heatmap)

    st = sub.add_parser("stats", help="Intensity statistics over the built heatmap.")
    _add_filter_args(st)
    _add_config_args(st)
    st.set_defaults(func=_cmd_stats)

    cl = sub.add_parser("clusters", help="Raw clusters with member points.")
    _add_filter_args(cl)
    cl.add_argument("--distance", type=float, default=None, help="Clustering distance in meters.")
    cl.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    cl.set_defaults(func=_cmd_clusters)

    rec = sub.add_parser("recommend", help="Rank places for a driver to wait for demand.")
    rec.add_argument("--lat", required=True, type=float)
    rec.add_argument("--lng", required=True, type=float)
    rec.add_argument("--max-distance", type=float, default=None, help="Meters (default from settings).")
    rec.add_argument("--drivers", type=Path, default=None, help="JSON array of driver snapshots.")
    rec.add_argument("--offline", action="store_true", help="Skip the routing service; use straight-line ETAs.")
    rec.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    rec.set_defaults(func=_cmd_recommend)

    tr = sub.add_parser("tracks", help="Track summaries (or --stats).")
    tr.add_argument("--stats", action="store_true")
    tr.set_defaults(func=_cmd_tracks)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m demandscope.cli`."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    func: Any = getattr(args, "func")
    return int(func(args))


if __name__ == "__main__":
    raise SystemExit(main())
