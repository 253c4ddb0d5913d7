import json

from demandscope.cli import build_parser, main


def _write_points(tmp_path, trace_points):
    path = tmp_path / "points.json"
    path.write_text(json.dumps([p.model_dump() for p in trace_points]), encoding="utf-8")
    return path


def test_parser_requires_a_command():
    parser = build_parser()
    args = parser.parse_args(["recommend", "--lat", "25.0", "--lng", "121.5", "--offline"])
    assert args.command == "recommend"
    assert args.offline is True
    assert args.max_distance is None


def test_heatmap_json(tmp_path, capsys, trace_points):
    path = _write_points(tmp_path, trace_points)
    assert main(["--points", str(path), "heatmap", "--json", "--track", "a"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert [p["count"] for p in data] == [5]


def test_recommend_offline_with_drivers_file(tmp_path, capsys, trace_points):
    path = _write_points(tmp_path, trace_points)
    drivers = tmp_path / "drivers.json"
    drivers.write_text(json.dumps([{"id": "d1", "lat": 25.0478, "lng": 121.5170}]), encoding="utf-8")

    code = main(
        [
            "--points",
            str(path),
            "recommend",
            "--lat",
            "25.0478",
            "--lng",
            "121.5170",
            "--max-distance",
            "10000",
            "--drivers",
            str(drivers),
            "--offline",
            "--json",
        ]
    )
    assert code == 0
    recs = json.loads(capsys.readouterr().out)
    assert [r["point"]["count"] for r in recs] == [1, 5, 3]
    assert recs[1]["competition_count"] == 1
    assert {r["travel_estimate_source"] for r in recs} == {"fallback"}


def test_tracks_stats(tmp_path, capsys, trace_points):
    path = _write_points(tmp_path, trace_points)
    assert main(["--points", str(path), "tracks", "--stats"]) == 0
    assert json.loads(capsys.readouterr().out)["total_tracks"] == 2
