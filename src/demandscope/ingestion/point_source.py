"""
Trace point sources.

The heatmap only needs `fetch_points(track_ids=..., bounds=...)`. The default
source is a local JSON file (an array of trace point objects) loaded once and
filtered in memory; a database-backed source only has to honor the same shape.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, Protocol, Sequence

from pydantic import TypeAdapter

from demandscope.core.env import resolve_project_path
from demandscope.domain.models import BoundingBox, TracePoint
from demandscope.heatmap.grid import filter_points

logger = logging.getLogger(__name__)

_TRACE_POINTS_ADAPTER = TypeAdapter(list[TracePoint])


class PointSource(Protocol):
    def fetch_points(
        self, *, track_ids: Iterable[str] | None = None, bounds: BoundingBox | None = None
    ) -> list[TracePoint]: ...


def load_trace_points(path: str | Path) -> list[TracePoint]:
    """Load and validate a trace point JSON file."""
    resolved = resolve_project_path(path)
    payload = json.loads(resolved.read_text(encoding="utf-8"))
    return _TRACE_POINTS_ADAPTER.validate_python(payload)


class InMemoryPointSource:
    """Holds trace points in insertion order; filters are applied per fetch."""

    def __init__(self, points: Sequence[TracePoint] = ()):
        self._points = list(points)

    @classmethod
    def from_file(cls, path: str | Path, *, missing_ok: bool = False) -> "InMemoryPointSource":
        resolved = resolve_project_path(path)
        if missing_ok and not resolved.is_file():
            logger.warning("Trace point file not found at %s; starting with no points.", resolved)
            return cls()
        points = load_trace_points(resolved)
        logger.info("Loaded %s trace points from %s", len(points), resolved)
        return cls(points)

    def __len__(self) -> int:
        return len(self._points)

    def fetch_points(
        self, *, track_ids: Iterable[str] | None = None, bounds: BoundingBox | None = None
    ) -> list[TracePoint]:
        if not track_ids and bounds is None:
            return list(self._points)
        return filter_points(self._points, track_ids=track_ids, bounds=bounds)
