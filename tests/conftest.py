from __future__ import annotations

import pytest

from demandscope.domain.models import TracePoint


@pytest.fixture
def trace_points() -> list[TracePoint]:
    # Two tracks around Taipei Main Station: a dense spot, a lighter spot and a lone sample.
    return [
        *[TracePoint(track_id="a", lat=25.0478, lng=121.5170) for _ in range(5)],
        *[TracePoint(track_id="b", lat=25.0330, lng=121.5654) for _ in range(3)],
        TracePoint(track_id="b", lat=25.0400, lng=121.5300),
    ]
