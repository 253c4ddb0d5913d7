"""
Driver positioning: rank heatmap demand points for one driver.

For each demand point within reach of the driver:
- competition = available drivers already inside the point's radius,
- final_score = intensity * (1 - min(competition * penalty_per_competitor, max_penalty)),
- travel time comes from the injected estimator, or from a straight-line fallback
  at `fallback_speed_kmh` when the estimator fails, times out or misses the deadline.

Ranking only depends on final_score, so travel times are estimated for the
returned top-N only.
"""

from __future__ import annotations

import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Literal, Protocol, Sequence

from demandscope.config.settings import Settings, get_settings
from demandscope.core.geo import haversine_m
from demandscope.domain.models import (
    DemandPoint,
    DemandRecommendation,
    DriverSnapshot,
    GeoPoint,
    HeatmapPoint,
    RouteProfile,
    TravelEstimate,
)

logger = logging.getLogger(__name__)

EstimateSource = Literal["router", "fallback"]


class TravelEstimator(Protocol):
    def estimate(self, start: GeoPoint, end: GeoPoint, profile: RouteProfile = "driving") -> TravelEstimate: ...


@dataclass(frozen=True)
class Candidate:
    point: HeatmapPoint
    distance_m: float
    competition: int
    final_score: float


def fallback_travel_seconds(distance_m: float, speed_kmh: float = 50) -> int:
    """Straight-line travel time at a constant speed, rounded half up to whole seconds."""
    return math.floor(distance_m * 3600 / (1000 * speed_kmh) + 0.5)


def count_competitors(point: HeatmapPoint, drivers: Sequence[DriverSnapshot]) -> int:
    """Available drivers whose distance to the point center is within its radius."""
    return sum(1 for d in drivers if d.status == "available" and haversine_m(d, point) <= point.radius)


def competition_penalty(competition: int, *, per_competitor: float = 0.2, cap: float = 0.8) -> float:
    return min(competition * per_competitor, cap)


def _estimate_one(
    estimator: TravelEstimator,
    start: GeoPoint,
    end: GeoPoint,
    *,
    profile: RouteProfile,
    distance_m: float,
    speed_kmh: float,
) -> tuple[float, EstimateSource]:
    try:
        est = estimator.estimate(start, end, profile)
        return float(est.duration_seconds), "router"
    except Exception as exc:
        logger.warning(
            "Travel estimate failed for (%.5f,%.5f); using fallback: %s", end.lat, end.lng, str(exc)
        )
        return float(fallback_travel_seconds(distance_m, speed_kmh)), "fallback"


def estimate_travel_times(
    driver_location: GeoPoint,
    candidates: Sequence[Candidate],
    estimator: TravelEstimator | None,
    *,
    settings: Settings,
) -> list[tuple[float, EstimateSource]]:
    """Return (seconds, source) per candidate, never raising.

    Calls fan out over at most `routing.max_concurrency` threads. Anything not done
    within `routing.deadline_seconds` is abandoned and uses the fallback formula.
    """
    speed = settings.recommendation.fallback_speed_kmh
    profile = settings.recommendation.travel_profile
    routing = settings.routing
    results: list[tuple[float, EstimateSource] | None] = [None] * len(candidates)
    targets = [GeoPoint(lat=c.point.lat, lng=c.point.lng) for c in candidates]

    if estimator is not None and candidates:
        if routing.max_concurrency <= 1 or len(candidates) == 1:
            deadline = time.monotonic() + routing.deadline_seconds
            for i, c in enumerate(candidates):
                if time.monotonic() >= deadline:
                    logger.warning("Travel estimate deadline reached; %s candidates use fallback", len(candidates) - i)
                    break
                results[i] = _estimate_one(
                    estimator, driver_location, targets[i], profile=profile, distance_m=c.distance_m, speed_kmh=speed
                )
        else:
            executor = ThreadPoolExecutor(
                max_workers=min(routing.max_concurrency, len(candidates)),
                thread_name_prefix="travel-estimate",
            )
            try:
                futures = {
                    executor.submit(
                        _estimate_one,
                        estimator,
                        driver_location,
                        targets[i],
                        profile=profile,
                        distance_m=c.distance_m,
                        speed_kmh=speed,
                    ): i
                    for i, c in enumerate(candidates)
                }
                done, not_done = wait(futures, timeout=routing.deadline_seconds)
                for fut in done:
                    results[futures[fut]] = fut.result()
                if not_done:
                    logger.warning("Travel estimate deadline reached; %s candidates use fallback", len(not_done))
            finally:
                # Do not block on stragglers; their results are discarded.
                executor.shutdown(wait=False, cancel_futures=True)

    return [
        r if r is not None else (float(fallback_travel_seconds(c.distance_m, speed)), "fallback")
        for r, c in zip(results, candidates)
    ]


def rank_demand_points(
    driver_location: GeoPoint,
    max_distance_m: float,
    heatmap_points: Sequence[HeatmapPoint],
    nearby_drivers: Sequence[DriverSnapshot],
    travel_estimator: TravelEstimator | None,
    *,
    settings: Settings | None = None,
) -> list[DemandRecommendation]:
    """Rank demand points for a driver, best first (at most `recommendation.max_results`)."""
    if max_distance_m < 0:
        raise ValueError("max_distance_m must be >= 0")
    settings = settings or get_settings()
    cfg = settings.recommendation

    candidates: list[Candidate] = []
    for point in heatmap_points:
        distance = haversine_m(driver_location, point)
        if distance > max_distance_m:
            continue
        competition = count_competitors(point, nearby_drivers)
        penalty = competition_penalty(
            competition, per_competitor=cfg.penalty_per_competitor, cap=cfg.max_competition_penalty
        )
        candidates.append(
            Candidate(
                point=point,
                distance_m=distance,
                competition=competition,
                final_score=point.intensity * (1 - penalty),
            )
        )

    # list.sort is stable, so ties keep heatmap order.
    candidates.sort(key=lambda c: c.final_score, reverse=True)
    top = candidates[: cfg.max_results]

    travel = estimate_travel_times(driver_location, top, travel_estimator, settings=settings)

    return [
        DemandRecommendation(
            point=DemandPoint(
                lat=c.point.lat,
                lng=c.point.lng,
                intensity=c.point.intensity,
                radius=c.point.radius,
                count=c.point.count,
                driver_count=c.competition,
                score=c.final_score,
            ),
            distance_m=c.distance_m,
            estimated_travel_seconds=seconds,
            competition_count=c.competition,
            demand_intensity=c.point.intensity,
            final_score=c.final_score,
            travel_estimate_source=source,
        )
        for c, (seconds, source) in zip(top, travel)
    ]


def best_demand_point(
    driver_location: GeoPoint,
    max_distance_m: float,
    heatmap_points: Sequence[HeatmapPoint],
    nearby_drivers: Sequence[DriverSnapshot],
    travel_estimator: TravelEstimator | None,
    *,
    settings: Settings | None = None,
) -> DemandRecommendation | None:
    ranked = rank_demand_points(
        driver_location, max_distance_m, heatmap_points, nearby_drivers, travel_estimator, settings=settings
    )
    return ranked[0] if ranked else None
