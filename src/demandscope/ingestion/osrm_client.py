"""
Routing client (OSRM HTTP API).

This module is responsible only for turning a start/end pair into a road-network
distance and duration. It does not return route geometry; the recommender only
needs travel time, and route drawing is the routing provider's job.

Any failure surfaces as `TravelEstimateError` so callers can fall back locally.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from demandscope.config.settings import Settings
from demandscope.core.http import get_json
from demandscope.core.rate_limit import TokenBucketRateLimiter
from demandscope.domain.models import GeoPoint, RouteProfile, TravelEstimate

logger = logging.getLogger(__name__)


class TravelEstimateError(RuntimeError):
    """Raised when the routing provider cannot produce a travel estimate."""


def _valid_coordinates(point: GeoPoint) -> bool:
    return -90 <= point.lat <= 90 and -180 <= point.lng <= 180


def _format_coordinates(point: GeoPoint) -> str:
    # OSRM expects lng,lat order.
    return f"{point.lng:.6f},{point.lat:.6f}"


class OsrmClient:
    """Fetches travel distance/duration from an OSRM `route/v1` endpoint."""

    def __init__(self, settings: Settings):
        self._settings = settings
        self._rate_limiter: TokenBucketRateLimiter | None = None
        if settings.routing.max_rpm > 0:
            self._rate_limiter = TokenBucketRateLimiter(max_per_minute=settings.routing.max_rpm)

    def set_rate_limiter(self, limiter: TokenBucketRateLimiter | None) -> None:
        self._rate_limiter = limiter

    def _route_url(self, start: GeoPoint, end: GeoPoint, profile: RouteProfile) -> str:
        osrm_profile = self._settings.routing.profiles.get(profile)
        if not osrm_profile:
            raise TravelEstimateError(f"Unsupported route profile '{profile}'.")
        base = self._settings.routing.base_url.rstrip("/")
        return f"{base}/{osrm_profile}/{_format_coordinates(start)};{_format_coordinates(end)}"

    @staticmethod
    def _parse_route(payload: Any) -> TravelEstimate:
        if not isinstance(payload, dict):
            raise TravelEstimateError("Unexpected OSRM response shape; expected an object.")
        code = payload.get("code")
        if code is not None and code != "Ok":
            raise TravelEstimateError(f"OSRM returned code={code}: {payload.get('message') or 'no message'}")
        routes = payload.get("routes") or []
        if not isinstance(routes, list) or not routes or not isinstance(routes[0], dict):
            raise TravelEstimateError("Route not found.")
        route = routes[0]
        try:
            return TravelEstimate(distance_m=float(route["distance"]), duration_seconds=float(route["duration"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise TravelEstimateError(f"Malformed OSRM route: {exc}") from exc

    def estimate(self, start: GeoPoint, end: GeoPoint, profile: RouteProfile = "driving") -> TravelEstimate:
        """Return road distance (m) and duration (s) between two points."""
        if not _valid_coordinates(start) or not _valid_coordinates(end):
            raise TravelEstimateError("Invalid coordinates provided.")

        url = self._route_url(start, end, profile)
        if self._rate_limiter is not None:
            self._rate_limiter.acquire()

        try:
            payload = get_json(
                url,
                params={"overview": "false", "steps": "false"},
                timeout_seconds=self._settings.routing.timeout_seconds,
            )
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 400:
                # OSRM answers 400 with code=NoRoute/InvalidQuery in the body.
                try:
                    return self._parse_route(exc.response.json())
                except ValueError:
                    pass
            raise TravelEstimateError(f"OSRM request failed with status={status}") from exc
        except httpx.HTTPError as exc:
            raise TravelEstimateError(f"OSRM request failed: {exc}") from exc
        except ValueError as exc:
            raise TravelEstimateError("OSRM returned a non-JSON body.") from exc

        return self._parse_route(payload)
