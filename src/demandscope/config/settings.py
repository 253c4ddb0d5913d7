# src/demandscope/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/demandscope/config/defaults.yaml`, then optionally overridden by:
- an external YAML file via `DEMANDSCOPE_CONFIG_PATH`
- a small whitelist of environment variables (log level, trace point file, OSRM URL)

Design rule:
- Tuning knobs (heatmap defaults, competition penalty, fallback speed) live in YAML,
  not hard-coded in the clustering or ranking code.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Literal
from demandscope.core.env import load_dotenv_if_present

import yaml
from pydantic import BaseModel, Field


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `demandscope.config`."""
    text = resources.files("demandscope.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "DemandScope"
    log_level: str = "INFO"
    # Per-logger levels, e.g. {"demandscope.recommender": "DEBUG"} to trace ranking only.
    logger_levels: dict[str, str] = Field(default_factory=dict)


class HeatmapDefaults(BaseModel):
    grid_size: float = Field(0.001, ge=0)
    radius: float = Field(100, ge=0)
    intensity_threshold: float = Field(0.1, ge=0, le=1)
    max_points: int = Field(1000, ge=0)
    clustering_distance_m: float = Field(50, ge=0)


class DemandHeatmapSettings(BaseModel):
    """Heatmap parameters used when building demand for driver recommendations."""

    grid_size: float = Field(0.001, ge=0)
    radius: float = Field(200, ge=0)
    intensity_threshold: float = Field(0.3, ge=0, le=1)
    max_points: int = Field(50, ge=0)


class RecommendationSettings(BaseModel):
    default_max_distance_m: float = Field(5000, ge=0)
    max_results: int = Field(10, ge=1, le=100)
    penalty_per_competitor: float = Field(0.2, ge=0, le=1)
    max_competition_penalty: float = Field(0.8, ge=0, le=1)
    fallback_speed_kmh: float = Field(50, gt=0)
    travel_profile: Literal["driving", "walking", "cycling", "bus"] = "driving"
    demand_heatmap: DemandHeatmapSettings = Field(default_factory=DemandHeatmapSettings)


class RoutingSettings(BaseModel):
    base_url: str = "https://router.project-osrm.org/route/v1"
    timeout_seconds: float = Field(10, gt=0)
    max_concurrency: int = Field(4, ge=1, le=32)
    deadline_seconds: float = Field(15, gt=0)
    max_rpm: float = Field(0, ge=0)
    profiles: dict[Literal["driving", "walking", "cycling", "bus"], str] = Field(
        default_factory=lambda: {
            "driving": "driving",
            "walking": "foot",
            "cycling": "cycling",
            "bus": "driving",
        }
    )


class LiveLocationSettings(BaseModel):
    ttl_seconds: int = Field(300, gt=0)
    index_cell_size_m: float = Field(500, gt=0)
    default_nearby_radius_m: float = Field(1000, ge=0)


class PointsSettings(BaseModel):
    path: str = "data/traces/points.json"


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    heatmap: HeatmapDefaults = Field(default_factory=HeatmapDefaults)
    recommendation: RecommendationSettings = Field(default_factory=RecommendationSettings)
    routing: RoutingSettings = Field(default_factory=RoutingSettings)
    live_locations: LiveLocationSettings = Field(default_factory=LiveLocationSettings)
    points: PointsSettings = Field(default_factory=PointsSettings)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: We intentionally keep this whitelist small.
    """
    load_dotenv_if_present()
    data = dict(data)

    log_level = os.getenv("DEMANDSCOPE_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    points_path = os.getenv("DEMANDSCOPE_POINTS_PATH")
    if points_path:
        data.setdefault("points", {})["path"] = points_path

    osrm_url = os.getenv("DEMANDSCOPE_OSRM_BASE_URL")
    if osrm_url:
        data.setdefault("routing", {})["base_url"] = osrm_url

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("DEMANDSCOPE_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
