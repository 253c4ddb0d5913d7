"""
Logging configuration.

The packaged `logging.yaml` sets handlers and formatters. Levels come from settings:
- `app.log_level` for the root logger (env: `DEMANDSCOPE_LOG_LEVEL`),
- `app.logger_levels` for single modules, e.g. raising `demandscope.recommender`
  to DEBUG to trace ranking and travel estimates without flooding the rest.
"""

from __future__ import annotations

import copy
import logging
import logging.config
from typing import Any, Mapping

from demandscope.config.settings import get_logging_config, get_settings


def _level_no(level: str) -> int:
    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level '{level}'.")
    return value


def build_logging_config(root_level: str, logger_levels: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Return a dictConfig payload with root and per-logger levels applied.

    Handlers get the most verbose level in use so a DEBUG module logger is not
    filtered out by an INFO console handler.
    """
    config = copy.deepcopy(get_logging_config())
    root_level = root_level.upper()
    levels = {name: lvl.upper() for name, lvl in (logger_levels or {}).items()}

    config.setdefault("root", {})["level"] = root_level
    loggers = config.setdefault("loggers", {})
    for name, lvl in levels.items():
        _level_no(lvl)
        loggers.setdefault(name, {})["level"] = lvl

    handler_level = min([_level_no(root_level), *(_level_no(v) for v in levels.values())])
    for handler in config.get("handlers", {}).values():
        if isinstance(handler, dict):
            handler["level"] = logging.getLevelName(handler_level)
    return config


def configure_logging(level: str | None = None) -> None:
    """Apply the packaged logging config; `level` overrides `app.log_level`."""
    app = get_settings().app
    logging.config.dictConfig(build_logging_config(level or app.log_level, app.logger_levels))
