from __future__ import annotations

from typing import Any, Mapping

from demandscope.config.settings import Settings

"""
Per-request settings overrides (safe subset).

Heatmap and recommendation requests may carry `settings_overrides` to tune
clustering/ranking knobs for a single call. This module:
- validates the override payload against a whitelist,
- deep-merges the safe subset onto current settings,
- re-validates with Pydantic so ranges still hold.

Security note:
Routing URLs and file paths are never overridable per request.
"""

# True allows the whole subtree; a nested dict allows only the listed keys.
ALLOWED_SETTINGS_OVERRIDES_TREE: dict[str, Any] = {
    "heatmap": True,
    "recommendation": True,
    "routing": {"max_concurrency": True, "deadline_seconds": True},
}


def _deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = dict(base)
    for key, override_value in override.items():
        if isinstance(override_value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _deep_merge(dict(merged[key]), override_value)
            continue
        merged[key] = override_value
    return merged


def _filter_overrides(
    overrides: Mapping[str, Any],
    *,
    allowed_tree: Mapping[str, Any],
    path: tuple[str, ...] = (),
) -> dict[str, Any]:
    filtered: dict[str, Any] = {}
    for key, value in overrides.items():
        dotted_path = ".".join((*path, key))
        if key not in allowed_tree:
            raise ValueError(f"settings_overrides contains a disallowed key: '{dotted_path}'")

        allowed = allowed_tree[key]
        if allowed is True:
            filtered[key] = value
            continue

        if not isinstance(value, Mapping):
            raise ValueError(f"settings_overrides key '{dotted_path}' must be a mapping")

        filtered[key] = _filter_overrides(value, allowed_tree=allowed, path=(*path, key))
    return filtered


def apply_settings_overrides(settings: Settings, overrides: Mapping[str, Any] | None) -> Settings:
    """Return a new Settings with the whitelisted overrides applied (or `settings` itself)."""
    if not overrides:
        return settings

    safe_overrides = _filter_overrides(overrides, allowed_tree=ALLOWED_SETTINGS_OVERRIDES_TREE)
    merged_payload = _deep_merge(settings.model_dump(mode="python"), safe_overrides)
    return Settings.model_validate(merged_payload)
