from __future__ import annotations

import copy
import datetime
import json
from pathlib import Path
from typing import Any, Dict, Optional

from policy_defaults import BASELINE_POLICY, baseline_policy
from timeutil import parse_time_label

TIME_KEYS = {
    "lunch": ("window_start", "window_end"),
    "assignment": ("noon",),
}


def build_default_policy() -> Dict[str, Any]:
    return baseline_policy()


def load_policy(source: Any = None) -> Dict[str, Any]:
    """Return a normalized policy from ``None``, a dict, or a JSON file path."""
    if source is None:
        return build_default_policy()
    if isinstance(source, (str, Path)):
        path = Path(source)
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ValueError(f"Unable to read policy file {path}: {exc}") from exc
        return _normalize_policy(payload)
    if isinstance(source, dict):
        return _normalize_policy(source)
    raise ValueError(f"Unsupported policy source: {type(source).__name__}")


def _deep_update(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_update(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _normalize_policy(policy: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay ``policy`` on the baseline and coerce values back to the baseline's types."""
    if not isinstance(policy, dict):
        raise ValueError("Policy payload must be an object.")
    normalized = _deep_update(BASELINE_POLICY, policy)
    for section, defaults in BASELINE_POLICY.items():
        if not isinstance(defaults, dict):
            continue
        if not isinstance(normalized.get(section), dict):
            normalized[section] = copy.deepcopy(defaults)
            continue
        normalized[section] = _coerce_section(section, normalized[section], defaults)
    return normalized


def _coerce_section(section: str, values: Dict[str, Any], defaults: Dict[str, Any]) -> Dict[str, Any]:
    coerced = dict(values)
    for key, default in defaults.items():
        value = coerced.get(key, default)
        if key in TIME_KEYS.get(section, ()):
            if parse_time_label(value) is None:
                raise ValueError(f"{section}.{key} must be an HH:MM label, got {value!r}.")
            coerced[key] = str(value).strip()
        elif isinstance(default, dict):
            coerced[key] = _coerce_section(f"{section}.{key}", value if isinstance(value, dict) else {}, default)
        elif isinstance(default, bool):
            coerced[key] = bool(value)
        elif isinstance(default, int):
            try:
                coerced[key] = int(value)
            except (TypeError, ValueError):
                coerced[key] = default
        elif isinstance(default, float):
            try:
                coerced[key] = float(value)
            except (TypeError, ValueError):
                coerced[key] = default
    return coerced


def _section(policy: Optional[Dict[str, Any]], name: str) -> Dict[str, Any]:
    if not policy:
        return copy.deepcopy(BASELINE_POLICY[name])
    payload = policy.get(name) if isinstance(policy, dict) else None
    if isinstance(payload, dict):
        return _deep_update(BASELINE_POLICY[name], payload)
    return copy.deepcopy(BASELINE_POLICY[name])


def lunch_settings(policy: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return _section(policy, "lunch")


def break_settings(policy: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return _section(policy, "breaks")


def assignment_settings(policy: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return _section(policy, "assignment")


def self_care_settings(policy: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return _section(policy, "self_care")


def time_setting(settings: Dict[str, Any], key: str, fallback: str) -> datetime.time:
    return parse_time_label(settings.get(key)) or parse_time_label(fallback)
