"""Loading of caller-owned configuration and confirmed-link files (JSON)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from cte_reconciler.models import DEFAULT_CONFIG, CteConfig

SUPPORTED_CONFIG_SUFFIXES = {".json", ".yml", ".yaml"}


def _read_json(path: Path, what: str) -> Any:
    if not path.exists():
        raise FileNotFoundError(f"{what} not found: {path}")
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ValueError(f"{what} must be .json, .yml, or .yaml")
    if suffix in {".yml", ".yaml"}:
        raise ValueError(f"YAML {what.lower()} files are not supported yet. Use JSON for now.")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc


def _number(payload: dict, key: str, default: float) -> float:
    value = payload.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Config key '{key}' must be a number, got {value!r}")
    return float(value)


def config_from_dict(payload: dict) -> CteConfig:
    if not isinstance(payload, dict):
        raise ValueError("Config root must be a JSON object")
    haul_values = payload.get("common_haul_values", sorted(DEFAULT_CONFIG.common_haul_values))
    if not isinstance(haul_values, list) or any(
        isinstance(v, bool) or not isinstance(v, (int, float)) for v in haul_values
    ):
        raise ValueError("Config key 'common_haul_values' must be a list of numbers")
    return CteConfig(
        fixed_route_value=_number(payload, "fixed_route_value", DEFAULT_CONFIG.fixed_route_value),
        common_haul_values=frozenset(float(v) for v in haul_values),
        haul_max_threshold=_number(payload, "haul_max_threshold", DEFAULT_CONFIG.haul_max_threshold),
    )


def config_to_dict(config: CteConfig) -> dict[str, Any]:
    return {
        "fixed_route_value": config.fixed_route_value,
        "common_haul_values": sorted(config.common_haul_values),
        "haul_max_threshold": config.haul_max_threshold,
    }


def load_config(path: "str | Path | None") -> CteConfig:
    if path is None:
        return DEFAULT_CONFIG
    return config_from_dict(_read_json(Path(path), "Config"))


def load_overrides(path: "str | Path | None") -> dict[str, str]:
    """Read a JSON object of confirmed links (string keys and values)."""
    if path is None:
        return {}
    payload = _read_json(Path(path), "Overrides")
    if not isinstance(payload, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in payload.items()
    ):
        raise ValueError("Overrides must be a JSON object of string keys to string values")
    return dict(payload)
