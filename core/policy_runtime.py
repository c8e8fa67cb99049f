"""Configuration and runtime bootstrapping."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from memory.types.flat import DecayRates

DEFAULT_CONFIG: dict[str, Any] = {
    "storage": {"root": "data"},
    "decay": {"procedural": 0.0003, "semantic": 0.001, "episodic": 0.003},
    "curation": {"hours_back": 48, "min_importance": "medium", "min_salience": 0.5},
    "reflection": {"curation_hours_back": 24},
    "boot": {
        "recent_memory_hours": 48,
        "recent_memories": 50,
        "recent_episodes": 5,
        "max_payload_bytes": 4096,
    },
    "logging": {"level": "WARNING"},
}


def load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML from file, returning empty mapping when missing."""
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge dictionaries."""
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_effective_config(root: Path) -> dict[str, Any]:
    """Built-in defaults, then config/default.yaml, then config/local.yaml."""
    config_dir = root / "config"
    merged = merge_dicts(DEFAULT_CONFIG, load_yaml(config_dir / "default.yaml"))
    return merge_dicts(merged, load_yaml(config_dir / "local.yaml"))


def ensure_runtime_dirs(root: Path, config: dict[str, Any]) -> dict[str, Path]:
    """Resolve the storage root against ``root`` and create it."""
    storage_root = Path(config.get("storage", {}).get("root", "data")).expanduser()
    if not storage_root.is_absolute():
        storage_root = root / storage_root
    storage_root = storage_root.resolve()
    storage_root.mkdir(parents=True, exist_ok=True)
    return {"storage_root": storage_root}


def decay_rates(config: dict[str, Any]) -> DecayRates:
    return DecayRates(**config.get("decay", {}))


def configure_logging(config: dict[str, Any]) -> None:
    level = str(config.get("logging", {}).get("level", "WARNING")).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
