"""Configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from core.policy_runtime import (
    DEFAULT_CONFIG,
    decay_rates,
    ensure_runtime_dirs,
    load_effective_config,
    merge_dicts,
)


def test_defaults_without_config_files(tmp_path: Path) -> None:
    assert load_effective_config(tmp_path) == DEFAULT_CONFIG


def test_local_overrides_default(tmp_path: Path) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "default.yaml").write_text(
        yaml.safe_dump({"decay": {"episodic": 0.01}, "boot": {"recent_episodes": 3}}),
        encoding="utf-8",
    )
    (config_dir / "local.yaml").write_text(yaml.safe_dump({"decay": {"episodic": 0.02}}), encoding="utf-8")

    config = load_effective_config(tmp_path)
    assert config["decay"] == {"procedural": 0.0003, "semantic": 0.001, "episodic": 0.02}
    assert config["boot"]["recent_episodes"] == 3
    assert config["boot"]["max_payload_bytes"] == 4096
    assert decay_rates(config).episodic == 0.02


def test_non_mapping_config_is_rejected(tmp_path: Path) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "local.yaml").write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_effective_config(tmp_path)


def test_merge_dicts_does_not_mutate_inputs() -> None:
    base = {"a": {"b": 1}}
    merged = merge_dicts(base, {"a": {"c": 2}})
    assert merged == {"a": {"b": 1, "c": 2}}
    assert base == {"a": {"b": 1}}


def test_storage_root_resolution(tmp_path: Path) -> None:
    relative = ensure_runtime_dirs(tmp_path, {"storage": {"root": "state-data"}})["storage_root"]
    assert relative == (tmp_path / "state-data").resolve()
    assert relative.is_dir()

    absolute_dir = tmp_path / "elsewhere"
    absolute = ensure_runtime_dirs(tmp_path / "ignored", {"storage": {"root": str(absolute_dir)}})
    assert absolute["storage_root"] == absolute_dir.resolve()
