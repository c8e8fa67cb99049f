"""Command line interface."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from ui.cli.cli import app

runner = CliRunner()


def invoke(tmp_path: Path, *args: str):
    return runner.invoke(app, ["--root", str(tmp_path), *args])


def test_remember_then_recall(tmp_path: Path) -> None:
    result = invoke(tmp_path, "memory", "remember", "Deploys happen on Tuesdays", "--tag", "ops", "--importance", "high")
    assert result.exit_code == 0, result.output
    stored = json.loads(result.stdout)
    assert stored["tags"] == ["ops"]
    assert stored["tier"] == "hot"

    result = invoke(tmp_path, "memory", "recall", "tuesdays")
    assert result.exit_code == 0, result.output
    assert [m["id"] for m in json.loads(result.stdout)] == [stored["id"]]


def test_remember_rejects_unknown_importance(tmp_path: Path) -> None:
    result = invoke(tmp_path, "memory", "remember", "x", "--importance", "urgent")
    assert result.exit_code != 0


def test_decay_and_curate(tmp_path: Path) -> None:
    invoke(tmp_path, "memory", "remember", "Release freeze starts Friday", "--importance", "high")

    decay = json.loads(invoke(tmp_path, "memory", "decay").stdout)
    assert set(decay) == {"decayed", "archived", "kept"}

    curated = json.loads(invoke(tmp_path, "memory", "curate", "--min-salience", "0", "--dry-run").stdout)
    assert len(curated["curated"]) == 1
    assert curated["written"] is False


def test_episodes_commands(tmp_path: Path) -> None:
    result = invoke(tmp_path, "episodes", "record", "Kickoff", "Planned the release", "--lesson", "Start early")
    assert result.exit_code == 0, result.output
    episode = json.loads(result.stdout)
    assert episode["id"].startswith("ep-")

    found = json.loads(invoke(tmp_path, "episodes", "query", "kickoff").stdout)
    assert [e["id"] for e in found] == [episode["id"]]

    stats = json.loads(invoke(tmp_path, "episodes", "consolidate").stdout)
    assert stats["total_episodes"] == 1


def test_state_commands(tmp_path: Path) -> None:
    invoke(tmp_path, "state", "decide", "flaky test", "rerun")
    record = json.loads(invoke(tmp_path, "state", "decide", "flaky test", "rerun", "--failure").stdout)
    assert (record["tries"], record["successes"]) == (2, 1)

    hypothesis = json.loads(invoke(tmp_path, "state", "evidence", "short answers help", "--contradicts").stdout)
    assert hypothesis["evidence_against"] == 1

    boot = json.loads(invoke(tmp_path, "state", "boot").stdout)
    assert boot["decisions"]["flaky test"]["best"] == "rerun"


def test_conflict_flow(tmp_path: Path) -> None:
    invoke(tmp_path, "opine", "Editors", "vim")
    invoke(tmp_path, "opine", "Editors", "emacs", "--confidence", "0.9")

    conflicts = json.loads(invoke(tmp_path, "conflicts", "list").stdout)
    assert len(conflicts) == 1

    result = invoke(tmp_path, "conflicts", "resolve", conflicts[0]["id"], "emacs wins")
    assert result.exit_code == 0
    assert json.loads(invoke(tmp_path, "conflicts", "list").stdout) == []
    assert len(json.loads(invoke(tmp_path, "conflicts", "list", "--all").stdout)) == 1

    missing = invoke(tmp_path, "conflicts", "resolve", "nope", "whatever")
    assert missing.exit_code == 1


def test_boot_reflect_review(tmp_path: Path) -> None:
    context = json.loads(invoke(tmp_path, "boot").stdout)
    assert context["payload_bytes"] <= 4096

    summary = json.loads(invoke(tmp_path, "reflect").stdout)
    assert summary["memories_created"] == 0

    review = invoke(tmp_path, "review")
    assert review.stdout.startswith("# Daily Review - ")


def test_config_show_uses_root(tmp_path: Path) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "local.yaml").write_text("boot:\n  recent_episodes: 2\n", encoding="utf-8")

    config = json.loads(invoke(tmp_path, "config", "show").stdout)
    assert config["boot"]["recent_episodes"] == 2
    assert (tmp_path / "data").is_dir()


def test_prompt_command(tmp_path: Path) -> None:
    invoke(tmp_path, "opine", "Editors", "vim", "--confidence", "0.8")
    invoke(tmp_path, "memory", "remember", "Deploys happen on Tuesdays", "--importance", "high")

    result = invoke(tmp_path, "prompt", "--section", "opinions")
    assert result.exit_code == 0, result.output
    assert "- **Editors** (80%): vim" in result.stdout
    assert "Recent Memories" not in result.stdout
