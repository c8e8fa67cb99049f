"""Typer command handlers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
from pydantic import BaseModel

from core.orchestrator import Orchestrator, RuntimeBundle
from core.policy_runtime import configure_logging


def _runtime(root: Path | None = None) -> RuntimeBundle:
    bundle = Orchestrator(root=root).build()
    configure_logging(bundle.config)
    return bundle


def _echo(payload: Any) -> None:
    typer.echo(json.dumps(_json_safe(payload), indent=2))


def memory_remember(
    root: Path | None,
    content: str,
    type: str,
    importance: str,
    tags: list[str],
    emotional_weight: float,
) -> None:
    """Store a memory."""
    bundle = _runtime(root)
    memory = bundle.session.remember(content, type, importance, tags, emotional_weight)
    _echo(memory)


def memory_recall(root: Path | None, query: str, limit: int) -> None:
    bundle = _runtime(root)
    _echo(bundle.session.recall(query, limit))


def memory_decay(root: Path | None) -> None:
    bundle = _runtime(root)
    _echo(bundle.memory.run_decay())


def memory_curate(
    root: Path | None,
    hours_back: float | None,
    min_importance: str | None,
    min_salience: float | None,
    dry_run: bool,
) -> None:
    """Promote recent memories into MEMORY.md."""
    bundle = _runtime(root)
    curation_cfg = bundle.config.get("curation", {})
    result = bundle.memory.curate(
        hours_back=hours_back if hours_back is not None else float(curation_cfg.get("hours_back", 48)),
        min_importance=min_importance or curation_cfg.get("min_importance", "medium"),
        min_salience=min_salience if min_salience is not None else float(curation_cfg.get("min_salience", 0.5)),
        dry_run=dry_run,
    )
    _echo(result)


def episodes_record(
    root: Path | None,
    title: str,
    summary: str,
    emotional_weight: float,
    participants: list[str],
    tags: list[str],
    lessons: list[str],
) -> None:
    bundle = _runtime(root)
    episode = bundle.episodes.record(
        title=title,
        summary=summary,
        emotional_weight=emotional_weight,
        participants=participants,
        tags=tags,
        lessons=lessons,
    )
    _echo(episode)


def episodes_query(root: Path | None, text: str | None, tags: list[str], limit: int) -> None:
    bundle = _runtime(root)
    _echo(bundle.episodes.query(text=text, tags=tags or None, limit=limit))


def episodes_consolidate(root: Path | None) -> None:
    bundle = _runtime(root)
    _echo(bundle.episodes.consolidate())


def state_boot(root: Path | None) -> None:
    bundle = _runtime(root)
    _echo(bundle.behavior.boot())


def state_decide(root: Path | None, situation: str, action: str, success: bool) -> None:
    bundle = _runtime(root)
    _echo(bundle.behavior.decide(situation, action, success))


def state_evidence(root: Path | None, key: str, supports: bool, note: str | None) -> None:
    bundle = _runtime(root)
    _echo(bundle.behavior.evidence(key, supports, note))


def conflicts_list(root: Path | None, include_resolved: bool) -> None:
    bundle = _runtime(root)
    bundle.conflicts.detect_conflicts()
    _echo(bundle.conflicts.get_conflicts(include_resolved=include_resolved))


def conflicts_resolve(root: Path | None, conflict_id: str, resolution: str) -> None:
    bundle = _runtime(root)
    if not bundle.conflicts.resolve_conflict(conflict_id, resolution):
        typer.echo(f"Conflict not found: {conflict_id}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Resolved conflict: {conflict_id}")


def opine(root: Path | None, topic: str, opinion: str, confidence: float) -> None:
    bundle = _runtime(root)
    _echo(bundle.session.opine(topic, opinion, confidence))


def boot(root: Path | None) -> None:
    """Print the wake context."""
    bundle = _runtime(root)
    _echo(bundle.session.boot())


def reflect(root: Path | None) -> None:
    bundle = _runtime(root)
    _echo(bundle.session.reflect())


def review(root: Path | None) -> None:
    bundle = _runtime(root)
    typer.echo(bundle.session.daily_review())


def prompt(root: Path | None, max_tokens: int, sections: list[str], include_lifeboat: bool) -> None:
    bundle = _runtime(root)
    typer.echo(
        bundle.session.to_prompt(
            max_tokens=max_tokens,
            sections=sections or None,
            include_lifeboat=include_lifeboat,
        )
    )


def config_show(root: Path | None) -> None:
    """Show effective runtime config."""
    bundle = _runtime(root)
    _echo(bundle.config)


def _json_safe(payload: object) -> object:
    """Convert models and datetimes to JSON-ready values."""
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json")
    if isinstance(payload, dict):
        return {k: _json_safe(v) for k, v in payload.items()}
    if isinstance(payload, (list, tuple)):
        return [_json_safe(v) for v in payload]
    if isinstance(payload, Path):
        return str(payload)
    if hasattr(payload, "isoformat"):
        return payload.isoformat()
    return payload
