"""Conflict detection between an opinion's prior and current value."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter

from memory.provenance import as_utc, new_id, utc_now
from memory.stores.json_store import JsonIndex, LoadResult, load_models
from memory.types.semantic import Conflict, ConflictPosition, Opinion
from memory.validation import validate_storage_path

logger = logging.getLogger("ledger.conflicts")

_CONFLICT_LIST = TypeAdapter(list[Conflict])


def _latest_for_topic(ledger: list[Conflict], topic: str) -> Conflict | None:
    for conflict in reversed(ledger):
        if conflict.topic == topic:
            return conflict
    return None


def _unchanged_since_resolution(conflict: Conflict, opinion: Opinion) -> bool:
    return (
        conflict.resolved_at is not None
        and conflict.position_b.content == opinion.current
        and as_utc(opinion.updated_at) <= as_utc(conflict.resolved_at)
    )


class ContradictionFinder:
    """Keeps the conflict ledger in step with opinion history.

    A topic keeps one conflict id while it stays unresolved. Once resolved it
    stays quiet until the opinion changes again, which opens a new conflict.
    """

    def __init__(
        self,
        storage_root: str | Path,
        opinion_store: Any,
        clock: Callable[[], datetime] = utc_now,
        event_bus: Any | None = None,
    ) -> None:
        root = validate_storage_path(storage_root)
        self._index = JsonIndex(root / "conflicts.json")
        self.opinion_store = opinion_store
        self.clock = clock
        self.event_bus = event_bus
        self.conflicts: list[Conflict] = []
        self.loaded = False

    def load(self) -> LoadResult:
        conflicts, result = load_models(self._index, _CONFLICT_LIST)
        self.conflicts = conflicts or []
        self.loaded = True
        return result

    def flush(self) -> None:
        self._index.write([c.model_dump(mode="json") for c in self.conflicts])

    def _ensure_loaded(self) -> None:
        if not self.loaded:
            self.load()

    def detect_conflicts(self) -> list[Conflict]:
        """Return the open conflicts for every diverging opinion."""
        self._ensure_loaded()
        detected: list[Conflict] = []
        minted: list[Conflict] = []

        for opinion in self.opinion_store.get_opinions():
            if not opinion.previous_opinions:
                continue
            prior = opinion.previous_opinions[-1]
            if prior.opinion == opinion.current:
                continue

            latest = _latest_for_topic(self.conflicts, opinion.topic)
            if latest is not None and latest.resolved and _unchanged_since_resolution(latest, opinion):
                continue

            reuse = latest is not None and not latest.resolved
            conflict = Conflict(
                id=latest.id if reuse else new_id(),
                topic=opinion.topic,
                position_a=ConflictPosition(
                    content=prior.opinion,
                    session="previous",
                    date=prior.date.isoformat(),
                ),
                position_b=ConflictPosition(
                    content=opinion.current,
                    session="current",
                    date=opinion.updated_at.isoformat(),
                ),
            )
            detected.append(conflict)
            if not reuse:
                minted.append(conflict)

        ledger = [c for c in self.conflicts if c.resolved] + detected
        if ledger != self.conflicts:
            self.conflicts = ledger
            self.flush()
        logger.info("Conflict scan: %d open, %d new", len(detected), len(minted))
        if self.event_bus is not None:
            for conflict in minted:
                self.event_bus.emit("conflict_detected", {"conflict": conflict})
        return detected

    def resolve_conflict(self, conflict_id: str, resolution: str) -> bool:
        self._ensure_loaded()
        conflict = next((c for c in self.conflicts if c.id == conflict_id), None)
        if conflict is None:
            return False
        conflict.resolved = True
        conflict.resolution = resolution
        conflict.resolved_at = self.clock()
        self.flush()
        return True

    def get_conflicts(self, include_resolved: bool = False) -> list[Conflict]:
        self._ensure_loaded()
        if include_resolved:
            return list(self.conflicts)
        return [c for c in self.conflicts if not c.resolved]
