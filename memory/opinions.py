"""Opinion store: topic-keyed beliefs with their full history."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter

from memory.provenance import new_id, utc_now
from memory.stores.bounded import BoundedCollection, oldest_first
from memory.stores.json_store import JsonIndex, LoadResult, load_models
from memory.types.semantic import Opinion, OpinionHistory
from memory.validation import (
    MAX_OPINION_LENGTH,
    MAX_OPINIONS,
    MAX_TOPIC_LENGTH,
    validate_confidence,
    validate_storage_path,
    validate_string,
)

logger = logging.getLogger("ledger.opinions")

_OPINION_LIST = TypeAdapter(list[Opinion])


class OpinionStore:
    def __init__(
        self,
        storage_root: str | Path,
        clock: Callable[[], datetime] = utc_now,
        capacity: int = MAX_OPINIONS,
        event_bus: Any | None = None,
    ) -> None:
        root = validate_storage_path(storage_root)
        self._index = JsonIndex(root / "opinions" / "opinions.json")
        self._collection: BoundedCollection[Opinion] = BoundedCollection(
            "opinions", capacity, oldest_first(lambda o: o.updated_at)
        )
        self.clock = clock
        self.event_bus = event_bus
        self.loaded = False

    def load(self) -> LoadResult:
        opinions, result = load_models(self._index, _OPINION_LIST)
        self._collection.replace(opinions or [])
        self.loaded = True
        return result

    def flush(self) -> None:
        self._index.write([o.model_dump(mode="json") for o in self._collection])

    def _ensure_loaded(self) -> None:
        if not self.loaded:
            self.load()

    def find(self, topic: str) -> Opinion | None:
        """Case-insensitive topic lookup."""
        self._ensure_loaded()
        wanted = topic.strip().lower()
        return next((o for o in self._collection if o.topic.lower() == wanted), None)

    def opine(self, topic: str, opinion: str, confidence: float) -> Opinion:
        """Record a new opinion or move the current one into history."""
        topic = validate_string(topic, "topic", max_length=MAX_TOPIC_LENGTH)
        opinion = validate_string(opinion, "opinion", max_length=MAX_OPINION_LENGTH)
        confidence = validate_confidence(confidence)
        now = self.clock()

        existing = self.find(topic)
        if existing is not None:
            previous = existing.current
            existing.previous_opinions.append(
                OpinionHistory(
                    opinion=existing.current,
                    confidence=existing.confidence,
                    date=existing.updated_at,
                    reason_for_change=f"Updated to: {opinion}",
                )
            )
            existing.current = opinion
            existing.confidence = confidence
            existing.updated_at = now
            self.flush()
            if previous != opinion and self.event_bus is not None:
                self.event_bus.emit(
                    "opinion_changed",
                    {"topic": existing.topic, "old_opinion": previous, "new_opinion": opinion},
                )
            return existing

        record = Opinion(
            id=new_id(),
            topic=topic,
            current=opinion,
            confidence=confidence,
            formed_at=now,
            updated_at=now,
        )
        self._collection.ensure_room()
        self._collection.append(record)
        self.flush()
        return record

    def get_opinions(self) -> list[Opinion]:
        self._ensure_loaded()
        return list(self._collection)
