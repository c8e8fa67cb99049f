"""Knowledge store: topic-keyed distilled insights with versioned history."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path

from pydantic import TypeAdapter

from memory.provenance import new_id, utc_now
from memory.scoring import query_words
from memory.stores.bounded import BoundedCollection, lowest_score_first
from memory.stores.json_store import JsonIndex, LoadResult, load_models
from memory.types.semantic import KnowledgeEntry, KnowledgeHistory
from memory.validation import (
    MAX_TAG_LENGTH,
    MAX_TAGS,
    MAX_TOPIC_LENGTH,
    validate_confidence,
    validate_number,
    validate_storage_path,
    validate_string,
    validate_string_list,
)

logger = logging.getLogger("ledger.knowledge")

MAX_KNOWLEDGE_ENTRIES = 50_000
MAX_INSIGHT_LENGTH = 10_000
MAX_SOURCE_REFS = 50

_KNOWLEDGE_LIST = TypeAdapter(list[KnowledgeEntry])


def _union(existing: list[str], extra: Iterable[str]) -> list[str]:
    merged = list(existing)
    for item in extra:
        if item not in merged:
            merged.append(item)
    return merged


class KnowledgeStore:
    """Semantic memory distilled from episodes or taught directly."""

    def __init__(
        self,
        storage_root: str | Path,
        clock: Callable[[], datetime] = utc_now,
        capacity: int = MAX_KNOWLEDGE_ENTRIES,
    ) -> None:
        root = validate_storage_path(storage_root)
        self._index = JsonIndex(root / "memory" / "knowledge" / "index.json")
        self._collection: BoundedCollection[KnowledgeEntry] = BoundedCollection(
            "knowledge", capacity, lowest_score_first(lambda k: k.confidence)
        )
        self.clock = clock
        self.loaded = False

    @property
    def entries(self) -> list[KnowledgeEntry]:
        return self._collection.items

    def load(self) -> LoadResult:
        entries, result = load_models(self._index, _KNOWLEDGE_LIST)
        self._collection.replace(entries or [])
        self.loaded = True
        return result

    def flush(self) -> None:
        self._index.write([k.model_dump(mode="json") for k in self.entries])

    def _ensure_loaded(self) -> None:
        if not self.loaded:
            self.load()

    def learn(
        self,
        topic: str,
        insight: str,
        confidence: float = 0.7,
        tags: Iterable[str] | None = None,
        source_episode_ids: Iterable[str] | None = None,
    ) -> KnowledgeEntry:
        """Upsert an insight by case-insensitive topic, keeping prior values as history."""
        self._ensure_loaded()
        topic = validate_string(topic, "topic", max_length=MAX_TOPIC_LENGTH)
        insight = validate_string(insight, "insight", max_length=MAX_INSIGHT_LENGTH)
        confidence = validate_confidence(confidence)
        tags = validate_string_list(
            tags,
            "tags",
            max_items=MAX_TAGS,
            max_item_length=MAX_TAG_LENGTH,
        )
        sources = validate_string_list(
            source_episode_ids,
            "source_episode_ids",
            max_items=MAX_SOURCE_REFS,
        )
        now = self.clock()

        existing = self.find(topic)
        if existing is not None:
            existing.previous_insights.append(
                KnowledgeHistory(
                    insight=existing.insight,
                    confidence=existing.confidence,
                    date=existing.updated_at,
                )
            )
            existing.insight = insight
            existing.confidence = confidence
            existing.tags = _union(existing.tags, tags)
            existing.source_episode_ids = _union(existing.source_episode_ids, sources)
            existing.updated_at = now
            self.flush()
            return existing

        # Only displace an entry we are more confident about than it was.
        self._collection.ensure_room(eligible=lambda k: k.confidence < confidence)
        entry = KnowledgeEntry(
            id=new_id("k"),
            topic=topic,
            insight=insight,
            confidence=confidence,
            tags=tags,
            source_episode_ids=sources,
            created_at=now,
            updated_at=now,
        )
        self._collection.append(entry)
        self.flush()
        return entry

    def find(self, topic: str) -> KnowledgeEntry | None:
        self._ensure_loaded()
        wanted = topic.lower()
        return next((k for k in self.entries if k.topic.lower() == wanted), None)

    def recall(self, query: str, limit: int = 10) -> list[KnowledgeEntry]:
        """Rank entries by topic and text overlap, nudged by confidence."""
        self._ensure_loaded()
        limit = int(validate_number(limit, "limit", minimum=1))
        words = query_words(query, min_length=2)

        scored: list[tuple[float, KnowledgeEntry]] = []
        for entry in self.entries:
            topic_l = entry.topic.lower()
            searchable = f"{entry.topic} {entry.insight} {' '.join(entry.tags)}".lower()
            score = 0.0
            for word in words:
                if word in topic_l:
                    score += 3
                if word in searchable:
                    score += 1
            score += entry.confidence * 0.5
            if score > 0:
                scored.append((score, entry))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [entry for _, entry in scored[:limit]]

    def get_all(self) -> list[KnowledgeEntry]:
        self._ensure_loaded()
        return list(self.entries)

    def knows(self, episode_id: str, insight: str) -> bool:
        """True when this exact insight was already distilled from the episode."""
        self._ensure_loaded()
        wanted = insight.lower()
        return any(
            episode_id in entry.source_episode_ids and entry.insight.lower() == wanted
            for entry in self.entries
        )
