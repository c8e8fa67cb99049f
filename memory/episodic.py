"""Episodic store: structured experiences that distill into knowledge."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter

from memory.knowledge import KnowledgeStore
from memory.provenance import age_hours, as_utc, new_id, utc_now
from memory.scoring import query_words
from memory.stores.bounded import BoundedCollection, EvictionPolicy
from memory.stores.json_store import JsonIndex, LoadResult, load_models
from memory.types.episodic import Episode, EpisodeConnections, EpisodeStats
from memory.types.semantic import KnowledgeEntry
from memory.validation import (
    MAX_NAME_LENGTH,
    MAX_TAG_LENGTH,
    MAX_TAGS,
    MemoryValidationError,
    validate_confidence,
    validate_number,
    validate_storage_path,
    validate_string,
    validate_string_list,
)

logger = logging.getLogger("ledger.episodic")

MAX_EPISODES = 50_000
MAX_TITLE_LENGTH = 500
MAX_SUMMARY_LENGTH = 50_000
MAX_LESSONS = 50
MAX_LESSON_LENGTH = 2_000
MAX_PARTICIPANTS = 100
MAX_CONNECTIONS = 200

AUTO_ARCHIVE_BELOW = 0.3
AUTO_DISTILL_AT = 0.6
CONSOLIDATE_DISTILL_AT = 0.5
STALE_AFTER_DAYS = 30
TOPIC_PREFIX_CHARS = 50

_EPISODE_LIST = TypeAdapter(list[Episode])


def episode_importance(
    emotional_weight: float,
    lesson_count: int,
    connections: EpisodeConnections,
    participant_count: int,
) -> float:
    """Derived importance; never set by callers."""
    score = emotional_weight * 0.4
    score += min(0.25, lesson_count * 0.05)
    score += min(0.2, connections.total() * 0.04)
    score += min(0.15, participant_count * 0.05)
    return max(0.0, min(1.0, score))


def decay_resistance(episode: Episode) -> float:
    return (
        episode.importance * 0.5
        + episode.emotional_weight * 0.3
        + min(1.0, episode.access_count * 0.1) * 0.2
    )


def topic_for_lesson(lesson: str, tags: list[str]) -> str:
    """First tag, else a truncated prefix of the lesson."""
    if tags:
        return tags[0]
    if len(lesson) > TOPIC_PREFIX_CHARS:
        return lesson[:TOPIC_PREFIX_CHARS].strip() + "..."
    return lesson


def _validate_connections(connections: Any) -> EpisodeConnections:
    if connections is None:
        return EpisodeConnections()
    if isinstance(connections, EpisodeConnections):
        connections = connections.model_dump()
    if not isinstance(connections, dict):
        raise MemoryValidationError("connections", "must be a mapping")
    return EpisodeConnections(
        **{
            name: validate_string_list(
                connections.get(name),
                f"connections.{name}",
                max_items=MAX_CONNECTIONS,
            )
            for name in ("episode_ids", "opinion_ids", "memory_ids")
        }
    )


def _eviction_policy() -> EvictionPolicy[Episode]:
    return EvictionPolicy(
        name="lowest-importance",
        key=lambda e: e.importance,
        eligible=lambda e: not e.archived and e.importance < AUTO_ARCHIVE_BELOW,
    )


class EpisodicStore:
    """Episodes plus the knowledge distilled from them."""

    def __init__(
        self,
        storage_root: str | Path,
        clock: Callable[[], datetime] = utc_now,
        capacity: int = MAX_EPISODES,
        knowledge: KnowledgeStore | None = None,
    ) -> None:
        root = validate_storage_path(storage_root)
        self._index = JsonIndex(root / "memory" / "episodes" / "index.json")
        self._collection: BoundedCollection[Episode] = BoundedCollection(
            "episodes", capacity, _eviction_policy()
        )
        self.clock = clock
        self.knowledge = knowledge or KnowledgeStore(root, clock=clock)
        self.loaded = False

    @property
    def episodes(self) -> list[Episode]:
        return self._collection.items

    def load(self) -> LoadResult:
        episodes, result = load_models(self._index, _EPISODE_LIST)
        self._collection.replace(episodes or [])
        self.loaded = True
        return result

    def flush(self) -> None:
        self._index.write([e.model_dump(mode="json") for e in self.episodes])

    def _ensure_loaded(self) -> None:
        if not self.loaded:
            self.load()

    def _find(self, episode_id: str) -> Episode | None:
        self._ensure_loaded()
        return next((e for e in self.episodes if e.id == episode_id), None)

    def _soft_archive(self, episode: Episode) -> None:
        episode.archived = True
        episode.archived_at = self.clock()

    # ── record / learn ─────────────────────────────────────────────────

    def record(
        self,
        title: str,
        summary: str,
        emotional_weight: float = 0.5,
        participants: Iterable[str] | None = None,
        tags: Iterable[str] | None = None,
        lessons: Iterable[str] | None = None,
        connections: EpisodeConnections | dict[str, Any] | None = None,
        timestamp: datetime | None = None,
    ) -> Episode:
        """Store an experience; important ones with lessons feed the knowledge store."""
        self._ensure_loaded()
        title = validate_string(title, "title", max_length=MAX_TITLE_LENGTH)
        summary = validate_string(summary, "summary", max_length=MAX_SUMMARY_LENGTH)
        emotional_weight = validate_confidence(emotional_weight, "emotional_weight")
        participants = validate_string_list(
            participants,
            "participants",
            max_items=MAX_PARTICIPANTS,
            max_item_length=MAX_NAME_LENGTH,
        )
        tags = validate_string_list(
            tags,
            "tags",
            max_items=MAX_TAGS,
            max_item_length=MAX_TAG_LENGTH,
        )
        lessons = validate_string_list(
            lessons,
            "lessons",
            max_items=MAX_LESSONS,
            max_item_length=MAX_LESSON_LENGTH,
        )
        links = _validate_connections(connections)

        # At capacity the weakest unarchived episode is archived, not removed.
        self._collection.ensure_room(on_evict=self._soft_archive)

        now = self.clock()
        episode = Episode(
            id=new_id("ep"),
            title=title,
            summary=summary,
            timestamp=timestamp or now,
            emotional_weight=emotional_weight,
            importance=episode_importance(emotional_weight, len(lessons), links, len(participants)),
            participants=participants,
            tags=tags,
            lessons=lessons,
            connections=links,
            created_at=now,
            updated_at=now,
        )
        self._collection.append(episode)
        self.flush()

        if episode.importance >= AUTO_DISTILL_AT and lessons:
            for lesson in lessons:
                self.knowledge.learn(
                    topic=topic_for_lesson(lesson, tags),
                    insight=lesson,
                    confidence=min(0.9, episode.importance),
                    tags=tags,
                    source_episode_ids=[episode.id],
                )
        return episode

    def learn(
        self,
        topic: str,
        insight: str,
        confidence: float = 0.7,
        tags: Iterable[str] | None = None,
        source_episode_ids: Iterable[str] | None = None,
    ) -> KnowledgeEntry:
        return self.knowledge.learn(topic, insight, confidence, tags, source_episode_ids)

    def recall_knowledge(self, query: str, limit: int = 10) -> list[KnowledgeEntry]:
        return self.knowledge.recall(query, limit)

    def get_all_knowledge(self) -> list[KnowledgeEntry]:
        return self.knowledge.get_all()

    # ── query / read ───────────────────────────────────────────────────

    def query(
        self,
        text: str | None = None,
        tags: Iterable[str] | None = None,
        participants: Iterable[str] | None = None,
        after: datetime | None = None,
        before: datetime | None = None,
        min_importance: float | None = None,
        min_emotional_weight: float | None = None,
        limit: int = 20,
    ) -> list[Episode]:
        """Filter unarchived episodes, then rank by importance, recency and match quality."""
        self._ensure_loaded()
        limit = int(validate_number(limit, "limit", minimum=1))
        results = [e for e in self.episodes if not e.archived]

        if text:
            words = query_words(text, min_length=2)
            results = [
                e
                for e in results
                if any(w in f"{e.title} {e.summary} {' '.join(e.lessons)}".lower() for w in words)
            ]
        if tags:
            wanted_tags = {t.lower() for t in tags}
            results = [e for e in results if any(t.lower() in wanted_tags for t in e.tags)]
        if participants:
            wanted_people = {p.lower() for p in participants}
            results = [e for e in results if any(p.lower() in wanted_people for p in e.participants)]
        if after is not None:
            results = [e for e in results if as_utc(e.timestamp) >= as_utc(after)]
        if before is not None:
            results = [e for e in results if as_utc(e.timestamp) <= as_utc(before)]
        if min_importance is not None:
            floor = validate_confidence(min_importance, "min_importance")
            results = [e for e in results if e.importance >= floor]
        if min_emotional_weight is not None:
            floor = validate_confidence(min_emotional_weight, "min_emotional_weight")
            results = [e for e in results if e.emotional_weight >= floor]

        now = self.clock()
        text_l = text.lower() if text else None
        scored: list[tuple[float, Episode]] = []
        for episode in results:
            score = episode.importance
            hours = age_hours(episode.timestamp, now)
            if hours < 24:
                score += 0.3
            elif hours < 168:
                score += 0.1
            score += episode.emotional_weight * 0.2
            score += min(0.2, episode.access_count * 0.05)
            if text_l:
                if text_l in episode.title.lower():
                    score += 0.3
                if text_l in episode.summary.lower():
                    score += 0.1
            scored.append((score, episode))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        top = [episode for _, episode in scored[:limit]]
        for episode in top:
            episode.access_count += 1
        if top:
            self.flush()
        return top

    def get(self, episode_id: str) -> Episode | None:
        episode = self._find(episode_id)
        if episode is not None:
            episode.access_count += 1
            self.flush()
        return episode

    def recent(self, limit: int = 10) -> list[Episode]:
        self._ensure_loaded()
        active = [e for e in self.episodes if not e.archived]
        return sorted(active, key=lambda e: as_utc(e.timestamp), reverse=True)[:limit]

    def related(self, episode_id: str) -> list[Episode]:
        """Episodes linked in either direction."""
        source = self._find(episode_id)
        if source is None:
            return []
        ids = set(source.connections.episode_ids)
        ids.update(e.id for e in self.episodes if episode_id in e.connections.episode_ids)
        ids.discard(episode_id)
        return [e for e in self.episodes if e.id in ids]

    # ── update ─────────────────────────────────────────────────────────

    def add_lesson(self, episode_id: str, lesson: str) -> Episode | None:
        episode = self._find(episode_id)
        if episode is None:
            return None
        lesson = validate_string(lesson, "lesson", max_length=MAX_LESSON_LENGTH)
        if len(episode.lessons) >= MAX_LESSONS:
            raise MemoryValidationError("lessons", f"maximum of {MAX_LESSONS} lessons per episode")
        if any(existing.lower() == lesson.lower() for existing in episode.lessons):
            return episode

        episode.lessons.append(lesson)
        self._rescore(episode)
        self.flush()
        return episode

    def connect(self, episode_id_a: str, episode_id_b: str) -> bool:
        """Link two episodes both ways."""
        a = self._find(episode_id_a)
        b = self._find(episode_id_b)
        if a is None or b is None:
            return False
        for episode, other in ((a, episode_id_b), (b, episode_id_a)):
            if other not in episode.connections.episode_ids:
                if len(episode.connections.episode_ids) >= MAX_CONNECTIONS:
                    raise MemoryValidationError(
                        "connections.episode_ids", f"must have at most {MAX_CONNECTIONS} items"
                    )
                episode.connections.episode_ids.append(other)
            self._rescore(episode)
        self.flush()
        return True

    def _rescore(self, episode: Episode) -> None:
        episode.importance = episode_importance(
            episode.emotional_weight,
            len(episode.lessons),
            episode.connections,
            len(episode.participants),
        )
        episode.updated_at = self.clock()

    def archive(self, episode_id: str) -> bool:
        episode = self._find(episode_id)
        if episode is None:
            return False
        self._soft_archive(episode)
        self.flush()
        return True

    def restore(self, episode_id: str) -> bool:
        episode = self._find(episode_id)
        if episode is None or not episode.archived:
            return False
        episode.archived = False
        episode.archived_at = None
        self.flush()
        return True

    # ── consolidation ──────────────────────────────────────────────────

    def consolidate(self) -> EpisodeStats:
        """Archive stale low-value episodes and distill lessons not yet known."""
        self._ensure_loaded()
        if not self.knowledge.loaded:
            self.knowledge.load()
        now = self.clock()
        archived = 0
        promoted = 0

        for episode in self.episodes:
            if episode.archived:
                continue
            age_days = age_hours(episode.timestamp, now) / 24
            if age_days > STALE_AFTER_DAYS and decay_resistance(episode) < 0.3:
                self._soft_archive(episode)
                archived += 1
                continue
            if episode.importance < CONSOLIDATE_DISTILL_AT:
                continue
            for lesson in episode.lessons:
                if self.knowledge.knows(episode.id, lesson):
                    continue
                self.knowledge.learn(
                    topic=topic_for_lesson(lesson, episode.tags),
                    insight=lesson,
                    confidence=min(0.85, episode.importance),
                    tags=episode.tags,
                    source_episode_ids=[episode.id],
                )
                promoted += 1

        self.flush()
        self.knowledge.flush()
        logger.info("Consolidated episodes: %d archived, %d lessons promoted", archived, promoted)
        return self._stats(decayed=archived, promoted=promoted)

    def stats(self) -> EpisodeStats:
        self._ensure_loaded()
        return self._stats()

    def _stats(self, decayed: int = 0, promoted: int = 0) -> EpisodeStats:
        archived = sum(1 for e in self.episodes if e.archived)
        return EpisodeStats(
            total_episodes=len(self.episodes),
            active_episodes=len(self.episodes) - archived,
            archived_episodes=archived,
            total_knowledge=len(self.knowledge.get_all()),
            decayed_this_run=decayed,
            promoted_this_run=promoted,
        )
