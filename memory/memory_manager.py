"""Flat memory store: append-and-index facts with salience, decay and curation."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter

from memory.consolidation.forgetting import ForgettingPolicy
from memory.lifeboat import Lifeboat
from memory.provenance import age_hours, date_key, new_id, utc_now, yesterday_key
from memory.scoring import query_words, salience
from memory.stores.bounded import BoundedCollection, EvictionPolicy
from memory.stores.json_store import JsonIndex, LoadResult, LoadStatus, append_text, load_models, read_text
from memory.types.context import Checkpoint
from memory.types.flat import (
    IMPORTANCE_LEVELS,
    IMPORTANCE_RANK,
    MEMORY_TYPES,
    CurationResult,
    DecayRates,
    DecayReport,
    Memory,
)
from memory.validation import (
    MAX_MEMORIES,
    MAX_MEMORY_CONTENT,
    MAX_TAG_LENGTH,
    MAX_TAGS,
    validate_choice,
    validate_confidence,
    validate_number,
    validate_storage_path,
    validate_string,
    validate_string_list,
)

logger = logging.getLogger("ledger.memory")

_MEMORY_LIST = TypeAdapter(list[Memory])

RECALL_IMPORTANCE_BOOST = {"low": 0.0, "medium": 0.5, "high": 1.0, "critical": 2.0}
CURATION_EXCLUDED_TAGS = frozenset({"system", "boot", "curated"})
DEDUP_PREFIX_CHARS = 50


def memory_to_markdown(memory: Memory) -> str:
    """Daily-log block for one memory."""
    score = f"{memory.salience_score:.2f}" if memory.salience_score is not None else "unscored"
    return "\n".join(
        [
            f"### [{memory.type}] {memory.timestamp.isoformat()}",
            f"> ID: {memory.id} | Importance: {memory.importance} | Salience: {score}",
            f"> Tags: {', '.join(memory.tags) or 'none'}",
            "",
            memory.content,
            "",
        ]
    )


def _eviction_policy() -> EvictionPolicy[Memory]:
    return EvictionPolicy(
        name="lowest-salience",
        key=lambda m: (m.salience_score if m.salience_score is not None else 0.5, m.timestamp),
        eligible=lambda m: m.importance != "critical",
    )


class MemoryManager:
    """Owns the memory index, the daily logs, MEMORY.md and the lifeboat."""

    def __init__(
        self,
        storage_root: str | Path,
        session_id: str,
        decay_rates: DecayRates | None = None,
        clock: Callable[[], datetime] = utc_now,
        capacity: int = MAX_MEMORIES,
        event_bus: Any | None = None,
    ) -> None:
        self.storage_root = validate_storage_path(storage_root)
        self.memory_dir = self.storage_root / "memory"
        self.long_term_path = self.storage_root / "MEMORY.md"
        self.session_id = session_id
        self.decay_rates = decay_rates or DecayRates()
        self.clock = clock
        self.event_bus = event_bus
        self.lifeboat = Lifeboat(self.storage_root / "NOW.md")
        self._index = JsonIndex(self.memory_dir / "memories.json")
        self._collection: BoundedCollection[Memory] = BoundedCollection(
            "memories", capacity, _eviction_policy()
        )
        self.loaded = False
        self.last_load: LoadResult | None = None

    # ── persistence ────────────────────────────────────────────────────

    @property
    def memories(self) -> list[Memory]:
        return self._collection.items

    def replace_memories(self, memories: list[Memory]) -> None:
        self._collection.replace(memories)

    def load(self) -> LoadResult:
        """Read the index from disk, replacing the in-memory copy."""
        memories, result = load_models(self._index, _MEMORY_LIST)
        self._collection.replace(memories or [])
        self.loaded = True
        self.last_load = result
        if result.status is LoadStatus.CORRUPT:
            logger.warning("Memory index corrupt, starting empty: %s", result.reason)
        return result

    def flush(self) -> None:
        """Rewrite the full index."""
        self._index.write([m.model_dump(mode="json") for m in self.memories])

    def _ensure_loaded(self) -> None:
        if not self.loaded:
            self.load()

    # ── remember / recall ──────────────────────────────────────────────

    def remember(
        self,
        content: str,
        type: str = "event",
        importance: str = "medium",
        tags: Iterable[str] | None = None,
        emotional_weight: float = 0.0,
    ) -> Memory:
        """Store a new memory in the daily log and the structured index."""
        self._ensure_loaded()
        memory = Memory(
            id=new_id(),
            type=validate_choice(type, "type", MEMORY_TYPES),
            content=validate_string(content, "content", max_length=MAX_MEMORY_CONTENT),
            importance=validate_choice(importance, "importance", IMPORTANCE_LEVELS),
            tier="hot",
            tags=validate_string_list(
                tags,
                "tags",
                max_items=MAX_TAGS,
                max_item_length=MAX_TAG_LENGTH,
            ),
            timestamp=self.clock(),
            session_id=self.session_id,
            emotional_weight=validate_confidence(emotional_weight, "emotional_weight"),
        )
        memory.salience_score = salience(
            novelty=self.estimate_novelty(memory),
            retention=0.0,
            momentum=1.0,
            continuity=self.estimate_continuity(memory),
            effort=self.estimate_effort(memory),
        )
        # Every new memory starts hot; the decay pass is what demotes.
        memory.tier = "hot"

        self._collection.ensure_room()
        append_text(self.memory_dir / f"{date_key(memory.timestamp)}.md", memory_to_markdown(memory))
        self._collection.append(memory)
        self.flush()
        return memory

    def recall(self, query: str, limit: int = 10) -> list[Memory]:
        """Rank memories by lexical overlap plus importance, recency and salience."""
        self._ensure_loaded()
        limit = int(validate_number(limit, "limit", minimum=1))
        words = query_words(query)
        now = self.clock()

        scored: list[tuple[float, Memory]] = []
        for memory in self.memories:
            content_l = memory.content.lower()
            tags_l = [tag.lower() for tag in memory.tags]
            match_score = 0
            for word in words:
                if word in content_l:
                    match_score += 1
                if any(word in tag for tag in tags_l):
                    match_score += 2
            if match_score == 0:
                continue

            score = float(match_score)
            score += RECALL_IMPORTANCE_BOOST.get(memory.importance, 0.0)
            hours = age_hours(memory.timestamp, now)
            if hours < 24:
                score += 1
            if hours < 1:
                score += 2
            score += (memory.salience_score or 0.0) * 2
            scored.append((score, memory))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        results = [memory for _, memory in scored[:limit]]
        for memory in results:
            memory.access_count += 1
        if results:
            self.flush()
        return results

    # ── decay / curation ───────────────────────────────────────────────

    def run_decay(self) -> DecayReport:
        """Rescore and retier every memory, then prune fully faded ones."""
        self._ensure_loaded()
        report = ForgettingPolicy(memory_manager=self).run()
        self.flush()
        return report

    def notify_archived(self, memory: Memory) -> None:
        if self.event_bus is not None:
            self.event_bus.emit("memory_archived", {"memory": memory})

    def curate(
        self,
        hours_back: float = 48,
        min_importance: str = "medium",
        min_salience: float = 0.5,
        dry_run: bool = False,
    ) -> CurationResult:
        """Promote recent high-value memories into MEMORY.md without duplicating them."""
        self._ensure_loaded()
        min_rank = IMPORTANCE_RANK[validate_choice(min_importance, "min_importance", IMPORTANCE_LEVELS)]
        cutoff = self.clock() - timedelta(hours=hours_back)

        candidates = [
            memory
            for memory in self.memories
            if memory.timestamp >= cutoff
            and IMPORTANCE_RANK[memory.importance] >= min_rank
            and (memory.salience_score if memory.salience_score is not None else 0.5) >= min_salience
            and not CURATION_EXCLUDED_TAGS.intersection(memory.tags)
        ]
        if not candidates:
            return CurationResult()

        existing = self.read_long_term()
        curated = (
            [m for m in candidates if m.content[:DEDUP_PREFIX_CHARS] not in existing]
            if existing
            else candidates
        )
        if not curated or dry_run:
            return CurationResult(curated=curated, written=False)

        ordered = sorted(curated, key=lambda m: IMPORTANCE_RANK[m.importance], reverse=True)
        entries = "\n".join(
            f"- {m.content}" + (f" [{', '.join(m.tags)}]" if m.tags else "") for m in ordered
        )
        self.write_long_term(f"\n## Curated - {date_key(self.clock())}\n{entries}")

        for memory in curated:
            memory.tags = [*memory.tags, "curated"]
        self.flush()
        logger.info("Curated %d memories into %s", len(curated), self.long_term_path.name)
        return CurationResult(curated=ordered, written=True)

    # ── durable artifact / daily log ───────────────────────────────────

    def read_long_term(self) -> str | None:
        return read_text(self.long_term_path)

    def write_long_term(self, content: str) -> None:
        append_text(self.long_term_path, "\n" + content + "\n")

    def read_daily_log(self, date: str | None = None) -> str | None:
        return read_text(self.memory_dir / f"{date or date_key(self.clock())}.md")

    def read_yesterday_log(self) -> str | None:
        return read_text(self.memory_dir / f"{yesterday_key(self.clock())}.md")

    # ── lifeboat ───────────────────────────────────────────────────────

    def update_lifeboat(self, checkpoint: Checkpoint) -> None:
        self.lifeboat.update(checkpoint)

    def read_lifeboat(self) -> str | None:
        return self.lifeboat.read()

    def write_lifeboat_raw(self, content: str) -> None:
        self.lifeboat.write_raw(content)

    def emergency_flush(
        self,
        active_task: str | None = None,
        unsaved_memories: Iterable[str] | None = None,
    ) -> None:
        """Save a lifeboat and any unsaved notes before context is lost."""
        notes = list(unsaved_memories or [])
        self.update_lifeboat(
            Checkpoint(
                active_task=active_task or "Unknown - emergency flush triggered",
                status="in-progress",
                resume_point="Resumed from emergency flush",
                key_context=notes,
                emergency=True,
                updated_at=self.clock(),
            )
        )
        for note in notes:
            self.remember(
                content=f"[EMERGENCY FLUSH] {note}",
                type="event",
                importance="high",
                tags=["emergency-flush", "pre-compaction"],
            )
        self._ensure_loaded()
        self.flush()

    # ── listing ────────────────────────────────────────────────────────

    def get_recent_memories(self, hours: float = 48) -> list[Memory]:
        """Memories newer than ``hours``, newest first."""
        self._ensure_loaded()
        cutoff = self.clock() - timedelta(hours=hours)
        recent = [m for m in self.memories if m.timestamp > cutoff]
        return sorted(recent, key=lambda m: m.timestamp, reverse=True)

    def get_all_memories(self) -> list[Memory]:
        self._ensure_loaded()
        return list(self.memories)

    # ── salience heuristics ────────────────────────────────────────────

    @staticmethod
    def estimate_novelty(memory: Memory) -> float:
        length_score = min(1.0, len(memory.content) / 500)
        importance_boost = 0.3 if memory.importance == "critical" else 0.0
        emotional_boost = memory.emotional_weight * 0.2
        return min(1.0, length_score + importance_boost + emotional_boost)

    def estimate_continuity(self, memory: Memory) -> float:
        """Tag overlap with other memories."""
        if not memory.tags:
            return 0.1
        own = set(memory.tags)
        linked = sum(1 for other in self.memories if other.id != memory.id and own.intersection(other.tags))
        return min(1.0, linked * 0.2)

    @staticmethod
    def estimate_effort(memory: Memory) -> float:
        """Reconstruction cost: long content costs more, tags make it cheaper."""
        length_cost = min(0.5, len(memory.content) / 1000)
        tag_benefit = min(0.3, len(memory.tags) * 0.1)
        return max(0.0, length_cost - tag_benefit)
