"""Top-level application orchestrator and session lifecycle."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from core.event_bus import EventBus
from core.policy_runtime import decay_rates, ensure_runtime_dirs, load_effective_config
from memory.behavior import BehavioralState
from memory.consolidation.consolidator import Consolidator
from memory.consolidation.contradiction_finder import ContradictionFinder
from memory.episodic import EpisodicStore
from memory.knowledge import KnowledgeStore
from memory.memory_manager import MemoryManager
from memory.opinions import OpinionStore
from memory.provenance import new_session_id, utc_now
from memory.types.context import Checkpoint, SessionSummary, WakeContext
from memory.types.flat import CurationResult, Memory
from memory.types.semantic import Opinion
from memory.validation import MemoryValidationError, validate_number

logger = logging.getLogger("ledger.session")

SESSION_END_MARKER = "session ended normally"
LAST_SUMMARY_CHARS = 1500

PROMPT_SECTIONS = ("opinions", "memories", "lifeboat", "episodes")
PROMPT_CHARS_PER_TOKEN = 4
PROMPT_MEMORY_HOURS = 20
PROMPT_EMPTY = "<!-- No context loaded yet. Call boot() first. -->"


@dataclass
class RuntimeBundle:
    """Holds initialized runtime components."""

    config: dict[str, Any]
    storage_root: Path
    events: EventBus
    memory: MemoryManager
    opinions: OpinionStore
    episodes: EpisodicStore
    behavior: BehavioralState
    conflicts: ContradictionFinder
    consolidator: Consolidator
    session: Session


class Orchestrator:
    """Creates and wires runtime components for CLI and library use."""

    def __init__(self, root: Path | None = None) -> None:
        default_root = Path(__file__).resolve().parents[1]
        self.root = (root or default_root).resolve()

    def build(
        self,
        session_id: str | None = None,
        clock: Callable[[], datetime] = utc_now,
        config: dict[str, Any] | None = None,
    ) -> RuntimeBundle:
        config = config if config is not None else load_effective_config(self.root)
        storage_root = ensure_runtime_dirs(self.root, config)["storage_root"]
        session_id = session_id or new_session_id()

        events = EventBus()
        memory = MemoryManager(
            storage_root,
            session_id=session_id,
            decay_rates=decay_rates(config),
            clock=clock,
            event_bus=events,
        )
        opinions = OpinionStore(storage_root, clock=clock, event_bus=events)
        episodes = EpisodicStore(
            storage_root,
            clock=clock,
            knowledge=KnowledgeStore(storage_root, clock=clock),
        )
        behavior = BehavioralState(storage_root, clock=clock)
        conflicts = ContradictionFinder(storage_root, opinions, clock=clock, event_bus=events)
        consolidator = Consolidator(
            memory_manager=memory, contradiction_finder=conflicts, episodic=episodes
        )
        session = Session(
            session_id=session_id,
            config=config,
            events=events,
            memory=memory,
            opinions=opinions,
            episodes=episodes,
            behavior=behavior,
            consolidator=consolidator,
            clock=clock,
        )
        return RuntimeBundle(
            config=config,
            storage_root=storage_root,
            events=events,
            memory=memory,
            opinions=opinions,
            episodes=episodes,
            behavior=behavior,
            conflicts=conflicts,
            consolidator=consolidator,
            session=session,
        )


class Session:
    """One agent session: boot, work through the stores, reflect."""

    def __init__(
        self,
        session_id: str,
        config: dict[str, Any],
        events: EventBus,
        memory: MemoryManager,
        opinions: OpinionStore,
        episodes: EpisodicStore,
        behavior: BehavioralState,
        consolidator: Consolidator,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.session_id = session_id
        self.config = config
        self.events = events
        self.memory = memory
        self.opinions = opinions
        self.episodes = episodes
        self.behavior = behavior
        self.consolidator = consolidator
        self.clock = clock
        self.started_at: datetime | None = None
        self.memories_this_session = 0

    # ── boot ───────────────────────────────────────────────────────────

    def boot(self) -> WakeContext:
        """Load everything an agent needs to resume, within a soft size budget."""
        boot_cfg = self.config.get("boot", {})
        self.started_at = self.clock()

        lifeboat = self.memory.lifeboat.read_checkpoint()
        last_summary = self.memory.read_daily_log() or self.memory.read_yesterday_log()
        if last_summary:
            last_summary = last_summary[-LAST_SUMMARY_CHARS:]
        recent = self.memory.get_recent_memories(float(boot_cfg.get("recent_memory_hours", 48)))
        opinions = self.opinions.get_opinions()

        context = WakeContext(
            session_id=self.session_id,
            instance_id=new_session_id(),
            lifeboat=lifeboat,
            recent_memories=recent[: int(boot_cfg.get("recent_memories", 50))],
            opinions=opinions,
            behavioral_state=self.behavior.boot(),
            recent_episodes=self.episodes.recent(int(boot_cfg.get("recent_episodes", 5))),
            last_session_summary=last_summary,
        )
        self._fit_payload(context, int(boot_cfg.get("max_payload_bytes", 4096)))

        self.memory.remember(
            content=(
                f"Session started. Loaded {len(recent)} recent memories, "
                f"{len(opinions)} opinions."
            ),
            type="event",
            importance="low",
            tags=["system", "boot"],
        )
        self.events.emit(
            "after_wake",
            {"session_id": self.session_id, "memories_loaded": len(context.recent_memories)},
        )
        return context

    @staticmethod
    def _payload_size(context: WakeContext) -> int:
        return len(context.model_dump_json().encode("utf-8"))

    def _fit_payload(self, context: WakeContext, max_bytes: int) -> None:
        """Drop the oldest memories, then episodes, until the payload fits."""
        size = self._payload_size(context)
        while size > max_bytes and (context.recent_memories or context.recent_episodes):
            if context.recent_memories:
                context.recent_memories.pop()
            else:
                context.recent_episodes.pop()
            size = self._payload_size(context)
        if size > max_bytes:
            logger.info("Wake context is %d bytes, over the %d byte target", size, max_bytes)
        context.payload_bytes = size

    # ── pass-throughs ──────────────────────────────────────────────────

    def remember(
        self,
        content: str,
        type: str = "event",
        importance: str = "medium",
        tags: Iterable[str] | None = None,
        emotional_weight: float = 0.0,
    ) -> Memory:
        memory = self.memory.remember(content, type, importance, tags, emotional_weight)
        self.memories_this_session += 1
        return memory

    def recall(self, query: str, limit: int = 10) -> list[Memory]:
        return self.memory.recall(query, limit)

    def opine(self, topic: str, opinion: str, confidence: float) -> Opinion:
        return self.opinions.opine(topic, opinion, confidence)

    def checkpoint(
        self,
        active_task: str,
        status: str,
        resume_point: str,
        open_threads: Iterable[str] | None = None,
        key_context: Iterable[str] | None = None,
    ) -> None:
        self.memory.update_lifeboat(
            Checkpoint(
                active_task=active_task,
                status=status,
                resume_point=resume_point,
                open_threads=list(open_threads or []),
                key_context=list(key_context or []),
                updated_at=self.clock(),
            )
        )

    def flush(self, active_task: str | None = None, unsaved_memories: Iterable[str] | None = None) -> None:
        self.memory.emergency_flush(active_task=active_task, unsaved_memories=unsaved_memories)

    def curate(self, **options: Any) -> CurationResult:
        return self.memory.curate(**options)

    # ── reflect ────────────────────────────────────────────────────────

    def reflect(self) -> SessionSummary:
        """End-of-session consolidation, summary memory and lifeboat end note."""
        curation_cfg = self.config.get("curation", {})
        results = self.consolidator.run(
            hours_back=float(self.config.get("reflection", {}).get("curation_hours_back", 24)),
            min_importance=curation_cfg.get("min_importance", "medium"),
            min_salience=float(curation_cfg.get("min_salience", 0.5)),
        )
        curation = results["curation"]
        decay = results["decay"]
        conflicts = results["conflicts"]
        opinions = self.opinions.get_opinions()
        ended_at = self.clock()

        text = (
            f"Session {self.session_id}: {self.memories_this_session} memories created. "
            f"Decay: {decay.decayed} decayed, {decay.archived} archived, {decay.kept} kept."
        )
        summary = SessionSummary(
            session_id=self.session_id,
            started_at=self.started_at or ended_at,
            ended_at=ended_at,
            summary=text,
            memories_created=self.memories_this_session,
            memories_promoted=len(curation.curated),
            memories_decayed=decay.decayed,
            memories_archived=decay.archived,
            opinions_formed=len(opinions),
            opinions_changed=sum(1 for o in opinions if o.previous_opinions),
            conflicts_detected=len(conflicts),
        )

        self.memory.remember(
            content=text,
            type="event",
            importance="low",
            tags=["system", "session-summary"],
        )
        self._write_end_note(summary)
        self.events.emit(
            "after_sleep",
            {
                "session_id": self.session_id,
                "memories_created": summary.memories_created,
                "memories_decayed": summary.memories_decayed,
            },
        )
        return summary

    def _write_end_note(self, summary: SessionSummary) -> None:
        """Append to a hand-written lifeboat; otherwise write a clean end state."""
        existing = self.memory.read_lifeboat()
        if existing and SESSION_END_MARKER not in existing:
            note = "\n".join(
                [
                    "",
                    f"## Last Session Summary ({summary.ended_at.isoformat()})",
                    summary.summary,
                    f"Curated {summary.memories_promoted} memories to long-term.",
                    "",
                    "## Status",
                    f"done - {SESSION_END_MARKER}. Read everything above for context.",
                ]
            )
            self.memory.write_lifeboat_raw(existing + "\n" + note)
            return
        self.memory.update_lifeboat(
            Checkpoint(
                active_task=f"No active task - {SESSION_END_MARKER}",
                status="done",
                resume_point="Start fresh next session",
                updated_at=summary.ended_at,
            )
        )

    def daily_review(self) -> str:
        return self.consolidator.daily_review()

    # ── prompt rendering ───────────────────────────────────────────────

    def to_prompt(
        self,
        max_tokens: int = 2000,
        sections: Iterable[str] | None = None,
        include_lifeboat: bool = True,
    ) -> str:
        """Render stored state as a markdown block for a downstream prompt.

        Sections go in a fixed order. One whose rough token estimate
        (four characters per token) would overrun ``max_tokens`` is skipped,
        and a later, smaller section may still fit.
        """
        max_tokens = int(validate_number(max_tokens, "max_tokens", minimum=0))
        wanted = set(PROMPT_SECTIONS if sections is None else sections)
        unknown = wanted.difference(PROMPT_SECTIONS)
        if unknown:
            raise MemoryValidationError(
                "sections", f"must be drawn from: {', '.join(PROMPT_SECTIONS)}, got {sorted(unknown)}"
            )

        parts: list[str] = []
        used = 0

        def add_section(title: str, body: str) -> None:
            nonlocal used
            cost = math.ceil(len(body) / PROMPT_CHARS_PER_TOKEN)
            if used + cost > max_tokens:
                logger.debug("Prompt section %s skipped: %d tokens over budget", title, used + cost - max_tokens)
                return
            parts.append(f"## {title}\n{body}")
            used += cost

        if "opinions" in wanted:
            opinions = sorted(self.opinions.get_opinions(), key=lambda o: o.confidence, reverse=True)
            if opinions:
                add_section(
                    "Opinions",
                    "\n".join(
                        f"- **{o.topic}** ({o.confidence * 100:.0f}%): {o.current}" for o in opinions[:15]
                    ),
                )

        if "memories" in wanted:
            important = [
                m for m in self.memory.get_recent_memories(PROMPT_MEMORY_HOURS) if m.importance != "low"
            ]
            if important:
                add_section(
                    "Recent Memories",
                    "\n".join(f"- [{m.type}] {m.content}" for m in important[:10]),
                )

        if include_lifeboat and "lifeboat" in wanted:
            lifeboat = self.memory.read_lifeboat()
            if lifeboat and lifeboat.strip():
                add_section("Last Known State (Lifeboat)", lifeboat[:500])

        if "episodes" in wanted:
            episodes = self.episodes.recent(5)
            if episodes:
                add_section(
                    "Recent Episodes",
                    "\n".join(
                        f"- {e.summary}"
                        + (f" (weight: {e.emotional_weight:.1f})" if e.emotional_weight else "")
                        for e in episodes
                    ),
                )

        if not parts:
            return PROMPT_EMPTY
        return f"# Agent Context\n*Session {self.session_id}*\n\n" + "\n\n".join(parts)
