"""Session lifecycle: boot, work, reflect."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from core.orchestrator import LAST_SUMMARY_CHARS, PROMPT_EMPTY, SESSION_END_MARKER, Orchestrator
from memory.validation import MemoryValidationError


def build_runtime(tmp_path: Path, clock):
    return Orchestrator(root=tmp_path).build(session_id="session-test", clock=clock)


def test_build_wires_storage_under_root(tmp_path: Path, clock) -> None:
    bundle = build_runtime(tmp_path, clock)
    assert bundle.storage_root == (tmp_path / "data").resolve()
    assert bundle.memory.event_bus is bundle.events
    assert bundle.conflicts.opinion_store is bundle.opinions


def test_fresh_boot(tmp_path: Path, clock) -> None:
    bundle = build_runtime(tmp_path, clock)
    wakes: list[dict] = []
    bundle.events.subscribe("after_wake", wakes.append)

    context = bundle.session.boot()

    assert context.session_id == "session-test"
    assert context.lifeboat is None
    assert context.recent_memories == []
    assert context.last_session_summary is None
    assert 0 < context.payload_bytes <= 4096
    boot_memories = bundle.memory.get_all_memories()
    assert len(boot_memories) == 1
    assert boot_memories[0].tags == ["system", "boot"]
    assert wakes == [{"session_id": "session-test", "memories_loaded": 0}]


def test_boot_trims_payload_oldest_first(tmp_path: Path, clock) -> None:
    bundle = build_runtime(tmp_path, clock)
    for n in range(30):
        clock.advance(hours=0.1)
        bundle.memory.remember(f"note {n:02d} " + "x" * 800)
    bundle.opinions.opine("Style", "terse", 0.6)

    context = bundle.session.boot()

    assert context.payload_bytes <= 4096
    assert 0 < len(context.recent_memories) < 30
    assert context.recent_memories[0].content.startswith("note 29")
    assert len(context.last_session_summary) == LAST_SUMMARY_CHARS
    assert [o.topic for o in context.opinions] == ["Style"]


def test_boot_reads_checkpoint_and_recent_episodes(tmp_path: Path, clock) -> None:
    bundle = build_runtime(tmp_path, clock)
    bundle.session.checkpoint("Ship release", "blocked", "Wait for QA", open_threads=["changelog"])
    bundle.episodes.record("Kickoff", "Planned the release")
    bundle.behavior.set_param("tone", "dry")

    context = build_runtime(tmp_path, clock).session.boot()

    assert context.lifeboat.active_task == "Ship release"
    assert context.lifeboat.status == "blocked"
    assert context.lifeboat.open_threads == ["changelog"]
    assert [e.title for e in context.recent_episodes] == ["Kickoff"]
    assert context.behavioral_state.params == {"tone": "dry"}


def test_reflect_summarizes_and_closes_lifeboat(tmp_path: Path, clock) -> None:
    bundle = build_runtime(tmp_path, clock)
    sleeps: list[dict] = []
    bundle.events.subscribe("after_sleep", sleeps.append)
    session = bundle.session
    session.boot()
    session.remember("Picked Postgres for the ledger", type="decision", importance="high")
    session.remember("Standup moved to 10:00")
    session.opine("Databases", "SQLite is enough", 0.5)
    session.opine("Databases", "Postgres is needed", 0.7)

    summary = session.reflect()

    assert summary.memories_created == 2
    assert summary.conflicts_detected == 1
    assert summary.opinions_formed == 1
    assert summary.opinions_changed == 1
    assert "2 memories created" in summary.summary
    assert any("session-summary" in m.tags for m in bundle.memory.get_all_memories())
    checkpoint = bundle.memory.lifeboat.read_checkpoint()
    assert checkpoint.status == "done"
    assert SESSION_END_MARKER in checkpoint.active_task
    assert sleeps == [{"session_id": "session-test", "memories_created": 2, "memories_decayed": summary.memories_decayed}]


def test_reflect_preserves_hand_written_lifeboat(tmp_path: Path, clock) -> None:
    bundle = build_runtime(tmp_path, clock)
    session = bundle.session
    session.boot()
    session.checkpoint("Refactor parser", "in-progress", "Finish step 3")

    session.reflect()

    raw = bundle.memory.read_lifeboat()
    assert "Refactor parser" in raw
    assert "Finish step 3" in raw
    assert SESSION_END_MARKER in raw
    checkpoint = bundle.memory.lifeboat.read_checkpoint()
    assert checkpoint.active_task == "Refactor parser"
    assert checkpoint.status == "done"

    session.reflect()
    assert bundle.memory.lifeboat.read_checkpoint().active_task.startswith("No active task")


def test_flush_writes_emergency_lifeboat(tmp_path: Path, clock) -> None:
    bundle = build_runtime(tmp_path, clock)
    bundle.session.flush(active_task="Halfway through migration", unsaved_memories=["row counts match"])

    checkpoint = bundle.memory.lifeboat.read_checkpoint()
    assert checkpoint.emergency
    assert checkpoint.key_context == ["row counts match"]
    flushed = bundle.memory.recall("row counts")
    assert flushed[0].content == "[EMERGENCY FLUSH] row counts match"


def test_daily_review(tmp_path: Path, clock) -> None:
    bundle = build_runtime(tmp_path, clock)
    bundle.session.remember("Outage in billing", importance="critical")
    bundle.session.remember("Always page the owner", type="lesson")

    review = bundle.session.daily_review()

    assert review.startswith("# Daily Review - ")
    assert "Total memories: 2" in review
    assert "- Outage in billing" in review
    assert "## Lessons & Insights\n- Always page the owner" in review


def test_reflect_consolidates_episodes(tmp_path: Path, clock) -> None:
    bundle = build_runtime(tmp_path, clock)
    stale = bundle.episodes.record(
        "Forgotten errand",
        "Nothing came of it",
        emotional_weight=0.0,
        timestamp=clock() - timedelta(days=31),
    )
    fresh = bundle.episodes.record("Launch", "Shipped the release", emotional_weight=0.8)
    bundle.session.boot()

    bundle.session.reflect()

    reloaded = {e.id: e for e in build_runtime(tmp_path, clock).episodes.recent(limit=10)}
    assert stale.id not in reloaded
    assert fresh.id in reloaded


def test_prompt_is_placeholder_without_state(tmp_path: Path, clock) -> None:
    assert build_runtime(tmp_path, clock).session.to_prompt() == PROMPT_EMPTY


def test_prompt_renders_each_section(tmp_path: Path, clock) -> None:
    bundle = build_runtime(tmp_path, clock)
    session = bundle.session
    session.opine("Tabs", "Spaces win", 0.4)
    session.opine("Testing", "Always write tests", 0.9)
    session.remember("Migrated billing", type="decision", importance="high")
    session.remember("Coffee machine broke", importance="low")
    session.checkpoint("Ship release", "in-progress", "Tag the build")
    bundle.episodes.record("Kickoff", "Planned the release", emotional_weight=0.5)

    prompt = session.to_prompt()

    assert prompt.startswith("# Agent Context\n*Session session-test*")
    assert prompt.index("- **Testing** (90%): Always write tests") < prompt.index("- **Tabs** (40%): Spaces win")
    assert "- [decision] Migrated billing" in prompt
    assert "Coffee machine broke" not in prompt
    assert "## Last Known State (Lifeboat)\n# NOW.md - Lifeboat" in prompt
    assert "- Planned the release (weight: 0.5)" in prompt
    assert prompt.index("## Opinions") < prompt.index("## Recent Memories") < prompt.index("## Recent Episodes")


def test_prompt_section_selection(tmp_path: Path, clock) -> None:
    bundle = build_runtime(tmp_path, clock)
    session = bundle.session
    session.opine("Tabs", "Spaces win", 0.4)
    session.remember("Migrated billing", importance="high")
    session.checkpoint("Ship release", "in-progress", "Tag the build")

    only_opinions = session.to_prompt(sections=["opinions"])
    assert "## Opinions" in only_opinions
    assert "## Recent Memories" not in only_opinions
    assert "Lifeboat" not in only_opinions

    without_lifeboat = session.to_prompt(include_lifeboat=False)
    assert "Lifeboat" not in without_lifeboat
    assert "## Recent Memories" in without_lifeboat

    with pytest.raises(MemoryValidationError):
        session.to_prompt(sections=["identity"])


def test_prompt_skips_sections_over_budget(tmp_path: Path, clock) -> None:
    bundle = build_runtime(tmp_path, clock)
    session = bundle.session
    for n in range(20):
        session.opine(f"Topic {n}", "o" * 200, 0.5)
    session.remember("Migrated billing", importance="high")

    prompt = session.to_prompt(max_tokens=100)

    assert "## Opinions" not in prompt
    assert "- [event] Migrated billing" in prompt
    assert session.to_prompt(max_tokens=0) == PROMPT_EMPTY

    full = session.to_prompt(max_tokens=2000)
    assert full.count("- **Topic") == 15
