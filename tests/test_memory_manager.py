"""Flat memory store tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from core.event_bus import EventBus
from memory.memory_manager import MemoryManager
from memory.provenance import date_key
from memory.stores.json_store import LoadStatus
from memory.validation import CapacityExceededError, MemoryValidationError


def build_memory(tmp_path: Path, clock, **kwargs) -> MemoryManager:
    manager = MemoryManager(tmp_path, session_id="session-test", clock=clock, **kwargs)
    manager.load()
    return manager


def test_remember_writes_index_and_daily_log(tmp_path: Path, clock) -> None:
    memory = build_memory(tmp_path, clock)
    record = memory.remember("Shipped the billing migration", importance="high", tags=["billing"])

    assert record.session_id == "session-test"
    assert record.tier == "hot"
    assert 0.0 <= record.salience_score <= 1.0

    index = json.loads((tmp_path / "memory" / "memories.json").read_text(encoding="utf-8"))
    assert [item["id"] for item in index] == [record.id]

    log = (tmp_path / "memory" / f"{date_key(record.timestamp)}.md").read_text(encoding="utf-8")
    assert f"> ID: {record.id} | Importance: high" in log
    assert "> Tags: billing" in log
    assert "Shipped the billing migration" in log


def test_records_survive_reload(tmp_path: Path, clock) -> None:
    first = build_memory(tmp_path, clock)
    record = first.remember("Persistent fact")

    second = build_memory(tmp_path, clock)
    assert [m.id for m in second.get_all_memories()] == [record.id]
    assert second.last_load.status is LoadStatus.OK


def test_initial_salience_heuristics(tmp_path: Path, clock) -> None:
    memory = build_memory(tmp_path, clock)
    record = memory.remember("x" * 500)
    # novelty 1, retention 0, momentum 1, continuity 0.1, effort 0.5
    assert abs(record.salience_score - 0.52) < 1e-9


def test_continuity_counts_tag_overlap(tmp_path: Path, clock) -> None:
    memory = build_memory(tmp_path, clock)
    memory.remember("First python note", tags=["python"])
    memory.remember("Second python note", tags=["python", "tooling"])
    third = memory.remember("Third python note", tags=["python"])
    assert memory.estimate_continuity(third) == pytest.approx(0.4)


def test_effort_falls_with_tags(tmp_path: Path, clock) -> None:
    memory = build_memory(tmp_path, clock)
    untagged = memory.remember("y" * 400)
    tagged = memory.remember("z" * 400, tags=["a", "b", "c", "d"])
    assert memory.estimate_effort(untagged) == pytest.approx(0.4)
    assert memory.estimate_effort(tagged) == pytest.approx(0.1)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"content": ""},
        {"content": "ok", "type": "gossip"},
        {"content": "ok", "importance": "urgent"},
        {"content": "ok", "emotional_weight": 1.5},
        {"content": "ok", "tags": "not-a-list"},
    ],
)
def test_remember_rejects_invalid_input(tmp_path: Path, clock, kwargs) -> None:
    memory = build_memory(tmp_path, clock)
    with pytest.raises(MemoryValidationError):
        memory.remember(**kwargs)
    assert memory.get_all_memories() == []


def test_recall_excludes_non_matching_and_counts_access(tmp_path: Path, clock) -> None:
    memory = build_memory(tmp_path, clock)
    deploy = memory.remember("Deploy the api on fridays is risky")
    memory.remember("Lunch with Sam on Tuesday")

    results = memory.recall("deploy")
    assert [m.id for m in results] == [deploy.id]

    reloaded = build_memory(tmp_path, clock)
    counts = {m.id: m.access_count for m in reloaded.get_all_memories()}
    assert counts[deploy.id] == 1
    assert sum(counts.values()) == 1


def test_recall_tag_matches_outrank_content_matches(tmp_path: Path, clock) -> None:
    memory = build_memory(tmp_path, clock)
    in_content = memory.remember("notes on kubernetes upgrades")
    in_tags = memory.remember("notes on the cluster upgrade", tags=["kubernetes"])
    results = memory.recall("kubernetes")
    assert [m.id for m in results] == [in_tags.id, in_content.id]


def test_recall_ties_keep_insertion_order(tmp_path: Path, clock) -> None:
    memory = build_memory(tmp_path, clock)
    first = memory.remember("alpha release")
    second = memory.remember("alpha release")
    assert [m.id for m in memory.recall("alpha")] == [first.id, second.id]
    assert [m.id for m in memory.recall("alpha", limit=1)] == [first.id]


def test_recall_recency_boost(tmp_path: Path, clock) -> None:
    memory = build_memory(tmp_path, clock)
    old = memory.remember("standup notes")
    clock.advance(hours=30)
    fresh = memory.remember("standup notes")
    assert [m.id for m in memory.recall("standup")] == [fresh.id, old.id]


def test_immediate_decay_keeps_strong_memory(tmp_path: Path, clock) -> None:
    memory = build_memory(tmp_path, clock)
    record = memory.remember("m" * 500, importance="high")
    assert record.salience_score >= 0.5

    report = memory.run_decay()

    assert report.kept == 1 and report.archived == 0 and report.decayed == 0
    assert memory.get_all_memories()[0].tier in ("hot", "warm")


def test_aged_weak_memory_is_archived_then_counted_as_decayed(tmp_path: Path, clock) -> None:
    memory = build_memory(tmp_path, clock)
    memory.remember("ok", importance="low")
    clock.advance(days=31)

    first = memory.run_decay()
    assert first.archived == 1
    assert memory.get_all_memories()[0].tier == "archived"
    assert memory.get_all_memories()[0].decay_score > 0

    second = memory.run_decay()
    assert second.archived == 0 and second.decayed == 1
    assert len(memory.get_all_memories()) == 1


def test_critical_memory_is_never_archived(tmp_path: Path, clock) -> None:
    memory = build_memory(tmp_path, clock)
    memory.remember("ok", importance="critical")
    clock.advance(days=31)

    report = memory.run_decay()
    record = memory.get_all_memories()[0]
    assert record.salience_score < 0.2
    assert record.tier == "cold"
    assert report.kept == 1


def test_decay_emits_archive_event(tmp_path: Path, clock) -> None:
    bus = EventBus()
    seen: list[str] = []
    bus.subscribe("memory_archived", lambda payload: seen.append(payload["memory"].id))
    memory = build_memory(tmp_path, clock, event_bus=bus)
    record = memory.remember("ok", importance="low")
    clock.advance(days=31)

    memory.run_decay()
    memory.run_decay()
    assert seen == [record.id]


def test_capacity_evicts_lowest_salience_non_critical(tmp_path: Path, clock) -> None:
    memory = build_memory(tmp_path, clock, capacity=2)
    keep = memory.remember("ok", importance="critical")
    weak = memory.remember("ok", importance="low")
    newest = memory.remember("a longer memory that scores better on novelty", importance="low")

    ids = [m.id for m in memory.get_all_memories()]
    assert ids == [keep.id, newest.id]
    assert weak.id not in ids


def test_capacity_full_of_critical_memories_raises(tmp_path: Path, clock) -> None:
    memory = build_memory(tmp_path, clock, capacity=1)
    memory.remember("only slot", importance="critical")
    with pytest.raises(CapacityExceededError):
        memory.remember("no room", importance="critical")


def test_corrupt_index_loads_empty_and_is_reported(tmp_path: Path, clock) -> None:
    index = tmp_path / "memory" / "memories.json"
    index.parent.mkdir(parents=True)
    index.write_text("{not json", encoding="utf-8")

    memory = MemoryManager(tmp_path, session_id="s", clock=clock)
    result = memory.load()
    assert result.status is LoadStatus.CORRUPT
    assert result.reason
    assert memory.get_all_memories() == []

    memory.remember("fresh start")
    assert json.loads(index.read_text(encoding="utf-8"))[0]["content"] == "fresh start"


def test_missing_index_loads_empty(tmp_path: Path, clock) -> None:
    memory = MemoryManager(tmp_path, session_id="s", clock=clock)
    assert memory.load().status is LoadStatus.EMPTY
    assert memory.loaded


def test_recent_memories_newest_first(tmp_path: Path, clock) -> None:
    memory = build_memory(tmp_path, clock)
    old = memory.remember("three days ago")
    clock.advance(days=3)
    a = memory.remember("today one")
    clock.advance(hours=1)
    b = memory.remember("today two")

    assert [m.id for m in memory.get_recent_memories(48)] == [b.id, a.id]
    assert old.id in [m.id for m in memory.get_recent_memories(24 * 5)]


def test_daily_logs_by_date(tmp_path: Path, clock) -> None:
    memory = build_memory(tmp_path, clock)
    memory.remember("yesterday's work")
    clock.advance(days=1)
    memory.remember("today's work")

    assert "today's work" in memory.read_daily_log()
    assert "yesterday's work" in memory.read_yesterday_log()
    assert memory.read_daily_log("1999-01-01") is None


def test_long_term_artifact_appends(tmp_path: Path, clock) -> None:
    memory = build_memory(tmp_path, clock)
    assert memory.read_long_term() is None
    memory.write_long_term("# Long-term")
    memory.write_long_term("- a fact")
    text = memory.read_long_term()
    assert text.index("# Long-term") < text.index("- a fact")


def test_emergency_flush_saves_lifeboat_and_notes(tmp_path: Path, clock) -> None:
    memory = build_memory(tmp_path, clock)
    memory.emergency_flush(active_task="Refactoring auth", unsaved_memories=["token rotation is half done"])

    lifeboat = memory.read_lifeboat()
    assert "Refactoring auth" in lifeboat
    assert "EMERGENCY FLAG SET" in lifeboat

    checkpoint = memory.lifeboat.read_checkpoint()
    assert checkpoint.emergency
    assert checkpoint.key_context == ["token rotation is half done"]

    saved = memory.get_all_memories()
    assert saved[0].content == "[EMERGENCY FLUSH] token rotation is half done"
    assert saved[0].importance == "high"
    assert saved[0].tags == ["emergency-flush", "pre-compaction"]
