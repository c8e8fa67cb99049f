"""Retention and forgetting policies."""

from __future__ import annotations

import logging
from typing import Any

from memory.provenance import age_hours
from memory.scoring import decay, salience
from memory.types.flat import DecayReport, Memory

logger = logging.getLogger("ledger.forgetting")

ARCHIVE_BELOW = 0.2
COLD_BELOW = 0.5
WARM_BELOW = 0.7
PRUNE_AT_OR_BELOW = 0.05
MOMENTUM_WINDOW_HOURS = 168.0


def assign_tier(salience_score: float, importance: str) -> str:
    """Map salience to a retention tier; critical memories are never archived."""
    if salience_score < ARCHIVE_BELOW and importance != "critical":
        return "archived"
    if salience_score < COLD_BELOW:
        return "cold"
    if salience_score < WARM_BELOW:
        return "warm"
    return "hot"


def is_prunable(memory: Memory) -> bool:
    """Archived, fully faded and not critical."""
    return (
        memory.tier == "archived"
        and (memory.salience_score or 0.0) <= PRUNE_AT_OR_BELOW
        and memory.importance != "critical"
    )


class ForgettingPolicy:
    """Recomputes decay and salience for every memory, retiers, then prunes."""

    def __init__(self, memory_manager: Any) -> None:
        self.memory_manager = memory_manager

    def rescore(self, memory: Memory, hours: float) -> None:
        manager = self.memory_manager
        memory.decay_score = decay(
            memory.type,
            hours,
            memory.access_count,
            memory.emotional_weight,
            manager.decay_rates,
        )
        memory.salience_score = salience(
            novelty=manager.estimate_novelty(memory),
            retention=min(1.0, memory.access_count * 0.2),
            momentum=max(0.0, 1 - hours / MOMENTUM_WINDOW_HOURS),
            continuity=manager.estimate_continuity(memory),
            effort=manager.estimate_effort(memory),
        )

    def run(self) -> DecayReport:
        """Sweep all memories once and drop the ones that faded out."""
        manager = self.memory_manager
        now = manager.clock()
        report = DecayReport()
        newly_archived: list[Memory] = []

        for memory in manager.memories:
            self.rescore(memory, age_hours(memory.timestamp, now))
            tier = assign_tier(memory.salience_score or 0.0, memory.importance)
            if tier == "archived":
                if memory.tier != "archived":
                    report.archived += 1
                    newly_archived.append(memory)
                else:
                    report.decayed += 1
            else:
                report.kept += 1
            memory.tier = tier

        survivors = [memory for memory in manager.memories if not is_prunable(memory)]
        pruned = len(manager.memories) - len(survivors)
        manager.replace_memories(survivors)
        logger.info(
            "Decay pass: %d kept, %d archived, %d already archived, %d pruned",
            report.kept,
            report.archived,
            report.decayed,
            pruned,
        )
        for memory in newly_archived:
            manager.notify_archived(memory)
        return report
