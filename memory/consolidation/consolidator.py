"""End-of-session reflection cycle."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any

from memory.consolidation.contradiction_finder import ContradictionFinder
from memory.provenance import date_key

logger = logging.getLogger("ledger.reflection")


class Consolidator:
    """Runs curation, decay and conflict detection, in that order."""

    def __init__(
        self,
        memory_manager: Any,
        contradiction_finder: ContradictionFinder,
        episodic: Any | None = None,
    ) -> None:
        self.memory_manager = memory_manager
        self.contradiction_finder = contradiction_finder
        self.episodic = episodic

    def run(
        self,
        hours_back: float = 24,
        min_importance: str = "medium",
        min_salience: float = 0.5,
    ) -> dict[str, Any]:
        """Run one reflection cycle.

        Curation goes first so memories are promoted while their salience still
        reflects the session, then decay retiers everything, then the conflict
        ledger is refreshed. Episodes are consolidated last when a store is attached.
        """
        results: dict[str, Any] = {}
        results["curation"] = self.memory_manager.curate(
            hours_back=hours_back,
            min_importance=min_importance,
            min_salience=min_salience,
        )
        results["decay"] = self.memory_manager.run_decay()
        results["conflicts"] = self.contradiction_finder.detect_conflicts()
        if self.episodic is not None:
            results["episodes"] = self.episodic.consolidate()

        logger.info(
            "Reflection: %d curated, %d archived, %d open conflicts",
            len(results["curation"].curated),
            results["decay"].archived,
            len(results["conflicts"]),
        )
        return results

    def daily_review(self) -> str:
        """Markdown digest of today's memories."""
        today = date_key(self.memory_manager.clock())
        todays = [m for m in self.memory_manager.get_all_memories() if date_key(m.timestamp) == today]

        by_type = Counter(m.type for m in todays)
        important = [m.content for m in todays if m.importance in ("high", "critical")]
        lessons = [m.content for m in todays if m.type in ("lesson", "insight")]

        lines = [
            f"# Daily Review - {today}",
            "",
            "## Summary",
            f"Total memories: {len(todays)}",
            f"By type: {', '.join(f'{kind}({count})' for kind, count in by_type.items())}",
            "",
        ]
        if important:
            lines += ["## Important Events", *[f"- {item}" for item in important], ""]
        if lessons:
            lines += ["## Lessons & Insights", *[f"- {item}" for item in lessons], ""]
        return "\n".join(lines).rstrip() + "\n"
