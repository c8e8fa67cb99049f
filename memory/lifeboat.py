"""NOW.md lifeboat: a short checkpoint that lets a cold agent resume work."""

from __future__ import annotations

import re
from pathlib import Path

from memory.stores.json_store import read_text, write_text
from memory.types.context import Checkpoint

_STATUSES = ("in-progress", "blocked", "done", "paused")


def render_checkpoint(checkpoint: Checkpoint) -> str:
    lines = [
        "# NOW.md - Lifeboat",
        "*If you wake up with zero context, read this first.*",
        f"*Updated: {checkpoint.updated_at.isoformat()}*",
        "",
        "## Active Task",
        checkpoint.active_task,
        "",
        "## Status",
        checkpoint.status,
        "",
        "## Resume Point",
        checkpoint.resume_point,
        "",
    ]
    if checkpoint.open_threads:
        lines += ["## Open Threads", *[f"- {thread}" for thread in checkpoint.open_threads], ""]
    if checkpoint.key_context:
        lines += ["## Key Context", *[f"- {item}" for item in checkpoint.key_context], ""]
    if checkpoint.emergency:
        lines += [
            "**EMERGENCY FLAG SET** - Something critical was happening when this was saved.",
            "",
        ]
    return "\n".join(lines)


def extract_section(markdown: str, heading: str) -> str | None:
    """Return the body under ``## heading`` up to the next heading."""
    pattern = rf"^## {re.escape(heading)}\s*\n(.*?)(?=^## |\Z)"
    matches = re.findall(pattern, markdown, flags=re.MULTILINE | re.DOTALL)
    if not matches:
        return None
    body = matches[-1].strip()
    return body or None


def _bullets(section: str | None) -> list[str]:
    if not section:
        return []
    return [line[2:].strip() for line in section.splitlines() if line.startswith("- ")]


def parse_checkpoint(markdown: str) -> Checkpoint:
    """Best-effort parse of a (possibly hand-edited) lifeboat."""
    status = (extract_section(markdown, "Status") or "paused").splitlines()[0].strip()
    if status not in _STATUSES:
        # Appended session-end notes read "done - session ended normally".
        status = next((s for s in _STATUSES if status.startswith(s)), "paused")
    return Checkpoint(
        active_task=extract_section(markdown, "Active Task") or "No active task",
        status=status,
        resume_point=extract_section(markdown, "Resume Point") or "Start fresh",
        open_threads=_bullets(extract_section(markdown, "Open Threads")),
        key_context=_bullets(extract_section(markdown, "Key Context")),
        emergency="EMERGENCY FLAG SET" in markdown,
    )


class Lifeboat:
    """Reads and writes the lifeboat file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def update(self, checkpoint: Checkpoint) -> None:
        write_text(self.path, render_checkpoint(checkpoint))

    def read(self) -> str | None:
        return read_text(self.path)

    def read_checkpoint(self) -> Checkpoint | None:
        raw = self.read()
        return parse_checkpoint(raw) if raw else None

    def write_raw(self, content: str) -> None:
        """Overwrite with caller-provided text, preserving hand-written notes."""
        write_text(self.path, content)
