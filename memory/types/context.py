"""Session context models."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from memory.provenance import utc_now
from memory.types.episodic import Episode
from memory.types.flat import Memory
from memory.types.procedural import BootState
from memory.types.semantic import Opinion

CheckpointStatus = Literal["in-progress", "blocked", "done", "paused"]


class Checkpoint(BaseModel):
    """Lifeboat contents: enough to resume with zero context."""

    active_task: str
    status: CheckpointStatus = "in-progress"
    resume_point: str
    open_threads: list[str] = Field(default_factory=list)
    key_context: list[str] = Field(default_factory=list)
    emergency: bool = False
    updated_at: datetime = Field(default_factory=utc_now)


class WakeContext(BaseModel):
    """Everything handed to the agent at session start."""

    session_id: str
    instance_id: str
    lifeboat: Checkpoint | None = None
    recent_memories: list[Memory] = Field(default_factory=list)
    opinions: list[Opinion] = Field(default_factory=list)
    behavioral_state: BootState = Field(default_factory=BootState)
    recent_episodes: list[Episode] = Field(default_factory=list)
    last_session_summary: str | None = None
    payload_bytes: int = 0


class SessionSummary(BaseModel):
    """End-of-session reflection report."""

    session_id: str
    started_at: datetime
    ended_at: datetime = Field(default_factory=utc_now)
    summary: str
    memories_created: int = 0
    memories_promoted: int = 0
    memories_decayed: int = 0
    memories_archived: int = 0
    opinions_formed: int = 0
    opinions_changed: int = 0
    conflicts_detected: int = 0
