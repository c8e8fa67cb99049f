"""Episodic memory models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from memory.provenance import utc_now


class EpisodeConnections(BaseModel):
    """Links from an episode to other records."""

    episode_ids: list[str] = Field(default_factory=list)
    opinion_ids: list[str] = Field(default_factory=list)
    memory_ids: list[str] = Field(default_factory=list)

    def total(self) -> int:
        return len(self.episode_ids) + len(self.opinion_ids) + len(self.memory_ids)


class Episode(BaseModel):
    """Structured experience record."""

    id: str
    title: str
    summary: str
    timestamp: datetime = Field(default_factory=utc_now)
    emotional_weight: float = Field(default=0.5, ge=0.0, le=1.0)
    importance: float = Field(default=0.0, ge=0.0, le=1.0)
    participants: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    lessons: list[str] = Field(default_factory=list)
    connections: EpisodeConnections = Field(default_factory=EpisodeConnections)
    access_count: int = 0
    archived: bool = False
    archived_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class EpisodeStats(BaseModel):
    """Counts reported by consolidation and stats."""

    total_episodes: int = 0
    active_episodes: int = 0
    archived_episodes: int = 0
    total_knowledge: int = 0
    decayed_this_run: int = 0
    promoted_this_run: int = 0
