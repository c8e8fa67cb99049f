"""Semantic memory models: knowledge, opinions and the conflicts between them."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from memory.provenance import utc_now


class KnowledgeHistory(BaseModel):
    """Superseded insight for a topic."""

    insight: str
    confidence: float
    date: datetime


class KnowledgeEntry(BaseModel):
    """Topic-keyed distilled insight with versioned history."""

    id: str
    topic: str
    insight: str
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    tags: list[str] = Field(default_factory=list)
    source_episode_ids: list[str] = Field(default_factory=list)
    previous_insights: list[KnowledgeHistory] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class OpinionHistory(BaseModel):
    """Prior value of an opinion."""

    opinion: str
    confidence: float
    date: datetime
    reason_for_change: str | None = None


class Opinion(BaseModel):
    """Topic-keyed belief with its full history."""

    id: str
    topic: str
    current: str
    confidence: float = Field(ge=0.0, le=1.0)
    formed_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    previous_opinions: list[OpinionHistory] = Field(default_factory=list)


class ConflictPosition(BaseModel):
    content: str
    session: str
    date: str


class Conflict(BaseModel):
    """Divergence between an opinion's prior and current value."""

    id: str
    topic: str
    position_a: ConflictPosition
    position_b: ConflictPosition
    resolved: bool = False
    resolution: str | None = None
    resolved_at: datetime | None = None
