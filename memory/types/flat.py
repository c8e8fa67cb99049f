"""Flat memory models."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from memory.provenance import utc_now

MemoryType = Literal["event", "conversation", "decision", "insight", "lesson", "emotional"]
MemoryTier = Literal["hot", "warm", "cold", "archived"]
ImportanceLevel = Literal["low", "medium", "high", "critical"]

MEMORY_TYPES: tuple[str, ...] = ("event", "conversation", "decision", "insight", "lesson", "emotional")
IMPORTANCE_LEVELS: tuple[str, ...] = ("low", "medium", "high", "critical")
IMPORTANCE_RANK: dict[str, int] = {level: rank for rank, level in enumerate(IMPORTANCE_LEVELS)}


class DecayRates(BaseModel):
    """Per-hour decay rates by coarse memory category."""

    procedural: float = 0.0003
    semantic: float = 0.001
    episodic: float = 0.003


class Memory(BaseModel):
    """Atomic fact with lifecycle scores."""

    id: str
    type: MemoryType = "event"
    content: str
    importance: ImportanceLevel = "medium"
    tier: MemoryTier = "hot"
    tags: list[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utc_now)
    session_id: str = ""
    salience_score: float | None = Field(default=None, ge=0.0, le=1.0)
    emotional_weight: float = Field(default=0.0, ge=0.0, le=1.0)
    access_count: int = 0
    decay_score: float = Field(default=0.0, ge=0.0, le=1.0)
    # Reserved: declared for compatibility with stored indices, never scored.
    cross_domain_access: bool = False


class DecayReport(BaseModel):
    """Counts from one decay sweep."""

    decayed: int = 0
    archived: int = 0
    kept: int = 0


class CurationResult(BaseModel):
    """Outcome of promoting memories into the durable artifact."""

    curated: list[Memory] = Field(default_factory=list)
    written: bool = False
