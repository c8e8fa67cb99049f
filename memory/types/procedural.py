"""Procedural memory models: decision outcomes, tunable parameters and failures."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from memory.provenance import utc_now


class ActionTally(BaseModel):
    """Cumulative outcome counters for one (situation, action) pair."""

    tries: int = 0
    successes: int = 0


class DecisionRecord(BaseModel):
    situation: str
    action: str
    tries: int
    successes: int
    success_rate: float


class DecisionOutcome(BaseModel):
    action: str
    success_rate: float
    tries: int
    successes: int


class ParamKind(str, Enum):
    NUMBER = "number"
    BOOLEAN = "boolean"
    TEXT = "text"


class BehavioralParam(BaseModel):
    """Scalar tuning knob; last write wins."""

    kind: ParamKind
    value: bool | float | str


class Failure(BaseModel):
    """Known bad approach for a situation, with the better alternative."""

    id: str
    situation: str
    failed_approach: str
    better_approach: str
    tags: list[str] = Field(default_factory=list)
    times_avoided: int = 0
    created_at: datetime = Field(default_factory=utc_now)


class FailureMatch(BaseModel):
    failure: Failure
    relevance: float


class CompactDecision(BaseModel):
    best: str
    rate: float
    alternatives: int


class CompactFailure(BaseModel):
    situation: str
    avoid: str
    instead: str


class BootState(BaseModel):
    """Minimal behavioral payload injected at session start."""

    decisions: dict[str, CompactDecision] = Field(default_factory=dict)
    hypotheses: dict[str, float] = Field(default_factory=dict)
    params: dict[str, bool | float | str] = Field(default_factory=dict)
    failures: list[CompactFailure] = Field(default_factory=list)
    booted_at: datetime = Field(default_factory=utc_now)


class StateStats(BaseModel):
    situations: int = 0
    total_decisions: int = 0
    hypotheses: int = 0
    strong_beliefs: int = 0
    weak_beliefs: int = 0
    params: int = 0
    failures: int = 0
    total_avoidances: int = 0
