"""Hypothesis ledger models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from memory.provenance import utc_now


class HypothesisNote(BaseModel):
    text: str
    supports: bool
    date: datetime = Field(default_factory=utc_now)


class Hypothesis(BaseModel):
    """Belief under test; confidence is the supporting share of all evidence."""

    key: str
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    evidence_for: int = 0
    evidence_against: int = 0
    last_tested: datetime = Field(default_factory=utc_now)
    created_at: datetime = Field(default_factory=utc_now)
    notes: list[HypothesisNote] = Field(default_factory=list)

    @property
    def total_evidence(self) -> int:
        return self.evidence_for + self.evidence_against
