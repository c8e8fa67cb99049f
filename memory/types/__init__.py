"""Typed memory payload models."""

from memory.types.context import Checkpoint, SessionSummary, WakeContext
from memory.types.episodic import Episode, EpisodeConnections, EpisodeStats
from memory.types.flat import CurationResult, DecayRates, DecayReport, Memory
from memory.types.procedural import (
    BehavioralParam,
    BootState,
    DecisionOutcome,
    DecisionRecord,
    Failure,
    FailureMatch,
    ParamKind,
    StateStats,
)
from memory.types.semantic import Conflict, KnowledgeEntry, Opinion
from memory.types.uncertainty import Hypothesis, HypothesisNote

__all__ = [
    "BehavioralParam",
    "BootState",
    "Checkpoint",
    "Conflict",
    "CurationResult",
    "DecayRates",
    "DecayReport",
    "DecisionOutcome",
    "DecisionRecord",
    "Episode",
    "EpisodeConnections",
    "EpisodeStats",
    "Failure",
    "FailureMatch",
    "Hypothesis",
    "HypothesisNote",
    "KnowledgeEntry",
    "Memory",
    "Opinion",
    "ParamKind",
    "SessionSummary",
    "StateStats",
    "WakeContext",
]
