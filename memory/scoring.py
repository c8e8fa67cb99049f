"""Scoring helpers for memory salience and decay."""

from __future__ import annotations

from memory.types.flat import DecayRates

PROCEDURAL_TYPES = frozenset({"lesson", "decision"})
SEMANTIC_TYPES = frozenset({"insight"})


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def salience(
    novelty: float,
    retention: float,
    momentum: float,
    continuity: float,
    effort: float,
) -> float:
    """Weighted worth-keeping score in [0,1].

    A fresh record (novelty and momentum near 1, retention 0) lands around
    0.5-0.75, never at 1.0, so later passes can still tell records apart.
    """
    score = (
        0.25 * novelty
        + 0.25 * retention
        + 0.2 * momentum
        + 0.2 * continuity
        + 0.1 * (1 - effort)
    )
    return _clamp(score)


def base_decay_rate(memory_type: str, rates: DecayRates) -> float:
    """Map a memory type to its coarse decay category rate."""
    if memory_type in PROCEDURAL_TYPES:
        return rates.procedural
    if memory_type in SEMANTIC_TYPES:
        return rates.semantic
    return rates.episodic


def decay(
    memory_type: str,
    age_hours: float,
    access_count: int,
    emotional_weight: float,
    rates: DecayRates,
) -> float:
    """Accumulated staleness in [0,1]."""
    safe_age = max(0.0, age_hours)
    safe_access = max(0, access_count)
    safe_emotion = _clamp(emotional_weight)

    emotional_resistance = max(0.2, 1 - safe_emotion * 0.8)
    access_bonus = max(0.1, 1 - safe_access * 0.1)
    rate = base_decay_rate(memory_type, rates)
    return _clamp(rate * emotional_resistance * access_bonus * safe_age)


def query_words(query: str, min_length: int = 0) -> list[str]:
    """Split a query on whitespace, lowercased, dropping words at or under min_length."""
    return [word for word in query.lower().split() if len(word) > min_length]
