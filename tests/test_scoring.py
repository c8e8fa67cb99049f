"""Salience and decay scoring tests."""

from __future__ import annotations

import itertools

from memory.scoring import base_decay_rate, decay, query_words, salience
from memory.types.flat import DecayRates

RATES = DecayRates()


def test_salience_stays_bounded_across_input_grid() -> None:
    grid = [0.0, 0.25, 0.5, 0.75, 1.0]
    for values in itertools.product(grid, repeat=5):
        assert 0.0 <= salience(*values) <= 1.0


def test_salience_clamps_out_of_range_inputs() -> None:
    assert salience(5, 5, 5, 5, -5) == 1.0
    assert salience(-5, -5, -5, -5, 5) == 0.0


def test_fresh_record_does_not_saturate() -> None:
    fresh = salience(novelty=1.0, retention=0.0, momentum=1.0, continuity=1.0, effort=0.0)
    assert fresh < 1.0
    assert abs(fresh - 0.75) < 1e-9


def test_salience_weights() -> None:
    assert abs(salience(1.0, 0.0, 1.0, 0.1, 0.5) - 0.52) < 1e-9


def test_decay_category_rates() -> None:
    assert base_decay_rate("lesson", RATES) == RATES.procedural
    assert base_decay_rate("decision", RATES) == RATES.procedural
    assert base_decay_rate("insight", RATES) == RATES.semantic
    assert base_decay_rate("event", RATES) == RATES.episodic
    assert base_decay_rate("emotional", RATES) == RATES.episodic


def test_decay_non_decreasing_in_age() -> None:
    scores = [decay("event", hours, 0, 0.0, RATES) for hours in (0, 1, 10, 100, 1000, 10_000)]
    assert scores == sorted(scores)
    assert scores[-1] == 1.0


def test_decay_non_increasing_in_access_and_emotion() -> None:
    by_access = [decay("event", 100, access, 0.0, RATES) for access in range(0, 15)]
    assert by_access == sorted(by_access, reverse=True)

    by_emotion = [decay("event", 100, 0, weight / 10, RATES) for weight in range(0, 11)]
    assert by_emotion == sorted(by_emotion, reverse=True)


def test_decay_floors_resistance_and_bonus() -> None:
    # Emotional resistance floors at 0.2, access bonus at 0.1.
    expected = RATES.episodic * 0.2 * 0.1 * 100
    assert abs(decay("event", 100, 50, 1.0, RATES) - expected) < 1e-12


def test_decay_clamps_malformed_inputs() -> None:
    assert decay("event", -50, -3, -1.0, RATES) == 0.0
    assert decay("event", 10, 0, 7.0, RATES) == decay("event", 10, 0, 1.0, RATES)


def test_query_words_filters_short_words() -> None:
    assert query_words("Fix the API bug") == ["fix", "the", "api", "bug"]
    assert query_words("Fix the API bug now", min_length=2) == ["fix", "the", "api", "bug", "now"]
    assert query_words("an ox is here", min_length=2) == ["here"]
