"""Behavioral state: decision table, hypotheses, parameters and failure registry.

Each layer persists to its own file under ``state/`` and loads independently.
``boot()`` compacts all four into the small payload handed to an agent at
session start.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter

from memory.provenance import as_utc, new_id, utc_now
from memory.scoring import query_words
from memory.stores.bounded import BoundedCollection, EvictionPolicy
from memory.stores.json_store import JsonIndex, LoadResult, load_models
from memory.types.procedural import (
    ActionTally,
    BehavioralParam,
    BootState,
    CompactDecision,
    CompactFailure,
    DecisionOutcome,
    DecisionRecord,
    Failure,
    FailureMatch,
    ParamKind,
    StateStats,
)
from memory.types.uncertainty import Hypothesis, HypothesisNote
from memory.validation import (
    MAX_NAME_LENGTH,
    MemoryValidationError,
    validate_confidence,
    validate_number,
    validate_storage_path,
    validate_string,
)

logger = logging.getLogger("ledger.behavior")

MAX_SITUATIONS = 10_000
MAX_ACTIONS_PER_SITUATION = 100
MAX_HYPOTHESES = 5_000
MAX_HYPOTHESIS_KEY_LENGTH = 200
MAX_HYPOTHESIS_NOTE_LENGTH = 2_000
MAX_HYPOTHESIS_NOTES = 50
MAX_PARAMS = 1_000
MAX_PARAM_KEY_LENGTH = 200
MAX_FAILURES = 10_000
MAX_FAILURE_TEXT_LENGTH = 2_000
MAX_FAILURE_TAGS = 20
MAX_FAILURE_TAG_LENGTH = 100

SINGLE_TRY_DISCOUNT = 0.5
BOOT_MIN_TRIES = 2
BOOT_MIN_EVIDENCE = 2
BOOT_RECENT_FAILURES = 20

_DECISIONS = TypeAdapter(dict[str, dict[str, ActionTally]])
_HYPOTHESES = TypeAdapter(list[Hypothesis])
_PARAMS = TypeAdapter(dict[str, BehavioralParam])
_FAILURES = TypeAdapter(list[Failure])


def _rate(tally: ActionTally) -> float:
    return tally.successes / tally.tries if tally.tries > 0 else 0.0


def param_from_value(value: Any) -> BehavioralParam:
    """Classify a raw scalar into a closed parameter kind."""
    # bool is a subclass of int, so it has to be checked first.
    if isinstance(value, bool):
        return BehavioralParam(kind=ParamKind.BOOLEAN, value=value)
    if isinstance(value, (int, float)):
        return BehavioralParam(kind=ParamKind.NUMBER, value=validate_number(value, "value"))
    if isinstance(value, str):
        if len(value) > MAX_NAME_LENGTH:
            raise MemoryValidationError(
                "value", f"string value must be at most {MAX_NAME_LENGTH} characters"
            )
        return BehavioralParam(kind=ParamKind.TEXT, value=value)
    raise MemoryValidationError("value", "must be a number, boolean, or string")


def _failure_eviction() -> EvictionPolicy[Failure]:
    return EvictionPolicy(
        name="least-avoided",
        key=lambda f: (f.times_avoided, as_utc(f.created_at)),
    )


class BehavioralState:
    """Operational state that changes how an agent acts, not what it remembers."""

    def __init__(
        self,
        storage_root: str | Path,
        clock: Callable[[], datetime] = utc_now,
        max_failures: int = MAX_FAILURES,
    ) -> None:
        state_dir = validate_storage_path(storage_root) / "state"
        self.clock = clock
        self._decision_index = JsonIndex(state_dir / "decisions.json")
        self._hypothesis_index = JsonIndex(state_dir / "hypotheses.json")
        self._param_index = JsonIndex(state_dir / "params.json")
        self._failure_index = JsonIndex(state_dir / "failures.json")

        self.decisions: dict[str, dict[str, ActionTally]] = {}
        self.hypotheses: dict[str, Hypothesis] = {}
        self.params: dict[str, BehavioralParam] = {}
        self._failures: BoundedCollection[Failure] = BoundedCollection(
            "failures", max_failures, _failure_eviction()
        )

        self.decisions_loaded = False
        self.hypotheses_loaded = False
        self.params_loaded = False
        self.failures_loaded = False

    # ── persistence ────────────────────────────────────────────────────

    def load_decisions(self) -> LoadResult:
        data, result = load_models(self._decision_index, _DECISIONS)
        self.decisions = data or {}
        self.decisions_loaded = True
        return result

    def load_hypotheses(self) -> LoadResult:
        data, result = load_models(self._hypothesis_index, _HYPOTHESES)
        self.hypotheses = {h.key: h for h in data or []}
        self.hypotheses_loaded = True
        return result

    def load_params(self) -> LoadResult:
        data, result = load_models(self._param_index, _PARAMS)
        self.params = data or {}
        self.params_loaded = True
        return result

    def load_failures(self) -> LoadResult:
        data, result = load_models(self._failure_index, _FAILURES)
        self._failures.replace(data or [])
        self.failures_loaded = True
        return result

    def load(self) -> dict[str, LoadResult]:
        """Reload all four layers."""
        return {
            "decisions": self.load_decisions(),
            "hypotheses": self.load_hypotheses(),
            "params": self.load_params(),
            "failures": self.load_failures(),
        }

    def flush_decisions(self) -> None:
        self._decision_index.write(
            {
                situation: {action: tally.model_dump() for action, tally in actions.items()}
                for situation, actions in self.decisions.items()
            }
        )

    def flush_hypotheses(self) -> None:
        self._hypothesis_index.write([h.model_dump(mode="json") for h in self.hypotheses.values()])

    def flush_params(self) -> None:
        self._param_index.write({key: p.model_dump(mode="json") for key, p in self.params.items()})

    def flush_failures(self) -> None:
        self._failure_index.write([f.model_dump(mode="json") for f in self._failures])

    def flush(self) -> None:
        self.flush_decisions()
        self.flush_hypotheses()
        self.flush_params()
        self.flush_failures()

    def _ensure_all(self) -> None:
        if not self.decisions_loaded:
            self.load_decisions()
        if not self.hypotheses_loaded:
            self.load_hypotheses()
        if not self.params_loaded:
            self.load_params()
        if not self.failures_loaded:
            self.load_failures()

    # ── decision table ─────────────────────────────────────────────────

    def decide(self, situation: str, action: str, success: bool) -> DecisionRecord:
        """Count one outcome of taking ``action`` in ``situation``."""
        if not self.decisions_loaded:
            self.load_decisions()
        situation = validate_string(situation, "situation", max_length=MAX_NAME_LENGTH)
        action = validate_string(action, "action", max_length=MAX_NAME_LENGTH)

        if situation not in self.decisions and len(self.decisions) >= MAX_SITUATIONS:
            raise MemoryValidationError("decisions", f"maximum of {MAX_SITUATIONS} situations reached")
        actions = self.decisions.get(situation, {})
        if action not in actions and len(actions) >= MAX_ACTIONS_PER_SITUATION:
            raise MemoryValidationError(
                "actions", f"maximum of {MAX_ACTIONS_PER_SITUATION} actions per situation"
            )
        self.decisions[situation] = actions

        tally = actions.setdefault(action, ActionTally())
        tally.tries += 1
        if success:
            tally.successes += 1
        self.flush_decisions()
        return DecisionRecord(
            situation=situation,
            action=action,
            tries=tally.tries,
            successes=tally.successes,
            success_rate=_rate(tally),
        )

    def best_action(self, situation: str) -> DecisionOutcome | None:
        """Highest success rate; single-try rates are halved, ties go to more tries."""
        if not self.decisions_loaded:
            self.load_decisions()
        situation = validate_string(situation, "situation", max_length=MAX_NAME_LENGTH)
        best: DecisionOutcome | None = None
        for action, tally in self.decisions.get(situation, {}).items():
            rate = _rate(tally)
            adjusted = rate if tally.tries >= 2 else rate * SINGLE_TRY_DISCOUNT
            if (
                best is None
                or adjusted > best.success_rate
                or (adjusted == best.success_rate and tally.tries > best.tries)
            ):
                best = DecisionOutcome(
                    action=action,
                    success_rate=adjusted,
                    tries=tally.tries,
                    successes=tally.successes,
                )
        return best

    def get_actions(self, situation: str) -> list[DecisionOutcome]:
        if not self.decisions_loaded:
            self.load_decisions()
        situation = validate_string(situation, "situation", max_length=MAX_NAME_LENGTH)
        outcomes = [
            DecisionOutcome(
                action=action,
                success_rate=_rate(tally),
                tries=tally.tries,
                successes=tally.successes,
            )
            for action, tally in self.decisions.get(situation, {}).items()
        ]
        return sorted(outcomes, key=lambda o: (o.success_rate, o.tries), reverse=True)

    def get_situations(self) -> list[str]:
        if not self.decisions_loaded:
            self.load_decisions()
        return list(self.decisions)

    # ── hypotheses ─────────────────────────────────────────────────────

    def _new_hypothesis(self, key: str, confidence: float) -> Hypothesis:
        if len(self.hypotheses) >= MAX_HYPOTHESES:
            raise MemoryValidationError("hypotheses", f"maximum of {MAX_HYPOTHESES} hypotheses reached")
        now = self.clock()
        hypothesis = Hypothesis(key=key, confidence=confidence, last_tested=now, created_at=now)
        self.hypotheses[key] = hypothesis
        return hypothesis

    def evidence(self, key: str, supports: bool, note: str | None = None) -> Hypothesis:
        """Add evidence, creating the hypothesis on first sight."""
        if not self.hypotheses_loaded:
            self.load_hypotheses()
        key = validate_string(key, "key", max_length=MAX_HYPOTHESIS_KEY_LENGTH)
        if note is not None:
            note = validate_string(note, "note", max_length=MAX_HYPOTHESIS_NOTE_LENGTH)

        hypothesis = self.hypotheses.get(key) or self._new_hypothesis(key, 0.5)
        if supports:
            hypothesis.evidence_for += 1
        else:
            hypothesis.evidence_against += 1
        hypothesis.confidence = hypothesis.evidence_for / hypothesis.total_evidence
        hypothesis.last_tested = self.clock()

        if note:
            hypothesis.notes.append(HypothesisNote(text=note, supports=supports, date=self.clock()))
            del hypothesis.notes[:-MAX_HYPOTHESIS_NOTES]

        self.flush_hypotheses()
        return hypothesis.model_copy(deep=True)

    def hypothesize(self, key: str, starting_confidence: float = 0.5) -> Hypothesis:
        """Declare a belief to test; an existing one is returned unchanged."""
        if not self.hypotheses_loaded:
            self.load_hypotheses()
        key = validate_string(key, "key", max_length=MAX_HYPOTHESIS_KEY_LENGTH)
        starting_confidence = validate_confidence(starting_confidence, "starting_confidence")
        if key in self.hypotheses:
            return self.hypotheses[key].model_copy(deep=True)
        hypothesis = self._new_hypothesis(key, starting_confidence)
        self.flush_hypotheses()
        return hypothesis.model_copy(deep=True)

    def get_hypothesis(self, key: str) -> Hypothesis | None:
        if not self.hypotheses_loaded:
            self.load_hypotheses()
        hypothesis = self.hypotheses.get(key)
        return hypothesis.model_copy(deep=True) if hypothesis else None

    def get_hypotheses(
        self,
        min_confidence: float | None = None,
        max_confidence: float | None = None,
    ) -> list[Hypothesis]:
        if not self.hypotheses_loaded:
            self.load_hypotheses()
        results = list(self.hypotheses.values())
        if min_confidence is not None:
            results = [h for h in results if h.confidence >= min_confidence]
        if max_confidence is not None:
            results = [h for h in results if h.confidence <= max_confidence]
        return sorted(results, key=lambda h: h.confidence, reverse=True)

    def remove_hypothesis(self, key: str) -> bool:
        if not self.hypotheses_loaded:
            self.load_hypotheses()
        if self.hypotheses.pop(key, None) is None:
            return False
        self.flush_hypotheses()
        return True

    # ── parameters ─────────────────────────────────────────────────────

    def set_param(self, key: str, value: bool | float | str) -> BehavioralParam:
        if not self.params_loaded:
            self.load_params()
        key = validate_string(key, "key", max_length=MAX_PARAM_KEY_LENGTH)
        param = param_from_value(value)
        if key not in self.params and len(self.params) >= MAX_PARAMS:
            raise MemoryValidationError("params", f"maximum of {MAX_PARAMS} parameters reached")
        self.params[key] = param
        self.flush_params()
        return param

    def get_param(self, key: str) -> bool | float | str | None:
        if not self.params_loaded:
            self.load_params()
        param = self.params.get(key)
        return param.value if param else None

    def get_all_params(self) -> dict[str, bool | float | str]:
        if not self.params_loaded:
            self.load_params()
        return {key: param.value for key, param in self.params.items()}

    def remove_param(self, key: str) -> bool:
        if not self.params_loaded:
            self.load_params()
        if self.params.pop(key, None) is None:
            return False
        self.flush_params()
        return True

    # ── failure registry ───────────────────────────────────────────────

    @property
    def failures(self) -> list[Failure]:
        return self._failures.items

    def record_failure(
        self,
        situation: str,
        failed_approach: str,
        better_approach: str,
        tags: Iterable[str] | None = None,
    ) -> Failure:
        """Remember what went wrong; at capacity the least-avoided, oldest entry goes."""
        if not self.failures_loaded:
            self.load_failures()
        situation = validate_string(situation, "situation", max_length=MAX_FAILURE_TEXT_LENGTH)
        failed_approach = validate_string(
            failed_approach, "failed_approach", max_length=MAX_FAILURE_TEXT_LENGTH
        )
        better_approach = validate_string(
            better_approach, "better_approach", max_length=MAX_FAILURE_TEXT_LENGTH
        )
        if isinstance(tags, str):
            raise MemoryValidationError("tags", "must be a list")
        clean_tags = [
            validate_string(tag, "tag", max_length=MAX_FAILURE_TAG_LENGTH)
            for tag in list(tags or [])[:MAX_FAILURE_TAGS]
        ]

        self._failures.ensure_room()
        failure = Failure(
            id=new_id("f"),
            situation=situation,
            failed_approach=failed_approach,
            better_approach=better_approach,
            tags=clean_tags,
            created_at=self.clock(),
        )
        self._failures.append(failure)
        self.flush_failures()
        return failure

    def check_failures(self, situation: str) -> list[FailureMatch]:
        """Known failures resembling ``situation``, most relevant first."""
        if not self.failures_loaded:
            self.load_failures()
        words = query_words(situation, min_length=2)
        matches: list[FailureMatch] = []
        for failure in self.failures:
            searchable = f"{failure.situation} {' '.join(failure.tags)}".lower()
            score = sum(1 for word in words if word in searchable)
            score += sum(2 for tag in failure.tags if tag.lower() in words)
            if score > 0:
                relevance = min(1.0, score / max(len(words), 1))
                matches.append(FailureMatch(failure=failure, relevance=relevance))
        return sorted(matches, key=lambda m: m.relevance, reverse=True)

    def avoided(self, failure_id: str) -> bool:
        """Credit a failure as successfully avoided."""
        if not self.failures_loaded:
            self.load_failures()
        failure = next((f for f in self.failures if f.id == failure_id), None)
        if failure is None:
            return False
        failure.times_avoided += 1
        self.flush_failures()
        return True

    def get_failures(self, tags: Iterable[str] | None = None) -> list[Failure]:
        if not self.failures_loaded:
            self.load_failures()
        wanted = {tag.lower() for tag in tags or []}
        if not wanted:
            return list(self.failures)
        return [f for f in self.failures if any(tag.lower() in wanted for tag in f.tags)]

    # ── boot / stats ───────────────────────────────────────────────────

    def boot(self) -> BootState:
        """Compact all four layers into the session-start payload."""
        self._ensure_all()

        decisions: dict[str, CompactDecision] = {}
        for situation, actions in self.decisions.items():
            tested = [(a, t) for a, t in actions.items() if t.tries >= BOOT_MIN_TRIES]
            if not tested:
                continue
            tested.sort(key=lambda pair: _rate(pair[1]), reverse=True)
            best_name, best_tally = tested[0]
            decisions[situation] = CompactDecision(
                best=best_name,
                rate=round(_rate(best_tally), 2),
                alternatives=len(tested) - 1,
            )

        hypotheses = {
            key: round(h.confidence, 2)
            for key, h in self.hypotheses.items()
            if h.total_evidence >= BOOT_MIN_EVIDENCE
        }

        recent = sorted(self.failures, key=lambda f: as_utc(f.created_at), reverse=True)
        failures = [
            CompactFailure(situation=f.situation, avoid=f.failed_approach, instead=f.better_approach)
            for f in recent[:BOOT_RECENT_FAILURES]
        ]

        state = BootState(
            decisions=decisions,
            hypotheses=hypotheses,
            params=self.get_all_params(),
            failures=failures,
            booted_at=self.clock(),
        )
        logger.info(
            "Behavioral boot: %d situations, %d hypotheses, %d params, %d failures",
            len(decisions),
            len(hypotheses),
            len(state.params),
            len(failures),
        )
        return state

    def stats(self) -> StateStats:
        self._ensure_all()
        return StateStats(
            situations=len(self.decisions),
            total_decisions=sum(t.tries for actions in self.decisions.values() for t in actions.values()),
            hypotheses=len(self.hypotheses),
            strong_beliefs=sum(1 for h in self.hypotheses.values() if h.confidence >= 0.8),
            weak_beliefs=sum(1 for h in self.hypotheses.values() if h.confidence <= 0.3),
            params=len(self.params),
            failures=len(self.failures),
            total_avoidances=sum(f.times_avoided for f in self.failures),
        )
