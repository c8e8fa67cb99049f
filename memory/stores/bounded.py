"""Capacity-limited record collections with pluggable eviction."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, MutableSequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from memory.validation import CapacityExceededError

logger = logging.getLogger("ledger.stores")

T = TypeVar("T")


@dataclass
class EvictionPolicy(Generic[T]):
    """Orders eviction candidates; the smallest key among eligible items goes first."""

    name: str
    key: Callable[[T], Any]
    eligible: Callable[[T], bool] = field(default=lambda _item: True)


def oldest_first(timestamp: Callable[[T], Any]) -> EvictionPolicy[T]:
    return EvictionPolicy(name="oldest", key=timestamp)


def lowest_score_first(score: Callable[[T], Any]) -> EvictionPolicy[T]:
    return EvictionPolicy(name="lowest-score", key=score)


class BoundedCollection(Generic[T]):
    """A list with a capacity ceiling that frees room through an eviction policy."""

    def __init__(
        self,
        field_name: str,
        capacity: int,
        policy: EvictionPolicy[T],
        items: MutableSequence[T] | None = None,
    ) -> None:
        self.field_name = field_name
        self.capacity = capacity
        self.policy = policy
        self.items: list[T] = list(items or [])

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)

    @property
    def is_full(self) -> bool:
        return len(self.items) >= self.capacity

    def select_victim(self, eligible: Callable[[T], bool] | None = None) -> T | None:
        """Return the item the policy would evict, or None."""
        check = eligible or self.policy.eligible
        candidates = [item for item in self.items if check(item)]
        if not candidates:
            return None
        # min() keeps the first of equal keys, i.e. insertion order breaks ties.
        return min(candidates, key=self.policy.key)

    def ensure_room(
        self,
        *,
        eligible: Callable[[T], bool] | None = None,
        on_evict: Callable[[T], None] | None = None,
    ) -> T | None:
        """Free a slot when full; raise when nothing is evictable.

        ``on_evict`` replaces removal (e.g. soft archival). Returns the victim.
        """
        if not self.is_full:
            return None
        victim = self.select_victim(eligible)
        if victim is None:
            raise CapacityExceededError(
                self.field_name, f"maximum of {self.capacity} entries reached"
            )
        if on_evict is None:
            self.items = [item for item in self.items if item is not victim]
        else:
            on_evict(victim)
        logger.debug("Evicted from %s by %s policy", self.field_name, self.policy.name)
        return victim

    def append(self, item: T) -> None:
        self.items.append(item)

    def replace(self, items: list[T]) -> None:
        self.items = list(items)
