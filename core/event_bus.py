"""Simple in-process event bus for decoupled lifecycle notifications."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger("ledger.events")

EventHandler = Callable[[dict[str, Any]], None]


class EventBus:
    """Dispatches events to subscribers by event name."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: EventHandler) -> Callable[[], None]:
        """Register a callback for an event; returns an unsubscribe function."""
        self._handlers[event_name].append(handler)
        return lambda: self.unsubscribe(event_name, handler)

    def unsubscribe(self, event_name: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)

    def once(self, event_name: str, handler: EventHandler) -> None:
        """Register a callback that fires for the next emission only."""

        def wrapper(payload: dict[str, Any]) -> None:
            self.unsubscribe(event_name, wrapper)
            handler(payload)

        self.subscribe(event_name, wrapper)

    def emit(self, event_name: str, payload: dict[str, Any]) -> None:
        """Emit an event to all subscribers; a failing handler does not stop the rest."""
        for handler in list(self._handlers.get(event_name, [])):
            try:
                handler(payload)
            except Exception:
                logger.exception("Handler for %s failed", event_name)

    def handler_count(self, event_name: str) -> int:
        return len(self._handlers.get(event_name, []))
