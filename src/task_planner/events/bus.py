"""Synchronous in-process event bus for engine notifications."""

from __future__ import annotations

import threading
from collections import deque
from typing import Callable, Union

from loguru import logger

from ..constants import DEFAULT_EVENT_HISTORY
from ..logging_utils import summarize_event
from .types import EVENT_TYPES, EngineEvent

Handler = Callable[[EngineEvent], None]
EventKey = Union[str, type[EngineEvent]]


class EventBus:
    """Dispatch engine events to subscribers in subscription order.

    Handlers run on the emitting thread before ``emit`` returns. A handler
    that raises is logged and the remaining handlers still run.
    """

    def __init__(self, history_limit: int = DEFAULT_EVENT_HISTORY) -> None:
        self._handlers: dict[str, list[Handler]] = {}
        self._wildcard: list[Handler] = []
        self._history: deque[EngineEvent] = deque(maxlen=history_limit or None)
        self._keep_history = history_limit > 0
        self._lock = threading.Lock()

    @staticmethod
    def _key(event: EventKey) -> str:
        name = event if isinstance(event, str) else event.name
        if name not in EVENT_TYPES:
            raise ValueError(f"Unknown event '{name}'. Known events: {sorted(EVENT_TYPES)}")
        return name

    def subscribe(self, event: EventKey, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for one event name or type; returns an unsubscribe callable."""
        key = self._key(event)
        with self._lock:
            self._handlers.setdefault(key, []).append(handler)

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(key, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unsubscribe

    def subscribe_all(self, handler: Handler) -> Callable[[], None]:
        with self._lock:
            self._wildcard.append(handler)

        def unsubscribe() -> None:
            with self._lock:
                if handler in self._wildcard:
                    self._wildcard.remove(handler)

        return unsubscribe

    def emit(self, event: EngineEvent) -> EngineEvent:
        with self._lock:
            handlers = list(self._handlers.get(event.name, [])) + list(self._wildcard)
            if self._keep_history:
                self._history.append(event)
        logger.debug("Event {}: {}", event.name, summarize_event(event))
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler failed for {}", event.name)
        return event

    def recent(self, limit: int = 100, name: str | None = None) -> list[EngineEvent]:
        """Return up to ``limit`` most recent events, optionally filtered by name."""
        if limit < 1:
            return []
        with self._lock:
            events = list(self._history)
        if name is not None:
            events = [e for e in events if e.name == name]
        return events[-limit:]
