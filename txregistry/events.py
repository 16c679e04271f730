"""
ValidationResult notifications.

Listeners are plain callables taking a ValidationResult. They run
synchronously after the registry commits, in subscription order.
"""

import logging
import threading
from collections import deque
from typing import Callable, Deque, List, Optional

from .models import ValidationResult

logger = logging.getLogger(__name__)

Listener = Callable[[ValidationResult], None]


class EventEmitter:
    """Fan-out of ValidationResult events to subscribed listeners."""

    def __init__(self):
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            A callable that removes the listener again
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: ValidationResult) -> None:
        # a failing listener must not hide the event from the others;
        # the registry state is already committed at this point
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("ValidationResult listener %r failed", listener)


class EventLog:
    """Bounded, thread-safe record of emitted events. Usable as a listener."""

    def __init__(self, maxlen: int = 1000):
        self._events: Deque[ValidationResult] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def __call__(self, event: ValidationResult) -> None:
        with self._lock:
            self._events.append(event)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def recent(self, limit: Optional[int] = None) -> List[ValidationResult]:
        """Most recent events, oldest first."""
        with self._lock:
            events = list(self._events)
        if limit is not None:
            events = events[-limit:] if limit > 0 else []
        return events

    def find(self, identity_key: str) -> List[ValidationResult]:
        with self._lock:
            return [e for e in self._events if e.identity_key == identity_key]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
