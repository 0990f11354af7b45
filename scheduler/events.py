"""
Notification channel for scheduler and pipeline events.

Observers (API, CLI output, tests) subscribe to named events; emitters
never fail because of an observer.
"""

from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, List

import structlog

logger = structlog.get_logger(__name__)


class EventType(str, Enum):
    """Observable events."""
    JOB_DUE = "job_due"
    JOB_REMOVED = "job_removed"
    CRAWL_PHASE = "crawl_phase"


Listener = Callable[..., Any]


class EventBus:
    """In-process publish/subscribe channel."""

    def __init__(self):
        self._listeners: Dict[EventType, List[Listener]] = defaultdict(list)
        self.logger = logger.bind(component="event_bus")

    def subscribe(self, event: EventType, listener: Listener) -> None:
        """Register a listener called with the event payload as keyword arguments."""
        self._listeners[event].append(listener)

    def unsubscribe(self, event: EventType, listener: Listener) -> None:
        if listener in self._listeners[event]:
            self._listeners[event].remove(listener)

    def emit(self, event: EventType, **payload) -> None:
        """Notify every listener of an event. Listener errors are logged only."""
        for listener in list(self._listeners[event]):
            try:
                listener(**payload)
            except Exception as e:
                self.logger.warning(
                    "Event listener failed",
                    event=event.value,
                    error=str(e)
                )
