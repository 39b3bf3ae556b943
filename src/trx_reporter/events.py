"""
Synchronous lifecycle event source shared by runners and reporters.
"""

from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

from .logger_config import get_logger
from .records import TestResults

logger = get_logger(__name__)

EVENT_RUN_BEGIN = "start"
EVENT_TEST_BEGIN = "test"
EVENT_TEST_END = "test end"
EVENT_FAIL = "fail"
EVENT_SUITE_END = "suite end"
EVENT_RUN_END = "end"

EVENTS = (
    EVENT_RUN_BEGIN,
    EVENT_TEST_BEGIN,
    EVENT_TEST_END,
    EVENT_FAIL,
    EVENT_SUITE_END,
    EVENT_RUN_END,
)

Listener = Callable[..., Any]


class Runner:
    """Event source for one linear test run.

    Listeners are called synchronously, in registration order, on the
    thread that emits the event.
    """

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)
        # Set by the report builder when the run ends
        self.test_results: Optional[TestResults] = None

    def on(self, event: str, listener: Listener) -> Listener:
        """Register ``listener`` for ``event`` and return it."""
        if event not in EVENTS:
            raise ValueError(f"Unknown event '{event}'. Must be one of: {', '.join(EVENTS)}")
        self._listeners[event].append(listener)
        return listener

    def off(self, event: str, listener: Listener) -> None:
        try:
            self._listeners[event].remove(listener)
        except ValueError:
            pass

    def listeners(self, event: str) -> List[Listener]:
        return list(self._listeners.get(event, ()))

    def emit(self, event: str, *args: Any) -> None:
        logger.debug(f"emit {event!r} to {len(self._listeners.get(event, ()))} listener(s)")
        for listener in self.listeners(event):
            listener(*args)
