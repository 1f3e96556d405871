"""In-process event bus with named subscribers."""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Iterable

logger = logging.getLogger(__name__)

Handler = Callable[["Event"], Any]


@dataclass(frozen=True)
class Event:
    """A named event carrying arbitrary data."""

    name: str
    data: Any = None


class EventBus:
    """Queue of events dispatched to handlers subscribed by event name."""

    def __init__(self) -> None:
        self._queue: queue.Queue[Event] = queue.Queue()
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._lock = threading.Lock()
        self.registrations = 0
        self.subscribe("newRegisterUser", self._on_registration)

    def _on_registration(self, event: Event) -> int:
        """Count a new user registration and return the running total."""
        with self._lock:
            self.registrations += 1
            total = self.registrations
        logger.info("new user registration (%d so far)", total)
        return total

    def push(self, name: str, data: Any = None) -> Event:
        """Put a new event on the bus and return it."""
        event = Event(name=name, data=data)
        self._queue.put(event)
        return event

    def push_many(self, events: Iterable[Event], delay: float = 1.0) -> int:
        """Push events in order, pausing between them; stop at the first without data.

        Returns the number of events pushed.
        """
        pushed = 0
        for event in events:
            if event.data is None:
                break
            self._queue.put(event)
            pushed += 1
            if delay > 0:
                time.sleep(delay)
        return pushed

    def next_event(self, timeout: float | None = None) -> Event:
        """Take the next event, raising TimeoutError if none arrives in time."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutError("no event received") from None

    def subscribe(self, name: str, handler: Handler) -> None:
        with self._lock:
            self._handlers[name].append(handler)

    def dispatch(self, event: Event) -> int:
        """Call every handler subscribed to the event's name; return how many ran."""
        with self._lock:
            handlers = list(self._handlers.get(event.name, ()))
        for handler in handlers:
            handler(event)
        return len(handlers)

    def run(self, stop: threading.Event) -> None:
        """Dispatch events from the queue until ``stop`` is set."""
        while not stop.is_set():
            try:
                event = self.next_event(timeout=0.1)
            except TimeoutError:
                continue
            logger.info("new event -> %s: %r", event.name, event.data)
            self.dispatch(event)