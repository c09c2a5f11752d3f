"""
Discrete event simulation engine core.

Provides the time-ordered event queue and virtual clock that drive a
simulation run. Time is virtual and measured in milliseconds.
"""

import heapq
import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import CausalityError


class EventKind(Enum):
    """Closed set of event kinds understood by nodes."""
    ARRIVAL = "arrival"
    PROCESS_START = "process_start"
    PROCESS_COMPLETE = "process_complete"
    RESPONSE_DEPARTURE = "response_departure"
    RESPONSE_ARRIVAL = "response_arrival"
    TIMEOUT = "timeout"
    HEALTH_TOGGLE = "health_toggle"
    STATS_TICK = "stats_tick"


@dataclass(frozen=True)
class Tick:
    """Payload for self-rescheduling periodic events."""
    interval_ms: float = 0.0
    # Ticks from an older generation are ignored by the receiver
    generation: int = 0


@dataclass(frozen=True, order=True)
class Event:
    """
    An event in the simulation.

    Attributes:
        time: When the event occurs (in milliseconds)
        sequence: Insertion order, breaks ties between equal times
        target: Id of the node that handles the event
        kind: What happened
        payload: Request, Tick, health flag or request id
    """
    time: float
    sequence: int
    target: str = field(compare=False)
    kind: EventKind = field(compare=False)
    payload: Any = field(default=None, compare=False)


@dataclass(frozen=True)
class ScheduleCmd:
    """
    A node's request to schedule an event relative to the current time.

    Attributes:
        delay: Milliseconds from now
        target: Node that should receive the event
        kind: Event kind
        payload: Event payload
    """
    delay: float
    target: str
    kind: EventKind
    payload: Any = None


class EventQueue:
    """
    Priority queue for managing simulation events.

    Events pop in ascending ``(time, sequence)`` order with O(log n)
    insertion and removal. The clock only moves when an event is popped.
    """

    def __init__(self):
        self._queue: list[Event] = []
        self._current_time: float = 0.0
        self._sequence = itertools.count()
        self._event_count: int = 0

    def schedule_at(self, time: float, target: str, kind: EventKind, payload: Any = None) -> Event:
        """
        Schedule an event at an absolute time.

        Args:
            time: Absolute time in milliseconds when the event should fire
            target: Node that handles the event
            kind: Event kind
            payload: Event payload

        Returns:
            The created Event

        Raises:
            CausalityError: If ``time`` lies before the current time
        """
        if time < self._current_time:
            raise CausalityError(time, self._current_time)
        event = Event(
            time=time,
            sequence=next(self._sequence),
            target=target,
            kind=kind,
            payload=payload,
        )
        heapq.heappush(self._queue, event)
        self._event_count += 1
        return event

    def schedule(self, delay: float, target: str, kind: EventKind, payload: Any = None) -> Event:
        """Schedule an event ``delay`` milliseconds after the current time."""
        return self.schedule_at(self._current_time + delay, target, kind, payload)

    def pop_next(self) -> Event | None:
        """
        Remove and return the next event, advancing the clock to its time.

        Returns:
            The next event or None if the queue is empty
        """
        if not self._queue:
            return None
        event = heapq.heappop(self._queue)
        self._current_time = event.time
        return event

    def peek(self) -> Event | None:
        """Get the next event without removing it."""
        if not self._queue:
            return None
        return self._queue[0]

    def now(self) -> float:
        """Time of the last popped event, in milliseconds."""
        return self._current_time

    @property
    def current_time(self) -> float:
        return self._current_time

    @property
    def size(self) -> int:
        """Number of pending events."""
        return len(self._queue)

    @property
    def total_events(self) -> int:
        """Total number of events ever scheduled."""
        return self._event_count

    def is_empty(self) -> bool:
        return len(self._queue) == 0

    def clear(self):
        """Drop all pending events. The clock is left where it is."""
        self._queue.clear()
