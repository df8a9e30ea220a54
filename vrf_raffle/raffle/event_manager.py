"""In-memory event store for raffle observability events."""

from __future__ import annotations

from collections import defaultdict, deque
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

from vrf_raffle.raffle.models import RaffleEvent
from vrf_raffle.utils.logger import get_logger

logger = get_logger(__name__)

Listener = Callable[[RaffleEvent], None]

WILDCARD = "*"


class EventStore:
    """Bounded event history with per-event listeners."""

    def __init__(self, *, capacity: int = 200) -> None:
        self._lock = Lock()
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)
        self._events: deque[RaffleEvent] = deque(maxlen=capacity)
        self._sequence = 0

    # ------------------------------------------------------------------
    # Listener management
    # ------------------------------------------------------------------
    def add_listener(self, event_name: str, callback: Listener) -> None:
        """Register `callback` for `event_name`, or for every event with "*"."""
        with self._lock:
            self._listeners[event_name].append(callback)
        logger.debug("[EventStore] Adding listener for event=%s, callback=%s", event_name, callback)

    def remove_listener(self, event_name: str, callback: Listener) -> None:
        with self._lock:
            if callback in self._listeners.get(event_name, []):
                self._listeners[event_name].remove(callback)

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------
    def emit(self, name: str, args: Dict[str, Any], timestamp: int) -> RaffleEvent:
        """Record an event, numbered in emission order, and notify its listeners."""
        with self._lock:
            self._sequence += 1
            event = RaffleEvent(name=name, args=dict(args), timestamp=timestamp, sequence=self._sequence)
            self._events.append(event)
            listeners = list(self._listeners.get(name, [])) + list(self._listeners.get(WILDCARD, []))

        logger.info("[EventStore] %s %s", name, event.args)
        for callback in listeners:
            try:
                callback(event)
            except Exception as exc:  # pragma: no cover - listener bugs must not break the raffle
                logger.error("Listener for %s failed: %s", name, exc)
        return event

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    def get_events(self, name: Optional[str] = None, limit: Optional[int] = None) -> List[RaffleEvent]:
        with self._lock:
            items = list(self._events)
        if name is not None:
            items = [item for item in items if item.name == name]
        if limit is not None:
            return items[-limit:] if limit > 0 else []
        return items

    def last(self, name: str) -> Optional[RaffleEvent]:
        events = self.get_events(name)
        return events[-1] if events else None

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
