# Security Audit - Event Store
#
# Bounded in-memory history of SecurityEvents plus the transient alert
# queue of HIGH/CRITICAL events awaiting dispatch.
#
# Both structures sit behind one lock so an add() racing a drain can
# neither lose an event nor hand it out twice. The lock is only held for
# in-memory copies and appends, never across I/O.

import threading
from collections import deque
from typing import Deque, Dict, List, Optional

from ..core.config import DEFAULT_MAX_EVENTS
from ..core.models import EventFilter, SecurityEvent, StoreStatistics
from ..core.taxonomy import SEVERITY_ORDER, SecurityEventType, Severity

ALERT_SEVERITY = Severity.HIGH
RECENT_THREATS_LIMIT = 10


class EventPersistence:
    """Hook for durable storage backends (database, file).

    Called synchronously after each event is stored in memory; failures
    are logged by the caller and never drop the in-memory copy.
    """

    def persist(self, event: SecurityEvent, encrypt: bool = False) -> None:
        raise NotImplementedError


class AuditEventStore:
    """Ring buffer of security events with filtered queries.

    Args:
        max_size: Maximum events retained; the oldest is evicted first.
    """

    def __init__(self, max_size: int = DEFAULT_MAX_EVENTS):
        if max_size < 1:
            raise ValueError("max_size must be positive")
        self._max_size = max_size
        self._lock = threading.Lock()
        self._events: Deque[SecurityEvent] = deque(maxlen=max_size)
        self._alert_queue: List[SecurityEvent] = []

        self._total_received = 0
        self._total_evicted = 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(self, event: SecurityEvent) -> None:
        """Append an event, evicting the oldest one when full."""
        with self._lock:
            if len(self._events) == self._max_size:
                self._total_evicted += 1
            self._events.append(event)
            self._total_received += 1
            if event.severity.at_least(ALERT_SEVERITY):
                self._alert_queue.append(event)

    def get_alert_queue(self) -> List[SecurityEvent]:
        """Return every queued alert event and empty the queue.

        Each queued event is returned by exactly one call.
        """
        with self._lock:
            drained = self._alert_queue
            self._alert_queue = []
        return drained

    def clear(self) -> int:
        """Drop all events and queued alerts. Returns count removed."""
        with self._lock:
            count = len(self._events)
            self._events.clear()
            self._alert_queue = []
            return count

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def snapshot(self) -> List[SecurityEvent]:
        """Consistent copy of the current history (oldest first)."""
        with self._lock:
            return list(self._events)

    def get_events(self, filter: Optional[EventFilter] = None) -> List[SecurityEvent]:
        """Return stored events matching ``filter`` in insertion order.

        ``filter.limit`` is applied after every other criterion and keeps
        the most recent matches.
        """
        events = self.snapshot()
        if filter is None:
            return events

        matched = [e for e in events if filter.matches(e)]
        if filter.limit is not None:
            if filter.limit <= 0:
                return []
            matched = matched[-filter.limit:]
        return matched

    def get_statistics(self) -> StoreStatistics:
        """Counts by severity and type plus the latest HIGH+ events."""
        events = self.snapshot()

        by_severity: Dict[Severity, int] = {s: 0 for s in SEVERITY_ORDER}
        by_type: Dict[SecurityEventType, int] = {}
        threats: List[SecurityEvent] = []

        for event in events:
            by_severity[event.severity] += 1
            by_type[event.type] = by_type.get(event.type, 0) + 1
            if event.severity.at_least(ALERT_SEVERITY):
                threats.append(event)

        return StoreStatistics(
            total=len(events),
            by_severity=by_severity,
            by_type=by_type,
            recent_threats=threats[-RECENT_THREATS_LIMIT:],
        )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._events)

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def pending_alerts(self) -> int:
        with self._lock:
            return len(self._alert_queue)

    def stats(self) -> Dict[str, int]:
        """Return store counters."""
        with self._lock:
            return {
                "total_received": self._total_received,
                "total_evicted": self._total_evicted,
                "current_size": len(self._events),
                "max_size": self._max_size,
                "pending_alerts": len(self._alert_queue),
            }
