"""
Abstract Audit Sink

DESIGN DECISION: Where audit events end up (a database table, a file,
the host app's analytics) is not the core's business. The logger only
talks to this interface, which allows us to:
1. Persist events in whatever store the host app uses
2. Use in-memory storage for testing
3. Run with no persistence at all (local structured logs only)
"""

import threading
from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from voice_expense.models.audit import AuditEvent, AuditEventType


class AuditSink(ABC):
    """
    Abstract interface for audit event persistence.

    Implementations must be safe to call from the speech engine's threads.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event.

        Args:
            event: The event to record

        Returns:
            True if the event was stored
        """
        pass

    @abstractmethod
    def get_events_for_session(self, correlation_id: UUID) -> list[AuditEvent]:
        """
        Get all events of one capture session.

        Returns:
            Events in the order they were appended
        """
        pass

    @abstractmethod
    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class InMemoryAuditSink(AuditSink):
    """Keeps events in a list. Used by tests and by hosts without storage."""

    def __init__(self, max_events: Optional[int] = None):
        self._events: list[AuditEvent] = []
        self._max_events = max_events
        self._lock = threading.Lock()

    def append_event(self, event: AuditEvent) -> bool:
        with self._lock:
            self._events.append(event)
            if self._max_events is not None and len(self._events) > self._max_events:
                del self._events[0]
        return True

    def get_events_for_session(self, correlation_id: UUID) -> list[AuditEvent]:
        with self._lock:
            return [e for e in self._events if e.correlation_id == correlation_id]

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        with self._lock:
            return list(reversed(self._events[-limit:])) if limit > 0 else []

    @property
    def events(self) -> list[AuditEvent]:
        with self._lock:
            return list(self._events)

    def event_types(self) -> list[AuditEventType]:
        """Event types in append order (handy for assertions)."""
        return [e.event_type for e in self.events]
