"""
Clocks and Periodic Scheduling

The silence check is a periodic poll, not a one-shot timer tied to the
last speech event. Both the clock it reads and the scheduler that drives
it are injected, so tests can advance time by hand instead of sleeping.

Two production schedulers are provided:
- AsyncioScheduler: a call_later chain on an event loop
- ThreadingScheduler: a chain of daemon threading.Timer objects, for
  hosts without an event loop
"""

import asyncio
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Optional

import structlog


logger = structlog.get_logger(__name__)


class Clock(ABC):
    """Source of the current time."""

    @abstractmethod
    def now(self) -> datetime:
        pass


class SystemClock(Clock):
    """Wall-clock time, timezone-aware UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ScheduledHandle(ABC):
    """A running periodic task."""

    @abstractmethod
    def cancel(self) -> None:
        """Stop the task. Safe to call more than once and from any thread."""
        pass


class PeriodicScheduler(ABC):
    """Runs a callback every `interval` seconds until cancelled."""

    @abstractmethod
    def schedule(
        self,
        interval: float,
        callback: Callable[[], None],
    ) -> ScheduledHandle:
        """Start calling `callback`, first after one interval."""
        pass


# =============================================================================
# ASYNCIO
# =============================================================================

class _AsyncioPeriodicHandle(ScheduledHandle):
    """
    call_later chain on one loop.

    Timer handles are only touched on the loop thread; start() and
    cancel() from other threads (engine callbacks) hop over with
    call_soon_threadsafe.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        interval: float,
        callback: Callable[[], None],
    ):
        self._loop = loop
        self._interval = interval
        self._callback = callback
        self._cancelled = False
        self._timer: Optional[asyncio.TimerHandle] = None

    def start(self) -> None:
        self._on_loop(self._arm)

    def _arm(self) -> None:
        if not self._cancelled:
            self._timer = self._loop.call_later(self._interval, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        try:
            self._callback()
        except Exception:
            logger.exception("periodic_callback_failed")
        self._arm()

    def cancel(self) -> None:
        self._cancelled = True
        if not self._loop.is_closed():
            self._on_loop(self._disarm)

    def _disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_loop(self, fn: Callable[[], None]) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            fn()
        else:
            self._loop.call_soon_threadsafe(fn)


class AsyncioScheduler(PeriodicScheduler):
    """
    Schedules on an asyncio event loop.

    Args:
        loop: Loop to schedule on. If None, the running loop at the time
              schedule() is called, so pass it explicitly when
              sessions are started from engine threads.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def schedule(
        self,
        interval: float,
        callback: Callable[[], None],
    ) -> ScheduledHandle:
        loop = self._loop or asyncio.get_running_loop()
        handle = _AsyncioPeriodicHandle(loop, interval, callback)
        handle.start()
        return handle


# =============================================================================
# THREADING
# =============================================================================

class _ThreadingPeriodicHandle(ScheduledHandle):

    def __init__(self, interval: float, callback: Callable[[], None]):
        self._interval = interval
        self._callback = callback
        self._lock = threading.Lock()
        self._cancelled = False
        self._timer: Optional[threading.Timer] = None

    def start(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._timer = threading.Timer(self._interval, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self) -> None:
        if self._cancelled:
            return
        try:
            self._callback()
        except Exception:
            logger.exception("periodic_callback_failed")
        self.start()

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            if self._timer is not None:
                self._timer.cancel()


class ThreadingScheduler(PeriodicScheduler):
    """Schedules on daemon timer threads."""

    def schedule(
        self,
        interval: float,
        callback: Callable[[], None],
    ) -> ScheduledHandle:
        handle = _ThreadingPeriodicHandle(interval, callback)
        handle.start()
        return handle
