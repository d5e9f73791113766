"""
Shared fixtures for the Voice Expense Logger tests.

Nothing here touches a real microphone or timer thread: the speech
engine, clock and scheduler are all driven by hand.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from voice_expense.audit import AuditLogger, InMemoryAuditSink
from voice_expense.capture import (
    Clock,
    PeriodicScheduler,
    ScheduledHandle,
    SpeechEngine,
    SpeechEngineError,
    SpeechEngineListener,
)
from voice_expense.currency import CurrencyEntry, CurrencyRegistry


# =============================================================================
# SPEECH ENGINE
# =============================================================================

class FakeSpeechEngine(SpeechEngine):
    """Records commands; tests emit engine events through `listener`."""

    def __init__(
        self,
        permission: bool = True,
        available: bool = True,
        start_error: Optional[str] = None,
    ):
        self.permission = permission
        self.available = available
        self.start_error = start_error
        self.listener: Optional[SpeechEngineListener] = None
        self.locales: list[Optional[str]] = []
        self.start_calls = 0
        self.finish_calls = 0
        self.cancel_calls = 0

    def has_permission(self) -> bool:
        return self.permission

    def is_available(self) -> bool:
        return self.available

    def start_session(self, listener: SpeechEngineListener, locale: Optional[str] = None) -> None:
        self.start_calls += 1
        if self.start_error:
            raise SpeechEngineError(self.start_error)
        self.listener = listener
        self.locales.append(locale)

    def finish(self) -> None:
        self.finish_calls += 1

    def cancel(self) -> None:
        self.cancel_calls += 1

    # Event helpers

    def partial(self, text: str) -> None:
        self.listener.on_partial_transcript(text)

    def result(self, result) -> None:
        self.listener.on_engine_result(result)

    def error(self, code, message: Optional[str] = None) -> None:
        self.listener.on_engine_error(code, message)


# =============================================================================
# TIME
# =============================================================================

class ManualClock(Clock):
    """A clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2025, 3, 14, 12, 0, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)


class ManualHandle(ScheduledHandle):

    def __init__(self, interval: float, callback):
        self.interval = interval
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(PeriodicScheduler):
    """Remembers every schedule() call; tick() fires the live ones."""

    def __init__(self):
        self.handles: list[ManualHandle] = []

    def schedule(self, interval: float, callback) -> ScheduledHandle:
        handle = ManualHandle(interval, callback)
        self.handles.append(handle)
        return handle

    @property
    def active(self) -> list[ManualHandle]:
        return [h for h in self.handles if not h.cancelled]

    def tick(self) -> None:
        for handle in self.active:
            handle.callback()


# =============================================================================
# FIXTURES
# =============================================================================

def make_entry(code: str, symbol: str, keywords: tuple[str, ...], regions: tuple[str, ...]) -> CurrencyEntry:
    return CurrencyEntry(
        code=code,
        symbol=symbol,
        display_name=code,
        voice_keywords=keywords,
        regions=regions,
    )


@pytest.fixture
def small_registry() -> CurrencyRegistry:
    """Five currencies, enough to exercise every detection strategy."""
    return CurrencyRegistry(
        [
            make_entry("EUR", "€", ("euro",), ("DE", "FR")),
            make_entry("USD", "$", ("dollar", "buck"), ("US",)),
            make_entry("AED", "د.إ", ("dirham", "dhs"), ("AE",)),
            make_entry("INR", "₹", ("rupee", "rs"), ("IN",)),
            make_entry("GBP", "£", ("pound", "quid"), ("GB",)),
        ],
        version="test",
    )


@pytest.fixture(scope="session")
def registry() -> CurrencyRegistry:
    """The registry shipped with the package."""
    return CurrencyRegistry.load_default()


@pytest.fixture
def engine() -> FakeSpeechEngine:
    return FakeSpeechEngine()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def audit_logger(audit_sink) -> AuditLogger:
    return AuditLogger(audit_sink)


@pytest.fixture
def engine_factory():
    """The fake engine class, for tests that need a differently configured one."""
    return FakeSpeechEngine
