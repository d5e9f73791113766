"""
Capture Package

The speech engine contract, the clock and scheduler abstractions, and the
controller that turns an engine session into one final transcript.
"""

from voice_expense.capture.engine import (
    ENGINE_ERROR_MESSAGES,
    SpeechEngine,
    SpeechEngineError,
    SpeechEngineListener,
    coerce_error_code,
    describe_engine_error,
)
from voice_expense.capture.scheduling import (
    AsyncioScheduler,
    Clock,
    PeriodicScheduler,
    ScheduledHandle,
    SystemClock,
    ThreadingScheduler,
)
from voice_expense.capture.transcripts import select_best_transcript
from voice_expense.capture.controller import SpeechCaptureController

__all__ = [
    "ENGINE_ERROR_MESSAGES",
    "AsyncioScheduler",
    "Clock",
    "PeriodicScheduler",
    "ScheduledHandle",
    "SpeechCaptureController",
    "SpeechEngine",
    "SpeechEngineError",
    "SpeechEngineListener",
    "SystemClock",
    "ThreadingScheduler",
    "coerce_error_code",
    "describe_engine_error",
    "select_best_transcript",
]
