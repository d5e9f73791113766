"""
Tests for the speech capture controller.

The engine, clock and scheduler are fakes from conftest.py, so every
transition is driven explicitly: partial transcripts, clock advances and
silence ticks happen exactly when a test says so.
"""

import asyncio
import threading
from uuid import uuid4

import pytest

from voice_expense.audit import AuditLogger, InMemoryAuditSink
from voice_expense.capture import (
    AsyncioScheduler,
    SpeechCaptureController,
    ThreadingScheduler,
)
from voice_expense.config import CaptureSettings
from voice_expense.currency import CurrencyDetector
from voice_expense.extraction import ConfidenceScorer
from voice_expense.models import (
    AuditEventType,
    CaptureErrorKind,
    EngineErrorCode,
    ErrorState,
    Finishing,
    Idle,
    Recording,
    StartOutcome,
    TranscriptAlternative,
)


class Session:
    """Collects what the controller delivers for one test."""

    def __init__(self):
        self.finals: list[str] = []
        self.errors = []

    def on_final(self, text: str) -> None:
        self.finals.append(text)

    def on_error(self, error) -> None:
        self.errors.append(error)


@pytest.fixture
def session() -> Session:
    return Session()


@pytest.fixture
def controller(engine, clock, scheduler, audit_logger) -> SpeechCaptureController:
    return SpeechCaptureController(
        engine,
        clock=clock,
        scheduler=scheduler,
        audit_logger=audit_logger,
    )


def start(controller, session, locale="en_US", **kwargs) -> StartOutcome:
    return controller.start(session.on_final, session.on_error, locale=locale, **kwargs)


class TestStart:
    """Tests for starting a session."""

    def test_start_enters_recording(self, controller, engine, scheduler, clock, session):
        """Test a successful start."""
        assert start(controller, session) == StartOutcome.STARTED
        state = controller.state
        assert isinstance(state, Recording)
        assert state.has_detected_speech is False
        assert state.started_at == clock.now()
        assert state.last_speech_at == clock.now()
        assert engine.start_calls == 1
        assert engine.locales == ["en_US"]
        assert len(scheduler.active) == 1
        assert scheduler.active[0].interval == 0.5

    def test_start_while_active_is_a_no_op(self, controller, engine, audit_sink, session):
        """Test a second start does not open a second session."""
        start(controller, session)
        assert start(controller, session) == StartOutcome.ALREADY_ACTIVE
        assert engine.start_calls == 1
        assert AuditEventType.CAPTURE_START_IGNORED in audit_sink.event_types()

    def test_start_while_finishing_is_a_no_op(self, controller, engine, session):
        """Test start is ignored until the final result arrives."""
        start(controller, session)
        controller.stop()
        assert start(controller, session) == StartOutcome.ALREADY_ACTIVE
        assert isinstance(controller.state, Finishing)

    def test_permission_denied(self, engine_factory, clock, scheduler, audit_logger, audit_sink, session):
        """Test missing permission is answered synchronously."""
        engine = engine_factory(permission=False)
        controller = SpeechCaptureController(engine, clock=clock, scheduler=scheduler, audit_logger=audit_logger)
        assert start(controller, session) == StartOutcome.PERMISSION_DENIED
        assert isinstance(controller.state, Idle)
        assert engine.start_calls == 0
        assert scheduler.handles == []
        assert session.errors == []
        assert audit_sink.event_types() == [AuditEventType.CAPTURE_START_REJECTED]

    def test_engine_unavailable(self, engine_factory, clock, scheduler, session):
        """Test an unavailable recognizer is answered synchronously."""
        engine = engine_factory(available=False)
        controller = SpeechCaptureController(engine, clock=clock, scheduler=scheduler)
        assert start(controller, session) == StartOutcome.ENGINE_UNAVAILABLE
        assert isinstance(controller.state, Idle)
        assert engine.start_calls == 0

    def test_engine_fails_to_start(self, engine_factory, clock, scheduler, session):
        """Test a session that cannot open goes back to Idle."""
        engine = engine_factory(start_error="microphone busy")
        controller = SpeechCaptureController(engine, clock=clock, scheduler=scheduler)
        assert start(controller, session) == StartOutcome.ENGINE_UNAVAILABLE
        assert isinstance(controller.state, Idle)
        assert scheduler.active == []
        assert session.errors == []

    def test_correlation_id_is_kept(self, controller, session):
        """Test a caller-provided correlation id is used for the session."""
        cid = uuid4()
        start(controller, session, correlation_id=cid)
        assert controller.correlation_id == cid

    def test_from_settings(self, engine, clock, scheduler, session):
        """Test timing comes from CaptureSettings."""
        settings = CaptureSettings(
            silence_threshold_seconds=3.0,
            minimum_speech_duration_seconds=1.5,
            silence_check_interval_seconds=0.25,
        )
        controller = SpeechCaptureController.from_settings(engine, settings, clock=clock, scheduler=scheduler)
        start(controller, session)
        assert scheduler.active[0].interval == 0.25

        engine.partial("ten dollars")
        clock.advance(2.5)
        scheduler.tick()
        assert isinstance(controller.state, Recording)
        clock.advance(0.5)
        scheduler.tick()
        assert isinstance(controller.state, Finishing)


class TestSilenceDetection:
    """Tests for the automatic stop."""

    def test_auto_stop_after_speech_and_silence(self, controller, engine, clock, scheduler, session):
        """Test the full happy path: speak, fall silent, get the transcript."""
        start(controller, session)
        clock.advance(0.3)
        engine.partial("I spent")
        clock.advance(0.4)
        engine.partial("I spent 20 dollars")

        clock.advance(1.9)
        scheduler.tick()
        assert isinstance(controller.state, Recording)

        clock.advance(0.1)
        scheduler.tick()
        state = controller.state
        assert isinstance(state, Finishing)
        assert state.auto_stopped is True
        assert state.partial_transcript == "I spent 20 dollars"
        assert engine.finish_calls == 1
        assert scheduler.active == []

        engine.result("I spent 20 dollars on lunch")
        assert isinstance(controller.state, Idle)
        assert session.finals == ["I spent 20 dollars on lunch"]
        assert session.errors == []

    def test_no_auto_stop_without_speech(self, controller, clock, scheduler, session):
        """Test silence alone never stops the session."""
        start(controller, session)
        for _ in range(20):
            clock.advance(0.5)
            scheduler.tick()
        assert isinstance(controller.state, Recording)

    def test_no_auto_stop_before_minimum_duration(self, engine, clock, scheduler, session):
        """Test a very short utterance keeps recording until the minimum duration."""
        controller = SpeechCaptureController(
            engine,
            clock=clock,
            scheduler=scheduler,
            silence_threshold_seconds=0.5,
            minimum_speech_duration_seconds=1.0,
        )
        start(controller, session)
        engine.partial("ten")
        clock.advance(0.6)
        scheduler.tick()
        assert isinstance(controller.state, Recording)
        clock.advance(0.4)
        scheduler.tick()
        assert isinstance(controller.state, Finishing)

    def test_partial_resets_silence_clock(self, controller, engine, clock, scheduler, session):
        """Test continued speech postpones the stop."""
        start(controller, session)
        engine.partial("I spent")
        clock.advance(1.5)
        engine.partial("I spent forty")
        clock.advance(1.5)
        scheduler.tick()
        assert isinstance(controller.state, Recording)
        clock.advance(0.5)
        scheduler.tick()
        assert isinstance(controller.state, Finishing)

    def test_empty_partial_is_not_speech(self, controller, engine, clock, scheduler, session):
        """Test blank partial transcripts neither count as speech nor reset the clock."""
        start(controller, session)
        engine.partial("   ")
        assert controller.state.has_detected_speech is False
        clock.advance(5)
        scheduler.tick()
        assert isinstance(controller.state, Recording)

    def test_stale_tick_is_ignored(self, controller, engine, clock, scheduler, session):
        """Test a tick from a finished session does not stop the next one."""
        start(controller, session)
        controller.stop()
        engine.result("first")
        old_tick = scheduler.handles[0].callback

        start(controller, session)
        engine.partial("second")
        clock.advance(3)
        old_tick()
        assert isinstance(controller.state, Recording)
        scheduler.tick()
        assert isinstance(controller.state, Finishing)


class TestStopAndResults:
    """Tests for manual stop and final results."""

    def test_manual_stop(self, controller, engine, scheduler, session):
        """Test stop moves to Finishing and asks the engine to finish."""
        start(controller, session)
        engine.partial("lunch 12 dollars")
        assert controller.stop() is True
        state = controller.state
        assert isinstance(state, Finishing)
        assert state.auto_stopped is False
        assert engine.finish_calls == 1
        assert scheduler.active == []

        assert controller.stop() is False
        assert engine.finish_calls == 1

    def test_stop_when_idle(self, controller, engine):
        """Test stop with no session."""
        assert controller.stop() is False
        assert engine.finish_calls == 0

    def test_empty_result_uses_partial(self, controller, engine, session):
        """Test the last partial is delivered when the final result is empty."""
        start(controller, session)
        engine.partial("taxi 30 dirhams")
        controller.stop()
        engine.result("")
        assert session.finals == ["taxi 30 dirhams"]
        assert isinstance(controller.state, Idle)

    def test_partial_while_finishing_updates_fallback(self, controller, engine, session):
        """Test a late partial is still used as the fallback transcript."""
        start(controller, session)
        engine.partial("taxi")
        controller.stop()
        engine.partial("taxi 30 dirhams")
        assert controller.state.partial_transcript == "taxi 30 dirhams"
        engine.result([])
        assert session.finals == ["taxi 30 dirhams"]

    def test_empty_result_without_speech_is_an_error(self, controller, engine, session):
        """Test no text at all ends in the Error state."""
        start(controller, session)
        controller.stop()
        engine.result("")
        state = controller.state
        assert isinstance(state, ErrorState)
        assert state.message == "No speech detected"
        assert session.finals == []
        assert len(session.errors) == 1
        assert session.errors[0].kind == CaptureErrorKind.RECOGNITION_FAILED
        assert session.errors[0].engine_code == EngineErrorCode.NO_MATCH

    def test_result_while_recording(self, controller, engine, session):
        """Test the engine ending the session on its own."""
        start(controller, session)
        engine.result("coffee 4 dollars")
        assert session.finals == ["coffee 4 dollars"]
        assert isinstance(controller.state, Idle)

    def test_best_alternative_is_delivered(self, registry, engine, clock, scheduler, session):
        """Test the controller ranks alternatives with the context score."""
        scorer = ConfidenceScorer(CurrencyDetector(registry))
        controller = SpeechCaptureController(
            engine,
            clock=clock,
            scheduler=scheduler,
            context_score=scorer.score,
        )
        start(controller, session)
        controller.stop()
        engine.result([
            TranscriptAlternative(text="lunch forty", confidence=0.6),
            TranscriptAlternative(text="I spent 40 dollars on lunch", confidence=0.55),
        ])
        assert session.finals == ["I spent 40 dollars on lunch"]

    def test_delivered_once(self, controller, engine, session):
        """Test events after completion are dropped."""
        start(controller, session)
        controller.stop()
        engine.result("first")
        engine.result("second")
        engine.error(EngineErrorCode.NETWORK)
        engine.partial("third")
        assert session.finals == ["first"]
        assert session.errors == []
        assert isinstance(controller.state, Idle)

    def test_engine_may_call_back_from_finish(self, engine_factory, clock, scheduler, session):
        """Test an engine that delivers its result synchronously inside finish()."""

        class SynchronousEngine(engine_factory):
            def finish(self):
                super().finish()
                self.listener.on_engine_result("parking 10 dollars")

        engine = SynchronousEngine()
        controller = SpeechCaptureController(engine, clock=clock, scheduler=scheduler)
        start(controller, session)
        controller.stop()
        assert session.finals == ["parking 10 dollars"]
        assert isinstance(controller.state, Idle)

    def test_callback_can_start_next_session(self, engine, clock, scheduler):
        """Test on_final runs after the lock is released and the state is Idle."""
        controller = SpeechCaptureController(engine, clock=clock, scheduler=scheduler)
        outcomes = []

        def on_final(text):
            outcomes.append(controller.start(on_final, lambda e: None))

        controller.start(on_final, lambda e: None)
        controller.stop()
        engine.result("one")
        assert outcomes == [StartOutcome.STARTED]
        assert isinstance(controller.state, Recording)


class TestEngineErrors:
    """Tests for errors reported by the engine."""

    def test_error_after_speech_delivers_partial(self, controller, engine, session):
        """Test an error with usable text is treated as success."""
        start(controller, session)
        engine.partial("groceries 80 dirhams")
        controller.stop()
        engine.error(EngineErrorCode.NETWORK)
        assert session.finals == ["groceries 80 dirhams"]
        assert session.errors == []
        assert isinstance(controller.state, Idle)

    def test_error_without_speech(self, controller, engine, session):
        """Test an error with no text ends in Error with the engine's message."""
        start(controller, session)
        engine.error(EngineErrorCode.SPEECH_TIMEOUT)
        state = controller.state
        assert isinstance(state, ErrorState)
        assert state.message == "No speech input"
        error = session.errors[0]
        assert error.kind == CaptureErrorKind.RECOGNITION_FAILED
        assert error.engine_code == EngineErrorCode.SPEECH_TIMEOUT

    def test_permission_error(self, controller, engine, session):
        """Test a permission failure reported by the engine."""
        start(controller, session)
        engine.error(EngineErrorCode.INSUFFICIENT_PERMISSIONS)
        assert session.errors[0].kind == CaptureErrorKind.PERMISSION_DENIED

    def test_string_and_unknown_codes(self, controller, engine, session):
        """Test raw string codes are mapped, unknown ones to UNKNOWN."""
        start(controller, session)
        engine.error("weird_failure")
        assert session.errors[0].engine_code == EngineErrorCode.UNKNOWN
        assert session.errors[0].message == "Unknown error"

    def test_engine_message_is_kept(self, controller, engine, session):
        """Test a message supplied by the engine wins over the table."""
        start(controller, session)
        engine.error("audio", "Microphone disconnected")
        assert session.errors[0].engine_code == EngineErrorCode.AUDIO
        assert controller.state.message == "Microphone disconnected"

    def test_acknowledge_error(self, controller, engine, session):
        """Test acknowledging clears the error."""
        assert controller.acknowledge_error() is False
        start(controller, session)
        engine.error(EngineErrorCode.NO_MATCH)
        assert controller.acknowledge_error() is True
        assert isinstance(controller.state, Idle)

    def test_start_from_error(self, controller, engine, session):
        """Test starting again acknowledges the previous error."""
        start(controller, session)
        engine.error(EngineErrorCode.NO_MATCH)
        seen = []
        controller.subscribe(lambda state: seen.append(state.kind))
        assert start(controller, session) == StartOutcome.STARTED
        assert seen == ["error", "idle", "recording"]

    def test_start_from_error_without_permission_keeps_error(self, controller, engine, session):
        """Test a rejected start leaves the error in place."""
        start(controller, session)
        engine.error(EngineErrorCode.NO_MATCH)
        engine.permission = False
        assert start(controller, session) == StartOutcome.PERMISSION_DENIED
        assert isinstance(controller.state, ErrorState)


class TestBackgroundCancel:
    """Tests for the hard cancel when the app leaves the foreground."""

    def test_cancel_while_recording(self, controller, engine, scheduler, session):
        """Test cancel drops the session without delivering anything."""
        start(controller, session)
        engine.partial("I spent 50 dollars")
        assert controller.cancel_for_background() is True
        assert isinstance(controller.state, Idle)
        assert engine.cancel_calls == 1
        assert scheduler.active == []

        engine.result("I spent 50 dollars")
        engine.error(EngineErrorCode.CLIENT)
        assert session.finals == []
        assert session.errors == []

    def test_cancel_while_finishing(self, controller, engine, session):
        """Test cancel also wins over a pending final result."""
        start(controller, session)
        engine.partial("I spent 50 dollars")
        controller.stop()
        assert controller.cancel_for_background() is True
        engine.result("I spent 50 dollars")
        assert session.finals == []
        assert isinstance(controller.state, Idle)

    def test_cancel_when_idle(self, controller, engine):
        """Test cancel with no session."""
        assert controller.cancel_for_background() is False
        assert engine.cancel_calls == 0


    def test_cancel_from_observer_before_engine_opens(self, controller, engine, scheduler, session):
        """Test a cancel while Recording is published never opens the engine."""

        def cancel_on_recording(state):
            if isinstance(state, Recording):
                controller.cancel_for_background()

        controller.subscribe(cancel_on_recording)
        assert start(controller, session) == StartOutcome.CANCELLED
        assert engine.start_calls == 0
        assert scheduler.active == []
        assert isinstance(controller.state, Idle)


class TestObservation:
    """Tests for state observers and the audit trail."""

    def test_subscribe_sees_every_transition(self, controller, engine, clock, scheduler, session):
        """Test the listener gets the current state, then each new one."""
        seen = []
        unsubscribe = controller.subscribe(lambda state: seen.append(state.kind))
        start(controller, session)
        engine.partial("ten dollars")
        clock.advance(2)
        scheduler.tick()
        engine.result("ten dollars")
        assert seen == ["idle", "recording", "recording", "finishing", "idle"]

        unsubscribe()
        start(controller, session)
        assert seen[-1] == "idle"

    def test_failing_listener_does_not_break_capture(self, controller, engine, session):
        """Test an observer exception is logged, not propagated."""
        def broken(state):
            if state.kind == "finishing":
                raise RuntimeError("ui gone")

        controller.subscribe(broken)
        start(controller, session)
        controller.stop()
        engine.result("taxi 9 dollars")
        assert session.finals == ["taxi 9 dollars"]

    def test_audit_trail(self, controller, engine, clock, scheduler, audit_sink, session):
        """Test one audit event per milestone, all with the session's correlation id."""
        start(controller, session)
        engine.partial("coffee")
        engine.partial("coffee 4 dollars")
        clock.advance(2)
        scheduler.tick()
        engine.result("coffee 4 dollars")

        assert audit_sink.event_types() == [
            AuditEventType.CAPTURE_STARTED,
            AuditEventType.SPEECH_DETECTED,
            AuditEventType.CAPTURE_AUTO_STOPPED,
            AuditEventType.TRANSCRIPT_FINALIZED,
        ]
        cid = controller.correlation_id
        assert len(audit_sink.get_events_for_session(cid)) == 4

    def test_audit_trail_for_cancel_and_failure(self, controller, engine, audit_sink, session):
        """Test background cancels and recognition failures are audited."""
        start(controller, session)
        controller.cancel_for_background()
        start(controller, session)
        controller.stop()
        engine.result("")

        types = audit_sink.event_types()
        assert AuditEventType.CAPTURE_CANCELLED_FOR_BACKGROUND in types
        assert AuditEventType.CAPTURE_MANUALLY_STOPPED in types
        assert types[-1] == AuditEventType.RECOGNITION_FAILED

    def test_audit_sink_failure_does_not_break_capture(self, engine, clock, scheduler, session):
        """Test a broken audit sink is tolerated."""

        class BrokenSink(InMemoryAuditSink):
            def append_event(self, event):
                raise IOError("disk full")

        controller = SpeechCaptureController(
            engine,
            clock=clock,
            scheduler=scheduler,
            audit_logger=AuditLogger(BrokenSink()),
        )
        start(controller, session)
        controller.stop()
        engine.result("lunch 5 dollars")
        assert session.finals == ["lunch 5 dollars"]


class TestConcurrency:
    """Tests with real threads and real schedulers."""

    def test_concurrent_partials_and_stop(self, controller, engine, session):
        """Test events from several threads leave one consistent outcome."""
        start(controller, session)

        def speak(n):
            for i in range(200):
                engine.partial(f"thread {n} word {i}")

        threads = [threading.Thread(target=speak, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        controller.stop()
        results = [threading.Thread(target=engine.result, args=("final",)) for _ in range(4)]
        for t in results:
            t.start()
        for t in results:
            t.join()

        assert session.finals == ["final"]
        assert isinstance(controller.state, Idle)

    def test_threading_scheduler_auto_stops(self, engine_factory):
        """Test the default timer-thread scheduler drives the silence check."""
        finished = threading.Event()

        class SignallingEngine(engine_factory):
            def finish(self):
                super().finish()
                finished.set()

        engine = SignallingEngine()
        controller = SpeechCaptureController(
            engine,
            scheduler=ThreadingScheduler(),
            silence_threshold_seconds=0.1,
            minimum_speech_duration_seconds=0.0,
            silence_check_interval_seconds=0.02,
        )
        controller.start(lambda text: None, lambda error: None)
        engine.partial("ten dollars")
        assert finished.wait(timeout=5)
        assert engine.finish_calls == 1
        assert isinstance(controller.state, Finishing)

    def test_asyncio_scheduler_auto_stops(self, engine):
        """Test the silence check on an asyncio event loop."""

        async def scenario():
            controller = SpeechCaptureController(
                engine,
                scheduler=AsyncioScheduler(),
                silence_threshold_seconds=0.1,
                minimum_speech_duration_seconds=0.0,
                silence_check_interval_seconds=0.02,
            )
            controller.start(lambda text: None, lambda error: None)
            engine.partial("ten dollars")
            for _ in range(250):
                if isinstance(controller.state, Finishing):
                    break
                await asyncio.sleep(0.02)
            return controller.state

        state = asyncio.run(scenario())
        assert isinstance(state, Finishing)
        assert state.auto_stopped is True
        assert engine.finish_calls == 1

    def test_cancel_during_engine_start(self, engine_factory, clock, scheduler, session):
        """Test a cancel from another thread reaches the session once it is open."""
        entered = threading.Event()
        release = threading.Event()
        calls = []

        class SlowStartEngine(engine_factory):
            def start_session(self, listener, locale=None):
                entered.set()
                release.wait(timeout=5)
                super().start_session(listener, locale)
                calls.append("start_session")

            def cancel(self):
                super().cancel()
                calls.append("cancel")

        engine = SlowStartEngine()
        controller = SpeechCaptureController(engine, clock=clock, scheduler=scheduler)
        outcomes = []
        starter = threading.Thread(target=lambda: outcomes.append(start(controller, session)))
        starter.start()
        assert entered.wait(timeout=5)

        canceller = threading.Thread(target=controller.cancel_for_background)
        canceller.start()
        canceller.join(timeout=0.1)
        assert canceller.is_alive()

        release.set()
        starter.join(timeout=5)
        canceller.join(timeout=5)
        assert outcomes == [StartOutcome.STARTED]
        assert calls == ["start_session", "cancel"]
        assert isinstance(controller.state, Idle)
        assert scheduler.active == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
