"""
Speech Capture Controller

Owns the speech engine session and the RecordingState machine:

    Idle --start--> Recording{speech=False}
    Recording --partial(text)--> Recording{speech=True, last_speech_at=now}
    Recording --silence tick, guards pass--> Finishing (auto stop)
    Recording --stop--> Finishing (manual stop)
    Recording/Finishing --app backgrounded--> Idle (hard cancel, nothing delivered)
    Finishing --result--> Idle, final transcript delivered
    Finishing --error, partial text--> Idle, partial delivered as success
    Finishing --error, no text--> Error --acknowledge/start--> Idle

Auto stop needs BOTH speech to have been heard, trailing silence of at
least the silence threshold, AND total recording time of at least the
minimum duration.

CONCURRENCY: The engine calls back on its own threads and the silence
tick runs on the scheduler's. Every event handler takes the same RLock
before reading or replacing the state, so transitions never interleave.
start_session() runs under the lock, so a stop or cancel issued from
another thread always reaches an opened session; the RLock lets the
engine call back synchronously on the starting thread. finish(),
cancel() and user callbacks run after the lock is released, so an
engine may call back synchronously from them. State
observers run under the lock and see every transition in order.
"""

import threading
from collections.abc import Callable, Sequence
from typing import Optional, Union
from uuid import UUID

import structlog

from voice_expense.audit.logger import AuditLogger, create_correlation_id
from voice_expense.capture.engine import (
    SpeechEngine,
    SpeechEngineError,
    SpeechEngineListener,
    coerce_error_code,
    describe_engine_error,
)
from voice_expense.capture.scheduling import (
    Clock,
    PeriodicScheduler,
    ScheduledHandle,
    SystemClock,
    ThreadingScheduler,
)
from voice_expense.capture.transcripts import select_best_transcript
from voice_expense.config.settings import CaptureSettings
from voice_expense.models.capture import (
    CaptureError,
    CaptureErrorKind,
    EngineErrorCode,
    ErrorState,
    Finishing,
    Idle,
    Recording,
    RecordingState,
    RecordingStateAdapter,
    StartOutcome,
    TranscriptAlternative,
)


logger = structlog.get_logger(__name__)

NO_SPEECH_MESSAGE = "No speech detected"

FinalTranscriptCallback = Callable[[str], None]
CaptureErrorCallback = Callable[[CaptureError], None]
StateListener = Callable[[RecordingState], None]


class SpeechCaptureController(SpeechEngineListener):
    """
    Single owner of the capture session.

    Only one session exists at a time; start() while a session is active
    is a no-op.
    """

    def __init__(
        self,
        engine: SpeechEngine,
        clock: Optional[Clock] = None,
        scheduler: Optional[PeriodicScheduler] = None,
        silence_threshold_seconds: float = 2.0,
        minimum_speech_duration_seconds: float = 1.0,
        silence_check_interval_seconds: float = 0.5,
        audit_logger: Optional[AuditLogger] = None,
        context_score: Optional[Callable[[str], float]] = None,
    ):
        """
        Initialize the controller.

        Args:
            engine: Speech recognizer, owned exclusively by this controller
            clock: Time source for the silence guards
            scheduler: Drives the periodic silence check
            audit_logger: Receives one audit event per session milestone
            context_score: Expense-likeness of a text, used to choose
                           between recognizer alternatives
        """
        self._engine = engine
        self._clock = clock or SystemClock()
        self._scheduler = scheduler or ThreadingScheduler()
        self._silence_threshold = silence_threshold_seconds
        self._minimum_duration = minimum_speech_duration_seconds
        self._check_interval = silence_check_interval_seconds
        self._audit = audit_logger or AuditLogger()
        self._context_score = context_score

        self._lock = threading.RLock()
        self._state: RecordingState = Idle()
        self._session = 0
        self._correlation_id: Optional[UUID] = None
        self._poll: Optional[ScheduledHandle] = None
        self._on_final: Optional[FinalTranscriptCallback] = None
        self._on_error: Optional[CaptureErrorCallback] = None
        self._listeners: list[StateListener] = []

    @classmethod
    def from_settings(
        cls,
        engine: SpeechEngine,
        settings: CaptureSettings,
        **kwargs,
    ) -> "SpeechCaptureController":
        """Build a controller with the timing from CaptureSettings."""
        return cls(
            engine,
            silence_threshold_seconds=settings.silence_threshold_seconds,
            minimum_speech_duration_seconds=settings.minimum_speech_duration_seconds,
            silence_check_interval_seconds=settings.silence_check_interval_seconds,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> RecordingState:
        with self._lock:
            return self._state

    @property
    def correlation_id(self) -> Optional[UUID]:
        """Correlation ID of the current (or last) session."""
        with self._lock:
            return self._correlation_id

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Observe state changes.

        The listener is called immediately with the current state, then
        with every new state. Returns a function that unsubscribes.
        """
        with self._lock:
            self._listeners.append(listener)
            listener(self._state)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start(
        self,
        on_final_transcript: FinalTranscriptCallback,
        on_error: CaptureErrorCallback,
        locale: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> StartOutcome:
        """
        Start a capture session.

        Permission and availability problems are answered synchronously
        and leave the state unchanged. Starting from Error acknowledges the
        error first.
        Returns CANCELLED if an observer cancelled while Recording was being
        published; the engine is never opened in that case.
        """
        with self._lock:
            if self._state.is_active:
                logger.info("capture_start_ignored", state=self._state.kind)
                self._audit.log_capture_start_ignored(self._correlation_id)
                return StartOutcome.ALREADY_ACTIVE

            cid = correlation_id or create_correlation_id()
            if not self._engine.has_permission():
                self._audit.log_capture_start_rejected("permission_denied", cid)
                return StartOutcome.PERMISSION_DENIED
            if not self._engine.is_available():
                self._audit.log_capture_start_rejected("engine_unavailable", cid)
                return StartOutcome.ENGINE_UNAVAILABLE

            if isinstance(self._state, ErrorState):
                self._set_state(Idle())

            now = self._clock.now()
            self._session += 1
            session = self._session
            self._correlation_id = cid
            self._on_final = on_final_transcript
            self._on_error = on_error
            self._poll = self._scheduler.schedule(
                self._check_interval,
                lambda: self._on_silence_tick(session),
            )
            self._set_state(Recording(last_speech_at=now, started_at=now))
            if not self._is_current(session):
                # An observer cancelled while Recording was being published
                logger.info("capture_start_cancelled", state=self._state.kind)
                return StartOutcome.CANCELLED
            self._audit.log_capture_started(cid, locale)

            # Opened under the lock: a stop or cancel from another thread
            # waits until the session exists
            try:
                self._engine.start_session(self, locale)
            except SpeechEngineError as e:
                if self._is_current(session):
                    self._end_session(Idle())
                logger.warning("capture_start_failed", error=str(e))
                self._audit.log_capture_start_rejected(f"engine_unavailable: {e}", cid)
                return StartOutcome.ENGINE_UNAVAILABLE

        return StartOutcome.STARTED

    def stop(self) -> bool:
        """
        Finish the session gracefully; the transcript is still processed.

        Returns False if there was nothing to stop.
        """
        with self._lock:
            state = self._state
            if not isinstance(state, Recording):
                logger.info("capture_stop_ignored", state=state.kind)
                return False
            self._begin_finishing(state, auto_stopped=False)

        self._engine.finish()
        return True

    def cancel_for_background(self) -> bool:
        """
        Hard cancel because the app left the foreground.

        No transcript is delivered and no callback is invoked. Returns
        False if no session was active.
        """
        with self._lock:
            if not self._state.is_active:
                return False
            self._end_session(Idle())
            self._audit.log_capture_cancelled(self._correlation_id)

        self._engine.cancel()
        return True

    def acknowledge_error(self) -> bool:
        """Clear an Error state back to Idle."""
        with self._lock:
            if not isinstance(self._state, ErrorState):
                return False
            self._set_state(Idle())
            return True

    # ------------------------------------------------------------------
    # Engine events
    # ------------------------------------------------------------------

    def on_partial_transcript(self, text: str) -> None:
        text = (text or "").strip()
        if not text:
            return

        with self._lock:
            state = self._state
            if isinstance(state, Finishing):
                # Still useful as a fallback if the final result is empty
                self._set_state(state.model_copy(update={"partial_transcript": text}))
                return
            if not isinstance(state, Recording):
                logger.debug("partial_transcript_dropped", state=state.kind)
                return

            first_speech = not state.has_detected_speech
            self._set_state(state.model_copy(update={
                "has_detected_speech": True,
                "last_speech_at": self._clock.now(),
                "partial_transcript": text,
            }))
            if first_speech:
                self._audit.log_speech_detected(self._correlation_id)

    def on_engine_result(
        self,
        result: Union[str, Sequence[TranscriptAlternative]],
    ) -> None:
        if isinstance(result, str):
            alternatives = [TranscriptAlternative(text=result)]
        else:
            alternatives = list(result)

        with self._lock:
            state = self._finishing_state()
            if state is None:
                logger.info("engine_result_dropped", state=self._state.kind)
                return

            text = select_best_transcript(alternatives, self._context_score).strip()
            text = text or state.partial_transcript
            if text:
                deliver = self._complete(text)
            else:
                deliver = self._fail(
                    CaptureErrorKind.RECOGNITION_FAILED,
                    NO_SPEECH_MESSAGE,
                    EngineErrorCode.NO_MATCH,
                )

        deliver()

    def on_engine_error(
        self,
        code: Union[EngineErrorCode, str],
        message: Optional[str] = None,
    ) -> None:
        error_code = coerce_error_code(code)
        message = message or describe_engine_error(error_code)

        with self._lock:
            state = self._finishing_state()
            if state is None:
                logger.info("engine_error_dropped", state=self._state.kind, code=error_code.value)
                return

            if state.partial_transcript:
                # A hiccup after usable speech is not a user-visible failure
                logger.info("engine_error_downgraded", code=error_code.value)
                deliver = self._complete(state.partial_transcript)
            elif error_code == EngineErrorCode.INSUFFICIENT_PERMISSIONS:
                deliver = self._fail(CaptureErrorKind.PERMISSION_DENIED, message, error_code)
            else:
                deliver = self._fail(CaptureErrorKind.RECOGNITION_FAILED, message, error_code)

        deliver()

    # ------------------------------------------------------------------
    # Silence detection
    # ------------------------------------------------------------------

    def _on_silence_tick(self, session: int) -> None:
        with self._lock:
            state = self._state
            if session != self._session or not isinstance(state, Recording):
                return

            now = self._clock.now()
            silence = (now - state.last_speech_at).total_seconds()
            elapsed = (now - state.started_at).total_seconds()
            if not (
                state.has_detected_speech
                and silence >= self._silence_threshold
                and elapsed >= self._minimum_duration
            ):
                return

            logger.info("capture_auto_stop", silence_seconds=silence, elapsed_seconds=elapsed)
            self._begin_finishing(state, auto_stopped=True)

        self._engine.finish()

    # ------------------------------------------------------------------
    # Transitions (call with the lock held)
    # ------------------------------------------------------------------

    def _set_state(self, state: RecordingState) -> None:
        self._state = state
        logger.debug(
            "capture_state_changed",
            state=RecordingStateAdapter.dump_python(state, mode="json"),
        )
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.exception("state_listener_failed", state=state.kind)
                self._audit.log_error(
                    "state_listener_failed",
                    str(e),
                    details={"state": state.kind},
                    correlation_id=self._correlation_id,
                )

    def _cancel_poll(self) -> None:
        if self._poll is not None:
            self._poll.cancel()
            self._poll = None

    def _begin_finishing(self, state: Recording, auto_stopped: bool) -> None:
        self._cancel_poll()
        self._set_state(Finishing(
            partial_transcript=state.partial_transcript,
            auto_stopped=auto_stopped,
        ))
        self._audit.log_capture_stopped(self._correlation_id, auto_stopped)

    def _finishing_state(self) -> Optional[Finishing]:
        """
        The Finishing state a result or error applies to.

        A result arriving while still Recording means the engine ended the
        session on its own; it is handled as if stop had been called.
        """
        state = self._state
        if isinstance(state, Recording):
            self._begin_finishing(state, auto_stopped=False)
            state = self._state
        return state if isinstance(state, Finishing) else None

    def _is_current(self, session: int) -> bool:
        return self._session == session and self._state.is_active

    def _end_session(self, state: RecordingState) -> None:
        self._cancel_poll()
        self._on_final = None
        self._on_error = None
        self._set_state(state)

    def _complete(self, transcript: str) -> Callable[[], None]:
        on_final = self._on_final
        self._end_session(Idle())
        self._audit.log_transcript_finalized(transcript, self._correlation_id)

        def deliver() -> None:
            if on_final is not None:
                on_final(transcript)

        return deliver

    def _fail(
        self,
        kind: CaptureErrorKind,
        message: str,
        code: Optional[EngineErrorCode],
    ) -> Callable[[], None]:
        on_error = self._on_error
        self._end_session(ErrorState(message=message))
        self._audit.log_recognition_failed(kind.value, message, self._correlation_id)
        error = CaptureError(kind=kind, message=message, engine_code=code)

        def deliver() -> None:
            if on_error is not None:
                on_error(error)

        return deliver
