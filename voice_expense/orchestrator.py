"""
Main Orchestrator for the Voice Expense Logger

This module ties together all the components and defines the
end-to-end flows for:
1. Voice capture (start -> listen -> auto/manual stop -> transcript -> parse)
2. Typed fallback (text -> parse)

DESIGN DECISION: The orchestrator enforces the boundaries:
- The pipeline stays pure; every extraction outcome is audited here
- Only the capture controller touches the speech engine
- A backgrounded session never produces an expense

This is the "glue" the host app talks to. Persistence and confirmation
UI stay outside: they receive ExpenseData (with needs_confirmation set)
or a typed error through the outcome callback.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Optional, Union
from uuid import UUID

from voice_expense.audit import (
    AuditLogger,
    AuditSink,
    configure_stdlib_logging,
    create_correlation_id,
)
from voice_expense.capture import (
    Clock,
    PeriodicScheduler,
    SpeechCaptureController,
    SpeechEngine,
)
from voice_expense.config import ExtractionSettings, Settings, get_settings
from voice_expense.currency import CurrencyRegistry
from voice_expense.extraction import ExpenseExtractionPipeline
from voice_expense.models import (
    CaptureError,
    ExpenseData,
    ExpenseSource,
    ExtractionError,
    ExtractionResult,
    RecordingState,
    StartOutcome,
)


CaptureOutcome = Union[ExpenseData, ExtractionError, CaptureError]
OutcomeCallback = Callable[[CaptureOutcome], None]


class VoiceExpenseFlow:
    """
    Orchestrates the voice expense flow.

    Flow:
    1. Start -> controller opens an engine session
    2. Listen -> partial transcripts reset the silence clock
    3. Stop -> automatically after trailing silence, or manually
    4. Parse -> final transcript goes through the extraction pipeline
    5. Deliver -> ExpenseData, ExtractionError or CaptureError to the caller

    Backgrounding the app at any point cancels without delivering.
    """

    def __init__(
        self,
        pipeline: ExpenseExtractionPipeline,
        controller: SpeechCaptureController,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[ExtractionSettings] = None,
    ):
        self._pipeline = pipeline
        self._controller = controller
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = settings or get_settings().extraction

    @property
    def state(self) -> RecordingState:
        return self._controller.state

    def subscribe(self, listener: Callable[[RecordingState], None]) -> Callable[[], None]:
        return self._controller.subscribe(listener)

    def begin_capture(
        self,
        on_outcome: OutcomeCallback,
        *,
        locale: Optional[str] = None,
        default_currency: Optional[str] = None,
        source: ExpenseSource = ExpenseSource.MANUAL_VOICE,
    ) -> StartOutcome:
        """
        Start listening for one spoken expense.

        `on_outcome` is called exactly once per started session, with the
        parse result or the capture error, unless the session is cancelled
        for backgrounding.
        """
        correlation_id = create_correlation_id()
        locale = locale or self._settings.default_locale
        currency = default_currency or self._settings.default_currency

        def on_final_transcript(transcript: str) -> None:
            on_outcome(self.process_transcript(
                transcript,
                locale=locale,
                default_currency=currency,
                source=source,
                correlation_id=correlation_id,
            ))

        def on_error(error: CaptureError) -> None:
            on_outcome(error)

        return self._controller.start(
            on_final_transcript,
            on_error,
            locale=locale,
            correlation_id=correlation_id,
        )

    def stop_capture(self) -> bool:
        """Manual stop: the transcript so far is still processed."""
        return self._controller.stop()

    def cancel_for_background(self) -> bool:
        """Hard cancel: nothing is processed or delivered."""
        return self._controller.cancel_for_background()

    def acknowledge_error(self) -> bool:
        return self._controller.acknowledge_error()

    def process_transcript(
        self,
        transcript: str,
        *,
        locale: Optional[str] = None,
        default_currency: Optional[str] = None,
        source: ExpenseSource = ExpenseSource.TEXT_FALLBACK,
        captured_at: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ExtractionResult:
        """
        Parse a finished transcript and audit the outcome.

        Also the entry point for typed input when speech is unavailable.
        """
        correlation_id = correlation_id or create_correlation_id()

        result = self._pipeline.parse(
            transcript,
            locale or self._settings.default_locale,
            default_currency or self._settings.default_currency,
            source=source,
            captured_at=captured_at,
        )

        if isinstance(result, ExpenseData):
            self._audit_logger.log_extraction_succeeded(
                expense_id=result.expense_id,
                amount=str(result.amount),
                currency=result.currency,
                category=result.category.value,
                confidence=result.confidence_score,
                correlation_id=correlation_id,
            )
            if result.needs_confirmation:
                self._audit_logger.log_confirmation_requested(
                    expense_id=result.expense_id,
                    confidence=result.confidence_score,
                    correlation_id=correlation_id,
                )
        else:
            self._audit_logger.log_extraction_failed(
                kind=result.kind.value,
                message=result.message,
                transcript=transcript,
                correlation_id=correlation_id,
            )

        return result


def load_registry(settings: ExtractionSettings) -> tuple[CurrencyRegistry, str]:
    """The configured currency registry and where it came from."""
    if settings.currency_registry_path:
        path = settings.currency_registry_path
        return CurrencyRegistry.from_file(path), path
    return CurrencyRegistry.load_default(), "package"


def create_app_components(
    engine: SpeechEngine,
    *,
    clock: Optional[Clock] = None,
    scheduler: Optional[PeriodicScheduler] = None,
    audit_sink: Optional[AuditSink] = None,
    settings: Optional[Settings] = None,
) -> tuple[VoiceExpenseFlow, ExpenseExtractionPipeline, SpeechCaptureController]:
    """
    Factory function to create all application components.

    Args:
        engine: The platform speech recognizer
        clock: Time source for silence detection (system clock if None)
        scheduler: Drives the silence poll (timer threads if None)
        audit_sink: Audit persistence. If None, audit events are only
                    logged locally.

    Returns:
        (flow, pipeline, controller)
    """
    settings = settings or get_settings()
    extraction_settings = settings.extraction
    configure_stdlib_logging(settings.app.log_level)

    audit_logger = AuditLogger(audit_sink)

    registry, source = load_registry(extraction_settings)
    audit_logger.log_registry_loaded(
        version=registry.version,
        currency_count=len(registry),
        source=source,
    )

    pipeline = ExpenseExtractionPipeline(
        registry,
        low_confidence_threshold=extraction_settings.low_confidence_threshold,
    )
    controller = SpeechCaptureController.from_settings(
        engine,
        settings.capture,
        clock=clock,
        scheduler=scheduler,
        audit_logger=audit_logger,
        context_score=pipeline.scorer.score,
    )
    flow = VoiceExpenseFlow(
        pipeline,
        controller,
        audit_logger=audit_logger,
        settings=extraction_settings,
    )

    return flow, pipeline, controller
