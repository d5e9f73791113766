"""
Audit Logger

DESIGN DECISION: Every significant capture and extraction step is logged.
This provides:
1. Complete traceability of a voice session
2. Debugging capability for misheard or misparsed commands
3. Data to tune silence thresholds and confidence weights

The audit logger:
- Is synchronous: the speech engine calls back on its own threads and
  there is no event loop to hand work to
- Gracefully handles sink failures (doesn't break capture if logging fails)
- Supports correlation IDs to trace all events of one session
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from voice_expense.audit.sink import AuditSink
from voice_expense.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# JSON lines on the stdlib logging handlers
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_stdlib_logging(level: str = "INFO") -> None:
    """
    Route structlog output through a plain stdlib handler at `level`.

    structlog renders the JSON; the stdlib handler only prints the message.
    """
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper()))


class AuditLogger:
    """
    Records capture and extraction milestones.

    Logs events both to:
    1. The structlog JSON log, at the event severity
    2. An optional AuditSink (for persistence)
    """

    def __init__(
        self,
        sink: Optional[AuditSink] = None,
    ):
        """
        Initialize audit logger.

        Args:
            sink: Persistence backend.
                  If None, only logs locally.
        """
        self._sink = sink
        self._logger = structlog.get_logger(__name__)

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to the sink if available.

        Returns True if the sink write succeeded (or no sink configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._sink:
            try:
                return self._sink.append_event(event)
            except Exception as e:
                # A broken sink must never interrupt a capture session
                self._logger.error(
                    "audit_sink_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_capture_started(
        self,
        correlation_id: UUID,
        locale: Optional[str] = None,
    ) -> None:
        """Log the start of a capture session."""
        self.log(AuditEventBuilder.capture_started(
            correlation_id=correlation_id,
            locale=locale,
        ))

    def log_capture_start_rejected(
        self,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        """Log a start refused for permission or availability."""
        self.log(AuditEventBuilder.capture_start_rejected(
            reason=reason,
            correlation_id=correlation_id,
        ))

    def log_capture_start_ignored(self, correlation_id: Optional[UUID] = None) -> None:
        self.log(AuditEventBuilder.capture_start_ignored(correlation_id))

    def log_speech_detected(self, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.speech_detected(correlation_id))

    def log_capture_stopped(
        self,
        correlation_id: UUID,
        auto_stopped: bool,
    ) -> None:
        """Log a graceful stop, automatic or manual."""
        self.log(AuditEventBuilder.capture_stopped(
            correlation_id=correlation_id,
            auto_stopped=auto_stopped,
        ))

    def log_capture_cancelled(self, correlation_id: Optional[UUID]) -> None:
        """Log a hard cancel caused by the app going to the background."""
        self.log(AuditEventBuilder.capture_cancelled_for_background(correlation_id))

    def log_transcript_finalized(
        self,
        transcript: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.transcript_finalized(
            transcript=transcript,
            correlation_id=correlation_id,
        ))

    def log_recognition_failed(
        self,
        kind: str,
        message: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.recognition_failed(
            kind=kind,
            message=message,
            correlation_id=correlation_id,
        ))

    def log_extraction_succeeded(
        self,
        expense_id: UUID,
        amount: str,
        currency: str,
        category: str,
        confidence: Optional[float],
        correlation_id: UUID,
    ) -> None:
        """Log a transcript successfully turned into an expense."""
        self.log(AuditEventBuilder.extraction_succeeded(
            expense_id=expense_id,
            amount=amount,
            currency=currency,
            category=category,
            confidence=confidence,
            correlation_id=correlation_id,
        ))

    def log_extraction_failed(
        self,
        kind: str,
        message: str,
        transcript: str,
        correlation_id: UUID,
    ) -> None:
        """Log a transcript the pipeline could not parse."""
        self.log(AuditEventBuilder.extraction_failed(
            kind=kind,
            message=message,
            transcript=transcript,
            correlation_id=correlation_id,
        ))

    def log_confirmation_requested(
        self,
        expense_id: UUID,
        confidence: Optional[float],
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.confirmation_requested(
            expense_id=expense_id,
            confidence=confidence,
            correlation_id=correlation_id,
        ))

    def log_registry_loaded(
        self,
        version: str,
        currency_count: int,
        source: str,
    ) -> None:
        self.log(AuditEventBuilder.registry_loaded(
            version=version,
            currency_count=currency_count,
            source=source,
        ))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create the id shared by every event of one voice session.

    Use this at the start of a new capture session.
    The flow passes it to the controller and to its own audit calls.
    """
    return uuid4()
