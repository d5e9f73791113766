"""
Audit Models for the Voice Expense Logger

Every significant capture and extraction step is recorded as an audit
event. This provides:
1. Traceability of each voice session from start to saved expense
2. Debugging information when recognition or parsing goes wrong
3. Data for tuning the silence thresholds and confidence weights

DESIGN DECISION: Audit events are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Each step of a voice session has its own event type.
    """
    # Capture session
    CAPTURE_STARTED = "capture_started"
    CAPTURE_START_REJECTED = "capture_start_rejected"
    CAPTURE_START_IGNORED = "capture_start_ignored"
    SPEECH_DETECTED = "speech_detected"
    CAPTURE_AUTO_STOPPED = "capture_auto_stopped"
    CAPTURE_MANUALLY_STOPPED = "capture_manually_stopped"
    CAPTURE_CANCELLED_FOR_BACKGROUND = "capture_cancelled_for_background"
    TRANSCRIPT_FINALIZED = "transcript_finalized"
    RECOGNITION_FAILED = "recognition_failed"

    # Extraction
    EXTRACTION_SUCCEEDED = "extraction_succeeded"
    EXTRACTION_FAILED = "extraction_failed"
    CONFIRMATION_REQUESTED = "confirmation_requested"

    # Reference data
    CURRENCY_REGISTRY_LOADED = "currency_registry_loaded"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """How loudly the audit logger reports an event."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    One entry in the voice session audit trail.

    Capture milestones are keyed by the session correlation id; extraction
    outcomes additionally point at the expense they produced.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="UTC time the event was recorded"
    )
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What the event is about: a session, an expense, a transcript or the registry
    entity_type: Optional[str] = None
    entity_id: Optional[UUID] = None

    # Shared by every event of one voice session
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="Capture session this event belongs to"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Event payload (locale, transcript, amount, registry version, ...)"
    )

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    # True for start and manual stop, False for silence stops and engine callbacks
    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Flatten for structlog; UUIDs, enums and timestamps become strings."""
        return self.model_dump(mode="json")

    def to_row(self) -> list:
        """
        Flatten to a row for tabular sinks (CSV, spreadsheets).

        Columns: event_id, timestamp, event_type, severity, entity_type,
        entity_id, correlation_id, description, details (JSON),
        error_message, is_user_action.
        """
        dumped = self.to_log_dict()
        return [
            dumped["event_id"],
            dumped["timestamp"],
            dumped["event_type"],
            dumped["severity"],
            dumped["entity_type"] or "",
            dumped["entity_id"] or "",
            dumped["correlation_id"] or "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Factories for the events the controller and the flow record.

    Usage:
        event = AuditEventBuilder.capture_started(correlation_id, locale="en_US")
        event = AuditEventBuilder.extraction_succeeded(expense_id, ..., correlation_id)
    """

    @staticmethod
    def capture_started(
        correlation_id: UUID,
        locale: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_STARTED,
            entity_type="session",
            entity_id=correlation_id,
            correlation_id=correlation_id,
            description="Voice capture started",
            details={"locale": locale},
            is_user_action=True,
        )

    @staticmethod
    def capture_start_rejected(
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_START_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="session",
            correlation_id=correlation_id,
            description=f"Voice capture could not start: {reason}",
            details={"reason": reason},
            is_user_action=True,
        )

    @staticmethod
    def capture_start_ignored(correlation_id: Optional[UUID] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_START_IGNORED,
            severity=AuditSeverity.DEBUG,
            entity_type="session",
            correlation_id=correlation_id,
            description="Start ignored: a capture session is already active",
            is_user_action=True,
        )

    @staticmethod
    def speech_detected(correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPEECH_DETECTED,
            severity=AuditSeverity.DEBUG,
            entity_type="session",
            entity_id=correlation_id,
            correlation_id=correlation_id,
            description="First speech detected in session",
        )

    @staticmethod
    def capture_stopped(
        correlation_id: UUID,
        auto_stopped: bool,
    ) -> AuditEvent:
        if auto_stopped:
            event_type = AuditEventType.CAPTURE_AUTO_STOPPED
            description = "Capture stopped automatically after silence"
        else:
            event_type = AuditEventType.CAPTURE_MANUALLY_STOPPED
            description = "Capture stopped by user"
        return AuditEvent(
            event_type=event_type,
            entity_type="session",
            entity_id=correlation_id,
            correlation_id=correlation_id,
            description=description,
            is_user_action=not auto_stopped,
        )

    @staticmethod
    def capture_cancelled_for_background(correlation_id: Optional[UUID]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_CANCELLED_FOR_BACKGROUND,
            severity=AuditSeverity.WARNING,
            entity_type="session",
            entity_id=correlation_id,
            correlation_id=correlation_id,
            description="Capture cancelled because the app went to the background",
        )

    @staticmethod
    def transcript_finalized(
        transcript: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSCRIPT_FINALIZED,
            entity_type="session",
            entity_id=correlation_id,
            correlation_id=correlation_id,
            description="Final transcript received",
            details={
                "transcript": transcript,
                "length": len(transcript),
            },
        )

    @staticmethod
    def recognition_failed(
        kind: str,
        message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECOGNITION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="session",
            entity_id=correlation_id,
            correlation_id=correlation_id,
            description=f"Speech recognition failed: {kind}",
            error_code=kind,
            error_message=message,
        )

    @staticmethod
    def extraction_succeeded(
        expense_id: UUID,
        amount: str,
        currency: str,
        category: str,
        confidence: Optional[float],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_SUCCEEDED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense extracted: {amount} {currency} ({category})",
            details={
                "amount": amount,
                "currency": currency,
                "category": category,
                "confidence_score": confidence,
            },
        )

    @staticmethod
    def extraction_failed(
        kind: str,
        message: str,
        transcript: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="transcript",
            correlation_id=correlation_id,
            description=f"Could not extract an expense: {kind}",
            details={"transcript": transcript},
            error_code=kind,
            error_message=message,
        )

    @staticmethod
    def confirmation_requested(
        expense_id: UUID,
        confidence: Optional[float],
        correlation_id: UUID,
    ) -> AuditEvent:
        score = f"{confidence:.0%}" if confidence is not None else "unknown"
        return AuditEvent(
            event_type=AuditEventType.CONFIRMATION_REQUESTED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Low confidence ({score}), asking user to confirm",
            details={"confidence_score": confidence},
        )

    @staticmethod
    def registry_loaded(
        version: str,
        currency_count: int,
        source: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CURRENCY_REGISTRY_LOADED,
            entity_type="registry",
            description=f"Currency registry v{version} loaded ({currency_count} currencies)",
            details={
                "version": version,
                "currency_count": currency_count,
                "source": source,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
