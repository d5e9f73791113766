"""
Data Models Package

This package contains all Pydantic models used in the Voice Expense Logger.
All data flowing through the system must conform to these schemas.
"""

from voice_expense.models.expense import (
    MAX_AMOUNT,
    MIN_AMOUNT,
    SUGGESTED_FIXES,
    ExpenseCategory,
    ExpenseData,
    ExpenseSource,
    ExtractionError,
    ExtractionErrorKind,
    ExtractionResult,
    ValidationIssue,
    ValidationResult,
    is_amount_in_range,
    quantize_amount,
)
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
from voice_expense.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "MAX_AMOUNT",
    "MIN_AMOUNT",
    "SUGGESTED_FIXES",
    "ExpenseCategory",
    "ExpenseData",
    "ExpenseSource",
    "ExtractionError",
    "ExtractionErrorKind",
    "ExtractionResult",
    "ValidationIssue",
    "ValidationResult",
    "is_amount_in_range",
    "quantize_amount",
    # Capture models
    "CaptureError",
    "CaptureErrorKind",
    "EngineErrorCode",
    "ErrorState",
    "Finishing",
    "Idle",
    "Recording",
    "RecordingState",
    "RecordingStateAdapter",
    "StartOutcome",
    "TranscriptAlternative",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
