"""Audit logging package."""

from voice_expense.audit.logger import (
    AuditLogger,
    configure_stdlib_logging,
    create_correlation_id,
)
from voice_expense.audit.sink import AuditSink, InMemoryAuditSink

__all__ = [
    "AuditLogger",
    "AuditSink",
    "InMemoryAuditSink",
    "configure_stdlib_logging",
    "create_correlation_id",
]
