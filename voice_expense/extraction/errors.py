"""
Extraction Failures

Steps inside the extraction package raise ExtractionFailure. The pipeline
is the only place that catches it and turns it into an ExtractionError
value, so no exception ever crosses the pipeline boundary.
"""

from typing import Optional

from voice_expense.models.expense import (
    SUGGESTED_FIXES,
    ExtractionError,
    ExtractionErrorKind,
)


class ExtractionFailure(Exception):
    """A pipeline step could not produce its field."""

    def __init__(
        self,
        kind: ExtractionErrorKind,
        message: str,
        suggested_fix: Optional[str] = None,
    ):
        self.kind = kind
        self.message = message
        self.suggested_fix = suggested_fix or SUGGESTED_FIXES.get(kind)
        super().__init__(message)

    def to_error(self, transcript: str) -> ExtractionError:
        return ExtractionError(
            kind=self.kind,
            message=self.message,
            suggested_fix=self.suggested_fix,
            voice_transcript=transcript,
        )
