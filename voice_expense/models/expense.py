"""
Core Data Models for the Voice Expense Logger

These models define the strict schemas for everything the extraction
pipeline produces. They are designed to:
1. Enforce the amount and field-length invariants at construction time
2. Be immutable once handed to a downstream collaborator
3. Be serializable for storage and logging
4. Preserve the original transcript for the audit trail

DESIGN DECISION: A failed parse is a value (ExtractionError), not an
exception. Ambiguous speech is a common, expected outcome and callers
should be able to show "please rephrase" without a try/except.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


# =============================================================================
# AMOUNT LIMITS
# =============================================================================

MIN_AMOUNT = Decimal("0.01")        # exclusive lower bound
MAX_AMOUNT = Decimal("999999.99")   # inclusive upper bound
AMOUNT_QUANTUM = Decimal("0.01")


def quantize_amount(value: Decimal) -> Decimal:
    """Round an amount to cents (half-up, like a cashier)."""
    return value.quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)


def is_amount_in_range(value: Decimal) -> bool:
    """True when MIN_AMOUNT < value <= MAX_AMOUNT."""
    return MIN_AMOUNT < value <= MAX_AMOUNT


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Supported spending categories.

    DESIGN DECISION: The values are the display names the apps show, so a
    persisted record reads the same everywhere. OTHER is the fallback when
    no keyword matches, which means a category is never empty in practice.
    """
    FOOD_DINING = "Food & Dining"
    GROCERY = "Grocery"
    TRANSPORTATION = "Transportation"
    SHOPPING = "Shopping"
    ENTERTAINMENT = "Entertainment"
    BILLS_UTILITIES = "Bills & Utilities"
    HEALTHCARE = "Healthcare"
    EDUCATION = "Education"
    OTHER = "Other"


class ExpenseSource(str, Enum):
    """Where an expense came from."""
    MANUAL_VOICE = "manual_voice"      # In-app microphone button
    SIRI_ASSISTED = "siri_assisted"    # Voice assistant / shortcut hand-off
    TEXT_FALLBACK = "text_fallback"    # Typed because speech was unavailable


class ExtractionErrorKind(str, Enum):
    """
    Why a transcript could not be turned into an expense.

    EMPTY_CATEGORY should not happen because the classifier falls back to
    OTHER, but the validation step still checks it.
    """
    AMOUNT_NOT_FOUND = "amount_not_found"
    AMOUNT_OUT_OF_RANGE = "amount_out_of_range"
    UNSUPPORTED_CURRENCY = "unsupported_currency"
    EMPTY_CATEGORY = "empty_category"


# What the user could say instead, shown with each error kind
SUGGESTED_FIXES: dict[ExtractionErrorKind, str] = {
    ExtractionErrorKind.AMOUNT_NOT_FOUND: (
        'Try saying the amount clearly, e.g. "I spent 25 dollars on lunch".'
    ),
    ExtractionErrorKind.AMOUNT_OUT_OF_RANGE: (
        "Amounts must be more than 0.01 and at most 999,999.99."
    ),
    ExtractionErrorKind.UNSUPPORTED_CURRENCY: (
        'Say the currency name, e.g. "dollars" or "dirhams".'
    ),
    ExtractionErrorKind.EMPTY_CATEGORY: (
        'Mention what it was for, e.g. "on groceries".'
    ),
}


# =============================================================================
# EXPENSE MODEL
# =============================================================================

class ExpenseData(BaseModel):
    """
    A structured expense extracted from one transcript.

    CRITICAL: This is constructed once per successful parse and never
    mutated. Edits are the job of whoever persists it.
    """
    model_config = ConfigDict(frozen=True)

    expense_id: UUID = Field(
        default_factory=uuid4,
        description="Unique expense identifier"
    )
    amount: Decimal = Field(
        ...,
        gt=MIN_AMOUNT,
        le=MAX_AMOUNT,
        description="Spent amount, two decimal places"
    )
    currency: str = Field(
        ...,
        pattern=r"^[A-Z]{3}$",
        description="Currency code from the currency registry"
    )
    category: ExpenseCategory = Field(
        ...,
        description="Spending category"
    )
    merchant: Optional[str] = Field(
        default=None,
        min_length=3,
        max_length=100,
        description="Where the money was spent"
    )
    notes: Optional[str] = Field(
        default=None,
        max_length=500,
        description="Free-text note (\"for coffee\", \"note: ...\")"
    )
    transaction_date: datetime = Field(
        ...,
        description="When the purchase happened"
    )
    source: ExpenseSource = Field(
        default=ExpenseSource.MANUAL_VOICE,
        description="Provenance of the expense"
    )
    voice_transcript: str = Field(
        ...,
        description="Original transcript, preserved verbatim"
    )
    confidence_score: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Extraction completeness heuristic (not ASR confidence)"
    )
    needs_confirmation: bool = Field(
        default=False,
        description="Should the UI ask the user to confirm before saving?"
    )

    @field_validator('amount', mode='before')
    @classmethod
    def round_to_cents(cls, v):
        """Store every amount with exactly two decimal places."""
        try:
            return quantize_amount(Decimal(str(v)))
        except InvalidOperation:
            raise ValueError(f"Not a decimal amount: {v!r}")

    def to_log_dict(self) -> dict:
        """Flat summary for structured logs and audit details."""
        return {
            "expense_id": str(self.expense_id),
            "amount": str(self.amount),
            "currency": self.currency,
            "category": self.category.value,
            "merchant": self.merchant,
            "transaction_date": self.transaction_date.isoformat(),
            "source": self.source.value,
            "confidence_score": self.confidence_score,
            "needs_confirmation": self.needs_confirmation,
        }


class ExtractionError(BaseModel):
    """
    A typed, recoverable extraction failure.

    The pipeline returns this instead of raising so the caller can ask the
    user to rephrase.
    """
    model_config = ConfigDict(frozen=True)

    kind: ExtractionErrorKind
    message: str = Field(
        ...,
        description="Human-readable description of what went wrong"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="What the user could say instead"
    )
    voice_transcript: str = Field(
        default="",
        description="Transcript that failed, for debugging"
    )


ExtractionResult = Union[ExpenseData, ExtractionError]


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single invariant violation found before assembling an expense."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    kind: ExtractionErrorKind = Field(
        ...,
        description="Error kind this issue maps to"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """Result of checking the extracted fields against the expense invariants."""

    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All issues found, in check order"
    )

    @property
    def is_valid(self) -> bool:
        return not self.issues

    @property
    def first_issue(self) -> Optional[ValidationIssue]:
        """The issue that decides the error kind reported to the user."""
        return self.issues[0] if self.issues else None
