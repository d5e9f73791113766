"""
Expense Invariant Validation

DESIGN DECISION: The last step before an expense is assembled re-checks
the invariants the record must satisfy, even though earlier steps were
written to produce valid values:
- amount in (MIN_AMOUNT, MAX_AMOUNT]
- currency present in the registry
- category not empty

A caller can inject its own registry or category, so the checks are not
redundant in practice.

IMPORTANT: Validation NEVER silently fixes issues. An amount out of
range is reported, not clamped.
"""

from decimal import Decimal
from typing import Optional

from voice_expense.currency.registry import CurrencyRegistry
from voice_expense.models.expense import (
    MAX_AMOUNT,
    MIN_AMOUNT,
    SUGGESTED_FIXES,
    ExpenseCategory,
    ExtractionErrorKind,
    ValidationIssue,
    ValidationResult,
    is_amount_in_range,
)


class ExpenseValidator:
    """Checks extracted fields against the expense invariants."""

    def __init__(self, registry: CurrencyRegistry):
        """
        Initialize validator.

        Args:
            registry: Currencies an expense may be recorded in.
        """
        self._registry = registry

    def validate(
        self,
        amount: Decimal,
        currency: str,
        category: Optional[ExpenseCategory],
    ) -> ValidationResult:
        """
        Run every check and report all issues, in check order.

        The first issue decides the error kind reported to the user.
        """
        issues = []

        if not is_amount_in_range(amount):
            issues.append(ValidationIssue(
                field="amount",
                kind=ExtractionErrorKind.AMOUNT_OUT_OF_RANGE,
                message=(
                    f"Amount {amount} must be more than {MIN_AMOUNT} "
                    f"and at most {MAX_AMOUNT}"
                ),
                suggested_fix=SUGGESTED_FIXES[ExtractionErrorKind.AMOUNT_OUT_OF_RANGE],
            ))

        if currency not in self._registry:
            issues.append(ValidationIssue(
                field="currency",
                kind=ExtractionErrorKind.UNSUPPORTED_CURRENCY,
                message=f"Unsupported currency: {currency}",
                suggested_fix=SUGGESTED_FIXES[ExtractionErrorKind.UNSUPPORTED_CURRENCY],
            ))

        if category is None or not str(category.value).strip():
            issues.append(ValidationIssue(
                field="category",
                kind=ExtractionErrorKind.EMPTY_CATEGORY,
                message="Category cannot be empty",
                suggested_fix=SUGGESTED_FIXES[ExtractionErrorKind.EMPTY_CATEGORY],
            ))

        return ValidationResult(issues=issues)

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        One message per issue, with its suggested fix.

        This is what a UI shows when asking the user to rephrase.
        """
        if result.is_valid:
            return "All checks passed."

        lines = []
        for issue in result.issues:
            lines.append(f"- {issue.message}")
            if issue.suggested_fix:
                lines.append(f"  Try: {issue.suggested_fix}")
        return "\n".join(lines)
