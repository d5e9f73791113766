"""
Expense Extraction Pipeline

Turns one transcript into an ExpenseData or an ExtractionError:

    normalize -> amount -> currency -> category
              -> merchant / notes / date -> validate -> assemble

DESIGN DECISION: parse() is pure. It reads only the registry and the
patterns compiled from it at construction, never logs and never raises
for bad speech, so it can run on any thread and concurrently for
unrelated transcripts. Auditing happens around it, in the orchestrator.

A failing step raises ExtractionFailure internally; parse() converts it
to an ExtractionError value and returns without building a partial
record.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from voice_expense.currency.detector import CurrencyDetector
from voice_expense.currency.registry import CurrencyRegistry
from voice_expense.extraction.amount import AmountExtractor
from voice_expense.extraction.category import CategoryClassifier
from voice_expense.extraction.confidence import ConfidenceScorer
from voice_expense.extraction.errors import ExtractionFailure
from voice_expense.extraction.fields import (
    DateExtractor,
    MerchantExtractor,
    NoteExtractor,
)
from voice_expense.models.expense import (
    ExpenseCategory,
    ExpenseData,
    ExpenseSource,
    ExtractionResult,
)
from voice_expense.validation.validator import ExpenseValidator


class ExpenseExtractionPipeline:
    """
    Orchestrates the extraction steps for a single transcript.

    Every step is injectable so it can be tested on its own; by default
    they are all built from the registry.
    """

    def __init__(
        self,
        registry: CurrencyRegistry,
        detector: Optional[CurrencyDetector] = None,
        amount_extractor: Optional[AmountExtractor] = None,
        classifier: Optional[CategoryClassifier] = None,
        merchant_extractor: Optional[MerchantExtractor] = None,
        note_extractor: Optional[NoteExtractor] = None,
        date_extractor: Optional[DateExtractor] = None,
        scorer: Optional[ConfidenceScorer] = None,
        validator: Optional[ExpenseValidator] = None,
        low_confidence_threshold: float = 0.5,
    ):
        self._registry = registry
        self._detector = detector or CurrencyDetector(registry)
        self._amounts = amount_extractor or AmountExtractor(registry)
        self._classifier = classifier or CategoryClassifier()
        self._merchants = merchant_extractor or MerchantExtractor()
        self._notes = note_extractor or NoteExtractor()
        self._dates = date_extractor or DateExtractor()
        self._scorer = scorer or ConfidenceScorer(self._detector, self._classifier)
        self._validator = validator or ExpenseValidator(registry)
        self._low_confidence_threshold = low_confidence_threshold

    @property
    def registry(self) -> CurrencyRegistry:
        return self._registry

    @property
    def detector(self) -> CurrencyDetector:
        return self._detector

    @property
    def scorer(self) -> ConfidenceScorer:
        return self._scorer

    def parse(
        self,
        transcript: str,
        locale: Optional[str] = None,
        default_currency: str = "USD",
        *,
        source: ExpenseSource = ExpenseSource.MANUAL_VOICE,
        captured_at: Optional[datetime] = None,
    ) -> ExtractionResult:
        """
        Extract an expense from `transcript`.

        Args:
            transcript: Final transcript, stored verbatim on the result
            locale: Locale identifier used when the text names no currency
            default_currency: Last-resort currency code
            source: Provenance recorded on the expense
            captured_at: Capture time that relative dates are resolved
                against. Defaults to now, in local time.

        Returns:
            ExpenseData on success, ExtractionError otherwise. Never raises
            for unparseable speech.
        """
        text = (transcript or "").strip()
        if captured_at is None:
            captured_at = datetime.now().astimezone()

        try:
            amount = self._amounts.extract(text)
            currency = self._detector.detect(text, locale, default_currency)
            category = self._classifier.classify(text)
            merchant = self._merchants.extract(text)
            notes = self._notes.extract(text)
            transaction_date = self._dates.extract(text, captured_at)
            self._validate(amount, currency, category)
        except ExtractionFailure as failure:
            return failure.to_error(transcript or "")

        score = self._scorer.score(text)
        return ExpenseData(
            amount=amount,
            currency=currency,
            category=category,
            merchant=merchant,
            notes=notes,
            transaction_date=transaction_date,
            source=source,
            voice_transcript=transcript,
            confidence_score=score,
            needs_confirmation=score < self._low_confidence_threshold,
        )

    def _validate(
        self,
        amount: Decimal,
        currency: str,
        category: ExpenseCategory,
    ) -> None:
        """Raise the first invariant violation as an ExtractionFailure."""
        result = self._validator.validate(amount, currency, category)
        issue = result.first_issue
        if issue is not None:
            raise ExtractionFailure(issue.kind, issue.message, issue.suggested_fix)
