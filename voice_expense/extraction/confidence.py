"""
Confidence Scoring

A [0, 1] completeness heuristic over the transcript text. It is computed
independently of whether extraction succeeds and says nothing about the
speech engine's acoustic confidence.

Additive weighted indicators, capped at 1.0:

    digit sequence           +0.3
    category keyword         +0.3
    expense action verb      +0.2
    merchant preposition     +0.1
    currency symbol or name  +0.1

Every indicator is a presence test, so adding words to a transcript can
only keep or raise its score.
"""

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from voice_expense.currency.detector import CurrencyDetector
from voice_expense.extraction.category import CategoryClassifier


_DIGITS = re.compile(r"\d")
_ACTION_VERBS = re.compile(
    r"\b(?:spent|spend|spending|paid|pay|paying|cost|costs|"
    r"bought|buy|buying|purchased?|purchasing)\b",
    re.IGNORECASE,
)
_MERCHANT_PREPOSITIONS = re.compile(r"\b(?:at|from|to)\b", re.IGNORECASE)


class ConfidenceWeights(BaseModel):
    """
    Indicator weights.

    Tuned empirically by the apps; these are defaults, not a contract.
    """
    model_config = ConfigDict(frozen=True)

    digit: float = Field(default=0.3, ge=0.0, le=1.0)
    category_keyword: float = Field(default=0.3, ge=0.0, le=1.0)
    action_verb: float = Field(default=0.2, ge=0.0, le=1.0)
    merchant_preposition: float = Field(default=0.1, ge=0.0, le=1.0)
    currency: float = Field(default=0.1, ge=0.0, le=1.0)


class ConfidenceScorer:
    """Scores how complete a spoken expense command looks."""

    def __init__(
        self,
        detector: CurrencyDetector,
        classifier: Optional[CategoryClassifier] = None,
        weights: Optional[ConfidenceWeights] = None,
    ):
        self._detector = detector
        self._classifier = classifier or CategoryClassifier()
        self._weights = weights or ConfidenceWeights()

    def breakdown(self, text: str) -> dict[str, bool]:
        """Which indicators are present in `text`."""
        text = (text or "").strip()
        return {
            "digit": bool(_DIGITS.search(text)),
            "category_keyword": self._classifier.has_keyword(text),
            "action_verb": bool(_ACTION_VERBS.search(text)),
            "merchant_preposition": bool(_MERCHANT_PREPOSITIONS.search(text)),
            "currency": self._detector.find_explicit(text) is not None,
        }

    def score(self, text: str) -> float:
        """Weighted sum of present indicators, capped at 1.0, two decimals."""
        weights = self._weights.model_dump()
        total = sum(
            weights[name]
            for name, present in self.breakdown(text).items()
            if present
        )
        return round(min(total, 1.0), 2)
