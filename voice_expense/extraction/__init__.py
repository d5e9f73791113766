"""
Extraction Package

Deterministic, pattern-based extraction of expenses from transcripts.
No network calls and no model inference: the same transcript always
yields the same result.
"""

from voice_expense.extraction.errors import ExtractionFailure
from voice_expense.extraction.number_phrases import NumberPhrase, NumberPhraseParser
from voice_expense.extraction.amount import (
    AmountExtractor,
    AmountMatch,
    AmountStrategy,
    registry_currency_words,
)
from voice_expense.extraction.category import CATEGORY_RULES, CategoryClassifier
from voice_expense.extraction.fields import (
    DateExtractor,
    MerchantExtractor,
    NoteExtractor,
)
from voice_expense.extraction.confidence import ConfidenceScorer, ConfidenceWeights
from voice_expense.extraction.phrases import BASE_PHRASES, suggested_phrases
from voice_expense.extraction.pipeline import ExpenseExtractionPipeline

__all__ = [
    "BASE_PHRASES",
    "CATEGORY_RULES",
    "AmountExtractor",
    "AmountMatch",
    "AmountStrategy",
    "CategoryClassifier",
    "ConfidenceScorer",
    "ConfidenceWeights",
    "DateExtractor",
    "ExpenseExtractionPipeline",
    "ExtractionFailure",
    "MerchantExtractor",
    "NoteExtractor",
    "NumberPhrase",
    "NumberPhraseParser",
    "registry_currency_words",
    "suggested_phrases",
]
