"""
Amount Extraction

A fixed, ordered list of strategies, most specific first:

    1. symbol-prefixed number     "$25.50", "₹20", "Rs 500", "د.إ 40"
    2. decimal + currency name    "25.50 dollars", "1,000.50 dirhams"
    3. integer + currency name    "25 dollars", "2,000 AED"
    4. bare decimal               "15.75"
    5. bare integer               "40"
    6. written number phrase      "two thousand five hundred"

Each strategy contributes at most one candidate: its first match. A
candidate outside (MIN_AMOUNT, MAX_AMOUNT] is discarded and the next
strategy is tried. Nothing is ever clamped.

DESIGN DECISION: Symbols and currency names come from the registry, so
"25 kwacha" and "KSh 300" work without a code change.
"""

import re
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from voice_expense.currency.detector import (
    NOT_FOLLOWED_BY_LETTER,
    NOT_PRECEDED_BY_LETTER,
    keyword_pattern,
    symbol_pattern,
)
from voice_expense.currency.registry import CurrencyRegistry
from voice_expense.extraction.errors import ExtractionFailure
from voice_expense.extraction.number_phrases import NumberPhraseParser
from voice_expense.models.expense import (
    ExtractionErrorKind,
    is_amount_in_range,
    quantize_amount,
)


# Not part of a longer number, not negative
_NUMBER_START = r"(?<![\d.,\-−])"

# Thousands separators only in groups of three; at most two decimals
_DECIMAL = r"(?:\d{1,3}(?:,\d{3})+|\d+)\.\d{1,2}"
_INTEGER = r"(?:\d{1,3}(?:,\d{3})+|\d+)"

DECIMAL_NUMBER = _NUMBER_START + rf"(?P<number>{_DECIMAL})(?!\.?\d)"
INTEGER_NUMBER = _NUMBER_START + rf"(?P<number>{_INTEGER})(?![.,]?\d)"
ANY_NUMBER = _NUMBER_START + rf"(?P<number>{_DECIMAL}|{_INTEGER})(?![.,]?\d)"

# "Rs 500" / "rs. 500": common enough in speech-to-text to accept in any case
_RUPEE_PREFIX = NOT_PRECEDED_BY_LETTER + r"(?i:rs)\.?"


class AmountStrategy(str, Enum):
    """Which strategy produced an amount."""
    SYMBOL_PREFIX = "symbol_prefix"
    DECIMAL_WITH_NAME = "decimal_with_name"
    INTEGER_WITH_NAME = "integer_with_name"
    BARE_DECIMAL = "bare_decimal"
    BARE_INTEGER = "bare_integer"
    NUMBER_PHRASE = "number_phrase"


class AmountMatch(BaseModel):
    """An accepted amount and the strategy that found it."""
    model_config = ConfigDict(frozen=True)

    value: Decimal
    strategy: AmountStrategy


def parse_number(raw: str) -> Decimal:
    """Digits with optional thousands separators to Decimal."""
    return Decimal(raw.replace(",", ""))


def registry_currency_words(registry: CurrencyRegistry) -> set[str]:
    """
    Single words that name a currency: the last word of every keyword
    ("dirham" from "uae dirham"), its plurals, and the lower-cased codes.
    """
    words = set()
    for entry in registry:
        words.add(entry.code.lower())
        for keyword in entry.voice_keywords:
            last = keyword.split()[-1]
            words.update((last, last + "s", last + "es"))
    return words


class AmountExtractor:
    """
    Finds the spent amount in a transcript.

    Patterns are compiled once from the registry; the extractor holds no
    other state and can be shared across threads.
    """

    def __init__(
        self,
        registry: CurrencyRegistry,
        phrase_parser: Optional[NumberPhraseParser] = None,
    ):
        self._phrase_parser = phrase_parser or NumberPhraseParser(
            registry_currency_words(registry)
        )

        # Longest symbol first so "CA$" is not read as "$"
        symbols = sorted((e.symbol for e in registry), key=len, reverse=True)
        prefix = "|".join([symbol_pattern(s) for s in symbols] + [_RUPEE_PREFIX])

        keywords = sorted(
            {k for e in registry for k in e.voice_keywords},
            key=len,
            reverse=True,
        )
        names = "|".join(keyword_pattern(k) for k in keywords)
        codes = "|".join(re.escape(c) for c in registry.codes)
        suffix = (
            rf"(?:(?i:{names})|"
            + NOT_PRECEDED_BY_LETTER
            + rf"(?:{codes})"
            + NOT_FOLLOWED_BY_LETTER
            + ")"
        )

        self._strategies: list[tuple[AmountStrategy, re.Pattern]] = [
            (AmountStrategy.SYMBOL_PREFIX, re.compile(rf"(?:{prefix})\s*" + ANY_NUMBER)),
            (AmountStrategy.DECIMAL_WITH_NAME, re.compile(DECIMAL_NUMBER + r"\s*" + suffix)),
            (AmountStrategy.INTEGER_WITH_NAME, re.compile(INTEGER_NUMBER + r"\s*" + suffix)),
            (AmountStrategy.BARE_DECIMAL, re.compile(DECIMAL_NUMBER)),
            (AmountStrategy.BARE_INTEGER, re.compile(INTEGER_NUMBER)),
        ]

    @property
    def phrase_parser(self) -> NumberPhraseParser:
        return self._phrase_parser

    def extract(self, text: str) -> Decimal:
        """
        Amount spoken in `text`, quantized to cents.

        Raises:
            ExtractionFailure: AMOUNT_OUT_OF_RANGE if a number was found but
                none was in range, AMOUNT_NOT_FOUND if there was no number.
        """
        return self.extract_match(text).value

    def extract_match(self, text: str) -> AmountMatch:
        """Like extract(), but also reports which strategy decided."""
        rejected: list[Decimal] = []

        for strategy, candidate in self._candidates(text):
            value = quantize_amount(candidate)
            if is_amount_in_range(value):
                return AmountMatch(value=value, strategy=strategy)
            rejected.append(candidate)

        if rejected:
            raise ExtractionFailure(
                ExtractionErrorKind.AMOUNT_OUT_OF_RANGE,
                f"Amount {rejected[0]} is outside the allowed range",
            )
        raise ExtractionFailure(
            ExtractionErrorKind.AMOUNT_NOT_FOUND,
            "No amount found in the transcript",
        )

    def _candidates(self, text: str):
        """Yield (strategy, value) for the first match of each strategy, in order."""
        for strategy, pattern in self._strategies:
            m = pattern.search(text)
            if m is None:
                continue
            yield strategy, parse_number(m.group("number"))

        phrase_value = self._phrase_parser.parse(text)
        if phrase_value is not None:
            yield AmountStrategy.NUMBER_PHRASE, phrase_value
