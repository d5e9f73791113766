"""
Written Number Phrases

Converts spoken number words to a Decimal:

    "two thousand"                        -> 2000
    "five lakh fifty thousand"            -> 550000
    "two point five million"              -> 2500000
    "one hundred and twenty"              -> 120
    "ten and a half"                      -> 10.5
    "twenty dollars and fifty cents"      -> 20.50

This is the last amount strategy. Digits are unambiguous and are always
tried first by the amount extractor; this parser only reads words.

Algorithm: two accumulators, as in any words-to-number converter.
`current` builds the group below the next scale word, `total` holds the
completed scale groups. "hundred" multiplies `current`; a scale word
(thousand, lakh, crore, million, ...) flushes `current * scale` into
`total`. A phrase is a run of number words separated only by whitespace
or hyphens; anything else ends it.
"""

import re
from collections.abc import Iterable
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict


# =============================================================================
# WORD TABLES
# =============================================================================

_UNITS: dict[str, int] = {
    "zero": 0,
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
    "eleven": 11,
    "twelve": 12,
    "thirteen": 13,
    "fourteen": 14,
    "fifteen": 15,
    "sixteen": 16,
    "seventeen": 17,
    "eighteen": 18,
    "nineteen": 19,
}

_TENS: dict[str, int] = {
    "twenty": 20,
    "thirty": 30,
    "forty": 40,
    "fifty": 50,
    "sixty": 60,
    "seventy": 70,
    "eighty": 80,
    "ninety": 90,
}

_HUNDRED = frozenset({"hundred", "hundreds"})

_SCALES: dict[str, int] = {
    "thousand": 10 ** 3,
    "thousands": 10 ** 3,
    "lakh": 10 ** 5,
    "lakhs": 10 ** 5,
    "lac": 10 ** 5,
    "lacs": 10 ** 5,
    "million": 10 ** 6,
    "millions": 10 ** 6,
    "crore": 10 ** 7,
    "crores": 10 ** 7,
    "billion": 10 ** 9,
    "billions": 10 ** 9,
    "trillion": 10 ** 12,
    "trillions": 10 ** 12,
}

_ARTICLES = frozenset({"a", "an"})

# Hundredths of the main unit: "fifty cents", "and twenty fils"
_SUBUNITS = frozenset({"cent", "cents", "paisa", "paise", "fils", "penny", "pence"})

DEFAULT_CURRENCY_WORDS = frozenset({
    "dollar", "dollars", "buck", "bucks",
    "dirham", "dirhams", "euro", "euros",
    "pound", "pounds", "rupee", "rupees",
    "riyal", "riyals", "quid", "yen", "yuan", "rs",
    "aed", "usd", "eur", "gbp", "inr", "sar",
})

_WORD = re.compile(r"[A-Za-z]+(?:'[A-Za-z]+)?")
_JOINER = re.compile(r"[\s\-]*")

HALF = Decimal("0.5")
HUNDREDTH = Decimal("0.01")


class NumberPhrase(BaseModel):
    """A number phrase found in a transcript, with character offsets."""
    model_config = ConfigDict(frozen=True)

    value: Decimal
    start: int
    end: int
    followed_by_currency: bool = False


class _Token(BaseModel):
    model_config = ConfigDict(frozen=True)

    word: str
    start: int
    end: int
    joined: bool    # only whitespace or hyphens since the previous token


def _tokenize(text: str) -> list[_Token]:
    tokens = []
    previous_end = None
    for m in _WORD.finditer(text):
        joined = (
            previous_end is not None
            and _JOINER.fullmatch(text, previous_end, m.start()) is not None
        )
        tokens.append(_Token(
            word=m.group(0).lower(),
            start=m.start(),
            end=m.end(),
            joined=joined,
        ))
        previous_end = m.end()
    return tokens


def _is_small_number(word: Optional[str]) -> bool:
    return word is not None and (word in _UNITS or word in _TENS)


class NumberPhraseParser:
    """
    Parses written-number phrases out of free text.

    Stateless apart from the set of currency words used to prefer the
    phrase that names an amount ("spent two hundred dollars") over an
    incidental one ("for two people").
    """

    def __init__(self, currency_words: Optional[Iterable[str]] = None):
        words = DEFAULT_CURRENCY_WORDS if currency_words is None else currency_words
        self._currency_words = frozenset(w.lower() for w in words)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def parse(self, text: str) -> Optional[Decimal]:
        """
        Value of the amount phrase in `text`, or None.

        When several phrases are present, the first one directly followed
        by a currency word wins, otherwise the first phrase.
        """
        phrases = self.find_all(text)
        if not phrases:
            return None
        for phrase in phrases:
            if phrase.followed_by_currency:
                return phrase.value
        return phrases[0].value

    def contains_number_phrase(self, text: str) -> bool:
        return bool(self.find_all(text))

    def find_all(self, text: str) -> list[NumberPhrase]:
        """Every number phrase in `text`, in order of appearance."""
        tokens = _tokenize(text or "")
        phrases = []
        i = 0
        while i < len(tokens):
            read = self._read_phrase(tokens, i)
            if read is None:
                i += 1
                continue
            value, end = read
            value, end, followed = self._read_currency_tail(tokens, value, end)
            phrases.append(NumberPhrase(
                value=value,
                start=tokens[i].start,
                end=tokens[end - 1].end,
                followed_by_currency=followed,
            ))
            i = end
        return phrases

    # ------------------------------------------------------------------
    # Phrase reading
    # ------------------------------------------------------------------

    @staticmethod
    def _peek(tokens: list[_Token], k: int) -> Optional[str]:
        """Word at k if it continues the current phrase."""
        if k < len(tokens) and tokens[k].joined:
            return tokens[k].word
        return None

    def _subunit_ahead(self, tokens: list[_Token], k: int) -> bool:
        """True for "fifty cents" / "twenty five paise" starting at k."""
        while _is_small_number(self._peek(tokens, k)):
            k += 1
        return self._peek(tokens, k) in _SUBUNITS

    def _read_phrase(
        self,
        tokens: list[_Token],
        i: int,
    ) -> Optional[tuple[Decimal, int]]:
        """
        Read one phrase starting at token i.

        Returns (value, index after the last consumed token), or None if
        token i does not start a number.
        """
        total = Decimal(0)
        current = Decimal(0)
        and_mark: Optional[Decimal] = None
        previous: Optional[str] = None
        seen_number = False

        j = i
        while j < len(tokens):
            if j > i and not tokens[j].joined:
                break
            word = tokens[j].word

            if word in _UNITS:
                # "twenty five" continues, "five six" and "twenty fifteen" do not
                if previous == "unit" or (previous == "tens" and not 0 < _UNITS[word] < 10):
                    break
                current += _UNITS[word]
                previous = "unit"
                seen_number = True

            elif word in _TENS:
                if previous in ("unit", "tens"):
                    break
                current += _TENS[word]
                previous = "tens"
                seen_number = True

            elif word in _HUNDRED:
                if previous == "hundred":
                    break
                current = (current or 1) * 100
                previous = "hundred"
                seen_number = True

            elif word in _SCALES:
                if previous == "scale":
                    break
                total += (current or 1) * _SCALES[word]
                current = Decimal(0)
                previous = "scale"
                seen_number = True

            elif word in _ARTICLES:
                nxt = self._peek(tokens, j + 1)
                if current or (nxt not in _HUNDRED and nxt not in _SCALES):
                    break
                previous = "article"

            elif word == "and":
                if not seen_number:
                    break
                nxt = self._peek(tokens, j + 1)
                if nxt in _ARTICLES and self._peek(tokens, j + 2) == "half":
                    return total + current + HALF, j + 3
                if not _is_small_number(nxt):
                    break
                if previous not in ("hundred", "scale") and not self._subunit_ahead(tokens, j + 1):
                    break
                and_mark = total + current
                previous = "and"

            elif word == "point":
                if not seen_number:
                    break
                digits = []
                k = j + 1
                while self._peek(tokens, k) in _UNITS and _UNITS[tokens[k].word] < 10:
                    digits.append(str(_UNITS[tokens[k].word]))
                    k += 1
                if not digits:
                    break
                group = current + Decimal("0." + "".join(digits))
                scale_word = self._peek(tokens, k)
                if scale_word in _SCALES:
                    return total + group * _SCALES[scale_word], k + 1
                if scale_word in _HUNDRED:
                    return total + group * 100, k + 1
                return total + group, k

            elif word in _SUBUNITS:
                if not seen_number:
                    break
                base = and_mark if and_mark is not None else Decimal(0)
                hundredths = total + current - base
                if hundredths >= 100:
                    break
                return base + hundredths * HUNDREDTH, j + 1

            else:
                break
            j += 1

        if not seen_number:
            return None
        return total + current, j

    def _read_currency_tail(
        self,
        tokens: list[_Token],
        value: Decimal,
        end: int,
    ) -> tuple[Decimal, int, bool]:
        """
        Check for a currency word after the phrase and a trailing
        "... and fifty cents" after that.
        """
        if self._peek(tokens, end) not in self._currency_words:
            return value, end, False
        end += 1

        k = end
        if self._peek(tokens, k) == "and":
            k += 1
        start = k
        hundredths = 0
        previous = None
        while _is_small_number(self._peek(tokens, k)):
            word = tokens[k].word
            if previous == "unit" or (previous == "tens" and not 0 < _UNITS.get(word, 0) < 10):
                break
            hundredths += _UNITS.get(word, 0) + _TENS.get(word, 0)
            previous = "unit" if word in _UNITS else "tens"
            k += 1
        if k > start and self._peek(tokens, k) in _SUBUNITS and hundredths < 100:
            return value + hundredths * HUNDREDTH, k + 1, True
        return value, end, True
