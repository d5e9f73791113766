"""
Currency Detection

Maps a transcript to a currency code. Strategies are tried in a fixed
order and the first one that finds anything wins:

    (a) literal symbols ("$", "₹", "د.إ", "CA$")
    (b) spoken names and colloquialisms ("dirhams", "bucks", "quid")
    (c) ISO codes written as upper-case words ("AED", "USD")
    (d) the default currency of the locale's region ("ar_AE" -> AED)
    (e) the caller's default currency

Inside a strategy, the match that starts earliest in the text wins, then
the longest match, then registry order. An explicit symbol therefore
always beats a locale guess, and a currency named anywhere beats silence.

DESIGN DECISION: Matching rules live in the registry data (symbols,
keywords). This module only knows how to search for them, so adding a
currency never needs a code change.
"""

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from voice_expense.currency.registry import (
    CurrencyEntry,
    CurrencyRegistry,
    region_from_locale,
)


# A "letter" for boundary purposes: a word character that is not a digit or underscore.
LETTER = r"[^\W\d_]"
NOT_PRECEDED_BY_LETTER = rf"(?<!{LETTER})"
NOT_FOLLOWED_BY_LETTER = rf"(?!{LETTER})"

# Letter-only symbols ("R", "KM", "L") count only as a prefix of an amount
# ("R 50", "R50"); after a number they are usually units ("2 L of milk")
_NUMBER_AFTER = re.compile(r"\s*\d")


class DetectionSource(str, Enum):
    """Which strategy decided the currency."""
    SYMBOL = "symbol"
    KEYWORD = "keyword"
    ISO_CODE = "iso_code"
    LOCALE = "locale"
    DEFAULT = "default"


class CurrencyMatch(BaseModel):
    """Where a currency indicator was found in the text."""
    model_config = ConfigDict(frozen=True)

    code: str
    source: DetectionSource
    start: int = -1
    end: int = -1
    matched_text: str = ""


def is_letter_only(symbol: str) -> bool:
    return all(ch.isalpha() for ch in symbol)


def symbol_pattern(symbol: str) -> str:
    """
    Regex for a symbol with letter boundaries on its lettered edges.

    "R" must not match inside "Rent"; "$" may touch anything.
    """
    pattern = re.escape(symbol)
    if symbol[0].isalpha():
        pattern = NOT_PRECEDED_BY_LETTER + pattern
    if symbol[-1].isalpha():
        pattern = pattern + NOT_FOLLOWED_BY_LETTER
    return pattern


def keyword_pattern(keyword: str) -> str:
    """
    Regex for a spoken currency name on lower-cased text.

    Whole words only, any whitespace between words, optional plural.
    """
    words = [re.escape(w) for w in keyword.split()]
    return (
        NOT_PRECEDED_BY_LETTER
        + r"\s+".join(words)
        + r"(?:s|es)?"
        + NOT_FOLLOWED_BY_LETTER
    )


class CurrencyDetector:
    """
    Detects the currency a transcript talks about.

    Holds only compiled patterns derived from the registry, so one
    instance can be shared across threads.
    """

    def __init__(self, registry: CurrencyRegistry):
        self._registry = registry

        self._symbols: list[tuple[int, CurrencyEntry, re.Pattern, bool]] = []
        self._keywords: list[tuple[int, CurrencyEntry, re.Pattern]] = []
        for rank, entry in enumerate(registry):
            self._symbols.append((
                rank,
                entry,
                re.compile(symbol_pattern(entry.symbol)),
                is_letter_only(entry.symbol),
            ))
            for keyword in entry.voice_keywords:
                self._keywords.append((rank, entry, re.compile(keyword_pattern(keyword))))

        codes = "|".join(re.escape(code) for code in registry.codes)
        self._iso_codes = re.compile(rf"\b(?:{codes})\b")

    @property
    def registry(self) -> CurrencyRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def detect(
        self,
        text: str,
        locale: Optional[str] = None,
        default_currency: str = "USD",
    ) -> str:
        """Currency code for `text`. Never fails; falls back to the default."""
        return self.detect_match(text, locale, default_currency).code

    def detect_match(
        self,
        text: str,
        locale: Optional[str] = None,
        default_currency: str = "USD",
    ) -> CurrencyMatch:
        """Like detect(), but also reports which strategy decided."""
        explicit = self.find_explicit_match(text)
        if explicit is not None:
            return explicit

        entry = self._registry.for_region(region_from_locale(locale))
        if entry is not None:
            return CurrencyMatch(code=entry.code, source=DetectionSource.LOCALE)

        return CurrencyMatch(
            code=default_currency.strip().upper(),
            source=DetectionSource.DEFAULT,
        )

    def find_explicit(self, text: str) -> Optional[str]:
        """Code named by the text itself (symbol, keyword or ISO code), if any."""
        match = self.find_explicit_match(text)
        return match.code if match else None

    def find_explicit_match(self, text: str) -> Optional[CurrencyMatch]:
        text = (text or "").strip()
        if not text:
            return None
        return (
            self.find_symbol(text)
            or self.find_keyword(text)
            or self.find_iso_code(text)
        )

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def find_symbol(self, text: str) -> Optional[CurrencyMatch]:
        """Earliest currency symbol in the original-case text."""
        best = None
        for rank, entry, pattern, letter_only in self._symbols:
            for m in pattern.finditer(text):
                if letter_only and not _NUMBER_AFTER.match(text, m.end()):
                    continue
                key = (m.start(), -(m.end() - m.start()), rank)
                if best is None or key < best[0]:
                    best = (key, entry, m)
                break
        if best is None:
            return None
        _, entry, m = best
        return CurrencyMatch(
            code=entry.code,
            source=DetectionSource.SYMBOL,
            start=m.start(),
            end=m.end(),
            matched_text=m.group(0),
        )

    def find_keyword(self, text: str) -> Optional[CurrencyMatch]:
        """Earliest spoken currency name, matched on lower-cased text."""
        lowered = text.lower()
        best = None
        for rank, entry, pattern in self._keywords:
            m = pattern.search(lowered)
            if m is None:
                continue
            key = (m.start(), -(m.end() - m.start()), rank)
            if best is None or key < best[0]:
                best = (key, entry, m)
        if best is None:
            return None
        _, entry, m = best
        return CurrencyMatch(
            code=entry.code,
            source=DetectionSource.KEYWORD,
            start=m.start(),
            end=m.end(),
            matched_text=text[m.start():m.end()],
        )

    def find_iso_code(self, text: str) -> Optional[CurrencyMatch]:
        """Earliest upper-case ISO code written as a whole word."""
        m = self._iso_codes.search(text)
        if m is None:
            return None
        return CurrencyMatch(
            code=m.group(0),
            source=DetectionSource.ISO_CODE,
            start=m.start(),
            end=m.end(),
            matched_text=m.group(0),
        )
