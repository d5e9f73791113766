"""
Auxiliary Field Extraction

Merchant, notes and transaction date. All three are optional: finding
nothing is never an error.

Merchant and note patterns run case-insensitively on the original
transcript, so "at Starbucks" keeps its spoken casing.
"""

import re
from datetime import datetime, timedelta
from typing import Optional


MERCHANT_MIN_LENGTH = 3
MERCHANT_MAX_LENGTH = 100
NOTES_MAX_LENGTH = 500

_DATE_WORDS = r"yesterday|today|this\s+(?:morning|afternoon|evening)"

# Where a merchant name stops
_MERCHANT_END = (
    r"(?="
    r"\s+(?:for|on)\b"
    rf"|\s+(?:{_DATE_WORDS})\b"
    r"|\s*[,;!?]"
    r"|\s*$"
    r")"
)
_MERCHANT_NAME = r"(?P<name>[\w'&.\-][\w\s'&.\-]*?)"


def _merchant_pattern(preposition: str) -> re.Pattern:
    return re.compile(
        rf"\b{preposition}\s+" + _MERCHANT_NAME + _MERCHANT_END,
        re.IGNORECASE,
    )


class MerchantExtractor:
    """
    Finds "at <name>", "from <name>" or "to <name>", in that order.

    The first pattern whose first match has a plausible length wins.
    """

    PATTERNS: tuple[re.Pattern, ...] = (
        _merchant_pattern("at"),
        _merchant_pattern("from"),
        _merchant_pattern("to"),
    )

    def extract(self, text: str) -> Optional[str]:
        for pattern in self.PATTERNS:
            m = pattern.search(text or "")
            if m is None:
                continue
            merchant = m.group("name").strip().rstrip(".").strip()
            if MERCHANT_MIN_LENGTH <= len(merchant) <= MERCHANT_MAX_LENGTH:
                return merchant
        return None


class NoteExtractor:
    """Finds "for <text>" or "note: <text>" running to the end of the transcript."""

    PATTERNS: tuple[re.Pattern, ...] = (
        re.compile(r"\bfor\s+(?P<note>.+)$", re.IGNORECASE),
        re.compile(r"\bnote:\s*(?P<note>.+)$", re.IGNORECASE),
    )

    def extract(self, text: str) -> Optional[str]:
        for pattern in self.PATTERNS:
            m = pattern.search(text or "")
            if m is None:
                continue
            note = m.group("note").strip().rstrip(".").strip()
            if note and len(note) <= NOTES_MAX_LENGTH:
                return note
        return None


# Checked in order; the first keyword present decides
_DATE_RULES: tuple[tuple[re.Pattern, str], ...] = (
    (re.compile(r"\byesterday\b"), "yesterday"),
    (re.compile(r"\b(?:today|just)\b"), "now"),
    (re.compile(r"\bthis\s+morning\b"), "morning"),
    (re.compile(r"\bthis\s+afternoon\b"), "afternoon"),
    (re.compile(r"\bthis\s+evening\b"), "evening"),
)

FIXED_HOURS: dict[str, int] = {
    "morning": 9,
    "afternoon": 14,
    "evening": 19,
}


class DateExtractor:
    """
    Resolves relative time phrases against the capture time.

    "yesterday" is exactly 24 hours earlier. "this morning/afternoon/
    evening" are 09:00, 14:00 and 19:00 on the capture date, in the
    capture time's timezone. Anything else is the capture time itself.
    """

    def extract(self, text: str, captured_at: datetime) -> datetime:
        lowered = (text or "").lower()
        for pattern, rule in _DATE_RULES:
            if not pattern.search(lowered):
                continue
            if rule == "yesterday":
                return captured_at - timedelta(hours=24)
            if rule == "now":
                return captured_at
            return captured_at.replace(
                hour=FIXED_HOURS[rule], minute=0, second=0, microsecond=0
            )
        return captured_at
