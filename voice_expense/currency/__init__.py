"""
Currency Package

The currency registry (reference data) and the detector that maps
transcript text onto it.
"""

from voice_expense.currency.registry import (
    COMMON_CURRENCY_CODES,
    CurrencyEntry,
    CurrencyRegistry,
    CurrencyRegistryError,
    UnknownCurrencyError,
    region_from_locale,
)
from voice_expense.currency.detector import (
    CurrencyDetector,
    CurrencyMatch,
    DetectionSource,
)

__all__ = [
    "COMMON_CURRENCY_CODES",
    "CurrencyDetector",
    "CurrencyEntry",
    "CurrencyMatch",
    "CurrencyRegistry",
    "CurrencyRegistryError",
    "DetectionSource",
    "UnknownCurrencyError",
    "region_from_locale",
]
