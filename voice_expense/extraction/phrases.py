"""Example commands shown to users for voice training."""

from typing import Optional

from voice_expense.currency.registry import region_from_locale


BASE_PHRASES: tuple[str, ...] = (
    "I just spent 25 dollars on food",
    "I paid 50 dollars for groceries at the supermarket",
    "Log 15 dollars for lunch",
    "I spent 30 dollars on gas",
    "I bought coffee for 5 dollars",
    "Add 100 dollars shopping expense",
    "I just paid 20 dollars for entertainment",
)

# Region -> (word replacing "dollars", extra phrases)
REGIONAL_PHRASES: dict[str, tuple[str, tuple[str, ...]]] = {
    "AE": (
        "dirhams",
        (
            "I just spent 50 AED on groceries",
            "I paid 25 dirhams for lunch",
            "Log 100 AED for shopping",
        ),
    ),
    "GB": (
        "pounds",
        (
            "I just spent 20 pounds on petrol",
            "I paid 15 pounds for lunch",
        ),
    ),
}


def suggested_phrases(locale: Optional[str] = None) -> list[str]:
    """
    Voice-training examples for a locale.

    Regions with their own currency wording get the base phrases in that
    currency plus a few local ones; everyone else gets the base phrases.
    """
    regional = REGIONAL_PHRASES.get(region_from_locale(locale) or "")
    if regional is None:
        return list(BASE_PHRASES)
    word, extra = regional
    return [p.replace("dollars", word) for p in BASE_PHRASES] + list(extra)
