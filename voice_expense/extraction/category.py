"""
Category Classification

An ordered table of (keywords, category) rules evaluated with a
first-match fold. A rule matches when any of its keywords occurs as a
substring of the lower-cased transcript.

DESIGN DECISION: The order of CATEGORY_RULES is policy. It resolves
ambiguous commands: "food shopping" is Food & Dining because the food
rule comes before grocery and shopping. Do not re-sort it.

Matching is by substring, not whole word, so "groceries" also hits
"grocery" and "eating" hits "eat". The price is that short keywords can
hit inside longer words ("ate" in "water"); the table is kept as tuned
by the apps rather than second-guessed here.
"""

from typing import Optional

from voice_expense.models.expense import ExpenseCategory


CategoryRule = tuple[tuple[str, ...], ExpenseCategory]

CATEGORY_RULES: tuple[CategoryRule, ...] = (
    (
        (
            "food", "tea", "coffee", "lunch", "dinner", "breakfast",
            "restaurant", "meal", "drink", "cafe", "dining", "eat", "ate",
            "snack", "brunch", "takeout", "takeaway", "delivery", "pizza",
            "burger", "sandwich", "sushi", "dessert", "ice cream", "bakery",
            "starbucks", "mcdonald",
        ),
        ExpenseCategory.FOOD_DINING,
    ),
    (
        (
            "grocery", "groceries", "supermarket", "market", "food shopping",
            "vegetables", "fruits", "produce", "walmart", "carrefour", "lulu",
        ),
        ExpenseCategory.GROCERY,
    ),
    (
        (
            "gas", "fuel", "taxi", "uber", "transport", "transportation",
            "parking", "petrol", "toll", "careem", "lyft", "metro", "subway",
            "train", "bus", "diesel", "station", "refuel", "fill up", "car",
            "vehicle", "ride", "trip", "travel", "flight", "airline", "ticket",
        ),
        ExpenseCategory.TRANSPORTATION,
    ),
    (
        (
            "shopping", "clothes", "clothing", "store", "mall", "purchase",
            "buy", "bought", "shoes", "accessories", "fashion", "retail",
            "amazon", "online shopping", "electronics", "gadget", "phone",
            "laptop",
        ),
        ExpenseCategory.SHOPPING,
    ),
    (
        (
            "movie", "cinema", "concert", "entertainment", "fun", "games",
            "theatre", "sports", "gym", "fitness", "netflix", "streaming",
            "spotify", "music", "hobby", "recreation", "amusement", "park",
        ),
        ExpenseCategory.ENTERTAINMENT,
    ),
    (
        (
            "bill", "bills", "rent", "utility", "utilities", "electricity",
            "water", "internet", "phone", "subscription", "insurance",
            "mortgage", "loan", "payment", "recurring", "monthly", "annual",
        ),
        ExpenseCategory.BILLS_UTILITIES,
    ),
    (
        (
            "healthcare", "health", "doctor", "hospital", "medicine",
            "medical", "pharmacy", "clinic", "prescription", "dentist",
            "therapy", "checkup", "emergency", "surgery", "treatment",
        ),
        ExpenseCategory.HEALTHCARE,
    ),
    (
        (
            "education", "school", "course", "training", "books", "learning",
            "tuition", "college", "university", "class", "workshop",
            "seminar", "certification", "textbook", "supplies", "fees",
        ),
        ExpenseCategory.EDUCATION,
    ),
)


class CategoryClassifier:
    """Maps a transcript to a spending category."""

    def __init__(self, rules: tuple[CategoryRule, ...] = CATEGORY_RULES):
        self._rules = rules

    @property
    def rules(self) -> tuple[CategoryRule, ...]:
        return self._rules

    def classify(self, text: str) -> ExpenseCategory:
        """Category of the first rule with a keyword in `text`; OTHER if none."""
        rule = self._first_match(text)
        return rule[1] if rule else ExpenseCategory.OTHER

    def has_keyword(self, text: str) -> bool:
        """True if any rule's keyword occurs in `text`."""
        return self._first_match(text) is not None

    def matched_keyword(self, text: str) -> Optional[str]:
        """The keyword that decided classify(), for logs and debugging."""
        lowered = (text or "").lower()
        for keywords, _ in self._rules:
            for keyword in keywords:
                if keyword in lowered:
                    return keyword
        return None

    def _first_match(self, text: str) -> Optional[CategoryRule]:
        lowered = (text or "").lower()
        return next(
            (rule for rule in self._rules if any(k in lowered for k in rule[0])),
            None,
        )
