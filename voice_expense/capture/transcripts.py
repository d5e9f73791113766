"""
Best-Transcript Selection

A recognizer's final result may carry several alternatives with acoustic
confidences. The one that both sounds right and reads like an expense
command is preferred:

    score = 0.7 * acoustic_confidence + 0.3 * context_score

where context_score is the expense-completeness score of the text.
"""

from collections.abc import Callable, Sequence
from typing import Optional

from voice_expense.models.capture import TranscriptAlternative


ACOUSTIC_WEIGHT = 0.7
CONTEXT_WEIGHT = 0.3


def select_best_transcript(
    alternatives: Sequence[TranscriptAlternative],
    context_score: Optional[Callable[[str], float]] = None,
) -> str:
    """
    Pick the best alternative's text; "" if there is none.

    Without any acoustic confidence the engine's own ordering is trusted
    and the first non-empty alternative wins. Ties keep the earlier one.
    """
    candidates = [a for a in alternatives if a.text.strip()]
    if not candidates:
        return ""
    if all(a.confidence is None for a in candidates):
        return candidates[0].text

    def weighted(alternative: TranscriptAlternative) -> float:
        acoustic = alternative.confidence or 0.0
        context = context_score(alternative.text) if context_score else 0.0
        return ACOUSTIC_WEIGHT * acoustic + CONTEXT_WEIGHT * context

    best = candidates[0]
    best_score = weighted(best)
    for alternative in candidates[1:]:
        score = weighted(alternative)
        if score > best_score:
            best, best_score = alternative, score
    return best.text
