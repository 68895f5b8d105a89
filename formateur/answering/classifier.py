"""
Confidence Classifier

Labels an already generated answer by pattern-matching its text. Used by
the single-call mode, which has no structured verdict.

This is a lossy approximation of the reasoning stage, not a replacement:
an answer that merely paraphrases the documentation is classified medium
whatever its actual grounding.

Priority order (first match wins):
    refusal phrase  -> none
    citation phrase -> high
    hedge phrase    -> low
    otherwise       -> medium
"""

from typing import Iterable, Tuple

from .verdict import Confidence

REFUSAL_PHRASES: Tuple[str, ...] = (
    # fr
    "je n'ai pas trouvé",
    "aucune information",
    "pas dans la documentation",
    "n'est pas disponible dans la documentation",
    # en
    "i did not find",
    "i didn't find",
    "could not find",
    "no information",
    "not in the documentation",
    "not available in the documentation",
)

CITATION_PHRASES: Tuple[str, ...] = (
    "d'après la documentation",
    "selon le texte",
    "la réglementation indique",
    "according to the documentation",
    "the documentation states",
)

HEDGE_PHRASES: Tuple[str, ...] = (
    "je vous recommande de contacter",
    "contacter directement",
    "n'est pas explicitement mentionné",
    "pas explicitement",
    "je ne peux pas vous donner une réponse certaine",
    "incomplète",
    "not explicitly",
    "i recommend contacting",
    "i cannot give you a definite answer",
    "incomplete",
)


def _normalize(text: str) -> str:
    return text.lower().replace("’", "'").replace("‘", "'")


def _contains_any(text: str, phrases: Iterable[str]) -> bool:
    return any(phrase in text for phrase in phrases)


class ConfidenceClassifier:
    """Heuristic confidence labels from answer text."""

    def __init__(
        self,
        refusal_phrases: Tuple[str, ...] = REFUSAL_PHRASES,
        citation_phrases: Tuple[str, ...] = CITATION_PHRASES,
        hedge_phrases: Tuple[str, ...] = HEDGE_PHRASES,
    ):
        self.refusal_phrases = tuple(_normalize(p) for p in refusal_phrases)
        self.citation_phrases = tuple(_normalize(p) for p in citation_phrases)
        self.hedge_phrases = tuple(_normalize(p) for p in hedge_phrases)

    def classify(self, answer: str) -> Confidence:
        text = _normalize(answer or "")
        if not text.strip():
            return Confidence.NONE
        if _contains_any(text, self.refusal_phrases):
            return Confidence.NONE
        if _contains_any(text, self.citation_phrases):
            return Confidence.HIGH
        if _contains_any(text, self.hedge_phrases):
            return Confidence.LOW
        return Confidence.MEDIUM
