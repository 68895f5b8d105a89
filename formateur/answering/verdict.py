"""
Verdict and answer data model.

A ReasoningVerdict records how well the retrieved passages cover a question.
The (confidence, coverage) pair selects one of three answer states:

- REFUSE: confidence=none or coverage=none
- HEDGE:  confidence=low or coverage=partial
- ANSWER: everything else (coverage=complete, confidence medium/high)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..retriever.searcher import RetrievedPassage


class Coverage(str, Enum):
    """How many question keywords the quotes literally contain"""
    COMPLETE = "complete"
    PARTIAL = "partial"
    NONE = "none"

    @property
    def rank(self) -> int:
        return _COVERAGE_RANK[self]

    @classmethod
    def parse(cls, value: Any) -> "Coverage":
        """Map model output to a Coverage; unknown values fail closed."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.NONE


class Confidence(str, Enum):
    """Self-assessed reliability of the answer"""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]

    @classmethod
    def parse(cls, value: Any) -> "Confidence":
        """Map model output to a Confidence; unknown values fail closed."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.NONE


_COVERAGE_RANK = {Coverage.NONE: 0, Coverage.PARTIAL: 1, Coverage.COMPLETE: 2}
_CONFIDENCE_RANK = {Confidence.NONE: 0, Confidence.LOW: 1, Confidence.MEDIUM: 2, Confidence.HIGH: 3}


class AnswerState(str, Enum):
    """Branch taken by the answer synthesizer"""
    REFUSE = "refuse"
    HEDGE = "hedge"
    ANSWER = "answer"


def _unique(items: Iterable[Any]) -> Tuple[str, ...]:
    """Strip, drop empties and de-duplicate while keeping order."""
    seen = set()
    result = []
    for item in items:
        text = str(item).strip()
        if text and text not in seen:
            seen.add(text)
            result.append(text)
    return tuple(result)


def _as_list(value: Any, name: str) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return list(value)
    raise TypeError(f"{name} must be a list, got {type(value).__name__}")


@dataclass(frozen=True)
class ReasoningVerdict:
    """Structured result of the reasoning stage"""
    keywords: Tuple[str, ...] = ()
    relevant_quotes: Tuple[str, ...] = ()
    coverage: Coverage = Coverage.NONE
    ambiguities: Tuple[str, ...] = ()
    confidence: Confidence = Confidence.NONE

    def __post_init__(self):
        # confidence=none and coverage=none always go together
        if self.coverage == Coverage.NONE and self.confidence != Confidence.NONE:
            object.__setattr__(self, "confidence", Confidence.NONE)
        if self.confidence == Confidence.NONE and self.coverage != Coverage.NONE:
            object.__setattr__(self, "coverage", Coverage.NONE)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ReasoningVerdict":
        """Build a verdict from the model's JSON object.

        Raises TypeError on fields of the wrong shape.
        """
        return cls(
            keywords=_unique(_as_list(payload.get("keywords"), "keywords")),
            relevant_quotes=_unique(_as_list(payload.get("relevant_quotes"), "relevant_quotes")),
            coverage=Coverage.parse(payload.get("coverage")),
            ambiguities=_unique(_as_list(payload.get("ambiguities"), "ambiguities")),
            confidence=Confidence.parse(payload.get("confidence")),
        )

    @classmethod
    def from_confidence(cls, confidence: Confidence) -> "ReasoningVerdict":
        """Approximate verdict for answers classified from their text alone."""
        coverage = {
            Confidence.NONE: Coverage.NONE,
            Confidence.LOW: Coverage.PARTIAL,
        }.get(confidence, Coverage.COMPLETE)
        return cls(coverage=coverage, confidence=confidence)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keywords": list(self.keywords),
            "relevant_quotes": list(self.relevant_quotes),
            "coverage": self.coverage.value,
            "ambiguities": list(self.ambiguities),
            "confidence": self.confidence.value,
        }


FAIL_CLOSED_VERDICT = ReasoningVerdict(
    keywords=(),
    relevant_quotes=(),
    coverage=Coverage.NONE,
    ambiguities=("parsing or technical error",),
    confidence=Confidence.NONE,
)

NO_CONTEXT_VERDICT = ReasoningVerdict(
    keywords=(),
    relevant_quotes=(),
    coverage=Coverage.NONE,
    ambiguities=(),
    confidence=Confidence.NONE,
)


def classify_state(verdict: ReasoningVerdict) -> AnswerState:
    """Select the answer branch for a verdict."""
    if verdict.confidence == Confidence.NONE or verdict.coverage == Coverage.NONE:
        return AnswerState.REFUSE
    if verdict.confidence == Confidence.LOW or verdict.coverage == Coverage.PARTIAL:
        return AnswerState.HEDGE
    return AnswerState.ANSWER


@dataclass(frozen=True)
class SourceRef:
    """Citation of a passage used to build an answer"""
    module: str
    section: str
    score: float

    @classmethod
    def from_passage(cls, passage: RetrievedPassage) -> "SourceRef":
        return cls(
            module=passage.module_tag,
            section=passage.section_tag,
            score=passage.similarity_score,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"module": self.module, "section": self.section, "score": self.score}


@dataclass(frozen=True)
class AnswerResult:
    """Terminal artifact returned to the caller"""
    text: str
    confidence: Confidence
    sources: Tuple[SourceRef, ...] = field(default_factory=tuple)
    reasoning: Optional[ReasoningVerdict] = None
    reasoning_visible: bool = False

    @classmethod
    def with_passages(
        cls,
        text: str,
        confidence: Confidence,
        passages: Iterable[RetrievedPassage],
        reasoning: Optional[ReasoningVerdict] = None,
        reasoning_visible: bool = False,
    ) -> "AnswerResult":
        return cls(
            text=text,
            confidence=confidence,
            sources=tuple(SourceRef.from_passage(p) for p in passages),
            reasoning=reasoning,
            reasoning_visible=reasoning_visible,
        )

    def to_public_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "sources": [s.to_dict() for s in self.sources],
            "confidence": self.confidence.value,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.to_public_dict()
        data["reasoning"] = self.reasoning.to_dict() if self.reasoning else None
        data["reasoning_visible"] = self.reasoning_visible
        return data
