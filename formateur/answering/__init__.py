"""
Answering - Confidence-Gated Grounded Answers

Key Components:
- ReasoningStage: structured verdict (keywords, quotes, coverage, confidence)
- ExplanationBuilder: reasoning trace for hedged answers
- AnswerSynthesizer: refuse / hedge / answer branching
- ConfidenceClassifier: text heuristic for the single-call mode
- Pipeline: retrieval + strategy, with the fail-closed contract
"""

from .classifier import ConfidenceClassifier
from .explainer import ExplanationBuilder
from .pipeline import Pipeline, build_pipeline
from .reasoning import ReasoningStage
from .strategies import AnswerMode, AnswerStrategy, SingleCallStrategy, TwoPhaseStrategy
from .synthesizer import AnswerSynthesizer
from .verdict import (
    AnswerResult,
    AnswerState,
    Confidence,
    Coverage,
    FAIL_CLOSED_VERDICT,
    NO_CONTEXT_VERDICT,
    ReasoningVerdict,
    SourceRef,
    classify_state,
)

__all__ = [
    "ConfidenceClassifier",
    "ExplanationBuilder",
    "Pipeline",
    "build_pipeline",
    "ReasoningStage",
    "AnswerMode",
    "AnswerStrategy",
    "SingleCallStrategy",
    "TwoPhaseStrategy",
    "AnswerSynthesizer",
    "AnswerResult",
    "AnswerState",
    "Confidence",
    "Coverage",
    "FAIL_CLOSED_VERDICT",
    "NO_CONTEXT_VERDICT",
    "ReasoningVerdict",
    "SourceRef",
    "classify_state",
]
