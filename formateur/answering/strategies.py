"""
Answer strategies

Both answering modes sit behind one interface so the pipeline does not
care which one is configured:

- TwoPhaseStrategy: reasoning stage -> answer synthesizer (structured verdict)
- SingleCallStrategy: one model call, confidence classified from the text
  (lower latency, lossy verdict)
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Optional, Sequence

from ..common.llm_client import LLMClient
from ..retriever.searcher import RetrievedPassage
from .classifier import ConfidenceClassifier
from .reasoning import ReasoningStage, format_context
from .synthesizer import AnswerSynthesizer, history_messages
from .templates import LANGUAGE_INSTRUCTIONS, pick, render_refusal
from .verdict import NO_CONTEXT_VERDICT, AnswerResult, Confidence, ReasoningVerdict

logger = logging.getLogger("formateur.answering.strategies")


class AnswerMode(str, Enum):
    TWO_PHASE = "two_phase"
    SINGLE_CALL = "single_call"


class AnswerStrategy(ABC):
    """Turns (question, passages) into an AnswerResult."""

    mode: AnswerMode

    @abstractmethod
    async def answer(
        self,
        question: str,
        passages: Sequence[RetrievedPassage],
        history: Optional[Sequence[Dict[str, str]]] = None,
        language: str = "fr",
    ) -> AnswerResult:
        ...


class TwoPhaseStrategy(AnswerStrategy):
    """Structured verdict first, then confidence-gated synthesis."""

    mode = AnswerMode.TWO_PHASE

    def __init__(self, reasoning: ReasoningStage, synthesizer: AnswerSynthesizer):
        self._reasoning = reasoning
        self._synthesizer = synthesizer

    async def answer(
        self,
        question: str,
        passages: Sequence[RetrievedPassage],
        history: Optional[Sequence[Dict[str, str]]] = None,
        language: str = "fr",
    ) -> AnswerResult:
        verdict = await self._reasoning.reason(question, passages, language)
        return await self._synthesizer.synthesize(question, passages, verdict, history, language)


SINGLE_CALL_PROMPT = """You are an experienced {organization} trainer answering questions from advisors in training.

DOCUMENTARY CONTEXT:
{context}

LEARNER'S QUESTION: {question}

ABSOLUTE RULES:
1. Base your answer ONLY on the context provided (no general knowledge)
2. Look for EXACT matches in the context
3. Generalizing is FORBIDDEN (a rule about "ascendants/descendants" says nothing about a "frère" or a "cousin")
4. If a term of the question is NOT explicitly in the context, SAY SO CLEARLY
5. Answer in a NATURAL and PEDAGOGICAL way, like a trainer talking to a learner

HOW TO ANSWER:

IF THE INFORMATION IS IN THE CONTEXT:
Quote the text. Start with "{citation}" followed by the exact quote, then explain it.

IF THE INFORMATION IS INCOMPLETE OR AMBIGUOUS:
Say what the documentation says exactly and what it does not cover. Name each missing term and write that it {hedge} (for example: the term "X" {hedge}). Then end with "{contact}" so the learner gets an official answer.

IF THERE IS NO RELEVANT INFORMATION:
Start with "{refusal}" and advise contacting a {organization} advisor.

{language_instruction}"""

# Phrases the classifier recognises, per answer language
SINGLE_CALL_PHRASES = {
    "fr": {
        "citation": "D'après la documentation,",
        "hedge": "n'est pas explicitement mentionné",
        "contact": "Je vous recommande de contacter directement un conseiller.",
        "refusal": "Je n'ai pas trouvé d'information sur ce sujet dans la documentation de formation.",
    },
    "en": {
        "citation": "According to the documentation,",
        "hedge": "is not explicitly mentioned",
        "contact": "I recommend contacting an advisor directly.",
        "refusal": "I did not find any information on this topic in the training documentation.",
    },
}


class SingleCallStrategy(AnswerStrategy):
    """
    One model call with the cite-or-refuse rules inline.

    Confidence comes from ConfidenceClassifier on the answer text, and the
    attached verdict is derived from that confidence alone (no keywords or
    quotes). Suited to reasoning models, so no temperature or output budget
    is sent.
    """

    mode = AnswerMode.SINGLE_CALL

    def __init__(
        self,
        llm_client: LLMClient,
        classifier: Optional[ConfidenceClassifier] = None,
        organization: str = "CAF",
        max_context_chars: int = 12000,
    ):
        self._llm = llm_client
        self._classifier = classifier or ConfidenceClassifier()
        self._organization = organization
        self._max_context_chars = max_context_chars

    async def answer(
        self,
        question: str,
        passages: Sequence[RetrievedPassage],
        history: Optional[Sequence[Dict[str, str]]] = None,
        language: str = "fr",
    ) -> AnswerResult:
        if not passages:
            return AnswerResult(
                text=render_refusal(language, self._organization),
                confidence=Confidence.NONE,
                sources=(),
                reasoning=NO_CONTEXT_VERDICT,
            )

        phrases = pick(SINGLE_CALL_PHRASES, language)
        prompt = SINGLE_CALL_PROMPT.format(
            organization=self._organization,
            context=format_context(passages, self._max_context_chars, with_module=True),
            question=question,
            language_instruction=pick(LANGUAGE_INSTRUCTIONS, language),
            **phrases,
        )
        messages = history_messages(history)
        messages.append({"role": "user", "content": prompt})

        text = (await self._llm.complete(messages) or "").strip()
        if not text:
            raise ValueError("empty answer from model")

        confidence = self._classifier.classify(text)
        logger.info("Single-call answer classified as %s", confidence.value)

        if confidence == Confidence.NONE:
            return AnswerResult(
                text=text,
                confidence=confidence,
                sources=(),
                reasoning=ReasoningVerdict.from_confidence(confidence),
            )
        return AnswerResult.with_passages(
            text=text,
            confidence=confidence,
            passages=passages,
            reasoning=ReasoningVerdict.from_confidence(confidence),
        )
