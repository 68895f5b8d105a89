"""
Answer Synthesizer

Confidence-gated answer generation. The verdict selects one of three
branches (see classify_state):

- REFUSE: fixed refusal template, no sources, no model call
- HEDGE:  reasoning trace shown to the user, conclusion marked incomplete,
          best partial quote, advice to contact an advisor
- ANSWER: final model call that must quote a passage verbatim and explain
          it, with a caveat only when ambiguities remain

Any model failure yields the technical-difficulty message with
confidence=none and no sources.
"""

import logging
from typing import Dict, List, Optional, Sequence

from ..common.llm_client import LLMClient
from ..retriever.searcher import RetrievedPassage
from .explainer import ExplanationBuilder
from .reasoning import format_context
from .templates import (
    HEDGE_TEMPLATES,
    LANGUAGE_INSTRUCTIONS,
    PARTIAL_INFO_TEMPLATES,
    pick,
    render_refusal,
    render_technical_difficulty,
    truncate,
)
from .verdict import AnswerResult, AnswerState, Confidence, ReasoningVerdict, classify_state

logger = logging.getLogger("formateur.answering.synthesizer")

ANSWER_TEMPERATURE = 0.5
ANSWER_MAX_TOKENS = 600


ANSWER_SYSTEM_PROMPT = """You are a {organization} expert training new advisors.
You answer clearly and precisely, based STRICTLY on the context provided."""


ANSWER_PROMPT = """DOCUMENTARY CONTEXT:
{context}

PRIOR ANALYSIS:
- Relevant quotes found: {quote_count}
- Question coverage: {coverage}
- Confidence level: {confidence}{ambiguity_line}

QUESTION: {question}

WRITE A STRUCTURED ANSWER:

MANDATORY FORMAT:
1. Quote: quote part of the context VERBATIM, between quotation marks
2. Explanation: explain clearly, based ONLY on that quote
3. {closing}

ABSOLUTE RULES:
- NEVER invent information that is not in the context
- NEVER generalize beyond what is written
- If a technical term is not defined in the context, say so
- Stay factual and precise

{language_instruction}"""

CAVEAT_INSTRUCTION = "Note: state the limitations or the cases the documentation does not cover"
COMPLETE_INSTRUCTION = "Nothing else: the information is complete"


def history_messages(history: Optional[Sequence[Dict[str, str]]]) -> List[Dict[str, str]]:
    """Prior turns as chat messages; any role other than user is the assistant."""
    return [
        {
            "role": "user" if turn.get("role") == "user" else "assistant",
            "content": turn.get("content", ""),
        }
        for turn in history or []
    ]


class AnswerSynthesizer:
    """
    Produces the final AnswerResult from a verdict.

    Usage:
        synthesizer = AnswerSynthesizer(llm, ExplanationBuilder(llm))
        result = await synthesizer.synthesize(question, passages, verdict, history)
    """

    def __init__(
        self,
        llm_client: LLMClient,
        explainer: ExplanationBuilder,
        organization: str = "CAF",
        partial_quote_chars: int = 150,
        max_context_chars: int = 12000,
    ):
        """
        Initialize synthesizer.

        Args:
            llm_client: Client for the final answer call
            explainer: Builds the trace for hedged answers
            organization: Human expert named in user-facing templates
            partial_quote_chars: Length of the partial quote in hedged answers
            max_context_chars: Context budget for the answer prompt
        """
        self._llm = llm_client
        self._explainer = explainer
        self._organization = organization
        self._partial_quote_chars = partial_quote_chars
        self._max_context_chars = max_context_chars

    async def synthesize(
        self,
        question: str,
        passages: Sequence[RetrievedPassage],
        verdict: ReasoningVerdict,
        history: Optional[Sequence[Dict[str, str]]] = None,
        language: str = "fr",
    ) -> AnswerResult:
        state = classify_state(verdict)
        logger.info("Answer state: %s", state.value)

        if state == AnswerState.REFUSE:
            return self.refusal(language, verdict)

        try:
            if state == AnswerState.HEDGE:
                return await self._hedge(question, passages, verdict, language)
            return await self._answer(question, passages, verdict, history, language)
        except Exception:
            logger.exception("Answer synthesis failed")
            return self.technical_difficulty(language, verdict)

    def refusal(self, language: str, verdict: Optional[ReasoningVerdict] = None) -> AnswerResult:
        return AnswerResult(
            text=render_refusal(language, self._organization),
            confidence=Confidence.NONE,
            sources=(),
            reasoning=verdict,
            reasoning_visible=False,
        )

    def technical_difficulty(self, language: str, verdict: Optional[ReasoningVerdict] = None) -> AnswerResult:
        return AnswerResult(
            text=render_technical_difficulty(language, self._organization),
            confidence=Confidence.NONE,
            sources=(),
            reasoning=verdict,
            reasoning_visible=False,
        )

    async def _hedge(
        self,
        question: str,
        passages: Sequence[RetrievedPassage],
        verdict: ReasoningVerdict,
        language: str,
    ) -> AnswerResult:
        trace = await self._explainer.explain(question, verdict, passages, language)

        partial_info = ""
        if verdict.relevant_quotes:
            quote = truncate(verdict.relevant_quotes[0], self._partial_quote_chars)
            partial_info = pick(PARTIAL_INFO_TEMPLATES, language).format(quote=quote)

        text = pick(HEDGE_TEMPLATES, language).format(
            trace=trace,
            partial_info=partial_info,
            organization=self._organization,
        )
        return AnswerResult.with_passages(
            text=text,
            confidence=verdict.confidence,
            passages=passages,
            reasoning=verdict,
            reasoning_visible=True,
        )

    async def _answer(
        self,
        question: str,
        passages: Sequence[RetrievedPassage],
        verdict: ReasoningVerdict,
        history: Optional[Sequence[Dict[str, str]]],
        language: str,
    ) -> AnswerResult:
        ambiguity_line = ""
        if verdict.ambiguities:
            ambiguity_line = "\n- Ambiguous points: " + ", ".join(verdict.ambiguities)

        prompt = ANSWER_PROMPT.format(
            context=format_context(passages, self._max_context_chars),
            quote_count=len(verdict.relevant_quotes),
            coverage=verdict.coverage.value,
            confidence=verdict.confidence.value,
            ambiguity_line=ambiguity_line,
            question=question,
            closing=CAVEAT_INSTRUCTION if verdict.ambiguities else COMPLETE_INSTRUCTION,
            language_instruction=pick(LANGUAGE_INSTRUCTIONS, language),
        )

        messages = [{"role": "system", "content": ANSWER_SYSTEM_PROMPT.format(organization=self._organization)}]
        messages.extend(history_messages(history))
        messages.append({"role": "user", "content": prompt})

        text = await self._llm.complete(
            messages,
            temperature=ANSWER_TEMPERATURE,
            max_tokens=ANSWER_MAX_TOKENS,
        )
        if not text or not text.strip():
            logger.warning("Empty answer from model")
            return self.technical_difficulty(language, verdict)

        return AnswerResult.with_passages(
            text=text.strip(),
            confidence=verdict.confidence,
            passages=passages,
            reasoning=verdict,
            reasoning_visible=False,
        )
