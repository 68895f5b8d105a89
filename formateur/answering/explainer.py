"""
Explanation Builder

Turns a ReasoningVerdict into the human-readable reasoning trace shown in
hedged answers. Parts, always in this order:

1. keywords identified
2. best quote found (or an explicit "nothing found")
3. ambiguities (only when there are some)
4. semantic contrast (second model call, only when there are both
   ambiguities and quotes; omitted if the call fails)
5. coverage/confidence summary
"""

import logging
from typing import List, Optional, Sequence

from ..common.llm_client import LLMClient
from ..retriever.searcher import RetrievedPassage
from .reasoning import format_context
from .templates import LANGUAGE_INSTRUCTIONS, TRACE_LABELS, pick, truncate
from .verdict import ReasoningVerdict

logger = logging.getLogger("formateur.answering.explainer")

SEMANTIC_TEMPERATURE = 0.3
SEMANTIC_MAX_TOKENS = 300
SEMANTIC_MAX_LINES = 5


SEMANTIC_PROMPT = """The user asks: "{question}"

The documentation says: {quotes}

Terms of the question that are not found in the documentation: {ambiguities}

Full context:
{context}

Explain in a concise and pedagogical way (5 lines maximum) WHY the text found does not cover the terms of the question.
Show the semantic difference between what the documentation says and what the question asks.

Generic example:
If the question is about "frère" and the text says "ascendants et descendants":
- Ascendants = parents, grandparents (direct line upwards)
- Descendants = children, grandchildren (direct line downwards)
- Frère = collateral relative (neither ascendant nor descendant)
Conclusion: "frère" is NOT covered by "ascendants et descendants"

Apply the same kind of reasoning to the current question, whatever the categories involved.
{language_instruction}"""


class ExplanationBuilder:
    """Builds reasoning traces for hedged answers."""

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        quote_preview_chars: int = 120,
        max_context_chars: int = 12000,
    ):
        """
        Initialize explanation builder.

        Args:
            llm_client: Client for the semantic contrast call; None disables part 4
            quote_preview_chars: Preview length of the best quote
            max_context_chars: Context budget for the semantic prompt
        """
        self._llm = llm_client
        self._quote_preview_chars = quote_preview_chars
        self._max_context_chars = max_context_chars

    async def explain(
        self,
        question: str,
        verdict: ReasoningVerdict,
        passages: Sequence[RetrievedPassage],
        language: str = "fr",
    ) -> str:
        """
        Build the reasoning trace for a verdict.

        Never raises for model-side problems; a failed semantic call only
        removes part 4.
        """
        labels = pick(TRACE_LABELS, language)
        parts = []

        keywords = ", ".join(verdict.keywords) if verdict.keywords else labels["no_keywords"]
        parts.append(f"{labels['keywords']}\n{keywords}")

        if verdict.relevant_quotes:
            quote = truncate(verdict.relevant_quotes[0], self._quote_preview_chars)
            found = labels["found"].format(quote=quote)
        else:
            found = labels["not_found"]
        parts.append(f"{labels['search']}\n{found}")

        if verdict.ambiguities:
            listed = "\n".join(f"- {a}" for a in verdict.ambiguities)
            parts.append(f"{labels['ambiguities']}\n{listed}")

        if verdict.ambiguities and verdict.relevant_quotes:
            semantic = await self._semantic_contrast(question, verdict, passages, language)
            if semantic:
                parts.append(f"{labels['semantic']}\n{semantic}")

        summary = labels["summary"].format(
            coverage=verdict.coverage.value,
            confidence=verdict.confidence.value,
        )
        parts.append(f"{labels['coverage']}\n{summary}")

        return "\n\n".join(parts)

    async def _semantic_contrast(
        self,
        question: str,
        verdict: ReasoningVerdict,
        passages: Sequence[RetrievedPassage],
        language: str,
    ) -> str:
        """Second model call explaining why the quotes miss the ambiguous terms.

        Returns "" when disabled or on failure.
        """
        if self._llm is None:
            return ""

        prompt = SEMANTIC_PROMPT.format(
            question=question,
            quotes=" | ".join(f'"{q}"' for q in verdict.relevant_quotes),
            ambiguities=", ".join(verdict.ambiguities),
            context=format_context(passages, self._max_context_chars),
            language_instruction=pick(LANGUAGE_INSTRUCTIONS, language),
        )

        try:
            raw = await self._llm.complete(
                [{"role": "user", "content": prompt}],
                temperature=SEMANTIC_TEMPERATURE,
                max_tokens=SEMANTIC_MAX_TOKENS,
            )
        except Exception as e:
            logger.warning("Semantic contrast call failed, omitting it from the trace: %s", e)
            return ""

        return "\n".join(self._bounded_lines(raw or ""))

    @staticmethod
    def _bounded_lines(text: str) -> List[str]:
        lines = [line.rstrip() for line in text.strip().splitlines() if line.strip()]
        if len(lines) > SEMANTIC_MAX_LINES:
            logger.debug("Semantic contrast cut from %d to %d lines", len(lines), SEMANTIC_MAX_LINES)
        return lines[:SEMANTIC_MAX_LINES]
