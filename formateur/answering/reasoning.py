"""
Reasoning Stage

Phase 1 of the two-phase pipeline: a low-temperature model call that turns
(question, passages) into a ReasoningVerdict. The model does the reading;
this module owns the protocol:

- literal keyword matching only (no synonyms, no world knowledge)
- verbatim quotes only
- no generalization across adjacent but distinct categories
- malformed output or a failed call yields FAIL_CLOSED_VERDICT, never an error

After parsing, the verdict is checked against the passages: invented quotes
are dropped and keywords without a literal match in the quotes downgrade
coverage.
"""

import logging
import unicodedata
from typing import List, Sequence

from ..common.llm_client import LLMClient
from ..common.llm_utils import parse_or_default
from ..retriever.searcher import RetrievedPassage
from .templates import LANGUAGE_INSTRUCTIONS, pick
from .verdict import (
    Confidence,
    Coverage,
    FAIL_CLOSED_VERDICT,
    NO_CONTEXT_VERDICT,
    ReasoningVerdict,
)

logger = logging.getLogger("formateur.answering.reasoning")

REASONING_TEMPERATURE = 0.0
REASONING_MAX_TOKENS = 500

# Characters models like to wrap quotes in
QUOTE_WRAPPERS = " \t\n\"'«»“”‘’"


REASONING_SYSTEM_PROMPT = """You are an ultra-strict documentary analysis robot.

RULES:
1. You look for EXACT word-for-word matches
2. You CANNOT make deductions or inferences
3. You CANNOT use synonyms or generalizations
4. If the EXACT word is not in the context, it is an ambiguity
5. Respond ONLY with valid JSON"""


REASONING_PROMPT = """Analyze this question against the documentary context.

NON-NEGOTIABLE RULES:
1. You MUST look for EXACT quotes in the context
2. If a term of the question is NOT EXPLICITLY in the context, list it in "ambiguities"
3. Generalizing is FORBIDDEN (e.g. "ascendants/descendants" does not cover "frère/sœur": collateral relatives are not lineal relatives)
4. Using general knowledge is FORBIDDEN
5. If the context does not cover EXACTLY the question, coverage is "none" or "partial"

DOCUMENTARY CONTEXT:
{context}

QUESTION: {question}

STEP BY STEP ANALYSIS:
1. KEYWORDS: the EXACT terms of the question, most important first
2. SEARCH: TEXTUAL quotes copied character for character from the context ([] if nothing matches EXACTLY)
3. CHECK: are ALL the question terms in the quotes? If not, add the missing ones to ambiguities
4. COVERAGE:
   - "complete" = ALL the question terms are in the context
   - "partial" = ONLY SOME terms are in the context
   - "none" = NO relevant term is in the context
5. CONFIDENCE:
   - "high" = the context answers the question EXACTLY
   - "medium" = the context answers partially
   - "low" = the context holds related but imprecise information
   - "none" = the context does not hold the information

CRITICAL EXAMPLE:
Question: "Mon frère peut-il me louer ?"
Context: "Location entre ascendants et descendants interdite"
WRONG: coverage="complete" (a brother is neither an ascendant nor a descendant)
RIGHT: coverage="none", ambiguities=["frère n'est pas mentionné"], confidence="none"

{language_instruction} Keep the quotes in the language of the context.

Respond ONLY with this JSON (no other text):
{{
  "keywords": ["term1", "term2"],
  "relevant_quotes": ["exact quote 1"],
  "coverage": "complete|partial|none",
  "ambiguities": ["missing or ambiguous term"],
  "confidence": "high|medium|low|none"
}}"""


def format_context(
    passages: Sequence[RetrievedPassage],
    max_chars: int = 0,
    with_module: bool = False,
) -> str:
    """Render passages as numbered context blocks, best first.

    Lower-ranked passages are dropped once ``max_chars`` is reached
    (0 = no limit); the first passage is always kept.
    """
    blocks = []
    used = 0
    for i, passage in enumerate(passages, 1):
        header = f"[Context {i} - {passage.module_tag}]" if with_module else f"[Context {i}]"
        block = f"{header}\n{passage.text}"
        if max_chars and blocks and used + len(block) > max_chars:
            break
        blocks.append(block)
        used += len(block) + 2
    return "\n\n".join(blocks)


def normalize_for_match(text: str) -> str:
    """Lowercase, strip accents and collapse whitespace for literal matching."""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.replace("’", "'").split())


class ReasoningStage:
    """
    Produces a ReasoningVerdict for a question.

    Never raises for model-side problems: failed calls and unparseable
    output both give FAIL_CLOSED_VERDICT.
    """

    def __init__(
        self,
        llm_client: LLMClient,
        max_context_chars: int = 12000,
        strict_keyword_coverage: bool = True,
    ):
        """
        Initialize reasoning stage.

        Args:
            llm_client: Client used for the reasoning call
            max_context_chars: Context budget for the prompt
            strict_keyword_coverage: Downgrade coverage when a keyword has no
                literal match in the quotes
        """
        self._llm = llm_client
        self._max_context_chars = max_context_chars
        self._strict = strict_keyword_coverage

    async def reason(
        self,
        question: str,
        passages: Sequence[RetrievedPassage],
        language: str = "fr",
    ) -> ReasoningVerdict:
        """
        Analyse how well passages cover a question.

        Args:
            question: User question
            passages: Retrieved passages, best first
            language: Answer language code

        Returns:
            ReasoningVerdict (FAIL_CLOSED_VERDICT on any model failure)
        """
        if not passages:
            return NO_CONTEXT_VERDICT

        prompt = REASONING_PROMPT.format(
            context=format_context(passages, self._max_context_chars),
            question=question,
            language_instruction=pick(LANGUAGE_INSTRUCTIONS, language),
        )
        messages = [
            {"role": "system", "content": REASONING_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]

        try:
            raw = await self._llm.complete(
                messages,
                temperature=REASONING_TEMPERATURE,
                max_tokens=REASONING_MAX_TOKENS,
            )
        except Exception as e:
            logger.warning("Reasoning call failed, failing closed: %s", e)
            return FAIL_CLOSED_VERDICT

        verdict = parse_or_default(
            raw,
            ReasoningVerdict.from_payload,
            FAIL_CLOSED_VERDICT,
            logger=logger,
            label="reasoning verdict",
        )
        if verdict is FAIL_CLOSED_VERDICT:
            return verdict

        verdict = self.enforce_grounding(verdict, passages)
        logger.info(
            "Verdict: coverage=%s confidence=%s keywords=%d quotes=%d ambiguities=%d",
            verdict.coverage.value,
            verdict.confidence.value,
            len(verdict.keywords),
            len(verdict.relevant_quotes),
            len(verdict.ambiguities),
        )
        return verdict

    def enforce_grounding(
        self,
        verdict: ReasoningVerdict,
        passages: Sequence[RetrievedPassage],
    ) -> ReasoningVerdict:
        """
        Check a parsed verdict against the passages.

        - quotes that are not verbatim substrings of a passage are dropped
        - no keywords or no quotes means coverage=none
        - in strict mode, keywords without a literal match in the quotes
          become ambiguities and cap coverage; a downgrade caps confidence
          at low

        Coverage and confidence are only ever lowered here.
        """
        quotes = self._verbatim_quotes(verdict.relevant_quotes, passages)
        if len(quotes) < len(verdict.relevant_quotes):
            logger.warning(
                "Dropped %d quote(s) not found verbatim in the passages",
                len(verdict.relevant_quotes) - len(quotes),
            )

        ambiguities = list(verdict.ambiguities)
        coverage = verdict.coverage
        confidence = verdict.confidence

        if not verdict.keywords or not quotes:
            coverage = Coverage.NONE
        elif self._strict:
            unmatched = self._unmatched_keywords(verdict.keywords, quotes)
            literal = self._literal_coverage(len(verdict.keywords), len(unmatched))
            for keyword in unmatched:
                if not any(normalize_for_match(keyword) in normalize_for_match(a) for a in ambiguities):
                    ambiguities.append(keyword)
            if literal.rank < coverage.rank:
                logger.info(
                    "Coverage downgraded %s -> %s, unmatched keywords: %s",
                    coverage.value, literal.value, unmatched,
                )
                coverage = literal
                if confidence.rank > Confidence.LOW.rank:
                    confidence = Confidence.LOW

        return ReasoningVerdict(
            keywords=verdict.keywords,
            relevant_quotes=tuple(quotes),
            coverage=coverage,
            ambiguities=tuple(ambiguities),
            confidence=confidence,
        )

    @staticmethod
    def _verbatim_quotes(
        quotes: Sequence[str],
        passages: Sequence[RetrievedPassage],
    ) -> List[str]:
        kept = []
        for quote in quotes:
            candidate = quote.strip(QUOTE_WRAPPERS)
            if not candidate:
                continue
            if any(quote in p.text for p in passages):
                kept.append(quote)
            elif any(candidate in p.text for p in passages):
                kept.append(candidate)
        return kept

    @staticmethod
    def _unmatched_keywords(keywords: Sequence[str], quotes: Sequence[str]) -> List[str]:
        haystack = normalize_for_match(" \n ".join(quotes))
        return [k for k in keywords if normalize_for_match(k) not in haystack]

    @staticmethod
    def _literal_coverage(total: int, unmatched: int) -> Coverage:
        if unmatched == 0:
            return Coverage.COMPLETE
        if unmatched < total:
            return Coverage.PARTIAL
        return Coverage.NONE
