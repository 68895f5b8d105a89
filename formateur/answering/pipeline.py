"""
Pipeline Orchestrator

ask(question, history) -> AnswerResult

Sequence: validate request -> resolve answer language -> retrieve top-k
passages -> answer strategy. Degradation contract:

- invalid request: RequestValidationError (the only error a caller sees)
- retrieval failure: continue with no passages, which refuses
- any strategy failure: technical-difficulty result, confidence=none

The pipeline holds no per-request state; collaborators are built once by
build_pipeline() and injected, so tests can pass mocks.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from ..common.config import FormateurConfig
from ..common.embedding_service import EmbeddingService
from ..common.errors import RequestValidationError
from ..common.language import resolve_language
from ..common.llm_client import LLMClient
from ..common.retry import RetryPolicy
from ..common.vector_index import VectorIndex
from ..retriever.searcher import RetrievedPassage, Searcher
from .classifier import ConfidenceClassifier
from .explainer import ExplanationBuilder
from .reasoning import ReasoningStage
from .strategies import AnswerMode, AnswerStrategy, SingleCallStrategy, TwoPhaseStrategy
from .synthesizer import AnswerSynthesizer
from .templates import render_technical_difficulty
from .verdict import AnswerResult, Confidence

logger = logging.getLogger("formateur.answering.pipeline")

VALID_ROLES = ("user", "assistant")


def validate_history(history: Any) -> List[Dict[str, str]]:
    """Check caller-supplied history: a list of {role, content} turns."""
    if history is None:
        return []
    if not isinstance(history, (list, tuple)):
        raise RequestValidationError("history must be a list of {role, content} objects")

    turns = []
    for i, turn in enumerate(history):
        if not isinstance(turn, dict):
            raise RequestValidationError(f"history[{i}] must be an object")
        role = turn.get("role")
        content = turn.get("content")
        if role not in VALID_ROLES:
            raise RequestValidationError(f"history[{i}].role must be 'user' or 'assistant'")
        if not isinstance(content, str):
            raise RequestValidationError(f"history[{i}].content must be a string")
        turns.append({"role": role, "content": content})
    return turns


class Pipeline:
    """
    Grounded question answering over the training corpus.

    Usage:
        pipeline = build_pipeline(load_config())
        result = await pipeline.ask("Quelle est la surface minimum pour 3 personnes ?")
        print(result.text, result.confidence.value)
    """

    def __init__(
        self,
        searcher: Searcher,
        strategy: AnswerStrategy,
        top_k: int = 5,
        language: str = "auto",
        default_language: str = "fr",
        organization: str = "CAF",
        vector_index: Optional[VectorIndex] = None,
    ):
        """
        Initialize pipeline.

        Args:
            searcher: Retrieves passages
            strategy: Two-phase or single-call answering
            top_k: Passages retrieved per question
            language: "auto" to follow the question, or a fixed language code
            default_language: Fallback when detection is inconclusive
            organization: Human expert named in user-facing messages
            vector_index: Closed by close() when given
        """
        self._searcher = searcher
        self._strategy = strategy
        self._top_k = top_k
        self._language = language
        self._default_language = default_language
        self._organization = organization
        self._vector_index = vector_index

    @property
    def mode(self) -> AnswerMode:
        return self._strategy.mode

    async def ask(
        self,
        question: Any,
        history: Optional[Sequence[Dict[str, str]]] = None,
    ) -> AnswerResult:
        """
        Answer a question from the training corpus.

        Args:
            question: User question
            history: Prior turns [{"role": "user"|"assistant", "content": str}]

        Returns:
            AnswerResult (never raises for external-service problems)

        Raises:
            RequestValidationError: missing/blank question or malformed history
        """
        if not isinstance(question, str) or not question.strip():
            raise RequestValidationError("Question is required")
        question = question.strip()
        turns = validate_history(history)

        language = resolve_language(question, self._language, self._default_language)
        logger.info("Question received (%d chars, language=%s, mode=%s)",
                    len(question), language, self.mode.value)

        passages = await self._retrieve(question)

        try:
            return await self._strategy.answer(question, passages, turns, language)
        except Exception:
            logger.exception("Answer strategy failed")
            return AnswerResult(
                text=render_technical_difficulty(language, self._organization),
                confidence=Confidence.NONE,
                sources=(),
            )

    async def _retrieve(self, question: str) -> List[RetrievedPassage]:
        """Retrieve passages; an unreachable index yields an empty list."""
        try:
            return await self._searcher.search(question, top_k=self._top_k)
        except Exception as e:
            logger.warning("Retrieval failed, continuing without passages: %s", e)
            return []

    async def close(self) -> None:
        if self._vector_index is not None:
            await self._vector_index.close()


def build_pipeline(config: FormateurConfig) -> Pipeline:
    """
    Construct the pipeline and its collaborators from configuration.

    Raises:
        ValueError: unknown pipeline mode
    """
    pipeline_cfg = config.pipeline
    mode = AnswerMode(pipeline_cfg.mode)

    retry_policy = RetryPolicy(
        timeout=pipeline_cfg.call_timeout,
        max_retries=pipeline_cfg.max_retries,
        base_delay=pipeline_cfg.retry_base_delay,
        max_delay=pipeline_cfg.retry_max_delay,
    )

    def llm_for(stage: str) -> LLMClient:
        llm_cfg = config.llm
        return LLMClient(
            provider=llm_cfg.provider,
            model=llm_cfg.model_for(stage),
            anthropic_api_key=llm_cfg.anthropic_api_key or None,
            openai_api_key=llm_cfg.openai_api_key or None,
            google_api_key=llm_cfg.google_api_key or None,
            retry_policy=retry_policy,
        )

    embedding = EmbeddingService(
        mode=config.embedding.mode,
        model=config.embedding.model,
        openai_api_key=config.llm.openai_api_key or None,
        dimension=config.embedding.dimension,
    )
    vector_index = VectorIndex(
        url=config.vector_index.url,
        api_key=config.vector_index.api_key or None,
        collection=config.vector_index.collection,
        timeout=config.vector_index.timeout,
    )
    searcher = Searcher(
        embedding_service=embedding,
        vector_index=vector_index,
        namespace=config.vector_index.namespace,
        top_k=pipeline_cfg.top_k,
        retry_policy=retry_policy,
    )

    if mode == AnswerMode.SINGLE_CALL:
        strategy: AnswerStrategy = SingleCallStrategy(
            llm_client=llm_for("single_call"),
            classifier=ConfidenceClassifier(),
            organization=pipeline_cfg.organization,
            max_context_chars=pipeline_cfg.max_context_chars,
        )
    else:
        reasoning_llm = llm_for("reasoning")
        strategy = TwoPhaseStrategy(
            reasoning=ReasoningStage(
                reasoning_llm,
                max_context_chars=pipeline_cfg.max_context_chars,
                strict_keyword_coverage=pipeline_cfg.strict_keyword_coverage,
            ),
            synthesizer=AnswerSynthesizer(
                llm_for("answer"),
                ExplanationBuilder(
                    reasoning_llm,
                    quote_preview_chars=pipeline_cfg.quote_preview_chars,
                    max_context_chars=pipeline_cfg.max_context_chars,
                ),
                organization=pipeline_cfg.organization,
                partial_quote_chars=pipeline_cfg.partial_quote_chars,
                max_context_chars=pipeline_cfg.max_context_chars,
            ),
        )

    logger.info("Pipeline built: mode=%s provider=%s top_k=%d",
                mode.value, config.llm.provider, pipeline_cfg.top_k)
    return Pipeline(
        searcher=searcher,
        strategy=strategy,
        top_k=pipeline_cfg.top_k,
        language=pipeline_cfg.language,
        default_language=pipeline_cfg.default_language,
        organization=pipeline_cfg.organization,
        vector_index=vector_index,
    )
