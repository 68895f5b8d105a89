"""
Searcher

Retrieves training-corpus passages for a question.
Pipeline: embed question → vector query → RetrievedPassage list ordered by
descending similarity.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..common.embedding_service import EmbeddingService
from ..common.retry import NO_RETRY, RetryPolicy, call_with_retries
from ..common.vector_index import VectorIndex

logger = logging.getLogger("formateur.retriever.searcher")


@dataclass(frozen=True)
class RetrievedPassage:
    """A corpus passage returned by the vector index"""
    text: str
    similarity_score: float  # 0.0 to 1.0
    module_tag: str = ""
    section_tag: str = ""

    @property
    def summary(self) -> str:
        """Short summary for display"""
        return f"{self.module_tag or 'n/a'} / {self.section_tag or 'n/a'} ({self.similarity_score:.3f})"


class Searcher:
    """
    Searches the training corpus.

    Errors from the embedding service or the index propagate after the retry
    policy is exhausted; the pipeline decides how to degrade.
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_index: VectorIndex,
        namespace: str = "",
        top_k: int = 5,
        retry_policy: RetryPolicy = NO_RETRY,
    ):
        """
        Initialize searcher.

        Args:
            embedding_service: For embedding questions
            vector_index: Vector index holding the corpus
            namespace: Corpus namespace inside the index
            top_k: Default number of passages
            retry_policy: Timeout/backoff applied to each external call
        """
        self._embedding = embedding_service
        self._index = vector_index
        self._namespace = namespace
        self._top_k = top_k
        self._retry = retry_policy

    async def search(self, question: str, top_k: Optional[int] = None) -> List[RetrievedPassage]:
        """
        Search for passages relevant to a question.

        Args:
            question: User question
            top_k: Number of passages (default from constructor)

        Returns:
            RetrievedPassage list sorted by descending similarity, at most top_k
        """
        top_k = top_k or self._top_k

        vector = await call_with_retries(
            lambda: self._embedding.embed(question),
            self._retry,
            service="embedding",
        )
        matches = await call_with_retries(
            lambda: self._index.query(vector, top_k, self._namespace),
            self._retry,
            service="vector_index",
        )

        passages = []
        for match in matches:
            passage = self._to_passage(match)
            if passage is not None:
                passages.append(passage)

        passages.sort(key=lambda p: p.similarity_score, reverse=True)
        passages = passages[:top_k]

        logger.info(
            "Retrieved %d passage(s), scores: %s",
            len(passages),
            ", ".join(f"{p.similarity_score:.3f}" for p in passages) or "-",
        )
        for passage in passages:
            logger.debug("  %s", passage.summary)
        return passages

    def _to_passage(self, raw: Dict[str, Any]) -> Optional[RetrievedPassage]:
        """Convert a raw index match to RetrievedPassage; None when it has no text."""
        metadata = raw.get("metadata") or {}
        text = metadata.get("text") or ""
        if not text.strip():
            logger.debug("Skipping match %s without text", raw.get("id"))
            return None

        try:
            score = float(raw.get("score") or 0.0)
        except (TypeError, ValueError):
            score = 0.0

        return RetrievedPassage(
            text=text,
            similarity_score=max(0.0, min(1.0, score)),
            module_tag=str(metadata.get("module") or ""),
            section_tag=str(metadata.get("section") or ""),
        )
