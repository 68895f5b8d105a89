"""
Embedding Service

Generates query embeddings for retrieval.

Modes:
- "openai": OpenAI embeddings API (text-embedding-3-small, 1536 dims)
- "femb": on-device fastembed model, no external API call
"""

import asyncio
import logging
from typing import List, Optional

import numpy as np

from .errors import TransientServiceError

logger = logging.getLogger("formateur.common.embedding_service")


class EmbeddingService:
    """
    Embedding service for Formateur retrieval.

    One instance is built at startup and passed to the Searcher.
    """

    def __init__(
        self,
        mode: str = "openai",
        model: str = "text-embedding-3-small",
        openai_api_key: Optional[str] = None,
        dimension: Optional[int] = None,
    ):
        self._mode = mode
        self._model = model
        self._dimension = dimension
        self._client = None
        self._transient_errors: tuple = ()

        if mode == "openai":
            if not openai_api_key:
                logger.info("OpenAI API key not provided, embedding service unavailable")
                return
            try:
                import openai

                self._client = openai.AsyncOpenAI(api_key=openai_api_key)
                self._transient_errors = (
                    openai.APIConnectionError,
                    openai.RateLimitError,
                    openai.InternalServerError,
                )
            except ImportError:
                logger.warning("openai package not installed")
            return

        if mode == "femb":
            try:
                from fastembed import TextEmbedding

                self._client = TextEmbedding(model_name=model)
                logger.info("Initialized fastembed model %s", model)
            except ImportError:
                logger.warning("fastembed package not installed")
            except Exception as e:
                logger.warning("Failed to initialize fastembed model %s: %s", model, e)
            return

        logger.warning("Unsupported embedding mode: %s", mode)

    @property
    def is_available(self) -> bool:
        """Check if embedding service is available"""
        return self._client is not None

    @property
    def mode(self) -> str:
        return self._mode

    async def embed(self, text: str) -> List[float]:
        """
        Generate the embedding for a single text.

        Args:
            text: String to embed

        Returns:
            Embedding vector

        Raises:
            ValueError: empty text
            RuntimeError: service not initialized
            TransientServiceError: network or quota failure
        """
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")
        if not self.is_available:
            raise RuntimeError("Embedding service not initialized")

        if self._mode == "femb":
            vector = await asyncio.to_thread(self._embed_local, text)
        else:
            vector = await self._embed_openai(text)

        if self._dimension and len(vector) != self._dimension:
            raise ValueError(
                f"Embedding dimension mismatch: expected {self._dimension}, got {len(vector)}"
            )
        return vector

    async def _embed_openai(self, text: str) -> List[float]:
        try:
            response = await self._client.embeddings.create(model=self._model, input=text)
        except self._transient_errors as e:
            raise TransientServiceError("embedding", str(e)) from e
        return list(response.data[0].embedding)

    def _embed_local(self, text: str) -> List[float]:
        embeddings = list(self._client.embed([text]))
        return np.asarray(embeddings[0], dtype=float).tolist()
