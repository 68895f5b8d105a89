"""
Formateur Common Module

Shared infrastructure for retrieval and answering.
"""

from .config import FormateurConfig, load_config
from .embedding_service import EmbeddingService
from .errors import (
    FormateurError,
    LLMUnavailableError,
    RequestValidationError,
    TransientServiceError,
)
from .llm_client import LLMClient
from .retry import RetryPolicy
from .vector_index import VectorIndex

__all__ = [
    "FormateurConfig",
    "load_config",
    "EmbeddingService",
    "FormateurError",
    "LLMUnavailableError",
    "RequestValidationError",
    "TransientServiceError",
    "LLMClient",
    "RetryPolicy",
    "VectorIndex",
]
