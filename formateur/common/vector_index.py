"""
Vector Index Client

Read-only query access to the Qdrant collection holding the training corpus.
Passages carry their namespace in the payload, so one collection can hold
several corpora.

Expected point payload:
{
    "text": str,         # passage text
    "module": str,       # training module heading
    "section": str,      # section heading
    "namespace": str
}
"""

import logging
from typing import Any, Dict, List, Optional

from qdrant_client import AsyncQdrantClient
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse
from qdrant_client.models import FieldCondition, Filter, MatchValue

from .errors import TransientServiceError

logger = logging.getLogger("formateur.common.vector_index")

# HTTP statuses worth retrying
TRANSIENT_STATUS_CODES = {408, 429, 500, 502, 503, 504}


class VectorIndex:
    """High-level Qdrant client for passage retrieval."""

    def __init__(
        self,
        url: str = "http://localhost:6333",
        api_key: Optional[str] = None,
        collection: str = "formateur",
        timeout: int = 30,
    ):
        if api_key:
            self.client = AsyncQdrantClient(url=url, api_key=api_key, timeout=timeout)
        else:
            self.client = AsyncQdrantClient(url=url, timeout=timeout)
        self.collection = collection

    async def query(
        self,
        vector: List[float],
        top_k: int,
        namespace: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Nearest-neighbour query.

        Args:
            vector: Query embedding
            top_k: Maximum number of matches
            namespace: Restrict to passages of this namespace

        Returns:
            List of {"id", "score", "metadata": {...payload}} ordered by score.
            May hold fewer than top_k entries; an empty list is a valid result.

        Raises:
            TransientServiceError: connection failure or retryable HTTP status
        """
        query_filter = None
        if namespace:
            query_filter = Filter(
                must=[FieldCondition(key="namespace", match=MatchValue(value=namespace))]
            )

        try:
            response = await self.client.query_points(
                collection_name=self.collection,
                query=vector,
                limit=top_k,
                query_filter=query_filter,
                with_payload=True,
            )
        except ResponseHandlingException as e:
            raise TransientServiceError("vector_index", str(e)) from e
        except UnexpectedResponse as e:
            if e.status_code in TRANSIENT_STATUS_CODES:
                raise TransientServiceError("vector_index", str(e)) from e
            raise

        return [
            {
                "id": str(point.id),
                "score": point.score,
                "metadata": point.payload or {},
            }
            for point in response.points
        ]

    async def close(self) -> None:
        await self.client.close()
