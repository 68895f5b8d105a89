"""
Retriever - Training Corpus Retrieval

Embeds the question and queries the vector index for the closest passages.

Key Components:
- Searcher: embedding + vector similarity search
- RetrievedPassage: immutable passage with module/section tags and score
"""

from .searcher import RetrievedPassage, Searcher

__all__ = [
    "RetrievedPassage",
    "Searcher",
]
