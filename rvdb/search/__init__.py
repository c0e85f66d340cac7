"""
RVDB Search
===========

Ricerca brute-force per similarità coseno sugli embedding salvati in Redis.

Componenti:
- SimilaritySearchEngine: search(query, k), index(key, vector)
- SimilarityResult: risultato (key, description, similarity)
- cosine_similarity: metrica, 0.0 per vettori a norma nulla
"""

from rvdb.search.similarity import SimilarityResult, cosine_similarity
from rvdb.search.engine import SimilaritySearchEngine

__all__ = [
    "SimilarityResult",
    "SimilaritySearchEngine",
    "cosine_similarity",
]
