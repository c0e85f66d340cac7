"""
Cosine similarity and search results.
"""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class SimilarityResult:
    """One ranked search hit."""
    key: str
    description: str
    similarity: float

    def to_dict(self) -> dict:
        return {"key": self.key, "description": self.description, "similarity": self.similarity}


def cosine_similarity(a, b) -> float:
    """
    dot(a, b) / (|a| * |b|), 0.0 se una delle due norme è zero.

    Vettori di lunghezza diversa vengono confrontati sul prefisso comune:
    il risultato non ha senso geometrico ma non solleva eccezioni.
    """
    a = np.asarray(a, dtype=np.float64).reshape(-1)
    b = np.asarray(b, dtype=np.float64).reshape(-1)
    if a.shape[0] != b.shape[0]:
        n = min(a.shape[0], b.shape[0])
        a, b = a[:n], b[:n]

    norm_a = float(np.linalg.norm(a))
    norm_b = float(np.linalg.norm(b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    similarity = float(np.dot(a, b)) / (norm_a * norm_b)
    if not np.isfinite(similarity):
        return 0.0
    # rounding può portare a 1.0000000002
    return max(-1.0, min(1.0, similarity))
