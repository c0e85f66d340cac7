"""
Embedding Generators
====================

Il motore di ricerca consuma un EmbeddingGenerator: qualunque oggetto con
un metodo `async embed(text) -> Sequence[float]`.

SentenceTransformerEmbedder è l'implementazione di default basata su
sentence-transformers (extra opzionale `pip install rvdb[embeddings]`).

Key Features:
- Lazy loading (model loaded on first use, not on import)
- Thread-safe initialization
- Encoding in thread pool per non bloccare l'event loop

Environment Variables:
    EMBEDDING_MODEL: Nome modello (default: sentence-transformers/all-MiniLM-L6-v2)
    EMBEDDING_DEVICE: cpu / cuda (default: auto)
    EMBEDDING_NORMALIZE: Normalizza i vettori (default: true)
"""

import asyncio
import logging
import os
from threading import Lock
from typing import List, Optional, Protocol, Sequence, runtime_checkable

from rvdb.errors import EncoderUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


@runtime_checkable
class EmbeddingGenerator(Protocol):
    """Capability consumed by the search engine: text -> float vector."""

    async def embed(self, text: str) -> Sequence[float]:
        ...


class SentenceTransformerEmbedder:
    """
    EmbeddingGenerator backed by a sentence-transformers model.

    Usage:
        embedder = SentenceTransformerEmbedder()
        vector = await embedder.embed("Which keys mention invoices?")
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        device: Optional[str] = None,
        normalize_embeddings: bool = True,
    ):
        """
        Initialize the embedder.

        Args:
            model_name: Sentence-transformers model name
                       (default: from EMBEDDING_MODEL env var or all-MiniLM-L6-v2)
            device: Device to use ('cpu', 'cuda', or None for auto-detect)
            normalize_embeddings: Whether to normalize embeddings (for cosine similarity)
        """
        self.model_name = model_name or os.getenv("EMBEDDING_MODEL", DEFAULT_MODEL)
        self.device = device or os.getenv("EMBEDDING_DEVICE") or None
        self.normalize_embeddings = (
            os.getenv("EMBEDDING_NORMALIZE", str(normalize_embeddings)).lower() == "true"
        )
        self._model = None
        self._lock = Lock()

        logger.info(
            "SentenceTransformerEmbedder configured",
            extra={
                "model": self.model_name,
                "device": self.device,
                "normalize": self.normalize_embeddings,
            }
        )

    def _load_model(self):
        """
        Lazy load the sentence-transformers model.

        Raises:
            EncoderUnavailableError: Library missing or model failed to load
        """
        if self._model is None:
            with self._lock:
                if self._model is None:
                    try:
                        from sentence_transformers import SentenceTransformer
                    except ImportError as e:
                        raise EncoderUnavailableError(
                            "sentence-transformers is required for SentenceTransformerEmbedder. "
                            "Install with: pip install 'rvdb[embeddings]'"
                        ) from e

                    logger.info(f"Loading embedding model: {self.model_name}")
                    try:
                        self._model = SentenceTransformer(self.model_name, device=self.device)
                    except Exception as e:
                        logger.error(f"Failed to load model: {e}", exc_info=True)
                        raise EncoderUnavailableError(f"Failed to load embedding model: {e}") from e
                    logger.info(
                        f"Model loaded successfully. Embedding dimension: "
                        f"{self._model.get_sentence_embedding_dimension()}"
                    )
        return self._model

    @property
    def is_loaded(self) -> bool:
        """Check if model is loaded."""
        return self._model is not None

    def encode(self, text: str) -> List[float]:
        """Encode synchronously."""
        model = self._load_model()
        logger.debug(f"Encoding text: {text[:100]}...")
        embedding = model.encode(
            text,
            normalize_embeddings=self.normalize_embeddings,
            convert_to_numpy=True,
        )
        return embedding.tolist()

    async def embed(self, text: str) -> List[float]:
        """
        Async encode, run in the default executor to avoid blocking the event loop.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.encode, text)

    def __repr__(self) -> str:
        return f"SentenceTransformerEmbedder(model={self.model_name}, loaded={self.is_loaded})"
