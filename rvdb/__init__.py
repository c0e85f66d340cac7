"""
RVDB: Redis Vector DB tooling
=============================

Export streaming dell'intero keyspace Redis e ricerca per similarità
sugli embedding salvati negli hash.

Quick Start:
    from rvdb import RedisSession, RedisConfig, RedisExporter, SimilaritySearchEngine

    async with RedisSession(RedisConfig()) as session:
        # Export
        result = await RedisExporter(session).export("redis_data_export.json")
        print(result.summary())

        # Ricerca
        engine = SimilaritySearchEngine(session, embedder)
        for hit in await engine.search("fatture scadute", k=5):
            print(hit.key, hit.similarity)

Componenti:
- config: RedisConfig, ExportConfig, SearchConfig
- storage: RedisSession, Embedding Codec
- export: RedisExporter, ManifestWriter, ExportController
- search: SimilaritySearchEngine
"""

__version__ = "0.1.0"
__author__ = "RVDB Team"

from rvdb.config import RedisConfig, ExportConfig, SearchConfig
from rvdb.errors import (
    RvdbError,
    ConfigurationError,
    StoreNotConnectedError,
    OperationInProgressError,
    MalformedEmbeddingError,
    EncoderUnavailableError,
    InvalidStateTransitionError,
)
from rvdb.storage import RedisSession, encode_embedding, decode_embedding
from rvdb.export import (
    RedisExporter,
    ExportController,
    ExportResult,
    ExportState,
    CancellationToken,
    ProgressSnapshot,
    StoreEntry,
    load_manifest,
)
from rvdb.search import SimilaritySearchEngine, SimilarityResult, cosine_similarity
from rvdb.embeddings import EmbeddingGenerator, SentenceTransformerEmbedder

__all__ = [
    # Config
    "RedisConfig",
    "ExportConfig",
    "SearchConfig",
    # Errors
    "RvdbError",
    "ConfigurationError",
    "StoreNotConnectedError",
    "OperationInProgressError",
    "MalformedEmbeddingError",
    "EncoderUnavailableError",
    "InvalidStateTransitionError",
    # Storage
    "RedisSession",
    "encode_embedding",
    "decode_embedding",
    # Export
    "RedisExporter",
    "ExportController",
    "ExportResult",
    "ExportState",
    "CancellationToken",
    "ProgressSnapshot",
    "StoreEntry",
    "load_manifest",
    # Search
    "SimilaritySearchEngine",
    "SimilarityResult",
    "cosine_similarity",
    # Embeddings
    "EmbeddingGenerator",
    "SentenceTransformerEmbedder",
]
