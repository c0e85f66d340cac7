"""
Similarity Search Engine
========================

Ricerca brute-force per similarità coseno sugli hash Redis che contengono
un campo embedding.

Algoritmo:
1. embedding della query tramite l'EmbeddingGenerator
2. enumerazione di TUTTE le chiavi (KEYS *, non paginata)
3. TYPE in pipeline, poi HGETALL in pipeline per le chiavi hash
4. decode dell'embedding + cosine similarity
5. sort stabile decrescente, troncato a k

Gli hash senza campo embedding vengono saltati senza errore. Le dimensioni
di query ed embedding salvati non vengono validate: un vettore di
dimensione diversa produce un punteggio calcolato sul prefisso comune e
un warning nei log.

Usage:
    engine = SimilaritySearchEngine(session, embedder)
    await engine.index_text("doc:1", "Fatture scadute a marzo", description="fatture")
    results = await engine.search("fatture non pagate", k=3)
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog

from rvdb.config import SearchConfig
from rvdb.embeddings import EmbeddingGenerator
from rvdb.errors import EncoderUnavailableError, MalformedEmbeddingError
from rvdb.export.models import KeyType
from rvdb.export.pipeliner import decode_key
from rvdb.search.similarity import SimilarityResult, cosine_similarity
from rvdb.storage.codec import decode_embedding, encode_embedding
from rvdb.storage.session import RedisSession

log = structlog.get_logger()


class SimilaritySearchEngine:
    """
    Brute-force nearest-neighbor search over embeddings stored in hashes.

    Args:
        session: Connected RedisSession
        embedder: EmbeddingGenerator (None means the encoder is unavailable)
        config: Field names and default k (default: SearchConfig() from env vars)
    """

    def __init__(
        self,
        session: RedisSession,
        embedder: Optional[EmbeddingGenerator] = None,
        config: Optional[SearchConfig] = None,
    ):
        self.session = session
        self.embedder = embedder
        self.config = config or SearchConfig()

    async def _embed(self, text: str) -> Sequence[float]:
        if self.embedder is None:
            raise EncoderUnavailableError("No embedding generator configured")
        try:
            vector = await self.embedder.embed(text)
        except EncoderUnavailableError:
            raise
        except Exception as e:
            raise EncoderUnavailableError(f"Embedding generator failed: {e}") from e
        if vector is None:
            raise EncoderUnavailableError("Embedding generator returned no vector")
        return vector

    async def _load_candidates(self, client) -> List[Tuple[str, Dict[bytes, bytes]]]:
        """Tutte le chiavi hash con il loro contenuto, in ordine di enumerazione."""
        keys = await client.keys("*")
        if not keys:
            return []

        type_pipe = client.pipeline(transaction=False)
        for key in keys:
            type_pipe.type(key)
        type_tags = await type_pipe.execute()

        hash_keys = [key for key, tag in zip(keys, type_tags) if KeyType.parse(tag) is KeyType.HASH]
        if not hash_keys:
            return []

        value_pipe = client.pipeline(transaction=False)
        for key in hash_keys:
            value_pipe.hgetall(key)
        values = await value_pipe.execute()

        return [(decode_key(key), fields or {}) for key, fields in zip(hash_keys, values)]

    async def search(self, query_text: str, k: Optional[int] = None) -> List[SimilarityResult]:
        """
        Top-k hash entries most similar to query_text.

        Args:
            query_text: Testo della query
            k: Numero massimo di risultati (default: config.top_k)

        Returns:
            SimilarityResult ordinati per similarità decrescente;
            a parità conta l'ordine di enumerazione

        Raises:
            EncoderUnavailableError: Embedder mancante o in errore
            MalformedEmbeddingError: Embedding salvato con lunghezza non valida
        """
        k = self.config.top_k if k is None else k
        query = await self._embed(query_text)
        if k <= 0:
            return []

        embedding_field = self.config.embedding_field.encode("utf-8")
        description_field = self.config.description_field.encode("utf-8")

        async with self.session.exclusive("search") as client:
            candidates = await self._load_candidates(client)

        query_dim = len(query)
        results = []
        skipped = 0
        mismatched = 0
        for key, fields in candidates:
            raw = fields.get(embedding_field)
            if raw is None:
                skipped += 1
                continue
            try:
                stored = decode_embedding(raw)
            except MalformedEmbeddingError as e:
                raise MalformedEmbeddingError(len(raw), key=key, field=self.config.embedding_field) from e
            if stored.shape[0] != query_dim:
                mismatched += 1

            description = fields.get(description_field, b"")
            results.append(SimilarityResult(
                key=key,
                description=description.decode("utf-8", errors="replace"),
                similarity=cosine_similarity(query, stored),
            ))

        if mismatched:
            log.warning(
                "embedding dimension mismatch",
                query_dimensions=query_dim,
                mismatched_keys=mismatched,
            )

        results.sort(key=lambda r: r.similarity, reverse=True)
        log.info(
            "similarity search",
            candidates=len(candidates),
            scored=len(results),
            skipped=skipped,
            k=k,
        )
        return results[:k]

    async def index(
        self,
        key: str,
        vector: Sequence[float],
        description: str = "",
        **fields: Any,
    ) -> None:
        """
        Salva un embedding (e campi extra) in un hash Redis.

        Args:
            key: Chiave hash
            vector: Embedding da codificare in float32
            description: Valore del campo descrizione
            **fields: Altri campi da scrivere nell'hash
        """
        mapping = {str(name): str(value) for name, value in fields.items()}
        mapping[self.config.description_field] = description
        mapping[self.config.embedding_field] = encode_embedding(vector)
        async with self.session.exclusive("index") as client:
            await client.hset(key, mapping=mapping)
        log.debug("embedding indexed", key=key, dimensions=len(vector))

    async def index_text(self, key: str, text: str, description: Optional[str] = None, **fields: Any) -> None:
        """Calcola l'embedding di text e lo salva con index()."""
        vector = await self._embed(text)
        await self.index(key, vector, description=text if description is None else description, **fields)
