"""
Batch Pipeliner
===============

Per ogni batch di chiavi esegue due round-trip in pipeline (non transazionali):

1. TYPE di tutte le chiavi
2. lettura del valore con l'accessor adatto al tipo

| tipo   | accessor                      | troncamento        |
|--------|-------------------------------|--------------------|
| string | GET                           | nessuno            |
| hash   | HGETALL                       | nessuno            |
| list   | LRANGE 0 limit                | primi limit+1      |
| set    | SMEMBERS                      | nessuno            |
| zset   | ZRANGE 0 limit WITHSCORES     | primi limit+1      |
| altro  | GET (fallback)                | nessuno            |

Il troncamento di list/zset è una policy di export lossy: una collezione
illimitata non deve rendere illimitata una singola risposta della pipeline.
Chi ha bisogno della collezione completa deve rileggere la chiave.

I valori vengono proiettati in forma JSON-safe: testo UTF-8 come stringa,
campi embedding come float32_array, ogni altro binario come base64.
"""

import math
from typing import Any, Dict, Iterable, List, Sequence, Union

import structlog

from rvdb.errors import MalformedEmbeddingError
from rvdb.export.models import KeyType, StoreEntry
from rvdb.storage.codec import project_embedding, to_text

log = structlog.get_logger()

DEFAULT_COLLECTION_LIMIT = 100
DEFAULT_EMBEDDING_FIELDS = ("embedding",)


def decode_key(key: Any) -> str:
    """Nome chiave leggibile; i byte non UTF-8 diventano escape \\xNN."""
    if isinstance(key, bytes):
        return key.decode("utf-8", errors="backslashreplace")
    return str(key)


def _score(score: Any) -> Union[float, str]:
    """Score JSON-safe: ±inf restano le stringhe di Redis ("inf", "-inf")."""
    score = float(score)
    return score if math.isfinite(score) else str(score)


def _queue_value_read(pipe, key: bytes, key_type: KeyType, limit: int) -> None:
    if key_type is KeyType.HASH:
        pipe.hgetall(key)
    elif key_type is KeyType.LIST:
        pipe.lrange(key, 0, limit)
    elif key_type is KeyType.SET:
        pipe.smembers(key)
    elif key_type is KeyType.ZSET:
        pipe.zrange(key, 0, limit, withscores=True)
    else:
        pipe.get(key)


def project_value(
    key_name: str,
    key_type: KeyType,
    raw: Any,
    embedding_fields: Iterable[str] = DEFAULT_EMBEDDING_FIELDS,
) -> Any:
    """
    Converte la risposta Redis in un valore serializzabile JSON.

    Args:
        key_name: Nome chiave (solo per i messaggi di errore)
        key_type: Tipo della chiave, None se sconosciuto
        raw: Risposta della pipeline
        embedding_fields: Campi hash da decodificare come embedding

    Raises:
        MalformedEmbeddingError: Campo embedding con lunghezza non multipla di 4
    """
    if raw is None:
        return None

    if key_type is KeyType.HASH:
        fields = set(embedding_fields)
        projected: Dict[str, Any] = {}
        for raw_field, raw_value in raw.items():
            field_name = decode_key(raw_field)
            if field_name in fields:
                try:
                    projected[field_name] = project_embedding(raw_value)
                except MalformedEmbeddingError as e:
                    raise MalformedEmbeddingError(len(raw_value), key=key_name, field=field_name) from e
            else:
                projected[field_name] = to_text(raw_value)
        return projected

    if key_type is KeyType.LIST:
        return [to_text(item) for item in raw]

    if key_type is KeyType.SET:
        return [to_text(member) for member in raw]

    if key_type is KeyType.ZSET:
        return [{"value": to_text(member), "score": _score(score)} for member, score in raw]

    if isinstance(raw, bytes):
        return to_text(raw)
    return raw


async def fetch_batch(
    client,
    keys: Sequence[bytes],
    embedding_fields: Iterable[str] = DEFAULT_EMBEDDING_FIELDS,
    collection_limit: int = DEFAULT_COLLECTION_LIMIT,
) -> List[StoreEntry]:
    """
    Legge tipo e valore di un batch di chiavi con due pipeline.

    Args:
        client: redis.asyncio client
        keys: Chiavi del batch (ordine preservato nel risultato)
        embedding_fields: Campi hash trattati come embedding
        collection_limit: Ultimo indice incluso per LRANGE/ZRANGE

    Returns:
        Una StoreEntry per chiave, nello stesso ordine di keys
    """
    if not keys:
        return []

    type_pipe = client.pipeline(transaction=False)
    for key in keys:
        type_pipe.type(key)
    type_tags = await type_pipe.execute()

    value_pipe = client.pipeline(transaction=False)
    parsed = []
    for key, tag in zip(keys, type_tags):
        key_type = KeyType.parse(tag)
        parsed.append((key_type, tag))
        _queue_value_read(value_pipe, key, key_type, collection_limit)
    values = await value_pipe.execute(raise_on_error=False)

    embedding_fields = tuple(embedding_fields)
    entries = []
    for key, (key_type, tag), raw in zip(keys, parsed, values):
        key_name = decode_key(key)
        type_name = key_type.value if key_type is not None else decode_key(tag)
        if key_type is None:
            log.debug("unrecognized key type, falling back to GET", key=key_name, type=type_name)
        if isinstance(raw, Exception):
            # GET su tipi non gestiti (es. stream) risponde WRONGTYPE
            if key_type is not None:
                raise raw
            log.debug("value read failed for unrecognized type", key=key_name, error=str(raw))
            raw = None
        entries.append(StoreEntry(
            key=key_name,
            type=type_name,
            value=project_value(key_name, key_type, raw, embedding_fields),
        ))

    return entries
