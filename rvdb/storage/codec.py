"""
Embedding Codec
===============

Conversione tra vettori float32 e la loro rappresentazione binaria in Redis.

Formato: float32 little-endian concatenati, lunghezza = 4 * dimensioni.
Il round-trip è bit-exact (anche NaN/Inf mantengono il bit pattern).

Ogni payload binario che finisce in un export JSON passa da qui e assume
una di due sole forme testuali:

    {"type": "float32_array", "dimensions": n, "data": [...]}
    {"type": "binary_data", "encoding": "base64", "data": "..."}

Esempio:
    from rvdb.storage.codec import encode_embedding, decode_embedding

    payload = encode_embedding([0.1, 0.2, 0.3])   # 12 bytes
    vector = decode_embedding(payload)            # ndarray float32
"""

import base64
import math
from typing import Any, Dict, Optional, Sequence, Union

import numpy as np

from rvdb.errors import MalformedEmbeddingError

FLOAT32_LE = np.dtype("<f4")
FLOAT32_WIDTH = FLOAT32_LE.itemsize

FLOAT32_ARRAY_TYPE = "float32_array"
BINARY_DATA_TYPE = "binary_data"

VectorLike = Union[Sequence[float], np.ndarray]


def encode_embedding(vector: VectorLike) -> bytes:
    """
    Serializza un vettore in float32 little-endian.

    Args:
        vector: Sequenza di float o ndarray (qualsiasi dtype numerico)

    Returns:
        bytes di lunghezza 4 * len(vector)
    """
    array = np.asarray(vector)
    if array.dtype != FLOAT32_LE:
        array = array.astype(FLOAT32_LE)
    return array.reshape(-1).tobytes()


def decode_embedding(data: bytes) -> np.ndarray:
    """
    Deserializza un payload binario in un vettore float32.

    Args:
        data: Payload prodotto da encode_embedding

    Returns:
        ndarray float32 (nativo) con gli elementi nello stesso ordine

    Raises:
        MalformedEmbeddingError: Se len(data) non è multiplo di 4
    """
    if len(data) % FLOAT32_WIDTH != 0:
        raise MalformedEmbeddingError(len(data))
    # copy(): frombuffer restituisce una view read-only sul buffer originale
    return np.frombuffer(data, dtype=FLOAT32_LE).astype(np.float32, copy=True)


def project_embedding(data: bytes) -> Dict[str, Any]:
    """
    Proiezione leggibile di un embedding per l'export JSON.

    NaN e ±Inf non sono rappresentabili in JSON e diventano null: la
    proiezione è lossy per questi valori, il payload binario no.
    """
    vector = decode_embedding(data)
    return {
        "type": FLOAT32_ARRAY_TYPE,
        "dimensions": int(vector.shape[0]),
        "data": [value if math.isfinite(value) else None for value in vector.tolist()],
    }


def wrap_binary(data: bytes) -> Dict[str, str]:
    """Wrapper base64 per payload binari non testuali."""
    return {
        "type": BINARY_DATA_TYPE,
        "encoding": "base64",
        "data": base64.b64encode(data).decode("ascii"),
    }


def unwrap_binary(obj: Any) -> Optional[bytes]:
    """
    Inverso di wrap_binary / project_embedding.

    Returns:
        I bytes originali se obj è uno dei due wrapper, None altrimenti.
    """
    if not isinstance(obj, dict):
        return None
    kind = obj.get("type")
    if kind == BINARY_DATA_TYPE and obj.get("encoding") == "base64":
        return base64.b64decode(obj["data"])
    if kind == FLOAT32_ARRAY_TYPE:
        return encode_embedding([np.nan if value is None else value for value in obj["data"]])
    return None


def to_text(data: bytes) -> Union[str, Dict[str, str]]:
    """
    Decodifica bytes come UTF-8; se non è testo valido usa il wrapper base64.
    """
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return wrap_binary(data)
