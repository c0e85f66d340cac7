"""
Storage Layer
=============

Accesso a Redis e codifica dei payload binari.

Componenti:
- RedisSession: sessione esplicita con ciclo di vita gestito dal chiamante
- codec: encode/decode embedding float32 e wrapper base64
"""

from rvdb.storage.session import RedisSession, SessionState
from rvdb.storage.codec import (
    encode_embedding,
    decode_embedding,
    project_embedding,
    wrap_binary,
    unwrap_binary,
)

__all__ = [
    "RedisSession",
    "SessionState",
    "encode_embedding",
    "decode_embedding",
    "project_embedding",
    "wrap_binary",
    "unwrap_binary",
]
