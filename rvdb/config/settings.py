"""
RVDB Configuration
==================

Configurazione per connessione Redis, export e ricerca.

Supporta configurazione via environment variables per deploy flessibile.

Usage:
    from rvdb.config import RedisConfig, ExportConfig

    # Default (usa env vars o valori default)
    config = RedisConfig()

    # Override esplicito
    config = RedisConfig(host="redis.internal", port=6380, tls=True)

Environment Variables (Redis):
    REDIS_HOST: Host del server (default: localhost)
    REDIS_PORT: Porta del server (default: 6379)
    REDIS_DB: Database number (default: 0)
    REDIS_USERNAME / REDIS_PASSWORD: Credenziali ACL (default: vuote)
    REDIS_TLS: Abilita TLS (default: false)
    REDIS_CA_CERT_PATH: CA certificate (obbligatorio se REDIS_TLS=true)
    REDIS_CLIENT_CERT_PATH / REDIS_CLIENT_KEY_PATH: Client certificate mTLS
    REDIS_SOCKET_TIMEOUT / REDIS_SOCKET_CONNECT_TIMEOUT: Timeout in secondi (default: 5)

Environment Variables (Export):
    RVDB_EXPORT_PATH: File di output (default: redis_data_export.json)
    RVDB_SCAN_BATCH_SIZE: COUNT hint per SCAN (default: 1000)
    RVDB_PROGRESS_INTERVAL: Ogni quante chiavi pubblicare progresso (default: 1000)
    RVDB_COLLECTION_LIMIT: Ultimo indice incluso per list/zset (default: 100)
    RVDB_LARGE_DATASET_THRESHOLD: Soglia warning dataset grande (default: 100000)
    RVDB_EMBEDDING_FIELDS: Campi hash trattati come embedding, separati da virgola

Environment Variables (Search):
    RVDB_EMBEDDING_FIELD: Campo hash con l'embedding (default: embedding)
    RVDB_DESCRIPTION_FIELD: Campo hash con la descrizione (default: description)
    RVDB_SEARCH_TOP_K: Numero risultati di default (default: 5)
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple


def _get_env_str(key: str, default: str) -> str:
    """Legge variabile ambiente come stringa."""
    return os.environ.get(key, default)


def _get_env_int(key: str, default: int) -> int:
    """Legge variabile ambiente come intero."""
    return int(os.environ.get(key, default))


def _get_env_bool(key: str, default: bool) -> bool:
    """Legge variabile ambiente come booleano ("true"/"1"/"yes")."""
    return os.environ.get(key, str(default)).strip().lower() in ("true", "1", "yes")


def _get_env_list(key: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    """Legge variabile ambiente come lista separata da virgole."""
    raw = os.environ.get(key)
    if raw is None:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass
class RedisConfig:
    """
    Configurazione connessione Redis.

    Tutti i campi supportano override da environment variables.
    La validazione dei certificati TLS non è disattivabile.

    Attributes:
        host: Host del server Redis
        port: Porta del server
        db: Database number
        username: Username ACL (opzionale)
        password: Password autenticazione (opzionale)
        tls: Se True usa rediss:// con certificati
        ca_cert_path: Path CA certificate
        client_cert_path: Path client certificate (mTLS)
        client_key_path: Path client key (mTLS)
        socket_timeout: Timeout operazioni in secondi
        socket_connect_timeout: Timeout connessione in secondi
    """
    host: str = field(default_factory=lambda: _get_env_str("REDIS_HOST", "localhost"))
    port: int = field(default_factory=lambda: _get_env_int("REDIS_PORT", 6379))
    db: int = field(default_factory=lambda: _get_env_int("REDIS_DB", 0))
    username: Optional[str] = field(default_factory=lambda: _get_env_str("REDIS_USERNAME", "") or None)
    password: Optional[str] = field(default_factory=lambda: _get_env_str("REDIS_PASSWORD", "") or None)
    tls: bool = field(default_factory=lambda: _get_env_bool("REDIS_TLS", False))
    ca_cert_path: Optional[str] = field(default_factory=lambda: _get_env_str("REDIS_CA_CERT_PATH", "") or None)
    client_cert_path: Optional[str] = field(default_factory=lambda: _get_env_str("REDIS_CLIENT_CERT_PATH", "") or None)
    client_key_path: Optional[str] = field(default_factory=lambda: _get_env_str("REDIS_CLIENT_KEY_PATH", "") or None)
    socket_timeout: int = field(default_factory=lambda: _get_env_int("REDIS_SOCKET_TIMEOUT", 5))
    socket_connect_timeout: int = field(default_factory=lambda: _get_env_int("REDIS_SOCKET_CONNECT_TIMEOUT", 5))

    def describe(self) -> str:
        """Descrizione leggibile per i log (senza credenziali)."""
        scheme = "rediss" if self.tls else "redis"
        return f"{scheme}://{self.host}:{self.port}/{self.db}"


@dataclass
class ExportConfig:
    """
    Configurazione dell'export streaming.

    Attributes:
        export_path: File JSON di destinazione
        scan_batch_size: COUNT hint passato a SCAN (advisory)
        progress_interval: Granularità degli eventi di progresso
        collection_limit: Ultimo indice (incluso) letto per list e zset,
            quindi ogni collezione esporta al massimo collection_limit + 1 elementi
        large_dataset_threshold: Oltre questa stima di chiavi viene emesso un warning
        embedding_fields: Campi hash decodificati come float32_array
    """
    export_path: str = field(default_factory=lambda: _get_env_str("RVDB_EXPORT_PATH", "redis_data_export.json"))
    scan_batch_size: int = field(default_factory=lambda: _get_env_int("RVDB_SCAN_BATCH_SIZE", 1000))
    progress_interval: int = field(default_factory=lambda: _get_env_int("RVDB_PROGRESS_INTERVAL", 1000))
    collection_limit: int = field(default_factory=lambda: _get_env_int("RVDB_COLLECTION_LIMIT", 100))
    large_dataset_threshold: int = field(default_factory=lambda: _get_env_int("RVDB_LARGE_DATASET_THRESHOLD", 100000))
    embedding_fields: Tuple[str, ...] = field(default_factory=lambda: _get_env_list("RVDB_EMBEDDING_FIELDS", ("embedding",)))

    def __post_init__(self):
        if self.scan_batch_size <= 0:
            raise ValueError(f"scan_batch_size must be positive, got {self.scan_batch_size}")
        if self.progress_interval <= 0:
            raise ValueError(f"progress_interval must be positive, got {self.progress_interval}")
        if self.collection_limit < 0:
            raise ValueError(f"collection_limit must be >= 0, got {self.collection_limit}")


@dataclass
class SearchConfig:
    """
    Configurazione della ricerca per similarità.

    Attributes:
        embedding_field: Campo hash che contiene l'embedding codificato
        description_field: Campo hash restituito come descrizione
        top_k: Numero di risultati di default
    """
    embedding_field: str = field(default_factory=lambda: _get_env_str("RVDB_EMBEDDING_FIELD", "embedding"))
    description_field: str = field(default_factory=lambda: _get_env_str("RVDB_DESCRIPTION_FIELD", "description"))
    top_k: int = field(default_factory=lambda: _get_env_int("RVDB_SEARCH_TOP_K", 5))
