"""
Redis Session
=============

Sessione esplicita verso Redis: il chiamante ne possiede il ciclo di vita
(connect -> ready -> operations -> close) e la passa per riferimento a
ogni operazione (export, search). Non esiste stato di modulo condiviso.

Una sessione serve una sola operazione alla volta: exclusive() rifiuta
un secondo export/search concorrente con OperationInProgressError.

Usage:
    async with RedisSession(RedisConfig()) as session:
        total = await session.key_count()
        async with session.exclusive("export"):
            ...
"""

import logging
import os
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, Dict, Optional

from redis.asyncio import Redis as AsyncRedis
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from rvdb.config import RedisConfig
from rvdb.errors import ConfigurationError, OperationInProgressError, StoreNotConnectedError

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Stati del ciclo di vita della sessione."""
    CREATED = "created"
    READY = "ready"
    CLOSED = "closed"


class RedisSession:
    """
    Owner of a single redis.asyncio client.

    Responses are kept as raw bytes (decode_responses=False) because
    embeddings and other binary values must reach the codec untouched.

    Args:
        config: Connection settings (default: RedisConfig() from env vars)
        client: Pre-built client, mostly for tests; connect() only pings it
    """

    def __init__(self, config: Optional[RedisConfig] = None, client: Optional[AsyncRedis] = None):
        self.config = config or RedisConfig()
        self._client = client
        self._state = SessionState.CREATED
        self._active_operation: Optional[str] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is SessionState.READY

    @property
    def client(self) -> AsyncRedis:
        """
        Get the Redis client.

        Raises:
            StoreNotConnectedError: If the session is not in READY state
        """
        if self._state is not SessionState.READY or self._client is None:
            raise StoreNotConnectedError(
                f"Redis session is {self._state.value}. Call connect() first."
            )
        return self._client

    def _build_client(self) -> AsyncRedis:
        """Crea il client redis-py dalla configurazione."""
        cfg = self.config
        kwargs: Dict[str, Any] = {
            "host": cfg.host,
            "port": cfg.port,
            "db": cfg.db,
            "username": cfg.username,
            "password": cfg.password,
            "socket_timeout": cfg.socket_timeout,
            "socket_connect_timeout": cfg.socket_connect_timeout,
            "decode_responses": False,
        }

        if cfg.tls:
            if not cfg.ca_cert_path:
                raise ConfigurationError("REDIS_TLS is enabled but no CA certificate path is configured")
            for label, path in (
                ("CA certificate", cfg.ca_cert_path),
                ("client certificate", cfg.client_cert_path),
                ("client key", cfg.client_key_path),
            ):
                if path and not os.path.isfile(path):
                    raise ConfigurationError(f"{label} not found at: {path}")
            if bool(cfg.client_cert_path) != bool(cfg.client_key_path):
                raise ConfigurationError("Client certificate and client key must be configured together")

            kwargs.update(
                ssl=True,
                ssl_ca_certs=cfg.ca_cert_path,
                ssl_certfile=cfg.client_cert_path,
                ssl_keyfile=cfg.client_key_path,
                ssl_cert_reqs="required",
                ssl_check_hostname=True,
            )

        return AsyncRedis(**kwargs)

    async def connect(self) -> "RedisSession":
        """
        Open the connection and verify it with PING.

        Returns:
            self, in READY state

        Raises:
            ConfigurationError: Invalid TLS configuration
            RedisError: Redis unreachable or PING rejected (e.g. NOAUTH)
        """
        if self._state is SessionState.READY:
            logger.info("Redis session already connected")
            return self

        logger.info(f"Connecting to Redis: {self.config.describe()}")

        if self._client is None:
            self._client = self._build_client()

        try:
            await self._client.ping()
        except RedisError as e:
            logger.error(f"Failed to connect to Redis: {str(e)}", exc_info=True)
            await self._client.aclose()
            self._client = None
            raise

        self._state = SessionState.READY
        logger.info("Redis session ready")
        return self

    async def close(self):
        """
        Close the client and release the connection pool.

        Safe to call more than once.
        """
        if self._client is not None:
            logger.info("Closing Redis session...")
            await self._client.aclose()
            self._client = None
            logger.info("Redis session closed")
        else:
            logger.debug("Redis session not connected, nothing to close")
        self._state = SessionState.CLOSED
        self._active_operation = None

    async def __aenter__(self) -> "RedisSession":
        return await self.connect()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @asynccontextmanager
    async def exclusive(self, operation: str):
        """
        Reserve the session for one operation.

        Raises:
            OperationInProgressError: If another operation owns the session
            StoreNotConnectedError: If the session is not ready
        """
        client = self.client
        if self._active_operation is not None:
            raise OperationInProgressError(
                f"Cannot start {operation}: {self._active_operation} already in progress"
            )
        self._active_operation = operation
        try:
            yield client
        finally:
            self._active_operation = None

    @property
    def active_operation(self) -> Optional[str]:
        return self._active_operation

    async def key_count(self) -> int:
        """Stima del numero di chiavi (DBSIZE)."""
        return int(await self.client.dbsize())

    async def health_check(self) -> dict:
        """
        Perform health check on Redis connection.

        Returns:
            dict with status, message, and optional details
        """
        if not self.is_ready:
            return {
                "status": "unhealthy",
                "message": "Redis session not connected",
                "details": None
            }

        try:
            await self._client.ping()
            info = await self._client.info("server")

            return {
                "status": "healthy",
                "message": "Redis connection is healthy",
                "details": {
                    "redis_version": _info_str(info.get("redis_version", "unknown")),
                    "uptime_in_seconds": info.get("uptime_in_seconds", 0),
                    "connected_clients": info.get("connected_clients", 0),
                    "keys": await self.key_count(),
                }
            }

        except (ConnectionError, TimeoutError) as e:
            logger.error(f"Redis health check failed: {str(e)}", exc_info=True)
            return {
                "status": "unhealthy",
                "message": f"Redis health check failed: {str(e)}",
                "details": {"error": str(e)}
            }

    def __repr__(self) -> str:
        return f"RedisSession({self.config.describe()}, state={self._state.value})"


def _info_str(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value
