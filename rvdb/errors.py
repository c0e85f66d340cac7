"""
RVDB Exceptions
===============

Gerarchia delle eccezioni del pacchetto.

Tutte le eccezioni derivano da RvdbError, così il chiamante può intercettare
qualunque errore del core con un solo except. Gli errori di redis-py
(redis.exceptions.*) NON vengono wrappati e arrivano al chiamante così come sono.
"""


class RvdbError(Exception):
    """Base class for all rvdb errors."""


class ConfigurationError(RvdbError):
    """Invalid or incomplete configuration (e.g. missing TLS certificate)."""


class StoreNotConnectedError(RvdbError):
    """Operation attempted on a session that is not connected."""


class OperationInProgressError(RvdbError):
    """Another export or search already owns the session."""


class MalformedEmbeddingError(RvdbError, ValueError):
    """Embedding payload length is not a multiple of 4 bytes."""

    def __init__(self, length: int, key: str = None, field: str = None):
        self.length = length
        self.key = key
        self.field = field
        where = ""
        if key is not None:
            where = f" (key={key!r}, field={field!r})"
        super().__init__(
            f"Embedding payload of {length} bytes is not a multiple of 4{where}"
        )


class EncoderUnavailableError(RvdbError):
    """The embedding generator is missing or failed to produce a vector."""


class InvalidStateTransitionError(RvdbError):
    """Illegal export state machine transition."""

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition export from {current.value} to {target.value}")
