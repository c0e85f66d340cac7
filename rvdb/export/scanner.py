"""
Cursor Scanner
==============

Iterazione completa del keyspace tramite SCAN, batch per batch, senza
bloccare il server (a differenza di KEYS).

Il COUNT passato a SCAN è solo un suggerimento: Redis può restituire più
o meno chiavi, anche zero con cursore non nullo. Il loop termina quando
il cursore torna a 0 dopo almeno una chiamata, quindi un keyspace vuoto
richiede esattamente una SCAN.

Nessun retry: un errore di SCAN è fatale per l'operazione e si propaga.
La sequenza è riavviabile solo dall'inizio.

Esempio:
    async for keys in scan_batches(client, batch_size=1000):
        entries = await fetch_batch(client, keys)
"""

from typing import AsyncIterator, List, Optional

import structlog

from rvdb.export.progress import CancellationToken

log = structlog.get_logger()

SCAN_SENTINEL = 0


async def scan_batches(
    client,
    batch_size: int = 1000,
    match: Optional[str] = None,
    token: Optional[CancellationToken] = None,
) -> AsyncIterator[List[bytes]]:
    """
    Yield batches of keys until the cursor returns to the sentinel.

    Args:
        client: redis.asyncio client (or pipeline-capable equivalent)
        batch_size: COUNT hint for each SCAN call
        match: Optional MATCH pattern
        token: Checked before every SCAN call; a cancelled token ends the
            iteration without issuing further requests

    Yields:
        Non-empty lists of raw key names
    """
    cursor = SCAN_SENTINEL
    calls = 0
    yielded = 0

    while True:
        if token is not None and token.cancelled:
            log.debug("scan stopped by cancellation", calls=calls, keys=yielded)
            return

        cursor, keys = await client.scan(cursor=cursor, match=match, count=batch_size)
        cursor = int(cursor)
        calls += 1

        if keys:
            yielded += len(keys)
            log.debug("scan batch", calls=calls, batch=len(keys), cursor=cursor)
            yield list(keys)

        if cursor == SCAN_SENTINEL:
            break

    log.debug("scan complete", calls=calls, keys=yielded)
