"""
Redis Exporter
==============

Export completo del keyspace Redis in un manifest JSON.

Flusso per ogni batch:
1. SCAN (Cursor Scanner)
2. TYPE in pipeline + valori in pipeline (Batch Pipeliner)
3. scrittura incrementale delle entry (Streaming Export Writer)

Esiti:
- COMPLETED: manifest valido su disco, ExportResult restituito
- CANCELLED: file rimosso, ExportResult restituito (non è un errore)
- FAILED: file rimosso, l'eccezione originale viene rilanciata

Usage:
    async with RedisSession(RedisConfig()) as session:
        exporter = RedisExporter(session, ExportConfig())
        result = await exporter.export("dump.json")
        print(result.summary())
"""

import time
from contextlib import aclosing
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

import structlog

from rvdb.config import ExportConfig
from rvdb.export.models import ExportResult, ExportState
from rvdb.export.pipeliner import fetch_batch
from rvdb.export.progress import CancellationToken, ExportController
from rvdb.export.scanner import scan_batches
from rvdb.export.writer import ManifestWriter
from rvdb.storage.session import RedisSession

log = structlog.get_logger()


class RedisExporter:
    """
    Streams a whole Redis database to a JSON manifest.

    One export at a time per session: the session is reserved with
    RedisSession.exclusive() for the whole run.

    Args:
        session: Connected RedisSession
        config: Export settings (default: ExportConfig() from env vars)
    """

    def __init__(self, session: RedisSession, config: Optional[ExportConfig] = None):
        self.session = session
        self.config = config or ExportConfig()

    def create_controller(self, token: Optional[CancellationToken] = None) -> ExportController:
        """Controller da passare a export() per osservare progresso e cancellare."""
        return ExportController(token=token, progress_interval=self.config.progress_interval)

    async def export(
        self,
        path: Optional[Union[str, Path]] = None,
        controller: Optional[ExportController] = None,
        match: Optional[str] = None,
    ) -> ExportResult:
        """
        Esporta tutte le chiavi (o quelle che corrispondono a match).

        Args:
            path: File di output (default: config.export_path)
            controller: Controller con token e progress stream (creato se None)
            match: Pattern SCAN MATCH opzionale

        Returns:
            ExportResult con stato COMPLETED o CANCELLED

        Raises:
            OperationInProgressError: Sessione già occupata
            redis.exceptions.RedisError, MalformedEmbeddingError: errori fatali,
                dopo aver rimosso il file parziale
        """
        path = Path(path or self.config.export_path)
        controller = controller or self.create_controller()
        start = time.monotonic()
        warnings = []

        async with self.session.exclusive("export") as client:
            writer = ManifestWriter(path)
            controller.start()
            try:
                log.info("Counting keys...")
                total_keys = await self.session.key_count()
                controller.total_keys_estimate = total_keys
                log.info(f"Found approximately {total_keys} keys to export")

                if total_keys > self.config.large_dataset_threshold:
                    message = (
                        f"Large dataset detected ({total_keys} keys). "
                        f"Export may take several minutes."
                    )
                    log.warning(message)
                    warnings.append(message)

                writer.open(datetime.now(timezone.utc).isoformat(), total_keys)

                cancelled = await self._run(client, writer, controller, match)

                if cancelled:
                    writer.discard()
                    controller.mark_cancelled()
                    log.info("Export cancelled by user", exported=controller.exported_count)
                else:
                    writer.close()
                    controller.complete()
                    log.info(
                        f"Data export completed. Exported {controller.exported_count} keys to: {path}"
                    )

            except BaseException as e:
                writer.discard()
                if controller.state is ExportState.RUNNING:
                    controller.fail(f"{type(e).__name__}: {e}")
                log.error(f"Error during export: {e}")
                raise

        return ExportResult(
            state=controller.state,
            path=str(path),
            exported_count=controller.exported_count,
            total_keys_estimate=controller.total_keys_estimate,
            duration_seconds=time.monotonic() - start,
            warnings=warnings,
        )

    async def _run(
        self,
        client,
        writer: ManifestWriter,
        controller: ExportController,
        match: Optional[str],
    ) -> bool:
        """
        Loop SCAN -> pipeline -> writer con i punti di cancellazione.

        Il token viene controllato all'inizio di ogni batch e prima di ogni
        scrittura. Una cancellazione che arriva dopo l'ultima entry non ha
        più nulla da interrompere: l'export risulta completato.

        Returns:
            True se l'export si è fermato lasciando chiavi non scritte
        """
        if controller.cancel_requested:
            return True

        batches = scan_batches(client, batch_size=self.config.scan_batch_size, match=match)
        async with aclosing(batches):
            async for keys in batches:
                if controller.cancel_requested:
                    return True

                entries = await fetch_batch(
                    client,
                    keys,
                    embedding_fields=self.config.embedding_fields,
                    collection_limit=self.config.collection_limit,
                )

                for entry in entries:
                    if controller.cancel_requested:
                        return True
                    writer.write_entry(entry)
                    controller.record_exported()

        return False
