"""
RVDB Export
===========

Export streaming del keyspace Redis in un manifest JSON.

Componenti:
- scan_batches: Cursor Scanner (SCAN cursor COUNT n)
- fetch_batch: Batch Pipeliner (TYPE + valori in due pipeline)
- ManifestWriter: Streaming Export Writer
- ExportController, CancellationToken, ProgressStream: progresso e cancellazione
- RedisExporter: orchestrazione dell'export

Esempio:
    from rvdb.export import RedisExporter

    exporter = RedisExporter(session)
    controller = exporter.create_controller()
    result = await exporter.export("redis_data_export.json", controller=controller)
"""

from rvdb.export.models import ExportResult, ExportState, KeyType, StoreEntry
from rvdb.export.progress import (
    CancellationToken,
    ExportController,
    ProgressSnapshot,
    ProgressStream,
)
from rvdb.export.scanner import scan_batches
from rvdb.export.pipeliner import fetch_batch
from rvdb.export.writer import ManifestWriter, load_manifest
from rvdb.export.exporter import RedisExporter

__all__ = [
    # Models
    "ExportResult",
    "ExportState",
    "KeyType",
    "StoreEntry",
    # Progress
    "CancellationToken",
    "ExportController",
    "ProgressSnapshot",
    "ProgressStream",
    # Pipeline
    "scan_batches",
    "fetch_batch",
    "ManifestWriter",
    "load_manifest",
    "RedisExporter",
]
