"""
Streaming Export Writer
=======================

Scrive il manifest JSON in modo incrementale, una entry alla volta,
senza mai tenere in memoria l'intero result set.

Formato:
    {
    "timestamp": "2025-01-01T00:00:00+00:00",
    "totalKeys": 3,
    "keys": [
    {"key": "a", "type": "string", "value": "1"},
    {"key": "b", "type": "string", "value": "2"}
    ]
    }

Il separatore ",\\n" di una entry viene scritto solo quando arriva la entry
successiva: così l'ultima entry globale è nota a close() senza dover
leggere in anticipo il batch seguente (e un batch finale vuoto non lascia
una virgola pendente).

Un manifest incompleto non viene mai lasciato su disco: discard() chiude
il file e lo rimuove.

Esempio:
    with ManifestWriter(path) as writer:
        writer.open(timestamp, total_keys)
        for entry in entries:
            writer.write_entry(entry)
        writer.close()
"""

import json
import os
from pathlib import Path
from typing import IO, Any, Dict, List, Optional, Tuple, Union

import structlog

from rvdb.export.models import StoreEntry

log = structlog.get_logger()

ENTRY_SEPARATOR = ",\n"


class ManifestWriter:
    """
    Append-style JSON manifest writer.

    Args:
        path: Destination file; parent directories are created on open()
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._sink: Optional[IO[str]] = None
        self._entries_written = 0
        self._created = False
        self._finalized = False

    @property
    def entries_written(self) -> int:
        return self._entries_written

    @property
    def is_open(self) -> bool:
        return self._sink is not None

    def open(self, timestamp: str, total_keys: int) -> None:
        """Apre il file e scrive il prefisso strutturale."""
        if self._sink is not None:
            raise RuntimeError(f"Manifest {self.path} already open")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._sink = open(self.path, "w", encoding="utf-8")
        self._created = True
        self._sink.write("{\n")
        self._sink.write(f'"timestamp": {json.dumps(timestamp)},\n')
        self._sink.write(f'"totalKeys": {int(total_keys)},\n')
        self._sink.write('"keys": [\n')
        log.debug("manifest opened", path=str(self.path))

    def write_entry(self, entry: StoreEntry) -> None:
        """Serializza una StoreEntry e la accoda al manifest."""
        if self._sink is None:
            raise RuntimeError("Manifest not open. Call open() first.")

        # allow_nan=False: NaN/Infinity non sono JSON valido
        payload = json.dumps(entry.to_dict(), ensure_ascii=False, allow_nan=False)
        if self._entries_written:
            self._sink.write(ENTRY_SEPARATOR)
        self._sink.write(payload)
        self._entries_written += 1

    def close(self) -> None:
        """Scrive il suffisso e chiude il file: il manifest è ora valido."""
        if self._sink is None:
            raise RuntimeError("Manifest not open. Call open() first.")

        if self._entries_written:
            self._sink.write("\n")
        self._sink.write("]\n")
        self._sink.write("}\n")
        self._sink.close()
        self._sink = None
        self._finalized = True
        log.debug("manifest closed", path=str(self.path), entries=self._entries_written)

    def discard(self) -> None:
        """Abbandona il sink e rimuove il file parziale."""
        if self._sink is not None:
            self._sink.close()
            self._sink = None
        if self._created and not self._finalized and self.path.exists():
            os.remove(self.path)
            log.info("partial manifest removed", path=str(self.path))

    def __enter__(self) -> "ManifestWriter":
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None or (self._sink is not None and not self._finalized):
            self.discard()


def load_manifest(path: Union[str, Path]) -> Tuple[str, int, List[StoreEntry]]:
    """
    Rilegge un manifest prodotto da ManifestWriter.

    Returns:
        (timestamp, totalKeys, entries)
    """
    with open(path, "r", encoding="utf-8") as f:
        data: Dict[str, Any] = json.load(f)
    entries = [StoreEntry.from_dict(item) for item in data.get("keys", [])]
    return data["timestamp"], int(data["totalKeys"]), entries
