"""
Progress & Cancellation Controller
==================================

Stato dell'export, eventi di progresso e cancellazione cooperativa.

- ExportController: macchina a stati IDLE -> RUNNING -> {COMPLETED, CANCELLED, FAILED}
- CancellationToken: segnale cooperativo, controllato solo nei punti definiti
  (inizio di ogni batch, inizio di ogni scrittura per chiave)
- ProgressStream: stream asincrono di ProgressSnapshot che il chiamante può
  consumare con `async for` oppure interrogare con `latest`

La cancellazione non interrompe mai un round-trip in pipeline già partito.

Esempio:
    token = CancellationToken()
    controller = ExportController(token=token, progress_interval=1000)

    async def watch():
        async for snapshot in controller.progress:
            print(snapshot.message)

    asyncio.create_task(watch())
"""

import asyncio
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import structlog

from rvdb.errors import InvalidStateTransitionError
from rvdb.export.models import ExportState

log = structlog.get_logger()

_TRANSITIONS = {
    ExportState.IDLE: {ExportState.RUNNING},
    ExportState.RUNNING: {ExportState.COMPLETED, ExportState.CANCELLED, ExportState.FAILED},
    ExportState.COMPLETED: set(),
    ExportState.CANCELLED: set(),
    ExportState.FAILED: set(),
}


def percentage_of(exported: int, total_estimate: int) -> int:
    """
    Percentuale intera di avanzamento.

    La stima è presa una volta sola all'avvio, quindi su uno store che
    cresce durante l'export il valore può superare 100.
    """
    if total_estimate <= 0:
        return 100
    return round(exported * 100 / total_estimate)


@dataclass(frozen=True)
class ProgressSnapshot:
    """Progress event published by the controller."""
    exported_count: int
    total_keys_estimate: int
    percentage: int
    state: ExportState = ExportState.RUNNING

    @property
    def message(self) -> str:
        return f"{self.exported_count}/{self.total_keys_estimate} keys ({self.percentage}%)"


class CancellationToken:
    """Cooperative cancellation signal."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled by user") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


class ProgressStream:
    """
    Async stream of ProgressSnapshot events.

    Publishing never blocks the export loop: when the buffer is full the
    oldest pending snapshot is dropped, since only the most recent one
    matters to a consumer that fell behind.
    """

    _CLOSED = object()

    def __init__(self, maxsize: int = 256):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._latest: Optional[ProgressSnapshot] = None
        self._closed = False

    @property
    def latest(self) -> Optional[ProgressSnapshot]:
        return self._latest

    @property
    def closed(self) -> bool:
        return self._closed

    def _put(self, item) -> None:
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(item)

    def publish(self, snapshot: ProgressSnapshot) -> None:
        if self._closed:
            raise RuntimeError("Progress stream already closed")
        self._latest = snapshot
        self._put(snapshot)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._put(self._CLOSED)

    def __aiter__(self) -> AsyncIterator[ProgressSnapshot]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ProgressSnapshot]:
        while True:
            item = await self._queue.get()
            if item is self._CLOSED:
                return
            yield item


class ExportController:
    """
    Owns state, counters, cancellation token and progress stream of one export.

    Args:
        token: Cancellation token (new one if None)
        progress_interval: Publish a snapshot every N exported entries
    """

    def __init__(self, token: Optional[CancellationToken] = None, progress_interval: int = 1000):
        if progress_interval <= 0:
            raise ValueError(f"progress_interval must be positive, got {progress_interval}")
        self.token = token or CancellationToken()
        self.progress_interval = progress_interval
        self.progress = ProgressStream()
        self._state = ExportState.IDLE
        self.exported_count = 0
        self.total_keys_estimate = 0
        self.failure_reason: Optional[str] = None

    @property
    def state(self) -> ExportState:
        return self._state

    @property
    def cancel_requested(self) -> bool:
        return self.token.cancelled

    def _transition(self, target: ExportState) -> None:
        if target not in _TRANSITIONS[self._state]:
            raise InvalidStateTransitionError(self._state, target)
        log.debug("export state", previous=self._state.value, state=target.value)
        self._state = target

    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot(
            exported_count=self.exported_count,
            total_keys_estimate=self.total_keys_estimate,
            percentage=percentage_of(self.exported_count, self.total_keys_estimate),
            state=self._state,
        )

    def start(self, total_keys_estimate: int = 0) -> None:
        self._transition(ExportState.RUNNING)
        self.total_keys_estimate = total_keys_estimate

    def record_exported(self) -> None:
        """Conta una entry scritta e pubblica il progresso ogni progress_interval."""
        self.exported_count += 1
        if self.exported_count % self.progress_interval == 0:
            snapshot = self.snapshot()
            self.progress.publish(snapshot)
            log.info(f"Exported {snapshot.message}")

    def _finish(self, target: ExportState) -> None:
        self._transition(target)
        self.progress.publish(self.snapshot())
        self.progress.close()

    def complete(self) -> None:
        self._finish(ExportState.COMPLETED)

    def request_cancel(self, reason: str = "cancelled by user") -> None:
        """Segnala la cancellazione; l'export si ferma al prossimo punto di controllo."""
        self.token.cancel(reason)

    def mark_cancelled(self) -> None:
        self._finish(ExportState.CANCELLED)

    def fail(self, reason: str) -> None:
        self.failure_reason = reason
        self._finish(ExportState.FAILED)
