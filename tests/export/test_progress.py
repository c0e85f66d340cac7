"""
Test Progress & Cancellation
============================
"""

import pytest

from rvdb.errors import InvalidStateTransitionError
from rvdb.export.models import ExportState
from rvdb.export.progress import (
    CancellationToken,
    ExportController,
    ProgressSnapshot,
    ProgressStream,
    percentage_of,
)


async def _drain(stream):
    return [snapshot async for snapshot in stream]


class TestPercentage:

    @pytest.mark.parametrize("exported,total,expected", [
        (0, 200, 0),
        (50, 200, 25),
        (200, 200, 100),
        (150, 100, 150),
        (0, 0, 100),
        (7, 0, 100),
    ])
    def test_percentage_of(self, exported, total, expected):
        assert percentage_of(exported, total) == expected

    def test_snapshot_message(self):
        snapshot = ProgressSnapshot(exported_count=1000, total_keys_estimate=4000, percentage=25)
        assert snapshot.message == "1000/4000 keys (25%)"


class TestCancellationToken:

    @pytest.mark.asyncio
    async def test_first_reason_wins(self):
        token = CancellationToken()
        assert not token.cancelled

        token.cancel("interrupted")
        token.cancel("second")

        assert token.cancelled
        assert token.reason == "interrupted"
        await token.wait()


class TestProgressStream:

    @pytest.mark.asyncio
    async def test_iterates_until_closed(self):
        stream = ProgressStream()
        first = ProgressSnapshot(1, 2, 50)
        second = ProgressSnapshot(2, 2, 100)
        stream.publish(first)
        stream.publish(second)
        stream.close()

        assert await _drain(stream) == [first, second]
        assert stream.latest == second

    @pytest.mark.asyncio
    async def test_full_buffer_drops_oldest(self):
        stream = ProgressStream(maxsize=3)
        snapshots = [ProgressSnapshot(i, 10, i * 10) for i in range(4)]
        for snapshot in snapshots:
            stream.publish(snapshot)
        stream.close()

        # il marker di chiusura sostituisce la entry più vecchia rimasta
        assert await _drain(stream) == snapshots[2:]

    def test_publish_after_close(self):
        stream = ProgressStream()
        stream.close()
        with pytest.raises(RuntimeError):
            stream.publish(ProgressSnapshot(0, 0, 100))


class TestExportController:

    def test_initial_state(self):
        controller = ExportController()
        assert controller.state is ExportState.IDLE
        assert controller.exported_count == 0
        assert not controller.cancel_requested

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            ExportController(progress_interval=0)

    @pytest.mark.asyncio
    async def test_progress_every_interval(self):
        controller = ExportController(progress_interval=3)
        controller.start(total_keys_estimate=7)
        for _ in range(7):
            controller.record_exported()
        controller.complete()

        snapshots = await _drain(controller.progress)

        assert [(s.exported_count, s.state) for s in snapshots] == [
            (3, ExportState.RUNNING),
            (6, ExportState.RUNNING),
            (7, ExportState.COMPLETED),
        ]
        assert snapshots[0].percentage == 43

    @pytest.mark.parametrize("finish", ["complete", "mark_cancelled"])
    def test_terminal_states_are_final(self, finish):
        controller = ExportController()
        controller.start()
        getattr(controller, finish)()

        assert controller.state.is_terminal
        with pytest.raises(InvalidStateTransitionError):
            controller.start()
        with pytest.raises(InvalidStateTransitionError):
            controller.fail("late")

    def test_cannot_complete_before_start(self):
        with pytest.raises(InvalidStateTransitionError):
            ExportController().complete()

    def test_fail_records_reason(self):
        controller = ExportController()
        controller.start()
        controller.fail("ConnectionError: reset")

        assert controller.state is ExportState.FAILED
        assert controller.failure_reason == "ConnectionError: reset"
        assert controller.progress.closed

    def test_request_cancel_sets_token(self):
        token = CancellationToken()
        controller = ExportController(token=token)
        controller.request_cancel("stop")

        assert controller.cancel_requested
        assert token.reason == "stop"
        assert controller.state is ExportState.IDLE
