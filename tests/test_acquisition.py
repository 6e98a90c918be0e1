import asyncio
import time
from unittest.mock import MagicMock

import pytest

from tracksense.acquisition import AcquisitionWorker, process_frame
from tracksense.config import Settings
from tracksense.errors import SerialOpenError, SerialReadError
from tracksense.fix_state import FixRecord, RelayStats
from tracksense.lifecycle import WorkerState

GGA = "$GPGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,*47"
RMC = "$GPRMC,123519,A,4807.038,N,01131.000,E,022.4,084.4,230394,003.1,W*6A"


class FakeLink:
    port = "/dev/fake"
    baudrate = 9600

    def __init__(self, frames=()):
        self.frames = list(frames)
        self.reads = 0
        self.closed = False

    def read_frame(self) -> str:
        self.reads += 1
        if self.frames:
            item = self.frames.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        # Behave like a serial read timing out
        time.sleep(0.01)
        return ""

    def close(self) -> None:
        self.closed = True


class FakePublisher:
    host = "127.0.0.1"
    port = 9000

    def __init__(self, ok: bool = True):
        self.ok = ok
        self.sent: list[str] = []
        self.closed = False

    def publish(self, record: FixRecord) -> bool:
        self.sent.append(record.to_csv())
        return self.ok

    def close(self) -> None:
        self.closed = True


async def _wait_until(predicate, timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


def _make_worker(frames=(), ok=True) -> tuple[AcquisitionWorker, FakeLink, FakePublisher]:
    link = FakeLink(frames)
    publisher = FakePublisher(ok)
    return AcquisitionWorker(link, publisher, poll_interval=0), link, publisher


class TestProcessFrame:
    def test_publishes_parsed_fix(self):
        publisher, record, stats = FakePublisher(), FixRecord(), RelayStats()
        assert process_frame(GGA, publisher, record, stats)
        assert publisher.sent == ["123519,48.117300,11.516667,0.00,545.4,8,0.9"]
        assert stats.sentences_parsed == 1
        assert stats.datagrams_sent == 1

    def test_empty_frame(self):
        publisher, record, stats = FakePublisher(), FixRecord(), RelayStats()
        assert not process_frame("", publisher, record, stats)
        assert stats.empty_frames == 1
        assert publisher.sent == []

    def test_bad_checksum_is_skipped(self):
        publisher, record, stats = FakePublisher(), FixRecord(), RelayStats()
        assert not process_frame(GGA[:-2] + "00", publisher, record, stats)
        assert stats.parse_errors == 1
        assert record == FixRecord()
        assert publisher.sent == []

    def test_unsupported_sentence_is_skipped(self):
        publisher, record, stats = FakePublisher(), FixRecord(), RelayStats()
        assert not process_frame("$GPGSA,A,3,,,,,,,,,,,,,2.5,1.3,2.1", publisher, record, stats)
        assert stats.sentences_skipped == 1
        assert publisher.sent == []

    def test_publish_failure_is_counted(self):
        publisher, record, stats = FakePublisher(ok=False), FixRecord(), RelayStats()
        assert not process_frame(RMC, publisher, record, stats)
        assert stats.sentences_parsed == 1
        assert stats.send_errors == 1


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_then_stop_publishes_nothing(self):
        worker, link, publisher = _make_worker()
        await worker.start()
        await asyncio.wait_for(worker.stop(), timeout=1.0)
        assert publisher.sent == []
        assert worker.state is WorkerState.IDLE
        assert not worker.is_running

    @pytest.mark.asyncio
    async def test_second_start_is_noop(self):
        worker, link, publisher = _make_worker([GGA])
        await worker.start()
        task = worker._task
        await worker.start()
        assert worker._task is task

        await _wait_until(lambda: link.reads >= 5)
        await worker.stop()
        assert len(publisher.sent) == 1

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self):
        worker, _, _ = _make_worker()
        await worker.stop()
        await worker.start()
        await worker.stop()
        await worker.stop()
        assert worker.state is WorkerState.IDLE

    @pytest.mark.asyncio
    async def test_no_reads_after_stop(self):
        worker, link, _ = _make_worker()
        await worker.start()
        await _wait_until(lambda: link.reads >= 2)
        await worker.stop()
        reads = link.reads
        await asyncio.sleep(0.05)
        assert link.reads == reads

    @pytest.mark.asyncio
    async def test_restart_creates_fresh_record(self):
        worker, link, publisher = _make_worker([GGA])
        await worker.start()
        await _wait_until(lambda: worker.stats.datagrams_sent == 1)
        await worker.stop()
        first = worker.record

        link.frames.append(RMC)
        await worker.start()
        await _wait_until(lambda: worker.stats.datagrams_sent == 1)
        await worker.stop()

        assert worker.record is not first
        # RMC alone on a fresh record: no altitude carried over
        assert publisher.sent[-1] == "123519,48.117300,11.516667,11.51,0.0,0,0.0"

    @pytest.mark.asyncio
    async def test_close_while_running_is_refused(self):
        worker, link, publisher = _make_worker()
        await worker.start()
        await _wait_until(lambda: link.reads >= 1)
        with pytest.raises(RuntimeError):
            worker.close()
        assert not link.closed
        assert not publisher.closed

        await worker.stop()
        worker.close()
        assert link.closed and publisher.closed


class TestAcquisitionLoop:
    @pytest.mark.asyncio
    async def test_merges_rmc_into_gga_fix(self):
        worker, _, publisher = _make_worker([GGA, "", RMC])
        await worker.start()
        await _wait_until(lambda: len(publisher.sent) == 2)
        await worker.stop()

        assert publisher.sent == [
            "123519,48.117300,11.516667,0.00,545.4,8,0.9",
            "123519,48.117300,11.516667,11.51,545.4,8,0.9",
        ]
        assert worker.stats.empty_frames >= 1

    @pytest.mark.asyncio
    async def test_processes_frames_in_order(self):
        frames = [
            "$GPGGA,000001,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,",
            "$GPGGA,000002,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,",
            "$GPGGA,000003,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,",
        ]
        worker, _, publisher = _make_worker(frames)
        await worker.start()
        await _wait_until(lambda: len(publisher.sent) == 3)
        await worker.stop()
        assert [line.split(",")[0] for line in publisher.sent] == ["000001", "000002", "000003"]

    @pytest.mark.asyncio
    async def test_read_error_ends_loop(self):
        worker, link, publisher = _make_worker([GGA, SerialReadError("Read failed")])
        await worker.start()
        await _wait_until(lambda: not worker.is_running)

        assert worker.state is WorkerState.RUNNING
        assert not worker.stats.serial_connected
        reads = link.reads

        await asyncio.wait_for(worker.stop(), timeout=0.5)
        assert worker.state is WorkerState.IDLE
        assert link.reads == reads == 2
        assert len(publisher.sent) == 1

    @pytest.mark.asyncio
    async def test_pacing_wakes_on_stop(self):
        link, publisher = FakeLink([GGA]), FakePublisher()
        worker = AcquisitionWorker(link, publisher, poll_interval=30.0)
        await worker.start()
        await _wait_until(lambda: len(publisher.sent) == 1)
        await asyncio.wait_for(worker.stop(), timeout=1.0)


class TestFromSettings:
    def test_open_failure_propagates(self):
        config = Settings(gps_serial_port="/dev/tracksense-no-such-device")
        with pytest.raises(SerialOpenError):
            AcquisitionWorker.from_settings(config)

    def test_close_releases_link_and_socket(self):
        link, publisher = MagicMock(), MagicMock()
        worker = AcquisitionWorker(link, publisher)
        worker.close()
        link.close.assert_called_once()
        publisher.close.assert_called_once()

    def test_simulated_source_is_drained_without_pacing(self, monkeypatch):
        monkeypatch.setattr("tracksense.acquisition.SerialLink", MagicMock())
        monkeypatch.setattr("tracksense.acquisition.TelemetryPublisher", MagicMock())
        worker = AcquisitionWorker.from_settings(Settings(sim_enabled=True), port="/dev/pts/9")
        assert worker.poll_interval == 0.0

        worker = AcquisitionWorker.from_settings(Settings(gps_serial_port="/dev/ttyUSB0"))
        assert worker.poll_interval == 1.0
