import asyncio
import logging
import time

from tracksense.config import Settings
from tracksense.errors import FramingError, PublisherError, SerialReadError
from tracksense.fix_state import FixRecord, RelayStats
from tracksense.framing import unwrap
from tracksense.lifecycle import WorkerState, wait_for_stop
from tracksense.nmea_parser import parse_sentence, split_fields
from tracksense.publisher import TelemetryPublisher
from tracksense.serial_link import SerialLink

logger = logging.getLogger(__name__)


def process_frame(
    frame: str,
    publisher: TelemetryPublisher,
    record: FixRecord,
    stats: RelayStats,
) -> bool:
    """Parse one serial frame into ``record`` and publish it.

    Returns True when a datagram was sent.
    """
    stats.frames_read += 1
    if not frame:
        stats.empty_frames += 1
        logger.debug("Nothing to read")
        return False

    logger.debug("Received %s", frame)
    try:
        body = unwrap(frame)
    except FramingError as exc:
        stats.parse_errors += 1
        logger.warning("Dropping malformed sentence %r: %s", frame, exc)
        return False

    if not parse_sentence(split_fields(body), record):
        stats.sentences_skipped += 1
        return False
    stats.sentences_parsed += 1
    stats.last_sentence_time = time.monotonic()

    if publisher.publish(record):
        stats.datagrams_sent += 1
        return True
    stats.send_errors += 1
    return False


async def acquisition_loop(
    link: SerialLink,
    publisher: TelemetryPublisher,
    record: FixRecord,
    stats: RelayStats,
    stopping: asyncio.Event,
    poll_interval: float,
) -> None:
    """Read, parse and relay frames until ``stopping`` is set.

    A serial read error ends the loop. Iterations are paced by
    ``poll_interval``, not by sentence arrival.
    """
    stats.serial_connected = True
    try:
        while not stopping.is_set():
            try:
                frame = await asyncio.to_thread(link.read_frame)
            except SerialReadError as exc:
                logger.error("%s. Acquisition loop stopped", exc)
                return

            process_frame(frame, publisher, record, stats)
            await wait_for_stop(stopping, poll_interval)
    except Exception:
        logger.exception("Unexpected acquisition error. Acquisition loop stopped")
    finally:
        stats.serial_connected = False


class AcquisitionWorker:
    """Relays fixes from a serial NMEA receiver to a UDP collector.

    Owns one background task. ``start()`` and ``stop()`` are idempotent and
    ``stop()`` returns only after the task has exited.
    """

    def __init__(
        self,
        link: SerialLink,
        publisher: TelemetryPublisher,
        poll_interval: float = 1.0,
    ) -> None:
        self.link = link
        self.publisher = publisher
        self.poll_interval = poll_interval
        self.record = FixRecord()
        self.stats = RelayStats()
        self._state = WorkerState.IDLE
        self._stopping = asyncio.Event()
        self._task: asyncio.Task | None = None

    @classmethod
    def from_settings(
        cls, config: Settings, port: str | None = None
    ) -> "AcquisitionWorker":
        """Open the serial port and UDP endpoint described by ``config``.

        ``port`` overrides ``config.gps_serial_port`` (used for the simulator).
        """
        link = SerialLink(
            port or config.gps_serial_port,
            config.gps_serial_baud,
            timeout=config.gps_serial_timeout,
        )
        link.open()
        try:
            publisher = TelemetryPublisher(config.telemetry_host, config.telemetry_port)
        except PublisherError:
            link.close()
            raise
        return cls(link, publisher, poll_interval=config.poll_interval)

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ── Lifecycle ──────────────────────────────────────────

    async def start(self) -> None:
        if self._state is WorkerState.RUNNING:
            return
        if self._task is not None:
            logger.debug("Previous acquisition task still stopping, start ignored")
            return
        self._state = WorkerState.RUNNING

        self.record = FixRecord()
        self.stats = RelayStats()
        self._stopping = asyncio.Event()
        self._task = asyncio.create_task(
            acquisition_loop(
                self.link,
                self.publisher,
                self.record,
                self.stats,
                self._stopping,
                self.poll_interval,
            ),
            name="gps-acquisition",
        )
        logger.info(
            "AcquisitionWorker started: port=%s baud=%s udp=%s:%s",
            self.link.port,
            self.link.baudrate,
            self.publisher.host,
            self.publisher.port,
        )

    async def stop(self) -> None:
        if self._state is WorkerState.RUNNING:
            self._state = WorkerState.IDLE
            self._stopping.set()
        if self._task is None:
            return
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        logger.info("AcquisitionWorker stopped")

    def close(self) -> None:
        """Release the serial port and socket once ``stop()`` has returned."""
        if self._task is not None:
            raise RuntimeError("AcquisitionWorker is still running, await stop() first")
        self.link.close()
        self.publisher.close()
