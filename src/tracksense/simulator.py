"""NMEA receiver simulator on a pseudo terminal.

The simulator writes RMC + GGA pairs to the controller side of a pty; an
AcquisitionWorker opens ``device_path`` exactly as it would a real receiver.
"""

import asyncio
import logging
import math
import os
import pty
import termios
import time
import tty
from dataclasses import dataclass, field
from datetime import datetime, timezone

from tracksense.coordinates import encode
from tracksense.errors import SimulatorError
from tracksense.framing import wrap
from tracksense.lifecycle import WorkerState, wait_for_stop

logger = logging.getLogger(__name__)

METERS_PER_DEGREE_LAT = 111320.0

DEFAULT_ALTITUDE = 10.0
DEFAULT_FREQUENCY_HZ = 1.0
DEFAULT_SPEED_KNOTS = 10.0
DEFAULT_BAUD = 115200
DEFAULT_SATELLITES = 10
DEFAULT_HDOP = 0.8


@dataclass
class SimulatedTrack:
    base_latitude: float
    base_longitude: float
    altitude: float = DEFAULT_ALTITUDE
    motion_enabled: bool = False
    radius_m: float = 20.0
    period_s: float = 120.0
    started_at: float = field(default_factory=time.monotonic)
    latitude: float = field(init=False)
    longitude: float = field(init=False)

    def __post_init__(self) -> None:
        self.latitude = self.base_latitude
        self.longitude = self.base_longitude

    def position_at(self, elapsed_s: float) -> tuple[float, float]:
        """Position ``elapsed_s`` seconds into the track.

        Motion follows a circle of ``radius_m`` around the base position,
        one lap per ``period_s``; depends on elapsed time only.
        """
        if not self.motion_enabled:
            return self.base_latitude, self.base_longitude

        angle = 2.0 * math.pi * math.fmod(elapsed_s / self.period_s, 1.0)
        lon_scale = max(math.cos(math.radians(self.base_latitude)), 1e-9)
        delta_lat = self.radius_m * math.sin(angle) / METERS_PER_DEGREE_LAT
        delta_lon = self.radius_m * math.cos(angle) / (METERS_PER_DEGREE_LAT * lon_scale)
        return self.base_latitude + delta_lat, self.base_longitude + delta_lon

    def restart(self, now: float | None = None) -> None:
        self.started_at = time.monotonic() if now is None else now
        self.latitude = self.base_latitude
        self.longitude = self.base_longitude

    def update(self, now: float | None = None) -> None:
        now = time.monotonic() if now is None else now
        self.latitude, self.longitude = self.position_at(now - self.started_at)


# ── Sentence synthesis ────────────────────────────────────


def rmc_body(
    now: datetime, latitude: float, longitude: float, speed_knots: float
) -> str:
    lat, lat_hemi = encode(latitude, is_latitude=True)
    lon, lon_hemi = encode(longitude, is_latitude=False)
    return (
        f"GPRMC,{now:%H%M%S}.00,A,{lat},{lat_hemi},{lon},{lon_hemi},"
        f"{speed_knots:.2f},0.00,{now:%d%m%y},,,A"
    )


def gga_body(
    now: datetime,
    latitude: float,
    longitude: float,
    altitude: float,
    satellites: int = DEFAULT_SATELLITES,
    hdop: float = DEFAULT_HDOP,
) -> str:
    lat, lat_hemi = encode(latitude, is_latitude=True)
    lon, lon_hemi = encode(longitude, is_latitude=False)
    return (
        f"GPGGA,{now:%H%M%S}.00,{lat},{lat_hemi},{lon},{lon_hemi},1,"
        f"{satellites},{hdop:.1f},{altitude:.1f},M,0.0,M,,"
    )


def build_sentences(
    track: SimulatedTrack,
    speed_knots: float,
    satellites: int = DEFAULT_SATELLITES,
    hdop: float = DEFAULT_HDOP,
    now: datetime | None = None,
) -> str:
    """One RMC followed by one GGA for the track's current position."""
    now = now or datetime.now(timezone.utc)
    return wrap(
        rmc_body(now, track.latitude, track.longitude, speed_knots)
    ) + wrap(
        gga_body(now, track.latitude, track.longitude, track.altitude, satellites, hdop)
    )


# ── Pseudo terminal ───────────────────────────────────────


def configure_line(fd: int, baudrate: int) -> None:
    """Put a tty into raw 8N1 mode at ``baudrate``, without flow control."""
    speed = getattr(termios, f"B{baudrate}", None)
    if speed is None:
        raise SimulatorError(f"Unsupported baud rate {baudrate}")

    tty.setraw(fd)
    iflag, oflag, cflag, lflag, _, _, cc = termios.tcgetattr(fd)
    cflag &= ~(termios.CSIZE | termios.PARENB | termios.CSTOPB)
    cflag &= ~getattr(termios, "CRTSCTS", 0)
    cflag |= termios.CS8 | termios.CLOCAL | termios.CREAD
    termios.tcsetattr(
        fd,
        termios.TCSANOW,
        [termios.IGNPAR, 0, cflag, 0, speed, speed, cc],
    )


async def emit_loop(
    fd: int,
    track: SimulatedTrack,
    speed_knots: float,
    satellites: int,
    hdop: float,
    stopping: asyncio.Event,
    period_s: float,
) -> None:
    """Write one RMC + GGA pair per period until ``stopping`` is set."""
    warned = False
    track.restart()

    try:
        while not stopping.is_set():
            track.update()
            data = build_sentences(track, speed_knots, satellites, hdop).encode("ascii")
            try:
                os.write(fd, data)
            except BlockingIOError:
                # Nobody is reading the receiver side and the pty buffer is full
                if not warned:
                    logger.warning("Receiver side not draining, dropping sentences")
                    warned = True
            except OSError as exc:
                logger.error("Pseudo terminal write failed: %s. Simulator stopped", exc)
                return
            else:
                warned = False
                logger.debug("Emitted %r", data)

            await wait_for_stop(stopping, period_s)
    except Exception:
        logger.exception("Unexpected simulator error. Simulator stopped")


class ProtocolSimulator:
    """Emits RMC and GGA sentences for a stationary or circling receiver."""

    def __init__(
        self,
        latitude: float,
        longitude: float,
        altitude: float = DEFAULT_ALTITUDE,
        frequency_hz: float = DEFAULT_FREQUENCY_HZ,
        speed_knots: float = DEFAULT_SPEED_KNOTS,
        baudrate: int = DEFAULT_BAUD,
        satellites: int = DEFAULT_SATELLITES,
        hdop: float = DEFAULT_HDOP,
    ) -> None:
        period_ms = round(1000.0 / frequency_hz) if frequency_hz > 0 else 1000
        self.period_s = max(period_ms, 1) / 1000.0
        self.speed_knots = speed_knots
        self.baudrate = baudrate
        self.satellites = satellites
        self.hdop = hdop
        self.track = SimulatedTrack(latitude, longitude, altitude)

        self._state = WorkerState.IDLE
        self._stopping = asyncio.Event()
        self._task: asyncio.Task | None = None

        try:
            self._controller_fd, self._device_fd = pty.openpty()
        except OSError as exc:
            raise SimulatorError(f"Cannot create pseudo terminal: {exc}") from exc
        try:
            self.device_path = os.ttyname(self._device_fd)
            configure_line(self._device_fd, baudrate)
            os.set_blocking(self._controller_fd, False)
        except (OSError, termios.error) as exc:
            self.close()
            raise SimulatorError(f"Cannot configure pseudo terminal: {exc}") from exc
        except SimulatorError:
            self.close()
            raise

        logger.info("Simulated receiver available on %s", self.device_path)

    def configure_motion(self, radius_m: float = 20.0, period_s: float = 120.0) -> None:
        if radius_m <= 0 or period_s <= 0:
            raise ValueError("radius_m and period_s must be positive")
        self.track.radius_m = radius_m
        self.track.period_s = period_s
        self.track.motion_enabled = True

    def build_sentences(self, now: datetime | None = None) -> str:
        return build_sentences(self.track, self.speed_knots, self.satellites, self.hdop, now)

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ── Lifecycle ──────────────────────────────────────────

    async def start(self) -> None:
        if self._state is WorkerState.RUNNING or self._task is not None:
            return
        if self._controller_fd < 0:
            raise SimulatorError("Simulator is closed")
        self._state = WorkerState.RUNNING

        self._stopping = asyncio.Event()
        self._task = asyncio.create_task(
            emit_loop(
                self._controller_fd,
                self.track,
                self.speed_knots,
                self.satellites,
                self.hdop,
                self._stopping,
                self.period_s,
            ),
            name="gps-simulator",
        )
        logger.info(
            "Simulator started: %.1f Hz, motion=%s",
            1.0 / self.period_s,
            self.track.motion_enabled,
        )

    async def stop(self) -> None:
        if self._state is WorkerState.RUNNING:
            self._state = WorkerState.IDLE
            self._stopping.set()
        if self._task is None:
            return
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        logger.info("Simulator stopped")

    def close(self) -> None:
        """Release both ends of the pseudo terminal once ``stop()`` has returned."""
        if getattr(self, "_task", None) is not None:
            raise SimulatorError("Simulator is still running, await stop() first")
        for name in ("_controller_fd", "_device_fd"):
            fd = getattr(self, name, -1)
            if fd >= 0:
                os.close(fd)
                setattr(self, name, -1)
