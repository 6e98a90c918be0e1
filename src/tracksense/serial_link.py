import logging

import serial

from tracksense.errors import SerialConfigError, SerialOpenError, SerialReadError

logger = logging.getLogger(__name__)

DEFAULT_BAUD = 9600
DEFAULT_TIMEOUT = 1.0
INTER_BYTE_TIMEOUT = 0.1

LF = b"\n"
CR = b"\r"


class SerialLink:
    """Line-oriented reader for an NMEA receiver on a serial port (8N1, raw)."""

    def __init__(
        self,
        port: str,
        baudrate: int = DEFAULT_BAUD,
        timeout: float = DEFAULT_TIMEOUT,
        inter_byte_timeout: float = INTER_BYTE_TIMEOUT,
    ) -> None:
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.inter_byte_timeout = inter_byte_timeout
        self._ser: serial.Serial | None = None

    # ── Lifecycle ──────────────────────────────────────────

    def open(self) -> None:
        if self._ser is not None:
            return
        try:
            # No port yet: pyserial validates settings without touching the device
            ser = serial.Serial(
                baudrate=self.baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=self.timeout,
                xonxoff=False,
                rtscts=False,
                dsrdtr=False,
                inter_byte_timeout=self.inter_byte_timeout,
            )
        except ValueError as exc:
            raise SerialConfigError(f"Invalid settings for {self.port}: {exc}") from exc

        ser.port = self.port
        try:
            ser.open()
        except ValueError as exc:
            raise SerialConfigError(f"Could not configure {self.port}: {exc}") from exc
        except serial.SerialException as exc:
            raise SerialOpenError(f"Could not open {self.port}: {exc}") from exc

        self._ser = ser
        logger.info("Serial port %s opened at %d baud", self.port, self.baudrate)

    def close(self) -> None:
        if self._ser is None:
            return
        ser, self._ser = self._ser, None
        ser.close()
        logger.info("Serial port %s closed", self.port)

    @property
    def is_open(self) -> bool:
        return self._ser is not None and self._ser.is_open

    def __enter__(self) -> "SerialLink":
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ── Reading ────────────────────────────────────────────

    def read_frame(self) -> str:
        """Read one line, without CR bytes or the LF terminator.

        Returns what was buffered when a read times out, which may be an
        empty string. Raises SerialReadError on a closed or failing port.
        """
        if self._ser is None:
            raise SerialReadError(f"Serial port {self.port} is not open")

        buffer = bytearray()
        while True:
            try:
                byte = self._ser.read(1)
            except (serial.SerialException, OSError) as exc:
                raise SerialReadError(f"Read failed on {self.port}: {exc}") from exc
            if not byte or byte == LF:
                break
            if byte != CR:
                buffer += byte
        return buffer.decode("ascii", errors="replace")
