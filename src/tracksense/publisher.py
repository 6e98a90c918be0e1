import logging
import socket

from tracksense.errors import PublisherError
from tracksense.fix_state import FixRecord

logger = logging.getLogger(__name__)


def serialize(record: FixRecord) -> str:
    """Render a fix as ``time_utc,lat,lon,speed,altitude,satellites,hdop``."""
    return record.to_csv()


class TelemetryPublisher:
    """Sends one UDP datagram per fix to a fixed collector address."""

    def __init__(self, host: str, port: int) -> None:
        if not 0 <= port <= 65535:
            raise PublisherError(f"UDP port out of range: {port}")
        self.host = host
        self.port = port

        try:
            infos = socket.getaddrinfo(host, port, type=socket.SOCK_DGRAM)
        except (socket.gaierror, UnicodeError) as exc:
            raise PublisherError(f"Cannot resolve {host}:{port}: {exc}") from exc
        family, socktype, proto, _, address = infos[0]

        try:
            self._sock: socket.socket | None = socket.socket(family, socktype, proto)
        except OSError as exc:
            raise PublisherError(f"Cannot create UDP socket: {exc}") from exc
        self._address = address
        logger.info("Telemetry destination %s:%s", host, port)

    @property
    def address(self) -> tuple:
        return self._address

    def publish(self, record: FixRecord) -> bool:
        if self._sock is None:
            return False
        payload = serialize(record)
        try:
            self._sock.sendto(payload.encode("ascii", errors="replace"), self._address)
        except OSError as exc:
            logger.warning("UDP send to %s:%s failed: %s", self.host, self.port, exc)
            return False
        logger.debug("Sent %s", payload)
        return True

    def close(self) -> None:
        if self._sock is None:
            return
        self._sock.close()
        self._sock = None
