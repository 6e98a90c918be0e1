import time
from dataclasses import dataclass, field


@dataclass
class FixRecord:
    # From GGA and RMC
    time_utc: str = ""
    latitude_deg: float = 0.0
    longitude_deg: float = 0.0

    # From GGA
    altitude_m: float = 0.0
    satellites_used: int = 0
    hdop: float = 0.0

    # From RMC
    speed_mps: float = 0.0

    def to_csv(self) -> str:
        return (
            f"{self.time_utc},"
            f"{self.latitude_deg:.6f},{self.longitude_deg:.6f},"
            f"{self.speed_mps:.2f},{self.altitude_m:.1f},"
            f"{self.satellites_used},{self.hdop:.1f}"
        )


@dataclass
class RelayStats:
    # Connection
    serial_connected: bool = False

    # Counters
    frames_read: int = 0
    empty_frames: int = 0
    sentences_parsed: int = 0
    sentences_skipped: int = 0
    parse_errors: int = 0
    datagrams_sent: int = 0
    send_errors: int = 0
    last_sentence_time: float = field(default_factory=time.monotonic)
