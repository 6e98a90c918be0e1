from pydantic import BaseModel


# ── Responses ──────────────────────────────────────────────


class FixResponse(BaseModel):
    running: bool
    time_utc: str
    latitude_deg: float
    longitude_deg: float
    altitude_m: float
    speed_mps: float
    satellites_used: int
    hdop: float
    last_sentence_age_s: float


class HealthResponse(BaseModel):
    status: str
    gps_enabled: bool
    simulator_running: bool
    serial_connected: bool
    frames_read: int
    empty_frames: int
    sentences_parsed: int
    sentences_skipped: int
    parse_errors: int
    datagrams_sent: int
    send_errors: int
    uptime_s: float
