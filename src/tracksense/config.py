from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    log_level: str = "INFO"

    # GPS serial acquisition (empty port = disabled unless simulating)
    gps_serial_port: str = ""
    gps_serial_baud: int = 9600
    gps_serial_timeout: float = Field(1.0, gt=0)
    gps_poll_interval: float = Field(1.0, ge=0)

    # UDP telemetry collector
    telemetry_host: str = "127.0.0.1"
    telemetry_port: int = Field(9000, ge=0, le=65535)

    # Receiver simulator on a pseudo terminal
    sim_enabled: bool = False
    sim_latitude: float = Field(-22.8267, ge=-90, le=90)
    sim_longitude: float = Field(-47.0601, ge=-180, le=180)
    sim_altitude: float = 10.0
    sim_frequency_hz: float = 1.0
    sim_speed_knots: float = 10.0
    sim_baud: int = 115200
    sim_radius_m: float | None = Field(None, gt=0)
    sim_period_s: float = Field(120.0, gt=0)

    model_config = {"env_prefix": "TRACKSENSE_"}

    @property
    def gps_enabled(self) -> bool:
        return bool(self.gps_serial_port) or self.sim_enabled

    @property
    def motion_enabled(self) -> bool:
        return self.sim_radius_m is not None

    @property
    def poll_interval(self) -> float:
        """Seconds between serial reads.

        The simulator writes two frames per tick, so unless set explicitly
        frames are drained as they arrive while simulating.
        """
        if self.sim_enabled and "gps_poll_interval" not in self.model_fields_set:
            return 0.0
        return self.gps_poll_interval
