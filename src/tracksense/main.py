import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI

from tracksense.acquisition import AcquisitionWorker
from tracksense.config import Settings
from tracksense.routes.fix import router as fix_router
from tracksense.routes.status import router as status_router
from tracksense.simulator import ProtocolSimulator


def build_simulator(config: Settings) -> ProtocolSimulator:
    simulator = ProtocolSimulator(
        config.sim_latitude,
        config.sim_longitude,
        altitude=config.sim_altitude,
        frequency_hz=config.sim_frequency_hz,
        speed_knots=config.sim_speed_knots,
        baudrate=config.sim_baud,
    )
    if config.motion_enabled:
        simulator.configure_motion(config.sim_radius_m, config.sim_period_s)
    return simulator


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = Settings()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)-8s %(name)s  %(message)s",
    )
    logger = logging.getLogger("tracksense")

    app.state.config = config
    app.state.start_time = time.monotonic()
    app.state.simulator = None
    app.state.worker = None

    simulator = None
    port = None
    if config.sim_enabled:
        simulator = build_simulator(config)
        port = simulator.device_path
        await simulator.start()
        app.state.simulator = simulator

    worker = None
    if config.gps_enabled:
        try:
            worker = AcquisitionWorker.from_settings(config, port=port)
        except Exception:
            if simulator is not None:
                await simulator.stop()
                simulator.close()
            raise
        await worker.start()
        app.state.worker = worker

    logger.info(
        "TrackSense ready, relaying to %s:%s", config.telemetry_host, config.telemetry_port
    )

    yield

    if worker is not None:
        await worker.stop()
        worker.close()
    if simulator is not None:
        await simulator.stop()
        simulator.close()
    logger.info("TrackSense stopped")


app = FastAPI(
    title="TrackSense",
    description="Serial GNSS receiver to UDP telemetry relay",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(fix_router)
app.include_router(status_router)
