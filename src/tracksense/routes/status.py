import time

from fastapi import APIRouter, Request

from tracksense.fix_state import RelayStats
from tracksense.models import HealthResponse

router = APIRouter(tags=["status"])

STALE_AFTER_S = 5.0


@router.get("/health", response_model=HealthResponse)
async def get_health(request: Request) -> HealthResponse:
    worker = getattr(request.app.state, "worker", None)
    simulator = getattr(request.app.state, "simulator", None)
    start = request.app.state.start_time
    s = worker.stats if worker is not None else RelayStats()

    if worker is None:
        status = "disabled"
    elif not worker.is_running or not s.serial_connected:
        status = "disconnected"
    elif time.monotonic() - s.last_sentence_time > STALE_AFTER_S:
        status = "degraded"
    else:
        status = "ok"

    return HealthResponse(
        status=status,
        gps_enabled=worker is not None,
        simulator_running=simulator is not None and simulator.is_running,
        serial_connected=s.serial_connected,
        frames_read=s.frames_read,
        empty_frames=s.empty_frames,
        sentences_parsed=s.sentences_parsed,
        sentences_skipped=s.sentences_skipped,
        parse_errors=s.parse_errors,
        datagrams_sent=s.datagrams_sent,
        send_errors=s.send_errors,
        uptime_s=round(time.monotonic() - start, 1),
    )
