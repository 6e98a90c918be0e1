import time

from fastapi import APIRouter, HTTPException, Request

from tracksense.models import FixResponse

router = APIRouter(tags=["fix"])


@router.get("/fix", response_model=FixResponse)
async def get_fix(request: Request) -> FixResponse:
    worker = getattr(request.app.state, "worker", None)
    if worker is None:
        raise HTTPException(status_code=404, detail="GPS acquisition not enabled")

    r = worker.record
    return FixResponse(
        running=worker.is_running,
        time_utc=r.time_utc,
        latitude_deg=r.latitude_deg,
        longitude_deg=r.longitude_deg,
        altitude_m=r.altitude_m,
        speed_mps=round(r.speed_mps, 2),
        satellites_used=r.satellites_used,
        hdop=r.hdop,
        last_sentence_age_s=round(time.monotonic() - worker.stats.last_sentence_time, 1),
    )
