import asyncio
import enum


class WorkerState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


async def wait_for_stop(stopping: asyncio.Event, timeout: float) -> bool:
    """Sleep up to ``timeout`` seconds, waking early when ``stopping`` is set.

    Returns True if a stop was requested.
    """
    if timeout <= 0:
        await asyncio.sleep(0)
        return stopping.is_set()
    try:
        await asyncio.wait_for(stopping.wait(), timeout=timeout)
    except asyncio.TimeoutError:
        return False
    return True
