import os
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from daybreak.errors import PermissionDeniedError, SchedulingError
from daybreak.logging_utils import setup_logging
from daybreak.models import PodcastControl, SoundId
from daybreak.service import AlarmService

from alarm_config import load_alarm_config, load_metrics, append_metrics

# Configure structured logging based on environment variables
log_level = os.getenv("LOG_LEVEL", "INFO")
log_format = os.getenv("LOG_FORMAT", "text")
setup_logging(log_level=log_level, log_format=log_format)

logger = logging.getLogger(__name__)

service: Optional[AlarmService] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    global service

    logger.info("Starting Daybreak")
    config = load_alarm_config()
    service = AlarmService(config, report_sink=append_metrics)
    await service.init()
    logger.info("Alarm system started")

    yield  # Application runs here

    await service.teardown()
    logger.info("Alarm system stopped")


app = FastAPI(title="Daybreak - Wake up and start your day", lifespan=lifespan)


class AlarmRequest(BaseModel):
    time: str = Field(pattern=r"^\d{2}:\d{2}$", description="Wake time as HH:MM")
    sound_id: SoundId = Field(default=SoundId.GENTLE_WAKEUP, description="Alarm tone")
    enabled: bool = Field(default=True, description="Arm the alarm")


class TapRequest(BaseModel):
    payload: Optional[dict] = Field(default=None, description="Payload of the tapped notification")


def get_service() -> AlarmService:
    if service is None:
        raise HTTPException(status_code=503, detail="Alarm service not started")
    return service


@app.get("/health")
async def health():
    return {"status": "ok", "time": datetime.now().isoformat()}


@app.get("/status")
async def status():
    return get_service().status()


@app.post("/alarm")
async def set_alarm(request: AlarmRequest):
    svc = get_service()
    try:
        time_of_day = datetime.strptime(request.time, "%H:%M").time()
        svc.set_alarm(time_of_day, request.sound_id, request.enabled)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except SchedulingError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return svc.status()


@app.delete("/alarm")
async def delete_alarm():
    svc = get_service()
    svc.disable()
    return svc.status()


@app.post("/alarm/dismiss")
async def dismiss_alarm():
    svc = get_service()
    dismissed = await svc.dismiss()
    return {"dismissed": dismissed, "status": svc.status()}


@app.post("/wake/tap")
async def wake_tap(request: Optional[TapRequest] = None):
    svc = get_service()
    fired = await svc.handle_tap(request.payload if request else None)
    return {"fired": fired, "status": svc.status()}


@app.post("/wake/resume")
async def wake_resume():
    svc = get_service()
    await svc.handle_resume()
    return svc.status()


@app.post("/routine/start")
async def start_routine():
    svc = get_service()
    await svc.start_routine()
    return svc.status()


@app.post("/podcast/{control}")
async def podcast_control(control: PodcastControl):
    svc = get_service()
    try:
        await svc.podcast_control(control)
    except Exception as e:
        logger.error(f"Podcast control {control.value} failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    return svc.status()


@app.get("/metrics")
async def metrics(limit: int = 20):
    return {"reports": load_metrics()[-limit:]}


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("DAYBREAK_PORT", "8080"))
    logger.info(f"Starting Daybreak on port {port}")
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=port,
        log_level="info",
        access_log=False
    )
