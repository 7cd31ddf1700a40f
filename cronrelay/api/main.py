from contextlib import asynccontextmanager
from typing import List

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import PlainTextResponse

from cronrelay.common.config import load_job_configuration
from cronrelay.common.db import init_db
from cronrelay.common.logging import get_logger
from cronrelay.cron.translator import InvalidQuartzCronError, InvalidUnixCronError
from cronrelay.scheduler.engine import SqlTriggerEngine
from cronrelay.scheduler.jobs import EngineFailure, JobSchedulerService
from cronrelay.schemas.schemas import CronJob, TriggerOut

logger = get_logger(__name__)

def get_job_scheduler() -> JobSchedulerService:
    return JobSchedulerService(SqlTriggerEngine())

@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    config = load_job_configuration()
    if config is not None:
        # DuplicateJobNameError aborts startup; nothing from the file is registered
        get_job_scheduler().initialize_jobs(config)
    yield

app = FastAPI(title="cronrelay", lifespan=lifespan)

@app.post("/schedule-job", response_class=PlainTextResponse)
def schedule_job(job: CronJob, scheduler: JobSchedulerService = Depends(get_job_scheduler)):
    try:
        scheduler.schedule_job(job)
    except InvalidUnixCronError:
        logger.warning("Rejected job %s: invalid Unix cron %r", job.name, job.schedule)
        return PlainTextResponse(f"Invalid Unix cron expression: {job.schedule}", status_code=400)
    except InvalidQuartzCronError as exc:
        logger.warning("Rejected job %s: %s", job.name, exc)
        return PlainTextResponse(str(exc), status_code=400)
    except Exception as exc:
        logger.exception("Error scheduling job %s", job.name)
        return PlainTextResponse(f"Error scheduling job: {exc}", status_code=400)
    return PlainTextResponse("Job scheduled successfully")

@app.get("/jobs", response_model=List[TriggerOut])
def list_jobs(scheduler: JobSchedulerService = Depends(get_job_scheduler)):
    return [TriggerOut.from_trigger(t) for t in scheduler.list_jobs()]

@app.get("/jobs/{name}", response_model=TriggerOut)
def get_job(name: str, scheduler: JobSchedulerService = Depends(get_job_scheduler)):
    trigger = scheduler.get_job(name)
    if trigger is None:
        raise HTTPException(404, "job not found")
    return TriggerOut.from_trigger(trigger)

@app.delete("/jobs/{name}")
def unschedule_job(name: str, scheduler: JobSchedulerService = Depends(get_job_scheduler)):
    try:
        removed = scheduler.unschedule_job(name)
    except EngineFailure as exc:
        raise HTTPException(400, str(exc))
    if not removed:
        raise HTTPException(404, "job not found")
    return {"ok": True}
