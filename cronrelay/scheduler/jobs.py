"""
Job lifecycle: validate a job's schedule, then create or replace its trigger.

Per job name the states are absent -> scheduled (first registration),
scheduled -> scheduled (delete then recreate) and scheduled -> absent
(unschedule). A job whose schedule fails validation never reaches the engine.
"""
from typing import Iterable, List, Optional

from cronrelay.common.logging import get_logger
from cronrelay.cron.translator import validate_and_convert
from cronrelay.scheduler.engine import TriggerEngine
from cronrelay.schemas.schemas import CronJob, JobConfiguration

logger = get_logger(__name__)


class DuplicateJobNameError(ValueError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Duplicate job name found: {name}")


class EngineFailure(RuntimeError):
    """The trigger engine rejected a lookup, register or deregister call."""


def find_duplicate_name(jobs: Iterable[CronJob]) -> Optional[str]:
    seen = set()
    for job in jobs:
        if job.name in seen:
            return job.name
        seen.add(job.name)
    return None


class JobSchedulerService:
    def __init__(self, engine: TriggerEngine):
        self.engine = engine

    def schedule_job(self, job: CronJob) -> str:
        """Register job's trigger, replacing any trigger already under job.name.

        Translator errors propagate unchanged; engine errors surface as EngineFailure.
        Returns the engine-native cron the trigger was registered with.
        """
        quartz_cron = validate_and_convert(job.schedule)
        payload = {"targets": list(job.targets), "flag": job.flag}
        try:
            if self.engine.exists(job.name):
                logger.info("Job %s already scheduled, replacing trigger", job.name)
                self.engine.delete(job.name)
            self.engine.register(job.name, quartz_cron, payload)
        except Exception as exc:
            logger.error("Engine failed while scheduling job %s: %s", job.name, exc)
            raise EngineFailure(f"Failed to schedule job {job.name}: {exc}") from exc
        logger.info("Scheduled job %s cron=%r targets=%d", job.name, quartz_cron, len(job.targets))
        return quartz_cron

    def initialize_jobs(self, config: Optional[JobConfiguration]) -> None:
        jobs: List[CronJob] = list(config.jobs or []) if config is not None else []
        if not jobs:
            logger.info("No jobs configured; nothing to initialize")
            return

        duplicate = find_duplicate_name(jobs)
        if duplicate is not None:
            raise DuplicateJobNameError(duplicate)

        for job in jobs:
            self.schedule_job(job)
        logger.info("Initialized %d jobs", len(jobs))

    def unschedule_job(self, name: str) -> bool:
        try:
            if not self.engine.exists(name):
                return False
            self.engine.delete(name)
        except Exception as exc:
            raise EngineFailure(f"Failed to unschedule job {name}: {exc}") from exc
        logger.info("Unscheduled job %s", name)
        return True

    def get_job(self, name: str):
        return self.engine.get(name)

    def list_jobs(self):
        return self.engine.list_triggers()
