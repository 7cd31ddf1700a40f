from pydantic import BaseModel, Field
from typing import List, Optional

class CronJob(BaseModel):
    name: str
    schedule: str  # five-field Unix cron
    flag: bool = False  # opaque, passed through to the trigger payload
    targets: List[str] = Field(default_factory=list)

class JobConfiguration(BaseModel):
    jobs: Optional[List[CronJob]] = None

class ErrorPayload(BaseModel):
    timestamp: str
    status: int
    message: str
    path: str

class TriggerOut(BaseModel):
    name: str
    cron: str
    targets: List[str]
    flag: bool
    next_run_time: Optional[int] = None
    last_run_time: Optional[int] = None

    @classmethod
    def from_trigger(cls, trigger) -> "TriggerOut":
        payload = trigger.payload or {}
        return cls(
            name=trigger.key,
            cron=trigger.cron,
            targets=list(payload.get("targets") or []),
            flag=bool(payload.get("flag", False)),
            next_run_time=trigger.next_run_time,
            last_run_time=trigger.last_run_time,
        )
