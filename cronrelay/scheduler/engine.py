import time
import zlib
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from cronrelay.common.db import session_scope
from cronrelay.common.logging import get_logger
from cronrelay.common.timeutils import next_from_cron
from cronrelay.models.models import Trigger

logger = get_logger(__name__)

TOTAL_SEGMENTS = 128  # Keep in sync with SCHEDULER_SEGMENTS

class TriggerEngine(Protocol):
    def exists(self, key: str) -> bool: ...

    def delete(self, key: str) -> None: ...

    def register(self, key: str, schedule: str, payload: Dict[str, Any]) -> None: ...


def segment_for(key: str) -> int:
    return zlib.crc32(key.encode("utf-8")) % TOTAL_SEGMENTS


class SqlTriggerEngine:
    """Trigger table driven by the fire loop in cronrelay.scheduler.main."""

    def __init__(self, session_factory=session_scope):
        self._session_scope = session_factory

    def exists(self, key: str) -> bool:
        with self._session_scope() as s:
            return s.execute(select(Trigger.id).where(Trigger.key == key)).first() is not None

    def delete(self, key: str) -> None:
        with self._session_scope() as s:
            trigger = s.execute(select(Trigger).where(Trigger.key == key)).scalar_one_or_none()
            if trigger is not None:
                s.delete(trigger)
                logger.info("Deleted trigger %s", key)

    def register(self, key: str, schedule: str, payload: Dict[str, Any]) -> None:
        next_rt = next_from_cron(schedule, int(time.time()))
        if next_rt is None:
            raise ValueError(f"Trigger {key!r} with cron {schedule!r} will never fire")
        row = {
            "key": key,
            "cron": schedule,
            "payload": payload,
            "next_run_time": next_rt,
            "last_run_time": None,
            "segment": segment_for(key),
        }
        with self._session_scope() as s:
            # single-statement upsert: concurrent reschedules of one key never race on the unique index
            insert = pg_insert if s.get_bind().dialect.name == "postgresql" else sqlite_insert
            stmt = insert(Trigger).values(**row)
            stmt = stmt.on_conflict_do_update(
                index_elements=[Trigger.key],
                set_={col: stmt.excluded[col] for col in row if col != "key"},
            )
            s.execute(stmt)
        logger.info("Registered trigger %s cron=%r next_run_time=%d", key, schedule, next_rt)

    def get(self, key: str) -> Optional[Trigger]:
        with self._session_scope() as s:
            return s.execute(select(Trigger).where(Trigger.key == key)).scalar_one_or_none()

    def list_triggers(self) -> List[Trigger]:
        with self._session_scope() as s:
            return list(s.execute(select(Trigger).order_by(Trigger.key)).scalars())
