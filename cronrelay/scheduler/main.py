import time
from typing import Sequence

from sqlalchemy import select, text

from cronrelay.common.config import parse_segments, settings
from cronrelay.common.db import engine, init_db, is_postgres, session_scope
from cronrelay.common.logging import get_logger
from cronrelay.common.messaging import Rabbit
from cronrelay.common.timeutils import next_from_cron
from cronrelay.models.models import Trigger

LEADER_SQL = "SELECT pg_try_advisory_lock(:key) as ok"

logger = get_logger(__name__)

class TriggerFireLoop:
    """Polls the trigger table and publishes a fire message for every due trigger."""

    def __init__(self, publisher=None, segments: str | None = None):
        self.publisher = publisher if publisher is not None else Rabbit()
        self.assigned_segments: Sequence[int] = parse_segments(segments or settings.scheduler_segments)
        logger.info(
            "Fire loop starting segments=%s batch=%d poll=%.2fs",
            ",".join(map(str, self.assigned_segments)),
            settings.scheduler_batch_size,
            settings.scheduler_poll_seconds,
        )

    def _claim_leader(self) -> bool:
        if not is_postgres():
            return True
        with engine.connect() as conn:
            return bool(conn.execute(text(LEADER_SQL), {"key": settings.leader_lock_key}).scalar())

    def _fire(self, trigger: Trigger, session, now: int):
        payload = trigger.payload or {}
        self.publisher.publish_fire(
            trigger.key,
            list(payload.get("targets") or []),
            bool(payload.get("flag", False)),
            now,
        )

        next_rt = next_from_cron(trigger.cron, max(now, trigger.next_run_time))
        if next_rt is None:
            logger.info("Trigger %s has no further fire time; removing it", trigger.key)
            session.delete(trigger)
            return
        trigger.last_run_time = trigger.next_run_time
        trigger.next_run_time = next_rt

    def tick(self, now: int | None = None) -> int:
        if not self._claim_leader():
            return 0
        if now is None:
            now = int(time.time())
        fired = 0
        stmt = (
            select(Trigger)
            .where(Trigger.next_run_time <= now, Trigger.segment.in_(list(self.assigned_segments)))
            .order_by(Trigger.next_run_time)
            .limit(settings.scheduler_batch_size)
            .with_for_update(skip_locked=True)
        )
        with session_scope() as session:
            for trigger in session.execute(stmt).scalars().all():
                self._fire(trigger, session, now)
                fired += 1
        if fired:
            logger.info("Fired %d triggers", fired)
        return fired

    def run(self):
        while True:
            try:
                self.tick()
            except Exception:
                logger.exception("Fire loop tick failed")
            time.sleep(settings.scheduler_poll_seconds)

def main():
    init_db()
    TriggerFireLoop().run()

if __name__ == "__main__":
    main()
