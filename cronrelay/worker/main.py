import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

from cronrelay.common.config import settings
from cronrelay.common.db import init_db, session_scope
from cronrelay.common.logging import get_logger
from cronrelay.common.messaging import MalformedFireMessage, Rabbit, decode_fire
from cronrelay.models.models import TriggerExecution
from cronrelay.notifications.email_service import EmailService
from cronrelay.tasks.webhook import TargetResponse, call_target

logger = get_logger(__name__)

def _start_execution(trigger: str, target: str) -> int:
    with session_scope() as s:
        execution = TriggerExecution(
            trigger_key=trigger, target=target, worker_id=settings.worker_id, status="running"
        )
        s.add(execution)
        s.flush()
        return execution.id

def _finish_execution(exec_id: int, response: TargetResponse):
    with session_scope() as s:
        execution = s.get(TriggerExecution, exec_id)
        if execution is None:
            return
        execution.status = "completed" if response.ok else "failed"
        execution.status_code = response.status_code
        execution.finished_at = datetime.now(timezone.utc)
        if not response.ok:
            execution.error = (response.error or response.text or "")[-6000:]

def _notify(notifier: EmailService, trigger: str, response: TargetResponse):
    if response.ok and not settings.notify_on_success:
        return
    if not settings.notify_to:
        logger.warning("NOTIFY_TO not set; skipping notification for %s", trigger)
        return
    outcome = "succeeded" if response.ok else "failed"
    notifier.send_email(
        settings.notify_from,
        settings.notify_to,
        f"[cronrelay] Job {trigger} {outcome}",
        response.text,
        response.url,
        ok=response.ok,
        status_code=response.status_code,
    )

def run_fire(body: dict, notifier: EmailService, call=call_target) -> list[TargetResponse]:
    """Call every target of one trigger fire, in order, and report each outcome."""
    trigger = body["trigger"]
    flag = bool(body.get("flag", False))
    fired_at = body.get("fired_at") or int(time.time())
    responses = []
    for target in body.get("targets") or []:
        exec_id = None
        try:
            exec_id = _start_execution(trigger, target)
        except Exception:
            logger.exception("Unable to record execution of %s -> %s", trigger, target)
        response = call(target, trigger, flag, fired_at)
        if exec_id is not None:
            try:
                _finish_execution(exec_id, response)
            except Exception:
                logger.exception("Unable to record outcome of %s -> %s", trigger, target)
        _notify(notifier, trigger, response)
        responses.append(response)
    return responses

def make_on_message(rabbit, executor, notifier, run=run_fire):
    """
    Build the consumer callback. Every delivery is settled exactly once: acked after
    its fire ran, or dropped (nack without requeue) when it is malformed or the run crashed.
    """
    def on_message(ch, method, properties, body_bytes):
        delivery_tag = method.delivery_tag
        try:
            body = decode_fire(body_bytes)
        except MalformedFireMessage as exc:
            logger.error("Dropping malformed fire message (%s): %r", exc, body_bytes[:200])
            rabbit.nack_threadsafe(delivery_tag, requeue=False)
            return
        trigger = body["trigger"]

        def _done(fut):
            try:
                fut.result()
            except Exception:
                logger.exception("Worker thread crashed, dropping fire of %s", trigger)
                rabbit.nack_threadsafe(delivery_tag, requeue=False)
                return
            rabbit.ack_threadsafe(delivery_tag)

        executor.submit(run, body, notifier).add_done_callback(_done)

    return on_message

def main():
    init_db()
    r = Rabbit()
    executor = ThreadPoolExecutor(max_workers=settings.max_concurrency)
    logger.info("Worker %s starting...", settings.worker_id)
    r.consume(make_on_message(r, executor, EmailService.from_settings()))

if __name__ == "__main__":
    main()
