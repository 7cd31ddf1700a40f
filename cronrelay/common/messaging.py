"""
Trigger-fire messages on RabbitMQ.

The fire loop publishes one message per due trigger; workers consume them.
A fire message is a JSON object: {"trigger", "targets", "flag", "fired_at"}.
"""
import json
from typing import Any, Dict, List

import pika
from pika.exceptions import AMQPConnectionError, AMQPError

from cronrelay.common.config import settings
from cronrelay.common.logging import get_logger

logger = get_logger(__name__)


class MalformedFireMessage(ValueError):
    """A queued message that is not a fire-message object."""


def encode_fire(trigger: str, targets: List[str], flag: bool, fired_at: int) -> bytes:
    return json.dumps({
        "trigger": trigger,
        "targets": list(targets),
        "flag": bool(flag),
        "fired_at": fired_at,
    }).encode()


def decode_fire(body_bytes: bytes) -> Dict[str, Any]:
    try:
        body = json.loads(body_bytes)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedFireMessage(f"not JSON: {exc}") from exc
    if not isinstance(body, dict):
        raise MalformedFireMessage(f"expected an object, got {type(body).__name__}")
    if not isinstance(body.get("trigger"), str):
        raise MalformedFireMessage("missing trigger name")
    if not isinstance(body.get("targets", []), list):
        raise MalformedFireMessage("targets must be a list")
    return body


class Rabbit:
    """Blocking connection to the trigger-fire queue (durable queue, persistent messages)."""

    def __init__(self, heartbeat: int | None = None, queue_name: str | None = None):
        self.params = pika.URLParameters(settings.rabbitmq_url)
        self.params.heartbeat = settings.rabbitmq_heartbeat if heartbeat is None else heartbeat
        self.params.blocked_connection_timeout = 300
        self.params.connection_attempts = 5
        self.params.retry_delay = 2
        self.queue_name = queue_name or settings.rabbitmq_queue
        self.conn = None
        self.ch = None
        self._channel()

    def _channel(self):
        """Open (or reopen after a broker drop) the connection and channel."""
        if self.ch is not None and self.ch.is_open:
            return self.ch
        try:
            self.conn = pika.BlockingConnection(self.params)
        except AMQPConnectionError as exc:
            logger.error("RabbitMQ connection failed: %s", exc)
            raise
        self.ch = self.conn.channel()
        self.ch.queue_declare(queue=self.queue_name, durable=True)
        logger.info("Connected to RabbitMQ queue=%s", self.queue_name)
        return self.ch

    def publish_fire(self, trigger: str, targets: List[str], flag: bool, fired_at: int):
        payload = encode_fire(trigger, targets, flag, fired_at)
        properties = pika.BasicProperties(delivery_mode=2, content_type="application/json")
        try:
            self._channel().basic_publish(
                exchange="", routing_key=self.queue_name, body=payload, properties=properties
            )
        except AMQPError:
            # one reconnect; a second failure propagates to the fire loop's tick
            logger.warning("Publishing fire of %s failed, reconnecting", trigger)
            self.ch = None
            self._channel().basic_publish(
                exchange="", routing_key=self.queue_name, body=payload, properties=properties
            )

    def consume(self, on_message):
        ch = self._channel()
        ch.basic_qos(prefetch_count=settings.rabbitmq_prefetch or settings.max_concurrency)
        ch.basic_consume(queue=self.queue_name, on_message_callback=on_message, auto_ack=False)
        ch.start_consuming()

    def ack_threadsafe(self, delivery_tag):
        self.conn.add_callback_threadsafe(lambda: self.ch.basic_ack(delivery_tag))

    def nack_threadsafe(self, delivery_tag, requeue=True):
        self.conn.add_callback_threadsafe(lambda: self.ch.basic_nack(delivery_tag, requeue=requeue))
