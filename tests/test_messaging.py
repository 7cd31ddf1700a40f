"""Tests for fire-message encoding and the RabbitMQ wrapper."""

import json
import logging
from unittest.mock import MagicMock, patch

import pytest
from pika.exceptions import AMQPChannelError

from cronrelay.common.logging import configure_logging
from cronrelay.common.messaging import MalformedFireMessage, Rabbit, decode_fire, encode_fire


class TestFireMessage:
    def test_encode_produces_fire_object(self):
        body = json.loads(encode_fire("nightly", ("https://a",), 1, 1704067500))
        assert body == {"trigger": "nightly", "targets": ["https://a"], "flag": True, "fired_at": 1704067500}

    def test_decode_accepts_encoded_message(self):
        body = decode_fire(encode_fire("nightly", ["https://a"], False, 5))
        assert body["trigger"] == "nightly"
        assert body["targets"] == ["https://a"]

    def test_decode_tolerates_missing_targets(self):
        assert decode_fire(b'{"trigger": "t"}') == {"trigger": "t"}

    @pytest.mark.parametrize("raw", [b"{", b"[]", b"7", b'{"trigger": 3}', b'{"trigger": "t", "targets": {}}'])
    def test_decode_rejects_non_fire_messages(self, raw):
        with pytest.raises(MalformedFireMessage):
            decode_fire(raw)


@pytest.fixture
def connection():
    with patch("cronrelay.common.messaging.pika.BlockingConnection") as factory:
        conn = MagicMock()
        factory.return_value = conn
        yield factory, conn


class TestRabbit:
    def test_declares_durable_queue(self, connection):
        _, conn = connection

        Rabbit(queue_name="fires")

        conn.channel.return_value.queue_declare.assert_called_once_with(queue="fires", durable=True)

    def test_publish_fire_is_persistent_json(self, connection):
        _, conn = connection
        rabbit = Rabbit(queue_name="fires")

        rabbit.publish_fire("nightly", ["https://a"], False, 9)

        kwargs = conn.channel.return_value.basic_publish.call_args[1]
        assert kwargs["routing_key"] == "fires"
        assert json.loads(kwargs["body"])["trigger"] == "nightly"
        assert kwargs["properties"].delivery_mode == 2
        assert kwargs["properties"].content_type == "application/json"

    def test_publish_reconnects_once(self, connection):
        factory, conn = connection
        channel = conn.channel.return_value
        channel.basic_publish.side_effect = [AMQPChannelError("closed"), None]
        rabbit = Rabbit(queue_name="fires")

        rabbit.publish_fire("nightly", [], False, 9)

        assert factory.call_count == 2
        assert channel.basic_publish.call_count == 2

    def test_second_publish_failure_propagates(self, connection):
        _, conn = connection
        conn.channel.return_value.basic_publish.side_effect = AMQPChannelError("closed")
        rabbit = Rabbit(queue_name="fires")

        with pytest.raises(AMQPChannelError):
            rabbit.publish_fire("nightly", [], False, 9)

    def test_nack_is_scheduled_on_connection_thread(self, connection):
        _, conn = connection
        rabbit = Rabbit(queue_name="fires")

        rabbit.nack_threadsafe(4, requeue=False)
        callback = conn.add_callback_threadsafe.call_args[0][0]
        callback()

        conn.channel.return_value.basic_nack.assert_called_once_with(4, requeue=False)


def test_configure_logging_quiets_pika():
    configure_logging("DEBUG")
    try:
        assert logging.getLogger("pika").level == logging.WARNING
    finally:
        configure_logging("INFO")
