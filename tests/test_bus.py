import json
import logging
import uuid

import pika
import pytest

from shopit.messaging import bus as bus_module
from shopit.messaging.bus import ORDER_CREATED, EventBus, order_event, publish_safely
from shopit.models import Order


class FakeConnection:
    is_closed = False


class FakeChannel:
    def __init__(self):
        self.published = []

    def basic_publish(self, exchange, routing_key, body, properties):
        self.published.append((exchange, routing_key, body, properties))


class BrokenBus:
    def publish(self, routing_key, message):
        raise ConnectionError("broker down")


def test_publish_sends_persistent_json():
    bus = EventBus("rabbitmq")
    bus.connection = FakeConnection()
    bus.channel = FakeChannel()

    bus.publish(ORDER_CREATED, {"order_id": "42", "total_price": 130})

    exchange, routing_key, body, properties = bus.channel.published[0]
    assert exchange == "events"
    assert routing_key == "order.created"
    assert json.loads(body) == {"order_id": "42", "total_price": 130}
    assert properties.delivery_mode == 2
    assert properties.content_type == "application/json"


def test_order_event_payload():
    order = Order(id=uuid.uuid4(), user_id=uuid.uuid4(), order_status="Processing", total_price=130)

    assert order_event(order) == {
        "order_id": str(order.id),
        "user_id": str(order.user_id),
        "status": "Processing",
        "total_price": 130,
    }


def test_publish_safely_logs_broker_failures(caplog):
    with caplog.at_level(logging.ERROR, logger="shopit.messaging.bus"):
        publish_safely(BrokenBus(), ORDER_CREATED, {"order_id": "1"})
    assert "Failed to publish event 'order.created'" in caplog.text


def test_publish_safely_without_bus():
    publish_safely(None, ORDER_CREATED, {"order_id": "1"})


def unreachable_broker(monkeypatch):
    attempts = []
    sleeps = []

    def refuse(parameters):
        attempts.append(parameters)
        raise pika.exceptions.AMQPConnectionError("connection refused")

    monkeypatch.setattr(pika, "BlockingConnection", refuse)
    monkeypatch.setattr(bus_module.time, "sleep", sleeps.append)
    return attempts, sleeps


def test_publish_fails_fast_when_broker_is_down(monkeypatch):
    attempts, sleeps = unreachable_broker(monkeypatch)
    bus = EventBus("rabbitmq", socket_timeout=1)

    with pytest.raises(pika.exceptions.AMQPConnectionError):
        bus.publish(ORDER_CREATED, {"order_id": "1"})

    assert len(attempts) == 1
    assert attempts[0].connection_attempts == 1
    assert attempts[0].socket_timeout == 1
    assert sleeps == []


def test_publish_safely_swallows_unreachable_broker(monkeypatch, caplog):
    attempts, sleeps = unreachable_broker(monkeypatch)

    publish_safely(EventBus("rabbitmq"), ORDER_CREATED, {"order_id": "1"})

    assert len(attempts) == 1
    assert sleeps == []
    assert "Failed to publish event 'order.created'" in caplog.text


def test_connect_retries_outside_requests(monkeypatch):
    attempts, sleeps = unreachable_broker(monkeypatch)
    bus = EventBus("rabbitmq", retries=3, retry_delay=5)

    with pytest.raises(pika.exceptions.AMQPConnectionError):
        bus.connect()

    assert len(attempts) == 3
    assert sleeps == [5, 5]
