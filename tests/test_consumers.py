import json
import uuid

from shopit.consumers import PaymentEventConsumer
from shopit.repositories import orders as order_repo
from shopit.schemas import OrderCreate
from shopit.usecases import orders as orders_uc

from .conftest import order_payload


class FakeChannel:
    def __init__(self):
        self.acked = []

    def basic_ack(self, delivery_tag):
        self.acked.append(delivery_tag)


class FakeMethod:
    def __init__(self, routing_key, delivery_tag=1):
        self.routing_key = routing_key
        self.delivery_tag = delivery_tag


def _order(db, user, product):
    return orders_uc.create_order(db, user, OrderCreate.model_validate(order_payload(product.id)))


def test_payment_failed_event_updates_status(db, session_factory, customer, make_product):
    user, _ = customer
    order = _order(db, user, make_product(user))
    consumer = PaymentEventConsumer(session_factory, host="rabbitmq")

    changed = consumer.handle("payment.failed", json.dumps({"order_id": str(order.id)}))

    assert changed is True
    db.expire_all()
    assert order_repo.fetch_payment_by_order(db, order.id).status == "failed"


def test_unknown_routing_key_is_ignored(session_factory):
    consumer = PaymentEventConsumer(session_factory, host="rabbitmq")
    assert consumer.handle("order.created", json.dumps({"order_id": str(uuid.uuid4())})) is False


def test_event_for_unknown_order(session_factory):
    consumer = PaymentEventConsumer(session_factory, host="rabbitmq")
    assert consumer.handle("payment.succeeded", json.dumps({"order_id": str(uuid.uuid4())})) is False
    assert consumer.handle("payment.succeeded", json.dumps({})) is False


def test_callback_acks_even_when_handling_fails(session_factory):
    consumer = PaymentEventConsumer(session_factory, host="rabbitmq")
    channel = FakeChannel()

    consumer.callback(channel, FakeMethod("payment.succeeded", delivery_tag=7), None, b"not json")

    assert channel.acked == [7]
