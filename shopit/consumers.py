import json
import logging
import threading
import time
import uuid

import pika

from .database import transaction
from .repositories import orders as order_repo

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment.succeeded"
PAYMENT_FAILED = "payment.failed"

PAYMENT_STATUSES = {
    PAYMENT_SUCCEEDED: "succeeded",
    PAYMENT_FAILED: "failed",
}


class PaymentEventConsumer:
    """Keeps stored payment statuses in step with payment events."""

    def __init__(self, session_factory, host, queue="shop.payment.events"):
        self.session_factory = session_factory
        self.host = host
        self.queue = queue
        self.connection = None
        self.channel = None

    def connect(self):
        """Connects to RabbitMQ and binds the payment routing keys."""
        while True:
            try:
                credentials = pika.PlainCredentials("guest", "guest")
                parameters = pika.ConnectionParameters(self.host, credentials=credentials, heartbeat=600)
                self.connection = pika.BlockingConnection(parameters)
                self.channel = self.connection.channel()

                self.channel.exchange_declare(exchange="events", exchange_type="topic", durable=True)
                self.channel.queue_declare(queue=self.queue, durable=True)
                for routing_key in PAYMENT_STATUSES:
                    self.channel.queue_bind(exchange="events", queue=self.queue, routing_key=routing_key)

                logger.info("Payment consumer connected to RabbitMQ")
                break
            except pika.exceptions.AMQPConnectionError:
                logger.warning("RabbitMQ not ready, retrying in 5 seconds...")
                time.sleep(5)

    def handle(self, routing_key, body):
        """Applies one payment event. Returns True when a payment row changed."""
        status = PAYMENT_STATUSES.get(routing_key)
        if status is None:
            return False

        event = json.loads(body)
        order_id = event.get("order_id")
        if not order_id:
            logger.warning("Payment event without order_id: %s", event)
            return False

        db = self.session_factory()
        try:
            with transaction(db):
                updated = order_repo.update_payment_status(db, uuid.UUID(str(order_id)), status)
        finally:
            db.close()

        if updated:
            logger.info("Payment for order %s marked %s", order_id, status)
        else:
            logger.warning("No payment stored for order %s", order_id)
        return bool(updated)

    def callback(self, ch, method, properties, body):
        try:
            self.handle(method.routing_key, body)
        except Exception:
            logger.exception("Error processing payment event %s", method.routing_key)
        finally:
            # Acknowledge so RabbitMQ removes the message from the queue.
            ch.basic_ack(delivery_tag=method.delivery_tag)

    def start_listening(self):
        """Starts the consuming loop."""
        if not self.connection:
            self.connect()
        self.channel.basic_consume(queue=self.queue, on_message_callback=self.callback)
        logger.info("Payment consumer waiting for events...")
        self.channel.start_consuming()


def start_consumer_thread(session_factory, host):
    """Helper to run the consumer in a background thread."""
    consumer = PaymentEventConsumer(session_factory, host)
    thread = threading.Thread(target=consumer.start_listening, daemon=True)
    thread.start()
    return consumer
