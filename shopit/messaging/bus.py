import json
import logging
import threading
import time

import pika

logger = logging.getLogger(__name__)

ORDER_CREATED = "order.created"
ORDER_UPDATED = "order.updated"
ORDER_DELETED = "order.deleted"


class EventBus:
    """
    Handles the connection to RabbitMQ and publishing of order events.
    Connection attempts are retried so the service can start before the broker.
    Publishing runs on the request path, so it makes a single short attempt.
    """

    def __init__(
        self,
        host,
        exchange_name="events",
        exchange_type="topic",
        retries=5,
        retry_delay=5,
        socket_timeout=2,
    ):
        self.host = host
        self.exchange_name = exchange_name
        self.exchange_type = exchange_type
        self.retries = retries
        self.retry_delay = retry_delay
        self.socket_timeout = socket_timeout
        self.connection = None
        self.channel = None
        # BlockingConnection is not thread-safe; requests publish from a thread pool.
        self._lock = threading.Lock()

    def connect(self, retries=None):
        """Establishes a connection to RabbitMQ with retry logic."""
        retries = retries or self.retries
        attempt = 0
        while True:
            attempt += 1
            try:
                credentials = pika.PlainCredentials("guest", "guest")
                parameters = pika.ConnectionParameters(
                    host=self.host,
                    credentials=credentials,
                    heartbeat=600,
                    blocked_connection_timeout=300,
                    connection_attempts=1,
                    socket_timeout=self.socket_timeout,
                )
                self.connection = pika.BlockingConnection(parameters)
                self.channel = self.connection.channel()

                # Durable exchange survives broker restarts.
                self.channel.exchange_declare(
                    exchange=self.exchange_name, exchange_type=self.exchange_type, durable=True
                )
                logger.info("Connected to RabbitMQ exchange %s on %s", self.exchange_name, self.host)
                return
            except pika.exceptions.AMQPConnectionError:
                if attempt >= retries:
                    raise
                logger.warning("RabbitMQ not ready yet, retrying in %s seconds...", self.retry_delay)
                time.sleep(self.retry_delay)

    def publish(self, routing_key, message):
        """
        Publishes a message to the exchange with a specific routing key.

        Args:
            routing_key (str): The topic key (e.g., 'order.created').
            message (dict): The data payload to send.
        """
        with self._lock:
            # Reconnect with a single attempt if the connection was lost.
            if not self.connection or self.connection.is_closed:
                self.connect(retries=1)
            self.channel.basic_publish(
                exchange=self.exchange_name,
                routing_key=routing_key,
                body=json.dumps(message, default=str),
                properties=pika.BasicProperties(
                    delivery_mode=2,  # Make message persistent
                    content_type="application/json",
                ),
            )
        logger.info("Sent event '%s': %s", routing_key, message)

    def close(self):
        """Closes the connection cleanly."""
        if self.connection and not self.connection.is_closed:
            self.connection.close()


def order_event(order) -> dict:
    return {
        "order_id": str(order.id),
        "user_id": str(order.user_id),
        "status": order.order_status,
        "total_price": order.total_price,
    }


def publish_safely(bus, routing_key, message):
    """Publishes after a commit; a broker failure is logged, not raised."""
    if bus is None:
        return
    try:
        bus.publish(routing_key, message)
    except Exception:
        logger.exception("Failed to publish event '%s'", routing_key)
