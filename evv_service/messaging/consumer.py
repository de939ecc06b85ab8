import json
import logging
from typing import Dict, Optional
import pika
import requests

from evv_service import config

logger = logging.getLogger(__name__)


class NotificationConsumer:
    """
    Delivers queued notifications to the notification gateway.

    A failed delivery is republished with an incremented ``attempt`` until
    NOTIFICATION_MAX_ATTEMPTS is reached; the message is then rejected
    without requeue (dead-lettered if the queue has a DLX configured).
    """

    routing_key = "notification.#"

    def __init__(
        self,
        gateway_url: Optional[str] = None,
        max_attempts: Optional[int] = None,
    ):
        self.host = config.RABBITMQ_HOST
        self.port = config.RABBITMQ_PORT
        self.user = config.RABBITMQ_USER
        self.password = config.RABBITMQ_PASSWORD
        self.exchange = config.RABBITMQ_NOTIFICATION_EXCHANGE
        self.queue_name = config.RABBITMQ_NOTIFICATION_QUEUE
        self.gateway_url = gateway_url or config.NOTIFICATION_GATEWAY_URL
        self.timeout = config.NOTIFICATION_GATEWAY_TIMEOUT
        self.max_attempts = max_attempts or config.NOTIFICATION_MAX_ATTEMPTS
        self.connection = None
        self.channel = None

    def connect(self):
        credentials = pika.PlainCredentials(self.user, self.password)
        parameters = pika.ConnectionParameters(
            host=self.host,
            port=self.port,
            credentials=credentials,
            heartbeat=600,
            blocked_connection_timeout=300
        )

        self.connection = pika.BlockingConnection(parameters)
        self.channel = self.connection.channel()

        self.channel.exchange_declare(
            exchange=self.exchange,
            exchange_type='topic',
            durable=True
        )

        self.channel.queue_declare(queue=self.queue_name, durable=True)

        self.channel.queue_bind(
            exchange=self.exchange,
            queue=self.queue_name,
            routing_key=self.routing_key
        )

        return self.queue_name

    def deliver(self, message: Dict) -> bool:
        """POST a notification to the gateway; True on a 2xx response."""
        try:
            response = requests.post(self.gateway_url, json=message, timeout=self.timeout)
            response.raise_for_status()
            return True
        except requests.RequestException as e:
            logger.warning(
                f"Delivery of {message.get('event')} failed "
                f"(attempt {message.get('attempt', 1)}/{self.max_attempts}): {e}"
            )
            return False

    def republish(self, ch, routing_key: str, message: Dict):
        """Put a failed message back on the exchange with the next attempt number."""
        retry = dict(message)
        retry["attempt"] = int(message.get("attempt", 1)) + 1
        ch.basic_publish(
            exchange=self.exchange,
            routing_key=routing_key,
            body=json.dumps(retry, default=str),
            properties=pika.BasicProperties(
                content_type="application/json",
                delivery_mode=2,
            ),
        )

    def callback(self, ch, method, properties, body):
        """Process incoming messages from the queue."""
        try:
            message = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(f"Discarding malformed notification message: {e}")
            ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)
            return

        try:
            if self.deliver(message):
                logger.info(f"Delivered {message.get('event')} to {len(message.get('recipientIds', []))} recipient(s)")
                ch.basic_ack(delivery_tag=method.delivery_tag)
                return

            attempt = int(message.get("attempt", 1))
            if attempt < self.max_attempts:
                self.republish(ch, method.routing_key, message)
                ch.basic_ack(delivery_tag=method.delivery_tag)
            else:
                logger.error(f"Giving up on {message.get('event')} after {attempt} attempts")
                ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)

        except Exception as e:
            logger.error(f"Error processing message: {e}")
            ch.basic_nack(delivery_tag=method.delivery_tag, requeue=True)

    def start_consuming(self):
        """Start consuming messages from RabbitMQ."""
        try:
            queue_name = self.connect()

            logger.info("="*60)
            logger.info("EVV Service - Notification Delivery Consumer")
            logger.info(f"Connected to RabbitMQ: {self.host}:{self.port}")
            logger.info(f"Listening to queue: {queue_name}")
            logger.info(f"Delivering to: {self.gateway_url}")
            logger.info("="*60)

            self.channel.basic_qos(prefetch_count=1)
            self.channel.basic_consume(
                queue=queue_name,
                on_message_callback=self.callback
            )

            self.channel.start_consuming()

        except KeyboardInterrupt:
            logger.info("Stopping consumer...")
            self.stop()
        except Exception as e:
            logger.error(f"Consumer error: {e}")
            self.stop()
            raise

    def stop(self):
        """Stop consuming and close connections."""
        if self.channel and not self.channel.is_closed:
            self.channel.stop_consuming()
            self.channel.close()
        if self.connection and not self.connection.is_closed:
            self.connection.close()
        logger.info("Consumer stopped")


def start_consumer():
    """Entry point for starting the notification delivery consumer."""
    consumer = NotificationConsumer()
    consumer.start_consuming()
