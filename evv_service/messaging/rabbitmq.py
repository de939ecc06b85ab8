"""RabbitMQ publisher for outbound notification messages"""
import json
import logging
import threading
from typing import Dict, Optional
import pika
from pika.exceptions import AMQPError

from evv_service import config

logger = logging.getLogger(__name__)


class RabbitMQPublisher:
    """Publishes persistent JSON messages onto a durable topic exchange"""

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        exchange: Optional[str] = None,
    ):
        self.host = host or config.RABBITMQ_HOST
        self.port = port or config.RABBITMQ_PORT
        self.user = user or config.RABBITMQ_USER
        self.password = password or config.RABBITMQ_PASSWORD
        self.exchange = exchange or config.RABBITMQ_NOTIFICATION_EXCHANGE
        self.connection = None
        self.channel = None
        self._lock = threading.Lock()

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

    def _ensure_channel(self):
        if self.connection is None or self.connection.is_closed or self.channel is None or self.channel.is_closed:
            self.connect()

    def publish(self, routing_key: str, message: Dict):
        """
        Publish a message, reconnecting once if the connection went stale.

        Raises:
            AMQPError: Broker unreachable after the reconnect attempt
        """
        body = json.dumps(message, default=str)
        properties = pika.BasicProperties(
            content_type="application/json",
            delivery_mode=2,  # persistent
        )

        with self._lock:
            self._publish(routing_key, body, properties)

    def _publish(self, routing_key: str, body: str, properties):
        try:
            self._ensure_channel()
            self.channel.basic_publish(
                exchange=self.exchange,
                routing_key=routing_key,
                body=body,
                properties=properties,
            )
        except AMQPError as e:
            logger.warning(f"Publish to {self.exchange}/{routing_key} failed, reconnecting: {e}")
            self.close()
            self.connect()
            self.channel.basic_publish(
                exchange=self.exchange,
                routing_key=routing_key,
                body=body,
                properties=properties,
            )

    def close(self):
        """Close the channel and connection if open."""
        try:
            if self.channel and not self.channel.is_closed:
                self.channel.close()
            if self.connection and not self.connection.is_closed:
                self.connection.close()
        except AMQPError as e:
            logger.warning(f"Error closing RabbitMQ connection: {e}")
        finally:
            self.channel = None
            self.connection = None
