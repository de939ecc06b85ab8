"""
RabbitMQ Consumer Entry Point
Starts the notification delivery consumer
"""
import logging

from evv_service import config
from evv_service.messaging.consumer import start_consumer

logging.basicConfig(level=config.LOG_LEVEL)

if __name__ == "__main__":
    start_consumer()
