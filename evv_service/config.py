"""Service configuration loaded from environment variables"""
import os
from dotenv import load_dotenv

load_dotenv()

# Database
DB_USER = os.getenv("DB_USER", "postgres")
DB_PASSWORD = os.getenv("DB_PASSWORD", "")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME", "evv")
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+asyncpg://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)
DB_ECHO = os.getenv("DB_ECHO", "false").lower() == "true"

# Keycloak
KEYCLOAK_URL = os.getenv("KEYCLOAK_URL", "http://localhost:8080")
KEYCLOAK_REALM = os.getenv("KEYCLOAK_REALM", "carebase")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "RS256")
PERMISSIONS_FILE = os.getenv("PERMISSIONS_FILE")

# Cron endpoints
CRON_SECRET = os.getenv("CRON_SECRET")

# EVV
DEFAULT_GEOFENCE_RADIUS = int(os.getenv("DEFAULT_GEOFENCE_RADIUS", "150"))
LATE_CHECK_IN_MINUTES = int(os.getenv("LATE_CHECK_IN_MINUTES", "15"))
EARLY_CHECK_OUT_MINUTES = int(os.getenv("EARLY_CHECK_OUT_MINUTES", "15"))

# Scheduling times ("HH:MM") are entered in the agency's local time
AGENCY_TIMEZONE = os.getenv("AGENCY_TIMEZONE", "UTC")

# RabbitMQ
RABBITMQ_HOST = os.getenv("RABBITMQ_HOST", "localhost")
RABBITMQ_PORT = int(os.getenv("RABBITMQ_PORT", "5672"))
RABBITMQ_USER = os.getenv("RABBITMQ_USER", "guest")
RABBITMQ_PASSWORD = os.getenv("RABBITMQ_PASSWORD", "guest")
RABBITMQ_NOTIFICATION_EXCHANGE = os.getenv("RABBITMQ_NOTIFICATION_EXCHANGE", "evv.notifications")
RABBITMQ_NOTIFICATION_QUEUE = os.getenv("RABBITMQ_NOTIFICATION_QUEUE", "evv_notification_delivery")

# Notification delivery
NOTIFICATION_GATEWAY_URL = os.getenv("NOTIFICATION_GATEWAY_URL", "http://localhost:8090/notifications")
NOTIFICATION_GATEWAY_TIMEOUT = int(os.getenv("NOTIFICATION_GATEWAY_TIMEOUT", "10"))
NOTIFICATION_MAX_ATTEMPTS = int(os.getenv("NOTIFICATION_MAX_ATTEMPTS", "5"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
