"""
Notification event catalogue.

Each event names its default recipient roles and priority. The delivery
gateway owns templates and channels; this service only tags messages.
"""
from enum import Enum
from typing import Dict, List
from pydantic import BaseModel, ConfigDict


class NotificationPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class NotificationEventType(str, Enum):
    CHECK_IN_CONFIRMATION = "CHECK_IN_CONFIRMATION"
    CHECK_OUT_CONFIRMATION = "CHECK_OUT_CONFIRMATION"
    LATE_CHECK_IN = "LATE_CHECK_IN"
    EARLY_CHECK_OUT = "EARLY_CHECK_OUT"
    EVV_GEOFENCE_VIOLATION = "EVV_GEOFENCE_VIOLATION"
    SHIFT_REMINDER_24H = "SHIFT_REMINDER_24H"
    SHIFT_REMINDER_1H = "SHIFT_REMINDER_1H"
    CREDENTIAL_EXPIRING_60_DAYS = "CREDENTIAL_EXPIRING_60_DAYS"
    CREDENTIAL_EXPIRING_30_DAYS = "CREDENTIAL_EXPIRING_30_DAYS"
    CREDENTIAL_EXPIRING_7_DAYS = "CREDENTIAL_EXPIRING_7_DAYS"
    CREDENTIAL_EXPIRED = "CREDENTIAL_EXPIRED"


class EventConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_type: NotificationEventType
    description: str
    default_recipient_roles: List[str]
    priority: NotificationPriority


EVENT_CONFIGS: Dict[NotificationEventType, EventConfig] = {
    NotificationEventType.CHECK_IN_CONFIRMATION: EventConfig(
        event_type=NotificationEventType.CHECK_IN_CONFIRMATION,
        description="Confirmation when carer checks in for a shift",
        default_recipient_roles=["SPONSOR", "SUPERVISOR"],
        priority=NotificationPriority.LOW,
    ),
    NotificationEventType.CHECK_OUT_CONFIRMATION: EventConfig(
        event_type=NotificationEventType.CHECK_OUT_CONFIRMATION,
        description="Confirmation when carer checks out from a shift",
        default_recipient_roles=["SPONSOR", "SUPERVISOR"],
        priority=NotificationPriority.LOW,
    ),
    NotificationEventType.LATE_CHECK_IN: EventConfig(
        event_type=NotificationEventType.LATE_CHECK_IN,
        description="Alert when a carer checks in late",
        default_recipient_roles=["SUPERVISOR", "ADMIN"],
        priority=NotificationPriority.MEDIUM,
    ),
    NotificationEventType.EARLY_CHECK_OUT: EventConfig(
        event_type=NotificationEventType.EARLY_CHECK_OUT,
        description="Alert when a carer checks out before the scheduled end",
        default_recipient_roles=["SUPERVISOR", "ADMIN"],
        priority=NotificationPriority.MEDIUM,
    ),
    NotificationEventType.EVV_GEOFENCE_VIOLATION: EventConfig(
        event_type=NotificationEventType.EVV_GEOFENCE_VIOLATION,
        description="Alert when a check-in or check-out is outside the client's geofence",
        default_recipient_roles=["SUPERVISOR"],
        priority=NotificationPriority.HIGH,
    ),
    NotificationEventType.SHIFT_REMINDER_24H: EventConfig(
        event_type=NotificationEventType.SHIFT_REMINDER_24H,
        description="Reminder to the carer a day before a scheduled shift",
        default_recipient_roles=["CARER"],
        priority=NotificationPriority.LOW,
    ),
    NotificationEventType.SHIFT_REMINDER_1H: EventConfig(
        event_type=NotificationEventType.SHIFT_REMINDER_1H,
        description="Reminder to the carer an hour before a scheduled shift",
        default_recipient_roles=["CARER"],
        priority=NotificationPriority.MEDIUM,
    ),
    NotificationEventType.CREDENTIAL_EXPIRING_60_DAYS: EventConfig(
        event_type=NotificationEventType.CREDENTIAL_EXPIRING_60_DAYS,
        description="Reminder that a credential expires within 60 days",
        default_recipient_roles=["CARER", "ADMIN", "OPS_MANAGER"],
        priority=NotificationPriority.LOW,
    ),
    NotificationEventType.CREDENTIAL_EXPIRING_30_DAYS: EventConfig(
        event_type=NotificationEventType.CREDENTIAL_EXPIRING_30_DAYS,
        description="Reminder that a credential expires within 30 days",
        default_recipient_roles=["CARER", "ADMIN", "OPS_MANAGER"],
        priority=NotificationPriority.MEDIUM,
    ),
    NotificationEventType.CREDENTIAL_EXPIRING_7_DAYS: EventConfig(
        event_type=NotificationEventType.CREDENTIAL_EXPIRING_7_DAYS,
        description="Reminder that a credential expires within 7 days",
        default_recipient_roles=["CARER", "ADMIN", "OPS_MANAGER"],
        priority=NotificationPriority.HIGH,
    ),
    NotificationEventType.CREDENTIAL_EXPIRED: EventConfig(
        event_type=NotificationEventType.CREDENTIAL_EXPIRED,
        description="Alert when a credential has expired",
        default_recipient_roles=["CARER", "ADMIN", "OPS_MANAGER"],
        priority=NotificationPriority.CRITICAL,
    ),
}


def get_event_config(event_type: NotificationEventType) -> EventConfig:
    return EVENT_CONFIGS[event_type]
