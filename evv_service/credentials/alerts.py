"""
Credential expiry arithmetic.

Pure functions: every "now" is passed in by the caller.
"""
import math
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional

from evv_service.db.models import CredentialStatus
from evv_service.notifications.events import NotificationEventType

REMINDER_WINDOW_DAYS = 7


class AlertSeverity(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class CredentialAlertType(str, Enum):
    EXPIRED = "EXPIRED"
    EXPIRING_7_DAYS = "EXPIRING_7_DAYS"
    EXPIRING_30_DAYS = "EXPIRING_30_DAYS"
    EXPIRING_60_DAYS = "EXPIRING_60_DAYS"
    EXPIRING_SOON = "EXPIRING_SOON"


def days_until_expiration(expiration_date: datetime, now: datetime) -> int:
    """Whole days left, rounded up; negative once expired."""
    return math.ceil((expiration_date - now).total_seconds() / 86400)


def expected_status(current_status: str, days: int, reminder_days: Iterable[int]) -> str:
    """Status implied by the days left; REVOKED is never overridden."""
    if current_status == CredentialStatus.REVOKED.value:
        return current_status
    if days < 0:
        return CredentialStatus.EXPIRED.value
    thresholds = list(reminder_days or [])
    if thresholds and days <= min(thresholds):
        return CredentialStatus.EXPIRING_SOON.value
    return CredentialStatus.ACTIVE.value


def severity_for_days(days: int) -> AlertSeverity:
    if days < 0:
        return AlertSeverity.CRITICAL
    if days <= 7:
        return AlertSeverity.HIGH
    if days <= 30:
        return AlertSeverity.WARNING
    return AlertSeverity.INFO


def alert_type_for_days(days: int) -> CredentialAlertType:
    if days < 0:
        return CredentialAlertType.EXPIRED
    if days <= 7:
        return CredentialAlertType.EXPIRING_7_DAYS
    if days <= 30:
        return CredentialAlertType.EXPIRING_30_DAYS
    if days <= 60:
        return CredentialAlertType.EXPIRING_60_DAYS
    return CredentialAlertType.EXPIRING_SOON


def notification_event_for_days(days: int) -> Optional[NotificationEventType]:
    """Notification to send, or None beyond 60 days."""
    if days < 0:
        return NotificationEventType.CREDENTIAL_EXPIRED
    if days <= 7:
        return NotificationEventType.CREDENTIAL_EXPIRING_7_DAYS
    if days <= 30:
        return NotificationEventType.CREDENTIAL_EXPIRING_30_DAYS
    if days <= 60:
        return NotificationEventType.CREDENTIAL_EXPIRING_60_DAYS
    return None


def message_for_days(days: int, credential_name: str, caregiver_name: str) -> str:
    if days < 0:
        return f"{credential_name} for {caregiver_name} has expired"
    if days == 0:
        return f"{credential_name} for {caregiver_name} expires today"
    if days == 1:
        return f"{credential_name} for {caregiver_name} expires tomorrow"
    return f"{credential_name} for {caregiver_name} expires in {days} days"


def due_reminder_thresholds(days: int, reminder_days: Iterable[int], already_sent: Iterable[int]) -> List[int]:
    """
    Thresholds whose one-week firing window contains today.

    A threshold d fires when d - 7 < days <= d and d has not been sent.
    Expired credentials get no reminders; they get the expiry alert instead.
    """
    if days < 0:
        return []
    sent = set(already_sent or [])
    return [
        d for d in sorted(set(reminder_days or []), reverse=True)
        if d - REMINDER_WINDOW_DAYS < days <= d and d not in sent
    ]
