import logging
from uuid import UUID
from datetime import datetime, timedelta
from typing import Any, Dict, List, NamedTuple

from evv_service.audit.repository import AuditLogRepository
from evv_service.credentials.alerts import (
    CredentialAlertType,
    AlertSeverity,
    alert_type_for_days,
    days_until_expiration,
    due_reminder_thresholds,
    expected_status,
    message_for_days,
    notification_event_for_days,
    severity_for_days,
)
from evv_service.credentials.repository import CredentialRepository
from evv_service.credentials.schemas import CredentialAlertResponse, CredentialSweepResults
from evv_service.db.models import CaregiverCredential, CredentialStatus, CredentialType, User
from evv_service.notifications.dispatcher import NotificationDispatcher
from evv_service.notifications.events import NotificationEventType
from evv_service.utils.clock import Clock, utcnow
from evv_service.utils.timezone import format_date

logger = logging.getLogger(__name__)

ADMIN_ROLES = ["ADMIN", "OPS_MANAGER"]
REMINDER_DEDUP_WINDOW = timedelta(hours=24)
EXPIRED_DEDUP_WINDOW = timedelta(days=7)


class CompanyRef(NamedTuple):
    """Plain copy of a company row; survives a session rollback"""
    id: UUID
    name: str


class PendingNotification(NamedTuple):
    event_type: NotificationEventType
    caregiver_id: UUID
    data: Dict[str, Any]


class CompanySweep:
    """Counters and queued notifications for one company's run"""

    def __init__(self):
        self.checked = 0
        self.status_updated = 0
        self.alerts_created = 0
        self.notifications: List[PendingNotification] = []


class CredentialAlertService:
    """
    Daily credential expiry sweep.

    Safe to re-run: reminder thresholds are recorded on the credential
    (reminders_sent_days, expired_alert_sent) and alerts are additionally
    deduplicated by type over 24 hours (reminders) or 7 days (expiry).
    Each company is processed in its own transaction; a failing company is
    rolled back and reported in ``errors`` without stopping the sweep.
    """

    def __init__(
        self,
        repository: CredentialRepository,
        audit: AuditLogRepository,
        notifier: NotificationDispatcher,
        clock: Clock = utcnow,
    ):
        self.repository = repository
        self.audit = audit
        self.notifier = notifier
        self.clock = clock

    async def check_all_credentials(self) -> CredentialSweepResults:
        """Run the sweep over every active company"""
        results = CredentialSweepResults()

        companies = [CompanyRef(c.id, c.name) for c in await self.repository.list_active_companies()]

        for company in companies:
            try:
                sweep = await self._check_company(company)
            except Exception as e:
                logger.error(f"Credential sweep failed for company {company.name}: {e}")
                results.errors.append(f"Company {company.name}: {e}")
                continue

            results.credentials_checked += sweep.checked
            results.status_updated += sweep.status_updated
            results.alerts_created += sweep.alerts_created
            await self._send_notifications(company, sweep.notifications)

        logger.info(
            f"Credential sweep: {results.credentials_checked} checked, "
            f"{results.status_updated} status updates, {results.alerts_created} alerts, "
            f"{len(results.errors)} company error(s)"
        )
        return results

    async def _check_company(self, company: CompanyRef) -> CompanySweep:
        sweep = CompanySweep()
        now = self.clock()

        async with self.repository.transaction():
            rows = await self.repository.list_company_credentials(company.id)
            sweep.checked = len(rows)
            for credential, credential_type, caregiver in rows:
                await self._check_credential(company, credential, credential_type, caregiver, now, sweep)

        return sweep

    async def _check_credential(
        self,
        company: CompanyRef,
        credential: CaregiverCredential,
        credential_type: CredentialType,
        caregiver: User,
        now: datetime,
        sweep: CompanySweep,
    ) -> None:
        days = days_until_expiration(credential.expiration_date, now)

        status = expected_status(credential.status, days, credential_type.reminder_days)
        if status != credential.status:
            await self.repository.update_credential(credential, status=status)
            sweep.status_updated += 1

        if credential.status == CredentialStatus.REVOKED.value:
            return

        caregiver_name = caregiver.full_name
        sent = list(credential.reminders_sent_days or [])

        for threshold in due_reminder_thresholds(days, credential_type.reminder_days, sent):
            alert_type = alert_type_for_days(days)
            if await self.repository.find_recent_alert(credential.id, alert_type.value, now - REMINDER_DEDUP_WINDOW):
                continue

            severity = severity_for_days(days)
            await self.repository.create_alert(
                company_id=company.id,
                credential_id=credential.id,
                alert_type=alert_type.value,
                severity=severity.value,
                message=message_for_days(days, credential_type.name, caregiver_name),
                created_at=now,
            )
            sent = sent + [threshold]
            await self.repository.update_credential(credential, reminders_sent_days=sent, last_reminder_sent=now)
            sweep.alerts_created += 1

            await self._audit_alert(company, credential, credential_type, caregiver, alert_type, severity, {
                "daysUntilExpiration": days,
                "reminderDay": threshold,
            })

            event_type = notification_event_for_days(days)
            if event_type:
                sweep.notifications.append(PendingNotification(event_type, caregiver.id, {
                    "carerName": caregiver_name,
                    "credentialName": credential_type.name,
                    "expirationDate": format_date(credential.expiration_date),
                    "daysRemaining": str(days),
                }))

        if days < 0 and not credential.expired_alert_sent:
            expired = CredentialAlertType.EXPIRED
            if await self.repository.find_recent_alert(credential.id, expired.value, now - EXPIRED_DEDUP_WINDOW):
                return

            await self.repository.create_alert(
                company_id=company.id,
                credential_id=credential.id,
                alert_type=expired.value,
                severity=AlertSeverity.CRITICAL.value,
                message=message_for_days(days, credential_type.name, caregiver_name),
                created_at=now,
            )
            await self.repository.update_credential(credential, expired_alert_sent=True)
            sweep.alerts_created += 1

            await self._audit_alert(company, credential, credential_type, caregiver, expired, AlertSeverity.CRITICAL, {})
            sweep.notifications.append(PendingNotification(NotificationEventType.CREDENTIAL_EXPIRED, caregiver.id, {
                "carerName": caregiver_name,
                "credentialName": credential_type.name,
                "expirationDate": format_date(credential.expiration_date),
            }))

    async def _audit_alert(
        self,
        company: CompanyRef,
        credential: CaregiverCredential,
        credential_type: CredentialType,
        caregiver: User,
        alert_type: CredentialAlertType,
        severity: AlertSeverity,
        extra: Dict[str, Any],
    ) -> None:
        await self.audit.add_audit_log(
            company_id=company.id,
            user_id=caregiver.id,
            action=f"CREDENTIAL_{alert_type.value}",
            entity_type="CaregiverCredential",
            entity_id=str(credential.id),
            changes={
                "credentialType": credential_type.name,
                "expirationDate": credential.expiration_date.isoformat(),
                "severity": severity.value,
                **extra,
            },
        )

    async def _send_notifications(self, company: CompanyRef, pending: List[PendingNotification]) -> None:
        """Enqueue the company's notifications once its transaction has committed"""
        if not pending:
            return
        admin_ids = await self.notifier.resolve_role_recipients(company.id, ADMIN_ROLES)
        for notification in pending:
            await self.notifier.send_notification(
                notification.event_type,
                company.id,
                [notification.caregiver_id, *admin_ids],
                notification.data,
            )

    async def list_alerts(self, company_id: UUID, limit: int = 50) -> List[CredentialAlertResponse]:
        """Company's most recent credential alerts"""
        alerts = await self.repository.list_alerts(company_id, limit)
        return [CredentialAlertResponse.model_validate(a) for a in alerts]
