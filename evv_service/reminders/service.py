import logging
import math
from uuid import UUID
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, NamedTuple, Tuple

from evv_service.audit.repository import AuditLogRepository
from evv_service.db.models import Client, Shift
from evv_service.notifications.dispatcher import NotificationDispatcher
from evv_service.notifications.events import NotificationEventType
from evv_service.reminders.repository import ShiftReminderRepository
from evv_service.reminders.schemas import ShiftReminderResults
from evv_service.utils.clock import Clock, utcnow
from evv_service.utils.timezone import format_date, format_time

logger = logging.getLogger(__name__)

LOOKAHEAD = timedelta(hours=25)


class ReminderWindow(NamedTuple):
    minutes: int  # marker stored in reminders_sent_minutes
    earliest: int  # minutes before the shift starts, inclusive
    latest: int
    event_type: NotificationEventType


REMINDER_24H = ReminderWindow(1440, 1425, 1455, NotificationEventType.SHIFT_REMINDER_24H)
REMINDER_1H = ReminderWindow(60, 45, 75, NotificationEventType.SHIFT_REMINDER_1H)
REMINDER_WINDOWS = [REMINDER_24H, REMINDER_1H]


class PendingReminder(NamedTuple):
    window: ReminderWindow
    carer_id: UUID
    data: Dict[str, Any]


def minutes_until(start: datetime, now: datetime) -> int:
    """Whole minutes until start, rounded down"""
    return math.floor((start - now).total_seconds() / 60)


def due_reminders(minutes_until_start: int, already_sent: Iterable[int]) -> List[ReminderWindow]:
    sent = set(already_sent or [])
    return [
        window for window in REMINDER_WINDOWS
        if window.earliest <= minutes_until_start <= window.latest and window.minutes not in sent
    ]


class ShiftReminderService:
    """
    Reminds carers of their SCHEDULED shifts 24 hours and 1 hour ahead.

    Runs every 15 minutes. Each window is 30 minutes wide, so a shift lands
    in it on at least one run; reminders_sent_minutes stops the next run in
    the same window from sending again. Each company is processed in its own
    transaction and its reminders are enqueued after it commits.
    """

    def __init__(
        self,
        repository: ShiftReminderRepository,
        audit: AuditLogRepository,
        notifier: NotificationDispatcher,
        clock: Clock = utcnow,
    ):
        self.repository = repository
        self.audit = audit
        self.notifier = notifier
        self.clock = clock

    async def send_shift_reminders(self) -> ShiftReminderResults:
        results = ShiftReminderResults()
        companies = [(c.id, c.name) for c in await self.repository.list_active_companies()]

        for company_id, company_name in companies:
            try:
                checked, pending = await self._check_company(company_id)
            except Exception as e:
                logger.error(f"Shift reminders failed for company {company_name}: {e}")
                results.errors.append(f"Company {company_name}: {e}")
                continue

            results.shifts_checked += checked
            for reminder in pending:
                if reminder.window == REMINDER_24H:
                    results.reminders_24h_sent += 1
                else:
                    results.reminders_1h_sent += 1
                await self.notifier.send_notification(
                    reminder.window.event_type, company_id, [reminder.carer_id], reminder.data
                )

        logger.info(
            f"Shift reminders: {results.shifts_checked} shifts checked, "
            f"{results.reminders_24h_sent} 24h and {results.reminders_1h_sent} 1h reminders, "
            f"{len(results.errors)} company error(s)"
        )
        return results

    async def _check_company(self, company_id: UUID) -> Tuple[int, List[PendingReminder]]:
        now = self.clock()
        pending: List[PendingReminder] = []

        async with self.repository.transaction():
            rows = await self.repository.list_upcoming_shifts(company_id, now, now + LOOKAHEAD)
            for shift, carer, client in rows:
                minutes = minutes_until(shift.scheduled_start, now)
                for window in due_reminders(minutes, shift.reminders_sent_minutes):
                    await self.repository.mark_reminder_sent(shift, window.minutes)
                    await self.audit.add_audit_log(
                        company_id=company_id,
                        user_id=carer.id,
                        action=f"{window.event_type.value}_SENT",
                        entity_type="Shift",
                        entity_id=str(shift.id),
                        changes={
                            "scheduledStart": shift.scheduled_start.isoformat(),
                            "clientName": client.full_name,
                        },
                    )
                    pending.append(PendingReminder(window, carer.id, reminder_data(window, shift, client)))

        return len(rows), pending


def reminder_data(window: ReminderWindow, shift: Shift, client: Client) -> Dict[str, Any]:
    data = {
        "shiftId": str(shift.id),
        "clientName": client.full_name,
        "shiftTime": format_time(shift.scheduled_start),
        "address": client.address or "Address not specified",
    }
    if window == REMINDER_24H:
        data["shiftDate"] = format_date(shift.scheduled_start)
    return data
