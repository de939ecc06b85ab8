from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from evv_service.audit.repository import AuditLogRepository
from evv_service.auth.middleware import verify_cron_secret
from evv_service.db.postgres import get_db
from evv_service.notifications.dispatcher import build_notification_dispatcher
from evv_service.reminders.repository import ShiftReminderRepository
from evv_service.reminders.schemas import ShiftReminderResponse
from evv_service.reminders.service import ShiftReminderService
from evv_service.utils.clock import utcnow


def get_shift_reminder_service(db: AsyncSession = Depends(get_db)) -> ShiftReminderService:
    """Dependency to get ShiftReminderService"""
    return ShiftReminderService(
        repository=ShiftReminderRepository(db),
        audit=AuditLogRepository(db),
        notifier=build_notification_dispatcher(db),
    )


router = APIRouter(
    prefix="/cron",
    tags=["cron"],
)


@router.get(
    "/shift-reminders",
    response_model=ShiftReminderResponse,
    response_model_by_alias=True,
    dependencies=[Depends(verify_cron_secret)],
)
async def send_shift_reminders(
    service: ShiftReminderService = Depends(get_shift_reminder_service),
):
    """
    Upcoming shift reminders, called by the scheduler every 15 minutes.

    Workflow:
    1. Finds SCHEDULED shifts starting within the next 25 hours
    2. Marks the 24h reminder for shifts starting in 23h45m-24h15m and the
       1h reminder for shifts starting in 45-75 minutes, once per shift
    3. Notifies the carer after each company commits

    Requires Authorization: Bearer $CRON_SECRET
    """
    results = await service.send_shift_reminders()
    return ShiftReminderResponse(timestamp=utcnow(), results=results)
