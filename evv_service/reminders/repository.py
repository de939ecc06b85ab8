"""Shift Reminder Repository Layer"""
from uuid import UUID
from datetime import datetime
from typing import List, Tuple
from sqlalchemy import select

from evv_service.db.models import Client, Company, Shift, ShiftStatus, User
from evv_service.db.repository import BaseRepository

UpcomingShift = Tuple[Shift, User, Client]


class ShiftReminderRepository(BaseRepository):
    """Repository for upcoming shifts and their sent-reminder markers"""

    async def list_active_companies(self) -> List[Company]:
        stmt = select(Company).where(Company.is_active.is_(True)).order_by(Company.name.asc())
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_upcoming_shifts(
        self,
        company_id: UUID,
        start_from: datetime,
        start_until: datetime,
    ) -> List[UpcomingShift]:
        """SCHEDULED shifts starting in [start_from, start_until], with carer and client"""
        stmt = (
            select(Shift, User, Client)
            .join(User, Shift.carer_id == User.id)
            .join(Client, Shift.client_id == Client.id)
            .where(
                Shift.company_id == company_id,
                Shift.status == ShiftStatus.SCHEDULED.value,
                Shift.scheduled_start >= start_from,
                Shift.scheduled_start <= start_until,
            )
            .order_by(Shift.scheduled_start.asc())
        )
        result = await self.db.execute(stmt)
        return [tuple(row) for row in result.all()]

    async def mark_reminder_sent(self, shift: Shift, minutes: int) -> Shift:
        shift.reminders_sent_minutes = list(shift.reminders_sent_minutes or []) + [minutes]
        self.db.add(shift)
        await self.db.flush()
        return shift
