"""Scheduling Repository Layer"""
from uuid import UUID
from datetime import datetime
from typing import Optional
from sqlalchemy import select, text

from evv_service.db.models import (
    Authorization,
    AuthorizationStatus,
    Client,
    Shift,
    ShiftStatus,
    User,
)
from evv_service.db.repository import BaseRepository

BLOCKING_STATUSES = [ShiftStatus.SCHEDULED.value, ShiftStatus.IN_PROGRESS.value]


class ScheduleRepository(BaseRepository):
    """Repository for shift creation, conflict lookups and authorizations"""

    async def find_company_client(self, company_id: UUID, client_id: UUID) -> Optional[Client]:
        stmt = select(Client).where(Client.id == client_id, Client.company_id == company_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_company_carer(self, company_id: UUID, carer_id: UUID) -> Optional[User]:
        stmt = select(User).where(
            User.id == carer_id,
            User.company_id == company_id,
            User.is_active.is_(True),
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def lock_caregiver_schedule(self, carer_id: UUID) -> None:
        """Serialize bulk writes per caregiver until the transaction ends"""
        await self.db.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
            {"key": f"schedule:{carer_id}"},
        )

    async def find_conflicting_shift(
        self,
        company_id: UUID,
        carer_id: UUID,
        start: datetime,
        end: datetime,
    ) -> Optional[Shift]:
        """First scheduled/in-progress shift of the carer overlapping [start, end)"""
        stmt = select(Shift).where(
            Shift.company_id == company_id,
            Shift.carer_id == carer_id,
            Shift.status.in_(BLOCKING_STATUSES),
            Shift.scheduled_start < end,
            Shift.scheduled_end > start,
        ).order_by(Shift.scheduled_start.asc()).limit(1)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_active_authorization(
        self,
        company_id: UUID,
        client_id: UUID,
        as_of: datetime,
    ) -> Optional[Authorization]:
        """Active authorization covering as_of, soonest-ending first"""
        stmt = select(Authorization).where(
            Authorization.company_id == company_id,
            Authorization.client_id == client_id,
            Authorization.status == AuthorizationStatus.ACTIVE.value,
            Authorization.start_date <= as_of,
            Authorization.end_date >= as_of,
        ).order_by(Authorization.end_date.asc()).limit(1)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def create_shift(
        self,
        company_id: UUID,
        carer_id: UUID,
        client_id: UUID,
        scheduled_start: datetime,
        scheduled_end: datetime,
    ) -> Shift:
        """Stage a SCHEDULED shift in the current transaction"""
        shift = Shift(
            company_id=company_id,
            carer_id=carer_id,
            client_id=client_id,
            scheduled_start=scheduled_start,
            scheduled_end=scheduled_end,
            status=ShiftStatus.SCHEDULED.value,
        )
        self.db.add(shift)
        await self.db.flush()
        return shift
