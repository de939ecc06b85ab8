"""EVV Report Repository Layer"""
from uuid import UUID
from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import and_, or_, select

from evv_service.db.models import Client, Shift, ShiftStatus, User
from evv_service.db.repository import BaseRepository

ShiftRow = Tuple[Shift, Client, User]


class EVVReportRepository(BaseRepository):
    """Read-only shift queries for the EVV dashboard and reports"""

    def _shift_rows(self):
        return (
            select(Shift, Client, User)
            .join(Client, Shift.client_id == Client.id)
            .join(User, Shift.carer_id == User.id)
        )

    async def list_active_shifts(self, company_id: UUID) -> List[ShiftRow]:
        """In-progress shifts, most recently started first"""
        stmt = self._shift_rows().where(
            Shift.company_id == company_id,
            Shift.status == ShiftStatus.IN_PROGRESS.value,
        ).order_by(Shift.actual_start.desc())
        result = await self.db.execute(stmt)
        return [tuple(row) for row in result.all()]

    async def list_completed_shifts(
        self,
        company_id: UUID,
        ended_from: datetime,
        ended_before: datetime,
        carer_id: Optional[UUID] = None,
        client_id: Optional[UUID] = None,
    ) -> List[ShiftRow]:
        """Completed shifts with actual_end in [ended_from, ended_before), latest first"""
        conditions = [
            Shift.company_id == company_id,
            Shift.status == ShiftStatus.COMPLETED.value,
            Shift.actual_end >= ended_from,
            Shift.actual_end < ended_before,
        ]
        if carer_id:
            conditions.append(Shift.carer_id == carer_id)
        if client_id:
            conditions.append(Shift.client_id == client_id)

        stmt = self._shift_rows().where(*conditions).order_by(Shift.actual_end.desc())
        result = await self.db.execute(stmt)
        return [tuple(row) for row in result.all()]

    async def list_recent_shifts(self, company_id: UUID, since: datetime) -> List[ShiftRow]:
        """In-progress shifts plus shifts completed since the given time"""
        stmt = self._shift_rows().where(
            Shift.company_id == company_id,
            or_(
                Shift.status == ShiftStatus.IN_PROGRESS.value,
                and_(Shift.status == ShiftStatus.COMPLETED.value, Shift.actual_end >= since),
            ),
        ).order_by(Shift.updated_at.desc())
        result = await self.db.execute(stmt)
        return [tuple(row) for row in result.all()]
