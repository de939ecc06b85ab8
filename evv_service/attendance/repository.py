"""Shift Attendance Repository Layer"""
from uuid import UUID, uuid4
from datetime import datetime
from typing import List, Optional
from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert

from evv_service.db.models import Client, Shift, ShiftAttendance, User
from evv_service.db.repository import BaseRepository


class AttendanceRepository(BaseRepository):
    """Repository for shift and per-day attendance records"""

    async def get_shift(self, shift_id: UUID, company_id: UUID) -> Optional[Shift]:
        """Get a shift scoped to the caller's company"""
        stmt = select(Shift).where(Shift.id == shift_id, Shift.company_id == company_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_client(self, client_id: UUID) -> Optional[Client]:
        result = await self.db.execute(select(Client).where(Client.id == client_id))
        return result.scalar_one_or_none()

    async def get_user(self, user_id: UUID) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_attendance(self, shift_id: UUID, day: datetime) -> Optional[ShiftAttendance]:
        """Attendance for one (shift, UTC day)"""
        stmt = select(ShiftAttendance).where(
            ShiftAttendance.shift_id == shift_id,
            ShiftAttendance.date == day,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_open_attendance(self, shift_id: UUID) -> Optional[ShiftAttendance]:
        """Latest attendance checked in but not yet checked out"""
        stmt = select(ShiftAttendance).where(
            ShiftAttendance.shift_id == shift_id,
            ShiftAttendance.check_in_time.is_not(None),
            ShiftAttendance.check_out_time.is_(None),
        ).order_by(ShiftAttendance.date.desc()).limit(1)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_attendance(self, shift_id: UUID) -> List[ShiftAttendance]:
        """All attendance days for a shift, oldest first"""
        stmt = select(ShiftAttendance).where(
            ShiftAttendance.shift_id == shift_id
        ).order_by(ShiftAttendance.date.asc())
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def upsert_check_in(self, shift_id: UUID, day: datetime, when: datetime) -> Optional[ShiftAttendance]:
        """
        Record today's check-in by natural key (shift_id, date).

        The update branch only fires while check_in_time is still NULL, so of
        two racing check-ins exactly one gets a row back; the other gets None.
        """
        stmt = insert(ShiftAttendance).values(
            id=uuid4(),
            shift_id=shift_id,
            date=day,
            check_in_time=when,
            created_at=when,
            updated_at=when,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[ShiftAttendance.shift_id, ShiftAttendance.date],
            set_={"check_in_time": when, "updated_at": when},
            where=ShiftAttendance.check_in_time.is_(None),
        ).returning(ShiftAttendance)
        result = await self.db.execute(stmt, execution_options={"populate_existing": True})
        return result.scalars().one_or_none()

    async def record_check_out(self, attendance_id: UUID, when: datetime) -> Optional[ShiftAttendance]:
        """Set check_out_time unless already set; None when another check-out won"""
        stmt = (
            update(ShiftAttendance)
            .where(
                ShiftAttendance.id == attendance_id,
                ShiftAttendance.check_out_time.is_(None),
            )
            .values(check_out_time=when, updated_at=when)
            .returning(ShiftAttendance)
        )
        result = await self.db.execute(stmt, execution_options={"populate_existing": True})
        return result.scalars().one_or_none()

    async def save_shift(self, shift: Shift) -> Shift:
        """Flush shift changes into the current transaction"""
        self.db.add(shift)
        await self.db.flush()
        return shift
