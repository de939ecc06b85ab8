"""Validation logic for shift attendance"""
from uuid import UUID
from typing import Optional

from evv_service.attendance.exceptions import (
    AlreadyCheckedInException,
    AlreadyCheckedOutException,
    NotCheckedInException,
    ShiftClosedException,
    ShiftNotFoundException,
    UnauthorizedCaregiverException,
)
from evv_service.db.models import Shift, ShiftAttendance, ShiftStatus


CLOSED_STATUSES = (ShiftStatus.COMPLETED.value, ShiftStatus.CANCELLED.value)


class AttendanceValidator:
    """Check-in/check-out preconditions, evaluated before any write"""

    def validate_shift_exists(self, shift: Optional[Shift], shift_id: UUID) -> Shift:
        if shift is None:
            raise ShiftNotFoundException(str(shift_id))
        return shift

    def validate_caregiver_assignment(self, shift: Shift, carer_id: UUID) -> None:
        """Only the assigned caregiver may check in or out"""
        if shift.carer_id != carer_id:
            raise UnauthorizedCaregiverException()

    def validate_shift_open(self, shift: Shift, action: str) -> None:
        """Completed and cancelled shifts accept no further attendance"""
        if shift.status in CLOSED_STATUSES:
            raise ShiftClosedException(shift.status, action)

    def validate_can_check_in(self, attendance: Optional[ShiftAttendance]) -> None:
        if attendance is not None and attendance.check_in_time is not None:
            raise AlreadyCheckedInException()

    def validate_can_check_out(self, attendance: Optional[ShiftAttendance]) -> ShiftAttendance:
        if attendance is None or attendance.check_in_time is None:
            raise NotCheckedInException()
        if attendance.check_out_time is not None:
            raise AlreadyCheckedOutException()
        return attendance
