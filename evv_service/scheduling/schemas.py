from uuid import UUID
from datetime import date, datetime
from typing import Annotated
from pydantic import Field, field_validator

from evv_service.utils.schemas import CamelModel

HHMM = r"^\d{2}:\d{2}$"
Weekday = Annotated[int, Field(ge=0, le=6)]


class BulkScheduleRequest(CamelModel):
    """Recurrence rule for a batch of shifts (times are agency-local)"""
    client_id: UUID
    carer_id: UUID
    start_date: date
    number_of_weeks: int = Field(..., ge=1, le=12)
    selected_days: list[Weekday] = Field(..., min_length=1)  # 0=Sunday..6=Saturday
    start_time: str = Field(..., pattern=HHMM)
    end_time: str = Field(..., pattern=HHMM)
    skip_conflicts: bool = False

    @field_validator("selected_days")
    @classmethod
    def dedupe_days(cls, value: list[int]) -> list[int]:
        return sorted(set(value))


class BulkShiftItem(CamelModel):
    id: UUID
    scheduled_start: datetime
    scheduled_end: datetime


class SkippedDate(CamelModel):
    date: date
    reason: str


class ShiftConflict(CamelModel):
    date: date
    existing_shift_id: UUID
    existing_start: datetime | None = None
    existing_end: datetime | None = None


class BulkScheduleResult(CamelModel):
    """Outcome of a committed bulk create"""
    success: bool = True
    created: int
    skipped: int
    shifts: list[BulkShiftItem]
    skipped_dates: list[SkippedDate]
    conflicts: list[ShiftConflict]
    total_hours: float
    total_units_consumed: float | None = None


class PreviewShift(CamelModel):
    date: date
    scheduled_start: datetime
    scheduled_end: datetime
    has_conflict: bool
    hours: float


class AuthorizationProjection(CamelModel):
    """Client's active authorization and its balance after the batch"""
    id: UUID
    auth_number: str | None = None
    authorized_units: float
    used_units: float
    remaining_units: float
    unit_type: str
    end_date: datetime
    has_insufficient_units: bool
    units_after_creation: float


class BulkSchedulePreview(CamelModel):
    """Read-only projection of a bulk create"""
    valid: bool
    shifts: list[PreviewShift]
    total_shifts: int
    shifts_to_create: int
    total_hours: float
    hours_per_shift: float
    units_to_consume: float
    authorization: AuthorizationProjection | None = None
    conflicts: list[ShiftConflict]
