from uuid import UUID
from datetime import datetime
from pydantic import Field

from evv_service.evv.geofence import EVVStatus
from evv_service.evv.location import EVVLocationData
from evv_service.utils.schemas import CamelModel


class LocationInput(CamelModel):
    """GPS reading sent by the caregiver's device"""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy: float = Field(0, ge=0)


class CheckInRequest(CamelModel):
    location: LocationInput | None = None


class CheckOutRequest(CamelModel):
    location: LocationInput | None = None
    is_final_day: bool | None = None


class ShiftResponse(CamelModel):
    """Shift with its decoded EVV locations"""
    id: UUID
    company_id: UUID
    carer_id: UUID
    client_id: UUID
    scheduled_start: datetime
    scheduled_end: datetime
    actual_start: datetime | None = None
    actual_end: datetime | None = None
    status: str  # SCHEDULED | IN_PROGRESS | COMPLETED | CANCELLED
    check_in_location: EVVLocationData | None = None
    check_out_location: EVVLocationData | None = None


class AttendanceResponse(CamelModel):
    id: UUID
    shift_id: UUID
    date: datetime
    check_in_time: datetime | None = None
    check_out_time: datetime | None = None


class CheckInOutResponse(CamelModel):
    """Result of a check-in or check-out with the EVV verdict"""
    shift: ShiftResponse
    attendance: AttendanceResponse
    evv_status: EVVStatus
    evv_is_within_geofence: bool | None = None
    distance_from_client: int | None = None
    evv_message: str


class ShiftAttendanceResponse(CamelModel):
    """Shift with its per-day attendance history"""
    shift: ShiftResponse
    attendance: list[AttendanceResponse]
