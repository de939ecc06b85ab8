from uuid import UUID
from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from evv_service.attendance.repository import AttendanceRepository
from evv_service.attendance.schemas import (
    CheckInOutResponse,
    CheckInRequest,
    CheckOutRequest,
    LocationInput,
    ShiftAttendanceResponse,
)
from evv_service.attendance.service import AttendanceService
from evv_service.audit.repository import AuditLogRepository
from evv_service.auth.middleware import JWTPayload, verify_token, check_permission
from evv_service.db.postgres import get_db
from evv_service.evv.geofence import LocationReading
from evv_service.notifications.dispatcher import build_notification_dispatcher

STAFF_ROLES = ("SUPERVISOR", "SCHEDULER", "OPS_MANAGER", "ADMIN")


def get_attendance_service(db: AsyncSession = Depends(get_db)) -> AttendanceService:
    """Dependency to get AttendanceService"""
    return AttendanceService(
        repository=AttendanceRepository(db),
        audit=AuditLogRepository(db),
        notifier=build_notification_dispatcher(db),
    )


router = APIRouter(
    prefix="/check-in",
    tags=["attendance"],
)


def _to_reading(location: LocationInput | None) -> LocationReading | None:
    if location is None:
        return None
    return LocationReading(
        latitude=location.latitude,
        longitude=location.longitude,
        accuracy=location.accuracy,
    )


@router.post("/{shift_id}/check-in", response_model=CheckInOutResponse, response_model_by_alias=True)
async def check_in(
    shift_id: UUID,
    request: CheckInRequest | None = None,
    user_agent: str | None = Header(None),
    service: AttendanceService = Depends(get_attendance_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Check in to a shift for today.

    Workflow:
    1. Validates the caller is the assigned caregiver and the shift is open
    2. Rejects a second check-in on the same day (409)
    3. Validates the location against the client's geofence when provided
    4. Starts the shift on its first-ever check-in

    Required permission: shift:check-in (CARER role)
    """
    check_permission(jwt_payload, "shift:check-in")

    return await service.check_in(
        shift_id=shift_id,
        carer_id=jwt_payload.user_id,
        company_id=jwt_payload.company_id,
        reading=_to_reading(request.location if request else None),
        user_agent=user_agent,
    )


@router.post("/{shift_id}/check-out", response_model=CheckInOutResponse, response_model_by_alias=True)
async def check_out(
    shift_id: UUID,
    request: CheckOutRequest | None = None,
    user_agent: str | None = Header(None),
    service: AttendanceService = Depends(get_attendance_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Check out of a shift for today.

    Workflow:
    1. Validates the caller is the assigned caregiver and the shift is open
    2. Requires today's check-in and no check-out yet
    3. Validates the location against the client's geofence when provided
    4. Completes the shift on the final day (isFinalDay, or the scheduled end date)

    Required permission: shift:check-in (CARER role)
    """
    check_permission(jwt_payload, "shift:check-in")

    return await service.check_out(
        shift_id=shift_id,
        carer_id=jwt_payload.user_id,
        company_id=jwt_payload.company_id,
        reading=_to_reading(request.location if request else None),
        user_agent=user_agent,
        is_final_day=request.is_final_day if request else None,
    )


@router.get("/{shift_id}", response_model=ShiftAttendanceResponse, response_model_by_alias=True)
async def get_shift_attendance(
    shift_id: UUID,
    service: AttendanceService = Depends(get_attendance_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Get a shift with its per-day attendance history.

    Carers only see their own shifts.

    Required permission: shift:read
    """
    check_permission(jwt_payload, "shift:read")

    carer_id = None if jwt_payload.has_role(*STAFF_ROLES) else jwt_payload.user_id
    return await service.get_shift_attendance(shift_id, jwt_payload.company_id, carer_id)
