from uuid import UUID
from datetime import date
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from evv_service.audit.repository import AuditLogRepository
from evv_service.auth.middleware import JWTPayload, verify_token, check_permission
from evv_service.db.postgres import get_db
from evv_service.scheduling.exceptions import InvalidBulkScheduleException
from evv_service.scheduling.repository import ScheduleRepository
from evv_service.scheduling.schemas import (
    HHMM,
    BulkSchedulePreview,
    BulkScheduleRequest,
    BulkScheduleResult,
)
from evv_service.scheduling.service import BulkScheduleService


def get_bulk_schedule_service(db: AsyncSession = Depends(get_db)) -> BulkScheduleService:
    """Dependency to get BulkScheduleService"""
    return BulkScheduleService(ScheduleRepository(db), AuditLogRepository(db))


router = APIRouter(
    prefix="/scheduling",
    tags=["scheduling"],
)


def _parse_selected_days(raw: str) -> list[int]:
    try:
        days = [int(part) for part in raw.split(",") if part.strip()]
    except ValueError:
        raise InvalidBulkScheduleException("selectedDays must be a comma-separated list of 0-6", "selectedDays")
    if not days or any(d < 0 or d > 6 for d in days):
        raise InvalidBulkScheduleException("selectedDays must be a comma-separated list of 0-6", "selectedDays")
    return days


@router.post(
    "/bulk",
    response_model=BulkScheduleResult,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_bulk_shifts(
    request: BulkScheduleRequest,
    service: BulkScheduleService = Depends(get_bulk_schedule_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Create recurring shifts for a caregiver and client.

    Workflow:
    1. Expands selectedDays x numberOfWeeks into dates from startDate
    2. Checks each date for an overlapping shift of the caregiver
    3. Creates all non-conflicting shifts in one transaction; with
       skipConflicts=false any conflict aborts the batch
    4. Writes one audit entry for the whole batch

    Required permission: scheduling:manage (SCHEDULER, OPS_MANAGER, ADMIN roles)
    """
    check_permission(jwt_payload, "scheduling:manage")

    return await service.create_bulk_shifts(
        company_id=jwt_payload.company_id,
        user_id=jwt_payload.user_id,
        request=request,
    )


@router.get("/bulk", response_model=BulkSchedulePreview, response_model_by_alias=True)
async def preview_bulk_shifts(
    client_id: UUID = Query(..., alias="clientId"),
    carer_id: UUID = Query(..., alias="carerId"),
    start_date: date = Query(..., alias="startDate"),
    number_of_weeks: int = Query(1, alias="numberOfWeeks", ge=1, le=12),
    selected_days: str = Query(..., alias="selectedDays", description="Comma-separated, 0=Sunday..6=Saturday"),
    start_time: str = Query("09:00", alias="startTime", pattern=HHMM),
    end_time: str = Query("17:00", alias="endTime", pattern=HHMM),
    service: BulkScheduleService = Depends(get_bulk_schedule_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Preview a bulk create: per-date conflict flags and authorization projection.

    Read-only. Required permission: scheduling:manage
    """
    check_permission(jwt_payload, "scheduling:manage")

    request = BulkScheduleRequest(
        client_id=client_id,
        carer_id=carer_id,
        start_date=start_date,
        number_of_weeks=number_of_weeks,
        selected_days=_parse_selected_days(selected_days),
        start_time=start_time,
        end_time=end_time,
    )
    return await service.preview_bulk_schedule(jwt_payload.company_id, request)
