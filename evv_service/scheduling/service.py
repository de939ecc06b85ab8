import logging
from uuid import UUID
from datetime import date, datetime
from typing import List, NamedTuple, Optional

from evv_service.audit.repository import AuditLogRepository
from evv_service.db.models import Authorization
from evv_service.scheduling.bulk import (
    calculate_bulk_units,
    calculate_hours_between,
    combine_date_time,
    generate_bulk_dates,
    parse_time,
)
from evv_service.scheduling.exceptions import (
    CarerNotFoundException,
    ClientNotFoundException,
    InvalidBulkScheduleException,
    ScheduleConflictException,
)
from evv_service.scheduling.repository import ScheduleRepository
from evv_service.scheduling.schemas import (
    AuthorizationProjection,
    BulkSchedulePreview,
    BulkScheduleRequest,
    BulkScheduleResult,
    BulkShiftItem,
    PreviewShift,
    ShiftConflict,
    SkippedDate,
)
from evv_service.utils.clock import Clock, utcnow
from evv_service.utils.timezone import convert_to_agency_time

logger = logging.getLogger(__name__)

CONFLICT_REASON = "Carer has a conflicting shift"


class ShiftWindow(NamedTuple):
    day: date
    start: datetime
    end: datetime


class BulkPlan(NamedTuple):
    hours_per_shift: float
    windows: List[ShiftWindow]


class BulkScheduleService:
    """Service layer for recurring (bulk) shift creation"""

    def __init__(self, repository: ScheduleRepository, audit: AuditLogRepository, clock: Clock = utcnow):
        self.repository = repository
        self.audit = audit
        self.clock = clock

    def plan(self, request: BulkScheduleRequest) -> BulkPlan:
        """Validate the time window and expand the recurrence into UTC windows"""
        for value, field in ((request.start_time, "startTime"), (request.end_time, "endTime")):
            try:
                parse_time(value)
            except ValueError as e:
                raise InvalidBulkScheduleException(str(e), field)

        hours_per_shift = calculate_hours_between(request.start_time, request.end_time)
        if hours_per_shift <= 0:
            raise InvalidBulkScheduleException("End time must be after start time", "endTime")

        try:
            dates = generate_bulk_dates(request.start_date, request.number_of_weeks, request.selected_days)
        except ValueError as e:
            raise InvalidBulkScheduleException(str(e), "selectedDays")
        if not dates:
            raise InvalidBulkScheduleException("No dates match the selected criteria", "selectedDays")

        windows = [
            ShiftWindow(day, combine_date_time(day, request.start_time), combine_date_time(day, request.end_time))
            for day in dates
        ]
        return BulkPlan(hours_per_shift, windows)

    async def _validate_parties(self, company_id: UUID, request: BulkScheduleRequest) -> None:
        if await self.repository.find_company_client(company_id, request.client_id) is None:
            raise ClientNotFoundException(str(request.client_id))
        if await self.repository.find_company_carer(company_id, request.carer_id) is None:
            raise CarerNotFoundException(str(request.carer_id))

    async def _find_conflict(self, company_id: UUID, carer_id: UUID, window: ShiftWindow) -> Optional[ShiftConflict]:
        existing = await self.repository.find_conflicting_shift(company_id, carer_id, window.start, window.end)
        if existing is None:
            return None
        return ShiftConflict(
            date=window.day,
            existing_shift_id=existing.id,
            existing_start=existing.scheduled_start,
            existing_end=existing.scheduled_end,
        )

    async def preview_bulk_schedule(self, company_id: UUID, request: BulkScheduleRequest) -> BulkSchedulePreview:
        """
        Project a bulk create without writing anything.

        Flags each date that overlaps an existing shift and compares the units
        of the non-conflicting shifts with the client's active authorization.
        Insufficient units are reported, never enforced.
        """
        plan = self.plan(request)

        conflicts: List[ShiftConflict] = []
        shifts: List[PreviewShift] = []
        for window in plan.windows:
            conflict = await self._find_conflict(company_id, request.carer_id, window)
            if conflict:
                conflicts.append(conflict)
            shifts.append(PreviewShift(
                date=window.day,
                scheduled_start=window.start,
                scheduled_end=window.end,
                has_conflict=conflict is not None,
                hours=round(plan.hours_per_shift, 2),
            ))

        shifts_to_create = len(plan.windows) - len(conflicts)
        authorization = await self.repository.get_active_authorization(company_id, request.client_id, self.clock())

        units_to_consume = 0.0
        projection = None
        if authorization:
            units_to_consume = calculate_bulk_units(plan.hours_per_shift, shifts_to_create, authorization.unit_type)
            projection = self._project(authorization, units_to_consume)

        return BulkSchedulePreview(
            valid=not conflicts,
            shifts=shifts,
            total_shifts=len(plan.windows),
            shifts_to_create=shifts_to_create,
            total_hours=round(plan.hours_per_shift * shifts_to_create, 2),
            hours_per_shift=round(plan.hours_per_shift, 2),
            units_to_consume=units_to_consume,
            authorization=projection,
            conflicts=conflicts,
        )

    def _project(self, authorization: Authorization, units_to_consume: float) -> AuthorizationProjection:
        remaining = round(authorization.remaining_units, 2)
        units_after = round(remaining - units_to_consume, 2)
        return AuthorizationProjection(
            id=authorization.id,
            auth_number=authorization.auth_number,
            authorized_units=float(authorization.authorized_units or 0),
            used_units=float(authorization.used_units or 0),
            remaining_units=remaining,
            unit_type=authorization.unit_type,
            end_date=authorization.end_date,
            has_insufficient_units=units_after < 0,
            units_after_creation=units_after,
        )

    async def create_bulk_shifts(
        self,
        company_id: UUID,
        user_id: UUID,
        request: BulkScheduleRequest,
    ) -> BulkScheduleResult:
        """
        Create every shift of the recurrence in one transaction.

        Steps:
        1. Validate the request (start date not in the past, end after start)
        2. Lock the caregiver's schedule for the rest of the transaction
        3. For each generated date in order: check for overlap, then create
           or skip; a conflict without skip_conflicts aborts the whole batch
        4. Write a single BULK_SHIFTS_CREATED audit entry for the batch
        """
        now = self.clock()
        today = convert_to_agency_time(now).date()
        if request.start_date < today:
            raise InvalidBulkScheduleException("Start date cannot be in the past", "startDate")

        plan = self.plan(request)
        await self._validate_parties(company_id, request)
        authorization = await self.repository.get_active_authorization(company_id, request.client_id, now)

        created: List[BulkShiftItem] = []
        skipped: List[SkippedDate] = []
        conflicts: List[ShiftConflict] = []

        async with self.repository.transaction():
            await self.repository.lock_caregiver_schedule(request.carer_id)

            for window in plan.windows:
                conflict = await self._find_conflict(company_id, request.carer_id, window)
                if conflict:
                    conflicts.append(conflict)
                    if not request.skip_conflicts:
                        raise ScheduleConflictException(window.day)
                    skipped.append(SkippedDate(date=window.day, reason=CONFLICT_REASON))
                    continue

                shift = await self.repository.create_shift(
                    company_id=company_id,
                    carer_id=request.carer_id,
                    client_id=request.client_id,
                    scheduled_start=window.start,
                    scheduled_end=window.end,
                )
                created.append(BulkShiftItem.model_validate(shift))

            total_units = None
            if authorization:
                total_units = calculate_bulk_units(plan.hours_per_shift, len(created), authorization.unit_type)

            if created:
                await self.audit.add_audit_log(
                    company_id=company_id,
                    user_id=user_id,
                    action="BULK_SHIFTS_CREATED",
                    entity_type="Shift",
                    entity_id=str(created[0].id),
                    changes={
                        "count": len(created),
                        "skipped": len(skipped),
                        "clientId": str(request.client_id),
                        "carerId": str(request.carer_id),
                        "startDate": request.start_date.isoformat(),
                        "numberOfWeeks": request.number_of_weeks,
                        "selectedDays": request.selected_days,
                        "startTime": request.start_time,
                        "endTime": request.end_time,
                        "hoursPerShift": round(plan.hours_per_shift, 2),
                        "totalUnitsToConsume": total_units,
                        "shiftIds": [str(s.id) for s in created],
                    },
                )

        logger.info(
            f"Bulk schedule for carer {request.carer_id}: {len(created)} created, {len(skipped)} skipped"
        )

        return BulkScheduleResult(
            created=len(created),
            skipped=len(skipped),
            shifts=created,
            skipped_dates=skipped,
            conflicts=conflicts,
            total_hours=round(plan.hours_per_shift * len(created), 2),
            total_units_consumed=total_units,
        )
