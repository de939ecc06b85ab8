import logging
from uuid import UUID
from datetime import datetime
from typing import Optional

from evv_service import config
from evv_service.attendance.exceptions import AlreadyCheckedInException, AlreadyCheckedOutException
from evv_service.attendance.repository import AttendanceRepository
from evv_service.attendance.schemas import (
    AttendanceResponse,
    CheckInOutResponse,
    ShiftAttendanceResponse,
    ShiftResponse,
)
from evv_service.attendance.validators import AttendanceValidator
from evv_service.audit.repository import AuditLogRepository
from evv_service.db.models import Shift, ShiftAttendance, ShiftStatus
from evv_service.evv.exceptions import InvalidLocationException
from evv_service.evv.geofence import EVVStatus, EVVValidationResult, LocationReading
from evv_service.evv.location import (
    EVVLocationData,
    LocationSource,
    detect_source,
    evaluate_reading,
    parse_evv_location_data,
    serialize_evv_location,
)
from evv_service.notifications.dispatcher import NotificationDispatcher
from evv_service.notifications.events import NotificationEventType
from evv_service.utils.clock import Clock, start_of_day, utcnow
from evv_service.utils.timezone import format_date, format_time

logger = logging.getLogger(__name__)

SUPERVISOR_ROLES = ["SUPERVISOR"]


def to_shift_response(shift: Shift) -> ShiftResponse:
    """Convert Shift model to response schema, decoding stored EVV locations."""
    return ShiftResponse(
        id=shift.id,
        company_id=shift.company_id,
        carer_id=shift.carer_id,
        client_id=shift.client_id,
        scheduled_start=shift.scheduled_start,
        scheduled_end=shift.scheduled_end,
        actual_start=shift.actual_start,
        actual_end=shift.actual_end,
        status=shift.status,
        check_in_location=parse_evv_location_data(shift.check_in_location),
        check_out_location=parse_evv_location_data(shift.check_out_location),
    )


def to_attendance_response(attendance: ShiftAttendance) -> AttendanceResponse:
    return AttendanceResponse.model_validate(attendance)


def to_check_response(shift: Shift, attendance: ShiftAttendance, verdict: EVVValidationResult) -> CheckInOutResponse:
    return CheckInOutResponse(
        shift=to_shift_response(shift),
        attendance=to_attendance_response(attendance),
        evv_status=verdict.status,
        evv_is_within_geofence=verdict.is_within_geofence,
        distance_from_client=verdict.distance_from_client,
        evv_message=verdict.message,
    )


class AttendanceService:
    """
    Per-day check-in/check-out state machine for shifts.

    States per (shift, UTC day): NOT_STARTED -> CHECKED_IN -> CHECKED_OUT.
    The shift itself moves SCHEDULED -> IN_PROGRESS on its first-ever
    check-in and IN_PROGRESS -> COMPLETED on the final day's check-out.
    Audit entries and notifications run after the state change commits and
    never undo it.
    """

    def __init__(
        self,
        repository: AttendanceRepository,
        audit: AuditLogRepository,
        notifier: NotificationDispatcher,
        clock: Clock = utcnow,
    ):
        self.repository = repository
        self.audit = audit
        self.notifier = notifier
        self.clock = clock
        self.validator = AttendanceValidator()

    async def _load_open_shift(self, shift_id: UUID, company_id: UUID, carer_id: UUID, action: str) -> Shift:
        shift = self.validator.validate_shift_exists(
            await self.repository.get_shift(shift_id, company_id), shift_id
        )
        self.validator.validate_caregiver_assignment(shift, carer_id)
        self.validator.validate_shift_open(shift, action)
        return shift

    async def _evaluate(
        self,
        shift: Shift,
        reading: Optional[LocationReading],
        source: LocationSource,
        now: datetime,
    ) -> tuple[EVVValidationResult, Optional[EVVLocationData]]:
        client = await self.repository.get_client(shift.client_id) if reading else None
        try:
            return evaluate_reading(reading, client, source, now)
        except ValueError as e:
            raise InvalidLocationException(str(e))

    async def check_in(
        self,
        shift_id: UUID,
        carer_id: UUID,
        company_id: UUID,
        reading: Optional[LocationReading] = None,
        user_agent: Optional[str] = None,
    ) -> CheckInOutResponse:
        """
        Check the assigned caregiver in for today.

        Steps:
        1. Validate ownership, shift status and that today has no check-in
        2. Run the geofence validator when a reading and client coordinates exist
        3. Upsert today's attendance; on the first-ever check-in start the shift
        4. Audit and notify (best-effort)
        """
        now = self.clock()
        shift = await self._load_open_shift(shift_id, company_id, carer_id, "check in to")

        day = start_of_day(now)
        self.validator.validate_can_check_in(await self.repository.get_attendance(shift.id, day))

        verdict, location = await self._evaluate(shift, reading, detect_source(user_agent), now)
        first_check_in = shift.actual_start is None

        async with self.repository.transaction():
            attendance = await self.repository.upsert_check_in(shift.id, day, now)
            if attendance is None:
                raise AlreadyCheckedInException()

            if first_check_in:
                shift.actual_start = now
                shift.status = ShiftStatus.IN_PROGRESS.value
            if location is not None:
                shift.check_in_location = serialize_evv_location(location)
            await self.repository.save_shift(shift)

        logger.info(f"Carer {carer_id} checked in to shift {shift.id} ({verdict.status.value})")

        # A failed audit write rolls the session back and expires the ORM rows
        response = to_check_response(shift, attendance, verdict)

        await self._record_audit(response.shift, carer_id, "SHIFT_CHECK_IN", {
            "date": day.isoformat(),
            "checkInTime": now.isoformat(),
            "firstCheckIn": first_check_in,
            "evvStatus": verdict.status.value,
            "evvIsWithinGeofence": verdict.is_within_geofence,
            "distanceFromClient": verdict.distance_from_client,
            "source": location.source.value if location else None,
        })
        await self._notify_check_in(response.shift, now, verdict, first_check_in)

        return response

    async def check_out(
        self,
        shift_id: UUID,
        carer_id: UUID,
        company_id: UUID,
        reading: Optional[LocationReading] = None,
        user_agent: Optional[str] = None,
        is_final_day: Optional[bool] = None,
    ) -> CheckInOutResponse:
        """
        Check the assigned caregiver out.

        The attendance closed is today's, or when today has no check-in the
        shift's latest open one (a visit that ran past midnight).
        When is_final_day is not given, the final day is the UTC day of the
        shift's scheduled end (or any later day). A final check-out completes
        the shift.
        """
        now = self.clock()
        shift = await self._load_open_shift(shift_id, company_id, carer_id, "check out of")

        day = start_of_day(now)
        attendance = await self.repository.get_attendance(shift.id, day)
        if attendance is None or attendance.check_in_time is None:
            attendance = await self.repository.get_open_attendance(shift.id) or attendance
        attendance = self.validator.validate_can_check_out(attendance)
        check_in_time = attendance.check_in_time
        attendance_day = attendance.date

        verdict, location = await self._evaluate(shift, reading, detect_source(user_agent), now)
        if is_final_day is None:
            is_final_day = day >= start_of_day(shift.scheduled_end)

        async with self.repository.transaction():
            updated = await self.repository.record_check_out(attendance.id, now)
            if updated is None:
                raise AlreadyCheckedOutException()

            if location is not None:
                shift.check_out_location = serialize_evv_location(location)
            if is_final_day:
                shift.actual_end = now
                shift.status = ShiftStatus.COMPLETED.value
            await self.repository.save_shift(shift)

        logger.info(f"Carer {carer_id} checked out of shift {shift.id} (final day: {is_final_day})")

        response = to_check_response(shift, updated, verdict)

        hours_worked = round((now - check_in_time).total_seconds() / 3600, 2)
        await self._record_audit(response.shift, carer_id, "SHIFT_CHECK_OUT", {
            "date": attendance_day.isoformat(),
            "checkOutTime": now.isoformat(),
            "isFinalDay": is_final_day,
            "hoursWorked": hours_worked,
            "evvStatus": verdict.status.value,
            "evvIsWithinGeofence": verdict.is_within_geofence,
            "distanceFromClient": verdict.distance_from_client,
            "source": location.source.value if location else None,
        })
        await self._notify_check_out(response.shift, now, verdict, is_final_day, hours_worked)

        return response

    async def get_shift_attendance(
        self,
        shift_id: UUID,
        company_id: UUID,
        carer_id: Optional[UUID] = None,
    ) -> ShiftAttendanceResponse:
        """Shift with its attendance history; carer_id restricts to own shifts"""
        shift = self.validator.validate_shift_exists(
            await self.repository.get_shift(shift_id, company_id), shift_id
        )
        if carer_id is not None:
            self.validator.validate_caregiver_assignment(shift, carer_id)

        attendance = await self.repository.list_attendance(shift.id)
        return ShiftAttendanceResponse(
            shift=to_shift_response(shift),
            attendance=[to_attendance_response(a) for a in attendance],
        )

    async def _record_audit(self, shift: ShiftResponse, user_id: UUID, action: str, changes: dict) -> None:
        try:
            async with self.audit.transaction():
                await self.audit.add_audit_log(
                    company_id=shift.company_id,
                    user_id=user_id,
                    action=action,
                    entity_type="Shift",
                    entity_id=str(shift.id),
                    changes=changes,
                )
        except Exception as e:
            logger.error(f"Failed to write {action} audit entry for shift {shift.id}: {e}")

    async def _names(self, shift: ShiftResponse) -> dict:
        carer = await self.repository.get_user(shift.carer_id)
        client = await self.repository.get_client(shift.client_id)
        return {
            "shiftId": str(shift.id),
            "carerName": carer.full_name if carer else "",
            "clientName": client.full_name if client else "",
            "shiftDate": format_date(shift.scheduled_start),
        }

    async def _notify_geofence_violation(self, shift: ShiftResponse, data: dict, verdict: EVVValidationResult, event: str):
        await self.notifier.send_notification_to_role(
            NotificationEventType.EVV_GEOFENCE_VIOLATION,
            shift.company_id,
            {**data, "event": event, "distanceFromClient": verdict.distance_from_client, "evvMessage": verdict.message},
            roles=SUPERVISOR_ROLES,
        )

    async def _notify_check_in(self, shift: ShiftResponse, now: datetime, verdict: EVVValidationResult, first_check_in: bool):
        try:
            data = await self._names(shift)
            data["checkInTime"] = format_time(now)

            if first_check_in:
                minutes_late = int((now - shift.scheduled_start).total_seconds() // 60)
                if minutes_late >= config.LATE_CHECK_IN_MINUTES:
                    await self.notifier.send_notification_to_role(
                        NotificationEventType.LATE_CHECK_IN,
                        shift.company_id,
                        {
                            **data,
                            "scheduledTime": format_time(shift.scheduled_start),
                            "actualCheckInTime": format_time(now),
                            "minutesLate": minutes_late,
                        },
                    )

            await self.notifier.send_notification_to_sponsor(
                NotificationEventType.CHECK_IN_CONFIRMATION, shift.company_id, shift.client_id, data
            )
            await self.notifier.send_notification_to_role(
                NotificationEventType.CHECK_IN_CONFIRMATION, shift.company_id, data, roles=SUPERVISOR_ROLES
            )

            if verdict.status == EVVStatus.OUT_OF_RANGE:
                await self._notify_geofence_violation(shift, data, verdict, "check-in")
        except Exception as e:
            logger.error(f"Failed to send check-in notifications for shift {shift.id}: {e}")

    async def _notify_check_out(
        self,
        shift: ShiftResponse,
        now: datetime,
        verdict: EVVValidationResult,
        is_final_day: bool,
        hours_worked: float,
    ):
        try:
            data = await self._names(shift)
            data["checkOutTime"] = format_time(now)

            await self.notifier.send_notification_to_sponsor(
                NotificationEventType.CHECK_OUT_CONFIRMATION,
                shift.company_id,
                shift.client_id,
                {**data, "totalHours": hours_worked},
            )
            await self.notifier.send_notification_to_role(
                NotificationEventType.CHECK_OUT_CONFIRMATION,
                shift.company_id,
                {**data, "totalHours": hours_worked},
                roles=SUPERVISOR_ROLES,
            )

            if is_final_day:
                minutes_early = int((shift.scheduled_end - now).total_seconds() // 60)
                if minutes_early >= config.EARLY_CHECK_OUT_MINUTES:
                    await self.notifier.send_notification_to_role(
                        NotificationEventType.EARLY_CHECK_OUT,
                        shift.company_id,
                        {
                            **data,
                            "scheduledEndTime": format_time(shift.scheduled_end),
                            "actualCheckOutTime": format_time(now),
                            "minutesEarly": minutes_early,
                        },
                    )

            if verdict.status == EVVStatus.OUT_OF_RANGE:
                await self._notify_geofence_violation(shift, data, verdict, "check-out")
        except Exception as e:
            logger.error(f"Failed to send check-out notifications for shift {shift.id}: {e}")
