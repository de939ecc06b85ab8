import pytest
from datetime import date, datetime

from evv_service.scheduling.exceptions import (
    CarerNotFoundException,
    ClientNotFoundException,
    InvalidBulkScheduleException,
    ScheduleConflictException,
)
from evv_service.scheduling.schemas import BulkScheduleRequest

# Mondays and Wednesdays: 2024-01-08, 01-10, 01-15, 01-17
DATES = [date(2024, 1, 8), date(2024, 1, 10), date(2024, 1, 15), date(2024, 1, 17)]


@pytest.fixture
def schedule(store, seed):
    """Remove the seeded shift so the carer's calendar starts empty."""
    store.shifts.clear()
    return seed


def make_request(seed, **overrides):
    values = dict(
        client_id=seed.client.id,
        carer_id=seed.carer.id,
        start_date=date(2024, 1, 8),
        number_of_weeks=2,
        selected_days=[1, 3],
        start_time="09:00",
        end_time="13:00",
    )
    values.update(overrides)
    return BulkScheduleRequest(**values)


def existing_shift(store, seed, start, end, status="SCHEDULED"):
    return store.add_shift(seed.company, seed.carer, seed.client, start, end, status=status)


@pytest.mark.asyncio
async def test_create_bulk_shifts(bulk_service, store, schedule):
    """Test creating every shift of the recurrence."""
    store.add_authorization(schedule.company, schedule.client, authorized_units=200, unit_type="QUARTER_HOURLY")

    result = await bulk_service.create_bulk_shifts(schedule.company.id, schedule.admin.id, make_request(schedule))

    assert result.success is True
    assert result.created == 4
    assert result.skipped == 0
    assert [s.scheduled_start for s in result.shifts] == [datetime(d.year, d.month, d.day, 9) for d in DATES]
    assert all(s.scheduled_end.hour == 13 for s in result.shifts)
    assert result.total_hours == 16.0
    assert result.total_units_consumed == 64.0

    assert len(store.shifts) == 4
    assert all(s.status == "SCHEDULED" and s.carer_id == schedule.carer.id for s in store.shifts.values())
    assert store.lock_calls == [schedule.carer.id]


@pytest.mark.asyncio
async def test_bulk_create_writes_one_audit_entry(bulk_service, store, schedule):
    """Test the single batch audit entry."""
    result = await bulk_service.create_bulk_shifts(schedule.company.id, schedule.admin.id, make_request(schedule))

    (entry,) = store.audit_logs
    assert entry.action == "BULK_SHIFTS_CREATED"
    assert entry.user_id == schedule.admin.id
    assert entry.changes["count"] == 4
    assert entry.changes["skipped"] == 0
    assert entry.changes["selectedDays"] == [1, 3]
    assert entry.changes["shiftIds"] == [str(s.id) for s in result.shifts]
    assert entry.changes["totalUnitsToConsume"] is None


@pytest.mark.asyncio
async def test_conflict_aborts_whole_batch(bulk_service, store, schedule):
    """Test that a conflict without skipConflicts creates nothing."""
    blocker = existing_shift(store, schedule, datetime(2024, 1, 10, 12, 0), datetime(2024, 1, 10, 15, 0))

    with pytest.raises(ScheduleConflictException) as exc_info:
        await bulk_service.create_bulk_shifts(schedule.company.id, schedule.admin.id, make_request(schedule))

    assert exc_info.value.status_code == 400
    assert exc_info.value.detail == "Carer has a conflicting shift on 2024-01-10"
    assert list(store.shifts) == [blocker.id]
    assert store.audit_logs == []
    assert store.rollbacks == 1


@pytest.mark.asyncio
async def test_skip_conflicts(bulk_service, store, schedule):
    """Test that skipConflicts creates the rest and reports the skipped dates."""
    blocker = existing_shift(store, schedule, datetime(2024, 1, 10, 12, 0), datetime(2024, 1, 10, 15, 0))

    result = await bulk_service.create_bulk_shifts(
        schedule.company.id, schedule.admin.id, make_request(schedule, skip_conflicts=True)
    )

    assert result.created == 3
    assert result.skipped == 1
    assert result.skipped_dates[0].date == date(2024, 1, 10)
    assert result.skipped_dates[0].reason == "Carer has a conflicting shift"
    assert result.conflicts[0].existing_shift_id == blocker.id
    assert result.total_hours == 12.0
    assert len(store.shifts) == 4
    assert store.audit_logs[0].changes["skipped"] == 1


@pytest.mark.asyncio
async def test_touching_shift_is_not_a_conflict(bulk_service, store, schedule):
    """Test that a shift ending exactly at the new start does not conflict."""
    existing_shift(store, schedule, datetime(2024, 1, 8, 6, 0), datetime(2024, 1, 8, 9, 0))
    existing_shift(store, schedule, datetime(2024, 1, 8, 13, 0), datetime(2024, 1, 8, 15, 0))

    result = await bulk_service.create_bulk_shifts(schedule.company.id, schedule.admin.id, make_request(schedule))

    assert result.created == 4
    assert result.conflicts == []


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["COMPLETED", "CANCELLED"])
async def test_closed_shifts_do_not_conflict(bulk_service, store, schedule, status):
    """Test that only scheduled and in-progress shifts block a date."""
    existing_shift(store, schedule, datetime(2024, 1, 8, 10, 0), datetime(2024, 1, 8, 11, 0), status=status)

    result = await bulk_service.create_bulk_shifts(schedule.company.id, schedule.admin.id, make_request(schedule))

    assert result.created == 4


@pytest.mark.asyncio
async def test_other_carers_shifts_do_not_conflict(bulk_service, store, schedule):
    """Test that overlap is checked per caregiver."""
    store.add_shift(
        schedule.company, schedule.other_carer, schedule.client,
        datetime(2024, 1, 8, 9, 0), datetime(2024, 1, 8, 13, 0),
    )

    result = await bulk_service.create_bulk_shifts(schedule.company.id, schedule.admin.id, make_request(schedule))

    assert result.created == 4


@pytest.mark.asyncio
async def test_start_date_in_past(bulk_service, schedule):
    """Test that a batch cannot start before today."""
    with pytest.raises(InvalidBulkScheduleException) as exc_info:
        await bulk_service.create_bulk_shifts(
            schedule.company.id, schedule.admin.id, make_request(schedule, start_date=date(2024, 1, 7))
        )

    assert exc_info.value.detail == {"error": "Start date cannot be in the past", "field": "startDate"}


@pytest.mark.asyncio
@pytest.mark.parametrize("start_time, end_time", [("13:00", "09:00"), ("09:00", "09:00")])
async def test_end_time_must_follow_start(bulk_service, store, schedule, start_time, end_time):
    """Test the time window check."""
    with pytest.raises(InvalidBulkScheduleException) as exc_info:
        await bulk_service.create_bulk_shifts(
            schedule.company.id,
            schedule.admin.id,
            make_request(schedule, start_time=start_time, end_time=end_time),
        )

    assert exc_info.value.detail == {"error": "End time must be after start time", "field": "endTime"}
    assert store.shifts == {}


@pytest.mark.asyncio
@pytest.mark.parametrize("start_time, end_time, error, field", [
    ("09:00", "25:00", "Invalid time: '25:00'", "endTime"),
    ("24:00", "13:00", "Invalid time: '24:00'", "startTime"),
    ("09:60", "13:00", "Invalid time: '09:60'", "startTime"),
])
async def test_out_of_range_time_names_its_field(bulk_service, store, schedule, start_time, end_time, error, field):
    """Test that an out-of-range time is reported against the field that holds it."""
    with pytest.raises(InvalidBulkScheduleException) as exc_info:
        await bulk_service.create_bulk_shifts(
            schedule.company.id,
            schedule.admin.id,
            make_request(schedule, start_time=start_time, end_time=end_time),
        )

    assert exc_info.value.detail == {"error": error, "field": field}
    assert store.shifts == {}


@pytest.mark.asyncio
async def test_unknown_client(bulk_service, store, schedule):
    """Test a client outside the caller's company."""
    other_company = store.add_company("Other Agency")
    foreign_client = store.add_client(other_company)

    with pytest.raises(ClientNotFoundException):
        await bulk_service.create_bulk_shifts(
            schedule.company.id, schedule.admin.id, make_request(schedule, client_id=foreign_client.id)
        )


@pytest.mark.asyncio
async def test_inactive_carer(bulk_service, schedule):
    """Test that inactive caregivers cannot be scheduled."""
    schedule.carer.is_active = False

    with pytest.raises(CarerNotFoundException):
        await bulk_service.create_bulk_shifts(schedule.company.id, schedule.admin.id, make_request(schedule))


@pytest.mark.asyncio
async def test_agency_timezone_applies_to_times(bulk_service, store, schedule, monkeypatch):
    """Test that HH:MM times are agency-local."""
    from evv_service import config
    monkeypatch.setattr(config, "AGENCY_TIMEZONE", "America/New_York")

    result = await bulk_service.create_bulk_shifts(schedule.company.id, schedule.admin.id, make_request(schedule))

    assert result.shifts[0].scheduled_start == datetime(2024, 1, 8, 14, 0)
    assert result.shifts[0].scheduled_end == datetime(2024, 1, 8, 18, 0)


@pytest.mark.asyncio
async def test_preview_without_conflicts(bulk_service, store, schedule):
    """Test the preview projection against an hourly authorization."""
    store.add_authorization(schedule.company, schedule.client, authorized_units=40, used_units=10)

    preview = await bulk_service.preview_bulk_schedule(schedule.company.id, make_request(schedule))

    assert preview.valid is True
    assert preview.total_shifts == 4
    assert preview.shifts_to_create == 4
    assert preview.hours_per_shift == 4.0
    assert preview.total_hours == 16.0
    assert preview.units_to_consume == 16.0
    assert [s.date for s in preview.shifts] == DATES
    assert preview.authorization.remaining_units == 30.0
    assert preview.authorization.units_after_creation == 14.0
    assert preview.authorization.has_insufficient_units is False


@pytest.mark.asyncio
async def test_preview_flags_conflicts_without_writing(bulk_service, store, schedule):
    """Test that preview marks conflicting dates and writes nothing."""
    existing_shift(store, schedule, datetime(2024, 1, 15, 10, 0), datetime(2024, 1, 15, 11, 0))
    store.add_authorization(schedule.company, schedule.client, authorized_units=50, unit_type="QUARTER_HOURLY")

    preview = await bulk_service.preview_bulk_schedule(schedule.company.id, make_request(schedule))

    assert preview.valid is False
    assert [s.has_conflict for s in preview.shifts] == [False, False, True, False]
    assert preview.conflicts[0].date == date(2024, 1, 15)
    assert preview.shifts_to_create == 3
    assert preview.units_to_consume == 48.0
    assert preview.authorization.units_after_creation == 2.0
    assert len(store.shifts) == 1
    assert store.audit_logs == []
    assert store.lock_calls == []


@pytest.mark.asyncio
async def test_preview_reports_insufficient_units(bulk_service, store, schedule):
    """Test that an authorization shortfall is reported, not enforced."""
    store.add_authorization(schedule.company, schedule.client, authorized_units=50, unit_type="QUARTER_HOURLY")

    preview = await bulk_service.preview_bulk_schedule(schedule.company.id, make_request(schedule))

    assert preview.units_to_consume == 64.0
    assert preview.authorization.has_insufficient_units is True
    assert preview.authorization.units_after_creation == -14.0


@pytest.mark.asyncio
async def test_preview_without_authorization(bulk_service, schedule):
    """Test a client with no active authorization."""
    preview = await bulk_service.preview_bulk_schedule(schedule.company.id, make_request(schedule))

    assert preview.authorization is None
    assert preview.units_to_consume == 0.0


def test_request_dedupes_selected_days(seed):
    """Test that selectedDays are normalised."""
    assert make_request(seed, selected_days=[3, 1, 3]).selected_days == [1, 3]
