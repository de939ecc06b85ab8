import pytest
from datetime import datetime
from httpx import AsyncClient


@pytest.fixture
def payload(store, seed):
    store.shifts.clear()
    return {
        "clientId": str(seed.client.id),
        "carerId": str(seed.carer.id),
        "startDate": "2024-01-08",
        "numberOfWeeks": 2,
        "selectedDays": [1, 3],
        "startTime": "09:00",
        "endTime": "13:00",
    }


@pytest.mark.asyncio
async def test_bulk_create_unauthorized(client: AsyncClient, payload):
    """Test bulk scheduling without authentication."""
    response = await client.post("/scheduling/bulk", json=payload)
    assert response.status_code in [401, 403]


@pytest.mark.asyncio
async def test_bulk_create(client: AsyncClient, login, auth_headers, store, seed, payload):
    """Test a successful bulk create."""
    store.add_authorization(seed.company, seed.client, authorized_units=100, unit_type="DAILY")
    login(seed.admin, "SCHEDULER")

    response = await client.post("/scheduling/bulk", json=payload, headers=auth_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["created"] == 4
    assert data["skipped"] == 0
    assert data["totalHours"] == 16.0
    assert data["totalUnitsConsumed"] == 4.0
    assert data["shifts"][0]["scheduledStart"] == "2024-01-08T09:00:00"
    assert data["skippedDates"] == []


@pytest.mark.asyncio
async def test_bulk_create_requires_permission(client: AsyncClient, login, auth_headers, seed, payload):
    """Test that carers cannot create schedules."""
    login(seed.carer, "CARER")

    response = await client.post("/scheduling/bulk", json=payload, headers=auth_headers)

    assert response.status_code == 403
    assert response.json() == {"error": "Missing required permission: scheduling:manage"}


@pytest.mark.asyncio
@pytest.mark.parametrize("field, value", [
    ("numberOfWeeks", 0),
    ("numberOfWeeks", 13),
    ("selectedDays", []),
    ("selectedDays", [7]),
    ("startTime", "9:00"),
    ("endTime", "1pm"),
    ("startDate", "next monday"),
])
async def test_bulk_create_validation(client: AsyncClient, login, auth_headers, store, seed, payload, field, value):
    """Test request validation."""
    login(seed.admin, "SCHEDULER")

    response = await client.post("/scheduling/bulk", json={**payload, field: value}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid input"
    assert store.shifts == {}


@pytest.mark.asyncio
async def test_bulk_create_conflict(client: AsyncClient, login, auth_headers, store, seed, payload):
    """Test that a strict batch with a conflict is rejected."""
    store.add_shift(seed.company, seed.carer, seed.client, datetime(2024, 1, 8, 12, 0), datetime(2024, 1, 8, 16, 0))
    login(seed.admin, "SCHEDULER")

    response = await client.post("/scheduling/bulk", json=payload, headers=auth_headers)

    assert response.status_code == 400
    assert response.json() == {"error": "Carer has a conflicting shift on 2024-01-08"}
    assert len(store.shifts) == 1


@pytest.mark.asyncio
async def test_bulk_create_skip_conflicts(client: AsyncClient, login, auth_headers, store, seed, payload):
    """Test skipConflicts through the API."""
    store.add_shift(seed.company, seed.carer, seed.client, datetime(2024, 1, 8, 12, 0), datetime(2024, 1, 8, 16, 0))
    login(seed.admin, "SCHEDULER")

    response = await client.post("/scheduling/bulk", json={**payload, "skipConflicts": True}, headers=auth_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["created"] == 3
    assert data["skippedDates"] == [{"date": "2024-01-08", "reason": "Carer has a conflicting shift"}]


@pytest.mark.asyncio
async def test_bulk_create_end_before_start(client: AsyncClient, login, auth_headers, seed, payload):
    """Test the field-level error body."""
    login(seed.admin, "SCHEDULER")

    response = await client.post(
        "/scheduling/bulk",
        json={**payload, "startTime": "17:00", "endTime": "09:00"},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert response.json() == {"error": "End time must be after start time", "field": "endTime"}


@pytest.mark.asyncio
async def test_bulk_preview(client: AsyncClient, login, auth_headers, store, seed, payload):
    """Test the read-only preview endpoint."""
    store.add_authorization(seed.company, seed.client, authorized_units=10)
    login(seed.admin, "SCHEDULER")

    response = await client.get(
        "/scheduling/bulk",
        params={
            "clientId": payload["clientId"],
            "carerId": payload["carerId"],
            "startDate": "2024-01-08",
            "numberOfWeeks": 2,
            "selectedDays": "1,3",
            "startTime": "09:00",
            "endTime": "13:00",
        },
        headers=auth_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["valid"] is True
    assert data["totalShifts"] == 4
    assert data["shiftsToCreate"] == 4
    assert data["unitsToConsume"] == 16.0
    assert data["authorization"]["hasInsufficientUnits"] is True
    assert data["authorization"]["unitsAfterCreation"] == -6.0
    assert store.shifts == {}


@pytest.mark.asyncio
@pytest.mark.parametrize("selected_days", ["1,x", "7", ""])
async def test_bulk_preview_bad_days(client: AsyncClient, login, auth_headers, seed, payload, selected_days):
    """Test the selectedDays query parameter."""
    login(seed.admin, "SCHEDULER")

    response = await client.get(
        "/scheduling/bulk",
        params={
            "clientId": payload["clientId"],
            "carerId": payload["carerId"],
            "startDate": "2024-01-08",
            "selectedDays": selected_days,
        },
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert response.json()["field"] == "selectedDays"
