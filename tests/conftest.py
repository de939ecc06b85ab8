import pytest
from datetime import datetime
from types import SimpleNamespace
from httpx import AsyncClient, ASGITransport

from evv_service import config
from evv_service.attendance.router import get_attendance_service
from evv_service.attendance.service import AttendanceService
from evv_service.auth.middleware import verify_token
from evv_service.auth.models import JWTPayload
from evv_service.credentials.router import get_credential_alert_service
from evv_service.credentials.service import CredentialAlertService
from evv_service.evv.router import get_evv_report_service
from evv_service.evv.service import EVVReportService
from evv_service.main import app
from evv_service.reminders.router import get_shift_reminder_service
from evv_service.reminders.service import ShiftReminderService
from evv_service.notifications.dispatcher import NotificationDispatcher
from evv_service.scheduling.router import get_bulk_schedule_service
from evv_service.scheduling.service import BulkScheduleService
from tests.fakes import FakeQueue, FixedClock, InMemoryStore

PERMISSIONS = {
    "CARER": ["shift:check-in", "shift:read"],
    "SUPERVISOR": ["credentials:read", "evv:read", "shift:read"],
    "SCHEDULER": ["scheduling:manage", "shift:read"],
    "ADMIN": ["credentials:read", "evv:read", "scheduling:manage", "shift:read"],
}


@pytest.fixture(autouse=True)
def agency_settings(monkeypatch):
    """Pin the settings the tests' expectations are written against."""
    monkeypatch.setattr(config, "AGENCY_TIMEZONE", "UTC")
    monkeypatch.setattr(config, "DEFAULT_GEOFENCE_RADIUS", 150)
    monkeypatch.setattr(config, "LATE_CHECK_IN_MINUTES", 15)
    monkeypatch.setattr(config, "EARLY_CHECK_OUT_MINUTES", 15)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def queue():
    return FakeQueue()


@pytest.fixture
def clock():
    """Monday 2024-01-08 09:05 UTC"""
    return FixedClock(datetime(2024, 1, 8, 9, 5))


@pytest.fixture
def dispatcher(store, queue):
    return NotificationDispatcher(queue, store)


@pytest.fixture
def seed(store):
    """One agency with its staff, a sponsored client and a morning shift"""
    company = store.add_company()
    carer = store.add_user(company, "CARER", "Jane", "Doe")
    other_carer = store.add_user(company, "CARER", "Tom", "Baker")
    supervisor = store.add_user(company, "SUPERVISOR", "Sam", "Reed")
    admin = store.add_user(company, "ADMIN", "Ada", "Admin")
    sponsor = store.add_user(company, "SPONSOR", "Paul", "Smith")
    client = store.add_client(company, latitude=40.0, longitude=-75.0, geofence_radius=100, sponsor=sponsor)
    shift = store.add_shift(company, carer, client, datetime(2024, 1, 8, 9, 0), datetime(2024, 1, 8, 13, 0))
    return SimpleNamespace(
        company=company,
        carer=carer,
        other_carer=other_carer,
        supervisor=supervisor,
        admin=admin,
        sponsor=sponsor,
        client=client,
        shift=shift,
    )


@pytest.fixture
def attendance_service(store, dispatcher, clock):
    return AttendanceService(repository=store, audit=store, notifier=dispatcher, clock=clock)


@pytest.fixture
def bulk_service(store, clock):
    return BulkScheduleService(repository=store, audit=store, clock=clock)


@pytest.fixture
def credential_service(store, dispatcher, clock):
    return CredentialAlertService(repository=store, audit=store, notifier=dispatcher, clock=clock)


@pytest.fixture
def reminder_service(store, dispatcher, clock):
    return ShiftReminderService(repository=store, audit=store, notifier=dispatcher, clock=clock)


@pytest.fixture
def evv_service(store, clock):
    return EVVReportService(store, clock=clock)


def make_payload(user, role):
    """Create a JWT payload for a seeded user."""
    return JWTPayload(
        sub=str(user.id),
        company_id=user.company_id,
        roles=[role],
        permissions=PERMISSIONS[role],
    )


@pytest.fixture
def login():
    """Authenticate subsequent requests as the given user and role."""
    def _login(user, role):
        app.dependency_overrides[verify_token] = lambda: make_payload(user, role)
    return _login


@pytest.fixture
async def client(attendance_service, bulk_service, credential_service, evv_service, reminder_service):
    """Create a test client whose services run on the in-memory store."""
    app.dependency_overrides[get_attendance_service] = lambda: attendance_service
    app.dependency_overrides[get_bulk_schedule_service] = lambda: bulk_service
    app.dependency_overrides[get_credential_alert_service] = lambda: credential_service
    app.dependency_overrides[get_evv_report_service] = lambda: evv_service
    app.dependency_overrides[get_shift_reminder_service] = lambda: reminder_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": "Bearer mock_token"}
