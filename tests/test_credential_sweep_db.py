import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from evv_service.audit.repository import AuditLogRepository
from evv_service.credentials.repository import CredentialRepository
from evv_service.credentials.service import CredentialAlertService
from evv_service.db.models import Company
from evv_service.notifications.dispatcher import NotificationDispatcher
from tests.fakes import FakeQueue, InMemoryStore


class FailingCompanyRepository(CredentialRepository):
    """Credential repository that breaks on one company after reading it through the session"""

    def __init__(self, db, failing_company):
        super().__init__(db)
        self.failing_company = failing_company
        self.visited = []

    async def list_company_credentials(self, company_id):
        company = await self.db.get(Company, company_id)
        self.visited.append(company.name)
        if company.name == self.failing_company:
            raise RuntimeError("data anomaly")
        return []


@pytest.fixture
async def db_session():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Company.__table__.create)

    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    async with session_factory() as session:
        session.add_all([Company(name="Alpha"), Company(name="Beta")])
        await session.commit()
        yield session

    await engine.dispose()


@pytest.mark.asyncio
async def test_failed_company_rollback_does_not_stop_sweep(db_session):
    """Test that the rollback of one company leaves the rest of the sweep running."""
    repository = FailingCompanyRepository(db_session, failing_company="Alpha")
    service = CredentialAlertService(
        repository=repository,
        audit=AuditLogRepository(db_session),
        notifier=NotificationDispatcher(FakeQueue(), InMemoryStore()),
    )

    results = await service.check_all_credentials()

    assert results.errors == ["Company Alpha: data anomaly"]
    assert repository.visited == ["Alpha", "Beta"]
    assert results.credentials_checked == 0
