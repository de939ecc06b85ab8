"""Credential Repository Layer"""
from uuid import UUID
from datetime import datetime
from typing import Any, List, Optional, Tuple
from sqlalchemy import select

from evv_service.db.models import (
    CaregiverCredential,
    Company,
    CredentialAlert,
    CredentialType,
    User,
)
from evv_service.db.repository import BaseRepository

CredentialRow = Tuple[CaregiverCredential, CredentialType, User]


class CredentialRepository(BaseRepository):
    """Repository for caregiver credentials and their alerts"""

    async def list_active_companies(self) -> List[Company]:
        stmt = select(Company).where(Company.is_active.is_(True)).order_by(Company.name.asc())
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_company_credentials(self, company_id: UUID) -> List[CredentialRow]:
        """Every credential held by the company's users, with its type and holder"""
        stmt = (
            select(CaregiverCredential, CredentialType, User)
            .join(CredentialType, CaregiverCredential.credential_type_id == CredentialType.id)
            .join(User, CaregiverCredential.caregiver_id == User.id)
            .where(User.company_id == company_id)
            .order_by(CaregiverCredential.expiration_date.asc())
        )
        result = await self.db.execute(stmt)
        return [tuple(row) for row in result.all()]

    async def update_credential(self, credential: CaregiverCredential, **values: Any) -> CaregiverCredential:
        """Apply field updates and flush them into the current transaction"""
        for field, value in values.items():
            setattr(credential, field, value)
        self.db.add(credential)
        await self.db.flush()
        return credential

    async def find_recent_alert(
        self,
        credential_id: UUID,
        alert_type: str,
        since: datetime,
    ) -> Optional[CredentialAlert]:
        """Most recent alert of a type for a credential created at or after since"""
        stmt = select(CredentialAlert).where(
            CredentialAlert.credential_id == credential_id,
            CredentialAlert.alert_type == alert_type,
            CredentialAlert.created_at >= since,
        ).order_by(CredentialAlert.created_at.desc()).limit(1)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def create_alert(
        self,
        company_id: UUID,
        credential_id: UUID,
        alert_type: str,
        severity: str,
        message: str,
        created_at: datetime,
    ) -> CredentialAlert:
        alert = CredentialAlert(
            company_id=company_id,
            credential_id=credential_id,
            alert_type=alert_type,
            severity=severity,
            message=message,
            created_at=created_at,
        )
        self.db.add(alert)
        await self.db.flush()
        return alert

    async def list_alerts(self, company_id: UUID, limit: int = 50) -> List[CredentialAlert]:
        """Company's most recent alerts"""
        stmt = select(CredentialAlert).where(
            CredentialAlert.company_id == company_id
        ).order_by(CredentialAlert.created_at.desc()).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
